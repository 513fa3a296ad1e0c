# /taskflow/workflows/entities.py

"""
Pure, stateless text helpers: message normalization, best-effort entity
extraction and natural-language date parsing.

Nothing in this module depends on a process definition, touches the
session store or logs. Same input, same output (pass `today` to pin the
reference date).
"""

import re
import unicodedata
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from taskflow.config import rules

_NON_WORD_RE = re.compile(r"[^\w\s]")
_SPACES_RE = re.compile(r"\s+")

# Words that follow "para" but are dates, not client names
_DATE_WORDS = set(rules.RELATIVE_DAYS) | {"pasado"}


def normalize_text(message: str) -> str:
    """Lowercases, strips accents, turns punctuation into spaces and collapses whitespace."""
    decomposed = unicodedata.normalize("NFD", message.lower().strip())
    without_accents = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return _SPACES_RE.sub(" ", _NON_WORD_RE.sub(" ", without_accents)).strip()


def parse_date(text: Optional[str], today: Optional[date] = None) -> Optional[datetime]:
    """
    Parses ISO dates/datetimes, dd/mm[/yy[yy]], "hoy", "mañana", "pasado mañana"
    and "15 de marzo [de 2025]" into an aware UTC datetime. Returns None when
    the text is not a date.
    """
    if not text or not text.strip():
        return None
    today = today or datetime.now(timezone.utc).date()
    lowered = text.strip().lower()

    if lowered in rules.RELATIVE_DAYS:
        return _midnight(today + timedelta(days=rules.RELATIVE_DAYS[lowered]))

    match = rules.NUMERIC_DATE_RE.match(lowered)
    if match:
        day, month, year = match.groups()
        if year is None:
            year = today.year
        elif len(year) == 2:
            year = 2000 + int(year)
        return _safe_date(int(year), int(month), int(day))

    match = rules.SPANISH_DATE_RE.match(lowered)
    if match:
        day, month_name, year = match.groups()
        month = rules.MONTHS.get(month_name)
        if month is None:
            return None
        return _safe_date(int(year) if year else today.year, month, int(day))

    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso_instant(moment: datetime) -> str:
    """2025-03-15T00:00:00.000Z"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return _midnight(date(year, month, day))
    except ValueError:
        return None


def extract_entities(message: str, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Best-effort extraction of task_name, client_name, priority, due_date,
    numbers and quoted strings. Keys are only present when something was found.
    """
    entities: Dict[str, Any] = {}

    for pattern in rules.TASK_NAME_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1).strip():
            entities["task_name"] = match.group(1).strip()
            break

    client_name = _extract_client(message)
    if client_name:
        entities["client_name"] = client_name

    for pattern in rules.PRIORITY_PATTERNS:
        match = pattern.search(message)
        if match:
            if "urgente" in match.group(0).lower():
                entities["priority"] = "Alta"
            else:
                entities["priority"] = match.group(1).capitalize()
            break

    for pattern in rules.DATE_PATTERNS:
        match = pattern.search(message)
        if match:
            parsed = parse_date(match.group("date"), today)
            if parsed:
                entities["due_date"] = parsed.date().isoformat()
            break

    numbers = [float(raw.replace(",", ".")) for raw in rules.NUMBER_RE.findall(message)]
    if numbers:
        entities["numbers"] = numbers

    quoted = [double or single for double, single in rules.QUOTED_RE.findall(message)]
    if quoted:
        entities["quoted"] = quoted

    return entities


def _extract_client(message: str) -> Optional[str]:
    for pattern in rules.CLIENT_PATTERNS:
        for match in pattern.finditer(message):
            candidate = match.group(1).strip()
            if candidate and candidate.lower() not in _DATE_WORDS:
                return candidate
    return None
