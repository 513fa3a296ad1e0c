# /taskflow/config/rules.py

import re

# This file contains the vocabularies and regex tables used to understand
# text messages without calling a language model. Confirmation, cancellation
# and modification patterns run against the NORMALIZED message (lowercase,
# no accents, no punctuation); entity patterns run against the raw message.

# --- Continuation vocabulary ---
CONFIRMATION_PATTERNS = [
    re.compile(r"^(si|yes|ok|okay|dale|confirmo|adelante|hazlo|procede|correcto)$"),
    re.compile(r"^(esta bien|de acuerdo|afirmativo|claro|por supuesto)$"),
    re.compile(r"^(?:si |ok )?confirm(?:ar|a|o)?$"),
]

CANCELLATION_PATTERNS = [
    re.compile(r"^(no|cancel|cancelar|detener|para|stop|olvida)$"),
    re.compile(r"^(no quiero|dejalo|mejor no|olvidalo)$"),
    re.compile(r"^(?:no )?cancela(?:r)?$"),
]

# Words that cancel even while the process is waiting for free-text input.
# "no" is deliberately absent: it is a legitimate answer to many questions.
EXPLICIT_CANCEL_WORDS = {"cancelar", "cancela", "cancel", "stop", "detener"}

# Raw answers parsed as boolean True for boolean slots
AFFIRMATIVE_VALUES = {"si", "sí", "yes", "true", "1"}

# --- Modifications while a confirmation is pending ---
PRIORITY_PHRASES = [
    (("prioridad alta", "alta prioridad", "urgente"), "Alta"),
    (("prioridad baja", "baja prioridad"), "Baja"),
    (("prioridad media", "media prioridad"), "Media"),
]

STATUS_PHRASES = [
    (("por iniciar", "sin empezar"), "Por Iniciar"),
    (("backlog",), "Backlog"),
]

PROJECT_RE = re.compile(r"proyecto[:\s]+[\"']?([^\"'\n,]+)[\"']?", re.IGNORECASE)

# "en realidad, cambia la prioridad a alta" / "actually change priority to high"
CHANGE_FIELD_RE = re.compile(
    r"(?:en realidad|mejor|actually)?[,\s]*"
    r"(?:cambia(?:r)?|change|pon(?:er)?|set)\s+"
    r"(?:el\s+|la\s+|los\s+|the\s+)?(?P<field>[a-záéíóúñ]+)\s+"
    r"(?:a|to|en|por)\s+[\"']?(?P<value>[^\"'\n]+?)[\"']?\s*$",
    re.IGNORECASE,
)

# Field words users say -> slot names used by the task processes
FIELD_ALIASES = {
    "prioridad": "priority", "priority": "priority",
    "estado": "status", "status": "status",
    "proyecto": "project", "project": "project",
    "nombre": "task_name", "titulo": "task_name", "título": "task_name", "name": "task_name",
    "cliente": "client_name", "client": "client_name",
    "descripcion": "description", "descripción": "description", "description": "description",
    "fecha": "due_date", "date": "due_date",
}

# Canonical spelling of well-known enum values
CANONICAL_VALUES = {
    "alta": "Alta", "high": "Alta", "urgente": "Alta",
    "media": "Media", "medium": "Media",
    "baja": "Baja", "low": "Baja",
    "por iniciar": "Por Iniciar",
    "en proceso": "En Proceso",
    "backlog": "Backlog",
    "por finalizar": "Por Finalizar",
    "finalizado": "Finalizado", "finalizada": "Finalizado",
    "cancelado": "Cancelado", "cancelada": "Cancelado",
}

# --- Lightweight intent classification (trigger type "intent") ---
INTENT_KEYWORDS = {
    "TASK_CREATE": [
        "crear tarea", "crea tarea", "nueva tarea", "agregar tarea",
        "create task", "new task", "add task",
        "necesito una tarea", "quiero crear", "agrega una tarea",
    ],
    "TASK_QUERY": [
        "mis tareas", "mostrar tareas", "ver tareas", "lista tareas",
        "cuantas tareas", "que tareas", "buscar tarea",
        "my tasks", "show tasks", "list tasks",
    ],
    "TASK_UPDATE": [
        "actualizar tarea", "editar tarea", "modificar tarea",
        "cambiar tarea", "update task", "edit task",
        "cambiar estado", "cambiar prioridad", "asignar tarea",
    ],
    "TASK_ARCHIVE": [
        "eliminar tarea", "borrar tarea", "archivar tarea",
        "delete task", "archive task", "remove task", "cancelar tarea",
    ],
    "WORKLOAD": [
        "carga de trabajo", "workload", "cuantas tareas tiene",
        "tareas del equipo", "distribucion de tareas",
        "quien tiene mas tareas", "balance de carga",
    ],
    "HELP": [
        "ayuda", "help", "que puedes hacer", "comandos",
        "como funciona", "instrucciones",
    ],
}

# --- Entity extraction ---
TASK_NAME_PATTERNS = [
    re.compile(r'"([^"]+)"'),
    re.compile(r"'([^']+)'"),
    re.compile(r"llamad[ao]\s+(.+?)(?:\s+para|\s+del?\s|\s*$)", re.IGNORECASE),
    re.compile(r"tarea\s+(?:de\s+)?(.+?)(?:\s+para|\s+del?\s|\s*$)", re.IGNORECASE),
]

CLIENT_PATTERNS = [
    re.compile(r"para\s+(?:el\s+)?(?:cliente\s+)?(\w+)", re.IGNORECASE),
    re.compile(r"del?\s+cliente\s+(\w+)", re.IGNORECASE),
    re.compile(r"cliente[:\s]+(\w+)", re.IGNORECASE),
    re.compile(r"pertenece\s+a\s+(\w+)", re.IGNORECASE),
]

PRIORITY_PATTERNS = [
    re.compile(r"prioridad\s+(alta|media|baja)", re.IGNORECASE),
    re.compile(r"(alta|media|baja)\s+prioridad", re.IGNORECASE),
    re.compile(r"urgente", re.IGNORECASE),
]

MONTHS = {
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5, "junio": 6,
    "julio": 7, "agosto": 8, "septiembre": 9, "octubre": 10, "noviembre": 11, "diciembre": 12,
}

DATE_PATTERNS = [
    re.compile(r"para\s+(?P<date>hoy|mañana|manana)", re.IGNORECASE),
    re.compile(r"fecha[:\s]+(?P<date>\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?)", re.IGNORECASE),
    re.compile(r"(?P<date>\d{1,2}\s+de\s+(?:" + "|".join(MONTHS) + r"))", re.IGNORECASE),
]

RELATIVE_DAYS = {"hoy": 0, "mañana": 1, "manana": 1, "pasado mañana": 2, "pasado manana": 2}
NUMERIC_DATE_RE = re.compile(r"^\s*(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?\s*$")
SPANISH_DATE_RE = re.compile(r"^\s*(\d{1,2})\s+de\s+(\w+)(?:\s+de(?:l)?\s+(\d{4}))?\s*$", re.IGNORECASE)

NUMBER_RE = re.compile(r"(?<![\w.])[-+]?\d+(?:[.,]\d+)?(?![\w.])")
LEADING_NUMBER_RE = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")
QUOTED_RE = re.compile(r"\"([^\"]+)\"|'([^']+)'")

# --- Task update detection (run against the lowercased original message) ---
STATUS_UPDATE_PATTERNS = [
    (re.compile(r"por\s*finalizar|casi\s*listo"), "Por Finalizar"),
    (re.compile(r"finaliza(?:do|da|r)|termina(?:do|da|r)|completa(?:do|da|r)"), "Finalizado"),
    (re.compile(r"en\s*proceso|iniciar|empezar"), "En Proceso"),
    (re.compile(r"cancelar|archivar"), "Cancelado"),
    (re.compile(r"backlog|pendiente|espera"), "Backlog"),
]
ASSIGN_RE = re.compile(r"asignar?\b.*?\ba\s+(\w+)", re.IGNORECASE)
PRIORITY_CHANGE_RE = re.compile(r"prioridad\b.*?\b(alta|media|baja)\b")
