# /taskflow/workflows/definitions/help.py

from taskflow.config import strings
from taskflow.models.process import (
    ProcessConfig,
    ProcessDefinition,
    ProcessTrigger,
    RespondStep,
    TriggerType,
)

help_process = ProcessDefinition(
    id="help",
    name="Ayuda",
    description="Explica qué puede hacer el asistente",
    triggers=[
        ProcessTrigger(type=TriggerType.COMMAND, commands=["/ayuda", "/help"], priority=120),
        ProcessTrigger(type=TriggerType.INTENT, intents=["HELP"], priority=50),
    ],
    steps=[RespondStep(id="show_help", name="Mostrar ayuda", response=strings.HELP_MESSAGE)],
    initial_step="show_help",
    config=ProcessConfig(requires_confirmation=False, max_retries=1, timeout_ms=60_000, allow_cancel=True),
    tags=["help"],
)
