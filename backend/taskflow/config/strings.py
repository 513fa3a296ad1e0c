# /taskflow/config/strings.py

# This file contains all user-facing strings, making them easy to manage,
# update, and eventually localize without changing application logic.
# Templates use str.format() placeholders.

# --- Process lifecycle ---
OPERATION_CANCELLED = "Operación cancelada. ¿En qué más puedo ayudarte?"
CANCEL_NOT_ALLOWED = "Esta operación no se puede cancelar en este momento."
PROCESS_COMPLETED = "Operación completada."
DEFAULT_CONFIRMATION = "¿Confirmas esta acción?"
UPDATED_PREFIX = "Actualizado. "
MISSING_SLOT_PROMPT = "Por favor, proporciona: {description}"
INVALID_SLOT_VALUE = "El valor no es válido."
UNPARSEABLE_SLOT_VALUE = "No pude interpretar ese valor."
INVALID_SLOT_ENUM = "Las opciones válidas son: {options}."
INVALID_SLOT_MIN_LENGTH = "Debe tener al menos {min_length} caracteres."
INVALID_SLOT_MAX_LENGTH = "Debe tener como máximo {max_length} caracteres."
INVALID_SLOT_PATTERN = "El formato no es válido."
PENDING_CONFIRMATION_HINT = "Tengo una operación pendiente de confirmación."
PENDING_INPUT_HINT = "Estoy esperando un dato para continuar."

# --- Errors ---
PROCESS_NOT_FOUND = 'Proceso "{process_id}" no encontrado.'
PROCESS_DEFINITION_MISSING = "Error interno: proceso no encontrado."
STEP_NOT_FOUND = "Error interno: paso no encontrado."
MAX_ITERATIONS_EXCEEDED = "El proceso excedió el límite de iteraciones."
STEP_EXECUTION_FAILED = "Ocurrió un error interno al procesar tu solicitud. La operación se canceló."
TOOL_EXECUTION_FAILED = "Error al ejecutar: {error}"
TOOL_GENERIC_ERROR = "Error en tool"
TOOL_UNKNOWN_ERROR = "Error desconocido"
TOOL_NOT_REGISTERED = 'La herramienta "{tool}" no está disponible.'
TOO_MANY_INVALID_ATTEMPTS = "Demasiados intentos inválidos. Operación cancelada."

# --- Chat routing ---
NO_PROCESS_MATCHED = "No encontré un proceso que pueda manejar tu solicitud. Por favor, intenta ser más específico."
LLM_UNAVAILABLE = "Lo siento, tengo problemas para conectarme en este momento. Por favor, intenta de nuevo en unos minutos."

# --- Quick replies ---
CONFIRM_LABEL = "Sí, confirmar"
CONFIRM_PAYLOAD = "confirmar"
CANCEL_LABEL = "Cancelar"
CANCEL_PAYLOAD = "cancelar"

# --- Task processes ---
ASK_TASK_NAME = "¿Cómo quieres llamar a esta tarea?"
ASK_CLIENT_NAME = "¿Para qué cliente es esta tarea?"
ASK_TASK_TO_UPDATE = "¿Qué tarea deseas actualizar? (nombre o parte del nombre)"
ASK_TASK_TO_ARCHIVE = "¿Qué tarea deseas archivar?"

CONFIRM_CLIENT_CREATION = 'No encontré un cliente llamado "{client_name}". ¿Deseas que lo cree?'
CONFIRM_TASK_CREATION = """Voy a crear la siguiente tarea:

**Tarea:** {task_name}
**Cliente:** {client_name}
**Proyecto:** {project}
**Prioridad:** {priority}
**Estado:** {status}

¿Confirmas?"""
TASK_CREATED = """✅ Tarea "{task_name}" creada para {client_name}.

¿Quieres agregar personas o cambiar algo? Solo dime."""

CONFIRM_STATUS_CHANGE = 'Voy a cambiar el estado de "{task_name}" de "{current_status}" a "{new_status}". ¿Confirmas?'
CONFIRM_PRIORITY_CHANGE = 'Voy a cambiar la prioridad de "{task_name}" a "{new_priority}". ¿Confirmas?'
CONFIRM_ASSIGNMENT = 'Voy a asignar la tarea "{task_name}" a {user_name}. ¿Confirmas?'
CONFIRM_TASK_ARCHIVE = '¿Estás seguro de que deseas archivar la tarea "{task_name}"? Esta acción cambiará su estado a "Cancelado".'

TASK_STATUS_UPDATED = 'Tarea "{task_name}" actualizada a estado "{new_status}".'
TASK_PRIORITY_UPDATED = 'Prioridad de "{task_name}" cambiada a "{new_priority}".'
TASK_ASSIGNED = 'Tarea "{task_name}" asignada a {user_name}.'
TASK_UPDATED = 'Tarea "{task_name}" actualizada correctamente.'
TASK_ARCHIVED = 'Tarea "{task_name}" archivada correctamente.'

TASK_NOT_FOUND = 'No encontré ninguna tarea con "{identifier}". ¿Podrías verificar el nombre?'
TASK_CANDIDATES = """No encontré una tarea exacta con "{identifier}". ¿Te refieres a alguna de estas?

{candidates}

Por favor, indica el número o escribe el nombre exacto."""
USER_NOT_FOUND = 'No encontré un usuario llamado "{user_name}". Verifica el nombre e intenta de nuevo.'
ASK_WHAT_TO_UPDATE = """Encontré la tarea "{task_name}". ¿Qué deseas cambiar?

• Estado (ej: "marcar como finalizada")
• Prioridad (ej: "prioridad alta")
• Asignación (ej: "asignar a Juan")"""
ARCHIVE_NOT_AUTHORIZED = 'Solo los administradores pueden archivar tareas. Puedo ayudarte a cambiar el estado a "Cancelado" si lo deseas.'

NO_TASKS_FOUND = "No encontré tareas con esos criterios."
TASK_LIST_HEADER = "Encontré {count} tarea(s):"
TASK_LIST_HEADER_ACTIVE = "Encontré {count} tarea(s) activa(s):"
TASK_LIST_HEADER_STATUS = 'Encontré {count} tarea(s) con estado "{status}":'
TASK_LIST_HEADER_PRIORITY = 'Encontré {count} tarea(s) con prioridad "{priority}":'
TASK_LIST_OVERFLOW = "_...y {remaining} tarea(s) más._"
UNNAMED_TASK = "Sin nombre"
NO_STATUS = "Sin estado"

WORKLOAD_HEADER = "**Carga de Trabajo del Equipo**\n_(Solo tareas activas: En Proceso, Por Finalizar)_"
NO_WORKLOAD_DATA = "No hay datos de carga de trabajo disponibles."
NO_ACTIVE_WORKLOAD = "No hay tareas activas asignadas al equipo actualmente."

HELP_MESSAGE = """**¿En qué puedo ayudarte?**

**Tareas:**
• "Crear tarea de X para cliente Y"
• "Mis tareas" o "tareas activas"
• "Marcar tarea X como finalizada"
• "Cambiar prioridad de X a alta"

**Consultas:**
• "Carga de trabajo del equipo"
• "Tareas pendientes"
• "Tareas de alta prioridad"

Solo di lo que necesitas en lenguaje natural."""
