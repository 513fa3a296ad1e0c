# /taskflow/workflows/catalog.py

from typing import List

from taskflow.models.process import ProcessDefinition
from taskflow.workflows.definitions.help import help_process
from taskflow.workflows.definitions.task_creation import task_creation_process
from taskflow.workflows.definitions.task_query import task_query_process, workload_query_process
from taskflow.workflows.definitions.task_update import task_archive_process, task_update_process


def default_processes() -> List[ProcessDefinition]:
    """The built-in catalogue, in registration order (which breaks trigger priority ties)."""
    return [
        task_creation_process,
        task_query_process,
        workload_query_process,
        task_update_process,
        task_archive_process,
        help_process,
    ]
