"""Control layer - provisioning workflows and the task tracker."""

from efshub.control.filesystems import FileSystemWorkflows
from efshub.control.orchestrator import Orchestrator
from efshub.control.tasks import TaskHandle, TaskSink, TaskTracker

__all__ = [
    "FileSystemWorkflows",
    "Orchestrator",
    "TaskHandle",
    "TaskSink",
    "TaskTracker",
]
