"""API dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends

from efshub.control.orchestrator import Orchestrator

# Singleton orchestrator instance
_orchestrator: Orchestrator | None = None


def init_orchestrator(orchestrator: Orchestrator) -> None:
    """Install the orchestrator singleton.

    Must be called during app startup, after the task store and the
    account registry exist.
    """
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> Orchestrator:
    """Get orchestrator singleton.

    Raises:
        RuntimeError: If called before init_orchestrator().
    """
    if _orchestrator is None:
        raise RuntimeError("Orchestrator not initialized. Call init_orchestrator() first.")
    return _orchestrator


def reset_orchestrator() -> None:
    """Reset orchestrator singleton (for testing)."""
    global _orchestrator
    _orchestrator = None


OrchestratorDep = Annotated[Orchestrator, Depends(get_orchestrator)]

TASK_HEADER = "X-Flywheel-Task"
