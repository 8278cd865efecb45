"""Prometheus exposition for efshub workers.

Each worker writes its values to ``{type}_{pid}.db`` files under
PROMETHEUS_MULTIPROC_DIR (set up by ``collector``); /metrics aggregates the
files of every worker.
"""

import logging
import os
from pathlib import Path

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest, multiprocess
from starlette.responses import Response

logger = logging.getLogger(__name__)


def _multiproc_dir(multiproc_dir: str | None) -> Path:
    return Path(multiproc_dir or os.environ["PROMETHEUS_MULTIPROC_DIR"])


def _pid_of(db: Path) -> int | None:
    try:
        return int(db.stem.rsplit("_", 1)[-1])
    except ValueError:
        return None


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def prune_stale_metrics(multiproc_dir: str | None = None) -> list[int]:
    """Delete value files left behind by processes that no longer exist.

    Files of this process and of live sibling workers are kept, so a worker
    starting late never wipes the task counters another worker is serving.

    Returns:
        Sorted pids whose files were removed
    """
    path = _multiproc_dir(multiproc_dir)
    path.mkdir(parents=True, exist_ok=True)

    removed: set[int] = set()
    for db in path.glob("*.db"):
        pid = _pid_of(db)
        if pid is None or pid == os.getpid() or _alive(pid):
            continue
        db.unlink(missing_ok=True)
        removed.add(pid)

    if removed:
        logger.info("Removed metrics of %d exited workers", len(removed))
    return sorted(removed)


def metrics_response(multiproc_dir: str | None = None) -> Response:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry, path=str(_multiproc_dir(multiproc_dir)))
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
