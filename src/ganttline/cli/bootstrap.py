# src/ganttline/cli/bootstrap.py

"""
Composition root for the CLI.

Creates the local data/export directories, picks the task store (HTTP or
offline demo) and wires it with the timeline core into AppState. Also writes
export artifacts to disk.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..config import get_settings
from ..core.ports import TaskStore
from ..core.state import AppState
from ..store.http_store import HttpTaskStore
from ..store.offline import OfflineTaskStore
from ..timeline.export import ExportArtifact
from ..timeline.mutations import MutationProtocol
from ..timeline.timeline_state import TimelineState

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.export_dir.mkdir(parents=True, exist_ok=True)


def create_store(settings) -> TaskStore:
    """HTTP store when a base URL is configured, otherwise the offline demo store."""
    if getattr(settings, "store_base_url", ""):
        return HttpTaskStore.from_settings(settings)
    logger.info("No task store configured (GANTT_STORE_BASE_URL); using offline demo data.")
    return OfflineTaskStore.demo()


def create_initial_state(*, settings=None, store: TaskStore | None = None) -> AppState:
    """Wire settings, store and the timeline core into an AppState (settings default to get_settings())."""
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = create_store(settings)

    timeline = TimelineState()
    # Both store implementations also serve the project directory.
    mutations = MutationProtocol(timeline, store, projects=store)  # type: ignore[arg-type]

    return AppState(
        settings=settings,
        store=store,
        timeline=timeline,
        mutations=mutations,
        project_id=getattr(settings, "default_project_id", None),
    )


async def close_store(state: AppState) -> None:
    aclose = getattr(state.store, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def write_export(state: AppState, artifact: ExportArtifact) -> Path:
    """Write an export artifact into settings.export_dir (atomic replace)."""
    export_dir = Path(getattr(state.settings, "export_dir", ".local/ganttline/exports"))
    export_dir.mkdir(parents=True, exist_ok=True)

    path = export_dir / artifact.filename
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(artifact.data)
    os.replace(tmp, path)
    logger.info("Export written: %s (%d bytes, %s)", path, len(artifact.data), artifact.content_type)
    return path
