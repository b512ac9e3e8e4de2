# src/taskflow/bootstrap.py

"""
Composition root.

- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store into the graph service and the materializer.
"""

from __future__ import annotations

import logging

from .config import get_settings
from .core.state import AppState
from .graph.dependency_graph import CycleCheck, DependencyGraphService
from .logging_setup import setup_logging
from .recurrence.dates import MonthlyPolicy
from .recurrence.materializer import RecurrenceMaterializer
from .tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, init_logging: bool = False) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the library easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if init_logging:
        setup_logging(log_dir=settings.data_dir, console_level=getattr(settings, "log_level", "INFO"))

    store = TaskStore(settings.tasks_db_path)
    policy = MonthlyPolicy.parse(getattr(settings, "monthly_policy", None))
    cycle_check = CycleCheck.parse(getattr(settings, "cycle_check", None))

    logger.info(
        "Starting %s monthly_policy=%s cycle_check=%s",
        getattr(settings, "app_name", "taskflow"),
        policy.value,
        cycle_check.value,
    )

    return AppState(
        settings=settings,
        task_store=store,
        graph=DependencyGraphService(store, store, cycle_check=cycle_check),
        materializer=RecurrenceMaterializer(store, policy=policy),
    )
