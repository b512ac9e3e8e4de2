# src/taskflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "taskflow.log"
_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"


def _own_records_or_warnings(record: logging.LogRecord) -> bool:
    # taskflow.* at the handler level; everyone else only WARNING+
    return record.name.startswith("taskflow") or record.levelno >= logging.WARNING


def _level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    return logging.getLevelNamesMapping().get(str(value).strip().upper(), logging.INFO)


def setup_logging(
    *,
    log_dir: str | Path,
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.DEBUG,
) -> Path:
    """
    Attach a console handler and a file handler (<log_dir>/taskflow.log) to
    the root logger. Handlers from a previous call are replaced; handlers
    installed by the host application are left alone.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    for h in [h for h in root.handlers if getattr(h, "_taskflow", False)]:
        root.removeHandler(h)
        h.close()
    root.setLevel(logging.DEBUG)

    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_level(console_level))
    console.addFilter(_own_records_or_warnings)

    file = logging.FileHandler(str(log_file), encoding="utf-8")
    file.setLevel(_level(file_level))

    for h in (console, file):
        h.setFormatter(fmt)
        h._taskflow = True  # type: ignore[attr-defined]
        root.addHandler(h)

    return log_file
