"""
Logging setup for allocation and posterior runs.

Library modules only ask for a named logger; the CLI entry point calls
setup_logging() once. Every record that reaches a handler installed here
carries the current run id, so a run's console lines, the rotating
``logs/pipeline.log`` and the per-run ``pipeline.jsonl`` can be joined.

Allocator and posterior code attach survey context through ``extra=``
(``iteration``, ``unit_ids``); the JSON formatter copies those keys
through when present.
"""

import json
import logging
import os
import time
import uuid
from logging.handlers import RotatingFileHandler

from optimal_allocation import config as C

# Keys that callers may pass through ``extra=`` and that end up as
# top-level fields of a JSON log line.
STRUCTURED_KEYS = (
    "step_name",
    "status",
    "input_summary",
    "output_summary",
    "timing_seconds",
    "warnings",
    "iteration",
    "unit_ids",
)

_run_id = None
_configured = False
_run_dir_handler = None
_handlers = []


def _new_run_id():
    return uuid.uuid4().hex[:8]


def get_run_id():
    """Return the current run id, creating one on first use."""
    global _run_id
    if _run_id is None:
        _run_id = _new_run_id()
    return _run_id


def set_run_id(run_id=None):
    """Start a new run; returns the id now bound to log records."""
    global _run_id
    _run_id = run_id or _new_run_id()
    return _run_id


class RunIdFilter(logging.Filter):

    def filter(self, record):
        record.run_id = get_run_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with structured extras lifted to the top."""

    def format(self, record):
        stamp = self.formatTime(record, "%Y-%m-%dT%H:%M:%S")
        entry = {
            "timestamp": f"{stamp}.{int(record.msecs):03d}",
            "level": record.levelname,
            "logger": record.name,
            "line": record.lineno,
            "run_id": getattr(record, "run_id", None),
            "message": record.getMessage(),
        }
        entry.update({
            key: getattr(record, key) for key in STRUCTURED_KEYS if hasattr(record, key)
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short console lines tagged with the run id."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(run_id)s] %(message)s",
            datefmt="%H:%M:%S",
        )


def _attach(handler, level, formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RunIdFilter())
    logging.getLogger().addHandler(handler)
    _handlers.append(handler)
    return handler


def setup_logging(run_dir=None, console_level=None, file_level=logging.DEBUG,
                  log_dir=None):
    """Install console and file handlers on the root logger.

    Repeated calls do not duplicate the console or rotating handlers; the
    per-run JSONL handler is added the first time a *run_dir* is given.

    Parameters
    ----------
    run_dir : str, optional
        Output directory of the run. Gets ``pipeline.jsonl`` at
        *file_level*.
    console_level : int, optional
        Defaults to the ``LOG_LEVEL`` environment variable, else INFO.
    file_level : int
        Level for both file handlers.
    log_dir : str, optional
        Directory for the rotating log. Defaults to ``./logs``; an empty
        string disables it.
    """
    global _configured, _run_dir_handler

    if console_level is None:
        name = os.environ.get("LOG_LEVEL", "INFO").upper()
        console_level = getattr(logging, name, logging.INFO)

    if not _configured:
        logging.getLogger().setLevel(logging.DEBUG)
        _attach(logging.StreamHandler(), console_level, ConsoleFormatter())

        if log_dir is None:
            log_dir = os.path.join(os.getcwd(), "logs")
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            rotating = RotatingFileHandler(
                os.path.join(log_dir, C.LOG_FILE_NAME),
                maxBytes=C.LOG_MAX_BYTES,
                backupCount=C.LOG_BACKUP_COUNT,
            )
            _attach(rotating, file_level, JsonFormatter())
        _configured = True

    if run_dir and _run_dir_handler is None:
        os.makedirs(run_dir, exist_ok=True)
        _run_dir_handler = _attach(
            logging.FileHandler(os.path.join(run_dir, C.RUN_LOG_FILE_NAME)),
            file_level,
            JsonFormatter(),
        )


def reset_logging():
    """Detach and close the handlers setup_logging() installed.

    Used between tests; handlers owned by anything else stay in place.
    """
    global _configured, _run_dir_handler, _run_id

    root = logging.getLogger()
    while _handlers:
        handler = _handlers.pop()
        root.removeHandler(handler)
        handler.close()

    _configured = False
    _run_dir_handler = None
    _run_id = None


def get_pipeline_logger(name):
    """Named logger for a package module; never configures handlers."""
    return logging.getLogger(name)


def log_step_summary(logger, step_name, status="success", input_summary=None,
                     output_summary=None, timing_seconds=None, warnings_list=None):
    """Emit one INFO line summarising a CLI step.

    The message reads ``[step] status (1.234s) output={...}``; the same
    facts go into ``extra`` for the JSON handlers. Empty summaries are
    left out of both.
    """
    message = f"[{step_name}] {status}"
    if timing_seconds is not None:
        message += f" ({timing_seconds:.3f}s)"
    if output_summary:
        message += f" output={output_summary}"

    fields = {
        "input_summary": input_summary,
        "output_summary": output_summary,
        "timing_seconds": timing_seconds,
        "warnings": warnings_list,
    }
    extra = {"step_name": step_name, "status": status}
    extra.update({k: v for k, v in fields.items() if v not in (None, {}, [])})
    logger.info(message, extra=extra)


class StepTimer:
    """``with StepTimer() as t: ...`` then read ``t.elapsed`` in seconds."""

    def __enter__(self):
        self.start = time.perf_counter()
        self.elapsed = 0.0
        return self

    def __exit__(self, *exc):
        self.elapsed = time.perf_counter() - self.start
        return False
