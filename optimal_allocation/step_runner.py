"""
Run one CLI stage and record what happened.

``run_step()`` wraps a work function so that the runner sees a
StepResult whatever the function does: timing, traceback text on
failure, an output summary and any warnings the returned object carries
(``AllocationRunResult.warnings`` for example). Known failures such as a
bad input file or an exhausted allocation are logged as one line with
the offending unit ids or iteration attached; anything else is logged
with its traceback.
"""

import traceback
from datetime import datetime, timezone
from typing import Callable, TypeVar

import pandas as pd

from optimal_allocation.errors import AllAllocationsDroppedError, ValidationError
from optimal_allocation.logging_config import StepTimer, get_pipeline_logger, log_step_summary
from optimal_allocation.pipeline_types import StepResult

T = TypeVar("T")

log = get_pipeline_logger(__name__)

# Input and data problems the user can fix without touching code.
EXPECTED_ERRORS = (
    ValidationError,
    AllAllocationsDroppedError,
    FileNotFoundError,
    ValueError,
    KeyError,
    pd.errors.EmptyDataError,
    pd.errors.ParserError,
)


def _now():
    return datetime.now(timezone.utc).isoformat()


def _error_context(exc):
    """Survey context carried by our own exceptions, for the log line."""
    context = {}
    if getattr(exc, "unit_ids", None):
        context["unit_ids"] = list(exc.unit_ids)
    if getattr(exc, "iteration", None) is not None:
        context["iteration"] = exc.iteration
    return context


def run_step(
    step_name: str,
    fn: Callable[..., T],
    *args,
    input_summary: dict | None = None,
    output_summary_fn: Callable[[T], dict] | None = None,
    expected_exceptions: tuple[type[Exception], ...] = EXPECTED_ERRORS,
    **kwargs,
) -> tuple[StepResult, T | None]:
    """Call ``fn(*args, **kwargs)`` as the pipeline step *step_name*.

    Parameters
    ----------
    step_name : str
        Name recorded in the StepResult and the run JSON.
    fn : Callable
        Work function.
    input_summary : dict, optional
        Facts about the inputs, stored verbatim.
    output_summary_fn : callable, optional
        Maps the return value to a summary dict. Not called when *fn*
        fails or returns None.
    expected_exceptions : tuple
        Failures logged as a single line instead of a traceback.

    Returns
    -------
    tuple[StepResult, T | None]
        The step record, and *fn*'s return value (None on failure).
    """
    inputs = dict(input_summary or {})

    with StepTimer() as timer:
        try:
            value = fn(*args, **kwargs)
        except expected_exceptions as exc:
            failure = traceback.format_exc()
            log.error("%s failed: %s", step_name, exc, extra=_error_context(exc))
        except Exception:
            failure = traceback.format_exc()
            log.error("%s failed unexpectedly", step_name, exc_info=True)
        else:
            failure = None

    if failure is not None:
        log_step_summary(log, step_name, "error", timing_seconds=timer.elapsed)
        step = StepResult(
            step_name=step_name,
            status="error",
            input_summary=inputs,
            error=failure,
            timing_seconds=timer.elapsed,
            completed_at=_now(),
        )
        return step, None

    summary = {}
    if output_summary_fn is not None and value is not None:
        summary = output_summary_fn(value)
    carried = list(getattr(value, "warnings", None) or [])

    log_step_summary(
        log, step_name, "success",
        input_summary=inputs,
        output_summary=summary,
        timing_seconds=timer.elapsed,
        warnings_list=carried,
    )
    step = StepResult(
        step_name=step_name,
        status="success",
        input_summary=inputs,
        output_summary=summary,
        timing_seconds=timer.elapsed,
        warnings=carried,
        completed_at=_now(),
    )
    return step, value
