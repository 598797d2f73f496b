"""
Iterative filter-and-rerun effort allocation.

Repeatedly runs the allocation formula over a shrinking working set:
units that receive a negative recommended transect length are dropped,
and the remaining units are recomputed from their ORIGINAL attributes
against the new aggregate sums. Stops when no negatives remain, when
every unit would be dropped (error), or when the iteration cap is hit
(warning, best-effort result).
"""

import warnings

import numpy as np
import pandas as pd

from optimal_allocation import config
from optimal_allocation.errors import (
    AllAllocationsDroppedError,
    IterationCapWarning,
    ValidationError,
)
from optimal_allocation.formulas.allocation import (
    compute_preconstraint_columns,
    validate_total_effort,
)
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.pipeline_types import AllocationRunResult
from optimal_allocation.schemas import validate_units

log = get_pipeline_logger(__name__)

C = config


def _dropped_rows(units, unit_ids, reason, iteration, lengths=None):
    """Build dropped-log rows: id, reason, offending length, iteration, then attributes."""
    rows = units[units[C.UNIT_ID].isin(unit_ids)].copy()
    rows[C.DROP_REASON] = reason
    if lengths is None:
        rows[C.RECOMMENDED_TRANSECT_LENGTH] = np.nan
    else:
        rows[C.RECOMMENDED_TRANSECT_LENGTH] = rows[C.UNIT_ID].map(lengths).astype(float)
    rows[C.ITERATION] = iteration
    lead = [C.UNIT_ID, C.DROP_REASON, C.RECOMMENDED_TRANSECT_LENGTH, C.ITERATION]
    return rows[lead + [c for c in rows.columns if c not in lead]]


def _empty_dropped_log(units):
    lead = [C.UNIT_ID, C.DROP_REASON, C.RECOMMENDED_TRANSECT_LENGTH, C.ITERATION]
    cols = lead + [c for c in units.columns if c not in lead]
    log_df = pd.DataFrame(columns=cols)
    log_df[C.RECOMMENDED_TRANSECT_LENGTH] = log_df[C.RECOMMENDED_TRANSECT_LENGTH].astype(float)
    log_df[C.ITERATION] = log_df[C.ITERATION].astype("int64")
    return log_df


def _validate_max_iters(max_iters):
    try:
        value = int(max_iters)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"max_iters must be a non-negative integer, got {max_iters!r}") from exc
    if isinstance(max_iters, bool) or value != max_iters or value < 0:
        raise ValidationError(f"max_iters must be a non-negative integer, got {max_iters!r}")
    return value


def screen_units(units):
    """Split off units that cannot take part in the allocation at all.

    A zero probability makes log10 density -inf and corrupts every
    aggregate; a zero sweep width leaves the recommended length
    undefined. Both are removed before the first pass.

    Returns
    -------
    tuple[pd.DataFrame, list[pd.DataFrame]]
        (eligible units, dropped-log fragments)
    """
    zero_prob = units[C.PROBABILITY] == 0
    zero_sweep = (units[C.SWEEP_WIDTH] == 0) & ~zero_prob

    fragments = []
    if zero_prob.any():
        ids = units.loc[zero_prob, C.UNIT_ID].tolist()
        log.info("Screening %d zero-probability unit(s): %s", len(ids), ids,
                 extra={"unit_ids": ids, "iteration": 0})
        fragments.append(_dropped_rows(units, ids, C.DROP_REASON_ZERO_PROBABILITY, 0))
    if zero_sweep.any():
        ids = units.loc[zero_sweep, C.UNIT_ID].tolist()
        log.info("Screening %d zero-sweep-width unit(s): %s", len(ids), ids,
                 extra={"unit_ids": ids, "iteration": 0})
        fragments.append(_dropped_rows(units, ids, C.DROP_REASON_ZERO_SWEEP_WIDTH, 0))

    return units[~(zero_prob | zero_sweep)], fragments


def run_allocation(units, total_effort, max_iters=C.DEFAULT_MAX_ITERS):
    """Allocate total effort, dropping negative allocations until none remain.

    Parameters
    ----------
    units : pd.DataFrame
        Survey units (unit_id, area, probability, sweep_width, optional
        visibility and pass-through columns).
    total_effort : float
        Total transect length L.
    max_iters : int
        Number of drop-and-rerun rounds allowed. At most ``max_iters + 1``
        computation passes are made; with ``max_iters=0`` the first pass
        is returned as-is.

    Returns
    -------
    AllocationRunResult

    Raises
    ------
    ValidationError
        Invalid units, L or max_iters.
    AllAllocationsDroppedError
        Every remaining unit would be dropped.
    """
    L = validate_total_effort(total_effort)
    max_iters = _validate_max_iters(max_iters)

    original = validate_units(units)
    original = original.sort_values(C.UNIT_ID, kind="mergesort").reset_index(drop=True)

    working, dropped_parts = screen_units(original)
    if working.empty:
        raise AllAllocationsDroppedError(0)

    result = AllocationRunResult(
        final_allocation=None,
        dropped_log=None,
        total_effort=L,
        max_iters=max_iters,
    )

    iteration = 1
    while True:
        log.info(">>> Iteration %d: %d units", iteration, len(working),
                 extra={"iteration": iteration})
        alloc = compute_preconstraint_columns(working, L)
        result.iteration_tables.append(alloc)
        result.iterations = iteration

        negative = alloc[C.RECOMMENDED_TRANSECT_LENGTH] < 0
        if not negative.any():
            log.info("No negative allocations; stopping after iteration %d", iteration,
                     extra={"iteration": iteration})
            break

        if negative.all():
            raise AllAllocationsDroppedError(iteration)

        if iteration > max_iters:
            msg = (
                f"Reached max_iters={max_iters} with {int(negative.sum())} "
                "negative allocation(s) remaining"
            )
            warnings.warn(msg, IterationCapWarning, stacklevel=2)
            log.warning(msg, extra={"iteration": iteration})
            result.cap_reached = True
            result.warnings.append(msg)
            break

        neg_lengths = alloc.loc[negative].set_index(C.UNIT_ID)[C.RECOMMENDED_TRANSECT_LENGTH]
        neg_ids = neg_lengths.index.tolist()
        log.info("Dropping %d unit(s) with negative length: %s", len(neg_ids), neg_ids,
                 extra={"iteration": iteration, "unit_ids": neg_ids})
        dropped_parts.append(_dropped_rows(
            original,
            neg_ids,
            C.DROP_REASON_NEGATIVE.format(iteration=iteration),
            iteration,
            lengths=neg_lengths,
        ))

        survivors = alloc.loc[~negative, C.UNIT_ID]
        working = original[original[C.UNIT_ID].isin(survivors)]
        iteration += 1

    result.final_allocation = alloc
    if dropped_parts:
        result.dropped_log = pd.concat(dropped_parts, ignore_index=True)
    else:
        result.dropped_log = _empty_dropped_log(original)
    return result
