"""
Optimal search-effort allocation formula.

Each ``calc_*`` step adds one derived column to a copy of the unit table;
``compute_preconstraint_columns`` chains them in the only valid order.
All functions are pure (no I/O, no side effects on the input frame).

METHODOLOGY:
For unit i with prior probability p_i, area A_i and sweep width W_i, the
optimal coverage under a total transect length L follows from the
exponential detection model (Koopman, 1946; Stone, 1975, ch. 2):

    c_i = log10(p_i / A_i) - Σ_j A_j log10(p_j / A_j) / Σ_j A_j + L W_i / Σ_j A_j

and the recommended transect length is l_i = c_i A_i / W_i. With a
common sweep width the l_i sum to L. Units whose l_i comes out negative
are outside the optimal support set; the iterative allocator removes
them and recomputes, because every aggregate above shifts when the set
changes.

Logarithms are base 10 so results match the field spreadsheet this model
was first run in.

NUMERIC EDGE POLICY:
- probability == 0: log10(0) = -inf propagates (warning logged). Such a
  unit poisons the aggregates, so the allocator screens it out first.
- sweep_width == 0: recommended_transect_length is NaN, never ±inf.
- single-unit set: constraint_term has a 0 denominator and is NaN.
"""

import numpy as np
import pandas as pd

from optimal_allocation import config
from optimal_allocation.errors import ValidationError
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.schemas import validate_units

log = get_pipeline_logger(__name__)

C = config


def validate_total_effort(total_effort):
    """Return *total_effort* as float, raising if it is non-finite or negative."""
    try:
        value = float(total_effort)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Total effort L must be numeric, got {total_effort!r}") from exc
    if not np.isfinite(value):
        raise ValidationError(f"Total effort L must be finite, got {value}")
    if value < 0:
        raise ValidationError(f"Total effort L must be non-negative, got {value}")
    return value


# ── Individual steps ────────────────────────────────────────────────────


def calc_prob_density(df):
    df[C.PROB_DENSITY] = df[C.PROBABILITY] / df[C.AREA]
    return df


def calc_log_prob_density(df):
    dens = df[C.PROB_DENSITY].to_numpy(dtype=float)
    if (dens <= 0).any():
        zero_ids = df.loc[dens <= 0, C.UNIT_ID].tolist()
        log.warning("Non-positive probability density; log10 is -inf for %s", zero_ids,
                    extra={"unit_ids": zero_ids})
    with np.errstate(divide="ignore", invalid="ignore"):
        df[C.LOG_PROB_DENSITY] = np.log10(dens)
    return df


def calc_area_weighted_log_density(df):
    df[C.AREA_WEIGHTED_LOG_DENSITY] = df[C.AREA] * df[C.LOG_PROB_DENSITY]
    return df


def calc_scalar_sums(df):
    """Broadcast the three set-wide sums to every row (NaN-skipping)."""
    df[C.SUM_AREA_WEIGHTED_LOG_DENSITY] = df[C.AREA_WEIGHTED_LOG_DENSITY].sum(skipna=True)
    df[C.SUM_PROBABILITY] = df[C.PROBABILITY].sum(skipna=True)
    df[C.SUM_AREA] = df[C.AREA].sum(skipna=True)
    return df


def calc_density_ratio(df):
    with np.errstate(invalid="ignore"):
        df[C.DENSITY_RATIO] = df[C.SUM_AREA_WEIGHTED_LOG_DENSITY] / df[C.SUM_AREA]
    return df


def calc_normalized_log_density(df):
    with np.errstate(invalid="ignore"):
        df[C.NORMALIZED_LOG_DENSITY] = df[C.LOG_PROB_DENSITY] - df[C.DENSITY_RATIO]
    return df


def calc_effort_density(df, total_effort):
    df[C.EFFORT_DENSITY] = (total_effort * df[C.SWEEP_WIDTH]) / df[C.SUM_AREA]
    return df


def calc_recommended_coverage(df):
    df[C.RECOMMENDED_COVERAGE] = df[C.NORMALIZED_LOG_DENSITY] + df[C.EFFORT_DENSITY]
    return df


def calc_constraint_term(df, total_effort):
    """Leave-one-out constraint diagnostic.

    ((Σp - p_i) / (ΣA - A_i)) * 10^(-L / (ΣA - A_i)). Not fed back into the
    recommended length; carried for inspection only. NaN where the
    remaining area is zero (a one-unit set).
    """
    num = (df[C.SUM_PROBABILITY] - df[C.PROBABILITY]).to_numpy(dtype=float)
    denom = (df[C.SUM_AREA] - df[C.AREA]).to_numpy(dtype=float)
    out = np.full(len(df), np.nan)
    ok = denom != 0
    out[ok] = (num[ok] / denom[ok]) * np.power(10.0, -total_effort / denom[ok])
    df[C.CONSTRAINT_TERM] = out
    return df


def calc_recommended_transect_length(df):
    sweep = df[C.SWEEP_WIDTH].to_numpy(dtype=float)
    cover_area = (df[C.RECOMMENDED_COVERAGE] * df[C.AREA]).to_numpy(dtype=float)
    out = np.full(len(df), np.nan)
    ok = sweep != 0
    out[ok] = cover_area[ok] / sweep[ok]
    if (~ok).any():
        zero_ids = df.loc[~ok, C.UNIT_ID].tolist()
        log.warning("Zero sweep_width; recommended length left undefined (NaN) for %s",
                    zero_ids, extra={"unit_ids": zero_ids})
    df[C.RECOMMENDED_TRANSECT_LENGTH] = out
    return df


# ── Public API ──────────────────────────────────────────────────────────


def compute_preconstraint_columns(units, total_effort):
    """Compute every derived allocation column for one pass.

    Parameters
    ----------
    units : pd.DataFrame
        Survey units with unit_id, area, probability, sweep_width
        (visibility and other columns are carried through).
    total_effort : float
        Total transect length L to distribute.

    Returns
    -------
    pd.DataFrame
        A new frame sorted by unit_id with the columns listed in
        ``config.ALLOCATION_DERIVED_COLUMNS`` appended.

    Raises
    ------
    MissingColumnError, ValidationError
    """
    L = validate_total_effort(total_effort)
    df = validate_units(units)

    df = df.sort_values(C.UNIT_ID, kind="mergesort").reset_index(drop=True)

    df = calc_prob_density(df)
    df = calc_log_prob_density(df)
    df = calc_area_weighted_log_density(df)
    df = calc_scalar_sums(df)
    df = calc_density_ratio(df)
    df = calc_normalized_log_density(df)
    df = calc_effort_density(df, L)
    df = calc_recommended_coverage(df)
    df = calc_constraint_term(df, L)
    df = calc_recommended_transect_length(df)

    log.debug("Computed allocation pass: %d units, L=%.3f", len(df), L)
    return df
