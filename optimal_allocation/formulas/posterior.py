"""
Detection-probability update after a day of field survey.

All functions are pure (no I/O, no side effects).

METHODOLOGY:
Coverage is the fraction of a unit effectively swept:
    coverage = clip(W * l / A, 0, 1), 0 when the unit was not walked.
The update is a detection-decay heuristic, not a renormalised Bayes'
rule over a partition of hypotheses:
    success == 1  -> 1.0           (target found)
    success == 0  -> p * (1 - coverage)
    success null  -> p             (unit not surveyed)
Probabilities therefore do not sum to a fixed total across units after
an update. This is the intended working model for daily re-planning;
the next allocation pass only uses relative densities.
"""

import numpy as np
import pandas as pd


def coverage_raw(sweep_width, l_walked, area):
    """Unclipped swept fraction; NaN wherever l_walked is missing."""
    sweep_width = np.asarray(sweep_width, dtype=float)
    l_walked = np.asarray(l_walked, dtype=float)
    area = np.asarray(area, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return (sweep_width * l_walked) / area


def clamp_coverage(raw):
    """Map raw coverage into [0, 1]; NaN becomes 0 (no effort)."""
    raw = np.asarray(raw, dtype=float)
    return np.where(np.isnan(raw), 0.0, np.clip(raw, 0.0, 1.0))


def posterior_probability(prior, coverage, success):
    """Vectorised post-survey probability.

    Parameters
    ----------
    prior : array-like
        Prior probabilities in [0, 1].
    coverage : array-like
        Clamped coverage in [0, 1].
    success : array-like
        1, 0 or missing (None / NaN / pd.NA) per unit.

    Returns
    -------
    np.ndarray
    """
    prior = np.asarray(prior, dtype=float)
    coverage = np.asarray(coverage, dtype=float)
    success = pd.array(success, dtype="Float64")
    missing = np.asarray(success.isna())
    s = np.asarray(success.fillna(-1.0), dtype=float)

    post = np.where(s == 1.0, 1.0, np.where(s == 0.0, prior * (1.0 - coverage), prior))
    post[missing] = prior[missing]
    return post
