"""
Posterior detection probabilities and next-cycle priors.

``compute_posteriors`` applies the detection-decay update of
``formulas.posterior`` to an update table; ``apply_posteriors_to_priors``
folds the result back into a full unit table ready for the next
allocation run.
"""

import pandas as pd

from optimal_allocation import config
from optimal_allocation.formulas.posterior import (
    clamp_coverage,
    coverage_raw,
    posterior_probability,
)
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.schemas import normalize_unit_ids, require_columns

log = get_pipeline_logger(__name__)

C = config


def compute_posteriors(records):
    """Compute post-survey probabilities for every unit in an update table.

    Parameters
    ----------
    records : pd.DataFrame
        Output of ``build_update_table``: unit_id, l_walked_today,
        success, probability, sweep_width, area.

    Returns
    -------
    pd.DataFrame
        unit_id, prior_prob, post_prob, updated; sorted by unit_id.
        ``updated`` is True where l_walked_today was recorded.

    Raises
    ------
    MissingColumnError
    """
    require_columns(records, C.UPDATE_TABLE_COLUMNS, table="update table")

    upd = records.copy()
    upd[C.UNIT_ID] = normalize_unit_ids(upd[C.UNIT_ID])
    l_walked = pd.to_numeric(upd[C.L_WALKED_TODAY]).astype(float)
    prior = pd.to_numeric(upd[C.PROBABILITY]).astype(float)

    raw = coverage_raw(upd[C.SWEEP_WIDTH], l_walked, upd[C.AREA])
    cov = clamp_coverage(raw)

    out = pd.DataFrame({
        C.UNIT_ID: upd[C.UNIT_ID].to_numpy(),
        C.PRIOR_PROB: prior.to_numpy(),
        C.POST_PROB: posterior_probability(prior, cov, upd[C.SUCCESS]),
        C.UPDATED: l_walked.notna().to_numpy(),
    })
    out = out.sort_values(C.UNIT_ID, kind="mergesort").reset_index(drop=True)

    log.info("Posteriors computed: %d units, %d updated",
             len(out), int(out[C.UPDATED].sum()))
    return out


def apply_posteriors_to_priors(units, posteriors, drop_detected=False):
    """Replace unit probabilities with their posteriors for the next cycle.

    Units absent from *posteriors* keep their prior. Core columns are
    ordered first; other columns are preserved.

    Parameters
    ----------
    units : pd.DataFrame
        The full prior unit table.
    posteriors : pd.DataFrame
        Output of ``compute_posteriors``.
    drop_detected : bool
        Remove units whose posterior is 1.0 (target found there), so the
        next allocation only covers units still being searched.

    Returns
    -------
    pd.DataFrame
    """
    require_columns(units, (C.UNIT_ID, C.PROBABILITY), table="priors")
    require_columns(posteriors, (C.UNIT_ID, C.POST_PROB), table="posteriors")

    post = posteriors.loc[:, [C.UNIT_ID, C.POST_PROB]].copy()
    post[C.UNIT_ID] = normalize_unit_ids(post[C.UNIT_ID])
    post = post.drop_duplicates(C.UNIT_ID)

    updated = units.copy()
    updated[C.UNIT_ID] = normalize_unit_ids(updated[C.UNIT_ID])
    updated[C.PROBABILITY] = pd.to_numeric(updated[C.PROBABILITY]).astype(float)
    updated = updated.merge(post, on=C.UNIT_ID, how="left")
    updated[C.PROBABILITY] = updated[C.POST_PROB].fillna(updated[C.PROBABILITY])

    if drop_detected:
        found = updated[C.POST_PROB] == 1.0
        if found.any():
            log.info("Removing %d detected unit(s) from next-cycle priors: %s",
                     int(found.sum()), updated.loc[found, C.UNIT_ID].tolist())
        updated = updated[~found]

    updated = updated.drop(columns=[C.POST_PROB])
    ordered = [c for c in C.UNIT_CORE_ORDER if c in updated.columns]
    ordered += [c for c in updated.columns if c not in ordered]
    return updated.loc[:, ordered].reset_index(drop=True)
