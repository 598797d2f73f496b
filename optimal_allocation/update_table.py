"""
Merge unit priors with one day's field observations.

Priors drive the row set: every unit appears exactly once, and units
without an observation carry null ``l_walked_today`` / ``success``.
"""

import pandas as pd

from optimal_allocation import config
from optimal_allocation.errors import ValidationError
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.schemas import normalize_unit_ids, require_columns

log = get_pipeline_logger(__name__)

C = config


def build_update_table(units, observations):
    """Left-join observations onto priors by unit_id.

    Parameters
    ----------
    units : pd.DataFrame
        Priors with unit_id, probability, sweep_width, area.
    observations : pd.DataFrame
        Field results with unit_id, l_walked_today, success.

    Returns
    -------
    pd.DataFrame
        Columns ``config.UPDATE_TABLE_COLUMNS`` sorted by unit_id.
        ``success`` is nullable Int64.

    Raises
    ------
    MissingColumnError
        A required column is absent from either table.
    ValidationError
        An observation unit_id appears more than once.
    """
    require_columns(units, C.UPDATE_PRIOR_COLUMNS, table="priors")
    require_columns(observations, C.OBSERVATION_REQUIRED_COLUMNS, table="observations")

    priors = units.loc[:, list(C.UPDATE_PRIOR_COLUMNS)].copy()
    priors[C.UNIT_ID] = normalize_unit_ids(priors[C.UNIT_ID])
    for col in (C.PROBABILITY, C.SWEEP_WIDTH, C.AREA):
        priors[col] = pd.to_numeric(priors[col]).astype(float)

    dup_priors = priors[C.UNIT_ID].duplicated(keep="first")
    if dup_priors.any():
        dup_ids = sorted(priors.loc[dup_priors, C.UNIT_ID].unique())
        log.warning("Duplicate prior unit_id(s) %s; keeping first occurrence", dup_ids,
                    extra={"unit_ids": dup_ids})
        priors = priors[~dup_priors]

    obs = observations.loc[:, list(C.OBSERVATION_REQUIRED_COLUMNS)].copy()
    obs[C.UNIT_ID] = normalize_unit_ids(obs[C.UNIT_ID])
    obs[C.L_WALKED_TODAY] = pd.to_numeric(obs[C.L_WALKED_TODAY]).astype(float)
    obs[C.SUCCESS] = pd.to_numeric(obs[C.SUCCESS]).astype("Int64")

    dup_obs = obs[C.UNIT_ID].duplicated(keep=False)
    if dup_obs.any():
        raise ValidationError(
            "Each unit_id may appear at most once per update cycle",
            unit_ids=sorted(obs.loc[dup_obs, C.UNIT_ID].unique()),
        )

    unknown = sorted(set(obs[C.UNIT_ID]) - set(priors[C.UNIT_ID]))
    if unknown:
        log.warning("Observation unit_id(s) not present in priors (ignored): %s", unknown,
                    extra={"unit_ids": unknown})

    table = priors.merge(obs, on=C.UNIT_ID, how="left", validate="one_to_one")
    table[C.SUCCESS] = table[C.SUCCESS].astype("Int64")
    table = table.loc[:, list(C.UPDATE_TABLE_COLUMNS)]
    table = table.sort_values(C.UNIT_ID, kind="mergesort").reset_index(drop=True)

    log.debug("Update table: %d units, %d with observations",
              len(table), int(table[C.L_WALKED_TODAY].notna().sum()))
    return table
