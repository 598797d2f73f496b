"""
Field-result ingestion.

Validates one day's observations before they are merged onto the
priors: non-blank ids, numeric non-negative walked length, 0/1 success,
one row per unit. Ids missing from the reference allocation are
reported but not rejected.
"""

from optimal_allocation import config
from optimal_allocation.errors import ValidationError
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.schemas import (
    coerce_numeric,
    normalize_unit_ids,
    require_columns,
    validate_observations,
)

log = get_pipeline_logger(__name__)

C = config


def ingest_results(results, reference_units=None):
    """Validate and type a field results table.

    Parameters
    ----------
    results : pd.DataFrame
        Observations with canonical column names (see
        ``ingest.columns.standardize_columns``).
    reference_units : pd.DataFrame, optional
        Priors or allocation table used for an advisory unit_id
        cross-check.

    Returns
    -------
    pd.DataFrame
        unit_id (str), l_walked_today (float), success (int 0/1), plus
        any extra columns.

    Raises
    ------
    MissingColumnError
    ValidationError
        Blank ids, unparseable or negative l_walked_today, success not
        0/1, duplicate unit_id.
    """
    require_columns(results, C.OBSERVATION_REQUIRED_COLUMNS, table="observations")

    clean = results.copy()
    clean[C.UNIT_ID] = normalize_unit_ids(clean[C.UNIT_ID])
    if (clean[C.UNIT_ID] == "").any():
        raise ValidationError("Blank or missing unit_id values found in results")

    clean = coerce_numeric(clean, (C.L_WALKED_TODAY, C.SUCCESS))
    clean = validate_observations(clean)

    if reference_units is not None and C.UNIT_ID in reference_units.columns:
        ref_ids = set(normalize_unit_ids(reference_units[C.UNIT_ID]))
        unknown = sorted(set(clean[C.UNIT_ID]) - ref_ids)
        if unknown:
            log.warning("Unknown unit_id(s) in results (not in reference allocation): %s",
                        unknown, extra={"unit_ids": unknown})

    log.info("Ingested %d field observation(s), %d success",
             len(clean), int(clean[C.SUCCESS].sum()))
    return clean
