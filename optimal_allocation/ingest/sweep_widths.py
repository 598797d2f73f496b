"""
Sweep-width assignment by visibility class.

Field crews usually record a visibility category per unit rather than a
sweep width; the width is then set once per category and applied to
every unit in it.
"""

import numpy as np
import pandas as pd

from optimal_allocation import config
from optimal_allocation.errors import ValidationError
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.schemas import require_columns

log = get_pipeline_logger(__name__)

C = config


def default_sweep_widths(units):
    """First recorded sweep width per visibility class (NaN if none).

    Classes are returned in order of first appearance.
    """
    require_columns(units, (C.VISIBILITY,), table="units")
    defaults = {}
    for vis in pd.unique(units[C.VISIBILITY]):
        if C.SWEEP_WIDTH in units.columns:
            vals = units.loc[units[C.VISIBILITY] == vis, C.SWEEP_WIDTH].dropna()
            defaults[vis] = float(vals.iloc[0]) if len(vals) else np.nan
        else:
            defaults[vis] = np.nan
    return defaults


def assign_sweep_widths(units, widths_by_class):
    """Set each unit's sweep_width from its visibility class.

    Parameters
    ----------
    units : pd.DataFrame
        Units with a ``visibility`` column.
    widths_by_class : dict
        visibility class -> sweep width (>= 0, finite).

    Returns
    -------
    pd.DataFrame
        A copy with ``sweep_width`` replaced.

    Raises
    ------
    MissingColumnError
        No visibility column.
    ValidationError
        A class present in *units* has no width, or a width is negative
        or non-finite.
    """
    require_columns(units, (C.VISIBILITY,), table="units")

    bad = {k: v for k, v in widths_by_class.items()
           if v is None or not np.isfinite(float(v)) or float(v) < 0}
    if bad:
        raise ValidationError(f"Sweep widths must be finite and >= 0: {bad}")

    classes = set(pd.unique(units[C.VISIBILITY]))
    missing = sorted(map(str, classes - set(widths_by_class)))
    if missing:
        raise ValidationError(f"No sweep width given for visibility class(es): {', '.join(missing)}")

    out = units.copy()
    out[C.SWEEP_WIDTH] = out[C.VISIBILITY].map(
        {k: float(v) for k, v in widths_by_class.items()}
    ).astype(float)
    log.info("Sweep widths assigned for %d visibility class(es)", len(classes))
    return out
