"""
Pandera DataFrame schemas and validation gates.

Declarative checks on structure AND value ranges for the unit priors,
field observations and the derived allocation/posterior tables. Row-level
failures are mapped back to ``unit_id`` so callers see which units are
at fault, not which positional rows.

Usage:
    from optimal_allocation.schemas import validate_units
    units = validate_units(df)  # raises ValidationError on failure
"""

import numpy as np
import pandas as pd
import pandera as pa
from pandera import Column, Check, DataFrameSchema

from optimal_allocation import config
from optimal_allocation.errors import MissingColumnError, ValidationError


_finite = Check(lambda s: np.isfinite(s), error="finite")
_non_blank = Check.str_length(min_value=1)


# ── Survey unit priors ──────────────────────────────────────────────────

SurveyUnitSchema = DataFrameSchema(
    columns={
        config.UNIT_ID: Column(str, _non_blank, nullable=False, unique=True),
        config.AREA: Column(float, [Check.greater_than(0.0), _finite],
                            nullable=False, coerce=True),
        config.PROBABILITY: Column(float, Check.in_range(0.0, 1.0),
                                   nullable=False, coerce=True),
        config.SWEEP_WIDTH: Column(float, [Check.greater_than_or_equal_to(0.0), _finite],
                                   nullable=False, coerce=True),
    },
    # visibility and any user columns pass through
    strict=False,
    name="SurveyUnitSchema",
)


# ── Field observations ──────────────────────────────────────────────────

FieldObservationSchema = DataFrameSchema(
    columns={
        config.UNIT_ID: Column(str, _non_blank, nullable=False, unique=True),
        config.L_WALKED_TODAY: Column(float, [Check.greater_than_or_equal_to(0.0), _finite],
                                      nullable=False, coerce=True),
        # Checked as float so 0.5 is rejected rather than truncated to 0.
        config.SUCCESS: Column(float, Check.isin([0.0, 1.0]), nullable=False, coerce=True),
    },
    strict=False,
    name="FieldObservationSchema",
)


# ── Derived tables ──────────────────────────────────────────────────────

AllocationSchema = DataFrameSchema(
    columns={
        config.UNIT_ID: Column(str, nullable=False, unique=True),
        config.SUM_AREA: Column(float, Check.greater_than(0.0), nullable=False),
        config.EFFORT_DENSITY: Column(float, Check.greater_than_or_equal_to(0.0), nullable=False),
        config.RECOMMENDED_TRANSECT_LENGTH: Column(float, nullable=True),
    },
    strict=False,
    name="AllocationSchema",
)

PosteriorSchema = DataFrameSchema(
    columns={
        config.UNIT_ID: Column(str, nullable=False, unique=True),
        config.PRIOR_PROB: Column(float, Check.in_range(0.0, 1.0), nullable=False),
        config.POST_PROB: Column(float, Check.in_range(0.0, 1.0), nullable=False),
        config.UPDATED: Column(bool, nullable=False),
    },
    strict=False,
    name="PosteriorSchema",
)


# ── Column presence ─────────────────────────────────────────────────────

def require_columns(df, required, table="input"):
    """Raise MissingColumnError if any of *required* is absent from *df*."""
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise MissingColumnError(missing, list(df.columns), table=table)


def normalize_unit_ids(series):
    """Return unit ids as stripped strings; nulls become empty strings."""
    return series.map(lambda v: "" if pd.isna(v) else str(v).strip())


def coerce_numeric(df, columns):
    """Parse *columns* as float, failing loudly on blanks or bad values.

    Returns a copy. Raises ValidationError naming the column and the
    unit_ids whose values did not parse.
    """
    out = df.copy()
    if config.UNIT_ID in out.columns:
        ids = out[config.UNIT_ID].astype(str).to_numpy()
    else:
        ids = out.index.astype(str).to_numpy()
    for col in columns:
        parsed = pd.to_numeric(out[col], errors="coerce")
        bad = parsed.isna().to_numpy()
        if bad.any():
            raise ValidationError(
                f"Non-numeric or missing values in column '{col}'",
                unit_ids=sorted(set(ids[bad])),
            )
        out[col] = parsed.astype(float)
    return out


# ── Fail-fast validators (core preconditions) ───────────────────────────

def _raise_from_schema_errors(exc, df, label):
    failures = exc.failure_cases
    idx = pd.to_numeric(failures["index"], errors="coerce").dropna().astype(int)
    unit_ids = []
    if config.UNIT_ID in df.columns:
        ids = df.loc[df.index.isin(idx), config.UNIT_ID]
        unit_ids = sorted({str(v) if str(v) else "<blank>" for v in ids})
    checks = sorted({
        f"{col}: {check}"
        for col, check in zip(failures["column"], failures["check"])
    })
    raise ValidationError(
        f"{label} validation failed ({'; '.join(checks)})",
        unit_ids=unit_ids,
    ) from exc


def _validate(df, schema, required, label):
    require_columns(df, required, table=label)
    if len(df) == 0:
        raise ValidationError(f"{label} has no rows")
    work = df.reset_index(drop=True).copy()
    work[config.UNIT_ID] = normalize_unit_ids(work[config.UNIT_ID])
    try:
        return schema.validate(work, lazy=True)
    except pa.errors.SchemaErrors as exc:
        _raise_from_schema_errors(exc, work, label)


def validate_units(df):
    """Validate a survey unit table and return a coerced copy.

    Raises
    ------
    MissingColumnError
        If unit_id, area, probability or sweep_width is absent.
    ValidationError
        Empty table, blank/duplicate unit_id, area <= 0, probability
        outside [0, 1], negative sweep_width or non-finite numerics.
    """
    return _validate(df, SurveyUnitSchema, config.UNIT_REQUIRED_COLUMNS, "units")


def validate_observations(df):
    """Validate a field observation table and return a coerced copy.

    ``success`` is returned as int64 (0/1).
    """
    out = _validate(df, FieldObservationSchema,
                    config.OBSERVATION_REQUIRED_COLUMNS, "observations")
    out[config.SUCCESS] = out[config.SUCCESS].astype("int64")
    return out


# ── Lenient / strict validation gate ────────────────────────────────────

def validate_schema(df, schema, step_name, strict=False):
    """Validate a DataFrame against a Pandera schema.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to validate.
    schema : pa.DataFrameSchema
        Schema to validate against.
    step_name : str
        Pipeline step name for error messages.
    strict : bool
        If True, raise on failure. If False, return warnings list.

    Returns
    -------
    list[str]
        Validation warning messages (empty if all pass).

    Raises
    ------
    ValueError
        Only if strict=True and validation fails.
    """
    warnings_list = []

    if df is None:
        msg = f"[{step_name}] DataFrame is None"
        if strict:
            raise ValueError(msg)
        return [msg]

    if len(df) == 0:
        msg = f"[{step_name}] DataFrame is empty (0 rows)"
        if strict:
            raise ValueError(msg)
        return [msg]

    try:
        schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as exc:
        for failure in exc.failure_cases.itertuples():
            msg = (
                f"[{step_name}] Schema violation: "
                f"column='{failure.column}' check='{failure.check}' "
                f"failure_case={failure.failure_case}"
            )
            warnings_list.append(msg)

        if strict:
            raise ValueError(
                f"[{step_name}] Schema validation failed with "
                f"{len(warnings_list)} errors"
            ) from exc

    return warnings_list
