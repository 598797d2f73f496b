"""
Tabular file readers for unit priors and field results.

Reads CSV/TXT/XLSX as text (ids like "007" survive), resolves column
aliases, and parses numeric fields explicitly: a value that does not
parse is reported with its unit_id instead of silently becoming NaN.
"""

import os

import pandas as pd

from optimal_allocation import config
from optimal_allocation.ingest.columns import standardize_columns
from optimal_allocation.ingest.results import ingest_results
from optimal_allocation.logging_config import get_pipeline_logger
from optimal_allocation.schemas import (
    coerce_numeric,
    normalize_unit_ids,
    require_columns,
    validate_units,
)

log = get_pipeline_logger(__name__)

C = config


def read_table(path, sheet=None):
    """Read a .csv/.txt/.xlsx file into a DataFrame.

    Parameters
    ----------
    path : str
        File path; the extension selects the reader.
    sheet : str or int, optional
        Worksheet for .xlsx files (default: first sheet).

    Raises
    ------
    FileNotFoundError
        *path* does not exist.
    ValueError
        Unsupported extension.
    """
    if not path:
        raise ValueError("No input file path provided.")
    if not os.path.exists(path):
        raise FileNotFoundError(path)

    ext = os.path.splitext(path)[1].lower()
    if ext in (".csv", ".txt"):
        df = pd.read_csv(path, dtype=str)
    elif ext == ".xlsx":
        df = pd.read_excel(path, sheet_name=0 if sheet is None else sheet,
                           dtype=str, engine="openpyxl")
    else:
        raise ValueError(
            f"Unsupported file type: {ext or '<none>'}. "
            f"Allowed: {', '.join(C.SUPPORTED_TABLE_EXTENSIONS)}"
        )

    log.info("Read %d rows x %d cols from %s", len(df), len(df.columns), path)
    return df


def _order_unit_columns(df):
    core = [c for c in C.UNIT_REQUIRED_COLUMNS if c in df.columns]
    tail = [C.VISIBILITY] if C.VISIBILITY in df.columns else []
    extras = [c for c in df.columns if c not in core and c not in tail]
    return df.loc[:, core + extras + tail]


def prepare_units(df):
    """Standardize, coerce and validate a raw unit prior table.

    Duplicate unit_ids are reduced to their first occurrence (logged).
    The result is sorted by unit_id with core columns first and
    visibility last.
    """
    df = standardize_columns(df)
    require_columns(df, C.UNIT_REQUIRED_COLUMNS, table="units")

    df[C.UNIT_ID] = normalize_unit_ids(df[C.UNIT_ID])
    df = coerce_numeric(df, (C.AREA, C.PROBABILITY, C.SWEEP_WIDTH))
    if C.VISIBILITY in df.columns:
        df[C.VISIBILITY] = df[C.VISIBILITY].map(lambda v: v if pd.isna(v) else str(v).strip())

    dup = df[C.UNIT_ID].duplicated(keep="first")
    if dup.any():
        dup_ids = sorted(df.loc[dup, C.UNIT_ID].unique())
        log.warning("Duplicate unit_id values found: %s. Keeping the first occurrence.",
                    dup_ids, extra={"unit_ids": dup_ids})
        df = df[~dup]

    df = validate_units(df)
    df = df.sort_values(C.UNIT_ID, kind="mergesort").reset_index(drop=True)
    return _order_unit_columns(df)


def read_units_file(path, sheet=None):
    """Read and validate a unit prior file (unit_id, area, probability, sweep_width)."""
    return prepare_units(read_table(path, sheet=sheet))


def read_results_file(path, sheet=None, reference_units=None):
    """Read and validate a field results file (unit_id, l_walked_today, success)."""
    df = standardize_columns(read_table(path, sheet=sheet))
    return ingest_results(df, reference_units=reference_units)
