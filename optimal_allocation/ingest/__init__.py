"""Ingestion subpackage: file readers, column aliasing, result validation.

The allocation and posterior engines never import from here; they
receive already-standardized frames.
"""

from optimal_allocation.ingest.columns import (
    COLUMN_ALIASES,
    normalize_column_name,
    standardize_columns,
)
from optimal_allocation.ingest.readers import (
    prepare_units,
    read_results_file,
    read_table,
    read_units_file,
)
from optimal_allocation.ingest.results import ingest_results
from optimal_allocation.ingest.sweep_widths import assign_sweep_widths, default_sweep_widths

__all__ = [
    "COLUMN_ALIASES",
    "normalize_column_name",
    "standardize_columns",
    "prepare_units",
    "read_results_file",
    "read_table",
    "read_units_file",
    "ingest_results",
    "assign_sweep_widths",
    "default_sweep_widths",
]
