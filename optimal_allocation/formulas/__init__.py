"""
Allocation and posterior-update formulas.

This subpackage holds the pure numerical transforms of the survey
workflow. config.py retains column names and runtime knobs; this package
holds the math.
"""

from optimal_allocation.formulas.allocation import (
    compute_preconstraint_columns,
    validate_total_effort,
)
from optimal_allocation.formulas.posterior import (
    clamp_coverage,
    coverage_raw,
    posterior_probability,
)

__all__ = [
    # allocation
    "compute_preconstraint_columns",
    "validate_total_effort",
    # posterior
    "clamp_coverage",
    "coverage_raw",
    "posterior_probability",
]
