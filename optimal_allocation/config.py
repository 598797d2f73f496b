"""
Centralized configuration for the Bayesian survey-effort allocation pipeline.

Canonical column names, required schemas, iteration limits and output
defaults are defined here. The formulas package holds the math; this
module holds the names and knobs the math is wired with.
"""

# ─── CANONICAL UNIT COLUMNS ──────────────────────────────────────────────
# Prior table, one row per spatial survey unit.
UNIT_ID = "unit_id"
AREA = "area"
PROBABILITY = "probability"
SWEEP_WIDTH = "sweep_width"
VISIBILITY = "visibility"

UNIT_REQUIRED_COLUMNS = (UNIT_ID, AREA, PROBABILITY, SWEEP_WIDTH)
UNIT_CORE_ORDER = (UNIT_ID, AREA, PROBABILITY, SWEEP_WIDTH, VISIBILITY)

# ─── FIELD OBSERVATION COLUMNS ───────────────────────────────────────────
L_WALKED_TODAY = "l_walked_today"
SUCCESS = "success"

OBSERVATION_REQUIRED_COLUMNS = (UNIT_ID, L_WALKED_TODAY, SUCCESS)

# Update table = priors left-joined with the day's observations.
UPDATE_PRIOR_COLUMNS = (UNIT_ID, PROBABILITY, SWEEP_WIDTH, AREA)
UPDATE_TABLE_COLUMNS = (UNIT_ID, L_WALKED_TODAY, SUCCESS, PROBABILITY, SWEEP_WIDTH, AREA)

# ─── DERIVED ALLOCATION COLUMNS (computed in this order) ─────────────────
PROB_DENSITY = "prob_density"
LOG_PROB_DENSITY = "log_prob_density"
AREA_WEIGHTED_LOG_DENSITY = "area_weighted_log_density"
SUM_AREA_WEIGHTED_LOG_DENSITY = "sum_area_weighted_log_density"
SUM_PROBABILITY = "sum_probability"
SUM_AREA = "sum_area"
DENSITY_RATIO = "density_ratio"
NORMALIZED_LOG_DENSITY = "normalized_log_density"
EFFORT_DENSITY = "effort_density"
RECOMMENDED_COVERAGE = "recommended_coverage"
CONSTRAINT_TERM = "constraint_term"
RECOMMENDED_TRANSECT_LENGTH = "recommended_transect_length"

ALLOCATION_DERIVED_COLUMNS = (
    PROB_DENSITY,
    LOG_PROB_DENSITY,
    AREA_WEIGHTED_LOG_DENSITY,
    SUM_AREA_WEIGHTED_LOG_DENSITY,
    SUM_PROBABILITY,
    SUM_AREA,
    DENSITY_RATIO,
    NORMALIZED_LOG_DENSITY,
    EFFORT_DENSITY,
    RECOMMENDED_COVERAGE,
    CONSTRAINT_TERM,
    RECOMMENDED_TRANSECT_LENGTH,
)

# ─── DROPPED-UNIT LOG ────────────────────────────────────────────────────
DROP_REASON = "drop_reason"
ITERATION = "iteration"

DROP_REASON_NEGATIVE = "negative recommended_transect_length (iteration {iteration})"
DROP_REASON_ZERO_PROBABILITY = "zero probability (screened before iteration 1)"
DROP_REASON_ZERO_SWEEP_WIDTH = "zero sweep_width (screened before iteration 1)"

# ─── POSTERIOR COLUMNS ───────────────────────────────────────────────────
PRIOR_PROB = "prior_prob"
POST_PROB = "post_prob"
UPDATED = "updated"

# ─── ITERATION PARAMETERS ────────────────────────────────────────────────
# Filter-and-rerun loop: removing a unit changes every aggregate, so each
# pass is a full recomputation. Ten passes was the field-tested default.
DEFAULT_MAX_ITERS = 10

# ─── OUTPUT / DISPLAY ────────────────────────────────────────────────────
DEFAULT_OUTPUT_DIR = "outputs"
DISPLAY_DECIMALS = 2
ALLOCATION_DISPLAY_NAME = "allocation"
ALLOCATION_BASENAME = "allocations"
POSTERIOR_BASENAME = "posteriors"
ITERATION_FILE_TEMPLATE = "iteration{iteration}_allocations_preconstraint.csv"
SUPPORTED_TABLE_EXTENSIONS = (".csv", ".txt", ".xlsx")
FIGURE_DPI = 150

# ─── LOGGING ─────────────────────────────────────────────────────────────
LOG_FILE_NAME = "pipeline.log"
RUN_LOG_FILE_NAME = "pipeline.jsonl"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
