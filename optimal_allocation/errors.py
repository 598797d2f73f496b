"""
Exception and warning types raised by the allocation and posterior engines.

All core functions raise synchronously; the pipeline runner is the only
place these are caught and turned into step results.
"""


class ValidationError(ValueError):
    """Malformed or out-of-range input values.

    ``unit_ids`` lists the offending units when the failure is row-level.
    """

    def __init__(self, message, unit_ids=None):
        self.unit_ids = list(unit_ids or [])
        if self.unit_ids:
            message = f"{message} (unit_id: {', '.join(map(str, self.unit_ids))})"
        super().__init__(message)


class MissingColumnError(ValidationError):
    """A required column is absent after name normalization."""

    def __init__(self, missing, present, table="input"):
        self.missing = list(missing)
        self.present = list(present)
        self.table = table
        super().__init__(
            f"Missing required column(s) in {table}: {', '.join(self.missing)}. "
            f"Columns present: {', '.join(map(str, self.present))}"
        )


class AllAllocationsDroppedError(RuntimeError):
    """Every remaining unit would be dropped in the given iteration."""

    def __init__(self, iteration):
        self.iteration = iteration
        super().__init__(
            f"All units dropped after iteration {iteration}; "
            "check inputs or total effort."
        )


class IterationCapWarning(UserWarning):
    """Iteration cap reached while negative allocations remain.

    Issued with ``warnings.warn``; the best-effort allocation is still
    returned to the caller.
    """
