"""
Result records for allocation runs, posterior cycles and CLI steps.

The allocator and posterior code return the survey records; the CLI
wraps each stage in a StepResult and serialises the whole run as
``pipeline_run.json``.
"""

import subprocess
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import pandas as pd


class StepStatus(str, Enum):
    """Pipeline step outcome status."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _get_git_sha():
    """Return the short git SHA of the current HEAD, or None."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        return None


@dataclass
class StepResult:
    """Result of a single pipeline step execution."""

    step_name: str
    status: str  # "success", "skipped", "error"
    input_summary: dict = field(default_factory=dict)
    output_summary: dict = field(default_factory=dict)
    timing_seconds: float = 0.0
    warnings: list = field(default_factory=list)
    error: Optional[str] = None
    started_at: str = field(default_factory=_now_iso)
    completed_at: Optional[str] = None

    @property
    def ok(self):
        return self.status == StepStatus.SUCCESS.value

    def to_dict(self):
        return asdict(self)


@dataclass
class AllocationRunResult:
    """Outcome of the iterative filter-and-rerun allocation.

    ``final_allocation`` is the last computed pass; ``dropped_log`` holds
    every unit removed along the way. The two never share a unit_id.
    """

    final_allocation: pd.DataFrame
    dropped_log: pd.DataFrame
    total_effort: float
    max_iters: int
    iterations: int = 0
    cap_reached: bool = False
    warnings: list = field(default_factory=list)
    iteration_tables: list = field(default_factory=list)

    @property
    def n_allocated(self):
        return len(self.final_allocation)

    @property
    def n_dropped(self):
        return len(self.dropped_log)

    def to_dict(self):
        """Scalar summary (tables excluded) for provenance JSON."""
        return {
            "total_effort": self.total_effort,
            "max_iters": self.max_iters,
            "iterations": self.iterations,
            "cap_reached": self.cap_reached,
            "n_allocated": self.n_allocated,
            "n_dropped": self.n_dropped,
            "warnings": self.warnings,
        }


@dataclass
class PosteriorRunResult:
    """Outcome of one posterior update cycle."""

    update_table: pd.DataFrame
    posteriors: pd.DataFrame
    next_priors: Optional[pd.DataFrame] = None
    warnings: list = field(default_factory=list)

    @property
    def n_updated(self):
        return int(self.posteriors["updated"].sum())

    def to_dict(self):
        return {
            "n_units": len(self.posteriors),
            "n_updated": self.n_updated,
            "warnings": self.warnings,
        }


@dataclass
class PipelineRunResult:
    """Result of a complete CLI pipeline execution."""

    run_dir: str = ""
    pipeline: str = ""  # "allocate" or "posterior"
    parameters: dict = field(default_factory=dict)
    step_results: list = field(default_factory=list)
    summary: dict = field(default_factory=dict)
    total_time_seconds: float = 0.0
    output_files: list = field(default_factory=list)
    git_sha: Optional[str] = field(default_factory=_get_git_sha)
    started_at: str = field(default_factory=_now_iso)

    @property
    def all_ok(self):
        return all(s.ok for s in self.step_results)

    @property
    def failed_steps(self):
        return [s for s in self.step_results if not s.ok]

    def to_dict(self):
        out = asdict(self)
        out["steps"] = out.pop("step_results")
        out["all_ok"] = self.all_ok
        return out
