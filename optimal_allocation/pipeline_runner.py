#!/usr/bin/env python3
"""
Pipeline runner with validation gates.

Runs one of two pipelines from the command line:

- ``allocate``: read unit priors, run the iterative allocation, write the
  final allocation, dropped-unit log and run parameters.
- ``posterior``: read unit priors and one day's field results, build the
  update table, compute posteriors and write next-cycle priors.

Every stage goes through ``run_step`` so failures become StepResults
rather than tracebacks; the full PipelineRunResult is saved as JSON for
provenance.

Usage:
    python3 -m optimal_allocation.pipeline_runner --pipeline allocate \\
        --inputs units.csv --total-effort 5000

    python3 -m optimal_allocation.pipeline_runner --pipeline posterior \\
        --inputs units.csv --results day1.csv --drop-detected

    # Abort on schema violations instead of warning
    python3 -m optimal_allocation.pipeline_runner --pipeline allocate \\
        --inputs units.csv --total-effort 5000 --strict-validation
"""

import argparse
import json
import os
import sys
import time

from optimal_allocation import config
from optimal_allocation.allocator import run_allocation
from optimal_allocation.ingest.readers import read_results_file, read_units_file
from optimal_allocation.logging_config import get_pipeline_logger, setup_logging, set_run_id
from optimal_allocation.outputs.exports import (
    bundle_outputs,
    write_allocation_outputs,
    write_posterior_outputs,
)
from optimal_allocation.outputs.visualizations import (
    fig_allocation_bars,
    fig_prior_vs_posterior,
    save_figure,
)
from optimal_allocation.pipeline_types import PipelineRunResult, PosteriorRunResult
from optimal_allocation.posteriors import apply_posteriors_to_priors, compute_posteriors
from optimal_allocation.schemas import AllocationSchema, PosteriorSchema, validate_schema
from optimal_allocation.step_runner import run_step
from optimal_allocation.update_table import build_update_table

log = get_pipeline_logger(__name__)


# ── NaN tracking helper ──────────────────────────────────────────────────


def track_nan_counts(df, step_name):
    """Log per-column NaN counts for *df* at DEBUG; return the mapping."""
    if df is None:
        return {}
    nan_counts = {k: int(v) for k, v in df.isna().sum().to_dict().items() if v > 0}
    if nan_counts:
        log.debug("[%s] NaN counts: %s", step_name, nan_counts,
                  extra={"step_name": step_name})
    return nan_counts


def _gate(df, schema, step_name, strict, warnings_out):
    """Run a validation gate; returns False if the pipeline must abort."""
    try:
        gate_warnings = validate_schema(df, schema, step_name, strict=strict)
    except ValueError as e:
        log.error("Validation failed after %s: %s", step_name, e)
        return False
    for w in gate_warnings:
        log.warning(w)
    warnings_out.extend(gate_warnings)
    return True


def _finish(pipeline_result, start_time):
    pipeline_result.total_time_seconds = time.time() - start_time
    return pipeline_result


# ── Allocate pipeline ────────────────────────────────────────────────────


def run_allocate_pipeline(args):
    """Read priors, allocate effort, write outputs.

    Returns
    -------
    PipelineRunResult
    """
    strict = getattr(args, "strict_validation", False)
    pipeline_result = PipelineRunResult(
        run_dir=args.output_dir,
        pipeline="allocate",
        parameters={
            "inputs": args.inputs,
            "total_effort": args.total_effort,
            "max_iters": args.max_iters,
        },
    )
    start_time = time.time()

    # Step 1: Load units
    result, units = run_step(
        "load_units", read_units_file, args.inputs,
        input_summary={"path": args.inputs},
        output_summary_fn=lambda df: {"n_units": len(df)},
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at load_units: %s", result.error)
        return _finish(pipeline_result, start_time)

    # Step 2: Allocate
    result, alloc = run_step(
        "allocate", run_allocation, units, args.total_effort, max_iters=args.max_iters,
        input_summary={"n_units": len(units), "total_effort": args.total_effort},
        output_summary_fn=lambda r: {
            "n_allocated": r.n_allocated,
            "n_dropped": r.n_dropped,
            "iterations": r.iterations,
            "cap_reached": r.cap_reached,
        },
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at allocate: %s", result.error)
        return _finish(pipeline_result, start_time)

    # Validation gate: final allocation (Pandera)
    if not _gate(alloc.final_allocation, AllocationSchema, "allocate", strict, alloc.warnings):
        return _finish(pipeline_result, start_time)
    track_nan_counts(alloc.final_allocation, "allocate")
    pipeline_result.summary = alloc.to_dict()

    # Step 3: Write tables
    result, paths = run_step(
        "write_outputs", write_allocation_outputs, alloc, args.output_dir,
        write_steps=args.write_steps,
        output_summary_fn=lambda p: {"n_files": len(p)},
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at write_outputs: %s", result.error)
        return _finish(pipeline_result, start_time)
    pipeline_result.output_files.extend(paths)

    # ── Non-critical steps (log warning, continue on failure) ────────

    fig_path = os.path.join(args.output_dir, "allocation_bars.png")
    result, saved = run_step(
        "allocation_figure",
        lambda: save_figure(fig_allocation_bars(alloc.final_allocation), fig_path),
    )
    pipeline_result.step_results.append(result)
    if result.ok:
        pipeline_result.output_files.append(saved)
    else:
        log.warning("Allocation figure failed: %s", result.error)

    if args.bundle:
        _bundle(pipeline_result, args.output_dir, "allocate")

    return _finish(pipeline_result, start_time)


# ── Posterior pipeline ───────────────────────────────────────────────────


def _posterior_cycle(units, observations, drop_detected=False):
    table = build_update_table(units, observations)
    posteriors = compute_posteriors(table)
    next_priors = apply_posteriors_to_priors(units, posteriors, drop_detected=drop_detected)
    return PosteriorRunResult(update_table=table, posteriors=posteriors, next_priors=next_priors)


def run_posterior_pipeline(args):
    """Read priors and field results, compute posteriors, write outputs.

    Returns
    -------
    PipelineRunResult
    """
    strict = getattr(args, "strict_validation", False)
    pipeline_result = PipelineRunResult(
        run_dir=args.output_dir,
        pipeline="posterior",
        parameters={
            "inputs": args.inputs,
            "results": args.results,
            "drop_detected": args.drop_detected,
        },
    )
    start_time = time.time()

    # Step 1: Load units
    result, units = run_step(
        "load_units", read_units_file, args.inputs,
        input_summary={"path": args.inputs},
        output_summary_fn=lambda df: {"n_units": len(df)},
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at load_units: %s", result.error)
        return _finish(pipeline_result, start_time)

    # Step 2: Load field results
    result, observations = run_step(
        "load_results", read_results_file, args.results, reference_units=units,
        input_summary={"path": args.results},
        output_summary_fn=lambda df: {"n_observations": len(df)},
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at load_results: %s", result.error)
        return _finish(pipeline_result, start_time)

    # Step 3: Update table + posteriors
    result, cycle = run_step(
        "update_posteriors", _posterior_cycle, units, observations,
        drop_detected=args.drop_detected,
        input_summary={"n_units": len(units), "n_observations": len(observations)},
        output_summary_fn=lambda r: {"n_units": len(r.posteriors), "n_updated": r.n_updated},
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at update_posteriors: %s", result.error)
        return _finish(pipeline_result, start_time)

    # Validation gate: posteriors (Pandera)
    if not _gate(cycle.posteriors, PosteriorSchema, "update_posteriors", strict, cycle.warnings):
        return _finish(pipeline_result, start_time)
    pipeline_result.summary = cycle.to_dict()

    # Step 4: Write tables
    result, paths = run_step(
        "write_outputs", write_posterior_outputs, cycle, args.output_dir,
        output_summary_fn=lambda p: {"n_files": len(p)},
    )
    pipeline_result.step_results.append(result)
    if not result.ok:
        log.error("Pipeline aborted at write_outputs: %s", result.error)
        return _finish(pipeline_result, start_time)
    pipeline_result.output_files.extend(paths)

    # ── Non-critical steps ───────────────────────────────────────────

    fig_path = os.path.join(args.output_dir, "prior_vs_posterior.png")
    result, saved = run_step(
        "posterior_figure",
        lambda: save_figure(fig_prior_vs_posterior(cycle.posteriors), fig_path),
    )
    pipeline_result.step_results.append(result)
    if result.ok:
        pipeline_result.output_files.append(saved)
    else:
        log.warning("Posterior figure failed: %s", result.error)

    if args.bundle:
        _bundle(pipeline_result, args.output_dir, "posterior")

    return _finish(pipeline_result, start_time)


def _bundle(pipeline_result, output_dir, pipeline):
    zip_path = os.path.join(output_dir, f"{pipeline}_outputs.zip")
    result, saved = run_step(
        "bundle_outputs", bundle_outputs, list(pipeline_result.output_files), zip_path,
    )
    pipeline_result.step_results.append(result)
    if result.ok:
        pipeline_result.output_files.append(saved)
    else:
        log.warning("Bundling failed: %s", result.error)


# ── Provenance ───────────────────────────────────────────────────────────


def save_pipeline_result(pipeline_result, output_dir):
    """Save PipelineRunResult as JSON for provenance."""
    os.makedirs(output_dir, exist_ok=True)
    result_path = os.path.join(output_dir, "pipeline_run.json")
    with open(result_path, "w") as f:
        json.dump(pipeline_result.to_dict(), f, indent=2, default=str)
    log.info("Pipeline result saved: %s", result_path)
    return result_path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Survey-effort allocation and posterior update pipeline"
    )
    parser.add_argument(
        "--pipeline",
        choices=["allocate", "posterior"],
        default="allocate",
        help="Which pipeline to run",
    )
    parser.add_argument(
        "--inputs",
        required=True,
        help="Unit priors file (.csv, .txt or .xlsx)",
    )
    parser.add_argument(
        "--results",
        default=None,
        help="Field results file (posterior pipeline)",
    )
    parser.add_argument(
        "--total-effort",
        type=float,
        default=None,
        dest="total_effort",
        help="Total transect length L to allocate (allocate pipeline)",
    )
    parser.add_argument(
        "--max-iters",
        type=int,
        default=config.DEFAULT_MAX_ITERS,
        dest="max_iters",
        help="Maximum drop-and-rerun rounds (default: %(default)s)",
    )
    parser.add_argument(
        "--output-dir",
        default=config.DEFAULT_OUTPUT_DIR,
        help="Output directory",
    )
    parser.add_argument(
        "--drop-detected",
        action="store_true",
        default=False,
        dest="drop_detected",
        help="Remove units with posterior 1.0 from next-cycle priors",
    )
    parser.add_argument(
        "--write-steps",
        action="store_true",
        default=False,
        dest="write_steps",
        help="Also write one CSV per allocation pass",
    )
    parser.add_argument(
        "--bundle",
        action="store_true",
        default=False,
        help="Zip all written outputs into one archive",
    )
    parser.add_argument(
        "--strict-validation",
        action="store_true",
        default=False,
        dest="strict_validation",
        help="Abort pipeline on schema validation failures (default: warn only)",
    )
    args = parser.parse_args(argv)

    if args.pipeline == "allocate" and args.total_effort is None:
        parser.error("--total-effort is required for --pipeline allocate")
    if args.pipeline == "posterior" and not args.results:
        parser.error("--results is required for --pipeline posterior")
    return args


# ── Main entry point ─────────────────────────────────────────────────────


def main(argv=None):
    args = parse_args(argv)

    # Generate a fresh run_id for this pipeline invocation
    run_id = set_run_id()
    setup_logging(run_dir=args.output_dir)

    log.info("Pipeline runner: %s (run_id=%s)", args.pipeline, run_id)

    if args.pipeline == "allocate":
        result = run_allocate_pipeline(args)
    else:
        result = run_posterior_pipeline(args)

    save_pipeline_result(result, args.output_dir)

    log.info("Pipeline %s complete in %.1fs", args.pipeline, result.total_time_seconds)
    if result.failed_steps:
        log.warning("Failed steps: %s", [s.step_name for s in result.failed_steps])
        return 1
    # A validation gate can abort without a failed step.
    if not result.summary:
        return 1
    log.info("All steps succeeded.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
