"""
Tabular exports of allocation and posterior results.

Display tables (rounded, renamed for field crews), CSV and XLSX writers,
and a ZIP bundler for handing a whole run over in one file.
"""

import os
import zipfile

import pandas as pd

from optimal_allocation import config
from optimal_allocation.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

C = config


# ── Display tables ──────────────────────────────────────────────────────


def _round(df, columns, decimals=C.DISPLAY_DECIMALS):
    for col in columns:
        if col in df.columns and pd.api.types.is_numeric_dtype(df[col]):
            df[col] = df[col].round(decimals)
    return df


def allocation_display_table(final_allocation):
    """unit_id, area, probability, sweep_width, [visibility], allocation."""
    keep = [c for c in C.UNIT_CORE_ORDER if c in final_allocation.columns]
    df = final_allocation.loc[:, keep + [C.RECOMMENDED_TRANSECT_LENGTH]].copy()
    df = df.rename(columns={C.RECOMMENDED_TRANSECT_LENGTH: C.ALLOCATION_DISPLAY_NAME})
    return _round(df, (C.AREA, C.ALLOCATION_DISPLAY_NAME))


def dropped_display_table(dropped_log):
    keep = [c for c in C.UNIT_CORE_ORDER if c in dropped_log.columns]
    keep += [C.RECOMMENDED_TRANSECT_LENGTH, C.DROP_REASON, C.ITERATION]
    df = dropped_log.loc[:, keep].copy()
    df = df.rename(columns={C.RECOMMENDED_TRANSECT_LENGTH: C.ALLOCATION_DISPLAY_NAME})
    return _round(df, (C.AREA, C.ALLOCATION_DISPLAY_NAME))


def posterior_display_table(posteriors, only_updated=False):
    """Prior vs posterior, optionally restricted to units surveyed this cycle."""
    df = posteriors.copy()
    if only_updated:
        df = df[df[C.UPDATED]].reset_index(drop=True)
    return _round(df, (C.PRIOR_PROB, C.POST_PROB))


def run_parameters_frame(summary):
    """Two-column parameter/value table from a result's ``to_dict()``."""
    rows = []
    for key, value in summary.items():
        if isinstance(value, (list, tuple)):
            value = "; ".join(map(str, value))
        rows.append({"parameter": key, "value": value})
    return pd.DataFrame(rows, columns=["parameter", "value"])


# ── Writers ─────────────────────────────────────────────────────────────


def _write_workbook(path, sheets):
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=name, index=False)
    return path


def write_allocation_outputs(result, output_dir, basename=C.ALLOCATION_BASENAME,
                             write_steps=False):
    """Write final allocation, dropped log and run parameters.

    Parameters
    ----------
    result : AllocationRunResult
    output_dir : str
    basename : str
        Stem for ``{basename}.csv`` / ``{basename}.xlsx``.
    write_steps : bool
        Also write one CSV per computation pass.

    Returns
    -------
    list[str]
        Paths written.
    """
    os.makedirs(output_dir, exist_ok=True)
    paths = []

    alloc_csv = os.path.join(output_dir, f"{basename}.csv")
    result.final_allocation.to_csv(alloc_csv, index=False)
    paths.append(alloc_csv)

    if result.n_dropped:
        dropped_csv = os.path.join(output_dir, "dropped_units_log.csv")
        result.dropped_log.to_csv(dropped_csv, index=False)
        paths.append(dropped_csv)

    if write_steps:
        for i, table in enumerate(result.iteration_tables, start=1):
            step_csv = os.path.join(output_dir, C.ITERATION_FILE_TEMPLATE.format(iteration=i))
            table.to_csv(step_csv, index=False)
            paths.append(step_csv)

    xlsx = os.path.join(output_dir, f"{basename}.xlsx")
    paths.append(_write_workbook(xlsx, {
        "Allocations": allocation_display_table(result.final_allocation),
        "Dropped": dropped_display_table(result.dropped_log),
        "Parameters": run_parameters_frame(result.to_dict()),
    }))

    log.info("Wrote %d allocation output file(s) to %s", len(paths), output_dir)
    return paths


def write_posterior_outputs(result, output_dir, basename=C.POSTERIOR_BASENAME):
    """Write posteriors, the update table and next-cycle priors.

    Returns
    -------
    list[str]
        Paths written.
    """
    os.makedirs(output_dir, exist_ok=True)
    paths = []

    post_csv = os.path.join(output_dir, f"{basename}.csv")
    result.posteriors.to_csv(post_csv, index=False)
    paths.append(post_csv)

    update_csv = os.path.join(output_dir, "update_table.csv")
    result.update_table.to_csv(update_csv, index=False)
    paths.append(update_csv)

    sheets = {
        "Posteriors": posterior_display_table(result.posteriors),
        "UpdateTable": result.update_table,
    }
    if result.next_priors is not None:
        priors_csv = os.path.join(output_dir, "updated_priors.csv")
        result.next_priors.to_csv(priors_csv, index=False)
        paths.append(priors_csv)
        sheets["NextPriors"] = result.next_priors

    xlsx = os.path.join(output_dir, f"{basename}.xlsx")
    paths.append(_write_workbook(xlsx, sheets))

    log.info("Wrote %d posterior output file(s) to %s", len(paths), output_dir)
    return paths


def bundle_outputs(paths, zip_path):
    """Zip *paths* (flat, by basename) into *zip_path*."""
    os.makedirs(os.path.dirname(zip_path) or ".", exist_ok=True)
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in paths:
            zf.write(path, arcname=os.path.basename(path))
    log.info("Bundled %d file(s) into %s", len(paths), zip_path)
    return zip_path
