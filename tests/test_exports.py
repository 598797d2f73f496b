"""
Tests for optimal_allocation/outputs: display tables, CSV/XLSX writers,
ZIP bundling and figures.
"""

import os
import zipfile

import pandas as pd
import pytest

from optimal_allocation.allocator import run_allocation
from optimal_allocation.outputs.exports import (
    allocation_display_table,
    bundle_outputs,
    dropped_display_table,
    posterior_display_table,
    run_parameters_frame,
    write_allocation_outputs,
    write_posterior_outputs,
)
from optimal_allocation.outputs.visualizations import (
    fig_allocation_bars,
    fig_prior_vs_posterior,
    save_figure,
)
from optimal_allocation.pipeline_types import PosteriorRunResult
from optimal_allocation.posteriors import apply_posteriors_to_priors, compute_posteriors
from optimal_allocation.update_table import build_update_table


@pytest.fixture
def allocation_result(two_units_one_negative):
    return run_allocation(two_units_one_negative, 10)


@pytest.fixture
def posterior_result(survey_units, field_observations):
    table = build_update_table(survey_units, field_observations)
    posteriors = compute_posteriors(table)
    return PosteriorRunResult(
        update_table=table,
        posteriors=posteriors,
        next_priors=apply_posteriors_to_priors(survey_units, posteriors),
    )


class TestDisplayTables:

    def test_allocation_display(self, allocation_result):
        df = allocation_display_table(allocation_result.final_allocation)
        assert list(df.columns) == [
            "unit_id", "area", "probability", "sweep_width", "visibility", "allocation",
        ]
        assert df.loc[0, "allocation"] == 10.0

    def test_allocation_rounded(self, two_units_one_negative):
        result = run_allocation(two_units_one_negative, 10, max_iters=5)
        first = result.iteration_tables[0]
        df = allocation_display_table(first)
        assert df["allocation"].tolist() == [19.77, -9.77]

    def test_dropped_display(self, allocation_result):
        df = dropped_display_table(allocation_result.dropped_log)
        assert df.loc[0, "unit_id"] == "B"
        assert df.loc[0, "allocation"] == -9.77
        assert list(df.columns[-2:]) == ["drop_reason", "iteration"]

    def test_posterior_only_updated(self, posterior_result):
        full = posterior_display_table(posterior_result.posteriors)
        updated = posterior_display_table(posterior_result.posteriors, only_updated=True)
        assert len(full) == 3
        assert updated["unit_id"].tolist() == ["A", "B"]

    def test_run_parameters_frame(self, allocation_result):
        df = run_parameters_frame(allocation_result.to_dict())
        params = dict(zip(df["parameter"], df["value"]))
        assert params["total_effort"] == 10.0
        assert params["n_dropped"] == 1
        assert params["warnings"] == ""


class TestWriters:

    def test_allocation_outputs(self, allocation_result, tmp_path):
        paths = write_allocation_outputs(allocation_result, str(tmp_path), write_steps=True)
        names = sorted(os.path.basename(p) for p in paths)
        assert names == sorted([
            "allocations.csv",
            "dropped_units_log.csv",
            "iteration1_allocations_preconstraint.csv",
            "iteration2_allocations_preconstraint.csv",
            "allocations.xlsx",
        ])
        sheets = pd.read_excel(tmp_path / "allocations.xlsx", sheet_name=None, engine="openpyxl")
        assert list(sheets) == ["Allocations", "Dropped", "Parameters"]
        assert sheets["Dropped"]["unit_id"].tolist() == ["B"]

    def test_no_dropped_csv_when_nothing_dropped(self, three_units, tmp_path):
        result = run_allocation(three_units, 100)
        paths = write_allocation_outputs(result, str(tmp_path), basename="run1")
        names = {os.path.basename(p) for p in paths}
        assert names == {"run1.csv", "run1.xlsx"}

    def test_allocation_csv_round_trip_columns(self, allocation_result, tmp_path):
        write_allocation_outputs(allocation_result, str(tmp_path))
        df = pd.read_csv(tmp_path / "allocations.csv")
        assert "recommended_transect_length" in df.columns
        assert "constraint_term" in df.columns

    def test_posterior_outputs(self, posterior_result, tmp_path):
        paths = write_posterior_outputs(posterior_result, str(tmp_path))
        names = {os.path.basename(p) for p in paths}
        assert names == {
            "posteriors.csv", "update_table.csv", "updated_priors.csv", "posteriors.xlsx",
        }
        sheets = pd.read_excel(tmp_path / "posteriors.xlsx", sheet_name=None, engine="openpyxl")
        assert list(sheets) == ["Posteriors", "UpdateTable", "NextPriors"]

    def test_bundle(self, allocation_result, tmp_path):
        paths = write_allocation_outputs(allocation_result, str(tmp_path / "out"))
        zip_path = bundle_outputs(paths, str(tmp_path / "bundle.zip"))
        with zipfile.ZipFile(zip_path) as zf:
            assert sorted(zf.namelist()) == sorted(os.path.basename(p) for p in paths)


class TestFigures:

    def test_allocation_bars_saved(self, allocation_result, tmp_path):
        fig = fig_allocation_bars(allocation_result.iteration_tables[0])
        assert len(fig.axes[0].patches) == 2
        path = save_figure(fig, str(tmp_path / "figs" / "bars.png"))
        assert os.path.getsize(path) > 0

    def test_prior_vs_posterior(self, posterior_result, tmp_path):
        fig = fig_prior_vs_posterior(posterior_result.posteriors)
        assert len(fig.axes[0].patches) == 6
        save_figure(fig, str(tmp_path / "post.png"))
        assert os.path.exists(tmp_path / "post.png")
