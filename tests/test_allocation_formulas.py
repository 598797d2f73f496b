"""
Tests for optimal_allocation/formulas/allocation.py.

Checks each derived column against hand-computed values, the numeric
edge policy (zero sweep width, zero probability, single unit) and the
input preconditions.
"""

import math

import numpy as np
import pandas as pd
import pytest

from optimal_allocation import config
from optimal_allocation.errors import MissingColumnError, ValidationError
from optimal_allocation.formulas.allocation import (
    compute_preconstraint_columns,
    validate_total_effort,
)


class TestSingleUnit:
    """One unit, L=50: every aggregate collapses onto that unit."""

    def test_prob_density(self, single_unit):
        out = compute_preconstraint_columns(single_unit, 50)
        assert out.loc[0, "prob_density"] == pytest.approx(0.005)

    def test_log_prob_density_is_base_10(self, single_unit):
        out = compute_preconstraint_columns(single_unit, 50)
        assert out.loc[0, "log_prob_density"] == pytest.approx(math.log10(0.005))
        assert out.loc[0, "log_prob_density"] == pytest.approx(-2.30103, abs=1e-5)

    def test_aggregates_are_the_unit_itself(self, single_unit):
        out = compute_preconstraint_columns(single_unit, 50)
        row = out.loc[0]
        assert row["sum_area"] == pytest.approx(100.0)
        assert row["sum_probability"] == pytest.approx(0.5)
        assert row["density_ratio"] == pytest.approx(row["log_prob_density"])
        assert row["normalized_log_density"] == pytest.approx(0.0, abs=1e-12)

    def test_effort_and_length(self, single_unit):
        out = compute_preconstraint_columns(single_unit, 50)
        row = out.loc[0]
        assert row["effort_density"] == pytest.approx(5.0)
        assert row["recommended_coverage"] == pytest.approx(5.0)
        assert row["recommended_transect_length"] == pytest.approx(50.0)

    def test_constraint_term_undefined_for_single_unit(self, single_unit):
        """sum_area - area is 0, so the diagnostic is NaN rather than inf."""
        out = compute_preconstraint_columns(single_unit, 50)
        assert np.isnan(out.loc[0, "constraint_term"])


class TestDerivedColumns:
    """Multi-unit formula checks."""

    def test_all_derived_columns_present(self, three_units):
        out = compute_preconstraint_columns(three_units, 100)
        for col in config.ALLOCATION_DERIVED_COLUMNS:
            assert col in out.columns

    def test_sorted_by_unit_id(self, three_units):
        out = compute_preconstraint_columns(three_units, 100)
        assert out["unit_id"].tolist() == ["U1", "U2", "U3"]

    def test_aggregates_broadcast(self, three_units):
        out = compute_preconstraint_columns(three_units, 100)
        assert out["sum_area"].nunique() == 1
        assert out["sum_area"].iloc[0] == pytest.approx(450.0)
        assert out["sum_probability"].iloc[0] == pytest.approx(1.0)

    def test_uniform_sweep_width_lengths_sum_to_total_effort(self, three_units):
        out = compute_preconstraint_columns(three_units, 100)
        assert out["recommended_transect_length"].sum() == pytest.approx(100.0)

    def test_two_unit_values(self, two_units_one_negative):
        out = compute_preconstraint_columns(two_units_one_negative, 10).set_index("unit_id")
        ratio = (math.log10(0.009) + math.log10(0.00001)) / 2
        assert out.loc["A", "density_ratio"] == pytest.approx(ratio)
        assert out.loc["A", "effort_density"] == pytest.approx(0.5)
        assert out.loc["A", "recommended_transect_length"] == pytest.approx(19.771, abs=1e-3)
        assert out.loc["B", "recommended_transect_length"] == pytest.approx(-9.771, abs=1e-3)

    def test_constraint_term_leave_one_out(self, two_units_one_negative):
        out = compute_preconstraint_columns(two_units_one_negative, 10).set_index("unit_id")
        expected_a = (0.001 / 100.0) * 10 ** (-10 / 100.0)
        assert out.loc["A", "constraint_term"] == pytest.approx(expected_a)

    def test_constraint_term_does_not_change_length(self, two_units_one_negative):
        out = compute_preconstraint_columns(two_units_one_negative, 10)
        expected = out["recommended_coverage"] * out["area"] / out["sweep_width"]
        np.testing.assert_allclose(out["recommended_transect_length"], expected)

    def test_input_not_mutated(self, three_units):
        before = three_units.copy()
        compute_preconstraint_columns(three_units, 100)
        pd.testing.assert_frame_equal(three_units, before)

    def test_deterministic(self, three_units):
        a = compute_preconstraint_columns(three_units, 100)
        b = compute_preconstraint_columns(three_units, 100)
        pd.testing.assert_frame_equal(a, b)

    def test_extra_columns_carried_through(self, two_units_one_negative):
        out = compute_preconstraint_columns(two_units_one_negative, 10)
        assert out["visibility"].tolist() == ["good", "poor"]


class TestNumericEdges:
    """Zero sweep width and zero probability."""

    def test_zero_sweep_width_gives_nan_length(self, three_units):
        units = three_units.copy()
        units.loc[units["unit_id"] == "U2", "sweep_width"] = 0.0
        out = compute_preconstraint_columns(units, 100).set_index("unit_id")
        assert np.isnan(out.loc["U2", "recommended_transect_length"])
        assert np.isfinite(out.loc["U1", "recommended_transect_length"])

    def test_zero_probability_propagates_negative_infinity(self, three_units):
        units = three_units.copy()
        units.loc[units["unit_id"] == "U1", "probability"] = 0.0
        out = compute_preconstraint_columns(units, 100).set_index("unit_id")
        assert out.loc["U1", "log_prob_density"] == -np.inf
        assert out.loc["U2", "sum_area_weighted_log_density"] == -np.inf

    def test_zero_total_effort_allowed(self, three_units):
        out = compute_preconstraint_columns(three_units, 0)
        assert (out["effort_density"] == 0).all()


class TestPreconditions:
    """Invalid inputs fail with ValidationError / MissingColumnError."""

    @pytest.mark.parametrize("column,value", [
        ("area", 0.0),
        ("area", -5.0),
        ("probability", 1.5),
        ("probability", -0.1),
        ("sweep_width", -1.0),
    ])
    def test_out_of_range_values(self, three_units, column, value):
        units = three_units.copy()
        units.loc[units["unit_id"] == "U2", column] = value
        with pytest.raises(ValidationError) as exc_info:
            compute_preconstraint_columns(units, 100)
        assert exc_info.value.unit_ids == ["U2"]

    def test_missing_column(self, three_units):
        with pytest.raises(MissingColumnError) as exc_info:
            compute_preconstraint_columns(three_units.drop(columns=["sweep_width"]), 100)
        assert exc_info.value.missing == ["sweep_width"]
        assert "area" in exc_info.value.present

    def test_duplicate_unit_ids(self, three_units):
        units = pd.concat([three_units, three_units.iloc[[0]]], ignore_index=True)
        with pytest.raises(ValidationError):
            compute_preconstraint_columns(units, 100)

    def test_empty_table(self, three_units):
        with pytest.raises(ValidationError):
            compute_preconstraint_columns(three_units.iloc[0:0], 100)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), -1.0, "lots", None])
    def test_bad_total_effort(self, three_units, bad):
        with pytest.raises(ValidationError):
            compute_preconstraint_columns(three_units, bad)

    def test_validate_total_effort_returns_float(self):
        assert validate_total_effort(5) == 5.0
        assert isinstance(validate_total_effort("12.5"), float)
