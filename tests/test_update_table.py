"""
Tests for optimal_allocation/update_table.py.
"""

import logging

import pandas as pd
import pytest

from optimal_allocation import config
from optimal_allocation.errors import MissingColumnError, ValidationError
from optimal_allocation.update_table import build_update_table


class TestBuildUpdateTable:
    """Priors drive the row set; observations are left-joined."""

    def test_every_prior_once(self, survey_units, field_observations):
        table = build_update_table(survey_units, field_observations)
        assert table["unit_id"].tolist() == ["A", "B", "C"]
        assert list(table.columns) == list(config.UPDATE_TABLE_COLUMNS)

    def test_unobserved_unit_has_nulls(self, survey_units, field_observations):
        table = build_update_table(survey_units, field_observations).set_index("unit_id")
        assert pd.isna(table.loc["C", "l_walked_today"])
        assert pd.isna(table.loc["C", "success"])
        assert table.loc["A", "l_walked_today"] == pytest.approx(2.0)
        assert table.loc["B", "success"] == 1

    def test_success_is_nullable_integer(self, survey_units, field_observations):
        table = build_update_table(survey_units, field_observations)
        assert str(table["success"].dtype) == "Int64"

    def test_sorted_by_unit_id(self, survey_units, field_observations):
        shuffled = survey_units.iloc[::-1]
        table = build_update_table(shuffled, field_observations)
        assert table["unit_id"].tolist() == ["A", "B", "C"]

    def test_duplicate_priors_keep_first(self, survey_units, field_observations, caplog):
        dup = pd.concat([
            survey_units,
            survey_units.iloc[[0]].assign(probability=0.99),
        ], ignore_index=True)
        with caplog.at_level(logging.WARNING):
            table = build_update_table(dup, field_observations)
        assert len(table) == 3
        assert table.set_index("unit_id").loc["A", "probability"] == pytest.approx(0.5)
        assert "Duplicate prior unit_id" in caplog.text

    def test_duplicate_observations_rejected(self, survey_units):
        obs = pd.DataFrame({
            "unit_id": ["A", "A"],
            "l_walked_today": [1.0, 2.0],
            "success": [0, 0],
        })
        with pytest.raises(ValidationError) as exc_info:
            build_update_table(survey_units, obs)
        assert exc_info.value.unit_ids == ["A"]

    def test_unknown_observation_ignored_with_warning(self, survey_units, caplog):
        obs = pd.DataFrame({"unit_id": ["Z"], "l_walked_today": [1.0], "success": [0]})
        with caplog.at_level(logging.WARNING):
            table = build_update_table(survey_units, obs)
        assert "Z" not in table["unit_id"].tolist()
        assert "not present in priors" in caplog.text

    def test_ids_are_trimmed(self, survey_units):
        obs = pd.DataFrame({"unit_id": [" A "], "l_walked_today": [1.0], "success": [0]})
        table = build_update_table(survey_units, obs).set_index("unit_id")
        assert table.loc["A", "l_walked_today"] == pytest.approx(1.0)

    def test_missing_prior_column(self, survey_units, field_observations):
        with pytest.raises(MissingColumnError) as exc_info:
            build_update_table(survey_units.drop(columns=["area"]), field_observations)
        assert exc_info.value.missing == ["area"]
        assert exc_info.value.table == "priors"

    def test_missing_observation_column(self, survey_units, field_observations):
        with pytest.raises(MissingColumnError) as exc_info:
            build_update_table(survey_units, field_observations.drop(columns=["success"]))
        assert exc_info.value.missing == ["success"]
        assert "l_walked_today" in exc_info.value.present
