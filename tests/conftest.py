"""
Shared fixtures for allocation and posterior tests.

Provides small unit-prior and observation tables with hand-checkable
numbers so each test module can focus on one behaviour.
"""

import pandas as pd
import pytest

from optimal_allocation.logging_config import reset_logging


@pytest.fixture
def clean_logging():
    """Remove handlers installed by setup_logging() after the test."""
    yield
    reset_logging()


@pytest.fixture
def single_unit():
    """One unit: area 100, probability 0.5, sweep width 10."""
    return pd.DataFrame({
        "unit_id": ["A"],
        "area": [100.0],
        "probability": [0.5],
        "sweep_width": [10.0],
    })


@pytest.fixture
def two_units_one_negative():
    """Two equal-area units where B's density is far below A's.

    With L=10: pass 1 gives A ~= 19.77 and B ~= -9.77; after B is dropped
    A alone receives all of L (10.0).
    """
    return pd.DataFrame({
        "unit_id": ["A", "B"],
        "area": [100.0, 100.0],
        "probability": [0.9, 0.001],
        "sweep_width": [10.0, 10.0],
        "visibility": ["good", "poor"],
    })


@pytest.fixture
def three_units():
    """Three positive-allocation units with a uniform sweep width."""
    return pd.DataFrame({
        "unit_id": ["U3", "U1", "U2"],
        "area": [200.0, 100.0, 150.0],
        "probability": [0.3, 0.4, 0.3],
        "sweep_width": [5.0, 5.0, 5.0],
    })


@pytest.fixture
def survey_units():
    """Priors for the posterior tests (area 100, sweep width 10)."""
    return pd.DataFrame({
        "unit_id": ["A", "B", "C"],
        "area": [100.0, 100.0, 100.0],
        "probability": [0.5, 0.3, 0.2],
        "sweep_width": [10.0, 10.0, 10.0],
        "visibility": ["good", "good", "poor"],
    })


@pytest.fixture
def field_observations():
    """A walked without success, B found, C not surveyed."""
    return pd.DataFrame({
        "unit_id": ["A", "B"],
        "l_walked_today": [2.0, 5.0],
        "success": [0, 1],
    })
