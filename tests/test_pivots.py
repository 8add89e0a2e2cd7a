#!/usr/bin/env python3
"""
Tests for pivot detection.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cci_divergence.pivots import find_pivots


def test_single_valley_and_peak():
    values = [5, 4, 3, 2, 1, 0, 1, 2, 3, 4, 5, 4, 3, 2, 1, 0, 1]
    lows, highs = find_pivots(values, lookback_left=3, lookback_right=3)
    assert lows == [5]
    assert highs == [10]


def test_plateau_is_not_a_pivot():
    values = [5, 4, 3, 1, 1, 3, 4, 5]
    lows, highs = find_pivots(values, lookback_left=2, lookback_right=2)
    assert lows == []
    assert highs == []


def test_undefined_neighbour_disqualifies():
    values = [5, np.nan, 3, 2, 1, 2, 3, 4, 5]
    lows, _ = find_pivots(values, lookback_left=3, lookback_right=3)
    assert lows == []

    lows, _ = find_pivots(values, lookback_left=2, lookback_right=3)
    assert lows == [4]


def test_undefined_candidate_is_skipped():
    values = [3, 2, 1, np.nan, 1, 2, 3]
    lows, highs = find_pivots(values, lookback_left=1, lookback_right=1)
    assert 3 not in lows and 3 not in highs


def test_pivots_respect_window_bounds():
    rng = np.random.default_rng(3)
    values = rng.normal(0, 1, 300)
    lows, highs = find_pivots(values, lookback_left=5, lookback_right=4)
    for idx in lows + highs:
        assert 5 <= idx <= len(values) - 1 - 4
    assert lows == sorted(lows)
    assert highs == sorted(highs)


def test_lows_and_highs_are_disjoint():
    rng = np.random.default_rng(11)
    values = np.round(rng.normal(0, 1, 500), 1)
    lows, highs = find_pivots(values)
    assert lows or highs
    assert set(lows).isdisjoint(highs)


def test_short_series_has_no_pivots():
    assert find_pivots([1, 0, 1], 5, 5) == ([], [])
    assert find_pivots([], 5, 5) == ([], [])


def test_invalid_lookback():
    with pytest.raises(ValueError):
        find_pivots([1, 2, 3], lookback_left=0)
