"""Tests for shared scaling helpers."""
import math

import pytest

from src.factors.scaling import (
    all_finite,
    cap,
    clamp,
    edge_confidence,
    population_stdev,
    safe_ratio,
    saturate,
    side_split,
    sides_for,
    sigmoid,
)


class TestSaturate:
    def test_zero_is_neutral(self):
        assert saturate(0.0, 6.0) == 0.0

    def test_matches_tanh(self):
        assert saturate(3.0, 6.0) == pytest.approx(math.tanh(0.5))
        assert saturate(-3.0, 6.0) == pytest.approx(-math.tanh(0.5))

    def test_bounded_at_extremes(self):
        assert saturate(1e9, 1.0) == 1.0
        assert saturate(-1e9, 1.0) == -1.0


def test_clamp():
    assert clamp(1.7) == 1.0
    assert clamp(-3.0) == -1.0
    assert clamp(0.25) == 0.25
    assert clamp(12.0, -10.0, 10.0) == 10.0


def test_cap_reports_when_it_bites():
    assert cap(25.0, 20.0) == (20.0, True)
    assert cap(-25.0, 20.0) == (-20.0, True)
    assert cap(5.0, 20.0) == (5.0, False)


class TestSideSplit:
    def test_sides(self):
        assert sides_for("TOTAL") == ("over", "under")
        assert sides_for("SPREAD/MONEYLINE") == ("away", "home")

    def test_positive_signal_goes_to_over(self):
        points, scores = side_split(0.5, "TOTAL")
        assert points == 2.5
        assert scores == {"over": 2.5, "under": 0.0}

    def test_negative_signal_goes_to_home(self):
        points, scores = side_split(-0.2, "SPREAD")
        assert points == pytest.approx(1.0)
        assert scores["away"] == 0.0
        assert scores["home"] == pytest.approx(1.0)

    def test_zero_signal_scores_nothing(self):
        points, scores = side_split(0.0, "MONEYLINE")
        assert points == 0.0
        assert scores == {"away": 0.0, "home": 0.0}


def test_population_stdev():
    assert population_stdev([0.30, 0.40]) == pytest.approx(0.05)
    assert population_stdev([]) == 0.0


def test_safe_ratio():
    assert safe_ratio(10.0, 4.0) == 2.5
    assert safe_ratio(10.0, 0.0) == 0.0
    assert safe_ratio(10.0, 0.0, default=1.0) == 1.0


def test_all_finite():
    assert all_finite(1.0, -2.0)
    assert not all_finite(1.0, None)
    assert not all_finite(float("nan"))
    assert not all_finite(float("inf"))


class TestEdgeConfidence:
    def test_no_signals_is_coin_flip(self):
        edge_raw, edge_pct, confidence = edge_confidence([])
        assert edge_raw == 0.0
        assert edge_pct == 0.5
        assert confidence == 2.5

    def test_weighted_sum(self):
        edge_raw, edge_pct, confidence = edge_confidence([(0.3, 1.0), (0.2, -0.5)], k=2.5)
        assert edge_raw == pytest.approx(0.2)
        assert edge_pct == pytest.approx(sigmoid(0.5))
        assert confidence == pytest.approx(5.0 * sigmoid(0.5))

    def test_confidence_bounds(self):
        _, _, high = edge_confidence([(1.0, 1.0)] * 100)
        _, _, low = edge_confidence([(1.0, -1.0)] * 100)
        assert 0.0 <= low < 0.01
        assert 4.99 < high <= 5.0
