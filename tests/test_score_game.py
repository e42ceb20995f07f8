"""Tests for the score_game command line entry point."""
import argparse
import json
from datetime import date
from unittest.mock import AsyncMock

import pytest

from scripts import score_game
from src.factors.models import FactorBreakdown, FactorComputation
from src.pipeline.orchestrator import WeightValidationError


def breakdown():
    comp = FactorComputation(
        key="net_rating",
        name="Net Rating Differential",
        signal=0.4,
        points=2.0,
        side_scores={"away": 2.0, "home": 0.0},
        weight_pct=30.0,
        weighted_points=0.6,
    )
    return FactorBreakdown(
        factors=(comp,),
        factor_version="nba_spread_v1",
        baseline_avg=0.0,
        side_totals={"away": 0.6, "home": 0.0},
        edge_raw=0.12,
        edge_pct=0.574,
        confidence=2.87,
    )


class TestParsing:
    def test_parse_weights(self):
        assert score_game.parse_weights("net_rating=40, turnover_diff=30,") == {
            "net_rating": 40.0,
            "turnover_diff": 30.0,
        }
        assert score_game.parse_weights(None) is None

    @pytest.mark.parametrize("text", ["net_rating", "net_rating=lots"])
    def test_parse_weights_rejects(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            score_game.parse_weights(text)

    def test_parse_date(self):
        assert score_game.parse_date("2025-12-05") == date(2025, 12, 5)
        assert score_game.parse_date("today") == date.today()
        assert score_game.parse_date(None) is None

    def test_parser(self):
        args = score_game.build_parser().parse_args(
            ["--away", "BOS", "--home", "LAL", "--bet-type", "spread", "--spread-line", "3.5", "--weights", "net_rating=100"]
        )
        assert args.bet_type == "SPREAD"
        assert args.spread_line == 3.5
        assert args.weights == {"net_rating": 100.0}


class TestMain:
    def test_prints_breakdown(self, monkeypatch, capsys):
        compute = AsyncMock(return_value=breakdown())
        monkeypatch.setattr(score_game, "compute_factors", compute)
        monkeypatch.setattr(
            "sys.argv", ["score_game", "--away", "BOS", "--home", "LAL", "--bet-type", "SPREAD", "--date", "2025-12-05"]
        )

        assert score_game.main() == 0

        ctx = compute.call_args.args[0]
        assert ctx.game_id == "20251205-BOS-LAL"
        assert ctx.bet_type == "SPREAD"
        out = capsys.readouterr().out
        assert "net_rating" in out
        summary = json.loads(out[out.index("{"):])
        assert summary["factor_version"] == "nba_spread_v1"
        assert summary["side_totals"] == {"away": 0.6, "home": 0.0}

    def test_invalid_weights_exit_code(self, monkeypatch, capsys):
        monkeypatch.setattr(
            score_game, "compute_factors", AsyncMock(side_effect=WeightValidationError(["x: not applicable"]))
        )
        monkeypatch.setattr("sys.argv", ["score_game", "--away", "BOS", "--home", "LAL"])

        assert score_game.main() == 2
        assert "Invalid factor weights" in capsys.readouterr().err
