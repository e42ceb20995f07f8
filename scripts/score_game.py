"""
Score one NBA game with the factor engine and print the breakdown.

Usage:
    python scripts/score_game.py --away BOS --home LAL --bet-type TOTAL
    python scripts/score_game.py --away "Boston Celtics" --home Lakers --bet-type SPREAD \\
        --spread-line 3.5 --weights net_rating=40,turnover_diff=30,rest_advantage=10
"""
import argparse
import asyncio
import json
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables before src.config reads them
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd

from src.factors.models import RunCtx
from src.pipeline.orchestrator import compute_factors
from src.utils.logging import get_logger

logger = get_logger(__name__)

BET_TYPES = ("TOTAL", "SPREAD", "MONEYLINE", "SPREAD/MONEYLINE")


def parse_weights(text: Optional[str]) -> Optional[Dict[str, float]]:
    """Parse "key=pct,key=pct" into a weight mapping."""
    if not text:
        return None
    weights: Dict[str, float] = {}
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {item!r}")
        try:
            weights[key.strip()] = float(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Weight for {key.strip()!r} is not a number: {value!r}") from None
    return weights


def parse_date(text: Optional[str]) -> Optional[date]:
    if not text:
        return None
    if text.lower() == "today":
        return date.today()
    return datetime.strptime(text, "%Y-%m-%d").date()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score an NBA game with the SHIVA factor engine")
    parser.add_argument("--away", required=True, help="Away team (abbreviation or name)")
    parser.add_argument("--home", required=True, help="Home team (abbreviation or name)")
    parser.add_argument("--bet-type", default="TOTAL", choices=BET_TYPES, type=str.upper)
    parser.add_argument("--game-id", help="Game identifier (defaults to date-away-home)")
    parser.add_argument("--date", help="Game date (YYYY-MM-DD or 'today')")
    parser.add_argument("--spread-line", type=float, help="Away team spread, e.g. 3.5 or -2")
    parser.add_argument("--market-total", type=float, help="Posted game total")
    parser.add_argument("--weights", type=parse_weights, help="Factor weights, e.g. pace_index=30,off_form=20")
    return parser


async def run(args: argparse.Namespace) -> int:
    game_date = parse_date(args.date)
    game_id = args.game_id or f"{(game_date or date.today()).strftime('%Y%m%d')}-{args.away}-{args.home}"
    ctx = RunCtx(
        game_id=game_id,
        away=args.away,
        home=args.home,
        bet_type=args.bet_type,
        game_date=game_date,
        spread_line=args.spread_line,
        market_total=args.market_total,
        factor_weights=args.weights,
    )
    breakdown = await compute_factors(ctx)

    with pd.option_context("display.max_colwidth", 80, "display.width", 200):
        print(breakdown.to_frame().to_string(index=False))

    summary = {
        "game_id": ctx.game_id,
        "factor_version": breakdown.factor_version,
        "baseline_avg": breakdown.baseline_avg,
        "side_totals": breakdown.side_totals,
        "edge_raw": round(breakdown.edge_raw, 4),
        "edge_pct": round(breakdown.edge_pct, 4),
        "confidence": round(breakdown.confidence, 3),
        "fallbacks": breakdown.debug.get("fallbacks", {}),
    }
    print(json.dumps(summary, indent=2, default=str))
    return 0


def main() -> int:
    args = build_parser().parse_args()
    try:
        return asyncio.run(run(args))
    except ValueError as e:
        # Invalid weights or unsupported context
        logger.error(str(e))
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
