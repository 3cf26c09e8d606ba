"""Print pick-source statistics (and optionally a parlay simulation) for a date range.

Usage:
    python scripts/run_analysis.py --start 2026-01-01 --end 2026-01-31
    python scripts/run_analysis.py --start 2026/01/01 --end 2026/01/31 --source trend-30
    python scripts/run_analysis.py --start 2026-01-01 --end 2026-01-31 --source composite --parlay-legs 3
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from hkrace.analytics.parlay import simulate_parlay
from hkrace.analytics.stats import compute_stats, get_system_stats
from hkrace.models.database import async_session, init_db

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

BET_LABELS = {"win": "Win", "q": "Quinella", "t": "Tierce", "f4": "First 4"}


def print_stats(stats: dict) -> None:
    print(f"\n{'='*60}")
    print(f"SOURCE: {stats['source']}  ({stats['race_count']} races)")
    print(f"{'='*60}")
    print(f"  {'Bet':<10}{'Hits':>6}{'Rate%':>8}{'Revenue':>12}{'Cost':>10}{'Net':>12}{'ROI%':>8}")
    for key, label in BET_LABELS.items():
        m = stats[key]
        print(
            f"  {label:<10}{m['hits']:>6}{m['rate']:>8}{m['revenue']:>12.2f}"
            f"{m['cost']:>10.2f}{m['net']:>12.2f}{m['roi']:>8}"
        )
    box = ", ".join(f"{BET_LABELS[k]} {v['hits']} ({v['rate']}%)" for k, v in stats["box6"].items())
    print(f"  Box-6 hits: {box}")


async def run(args) -> None:
    await init_db()

    async with async_session() as db:
        stats = await compute_stats(db, args.source, args.start, args.end)
        system = await get_system_stats(db, args.start, args.end)
        parlay = None
        if args.parlay_legs:
            parlay = await simulate_parlay(
                db, args.start, args.end, args.source, args.pick_top_k, args.parlay_legs
            )

    if args.json:
        print(json.dumps({"stats": stats, "system": system, "parlay": parlay}, indent=2, ensure_ascii=False))
        return

    print_stats(stats)
    print(
        f"\n  Pundit top pick: win {system['top1_win_rate']}%  place {system['top1_place_rate']}%  "
        f"top-2 Q {system['top2_q_rate']}%  yield {system['top1_win_yield']} (ROI {system['roi']}%)"
    )
    if parlay:
        print(
            f"\n  Parlay x{args.parlay_legs} (top {args.pick_top_k}): "
            f"{parlay['hit_chains']}/{parlay['total_chains']} chains hit, "
            f"net {parlay['net_profit']}, ROI {parlay['roi_pct']}%"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Pick-source statistics over a date range")
    parser.add_argument("--start", required=True, help="First race date (YYYY-MM-DD or YYYY/MM/DD)")
    parser.add_argument("--end", required=True, help="Last race date, inclusive")
    parser.add_argument("--source", default="pundit", help="pundit, composite, trend-<min> or strategy-<id>")
    parser.add_argument("--parlay-legs", type=int, default=0, help="Also simulate an N-leg parlay")
    parser.add_argument("--pick-top-k", type=int, default=1, choices=(1, 2))
    parser.add_argument("--json", action="store_true", help="Print raw JSON")
    args = parser.parse_args()

    try:
        asyncio.run(run(args))
    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)


if __name__ == "__main__":
    main()
