"""Parlay simulation: chain a race-day's first N races into one all-up Win bet.

Each chain starts with a $20 stake on the first leg. A winning leg carries
the Win dividend forward as the next stake; a losing leg ends the chain.
A failed chain always loses the $20 unit, however far it got.
"""

import logging
from collections import defaultdict
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.analytics.repository import RaceData, load_races
from hkrace.analytics.sources import PickSource, parse_source, resolve_picks
from hkrace.results.parser import parse_results

logger = logging.getLogger(__name__)

UNIT_STAKE = 20


class ChainState(str, Enum):
    ACTIVE = "active"
    LEG_HIT = "leg_hit"
    LEG_MISS = "leg_miss"
    CHAIN_WIN = "chain_win"


def _run_leg(race: RaceData, source: PickSource, pick_top_k: int) -> dict:
    """Evaluate one leg. Missing results or picks make the leg a miss."""
    result = parse_results(race.pools)
    picks = resolve_picks(race, source)
    top1 = picks[0] if picks else None
    top2 = picks[1] if len(picks) > 1 else None

    leg_hit = False
    if result.winner is not None and picks:
        leg_hit = result.winner == top1 or (pick_top_k == 2 and result.winner == top2)

    return {
        "race_id": race.id,
        "race_no": race.race_no,
        "winner": result.winner,
        "top1": top1,
        "top2": top2,
        "dividend": result.win_dividend,
        "leg_hit": leg_hit,
        "state": (ChainState.LEG_HIT if leg_hit else ChainState.LEG_MISS).value,
    }


def run_chain(chain_races: list[RaceData], source: PickSource, pick_top_k: int) -> dict:
    """Run one chain leg by leg and return its path, final state and net."""
    state = ChainState.ACTIVE
    stake = float(UNIT_STAKE)
    path = []
    for race in chain_races:
        leg = _run_leg(race, source, pick_top_k)
        path.append(leg)
        if not leg["leg_hit"]:
            state = ChainState.LEG_MISS
            stake = 0.0
            break
        stake = leg["dividend"]
    else:
        state = ChainState.CHAIN_WIN

    hit = state is ChainState.CHAIN_WIN
    net = stake - UNIT_STAKE if hit else -UNIT_STAKE
    return {"path": path, "hit": hit, "state": state.value, "final_stake": stake, "net": net}


def simulate_chains(
    races: list[RaceData], source: PickSource, pick_top_k: int = 1, legs: int = 2
) -> dict:
    """Simulate one chain per race-day over the first ``legs`` races with payout data.

    Days with fewer than ``legs`` such races are excluded from every total.
    """
    if pick_top_k not in (1, 2):
        raise ValueError(f"pick_top_k must be 1 or 2, got {pick_top_k}")
    if legs < 1:
        raise ValueError(f"legs must be at least 1, got {legs}")

    by_date: dict = defaultdict(list)
    for race in races:
        if race.has_payouts:
            by_date[race.date].append(race)

    total_chains = 0
    hit_chains = 0
    net_profit = 0.0
    details = []

    for day in sorted(by_date):
        day_races = sorted(by_date[day], key=lambda r: r.race_no)
        if len(day_races) < legs:
            logger.debug("Skipping %s: %d races < %d legs", day, len(day_races), legs)
            continue

        chain = run_chain(day_races[:legs], source, pick_top_k)
        total_chains += 1
        if chain["hit"]:
            hit_chains += 1
        net_profit += chain["net"]
        details.append({"date": day.isoformat(), **chain})

    total_cost = total_chains * UNIT_STAKE
    roi_pct = round(net_profit / total_cost * 100, 1) if total_cost > 0 else 0
    return {
        "total_chains": total_chains,
        "hit_chains": hit_chains,
        "hit_rate": round(hit_chains / total_chains * 100, 1) if total_chains else 0,
        "roi_pct": roi_pct,
        "net_profit": round(net_profit, 2),
        "details": details,
    }


async def simulate_parlay(
    db: AsyncSession,
    start_date,
    end_date,
    source="pundit",
    pick_top_k: int = 1,
    legs: int = 2,
) -> dict:
    """Load races in the date range and simulate one chain per race-day."""
    pick_source = parse_source(source) if isinstance(source, str) else source
    races = await load_races(db, start_date, end_date)
    summary = simulate_chains(races, pick_source, pick_top_k, legs)
    logger.info(
        f"Parlay {pick_source.name} top{pick_top_k} x{legs}: "
        f"{summary['hit_chains']}/{summary['total_chains']} chains, ROI {summary['roi_pct']}%"
    )
    return summary
