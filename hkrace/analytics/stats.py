"""Hit-rate, revenue and ROI statistics for pick sources across many races.

Each race is settled with ``evaluate()`` and tallied per bet type. Races
without a Win result or without picks from the source are left out of the
denominator entirely; they are not misses.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.analytics.market import calculate_fund_flow, calculate_odds_drops, load_snapshots
from hkrace.analytics.repository import RaceData, load_race, load_races
from hkrace.analytics.sources import (
    DEFAULT_COMPOSITE,
    PickSource,
    PunditSource,
    StrategySource,
    TrendSource,
    composite_of,
    parse_source,
    resolve_picks,
)
from hkrace.analytics.trends import analyse_race_trend, pundit_performance
from hkrace.results.parser import find_pool, parse_combination, parse_results, pool_entries
from hkrace.results.settlement import BET_KEYS, BetEvaluation, evaluate

logger = logging.getLogger(__name__)

# Unit stake for the pundit top-pick yield figure
SYSTEM_STAKE = 10


def _pct(numerator: float, denominator: float) -> float:
    return round(numerator / denominator * 100, 1) if denominator > 0 else 0


def bet_metrics(hits: int, revenue: float, cost: float, race_count: int) -> dict:
    """Hits, hit rate, revenue, cost, net and ROI for one bet type."""
    net = revenue - cost
    return {
        "hits": hits,
        "rate": _pct(hits, race_count),
        "revenue": round(revenue, 2),
        "cost": round(cost, 2),
        "net": round(net, 2),
        "roi": _pct(net, cost),
    }


@dataclass
class _Tally:
    hits: int = 0
    revenue: float = 0.0
    cost: float = 0.0
    box_hits: int = 0


@dataclass
class StatsAccumulator:
    """Running totals for one pick source over a set of races."""

    race_count: int = 0
    bets: dict[str, _Tally] = field(default_factory=lambda: {k: _Tally() for k in BET_KEYS})

    def add(self, evaluation: BetEvaluation) -> None:
        self.race_count += 1
        for key in BET_KEYS:
            top = evaluation.top(key)
            tally = self.bets[key]
            tally.hits += top.hit
            tally.revenue += top.revenue
            tally.cost += top.cost
            tally.box_hits += evaluation.box6(key).hit

    def to_dict(self) -> dict:
        data = {"race_count": self.race_count}
        for key, t in self.bets.items():
            data[key] = bet_metrics(t.hits, t.revenue, t.cost, self.race_count)
        data["box6"] = {
            key: {"hits": t.box_hits, "rate": _pct(t.box_hits, self.race_count)}
            for key, t in self.bets.items()
        }
        return data


def _has_result(race: RaceData) -> bool:
    if not race.has_payouts:
        return False
    if parse_results(race.pools).winner is None:
        logger.debug("Skipping %s: no Win result", race.id)
        return False
    return True


def _accumulate(acc: StatsAccumulator, race: RaceData, source: PickSource) -> None:
    picks = resolve_picks(race, source)
    if not picks:
        return
    acc.add(evaluate(race.pools, picks))


def tally_races(races: list[RaceData], source: PickSource) -> dict:
    """Aggregate statistics for one source over the given races."""
    acc = StatsAccumulator()
    for race in races:
        if _has_result(race):
            _accumulate(acc, race, source)
    return acc.to_dict()


def daily_breakdown(races: list[RaceData], source: PickSource) -> list[dict]:
    """Per race-day statistics, newest day first. Days with no evaluable race are omitted."""
    by_date: dict = defaultdict(StatsAccumulator)
    for race in races:
        if _has_result(race):
            _accumulate(by_date[race.date], race, source)

    rows = []
    for day in sorted(by_date, reverse=True):
        acc = by_date[day]
        if acc.race_count == 0:
            continue
        rows.append({"date": day.isoformat(), **acc.to_dict()})
    return rows


def _offset_key(k: str):
    return (0, -int(k)) if k.isdigit() else (1, k)


def hit_rate_breakdown(races: list[RaceData]) -> dict:
    """Pundit statistics plus one block per trend snapshot offset seen in the races."""
    pundit = StatsAccumulator()
    trends: dict[str, StatsAccumulator] = defaultdict(StatsAccumulator)
    total = 0
    for race in races:
        if not _has_result(race):
            continue
        total += 1
        _accumulate(pundit, race, PunditSource())
        for offset in race.trends:
            _accumulate(trends[offset], race, TrendSource(offset))

    return {
        "total_races": total,
        "pundit": pundit.to_dict(),
        "trends": {k: trends[k].to_dict() for k in sorted(trends, key=_offset_key) if trends[k].race_count},
    }


def _quinella_sets(pools: list) -> list[frozenset[int]]:
    combos = []
    for entry in pool_entries(find_pool(pools, "quinella")):
        combo = parse_combination(entry.get("shengchuzuhe"))
        if combo and len(combo) >= 2:
            combos.append(frozenset(combo[:2]))
    return combos


def system_accuracy(races: list[RaceData]) -> dict:
    """Pundit accuracy: top-1 win/place, top-2 quinella, and top-1 win yield."""
    stats = {
        "total_races": 0,
        "top1_win_count": 0,
        "top1_place_count": 0,
        "top2_q_count": 0,
        "top1_win_yield": 0.0,
        "roi": 0.0,
    }
    for race in races:
        if not race.pundit or not race.has_payouts:
            continue
        result = parse_results(race.pools)
        if result.winner is None:
            continue

        stats["total_races"] += 1
        top1 = race.pundit[0]
        if top1 == result.winner:
            stats["top1_win_count"] += 1
            stats["top1_win_yield"] += result.win_dividend - SYSTEM_STAKE
        else:
            stats["top1_win_yield"] -= SYSTEM_STAKE

        if top1 in result.placings:
            stats["top1_place_count"] += 1

        if len(race.pundit) >= 2 and frozenset(race.pundit[:2]) in _quinella_sets(race.pools):
            stats["top2_q_count"] += 1

    staked = stats["total_races"] * SYSTEM_STAKE
    stats["top1_win_yield"] = round(stats["top1_win_yield"], 2)
    stats["roi"] = _pct(stats["top1_win_yield"], staked)
    stats["top1_win_rate"] = _pct(stats["top1_win_count"], stats["total_races"])
    stats["top1_place_rate"] = _pct(stats["top1_place_count"], stats["total_races"])
    stats["top2_q_rate"] = _pct(stats["top2_q_count"], stats["total_races"])
    return stats


def race_breakdown(race: RaceData) -> dict:
    """Settlement of every pick source recorded for one race."""
    result = parse_results(race.pools)
    sources: list[PickSource] = [PunditSource()]
    sources += [TrendSource(k) for k in sorted(race.trends, key=_offset_key)]
    sources += [StrategySource(s) for s in sorted(race.strategies)]
    sources.append(DEFAULT_COMPOSITE)

    evaluations = {}
    for source in sources:
        picks = resolve_picks(race, source)
        if not picks:
            continue
        evaluations[source.name] = {"picks": picks, **asdict(evaluate(race.pools, picks))}

    return {
        "race_id": race.id,
        "date": race.date.isoformat(),
        "venue": race.venue,
        "race_no": race.race_no,
        "result": {
            "winner": result.winner,
            "placings": result.placings,
            "win_dividend": result.win_dividend,
        },
        "sources": evaluations,
        "trend_analysis": analyse_race_trend(race),
        "pundit_performance": pundit_performance(race),
    }


# ──────────────────────────────────────────────
# Async entry points (load from the store, then compute)
# ──────────────────────────────────────────────

def _as_source(source) -> PickSource:
    return parse_source(source) if isinstance(source, str) else source


async def compute_stats(
    db: AsyncSession, source, start_date=None, end_date=None
) -> dict:
    """Statistics for one pick source (name or descriptor) over a date range."""
    pick_source = _as_source(source)
    races = await load_races(db, start_date, end_date)
    stats = tally_races(races, pick_source)
    logger.info(
        f"Stats for {pick_source.name}: {stats['race_count']}/{len(races)} races evaluated"
    )
    return {"source": pick_source.name, **stats}


async def get_daily_stats(db: AsyncSession, start_date, end_date, source) -> list[dict]:
    """Per-day statistics for charting."""
    races = await load_races(db, start_date, end_date)
    return daily_breakdown(races, _as_source(source))


async def get_custom_composite_stats(
    db: AsyncSession, source_names: list[str], start_date=None, end_date=None
) -> dict:
    """Statistics for a user-chosen blend of sources merged by the composite ranker."""
    return await compute_stats(db, composite_of(source_names), start_date, end_date)


async def get_system_stats(db: AsyncSession, start_date=None, end_date=None) -> dict:
    """Pundit top-pick accuracy summary."""
    races = await load_races(db, start_date, end_date)
    return system_accuracy(races)


async def get_hit_rate_stats(db: AsyncSession, start_date=None, end_date=None) -> dict:
    """Pundit and per-trend-offset statistics side by side."""
    races = await load_races(db, start_date, end_date)
    return hit_rate_breakdown(races)


async def get_race_stats(db: AsyncSession, race_id: str) -> dict:
    """Per-source settlement, trend movement and market signals for one race."""
    race = await load_race(db, race_id)
    if race is None:
        raise LookupError(f"Race not found: {race_id}")
    snapshots, start_time = await load_snapshots(db, race_id)
    return {
        **race_breakdown(race),
        "odds_drops": calculate_odds_drops(snapshots, start_time),
        "fund_flow": calculate_fund_flow(snapshots, start_time),
    }
