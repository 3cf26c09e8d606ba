"""Bet settlement: decide whether a ranked pick list hits each box bet type.

Every bet is treated as a box over the first K picks, so matching is a
subset test between a pool entry's winning combination and the pick set.
Hits are purely combinatorial; the dividend text only drives revenue.
"""

import logging
from dataclasses import dataclass, field

from hkrace.results.parser import find_pool, parse_combination, parse_dividend, pool_entries

logger = logging.getLogger(__name__)

# Cost per race of boxing the top-K picks at $10 a combination
COST_WIN = 20      # top 2, 2 bets
COST_Q = 30        # top 3 box, 3 combinations
COST_T = 240       # top 4 box, 24 permutations
COST_F4 = 3600     # top 6 box, 360 permutations

BOX_DEPTH = 6


@dataclass(frozen=True)
class BetSpec:
    """How one bet type is matched: pool, combination size, pick depth and cost."""

    key: str
    pools: tuple[str, ...]  # pool kinds in preference order
    members: int
    depth: int
    cost: float


BET_SPECS: dict[str, BetSpec] = {
    "win": BetSpec("win", ("win",), 1, 2, COST_WIN),
    "q": BetSpec("q", ("quinella",), 2, 3, COST_Q),
    "t": BetSpec("t", ("tierce",), 3, 4, COST_T),
    # First 4 pays on any order so it is the box analogue; Quartet only as fallback
    "f4": BetSpec("f4", ("first4", "quartet"), 4, 6, COST_F4),
}

BET_KEYS = tuple(BET_SPECS)


@dataclass
class BetResult:
    hit: int = 0
    revenue: float = 0.0
    cost: float = 0.0


@dataclass
class BetEvaluation:
    """Settlement of one pick list against one race's pools."""

    win: BetResult = field(default_factory=BetResult)
    q: BetResult = field(default_factory=BetResult)
    t: BetResult = field(default_factory=BetResult)
    f4: BetResult = field(default_factory=BetResult)
    win6: BetResult = field(default_factory=BetResult)
    q6: BetResult = field(default_factory=BetResult)
    t6: BetResult = field(default_factory=BetResult)
    f46: BetResult = field(default_factory=BetResult)

    def top(self, key: str) -> BetResult:
        return getattr(self, key)

    def box6(self, key: str) -> BetResult:
        return getattr(self, f"{key}6")


def _select_pool(pools: list[dict], spec: BetSpec):
    for kind in spec.pools:
        pool = find_pool(pools, kind)
        if pool is not None:
            return pool
    return None


def _winning_combos(pools: list[dict], spec: BetSpec) -> list[tuple[frozenset[int], float]]:
    """Winning combinations (as sets of the first ``members`` horses) with their dividends."""
    combos = []
    for entry in pool_entries(_select_pool(pools, spec)):
        combo = parse_combination(entry.get("shengchuzuhe"))
        if combo is None or len(combo) < spec.members:
            logger.debug("Skipping %s entry %r", spec.key, entry.get("shengchuzuhe"))
            continue
        combos.append((frozenset(combo[: spec.members]), parse_dividend(entry.get("paicai"))))
    return combos


def _settle(combos, candidates: set[int], cost: float, with_revenue: bool) -> BetResult:
    result = BetResult(cost=cost)
    for horses, dividend in combos:
        if horses <= candidates:
            result.hit = 1
            if with_revenue:
                result.revenue += dividend
    return result


def evaluate(pools: list[dict] | None, picks: list[int]) -> BetEvaluation:
    """Settle ``picks`` (best first) against a race's dividend pools.

    Top-K results carry revenue (sum of all matching dividends, so dead heats
    pay twice) and the fixed cost. Box-6 results are hit-only.
    """
    pools = pools or []
    box = set(picks[:BOX_DEPTH])
    evaluation = BetEvaluation()
    for key, spec in BET_SPECS.items():
        combos = _winning_combos(pools, spec)
        top = set(picks[: spec.depth])
        setattr(evaluation, key, _settle(combos, top, spec.cost, with_revenue=True))
        setattr(evaluation, f"{key}6", _settle(combos, box, 0.0, with_revenue=False))
    return evaluation
