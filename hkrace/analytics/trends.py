"""Per-race views: market trend movement and how the pundit's list fared."""

from hkrace.analytics.repository import RaceData
from hkrace.results.parser import find_pool, parse_combination, parse_results, pool_entries

MISSING_RANK = 99
BIG_MOVER_THRESHOLD = 5


def finishing_order(pools: list) -> list[int]:
    """Best-known finishing order: winner, then First 4 / Tierce order, else placings."""
    result = parse_results(pools)
    if result.winner is None:
        return []

    for kind, size in (("first4", 4), ("quartet", 4), ("tierce", 3)):
        entries = pool_entries(find_pool(pools, kind))
        if entries:
            combo = parse_combination(entries[0].get("shengchuzuhe"))
            if combo and len(combo) >= size and combo[0] == result.winner:
                return combo[:size]

    return [result.winner] + [h for h in result.placings if h != result.winner]


def _trend_keys(trends: dict) -> tuple[str, str] | None:
    keys = sorted((k for k in trends if k.isdigit()), key=int, reverse=True)
    if not keys:
        return None
    start = "30" if "30" in trends else keys[0]
    end = "0" if "0" in trends else keys[-1]
    return start, end


def analyse_race_trend(race: RaceData) -> list[dict]:
    """Rank at 30' vs at post for every horse in the race's trend snapshots.

    Sorted by final market rank. ``result`` is filled once the race has a Win result.
    """
    keys = _trend_keys(race.trends)
    if keys is None:
        return []
    start_ranks = race.trends[keys[0]]
    end_ranks = race.trends[keys[1]]

    order = finishing_order(race.pools) if race.has_payouts else []
    win_dividend = parse_results(race.pools).win_dividend if order else 0.0

    horses = list(dict.fromkeys(start_ranks + end_ranks))
    analysis = []
    for horse in horses:
        rank_start = start_ranks.index(horse) + 1 if horse in start_ranks else MISSING_RANK
        rank_end = end_ranks.index(horse) + 1 if horse in end_ranks else MISSING_RANK
        both = rank_start != MISSING_RANK and rank_end != MISSING_RANK
        change = rank_start - rank_end if both else 0

        result = None
        if order:
            place = order.index(horse) + 1 if horse in order else 0
            result = {"place": place, "win_dividend": win_dividend if place == 1 else 0}

        analysis.append({
            "horse_no": horse,
            "rank_start": rank_start,
            "rank_end": rank_end,
            "rank_change": change,
            "is_big_mover": change >= BIG_MOVER_THRESHOLD,
            "is_steady_favorite": rank_start <= 3 and rank_end <= 3,
            "result": result,
        })

    return sorted(analysis, key=lambda a: (a["rank_end"], a["horse_no"]))


def pundit_performance(race: RaceData) -> dict | None:
    """Where the winner sat in the pundit's list and how many of the first four it named."""
    if not race.pundit:
        return None
    order = finishing_order(race.pools)
    if not order:
        return None
    winner = order[0]
    top4 = set(order[:4])
    return {
        "race_id": race.id,
        "picks": list(race.pundit),
        "winner": winner,
        "winner_picked": winner in race.pundit,
        "winner_pick_rank": race.pundit.index(winner) + 1 if winner in race.pundit else 0,
        "top4_picked_count": sum(1 for h in race.pundit if h in top4),
    }
