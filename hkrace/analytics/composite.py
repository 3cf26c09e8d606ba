"""Composite ranking: merge several ranked pick lists with a fixed point table."""

from collections import defaultdict

# Points by rank position 0..5; ranks 1-2 tie, as do ranks 5-6
RANK_POINTS = (6, 6, 5, 4, 2, 2)


def composite_points(sources: list[list[int]], per_source_limit: int = 6) -> dict[int, int]:
    """Accumulated points per horse across every source's top picks."""
    limit = min(per_source_limit, len(RANK_POINTS))
    points: dict[int, int] = defaultdict(int)
    for picks in sources:
        for idx, horse in enumerate((picks or [])[:limit]):
            points[horse] += RANK_POINTS[idx]
    return dict(points)


def rank(sources: list[list[int]], per_source_limit: int = 6) -> list[int]:
    """Horse numbers by total points, best first.

    Equal totals are ordered by lower horse number. Horses outside every
    source's top picks are not returned.
    """
    points = composite_points(sources, per_source_limit)
    return [h for h, _ in sorted(points.items(), key=lambda kv: (-kv[1], kv[0]))]
