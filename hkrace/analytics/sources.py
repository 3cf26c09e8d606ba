"""Pick sources: where a ranked list of horse numbers for a race comes from.

Source names used by the API and CLI (``pundit``, ``trend-30``,
``strategy-<id>``, ``composite``) are parsed once into descriptors, then
resolved against each race.
"""

from __future__ import annotations

from dataclasses import dataclass

from hkrace.analytics.composite import rank
from hkrace.analytics.repository import RaceData

# Minutes-before-start snapshots blended into the default composite.
# The at-post "0" snapshot is evaluated on its own, not blended.
COMPOSITE_TREND_OFFSETS = ("30", "15", "10", "5")


class UnknownSourceError(ValueError):
    """Raised for a source name that matches no known pick source."""


@dataclass(frozen=True)
class PunditSource:
    @property
    def name(self) -> str:
        return "pundit"


@dataclass(frozen=True)
class TrendSource:
    offset: str

    @property
    def name(self) -> str:
        return f"trend-{self.offset}"


@dataclass(frozen=True)
class StrategySource:
    strategy_id: str

    @property
    def name(self) -> str:
        return f"strategy-{self.strategy_id}"


@dataclass(frozen=True)
class CompositeSource:
    sources: tuple[PickSource, ...]

    @property
    def name(self) -> str:
        return "composite(" + ",".join(s.name for s in self.sources) + ")"


PickSource = PunditSource | TrendSource | StrategySource | CompositeSource

DEFAULT_COMPOSITE = CompositeSource(
    (PunditSource(),) + tuple(TrendSource(k) for k in COMPOSITE_TREND_OFFSETS)
)


def parse_source(name: str) -> PickSource:
    """Parse a source name into a descriptor.

    >>> parse_source("trend-30")
    TrendSource(offset='30')
    """
    raw = (name or "").strip()
    if raw == "pundit":
        return PunditSource()
    if raw == "composite":
        return DEFAULT_COMPOSITE
    if raw.startswith("trend-") and raw[len("trend-"):]:
        return TrendSource(raw[len("trend-"):])
    if raw.startswith("strategy-") and raw[len("strategy-"):]:
        return StrategySource(raw[len("strategy-"):])
    raise UnknownSourceError(f"Unknown pick source: {name!r}")


def composite_of(names: list[str]) -> CompositeSource:
    """Build a composite from source names, e.g. ``["pundit", "trend-15", "strategy-ab12"]``."""
    if not names:
        raise UnknownSourceError("A composite needs at least one source")
    return CompositeSource(tuple(parse_source(n) for n in names))


def resolve_picks(race: RaceData, source: PickSource) -> list[int]:
    """Ranked horse numbers the source gives for this race (empty if none)."""
    if isinstance(source, PunditSource):
        return list(race.pundit)
    if isinstance(source, TrendSource):
        return list(race.trends.get(source.offset, []))
    if isinstance(source, StrategySource):
        return list(race.strategies.get(source.strategy_id, []))
    if isinstance(source, CompositeSource):
        return rank([resolve_picks(race, s) for s in source.sources])
    raise TypeError(f"Not a pick source: {source!r}")
