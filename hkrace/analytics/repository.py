"""Load races with their payouts, trends and picks as immutable snapshots.

The statistics, parlay and trend modules only ever see ``RaceData``; this is
the single place they touch the database.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hkrace.models.race import PayoutRecord, Race, parse_race_date

logger = logging.getLogger(__name__)


def as_horse_numbers(values) -> list[int]:
    """Coerce a stored ranking (ints or numeric strings) to ints, dropping junk."""
    numbers = []
    for v in values or []:
        try:
            numbers.append(int(str(v).strip()))
        except (TypeError, ValueError):
            continue
    return numbers


@dataclass(frozen=True)
class RaceData:
    """Read-only view of one race and every pick source recorded for it."""

    id: str
    date: dt.date
    venue: str
    race_no: int
    pools: list = field(default_factory=list)
    pundit: list[int] = field(default_factory=list)
    trends: dict[str, list[int]] = field(default_factory=dict)
    strategies: dict[str, list[int]] = field(default_factory=dict)
    start_time: Optional[dt.datetime] = None

    @property
    def has_payouts(self) -> bool:
        return bool(self.pools)


def race_to_data(race: Race) -> RaceData:
    """Snapshot an ORM race (relationships must be loaded)."""
    pools = race.payouts[0].pools if race.payouts else []
    pundit = as_horse_numbers(race.pundit_picks[0].recommendations) if race.pundit_picks else []
    trends = {}
    if race.trends:
        trends = {str(k): as_horse_numbers(v) for k, v in (race.trends[0].trends or {}).items()}
    strategies = {sp.strategy_id: as_horse_numbers(sp.picks) for sp in race.strategy_picks}
    return RaceData(
        id=race.id,
        date=race.date,
        venue=race.venue,
        race_no=race.race_no,
        pools=list(pools or []),
        pundit=pundit,
        trends=trends,
        strategies=strategies,
        start_time=race.start_time,
    )


def _with_sources(stmt):
    # populate_existing so picks written earlier in the session are seen
    return stmt.options(
        selectinload(Race.payouts),
        selectinload(Race.trends),
        selectinload(Race.pundit_picks),
        selectinload(Race.strategy_picks),
    ).execution_options(populate_existing=True)


async def load_races(
    db: AsyncSession,
    start_date=None,
    end_date=None,
    require_payouts: bool = True,
) -> list[RaceData]:
    """Load races in an inclusive date range, ordered by date then race number.

    Dates may be ``YYYY/MM/DD`` or ISO strings; None leaves that end open.
    """
    stmt = select(Race)
    if start_date:
        stmt = stmt.where(Race.date >= parse_race_date(start_date))
    if end_date:
        stmt = stmt.where(Race.date <= parse_race_date(end_date))
    if require_payouts:
        stmt = stmt.where(Race.payouts.any(PayoutRecord.id.isnot(None)))
    stmt = _with_sources(stmt).order_by(Race.date, Race.race_no)

    result = await db.execute(stmt)
    races = [race_to_data(r) for r in result.scalars().all()]
    logger.debug("Loaded %d races (%s to %s)", len(races), start_date, end_date)
    return races


async def load_race(db: AsyncSession, race_id: str) -> Optional[RaceData]:
    """Load a single race snapshot, or None if it doesn't exist."""
    result = await db.execute(_with_sources(select(Race).where(Race.id == race_id)))
    race = result.scalar_one_or_none()
    return race_to_data(race) if race else None
