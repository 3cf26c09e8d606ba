"""Raw scoring inputs per runner, derived from race history and connection stats.

Everything here is None-tolerant: a runner with no history still gets a
``HorseFactorStats`` and the engine falls back to each factor's default.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.models.horse import ConnectionStat, RaceEntry, RacePerformance, Trackwork
from hkrace.models.race import Race

logger = logging.getLogger(__name__)

RECENT_STARTS = 5
TRACKWORK_LOOKBACK_DAYS = 21
FAST_WORK_TYPES = ("快操", "倒快", "試閘")

_TIME_RE = re.compile(r"^(?:(\d+)[:.])?(\d{1,2}\.\d{1,2})$")


@dataclass
class HorseFactorStats:
    """Raw inputs for one runner. None means "no data"."""

    horse_no: int
    horse_name: str = ""
    horse_id: Optional[str] = None
    # Rank-based metrics, lower is better
    best_time: Optional[float] = None  # seconds, same venue and distance
    avg_early_position: Optional[float] = None
    last_sectional: Optional[float] = None
    # Percentages
    jockey_win_rate: Optional[float] = None
    jockey_place_rate: Optional[float] = None
    trainer_win_rate: Optional[float] = None
    trainer_place_rate: Optional[float] = None
    # Bucketed
    rating_change: Optional[int] = None  # today's rating minus last start's
    body_weight_diff: Optional[int] = None  # lbs from last winning body weight
    age: Optional[int] = None
    rest_days: Optional[int] = None
    fast_works: int = 0
    total_works: int = 0
    carried_weight: Optional[int] = None


def parse_finish_time(text: Optional[str]) -> Optional[float]:
    """``"1:09.45"`` / ``"1.09.45"`` / ``"57.80"`` to seconds; None when unparseable."""
    if not text:
        return None
    m = _TIME_RE.match(text.strip())
    if not m:
        return None
    minutes = int(m.group(1) or 0)
    return round(minutes * 60 + float(m.group(2)), 2)


def early_position(running_position: Optional[str]) -> Optional[int]:
    """First call from a running-position string such as ``"3 3 2 1"``."""
    calls = (running_position or "").split()
    if not calls:
        return None
    first = calls[0]
    return int(first) if first.isascii() and first.isdigit() else None


def finishing_place(place: Optional[str]) -> Optional[int]:
    """Numeric finishing place, ignoring dead-heat marks; None for WV/PU/DNF."""
    if not place:
        return None
    digits = re.match(r"\d+", place.strip())
    return int(digits.group()) if digits else None


def build_factor_stats(
    entry: RaceEntry,
    performances: list[RacePerformance],
    trackworks: list[Trackwork],
    race_date: date,
    venue: Optional[str] = None,
    distance: Optional[int] = None,
    jockey: Optional[ConnectionStat] = None,
    trainer: Optional[ConnectionStat] = None,
) -> HorseFactorStats:
    """Derive one runner's factor inputs from its history before ``race_date``."""
    history = sorted(
        (p for p in performances if p.race_date < race_date),
        key=lambda p: p.race_date,
        reverse=True,
    )

    times = [
        parse_finish_time(p.finish_time)
        for p in history
        if p.distance == distance and (venue is None or p.venue == venue)
    ]
    times = [t for t in times if t is not None]

    positions = [early_position(p.running_position) for p in history[:RECENT_STARTS]]
    positions = [p for p in positions if p is not None]

    sectional = next((p.last_sectional for p in history if p.last_sectional), None)

    rating_change = None
    if entry.rating is not None:
        last_rated = next((p.rating for p in history if p.rating is not None), None)
        if last_rated is not None:
            rating_change = entry.rating - last_rated

    body_weight_diff = None
    if entry.body_weight:
        reference = next(
            (p.body_weight for p in history if finishing_place(p.place) == 1 and p.body_weight),
            None,
        ) or next((p.body_weight for p in history if p.body_weight), None)
        if reference:
            body_weight_diff = entry.body_weight - reference

    window_start = race_date - timedelta(days=TRACKWORK_LOOKBACK_DAYS)
    recent_works = [w for w in trackworks if window_start <= w.date < race_date]

    return HorseFactorStats(
        horse_no=entry.horse_no,
        horse_name=entry.horse_name,
        horse_id=entry.horse_id,
        best_time=min(times) if times else None,
        avg_early_position=round(sum(positions) / len(positions), 2) if positions else None,
        last_sectional=sectional,
        jockey_win_rate=jockey.win_rate if jockey else None,
        jockey_place_rate=jockey.place_rate if jockey else None,
        trainer_win_rate=trainer.win_rate if trainer else None,
        trainer_place_rate=trainer.place_rate if trainer else None,
        rating_change=rating_change,
        body_weight_diff=body_weight_diff,
        age=entry.age,
        rest_days=(race_date - history[0].race_date).days if history else None,
        fast_works=sum(1 for w in recent_works if w.work_type in FAST_WORK_TYPES),
        total_works=len(recent_works),
        carried_weight=entry.carried_weight,
    )


async def _connection_stats(db: AsyncSession, role: str, names: set[str]) -> dict[str, ConnectionStat]:
    if not names:
        return {}
    result = await db.execute(
        select(ConnectionStat).where(ConnectionStat.role == role, ConnectionStat.name.in_(names))
    )
    return {s.name: s for s in result.scalars().all()}


async def load_factor_stats(db: AsyncSession, race: Race) -> list[HorseFactorStats]:
    """Factor inputs for every declared runner in ``race``, ordered by horse number."""
    result = await db.execute(
        select(RaceEntry).where(RaceEntry.race_id == race.id).order_by(RaceEntry.horse_no)
    )
    entries = result.scalars().all()
    if not entries:
        logger.debug("No entries declared for %s", race.id)
        return []

    horse_ids = {e.horse_id for e in entries if e.horse_id}
    performances: dict[str, list[RacePerformance]] = {h: [] for h in horse_ids}
    trackworks: dict[str, list[Trackwork]] = {h: [] for h in horse_ids}
    if horse_ids:
        perf_rows = await db.execute(
            select(RacePerformance).where(RacePerformance.horse_id.in_(horse_ids))
        )
        for p in perf_rows.scalars().all():
            performances[p.horse_id].append(p)
        work_rows = await db.execute(select(Trackwork).where(Trackwork.horse_id.in_(horse_ids)))
        for w in work_rows.scalars().all():
            trackworks[w.horse_id].append(w)

    jockeys = await _connection_stats(db, "jockey", {e.jockey for e in entries if e.jockey})
    trainers = await _connection_stats(db, "trainer", {e.trainer for e in entries if e.trainer})

    return [
        build_factor_stats(
            entry,
            performances.get(entry.horse_id, []),
            trackworks.get(entry.horse_id, []),
            race_date=race.date,
            venue=race.venue,
            distance=race.distance,
            jockey=jockeys.get(entry.jockey),
            trainer=trainers.get(entry.trainer),
        )
        for entry in entries
    ]
