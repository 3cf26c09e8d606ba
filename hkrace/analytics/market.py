"""Market signals from win-odds snapshots: odds drops and betting-share flow.

Snapshots are ``(timestamp, {"horse_no": odds})`` pairs. "T-0" is the latest
snapshot, or the one closest to the scheduled start if snapshots run past it.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.models.race import OddsSnapshot, Race

logger = logging.getLogger(__name__)

SUDDEN_DROP_PCT = 15.0
REVERSE_MONEY_DROP_PCT = 5.0
REVERSE_MONEY_SHARE_PCT = -0.5

Snapshot = tuple[datetime, dict]


def _closest(snapshots: list[Snapshot], target: datetime) -> Optional[Snapshot]:
    if not snapshots:
        return None
    return min(snapshots, key=lambda s: abs((s[0] - target).total_seconds()))


def _reference_time(snapshots: list[Snapshot], start_time: Optional[datetime]) -> datetime:
    latest = snapshots[-1][0]
    if start_time and latest > start_time:
        return _closest(snapshots, start_time)[0]
    return latest


def _odds(snapshot: Optional[Snapshot]) -> dict[str, float]:
    if not snapshot:
        return {}
    odds = {}
    for horse, value in (snapshot[1] or {}).items():
        try:
            odds[str(horse)] = float(value)
        except (TypeError, ValueError):
            continue
    return odds


def _drop_pct(before: float, after: float) -> float:
    return (before - after) / before * 100 if before else 0.0


def calculate_odds_drops(
    snapshots: list[Snapshot], start_time: Optional[datetime] = None
) -> list[dict]:
    """Odds drop from 30' and 5' to T-0 for every runner, with sudden-drop flags."""
    snapshots = sorted(snapshots, key=lambda s: s[0])
    if len(snapshots) < 2:
        return []

    t0 = _reference_time(snapshots, start_time)
    odds0 = _odds(_closest(snapshots, t0))
    odds30 = _odds(_closest(snapshots, t0 - timedelta(minutes=30)))
    odds5 = _odds(_closest(snapshots, t0 - timedelta(minutes=5)))
    odds3 = _odds(_closest(snapshots, t0 - timedelta(minutes=3)))

    results = []
    for horse, o0 in odds0.items():
        o30 = odds30.get(horse) or o0
        o5 = odds5.get(horse) or o0
        o3 = odds3.get(horse) or o0
        results.append({
            "horse_no": int(horse),
            "odds30": o30,
            "odds5": o5,
            "odds0": o0,
            "drop_rate": round(_drop_pct(o30, o0), 2),
            "drop_speed5": round(_drop_pct(o5, o0), 2),
            "is_sudden_drop": o3 > 0 and _drop_pct(o3, o0) > SUDDEN_DROP_PCT,
        })
    return results


def betting_shares(odds: dict[str, float]) -> dict[str, float]:
    """Share of the pool (percent) implied by each runner's win odds."""
    implied = {h: 1 / o for h, o in odds.items() if o > 0}
    total = sum(implied.values())
    if not total:
        return {}
    return {h: p / total * 100 for h, p in implied.items()}


def calculate_fund_flow(
    snapshots: list[Snapshot], start_time: Optional[datetime] = None
) -> list[dict]:
    """Betting share at T-5 and T-0 per runner, ordered by T-0 share (hot money rank)."""
    snapshots = sorted(snapshots, key=lambda s: s[0])
    if len(snapshots) < 2:
        return []

    t0 = _reference_time(snapshots, start_time)
    odds0 = _odds(_closest(snapshots, t0))
    odds5 = _odds(_closest(snapshots, t0 - timedelta(minutes=5)))
    shares0 = betting_shares(odds0)
    shares5 = betting_shares(odds5)

    ranked = sorted(shares0, key=lambda h: shares0[h], reverse=True)
    results = []
    for rank, horse in enumerate(ranked, start=1):
        s0 = shares0.get(horse, 0.0)
        s5 = shares5.get(horse, 0.0)
        change = s0 - s5
        drop5 = _drop_pct(odds5.get(horse, 0.0), odds0.get(horse, 0.0))
        results.append({
            "horse_no": int(horse),
            "share0": round(s0, 2),
            "share5": round(s5, 2),
            "share_change5": round(change, 2),
            # Price shortened while money flowed out relative to the field
            "is_reverse_money": drop5 > REVERSE_MONEY_DROP_PCT and change < REVERSE_MONEY_SHARE_PCT,
            "hot_money_rank": rank,
        })
    return results


async def load_snapshots(db: AsyncSession, race_id: str) -> tuple[list[Snapshot], Optional[datetime]]:
    """Odds snapshots for a race plus its scheduled start time."""
    race = (await db.execute(select(Race).where(Race.id == race_id))).scalar_one_or_none()
    if race is None:
        raise LookupError(f"Race not found: {race_id}")
    result = await db.execute(
        select(OddsSnapshot).where(OddsSnapshot.race_id == race_id).order_by(OddsSnapshot.timestamp)
    )
    snapshots = [(s.timestamp, s.win_odds) for s in result.scalars().all()]
    return snapshots, race.start_time
