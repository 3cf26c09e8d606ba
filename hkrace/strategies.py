"""Strategy pick lists and per-horse manual scoring adjustments.

Both are upserts keyed by (strategy_id, race_id) and (race_id, horse_no);
the last write wins and is visible to later reads on the same session.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.analytics.repository import as_horse_numbers
from hkrace.models.race import Race
from hkrace.models.settings import ManualAdjustment
from hkrace.models.strategy import StrategyPick, StrategyTest

logger = logging.getLogger(__name__)

CONDITION_BUCKETS = ("fit", "ok", "bad")


async def save_strategy(db: AsyncSession, name: str, criteria: Optional[str] = None) -> StrategyTest:
    """Create a named strategy."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Strategy name is required")
    strategy = StrategyTest(name=name, criteria=criteria)
    db.add(strategy)
    await db.commit()
    logger.info(f"Saved strategy {strategy.id} ({name})")
    return strategy


async def list_strategies(db: AsyncSession) -> list[dict]:
    """All strategies, newest first, with how many races each has picks for."""
    counts = (
        select(StrategyPick.strategy_id, func.count(StrategyPick.id).label("n"))
        .group_by(StrategyPick.strategy_id)
        .subquery()
    )
    result = await db.execute(
        select(StrategyTest, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.strategy_id == StrategyTest.id)
        .order_by(StrategyTest.created_at.desc(), StrategyTest.name)
    )
    return [strategy.to_dict(pick_count=n) for strategy, n in result.all()]


async def _require(db: AsyncSession, model, key: str, label: str):
    obj = await db.get(model, key)
    if obj is None:
        raise LookupError(f"{label} not found: {key}")
    return obj


async def set_strategy_picks(
    db: AsyncSession, strategy_id: str, race_id: str, picks: list
) -> StrategyPick:
    """Store a strategy's ordered picks for a race, replacing any earlier list."""
    await _require(db, StrategyTest, strategy_id, "Strategy")
    await _require(db, Race, race_id, "Race")

    result = await db.execute(
        select(StrategyPick).where(
            StrategyPick.strategy_id == strategy_id,
            StrategyPick.race_id == race_id,
        )
    )
    pick = result.scalar_one_or_none()
    numbers = as_horse_numbers(picks)
    if pick:
        pick.picks = numbers
    else:
        pick = StrategyPick(strategy_id=strategy_id, race_id=race_id, picks=numbers)
        db.add(pick)
    await db.commit()
    logger.debug("Strategy %s picks for %s: %s", strategy_id, race_id, numbers)
    return pick


async def set_manual_adjustment(
    db: AsyncSession,
    race_id: str,
    horse_no: int,
    manual_points: float = 0.0,
    condition_override: Optional[str] = None,
) -> ManualAdjustment:
    """Upsert manual points and/or a condition override for one runner."""
    if condition_override is not None and condition_override not in CONDITION_BUCKETS:
        raise ValueError(
            f"condition_override must be one of {', '.join(CONDITION_BUCKETS)}, got {condition_override!r}"
        )
    await _require(db, Race, race_id, "Race")

    result = await db.execute(
        select(ManualAdjustment).where(
            ManualAdjustment.race_id == race_id,
            ManualAdjustment.horse_no == horse_no,
        )
    )
    adjustment = result.scalar_one_or_none()
    if adjustment:
        adjustment.manual_points = manual_points
        adjustment.condition_override = condition_override
    else:
        adjustment = ManualAdjustment(
            race_id=race_id,
            horse_no=horse_no,
            manual_points=manual_points,
            condition_override=condition_override,
        )
        db.add(adjustment)
    await db.commit()
    return adjustment


async def get_manual_adjustments(db: AsyncSession, race_id: str) -> list[ManualAdjustment]:
    result = await db.execute(
        select(ManualAdjustment)
        .where(ManualAdjustment.race_id == race_id)
        .order_by(ManualAdjustment.horse_no)
    )
    return list(result.scalars().all())
