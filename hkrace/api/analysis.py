"""Analysis API: pick-source statistics, per-race breakdowns and parlay simulation."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.analytics.parlay import simulate_parlay
from hkrace.analytics.stats import (
    compute_stats,
    get_custom_composite_stats,
    get_daily_stats,
    get_hit_rate_stats,
    get_race_stats,
    get_system_stats,
)
from hkrace.models.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


async def _run(coro):
    """Await a service call, mapping bad input to 400 and missing races to 404."""
    try:
        return await coro
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/stats")
async def stats(
    source: str = Query("pundit"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Hit rates, revenue and ROI for one pick source."""
    return await _run(compute_stats(db, source, start, end))


@router.get("/daily-stats")
async def daily_stats(
    source: str = Query("pundit"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Per race-day statistics, newest first."""
    return await _run(get_daily_stats(db, start, end, source))


@router.get("/custom-composite")
async def custom_composite(
    sources: str = Query(..., description="Comma-separated source names, e.g. pundit,trend-15"),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Statistics for a composite ranking over the chosen sources."""
    names = [s.strip() for s in sources.split(",") if s.strip()]
    return await _run(get_custom_composite_stats(db, names, start, end))


@router.get("/stats/system")
async def system_stats(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Pundit top-pick accuracy."""
    return await _run(get_system_stats(db, start, end))


@router.get("/hit-rates")
async def hit_rates(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Pundit and per-trend-offset statistics side by side."""
    return await _run(get_hit_rate_stats(db, start, end))


@router.get("/stats/race/{race_id}")
async def race_stats(race_id: str, db: AsyncSession = Depends(get_db)):
    """Every source's settlement for one race, with trend and market signals."""
    return await _run(get_race_stats(db, race_id))


@router.get("/parlay")
async def parlay(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    source: str = Query("pundit"),
    pick_top_k: int = Query(1),
    legs: int = Query(2),
    db: AsyncSession = Depends(get_db),
):
    """Simulate one all-up Win chain per race-day."""
    return await _run(simulate_parlay(db, start, end, source, pick_top_k, legs))
