"""Scoring API: race previews, factor config and manual adjustments."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.models.database import get_db
from hkrace.scoring.defaults import (
    DEFAULT_SCORING_CONFIG,
    ScoringConfigError,
    config_from_dict,
    load_scoring_config,
    save_scoring_config,
)
from hkrace.scoring.engine import score_race
from hkrace.strategies import set_manual_adjustment

logger = logging.getLogger(__name__)

router = APIRouter()


class ScoringConfigUpdate(BaseModel):
    """Per-factor changes: ``{"age": {"weight": 6, "rules": {"age_4": 9}}}``."""

    factors: dict[str, dict[str, Any]]
    reset: bool = False


class AdjustmentUpdate(BaseModel):
    race_id: str
    horse_no: int
    manual_points: float = 0.0
    condition_override: Optional[str] = None


@router.get("/race/{race_id}")
async def race_scores(race_id: str, db: AsyncSession = Depends(get_db)):
    """Score every declared runner, best first."""
    try:
        scores = await score_race(db, race_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScoringConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [s.to_dict() for s in scores]


@router.get("/config")
async def get_config(db: AsyncSession = Depends(get_db)):
    """Current scoring config (saved values over defaults)."""
    config = await load_scoring_config(db)
    return config.to_dict()


@router.put("/config")
async def update_config(update: ScoringConfigUpdate, db: AsyncSession = Depends(get_db)):
    """Merge factor changes into the current config (or the defaults when ``reset``)."""
    base = DEFAULT_SCORING_CONFIG if update.reset else await load_scoring_config(db)
    unknown = set(update.factors) - set(base.factors)
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown factors: {', '.join(sorted(unknown))}")
    try:
        config = config_from_dict({"factors": update.factors}, base=base)
    except (ScoringConfigError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    await save_scoring_config(db, config)
    return config.to_dict()


@router.put("/adjustment")
async def update_adjustment(update: AdjustmentUpdate, db: AsyncSession = Depends(get_db)):
    """Set manual points / condition override for one runner."""
    try:
        adjustment = await set_manual_adjustment(
            db,
            update.race_id,
            update.horse_no,
            manual_points=update.manual_points,
            condition_override=update.condition_override,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return adjustment.to_dict()
