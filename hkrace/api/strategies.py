"""Strategies API: named strategies and their per-race pick lists."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.models.database import get_db
from hkrace.strategies import list_strategies, save_strategy, set_strategy_picks

router = APIRouter()


class StrategyCreate(BaseModel):
    name: str
    criteria: Optional[str] = None


class StrategyPicksUpdate(BaseModel):
    race_id: str
    picks: list[int]


@router.get("")
async def get_strategies(db: AsyncSession = Depends(get_db)):
    return await list_strategies(db)


@router.post("")
async def create_strategy(body: StrategyCreate, db: AsyncSession = Depends(get_db)):
    try:
        strategy = await save_strategy(db, body.name, body.criteria)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return strategy.to_dict()


@router.put("/{strategy_id}/picks")
async def update_picks(
    strategy_id: str, body: StrategyPicksUpdate, db: AsyncSession = Depends(get_db)
):
    """Replace the strategy's picks for one race."""
    try:
        pick = await set_strategy_picks(db, strategy_id, body.race_id, body.picks)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"strategy_id": strategy_id, "race_id": pick.race_id, "picks": pick.picks}
