"""Shared test fixtures for hkrace."""

from datetime import date, datetime
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hkrace.models import (  # noqa: F401  (registers every table on Base)
    Base,
    OddsSnapshot,
    PayoutRecord,
    PunditPick,
    Race,
    StrategyPick,
    StrategyTest,
    TrendSnapshot,
)
from hkrace.models.race import make_race_id


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


def win_pools(winner: int, dividend: str, placings=(), quinella=None, tierce=None, first4=None) -> list:
    """Build a payout pool list in the stored shape."""
    pools = [{"name": "獨贏", "list": [{"shengchuzuhe": str(winner), "paicai": dividend}]}]
    if placings:
        pools.append({
            "name": "位置",
            "list": [{"shengchuzuhe": str(h), "paicai": "15.00"} for h in placings],
        })
    if quinella:
        pools.append({"name": "連贏", "list": [{"shengchuzuhe": quinella[0], "paicai": quinella[1]}]})
    if tierce:
        pools.append({"name": "三重彩", "list": [{"shengchuzuhe": tierce[0], "paicai": tierce[1]}]})
    if first4:
        pools.append({"name": "四連環", "list": [{"shengchuzuhe": first4[0], "paicai": first4[1]}]})
    return pools


@pytest.fixture
def add_race(db_session):
    """Factory: insert a race with optional payouts, pundit picks and trends."""

    async def _add(
        race_date: date,
        race_no: int,
        pools: list | None = None,
        pundit: list | None = None,
        trends: dict | None = None,
        venue: str = "ST",
        start_time: datetime | None = None,
        distance: int | None = None,
    ) -> Race:
        race = Race(
            id=make_race_id(race_date, venue, race_no),
            date=race_date,
            venue=venue,
            race_no=race_no,
            start_time=start_time,
            distance=distance,
        )
        db_session.add(race)
        if pools is not None:
            db_session.add(PayoutRecord(race_id=race.id, pools=pools))
        if pundit is not None:
            db_session.add(PunditPick(race_id=race.id, recommendations=pundit))
        if trends is not None:
            db_session.add(TrendSnapshot(race_id=race.id, trends=trends))
        await db_session.commit()
        return race

    return _add


@pytest.fixture
def make_pools():
    """Payout pool builder (see ``win_pools``)."""
    return win_pools
