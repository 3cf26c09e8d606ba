"""Models for races and the per-race data collected from upstream sources."""

import re
import datetime as dt
from typing import List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hkrace.config import hk_now_naive
from hkrace.models.database import Base

_DATE_RE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})")


def parse_race_date(value) -> dt.date:
    """Parse a race date given as ``YYYY/MM/DD``, ISO ``YYYY-MM-DD`` or a date."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    m = _DATE_RE.match(str(value).strip())
    if not m:
        raise ValueError(f"Unrecognised race date: {value!r}")
    return dt.date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def make_race_id(race_date, venue: str, race_no: int) -> str:
    """Synthesize the composite race id, e.g. ``2026-01-28-HV-r3``."""
    return f"{parse_race_date(race_date).isoformat()}-{venue.upper()}-r{race_no}"


class Race(Base):
    """A single race. Created as a skeleton on first reference, enriched later."""

    __tablename__ = "races"
    __table_args__ = (
        Index("ix_races_date", "date"),
        UniqueConstraint("date", "venue", "race_no", name="uq_races_date_venue_no"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date)
    venue: Mapped[str] = mapped_column(String(10))  # ST, HV
    race_no: Mapped[int] = mapped_column(Integer)

    # Enriched from the race card
    distance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # meters
    race_class: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    start_time: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=hk_now_naive)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=hk_now_naive, onupdate=hk_now_naive
    )

    # Relationships
    payouts: Mapped[List["PayoutRecord"]] = relationship(
        "PayoutRecord", back_populates="race", cascade="all, delete-orphan"
    )
    trends: Mapped[List["TrendSnapshot"]] = relationship(
        "TrendSnapshot", back_populates="race", cascade="all, delete-orphan"
    )
    pundit_picks: Mapped[List["PunditPick"]] = relationship(
        "PunditPick", back_populates="race", cascade="all, delete-orphan"
    )
    odds_snapshots: Mapped[List["OddsSnapshot"]] = relationship(
        "OddsSnapshot", back_populates="race", cascade="all, delete-orphan"
    )
    strategy_picks: Mapped[List["StrategyPick"]] = relationship(
        "StrategyPick", back_populates="race", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "venue": self.venue,
            "race_no": self.race_no,
            "distance": self.distance,
            "race_class": self.race_class,
            "start_time": self.start_time.isoformat() if self.start_time else None,
        }


class PayoutRecord(Base):
    """Dividend pools for a race: ``[{"name": ..., "list": [{"shengchuzuhe", "paicai"}]}]``."""

    __tablename__ = "payout_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"), unique=True)
    pools: Mapped[list] = mapped_column(JSON, default=list)
    fetched_at: Mapped[dt.datetime] = mapped_column(DateTime, default=hk_now_naive)

    race: Mapped["Race"] = relationship("Race", back_populates="payouts")


class TrendSnapshot(Base):
    """Market ranking per minutes-before-start key: ``{"30": ["3", "8", ...], ...}``."""

    __tablename__ = "trend_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"), unique=True)
    trends: Mapped[dict] = mapped_column(JSON, default=dict)
    fetched_at: Mapped[dt.datetime] = mapped_column(DateTime, default=hk_now_naive)

    race: Mapped["Race"] = relationship("Race", back_populates="trends")


class PunditPick(Base):
    """Pundit recommendation list for a race, best first."""

    __tablename__ = "pundit_picks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"), unique=True)
    recommendations: Mapped[list] = mapped_column(JSON, default=list)
    fetched_at: Mapped[dt.datetime] = mapped_column(DateTime, default=hk_now_naive)

    race: Mapped["Race"] = relationship("Race", back_populates="pundit_picks")


class OddsSnapshot(Base):
    """Win odds for every runner at one moment: ``{"1": 3.5, "2": 12.0}``."""

    __tablename__ = "odds_snapshots"
    __table_args__ = (Index("ix_odds_snapshots_race_ts", "race_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"))
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime)
    win_odds: Mapped[dict] = mapped_column(JSON, default=dict)

    race: Mapped["Race"] = relationship("Race", back_populates="odds_snapshots")


async def ensure_race(db: AsyncSession, race_date, venue: str, race_no: int) -> Race:
    """Return the race for (date, venue, race_no), creating a skeleton row if needed."""
    race_id = make_race_id(race_date, venue, race_no)
    result = await db.execute(select(Race).where(Race.id == race_id))
    race = result.scalar_one_or_none()
    if race is None:
        race = Race(
            id=race_id,
            date=parse_race_date(race_date),
            venue=venue.upper(),
            race_no=race_no,
        )
        db.add(race)
        await db.flush()
    return race


# Avoid circular imports
from hkrace.models.strategy import StrategyPick  # noqa: E402
