"""Models for horses, race-card entries and the history the scoring engine reads."""

import datetime as dt
from typing import List, Optional

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hkrace.config import hk_now_naive
from hkrace.models.database import Base


class Horse(Base):
    """A horse, keyed by its HKJC brand id (e.g. ``HK_2023_J123``)."""

    __tablename__ = "horses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=hk_now_naive)

    performances: Mapped[List["RacePerformance"]] = relationship(
        "RacePerformance", back_populates="horse", cascade="all, delete-orphan"
    )
    trackworks: Mapped[List["Trackwork"]] = relationship(
        "Trackwork", back_populates="horse", cascade="all, delete-orphan"
    )


class RaceEntry(Base):
    """A runner declared on a race card."""

    __tablename__ = "race_entries"
    __table_args__ = (
        UniqueConstraint("race_id", "horse_no", name="uq_race_entries_race_horse_no"),
        Index("ix_race_entries_race_id", "race_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"))
    horse_no: Mapped[int] = mapped_column(Integer)
    horse_id: Mapped[Optional[str]] = mapped_column(String(32), ForeignKey("horses.id"), nullable=True)
    horse_name: Mapped[str] = mapped_column(String(100))
    jockey: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    trainer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    draw: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    carried_weight: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # lbs
    body_weight: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # lbs, declared
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    horse: Mapped[Optional["Horse"]] = relationship("Horse")


class RacePerformance(Base):
    """One past start from a horse's racing record."""

    __tablename__ = "race_performances"
    __table_args__ = (Index("ix_race_performances_horse_date", "horse_id", "race_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    horse_id: Mapped[str] = mapped_column(String(32), ForeignKey("horses.id"))
    race_date: Mapped[dt.date] = mapped_column(Date)
    venue: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    distance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    place: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # "1", "WV", "PU"
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    jockey: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    trainer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    actual_weight: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    body_weight: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    running_position: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)  # "3 3 2 1"
    finish_time: Mapped[Optional[str]] = mapped_column(String(12), nullable=True)  # "1:09.45"
    last_sectional: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # seconds

    horse: Mapped["Horse"] = relationship("Horse", back_populates="performances")


class Trackwork(Base):
    """A morning trackwork record (快操, 踱步, 游泳, 試閘 ...)."""

    __tablename__ = "trackworks"
    __table_args__ = (Index("ix_trackworks_horse_date", "horse_id", "date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    horse_id: Mapped[str] = mapped_column(String(32), ForeignKey("horses.id"))
    date: Mapped[dt.date] = mapped_column(Date)
    work_type: Mapped[str] = mapped_column(String(20))
    venue: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    horse: Mapped["Horse"] = relationship("Horse", back_populates="trackworks")


class ConnectionStat(Base):
    """Season win/place rates (percent) for a jockey or trainer."""

    __tablename__ = "connection_stats"
    __table_args__ = (UniqueConstraint("role", "name", name="uq_connection_stats_role_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role: Mapped[str] = mapped_column(String(10))  # jockey | trainer
    name: Mapped[str] = mapped_column(String(100))
    rides: Mapped[int] = mapped_column(Integer, default=0)
    win_rate: Mapped[float] = mapped_column(Float, default=0.0)
    place_rate: Mapped[float] = mapped_column(Float, default=0.0)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=hk_now_naive, onupdate=hk_now_naive
    )
