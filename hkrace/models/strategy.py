"""Strategy models: user-defined pick lists evaluated alongside pundit and trend sources."""

import datetime as dt
import uuid
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hkrace.config import hk_now_naive
from hkrace.models.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


class StrategyTest(Base):
    """A named strategy with the criteria used to produce its picks."""

    __tablename__ = "strategy_tests"

    id: Mapped[str] = mapped_column(String(16), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100))
    criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=hk_now_naive)

    picks: Mapped[List["StrategyPick"]] = relationship(
        "StrategyPick", back_populates="strategy", cascade="all, delete-orphan"
    )

    def to_dict(self, pick_count: int | None = None) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "criteria": self.criteria,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if pick_count is not None:
            data["pick_count"] = pick_count
        return data


class StrategyPick(Base):
    """Ordered horse numbers a strategy picked for one race."""

    __tablename__ = "strategy_picks"
    __table_args__ = (
        UniqueConstraint("strategy_id", "race_id", name="uq_strategy_picks_strategy_race"),
        Index("ix_strategy_picks_race_id", "race_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    strategy_id: Mapped[str] = mapped_column(String(16), ForeignKey("strategy_tests.id"))
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"))
    picks: Mapped[list] = mapped_column(JSON, default=list)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=hk_now_naive, onupdate=hk_now_naive
    )

    strategy: Mapped["StrategyTest"] = relationship("StrategyTest", back_populates="picks")
    race: Mapped["Race"] = relationship("Race", back_populates="strategy_picks")


# Avoid circular imports
from hkrace.models.race import Race  # noqa: E402
