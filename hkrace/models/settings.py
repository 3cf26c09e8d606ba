"""Settings models: key/value app settings and per-horse manual scoring adjustments."""

import datetime as dt
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hkrace.config import hk_now_naive
from hkrace.models.database import Base


class AppSettings(Base):
    """Key-value store for application settings (JSON text values)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=hk_now_naive, onupdate=hk_now_naive
    )


class ManualAdjustment(Base):
    """Manual points and condition override for one horse in one race."""

    __tablename__ = "manual_adjustments"
    __table_args__ = (
        UniqueConstraint("race_id", "horse_no", name="uq_manual_adjustments_race_horse"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("races.id"))
    horse_no: Mapped[int] = mapped_column(Integer)
    manual_points: Mapped[float] = mapped_column(Float, default=0.0)
    condition_override: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # fit | ok | bad
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=hk_now_naive, onupdate=hk_now_naive
    )

    def to_dict(self) -> dict:
        return {
            "race_id": self.race_id,
            "horse_no": self.horse_no,
            "manual_points": self.manual_points,
            "condition_override": self.condition_override,
        }
