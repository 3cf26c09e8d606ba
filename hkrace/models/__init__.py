"""Database models for hkrace."""

from hkrace.models.database import Base, get_db, init_db
from hkrace.models.race import Race, PayoutRecord, TrendSnapshot, PunditPick, OddsSnapshot
from hkrace.models.strategy import StrategyTest, StrategyPick
from hkrace.models.horse import Horse, RaceEntry, RacePerformance, Trackwork, ConnectionStat
from hkrace.models.settings import AppSettings, ManualAdjustment

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "Race",
    "PayoutRecord",
    "TrendSnapshot",
    "PunditPick",
    "OddsSnapshot",
    "StrategyTest",
    "StrategyPick",
    "Horse",
    "RaceEntry",
    "RacePerformance",
    "Trackwork",
    "ConnectionStat",
    "AppSettings",
    "ManualAdjustment",
]
