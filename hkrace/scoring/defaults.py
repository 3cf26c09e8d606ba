"""Scoring factor configuration: labels, weights, enabled flags and rule tables.

Configs are immutable values. ``with_overrides()`` returns a new config, and
the persisted copy (AppSettings key ``scoring_config``) is merged over
``DEFAULT_SCORING_CONFIG`` so factors added later still get defaults.
"""

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.models.settings import AppSettings

logger = logging.getLogger(__name__)

SETTINGS_KEY = "scoring_config"


class ScoringConfigError(ValueError):
    """Raised for invalid or incomplete scoring configuration."""


@dataclass(frozen=True)
class FactorConfig:
    label: str
    weight: float  # percent, 0-100
    enabled: bool = True
    rules: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not 0 <= float(self.weight) <= 100:
            raise ScoringConfigError(f"Weight for {self.label!r} must be 0-100, got {self.weight}")
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    def points(self, bucket: str, default: str) -> float:
        """Points for ``bucket``, else for the ``default`` bucket. Both missing is an error."""
        if bucket in self.rules:
            return float(self.rules[bucket])
        if default in self.rules:
            return float(self.rules[default])
        raise ScoringConfigError(
            f"Factor {self.label!r} has no rule for {bucket!r} and no {default!r} fallback"
        )

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "weight": self.weight,
            "enabled": self.enabled,
            "rules": dict(self.rules),
        }


@dataclass(frozen=True)
class ScoringConfig:
    factors: Mapping[str, FactorConfig]

    def __post_init__(self):
        object.__setattr__(self, "factors", MappingProxyType(dict(self.factors)))

    def factor(self, key: str) -> FactorConfig:
        try:
            return self.factors[key]
        except KeyError:
            raise ScoringConfigError(f"Unknown scoring factor: {key!r}") from None

    def enabled(self) -> dict[str, FactorConfig]:
        return {k: f for k, f in self.factors.items() if f.enabled}

    def with_overrides(self, overrides: Mapping[str, Mapping[str, Any]]) -> "ScoringConfig":
        """New config with per-factor ``label``/``weight``/``enabled``/``rules`` replaced.

        Rule overrides are merged into the existing rule table.
        """
        factors = dict(self.factors)
        for key, changes in (overrides or {}).items():
            base = self.factor(key)
            rules = dict(base.rules)
            rules.update(changes.get("rules") or {})
            enabled = changes.get("enabled", base.enabled)
            if not isinstance(enabled, bool):
                raise ScoringConfigError(f"{key}: enabled must be true or false, got {enabled!r}")
            factors[key] = FactorConfig(
                label=changes.get("label", base.label),
                weight=float(changes.get("weight", base.weight)),
                enabled=enabled,
                rules=rules,
            )
        return ScoringConfig(factors)

    def to_dict(self) -> dict:
        return {"factors": {k: f.to_dict() for k, f in self.factors.items()}}


def _factor(label: str, weight: float, **rules: float) -> FactorConfig:
    return FactorConfig(label=label, weight=weight, enabled=True, rules=rules)


DEFAULT_SCORING_CONFIG = ScoringConfig({
    # Best time at today's venue and distance
    "time_same_dist": _factor(
        "同程時間", 13.6,
        rank1=8, rank2=7, rank3=6, rank4=5, rank5=4, rank6=3, rank7=2, rank8=1, others=0,
    ),
    "jockey_win": _factor("騎師勝出率", 5.0, multiplier=0.5),
    "jockey_place": _factor("騎師入圍率", 5.0, multiplier=0.3),
    "trainer_win": _factor("練馬師勝出率", 5.0, multiplier=0.5),
    "trainer_place": _factor("練馬師入圍率", 5.0, multiplier=0.3),
    # Configurable but not computed yet; always scores 0
    "partnership_win": _factor("騎練配合勝出", 4.0, multiplier=0.5),
    "partnership_place": _factor("騎練配合入圍", 4.0, multiplier=0.3),
    # Average early running position over recent starts
    "leading_ability": _factor("前領優勢", 6.0, rank1=8, rank2=6, rank3=4, others=1),
    "sectional_time": _factor("分段時間", 8.0, rank1=10, rank2=8, rank3=6, rank4=4, others=2),
    "rating_trend": _factor(
        "評分走勢", 5.0, drop_2_plus=8, drop_1_2=6, same=4, rise_1_5=2, rise_6_plus=0,
    ),
    # Body weight relative to last winning body weight
    "horse_weight": _factor("體重變化", 4.0, ideal_range=8, moderate=5, bad=1),
    "age": _factor("年齡", 4.0, age_3=6, age_4=8, age_5=7, age_6=5, age_7_plus=2),
    "rest_days": _factor("休息日", 4.0, days_14_to_60=8, days_less_14=4, days_over_60=5),
    "trackwork": _factor("晨操", 8.0, active=8, moderate=5, inactive=1),
    # Manual; the per-horse override picks the bucket
    "condition": _factor("狀態(手動)", 10.0, fit=10, ok=6, bad=1, default=1),
    "carried_weight": _factor("負磅值", 14.4, light=10, medium=7, heavy=4),
})


def config_from_dict(data: Mapping[str, Any] | None, base: ScoringConfig = DEFAULT_SCORING_CONFIG) -> ScoringConfig:
    """Merge a stored/posted ``{"factors": {...}}`` payload over ``base``.

    Unknown factor keys are ignored with a warning so old payloads keep loading.
    """
    factors = (data or {}).get("factors") or {}
    known = {k: v for k, v in factors.items() if k in base.factors}
    for key in set(factors) - set(known):
        logger.warning("Ignoring unknown scoring factor %r", key)
    return base.with_overrides(known)


async def load_scoring_config(db: AsyncSession) -> ScoringConfig:
    """Load the saved scoring config, falling back to defaults."""
    result = await db.execute(select(AppSettings).where(AppSettings.key == SETTINGS_KEY))
    setting = result.scalar_one_or_none()
    if not setting or not setting.value:
        return DEFAULT_SCORING_CONFIG
    try:
        return config_from_dict(json.loads(setting.value))
    except (TypeError, AttributeError, ValueError) as e:
        logger.warning(f"Stored scoring config unreadable, using defaults: {e}")
        return DEFAULT_SCORING_CONFIG


async def save_scoring_config(db: AsyncSession, config: ScoringConfig) -> None:
    """Persist a scoring config (last writer wins)."""
    payload = json.dumps(config.to_dict(), ensure_ascii=False)
    result = await db.execute(select(AppSettings).where(AppSettings.key == SETTINGS_KEY))
    setting = result.scalar_one_or_none()
    if setting:
        setting.value = payload
    else:
        db.add(AppSettings(key=SETTINGS_KEY, value=payload))
    await db.commit()
    logger.info("Saved scoring config (%d factors)", len(config.factors))
