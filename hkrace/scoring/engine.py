"""Per-horse multi-factor scoring for a race preview.

Each enabled factor turns a runner's raw input into points using one of three
modes (rank within the field, rate x multiplier, or a named bucket), then
weights them by ``weight / 100``. Manual points are added after weighting.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hkrace.models.race import Race
from hkrace.models.settings import ManualAdjustment
from hkrace.scoring.defaults import FactorConfig, ScoringConfig, ScoringConfigError, load_scoring_config
from hkrace.scoring.factors import HorseFactorStats, load_factor_stats

logger = logging.getLogger(__name__)

# Rank for "no data"; always lands in the ``others`` bucket
MISSING_RANK = 99
MAX_RANKED = 8


@dataclass(frozen=True)
class Adjustment:
    manual_points: float = 0.0
    condition_override: Optional[str] = None


@dataclass
class HorseScore:
    horse_no: int
    horse_name: str
    total: float
    manual_points: float = 0.0
    breakdown: dict[str, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "horse_no": self.horse_no,
            "horse_name": self.horse_name,
            "total": self.total,
            "manual_points": self.manual_points,
            "breakdown": self.breakdown,
        }


# ──────────────────────────────────────────────
# Calculation modes
# ──────────────────────────────────────────────

def competition_ranks(values: Mapping[int, Optional[float]]) -> dict[int, int]:
    """1-based ranks, ascending; ties share the best rank. None gets ``MISSING_RANK``."""
    present = [v for v in values.values() if v is not None]
    return {
        horse: (1 + sum(1 for other in present if other < v)) if v is not None else MISSING_RANK
        for horse, v in values.items()
    }


def rank_points(factor: FactorConfig, rank: int) -> float:
    bucket = f"rank{rank}" if rank <= MAX_RANKED else "others"
    return factor.points(bucket, "others")


def multiplier_points(factor: FactorConfig, rate: Optional[float]) -> float:
    if "multiplier" not in factor.rules:
        raise ScoringConfigError(f"Factor {factor.label!r} has no multiplier rule")
    return (rate or 0.0) * float(factor.rules["multiplier"])


def rating_trend_bucket(change: Optional[int]) -> str:
    if change is None or change == 0:
        return "same"
    if change <= -3:
        return "drop_2_plus"
    if change < 0:
        return "drop_1_2"
    if change <= 5:
        return "rise_1_5"
    return "rise_6_plus"


def horse_weight_bucket(diff: Optional[int]) -> str:
    if diff is None:
        return "moderate"
    diff = abs(diff)
    if diff <= 10:
        return "ideal_range"
    if diff <= 20:
        return "moderate"
    return "bad"


def age_bucket(age: Optional[int]) -> str:
    if age is None:
        return "age_6"
    if age <= 3:
        return "age_3"
    if age >= 7:
        return "age_7_plus"
    return f"age_{age}"


def rest_days_bucket(days: Optional[int]) -> str:
    if days is None or days > 60:
        return "days_over_60"
    if days < 14:
        return "days_less_14"
    return "days_14_to_60"


def trackwork_bucket(fast_works: int, total_works: int) -> str:
    if fast_works >= 2:
        return "active"
    if fast_works == 1 or total_works >= 3:
        return "moderate"
    return "inactive"


def carried_weight_bucket(weight: Optional[int]) -> str:
    if weight is None:
        return "medium"
    if weight < 118:
        return "light"
    if weight <= 128:
        return "medium"
    return "heavy"


# (bucket chooser, default bucket) per bucketed factor
BUCKETED: dict[str, tuple[Callable[[HorseFactorStats], str], str]] = {
    "rating_trend": (lambda s: rating_trend_bucket(s.rating_change), "same"),
    "horse_weight": (lambda s: horse_weight_bucket(s.body_weight_diff), "moderate"),
    "age": (lambda s: age_bucket(s.age), "age_6"),
    "rest_days": (lambda s: rest_days_bucket(s.rest_days), "days_over_60"),
    "trackwork": (lambda s: trackwork_bucket(s.fast_works, s.total_works), "inactive"),
    "carried_weight": (lambda s: carried_weight_bucket(s.carried_weight), "medium"),
}

RANKED: dict[str, Callable[[HorseFactorStats], Optional[float]]] = {
    "time_same_dist": lambda s: s.best_time,
    "leading_ability": lambda s: s.avg_early_position,
    "sectional_time": lambda s: s.last_sectional,
}

MULTIPLIER: dict[str, Callable[[HorseFactorStats], Optional[float]]] = {
    "jockey_win": lambda s: s.jockey_win_rate,
    "jockey_place": lambda s: s.jockey_place_rate,
    "trainer_win": lambda s: s.trainer_win_rate,
    "trainer_place": lambda s: s.trainer_place_rate,
}

# Configurable, never computed
DORMANT = ("partnership_win", "partnership_place")


def _raw_scores(
    key: str,
    factor: FactorConfig,
    stats: list[HorseFactorStats],
    adjustments: Mapping[int, Adjustment],
) -> dict[int, float]:
    if key in RANKED:
        ranks = competition_ranks({s.horse_no: RANKED[key](s) for s in stats})
        return {h: rank_points(factor, r) for h, r in ranks.items()}
    if key in MULTIPLIER:
        return {s.horse_no: multiplier_points(factor, MULTIPLIER[key](s)) for s in stats}
    if key in BUCKETED:
        choose, default = BUCKETED[key]
        return {s.horse_no: factor.points(choose(s), default) for s in stats}
    if key == "condition":
        scores = {}
        for s in stats:
            override = adjustments.get(s.horse_no, Adjustment()).condition_override
            scores[s.horse_no] = factor.points(override or "default", "default")
        return scores
    if key in DORMANT:
        return {s.horse_no: 0.0 for s in stats}
    raise ScoringConfigError(f"No calculation for scoring factor {key!r}")


def score_horses(
    stats: list[HorseFactorStats],
    config: ScoringConfig,
    adjustments: Optional[Mapping[int, Adjustment]] = None,
) -> list[HorseScore]:
    """Score every runner; highest total first, ties by horse number."""
    adjustments = adjustments or {}
    scores = {
        s.horse_no: HorseScore(
            horse_no=s.horse_no,
            horse_name=s.horse_name,
            total=0.0,
            manual_points=adjustments.get(s.horse_no, Adjustment()).manual_points,
        )
        for s in stats
    }

    for key, factor in config.enabled().items():
        raw = _raw_scores(key, factor, stats, adjustments)
        for horse_no, value in raw.items():
            weighted = value * factor.weight / 100
            scores[horse_no].breakdown[key] = {"raw": round(value, 2), "weighted": round(weighted, 3)}
            scores[horse_no].total += weighted

    for score in scores.values():
        score.total = round(score.total + score.manual_points, 2)

    return sorted(scores.values(), key=lambda s: (-s.total, s.horse_no))


async def get_adjustments(db: AsyncSession, race_id: str) -> dict[int, Adjustment]:
    result = await db.execute(select(ManualAdjustment).where(ManualAdjustment.race_id == race_id))
    return {
        a.horse_no: Adjustment(a.manual_points or 0.0, a.condition_override)
        for a in result.scalars().all()
    }


async def score_race(
    db: AsyncSession, race_id: str, config: Optional[ScoringConfig] = None
) -> list[HorseScore]:
    """Score a race's declared runners with the saved (or given) config."""
    race = (await db.execute(select(Race).where(Race.id == race_id))).scalar_one_or_none()
    if race is None:
        raise LookupError(f"Race not found: {race_id}")

    if config is None:
        config = await load_scoring_config(db)
    stats = await load_factor_stats(db, race)
    adjustments = await get_adjustments(db, race_id)
    scores = score_horses(stats, config, adjustments)
    logger.info(f"Scored {len(scores)} runners for {race_id}")
    return scores
