from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from benchmark_config import BenchmarkConfig
from benchmark_models import BenchmarkTopPerformer, DataPoint
from cohort_analysis.cohort_selector import DataPointFilters
from cohort_analysis.segment_fallback import FallbackLevel, FallbackSelection
from statistical_engine import StatisticalEngine


# Competencies that reinforce each other when one is developed from the other
LEVERAGE_MAP: Mapping[str, Tuple[str, ...]] = {
    "EL": ("NE", "EMP"),
    "RP": ("ACT", "NE"),
    "ACT": ("RP", "IM"),
    "NE": ("EL", "OP"),
    "IM": ("NG", "OP"),
    "OP": ("IM", "NG"),
    "EMP": ("EL", "NG"),
    "NG": ("IM", "EMP"),
}

STRENGTH_MIN_PERCENTILE = 50
STRENGTH_LIMIT = 5
INSIGHT_LIMIT = 3
DEVELOPMENT_MIN_GAP = 5.0
DEVELOPMENT_LIMIT = 3
AT_TOP_PERFORMER_MARGIN = 2.0


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass(frozen=True)
class UserStrength:
    competency: str
    score: float
    percentile: int
    vs_top_performer: str  # "above", "at" or "below"
    diff_from_top_performer: float


@dataclass(frozen=True)
class StrengthInsight:
    strength: str
    how_they_use_it: str
    result_they_get: str


@dataclass(frozen=True)
class DevelopmentArea:
    area: str
    priority: Priority
    leveraged_by: Tuple[str, ...]
    action_suggestion: str
    current_score: float
    top_performer_score: float
    gap: float


@dataclass
class UserComparison:
    """Strengths-first comparison of one respondent against top performers"""
    outcome: str
    strengths: List[UserStrength]
    insights: List[StrengthInsight]
    development_areas: List[DevelopmentArea]
    user_scores: Dict[str, Optional[float]]
    benchmark_scores: Dict[str, Optional[float]]
    percentiles: Dict[str, int]
    summary: str
    fallback_level: FallbackLevel = FallbackLevel.GLOBAL
    context: DataPointFilters = field(default_factory=DataPointFilters)
    sample_size: int = 0


class UserComparator:
    """Places a user's EQ scores against a top-performer profile.

    Percentiles are taken against the reference population the profile was
    built from; benchmark scores are the top-performer averages.
    """

    def __init__(self, config: BenchmarkConfig, engine: Optional[StatisticalEngine] = None):
        self.config = config
        self.engine = engine or StatisticalEngine()

    def compare(
        self,
        user_scores: Mapping[str, Optional[float]],
        profile: BenchmarkTopPerformer,
        reference_points: Sequence[DataPoint],
        fallback: Optional[FallbackSelection] = None,
    ) -> UserComparison:
        strengths = self.identify_strengths(user_scores, profile, reference_points)
        areas = self.identify_development_areas(user_scores, strengths, profile)

        scores: Dict[str, Optional[float]] = {}
        benchmark: Dict[str, Optional[float]] = {}
        percentiles: Dict[str, int] = {}
        for key in self.config.eq_fields:
            score = user_scores.get(key)
            scores[key] = score
            benchmark[key] = profile.dimension_averages.get(key)
            percentiles[key] = 0 if score is None else self._percentile(score, key, reference_points)

        comparison = UserComparison(
            outcome=profile.outcome,
            strengths=strengths,
            insights=self.strength_insights(strengths),
            development_areas=areas,
            user_scores=scores,
            benchmark_scores=benchmark,
            percentiles=percentiles,
            summary=self.summary(profile.outcome, strengths, areas),
        )
        if fallback is not None:
            comparison.fallback_level = fallback.level
            comparison.context = fallback.used
            comparison.sample_size = fallback.sample_size
        return comparison

    def identify_strengths(
        self,
        user_scores: Mapping[str, Optional[float]],
        profile: BenchmarkTopPerformer,
        reference_points: Sequence[DataPoint],
    ) -> List[UserStrength]:
        """The user's highest-percentile fields, at most five, all at or above the median"""
        strengths = []
        for key in self.config.eq_fields:
            score = user_scores.get(key)
            if score is None:
                continue

            top_avg = profile.dimension_averages.get(key)
            diff = 0.0
            versus = "below"
            if top_avg is not None:
                diff = score - top_avg
                if diff > AT_TOP_PERFORMER_MARGIN:
                    versus = "above"
                elif diff >= -AT_TOP_PERFORMER_MARGIN:
                    versus = "at"

            strengths.append(UserStrength(
                competency=key,
                score=score,
                percentile=self._percentile(score, key, reference_points),
                vs_top_performer=versus,
                diff_from_top_performer=diff,
            ))

        strengths.sort(key=lambda s: -s.percentile)
        return [s for s in strengths if s.percentile >= STRENGTH_MIN_PERCENTILE][:STRENGTH_LIMIT]

    def identify_development_areas(
        self,
        user_scores: Mapping[str, Optional[float]],
        strengths: Sequence[UserStrength],
        profile: BenchmarkTopPerformer,
    ) -> List[DevelopmentArea]:
        strength_keys = [s.competency for s in strengths]
        areas = []

        for key in self.config.eq_fields:
            if key in strength_keys:
                continue
            score = user_scores.get(key)
            top_avg = profile.dimension_averages.get(key)
            if score is None or top_avg is None:
                continue

            gap = top_avg - score
            if gap <= DEVELOPMENT_MIN_GAP:
                continue

            leveraged_by = tuple(
                strength for strength in strength_keys
                if strength in LEVERAGE_MAP.get(key, ()) or key in LEVERAGE_MAP.get(strength, ())
            )

            if gap > 15 and leveraged_by:
                priority = Priority.HIGH
            elif gap > 10 or len(leveraged_by) > 1:
                priority = Priority.MEDIUM
            else:
                priority = Priority.LOW

            areas.append(DevelopmentArea(
                area=key,
                priority=priority,
                leveraged_by=leveraged_by,
                action_suggestion=f"action_{key}",
                current_score=score,
                top_performer_score=top_avg,
                gap=gap,
            ))

        areas.sort(key=lambda a: (_PRIORITY_ORDER[a.priority], -a.gap))
        return areas[:DEVELOPMENT_LIMIT]

    @staticmethod
    def strength_insights(strengths: Sequence[UserStrength]) -> List[StrengthInsight]:
        return [
            StrengthInsight(
                strength=s.competency,
                how_they_use_it=f"insight_{s.competency}_use",
                result_they_get=f"insight_{s.competency}_result",
            )
            for s in strengths[:INSIGHT_LIMIT]
        ]

    @staticmethod
    def summary(outcome: str, strengths: Sequence[UserStrength], areas: Sequence[DevelopmentArea]) -> str:
        """Translation key with parameters, rendered by the presentation layer"""
        top_strength = strengths[0].competency if strengths else "none"
        top_area = areas[0].area if areas else "none"
        lever = areas[0].leveraged_by[0] if areas and areas[0].leveraged_by else "none"
        return f"summary:{outcome}:{top_strength}:{top_area}:{lever}"

    def _percentile(self, score: float, key: str, reference_points: Sequence[DataPoint]) -> int:
        return self.engine.percentile_rank(score, (point.score(key) for point in reference_points))
