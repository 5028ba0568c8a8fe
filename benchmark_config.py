from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from benchmark_models import ConfigurationError


ENV_PREFIX = "EQ_BENCHMARK_"


EQ_PILLARS: Tuple[str, ...] = ("K", "C", "G")

EQ_COMPETENCIES: Tuple[str, ...] = ("EL", "RP", "ACT", "NE", "IM", "OP", "EMP", "NG")

# Six Seconds brain talents, in Focus / Decisions / Drive order
TALENT_GROUPS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "focus": (
        "data_mining", "modeling", "prioritizing",
        "connection", "emotional_insight", "collaboration",
    ),
    "decisions": (
        "reflecting", "adaptability", "critical_thinking",
        "resilience", "risk_tolerance", "imagination",
    ),
    "drive": (
        "proactivity", "commitment", "problem_solving",
        "vision", "designing", "entrepreneurship",
    ),
})

BRAIN_TALENTS: Tuple[str, ...] = tuple(
    talent for group in ("focus", "decisions", "drive") for talent in TALENT_GROUPS[group]
)

OUTCOMES: Tuple[str, ...] = (
    "effectiveness",
    "relationships",
    "quality_of_life",
    "wellbeing",
    "influence",
    "decision_making",
    "community",
    "network",
    "achievement",
    "satisfaction",
    "balance",
    "health",
)

# Scored fields carried on a data point but never used as a dimension or outcome
AUXILIARY_SCORES: Tuple[str, ...] = ("eq_total", "brain_agility", "reliability_index")


@dataclass(frozen=True)
class ScoreScale:
    minimum: float
    maximum: float

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum

    def clamp(self, value: float) -> float:
        return min(max(value, self.minimum), self.maximum)


def _default_scales() -> Mapping[str, ScoreScale]:
    return MappingProxyType({
        "pillar": ScoreScale(0.0, 135.0),
        "competency": ScoreScale(0.0, 135.0),
        "eq_total": ScoreScale(0.0, 135.0),
        "talent": ScoreScale(0.0, 100.0),
        "outcome": ScoreScale(0.0, 100.0),
    })


@dataclass(frozen=True)
class BenchmarkConfig:
    """Immutable policy and dimension configuration for one benchmark run.

    Every threshold the engine applies lives here so that two benchmarks can
    be generated side by side with different policies.
    """
    min_total_sample: int = 100
    min_top_performer_sample: int = 30
    high_confidence_sample: int = 385
    medium_confidence_sample: int = 100
    z_critical: float = 1.96
    top_percentile: float = 90.0
    min_correlation_sample: int = 3
    significance_level: float = 0.05
    clamp_out_of_range: bool = False

    # Top-performer pattern detection
    competency_pattern_min_frequency: float = 20.0
    competency_pattern_limit: int = 5
    talent_pattern_min_frequency: float = 10.0
    talent_pattern_limit: int = 6
    pattern_top_n: int = 3

    pillars: Tuple[str, ...] = EQ_PILLARS
    competencies: Tuple[str, ...] = EQ_COMPETENCIES
    talents: Tuple[str, ...] = BRAIN_TALENTS
    outcomes: Tuple[str, ...] = OUTCOMES
    talent_groups: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: TALENT_GROUPS)
    score_scales: Mapping[str, ScoreScale] = field(default_factory=_default_scales)

    def __post_init__(self):
        for name in ("pillars", "competencies", "talents", "outcomes"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))
        if not isinstance(self.score_scales, MappingProxyType):
            object.__setattr__(self, "score_scales", MappingProxyType(dict(self.score_scales)))
        self.validate()

    @property
    def dimensions(self) -> Tuple[str, ...]:
        """Pillars, competencies and talents in their fixed evaluation order"""
        return self.pillars + self.competencies + self.talents

    @property
    def eq_fields(self) -> Tuple[str, ...]:
        return self.pillars + self.competencies

    def dimension_type(self, dimension: str) -> str:
        if dimension in self.pillars:
            return "pillar"
        if dimension in self.competencies:
            return "competency"
        if dimension in self.talents:
            return "talent"
        raise KeyError(f"Unknown dimension: {dimension}")

    def talent_group(self, talent: str) -> Optional[str]:
        for group, members in self.talent_groups.items():
            if talent in members:
                return group
        return None

    def scale_for(self, field_name: str) -> Optional[ScoreScale]:
        """Score scale for a canonical numeric field, None when unbounded"""
        if field_name in self.pillars:
            return self.score_scales.get("pillar")
        if field_name in self.competencies:
            return self.score_scales.get("competency")
        if field_name in self.talents:
            return self.score_scales.get("talent")
        if field_name in self.outcomes:
            return self.score_scales.get("outcome")
        return self.score_scales.get(field_name)

    def validate(self) -> None:
        if not self.outcomes:
            raise ConfigurationError("Outcome list must not be empty")
        if not self.dimensions:
            raise ConfigurationError("Dimension list must not be empty")

        keys = self.dimensions + self.outcomes
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate dimension/outcome keys: {', '.join(duplicates)}")

        if not 0 < self.top_percentile < 100:
            raise ConfigurationError("top_percentile must be between 0 and 100")
        if self.min_total_sample < 1 or self.min_top_performer_sample < 1:
            raise ConfigurationError("Minimum sample sizes must be positive")
        if self.min_correlation_sample < 3:
            raise ConfigurationError("min_correlation_sample must be at least 3")
        if self.medium_confidence_sample > self.high_confidence_sample:
            raise ConfigurationError("medium_confidence_sample cannot exceed high_confidence_sample")
        if self.z_critical <= 0:
            raise ConfigurationError("z_critical must be positive")
        if not 0 < self.significance_level < 1:
            raise ConfigurationError("significance_level must be between 0 and 1")

        for name, scale in self.score_scales.items():
            if scale.minimum > scale.maximum:
                raise ConfigurationError(f"Score scale '{name}' has minimum above maximum")

    def with_overrides(self, **overrides) -> "BenchmarkConfig":
        return replace(self, **overrides)


    @classmethod
    def from_env(cls, **overrides) -> "BenchmarkConfig":
        """Build a config from EQ_BENCHMARK_* environment variables.

        Keyword overrides win over the environment; unset variables keep the
        dataclass defaults.
        """
        try:
            settings = BenchmarkSettings()
        except ValidationError as exc:
            raise ConfigurationError(_describe_env_error(exc)) from exc
        return settings.to_config(**overrides)


class BenchmarkSettings(BaseSettings):
    """Policy thresholds that may be tuned per deployment through the environment"""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
    )

    min_total_sample: Optional[int] = Field(default=None, ge=1)
    min_top_performer_sample: Optional[int] = Field(default=None, ge=1)
    high_confidence_sample: Optional[int] = Field(default=None, ge=1)
    medium_confidence_sample: Optional[int] = Field(default=None, ge=1)
    z_critical: Optional[float] = Field(default=None, gt=0)
    top_percentile: Optional[float] = Field(default=None, gt=0, lt=100)
    min_correlation_sample: Optional[int] = Field(default=None, ge=3)
    significance_level: Optional[float] = Field(default=None, gt=0, lt=1)
    clamp_out_of_range: Optional[bool] = Field(default=None)

    def to_config(self, **overrides) -> BenchmarkConfig:
        values = self.model_dump(exclude_none=True)
        values.update(overrides)
        return BenchmarkConfig(**values)


def _describe_env_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        field_name = str(error["loc"][0]) if error["loc"] else "?"
        problems.append(f"{ENV_PREFIX}{field_name.upper()}: {error['msg']}")
    return "Invalid environment configuration: " + "; ".join(problems)
