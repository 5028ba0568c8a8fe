import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class BenchmarkError(Exception):
    """Base class for benchmark engine errors."""


class ValidationError(BenchmarkError, ValueError):
    """Raised when a single input row cannot be normalized."""

    def __init__(self, row_index: int, field: str, message: str):
        self.row_index = row_index
        self.field = field
        self.message = message
        super().__init__(f"Row {row_index}: field '{field}': {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {"row_index": self.row_index, "field": self.field, "message": self.message}


class ConfigurationError(BenchmarkError, ValueError):
    """Raised before any computation when the run cannot produce meaningful output."""


class BenchmarkStateError(BenchmarkError):
    """Raised on an illegal benchmark lifecycle transition."""


class BenchmarkNotFoundError(BenchmarkError, KeyError):
    """Raised when a benchmark id is not registered."""

    def __str__(self):
        return str(self.args[0]) if self.args else "Benchmark not found"


class BenchmarkStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class StatisticStatus(Enum):
    OK = "ok"
    INSUFFICIENT_SAMPLE = "insufficient_sample"


class ConfidenceTier(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CorrelationPairType(Enum):
    DIMENSION_OUTCOME = "dimension_outcome"
    DIMENSION_DIMENSION = "dimension_dimension"


@dataclass(frozen=True)
class DataPoint:
    """One respondent's canonical record.

    Scores are finite floats or None; absent values stay absent and are
    skipped by every aggregate.
    """
    id: str
    benchmark_id: Optional[str]
    row_index: int
    scores: Mapping[str, Optional[float]]
    country: Optional[str] = None
    region: Optional[str] = None
    sector: Optional[str] = None
    job_function: Optional[str] = None
    job_role: Optional[str] = None
    gender: Optional[str] = None
    education: Optional[str] = None
    age_range: str = "unknown"
    generation: str = "unknown"
    year: Optional[int] = None
    month: Optional[int] = None
    quarter: Optional[int] = None

    def __post_init__(self):
        cleaned = {}
        for key, value in self.scores.items():
            if value is not None:
                value = float(value)
                if not math.isfinite(value):
                    raise ValueError(f"Score '{key}' must be finite or absent")
            cleaned[key] = value
        object.__setattr__(self, "scores", MappingProxyType(cleaned))

    def score(self, key: str) -> Optional[float]:
        return self.scores.get(key)

    def has_score(self, key: str) -> bool:
        return self.scores.get(key) is not None


@dataclass
class Benchmark:
    id: str
    name: str
    status: BenchmarkStatus = BenchmarkStatus.PENDING
    total_rows: int = 0
    valid_rows: int = 0
    rejected_rows: int = 0
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    processed_at: Optional[datetime] = None


@dataclass(frozen=True)
class BenchmarkStatistic:
    benchmark_id: str
    dimension: str
    dimension_type: str
    outcome: str
    general_mean: Optional[float]
    general_std_dev: Optional[float]
    general_n: int
    top_mean: Optional[float]
    top_std_dev: Optional[float]
    top_n: int
    effect_size: Optional[float]
    z_statistic: Optional[float]
    p_value: Optional[float]
    significant: Optional[bool]
    statistical_power: Optional[float]
    confidence_tier: ConfidenceTier
    status: StatisticStatus

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.benchmark_id, self.dimension, self.outcome)


@dataclass(frozen=True)
class BenchmarkCorrelation:
    benchmark_id: str
    dimension_a: str
    dimension_b: str
    pair_type: CorrelationPairType
    coefficient: Optional[float]
    p_value: Optional[float]
    sample_size: int
    strength: str
    direction: str

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.benchmark_id, self.dimension_a, self.dimension_b)


@dataclass(frozen=True)
class CompetencyRanking:
    key: str
    avg_score: float
    importance: float
    diff_from_avg: Optional[float]


@dataclass(frozen=True)
class TalentRanking:
    key: str
    group: Optional[str]
    avg_score: float
    importance: float


@dataclass(frozen=True)
class Pattern:
    members: Tuple[str, ...]
    frequency: int
    avg_outcome: float


@dataclass(frozen=True)
class BenchmarkTopPerformer:
    benchmark_id: str
    outcome: str
    percentile_threshold: float
    threshold_value: float
    sample_size: int
    dimension_averages: Mapping[str, Optional[float]]
    top_competencies: Tuple[CompetencyRanking, ...]
    top_talents: Tuple[TalentRanking, ...]
    common_patterns: Tuple[Pattern, ...]
    talent_patterns: Tuple[Pattern, ...]

    @property
    def key(self) -> Tuple[str, str]:
        return (self.benchmark_id, self.outcome)


@dataclass(frozen=True)
class BenchmarkMetricSummary:
    benchmark_id: str
    metric: str
    n: int
    mean: Optional[float]
    median: Optional[float]
    std_dev: Optional[float]
    min: Optional[float]
    max: Optional[float]
    p10: Optional[float]
    p25: Optional[float]
    p50: Optional[float]
    p75: Optional[float]
    p90: Optional[float]
    p95: Optional[float]


@dataclass
class OutcomeSummary:
    outcome: str
    status: StatisticStatus
    total_sample: int
    top_sample: int
    excluded: int
    threshold_value: Optional[float]
    reason: Optional[str] = None


def record_to_dict(record: Any) -> Dict[str, Any]:
    """Flatten a frozen record into plain values for the storage collaborator"""
    data = {}
    for name in record.__dataclass_fields__:
        data[name] = _plain(getattr(record, name))
    return data


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if hasattr(value, "__dataclass_fields__"):
        return record_to_dict(value)
    return value


def records_to_dicts(records: List[Any]) -> List[Dict[str, Any]]:
    return [record_to_dict(record) for record in records]
