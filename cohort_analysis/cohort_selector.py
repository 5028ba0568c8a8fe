import logging
from dataclasses import dataclass, fields
from typing import List, Optional, Sequence

from benchmark_config import BenchmarkConfig
from benchmark_models import DataPoint, StatisticStatus
from statistical_engine import StatisticalEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataPointFilters:
    """Demographic segment; unset fields match everything"""
    country: Optional[str] = None
    region: Optional[str] = None
    sector: Optional[str] = None
    job_role: Optional[str] = None
    job_function: Optional[str] = None
    age_range: Optional[str] = None
    gender: Optional[str] = None
    education: Optional[str] = None
    generation: Optional[str] = None
    year: Optional[int] = None

    def matches(self, point: DataPoint) -> bool:
        for item in fields(self):
            wanted = getattr(self, item.name)
            if wanted is not None and getattr(point, item.name) != wanted:
                return False
        return True

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


def filter_data_points(data_points: Sequence[DataPoint], filters: Optional[DataPointFilters]) -> List[DataPoint]:
    if filters is None or filters.is_empty:
        return list(data_points)
    return [point for point in data_points if filters.matches(point)]


@dataclass(frozen=True)
class CohortSplit:
    """Transient partition of a dataset for one outcome.

    general holds every point with the outcome present; top is the subset at
    or above the percentile threshold; excluded holds points missing the
    outcome. All three keep input order.
    """
    outcome: str
    percentile: float
    threshold: Optional[float]
    general: List[DataPoint]
    top: List[DataPoint]
    excluded: List[DataPoint]
    status: StatisticStatus
    reason: Optional[str] = None

    @property
    def is_sufficient(self) -> bool:
        return self.status == StatisticStatus.OK


class CohortSelector:
    """Splits a benchmark dataset into top performers and the general population"""

    def __init__(self, config: BenchmarkConfig, engine: Optional[StatisticalEngine] = None):
        self.config = config
        self.engine = engine or StatisticalEngine()

    def threshold(self, data_points: Sequence[DataPoint], outcome: str) -> Optional[float]:
        return self.engine.percentile(
            [point.score(outcome) for point in data_points],
            self.config.top_percentile,
        )

    def select(
        self,
        data_points: Sequence[DataPoint],
        outcome: str,
        filters: Optional[DataPointFilters] = None,
    ) -> CohortSplit:
        population = filter_data_points(data_points, filters)

        general = [point for point in population if point.has_score(outcome)]
        excluded = [point for point in population if not point.has_score(outcome)]

        if not general:
            return self._insufficient(outcome, None, general, [], excluded, "no respondents with this outcome")

        threshold = self.threshold(general, outcome)
        top = [point for point in general if point.score(outcome) >= threshold]

        if len(general) < self.config.min_total_sample:
            reason = f"{len(general)} respondents, minimum is {self.config.min_total_sample}"
            return self._insufficient(outcome, threshold, general, top, excluded, reason)

        if len(top) < self.config.min_top_performer_sample:
            reason = f"{len(top)} top performers, minimum is {self.config.min_top_performer_sample}"
            return self._insufficient(outcome, threshold, general, top, excluded, reason)

        return CohortSplit(
            outcome=outcome,
            percentile=self.config.top_percentile,
            threshold=threshold,
            general=general,
            top=top,
            excluded=excluded,
            status=StatisticStatus.OK,
        )

    def _insufficient(self, outcome, threshold, general, top, excluded, reason) -> CohortSplit:
        logger.warning("Insufficient sample for outcome %s: %s", outcome, reason)
        return CohortSplit(
            outcome=outcome,
            percentile=self.config.top_percentile,
            threshold=threshold,
            general=general,
            top=top,
            excluded=excluded,
            status=StatisticStatus.INSUFFICIENT_SAMPLE,
            reason=reason,
        )
