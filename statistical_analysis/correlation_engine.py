"""
Correlation Engine

Pearson correlations between EQ dimensions and outcomes, and between pairs
of dimensions, over the whole benchmark dataset.

Pairs are pairwise-complete: a respondent missing either value is left out
of that pair only. Undefined correlations (too few pairs, or a constant
side) are reported as None, never as 0, NaN or an exception.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import t as t_dist

from benchmark_config import BenchmarkConfig
from benchmark_models import BenchmarkCorrelation, CorrelationPairType, DataPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorrelationResult:
    coefficient: Optional[float]
    p_value: Optional[float]
    sample_size: int
    strength: str
    direction: str


def classify_strength(coefficient: Optional[float]) -> str:
    if coefficient is None:
        return "none"
    magnitude = abs(coefficient)
    if magnitude >= 0.7:
        return "strong"
    if magnitude >= 0.4:
        return "moderate"
    if magnitude >= 0.2:
        return "weak"
    return "none"


def classify_direction(coefficient: Optional[float]) -> str:
    if coefficient is None:
        return "none"
    if coefficient > 0.1:
        return "positive"
    if coefficient < -0.1:
        return "negative"
    return "none"


def paired_values(
    x: Sequence[Optional[float]],
    y: Sequence[Optional[float]],
) -> Tuple[List[float], List[float]]:
    """Keep positions where both sides are present, in input order"""
    if len(x) != len(y):
        raise ValueError(f"Vectors must have equal length, got {len(x)} and {len(y)}")

    xs, ys = [], []
    for a, b in zip(x, y):
        if a is None or b is None:
            continue
        if math.isnan(a) or math.isnan(b):
            continue
        xs.append(float(a))
        ys.append(float(b))
    return xs, ys


class CorrelationEngine:
    def __init__(self, config: BenchmarkConfig):
        self.config = config

    def pearson(self, x: Sequence[Optional[float]], y: Sequence[Optional[float]]) -> CorrelationResult:
        """Pearson r with a two-tailed t-test p-value.

        Symmetric by construction: deviations are multiplied elementwise and
        summed in input order, so pearson(x, y) == pearson(y, x) exactly.
        """
        xs, ys = paired_values(x, y)
        n = len(xs)

        if n < self.config.min_correlation_sample:
            return CorrelationResult(None, None, n, "none", "none")

        x_arr = np.asarray(xs, dtype=float)
        y_arr = np.asarray(ys, dtype=float)
        if x_arr.min() == x_arr.max() or y_arr.min() == y_arr.max():
            return CorrelationResult(None, None, n, "none", "none")

        x_dev = x_arr - np.mean(x_arr)
        y_dev = y_arr - np.mean(y_arr)

        numerator = float(np.sum(x_dev * y_dev))
        denominator = math.sqrt(float(np.sum(x_dev * x_dev)) * float(np.sum(y_dev * y_dev)))
        if denominator == 0:
            return CorrelationResult(None, None, n, "none", "none")

        r = min(1.0, max(-1.0, numerator / denominator))

        return CorrelationResult(
            coefficient=r,
            p_value=self._p_value(r, n),
            sample_size=n,
            strength=classify_strength(r),
            direction=classify_direction(r),
        )

    def _p_value(self, r: float, n: int) -> Optional[float]:
        if n <= 2:
            return None
        if abs(r) == 1.0:
            return 0.0
        t_statistic = r * math.sqrt((n - 2) / (1 - r ** 2))
        return float(2 * t_dist.sf(abs(t_statistic), n - 2))

    def correlate_fields(
        self,
        data_points: Sequence[DataPoint],
        field_a: str,
        field_b: str,
    ) -> CorrelationResult:
        return self.pearson(
            [point.score(field_a) for point in data_points],
            [point.score(field_b) for point in data_points],
        )

    def dimension_outcome_correlations(
        self,
        benchmark_id: str,
        data_points: Sequence[DataPoint],
        outcome: str,
        dimensions: Optional[Sequence[str]] = None,
    ) -> List[BenchmarkCorrelation]:
        """Every dimension against one outcome, in dimension order"""
        dimensions = self.config.dimensions if dimensions is None else dimensions
        outcome_values = [point.score(outcome) for point in data_points]

        rows = []
        for dimension in dimensions:
            result = self.pearson([point.score(dimension) for point in data_points], outcome_values)
            rows.append(self._to_record(benchmark_id, dimension, outcome, CorrelationPairType.DIMENSION_OUTCOME, result))
        return rows

    def dimension_matrix(
        self,
        benchmark_id: str,
        data_points: Sequence[DataPoint],
        dimensions: Optional[Sequence[str]] = None,
    ) -> List[BenchmarkCorrelation]:
        """Upper triangle of the dimension x dimension matrix in dimension order"""
        dimensions = self.config.dimensions if dimensions is None else dimensions
        columns = {dimension: [point.score(dimension) for point in data_points] for dimension in dimensions}

        rows = []
        for i, dimension_a in enumerate(dimensions):
            for dimension_b in dimensions[i + 1:]:
                result = self.pearson(columns[dimension_a], columns[dimension_b])
                rows.append(
                    self._to_record(benchmark_id, dimension_a, dimension_b, CorrelationPairType.DIMENSION_DIMENSION, result)
                )

        undefined = sum(1 for row in rows if row.coefficient is None)
        if undefined:
            logger.debug("%d of %d dimension pairs have no defined correlation", undefined, len(rows))
        return rows

    def correlate_dataset(
        self,
        benchmark_id: str,
        data_points: Sequence[DataPoint],
    ) -> List[BenchmarkCorrelation]:
        """Dimension x outcome rows (outcome order) followed by the dimension matrix"""
        rows = []
        for outcome in self.config.outcomes:
            rows.extend(self.dimension_outcome_correlations(benchmark_id, data_points, outcome))
        rows.extend(self.dimension_matrix(benchmark_id, data_points))
        return rows

    @staticmethod
    def _to_record(
        benchmark_id: str,
        dimension_a: str,
        dimension_b: str,
        pair_type: CorrelationPairType,
        result: CorrelationResult,
    ) -> BenchmarkCorrelation:
        return BenchmarkCorrelation(
            benchmark_id=benchmark_id,
            dimension_a=dimension_a,
            dimension_b=dimension_b,
            pair_type=pair_type,
            coefficient=result.coefficient,
            p_value=result.p_value,
            sample_size=result.sample_size,
            strength=result.strength,
            direction=result.direction,
        )
