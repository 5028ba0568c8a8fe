import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np


SUMMARY_PERCENTILES = (10, 25, 50, 75, 90, 95)


@dataclass(frozen=True)
class DescriptiveStats:
    mean: Optional[float]
    std_dev: Optional[float]
    count: int

    @property
    def variance(self) -> Optional[float]:
        return None if self.std_dev is None else self.std_dev ** 2

    @property
    def is_empty(self) -> bool:
        return self.count == 0


EMPTY_STATS = DescriptiveStats(mean=None, std_dev=None, count=0)


@dataclass(frozen=True)
class DistributionSummary:
    stats: DescriptiveStats
    median: Optional[float]
    minimum: Optional[float]
    maximum: Optional[float]
    percentiles: Dict[int, Optional[float]]


def clean_values(values: Iterable[Optional[float]]) -> List[float]:
    """Drop absent and NaN entries, keeping input order"""
    cleaned = []
    for value in values:
        if value is None:
            continue
        value = float(value)
        if math.isnan(value):
            continue
        cleaned.append(value)
    return cleaned


class StatisticalEngine:
    """Descriptive statistics over a single cohort of scores.

    Values are always reduced in the order they are given, so the same
    input sequence produces bit-identical results.
    """

    def __init__(self, ddof: int = 1):
        # Sample (Bessel-corrected) standard deviation for inferential use
        self.ddof = ddof

    def describe(self, values: Iterable[Optional[float]]) -> DescriptiveStats:
        """Mean, sample standard deviation and count of the present values"""
        cleaned = clean_values(values)
        if not cleaned:
            return EMPTY_STATS

        data = np.asarray(cleaned, dtype=float)
        if data.min() == data.max():
            # Constant cohorts report an exact mean and zero spread
            std_dev = 0.0 if len(data) > self.ddof else None
            return DescriptiveStats(mean=float(data[0]), std_dev=std_dev, count=len(data))

        mean = float(np.mean(data))
        if len(data) <= self.ddof:
            return DescriptiveStats(mean=mean, std_dev=None, count=len(data))

        std_dev = float(np.std(data, ddof=self.ddof))
        return DescriptiveStats(mean=mean, std_dev=std_dev, count=len(data))

    def summarize(self, values: Iterable[Optional[float]]) -> DistributionSummary:
        """Full distribution summary used for per-metric benchmark rows"""
        cleaned = clean_values(values)
        stats = self.describe(cleaned)
        if stats.is_empty:
            return DistributionSummary(
                stats=stats,
                median=None,
                minimum=None,
                maximum=None,
                percentiles={p: None for p in SUMMARY_PERCENTILES},
            )

        ordered = sorted(cleaned)
        return DistributionSummary(
            stats=stats,
            median=self.percentile(ordered, 50, presorted=True),
            minimum=ordered[0],
            maximum=ordered[-1],
            percentiles={p: self.percentile(ordered, p, presorted=True) for p in SUMMARY_PERCENTILES},
        )

    def percentile(self, values: Sequence[Optional[float]], p: float, presorted: bool = False) -> Optional[float]:
        """Linear interpolation between closest ranks (Hyndman-Fan type 7).

        With x sorted ascending and h = (p / 100) * (n - 1):
        x[floor(h)] + (h - floor(h)) * (x[floor(h) + 1] - x[floor(h)])
        """
        if not 0 <= p <= 100:
            raise ValueError(f"Percentile must be between 0 and 100, got {p}")

        cleaned = clean_values(values)
        if not cleaned:
            return None
        ordered = cleaned if presorted else sorted(cleaned)
        return float(np.percentile(np.asarray(ordered, dtype=float), p, method="linear"))

    def percentile_rank(self, value: float, reference: Iterable[Optional[float]]) -> int:
        """Share of the reference at or below value, ties counted half, on a 0-100 scale"""
        cleaned = clean_values(reference)
        if not cleaned:
            return 50

        below = sum(1 for item in cleaned if item < value)
        equal = sum(1 for item in cleaned if item == value)
        return int(round((below + 0.5 * equal) / len(cleaned) * 100))
