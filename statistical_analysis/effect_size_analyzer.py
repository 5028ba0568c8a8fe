import math
from dataclasses import dataclass
from typing import Optional

from benchmark_config import BenchmarkConfig
from benchmark_models import ConfidenceTier, StatisticStatus
from statistical_analysis.significance_calculator import SignificanceCalculator
from statistical_engine import DescriptiveStats


@dataclass(frozen=True)
class CohortComparison:
    effect_size: Optional[float]
    pooled_std_dev: Optional[float]
    z_statistic: Optional[float]
    p_value: Optional[float]
    significant: Optional[bool]
    statistical_power: Optional[float]
    confidence_tier: ConfidenceTier
    status: StatisticStatus


class EffectSizeAnalyzer:
    """Standardized mean difference between top performers and the general population.

    Confidence tiers are fixed policy thresholds on distinct respondents, not
    the outcome of a power analysis; "low" results are directional only.
    """

    def __init__(self, config: BenchmarkConfig, significance_calculator: Optional[SignificanceCalculator] = None):
        self.config = config
        self.significance_calculator = significance_calculator or SignificanceCalculator(
            z_critical=config.z_critical,
            significance_level=config.significance_level,
        )

    def pooled_std_dev(self, general: DescriptiveStats, top: DescriptiveStats) -> Optional[float]:
        """sqrt(((n1 - 1) s1^2 + (n2 - 1) s2^2) / (n1 + n2 - 2))"""
        degrees_of_freedom = general.count + top.count - 2
        if general.count == 0 or top.count == 0 or degrees_of_freedom <= 0:
            return None

        weighted = 0.0
        for cohort in (general, top):
            if cohort.count > 1:
                if cohort.variance is None:
                    return None
                weighted += (cohort.count - 1) * cohort.variance

        return math.sqrt(weighted / degrees_of_freedom)

    def cohens_d(self, general: DescriptiveStats, top: DescriptiveStats) -> Optional[float]:
        """None when there is no spread to standardize by"""
        pooled = self.pooled_std_dev(general, top)
        if pooled is None or pooled == 0:
            return None
        return (top.mean - general.mean) / pooled

    def confidence_tier(self, combined_sample: int) -> ConfidenceTier:
        if combined_sample >= self.config.high_confidence_sample:
            return ConfidenceTier.HIGH
        if combined_sample >= self.config.medium_confidence_sample:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW

    def compare(self, general: DescriptiveStats, top: DescriptiveStats) -> CohortComparison:
        """Effect size, significance and confidence for one dimension/outcome pair.

        The general cohort already contains the top performers, so the
        respondents behind the comparison are counted once through general.
        """
        tier = self.confidence_tier(general.count)
        minimum = self.config.min_top_performer_sample

        if general.count < minimum or top.count < minimum:
            return CohortComparison(
                effect_size=None,
                pooled_std_dev=None,
                z_statistic=None,
                p_value=None,
                significant=None,
                statistical_power=None,
                confidence_tier=tier,
                status=StatisticStatus.INSUFFICIENT_SAMPLE,
            )

        pooled = self.pooled_std_dev(general, top)
        effect_size = self.cohens_d(general, top)
        significance = self.significance_calculator.z_test(general, top)

        return CohortComparison(
            effect_size=effect_size,
            pooled_std_dev=pooled,
            z_statistic=significance.z_statistic,
            p_value=significance.p_value,
            significant=significance.significant,
            statistical_power=self.significance_calculator.achieved_power(effect_size, general.count, top.count),
            confidence_tier=tier,
            status=StatisticStatus.OK,
        )
