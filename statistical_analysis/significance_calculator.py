import math
from dataclasses import dataclass
from typing import Optional

import scipy.stats as stats
from statsmodels.stats.power import NormalIndPower

from statistical_engine import DescriptiveStats


@dataclass(frozen=True)
class SignificanceResult:
    z_statistic: Optional[float]
    p_value: Optional[float]
    significant: bool
    standard_error: Optional[float]


class SignificanceCalculator:
    """Two-sample z-test between the top-performer and general cohorts"""

    def __init__(self, z_critical: float = 1.96, significance_level: float = 0.05):
        self.z_critical = z_critical
        self.significance_level = significance_level
        self._power_analysis = NormalIndPower()

    def standard_error(self, general: DescriptiveStats, top: DescriptiveStats) -> Optional[float]:
        """Unpooled standard error sqrt(s1^2/n1 + s2^2/n2)"""
        if general.count == 0 or top.count == 0:
            return None
        if general.std_dev is None or top.std_dev is None:
            return None
        return math.sqrt(general.variance / general.count + top.variance / top.count)

    def z_test(self, general: DescriptiveStats, top: DescriptiveStats) -> SignificanceResult:
        """Compare means against the two-tailed critical value"""
        standard_error = self.standard_error(general, top)
        if standard_error is None or standard_error == 0:
            return SignificanceResult(
                z_statistic=None,
                p_value=None,
                significant=False,
                standard_error=standard_error,
            )

        z_statistic = (top.mean - general.mean) / standard_error
        p_value = float(2 * stats.norm.sf(abs(z_statistic)))

        return SignificanceResult(
            z_statistic=z_statistic,
            p_value=p_value,
            significant=abs(z_statistic) >= self.z_critical,
            standard_error=standard_error,
        )

    def achieved_power(self, effect_size: Optional[float], general_n: int, top_n: int) -> Optional[float]:
        """Power of a two-sided z-test to detect the observed standardized difference"""
        if effect_size is None or general_n == 0 or top_n == 0:
            return None

        power = self._power_analysis.power(
            effect_size=abs(effect_size),
            nobs1=top_n,
            alpha=self.significance_level,
            ratio=general_n / top_n,
            alternative="two-sided",
        )
        power = float(power)
        return None if math.isnan(power) else min(max(power, 0.0), 1.0)
