import math

import pytest
from scipy import stats

from statistical_analysis.significance_calculator import SignificanceCalculator
from statistical_engine import DescriptiveStats


@pytest.fixture
def calculator():
    return SignificanceCalculator()


class TestZTest:
    def test_unpooled_standard_error(self, calculator):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=100)
        top = DescriptiveStats(mean=55.0, std_dev=6.0, count=36)
        assert calculator.standard_error(general, top) == pytest.approx(math.sqrt(1.0 + 1.0))

    def test_two_tailed_p_value(self, calculator):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=100)
        top = DescriptiveStats(mean=53.0, std_dev=6.0, count=36)

        result = calculator.z_test(general, top)

        z = 3 / math.sqrt(2)
        assert result.z_statistic == pytest.approx(z)
        assert result.p_value == pytest.approx(2 * stats.norm.sf(z))
        assert result.significant is True

    def test_critical_value_is_inclusive(self):
        calculator = SignificanceCalculator(z_critical=2.0)
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=100)
        top = DescriptiveStats(mean=52.0, std_dev=0.0, count=30)
        assert calculator.z_test(general, top).significant is True

    def test_below_critical_value(self, calculator):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=100)
        top = DescriptiveStats(mean=51.0, std_dev=6.0, count=36)

        result = calculator.z_test(general, top)

        assert result.significant is False
        assert result.p_value > 0.05

    def test_zero_standard_error(self, calculator):
        general = DescriptiveStats(mean=50.0, std_dev=0.0, count=100)
        top = DescriptiveStats(mean=50.0, std_dev=0.0, count=30)

        result = calculator.z_test(general, top)

        assert result.z_statistic is None
        assert result.p_value is None
        assert result.significant is False

    def test_missing_deviation(self, calculator):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=100)
        top = DescriptiveStats(mean=60.0, std_dev=None, count=1)
        assert calculator.standard_error(general, top) is None


class TestAchievedPower:
    def test_large_effect_has_high_power(self, calculator):
        assert calculator.achieved_power(1.5, 300, 30) > 0.99

    def test_small_effect_has_low_power(self, calculator):
        assert calculator.achieved_power(0.05, 100, 30) < 0.2

    def test_sign_does_not_matter(self, calculator):
        assert calculator.achieved_power(-0.6, 200, 40) == pytest.approx(calculator.achieved_power(0.6, 200, 40))

    def test_undefined_effect(self, calculator):
        assert calculator.achieved_power(None, 200, 40) is None
        assert calculator.achieved_power(0.5, 200, 0) is None
