import math

import pytest

from benchmark_assembler import BenchmarkAssembler
from benchmark_config import BenchmarkConfig
from benchmark_models import ConfidenceTier, StatisticStatus
from statistical_analysis.effect_size_analyzer import EffectSizeAnalyzer
from statistical_engine import DescriptiveStats
from tests.factories import correlated_points


@pytest.fixture
def analyzer(config):
    return EffectSizeAnalyzer(config)


class TestConfidenceTier:
    @pytest.mark.parametrize(
        "respondents, expected",
        [
            (99, ConfidenceTier.LOW),
            (100, ConfidenceTier.MEDIUM),
            (384, ConfidenceTier.MEDIUM),
            (385, ConfidenceTier.HIGH),
        ],
    )
    def test_tier_boundaries(self, analyzer, respondents, expected):
        assert analyzer.confidence_tier(respondents) == expected

    def test_top_performers_are_counted_once(self, analyzer):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=350)
        top = DescriptiveStats(mean=60.0, std_dev=5.0, count=35)
        assert analyzer.compare(general, top).confidence_tier == ConfidenceTier.MEDIUM

    @pytest.mark.parametrize("respondents, expected", [(350, ConfidenceTier.MEDIUM), (385, ConfidenceTier.HIGH)])
    def test_tier_of_assembled_outcome(self, config, respondents, expected):
        result = BenchmarkAssembler(config).assemble("bm-test", correlated_points(n=respondents))

        el_row = next(row for row in result.statistics_for("effectiveness") if row.dimension == "EL")
        assert el_row.general_n == respondents
        assert el_row.confidence_tier == expected


class TestCohensD:
    def test_pooled_standard_deviation(self, analyzer):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=101)
        top = DescriptiveStats(mean=65.0, std_dev=4.0, count=31)
        expected = math.sqrt((100 * 100 + 30 * 16) / 130)
        assert analyzer.pooled_std_dev(general, top) == pytest.approx(expected)
        assert analyzer.cohens_d(general, top) == pytest.approx(15 / expected)

    def test_sign_follows_top_minus_general(self, analyzer):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=100)
        top = DescriptiveStats(mean=45.0, std_dev=10.0, count=30)
        assert analyzer.cohens_d(general, top) == pytest.approx(-0.5)

    def test_zero_pooled_deviation_is_undefined(self, analyzer):
        general = DescriptiveStats(mean=70.0, std_dev=0.0, count=100)
        top = DescriptiveStats(mean=70.0, std_dev=0.0, count=30)
        assert analyzer.cohens_d(general, top) is None

    def test_empty_cohort_is_undefined(self, analyzer):
        general = DescriptiveStats(mean=70.0, std_dev=3.0, count=100)
        assert analyzer.pooled_std_dev(general, DescriptiveStats(None, None, 0)) is None


class TestCompare:
    def test_clear_separation_is_significant(self, analyzer):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=300)
        top = DescriptiveStats(mean=58.0, std_dev=6.0, count=30)

        comparison = analyzer.compare(general, top)

        assert comparison.status == StatisticStatus.OK
        assert comparison.effect_size > 0
        assert comparison.significant is True
        assert comparison.z_statistic == pytest.approx(8 / math.sqrt(100 / 300 + 36 / 30))
        assert 0.0 <= comparison.statistical_power <= 1.0

    def test_small_dimension_sample_nulls_every_inferential_field(self, analyzer):
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=300)
        top = DescriptiveStats(mean=58.0, std_dev=6.0, count=29)

        comparison = analyzer.compare(general, top)

        assert comparison.status == StatisticStatus.INSUFFICIENT_SAMPLE
        assert comparison.effect_size is None
        assert comparison.z_statistic is None
        assert comparison.p_value is None
        assert comparison.significant is None
        assert comparison.statistical_power is None

    def test_constant_dimension_is_not_significant(self, analyzer):
        general = DescriptiveStats(mean=70.0, std_dev=0.0, count=150)
        top = DescriptiveStats(mean=70.0, std_dev=0.0, count=30)

        comparison = analyzer.compare(general, top)

        assert comparison.status == StatisticStatus.OK
        assert comparison.effect_size is None
        assert comparison.z_statistic is None
        assert comparison.significant is False
        assert comparison.statistical_power is None

    def test_minimum_follows_configuration(self):
        analyzer = EffectSizeAnalyzer(BenchmarkConfig(min_top_performer_sample=10))
        general = DescriptiveStats(mean=50.0, std_dev=10.0, count=150)
        top = DescriptiveStats(mean=60.0, std_dev=5.0, count=15)
        assert analyzer.compare(general, top).status == StatisticStatus.OK
