"""
End-to-end tests for the benchmark assembler.

Each test feeds synthetic data points straight into the pipeline and checks
the records handed to storage.
"""

import pytest

from benchmark_assembler import BenchmarkAssembler
from benchmark_config import BenchmarkConfig
from benchmark_models import ConfigurationError, ConfidenceTier, CorrelationPairType, StatisticStatus
from tests.factories import correlated_points, make_point


class FakeClock:
    """Advances one second on every reading"""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        current = self.now
        self.now += 1.0
        return current


class TestEndToEnd:
    def test_correlated_dimension_is_a_top_performer_signal(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset)

        summary = result.outcome_summaries["effectiveness"]
        assert summary.status == StatisticStatus.OK
        assert summary.total_sample == 150
        assert summary.top_sample == 15

        el_row = next(row for row in result.statistics_for("effectiveness") if row.dimension == "EL")
        assert el_row.general_n == 150
        assert el_row.top_n == 15
        assert el_row.effect_size > 0
        assert el_row.significant is True
        assert el_row.p_value < 0.05
        assert el_row.confidence_tier == ConfidenceTier.MEDIUM
        assert el_row.status == StatisticStatus.OK

        correlation = result.correlation("EL", "effectiveness")
        assert correlation.pair_type == CorrelationPairType.DIMENSION_OUTCOME
        assert correlation.coefficient > 0.8
        assert correlation.sample_size == 150

        profile = result.top_performer_for("effectiveness")
        assert profile.sample_size == 15
        assert result.is_complete

    def test_one_statistic_per_dimension(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset)

        rows = result.statistics_for("effectiveness")
        assert [row.dimension for row in rows] == list(small_cohort_config.dimensions)
        assert len({row.key for row in result.statistics}) == len(result.statistics)

    def test_absent_dimensions_are_insufficient(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset)

        k_row = next(row for row in result.statistics_for("effectiveness") if row.dimension == "K")
        assert k_row.status == StatisticStatus.INSUFFICIENT_SAMPLE
        assert k_row.general_mean is None
        assert k_row.effect_size is None
        assert k_row.significant is None

    def test_outcomes_without_data_are_reported(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset)

        assert "effectiveness" not in result.insufficient_outcomes
        assert "health" in result.insufficient_outcomes
        assert result.statistics_for("health") == []
        assert result.top_performer_for("health") is None


class TestInsufficientOutcome:
    def test_fifty_rows_emit_no_statistics(self, config):
        result = BenchmarkAssembler(config).assemble("bm-test", correlated_points(n=50))

        assert result.outcome_summaries["effectiveness"].status == StatisticStatus.INSUFFICIENT_SAMPLE
        assert result.statistics_for("effectiveness") == []
        assert result.top_performer_for("effectiveness") is None
        assert result.is_complete

    def test_correlations_are_still_computed(self, config):
        result = BenchmarkAssembler(config).assemble("bm-test", correlated_points(n=50))
        assert result.correlation("EL", "effectiveness").coefficient > 0.8


class TestConstantDimensions:
    def test_constant_dimensions_have_null_correlations(self, small_cohort_config):
        points = correlated_points(n=150, extra={"K": 70.0, "C": 70.0})

        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", points)

        assert result.correlation("K", "C").coefficient is None
        assert result.correlation("K", "EL").coefficient is None
        assert result.correlation("C", "effectiveness").coefficient is None
        assert result.correlation("K", "EL").sample_size == 150

    def test_constant_dimension_statistics(self, small_cohort_config):
        points = correlated_points(n=150, extra={"K": 70.0})

        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", points)

        k_row = next(row for row in result.statistics_for("effectiveness") if row.dimension == "K")
        assert k_row.general_mean == 70.0
        assert k_row.general_std_dev == 0.0
        assert k_row.effect_size is None
        assert k_row.significant is False


class TestDeterminism:
    def test_identical_runs(self, small_cohort_config):
        first = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_points(seed=21))
        second = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_points(seed=21))
        assert first == second

    def test_correlation_rows_follow_configuration_order(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset)

        outcome_rows = [row for row in result.correlations if row.pair_type == CorrelationPairType.DIMENSION_OUTCOME]
        outcomes = []
        for row in outcome_rows:
            if not outcomes or outcomes[-1] != row.dimension_b:
                outcomes.append(row.dimension_b)
        assert outcomes == list(small_cohort_config.outcomes)


class TestCheckpoint:
    def test_time_budget_leaves_outcomes_pending(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble(
            "bm-test", correlated_dataset, time_budget_seconds=2.5, clock=FakeClock(),
        )

        assert result.completed_outcomes == list(small_cohort_config.outcomes[:2])
        assert result.pending_outcomes == list(small_cohort_config.outcomes[2:])
        assert not result.dimension_phase_complete
        assert not result.is_complete

    def test_resume_matches_uninterrupted_run(self, small_cohort_config, correlated_dataset):
        assembler = BenchmarkAssembler(small_cohort_config)
        partial = assembler.assemble("bm-test", correlated_dataset, time_budget_seconds=2.5, clock=FakeClock())

        resumed = assembler.assemble("bm-test", correlated_dataset, resume_from=partial)
        full = assembler.assemble("bm-test", correlated_dataset)

        assert resumed.is_complete
        assert resumed == full

    def test_resume_does_not_mutate_checkpoint(self, small_cohort_config, correlated_dataset):
        assembler = BenchmarkAssembler(small_cohort_config)
        partial = assembler.assemble("bm-test", correlated_dataset, time_budget_seconds=0)
        assembler.assemble("bm-test", correlated_dataset, resume_from=partial)

        assert partial.completed_outcomes == []
        assert partial.statistics == []

    def test_resume_from_other_benchmark(self, small_cohort_config, correlated_dataset):
        assembler = BenchmarkAssembler(small_cohort_config)
        partial = assembler.assemble("bm-other", correlated_dataset, time_budget_seconds=0)
        with pytest.raises(ConfigurationError):
            assembler.assemble("bm-test", correlated_dataset, resume_from=partial)


class TestInputs:
    def test_empty_dataset_is_rejected(self, config):
        with pytest.raises(ConfigurationError):
            BenchmarkAssembler(config).assemble("bm-test", [])

    def test_process_single_outcome(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).process_outcome("bm-test", correlated_dataset, "effectiveness")

        assert result.completed_outcomes == ["effectiveness"]
        assert "effectiveness" not in result.pending_outcomes
        assert len(result.statistics) == len(small_cohort_config.dimensions)

    def test_unknown_outcome(self, config, correlated_dataset):
        with pytest.raises(ConfigurationError):
            BenchmarkAssembler(config).process_outcome("bm-test", correlated_dataset, "happiness")


class TestMetricSummaries:
    def test_summaries_for_metrics_with_enough_values(self, small_cohort_config, correlated_dataset):
        result = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset)

        by_metric = {summary.metric: summary for summary in result.metric_summaries}
        assert set(by_metric) == {"EL", "effectiveness"}
        effectiveness = by_metric["effectiveness"]
        assert effectiveness.n == 150
        assert effectiveness.min <= effectiveness.p10 <= effectiveness.p50 <= effectiveness.p95 <= effectiveness.max
        assert effectiveness.p50 == effectiveness.median

    def test_frames_for_storage(self, small_cohort_config, correlated_dataset):
        frames = BenchmarkAssembler(small_cohort_config).assemble("bm-test", correlated_dataset).to_frames()

        assert len(frames["statistics"]) == len(small_cohort_config.dimensions)
        assert set(frames["statistics"]["status"]) <= {"ok", "insufficient_sample"}
        assert len(frames["outcomes"]) == len(small_cohort_config.outcomes)


def test_custom_outcome_list(correlated_dataset):
    config = BenchmarkConfig(outcomes=("effectiveness",), min_top_performer_sample=10)
    result = BenchmarkAssembler(config).assemble("bm-test", correlated_dataset + [make_point(150, EL=3.0)])

    assert result.completed_outcomes == ["effectiveness"]
    assert result.outcome_summaries["effectiveness"].excluded == 1
