"""
Lifecycle tests for BenchmarkFramework: upload, generation, failure and
cascade deletion.
"""

import pandas as pd
import pytest

from benchmark_framework import BenchmarkFramework
from benchmark_models import (
    BenchmarkNotFoundError,
    BenchmarkStateError,
    BenchmarkStatus,
    ConfigurationError,
    StatisticStatus,
)
from cohort_analysis.cohort_selector import DataPointFilters
from cohort_analysis.segment_fallback import FallbackLevel
from tests.factories import soh_rows


@pytest.fixture
def framework(small_cohort_config):
    return BenchmarkFramework(config=small_cohort_config)


@pytest.fixture
def loaded(framework):
    benchmark_id = framework.create_benchmark("Spain & Italy 2024", benchmark_id="bm-1")
    framework.ingest_rows(benchmark_id, soh_rows())
    return framework, benchmark_id


class TestCreate:
    def test_new_benchmark_is_pending(self, framework):
        benchmark_id = framework.create_benchmark("  Global  ")
        status = framework.get_benchmark_status(benchmark_id)
        assert status["status"] == "pending"
        assert status["name"] == "Global"

    def test_empty_name(self, framework):
        with pytest.raises(ValueError):
            framework.create_benchmark("  ")

    def test_duplicate_id(self, framework):
        framework.create_benchmark("First", benchmark_id="bm-1")
        with pytest.raises(BenchmarkStateError):
            framework.create_benchmark("Second", benchmark_id="bm-1")

    def test_cannot_generate_before_upload(self, framework):
        benchmark_id = framework.create_benchmark("Empty")
        with pytest.raises(BenchmarkStateError):
            framework.generate(benchmark_id)


class TestIngest:
    def test_rows_are_counted(self, loaded):
        framework, benchmark_id = loaded
        status = framework.get_benchmark_status(benchmark_id)

        assert status["status"] == "processing"
        assert status["total_rows"] == 150
        assert status["valid_rows"] == 150
        assert status["rejected_rows"] == 0

    def test_chunks_continue_row_numbering(self, loaded):
        framework, benchmark_id = loaded
        report = framework.ingest_rows(benchmark_id, [{"Know Yourself Score": 100}, {"Country": "Spain"}])

        assert report.data_points[0].row_index == 150
        assert report.errors[0].row_index == 151
        assert framework.get_benchmark_status(benchmark_id)["rejected_rows"] == 1

    def test_frame_upload(self, framework):
        benchmark_id = framework.create_benchmark("Frame")
        report = framework.ingest_frame(benchmark_id, pd.DataFrame(soh_rows(n=20)))
        assert report.valid_count == 20

    def test_unknown_benchmark(self, framework):
        with pytest.raises(BenchmarkNotFoundError):
            framework.ingest_rows("missing", [])


class TestGenerate:
    def test_generation_marks_benchmark_ready(self, loaded):
        framework, benchmark_id = loaded

        result = framework.generate(benchmark_id)

        status = framework.get_benchmark_status(benchmark_id)
        assert status["status"] == "ready"
        assert status["pending_outcomes"] == []
        assert result.outcome_summaries["effectiveness"].status == StatisticStatus.OK
        el_row = next(row for row in result.statistics_for("effectiveness") if row.dimension == "EL")
        assert el_row.effect_size > 0
        assert framework.get_results(benchmark_id) is result

    def test_partial_run_resumes(self, loaded):
        framework, benchmark_id = loaded

        partial = framework.generate(benchmark_id, time_budget_seconds=0)
        assert not partial.is_complete
        assert framework.get_benchmark_status(benchmark_id)["status"] == "processing"

        final = framework.generate(benchmark_id)
        assert final.is_complete
        assert framework.benchmarks[benchmark_id].status == BenchmarkStatus.READY

    def test_new_upload_invalidates_results(self, framework):
        benchmark_id = framework.create_benchmark("Chunks")
        framework.ingest_rows(benchmark_id, soh_rows(n=100))
        framework.generate(benchmark_id, time_budget_seconds=0)

        framework.ingest_rows(benchmark_id, soh_rows(n=50, seed=3))

        assert framework.get_results(benchmark_id) is None

    def test_failure_is_recorded(self, framework):
        benchmark_id = framework.create_benchmark("Broken")
        framework.ingest_rows(benchmark_id, [{"Country": "Spain"}])

        with pytest.raises(ConfigurationError):
            framework.generate(benchmark_id)

        status = framework.get_benchmark_status(benchmark_id)
        assert status["status"] == "failed"
        assert "empty dataset" in status["error_message"]

    def test_unexpected_error_is_recorded(self, loaded, monkeypatch):
        framework, benchmark_id = loaded

        def explode(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(framework.assembler, "assemble", explode)

        with pytest.raises(RuntimeError, match="disk full"):
            framework.generate(benchmark_id)

        status = framework.get_benchmark_status(benchmark_id)
        assert status["status"] == "failed"
        assert status["error_message"] == "disk full"

    def test_segment_generation(self, loaded):
        framework, benchmark_id = loaded
        framework.generate(benchmark_id)

        segment = framework.generate_segment(benchmark_id, DataPointFilters(country="Spain"))

        assert segment.data_point_count == 75
        assert segment.outcome_summaries["effectiveness"].status == StatisticStatus.INSUFFICIENT_SAMPLE
        assert framework.get_results(benchmark_id).data_point_count == 150


class TestUserComparison:
    def test_small_segment_widens_to_global(self, loaded):
        framework, benchmark_id = loaded

        selection = framework.select_segment(benchmark_id, "effectiveness", DataPointFilters(country="Spain"))

        assert selection.level == FallbackLevel.GLOBAL
        assert selection.sample_size == 150

    def test_compare_user(self, loaded):
        framework, benchmark_id = loaded

        comparison = framework.compare_user(
            benchmark_id, {"K": 200.0, "EL": 10.0}, "effectiveness", DataPointFilters(country="Spain"),
        )

        assert comparison.fallback_level == FallbackLevel.GLOBAL
        assert comparison.sample_size == 150
        assert comparison.strengths[0].competency == "K"
        assert comparison.strengths[0].percentile == 100
        assert comparison.development_areas[0].area == "EL"
        assert comparison.benchmark_scores["EL"] is not None

    def test_no_qualifying_segment(self, framework):
        benchmark_id = framework.create_benchmark("Tiny")
        framework.ingest_rows(benchmark_id, soh_rows(n=40))

        assert framework.compare_user(benchmark_id, {"EL": 100.0}, "effectiveness") is None

    def test_unknown_outcome(self, loaded):
        framework, benchmark_id = loaded
        with pytest.raises(ConfigurationError):
            framework.compare_user(benchmark_id, {}, "happiness")

    def test_profile_insights_after_generation(self, loaded):
        framework, benchmark_id = loaded
        assert framework.top_performer_insights(benchmark_id, "effectiveness") == []

        framework.generate(benchmark_id)

        insights = framework.top_performer_insights(benchmark_id, "effectiveness")
        assert all(isinstance(item, str) for item in insights)
        assert insights == framework.assembler.profile_builder.insights(
            framework.get_results(benchmark_id).top_performer_for("effectiveness")
        )


class TestDelete:
    def test_delete_cascades(self, loaded):
        framework, benchmark_id = loaded
        framework.generate(benchmark_id)

        assert framework.delete_benchmark(benchmark_id) is True

        assert benchmark_id not in framework.data_points
        assert benchmark_id not in framework.results
        with pytest.raises(BenchmarkNotFoundError):
            framework.get_benchmark_status(benchmark_id)
        assert framework.delete_benchmark(benchmark_id) is False


def test_portfolio_metrics(loaded):
    framework, benchmark_id = loaded
    framework.create_benchmark("Another")
    framework.generate(benchmark_id)

    metrics = framework.get_portfolio_metrics()

    assert metrics["total_benchmarks"] == 2
    assert metrics["by_status"]["ready"] == 1
    assert metrics["by_status"]["pending"] == 1
    assert metrics["total_data_points"] == 150
    assert metrics["total_statistics"] == 29
