import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from benchmark_assembler import BenchmarkAssembler, BenchmarkRunResult
from benchmark_config import BenchmarkConfig
from benchmark_models import (
    Benchmark,
    BenchmarkNotFoundError,
    BenchmarkStateError,
    BenchmarkStatus,
    ConfigurationError,
    DataPoint,
)
from cohort_analysis.cohort_selector import DataPointFilters, filter_data_points
from cohort_analysis.segment_fallback import FallbackSelection, SegmentFallback
from data_preparation.column_mapping import ColumnMapping
from data_preparation.row_normalizer import NormalizationReport, RowNormalizer
from top_performers.user_comparison import UserComparator, UserComparison

logger = logging.getLogger(__name__)

INGESTIBLE_STATUSES = (BenchmarkStatus.PENDING, BenchmarkStatus.PROCESSING, BenchmarkStatus.FAILED)
GENERATABLE_STATUSES = (BenchmarkStatus.PROCESSING, BenchmarkStatus.READY)


class BenchmarkFramework:
    """Benchmark lifecycle: upload, generation and cascade deletion.

    Holds benchmarks, their data points and their latest generation result
    in memory; a persistence layer mirrors these registries.
    """

    def __init__(self, config: Optional[BenchmarkConfig] = None, column_mapping: Optional[ColumnMapping] = None):
        self.config = config or BenchmarkConfig()
        self.normalizer = RowNormalizer(self.config, column_mapping)
        self.assembler = BenchmarkAssembler(self.config)
        self.segment_fallback = SegmentFallback(self.config, self.assembler.cohort_selector)
        self.user_comparator = UserComparator(self.config, self.assembler.engine)
        self.benchmarks: Dict[str, Benchmark] = {}
        self.data_points: Dict[str, List[DataPoint]] = {}
        self.results: Dict[str, BenchmarkRunResult] = {}

    def create_benchmark(self, name: str, benchmark_id: Optional[str] = None) -> str:
        """Register an empty benchmark awaiting upload"""
        if not name or not name.strip():
            raise ValueError("Benchmark name must not be empty")

        benchmark_id = benchmark_id or str(uuid.uuid4())
        if benchmark_id in self.benchmarks:
            raise BenchmarkStateError(f"Benchmark {benchmark_id} already exists")

        self.benchmarks[benchmark_id] = Benchmark(id=benchmark_id, name=name.strip())
        self.data_points[benchmark_id] = []
        return benchmark_id

    def ingest_rows(self, benchmark_id: str, rows: Iterable[Mapping[str, Any]]) -> NormalizationReport:
        """Normalize one chunk of uploaded rows; chunks may arrive in several calls"""
        benchmark = self._get(benchmark_id)
        self._require_status(benchmark, *INGESTIBLE_STATUSES)

        benchmark.status = BenchmarkStatus.PROCESSING
        report = self.normalizer.normalize_rows(rows, benchmark_id, start_index=benchmark.total_rows)
        return self._record_ingestion(benchmark, report)

    def ingest_frame(self, benchmark_id: str, frame: pd.DataFrame) -> NormalizationReport:
        benchmark = self._get(benchmark_id)
        self._require_status(benchmark, *INGESTIBLE_STATUSES)

        benchmark.status = BenchmarkStatus.PROCESSING
        report = self.normalizer.normalize_frame(frame, benchmark_id, start_index=benchmark.total_rows)
        return self._record_ingestion(benchmark, report)

    def generate(self, benchmark_id: str, time_budget_seconds: Optional[float] = None) -> BenchmarkRunResult:
        """Compute statistics, correlations and top-performer profiles.

        A partial run (time budget hit) leaves the benchmark processing and
        the next call resumes it. A complete run supersedes any earlier
        result. Fatal errors mark the benchmark failed and propagate.
        """
        benchmark = self._get(benchmark_id)
        self._require_status(benchmark, *GENERATABLE_STATUSES)

        checkpoint = self.results.get(benchmark_id)
        if checkpoint is not None and checkpoint.is_complete:
            checkpoint = None

        benchmark.status = BenchmarkStatus.PROCESSING
        try:
            result = self.assembler.assemble(
                benchmark_id,
                self.data_points[benchmark_id],
                resume_from=checkpoint,
                time_budget_seconds=time_budget_seconds,
            )
        except Exception as exc:
            benchmark.status = BenchmarkStatus.FAILED
            benchmark.error_message = str(exc) or type(exc).__name__
            logger.exception("Benchmark %s failed: %s", benchmark_id, exc)
            raise

        self.results[benchmark_id] = result
        if result.is_complete:
            benchmark.status = BenchmarkStatus.READY
            benchmark.processed_at = datetime.now()
            benchmark.error_message = None
        return result

    def generate_segment(self, benchmark_id: str, filters: DataPointFilters) -> BenchmarkRunResult:
        """Run the pipeline on a demographic slice without touching stored results"""
        benchmark = self._get(benchmark_id)
        self._require_status(benchmark, *GENERATABLE_STATUSES)
        segment = filter_data_points(self.data_points[benchmark_id], filters)
        return self.assembler.assemble(benchmark_id, segment)

    def select_segment(
        self,
        benchmark_id: str,
        outcome: str,
        filters: Optional[DataPointFilters] = None,
    ) -> FallbackSelection:
        """Narrowest segment around filters with enough top performers for outcome"""
        self._require_outcome(outcome)
        self._get(benchmark_id)
        return self.segment_fallback.select(self.data_points[benchmark_id], outcome, filters)

    def compare_user(
        self,
        benchmark_id: str,
        user_scores: Mapping[str, Optional[float]],
        outcome: str,
        filters: Optional[DataPointFilters] = None,
    ) -> Optional[UserComparison]:
        """Strengths-first comparison of one user against the top performers of a segment.

        The segment widens along the fallback chain until it is large enough;
        None when no level of the dataset qualifies.
        """
        selection = self.select_segment(benchmark_id, outcome, filters)
        if not selection.is_sufficient:
            return None

        statistics = self.assembler.build_statistics(benchmark_id, selection.split)
        profile = self.assembler.profile_builder.build(benchmark_id, selection.split, statistics)
        return self.user_comparator.compare(user_scores, profile, selection.population, selection)

    def top_performer_insights(self, benchmark_id: str, outcome: str) -> List[str]:
        """Insight keys for a generated outcome profile; empty when none was built"""
        self._require_outcome(outcome)
        result = self.get_results(benchmark_id)
        profile = result.top_performer_for(outcome) if result else None
        if profile is None:
            return []
        return self.assembler.profile_builder.insights(profile)

    def get_results(self, benchmark_id: str) -> Optional[BenchmarkRunResult]:
        self._get(benchmark_id)
        return self.results.get(benchmark_id)

    def get_benchmark_status(self, benchmark_id: str) -> Dict[str, Any]:
        benchmark = self._get(benchmark_id)
        result = self.results.get(benchmark_id)

        return {
            'benchmark_id': benchmark_id,
            'name': benchmark.name,
            'status': benchmark.status.value,
            'total_rows': benchmark.total_rows,
            'valid_rows': benchmark.valid_rows,
            'rejected_rows': benchmark.rejected_rows,
            'error_message': benchmark.error_message,
            'pending_outcomes': list(result.pending_outcomes) if result else list(self.config.outcomes),
            'insufficient_outcomes': result.insufficient_outcomes if result else [],
        }

    def delete_benchmark(self, benchmark_id: str) -> bool:
        """Remove a benchmark with its data points and derived records"""
        if benchmark_id not in self.benchmarks:
            return False

        del self.benchmarks[benchmark_id]
        self.data_points.pop(benchmark_id, None)
        self.results.pop(benchmark_id, None)
        return True

    def get_portfolio_metrics(self) -> Dict[str, Any]:
        """Counts across every registered benchmark"""
        by_status = {status.value: 0 for status in BenchmarkStatus}
        for benchmark in self.benchmarks.values():
            by_status[benchmark.status.value] += 1

        return {
            'total_benchmarks': len(self.benchmarks),
            'by_status': by_status,
            'total_data_points': sum(len(points) for points in self.data_points.values()),
            'total_statistics': sum(len(result.statistics) for result in self.results.values()),
        }

    def _record_ingestion(self, benchmark: Benchmark, report: NormalizationReport) -> NormalizationReport:
        self.data_points[benchmark.id].extend(report.data_points)
        benchmark.total_rows += report.total_rows
        benchmark.valid_rows += report.valid_count
        benchmark.rejected_rows += report.rejected_count
        # New data invalidates any earlier or partial generation
        self.results.pop(benchmark.id, None)
        return report

    def _require_outcome(self, outcome: str) -> None:
        if outcome not in self.config.outcomes:
            raise ConfigurationError(f"Unknown outcome: {outcome}")

    def _get(self, benchmark_id: str) -> Benchmark:
        if benchmark_id not in self.benchmarks:
            raise BenchmarkNotFoundError(f"Benchmark {benchmark_id} not found")
        return self.benchmarks[benchmark_id]

    @staticmethod
    def _require_status(benchmark: Benchmark, *allowed: BenchmarkStatus) -> None:
        if benchmark.status not in allowed:
            expected = ", ".join(status.value for status in allowed)
            raise BenchmarkStateError(
                f"Benchmark {benchmark.id} is {benchmark.status.value}; expected one of: {expected}"
            )
