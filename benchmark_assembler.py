import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from benchmark_config import BenchmarkConfig
from benchmark_models import (
    BenchmarkCorrelation,
    BenchmarkMetricSummary,
    BenchmarkStatistic,
    BenchmarkTopPerformer,
    ConfigurationError,
    DataPoint,
    OutcomeSummary,
    StatisticStatus,
    records_to_dicts,
)
from cohort_analysis.cohort_selector import CohortSelector, CohortSplit
from statistical_analysis.correlation_engine import CorrelationEngine
from statistical_analysis.effect_size_analyzer import EffectSizeAnalyzer
from statistical_engine import StatisticalEngine
from top_performers.profile_builder import TopPerformerProfileBuilder

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkRunResult:
    """Everything one generation run hands to the storage collaborator.

    A run stopped by its time budget is partial: pending_outcomes lists what
    is left, and the result can be passed back as resume_from.
    """
    benchmark_id: str
    statistics: List[BenchmarkStatistic] = field(default_factory=list)
    correlations: List[BenchmarkCorrelation] = field(default_factory=list)
    top_performers: List[BenchmarkTopPerformer] = field(default_factory=list)
    metric_summaries: List[BenchmarkMetricSummary] = field(default_factory=list)
    outcome_summaries: Dict[str, OutcomeSummary] = field(default_factory=dict)
    completed_outcomes: List[str] = field(default_factory=list)
    pending_outcomes: List[str] = field(default_factory=list)
    dimension_phase_complete: bool = False
    data_point_count: int = 0

    @property
    def is_complete(self) -> bool:
        return not self.pending_outcomes and self.dimension_phase_complete

    @property
    def insufficient_outcomes(self) -> List[str]:
        return [
            outcome for outcome, summary in self.outcome_summaries.items()
            if summary.status == StatisticStatus.INSUFFICIENT_SAMPLE
        ]

    def statistics_for(self, outcome: str) -> List[BenchmarkStatistic]:
        return [row for row in self.statistics if row.outcome == outcome]

    def top_performer_for(self, outcome: str) -> Optional[BenchmarkTopPerformer]:
        return next((row for row in self.top_performers if row.outcome == outcome), None)

    def correlation(self, dimension_a: str, dimension_b: str) -> Optional[BenchmarkCorrelation]:
        for row in self.correlations:
            if {row.dimension_a, row.dimension_b} == {dimension_a, dimension_b}:
                return row
        return None

    def to_frames(self) -> Dict[str, pd.DataFrame]:
        return {
            "statistics": pd.DataFrame(records_to_dicts(self.statistics)),
            "correlations": pd.DataFrame(records_to_dicts(self.correlations)),
            "top_performers": pd.DataFrame(records_to_dicts(self.top_performers)),
            "metric_summaries": pd.DataFrame(records_to_dicts(self.metric_summaries)),
            "outcomes": pd.DataFrame(records_to_dicts(list(self.outcome_summaries.values()))),
        }


class BenchmarkAssembler:
    """Runs the full statistics pipeline for one benchmark.

    Order is fixed: outcomes in configuration order; within an outcome one
    cohort selection, then dimensions in configuration order (pillars,
    competencies, talents). Dimension x dimension correlations and metric
    summaries follow once every outcome is done. The run is a pure function
    of (data points, configuration).
    """

    SUMMARY_EXTRA_METRICS = ("eq_total",)

    def __init__(self, config: BenchmarkConfig, engine: Optional[StatisticalEngine] = None):
        self.config = config
        self.engine = engine or StatisticalEngine()
        self.cohort_selector = CohortSelector(config, self.engine)
        self.effect_size_analyzer = EffectSizeAnalyzer(config)
        self.correlation_engine = CorrelationEngine(config)
        self.profile_builder = TopPerformerProfileBuilder(config)

    def assemble(
        self,
        benchmark_id: str,
        data_points: Sequence[DataPoint],
        resume_from: Optional[BenchmarkRunResult] = None,
        time_budget_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> BenchmarkRunResult:
        self._check_inputs(data_points)
        data_points = list(data_points)

        if resume_from is not None:
            if resume_from.benchmark_id != benchmark_id:
                raise ConfigurationError(
                    f"Cannot resume benchmark {benchmark_id} from a run of {resume_from.benchmark_id}"
                )
            result = self._copy_checkpoint(resume_from)
            outcomes = [outcome for outcome in self.config.outcomes if outcome not in result.completed_outcomes]
            logger.info("Resuming benchmark %s with %d outcomes left", benchmark_id, len(outcomes))
        else:
            result = BenchmarkRunResult(benchmark_id=benchmark_id)
            outcomes = list(self.config.outcomes)

        result.data_point_count = len(data_points)
        result.pending_outcomes = list(outcomes)
        started = clock()

        def over_budget() -> bool:
            return time_budget_seconds is not None and clock() - started >= time_budget_seconds

        for outcome in outcomes:
            if over_budget():
                logger.warning(
                    "Time budget of %ss reached for benchmark %s; %d outcomes pending",
                    time_budget_seconds, benchmark_id, len(result.pending_outcomes),
                )
                return result

            self._run_outcome(result, benchmark_id, data_points, outcome)
            result.pending_outcomes.remove(outcome)
            result.completed_outcomes.append(outcome)

        if not result.dimension_phase_complete:
            if over_budget():
                logger.warning("Time budget reached for benchmark %s before dimension phase", benchmark_id)
                return result
            result.correlations.extend(
                self.correlation_engine.dimension_matrix(benchmark_id, data_points)
            )
            result.metric_summaries = self.metric_summaries(benchmark_id, data_points)
            result.dimension_phase_complete = True

        logger.info(
            "Benchmark %s assembled: %d statistics, %d correlations, %d top-performer profiles, %d outcomes skipped",
            benchmark_id,
            len(result.statistics),
            len(result.correlations),
            len(result.top_performers),
            len(result.insufficient_outcomes),
        )
        return result

    def process_outcome(
        self,
        benchmark_id: str,
        data_points: Sequence[DataPoint],
        outcome: str,
    ) -> BenchmarkRunResult:
        """One outcome in isolation; useful for targeted regeneration"""
        self._check_inputs(data_points)
        if outcome not in self.config.outcomes:
            raise ConfigurationError(f"Unknown outcome: {outcome}")
        result = BenchmarkRunResult(benchmark_id=benchmark_id, data_point_count=len(data_points))
        self._run_outcome(result, benchmark_id, list(data_points), outcome)
        result.completed_outcomes.append(outcome)
        result.pending_outcomes = [o for o in self.config.outcomes if o != outcome]
        return result

    def build_statistics(self, benchmark_id: str, split: CohortSplit) -> List[BenchmarkStatistic]:
        rows = []
        for dimension in self.config.dimensions:
            general = self.engine.describe(point.score(dimension) for point in split.general)
            top = self.engine.describe(point.score(dimension) for point in split.top)
            comparison = self.effect_size_analyzer.compare(general, top)

            rows.append(BenchmarkStatistic(
                benchmark_id=benchmark_id,
                dimension=dimension,
                dimension_type=self.config.dimension_type(dimension),
                outcome=split.outcome,
                general_mean=general.mean,
                general_std_dev=general.std_dev,
                general_n=general.count,
                top_mean=top.mean,
                top_std_dev=top.std_dev,
                top_n=top.count,
                effect_size=comparison.effect_size,
                z_statistic=comparison.z_statistic,
                p_value=comparison.p_value,
                significant=comparison.significant,
                statistical_power=comparison.statistical_power,
                confidence_tier=comparison.confidence_tier,
                status=comparison.status,
            ))
        return rows

    def metric_summaries(self, benchmark_id: str, data_points: Sequence[DataPoint]) -> List[BenchmarkMetricSummary]:
        """Distribution of every dimension and outcome across the whole dataset"""
        metrics = self.config.dimensions + self.SUMMARY_EXTRA_METRICS + self.config.outcomes
        summaries = []

        for metric in metrics:
            summary = self.engine.summarize(point.score(metric) for point in data_points)
            if summary.stats.count < self.config.min_top_performer_sample:
                continue
            summaries.append(BenchmarkMetricSummary(
                benchmark_id=benchmark_id,
                metric=metric,
                n=summary.stats.count,
                mean=summary.stats.mean,
                median=summary.median,
                std_dev=summary.stats.std_dev,
                min=summary.minimum,
                max=summary.maximum,
                p10=summary.percentiles[10],
                p25=summary.percentiles[25],
                p50=summary.percentiles[50],
                p75=summary.percentiles[75],
                p90=summary.percentiles[90],
                p95=summary.percentiles[95],
            ))
        return summaries

    def _run_outcome(
        self,
        result: BenchmarkRunResult,
        benchmark_id: str,
        data_points: List[DataPoint],
        outcome: str,
    ) -> None:
        split = self.cohort_selector.select(data_points, outcome)

        result.outcome_summaries[outcome] = OutcomeSummary(
            outcome=outcome,
            status=split.status,
            total_sample=len(split.general),
            top_sample=len(split.top),
            excluded=len(split.excluded),
            threshold_value=split.threshold,
            reason=split.reason,
        )

        result.correlations.extend(
            self.correlation_engine.dimension_outcome_correlations(benchmark_id, data_points, outcome)
        )

        if not split.is_sufficient:
            return

        statistics = self.build_statistics(benchmark_id, split)
        result.statistics.extend(statistics)
        result.top_performers.append(self.profile_builder.build(benchmark_id, split, statistics))

        logger.info(
            "Outcome %s: %d respondents, %d top performers (threshold %.3f)",
            outcome, len(split.general), len(split.top), split.threshold,
        )

    def _check_inputs(self, data_points: Sequence[DataPoint]) -> None:
        self.config.validate()
        if not data_points:
            raise ConfigurationError("Cannot generate a benchmark from an empty dataset")

    @staticmethod
    def _copy_checkpoint(checkpoint: BenchmarkRunResult) -> BenchmarkRunResult:
        return BenchmarkRunResult(
            benchmark_id=checkpoint.benchmark_id,
            statistics=list(checkpoint.statistics),
            correlations=list(checkpoint.correlations),
            top_performers=list(checkpoint.top_performers),
            metric_summaries=list(checkpoint.metric_summaries),
            outcome_summaries=dict(checkpoint.outcome_summaries),
            completed_outcomes=list(checkpoint.completed_outcomes),
            pending_outcomes=list(checkpoint.pending_outcomes),
            dimension_phase_complete=checkpoint.dimension_phase_complete,
            data_point_count=checkpoint.data_point_count,
        )
