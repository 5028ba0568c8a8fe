import math
from typing import Dict, List, Sequence, Tuple

from benchmark_config import BenchmarkConfig
from benchmark_models import (
    BenchmarkStatistic,
    BenchmarkTopPerformer,
    CompetencyRanking,
    DataPoint,
    Pattern,
    TalentRanking,
)
from cohort_analysis.cohort_selector import CohortSplit


INSIGHT_MIN_COMPETENCY_DIFF = 5.0
INSIGHT_MIN_PATTERN_FREQUENCY = 30
INSIGHT_MIN_TALENT_SCORE = 70.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class TopPerformerProfileBuilder:
    """Bundles one outcome's statistics into a top-performer profile.

    Averages and rankings come from the outcome's BenchmarkStatistic rows;
    the co-occurrence patterns need the individual top performers and are
    read from the cohort itself.
    """

    def __init__(self, config: BenchmarkConfig):
        self.config = config

    def build(
        self,
        benchmark_id: str,
        split: CohortSplit,
        statistics: Sequence[BenchmarkStatistic],
    ) -> BenchmarkTopPerformer:
        by_dimension = {row.dimension: row for row in statistics if row.outcome == split.outcome}

        dimension_averages = {
            dimension: by_dimension[dimension].top_mean if dimension in by_dimension else None
            for dimension in self.config.dimensions
        }

        return BenchmarkTopPerformer(
            benchmark_id=benchmark_id,
            outcome=split.outcome,
            percentile_threshold=split.percentile,
            threshold_value=split.threshold,
            sample_size=len(split.top),
            dimension_averages=dimension_averages,
            top_competencies=tuple(self.rank_competencies(by_dimension)),
            top_talents=tuple(self.rank_talents(by_dimension)),
            common_patterns=tuple(self.detect_patterns(
                split.top,
                split.outcome,
                self.config.competencies,
                self.config.competency_pattern_min_frequency,
                self.config.competency_pattern_limit,
            )),
            talent_patterns=tuple(self.detect_patterns(
                split.top,
                split.outcome,
                self.config.talents,
                self.config.talent_pattern_min_frequency,
                self.config.talent_pattern_limit,
            )),
        )

    def rank_competencies(self, by_dimension: Dict[str, BenchmarkStatistic]) -> List[CompetencyRanking]:
        """Pillars and competencies ordered by how far top performers sit above average"""
        rankings = []
        for dimension in self.config.eq_fields:
            row = by_dimension.get(dimension)
            if row is None or row.top_mean is None:
                continue

            diff = None if row.general_mean is None else row.top_mean - row.general_mean
            if diff is not None and row.general_std_dev:
                importance = min(100.0, max(0.0, diff / row.general_std_dev * 25 + 50))
            else:
                importance = 50.0

            rankings.append(CompetencyRanking(
                key=dimension,
                avg_score=row.top_mean,
                importance=importance,
                diff_from_avg=diff,
            ))

        # Stable sort keeps configuration order among ties
        return sorted(rankings, key=lambda r: (r.diff_from_avg is None, -(r.diff_from_avg or 0.0)))

    def rank_talents(self, by_dimension: Dict[str, BenchmarkStatistic]) -> List[TalentRanking]:
        rankings = []
        for talent in self.config.talents:
            row = by_dimension.get(talent)
            if row is None or row.top_mean is None:
                continue
            rankings.append(TalentRanking(
                key=talent,
                group=self.config.talent_group(talent),
                avg_score=row.top_mean,
                importance=min(100.0, max(0.0, row.top_mean)),
            ))
        return sorted(rankings, key=lambda r: -r.importance)

    def detect_patterns(
        self,
        top_performers: Sequence[DataPoint],
        outcome: str,
        keys: Sequence[str],
        min_frequency: float,
        limit: int,
    ) -> List[Pattern]:
        """Pairs that recur among each top performer's highest-scoring keys"""
        n = len(top_performers)
        if n == 0 or len(keys) < 2:
            return []

        order = {key: index for index, key in enumerate(keys)}
        counts: Dict[Tuple[str, ...], int] = {}
        outcome_sums: Dict[Tuple[str, ...], float] = {}

        for point in top_performers:
            present = [(key, point.score(key)) for key in keys if point.score(key) is not None]
            present.sort(key=lambda item: -item[1])
            leading = [key for key, _ in present[:self.config.pattern_top_n]]
            outcome_value = point.score(outcome) or 0.0

            for i in range(len(leading)):
                for j in range(i + 1, len(leading)):
                    pair = tuple(sorted((leading[i], leading[j]), key=order.get))
                    counts[pair] = counts.get(pair, 0) + 1
                    outcome_sums[pair] = outcome_sums.get(pair, 0.0) + outcome_value

        patterns = []
        for pair, count in counts.items():
            frequency = _round_half_up(count / n * 100)
            if frequency < min_frequency:
                continue
            patterns.append(Pattern(members=pair, frequency=frequency, avg_outcome=outcome_sums[pair] / count))

        patterns.sort(key=lambda p: (-p.frequency, [order[key] for key in p.members]))
        return patterns[:limit]

    def insights(self, profile: BenchmarkTopPerformer) -> List[str]:
        """Translation keys describing what sets this profile's top performers apart.

        Empty when the cohort is below the top-performer minimum.
        """
        if profile is None or profile.sample_size < self.config.min_top_performer_sample:
            return []

        insights = []
        if profile.top_competencies:
            lead = profile.top_competencies[0]
            if lead.diff_from_avg is not None and lead.diff_from_avg > INSIGHT_MIN_COMPETENCY_DIFF:
                insights.append(f"top_competency:{lead.key}:{lead.diff_from_avg:.1f}")

        if profile.common_patterns:
            pattern = profile.common_patterns[0]
            if pattern.frequency >= INSIGHT_MIN_PATTERN_FREQUENCY:
                insights.append(f"pattern:{'+'.join(pattern.members)}:{pattern.frequency}")

        if profile.top_talents:
            talent = profile.top_talents[0]
            if talent.avg_score > INSIGHT_MIN_TALENT_SCORE:
                insights.append(f"talent:{talent.key}:{talent.avg_score:.1f}")

        return insights
