import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from benchmark_config import BenchmarkConfig
from benchmark_models import DataPoint
from cohort_analysis.cohort_selector import CohortSelector, CohortSplit, DataPointFilters, filter_data_points

logger = logging.getLogger(__name__)


class FallbackLevel(Enum):
    EXACT = "exact"
    COUNTRY_SECTOR = "country_sector"
    COUNTRY = "country"
    REGION_SECTOR = "region_sector"
    REGION = "region"
    GLOBAL = "global"


# Widening order; None keeps every requested filter
FALLBACK_CHAIN: Tuple[Tuple[FallbackLevel, Optional[Tuple[str, ...]]], ...] = (
    (FallbackLevel.EXACT, None),
    (FallbackLevel.COUNTRY_SECTOR, ("country", "sector", "job_role")),
    (FallbackLevel.COUNTRY_SECTOR, ("country", "sector")),
    (FallbackLevel.COUNTRY, ("country",)),
    (FallbackLevel.REGION_SECTOR, ("region", "sector")),
    (FallbackLevel.REGION, ("region",)),
    (FallbackLevel.GLOBAL, ()),
)

FALLBACK_PRECISION = {
    FallbackLevel.EXACT: 100,
    FallbackLevel.COUNTRY_SECTOR: 80,
    FallbackLevel.COUNTRY: 60,
    FallbackLevel.REGION_SECTOR: 50,
    FallbackLevel.REGION: 40,
    FallbackLevel.GLOBAL: 20,
}


def narrow_filters(filters: DataPointFilters, keep: Optional[Sequence[str]]) -> DataPointFilters:
    """Copy of filters with every field outside keep cleared"""
    if keep is None:
        return filters
    cleared = {item.name: None for item in fields(filters) if item.name not in keep}
    return replace(filters, **cleared)


def describe_filters(filters: DataPointFilters) -> str:
    parts = [str(getattr(filters, item.name)) for item in fields(filters) if getattr(filters, item.name) is not None]
    return ", ".join(parts) if parts else "global"


@dataclass(frozen=True)
class FallbackSelection:
    """Outcome of walking the fallback chain for one outcome.

    split and population are None when not even the global dataset has
    enough respondents; level is then GLOBAL with an empty context.
    """
    outcome: str
    level: FallbackLevel
    requested: DataPointFilters
    used: DataPointFilters
    sample_size: int
    split: Optional[CohortSplit] = None
    population: Optional[List[DataPoint]] = None

    @property
    def is_sufficient(self) -> bool:
        return self.split is not None and self.split.is_sufficient

    @property
    def precision(self) -> int:
        return FALLBACK_PRECISION[self.level]

    @property
    def widened(self) -> bool:
        return self.used != self.requested

    def describe(self) -> str:
        return describe_filters(self.used)


class SegmentFallback:
    """Widens a demographic segment until its top-performer cohort is large enough"""

    def __init__(self, config: BenchmarkConfig, selector: Optional[CohortSelector] = None):
        self.config = config
        self.selector = selector or CohortSelector(config)

    def select(
        self,
        data_points: Sequence[DataPoint],
        outcome: str,
        filters: Optional[DataPointFilters] = None,
    ) -> FallbackSelection:
        requested = filters or DataPointFilters()
        tried = set()

        for level, keep in FALLBACK_CHAIN:
            context = narrow_filters(requested, keep)
            if context in tried:
                continue
            tried.add(context)

            population = filter_data_points(data_points, context)
            split = self.selector.select(population, outcome)
            if split.is_sufficient:
                # A context with nothing left to filter on is the whole dataset
                if context.is_empty:
                    level = FallbackLevel.GLOBAL
                if context != requested:
                    logger.info(
                        "Segment for outcome %s widened to %s (%s): %d respondents",
                        outcome, level.value, describe_filters(context), len(split.general),
                    )
                return FallbackSelection(
                    outcome=outcome,
                    level=level,
                    requested=requested,
                    used=context,
                    sample_size=len(split.general),
                    split=split,
                    population=population,
                )

        logger.warning("No segment of the dataset has enough respondents for outcome %s", outcome)
        return FallbackSelection(
            outcome=outcome,
            level=FallbackLevel.GLOBAL,
            requested=requested,
            used=DataPointFilters(),
            sample_size=0,
        )
