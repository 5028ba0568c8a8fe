import pytest

from benchmark_config import BenchmarkConfig
from statistical_engine import StatisticalEngine
from tests.factories import correlated_points


@pytest.fixture
def config():
    return BenchmarkConfig()


@pytest.fixture
def small_cohort_config():
    """150 respondents give a P90 cohort of about 15, below the production minimum"""
    return BenchmarkConfig(min_top_performer_sample=10)


@pytest.fixture
def engine():
    return StatisticalEngine()


@pytest.fixture
def correlated_dataset():
    return correlated_points()
