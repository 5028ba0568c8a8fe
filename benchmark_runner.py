import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from benchmark_config import BenchmarkConfig
from benchmark_framework import BenchmarkFramework
from benchmark_models import BenchmarkError
from logging_config import configure_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="EQ benchmark runner (survey export -> statistics CSVs)")

    parser.add_argument("input", help="CSV export of survey responses")
    parser.add_argument("--name", default="", help="Benchmark name (default: input file stem)")
    parser.add_argument("--out", default="benchmark_output", help="Directory for the result CSVs")
    parser.add_argument(
        "--time-budget",
        type=float,
        default=None,
        help="Seconds before a partial result is written; omit to process every outcome",
    )
    parser.add_argument("--log-level", default=None, help="Overrides EQ_BENCHMARK_LOG_LEVEL")
    parser.add_argument("--log-format", default=None, choices=["text", "json"], help="Overrides EQ_BENCHMARK_LOG_FORMAT")

    return parser.parse_args(list(argv))


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(level=args.log_level, fmt=args.log_format)

    input_path = Path(args.input)
    out_dir = Path(args.out)

    try:
        framework = BenchmarkFramework(BenchmarkConfig.from_env())
        benchmark_id = framework.create_benchmark(args.name or input_path.stem)

        frame = pd.read_csv(input_path, dtype=str, keep_default_na=False)
        report = framework.ingest_frame(benchmark_id, frame)
        logger.info(
            "Loaded %s: %d rows, %d valid, %d rejected",
            input_path, report.total_rows, report.valid_count, report.rejected_count,
        )

        result = framework.generate(benchmark_id, time_budget_seconds=args.time_budget)
    except BenchmarkError as exc:
        logger.error("Benchmark run failed: %s", exc)
        return 1

    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for name, table in result.to_frames().items():
        path = out_dir / f"{name}.csv"
        table.to_csv(path, index=False)
        written.append(path)

    print(f"benchmark_id={benchmark_id}")
    for path in written:
        print(f"wrote {path}")

    if not result.is_complete:
        logger.warning("Time budget reached; pending outcomes: %s", ", ".join(result.pending_outcomes))
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
