import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from benchmark_config import AUXILIARY_SCORES, BenchmarkConfig
from benchmark_models import DataPoint, ValidationError
from data_preparation.column_mapping import TEXT_FIELDS, ColumnMapping
from data_preparation.demographics import extract_date_info, normalize_age_range, resolve_generation

logger = logging.getLogger(__name__)


_ABSENT_MARKERS = {"", "na", "n/a", "nan", "null", "none", "-", "--"}

# A single comma is always a decimal separator; grouping needs a second separator
_EUROPEAN_NUMBER = re.compile(r"^[+-]?\d{1,3}(\.\d{3})+,\d+$|^[+-]?\d{1,3}(\.\d{3}){2,}$")
_ENGLISH_NUMBER = re.compile(r"^[+-]?\d{1,3}(,\d{3})+\.\d+$|^[+-]?\d{1,3}(,\d{3}){2,}$")
_COMMA_DECIMAL = re.compile(r"^[+-]?\d*,\d+$")
_PLAIN_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def parse_score(value: Any) -> Optional[float]:
    """Parse one numeric cell; blank-like values are absent.

    Raises ValueError for anything that is neither absent nor a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"boolean is not a score: {value!r}")
    if value is None:
        return None

    if isinstance(value, (int, float)):
        number = float(value)
        if math.isnan(number):
            return None
        if not math.isfinite(number):
            raise ValueError(f"non-finite number: {value!r}")
        return number

    text = str(value).strip().replace("\u00a0", "").replace(" ", "")
    if text.lower() in _ABSENT_MARKERS:
        return None

    if _PLAIN_NUMBER.match(text):
        normalized = text
    elif _EUROPEAN_NUMBER.match(text):
        normalized = text.replace(".", "").replace(",", ".")
    elif _ENGLISH_NUMBER.match(text):
        normalized = text.replace(",", "")
    elif _COMMA_DECIMAL.match(text):
        normalized = text.replace(",", ".")
    else:
        raise ValueError(f"not a number: {value!r}")

    number = float(normalized)
    if not math.isfinite(number):
        raise ValueError(f"non-finite number: {value!r}")
    return number


def _clean_text(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = " ".join(str(value).split())
    return text or None


@dataclass
class NormalizationReport:
    data_points: List[DataPoint] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def valid_count(self) -> int:
        return len(self.data_points)

    @property
    def rejected_count(self) -> int:
        return len(self.errors)

    def error_summary(self) -> Dict[str, int]:
        """Rejected rows per offending field"""
        summary: Dict[str, int] = {}
        for error in self.errors:
            summary[error.field] = summary.get(error.field, 0) + 1
        return summary


class RowNormalizer:
    """Turns raw parsed rows into canonical DataPoint records"""

    def __init__(self, config: BenchmarkConfig, column_mapping: Optional[ColumnMapping] = None):
        self.config = config
        self.numeric_fields = config.dimensions + config.outcomes + AUXILIARY_SCORES
        self.column_mapping = column_mapping or ColumnMapping(canonical_fields=self.numeric_fields)

    def normalize_row(
        self,
        raw: Mapping[str, Any],
        row_index: int,
        benchmark_id: Optional[str] = None,
    ) -> DataPoint:
        """Normalize one raw record or raise ValidationError naming the row and field"""
        mapped = self.column_mapping.map_record(raw)

        scores: Dict[str, Optional[float]] = {}
        for field_name in self.numeric_fields:
            scores[field_name] = self._parse_field(mapped.get(field_name), field_name, row_index)

        if all(scores[key] is None for key in self.config.eq_fields):
            raise ValidationError(row_index, "eq_scores", "row has no EQ pillar or competency score")

        age_range = normalize_age_range(mapped.get("age"))
        date_info = extract_date_info(mapped.get("date"))
        text_values = {name: _clean_text(mapped.get(name)) for name in TEXT_FIELDS}

        return DataPoint(
            id=f"{benchmark_id or 'row'}:{row_index}",
            benchmark_id=benchmark_id,
            row_index=row_index,
            scores=scores,
            age_range=age_range,
            generation=resolve_generation(mapped.get("generation"), mapped.get("birth_year"), age_range),
            year=date_info.year,
            month=date_info.month,
            quarter=date_info.quarter,
            **text_values,
        )

    def normalize_rows(
        self,
        rows: Iterable[Mapping[str, Any]],
        benchmark_id: Optional[str] = None,
        start_index: int = 0,
    ) -> NormalizationReport:
        """Normalize a batch; invalid rows are collected, never fatal"""
        report = NormalizationReport()

        for row_index, raw in enumerate(rows, start=start_index):
            report.total_rows += 1
            try:
                report.data_points.append(self.normalize_row(raw, row_index, benchmark_id))
            except ValidationError as exc:
                report.errors.append(exc)

        if report.errors:
            logger.warning(
                "Rejected %d of %d rows (by field: %s)",
                report.rejected_count, report.total_rows, report.error_summary(),
            )
        logger.info("Normalized %d rows for benchmark %s", report.valid_count, benchmark_id)
        return report

    def normalize_frame(
        self,
        frame: pd.DataFrame,
        benchmark_id: Optional[str] = None,
        start_index: int = 0,
    ) -> NormalizationReport:
        """Normalize a parsed CSV/Excel sheet"""
        frame = frame.astype(object).where(pd.notna(frame), None)
        return self.normalize_rows(frame.to_dict(orient="records"), benchmark_id, start_index)

    def _parse_field(self, value: Any, field_name: str, row_index: int) -> Optional[float]:
        try:
            number = parse_score(value)
        except ValueError as exc:
            raise ValidationError(row_index, field_name, str(exc)) from exc

        if number is None:
            return None

        scale = self.config.scale_for(field_name)
        if scale is None or scale.contains(number):
            return number
        if self.config.clamp_out_of_range:
            return scale.clamp(number)
        raise ValidationError(
            row_index,
            field_name,
            f"score {number:g} outside scale {scale.minimum:g}-{scale.maximum:g}",
        )
