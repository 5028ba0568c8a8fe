import re
from dataclasses import dataclass
from typing import Optional, Tuple

import pandas as pd


UNKNOWN = "unknown"

# (label, lowest age, highest age) inclusive
AGE_BUCKETS: Tuple[Tuple[str, int, int], ...] = (
    ("under30", 0, 29),
    ("30to40", 30, 39),
    ("40to50", 40, 49),
    ("over50", 50, 130),
)

# (label, first birth year, last birth year) inclusive
GENERATIONS: Tuple[Tuple[str, int, int], ...] = (
    ("silent", 1900, 1945),
    ("boomers", 1946, 1964),
    ("genX", 1965, 1980),
    ("millennials", 1981, 1996),
    ("genZ", 1997, 2012),
    ("genAlpha", 2013, 2100),
)

AGE_BUCKET_GENERATION = {
    "under30": "genZ",
    "30to40": "millennials",
    "40to50": "genX",
    "over50": "boomers",
}

_GENERATION_ALIASES = {
    "silent": "silent",
    "silent generation": "silent",
    "traditionalists": "silent",
    "boomers": "boomers",
    "baby boomers": "boomers",
    "boomer": "boomers",
    "gen x": "genX",
    "genx": "genX",
    "generation x": "genX",
    "millennials": "millennials",
    "millennial": "millennials",
    "gen y": "millennials",
    "generation y": "millennials",
    "gen z": "genZ",
    "genz": "genZ",
    "generation z": "genZ",
    "gen alpha": "genAlpha",
    "genalpha": "genAlpha",
    "generation alpha": "genAlpha",
}

_RANGE_PATTERN = re.compile(r"(\d{1,3})\s*(?:-|–|to)\s*(\d{1,3})")
_NUMBER_PATTERN = re.compile(r"\d{1,3}")


def _bucket_for_age(age: float) -> str:
    for label, low, high in AGE_BUCKETS:
        if low <= age < high + 1:
            return label
    return UNKNOWN


def normalize_age_range(value: object) -> str:
    """Map a numeric age or an age-range label onto the bucket table.

    Ranges are bucketed by their lower bound, "under N" by N - 1 and
    "over N" / "N+" by N. Anything unrecognized is "unknown".
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return UNKNOWN

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _bucket_for_age(float(value))

    text = str(value).strip().lower()
    if not text:
        return UNKNOWN
    if text in (label.lower() for label, _, _ in AGE_BUCKETS):
        return next(label for label, _, _ in AGE_BUCKETS if label.lower() == text)

    match = _RANGE_PATTERN.search(text)
    if match:
        return _bucket_for_age(int(match.group(1)))

    number = _NUMBER_PATTERN.search(text)
    if number is None:
        return UNKNOWN
    age = int(number.group(0))
    if "under" in text or "<" in text or "below" in text:
        return _bucket_for_age(age - 1)
    return _bucket_for_age(age)


def generation_from_birth_year(birth_year: object) -> str:
    year = parse_year(birth_year)
    if year is None:
        return UNKNOWN
    for label, first, last in GENERATIONS:
        if first <= year <= last:
            return label
    return UNKNOWN


def normalize_generation(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return UNKNOWN
    text = " ".join(str(value).strip().lower().replace("-", " ").split())
    return _GENERATION_ALIASES.get(text, UNKNOWN)


def resolve_generation(generation: object, birth_year: object, age_range: str) -> str:
    """Explicit label first, then birth year, then the age bucket"""
    label = normalize_generation(generation)
    if label != UNKNOWN:
        return label
    label = generation_from_birth_year(birth_year)
    if label != UNKNOWN:
        return label
    return AGE_BUCKET_GENERATION.get(age_range, UNKNOWN)


def parse_year(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if pd.isna(value) or not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, int):
        return value if 1900 <= value <= 2100 else None
    text = str(value).strip()
    if re.fullmatch(r"\d{4}(\.0+)?", text):
        return parse_year(int(float(text)))
    return None


@dataclass(frozen=True)
class DateInfo:
    year: Optional[int] = None
    month: Optional[int] = None
    quarter: Optional[int] = None


def extract_date_info(value: object) -> DateInfo:
    """Year / month / quarter from a bare year or a date value; unparseable input is empty"""
    if value is None or (isinstance(value, str) and not value.strip()):
        return DateInfo()

    year = parse_year(value)
    if year is not None:
        return DateInfo(year=year)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return DateInfo()

    timestamp = pd.to_datetime(str(value).strip(), errors="coerce")
    if timestamp is None or pd.isna(timestamp):
        return DateInfo()
    if parse_year(timestamp.year) is None:
        return DateInfo()
    return DateInfo(year=timestamp.year, month=timestamp.month, quarter=(timestamp.month - 1) // 3 + 1)
