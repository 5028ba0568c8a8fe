from typing import Dict, Iterable, Mapping, Optional


# Six Seconds SOH export headers -> canonical data point fields
SOH_COLUMN_MAPPING: Dict[str, str] = {
    # Demographics
    "Country": "country",
    "Countries": "country",
    "Region": "region",
    "Regions": "region",
    "Job Function": "job_function",
    "Job Role": "job_role",
    "Sector": "sector",
    "Age": "age",
    "Age (new)": "age",
    "Age Range": "age",
    "Birth Year": "birth_year",
    "Year of Birth": "birth_year",
    "Gender": "gender",
    "Education": "education",
    "Generations": "generation",
    "Generation": "generation",
    "Year": "date",
    "Date": "date",
    "Source Date": "date",

    # Know / Choose / Give pillars
    "Know Yourself Score": "K",
    "Know Yourself Score.1": "K",
    "Choose Yourself Score": "C",
    "Choose Yourself Score.1": "C",
    "Give Yourself Score": "G",
    "Give Yourself Score.1": "G",
    "Emotional Intelligence Score": "eq_total",
    "Overall EQ": "eq_total",

    # Competencies
    "Enhance Emotional Literacy Score": "EL",
    "Enhance Emotional Literacy": "EL",
    "Recognize Patterns Score": "RP",
    "Recognize Patterns": "RP",
    "Apply Consequential Thinking Score": "ACT",
    "Apply Consequential Thinking": "ACT",
    "Navigate Emotions Score": "NE",
    "Navigate Emotions": "NE",
    "Engage Intrinsic Motivation Score": "IM",
    "Engage Intrinsic Motivation": "IM",
    "Excercise Optimism Score": "OP",  # misspelled in older exports
    "Exercise Optimism Score": "OP",
    "Exercise Optimism": "OP",
    "Increase Empathy Score": "EMP",
    "Increase Empathy": "EMP",
    "Pursue Noble Goals Score": "NG",
    "Pursue Noble Goals": "NG",

    # Outcomes
    "Effectiveness": "effectiveness",
    "Relationship": "relationships",
    "Relationships": "relationships",
    "Quality of Life": "quality_of_life",
    "Wellbeing": "wellbeing",
    "Influence": "influence",
    "Decision Making": "decision_making",
    "Community": "community",
    "Network": "network",
    "Networking": "network",
    "Achievement": "achievement",
    "Satisfaction": "satisfaction",
    "Balance": "balance",
    "Work Life Balance": "balance",
    "Health": "health",

    # Brain talents
    "DataMining": "data_mining",
    "Data Mining": "data_mining",
    "Modeling": "modeling",
    "Prioritizing": "prioritizing",
    "Connection": "connection",
    "EmotionalInsight": "emotional_insight",
    "Emotional Insight": "emotional_insight",
    "Collaboration": "collaboration",
    "Reflecting": "reflecting",
    "Adaptability": "adaptability",
    "CriticalThinking": "critical_thinking",
    "Critical Thinking": "critical_thinking",
    "Resilience": "resilience",
    "RiskTolerance": "risk_tolerance",
    "Risk Tolerance": "risk_tolerance",
    "Imagination": "imagination",
    "Proactivity": "proactivity",
    "Commitment": "commitment",
    "ProblemSolving": "problem_solving",
    "Problem Solving": "problem_solving",
    "Vision": "vision",
    "Designing": "designing",
    "Entrepreneurship": "entrepreneurship",
    "Brain Agility": "brain_agility",

    "Reliability Index": "reliability_index",
}

TEXT_FIELDS = (
    "country",
    "region",
    "sector",
    "job_function",
    "job_role",
    "gender",
    "education",
)

# Inputs to demographic normalization rather than stored fields
DERIVED_INPUT_FIELDS = ("age", "birth_year", "generation", "date")


def _fold(header: str) -> str:
    return " ".join(str(header).replace("_", " ").split()).lower()


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    return isinstance(value, str) and not value.strip()


class ColumnMapping:
    """Resolves source headers to canonical field names.

    Exact header matches win; otherwise headers are compared case and
    whitespace insensitively. Canonical field names map to themselves so
    already-normalized exports pass through unchanged.
    """

    def __init__(self, mapping: Optional[Mapping[str, str]] = None, canonical_fields: Iterable[str] = ()):
        self.mapping: Dict[str, str] = dict(SOH_COLUMN_MAPPING if mapping is None else mapping)
        for canonical in list(canonical_fields) + list(TEXT_FIELDS) + list(DERIVED_INPUT_FIELDS):
            self.mapping.setdefault(canonical, canonical)

        self._folded: Dict[str, str] = {}
        for source, target in self.mapping.items():
            self._folded.setdefault(_fold(source), target)

    def resolve(self, header: str) -> Optional[str]:
        if header in self.mapping:
            return self.mapping[header]
        return self._folded.get(_fold(header))

    def map_record(self, raw: Mapping[str, object]) -> Dict[str, object]:
        """Rename a raw record's keys; the first non-blank value wins on collisions"""
        mapped: Dict[str, object] = {}
        for header, value in raw.items():
            target = self.resolve(header)
            if target is None:
                continue
            if _is_blank(mapped.get(target)):
                mapped[target] = value
        return mapped

    def unmapped_headers(self, headers: Iterable[str]) -> list:
        return [header for header in headers if self.resolve(header) is None]
