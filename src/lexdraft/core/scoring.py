from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from lexdraft.types import Verdict


@dataclass(frozen=True, slots=True)
class Criterion:
    slug: str
    label: str
    description: str


CRITERIA: tuple[Criterion, ...] = (
    Criterion("awards", "Awards", "Nationally/internationally recognized prizes for excellence"),
    Criterion("membership", "Membership", "Membership in associations requiring outstanding achievement"),
    Criterion("press", "Press", "Published material in professional/major trade publications about the person"),
    Criterion("judging", "Judging", "Participation as judge of others' work in the field"),
    Criterion(
        "original_contribution",
        "Original Contribution",
        "Original contributions of major significance",
    ),
    Criterion(
        "scholarly_articles",
        "Scholarly Articles",
        "Authorship of scholarly articles in professional journals",
    ),
    Criterion("exhibitions", "Exhibitions", "Display of work at artistic exhibitions"),
    Criterion("leading_role", "Leading Role", "Leading/critical role in distinguished organizations"),
    Criterion("high_salary", "High Salary", "High salary relative to others in the field"),
    Criterion("commercial_success", "Commercial Success", "Commercial successes in performing arts"),
)
CRITERION_SLUGS: tuple[str, ...] = tuple(c.slug for c in CRITERIA)
CRITERION_LABELS: dict[str, str] = {c.slug: c.label for c in CRITERIA}

STRONG_SCORE = 4
QUALIFYING_SCORE = 3


def normalize_slug(value: str) -> str:
    """Map model-produced criterion names ("Leading Role", "leading-role") onto known slugs."""
    candidate = "_".join(value.strip().lower().replace("-", " ").split())
    if candidate in CRITERION_LABELS:
        return candidate
    for slug, label in CRITERION_LABELS.items():
        if candidate == "_".join(label.lower().split()):
            return slug
    if candidate.endswith("s") and candidate[:-1] in CRITERION_LABELS:
        return candidate[:-1]
    return candidate


def validate_scores(scores: Iterable[int]) -> list[int]:
    values = list(scores)
    if len(values) != len(CRITERIA):
        raise ValueError(f"expected {len(CRITERIA)} criterion scores, got {len(values)}")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"criterion scores must be integers, got {value!r}")
        if value < 1 or value > 5:
            raise ValueError(f"criterion score {value} outside [1, 5]")
    return values


def derive_verdict(scores: Iterable[int]) -> Verdict:
    """Derive the eligibility verdict from ten criterion scores.

    strong: four or more criteria score 4+.
    moderate: otherwise, three or more criteria score 3+.
    weak: one or two criteria score 3+.
    insufficient: no criterion reaches 3.
    """
    values = validate_scores(scores)
    strong = sum(1 for value in values if value >= STRONG_SCORE)
    qualifying = sum(1 for value in values if value >= QUALIFYING_SCORE)

    if strong >= 4:
        return "strong"
    if qualifying >= 3:
        return "moderate"
    if qualifying >= 1:
        return "weak"
    return "insufficient"


def scores_in_rubric_order(scores_by_slug: Mapping[str, int]) -> list[int]:
    missing = [slug for slug in CRITERION_SLUGS if slug not in scores_by_slug]
    if missing:
        raise ValueError(f"missing scores for criteria: {', '.join(missing)}")
    extra = sorted(set(scores_by_slug) - set(CRITERION_SLUGS))
    if extra:
        raise ValueError(f"unknown criteria: {', '.join(extra)}")
    return [scores_by_slug[slug] for slug in CRITERION_SLUGS]


def verdict_for_criteria(scores_by_slug: Mapping[str, int]) -> Verdict:
    return derive_verdict(scores_in_rubric_order(scores_by_slug))
