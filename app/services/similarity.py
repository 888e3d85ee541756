"""Heuristic similarity between a lost report and a found report.

The score is a weighted sum of four signals: item type, location, date
proximity and description overlap. Everything here is pure and works on any
object exposing ``item_type``, ``location``, ``description`` and
``lost_date`` / ``found_date``, so ORM rows and plain test doubles score
identically.
"""
from datetime import date, datetime
from typing import Any

TYPE_WEIGHT = 0.4
LOCATION_WEIGHT = 0.3
DATE_WEIGHT = 0.2
DESCRIPTION_WEIGHT = 0.1

# Shared-token locations earn half of the location weight.
PARTIAL_LOCATION_SCORE = 0.15

# (max days apart, points) checked in order
DATE_BANDS = [
    (1, 0.2),
    (3, 0.15),
    (7, 0.1),
]


def _tokens(text: str | None) -> list[str]:
    return (text or "").lower().split()


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_apart(first: date | datetime, second: date | datetime) -> int:
    """Whole calendar days between two dates; time of day is ignored."""
    return abs((_as_date(first) - _as_date(second)).days)


def similar_locations(first: str | None, second: str | None) -> bool:
    """True when the locations share at least one word, ignoring case."""
    return bool(set(_tokens(first)) & set(_tokens(second)))


def text_similarity(first: str | None, second: str | None) -> float:
    """Jaccard overlap of the lowercased word sets; 0.0 when both are empty."""
    words1 = set(_tokens(first))
    words2 = set(_tokens(second))
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def type_score(lost: Any, found: Any) -> float:
    return TYPE_WEIGHT if lost.item_type == found.item_type else 0.0


def location_score(lost_location: str | None, found_location: str | None) -> float:
    if lost_location is not None and lost_location == found_location:
        return LOCATION_WEIGHT
    if similar_locations(lost_location, found_location):
        return PARTIAL_LOCATION_SCORE
    return 0.0


def date_score(lost_date: date | datetime, found_date: date | datetime) -> float:
    diff = days_apart(lost_date, found_date)
    for max_days, points in DATE_BANDS:
        if diff <= max_days:
            return points
    return 0.0


def score(lost: Any, found: Any) -> float:
    """Similarity of a lost/found pair in [0, 1]."""
    total = 0.0
    total_weight = 0.0

    total += type_score(lost, found)
    total_weight += TYPE_WEIGHT

    total += location_score(lost.location, found.location)
    total_weight += LOCATION_WEIGHT

    total += date_score(lost.lost_date, found.found_date)
    total_weight += DATE_WEIGHT

    total += text_similarity(lost.description, found.description) * DESCRIPTION_WEIGHT
    total_weight += DESCRIPTION_WEIGHT

    # total_weight is always 1.0 here; the division is kept so scores stay
    # identical to the historical weighted-sum values.
    normalized = total / total_weight if total_weight > 0 else 0.0
    return min(max(normalized, 0.0), 1.0)
