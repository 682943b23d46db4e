"""
Fan conversion after a gig: repeat attendance, tiering, demographics and
regional spillover.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from shared.types import AgeDemographic, City, FanDelta

BASE_CONVERSION_RATE = 0.05
MAX_CONVERSION_RATE = 0.35
MAX_REPEAT_RATE = 0.8
COUNTRY_SPILLOVER_RATE = 0.10
MAX_SPILLOVER_CITIES = 10

GRADE_MULTIPLIERS = {
    "S+": 2.5,
    "S": 2.0,
    "A": 1.5,
    "B": 1.2,
    "C": 1.0,
    "D": 0.6,
    "F": 0.3,
}

FAME_TITLES = (
    (100000, "Living Legend"),
    (50000, "Global Icon"),
    (15000, "National Act"),
    (5000, "Regional Star"),
    (1000, "Known Performer"),
    (500, "Rising Artist"),
    (100, "Local Talent"),
)


@dataclass
class FanConversion:
    repeat_attendees: int
    conversion_rate: float
    new_fans: FanDelta
    spillover_total: int = 0
    spillover: List[Tuple[City, int]] = field(default_factory=list)
    demographics: List[Tuple[AgeDemographic, int]] = field(default_factory=list)


def repeat_attendees(
    attendance: int, existing_city_fans: int, gigs_in_city: int, fame: int
) -> int:
    """gigs_in_city counts the gig being settled."""
    rate = min(MAX_REPEAT_RATE, gigs_in_city * 0.1 + (fame / 10000) * 0.3)
    return math.floor(min(existing_city_fans, attendance * rate))


def conversion_rate(rating: float, grade: str, fame: int) -> float:
    rating_bonus = (rating / 25) * 0.1
    fame_bonus = min(0.05, fame / 50000)
    multiplier = GRADE_MULTIPLIERS.get(grade, 1.0)
    return min(
        MAX_CONVERSION_RATE, (BASE_CONVERSION_RATE + rating_bonus + fame_bonus) * multiplier
    )


def split_tiers(new_fans: int, rating: float) -> FanDelta:
    superfan_rate = 0.10 if rating >= 22 else 0.05 if rating >= 18 else 0.02
    dedicated_rate = 0.25 if rating >= 18 else 0.15 if rating >= 14 else 0.10
    superfans = math.floor(new_fans * superfan_rate)
    dedicated = math.floor(new_fans * dedicated_rate)
    return FanDelta(
        total=new_fans,
        casual=new_fans - superfans - dedicated,
        dedicated=dedicated,
        superfans=superfans,
    )


def split_demographics(
    new_fans: int, demographics: Sequence[AgeDemographic], genre: Optional[str]
) -> List[Tuple[AgeDemographic, int]]:
    if not demographics or not genre or new_fans <= 0:
        return []
    weights: Dict[str, float] = {
        demo.demographic_id: float(demo.genre_preferences.get(genre, 1.0) or 1.0)
        for demo in demographics
    }
    total_weight = sum(weights.values())
    if total_weight <= 0:
        return []
    return [
        (demo, math.floor(new_fans * weights[demo.demographic_id] / total_weight))
        for demo in demographics
    ]


def split_spillover(
    new_fans: int, other_cities: Sequence[City]
) -> Tuple[int, List[Tuple[City, int]]]:
    """Returns the spillover total and the per-city casual fans it adds."""
    total = math.floor(new_fans * COUNTRY_SPILLOVER_RATE)
    cities = list(other_cities)[:MAX_SPILLOVER_CITIES]
    if total <= 0 or not cities:
        return total, []
    per_city = total // len(cities)
    if per_city <= 0:
        return total, []
    return total, [(city, per_city) for city in cities]


def convert_fans(
    *,
    attendance: int,
    rating: float,
    grade: str,
    fame: int,
    existing_city_fans: int,
    gigs_in_city: int,
    genre: Optional[str] = None,
    demographics: Sequence[AgeDemographic] = (),
    other_cities: Sequence[City] = (),
) -> FanConversion:
    repeats = repeat_attendees(attendance, existing_city_fans, gigs_in_city, fame)
    rate = conversion_rate(rating, grade, fame)
    new_fans = math.floor(max(0, attendance - repeats) * rate)
    spillover_total, spillover = split_spillover(new_fans, other_cities)
    return FanConversion(
        repeat_attendees=repeats,
        conversion_rate=rate,
        new_fans=split_tiers(new_fans, rating),
        spillover_total=spillover_total,
        spillover=spillover,
        demographics=split_demographics(new_fans, demographics, genre),
    )


def fame_title(fame: int) -> str:
    for threshold, title in FAME_TITLES:
        if fame >= threshold:
            return title
    return "Unknown Artist"
