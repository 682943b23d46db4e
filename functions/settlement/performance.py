"""
Performance scoring for gigs.

Every score here is on the 0-25 "star" scale used by gig outcomes. Functions
that roll dice take an explicit ``random.Random`` so settlements can be
replayed from a seed.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from shared.types import BandMember, CrewMember, MerchItem, StageEquipment

MAX_SCORE = 25.0

SONG_WEIGHTS = {
    "songQuality": 0.25,
    "rehearsal": 0.20,
    "chemistry": 0.15,
    "equipment": 0.12,
    "crew": 0.08,
    "memberSkills": 0.10,
    "stageSkills": 0.10,
}

STAGE_MOMENT_WEIGHTS = {
    "crowdAppeal": 0.35,
    "skillMatch": 0.25,
    "chemistry": 0.20,
    "memberSkills": 0.20,
}

DEFAULT_EQUIPMENT_QUALITY = 40.0
DEFAULT_CREW_SKILL = 40.0
DEFAULT_MEMBER_SKILL = 50.0
DEFAULT_STAGE_SKILL = 50.0

MAX_GEAR_BONUS = 0.5
MAX_EFFECTIVE_SKILL = 150

BASE_ATTENDANCE_RATE = 0.7
ATTENDANCE_SWING = 0.15
EQUIPMENT_WEAR_RATE = 0.02

MISHAPS = (
    "Guitar string broke mid-solo",
    "Microphone feedback disrupted the song",
    "Drummer dropped a stick",
    "Wrong lyrics sung in the chorus",
)


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


@dataclass
class PerformanceFactors:
    song_quality: float
    rehearsal_level: float
    band_chemistry: float
    equipment_quality: float
    crew_skill_level: float
    member_skill_average: float
    stage_skill_average: float
    venue_capacity_used: float


@dataclass
class StageMomentFactors:
    crowd_appeal: float
    skill_match: float
    band_chemistry: float
    member_skill_average: float


@dataclass(frozen=True)
class StageEvent:
    event_type: str
    severity: str
    impact_score: int
    description: str

    def as_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "severity": self.severity,
            "impact_score": self.impact_score,
            "description": self.description,
        }


@dataclass
class ItemScore:
    score: float
    crowd_response: str
    breakdown: Dict[str, float] = field(default_factory=dict)
    stage_event: Optional[StageEvent] = None


@dataclass
class MerchSales:
    items_sold: int
    revenue: int


# --- Factor aggregation -------------------------------------------------------


def equipment_quality(equipment: Iterable[StageEquipment]) -> float:
    ratings = [item.quality_rating for item in equipment]
    if not ratings:
        return DEFAULT_EQUIPMENT_QUALITY
    return sum(ratings) / len(ratings)


def crew_skill(crew: Iterable[CrewMember]) -> float:
    levels = [member.skill_level for member in crew]
    if not levels:
        return DEFAULT_CREW_SKILL
    return sum(levels) / len(levels)


def effective_member_skill(member: BandMember) -> int:
    gear_multiplier = 1 + min(max(member.gear_bonus, 0.0), MAX_GEAR_BONUS)
    return min(MAX_EFFECTIVE_SKILL, round(member.skill_level * gear_multiplier))


def member_skill_average(members: Iterable[BandMember]) -> float:
    levels = [effective_member_skill(m) for m in members if not m.is_touring_member]
    if not levels:
        return DEFAULT_MEMBER_SKILL
    return float(round(sum(levels) / len(levels)))


def stage_skill_average(members: Iterable[BandMember]) -> float:
    """60% stage presence, 40% charisma; attributes are 0-20, result 0-100."""
    scores = [
        min(100.0, (m.stage_presence * 0.6 + m.charisma * 0.4) / 20 * 100)
        for m in members
        if not m.is_touring_member
    ]
    if not scores:
        return DEFAULT_STAGE_SKILL
    return float(round(sum(scores) / len(scores)))


# --- Per-item scoring ---------------------------------------------------------


def capacity_multiplier(capacity_used_percent: float) -> float:
    if capacity_used_percent >= 95:
        return 1.15
    if capacity_used_percent >= 80:
        return 1.08
    if capacity_used_percent >= 60:
        return 1.0
    if capacity_used_percent >= 40:
        return 0.95
    return 0.85


def song_crowd_response(score: float) -> str:
    if score >= 22:
        return "ecstatic"
    if score >= 18:
        return "enthusiastic"
    if score >= 14:
        return "engaged"
    if score >= 10:
        return "mixed"
    return "disappointed"


def stage_moment_crowd_response(score: float) -> str:
    if score >= 20:
        return "ecstatic"
    if score >= 16:
        return "enthusiastic"
    if score >= 12:
        return "engaged"
    if score < 8:
        return "mixed"
    return "engaged"


def roll_stage_event(rng: random.Random, position: int) -> Optional[StageEvent]:
    """Mishaps, perfect moments and the odd rare event during a song."""
    roll = rng.random()
    if roll < 0.05:
        severity = "minor" if rng.random() < 0.7 else "moderate"
        return StageEvent(
            event_type="mishap",
            severity=severity,
            impact_score=-1 if severity == "minor" else -3,
            description=rng.choice(MISHAPS),
        )
    if roll > 0.95 and position > 3:
        return StageEvent(
            event_type="perfect_moment",
            severity="minor",
            impact_score=3,
            description="The crowd went absolutely wild! Perfect execution!",
        )
    if rng.random() < 0.02:
        rare = rng.random()
        if rare < 0.33:
            return StageEvent(
                "surprise_guest",
                "minor",
                5,
                "A local celebrity jumped on stage to join the performance!",
            )
        if rare < 0.66:
            return StageEvent(
                "crowd_surge", "minor", 2, "The crowd surged forward in excitement!"
            )
        return StageEvent(
            "technical_failure", "major", -5, "Sound system failed for 30 seconds"
        )
    return None


def calculate_song_performance(
    factors: PerformanceFactors,
    rng: random.Random,
    *,
    position: int = 1,
) -> ItemScore:
    def pct(value: float) -> float:
        return clamp(value or 0.0, 0.0, 100.0)

    song_quality = min(100.0, factors.song_quality / 1000 * 100)
    member_skills = min(100.0, factors.member_skill_average / MAX_EFFECTIVE_SKILL * 100)

    contributions = {
        "songQuality": song_quality * SONG_WEIGHTS["songQuality"],
        "rehearsal": pct(factors.rehearsal_level) * SONG_WEIGHTS["rehearsal"],
        "chemistry": pct(factors.band_chemistry) * SONG_WEIGHTS["chemistry"],
        "equipment": pct(factors.equipment_quality) * SONG_WEIGHTS["equipment"],
        "crew": pct(factors.crew_skill_level) * SONG_WEIGHTS["crew"],
        "memberSkills": member_skills * SONG_WEIGHTS["memberSkills"],
        "stageSkills": pct(factors.stage_skill_average) * SONG_WEIGHTS["stageSkills"],
    }
    base_score = sum(contributions.values())

    variance = 0.85 + rng.random() * 0.30
    quality_difficulty = 0.75 + (song_quality / 100) * 0.25
    raw = (
        (base_score / 100)
        * MAX_SCORE
        * capacity_multiplier(factors.venue_capacity_used)
        * variance
        * quality_difficulty
    )

    event = roll_stage_event(rng, position)
    if event:
        raw += event.impact_score

    score = round(clamp(raw, 0.0, MAX_SCORE), 2)
    breakdown = {
        key: round(value / 100 * MAX_SCORE, 2) for key, value in contributions.items()
    }
    return ItemScore(
        score=score,
        crowd_response=song_crowd_response(score),
        breakdown=breakdown,
        stage_event=event,
    )


def stage_moment_skill_match(member_skill: float, min_skill_level: int) -> float:
    if min_skill_level <= 0:
        return 70.0
    return min(100.0, member_skill / max(1, min_skill_level) * 100)


def calculate_stage_moment_score(factors: StageMomentFactors) -> ItemScore:
    def pct(value: float) -> float:
        return clamp(value or 50.0, 0.0, 100.0)

    parts = {
        "crowdAppeal": pct(factors.crowd_appeal) / 100 * MAX_SCORE * STAGE_MOMENT_WEIGHTS["crowdAppeal"],
        "skillMatch": pct(factors.skill_match) / 100 * MAX_SCORE * STAGE_MOMENT_WEIGHTS["skillMatch"],
        "chemistry": pct(factors.band_chemistry) / 100 * MAX_SCORE * STAGE_MOMENT_WEIGHTS["chemistry"],
        "memberSkills": pct(factors.member_skill_average) / 100 * MAX_SCORE * STAGE_MOMENT_WEIGHTS["memberSkills"],
    }
    score = round(sum(parts.values()), 2)
    return ItemScore(
        score=score,
        crowd_response=stage_moment_crowd_response(score),
        breakdown={key: round(value, 2) for key, value in parts.items()},
    )


# --- Whole-gig figures ----------------------------------------------------------


def performance_grade(rating: float) -> str:
    if rating >= 23:
        return "S+"
    if rating >= 21:
        return "S"
    if rating >= 18:
        return "A"
    if rating >= 15:
        return "B"
    if rating >= 12:
        return "C"
    if rating >= 8:
        return "D"
    return "F"


def chemistry_change(rating: float) -> int:
    if rating >= 20:
        return 3
    if rating >= 17:
        return 2
    if rating >= 14:
        return 1
    if rating < 10:
        return -1
    return 0


def calculate_attendance(
    rng: random.Random,
    *,
    capacity: int,
    fame: int,
    recent_buzz: int = 0,
    law_multiplier: float = 1.0,
) -> int:
    if capacity <= 0:
        return 0
    base = math.floor(capacity * BASE_ATTENDANCE_RATE)
    swing = rng.uniform(-ATTENDANCE_SWING, ATTENDANCE_SWING)
    hype = min(0.2, max(fame, 0) / 50000)
    buzz = 1 + min(0.3, max(recent_buzz, 0) * 0.05)
    attendance = base * max(0.0, 1 + swing + hype) * buzz * law_multiplier
    return int(max(1, min(capacity, math.floor(attendance))))


def calculate_merch_sales(
    attendance: int, fame: int, rating: float, merch: Iterable[MerchItem]
) -> MerchSales:
    stocked = [item for item in merch if item.stock_quantity > 0]
    total_stock = sum(item.stock_quantity for item in stocked)
    if not stocked or attendance <= 0:
        return MerchSales(items_sold=0, revenue=0)

    buy_rate = 0.05 + (rating / MAX_SCORE) * 0.15 + min(0.1, max(fame, 0) / 100000)
    items_sold = min(total_stock, math.floor(attendance * buy_rate))
    mean_price = (
        sum(item.selling_price * item.stock_quantity for item in stocked) / total_stock
    )
    return MerchSales(items_sold=items_sold, revenue=round(items_sold * mean_price))


def equipment_wear_cost(equipment: Iterable[StageEquipment]) -> int:
    return round(sum((item.purchase_cost or 0) * EQUIPMENT_WEAR_RATE for item in equipment))


def fame_gained(rating: float, attendance: int, multiplier: float = 1.0) -> int:
    return round((rating / MAX_SCORE) * attendance * 0.5 * multiplier)
