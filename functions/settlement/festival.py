"""
Festival performance settlement: rewards, press reviews, merch and the
player's inbox notice.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from backend.db import DbClient
from sponsorships.sponsorships import process_event_payouts
from shared.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from shared.types import (
    Band,
    BandDelta,
    FanDelta,
    FestivalMerchSales,
    FestivalParticipation,
    FestivalPerformance,
    FestivalReview,
    FestivalSettlement,
    InboxMessage,
    ParticipationStatus,
    SponsorEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYOUT = 5000
BASE_FAME = 500
BASE_MERCH = 1000
BASE_NEW_FANS = 100
FESTIVAL_MERCH_CUT = 0.2


@dataclass(frozen=True)
class Publication:
    name: str
    reviewer_type: str
    weight: float


PUBLICATIONS = (
    Publication("Rock Review Weekly", "critic", 1.2),
    Publication("Festival Gazette", "critic", 1.0),
    Publication("Music Underground", "blog", 0.8),
    Publication("LiveMusicFans.com", "fan", 0.6),
    Publication("BandWatch", "industry", 1.1),
    Publication("Pitchfork Festival Report", "critic", 1.5),
    Publication("NME Live", "critic", 1.4),
    Publication("Rolling Stone Festivals", "critic", 1.5),
)

HEADLINES = {
    "excellent": (
        "{band} Delivers a Performance for the Ages",
        "Absolutely Electric: {band} Steals the Show",
        "{band} Sets the Festival Ablaze",
        "A Star-Making Moment for {band}",
        "The Crowd Went Wild for {band}",
    ),
    "good": (
        "{band} Delivers Solid Festival Set",
        "Crowd-Pleasing Performance from {band}",
        "{band} Proves Their Worth",
        "Energetic Show from {band}",
        "{band} Wins Over Festival Crowd",
    ),
    "average": (
        "{band}: Decent But Unmemorable",
        "{band} Plays It Safe",
        "Mixed Results for {band}",
        "{band} Has Room to Grow",
        "A Standard Set from {band}",
    ),
    "poor": (
        "{band} Disappoints Festival Crowd",
        "Rough Night for {band}",
        "Technical Issues Plague {band} Set",
        "{band} Falls Short of Expectations",
        "{band} Needs to Regroup",
    ),
}

REVIEW_TEMPLATES = {
    "excellent": (
        "{band} took the stage and immediately commanded the crowd's attention. "
        "With {energy} energy from start to finish, they delivered one of the "
        "standout performances of the festival."
    ),
    "good": (
        "{band} put on a solid show that kept the crowd engaged throughout. The "
        "{energy} atmosphere helped carry the set, and overall the performance "
        "was impressive."
    ),
    "average": (
        "{band}'s set was competent but lacked the spark needed to truly stand "
        "out. The {energy} crowd response reflected the middling energy on stage."
    ),
    "poor": (
        "Unfortunately, {band} struggled to connect with the audience. The "
        "{energy} crowd response said it all: this wasn't their night."
    ),
}


@dataclass
class FestivalPerformanceInput:
    participation_id: str
    band_id: str
    performance_score: float
    crowd_energy_peak: float
    crowd_energy_avg: float
    event_responses: List[float] = field(default_factory=list)
    songs_performed: int = 0

    def validate(self) -> None:
        for name in ("performance_score", "crowd_energy_peak", "crowd_energy_avg"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100")
        if self.songs_performed < 0:
            raise ValueError("songs_performed cannot be negative")


def headline_category(score: float) -> str:
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "average"
    return "poor"


def energy_description(crowd_energy: float) -> str:
    if crowd_energy > 80:
        return "electric"
    if crowd_energy > 60:
        return "energetic"
    if crowd_energy > 40:
        return "steady"
    return "lukewarm"


def review_text(score: float, band_name: str, crowd_energy: float) -> str:
    return REVIEW_TEMPLATES[headline_category(score)].format(
        band=band_name, energy=energy_description(crowd_energy)
    )


def review_sentiment(score: float) -> str:
    if score >= 75:
        return "positive"
    if score >= 50:
        return "mixed"
    if score >= 30:
        return "neutral"
    return "negative"


def highlight_moments(
    crowd_energy_peak: float, score: float, event_responses: Sequence[float]
) -> List[str]:
    highlights = []
    if crowd_energy_peak >= 90:
        highlights.append("Incredible crowd energy peak!")
    if score >= 85:
        highlights.append("Near-perfect execution")
    if any(r >= 90 for r in event_responses):
        highlights.append("Handled challenges brilliantly")
    return highlights


def _clamp_score(value: float) -> float:
    return min(100.0, max(0.0, value))


def build_festival_settlement(
    participation: FestivalParticipation,
    band: Band,
    data: FestivalPerformanceInput,
    rng: random.Random,
    now: float,
) -> FestivalSettlement:
    score = data.performance_score
    energy = data.crowd_energy_avg
    score_multiplier = 0.5 + score / 100
    energy_multiplier = 0.8 + energy / 200

    base_payment = participation.payout_amount or DEFAULT_PAYOUT
    payment = round(base_payment * score_multiplier * energy_multiplier)
    fame = round(BASE_FAME * score_multiplier * energy_multiplier)
    merch_gross = round(BASE_MERCH * (score / 50) * (energy / 50))
    merch_net = round(merch_gross * (1 - FESTIVAL_MERCH_CUT))
    new_fans = round(BASE_NEW_FANS * score_multiplier * energy_multiplier)

    headlines = HEADLINES[headline_category(score)]
    headline = rng.choice(headlines).format(band=band.name)
    critic_score = round(_clamp_score(score + math.floor((rng.random() - 0.5) * 20)))
    fan_score = round(_clamp_score(score + math.floor((rng.random() - 0.5) * 15) + 5))

    performance = FestivalPerformance(
        participation_id=participation.participation_id,
        band_id=band.band_id,
        festival_id=participation.festival_id,
        user_id=participation.user_id,
        performance_score=score,
        crowd_energy_peak=data.crowd_energy_peak,
        crowd_energy_avg=energy,
        songs_performed=data.songs_performed,
        payment_earned=payment,
        fame_earned=fame,
        merch_revenue=merch_net,
        new_fans_gained=new_fans,
        critic_score=critic_score,
        fan_score=fan_score,
        review_headline=headline,
        review_summary=review_text(score, band.name, energy),
        highlight_moments=highlight_moments(
            data.crowd_energy_peak, score, data.event_responses
        ),
        slot_type=participation.slot_type,
        performed_at=now,
    )

    review_count = 3 if score >= 80 else 2 if score >= 60 else 1
    reviews = []
    for publication in rng.sample(PUBLICATIONS, review_count):
        review_score = _clamp_score(
            score + (rng.random() - 0.5) * 15 * publication.weight
        )
        reviews.append(
            FestivalReview(
                performance_id=performance.performance_id,
                band_id=band.band_id,
                reviewer_type=publication.reviewer_type,
                publication_name=publication.name,
                score=round(review_score),
                headline=rng.choice(headlines).format(band=band.name),
                review_text=review_text(review_score, band.name, energy),
                sentiment=review_sentiment(review_score),
                fame_impact=round((review_score - 50) * publication.weight * 2),
                is_featured=publication.weight >= 1.4,
            )
        )

    merch_sales = FestivalMerchSales(
        performance_id=performance.performance_id,
        band_id=band.band_id,
        festival_id=participation.festival_id,
        tshirts_sold=round((score / 10) * (energy / 20)),
        posters_sold=round((score / 15) * (energy / 25)),
        albums_sold=round((score / 20) * (energy / 30)),
        gross_revenue=merch_gross,
        festival_cut=round(merch_gross * FESTIVAL_MERCH_CUT),
        net_revenue=merch_net,
    )

    inbox = InboxMessage(
        user_id=participation.user_id,
        subject="Festival Performance Complete!",
        content=(
            f"Your performance scored {score:g}/100!\n\n"
            f"Earnings: ${payment:,}\n"
            f"Fame: +{fame}\n"
            f"Merch: ${merch_net:,}\n"
            f"New Fans: +{new_fans}"
        ),
        message_type="festival_result",
        priority="high" if score >= 80 else "normal",
        created_at=now,
    )

    return FestivalSettlement(
        participation_id=participation.participation_id,
        band_id=band.band_id,
        performance=performance,
        reviews=reviews,
        merch_sales=merch_sales,
        band_delta=BandDelta(
            fame=fame,
            balance=payment + merch_net,
            fans=FanDelta(total=new_fans, casual=new_fans),
        ),
        inbox_message=inbox,
    )


def complete_festival_performance(
    db: DbClient,
    data: FestivalPerformanceInput,
    rng: Optional[random.Random] = None,
    now: Optional[float] = None,
) -> FestivalSettlement:
    data.validate()
    rng = rng or random.Random()
    now = time.time() if now is None else now

    participation = db.get_festival_participation(data.participation_id)
    if participation is None:
        raise NotFoundError(f"Participation {data.participation_id} not found")
    if participation.band_id != data.band_id:
        raise ForbiddenError("Participation does not belong to band")
    if participation.status == ParticipationStatus.CANCELLED:
        raise InvalidStateError(f"Participation {data.participation_id} was cancelled")
    if participation.status == ParticipationStatus.PERFORMED:
        raise ConflictError(f"Participation {data.participation_id} has already performed")
    band = db.get_band(data.band_id)
    if band is None:
        raise NotFoundError(f"Band {data.band_id} not found")

    settlement = build_festival_settlement(participation, band, data, rng, now)
    db.apply_festival_settlement(settlement)
    performance = settlement.performance
    logger.info(
        "[festival %s] band %s scored %.1f: payment %d, fame +%d, fans +%d",
        participation.festival_id,
        band.band_id,
        performance.performance_score,
        performance.payment_earned,
        performance.fame_earned,
        performance.new_fans_gained,
    )

    try:
        process_event_payouts(
            db,
            band_id=band.band_id,
            event_type=SponsorEvent.FESTIVAL,
            fame_delta=performance.fame_earned,
            event_reference=participation.festival_id,
            now=now,
        )
    except Exception:
        logger.exception(
            "[festival %s] sponsorship festival payouts failed", participation.festival_id
        )
    return settlement
