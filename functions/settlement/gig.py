"""
Gig settlement.

Loading, scoring and persisting are separate steps: ``load_gig_context``
reads everything a settlement needs, ``build_gig_settlement`` is a pure
function of that context and the dice, and ``complete_gig`` ties them
together and writes the result in one transaction.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from backend.db import DbClient
from governance.city_laws import gig_modifiers
from settlement import fans as fan_rules
from settlement import performance as perf
from sponsorships.sponsorships import process_event_payouts
from shared.errors import ConflictError, InvalidStateError, NotFoundError, SettlementError
from shared.types import (
    AgeDemographic,
    Band,
    BandDelta,
    BandEarning,
    BandMember,
    City,
    CityFans,
    CityFansDelta,
    CityLaws,
    CountryFansDelta,
    CrewMember,
    DemographicFans,
    FameHistory,
    FanDelta,
    Gig,
    GigOutcome,
    GigSettlement,
    GigStatus,
    MerchItem,
    SetlistItem,
    SetlistItemType,
    SongPerformance,
    SponsorEvent,
    StageEquipment,
    Venue,
)

logger = logging.getLogger(__name__)

# Window for counting band-linked twaats as pre-gig buzz.
BUZZ_WINDOW_SECONDS = 7 * 24 * 3600


@dataclass
class GigContext:
    gig: Gig
    band: Band
    venue: Venue
    items: List[SetlistItem]
    members: List[BandMember] = field(default_factory=list)
    city: Optional[City] = None
    laws: Optional[CityLaws] = None
    rehearsal_levels: Dict[str, int] = field(default_factory=dict)
    equipment: List[StageEquipment] = field(default_factory=list)
    crew: List[CrewMember] = field(default_factory=list)
    merch: List[MerchItem] = field(default_factory=list)
    city_fans: Optional[CityFans] = None
    other_cities: List[City] = field(default_factory=list)
    demographics: List[AgeDemographic] = field(default_factory=list)
    recent_buzz: int = 0


def load_gig_context(db: DbClient, gig_id: str, now: float) -> GigContext:
    gig = db.get_gig(gig_id)
    if gig is None:
        raise NotFoundError(f"Gig {gig_id} not found")
    if gig.status == GigStatus.CANCELLED:
        raise InvalidStateError(f"Gig {gig_id} was cancelled")
    if gig.status == GigStatus.COMPLETED:
        raise ConflictError(f"Gig {gig_id} is already completed")

    band = db.get_band(gig.band_id)
    if band is None:
        raise NotFoundError(f"Band {gig.band_id} not found")
    venue = db.get_venue(gig.venue_id)
    if venue is None:
        raise NotFoundError(f"Venue {gig.venue_id} not found")

    items = db.list_setlist_items(gig.setlist_id)
    if not items:
        raise SettlementError(f"Gig {gig_id} has an empty setlist")

    city = db.get_city(venue.city_id) if venue.city_id else None
    other_cities: List[City] = []
    if city is not None:
        other_cities = [
            c for c in db.list_cities_in_country(city.country) if c.city_id != city.city_id
        ]

    return GigContext(
        gig=gig,
        band=band,
        venue=venue,
        items=items,
        members=db.list_band_members(band.band_id),
        city=city,
        laws=db.get_city_laws(city.city_id) if city else None,
        rehearsal_levels=db.get_rehearsal_levels(band.band_id),
        equipment=db.list_stage_equipment(band.band_id),
        crew=db.list_crew(band.band_id),
        merch=db.list_merch(band.band_id),
        city_fans=db.get_city_fans(band.band_id, city.city_id) if city else None,
        other_cities=other_cities,
        demographics=db.list_age_demographics(),
        recent_buzz=db.count_band_twaats_since(band.band_id, now - BUZZ_WINDOW_SECONDS),
    )


def _score_items(
    ctx: GigContext,
    rng: random.Random,
    *,
    outcome_id: str,
    chemistry: float,
    equipment_quality: float,
    crew_skill: float,
    member_skill: float,
    stage_skill: float,
    capacity_used: float,
) -> List[SongPerformance]:
    member_skill_pct = min(100.0, member_skill / perf.MAX_EFFECTIVE_SKILL * 100)
    performances: List[SongPerformance] = []
    for item in ctx.items:
        if item.item_type == SetlistItemType.STAGE_MOMENT:
            scored = perf.calculate_stage_moment_score(
                perf.StageMomentFactors(
                    crowd_appeal=item.crowd_appeal,
                    skill_match=perf.stage_moment_skill_match(
                        member_skill, item.min_skill_level
                    ),
                    band_chemistry=chemistry,
                    member_skill_average=member_skill_pct,
                )
            )
        else:
            scored = perf.calculate_song_performance(
                perf.PerformanceFactors(
                    song_quality=item.quality_score,
                    rehearsal_level=ctx.rehearsal_levels.get(item.song_id or "", 0),
                    band_chemistry=chemistry,
                    equipment_quality=equipment_quality,
                    crew_skill_level=crew_skill,
                    member_skill_average=member_skill,
                    stage_skill_average=stage_skill,
                    venue_capacity_used=capacity_used,
                ),
                rng,
                position=item.position,
            )
        performances.append(
            SongPerformance(
                outcome_id=outcome_id,
                position=item.position,
                item_type=item.item_type,
                title=item.title,
                performance_score=scored.score,
                crowd_response=scored.crowd_response,
                song_id=item.song_id,
                moment_id=item.moment_id,
                contributions=scored.breakdown,
                stage_event=scored.stage_event.as_dict() if scored.stage_event else None,
            )
        )
    return performances


def build_gig_settlement(
    ctx: GigContext, rng: random.Random, now: float
) -> GigSettlement:
    band = ctx.band
    fame = max(band.fame, 0)
    modifiers = gig_modifiers(ctx.laws, band.genre)

    capacity = ctx.venue.capacity
    if modifiers.capacity_cap is not None:
        capacity = min(capacity, modifiers.capacity_cap)

    attendance = perf.calculate_attendance(
        rng,
        capacity=capacity,
        fame=fame,
        recent_buzz=ctx.recent_buzz,
        law_multiplier=modifiers.attendance_multiplier,
    )
    capacity_used = attendance / capacity * 100 if capacity > 0 else 0.0

    equipment_quality = perf.equipment_quality(ctx.equipment)
    crew_skill = perf.crew_skill(ctx.crew)
    member_skill = perf.member_skill_average(ctx.members)
    stage_skill = perf.stage_skill_average(ctx.members)

    outcome = GigOutcome(
        gig_id=ctx.gig.gig_id,
        band_id=band.band_id,
        overall_rating=0.0,
        performance_grade="F",
        actual_attendance=attendance,
        attendance_percentage=round(capacity_used, 2),
        created_at=now,
    )
    performances = _score_items(
        ctx,
        rng,
        outcome_id=outcome.outcome_id,
        chemistry=band.chemistry_level,
        equipment_quality=equipment_quality,
        crew_skill=crew_skill,
        member_skill=member_skill,
        stage_skill=stage_skill,
        capacity_used=capacity_used,
    )
    rating = round(
        sum(p.performance_score for p in performances) / len(performances), 2
    )
    grade = perf.performance_grade(rating)

    merch = perf.calculate_merch_sales(attendance, fame, rating, ctx.merch)
    ticket_revenue = attendance * ctx.gig.ticket_price
    total_revenue = ticket_revenue + merch.revenue
    tax_paid = round(total_revenue * modifiers.sales_tax_rate / 100)
    crew_cost = sum(c.salary_per_gig for c in ctx.crew)
    equipment_cost = perf.equipment_wear_cost(ctx.equipment)
    total_costs = crew_cost + equipment_cost
    net_profit = total_revenue - tax_paid - total_costs
    fame_gained = perf.fame_gained(rating, attendance, modifiers.fame_multiplier)
    chemistry_change = perf.chemistry_change(rating)

    existing_city_fans = ctx.city_fans.total_fans if ctx.city_fans else 0
    gigs_in_city = (ctx.city_fans.gigs_in_city if ctx.city_fans else 0) + 1
    conversion = fan_rules.convert_fans(
        attendance=attendance,
        rating=rating,
        grade=grade,
        fame=fame,
        existing_city_fans=existing_city_fans,
        gigs_in_city=gigs_in_city,
        genre=band.genre,
        demographics=ctx.demographics if ctx.city else (),
        other_cities=ctx.other_cities if ctx.city else (),
    )
    new_fans = conversion.new_fans
    spill = conversion.spillover_total

    outcome.overall_rating = rating
    outcome.performance_grade = grade
    outcome.ticket_revenue = ticket_revenue
    outcome.merch_revenue = merch.revenue
    outcome.merch_items_sold = merch.items_sold
    outcome.total_revenue = total_revenue
    outcome.tax_paid = tax_paid
    outcome.crew_cost = crew_cost
    outcome.equipment_cost = equipment_cost
    outcome.total_costs = total_costs
    outcome.net_profit = net_profit
    outcome.fame_gained = fame_gained
    outcome.chemistry_change = chemistry_change
    outcome.new_fans = new_fans.total
    outcome.casual_fans_gained = new_fans.casual
    outcome.dedicated_fans_gained = new_fans.dedicated
    outcome.superfans_gained = new_fans.superfans
    outcome.repeat_attendees = conversion.repeat_attendees
    outcome.conversion_rate = round(conversion.conversion_rate * 100, 2)
    outcome.country_spillover = spill
    outcome.equipment_quality_avg = round(equipment_quality, 2)
    outcome.crew_skill_avg = round(crew_skill, 2)
    outcome.member_skill_avg = member_skill
    outcome.stage_skill_avg = stage_skill
    outcome.band_chemistry_level = band.chemistry_level
    outcome.venue_name = ctx.venue.name
    outcome.venue_capacity = capacity

    band_delta = BandDelta(
        fame=fame_gained,
        global_fame=math.floor(fame * 0.001),
        chemistry=chemistry_change,
        balance=net_profit,
        performance_count=1,
        fans=FanDelta(
            total=new_fans.total + spill,
            casual=new_fans.casual + spill,
            dedicated=new_fans.dedicated,
            superfans=new_fans.superfans,
        ),
    )

    core_members = [m for m in ctx.members if not m.is_touring_member]
    member_fame: Dict[str, int] = {}
    if core_members and fame_gained > 0:
        share = fame_gained // len(core_members)
        member_fame = {m.user_id: share for m in core_members}

    city_delta: Optional[CityFansDelta] = None
    spillover: List[CityFansDelta] = []
    country_delta: Optional[CountryFansDelta] = None
    demographic_fans: List[DemographicFans] = []
    if ctx.city is not None:
        city = ctx.city
        city_delta = CityFansDelta(
            city_id=city.city_id,
            city_name=city.name,
            country=city.country,
            fans=new_fans,
            gigs=1,
            avg_satisfaction=round(rating * 4, 2),
            city_fame=math.floor(fame * 0.05),
        )
        spillover = [
            CityFansDelta(
                city_id=other.city_id,
                city_name=other.name,
                country=other.country,
                fans=FanDelta(total=count, casual=count),
            )
            for other, count in conversion.spillover
        ]
        country_delta = CountryFansDelta(
            country=city.country,
            fans=FanDelta(
                total=new_fans.total + spill,
                casual=new_fans.casual + spill,
                dedicated=new_fans.dedicated,
                superfans=new_fans.superfans,
            ),
            fame=math.floor(fame * 0.01),
        )
        demographic_fans = [
            DemographicFans(
                band_id=band.band_id,
                demographic_id=demo.demographic_id,
                city_id=city.city_id,
                country=city.country,
                fan_count=count,
                engagement_rate=round(rating / perf.MAX_SCORE, 4),
            )
            for demo, count in conversion.demographics
            if count > 0
        ]

    earning = BandEarning(
        band_id=band.band_id,
        amount=net_profit,
        source="gig",
        description=f"Gig at {ctx.venue.name}",
        details={
            "gig_id": ctx.gig.gig_id,
            "attendance": attendance,
            "ticket_revenue": ticket_revenue,
            "merch_revenue": merch.revenue,
            "tax_paid": tax_paid,
            "total_costs": total_costs,
        },
        created_at=now,
    )
    fame_history = FameHistory(
        band_id=band.band_id,
        fame_value=band.fame + fame_gained,
        fame_change=fame_gained,
        event_type="gig",
        scope="city" if ctx.city else "global",
        city_id=ctx.city.city_id if ctx.city else None,
        country=ctx.city.country if ctx.city else None,
        created_at=now,
    )

    return GigSettlement(
        gig_id=ctx.gig.gig_id,
        band_id=band.band_id,
        completed_at=now,
        outcome=outcome,
        performances=performances,
        band_delta=band_delta,
        earning=earning,
        fame_history=fame_history,
        member_fame=member_fame,
        city_fans=city_delta,
        spillover=spillover,
        country_fans=country_delta,
        demographic_fans=demographic_fans,
    )


def complete_gig(
    db: DbClient,
    gig_id: str,
    rng: Optional[random.Random] = None,
    now: Optional[float] = None,
) -> GigSettlement:
    """Settle a finished gig and pay out venue sponsorships."""
    rng = rng or random.Random()
    now = time.time() if now is None else now

    ctx = load_gig_context(db, gig_id, now)
    settlement = build_gig_settlement(ctx, rng, now)
    db.apply_gig_settlement(settlement)
    outcome = settlement.outcome
    logger.info(
        "[gig %s] settled: rating %.2f (%s), attendance %d, net %d, fame +%d, fans +%d",
        gig_id,
        outcome.overall_rating,
        outcome.performance_grade,
        outcome.actual_attendance,
        outcome.net_profit,
        outcome.fame_gained,
        outcome.new_fans,
    )

    try:
        process_event_payouts(
            db,
            band_id=settlement.band_id,
            event_type=SponsorEvent.VENUE,
            fame_delta=outcome.fame_gained,
            event_reference=gig_id,
            now=now,
        )
    except Exception:
        logger.exception("[gig %s] sponsorship venue payouts failed", gig_id)
    return settlement
