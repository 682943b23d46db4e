"""
Records and enums shared by the storage layer and the game handlers.

Records are plain dataclasses whose field names match the table columns, so
both the in-memory and the SQLAlchemy clients can persist them directly.
Timestamps are epoch seconds.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Optional


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


class GigStatus(StrEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SetlistItemType(StrEnum):
    SONG = "song"
    STAGE_MOMENT = "stage_moment"


class ParticipationStatus(StrEnum):
    CONFIRMED = "confirmed"
    PERFORMED = "performed"
    CANCELLED = "cancelled"


class WealthTier(StrEnum):
    EMERGING = "emerging"
    GROWTH = "growth"
    ESTABLISHED = "established"
    TITAN = "titan"


class SlotType(StrEnum):
    GENERAL = "general"
    TOUR = "tour"
    FESTIVAL = "festival"
    VENUE = "venue"


class SponsorEvent(StrEnum):
    TOUR = "tour"
    FESTIVAL = "festival"
    VENUE = "venue"
    FAME_GAIN = "fame_gain"
    WEEKLY = "weekly"
    EXPIRY = "expiry"


class OfferStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class ContractStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"


class DrugPolicy(StrEnum):
    PROHIBITED = "prohibited"
    MEDICAL_ONLY = "medical_only"
    DECRIMINALIZED = "decriminalized"
    LEGAL = "legal"


class JobStatus(StrEnum):
    WAITING = "WAITING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class JobType(StrEnum):
    COMPLETE_GIG = "complete_gig"
    GENERATE_SPONSORSHIP_OFFERS = "generate_sponsorship_offers"
    PROCESS_WEEKLY_PAYOUTS = "process_weekly_payouts"
    EXPIRE_SPONSORSHIPS = "expire_sponsorships"
    GENERATE_BOT_TWAATS = "generate_bot_twaats"


# --- Bands, members, venues -------------------------------------------------


@dataclass
class Band:
    band_id: str
    name: str
    genre: Optional[str] = None
    fame: int = 0
    global_fame: int = 0
    chemistry_level: int = 0
    performance_count: int = 0
    band_balance: int = 0
    total_fans: int = 0
    casual_fans: int = 0
    dedicated_fans: int = 0
    superfans: int = 0


@dataclass
class BandMember:
    band_id: str
    user_id: str
    instrument_role: str = "Vocals"
    # Blended 0-100 skill for the member's role.
    skill_level: int = 0
    # Bonus from equipped role-matching gear, 0..0.5.
    gear_bonus: float = 0.0
    # Attributes on a 0-20 scale.
    stage_presence: int = 5
    charisma: int = 5
    is_touring_member: bool = False


@dataclass
class Profile:
    user_id: str
    display_name: str = ""
    fame: int = 0


@dataclass
class City:
    city_id: str
    name: str
    country: str
    mayor_user_id: Optional[str] = None


@dataclass
class Venue:
    venue_id: str
    name: str
    capacity: int = 100
    city_id: Optional[str] = None


@dataclass
class Gig:
    gig_id: str
    band_id: str
    venue_id: str
    setlist_id: str
    ticket_price: int = 0
    status: str = GigStatus.SCHEDULED
    scheduled_at: float = field(default_factory=_now)
    completed_at: Optional[float] = None


# --- Setlists ---------------------------------------------------------------


@dataclass
class Song:
    song_id: str
    band_id: str
    title: str
    genre: Optional[str] = None
    # 0-1000
    quality_score: int = 500


@dataclass
class StageMoment:
    moment_id: str
    name: str
    crowd_appeal: int = 50
    min_skill_level: int = 0


@dataclass
class SetlistEntry:
    setlist_id: str
    position: int
    item_type: str = SetlistItemType.SONG
    song_id: Optional[str] = None
    moment_id: Optional[str] = None
    energy_level: int = 5
    is_encore: bool = False


@dataclass
class SetlistItem:
    """A setlist entry joined with its song or stage moment."""

    position: int
    item_type: str
    title: str
    song_id: Optional[str] = None
    moment_id: Optional[str] = None
    genre: Optional[str] = None
    quality_score: int = 500
    crowd_appeal: int = 50
    min_skill_level: int = 0
    energy_level: int = 5
    is_encore: bool = False


@dataclass
class SongRehearsal:
    band_id: str
    song_id: str
    # 0-100
    rehearsal_level: int = 0


@dataclass
class StageEquipment:
    equipment_id: str
    band_id: str
    name: str
    quality_rating: int = 40
    purchase_cost: int = 0


@dataclass
class CrewMember:
    crew_id: str
    band_id: str
    name: str
    skill_level: int = 40
    salary_per_gig: int = 0


@dataclass
class MerchItem:
    merch_id: str
    band_id: str
    item_type: str
    selling_price: int = 20
    stock_quantity: int = 0


# --- Fans and fame ----------------------------------------------------------


@dataclass
class FanDelta:
    total: int = 0
    casual: int = 0
    dedicated: int = 0
    superfans: int = 0


@dataclass
class CityFans:
    band_id: str
    city_id: str
    city_name: str = ""
    country: str = ""
    total_fans: int = 0
    casual_fans: int = 0
    dedicated_fans: int = 0
    superfans: int = 0
    gigs_in_city: int = 0
    last_gig_at: Optional[float] = None
    avg_satisfaction: float = 0.0
    city_fame: int = 0


@dataclass
class CountryFans:
    band_id: str
    country: str
    total_fans: int = 0
    casual_fans: int = 0
    dedicated_fans: int = 0
    superfans: int = 0
    fame: int = 0
    last_activity_at: Optional[float] = None


@dataclass
class AgeDemographic:
    demographic_id: str
    name: str
    genre_preferences: Dict[str, float] = field(default_factory=dict)


@dataclass
class DemographicFans:
    band_id: str
    demographic_id: str
    city_id: str
    country: str = ""
    fan_count: int = 0
    engagement_rate: float = 0.0


@dataclass
class FameHistory:
    band_id: str
    fame_value: int
    fame_change: int
    event_type: str
    scope: str = "city"
    city_id: Optional[str] = None
    country: Optional[str] = None
    history_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class BandEarning:
    band_id: str
    amount: int
    source: str
    description: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    earning_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


# --- Gig outcomes -----------------------------------------------------------


@dataclass
class GigOutcome:
    gig_id: str
    band_id: str
    overall_rating: float
    performance_grade: str
    actual_attendance: int
    attendance_percentage: float
    ticket_revenue: int = 0
    merch_revenue: int = 0
    merch_items_sold: int = 0
    total_revenue: int = 0
    tax_paid: int = 0
    crew_cost: int = 0
    equipment_cost: int = 0
    total_costs: int = 0
    net_profit: int = 0
    fame_gained: int = 0
    chemistry_change: int = 0
    new_fans: int = 0
    casual_fans_gained: int = 0
    dedicated_fans_gained: int = 0
    superfans_gained: int = 0
    repeat_attendees: int = 0
    conversion_rate: float = 0.0
    country_spillover: int = 0
    equipment_quality_avg: float = 0.0
    crew_skill_avg: float = 0.0
    member_skill_avg: float = 0.0
    stage_skill_avg: float = 0.0
    band_chemistry_level: int = 0
    venue_name: str = ""
    venue_capacity: int = 0
    outcome_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class SongPerformance:
    outcome_id: str
    position: int
    item_type: str
    title: str
    performance_score: float
    crowd_response: str
    song_id: Optional[str] = None
    moment_id: Optional[str] = None
    contributions: Dict[str, float] = field(default_factory=dict)
    stage_event: Optional[Dict[str, Any]] = None
    performance_id: str = field(default_factory=_new_id)


# --- City governance ----------------------------------------------------------


@dataclass
class CityLaws:
    city_id: str
    income_tax_rate: float = 10.0
    sales_tax_rate: float = 8.0
    travel_tax: int = 50
    alcohol_legal_age: int = 21
    drug_policy: str = DrugPolicy.PROHIBITED
    # None means no curfew.
    noise_curfew_hour: Optional[int] = 23
    festival_permit_required: bool = True
    max_concert_capacity: Optional[int] = None
    busking_license_fee: int = 0
    venue_permit_cost: int = 500
    community_events_funding: int = 0
    promoted_genres: List[str] = field(default_factory=list)
    prohibited_genres: List[str] = field(default_factory=list)
    updated_at: float = field(default_factory=_now)


@dataclass
class LawChange:
    city_id: str
    law_field: str
    old_value: Any
    new_value: Any
    changed_by: str
    reason: Optional[str] = None
    change_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


# --- Festivals ----------------------------------------------------------------


@dataclass
class FestivalParticipation:
    participation_id: str
    festival_id: str
    band_id: str
    user_id: str
    slot_type: str = "opening"
    payout_amount: Optional[int] = None
    status: str = ParticipationStatus.CONFIRMED


@dataclass
class FestivalPerformance:
    participation_id: str
    band_id: str
    festival_id: str
    user_id: str
    performance_score: float
    crowd_energy_peak: float
    crowd_energy_avg: float
    songs_performed: int
    payment_earned: int
    fame_earned: int
    merch_revenue: int
    new_fans_gained: int
    critic_score: int
    fan_score: int
    review_headline: str
    review_summary: str
    highlight_moments: List[str] = field(default_factory=list)
    slot_type: str = "opening"
    performance_id: str = field(default_factory=_new_id)
    performed_at: float = field(default_factory=_now)


@dataclass
class FestivalReview:
    performance_id: str
    band_id: str
    reviewer_type: str
    publication_name: str
    score: int
    headline: str
    review_text: str
    sentiment: str
    fame_impact: int
    is_featured: bool = False
    review_id: str = field(default_factory=_new_id)


@dataclass
class FestivalMerchSales:
    performance_id: str
    band_id: str
    festival_id: str
    tshirts_sold: int
    posters_sold: int
    albums_sold: int
    gross_revenue: int
    festival_cut: int
    net_revenue: int
    sales_id: str = field(default_factory=_new_id)


@dataclass
class InboxMessage:
    user_id: str
    subject: str
    content: str
    message_type: str
    priority: str = "normal"
    message_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


# --- Sponsorships -------------------------------------------------------------


@dataclass
class BrandPartner:
    brand_id: str
    name: str
    wealth_tier: str = WealthTier.GROWTH
    size_index: Optional[int] = None
    fame_floor: Optional[int] = None
    cooldown_days: Optional[int] = None
    focus_slots: List[str] = field(default_factory=list)
    exclusivity_categories: List[str] = field(default_factory=list)
    base_offer: Optional[int] = None


@dataclass
class BrandOffer:
    band_id: str
    brand_id: str
    cash_offer: int
    expires_at: float
    fame_required: int = 0
    status: str = OfferStatus.PENDING
    slot_type: str = SlotType.GENERAL
    exclusivity_category: Optional[str] = None
    weighting_score: float = 0.0
    brand_name: str = ""
    cooldown_days: int = 7
    offer_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class BrandContract:
    offer_id: str
    band_id: str
    brand_id: str
    start_date: float
    end_date: float
    base_cash: int
    status: str = ContractStatus.ACTIVE
    slot_type: str = SlotType.GENERAL
    exclusivity_category: Optional[str] = None
    termination_reason: Optional[str] = None
    last_weekly_payout_at: Optional[float] = None
    contract_id: str = field(default_factory=_new_id)
    updated_at: float = field(default_factory=_now)


@dataclass
class BrandPayout:
    contract_id: str
    band_id: str
    event_type: str
    base_amount: int = 0
    bonus_amount: int = 0
    fame_delta: int = 0
    event_reference: Optional[str] = None
    payout_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)

    @property
    def total(self) -> int:
        return self.base_amount + self.bonus_amount


@dataclass
class ContractHistoryEvent:
    event_type: str
    event_details: Dict[str, Any] = field(default_factory=dict)
    contract_id: Optional[str] = None
    event_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


# --- Social -------------------------------------------------------------------


@dataclass
class BotAccount:
    bot_id: str
    account_id: str
    handle: str
    bot_type: str = "music_fan"
    personality_traits: List[str] = field(default_factory=list)
    posting_frequency: str = "medium"
    is_active: bool = True
    last_posted_at: Optional[float] = None


@dataclass
class ChartEntry:
    song_id: str
    title: str
    band_name: str
    rank: int
    genre: Optional[str] = None


@dataclass
class Twaat:
    account_id: str
    body: str
    linked_type: Optional[str] = None
    linked_id: Optional[str] = None
    linked_band_id: Optional[str] = None
    visibility: str = "public"
    twaat_id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=_now)


# --- Jobs ---------------------------------------------------------------------


@dataclass
class JobRecord:
    job_id: str
    job_type: str
    status: str = JobStatus.WAITING
    payload: Dict[str, Any] = field(default_factory=dict)
    stage: str = "WAITING"
    progress_percent: float = 0.0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    locked_at: Optional[float] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


# --- Settlement bundles -------------------------------------------------------
#
# Settlements carry deltas rather than absolute values so the storage layer
# can apply them against the current row inside its own transaction.


@dataclass
class BandDelta:
    fame: int = 0
    global_fame: int = 0
    chemistry: int = 0
    balance: int = 0
    performance_count: int = 0
    fans: FanDelta = field(default_factory=FanDelta)


@dataclass
class CityFansDelta:
    city_id: str
    city_name: str
    country: str
    fans: FanDelta = field(default_factory=FanDelta)
    gigs: int = 0
    # Absolute values; None leaves the stored value alone.
    avg_satisfaction: Optional[float] = None
    city_fame: Optional[int] = None


@dataclass
class CountryFansDelta:
    country: str
    fans: FanDelta = field(default_factory=FanDelta)
    fame: int = 0


@dataclass
class GigSettlement:
    gig_id: str
    band_id: str
    completed_at: float
    outcome: GigOutcome
    performances: List[SongPerformance]
    band_delta: BandDelta
    earning: BandEarning
    fame_history: FameHistory
    member_fame: Dict[str, int] = field(default_factory=dict)
    city_fans: Optional[CityFansDelta] = None
    spillover: List[CityFansDelta] = field(default_factory=list)
    country_fans: Optional[CountryFansDelta] = None
    demographic_fans: List[DemographicFans] = field(default_factory=list)


@dataclass
class FestivalSettlement:
    participation_id: str
    band_id: str
    performance: FestivalPerformance
    reviews: List[FestivalReview]
    merch_sales: FestivalMerchSales
    band_delta: BandDelta
    inbox_message: InboxMessage


def apply_band_delta(band: Band, delta: BandDelta) -> Band:
    band.fame += delta.fame
    band.global_fame += delta.global_fame
    band.chemistry_level = max(0, min(100, band.chemistry_level + delta.chemistry))
    band.band_balance += delta.balance
    band.performance_count += delta.performance_count
    band.total_fans += delta.fans.total
    band.casual_fans += delta.fans.casual
    band.dedicated_fans += delta.fans.dedicated
    band.superfans += delta.fans.superfans
    return band


def apply_city_fans_delta(
    existing: Optional[CityFans], band_id: str, delta: CityFansDelta, now: float
) -> CityFans:
    fans = existing or CityFans(
        band_id=band_id,
        city_id=delta.city_id,
        city_name=delta.city_name,
        country=delta.country,
    )
    fans.city_name = delta.city_name or fans.city_name
    fans.country = delta.country or fans.country
    fans.total_fans += delta.fans.total
    fans.casual_fans += delta.fans.casual
    fans.dedicated_fans += delta.fans.dedicated
    fans.superfans += delta.fans.superfans
    if delta.gigs:
        fans.gigs_in_city += delta.gigs
        fans.last_gig_at = now
    if delta.avg_satisfaction is not None:
        fans.avg_satisfaction = delta.avg_satisfaction
    if delta.city_fame is not None:
        fans.city_fame = delta.city_fame
    return fans


def apply_country_fans_delta(
    existing: Optional[CountryFans], band_id: str, delta: CountryFansDelta, now: float
) -> CountryFans:
    fans = existing or CountryFans(band_id=band_id, country=delta.country)
    fans.total_fans += delta.fans.total
    fans.casual_fans += delta.fans.casual
    fans.dedicated_fans += delta.fans.dedicated
    fans.superfans += delta.fans.superfans
    fans.fame += delta.fame
    fans.last_activity_at = now
    return fans
