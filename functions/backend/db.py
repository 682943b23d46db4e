"""
Database abstraction for Postgres and an in-memory test implementation.

Both clients persist the record dataclasses from ``shared.types``. Composite
writes (settlements, contract activation, payouts, law changes) run inside a
single transaction so a failure leaves no partial state behind.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import time
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Type, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.errors import ConflictError, NotFoundError
from shared.types import (
    AgeDemographic,
    Band,
    BandEarning,
    BandMember,
    BotAccount,
    BrandContract,
    BrandOffer,
    BrandPartner,
    BrandPayout,
    ChartEntry,
    City,
    CityFans,
    CityLaws,
    ContractHistoryEvent,
    CountryFans,
    CrewMember,
    DemographicFans,
    FameHistory,
    FestivalMerchSales,
    FestivalParticipation,
    FestivalPerformance,
    FestivalReview,
    FestivalSettlement,
    Gig,
    GigOutcome,
    GigSettlement,
    GigStatus,
    InboxMessage,
    JobRecord,
    JobStatus,
    LawChange,
    MerchItem,
    OfferStatus,
    ParticipationStatus,
    Profile,
    SetlistEntry,
    SetlistItem,
    SetlistItemType,
    Song,
    SongPerformance,
    SongRehearsal,
    StageEquipment,
    StageMoment,
    Twaat,
    Venue,
    apply_band_delta,
    apply_city_fans_delta,
    apply_country_fans_delta,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

PRIMARY_KEYS: Dict[type, Tuple[str, ...]] = {
    Band: ("band_id",),
    BandMember: ("band_id", "user_id"),
    Profile: ("user_id",),
    City: ("city_id",),
    Venue: ("venue_id",),
    Gig: ("gig_id",),
    Song: ("song_id",),
    StageMoment: ("moment_id",),
    SetlistEntry: ("setlist_id", "position"),
    SongRehearsal: ("band_id", "song_id"),
    StageEquipment: ("equipment_id",),
    CrewMember: ("crew_id",),
    MerchItem: ("merch_id",),
    CityFans: ("band_id", "city_id"),
    CountryFans: ("band_id", "country"),
    AgeDemographic: ("demographic_id",),
    DemographicFans: ("band_id", "demographic_id", "city_id"),
    FameHistory: ("history_id",),
    BandEarning: ("earning_id",),
    GigOutcome: ("outcome_id",),
    SongPerformance: ("performance_id",),
    CityLaws: ("city_id",),
    LawChange: ("change_id",),
    FestivalParticipation: ("participation_id",),
    FestivalPerformance: ("performance_id",),
    FestivalReview: ("review_id",),
    FestivalMerchSales: ("sales_id",),
    InboxMessage: ("message_id",),
    BrandPartner: ("brand_id",),
    BrandOffer: ("offer_id",),
    BrandContract: ("contract_id",),
    BrandPayout: ("payout_id",),
    ContractHistoryEvent: ("event_id",),
    BotAccount: ("bot_id",),
    ChartEntry: ("song_id",),
    Twaat: ("twaat_id",),
    JobRecord: ("job_id",),
}


def _key(record: Any) -> Tuple[Any, ...]:
    return tuple(getattr(record, name) for name in PRIMARY_KEYS[type(record)])


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _values(record: Any) -> Dict[str, Any]:
    return {f.name: _plain(getattr(record, f.name)) for f in dataclasses.fields(record)}


class DbClient(Protocol):
    """Interface for database access."""

    def save(self, record: Any) -> None:
        ...

    # Gigs and bands
    def get_band(self, band_id: str) -> Optional[Band]:
        ...

    def list_bands_by_fame(self, min_fame: int, limit: int) -> List[Band]:
        ...

    def list_band_members(self, band_id: str) -> List[BandMember]:
        ...

    def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    def get_gig(self, gig_id: str) -> Optional[Gig]:
        ...

    def list_recent_completed_gigs(self, since: float, limit: int = 10) -> List[Gig]:
        ...

    def get_venue(self, venue_id: str) -> Optional[Venue]:
        ...

    def get_city(self, city_id: str) -> Optional[City]:
        ...

    def list_cities_in_country(self, country: str) -> List[City]:
        ...

    def list_setlist_items(self, setlist_id: str) -> List[SetlistItem]:
        ...

    def get_rehearsal_levels(self, band_id: str) -> Dict[str, int]:
        ...

    def list_stage_equipment(self, band_id: str) -> List[StageEquipment]:
        ...

    def list_crew(self, band_id: str) -> List[CrewMember]:
        ...

    def list_merch(self, band_id: str) -> List[MerchItem]:
        ...

    def get_city_fans(self, band_id: str, city_id: str) -> Optional[CityFans]:
        ...

    def get_country_fans(self, band_id: str, country: str) -> Optional[CountryFans]:
        ...

    def list_demographic_fans(self, band_id: str) -> List[DemographicFans]:
        ...

    def list_age_demographics(self) -> List[AgeDemographic]:
        ...

    def list_fame_history(self, band_id: str) -> List[FameHistory]:
        ...

    def list_band_earnings(self, band_id: str) -> List[BandEarning]:
        ...

    def get_gig_outcome(self, gig_id: str) -> Optional[GigOutcome]:
        ...

    def list_song_performances(self, outcome_id: str) -> List[SongPerformance]:
        ...

    def apply_gig_settlement(self, settlement: GigSettlement) -> None:
        ...

    # Festivals
    def get_festival_participation(
        self, participation_id: str
    ) -> Optional[FestivalParticipation]:
        ...

    def get_festival_performance(
        self, participation_id: str
    ) -> Optional[FestivalPerformance]:
        ...

    def list_festival_reviews(self, performance_id: str) -> List[FestivalReview]:
        ...

    def list_inbox(self, user_id: str) -> List[InboxMessage]:
        ...

    def apply_festival_settlement(self, settlement: FestivalSettlement) -> None:
        ...

    # City governance
    def get_city_laws(self, city_id: str) -> Optional[CityLaws]:
        ...

    def list_law_history(self, city_id: str, limit: int = 50) -> List[LawChange]:
        ...

    def save_city_laws(self, laws: CityLaws, changes: Sequence[LawChange]) -> None:
        ...

    # Sponsorships
    def list_brand_partners(self) -> List[BrandPartner]:
        ...

    def get_offer(self, offer_id: str) -> Optional[BrandOffer]:
        ...

    def list_offers(
        self, band_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[BrandOffer]:
        ...

    def get_contract(self, contract_id: str) -> Optional[BrandContract]:
        ...

    def list_contracts(
        self, band_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[BrandContract]:
        ...

    def list_payouts(self, contract_id: str) -> List[BrandPayout]:
        ...

    def list_contract_history(self, contract_id: str) -> List[ContractHistoryEvent]:
        ...

    def activate_contract(
        self, contract: BrandContract, history: ContractHistoryEvent
    ) -> None:
        ...

    def record_payout(
        self,
        payout: BrandPayout,
        history: Optional[ContractHistoryEvent] = None,
        contract: Optional[BrandContract] = None,
    ) -> None:
        ...

    # Social
    def list_active_bots(self) -> List[BotAccount]:
        ...

    def list_chart_entries(self, limit: int = 10) -> List[ChartEntry]:
        ...

    def list_twaats(self, account_id: Optional[str] = None) -> List[Twaat]:
        ...

    def count_band_twaats_since(self, band_id: str, since: float) -> int:
        ...

    # Jobs
    def create_job(self, job_type: str, payload: Optional[dict] = None) -> JobRecord:
        ...

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        ...

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        ...

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        ...

    def update_job_progress(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        result: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> None:
        ...

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        ...


# --- Composite writes ---------------------------------------------------------
#
# Written once against a small transaction interface (get/put) so both clients
# apply settlements identically.


class _Tx(Protocol):
    def get(self, record_type: Type[R], *key: Any, lock: bool = False) -> Optional[R]:
        ...

    def put(self, record: Any) -> None:
        ...


def _apply_gig_settlement(tx: _Tx, settlement: GigSettlement) -> None:
    gig = tx.get(Gig, settlement.gig_id, lock=True)
    if gig is None:
        raise NotFoundError(f"Gig {settlement.gig_id} not found")
    if gig.status == GigStatus.COMPLETED:
        raise ConflictError(f"Gig {settlement.gig_id} is already completed")
    band = tx.get(Band, settlement.band_id, lock=True)
    if band is None:
        raise NotFoundError(f"Band {settlement.band_id} not found")

    now = settlement.completed_at
    gig.status = GigStatus.COMPLETED
    gig.completed_at = now
    tx.put(gig)
    tx.put(settlement.outcome)
    for performance in settlement.performances:
        tx.put(performance)

    tx.put(apply_band_delta(band, settlement.band_delta))

    for user_id, fame in settlement.member_fame.items():
        profile = tx.get(Profile, user_id, lock=True)
        if profile is None:
            continue
        profile.fame += fame
        tx.put(profile)

    for delta in [settlement.city_fans, *settlement.spillover]:
        if delta is None:
            continue
        existing = tx.get(CityFans, settlement.band_id, delta.city_id, lock=True)
        tx.put(apply_city_fans_delta(existing, settlement.band_id, delta, now))

    if settlement.country_fans is not None:
        delta = settlement.country_fans
        existing = tx.get(CountryFans, settlement.band_id, delta.country, lock=True)
        tx.put(apply_country_fans_delta(existing, settlement.band_id, delta, now))

    for demo in settlement.demographic_fans:
        existing = tx.get(
            DemographicFans, demo.band_id, demo.demographic_id, demo.city_id, lock=True
        )
        if existing is not None:
            existing.fan_count += demo.fan_count
            existing.engagement_rate = demo.engagement_rate
            tx.put(existing)
        else:
            tx.put(demo)

    tx.put(settlement.earning)
    tx.put(settlement.fame_history)


def _apply_festival_settlement(tx: _Tx, settlement: FestivalSettlement) -> None:
    participation = tx.get(FestivalParticipation, settlement.participation_id, lock=True)
    if participation is None:
        raise NotFoundError(f"Participation {settlement.participation_id} not found")
    if participation.status == ParticipationStatus.PERFORMED:
        raise ConflictError(
            f"Participation {settlement.participation_id} has already performed"
        )
    band = tx.get(Band, settlement.band_id, lock=True)
    if band is None:
        raise NotFoundError(f"Band {settlement.band_id} not found")

    participation.status = ParticipationStatus.PERFORMED
    tx.put(participation)
    tx.put(settlement.performance)
    for review in settlement.reviews:
        tx.put(review)
    tx.put(settlement.merch_sales)
    tx.put(apply_band_delta(band, settlement.band_delta))
    tx.put(settlement.inbox_message)


def _activate_contract(
    tx: _Tx, contract: BrandContract, history: ContractHistoryEvent
) -> None:
    offer = tx.get(BrandOffer, contract.offer_id, lock=True)
    if offer is None:
        raise NotFoundError(f"Offer {contract.offer_id} not found")
    if offer.status != OfferStatus.PENDING:
        raise ConflictError(f"Offer {contract.offer_id} is no longer pending")
    offer.status = OfferStatus.ACCEPTED
    tx.put(offer)
    tx.put(contract)
    tx.put(history)


def _record_payout(
    tx: _Tx,
    payout: BrandPayout,
    history: Optional[ContractHistoryEvent],
    contract: Optional[BrandContract],
) -> None:
    band = None
    if payout.total:
        band = tx.get(Band, payout.band_id, lock=True)
        if band is None:
            raise NotFoundError(f"Band {payout.band_id} not found")
    tx.put(payout)
    if contract is not None:
        tx.put(contract)
    if history is not None:
        tx.put(history)
    if band is not None:
        band.band_balance += payout.total
        tx.put(band)


def _save_city_laws(tx: _Tx, laws: CityLaws, changes: Sequence[LawChange]) -> None:
    tx.put(laws)
    for change in changes:
        tx.put(change)


def _join_setlist(
    entries: Iterable[SetlistEntry],
    songs: Dict[str, Song],
    moments: Dict[str, StageMoment],
) -> List[SetlistItem]:
    items: List[SetlistItem] = []
    for entry in sorted(entries, key=lambda e: e.position):
        if entry.item_type == SetlistItemType.STAGE_MOMENT:
            moment = moments.get(entry.moment_id or "")
            if moment is None:
                logger.warning(
                    "Setlist %s position %d references missing stage moment %s",
                    entry.setlist_id,
                    entry.position,
                    entry.moment_id,
                )
                continue
            items.append(
                SetlistItem(
                    position=entry.position,
                    item_type=SetlistItemType.STAGE_MOMENT,
                    title=moment.name,
                    moment_id=moment.moment_id,
                    crowd_appeal=moment.crowd_appeal,
                    min_skill_level=moment.min_skill_level,
                    energy_level=entry.energy_level,
                    is_encore=entry.is_encore,
                )
            )
            continue
        song = songs.get(entry.song_id or "")
        if song is None:
            logger.warning(
                "Setlist %s position %d references missing song %s",
                entry.setlist_id,
                entry.position,
                entry.song_id,
            )
            continue
        items.append(
            SetlistItem(
                position=entry.position,
                item_type=SetlistItemType.SONG,
                title=song.title,
                song_id=song.song_id,
                genre=song.genre,
                quality_score=song.quality_score,
                energy_level=entry.energy_level,
                is_encore=entry.is_encore,
            )
        )
    return items


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.tables: Dict[type, Dict[Tuple[Any, ...], Any]] = {
            record_type: {} for record_type in PRIMARY_KEYS
        }
        self.locked: set[str] = set()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for table in self.tables.values():
            table.clear()
        self.locked.clear()

    # Generic access

    def save(self, record: Any) -> None:
        self.tables[type(record)][_key(record)] = copy.deepcopy(record)

    def _get(self, record_type: Type[R], *key: Any) -> Optional[R]:
        record = self.tables[record_type].get(tuple(key))
        return copy.deepcopy(record) if record is not None else None

    def _select(self, record_type: Type[R], **where: Any) -> List[R]:
        return [
            copy.deepcopy(record)
            for record in self.tables[record_type].values()
            if all(getattr(record, name) == value for name, value in where.items())
        ]

    def get(self, record_type: Type[R], *key: Any, lock: bool = False) -> Optional[R]:
        return self._get(record_type, *key)

    put = save

    # Gigs and bands

    def get_band(self, band_id: str) -> Optional[Band]:
        return self._get(Band, band_id)

    def list_bands_by_fame(self, min_fame: int, limit: int) -> List[Band]:
        bands = [b for b in self._select(Band) if b.fame >= min_fame]
        bands.sort(key=lambda b: b.fame, reverse=True)
        return bands[:limit]

    def list_band_members(self, band_id: str) -> List[BandMember]:
        return self._select(BandMember, band_id=band_id)

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._get(Profile, user_id)

    def get_gig(self, gig_id: str) -> Optional[Gig]:
        return self._get(Gig, gig_id)

    def list_recent_completed_gigs(self, since: float, limit: int = 10) -> List[Gig]:
        gigs = [
            g
            for g in self._select(Gig, status=GigStatus.COMPLETED)
            if g.completed_at is not None and g.completed_at >= since
        ]
        gigs.sort(key=lambda g: g.completed_at, reverse=True)
        return gigs[:limit]

    def get_venue(self, venue_id: str) -> Optional[Venue]:
        return self._get(Venue, venue_id)

    def get_city(self, city_id: str) -> Optional[City]:
        return self._get(City, city_id)

    def list_cities_in_country(self, country: str) -> List[City]:
        return sorted(self._select(City, country=country), key=lambda c: c.city_id)

    def list_setlist_items(self, setlist_id: str) -> List[SetlistItem]:
        entries = self._select(SetlistEntry, setlist_id=setlist_id)
        songs = {s.song_id: s for s in self._select(Song)}
        moments = {m.moment_id: m for m in self._select(StageMoment)}
        return _join_setlist(entries, songs, moments)

    def get_rehearsal_levels(self, band_id: str) -> Dict[str, int]:
        return {
            r.song_id: r.rehearsal_level
            for r in self._select(SongRehearsal, band_id=band_id)
        }

    def list_stage_equipment(self, band_id: str) -> List[StageEquipment]:
        return self._select(StageEquipment, band_id=band_id)

    def list_crew(self, band_id: str) -> List[CrewMember]:
        return self._select(CrewMember, band_id=band_id)

    def list_merch(self, band_id: str) -> List[MerchItem]:
        return self._select(MerchItem, band_id=band_id)

    def get_city_fans(self, band_id: str, city_id: str) -> Optional[CityFans]:
        return self._get(CityFans, band_id, city_id)

    def get_country_fans(self, band_id: str, country: str) -> Optional[CountryFans]:
        return self._get(CountryFans, band_id, country)

    def list_demographic_fans(self, band_id: str) -> List[DemographicFans]:
        return self._select(DemographicFans, band_id=band_id)

    def list_age_demographics(self) -> List[AgeDemographic]:
        return sorted(self._select(AgeDemographic), key=lambda d: d.demographic_id)

    def list_fame_history(self, band_id: str) -> List[FameHistory]:
        return sorted(
            self._select(FameHistory, band_id=band_id), key=lambda h: h.created_at
        )

    def list_band_earnings(self, band_id: str) -> List[BandEarning]:
        return sorted(
            self._select(BandEarning, band_id=band_id), key=lambda e: e.created_at
        )

    def get_gig_outcome(self, gig_id: str) -> Optional[GigOutcome]:
        outcomes = self._select(GigOutcome, gig_id=gig_id)
        return outcomes[0] if outcomes else None

    def list_song_performances(self, outcome_id: str) -> List[SongPerformance]:
        return sorted(
            self._select(SongPerformance, outcome_id=outcome_id),
            key=lambda p: p.position,
        )

    def apply_gig_settlement(self, settlement: GigSettlement) -> None:
        _apply_gig_settlement(self, settlement)

    # Festivals

    def get_festival_participation(
        self, participation_id: str
    ) -> Optional[FestivalParticipation]:
        return self._get(FestivalParticipation, participation_id)

    def get_festival_performance(
        self, participation_id: str
    ) -> Optional[FestivalPerformance]:
        found = self._select(FestivalPerformance, participation_id=participation_id)
        return found[0] if found else None

    def list_festival_reviews(self, performance_id: str) -> List[FestivalReview]:
        return self._select(FestivalReview, performance_id=performance_id)

    def list_inbox(self, user_id: str) -> List[InboxMessage]:
        return sorted(
            self._select(InboxMessage, user_id=user_id), key=lambda m: m.created_at
        )

    def apply_festival_settlement(self, settlement: FestivalSettlement) -> None:
        _apply_festival_settlement(self, settlement)

    # City governance

    def get_city_laws(self, city_id: str) -> Optional[CityLaws]:
        return self._get(CityLaws, city_id)

    def list_law_history(self, city_id: str, limit: int = 50) -> List[LawChange]:
        changes = self._select(LawChange, city_id=city_id)
        changes.sort(key=lambda c: c.created_at, reverse=True)
        return changes[:limit]

    def save_city_laws(self, laws: CityLaws, changes: Sequence[LawChange]) -> None:
        _save_city_laws(self, laws, changes)

    # Sponsorships

    def list_brand_partners(self) -> List[BrandPartner]:
        return sorted(self._select(BrandPartner), key=lambda p: p.brand_id)

    def get_offer(self, offer_id: str) -> Optional[BrandOffer]:
        return self._get(BrandOffer, offer_id)

    def list_offers(
        self, band_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[BrandOffer]:
        where = {}
        if band_id is not None:
            where["band_id"] = band_id
        if status is not None:
            where["status"] = status
        return sorted(self._select(BrandOffer, **where), key=lambda o: o.created_at)

    def get_contract(self, contract_id: str) -> Optional[BrandContract]:
        return self._get(BrandContract, contract_id)

    def list_contracts(
        self, band_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[BrandContract]:
        where = {}
        if band_id is not None:
            where["band_id"] = band_id
        if status is not None:
            where["status"] = status
        return sorted(
            self._select(BrandContract, **where), key=lambda c: c.start_date
        )

    def list_payouts(self, contract_id: str) -> List[BrandPayout]:
        return sorted(
            self._select(BrandPayout, contract_id=contract_id),
            key=lambda p: p.created_at,
        )

    def list_contract_history(self, contract_id: str) -> List[ContractHistoryEvent]:
        return sorted(
            self._select(ContractHistoryEvent, contract_id=contract_id),
            key=lambda e: e.created_at,
        )

    def activate_contract(
        self, contract: BrandContract, history: ContractHistoryEvent
    ) -> None:
        _activate_contract(self, contract, history)

    def record_payout(
        self,
        payout: BrandPayout,
        history: Optional[ContractHistoryEvent] = None,
        contract: Optional[BrandContract] = None,
    ) -> None:
        _record_payout(self, payout, history, contract)

    # Social

    def list_active_bots(self) -> List[BotAccount]:
        return sorted(self._select(BotAccount, is_active=True), key=lambda b: b.bot_id)

    def list_chart_entries(self, limit: int = 10) -> List[ChartEntry]:
        return sorted(self._select(ChartEntry), key=lambda c: c.rank)[:limit]

    def list_twaats(self, account_id: Optional[str] = None) -> List[Twaat]:
        where = {"account_id": account_id} if account_id is not None else {}
        return sorted(self._select(Twaat, **where), key=lambda t: t.created_at)

    def count_band_twaats_since(self, band_id: str, since: float) -> int:
        return sum(
            1
            for t in self._select(Twaat, linked_band_id=band_id)
            if t.created_at >= since
        )

    # Jobs

    def create_job(self, job_type: str, payload: Optional[dict] = None) -> JobRecord:
        record = JobRecord(
            job_id=uuid.uuid4().hex,
            job_type=_plain(job_type),
            status=JobStatus.WAITING,
            payload=dict(payload or {}),
        )
        self.save(record)
        return copy.deepcopy(record)

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        return self._get(JobRecord, job_id)

    def _claim(self, job: JobRecord) -> JobRecord:
        job.status = JobStatus.RUNNING
        job.stage = "CLAIMED"
        job.locked_at = time.time()
        job.updated_at = job.locked_at
        self.locked.add(job.job_id)
        self.save(job)
        return copy.deepcopy(job)

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        job = self.tables[JobRecord].get((job_id,))
        if job is None or job.status != JobStatus.WAITING or job_id in self.locked:
            return None
        return self._claim(copy.deepcopy(job))

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        waiting = sorted(
            self._select(JobRecord, status=JobStatus.WAITING),
            key=lambda j: j.created_at,
        )
        for job in waiting:
            if job.job_id not in self.locked:
                return self._claim(job)
        return None

    def update_job_progress(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        result: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> None:
        job = self.tables[JobRecord].get((job_id,))
        if not job:
            return
        if status:
            job.status = status
        if stage:
            job.stage = stage
        if progress_percent is not None:
            job.progress_percent = progress_percent
        if result is not None:
            job.result = result
        if error is not None:
            job.error = error
        job.updated_at = time.time()

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        now = time.time()
        requeued = 0
        for job in self.tables[JobRecord].values():
            if (
                job.status == JobStatus.RUNNING
                and job.stage == "CLAIMED"
                and job.locked_at
                and now - job.locked_at > lock_timeout_seconds
            ):
                job.status = JobStatus.WAITING
                job.stage = "WAITING"
                job.progress_percent = 0.0
                job.locked_at = None
                job.updated_at = now
                self.locked.discard(job.job_id)
                requeued += 1
        return requeued


class _SessionTx:
    """Adapts an open session to the get/put interface used by composite writes."""

    def __init__(self, client: "PostgresDbClient", session: Session):
        self.client = client
        self.session = session

    def get(self, record_type: Type[R], *key: Any, lock: bool = False) -> Optional[R]:
        row = self.session.get(
            ROW_TYPES[record_type],
            key[0] if len(key) == 1 else tuple(key),
            with_for_update=lock or None,
        )
        return self.client._to_record(row, record_type) if row is not None else None

    def put(self, record: Any) -> None:
        self.session.merge(ROW_TYPES[type(record)](**_values(record)))


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Generic access

    def _to_record(self, row: Any, record_type: Type[R]) -> R:
        return record_type(
            **{f.name: getattr(row, f.name) for f in dataclasses.fields(record_type)}
        )

    def _transaction(self, apply, *args) -> None:
        with self.Session() as session:
            apply(_SessionTx(self, session), *args)
            session.commit()

    def save(self, record: Any) -> None:
        with self.Session() as session:
            session.merge(ROW_TYPES[type(record)](**_values(record)))
            session.commit()

    def _get(self, record_type: Type[R], *key: Any) -> Optional[R]:
        with self.Session() as session:
            return _SessionTx(self, session).get(record_type, *key)

    def _select(
        self,
        record_type: Type[R],
        *clauses: Any,
        order_by: Any = None,
        limit: Optional[int] = None,
        **where: Any,
    ) -> List[R]:
        row_type = ROW_TYPES[record_type]
        stmt = select(row_type).filter_by(**where)
        if clauses:
            stmt = stmt.where(*clauses)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.Session() as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row, record_type) for row in rows]

    # Gigs and bands

    def get_band(self, band_id: str) -> Optional[Band]:
        return self._get(Band, band_id)

    def list_bands_by_fame(self, min_fame: int, limit: int) -> List[Band]:
        return self._select(
            Band, BandRow.fame >= min_fame, order_by=BandRow.fame.desc(), limit=limit
        )

    def list_band_members(self, band_id: str) -> List[BandMember]:
        return self._select(BandMember, band_id=band_id)

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._get(Profile, user_id)

    def get_gig(self, gig_id: str) -> Optional[Gig]:
        return self._get(Gig, gig_id)

    def list_recent_completed_gigs(self, since: float, limit: int = 10) -> List[Gig]:
        return self._select(
            Gig,
            GigRow.completed_at >= since,
            status=GigStatus.COMPLETED.value,
            order_by=GigRow.completed_at.desc(),
            limit=limit,
        )

    def get_venue(self, venue_id: str) -> Optional[Venue]:
        return self._get(Venue, venue_id)

    def get_city(self, city_id: str) -> Optional[City]:
        return self._get(City, city_id)

    def list_cities_in_country(self, country: str) -> List[City]:
        return self._select(City, country=country, order_by=CityRow.city_id)

    def list_setlist_items(self, setlist_id: str) -> List[SetlistItem]:
        entries = self._select(SetlistEntry, setlist_id=setlist_id)
        song_ids = [e.song_id for e in entries if e.song_id]
        moment_ids = [e.moment_id for e in entries if e.moment_id]
        songs = {
            s.song_id: s for s in self._select(Song, SongRow.song_id.in_(song_ids))
        }
        moments = {
            m.moment_id: m
            for m in self._select(StageMoment, StageMomentRow.moment_id.in_(moment_ids))
        }
        return _join_setlist(entries, songs, moments)

    def get_rehearsal_levels(self, band_id: str) -> Dict[str, int]:
        return {
            r.song_id: r.rehearsal_level
            for r in self._select(SongRehearsal, band_id=band_id)
        }

    def list_stage_equipment(self, band_id: str) -> List[StageEquipment]:
        return self._select(StageEquipment, band_id=band_id)

    def list_crew(self, band_id: str) -> List[CrewMember]:
        return self._select(CrewMember, band_id=band_id)

    def list_merch(self, band_id: str) -> List[MerchItem]:
        return self._select(MerchItem, band_id=band_id)

    def get_city_fans(self, band_id: str, city_id: str) -> Optional[CityFans]:
        return self._get(CityFans, band_id, city_id)

    def get_country_fans(self, band_id: str, country: str) -> Optional[CountryFans]:
        return self._get(CountryFans, band_id, country)

    def list_demographic_fans(self, band_id: str) -> List[DemographicFans]:
        return self._select(DemographicFans, band_id=band_id)

    def list_age_demographics(self) -> List[AgeDemographic]:
        return self._select(AgeDemographic, order_by=AgeDemographicRow.demographic_id)

    def list_fame_history(self, band_id: str) -> List[FameHistory]:
        return self._select(
            FameHistory, band_id=band_id, order_by=FameHistoryRow.created_at
        )

    def list_band_earnings(self, band_id: str) -> List[BandEarning]:
        return self._select(
            BandEarning, band_id=band_id, order_by=BandEarningRow.created_at
        )

    def get_gig_outcome(self, gig_id: str) -> Optional[GigOutcome]:
        found = self._select(GigOutcome, gig_id=gig_id, limit=1)
        return found[0] if found else None

    def list_song_performances(self, outcome_id: str) -> List[SongPerformance]:
        return self._select(
            SongPerformance,
            outcome_id=outcome_id,
            order_by=SongPerformanceRow.position,
        )

    def apply_gig_settlement(self, settlement: GigSettlement) -> None:
        self._transaction(_apply_gig_settlement, settlement)

    # Festivals

    def get_festival_participation(
        self, participation_id: str
    ) -> Optional[FestivalParticipation]:
        return self._get(FestivalParticipation, participation_id)

    def get_festival_performance(
        self, participation_id: str
    ) -> Optional[FestivalPerformance]:
        found = self._select(
            FestivalPerformance, participation_id=participation_id, limit=1
        )
        return found[0] if found else None

    def list_festival_reviews(self, performance_id: str) -> List[FestivalReview]:
        return self._select(FestivalReview, performance_id=performance_id)

    def list_inbox(self, user_id: str) -> List[InboxMessage]:
        return self._select(
            InboxMessage, user_id=user_id, order_by=InboxMessageRow.created_at
        )

    def apply_festival_settlement(self, settlement: FestivalSettlement) -> None:
        self._transaction(_apply_festival_settlement, settlement)

    # City governance

    def get_city_laws(self, city_id: str) -> Optional[CityLaws]:
        return self._get(CityLaws, city_id)

    def list_law_history(self, city_id: str, limit: int = 50) -> List[LawChange]:
        return self._select(
            LawChange,
            city_id=city_id,
            order_by=LawChangeRow.created_at.desc(),
            limit=limit,
        )

    def save_city_laws(self, laws: CityLaws, changes: Sequence[LawChange]) -> None:
        self._transaction(_save_city_laws, laws, changes)

    # Sponsorships

    def list_brand_partners(self) -> List[BrandPartner]:
        return self._select(BrandPartner, order_by=BrandPartnerRow.brand_id)

    def get_offer(self, offer_id: str) -> Optional[BrandOffer]:
        return self._get(BrandOffer, offer_id)

    def list_offers(
        self, band_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[BrandOffer]:
        where = {}
        if band_id is not None:
            where["band_id"] = band_id
        if status is not None:
            where["status"] = _plain(status)
        return self._select(BrandOffer, order_by=BrandOfferRow.created_at, **where)

    def get_contract(self, contract_id: str) -> Optional[BrandContract]:
        return self._get(BrandContract, contract_id)

    def list_contracts(
        self, band_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[BrandContract]:
        where = {}
        if band_id is not None:
            where["band_id"] = band_id
        if status is not None:
            where["status"] = _plain(status)
        return self._select(
            BrandContract, order_by=BrandContractRow.start_date, **where
        )

    def list_payouts(self, contract_id: str) -> List[BrandPayout]:
        return self._select(
            BrandPayout, contract_id=contract_id, order_by=BrandPayoutRow.created_at
        )

    def list_contract_history(self, contract_id: str) -> List[ContractHistoryEvent]:
        return self._select(
            ContractHistoryEvent,
            contract_id=contract_id,
            order_by=ContractHistoryRow.created_at,
        )

    def activate_contract(
        self, contract: BrandContract, history: ContractHistoryEvent
    ) -> None:
        self._transaction(_activate_contract, contract, history)

    def record_payout(
        self,
        payout: BrandPayout,
        history: Optional[ContractHistoryEvent] = None,
        contract: Optional[BrandContract] = None,
    ) -> None:
        self._transaction(_record_payout, payout, history, contract)

    # Social

    def list_active_bots(self) -> List[BotAccount]:
        return self._select(BotAccount, is_active=True, order_by=BotAccountRow.bot_id)

    def list_chart_entries(self, limit: int = 10) -> List[ChartEntry]:
        return self._select(ChartEntry, order_by=ChartEntryRow.rank, limit=limit)

    def list_twaats(self, account_id: Optional[str] = None) -> List[Twaat]:
        where = {"account_id": account_id} if account_id is not None else {}
        return self._select(Twaat, order_by=TwaatRow.created_at, **where)

    def count_band_twaats_since(self, band_id: str, since: float) -> int:
        stmt = select(func.count()).select_from(TwaatRow).where(
            TwaatRow.linked_band_id == band_id, TwaatRow.created_at >= since
        )
        with self.Session() as session:
            return session.execute(stmt).scalar_one()

    # Jobs

    def create_job(self, job_type: str, payload: Optional[dict] = None) -> JobRecord:
        record = JobRecord(
            job_id=uuid.uuid4().hex,
            job_type=_plain(job_type),
            status=JobStatus.WAITING,
            payload=dict(payload or {}),
        )
        self.save(record)
        return record

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        job = self._get(JobRecord, job_id)
        if job is not None:
            job.status = JobStatus(job.status)
        return job

    def _claim_row(self, session: Session, job: "JobRow") -> JobRecord:
        now = time.time()
        job.status = JobStatus.RUNNING.value
        job.stage = "CLAIMED"
        job.locked_at = now
        job.updated_at = now
        session.commit()
        session.refresh(job)
        record = self._to_record(job, JobRecord)
        record.status = JobStatus(record.status)
        return record

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        with self.Session() as session:
            stmt = (
                select(JobRow)
                .where(
                    JobRow.job_id == job_id,
                    JobRow.status == JobStatus.WAITING.value,
                )
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            return self._claim_row(session, job)

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        with self.Session() as session:
            stmt = (
                select(JobRow)
                .where(JobRow.status == JobStatus.WAITING.value)
                .order_by(JobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            return self._claim_row(session, job)

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            updated = (
                session.query(JobRow)
                .filter(
                    JobRow.status == JobStatus.RUNNING.value,
                    JobRow.stage == "CLAIMED",
                    JobRow.locked_at != None,
                    JobRow.locked_at < cutoff,
                )
                .update(
                    {
                        JobRow.status: JobStatus.WAITING.value,
                        JobRow.stage: "WAITING",
                        JobRow.progress_percent: 0.0,
                        JobRow.locked_at: None,
                        JobRow.updated_at: time.time(),
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated or 0

    def update_job_progress(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        result: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> None:
        with self.Session() as session:
            job = session.get(JobRow, job_id)
            if not job:
                return
            if status:
                job.status = status.value
            if stage:
                job.stage = stage
            if progress_percent is not None:
                job.progress_percent = progress_percent
            if result is not None:
                job.result = result
            if error is not None:
                job.error = error
            job.updated_at = time.time()
            session.commit()


Base = declarative_base()


class BandRow(Base):
    __tablename__ = "bands"

    band_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    genre = Column(String, nullable=True)
    fame = Column(Integer, nullable=False, default=0, index=True)
    global_fame = Column(Integer, nullable=False, default=0)
    chemistry_level = Column(Integer, nullable=False, default=0)
    performance_count = Column(Integer, nullable=False, default=0)
    band_balance = Column(Integer, nullable=False, default=0)
    total_fans = Column(Integer, nullable=False, default=0)
    casual_fans = Column(Integer, nullable=False, default=0)
    dedicated_fans = Column(Integer, nullable=False, default=0)
    superfans = Column(Integer, nullable=False, default=0)


class BandMemberRow(Base):
    __tablename__ = "band_members"

    band_id = Column(String, primary_key=True)
    user_id = Column(String, primary_key=True)
    instrument_role = Column(String, nullable=False)
    skill_level = Column(Integer, nullable=False, default=0)
    gear_bonus = Column(Float, nullable=False, default=0.0)
    stage_presence = Column(Integer, nullable=False, default=5)
    charisma = Column(Integer, nullable=False, default=5)
    is_touring_member = Column(Boolean, nullable=False, default=False)


class ProfileRow(Base):
    __tablename__ = "profiles"

    user_id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False, default="")
    fame = Column(Integer, nullable=False, default=0)


class CityRow(Base):
    __tablename__ = "cities"

    city_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    country = Column(String, nullable=False, index=True)
    mayor_user_id = Column(String, nullable=True)


class VenueRow(Base):
    __tablename__ = "venues"

    venue_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False)
    city_id = Column(String, nullable=True)


class GigRow(Base):
    __tablename__ = "gigs"

    gig_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    venue_id = Column(String, nullable=False)
    setlist_id = Column(String, nullable=False)
    ticket_price = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, index=True)
    scheduled_at = Column(Float, nullable=False)
    completed_at = Column(Float, nullable=True)


class SongRow(Base):
    __tablename__ = "songs"

    song_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    genre = Column(String, nullable=True)
    quality_score = Column(Integer, nullable=False, default=500)


class StageMomentRow(Base):
    __tablename__ = "stage_moments"

    moment_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    crowd_appeal = Column(Integer, nullable=False, default=50)
    min_skill_level = Column(Integer, nullable=False, default=0)


class SetlistEntryRow(Base):
    __tablename__ = "setlist_entries"

    setlist_id = Column(String, primary_key=True)
    position = Column(Integer, primary_key=True)
    item_type = Column(String, nullable=False)
    song_id = Column(String, nullable=True)
    moment_id = Column(String, nullable=True)
    energy_level = Column(Integer, nullable=False, default=5)
    is_encore = Column(Boolean, nullable=False, default=False)


class SongRehearsalRow(Base):
    __tablename__ = "song_rehearsals"

    band_id = Column(String, primary_key=True)
    song_id = Column(String, primary_key=True)
    rehearsal_level = Column(Integer, nullable=False, default=0)


class StageEquipmentRow(Base):
    __tablename__ = "band_stage_equipment"

    equipment_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    quality_rating = Column(Integer, nullable=False, default=40)
    purchase_cost = Column(Integer, nullable=False, default=0)


class CrewMemberRow(Base):
    __tablename__ = "band_crew_members"

    crew_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    skill_level = Column(Integer, nullable=False, default=40)
    salary_per_gig = Column(Integer, nullable=False, default=0)


class MerchItemRow(Base):
    __tablename__ = "player_merchandise"

    merch_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    item_type = Column(String, nullable=False)
    selling_price = Column(Integer, nullable=False, default=20)
    stock_quantity = Column(Integer, nullable=False, default=0)


class CityFansRow(Base):
    __tablename__ = "band_city_fans"

    band_id = Column(String, primary_key=True)
    city_id = Column(String, primary_key=True)
    city_name = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")
    total_fans = Column(Integer, nullable=False, default=0)
    casual_fans = Column(Integer, nullable=False, default=0)
    dedicated_fans = Column(Integer, nullable=False, default=0)
    superfans = Column(Integer, nullable=False, default=0)
    gigs_in_city = Column(Integer, nullable=False, default=0)
    last_gig_at = Column(Float, nullable=True)
    avg_satisfaction = Column(Float, nullable=False, default=0.0)
    city_fame = Column(Integer, nullable=False, default=0)


class CountryFansRow(Base):
    __tablename__ = "band_country_fans"

    band_id = Column(String, primary_key=True)
    country = Column(String, primary_key=True)
    total_fans = Column(Integer, nullable=False, default=0)
    casual_fans = Column(Integer, nullable=False, default=0)
    dedicated_fans = Column(Integer, nullable=False, default=0)
    superfans = Column(Integer, nullable=False, default=0)
    fame = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(Float, nullable=True)


class AgeDemographicRow(Base):
    __tablename__ = "age_demographics"

    demographic_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    genre_preferences = Column(JSON, nullable=False)


class DemographicFansRow(Base):
    __tablename__ = "band_demographic_fans"

    band_id = Column(String, primary_key=True)
    demographic_id = Column(String, primary_key=True)
    city_id = Column(String, primary_key=True)
    country = Column(String, nullable=False, default="")
    fan_count = Column(Integer, nullable=False, default=0)
    engagement_rate = Column(Float, nullable=False, default=0.0)


class FameHistoryRow(Base):
    __tablename__ = "band_fame_history"

    history_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    fame_value = Column(Integer, nullable=False)
    fame_change = Column(Integer, nullable=False)
    event_type = Column(String, nullable=False)
    scope = Column(String, nullable=False)
    city_id = Column(String, nullable=True)
    country = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class BandEarningRow(Base):
    __tablename__ = "band_earnings"

    earning_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    source = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    details = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)


class GigOutcomeRow(Base):
    __tablename__ = "gig_outcomes"

    outcome_id = Column(String, primary_key=True)
    gig_id = Column(String, nullable=False, unique=True)
    band_id = Column(String, nullable=False, index=True)
    overall_rating = Column(Float, nullable=False)
    performance_grade = Column(String, nullable=False)
    actual_attendance = Column(Integer, nullable=False)
    attendance_percentage = Column(Float, nullable=False)
    ticket_revenue = Column(Integer, nullable=False)
    merch_revenue = Column(Integer, nullable=False)
    merch_items_sold = Column(Integer, nullable=False)
    total_revenue = Column(Integer, nullable=False)
    tax_paid = Column(Integer, nullable=False)
    crew_cost = Column(Integer, nullable=False)
    equipment_cost = Column(Integer, nullable=False)
    total_costs = Column(Integer, nullable=False)
    net_profit = Column(Integer, nullable=False)
    fame_gained = Column(Integer, nullable=False)
    chemistry_change = Column(Integer, nullable=False)
    new_fans = Column(Integer, nullable=False)
    casual_fans_gained = Column(Integer, nullable=False)
    dedicated_fans_gained = Column(Integer, nullable=False)
    superfans_gained = Column(Integer, nullable=False)
    repeat_attendees = Column(Integer, nullable=False)
    conversion_rate = Column(Float, nullable=False)
    country_spillover = Column(Integer, nullable=False)
    equipment_quality_avg = Column(Float, nullable=False)
    crew_skill_avg = Column(Float, nullable=False)
    member_skill_avg = Column(Float, nullable=False)
    stage_skill_avg = Column(Float, nullable=False)
    band_chemistry_level = Column(Integer, nullable=False)
    venue_name = Column(String, nullable=False)
    venue_capacity = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)


class SongPerformanceRow(Base):
    __tablename__ = "gig_song_performances"

    performance_id = Column(String, primary_key=True)
    outcome_id = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False)
    item_type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    performance_score = Column(Float, nullable=False)
    crowd_response = Column(String, nullable=False)
    song_id = Column(String, nullable=True)
    moment_id = Column(String, nullable=True)
    contributions = Column(JSON, nullable=False)
    stage_event = Column(JSON, nullable=True)


class CityLawsRow(Base):
    __tablename__ = "city_laws"

    city_id = Column(String, primary_key=True)
    income_tax_rate = Column(Float, nullable=False)
    sales_tax_rate = Column(Float, nullable=False)
    travel_tax = Column(Integer, nullable=False)
    alcohol_legal_age = Column(Integer, nullable=False)
    drug_policy = Column(String, nullable=False)
    noise_curfew_hour = Column(Integer, nullable=True)
    festival_permit_required = Column(Boolean, nullable=False)
    max_concert_capacity = Column(Integer, nullable=True)
    busking_license_fee = Column(Integer, nullable=False)
    venue_permit_cost = Column(Integer, nullable=False)
    community_events_funding = Column(Integer, nullable=False)
    promoted_genres = Column(JSON, nullable=False)
    prohibited_genres = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class LawChangeRow(Base):
    __tablename__ = "city_law_history"

    change_id = Column(String, primary_key=True)
    city_id = Column(String, nullable=False, index=True)
    law_field = Column(String, nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    changed_by = Column(String, nullable=False)
    reason = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class FestivalParticipationRow(Base):
    __tablename__ = "festival_participants"

    participation_id = Column(String, primary_key=True)
    festival_id = Column(String, nullable=False, index=True)
    band_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    slot_type = Column(String, nullable=False)
    payout_amount = Column(Integer, nullable=True)
    status = Column(String, nullable=False)


class FestivalPerformanceRow(Base):
    __tablename__ = "festival_performance_history"

    performance_id = Column(String, primary_key=True)
    participation_id = Column(String, nullable=False, unique=True)
    band_id = Column(String, nullable=False, index=True)
    festival_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    performance_score = Column(Float, nullable=False)
    crowd_energy_peak = Column(Float, nullable=False)
    crowd_energy_avg = Column(Float, nullable=False)
    songs_performed = Column(Integer, nullable=False)
    payment_earned = Column(Integer, nullable=False)
    fame_earned = Column(Integer, nullable=False)
    merch_revenue = Column(Integer, nullable=False)
    new_fans_gained = Column(Integer, nullable=False)
    critic_score = Column(Integer, nullable=False)
    fan_score = Column(Integer, nullable=False)
    review_headline = Column(String, nullable=False)
    review_summary = Column(String, nullable=False)
    highlight_moments = Column(JSON, nullable=False)
    slot_type = Column(String, nullable=False)
    performed_at = Column(Float, nullable=False)


class FestivalReviewRow(Base):
    __tablename__ = "festival_performance_reviews"

    review_id = Column(String, primary_key=True)
    performance_id = Column(String, nullable=False, index=True)
    band_id = Column(String, nullable=False)
    reviewer_type = Column(String, nullable=False)
    publication_name = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    headline = Column(String, nullable=False)
    review_text = Column(String, nullable=False)
    sentiment = Column(String, nullable=False)
    fame_impact = Column(Integer, nullable=False)
    is_featured = Column(Boolean, nullable=False, default=False)


class FestivalMerchSalesRow(Base):
    __tablename__ = "festival_merch_sales"

    sales_id = Column(String, primary_key=True)
    performance_id = Column(String, nullable=False, index=True)
    band_id = Column(String, nullable=False)
    festival_id = Column(String, nullable=False)
    tshirts_sold = Column(Integer, nullable=False)
    posters_sold = Column(Integer, nullable=False)
    albums_sold = Column(Integer, nullable=False)
    gross_revenue = Column(Integer, nullable=False)
    festival_cut = Column(Integer, nullable=False)
    net_revenue = Column(Integer, nullable=False)


class InboxMessageRow(Base):
    __tablename__ = "player_inbox"

    message_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=False)
    content = Column(String, nullable=False)
    message_type = Column(String, nullable=False)
    priority = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class BrandPartnerRow(Base):
    __tablename__ = "sponsorship_brands"

    brand_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    wealth_tier = Column(String, nullable=False)
    size_index = Column(Integer, nullable=True)
    fame_floor = Column(Integer, nullable=True)
    cooldown_days = Column(Integer, nullable=True)
    focus_slots = Column(JSON, nullable=False)
    exclusivity_categories = Column(JSON, nullable=False)
    base_offer = Column(Integer, nullable=True)


class BrandOfferRow(Base):
    __tablename__ = "sponsorship_offers"

    offer_id = Column(String, primary_key=True)
    band_id = Column(String, nullable=False, index=True)
    brand_id = Column(String, nullable=False)
    cash_offer = Column(Integer, nullable=False)
    expires_at = Column(Float, nullable=False)
    fame_required = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, index=True)
    slot_type = Column(String, nullable=False)
    exclusivity_category = Column(String, nullable=True)
    weighting_score = Column(Float, nullable=False, default=0.0)
    brand_name = Column(String, nullable=False, default="")
    cooldown_days = Column(Integer, nullable=False, default=7)
    created_at = Column(Float, nullable=False)


class BrandContractRow(Base):
    __tablename__ = "sponsorship_contracts"

    contract_id = Column(String, primary_key=True)
    offer_id = Column(String, nullable=False, unique=True)
    band_id = Column(String, nullable=False, index=True)
    brand_id = Column(String, nullable=False)
    start_date = Column(Float, nullable=False)
    end_date = Column(Float, nullable=False)
    base_cash = Column(Integer, nullable=False)
    status = Column(String, nullable=False, index=True)
    slot_type = Column(String, nullable=False)
    exclusivity_category = Column(String, nullable=True)
    termination_reason = Column(String, nullable=True)
    last_weekly_payout_at = Column(Float, nullable=True)
    updated_at = Column(Float, nullable=False)


class BrandPayoutRow(Base):
    __tablename__ = "sponsorship_payouts"

    payout_id = Column(String, primary_key=True)
    contract_id = Column(String, nullable=False, index=True)
    band_id = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    base_amount = Column(Integer, nullable=False, default=0)
    bonus_amount = Column(Integer, nullable=False, default=0)
    fame_delta = Column(Integer, nullable=False, default=0)
    event_reference = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class ContractHistoryRow(Base):
    __tablename__ = "sponsorship_contract_history"

    event_id = Column(String, primary_key=True)
    contract_id = Column(String, nullable=True, index=True)
    event_type = Column(String, nullable=False)
    event_details = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)


class BotAccountRow(Base):
    __tablename__ = "twaater_bot_accounts"

    bot_id = Column(String, primary_key=True)
    account_id = Column(String, nullable=False)
    handle = Column(String, nullable=False)
    bot_type = Column(String, nullable=False)
    personality_traits = Column(JSON, nullable=False)
    posting_frequency = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_posted_at = Column(Float, nullable=True)


class ChartEntryRow(Base):
    __tablename__ = "chart_entries"

    song_id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    band_name = Column(String, nullable=False)
    rank = Column(Integer, nullable=False)
    genre = Column(String, nullable=True)


class TwaatRow(Base):
    __tablename__ = "twaats"

    twaat_id = Column(String, primary_key=True)
    account_id = Column(String, nullable=False, index=True)
    body = Column(String, nullable=False)
    linked_type = Column(String, nullable=True)
    linked_id = Column(String, nullable=True)
    linked_band_id = Column(String, nullable=True, index=True)
    visibility = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class JobRow(Base):
    __tablename__ = "jobs"

    job_id = Column(String, primary_key=True)
    job_type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    stage = Column(String, nullable=False, default="WAITING")
    progress_percent = Column(Float, nullable=False, default=0.0)
    result = Column(JSON, nullable=True)
    error = Column(String, nullable=True)
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


ROW_TYPES: Dict[type, type] = {
    Band: BandRow,
    BandMember: BandMemberRow,
    Profile: ProfileRow,
    City: CityRow,
    Venue: VenueRow,
    Gig: GigRow,
    Song: SongRow,
    StageMoment: StageMomentRow,
    SetlistEntry: SetlistEntryRow,
    SongRehearsal: SongRehearsalRow,
    StageEquipment: StageEquipmentRow,
    CrewMember: CrewMemberRow,
    MerchItem: MerchItemRow,
    CityFans: CityFansRow,
    CountryFans: CountryFansRow,
    AgeDemographic: AgeDemographicRow,
    DemographicFans: DemographicFansRow,
    FameHistory: FameHistoryRow,
    BandEarning: BandEarningRow,
    GigOutcome: GigOutcomeRow,
    SongPerformance: SongPerformanceRow,
    CityLaws: CityLawsRow,
    LawChange: LawChangeRow,
    FestivalParticipation: FestivalParticipationRow,
    FestivalPerformance: FestivalPerformanceRow,
    FestivalReview: FestivalReviewRow,
    FestivalMerchSales: FestivalMerchSalesRow,
    InboxMessage: InboxMessageRow,
    BrandPartner: BrandPartnerRow,
    BrandOffer: BrandOfferRow,
    BrandContract: BrandContractRow,
    BrandPayout: BrandPayoutRow,
    ContractHistoryEvent: ContractHistoryRow,
    BotAccount: BotAccountRow,
    ChartEntry: ChartEntryRow,
    Twaat: TwaatRow,
    JobRecord: JobRow,
}
