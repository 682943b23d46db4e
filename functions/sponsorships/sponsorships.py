"""
Brand sponsorships: offer generation, acceptance, event and weekly payouts,
and contract expiry.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from backend.db import DbClient
from shared.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from shared.types import (
    Band,
    BrandContract,
    BrandOffer,
    BrandPartner,
    BrandPayout,
    ContractHistoryEvent,
    ContractStatus,
    OfferStatus,
    SlotType,
    SponsorEvent,
)

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 3600
WEEK_SECONDS = 7 * DAY_SECONDS

DEFAULT_MIN_FAME = 250
DEFAULT_MAX_PENDING_OFFERS = 5
DEFAULT_CONTRACT_DAYS = 90
MAX_BANDS_PER_RUN = 75
OFFERS_PER_BAND = 3
DEFAULT_BASE_OFFER = 5000
DEFAULT_SIZE_INDEX = 50
DEFAULT_COOLDOWN_DAYS = 7
# Weekly installments are base cash spread over a quarter.
WEEKS_PER_CONTRACT_TERM = 13

TIER_WEIGHTS = {
    "emerging": 0.8,
    "growth": 1.0,
    "established": 1.25,
    "titan": 1.5,
}

EVENT_MULTIPLIERS = {
    SponsorEvent.FESTIVAL: 0.15,
    SponsorEvent.TOUR: 0.12,
    SponsorEvent.VENUE: 0.08,
    SponsorEvent.FAME_GAIN: 0.0,
}

PAYOUT_EVENTS = frozenset(EVENT_MULTIPLIERS)


@dataclass
class WeightedOption:
    partner: BrandPartner
    weight: float


def compute_weight(partner: BrandPartner) -> float:
    base = TIER_WEIGHTS.get(str(partner.wealth_tier), 1.0)
    size_index = DEFAULT_SIZE_INDEX if partner.size_index is None else partner.size_index
    size = max(0, min(200, size_index)) / 100
    return round(base + size, 2)


def compute_cash_offer(partner: BrandPartner, band_fame: int) -> int:
    base_offer = DEFAULT_BASE_OFFER if partner.base_offer is None else partner.base_offer
    size_index = DEFAULT_SIZE_INDEX if partner.size_index is None else partner.size_index
    fame_scalar = 1 + min(2, band_fame / 10000)
    size_scalar = 1 + max(0, size_index / 250)
    return round(base_offer * fame_scalar * size_scalar)


def choose_slot(partner: BrandPartner) -> str:
    allowed = [slot for slot in partner.focus_slots if slot in set(SlotType)]
    return allowed[0] if allowed else SlotType.GENERAL.value


def weighted_sample(
    options: Sequence[WeightedOption], count: int, rng: random.Random
) -> List[WeightedOption]:
    """Draw without replacement, each pick proportional to its weight."""
    pool = list(options)
    selected: List[WeightedOption] = []
    while len(selected) < count and pool:
        target = rng.random() * sum(option.weight for option in pool)
        chosen = len(pool) - 1
        for index, option in enumerate(pool):
            target -= option.weight
            if target <= 0:
                chosen = index
                break
        selected.append(pool.pop(chosen))
    return selected


def _conflicts(
    contracts: Sequence[BrandContract],
    brand_id: str,
    exclusivity: Sequence[Optional[str]],
    slot_type: Optional[str] = None,
) -> bool:
    for contract in contracts:
        if contract.brand_id == brand_id:
            return True
        if contract.exclusivity_category and contract.exclusivity_category in exclusivity:
            return True
        if slot_type and contract.slot_type == slot_type:
            return True
    return False


def _offers_for_band(
    db: DbClient,
    band: Band,
    partners: Sequence[BrandPartner],
    rng: random.Random,
    now: float,
) -> int:
    eligible = [p for p in partners if band.fame >= (p.fame_floor or 0)]
    options = [WeightedOption(p, compute_weight(p)) for p in eligible]
    created = 0
    recent_offers = db.list_offers(band_id=band.band_id)
    for option in weighted_sample(options, min(OFFERS_PER_BAND, len(options)), rng):
        partner = option.partner
        cooldown_days = (
            DEFAULT_COOLDOWN_DAYS if partner.cooldown_days is None else partner.cooldown_days
        )
        cooldown_start = now - cooldown_days * DAY_SECONDS
        if any(
            o.brand_id == partner.brand_id and o.created_at >= cooldown_start
            for o in recent_offers
        ):
            continue

        active = db.list_contracts(band_id=band.band_id, status=ContractStatus.ACTIVE)
        if _conflicts(active, partner.brand_id, partner.exclusivity_categories):
            continue

        offer = BrandOffer(
            band_id=band.band_id,
            brand_id=partner.brand_id,
            cash_offer=compute_cash_offer(partner, band.fame),
            expires_at=now + (cooldown_days + 3) * DAY_SECONDS,
            fame_required=partner.fame_floor or 0,
            slot_type=choose_slot(partner),
            exclusivity_category=(
                partner.exclusivity_categories[0] if partner.exclusivity_categories else None
            ),
            weighting_score=option.weight,
            brand_name=partner.name,
            cooldown_days=cooldown_days,
            created_at=now,
        )
        db.save(offer)
        db.save(
            ContractHistoryEvent(
                event_type="offer_generated",
                event_details={
                    "band_id": band.band_id,
                    "brand_id": partner.brand_id,
                    "offer_id": offer.offer_id,
                    "weighting": option.weight,
                },
                created_at=now,
            )
        )
        recent_offers.append(offer)
        created += 1
    return created


def generate_offers(
    db: DbClient,
    rng: Optional[random.Random] = None,
    now: Optional[float] = None,
    *,
    min_fame: int = DEFAULT_MIN_FAME,
    max_pending_offers: int = DEFAULT_MAX_PENDING_OFFERS,
) -> Dict[str, int]:
    """Create new offers for famous-enough bands. Returns run counters."""
    rng = rng or random.Random()
    now = time.time() if now is None else now

    partners = db.list_brand_partners()
    if not partners:
        logger.info("No brand partners configured")
        return {"offers_created": 0, "bands_processed": 0, "error_count": 0}

    offers_created = 0
    bands_processed = 0
    error_count = 0
    for band in db.list_bands_by_fame(min_fame, MAX_BANDS_PER_RUN):
        bands_processed += 1
        pending = db.list_offers(band_id=band.band_id, status=OfferStatus.PENDING)
        if len(pending) >= max_pending_offers:
            continue
        try:
            offers_created += _offers_for_band(db, band, partners, rng, now)
        except Exception:
            error_count += 1
            logger.exception("[band %s] offer generation failed", band.band_id)

    logger.info(
        "Generated %d sponsorship offers across %d bands (%d errors)",
        offers_created,
        bands_processed,
        error_count,
    )
    return {
        "offers_created": offers_created,
        "bands_processed": bands_processed,
        "error_count": error_count,
    }


def accept_offer(
    db: DbClient,
    offer_id: str,
    band_id: str,
    now: Optional[float] = None,
    *,
    contract_days: int = DEFAULT_CONTRACT_DAYS,
) -> BrandContract:
    now = time.time() if now is None else now
    offer = db.get_offer(offer_id)
    if offer is None:
        raise NotFoundError(f"Offer {offer_id} not found")
    if offer.band_id != band_id:
        raise ForbiddenError("Offer does not belong to band")
    if offer.status != OfferStatus.PENDING:
        raise InvalidStateError("Offer is not pending")
    if offer.expires_at < now:
        offer.status = OfferStatus.EXPIRED
        db.save(offer)
        raise InvalidStateError("Offer already expired")

    active = db.list_contracts(band_id=band_id, status=ContractStatus.ACTIVE)
    if _conflicts(active, offer.brand_id, [offer.exclusivity_category], offer.slot_type):
        raise ConflictError("Conflicting active contract for brand slot or exclusivity")

    contract = BrandContract(
        offer_id=offer.offer_id,
        band_id=band_id,
        brand_id=offer.brand_id,
        start_date=now,
        end_date=now + contract_days * DAY_SECONDS,
        base_cash=offer.cash_offer,
        slot_type=offer.slot_type,
        exclusivity_category=offer.exclusivity_category,
        updated_at=now,
    )
    history = ContractHistoryEvent(
        contract_id=contract.contract_id,
        event_type="activation",
        event_details={
            "offer_id": offer.offer_id,
            "brand_id": offer.brand_id,
            "start_date": contract.start_date,
            "end_date": contract.end_date,
            "slot_type": str(contract.slot_type),
            "exclusivity_category": contract.exclusivity_category,
        },
        created_at=now,
    )
    db.activate_contract(contract, history)
    logger.info(
        "[band %s] accepted offer %s from %s", band_id, offer_id, offer.brand_name
    )
    return contract


def process_event_payouts(
    db: DbClient,
    *,
    band_id: str,
    event_type: str,
    fame_delta: int = 0,
    event_reference: Optional[str] = None,
    now: Optional[float] = None,
) -> List[BrandPayout]:
    """Pay every active contract whose slot covers the event."""
    try:
        event = SponsorEvent(event_type)
    except ValueError:
        raise ValueError(f"Unknown sponsorship event: {event_type!r}") from None
    if event not in PAYOUT_EVENTS:
        raise ValueError(f"{event.value} is not a payout event")

    now = time.time() if now is None else now
    fame_delta = max(0, fame_delta or 0)
    contracts = [
        c
        for c in db.list_contracts(band_id=band_id, status=ContractStatus.ACTIVE)
        if c.slot_type in (SlotType.GENERAL, event.value)
    ]

    payouts: List[BrandPayout] = []
    for contract in contracts:
        base_amount = round(contract.base_cash * EVENT_MULTIPLIERS[event])
        bonus = fame_delta * 1.5 if event == SponsorEvent.FAME_GAIN else fame_delta * 0.4
        payout = BrandPayout(
            contract_id=contract.contract_id,
            band_id=band_id,
            event_type=event.value,
            base_amount=base_amount,
            bonus_amount=round(bonus),
            fame_delta=fame_delta,
            event_reference=event_reference,
            created_at=now,
        )
        history = ContractHistoryEvent(
            contract_id=contract.contract_id,
            event_type="fame_bonus" if event == SponsorEvent.FAME_GAIN else "payout",
            event_details={
                "event_type": event.value,
                "event_reference": event_reference,
                "base_amount": payout.base_amount,
                "bonus_amount": payout.bonus_amount,
                "fame_delta": fame_delta,
            },
            created_at=now,
        )
        db.record_payout(payout, history)
        payouts.append(payout)

    if payouts:
        logger.info(
            "[band %s] %d %s payout(s), total %d",
            band_id,
            len(payouts),
            event.value,
            sum(p.total for p in payouts),
        )
    return payouts


def process_weekly_payouts(db: DbClient, now: Optional[float] = None) -> int:
    """Pay each active contract one installment per full week elapsed."""
    now = time.time() if now is None else now
    paid = 0
    for contract in db.list_contracts(status=ContractStatus.ACTIVE):
        anchor = contract.last_weekly_payout_at or contract.start_date
        installment = round(contract.base_cash / WEEKS_PER_CONTRACT_TERM)
        try:
            while anchor + WEEK_SECONDS <= min(now, contract.end_date):
                anchor += WEEK_SECONDS
                contract.last_weekly_payout_at = anchor
                contract.updated_at = now
                payout = BrandPayout(
                    contract_id=contract.contract_id,
                    band_id=contract.band_id,
                    event_type=SponsorEvent.WEEKLY.value,
                    base_amount=installment,
                    event_reference=f"week-ending-{int(anchor)}",
                    created_at=now,
                )
                db.record_payout(payout, contract=contract)
                paid += 1
        except Exception:
            logger.exception("[contract %s] weekly payout failed", contract.contract_id)
    logger.info("Processed %d weekly sponsorship payouts", paid)
    return paid


def terminate_contract(
    db: DbClient,
    contract_id: str,
    reason: Optional[str] = None,
    now: Optional[float] = None,
) -> BrandContract:
    now = time.time() if now is None else now
    contract = db.get_contract(contract_id)
    if contract is None:
        raise NotFoundError(f"Contract {contract_id} not found")
    if contract.status != ContractStatus.ACTIVE:
        raise InvalidStateError(f"Contract {contract_id} is not active")

    reason = reason or "manual"
    contract.status = ContractStatus.TERMINATED
    contract.termination_reason = reason
    contract.updated_at = now
    db.save(contract)
    db.save(
        ContractHistoryEvent(
            contract_id=contract_id,
            event_type="termination",
            event_details={"reason": reason},
            created_at=now,
        )
    )
    logger.info("[contract %s] terminated: %s", contract_id, reason)
    return contract


def expire_sponsorships(
    db: DbClient,
    now: Optional[float] = None,
    *,
    terminate_contract_id: Optional[str] = None,
    termination_reason: Optional[str] = None,
) -> Dict[str, int]:
    now = time.time() if now is None else now
    terminated = 0
    if terminate_contract_id:
        terminate_contract(db, terminate_contract_id, termination_reason, now)
        terminated = 1

    offers_expired = 0
    for offer in db.list_offers(status=OfferStatus.PENDING):
        if offer.expires_at < now:
            offer.status = OfferStatus.EXPIRED
            db.save(offer)
            offers_expired += 1

    expired = 0
    for contract in db.list_contracts(status=ContractStatus.ACTIVE):
        if contract.end_date >= now:
            continue
        contract.status = ContractStatus.EXPIRED
        contract.updated_at = now
        db.record_payout(
            BrandPayout(
                contract_id=contract.contract_id,
                band_id=contract.band_id,
                event_type=SponsorEvent.EXPIRY.value,
                event_reference=contract.offer_id,
                created_at=now,
            ),
            ContractHistoryEvent(
                contract_id=contract.contract_id,
                event_type="expiry",
                event_details={"offer_id": contract.offer_id},
                created_at=now,
            ),
            contract,
        )
        expired += 1

    logger.info(
        "Sponsorship expiry: %d terminated, %d contracts expired, %d offers expired",
        terminated,
        expired,
        offers_expired,
    )
    return {"terminated": terminated, "expired": expired, "offers_expired": offers_expired}
