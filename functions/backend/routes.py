"""
HTTP routes for the RockMundo backend API.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.db import DbClient
from backend.dependencies import get_db_client, get_queue_client, get_rng
from backend.queue import JobQueue
from backend.schemas import (
    AcceptOfferRequest,
    CityLawsResponse,
    CompleteFestivalPerformanceRequest,
    CompleteFestivalPerformanceResponse,
    CompleteGigResponse,
    ContractResponse,
    EnqueueJobRequest,
    EnqueueJobResponse,
    EventPayoutRequest,
    EventPayoutResponse,
    GigOutcomeResponse,
    JobStatusResponse,
    LawHistoryResponse,
    TerminateContractRequest,
    UpdateCityLawsRequest,
    UpdateCityLawsResponse,
)
from backend.config import get_settings
from governance.city_laws import get_city_laws, update_city_laws
from settlement.festival import FestivalPerformanceInput, complete_festival_performance
from settlement.gig import complete_gig
from shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RockmundoError,
)
from sponsorships.sponsorships import accept_offer, process_event_payouts, terminate_contract

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (ConflictError, 409),
    (InvalidStateError, 400),
)


def _raise_http(exc: Exception) -> NoReturn:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    if isinstance(exc, (ValueError, RockmundoError)):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    raise exc


@router.post("/gigs/{gig_id}/complete", response_model=CompleteGigResponse)
def complete_gig_route(
    gig_id: str,
    db: DbClient = Depends(get_db_client),
    rng: random.Random = Depends(get_rng),
):
    """
    Settle a finished gig: scores, attendance, money, fame and fans.
    """
    try:
        settlement = complete_gig(db, gig_id, rng=rng)
    except (RockmundoError, ValueError) as exc:
        _raise_http(exc)
    outcome = settlement.outcome
    return CompleteGigResponse(
        gig_id=gig_id,
        band_id=settlement.band_id,
        overall_rating=outcome.overall_rating,
        performance_grade=outcome.performance_grade,
        actual_attendance=outcome.actual_attendance,
        net_profit=outcome.net_profit,
        fame_gained=outcome.fame_gained,
        new_fans=outcome.new_fans,
        outcome=asdict(outcome),
    )


@router.get("/gigs/{gig_id}/outcome", response_model=GigOutcomeResponse)
def get_gig_outcome(gig_id: str, db: DbClient = Depends(get_db_client)):
    outcome = db.get_gig_outcome(gig_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Gig outcome not found")
    performances = db.list_song_performances(outcome.outcome_id)
    return GigOutcomeResponse(
        gig_id=gig_id,
        outcome=asdict(outcome),
        performances=[asdict(p) for p in performances],
    )


@router.post(
    "/festivals/performances/complete",
    response_model=CompleteFestivalPerformanceResponse,
)
def complete_festival_performance_route(
    payload: CompleteFestivalPerformanceRequest,
    db: DbClient = Depends(get_db_client),
    rng: random.Random = Depends(get_rng),
):
    data = FestivalPerformanceInput(**payload.model_dump())
    try:
        settlement = complete_festival_performance(db, data, rng=rng)
    except (RockmundoError, ValueError) as exc:
        _raise_http(exc)
    return CompleteFestivalPerformanceResponse(
        performance=asdict(settlement.performance),
        reviews=[asdict(r) for r in settlement.reviews],
        merch_sales=asdict(settlement.merch_sales),
    )


@router.get("/cities/{city_id}/laws", response_model=CityLawsResponse)
def get_laws(city_id: str, db: DbClient = Depends(get_db_client)):
    try:
        laws = get_city_laws(db, city_id)
    except RockmundoError as exc:
        _raise_http(exc)
    return CityLawsResponse(city_id=city_id, laws=asdict(laws))


@router.put("/cities/{city_id}/laws", response_model=UpdateCityLawsResponse)
def update_laws(
    city_id: str,
    payload: UpdateCityLawsRequest,
    db: DbClient = Depends(get_db_client),
):
    """
    Mayor-only law change. Every changed field is recorded in the law history.
    """
    try:
        laws, changes = update_city_laws(
            db, city_id, payload.user_id, payload.updates, reason=payload.reason
        )
    except (RockmundoError, ValueError) as exc:
        _raise_http(exc)
    return UpdateCityLawsResponse(
        city_id=city_id,
        laws=asdict(laws),
        changes=[asdict(c) for c in changes],
    )


@router.get("/cities/{city_id}/laws/history", response_model=LawHistoryResponse)
def law_history(
    city_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    if db.get_city(city_id) is None:
        raise HTTPException(status_code=404, detail="City not found")
    changes = db.list_law_history(city_id, limit=limit)
    return LawHistoryResponse(city_id=city_id, changes=[asdict(c) for c in changes])


@router.post(
    "/sponsorships/offers/{offer_id}/accept", response_model=ContractResponse
)
def accept_sponsorship_offer(
    offer_id: str,
    payload: AcceptOfferRequest,
    db: DbClient = Depends(get_db_client),
):
    settings = get_settings()
    try:
        contract = accept_offer(
            db,
            offer_id,
            payload.band_id,
            contract_days=settings.sponsorship_contract_days,
        )
    except (RockmundoError, ValueError) as exc:
        _raise_http(exc)
    return ContractResponse(contract=asdict(contract))


@router.post("/sponsorships/payouts", response_model=EventPayoutResponse)
def sponsorship_event_payouts(
    payload: EventPayoutRequest, db: DbClient = Depends(get_db_client)
):
    if db.get_band(payload.band_id) is None:
        raise HTTPException(status_code=404, detail="Band not found")
    try:
        payouts = process_event_payouts(
            db,
            band_id=payload.band_id,
            event_type=payload.event_type,
            fame_delta=payload.fame_delta,
            event_reference=payload.event_reference,
        )
    except (RockmundoError, ValueError) as exc:
        _raise_http(exc)
    return EventPayoutResponse(
        payouts=[{**asdict(p), "total": p.total} for p in payouts],
        total=sum(p.total for p in payouts),
    )


@router.post(
    "/sponsorships/contracts/{contract_id}/terminate", response_model=ContractResponse
)
def terminate_sponsorship_contract(
    contract_id: str,
    payload: TerminateContractRequest,
    db: DbClient = Depends(get_db_client),
):
    try:
        contract = terminate_contract(db, contract_id, payload.reason)
    except RockmundoError as exc:
        _raise_http(exc)
    return ContractResponse(contract=asdict(contract))


@router.post("/jobs", response_model=EnqueueJobResponse, status_code=202)
def enqueue_job(
    payload: EnqueueJobRequest,
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """
    Enqueue a background job. The worker does the heavy lifting.
    """
    job = db.create_job(payload.job_type, payload.payload)
    queue.enqueue(job.job_id)
    logger.info("Enqueued %s job %s", job.job_type, job.job_id)
    return EnqueueJobResponse(
        job_id=job.job_id, job_type=str(job.job_type), status=str(job.status)
    )


@router.get("/job-status/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, db: DbClient = Depends(get_db_client)):
    job = db.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(
        job_id=job.job_id,
        job_type=str(job.job_type),
        status=str(job.status),
        stage=job.stage,
        progress_percent=job.progress_percent,
        result=job.result,
        error=job.error,
    )
