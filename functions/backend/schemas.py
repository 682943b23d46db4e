"""
Pydantic schemas for the RockMundo FastAPI backend.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from shared.types import JobType


class CompleteGigResponse(BaseModel):
    gig_id: str
    band_id: str
    overall_rating: float
    performance_grade: str
    actual_attendance: int
    net_profit: int
    fame_gained: int
    new_fans: int
    outcome: dict


class GigOutcomeResponse(BaseModel):
    gig_id: str
    outcome: dict
    performances: list[dict]


class CompleteFestivalPerformanceRequest(BaseModel):
    participation_id: str
    band_id: str
    performance_score: float = Field(..., ge=0, le=100)
    crowd_energy_peak: float = Field(..., ge=0, le=100)
    crowd_energy_avg: float = Field(..., ge=0, le=100)
    event_responses: list[float] = Field(default_factory=list)
    songs_performed: int = Field(0, ge=0)


class CompleteFestivalPerformanceResponse(BaseModel):
    success: Literal[True] = True
    performance: dict
    reviews: list[dict]
    merch_sales: dict


class CityLawsResponse(BaseModel):
    city_id: str
    laws: dict


class UpdateCityLawsRequest(BaseModel):
    user_id: str
    updates: dict[str, Any]
    reason: Optional[str] = Field(None, max_length=1024)


class UpdateCityLawsResponse(BaseModel):
    city_id: str
    laws: dict
    changes: list[dict]


class LawHistoryResponse(BaseModel):
    city_id: str
    changes: list[dict]


class AcceptOfferRequest(BaseModel):
    band_id: str


class ContractResponse(BaseModel):
    contract: dict


class EventPayoutRequest(BaseModel):
    band_id: str
    event_type: str
    fame_delta: int = 0
    event_reference: Optional[str] = None


class EventPayoutResponse(BaseModel):
    payouts: list[dict]
    total: int


class TerminateContractRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=256)


class EnqueueJobRequest(BaseModel):
    job_type: JobType
    payload: dict = Field(default_factory=dict)


class EnqueueJobResponse(BaseModel):
    job_id: str
    job_type: str
    status: str


class JobStatusResponse(BaseModel):
    job_id: str
    job_type: str
    status: str
    stage: Optional[str] = None
    progress_percent: Optional[float] = None
    result: Optional[dict] = None
    error: Optional[str] = None
