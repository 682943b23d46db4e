"""
City laws set by the mayor and the gig modifiers they imply.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from backend.db import DbClient
from shared.errors import ForbiddenError, NotFoundError
from shared.types import CityLaws, DrugPolicy, LawChange

logger = logging.getLogger(__name__)

PROMOTED_ATTENDANCE_MULTIPLIER = 1.10
PROMOTED_FAME_MULTIPLIER = 1.10
PROHIBITED_ATTENDANCE_MULTIPLIER = 0.60
PROHIBITED_FAME_MULTIPLIER = 0.50

# Inclusive bounds for numeric laws; None means unbounded on that side.
LAW_BOUNDS: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "income_tax_rate": (0, 100),
    "sales_tax_rate": (0, 100),
    "travel_tax": (0, None),
    "alcohol_legal_age": (0, None),
    "noise_curfew_hour": (0, 23),
    "max_concert_capacity": (1, None),
    "busking_license_fee": (0, None),
    "venue_permit_cost": (0, None),
    "community_events_funding": (0, None),
}

NULLABLE_LAWS = {"noise_curfew_hour", "max_concert_capacity"}
GENRE_LAWS = {"promoted_genres", "prohibited_genres"}

EDITABLE_LAWS = frozenset(
    f.name for f in dataclasses.fields(CityLaws) if f.name not in ("city_id", "updated_at")
)


@dataclass(frozen=True)
class GigModifiers:
    sales_tax_rate: float
    capacity_cap: Optional[int]
    attendance_multiplier: float
    fame_multiplier: float


def default_laws(city_id: str) -> CityLaws:
    return CityLaws(city_id=city_id)


def get_city_laws(db: DbClient, city_id: str) -> CityLaws:
    """Stored laws for the city, or the defaults when none were ever set."""
    if db.get_city(city_id) is None:
        raise NotFoundError(f"City {city_id} not found")
    return db.get_city_laws(city_id) or default_laws(city_id)


def _normalize(name: str, value: Any) -> Any:
    if name in GENRE_LAWS:
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(g, str) for g in value
        ):
            raise ValueError(f"{name} must be a list of genres")
        return sorted({g.strip() for g in value if g.strip()})
    if name == "drug_policy":
        try:
            return DrugPolicy(value).value
        except ValueError:
            raise ValueError(f"Unknown drug policy: {value!r}") from None
    if name == "festival_permit_required":
        if not isinstance(value, bool):
            raise ValueError("festival_permit_required must be true or false")
        return value
    if value is None:
        if name in NULLABLE_LAWS:
            return None
        raise ValueError(f"{name} cannot be empty")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    low, high = LAW_BOUNDS[name]
    if (low is not None and value < low) or (high is not None and value > high):
        raise ValueError(f"{name} is out of range")
    if name in ("income_tax_rate", "sales_tax_rate"):
        return float(value)
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{name} must be a whole number")
    return int(value)


def update_city_laws(
    db: DbClient,
    city_id: str,
    user_id: str,
    updates: Dict[str, Any],
    reason: Optional[str] = None,
    now: Optional[float] = None,
) -> Tuple[CityLaws, List[LawChange]]:
    """
    Apply a mayor's law changes.

    Only the sitting mayor may change laws. Each changed field gets one history
    row; unchanged values are ignored.
    """
    city = db.get_city(city_id)
    if city is None:
        raise NotFoundError(f"City {city_id} not found")
    if not city.mayor_user_id or city.mayor_user_id != user_id:
        raise ForbiddenError(f"User {user_id} is not the mayor of {city.name}")

    unknown = sorted(set(updates) - EDITABLE_LAWS)
    if unknown:
        raise ValueError(f"Unknown law fields: {', '.join(unknown)}")

    now = time.time() if now is None else now
    laws = db.get_city_laws(city_id) or default_laws(city_id)
    normalized = {name: _normalize(name, value) for name, value in updates.items()}

    promoted = normalized.get("promoted_genres", laws.promoted_genres)
    prohibited = normalized.get("prohibited_genres", laws.prohibited_genres)
    overlap = sorted(set(promoted) & set(prohibited))
    if overlap:
        raise ValueError(
            f"Genres cannot be both promoted and prohibited: {', '.join(overlap)}"
        )

    changes: List[LawChange] = []
    for name, value in normalized.items():
        old_value = getattr(laws, name)
        if isinstance(old_value, DrugPolicy):
            old_value = old_value.value
        if old_value == value:
            continue
        setattr(laws, name, value)
        changes.append(
            LawChange(
                city_id=city_id,
                law_field=name,
                old_value=old_value,
                new_value=value,
                changed_by=user_id,
                reason=reason,
                created_at=now,
            )
        )

    if not changes:
        return laws, []

    laws.updated_at = now
    db.save_city_laws(laws, changes)
    logger.info(
        "[city %s] %d law(s) changed by %s: %s",
        city_id,
        len(changes),
        user_id,
        ", ".join(c.law_field for c in changes),
    )
    return laws, changes


def gig_modifiers(laws: Optional[CityLaws], genre: Optional[str]) -> GigModifiers:
    if laws is None:
        laws = CityLaws(city_id="")
    attendance = 1.0
    fame = 1.0
    if genre and genre in laws.prohibited_genres:
        attendance = PROHIBITED_ATTENDANCE_MULTIPLIER
        fame = PROHIBITED_FAME_MULTIPLIER
    elif genre and genre in laws.promoted_genres:
        attendance = PROMOTED_ATTENDANCE_MULTIPLIER
        fame = PROMOTED_FAME_MULTIPLIER
    return GigModifiers(
        sales_tax_rate=laws.sales_tax_rate,
        capacity_cap=laws.max_concert_capacity,
        attendance_multiplier=attendance,
        fame_multiplier=fame,
    )
