"""
Small seeded game worlds for tests and local runs.
"""

from __future__ import annotations

from typing import Any

from shared.types import (
    AgeDemographic,
    Band,
    BandMember,
    City,
    CrewMember,
    FestivalParticipation,
    Gig,
    MerchItem,
    Profile,
    SetlistEntry,
    SetlistItemType,
    Song,
    SongRehearsal,
    StageEquipment,
    StageMoment,
    Venue,
)

NOW = 1_700_000_000.0


def seed_gig_world(
    db: Any,
    *,
    band_fame: int = 1000,
    genre: str = "rock",
    capacity: int = 500,
    ticket_price: int = 20,
    with_city: bool = True,
) -> Gig:
    """A two-member rock band booked into a 500-seat venue in Manchester."""
    db.save(
        Band(
            band_id="band-1",
            name="The Amplifiers",
            genre=genre,
            fame=band_fame,
            chemistry_level=60,
            band_balance=1000,
        )
    )
    db.save(
        BandMember(
            band_id="band-1",
            user_id="user-1",
            instrument_role="Vocals",
            skill_level=70,
            gear_bonus=0.2,
            stage_presence=14,
            charisma=12,
        )
    )
    db.save(
        BandMember(
            band_id="band-1",
            user_id="user-2",
            instrument_role="Guitar",
            skill_level=60,
            stage_presence=10,
            charisma=10,
        )
    )
    db.save(
        BandMember(
            band_id="band-1",
            user_id="user-3",
            instrument_role="Drums",
            skill_level=50,
            is_touring_member=True,
        )
    )

    for user_id in ("user-1", "user-2", "user-3"):
        db.save(Profile(user_id=user_id, display_name=user_id, fame=100))

    if with_city:
        db.save(City(city_id="city-1", name="Manchester", country="UK", mayor_user_id="mayor-1"))
        db.save(City(city_id="city-2", name="Leeds", country="UK"))
        db.save(City(city_id="city-3", name="Bristol", country="UK"))
        db.save(
            AgeDemographic(
                demographic_id="demo-young", name="18-24", genre_preferences={"rock": 2.0}
            )
        )
        db.save(
            AgeDemographic(
                demographic_id="demo-adult", name="25-34", genre_preferences={"rock": 1.0}
            )
        )

    db.save(
        Venue(
            venue_id="venue-1",
            name="The Ritz",
            capacity=capacity,
            city_id="city-1" if with_city else None,
        )
    )

    db.save(Song(song_id="song-1", band_id="band-1", title="Feedback Loop", genre=genre, quality_score=800))
    db.save(Song(song_id="song-2", band_id="band-1", title="Last Train", genre=genre, quality_score=600))
    db.save(StageMoment(moment_id="moment-1", name="Crowd Surf", crowd_appeal=80, min_skill_level=50))
    db.save(SetlistEntry(setlist_id="setlist-1", position=1, song_id="song-1"))
    db.save(
        SetlistEntry(
            setlist_id="setlist-1",
            position=2,
            item_type=SetlistItemType.STAGE_MOMENT,
            moment_id="moment-1",
        )
    )
    db.save(SetlistEntry(setlist_id="setlist-1", position=3, song_id="song-2", is_encore=True))
    db.save(SongRehearsal(band_id="band-1", song_id="song-1", rehearsal_level=80))
    db.save(SongRehearsal(band_id="band-1", song_id="song-2", rehearsal_level=40))

    db.save(
        StageEquipment(
            equipment_id="eq-1", band_id="band-1", name="Marshall stack", quality_rating=70, purchase_cost=2000
        )
    )
    db.save(CrewMember(crew_id="crew-1", band_id="band-1", name="Sam", skill_level=60, salary_per_gig=100))
    db.save(
        MerchItem(
            merch_id="merch-1", band_id="band-1", item_type="tshirt", selling_price=25, stock_quantity=200
        )
    )

    gig = Gig(
        gig_id="gig-1",
        band_id="band-1",
        venue_id="venue-1",
        setlist_id="setlist-1",
        ticket_price=ticket_price,
        scheduled_at=NOW - 3600,
    )
    db.save(gig)
    return gig


def seed_festival_participation(
    db: Any, *, payout_amount: int | None = 8000
) -> FestivalParticipation:
    """The gig world's band confirmed for a festival slot."""
    if db.get_band("band-1") is None:
        db.save(Band(band_id="band-1", name="The Amplifiers", genre="rock", fame=1000))
    participation = FestivalParticipation(
        participation_id="part-1",
        festival_id="fest-1",
        band_id="band-1",
        user_id="user-1",
        slot_type="headline",
        payout_amount=payout_amount,
    )
    db.save(participation)
    return participation
