"""
Scheduled posting for Twaater bot accounts.

Bots comment on the charts, on recently completed gigs, or post general
chatter from per-type templates. Gig comments are linked to the band so
they count towards that band's social buzz at its next gig.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from backend.db import DbClient
from shared.types import BotAccount, ChartEntry, Gig, Twaat

logger = logging.getLogger(__name__)

FREQUENCY_HOURS = {"high": 2, "medium": 4, "low": 8}
DEFAULT_FREQUENCY_HOURS = 8
POST_CHANCE_THRESHOLD = 0.3
CHART_COMMENT_ROLL = 0.4
GIG_COMMENT_ROLL = 0.6
RECENT_GIG_WINDOW_SECONDS = 7 * 24 * 3600

PERSONALITY_HASHTAGS = (
    ("analytical", "#MusicAnalysis"),
    ("underground", "#IndieMusic"),
    ("trendy", "#Trending"),
    ("nostalgic", "#Throwback"),
)

TRENDS = ("climbing", "holding steady", "making waves", "picking up steam")
SETLIST_OPINIONS = ("fire", "perfectly curated", "unexpected but amazing", "classic")
CROWD_VIBES = ("electric", "incredible", "sold out energy", "singing every word")
PERFORMANCE_QUALITIES = ("incredible", "next level", "a must-see", "absolutely phenomenal")
GENRES = ("indie", "rock", "electronic", "hip-hop", "pop", "R&B")

BOT_TEMPLATES: Dict[str, Dict[str, Sequence[str]]] = {
    "critic": {
        "chart_comment": (
            "Interesting movement on the charts today. {song} by {artist} is {trend}. Quality production here.",
            "Hot take: {song} deserves to be higher. {artist} delivered something special.",
            "Chart analysis: {song} climbed {positions} spots this week. The hook is undeniable.",
            "Deep cut alert: Check out {song} before it blows up. {artist} is onto something.",
        ),
        "gig_comment": (
            "Caught {artist} at {venue} last night. {rating}/10. The setlist was {setlist_opinion}.",
            "Live review: {artist} brought the energy at {venue}. Crowd was {crowd_vibe}.",
            "Hot take from {venue}: {artist} is {performance_quality} live. Worth catching on tour.",
        ),
        "general": (
            "What's everyone listening to this week? Drop your recommendations below.",
            "Weekly hot take: The algorithm is sleeping on so many good tracks right now.",
            "Production tip: Pay attention to the low-end in today's top releases.",
        ),
    },
    "venue_owner": {
        "gig_comment": (
            "Sold out show alert! {artist} brought the house down at {venue}.",
            "What a night at {venue}. Thanks {artist}, come back soon!",
        ),
        "general": (
            "Happy hour starts at 6! Great tunes on the house system tonight.",
            "Looking for bands to book next month. DMs open for submissions!",
            "New show announcements coming this week. Stay tuned!",
        ),
    },
    "industry_insider": {
        "chart_comment": (
            "Market analysis: {song} streaming numbers are impressive. {artist} is building momentum.",
            "Industry insight: Watch {artist} this quarter. Label support is ramping up.",
            "A&R tip: {genre} is having a moment. Keep an eye on emerging artists.",
        ),
        "gig_comment": (
            "Just saw {artist} showcase. Booking inquiries incoming for sure.",
            "Live music market is heating up. {venue} attendance up 20% this month.",
        ),
        "general": (
            "Producer tip: Layer your synths with acoustic textures. Game changer.",
            "Streaming data shows {genre} engagement up 15% this month.",
            "Mixing tip of the day: Less is more with the high-end. Trust your monitors.",
        ),
    },
    "music_fan": {
        "chart_comment": (
            "OMG {song} is so good!!! {artist} never misses",
            "Who else has {song} on repeat?? Just me??",
            "Not me crying to {song} at 3am... again...",
            "{artist} really said TAKE MY MONEY with this release",
        ),
        "gig_comment": (
            "JUST SAW {artist} LIVE AND I'M NOT OKAY",
            "Best night ever at {venue}!! My voice is gone but worth it",
            "The way {artist} performed live at {venue}... I'll never recover",
        ),
        "general": (
            "What concerts are y'all going to this month?? Need plans",
            "Current mood: making playlists I'll never share with anyone",
            "POV: You find a song from 2019 that still hits different",
        ),
    },
    "influencer": {
        "chart_comment": (
            "New playlist drop! {song} by {artist} is the vibe. Link in bio.",
            "Just added {song} to my driving playlist. {artist} understood the assignment.",
            "This week's must-listen: {song}. Your ears will thank me.",
        ),
        "general": (
            "What genre should I dive into next? Comment below!",
            "Just hit 50k playlist followers! Thank you for trusting my taste",
            "Behind the scenes of playlist curation: It's harder than it looks!",
        ),
    },
}


@dataclass
class GigMention:
    gig_id: str
    band_id: str
    band_name: str
    venue_name: str


@dataclass
class TwaatDraft:
    body: str
    hashtags: List[str] = field(default_factory=list)
    linked_type: Optional[str] = None
    linked_id: Optional[str] = None
    linked_band_id: Optional[str] = None

    @property
    def text(self) -> str:
        if not self.hashtags:
            return self.body
        return f"{self.body}\n\n{' '.join(self.hashtags)}"


def should_post(bot: BotAccount, now: float, rng: random.Random) -> bool:
    frequency = FREQUENCY_HOURS.get(bot.posting_frequency, DEFAULT_FREQUENCY_HOURS)
    if bot.last_posted_at is not None:
        hours_since = (now - bot.last_posted_at) / 3600
        if hours_since < frequency:
            return False
    return rng.random() > POST_CHANCE_THRESHOLD


def compose_twaat(
    bot_type: str,
    personality: Sequence[str],
    chart: Sequence[ChartEntry],
    gigs: Sequence[GigMention],
    rng: random.Random,
) -> TwaatDraft:
    templates = BOT_TEMPLATES.get(bot_type, BOT_TEMPLATES["music_fan"])
    roll = rng.random()

    if chart and roll < CHART_COMMENT_ROLL and "chart_comment" in templates:
        entry = rng.choice(chart)
        body = rng.choice(templates["chart_comment"]).format(
            song=entry.title or "this track",
            artist=entry.band_name or "this artist",
            trend=rng.choice(TRENDS),
            positions=rng.randint(1, 10),
            genre=entry.genre or "indie",
        )
        draft = TwaatDraft(
            body=body,
            hashtags=["#NowPlaying", "#MusicCharts"],
            linked_type="single",
            linked_id=entry.song_id,
        )
    elif gigs and roll < GIG_COMMENT_ROLL and "gig_comment" in templates:
        gig = rng.choice(gigs)
        body = rng.choice(templates["gig_comment"]).format(
            artist=gig.band_name or "the band",
            venue=gig.venue_name or "the venue",
            rating=rng.randint(8, 10),
            setlist_opinion=rng.choice(SETLIST_OPINIONS),
            crowd_vibe=rng.choice(CROWD_VIBES),
            performance_quality=rng.choice(PERFORMANCE_QUALITIES),
        )
        draft = TwaatDraft(
            body=body,
            hashtags=["#LiveMusic", "#Concert"],
            linked_type="gig",
            linked_id=gig.gig_id,
            linked_band_id=gig.band_id,
        )
    else:
        body = rng.choice(templates["general"]).format(genre=rng.choice(GENRES))
        draft = TwaatDraft(body=body)

    for trait, hashtag in PERSONALITY_HASHTAGS:
        if trait in personality:
            draft.hashtags.append(hashtag)
    return draft


def _gig_mentions(db: DbClient, gigs: Sequence[Gig]) -> List[GigMention]:
    mentions = []
    for gig in gigs:
        band = db.get_band(gig.band_id)
        venue = db.get_venue(gig.venue_id)
        mentions.append(
            GigMention(
                gig_id=gig.gig_id,
                band_id=gig.band_id,
                band_name=band.name if band else "",
                venue_name=venue.name if venue else "",
            )
        )
    return mentions


def generate_bot_twaats(
    db: DbClient,
    rng: Optional[random.Random] = None,
    now: Optional[float] = None,
) -> Dict[str, int]:
    rng = rng or random.Random()
    now = time.time() if now is None else now

    bots = db.list_active_bots()
    chart = db.list_chart_entries(limit=20)
    gigs = _gig_mentions(
        db, db.list_recent_completed_gigs(now - RECENT_GIG_WINDOW_SECONDS, limit=10)
    )
    logger.info(
        "Generating bot twaats: %d active bots, %d chart entries, %d recent gigs",
        len(bots),
        len(chart),
        len(gigs),
    )

    created = 0
    for bot in bots:
        if not should_post(bot, now, rng):
            continue
        try:
            draft = compose_twaat(bot.bot_type, bot.personality_traits, chart, gigs, rng)
            db.save(
                Twaat(
                    account_id=bot.account_id,
                    body=draft.text,
                    linked_type=draft.linked_type,
                    linked_id=draft.linked_id,
                    linked_band_id=draft.linked_band_id,
                    created_at=now,
                )
            )
            bot.last_posted_at = now
            db.save(bot)
        except Exception:
            logger.exception("[bot %s] failed to post", bot.bot_id)
            continue
        logger.debug("Bot @%s posted: %.50s", bot.handle, draft.body)
        created += 1

    logger.info("Created %d bot twaats", created)
    return {"twaats_created": created, "bots_considered": len(bots)}
