import random
import unittest
from unittest.mock import patch

from backend.db import InMemoryDbClient
from shared.types import Band, BotAccount, ChartEntry, Gig, GigStatus, Venue
from social import bot_twaats
from social.bot_twaats import GigMention, TwaatDraft, compose_twaat, generate_bot_twaats, should_post

NOW = 1_700_000_000.0
HOUR = 3600


class FixedRandom(random.Random):
    """Random whose ``random()`` replays a script; other draws stay seeded."""

    def __init__(self, rolls):
        super().__init__(0)
        self._rolls = list(rolls)

    def random(self):
        if self._rolls:
            return self._rolls.pop(0)
        return super().random()

    # Keeps choice() and randint() on the seeded bit stream.
    def getrandbits(self, k):
        return super().getrandbits(k)


CHART = [ChartEntry(song_id="song-1", title="Feedback Loop", band_name="The Amplifiers", rank=1, genre="rock")]
GIGS = [GigMention(gig_id="gig-1", band_id="band-1", band_name="The Amplifiers", venue_name="The Ritz")]


class ShouldPostTest(unittest.TestCase):
    def test_frequency_window(self):
        bot = BotAccount(bot_id="b", account_id="a", handle="fan", posting_frequency="high")
        bot.last_posted_at = NOW - 1 * HOUR
        self.assertFalse(should_post(bot, NOW, FixedRandom([0.99])))
        bot.last_posted_at = NOW - 3 * HOUR
        self.assertTrue(should_post(bot, NOW, FixedRandom([0.99])))

    def test_roll_must_beat_threshold(self):
        bot = BotAccount(bot_id="b", account_id="a", handle="fan")
        self.assertFalse(should_post(bot, NOW, FixedRandom([0.3])))
        self.assertTrue(should_post(bot, NOW, FixedRandom([0.31])))

    def test_unknown_frequency_uses_low(self):
        bot = BotAccount(
            bot_id="b", account_id="a", handle="fan", posting_frequency="sometimes", last_posted_at=NOW - 5 * HOUR
        )
        self.assertFalse(should_post(bot, NOW, FixedRandom([0.99])))


class ComposeTwaatTest(unittest.TestCase):
    def test_chart_comment(self):
        draft = compose_twaat("critic", ["analytical"], CHART, GIGS, FixedRandom([0.1]))
        self.assertEqual(draft.linked_type, "single")
        self.assertEqual(draft.linked_id, "song-1")
        self.assertIsNone(draft.linked_band_id)
        self.assertEqual(draft.hashtags, ["#NowPlaying", "#MusicCharts", "#MusicAnalysis"])
        self.assertNotIn("{", draft.body)

    def test_gig_comment_links_band(self):
        draft = compose_twaat("music_fan", [], CHART, GIGS, FixedRandom([0.5]))
        self.assertEqual(draft.linked_type, "gig")
        self.assertEqual(draft.linked_id, "gig-1")
        self.assertEqual(draft.linked_band_id, "band-1")
        self.assertIn("#LiveMusic", draft.hashtags)
        self.assertNotIn("{", draft.body)

    def test_general_when_no_data(self):
        draft = compose_twaat("industry_insider", ["trendy", "nostalgic"], [], [], FixedRandom([0.1]))
        self.assertIsNone(draft.linked_type)
        self.assertEqual(draft.hashtags, ["#Trending", "#Throwback"])
        self.assertIn(draft.body, [t.format(genre=g) for t in bot_twaats.BOT_TEMPLATES["industry_insider"]["general"] for g in bot_twaats.GENRES])

    def test_influencer_has_no_gig_templates(self):
        draft = compose_twaat("influencer", [], [], GIGS, FixedRandom([0.5]))
        self.assertIsNone(draft.linked_type)

    def test_unknown_bot_type_falls_back_to_fan(self):
        draft = compose_twaat("alien", [], [], [], FixedRandom([0.9]))
        self.assertIn(draft.body, bot_twaats.BOT_TEMPLATES["music_fan"]["general"])

    def test_text_appends_hashtags(self):
        draft = bot_twaats.TwaatDraft(body="hello", hashtags=["#a", "#b"])
        self.assertEqual(draft.text, "hello\n\n#a #b")
        self.assertEqual(bot_twaats.TwaatDraft(body="hello").text, "hello")


class GenerateBotTwaatsTest(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.save(Band(band_id="band-1", name="The Amplifiers"))
        self.db.save(Venue(venue_id="venue-1", name="The Ritz"))
        self.db.save(
            Gig(
                gig_id="gig-1",
                band_id="band-1",
                venue_id="venue-1",
                setlist_id="s",
                status=GigStatus.COMPLETED,
                completed_at=NOW - HOUR,
            )
        )
        self.db.save(CHART[0])
        self.db.save(BotAccount(bot_id="bot-1", account_id="acct-1", handle="critic", bot_type="critic"))
        self.db.save(
            BotAccount(
                bot_id="bot-2",
                account_id="acct-2",
                handle="fresh",
                posting_frequency="low",
                last_posted_at=NOW - HOUR,
            )
        )
        self.db.save(BotAccount(bot_id="bot-3", account_id="acct-3", handle="retired", is_active=False))

    def test_posts_for_due_bots_only(self):
        result = generate_bot_twaats(self.db, FixedRandom([0.9, 0.55]), NOW)
        self.assertEqual(result, {"twaats_created": 1, "bots_considered": 2})

        twaats = self.db.list_twaats("acct-1")
        self.assertEqual(len(twaats), 1)
        self.assertEqual(twaats[0].linked_type, "gig")
        self.assertEqual(twaats[0].linked_band_id, "band-1")
        self.assertEqual(self.db.list_twaats("acct-2"), [])
        self.assertEqual(self.db.list_twaats("acct-3"), [])

        bots = {b.bot_id: b for b in self.db.list_active_bots()}
        self.assertEqual(bots["bot-1"].last_posted_at, NOW)
        self.assertEqual(bots["bot-2"].last_posted_at, NOW - HOUR)

    def test_failing_bot_does_not_block_others(self):
        self.db.save(BotAccount(bot_id="bot-4", account_id="acct-4", handle="hype"))
        draft = TwaatDraft(body="Great night out", hashtags=["#LiveMusic"])
        with patch.object(
            bot_twaats, "compose_twaat", side_effect=[RuntimeError("bad template"), draft]
        ):
            with self.assertLogs("social.bot_twaats", level="ERROR"):
                result = generate_bot_twaats(self.db, FixedRandom([0.9, 0.9]), NOW)

        self.assertEqual(result["twaats_created"], 1)
        self.assertEqual(self.db.list_twaats("acct-1"), [])
        self.assertEqual([t.body for t in self.db.list_twaats("acct-4")], [draft.text])
        bots = {b.bot_id: b for b in self.db.list_active_bots()}
        self.assertIsNone(bots["bot-1"].last_posted_at)
        self.assertEqual(bots["bot-4"].last_posted_at, NOW)

    def test_gig_twaats_feed_band_buzz(self):
        generate_bot_twaats(self.db, FixedRandom([0.9, 0.55]), NOW)
        self.assertEqual(self.db.count_band_twaats_since("band-1", NOW - 24 * HOUR), 1)


if __name__ == "__main__":
    unittest.main()
