import random
import unittest
from dataclasses import replace

from backend.db import InMemoryDbClient
from settlement.gig import build_gig_settlement, complete_gig, load_gig_context
from shared.errors import ConflictError, InvalidStateError, NotFoundError, SettlementError
from shared.fixtures import NOW, seed_gig_world
from shared.types import (
    BrandContract,
    CityLaws,
    GigStatus,
    SetlistItemType,
    SlotType,
    Twaat,
)


class CompleteGigTest(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        seed_gig_world(self.db)

    def test_settles_and_persists(self):
        settlement = complete_gig(self.db, "gig-1", rng=random.Random(11), now=NOW)
        outcome = settlement.outcome

        gig = self.db.get_gig("gig-1")
        self.assertEqual(gig.status, GigStatus.COMPLETED)
        self.assertEqual(gig.completed_at, NOW)

        stored = self.db.get_gig_outcome("gig-1")
        self.assertEqual(stored.outcome_id, outcome.outcome_id)
        performances = self.db.list_song_performances(outcome.outcome_id)
        self.assertEqual([p.position for p in performances], [1, 2, 3])
        self.assertEqual(performances[1].item_type, SetlistItemType.STAGE_MOMENT)

        self.assertGreaterEqual(outcome.overall_rating, 0)
        self.assertLessEqual(outcome.overall_rating, 25)
        self.assertLessEqual(outcome.actual_attendance, 500)
        self.assertEqual(
            outcome.net_profit,
            outcome.total_revenue - outcome.tax_paid - outcome.total_costs,
        )
        self.assertEqual(outcome.crew_cost, 100)
        self.assertEqual(outcome.equipment_cost, 40)

        band = self.db.get_band("band-1")
        self.assertEqual(band.performance_count, 1)
        self.assertEqual(band.band_balance, 1000 + outcome.net_profit)
        self.assertEqual(band.fame, 1000 + outcome.fame_gained)
        self.assertEqual(band.total_fans, outcome.new_fans + outcome.country_spillover)

        earnings = self.db.list_band_earnings("band-1")
        self.assertEqual(len(earnings), 1)
        self.assertEqual(earnings[0].source, "gig")
        self.assertEqual(earnings[0].amount, outcome.net_profit)

        history = self.db.list_fame_history("band-1")
        self.assertEqual(history[0].fame_change, outcome.fame_gained)
        self.assertEqual(history[0].event_type, "gig")

    def test_updates_city_and_country_fans(self):
        settlement = complete_gig(self.db, "gig-1", rng=random.Random(11), now=NOW)
        outcome = settlement.outcome

        city_fans = self.db.get_city_fans("band-1", "city-1")
        self.assertEqual(city_fans.gigs_in_city, 1)
        self.assertEqual(city_fans.total_fans, outcome.new_fans)
        self.assertEqual(city_fans.city_fame, 50)
        self.assertEqual(city_fans.last_gig_at, NOW)

        country = self.db.get_country_fans("band-1", "UK")
        self.assertEqual(country.total_fans, outcome.new_fans + outcome.country_spillover)
        self.assertEqual(country.fame, 10)

    def test_splits_new_fans_across_demographics(self):
        second_gig = replace(self.db.get_gig("gig-1"), gig_id="gig-2")
        self.db.save(second_gig)

        first = complete_gig(self.db, "gig-1", rng=random.Random(11), now=NOW)
        rows = {d.demographic_id: d for d in self.db.list_demographic_fans("band-1")}
        self.assertEqual(set(rows), {"demo-young", "demo-adult"})
        self.assertTrue(all(d.city_id == "city-1" for d in rows.values()))
        self.assertLessEqual(sum(d.fan_count for d in rows.values()), first.outcome.new_fans)
        # Rock weighs twice as much for the younger group.
        self.assertGreaterEqual(rows["demo-young"].fan_count, rows["demo-adult"].fan_count)

        second = complete_gig(self.db, "gig-2", rng=random.Random(12), now=NOW + 3600)
        added = {d.demographic_id: d.fan_count for d in second.demographic_fans}
        after = {d.demographic_id: d for d in self.db.list_demographic_fans("band-1")}
        self.assertEqual(len(after), 2)
        for demographic_id, row in rows.items():
            self.assertEqual(
                after[demographic_id].fan_count,
                row.fan_count + added.get(demographic_id, 0),
            )

    def test_member_fame_skips_touring_members(self):
        settlement = complete_gig(self.db, "gig-1", rng=random.Random(11), now=NOW)
        share = settlement.outcome.fame_gained // 2
        self.assertEqual(set(settlement.member_fame), {"user-1", "user-2"})
        self.assertEqual(self.db.get_profile("user-1").fame, 100 + share)
        self.assertEqual(self.db.get_profile("user-3").fame, 100)

    def test_second_settlement_conflicts(self):
        complete_gig(self.db, "gig-1", rng=random.Random(1), now=NOW)
        with self.assertRaises(ConflictError):
            complete_gig(self.db, "gig-1", rng=random.Random(1), now=NOW)
        self.assertEqual(self.db.get_band("band-1").performance_count, 1)

    def test_cancelled_gig(self):
        gig = self.db.get_gig("gig-1")
        gig.status = GigStatus.CANCELLED
        self.db.save(gig)
        with self.assertRaises(InvalidStateError):
            complete_gig(self.db, "gig-1", now=NOW)

    def test_missing_gig(self):
        with self.assertRaises(NotFoundError):
            complete_gig(self.db, "nope", now=NOW)

    def test_empty_setlist(self):
        gig = self.db.get_gig("gig-1")
        gig.setlist_id = "empty"
        self.db.save(gig)
        with self.assertRaises(SettlementError):
            complete_gig(self.db, "gig-1", now=NOW)
        self.assertEqual(self.db.get_gig("gig-1").status, GigStatus.SCHEDULED)

    def test_sales_tax_and_capacity_cap_from_city_laws(self):
        self.db.save(CityLaws(city_id="city-1", sales_tax_rate=20.0, max_concert_capacity=50))
        outcome = complete_gig(self.db, "gig-1", rng=random.Random(4), now=NOW).outcome
        self.assertLessEqual(outcome.actual_attendance, 50)
        self.assertEqual(outcome.venue_capacity, 50)
        self.assertEqual(outcome.tax_paid, round(outcome.total_revenue * 0.2))

    def test_prohibited_genre_is_penalised(self):
        ctx = load_gig_context(self.db, "gig-1", NOW)
        normal = build_gig_settlement(ctx, random.Random(9), NOW).outcome

        self.db.save(CityLaws(city_id="city-1", prohibited_genres=["rock"]))
        ctx = load_gig_context(self.db, "gig-1", NOW)
        prohibited = build_gig_settlement(ctx, random.Random(9), NOW).outcome
        self.assertLess(prohibited.actual_attendance, normal.actual_attendance)

    def test_social_buzz_counts_recent_band_twaats(self):
        for i in range(3):
            self.db.save(
                Twaat(account_id=f"acct-{i}", body="hype", linked_band_id="band-1", created_at=NOW - 3600)
            )
        self.db.save(
            Twaat(account_id="acct-old", body="old", linked_band_id="band-1", created_at=NOW - 30 * 86400)
        )
        ctx = load_gig_context(self.db, "gig-1", NOW)
        self.assertEqual(ctx.recent_buzz, 3)

    def test_same_seed_same_settlement(self):
        ctx = load_gig_context(self.db, "gig-1", NOW)
        first = build_gig_settlement(ctx, random.Random(21), NOW).outcome
        second = build_gig_settlement(ctx, random.Random(21), NOW).outcome
        self.assertEqual(first.overall_rating, second.overall_rating)
        self.assertEqual(first.actual_attendance, second.actual_attendance)
        self.assertEqual(first.net_profit, second.net_profit)

    def test_gig_without_city_skips_regional_fans(self):
        db = InMemoryDbClient()
        seed_gig_world(db, with_city=False)
        settlement = complete_gig(db, "gig-1", rng=random.Random(2), now=NOW)
        self.assertIsNone(settlement.city_fans)
        self.assertIsNone(settlement.country_fans)
        self.assertEqual(settlement.fame_history.scope, "global")

        outcome = settlement.outcome
        self.assertEqual(outcome.country_spillover, outcome.new_fans // 10)
        band = db.get_band("band-1")
        self.assertEqual(band.total_fans, outcome.new_fans + outcome.country_spillover)
        self.assertEqual(settlement.spillover, [])

    def test_pays_venue_sponsorships(self):
        self.db.save(
            BrandContract(
                offer_id="offer-1",
                band_id="band-1",
                brand_id="brand-1",
                start_date=NOW - 86400,
                end_date=NOW + 86400 * 30,
                base_cash=10000,
                slot_type=SlotType.VENUE,
                contract_id="contract-1",
            )
        )
        outcome = complete_gig(self.db, "gig-1", rng=random.Random(11), now=NOW).outcome
        payouts = self.db.list_payouts("contract-1")
        self.assertEqual(len(payouts), 1)
        self.assertEqual(payouts[0].event_type, "venue")
        self.assertEqual(payouts[0].base_amount, 800)
        self.assertEqual(payouts[0].event_reference, "gig-1")
        band = self.db.get_band("band-1")
        self.assertEqual(band.band_balance, 1000 + outcome.net_profit + payouts[0].total)


if __name__ == "__main__":
    unittest.main()
