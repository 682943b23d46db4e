import random
import unittest

from backend.db import InMemoryDbClient
from shared.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from shared.types import (
    Band,
    BrandContract,
    BrandOffer,
    BrandPartner,
    ContractStatus,
    OfferStatus,
    SlotType,
    WealthTier,
)
from sponsorships import sponsorships as sp

NOW = 1_700_000_000.0
DAY = sp.DAY_SECONDS


class PricingTest(unittest.TestCase):
    def test_weight(self):
        self.assertEqual(sp.compute_weight(BrandPartner("b", "Brand")), 1.5)
        titan = BrandPartner("b", "Brand", wealth_tier=WealthTier.TITAN, size_index=300)
        self.assertEqual(sp.compute_weight(titan), 3.5)

    def test_cash_offer(self):
        self.assertEqual(sp.compute_cash_offer(BrandPartner("b", "Brand"), 1000), 6600)
        # Fame scalar caps at 3x.
        partner = BrandPartner("b", "Brand", base_offer=1000, size_index=0)
        self.assertEqual(sp.compute_cash_offer(partner, 1_000_000), 3000)

    def test_choose_slot(self):
        self.assertEqual(sp.choose_slot(BrandPartner("b", "B", focus_slots=["bogus", "festival"])), "festival")
        self.assertEqual(sp.choose_slot(BrandPartner("b", "B")), "general")

    def test_weighted_sample_without_replacement(self):
        options = [sp.WeightedOption(BrandPartner(str(i), str(i)), 1.0 + i) for i in range(5)]
        picked = sp.weighted_sample(options, 3, random.Random(8))
        self.assertEqual(len(picked), 3)
        self.assertEqual(len({o.partner.brand_id for o in picked}), 3)
        self.assertEqual(len(sp.weighted_sample(options, 10, random.Random(8))), 5)


class OfferGenerationTest(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.save(Band(band_id="band-1", name="Famous", fame=2000))
        self.db.save(Band(band_id="band-2", name="Unknown", fame=10))
        for i in range(4):
            self.db.save(BrandPartner(brand_id=f"brand-{i}", name=f"Brand {i}"))

    def test_only_famous_bands_get_offers(self):
        result = sp.generate_offers(self.db, random.Random(3), NOW)
        self.assertEqual(result["bands_processed"], 1)
        self.assertEqual(result["offers_created"], sp.OFFERS_PER_BAND)
        self.assertEqual(len(self.db.list_offers(band_id="band-1")), 3)
        self.assertEqual(self.db.list_offers(band_id="band-2"), [])

    def test_cooldown_blocks_repeat_offers(self):
        sp.generate_offers(self.db, random.Random(3), NOW)
        result = sp.generate_offers(self.db, random.Random(3), NOW + DAY)
        brands = [o.brand_id for o in self.db.list_offers(band_id="band-1")]
        self.assertEqual(len(brands), len(set(brands)))
        self.assertLessEqual(result["offers_created"], 1)

    def test_pending_offer_cap(self):
        for i in range(5):
            self.db.save(
                BrandOffer(band_id="band-1", brand_id=f"x-{i}", cash_offer=1, expires_at=NOW + DAY)
            )
        result = sp.generate_offers(self.db, random.Random(3), NOW)
        self.assertEqual(result["offers_created"], 0)

    def test_no_partners(self):
        db = InMemoryDbClient()
        db.save(Band(band_id="band-1", name="Famous", fame=2000))
        self.assertEqual(sp.generate_offers(db, random.Random(1), NOW)["offers_created"], 0)


class ContractLifecycleTest(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.save(Band(band_id="band-1", name="Famous", fame=2000, band_balance=100))
        self.offer = BrandOffer(
            band_id="band-1",
            brand_id="brand-1",
            cash_offer=13000,
            expires_at=NOW + 10 * DAY,
            slot_type=SlotType.FESTIVAL,
            exclusivity_category="energy_drinks",
            offer_id="offer-1",
        )
        self.db.save(self.offer)

    def _accept(self, **kwargs):
        return sp.accept_offer(self.db, "offer-1", "band-1", NOW, **kwargs)

    def test_accept(self):
        contract = self._accept(contract_days=30)
        self.assertEqual(contract.base_cash, 13000)
        self.assertEqual(contract.end_date, NOW + 30 * DAY)
        self.assertEqual(self.db.get_offer("offer-1").status, OfferStatus.ACCEPTED)
        stored = self.db.get_contract(contract.contract_id)
        self.assertEqual(stored.status, ContractStatus.ACTIVE)
        history = self.db.list_contract_history(contract.contract_id)
        self.assertEqual([h.event_type for h in history], ["activation"])

    def test_accept_errors(self):
        with self.assertRaises(NotFoundError):
            sp.accept_offer(self.db, "nope", "band-1", NOW)
        with self.assertRaises(ForbiddenError):
            sp.accept_offer(self.db, "offer-1", "band-2", NOW)
        self._accept()
        with self.assertRaises(InvalidStateError):
            self._accept()

    def test_accept_expired_offer(self):
        with self.assertRaises(InvalidStateError):
            sp.accept_offer(self.db, "offer-1", "band-1", NOW + 11 * DAY)
        self.assertEqual(self.db.get_offer("offer-1").status, OfferStatus.EXPIRED)

    def test_exclusivity_conflict(self):
        self.db.save(
            BrandContract(
                offer_id="old",
                band_id="band-1",
                brand_id="brand-9",
                start_date=NOW - DAY,
                end_date=NOW + DAY,
                base_cash=100,
                exclusivity_category="energy_drinks",
            )
        )
        with self.assertRaises(ConflictError):
            self._accept()
        self.assertEqual(self.db.get_offer("offer-1").status, OfferStatus.PENDING)

    def test_event_payouts(self):
        contract = self._accept()
        payouts = sp.process_event_payouts(
            self.db,
            band_id="band-1",
            event_type="festival",
            fame_delta=100,
            event_reference="fest-1",
            now=NOW,
        )
        self.assertEqual(len(payouts), 1)
        self.assertEqual(payouts[0].base_amount, 1950)
        self.assertEqual(payouts[0].bonus_amount, 40)
        self.assertEqual(self.db.get_band("band-1").band_balance, 100 + 1990)
        self.assertEqual(len(self.db.list_payouts(contract.contract_id)), 1)

        # Festival contracts do not cover venue gigs.
        self.assertEqual(
            sp.process_event_payouts(self.db, band_id="band-1", event_type="venue", now=NOW),
            [],
        )

    def test_fame_gain_bonus(self):
        self._accept()
        self.db.save(
            BrandContract(
                offer_id="o2",
                band_id="band-1",
                brand_id="brand-2",
                start_date=NOW,
                end_date=NOW + DAY,
                base_cash=1000,
                slot_type=SlotType.GENERAL,
                contract_id="general",
            )
        )
        payouts = sp.process_event_payouts(
            self.db, band_id="band-1", event_type="fame_gain", fame_delta=100, now=NOW
        )
        self.assertEqual([(p.contract_id, p.base_amount, p.bonus_amount) for p in payouts], [("general", 0, 150)])

    def test_unknown_event(self):
        with self.assertRaises(ValueError):
            sp.process_event_payouts(self.db, band_id="band-1", event_type="party")
        with self.assertRaises(ValueError):
            sp.process_event_payouts(self.db, band_id="band-1", event_type="weekly")

    def test_weekly_payouts(self):
        contract = self._accept(contract_days=90)
        self.assertEqual(sp.process_weekly_payouts(self.db, NOW + 6 * DAY), 0)
        self.assertEqual(sp.process_weekly_payouts(self.db, NOW + 15 * DAY), 2)
        # Already paid through week two.
        self.assertEqual(sp.process_weekly_payouts(self.db, NOW + 15 * DAY), 0)
        payouts = self.db.list_payouts(contract.contract_id)
        self.assertEqual([p.base_amount for p in payouts], [1000, 1000])
        self.assertEqual(self.db.get_band("band-1").band_balance, 2100)
        self.assertEqual(
            self.db.get_contract(contract.contract_id).last_weekly_payout_at, NOW + 14 * DAY
        )

    def test_weekly_payouts_stop_at_end_date(self):
        self._accept(contract_days=10)
        self.assertEqual(sp.process_weekly_payouts(self.db, NOW + 60 * DAY), 1)

    def test_weekly_payouts_skip_contract_with_missing_band(self):
        for contract_id, band_id in (("c-ghost", "band-gone"), ("c-ok", "band-1")):
            self.db.save(
                BrandContract(
                    offer_id=f"offer-{contract_id}",
                    band_id=band_id,
                    brand_id="brand-1",
                    start_date=NOW,
                    end_date=NOW + 90 * DAY,
                    base_cash=1300,
                    contract_id=contract_id,
                )
            )

        with self.assertLogs("sponsorships.sponsorships", level="ERROR"):
            paid = sp.process_weekly_payouts(self.db, NOW + 8 * DAY)

        self.assertEqual(paid, 1)
        self.assertEqual(self.db.list_payouts("c-ghost"), [])
        self.assertIsNone(self.db.get_contract("c-ghost").last_weekly_payout_at)
        self.assertEqual(len(self.db.list_payouts("c-ok")), 1)
        self.assertEqual(self.db.get_contract("c-ok").last_weekly_payout_at, NOW + 7 * DAY)
        self.assertEqual(self.db.get_band("band-1").band_balance, 200)

    def test_terminate(self):
        contract = self._accept()
        terminated = sp.terminate_contract(self.db, contract.contract_id, "brand exit", NOW)
        self.assertEqual(terminated.status, ContractStatus.TERMINATED)
        self.assertEqual(terminated.termination_reason, "brand exit")
        with self.assertRaises(InvalidStateError):
            sp.terminate_contract(self.db, contract.contract_id, now=NOW)
        with self.assertRaises(NotFoundError):
            sp.terminate_contract(self.db, "nope", now=NOW)

    def test_expiry(self):
        contract = self._accept(contract_days=30)
        self.db.save(
            BrandOffer(
                band_id="band-1", brand_id="brand-5", cash_offer=1, expires_at=NOW + DAY, offer_id="stale"
            )
        )
        result = sp.expire_sponsorships(self.db, NOW + 31 * DAY)
        self.assertEqual(result, {"terminated": 0, "expired": 1, "offers_expired": 1})
        self.assertEqual(self.db.get_contract(contract.contract_id).status, ContractStatus.EXPIRED)
        self.assertEqual(self.db.get_offer("stale").status, OfferStatus.EXPIRED)
        expiry = [p for p in self.db.list_payouts(contract.contract_id) if p.event_type == "expiry"]
        self.assertEqual(len(expiry), 1)
        self.assertEqual(expiry[0].total, 0)
        self.assertEqual(self.db.get_band("band-1").band_balance, 100)

    def test_expiry_with_manual_termination(self):
        contract = self._accept(contract_days=30)
        result = sp.expire_sponsorships(
            self.db, NOW, terminate_contract_id=contract.contract_id, termination_reason="breach"
        )
        self.assertEqual(result["terminated"], 1)
        self.assertEqual(result["expired"], 0)


if __name__ == "__main__":
    unittest.main()
