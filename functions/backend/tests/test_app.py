import random
import unittest

from fastapi.testclient import TestClient

from backend.app import create_app
from backend.dependencies import get_db_client, get_queue_client, get_rng
from backend.db import InMemoryDbClient
from shared.fixtures import seed_festival_participation, seed_gig_world
from shared.types import BrandOffer, City, OfferStatus


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        app = create_app()
        app.dependency_overrides[get_rng] = lambda: random.Random(7)
        self.client = TestClient(app)
        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()

    def test_complete_gig_and_fetch_outcome(self):
        seed_gig_world(self.db)
        response = self.client.post("/api/gigs/gig-1/complete")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["band_id"], "band-1")
        self.assertLessEqual(payload["overall_rating"], 25)

        outcome_resp = self.client.get("/api/gigs/gig-1/outcome")
        self.assertEqual(outcome_resp.status_code, 200)
        outcome = outcome_resp.json()
        self.assertEqual(outcome["outcome"]["net_profit"], payload["net_profit"])
        self.assertEqual(len(outcome["performances"]), 3)

        again = self.client.post("/api/gigs/gig-1/complete")
        self.assertEqual(again.status_code, 409)

    def test_complete_unknown_gig(self):
        self.assertEqual(self.client.post("/api/gigs/missing/complete").status_code, 404)
        self.assertEqual(self.client.get("/api/gigs/missing/outcome").status_code, 404)

    def test_complete_festival_performance(self):
        seed_festival_participation(self.db)
        body = {
            "participation_id": "part-1",
            "band_id": "band-1",
            "performance_score": 88,
            "crowd_energy_peak": 92,
            "crowd_energy_avg": 75,
            "event_responses": [95],
            "songs_performed": 9,
        }
        response = self.client.post("/api/festivals/performances/complete", json=body)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(len(payload["reviews"]), 3)
        self.assertGreater(payload["performance"]["payment_earned"], 0)

        again = self.client.post("/api/festivals/performances/complete", json=body)
        self.assertEqual(again.status_code, 409)

    def test_festival_rejects_out_of_range_score(self):
        seed_festival_participation(self.db)
        response = self.client.post(
            "/api/festivals/performances/complete",
            json={
                "participation_id": "part-1",
                "band_id": "band-1",
                "performance_score": 140,
                "crowd_energy_peak": 50,
                "crowd_energy_avg": 50,
            },
        )
        self.assertEqual(response.status_code, 422)

    def test_city_laws(self):
        self.db.save(City(city_id="city-1", name="Manchester", country="UK", mayor_user_id="mayor-1"))
        response = self.client.get("/api/cities/city-1/laws")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["laws"]["sales_tax_rate"], 8.0)

        forbidden = self.client.put(
            "/api/cities/city-1/laws",
            json={"user_id": "someone", "updates": {"sales_tax_rate": 3}},
        )
        self.assertEqual(forbidden.status_code, 403)

        invalid = self.client.put(
            "/api/cities/city-1/laws",
            json={"user_id": "mayor-1", "updates": {"sales_tax_rate": 300}},
        )
        self.assertEqual(invalid.status_code, 400)

        updated = self.client.put(
            "/api/cities/city-1/laws",
            json={
                "user_id": "mayor-1",
                "updates": {"sales_tax_rate": 3, "prohibited_genres": ["metal"]},
                "reason": "Quiet streets",
            },
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(len(updated.json()["changes"]), 2)

        history = self.client.get("/api/cities/city-1/laws/history")
        self.assertEqual(history.status_code, 200)
        self.assertEqual(len(history.json()["changes"]), 2)

        self.assertEqual(self.client.get("/api/cities/nope/laws").status_code, 404)
        self.assertEqual(self.client.get("/api/cities/nope/laws/history").status_code, 404)

    def test_sponsorship_flow(self):
        seed_gig_world(self.db)
        self.db.save(
            BrandOffer(
                band_id="band-1",
                brand_id="brand-1",
                cash_offer=13000,
                expires_at=4_000_000_000.0,
                slot_type="tour",
                offer_id="offer-1",
            )
        )
        wrong_band = self.client.post(
            "/api/sponsorships/offers/offer-1/accept", json={"band_id": "band-2"}
        )
        self.assertEqual(wrong_band.status_code, 403)

        accepted = self.client.post(
            "/api/sponsorships/offers/offer-1/accept", json={"band_id": "band-1"}
        )
        self.assertEqual(accepted.status_code, 200)
        contract = accepted.json()["contract"]
        self.assertEqual(contract["status"], "active")
        self.assertEqual(self.db.get_offer("offer-1").status, OfferStatus.ACCEPTED)

        payouts = self.client.post(
            "/api/sponsorships/payouts",
            json={"band_id": "band-1", "event_type": "tour", "fame_delta": 50},
        )
        self.assertEqual(payouts.status_code, 200)
        self.assertEqual(payouts.json()["total"], 1560 + 20)

        bad_event = self.client.post(
            "/api/sponsorships/payouts", json={"band_id": "band-1", "event_type": "party"}
        )
        self.assertEqual(bad_event.status_code, 400)

        terminated = self.client.post(
            f"/api/sponsorships/contracts/{contract['contract_id']}/terminate",
            json={"reason": "brand exit"},
        )
        self.assertEqual(terminated.status_code, 200)
        self.assertEqual(terminated.json()["contract"]["status"], "terminated")

        again = self.client.post(
            f"/api/sponsorships/contracts/{contract['contract_id']}/terminate", json={}
        )
        self.assertEqual(again.status_code, 400)

    def test_enqueue_job_and_status(self):
        queue = get_queue_client()
        response = self.client.post(
            "/api/jobs", json={"job_type": "complete_gig", "payload": {"gig_id": "gig-1"}}
        )
        self.assertEqual(response.status_code, 202)
        payload = response.json()
        self.assertEqual(payload["job_type"], "complete_gig")
        self.assertEqual(payload["status"], "WAITING")
        self.assertGreaterEqual(queue.depth(), 1)

        status_resp = self.client.get(f"/api/job-status/{payload['job_id']}")
        self.assertEqual(status_resp.status_code, 200)
        status_payload = status_resp.json()
        self.assertEqual(status_payload["job_id"], payload["job_id"])
        self.assertEqual(status_payload["status"], "WAITING")

    def test_unknown_job_type(self):
        response = self.client.post("/api/jobs", json={"job_type": "make_coffee"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.client.get("/api/job-status/missing").status_code, 404)


if __name__ == "__main__":
    unittest.main()
