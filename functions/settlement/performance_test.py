import random
import unittest

from settlement import performance as perf
from shared.types import BandMember, CrewMember, MerchItem, StageEquipment


class FactorAggregationTest(unittest.TestCase):
    def test_defaults_when_nothing_owned(self):
        self.assertEqual(perf.equipment_quality([]), 40.0)
        self.assertEqual(perf.crew_skill([]), 40.0)
        self.assertEqual(perf.member_skill_average([]), 50.0)
        self.assertEqual(perf.stage_skill_average([]), 50.0)

    def test_averages(self):
        equipment = [
            StageEquipment("e1", "b", "amp", quality_rating=60),
            StageEquipment("e2", "b", "mic", quality_rating=80),
        ]
        crew = [CrewMember("c1", "b", "Sam", skill_level=30)]
        self.assertEqual(perf.equipment_quality(equipment), 70.0)
        self.assertEqual(perf.crew_skill(crew), 30.0)

    def test_gear_bonus_is_capped(self):
        member = BandMember("b", "u", skill_level=100, gear_bonus=0.9)
        self.assertEqual(perf.effective_member_skill(member), 150)
        member = BandMember("b", "u", skill_level=60, gear_bonus=0.25)
        self.assertEqual(perf.effective_member_skill(member), 75)

    def test_touring_members_are_ignored(self):
        members = [
            BandMember("b", "u1", skill_level=80),
            BandMember("b", "u2", skill_level=10, is_touring_member=True),
        ]
        self.assertEqual(perf.member_skill_average(members), 80.0)

    def test_stage_skill_blends_presence_and_charisma(self):
        members = [BandMember("b", "u1", stage_presence=20, charisma=10)]
        # (20 * 0.6 + 10 * 0.4) / 20 * 100
        self.assertEqual(perf.stage_skill_average(members), 80.0)


class SongScoringTest(unittest.TestCase):
    def _factors(self, **overrides):
        values = dict(
            song_quality=800,
            rehearsal_level=80,
            band_chemistry=60,
            equipment_quality=70,
            crew_skill_level=60,
            member_skill_average=75,
            stage_skill_average=65,
            venue_capacity_used=85,
        )
        values.update(overrides)
        return perf.PerformanceFactors(**values)

    def test_score_is_within_scale(self):
        rng = random.Random(7)
        for position in range(1, 30):
            scored = perf.calculate_song_performance(self._factors(), rng, position=position)
            self.assertGreaterEqual(scored.score, 0)
            self.assertLessEqual(scored.score, perf.MAX_SCORE)
            self.assertEqual(set(scored.breakdown), set(perf.SONG_WEIGHTS))

    def test_same_seed_same_score(self):
        first = perf.calculate_song_performance(self._factors(), random.Random(42), position=2)
        second = perf.calculate_song_performance(self._factors(), random.Random(42), position=2)
        self.assertEqual(first.score, second.score)
        self.assertEqual(first.stage_event, second.stage_event)

    def test_better_inputs_score_higher_on_average(self):
        def mean(factors):
            rng = random.Random(3)
            scores = [
                perf.calculate_song_performance(factors, rng, position=1).score
                for _ in range(200)
            ]
            return sum(scores) / len(scores)

        strong = mean(self._factors())
        weak = mean(
            self._factors(song_quality=200, rehearsal_level=0, band_chemistry=10)
        )
        self.assertGreater(strong, weak)

    def test_crowd_response_thresholds(self):
        self.assertEqual(perf.song_crowd_response(22), "ecstatic")
        self.assertEqual(perf.song_crowd_response(18), "enthusiastic")
        self.assertEqual(perf.song_crowd_response(14), "engaged")
        self.assertEqual(perf.song_crowd_response(10), "mixed")
        self.assertEqual(perf.song_crowd_response(9.99), "disappointed")

    def test_capacity_multiplier(self):
        self.assertEqual(perf.capacity_multiplier(100), 1.15)
        self.assertEqual(perf.capacity_multiplier(80), 1.08)
        self.assertEqual(perf.capacity_multiplier(60), 1.0)
        self.assertEqual(perf.capacity_multiplier(40), 0.95)
        self.assertEqual(perf.capacity_multiplier(10), 0.85)


class ScriptedRandom(random.Random):
    """Random whose ``random()`` replays a script; choice() stays seeded."""

    def __init__(self, rolls):
        super().__init__(0)
        self._rolls = list(rolls)

    def random(self):
        return self._rolls.pop(0)

    def getrandbits(self, k):
        return super().getrandbits(k)


class StageEventTest(unittest.TestCase):
    def test_minor_mishap(self):
        event = perf.roll_stage_event(ScriptedRandom([0.01, 0.5]), position=1)
        self.assertEqual((event.event_type, event.severity, event.impact_score), ("mishap", "minor", -1))
        self.assertIn(event.description, perf.MISHAPS)

    def test_moderate_mishap(self):
        event = perf.roll_stage_event(ScriptedRandom([0.049, 0.7]), position=6)
        self.assertEqual((event.event_type, event.severity, event.impact_score), ("mishap", "moderate", -3))

    def test_perfect_moment_needs_late_position(self):
        event = perf.roll_stage_event(ScriptedRandom([0.97]), position=4)
        self.assertEqual((event.event_type, event.impact_score), ("perfect_moment", 3))

        # Early songs fall through to the rare-event roll instead.
        self.assertIsNone(perf.roll_stage_event(ScriptedRandom([0.97, 0.5]), position=3))

    def test_rare_events(self):
        cases = [
            (0.1, "surprise_guest", 5),
            (0.5, "crowd_surge", 2),
            (0.9, "technical_failure", -5),
        ]
        for rare, event_type, impact in cases:
            with self.subTest(event_type=event_type):
                event = perf.roll_stage_event(ScriptedRandom([0.5, 0.01, rare]), position=2)
                self.assertEqual((event.event_type, event.impact_score), (event_type, impact))

    def test_quiet_song(self):
        self.assertIsNone(perf.roll_stage_event(ScriptedRandom([0.5, 0.02]), position=5))

    def test_event_rates(self):
        rng = random.Random(1234)
        early = [perf.roll_stage_event(rng, position=1) for _ in range(20000)]
        late = [perf.roll_stage_event(rng, position=5) for _ in range(20000)]
        self.assertFalse(any(e and e.event_type == "perfect_moment" for e in early))
        perfect = sum(1 for e in late if e and e.event_type == "perfect_moment")
        mishaps = sum(1 for e in early if e and e.event_type == "mishap")
        self.assertAlmostEqual(perfect / 20000, 0.05, delta=0.01)
        self.assertAlmostEqual(mishaps / 20000, 0.05, delta=0.01)


class StageMomentScoringTest(unittest.TestCase):
    def test_weighted_parts(self):
        scored = perf.calculate_stage_moment_score(
            perf.StageMomentFactors(
                crowd_appeal=100, skill_match=100, band_chemistry=100, member_skill_average=100
            )
        )
        self.assertEqual(scored.score, 25.0)
        self.assertEqual(scored.crowd_response, "ecstatic")
        self.assertIsNone(scored.stage_event)

    def test_skill_match(self):
        self.assertEqual(perf.stage_moment_skill_match(80, 0), 70.0)
        self.assertEqual(perf.stage_moment_skill_match(40, 80), 50.0)
        self.assertEqual(perf.stage_moment_skill_match(200, 80), 100.0)


class GigFiguresTest(unittest.TestCase):
    def test_grades(self):
        self.assertEqual(perf.performance_grade(23), "S+")
        self.assertEqual(perf.performance_grade(21), "S")
        self.assertEqual(perf.performance_grade(18), "A")
        self.assertEqual(perf.performance_grade(15), "B")
        self.assertEqual(perf.performance_grade(12), "C")
        self.assertEqual(perf.performance_grade(8), "D")
        self.assertEqual(perf.performance_grade(7.9), "F")

    def test_chemistry_change(self):
        self.assertEqual(perf.chemistry_change(20), 3)
        self.assertEqual(perf.chemistry_change(17), 2)
        self.assertEqual(perf.chemistry_change(14), 1)
        self.assertEqual(perf.chemistry_change(12), 0)
        self.assertEqual(perf.chemistry_change(5), -1)

    def test_attendance_never_exceeds_capacity(self):
        rng = random.Random(1)
        for _ in range(100):
            attendance = perf.calculate_attendance(
                rng, capacity=200, fame=100000, recent_buzz=20, law_multiplier=1.1
            )
            self.assertGreaterEqual(attendance, 1)
            self.assertLessEqual(attendance, 200)

    def test_attendance_zero_capacity(self):
        self.assertEqual(perf.calculate_attendance(random.Random(1), capacity=0, fame=10), 0)

    def test_prohibited_genre_lowers_attendance(self):
        normal = perf.calculate_attendance(random.Random(5), capacity=1000, fame=0)
        prohibited = perf.calculate_attendance(
            random.Random(5), capacity=1000, fame=0, law_multiplier=0.6
        )
        self.assertLess(prohibited, normal)

    def test_merch_sales_limited_by_stock(self):
        merch = [MerchItem("m1", "b", "tshirt", selling_price=20, stock_quantity=10)]
        sales = perf.calculate_merch_sales(1000, 0, 25, merch)
        self.assertEqual(sales.items_sold, 10)
        self.assertEqual(sales.revenue, 200)

    def test_no_merch_no_sales(self):
        sales = perf.calculate_merch_sales(1000, 0, 25, [])
        self.assertEqual((sales.items_sold, sales.revenue), (0, 0))

    def test_equipment_wear(self):
        equipment = [StageEquipment("e1", "b", "amp", purchase_cost=1000)]
        self.assertEqual(perf.equipment_wear_cost(equipment), 20)

    def test_fame_gained(self):
        self.assertEqual(perf.fame_gained(25, 400), 200)
        self.assertEqual(perf.fame_gained(25, 400, 0.5), 100)


if __name__ == "__main__":
    unittest.main()
