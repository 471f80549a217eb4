import unittest

from workout_engine.safety_limits import limits_for_profile
from workout_engine.time_fitter import (
    estimate_duration_minutes,
    fit_workout,
    parse_reps,
    tolerance_band,
)


def _workout(count, sets, rest=90, reps=10):
    muscles = ["chest", "back", "quadriceps", "hamstrings"]
    return {
        "name": "Test",
        "exercises": [
            {
                "exercise_id": f"ex_{i}",
                "exercise_name": f"Exercise {i}",
                "muscle_group": muscles[i % len(muscles)],
                "category": "compound" if i < 2 else "isolation",
                "sets": sets,
                "reps": reps,
                "rest_seconds": rest,
            }
            for i in range(count)
        ],
    }


class TimeFitterTests(unittest.TestCase):
    def setUp(self):
        self.limits = limits_for_profile("intermediate", "hypertrophy")

    def test_parse_reps(self):
        self.assertEqual(parse_reps("8-10"), (8, 10))
        self.assertEqual(parse_reps(12), (12, 12))
        self.assertEqual(parse_reps(" 6 "), (6, 6))
        self.assertIsNone(parse_reps("lots"))
        self.assertIsNone(parse_reps(True))

    def test_estimate_includes_warmup_and_cooldown(self):
        workout = _workout(1, 3, rest=60)
        # 3 x (10 reps x 3s + 60s) = 270s, plus 480s warm-up and cool-down.
        self.assertEqual(estimate_duration_minutes(workout), 13)

    def test_tolerance_band(self):
        self.assertEqual(tolerance_band(30), (27, 33))
        self.assertEqual(tolerance_band(60), (54, 66))

    def test_expands_short_workout_into_band(self):
        workout = _workout(4, 2)
        self.assertEqual(estimate_duration_minutes(workout), 24)

        fitted, changes = fit_workout(workout, 30, limits=self.limits)
        self.assertGreaterEqual(fitted["estimated_duration_minutes"], 27)
        self.assertLessEqual(fitted["estimated_duration_minutes"], 33)
        self.assertEqual(len(fitted["exercises"]), 4)
        self.assertTrue(all(c["action"] == "added_set" for c in changes))
        # Compounds receive added sets first.
        self.assertGreater(fitted["exercises"][0]["sets"], 2)

    def test_shrinks_long_workout_into_band(self):
        workout = _workout(4, 6)
        self.assertEqual(estimate_duration_minutes(workout), 56)

        fitted, changes = fit_workout(workout, 30, limits=self.limits)
        self.assertGreaterEqual(fitted["estimated_duration_minutes"], 27)
        self.assertLessEqual(fitted["estimated_duration_minutes"], 33)
        self.assertTrue(all(ex["sets"] >= 2 for ex in fitted["exercises"]))
        self.assertTrue(changes)
        # The input is left untouched.
        self.assertEqual(workout["exercises"][0]["sets"], 6)

    def test_set_budget_limits_expansion(self):
        workout = _workout(1, 2)
        fitted, _changes = fit_workout(workout, 60, limits=self.limits, set_budget={"chest": 3})
        self.assertEqual(fitted["exercises"][0]["sets"], 3)

    def test_max_minutes_caps_the_band(self):
        workout = _workout(4, 6)
        fitted, _changes = fit_workout(workout, 60, limits=self.limits, max_minutes=50)
        self.assertLessEqual(fitted["estimated_duration_minutes"], 50)

    def test_rest_lengthens_when_sets_are_capped(self):
        workout = _workout(1, 2)
        fitted, changes = fit_workout(workout, 60, limits=self.limits, set_budget={"chest": 3})

        exercise = fitted["exercises"][0]
        self.assertEqual(exercise["sets"], 3)
        self.assertEqual(exercise["rest_seconds"], self.limits["chest"].target_rest_range[1])
        actions = [c["action"] for c in changes]
        self.assertIn("increased_rest", actions)
        self.assertLess(actions.index("added_set"), actions.index("increased_rest"))

    def test_total_set_cap_is_never_exceeded(self):
        workout = _workout(4, 6)
        fitted, changes = fit_workout(workout, 60, limits=self.limits, max_total_sets=10)

        self.assertEqual(sum(ex["sets"] for ex in fitted["exercises"]), 10)
        self.assertIn("removed_set", [c["action"] for c in changes])
        # Isolation work drops to its floor before the compounds lose sets.
        self.assertEqual([ex["sets"] for ex in fitted["exercises"]], [4, 2, 2, 2])
        self.assertLessEqual(fitted["estimated_duration_minutes"], 66)


if __name__ == "__main__":
    unittest.main()
