import unittest

from workout_engine.generation_context import (
    add_workout_volume,
    normalize_weekly_context,
    remaining_weekly_sets,
    workout_volume,
)
from workout_engine.safety_limits import limits_for_profile


class GenerationContextTests(unittest.TestCase):
    def test_normalize_cleans_keys_and_values(self):
        context = normalize_weekly_context(
            {"muscle_volume": {" Chest ": "6", "chest": 2, "back": -3, "": 4}, "consecutive_training_days": None}
        )
        self.assertEqual(context["muscle_volume"], {"chest": 8, "back": 0})
        self.assertEqual(context["consecutive_training_days"], 0)
        self.assertIsNone(context["days_since_deload"])

    def test_add_workout_volume_accumulates_without_mutating(self):
        original = {"muscle_volume": {"chest": 4}, "consecutive_training_days": 1}
        workout = {"exercises": [{"muscle_group": "chest", "sets": 3}, {"muscle_group": "back", "sets": 4}]}

        updated = add_workout_volume(original, workout)
        self.assertEqual(updated["muscle_volume"], {"chest": 7, "back": 4})
        self.assertEqual(updated["consecutive_training_days"], 2)
        self.assertEqual(original["muscle_volume"], {"chest": 4})

        rested = add_workout_volume(updated, None, trained=False)
        self.assertEqual(rested["consecutive_training_days"], 0)
        self.assertEqual(rested["muscle_volume"], updated["muscle_volume"])

    def test_workout_volume_sums_per_muscle(self):
        workout = {"exercises": [{"muscle_group": "Chest", "sets": 3}, {"muscle_group": "chest", "sets": "2"}]}
        self.assertEqual(workout_volume(workout), {"chest": 5})

    def test_remaining_weekly_sets_never_negative(self):
        limits = limits_for_profile("beginner", "hypertrophy")
        remaining = remaining_weekly_sets({"muscle_volume": {"chest": 12, "back": 4}}, limits, ["chest", "back", "wings"])
        self.assertEqual(remaining, {"chest": 0, "back": 6})


if __name__ == "__main__":
    unittest.main()
