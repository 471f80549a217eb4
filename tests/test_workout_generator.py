import unittest

from workout_engine.plan_validator import validate_workout
from workout_engine.safety_limits import FITNESS_LEVELS, TRAINING_GOALS, frequency_limits, limits_for_profile
from workout_engine.workout_generator import generate_weekly_plan, generate_workout, training_days_for
from workout_engine.workout_templates import EXERCISE_TEMPLATES, available_templates, expand_muscles, split_for


def _profile(level="intermediate", goal="hypertrophy", age=30, weight_kg=80.0, **extra):
    profile = {"fitness_level": level, "goal": goal, "age": age, "weight_kg": weight_kg}
    profile.update(extra)
    return profile


class WorkoutGeneratorTests(unittest.TestCase):
    def test_output_is_deterministic(self):
        first = generate_workout(_profile(), ["chest", "back"], 45)
        second = generate_workout(_profile(), ["chest", "back"], 45)
        self.assertEqual(first, second)

    def test_generated_workouts_pass_validation(self):
        cases = [
            ("beginner", "hypertrophy", 30),
            ("intermediate", "strength", 40),
            ("advanced", "endurance", 28),
            ("elite", "rehabilitation", 70),
            ("intermediate", "fat_loss", 50),
        ]
        for level, goal, age in cases:
            with self.subTest(level=level, goal=goal):
                profile = _profile(level, goal, age)
                workout = generate_workout(profile, ["chest", "back", "quadriceps"], 60)
                result = validate_workout(workout, None, limits_for_profile(level, goal))
                self.assertTrue(result["valid"], result["errors"])
                self.assertTrue(workout["exercises"])

    def test_compounds_lead_the_session(self):
        workout = generate_workout(_profile(), ["chest"], 60)
        categories = [ex["category"] for ex in workout["exercises"]]
        self.assertEqual(categories, sorted(categories, key=lambda c: 0 if c == "compound" else 1))

    def test_bodyweight_only_equipment(self):
        workout = generate_workout(_profile(), ["chest", "quadriceps"], 45, equipment=["bodyweight"])
        self.assertTrue(workout["exercises"])
        for exercise in workout["exercises"]:
            self.assertEqual(exercise["weight_suggestion_kg"], 0.0)

    def test_weight_suggestion_unknown_without_body_weight(self):
        workout = generate_workout(_profile(weight_kg=None), ["chest"], 45, equipment=["barbell", "bench"])
        loaded = [ex for ex in workout["exercises"] if ex["exercise_id"] == "barbell_bench_press"]
        self.assertTrue(loaded)
        self.assertIsNone(loaded[0]["weight_suggestion_kg"])

    def test_exhausted_weekly_volume_yields_empty_workout(self):
        context = {"muscle_volume": {"chest": 10}}
        workout = generate_workout(_profile(level="beginner"), ["chest"], 45, weekly_context=context)
        self.assertEqual(workout["exercises"], [])
        self.assertIn("Weekly volume already reached", workout["description"])

    def test_remaining_weekly_volume_is_respected(self):
        context = {"muscle_volume": {"chest": 13}}
        workout = generate_workout(_profile(), ["chest"], 60, weekly_context=context)
        chest_sets = sum(ex["sets"] for ex in workout["exercises"] if ex["muscle_group"] == "chest")
        self.assertLessEqual(chest_sets, 3)

    def test_older_athletes_get_lower_rpe_cap_in_notes(self):
        workout = generate_workout(_profile(age=70), ["back"], 45)
        self.assertIn("RPE 7", workout["exercises"][0]["notes"])

    def test_single_muscle_half_hour_sessions_stay_within_band(self):
        for muscle in EXERCISE_TEMPLATES:
            for level in FITNESS_LEVELS:
                for goal in TRAINING_GOALS:
                    with self.subTest(muscle=muscle, level=level, goal=goal):
                        workout = generate_workout(_profile(level, goal), [muscle], 30)
                        self.assertTrue(workout["exercises"])
                        minutes = workout["estimated_duration_minutes"]
                        self.assertLessEqual(minutes, 33)
                        if minutes < 27:
                            self.assertIn("Shorter than the requested 30 minutes", workout["description"])
                        else:
                            self.assertNotIn("Shorter than", workout["description"])
                        result = validate_workout(workout, None, limits_for_profile(level, goal))
                        self.assertTrue(result["valid"], result["errors"])

    def test_short_session_adds_a_second_exercise(self):
        workout = generate_workout(_profile("beginner", "hypertrophy"), ["biceps"], 30)
        self.assertGreaterEqual(len(workout["exercises"]), 2)
        self.assertGreaterEqual(workout["estimated_duration_minutes"], 27)
        self.assertLessEqual(workout["estimated_duration_minutes"], 33)

    def test_capped_session_reports_the_shortfall(self):
        workout = generate_workout(_profile("beginner", "fat_loss"), ["chest"], 30)
        chest_sets = sum(ex["sets"] for ex in workout["exercises"])
        self.assertEqual(chest_sets, 8)
        self.assertLess(workout["estimated_duration_minutes"], 27)
        self.assertIn("set limits for these muscles are reached", workout["description"])

    def test_training_days_clamped_to_level(self):
        self.assertEqual(training_days_for(_profile(level="beginner"), days_per_week=6), 4)
        self.assertEqual(training_days_for(_profile(level="advanced", goal="rehabilitation")), 4)

    def test_weekly_plan_structure_and_volume(self):
        profile = _profile(level="beginner")
        plan = generate_weekly_plan(profile, available_minutes=60)
        limits = limits_for_profile("beginner", "hypertrophy")

        self.assertEqual(len(plan["days"]), 7)
        self.assertEqual(plan["days"][0]["day"], "Monday")
        self.assertLessEqual(plan["training_days"], frequency_limits("beginner")["max_days"])
        self.assertEqual(plan["training_days"], sum(1 for d in plan["days"] if not d["is_rest"]))
        for muscle, sets in plan["weekly_volume"].items():
            self.assertLessEqual(sets, limits[muscle].max_weekly_sets, muscle)
        for day in plan["days"]:
            if day["is_rest"]:
                self.assertIsNone(day["workout"])

    def test_weekly_plan_filters_to_requested_muscles(self):
        plan = generate_weekly_plan(_profile(), muscles=["chest"], available_minutes=45)
        self.assertGreater(plan["training_days"], 0)
        self.assertEqual(set(plan["weekly_volume"]), {"chest"})


class WorkoutTemplatesTests(unittest.TestCase):
    def test_expand_full_body_preserves_order(self):
        self.assertEqual(
            expand_muscles(["chest", "full_body"]),
            ["chest", "quadriceps", "back", "hamstrings", "shoulders", "core"],
        )

    def test_every_muscle_has_a_bodyweight_option(self):
        for muscle in EXERCISE_TEMPLATES:
            with self.subTest(muscle=muscle):
                self.assertTrue(available_templates(muscle, ["bodyweight"]))

    def test_equipment_filter(self):
        names = {t.exercise_id for t in available_templates("chest", ["dumbbell"])}
        self.assertIn("push_up", names)
        self.assertNotIn("dumbbell_bench_press", names)
        self.assertNotIn("barbell_bench_press", names)

    def test_split_for_clamps_days(self):
        split, pattern = split_for(7)
        self.assertEqual(len(split), 6)
        self.assertEqual(len(pattern), 6)


if __name__ == "__main__":
    unittest.main()
