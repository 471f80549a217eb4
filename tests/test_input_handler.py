import unittest

from pydantic import ValidationError

from workout_engine.input_handler import AIExercise, AIWeeklyPlan, GenerateWorkoutInput, workout_from_payload


def _request(**overrides):
    payload = {
        "userId": "user-1",
        "profile": {"fitnessLevel": "Intermediate", "goal": "hypertrophy", "age": 32, "weightKg": 80},
        "muscles": ["Chest", "back", "chest"],
        "availableMinutes": 45,
        "equipment": ["Dumbbell", "pull-up bar"],
    }
    payload.update(overrides)
    return payload


class GenerateWorkoutInputTests(unittest.TestCase):
    def test_accepts_camel_case_and_normalizes(self):
        request = GenerateWorkoutInput.model_validate(_request())
        self.assertEqual(request.user_id, "user-1")
        self.assertEqual(request.profile.fitness_level, "intermediate")
        self.assertEqual(request.profile.weight_kg, 80)
        self.assertEqual(request.muscles, ["chest", "back"])
        self.assertEqual(request.equipment, ["dumbbell", "pull_up_bar"])
        self.assertEqual(request.duration_type, "single")
        self.assertTrue(request.use_ai)

    def test_accepts_snake_case(self):
        request = GenerateWorkoutInput.model_validate(
            {
                "user_id": "user-1",
                "profile": {"fitness_level": "beginner", "goal": "strength", "age": 40},
                "muscles": ["full_body"],
                "available_minutes": 30,
                "duration_type": "weekly",
                "use_ai": False,
            }
        )
        self.assertEqual(request.duration_type, "weekly")
        self.assertFalse(request.use_ai)

    def test_rejects_bad_values(self):
        cases = [
            {"muscles": ["wings"]},
            {"muscles": []},
            {"availableMinutes": 5},
            {"availableMinutes": 500},
            {"equipment": ["rowing_machine"]},
            {"durationType": "monthly"},
            {"profile": {"fitnessLevel": "legend", "goal": "hypertrophy", "age": 30}},
            {"profile": {"fitnessLevel": "beginner", "goal": "hypertrophy", "age": 8}},
            {"notes": "x" * 501},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    GenerateWorkoutInput.model_validate(_request(**overrides))


class AIResponseSchemaTests(unittest.TestCase):
    def _exercise(self, **overrides):
        data = {
            "exercise_name": "Bench Press",
            "muscle_group": "Chest",
            "sets": 4,
            "reps": "8-10",
            "rest_seconds": 90,
        }
        data.update(overrides)
        return data

    def test_reps_accept_count_or_range(self):
        self.assertEqual(AIExercise.model_validate(self._exercise()).reps, "8-10")
        self.assertEqual(AIExercise.model_validate(self._exercise(reps=12)).reps, 12)
        with self.assertRaises(ValidationError):
            AIExercise.model_validate(self._exercise(reps="until failure"))

    def test_negative_weight_is_rejected(self):
        self.assertIsNone(AIExercise.model_validate(self._exercise()).weight_suggestion_kg)
        self.assertEqual(AIExercise.model_validate(self._exercise(weight_suggestion_kg=0)).weight_suggestion_kg, 0.0)
        with self.assertRaises(ValidationError):
            AIExercise.model_validate(self._exercise(weight_suggestion_kg=-40.0))

    def test_muscle_group_is_normalized(self):
        exercise = AIExercise.model_validate(self._exercise(muscle_group="Full Body"))
        self.assertEqual(exercise.muscle_group, "full_body")

    def test_weekly_plan_rejects_more_than_seven_days(self):
        days = [{"day": f"Day {i}", "is_rest": True} for i in range(8)]
        with self.assertRaises(ValidationError):
            AIWeeklyPlan.model_validate({"plan_name": "Too long", "days": days})

    def test_workout_from_payload_maps_names(self):
        workout = workout_from_payload(
            {
                "workout_name": "Push Day",
                "estimated_duration_minutes": 45,
                "exercises": [self._exercise(muscle_group="chest", notes=None)],
            }
        )
        self.assertEqual(workout["name"], "Push Day")
        self.assertEqual(workout["exercises"][0]["exercise_id"], "ai_1")
        self.assertEqual(workout["exercises"][0]["notes"], "")
        self.assertEqual(workout["estimated_duration_minutes"], 45)


if __name__ == "__main__":
    unittest.main()
