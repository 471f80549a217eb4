import unittest

from workout_engine.progression_engine import (
    suggest_progression,
    suggest_workout_progression,
    summarize_progression,
)
from workout_engine.safety_limits import limits_for, limits_for_profile


WEEK_DATES = [
    "2026-01-05",
    "2026-01-12",
    "2026-01-19",
    "2026-01-26",
    "2026-02-02",
    "2026-02-09",
    "2026-02-16",
    "2026-02-23",
]


class ProgressionEngineTests(unittest.TestCase):
    def setUp(self):
        self.limits = limits_for("intermediate", "hypertrophy", "chest")

    def test_steady_weekly_gains_suggest_more_weight(self):
        history = [
            {"date": date, "sets": 3, "reps": 8, "weight_kg": 60 + 5 * i, "rpe": 7.5}
            for i, date in enumerate(WEEK_DATES)
        ]
        suggestion = suggest_progression(history, self.limits, "bench_press", "Bench Press")

        self.assertEqual(suggestion["type"], "increase_weight")
        self.assertGreater(suggestion["change"]["weight_diff_kg"], 0)
        self.assertEqual(suggestion["trend"], "increasing")
        self.assertEqual(suggestion["current"]["weight_kg"], 95.0)
        self.assertEqual(suggestion["exercise_name"], "Bench Press")

    def test_single_session_returns_none(self):
        history = [{"date": "2026-01-05", "sets": 3, "reps": 8, "weight_kg": 60, "rpe": 7}]
        self.assertIsNone(suggest_progression(history, self.limits))

    def test_unparseable_sessions_are_ignored(self):
        history = [
            {"date": "2026-01-05", "sets": 3, "reps": 8, "weight_kg": "sixty"},
            {"date": "2026-01-12", "sets": 3, "reps": 8, "weight_kg": 60},
        ]
        self.assertIsNone(suggest_progression(history, self.limits))

    def test_repeated_max_effort_triggers_deload(self):
        history = [
            {"date": date, "sets": 3, "reps": 6, "weight_kg": 100, "rpe": 9.5}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)

        self.assertEqual(suggestion["type"], "deload")
        self.assertEqual(suggestion["confidence"], "high")
        self.assertEqual(suggestion["suggested"]["weight_kg"], 85.0)
        self.assertLess(suggestion["change"]["weight_diff_kg"], 0)

    def test_light_load_deload_cuts_reps_when_weight_cannot_drop(self):
        history = [
            {"date": date, "sets": 3, "reps": 10, "weight_kg": 5, "rpe": 9.5}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)

        self.assertEqual(suggestion["type"], "deload")
        self.assertEqual(suggestion["suggested"]["weight_kg"], 5.0)
        self.assertEqual(suggestion["suggested"]["reps"], 8)
        self.assertEqual(suggestion["change"]["reps_diff"], -2)
        self.assertIn("cannot drop by a 1.25 kg step", suggestion["reasoning"])
        self.assertIn("cut reps to 8", suggestion["reasoning"])

    def test_light_load_deload_drops_a_set_at_single_reps(self):
        history = [
            {"date": date, "sets": 3, "reps": 1, "weight_kg": 2.5, "rpe": 9}
            for date in WEEK_DATES[:2]
        ]
        suggestion = suggest_progression(history, self.limits)

        self.assertEqual(suggestion["type"], "deload")
        self.assertEqual(suggestion["suggested"]["weight_kg"], 2.5)
        self.assertEqual(suggestion["change"]["sets_diff"], -1)
        self.assertIn("drop to 2 set(s)", suggestion["reasoning"])

    def test_light_load_at_rep_ceiling_explains_added_set(self):
        history = [
            {"date": date, "sets": 3, "reps": 12, "weight_kg": 10, "rpe": 6}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)

        self.assertEqual(suggestion["type"], "add_set")
        self.assertEqual(suggestion["change"]["weight_diff_kg"], 0)
        self.assertIn("10 kg is too light for a 1.25 kg step within the 4% limit", suggestion["reasoning"])

    def test_light_load_at_set_cap_maintains_with_reason(self):
        history = [
            {"date": date, "sets": 6, "reps": 12, "weight_kg": 10, "rpe": 6}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)

        self.assertEqual(suggestion["type"], "maintain")
        self.assertIn("too light", suggestion["reasoning"])

    def test_rpe_read_from_log_text(self):
        history = [
            {"date": WEEK_DATES[0], "sets": 3, "reps": 6, "weight_kg": 80, "log": "solid, RPE 7"},
            {"date": WEEK_DATES[1], "sets": 3, "reps": 6, "weight_kg": 80, "log": "grinder RPE 9.5"},
            {"date": WEEK_DATES[2], "sets": 3, "reps": 6, "weight_kg": 80, "log": "rpe: 9"},
        ]
        suggestion = suggest_progression(history, self.limits)
        self.assertEqual(suggestion["type"], "deload")
        self.assertEqual(suggestion["suggested"]["weight_kg"], 72.5)

    def test_stable_weight_below_rep_ceiling_adds_reps(self):
        history = [
            {"date": date, "sets": 3, "reps": [8, 8, 7], "weight_kg": 50, "rpe": 7}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)
        self.assertEqual(suggestion["type"], "increase_reps")
        self.assertEqual(suggestion["current"]["reps"], 7)
        self.assertEqual(suggestion["suggested"]["reps"], 9)

    def test_rep_ceiling_with_moderate_effort_adds_set(self):
        history = [
            {"date": date, "sets": 3, "reps": 12, "weight_kg": 50, "rpe": 8}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)
        self.assertEqual(suggestion["type"], "add_set")
        self.assertEqual(suggestion["change"]["sets_diff"], 1)

    def test_rep_ceiling_with_easy_effort_adds_weight_and_resets_reps(self):
        history = [
            {"date": date, "sets": 3, "reps": 12, "weight_kg": 50, "rpe": 6}
            for date in WEEK_DATES[:3]
        ]
        suggestion = suggest_progression(history, self.limits)
        self.assertEqual(suggestion["type"], "increase_weight")
        self.assertEqual(suggestion["suggested"]["reps"], 8)
        self.assertEqual(suggestion["suggested"]["weight_kg"], 51.25)

    def test_decreasing_trend_maintains(self):
        history = [
            {"date": date, "sets": 3, "reps": 8, "weight_kg": 70 - 2.5 * i, "rpe": 8}
            for i, date in enumerate(WEEK_DATES[:4])
        ]
        suggestion = suggest_progression(history, self.limits)
        self.assertEqual(suggestion["type"], "maintain")
        self.assertEqual(suggestion["trend"], "decreasing")

    def test_workout_level_summary(self):
        limits = limits_for_profile("intermediate", "hypertrophy")
        histories = {
            "bench_press": {
                "exercise_name": "Bench Press",
                "muscle_group": "chest",
                "history": [
                    {"date": date, "sets": 3, "reps": 8, "weight_kg": 60 + 5 * i, "rpe": 7}
                    for i, date in enumerate(WEEK_DATES[:4])
                ],
            },
            "curl": {
                "exercise_name": "Curl",
                "muscle_group": "biceps",
                "history": [{"date": WEEK_DATES[0], "sets": 3, "reps": 10, "weight_kg": 12}],
            },
        }
        suggestions = suggest_workout_progression(histories, limits)
        self.assertEqual(len(suggestions), 1)
        self.assertEqual(suggestions[0]["exercise_id"], "bench_press")

        summary = summarize_progression(suggestions)
        self.assertEqual(summary["total"], 1)
        self.assertEqual(summary["overall_trend"], "progressing")
        self.assertEqual(summarize_progression([])["overall_trend"], "insufficient_data")


if __name__ == "__main__":
    unittest.main()
