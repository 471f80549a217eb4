"""
Static exercise templates and split configurations used by the deterministic
generator.
"""

from collections import namedtuple
from types import MappingProxyType


ExerciseTemplate = namedtuple(
    "ExerciseTemplate",
    ["exercise_id", "name", "category", "equipment", "load_ratio"],
)

BODYWEIGHT = "bodyweight"

EQUIPMENT_TYPES = (
    "barbell",
    "dumbbell",
    "cable",
    "machine",
    "kettlebell",
    "bench",
    "pull_up_bar",
    "resistance_band",
    BODYWEIGHT,
)

# Muscles trained when a request asks for "full_body".
FULL_BODY_MUSCLES = ("quadriceps", "chest", "back", "hamstrings", "shoulders", "core")

MAJOR_MUSCLES = frozenset(["chest", "back", "shoulders", "quadriceps", "hamstrings", "glutes"])


def _t(exercise_id, name, category, equipment=(), load_ratio=None):
    return ExerciseTemplate(exercise_id, name, category, tuple(equipment), load_ratio)


# load_ratio is the working load as a fraction of body weight for an
# intermediate lifter (per dumbbell for dumbbell work). None means bodyweight.
EXERCISE_TEMPLATES = MappingProxyType(
    {
        "chest": (
            _t("barbell_bench_press", "Barbell Bench Press", "compound", ("barbell", "bench"), 0.7),
            _t("dumbbell_bench_press", "Dumbbell Bench Press", "compound", ("dumbbell", "bench"), 0.25),
            _t("machine_chest_press", "Machine Chest Press", "compound", ("machine",), 0.6),
            _t("push_up", "Push-Up", "compound"),
            _t("cable_fly", "Cable Fly", "isolation", ("cable",), 0.12),
            _t("dumbbell_fly", "Dumbbell Fly", "isolation", ("dumbbell", "bench"), 0.1),
            _t("band_chest_fly", "Band Chest Fly", "isolation", ("resistance_band",)),
        ),
        "back": (
            _t("barbell_row", "Barbell Row", "compound", ("barbell",), 0.6),
            _t("pull_up", "Pull-Up", "compound", ("pull_up_bar",)),
            _t("lat_pulldown", "Lat Pulldown", "compound", ("cable",), 0.6),
            _t("one_arm_dumbbell_row", "One-Arm Dumbbell Row", "compound", ("dumbbell", "bench"), 0.3),
            _t("inverted_row", "Inverted Row", "compound"),
            _t("straight_arm_pulldown", "Straight-Arm Pulldown", "isolation", ("cable",), 0.25),
            _t("prone_y_raise", "Prone Y Raise", "isolation"),
        ),
        "shoulders": (
            _t("overhead_press", "Standing Overhead Press", "compound", ("barbell",), 0.45),
            _t("dumbbell_shoulder_press", "Seated Dumbbell Shoulder Press", "compound", ("dumbbell", "bench"), 0.18),
            _t("pike_push_up", "Pike Push-Up", "compound"),
            _t("lateral_raise", "Dumbbell Lateral Raise", "isolation", ("dumbbell",), 0.1),
            _t("cable_lateral_raise", "Cable Lateral Raise", "isolation", ("cable",), 0.06),
            _t("face_pull", "Face Pull", "isolation", ("cable",), 0.2),
            _t("band_pull_apart", "Band Pull-Apart", "isolation", ("resistance_band",)),
        ),
        "biceps": (
            _t("chin_up", "Chin-Up", "compound", ("pull_up_bar",)),
            _t("barbell_curl", "Barbell Curl", "isolation", ("barbell",), 0.35),
            _t("dumbbell_curl", "Dumbbell Curl", "isolation", ("dumbbell",), 0.14),
            _t("hammer_curl", "Hammer Curl", "isolation", ("dumbbell",), 0.15),
            _t("cable_curl", "Cable Curl", "isolation", ("cable",), 0.3),
            _t("towel_curl", "Isometric Towel Curl", "isolation"),
        ),
        "triceps": (
            _t("close_grip_bench_press", "Close-Grip Bench Press", "compound", ("barbell", "bench"), 0.6),
            _t("bench_dip", "Bench Dip", "compound", ("bench",)),
            _t("rope_pushdown", "Rope Pushdown", "isolation", ("cable",), 0.3),
            _t("overhead_dumbbell_extension", "Overhead Dumbbell Extension", "isolation", ("dumbbell",), 0.2),
            _t("diamond_push_up", "Diamond Push-Up", "isolation"),
        ),
        "core": (
            _t("hanging_knee_raise", "Hanging Knee Raise", "compound", ("pull_up_bar",)),
            _t("cable_crunch", "Cable Crunch", "isolation", ("cable",), 0.4),
            _t("pallof_press", "Pallof Press", "isolation", ("cable",), 0.12),
            _t("plank", "Plank", "isolation"),
            _t("dead_bug", "Dead Bug", "isolation"),
        ),
        "quadriceps": (
            _t("back_squat", "Barbell Back Squat", "compound", ("barbell",), 0.9),
            _t("goblet_squat", "Goblet Squat", "compound", ("dumbbell",), 0.3),
            _t("leg_press", "Leg Press", "compound", ("machine",), 1.5),
            _t("bodyweight_squat", "Bodyweight Squat", "compound"),
            _t("leg_extension", "Leg Extension", "isolation", ("machine",), 0.45),
            _t("reverse_lunge", "Reverse Lunge", "isolation"),
        ),
        "hamstrings": (
            _t("romanian_deadlift", "Romanian Deadlift", "compound", ("barbell",), 0.8),
            _t("dumbbell_romanian_deadlift", "Dumbbell Romanian Deadlift", "compound", ("dumbbell",), 0.3),
            _t("kettlebell_swing", "Kettlebell Swing", "compound", ("kettlebell",), 0.25),
            _t("single_leg_hip_hinge", "Single-Leg Hip Hinge", "compound"),
            _t("lying_leg_curl", "Lying Leg Curl", "isolation", ("machine",), 0.35),
            _t("glute_bridge_walkout", "Glute Bridge Walkout", "isolation"),
        ),
        "glutes": (
            _t("hip_thrust", "Barbell Hip Thrust", "compound", ("barbell", "bench"), 1.0),
            _t("dumbbell_step_up", "Dumbbell Step-Up", "compound", ("dumbbell", "bench"), 0.15),
            _t("glute_bridge", "Glute Bridge", "compound"),
            _t("cable_kickback", "Cable Glute Kickback", "isolation", ("cable",), 0.1),
            _t("band_lateral_walk", "Band Lateral Walk", "isolation", ("resistance_band",)),
            _t("side_lying_hip_abduction", "Side-Lying Hip Abduction", "isolation"),
        ),
        "calves": (
            _t("standing_calf_raise", "Standing Calf Raise", "isolation", ("machine",), 1.0),
            _t("dumbbell_calf_raise", "Dumbbell Calf Raise", "isolation", ("dumbbell",), 0.25),
            _t("bodyweight_calf_raise", "Single-Leg Calf Raise", "isolation"),
        ),
        "forearms": (
            _t("farmer_carry", "Farmer Carry", "compound", ("dumbbell",), 0.35),
            _t("wrist_curl", "Dumbbell Wrist Curl", "isolation", ("dumbbell",), 0.08),
            _t("dead_hang", "Dead Hang", "isolation", ("pull_up_bar",)),
            _t("fingertip_push_up_hold", "Fingertip Plank Hold", "isolation"),
        ),
        "traps": (
            _t("barbell_shrug", "Barbell Shrug", "isolation", ("barbell",), 0.8),
            _t("dumbbell_shrug", "Dumbbell Shrug", "isolation", ("dumbbell",), 0.3),
            _t("prone_shrug", "Prone Scapular Shrug", "isolation"),
        ),
    }
)

GOAL_PARAMETERS = MappingProxyType(
    {
        "strength": MappingProxyType(
            {"sets": (3, 5), "rpe": (7, 9), "load_factor": 1.15, "tempo": "Controlled descent, explosive drive"}
        ),
        "hypertrophy": MappingProxyType(
            {"sets": (3, 4), "rpe": (7, 9), "load_factor": 1.0, "tempo": "2 seconds down, 1 second up"}
        ),
        "endurance": MappingProxyType(
            {"sets": (2, 3), "rpe": (6, 8), "load_factor": 0.7, "tempo": "Steady continuous pace"}
        ),
        "fat_loss": MappingProxyType(
            {"sets": (3, 4), "rpe": (6, 8), "load_factor": 0.85, "tempo": "Brisk tempo, keep rest honest"}
        ),
        "maintenance": MappingProxyType(
            {"sets": (2, 3), "rpe": (6, 7), "load_factor": 0.9, "tempo": "Smooth controlled reps"}
        ),
        "rehabilitation": MappingProxyType(
            {"sets": (2, 3), "rpe": (5, 6), "load_factor": 0.5, "tempo": "Slow and pain-free range of motion"}
        ),
    }
)

LEVEL_ADJUSTMENTS = MappingProxyType(
    {
        "beginner": MappingProxyType(
            {"exercise_count_modifier": 0.7, "set_count_modifier": 0.8, "rest_modifier": 1.2, "load_modifier": 0.6}
        ),
        "intermediate": MappingProxyType(
            {"exercise_count_modifier": 1.0, "set_count_modifier": 1.0, "rest_modifier": 1.0, "load_modifier": 1.0}
        ),
        "advanced": MappingProxyType(
            {"exercise_count_modifier": 1.1, "set_count_modifier": 1.1, "rest_modifier": 0.9, "load_modifier": 1.3}
        ),
        "elite": MappingProxyType(
            {"exercise_count_modifier": 1.2, "set_count_modifier": 1.2, "rest_modifier": 0.85, "load_modifier": 1.6}
        ),
    }
)

_PUSH = ("chest", "shoulders", "triceps")
_PULL = ("back", "biceps", "traps")
_LEGS = ("quadriceps", "hamstrings", "glutes", "calves")
_UPPER = ("chest", "back", "shoulders", "biceps", "triceps")
_LOWER = ("quadriceps", "hamstrings", "glutes", "calves", "core")

# Training day focus per number of training days in the week.
SPLIT_CONFIGS = MappingProxyType(
    {
        1: (("Full Body", ("full_body",)),),
        2: (("Full Body A", ("full_body",)), ("Full Body B", ("full_body",))),
        3: (("Push", _PUSH), ("Pull", _PULL + ("core",)), ("Legs", _LEGS)),
        4: (("Upper A", _UPPER), ("Lower A", _LOWER), ("Upper B", _UPPER), ("Lower B", _LOWER)),
        5: (("Push", _PUSH), ("Pull", _PULL), ("Legs", _LEGS), ("Upper", _UPPER), ("Lower", _LOWER)),
        6: (
            ("Push A", _PUSH),
            ("Pull A", _PULL),
            ("Legs A", _LEGS),
            ("Push B", _PUSH),
            ("Pull B", _PULL + ("core",)),
            ("Legs B", _LEGS),
        ),
    }
)

# Which weekday indexes (0 = Monday) carry the training days.
DAY_PATTERNS = MappingProxyType(
    {
        1: (2,),
        2: (0, 3),
        3: (0, 2, 4),
        4: (0, 1, 3, 4),
        5: (0, 1, 2, 4, 5),
        6: (0, 1, 2, 4, 5, 6),
    }
)

GOAL_TRAINING_DAYS = MappingProxyType(
    {
        "strength": 4,
        "hypertrophy": 4,
        "fat_loss": 4,
        "endurance": 3,
        "maintenance": 3,
        "rehabilitation": 2,
    }
)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def expand_muscles(muscles):
    """Expand full_body and drop duplicates, preserving request order."""
    expanded = []
    for muscle in muscles or []:
        key = str(muscle or "").strip().lower()
        names = FULL_BODY_MUSCLES if key == "full_body" else (key,)
        for name in names:
            if name and name not in expanded:
                expanded.append(name)
    return expanded


def available_templates(muscle, equipment=None):
    """
    Templates for a muscle that the declared equipment allows.

    An empty equipment list means a full gym. Bodyweight exercises are always
    allowed.
    """
    templates = EXERCISE_TEMPLATES.get(muscle, ())
    if not equipment:
        return list(templates)

    allowed = {str(item).strip().lower() for item in equipment} | {BODYWEIGHT}
    return [t for t in templates if set(t.equipment) <= allowed]


def split_for(days_per_week):
    days = max(1, min(int(days_per_week), max(SPLIT_CONFIGS)))
    return SPLIT_CONFIGS[days], DAY_PATTERNS[days]
