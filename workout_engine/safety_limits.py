"""
Hardcoded safety limits for generated workouts.

These tables are compiled once at import time into read-only mappings. Nothing
in the engine (and nothing the model returns) can write to them; every
generated or AI-proposed workout is checked against them before it leaves the
engine.
"""

import math
from dataclasses import dataclass, replace
from types import MappingProxyType

from workout_engine.errors import ConfigurationError


FITNESS_LEVELS = ("beginner", "intermediate", "advanced", "elite")
TRAINING_GOALS = (
    "hypertrophy",
    "strength",
    "fat_loss",
    "endurance",
    "maintenance",
    "rehabilitation",
)
MUSCLE_CATEGORIES = (
    "chest",
    "back",
    "shoulders",
    "biceps",
    "triceps",
    "core",
    "quadriceps",
    "hamstrings",
    "glutes",
    "calves",
    "forearms",
    "traps",
    "full_body",
)

# Ceilings no level/goal combination may exceed.
ABSOLUTE_LIMITS = MappingProxyType(
    {
        "min_sets_per_exercise": 1,
        "max_sets_per_exercise": 10,
        "min_rest_seconds": 30,
        "max_rest_seconds": 300,
        "min_reps": 1,
        "max_reps": 30,
        "max_exercises": 15,
        "max_sets_per_workout": 40,
        "min_weight_kg": 0.0,
        "max_weight_kg": 500.0,
        "min_duration_minutes": 15,
        "max_duration_minutes": 180,
    }
)

WEEKLY_SETS_PER_MUSCLE = MappingProxyType(
    {"beginner": 10, "intermediate": 16, "advanced": 22, "elite": 28}
)

# Smaller muscles get a share of the level's weekly set cap.
MUSCLE_VOLUME_FACTORS = MappingProxyType(
    {
        "biceps": 0.8,
        "triceps": 0.8,
        "calves": 0.8,
        "forearms": 0.6,
        "traps": 0.8,
        "core": 0.8,
    }
)

GOAL_VOLUME_FACTORS = MappingProxyType(
    {
        "hypertrophy": 1.0,
        "strength": 0.9,
        "fat_loss": 0.8,
        "endurance": 0.8,
        "maintenance": 0.6,
        "rehabilitation": 0.5,
    }
)

EXERCISES_PER_WORKOUT = MappingProxyType(
    {
        "beginner": MappingProxyType({"min": 4, "max": 6}),
        "intermediate": MappingProxyType({"min": 5, "max": 8}),
        "advanced": MappingProxyType({"min": 6, "max": 10}),
        "elite": MappingProxyType({"min": 6, "max": 12}),
    }
)

SETS_PER_EXERCISE = MappingProxyType(
    {
        "beginner": MappingProxyType({"min": 2, "max": 5}),
        "intermediate": MappingProxyType({"min": 2, "max": 6}),
        "advanced": MappingProxyType({"min": 2, "max": 8}),
        "elite": MappingProxyType({"min": 2, "max": 10}),
    }
)

SETS_PER_WORKOUT = MappingProxyType(
    {"beginner": 16, "intermediate": 24, "advanced": 30, "elite": 35}
)

GOAL_SET_CAPS = MappingProxyType({"rehabilitation": 4})

REP_RANGES = MappingProxyType(
    {
        "strength": (3, 6),
        "hypertrophy": (8, 12),
        "endurance": (15, 20),
        "fat_loss": (10, 15),
        "maintenance": (8, 12),
        "rehabilitation": (12, 15),
    }
)

# Recommended rest per goal. The hard range allowed by validation is derived
# from it in _hard_rest_range.
REST_BETWEEN_SETS = MappingProxyType(
    {
        "strength": (120, 300),
        "hypertrophy": (60, 120),
        "endurance": (30, 60),
        "fat_loss": (30, 60),
        "maintenance": (60, 90),
        "rehabilitation": (60, 90),
    }
)

WORKOUT_DURATION_MINUTES = MappingProxyType(
    {
        "beginner": MappingProxyType({"min": 15, "max": 90}),
        "intermediate": MappingProxyType({"min": 15, "max": 120}),
        "advanced": MappingProxyType({"min": 15, "max": 150}),
        "elite": MappingProxyType({"min": 15, "max": 180}),
    }
)

FREQUENCY = MappingProxyType(
    {
        "beginner": MappingProxyType({"min_days": 2, "max_days": 4, "max_consecutive_days": 2}),
        "intermediate": MappingProxyType({"min_days": 3, "max_days": 5, "max_consecutive_days": 3}),
        "advanced": MappingProxyType({"min_days": 4, "max_days": 6, "max_consecutive_days": 4}),
        "elite": MappingProxyType({"min_days": 4, "max_days": 7, "max_consecutive_days": 5}),
    }
)

DELOAD_INTERVAL_WEEKS = MappingProxyType(
    {"beginner": 8, "intermediate": 6, "advanced": 5, "elite": 4}
)

AGE_GROUPS = (
    ("16-25", 0, 25),
    ("26-35", 26, 35),
    ("36-45", 36, 45),
    ("46-55", 46, 55),
    ("56-65", 56, 65),
    ("65+", 66, 200),
)

AGE_MODIFIERS = MappingProxyType(
    {
        "16-25": MappingProxyType({"volume": 1.0, "recovery": 1.0, "intensity": 1.0, "rpe_cap": 9.0}),
        "26-35": MappingProxyType({"volume": 1.0, "recovery": 1.0, "intensity": 1.0, "rpe_cap": 9.0}),
        "36-45": MappingProxyType({"volume": 0.9, "recovery": 1.1, "intensity": 0.95, "rpe_cap": 8.5}),
        "46-55": MappingProxyType({"volume": 0.8, "recovery": 1.2, "intensity": 0.9, "rpe_cap": 8.0}),
        "56-65": MappingProxyType({"volume": 0.7, "recovery": 1.3, "intensity": 0.85, "rpe_cap": 7.5}),
        "65+": MappingProxyType({"volume": 0.6, "recovery": 1.5, "intensity": 0.8, "rpe_cap": 7.0}),
    }
)

PROGRESSION_LIMITS = MappingProxyType(
    {
        "weight_step_percent": MappingProxyType(
            {"beginner": 5.0, "intermediate": 4.0, "advanced": 3.0, "elite": 2.5}
        ),
        "max_weight_increase_percent": 5.0,
        "max_weight_increase_kg": 10.0,
        "max_weight_decrease_percent": 15.0,
        "max_rep_increase": 2,
        "max_set_increase": 1,
        "weight_increment_kg": 1.25,
    }
)


@dataclass(frozen=True)
class LimitEntry:
    """Allowed ranges for one (level, goal, muscle) combination."""

    level: str
    goal: str
    muscle: str
    max_weekly_sets: int
    rep_range: tuple
    rest_range: tuple
    target_rest_range: tuple
    max_exercises: int
    min_sets_per_exercise: int
    max_sets_per_exercise: int
    max_sets_per_workout: int
    min_duration_minutes: int
    max_duration_minutes: int

    @property
    def min_rest(self):
        return self.rest_range[0]

    @property
    def max_rest(self):
        return self.rest_range[1]


def _hard_rest_range(goal):
    low, high = REST_BETWEEN_SETS[goal]
    return (
        max(ABSOLUTE_LIMITS["min_rest_seconds"], low // 2),
        min(ABSOLUTE_LIMITS["max_rest_seconds"], high * 2),
    )


def _weekly_sets(level, goal, muscle):
    base = WEEKLY_SETS_PER_MUSCLE[level]
    factor = GOAL_VOLUME_FACTORS[goal] * MUSCLE_VOLUME_FACTORS.get(muscle, 1.0)
    return max(2, int(math.floor(base * factor)))


def _compile_entry(level, goal, muscle):
    max_sets = min(
        SETS_PER_EXERCISE[level]["max"],
        GOAL_SET_CAPS.get(goal, ABSOLUTE_LIMITS["max_sets_per_exercise"]),
        ABSOLUTE_LIMITS["max_sets_per_exercise"],
    )
    return LimitEntry(
        level=level,
        goal=goal,
        muscle=muscle,
        max_weekly_sets=_weekly_sets(level, goal, muscle),
        rep_range=REP_RANGES[goal],
        rest_range=_hard_rest_range(goal),
        target_rest_range=REST_BETWEEN_SETS[goal],
        max_exercises=min(EXERCISES_PER_WORKOUT[level]["max"], ABSOLUTE_LIMITS["max_exercises"]),
        min_sets_per_exercise=SETS_PER_EXERCISE[level]["min"],
        max_sets_per_exercise=max_sets,
        max_sets_per_workout=min(SETS_PER_WORKOUT[level], ABSOLUTE_LIMITS["max_sets_per_workout"]),
        min_duration_minutes=WORKOUT_DURATION_MINUTES[level]["min"],
        max_duration_minutes=min(
            WORKOUT_DURATION_MINUTES[level]["max"], ABSOLUTE_LIMITS["max_duration_minutes"]
        ),
    )


def _narrowest(ranges):
    low = max(r[0] for r in ranges)
    high = min(r[1] for r in ranges)
    if low <= high:
        return (low, high)
    # Disjoint ranges (e.g. strength vs endurance reps): fall back to the hull.
    return (min(r[0] for r in ranges), max(r[1] for r in ranges))


def strictest(entries, muscle=None):
    """
    Fold several entries into one that satisfies all of them.

    Args:
        entries: Iterable of LimitEntry
        muscle: Muscle label for the folded entry (defaults to the first entry's)

    Returns:
        LimitEntry with the minimum of every cap and the narrowest ranges
    """
    entries = list(entries)
    if not entries:
        return CONSERVATIVE_LIMITS
    if len(entries) == 1 and muscle is None:
        return entries[0]

    first = entries[0]
    return replace(
        first,
        muscle=muscle or first.muscle,
        max_weekly_sets=min(e.max_weekly_sets for e in entries),
        rep_range=_narrowest([e.rep_range for e in entries]),
        rest_range=_narrowest([e.rest_range for e in entries]),
        target_rest_range=_narrowest([e.target_rest_range for e in entries]),
        max_exercises=min(e.max_exercises for e in entries),
        min_sets_per_exercise=max(e.min_sets_per_exercise for e in entries),
        max_sets_per_exercise=min(e.max_sets_per_exercise for e in entries),
        max_sets_per_workout=min(e.max_sets_per_workout for e in entries),
        min_duration_minutes=max(e.min_duration_minutes for e in entries),
        max_duration_minutes=min(e.max_duration_minutes for e in entries),
    )


def _compile_catalog():
    catalog = {}
    for level in FITNESS_LEVELS:
        for goal in TRAINING_GOALS:
            for muscle in MUSCLE_CATEGORIES:
                catalog[(level, goal, muscle)] = _compile_entry(level, goal, muscle)
    return MappingProxyType(catalog)


LIMIT_CATALOG = _compile_catalog()

# Used for any combination the catalog does not know about.
CONSERVATIVE_LIMITS = strictest(
    [entry for key, entry in LIMIT_CATALOG.items() if key[0] == "beginner"],
    muscle="full_body",
)


def _normalize_key(value):
    return str(value or "").strip().lower()


def limits_for(level, goal, muscle):
    """
    Look up the limits for a (level, goal, muscle) triple.

    Unknown combinations fail closed to CONSERVATIVE_LIMITS instead of raising,
    so validation never runs against an undefined boundary.
    """
    key = (_normalize_key(level), _normalize_key(goal), _normalize_key(muscle))
    entry = LIMIT_CATALOG.get(key)
    if entry is None:
        return CONSERVATIVE_LIMITS
    return entry


def limits_for_profile(level, goal):
    """Return a read-only {muscle: LimitEntry} mapping for one level/goal."""
    return MappingProxyType(
        {muscle: limits_for(level, goal, muscle) for muscle in MUSCLE_CATEGORIES}
    )


def age_group(age):
    """Map an age in years onto one of the AGE_GROUPS labels."""
    try:
        years = int(age)
    except (TypeError, ValueError):
        # Unknown age gets the most cautious band.
        return AGE_GROUPS[-1][0]

    for label, low, high in AGE_GROUPS:
        if low <= years <= high:
            return label
    return AGE_GROUPS[-1][0]


def age_modifiers(age):
    return AGE_MODIFIERS[age_group(age)]


def frequency_limits(level):
    return FREQUENCY.get(_normalize_key(level), FREQUENCY["beginner"])


def verify_catalog():
    """
    Check every level/goal table is populated.

    Raises:
        ConfigurationError: if any table lacks a level or goal, or a compiled
            entry has an empty range
    """
    level_tables = {
        "WEEKLY_SETS_PER_MUSCLE": WEEKLY_SETS_PER_MUSCLE,
        "EXERCISES_PER_WORKOUT": EXERCISES_PER_WORKOUT,
        "SETS_PER_EXERCISE": SETS_PER_EXERCISE,
        "SETS_PER_WORKOUT": SETS_PER_WORKOUT,
        "WORKOUT_DURATION_MINUTES": WORKOUT_DURATION_MINUTES,
        "FREQUENCY": FREQUENCY,
        "DELOAD_INTERVAL_WEEKS": DELOAD_INTERVAL_WEEKS,
    }
    goal_tables = {
        "GOAL_VOLUME_FACTORS": GOAL_VOLUME_FACTORS,
        "REP_RANGES": REP_RANGES,
        "REST_BETWEEN_SETS": REST_BETWEEN_SETS,
    }

    for name, table in level_tables.items():
        missing = [level for level in FITNESS_LEVELS if level not in table]
        if missing:
            raise ConfigurationError(f"Limit table {name} is missing levels: {', '.join(missing)}")

    for name, table in goal_tables.items():
        missing = [goal for goal in TRAINING_GOALS if goal not in table]
        if missing:
            raise ConfigurationError(f"Limit table {name} is missing goals: {', '.join(missing)}")

    expected = len(FITNESS_LEVELS) * len(TRAINING_GOALS) * len(MUSCLE_CATEGORIES)
    if len(LIMIT_CATALOG) != expected:
        raise ConfigurationError(
            f"Limit catalog has {len(LIMIT_CATALOG)} entries, expected {expected}"
        )

    for entry in LIMIT_CATALOG.values():
        if entry.rest_range[0] > entry.rest_range[1] or entry.rep_range[0] > entry.rep_range[1]:
            raise ConfigurationError(
                f"Empty range for {entry.level}/{entry.goal}/{entry.muscle}"
            )
        if entry.min_sets_per_exercise > entry.max_sets_per_exercise:
            raise ConfigurationError(
                f"Set bounds inverted for {entry.level}/{entry.goal}/{entry.muscle}"
            )
    return True
