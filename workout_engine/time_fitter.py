"""
Duration estimates and set-level time fitting for workouts.
"""

import copy
import math
import re

from workout_engine.safety_limits import CONSERVATIVE_LIMITS


SECONDS_PER_REP = 3
WARMUP_SECONDS = 300
COOLDOWN_SECONDS = 180
TOLERANCE = 0.10
REST_STEP_SECONDS = 15

REP_RANGE_RE = re.compile(r"^\s*(\d+)\s*(?:[-–]|to)\s*(\d+)\s*$", re.IGNORECASE)
REP_VALUE_RE = re.compile(r"^\s*(\d+)\s*$")


def parse_reps(reps):
    """
    Parse a rep prescription into (low, high).

    Accepts ints, "10" and ranges like "8-10". Returns None when unparseable.
    """
    if isinstance(reps, bool):
        return None
    if isinstance(reps, (int, float)):
        value = int(reps)
        return (value, value)

    text = str(reps or "")
    match = REP_RANGE_RE.match(text)
    if match:
        low, high = int(match.group(1)), int(match.group(2))
        return (min(low, high), max(low, high))

    match = REP_VALUE_RE.match(text)
    if match:
        value = int(match.group(1))
        return (value, value)
    return None


def average_reps(reps):
    parsed = parse_reps(reps)
    if not parsed:
        return 0.0
    return (parsed[0] + parsed[1]) / 2.0


def _safe_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def exercise_seconds(exercise):
    sets = max(0, _safe_int(exercise.get("sets")))
    rest = max(0, _safe_int(exercise.get("rest_seconds")))
    return sets * (average_reps(exercise.get("reps")) * SECONDS_PER_REP + rest)


def estimate_duration_seconds(workout):
    """Sum of sets x (rep time + rest) plus fixed warm-up and cool-down."""
    exercises = (workout or {}).get("exercises") or []
    return WARMUP_SECONDS + COOLDOWN_SECONDS + sum(exercise_seconds(ex) for ex in exercises)


def estimate_duration_minutes(workout):
    return int(math.floor(estimate_duration_seconds(workout) / 60.0 + 0.5))


def tolerance_band(target_minutes):
    """Whole-minute window accepted as on target (+/-10%)."""
    low = int(math.ceil(target_minutes * (1 - TOLERANCE) - 1e-9))
    high = int(math.floor(target_minutes * (1 + TOLERANCE) + 1e-9))
    return low, high


def _limits_for_exercise(limits, exercise):
    if limits is None:
        return CONSERVATIVE_LIMITS
    if hasattr(limits, "max_sets_per_exercise"):
        return limits
    muscle = str(exercise.get("muscle_group") or "").strip().lower()
    return limits.get(muscle) or CONSERVATIVE_LIMITS


def _priority_order(exercises):
    """Indexes from highest to lowest priority: compounds first, then request order."""
    return sorted(
        range(len(exercises)),
        key=lambda i: (0 if exercises[i].get("category") == "compound" else 1, i),
    )


def _minutes_with(workout, index, field, value):
    exercise = workout["exercises"][index]
    previous = exercise[field]
    exercise[field] = value
    minutes = estimate_duration_minutes(workout)
    exercise[field] = previous
    return minutes


def _sets_used(exercises, muscle):
    return sum(
        _safe_int(ex.get("sets"))
        for ex in exercises
        if str(ex.get("muscle_group") or "").lower() == muscle
    )


def _total_sets(exercises):
    return sum(_safe_int(ex.get("sets")) for ex in exercises)


def _cap_total_sets(work, max_total_sets, limits, changes):
    order = list(reversed(_priority_order(work["exercises"])))
    for index in order:
        excess = _total_sets(work["exercises"]) - max_total_sets
        if excess <= 0:
            return
        exercise = work["exercises"][index]
        floor = _limits_for_exercise(limits, exercise).min_sets_per_exercise
        removable = min(excess, exercise["sets"] - floor)
        for _ in range(max(0, removable)):
            exercise["sets"] -= 1
            changes.append(
                {"action": "removed_set", "exercise_id": exercise.get("exercise_id"), "sets": exercise["sets"]}
            )


def _shrink_sets(work, low, high, limits, changes):
    order = list(reversed(_priority_order(work["exercises"])))
    while estimate_duration_minutes(work) > high:
        current = estimate_duration_minutes(work)
        chosen = None
        undershoot = None
        for index in order:
            exercise = work["exercises"][index]
            floor = _limits_for_exercise(limits, exercise).min_sets_per_exercise
            if exercise["sets"] <= floor:
                continue
            minutes = _minutes_with(work, index, "sets", exercise["sets"] - 1)
            if minutes >= low:
                chosen = index
                break
            if undershoot is None or minutes > undershoot[1]:
                undershoot = (index, minutes)

        if chosen is None:
            # Every remaining step undershoots: take one only if it lands closer to the band.
            if undershoot is None or (low - undershoot[1]) >= (current - high):
                return
            chosen = undershoot[0]

        exercise = work["exercises"][chosen]
        exercise["sets"] -= 1
        changes.append(
            {"action": "removed_set", "exercise_id": exercise.get("exercise_id"), "sets": exercise["sets"]}
        )


def _shrink_rest(work, low, high, limits, changes):
    order = list(reversed(_priority_order(work["exercises"])))
    while estimate_duration_minutes(work) > high:
        progressed = False
        for index in order:
            exercise = work["exercises"][index]
            floor = _limits_for_exercise(limits, exercise).min_rest
            new_rest = max(floor, exercise["rest_seconds"] - REST_STEP_SECONDS)
            if new_rest >= exercise["rest_seconds"]:
                continue
            if _minutes_with(work, index, "rest_seconds", new_rest) < low:
                continue
            exercise["rest_seconds"] = new_rest
            changes.append(
                {"action": "reduced_rest", "exercise_id": exercise.get("exercise_id"), "rest_seconds": new_rest}
            )
            progressed = True
            if estimate_duration_minutes(work) <= high:
                return
        if not progressed:
            return


def _expand_sets(work, target_minutes, high, limits, set_budget, max_total_sets, changes):
    order = _priority_order(work["exercises"])
    while estimate_duration_minutes(work) < target_minutes:
        if max_total_sets is not None and _total_sets(work["exercises"]) >= max_total_sets:
            return
        chosen = None
        for index in order:
            exercise = work["exercises"][index]
            entry = _limits_for_exercise(limits, exercise)
            if exercise["sets"] >= entry.max_sets_per_exercise:
                continue
            muscle = str(exercise.get("muscle_group") or "").lower()
            if set_budget is not None and muscle in set_budget:
                if _sets_used(work["exercises"], muscle) >= set_budget[muscle]:
                    continue
            if _minutes_with(work, index, "sets", exercise["sets"] + 1) > high:
                continue
            chosen = index
            break

        if chosen is None:
            return
        exercise = work["exercises"][chosen]
        exercise["sets"] += 1
        changes.append(
            {"action": "added_set", "exercise_id": exercise.get("exercise_id"), "sets": exercise["sets"]}
        )


def _expand_rest(work, target_minutes, high, limits, changes):
    order = _priority_order(work["exercises"])
    while estimate_duration_minutes(work) < target_minutes:
        progressed = False
        for index in order:
            exercise = work["exercises"][index]
            ceiling = _limits_for_exercise(limits, exercise).target_rest_range[1]
            new_rest = min(ceiling, exercise["rest_seconds"] + REST_STEP_SECONDS)
            if new_rest <= exercise["rest_seconds"]:
                continue
            if _minutes_with(work, index, "rest_seconds", new_rest) > high:
                continue
            exercise["rest_seconds"] = new_rest
            changes.append(
                {"action": "increased_rest", "exercise_id": exercise.get("exercise_id"), "rest_seconds": new_rest}
            )
            progressed = True
            if estimate_duration_minutes(work) >= target_minutes:
                return
        if not progressed:
            return


def fit_workout(workout, target_minutes, limits=None, set_budget=None, max_minutes=None, max_total_sets=None):
    """
    Adjust set counts so the estimated duration lands within +/-10% of target.

    Over target, sets are removed from the lowest-priority exercises
    (isolation before compound, later before earlier) without going below the
    minimum sets per exercise; rest is shortened toward its floor only when
    set removal alone is not enough. Under target, sets are added to the
    highest-priority exercises up to the per-exercise cap and the per-muscle
    set budget, and if sets alone fall short, rest is lengthened toward the
    top of the recommended range. The total set count never exceeds
    max_total_sets. Exercise selection never changes.

    Args:
        workout: GeneratedWorkout dict
        target_minutes: Desired duration in minutes
        limits: LimitEntry or {muscle: LimitEntry}; defaults to conservative limits
        set_budget: Optional {muscle: max total sets} for this workout
        max_minutes: Hard duration cap; the upper edge of the band never exceeds it
        max_total_sets: Optional cap on the sum of sets across all exercises

    Returns:
        Tuple[dict, list] => (fitted workout copy, change log)
    """
    work = copy.deepcopy(workout)
    changes = []
    work["exercises"] = work.get("exercises") or []
    for exercise in work["exercises"]:
        exercise["sets"] = _safe_int(exercise.get("sets"))
        exercise["rest_seconds"] = _safe_int(exercise.get("rest_seconds"))

    low, high = tolerance_band(target_minutes)
    if max_minutes is not None:
        high = min(high, int(max_minutes))
        low = min(low, high)
    if work["exercises"]:
        if max_total_sets is not None:
            _cap_total_sets(work, max_total_sets, limits, changes)
        if estimate_duration_minutes(work) > high:
            _shrink_sets(work, low, high, limits, changes)
            _shrink_rest(work, low, high, limits, changes)
        elif estimate_duration_minutes(work) < low:
            _expand_sets(work, target_minutes, high, limits, set_budget, max_total_sets, changes)
            if estimate_duration_minutes(work) < low:
                _expand_rest(work, target_minutes, high, limits, changes)

    work["estimated_duration_minutes"] = estimate_duration_minutes(work)
    return work, changes
