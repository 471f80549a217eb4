"""
Validation and deterministic adjustment of candidate workouts against the
hardcoded safety limits.
"""

import copy

from workout_engine.generation_context import normalize_weekly_context, workout_volume
from workout_engine.safety_limits import (
    ABSOLUTE_LIMITS,
    CONSERVATIVE_LIMITS,
    DELOAD_INTERVAL_WEEKS,
    MUSCLE_CATEGORIES,
    frequency_limits,
    strictest,
)
from workout_engine.time_fitter import estimate_duration_minutes, parse_reps


WEEKLY_WARNING_RATIO = 0.9


def _safe_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _safe_float(value):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _add_issue(issues, code, message, field=""):
    issues.append({"code": code, "field": field, "message": message})


def _entry_for(limits, muscle):
    if limits is None:
        return CONSERVATIVE_LIMITS
    if hasattr(limits, "max_sets_per_exercise"):
        return limits
    return limits.get(muscle) or CONSERVATIVE_LIMITS


def _session_limits(limits, muscles):
    if limits is None:
        return CONSERVATIVE_LIMITS
    if hasattr(limits, "max_sets_per_exercise"):
        return limits
    return strictest([_entry_for(limits, m) for m in muscles] or [CONSERVATIVE_LIMITS])


def _muscle_key(exercise):
    return str(exercise.get("muscle_group") or "").strip().lower()


def _exercise_label(exercise, index):
    return exercise.get("exercise_name") or exercise.get("exercise_id") or f"Exercise {index + 1}"


def _declared_duration(workout):
    try:
        return float(workout.get("estimated_duration_minutes") or 0)
    except (TypeError, ValueError):
        return 0.0


def effective_duration_minutes(workout):
    """The larger of the declared duration and the estimate from content."""
    return max(_declared_duration(workout or {}), estimate_duration_minutes(workout))


def _total_sets(exercises):
    return sum(max(0, _safe_int(ex.get("sets")) or 0) for ex in exercises)


def _check_exercise(exercise, index, entry, errors, warnings):
    name = _exercise_label(exercise, index)
    prefix = f"exercises[{index}]"

    sets = _safe_int(exercise.get("sets"))
    if sets is None or sets < ABSOLUTE_LIMITS["min_sets_per_exercise"]:
        _add_issue(errors, "too_few_sets", f"{name}: too few sets", f"{prefix}.sets")
    elif sets > entry.max_sets_per_exercise:
        _add_issue(errors, "too_many_sets", f"{name}: too many sets", f"{prefix}.sets")
    elif sets < entry.min_sets_per_exercise:
        _add_issue(warnings, "low_sets", f"{name}: fewer sets than recommended", f"{prefix}.sets")

    rest = _safe_int(exercise.get("rest_seconds"))
    if rest is None or rest < entry.min_rest:
        _add_issue(errors, "rest_too_short", f"{name}: rest too short", f"{prefix}.rest_seconds")
    elif rest > entry.max_rest:
        _add_issue(errors, "rest_too_long", f"{name}: rest too long", f"{prefix}.rest_seconds")
    elif not entry.target_rest_range[0] <= rest <= entry.target_rest_range[1]:
        _add_issue(
            warnings,
            "rest_outside_goal",
            f"{name}: rest outside the recommended {entry.target_rest_range[0]}-{entry.target_rest_range[1]}s",
            f"{prefix}.rest_seconds",
        )

    reps = parse_reps(exercise.get("reps"))
    if reps is None or reps[0] < ABSOLUTE_LIMITS["min_reps"] or reps[1] > ABSOLUTE_LIMITS["max_reps"]:
        _add_issue(errors, "reps_out_of_range", f"{name}: reps out of range", f"{prefix}.reps")
    elif reps[1] < entry.rep_range[0] or reps[0] > entry.rep_range[1]:
        _add_issue(
            warnings,
            "reps_outside_goal",
            f"{name}: reps outside the goal range {entry.rep_range[0]}-{entry.rep_range[1]}",
            f"{prefix}.reps",
        )

    if not str(exercise.get("notes") or "").strip():
        _add_issue(warnings, "missing_notes", f"{name}: missing notes", f"{prefix}.notes")
    weight = exercise.get("weight_suggestion_kg")
    if weight is None:
        _add_issue(warnings, "missing_weight", f"{name}: missing weight suggestion", f"{prefix}.weight_suggestion_kg")
    else:
        value = _safe_float(weight)
        if value is None or value < ABSOLUTE_LIMITS["min_weight_kg"]:
            _add_issue(errors, "weight_too_low", f"{name}: weight suggestion below zero", f"{prefix}.weight_suggestion_kg")
        elif value > ABSOLUTE_LIMITS["max_weight_kg"]:
            _add_issue(
                errors,
                "weight_too_heavy",
                f"{name}: weight suggestion above {ABSOLUTE_LIMITS['max_weight_kg']:g} kg",
                f"{prefix}.weight_suggestion_kg",
            )


def _check_weekly(workout, context, limits, errors, warnings):
    for muscle, sets in workout_volume(workout).items():
        entry = _entry_for(limits, muscle)
        total = context["muscle_volume"].get(muscle, 0) + sets
        if total > entry.max_weekly_sets:
            _add_issue(
                errors,
                "weekly_volume_exceeded",
                f"{muscle}: weekly volume exceeded ({total}/{entry.max_weekly_sets} sets)",
                f"weekly_volume.{muscle}",
            )
        elif total >= entry.max_weekly_sets * WEEKLY_WARNING_RATIO:
            _add_issue(
                warnings,
                "weekly_volume_near_cap",
                f"{muscle}: weekly volume near cap ({total}/{entry.max_weekly_sets} sets)",
                f"weekly_volume.{muscle}",
            )


def _check_recovery(context, level, warnings):
    freq = frequency_limits(level)
    if context["consecutive_training_days"] >= freq["max_consecutive_days"]:
        _add_issue(
            warnings,
            "consecutive_days",
            f"{context['consecutive_training_days']} consecutive training days already; consider resting",
            "weekly_context.consecutive_training_days",
        )

    days_since_deload = context.get("days_since_deload")
    interval = DELOAD_INTERVAL_WEEKS.get(level)
    if days_since_deload is not None and interval and days_since_deload > interval * 7:
        _add_issue(
            warnings,
            "deload_due",
            f"{days_since_deload} days since the last deload; a lighter week is due",
            "weekly_context.days_since_deload",
        )


def validate_workout(workout, weekly_context=None, limits=None):
    """
    Check a candidate workout against the safety limits.

    Args:
        workout: GeneratedWorkout dict from any source
        weekly_context: Volume already logged this week
        limits: LimitEntry or {muscle: LimitEntry}; unknown muscles fail closed

    Returns:
        ValidationResult dict with valid, errors, warnings, adjusted_workout
        and adjustments
    """
    errors = []
    warnings = []
    context = normalize_weekly_context(weekly_context)
    exercises = (workout or {}).get("exercises") or []

    muscles = []
    for exercise in exercises:
        muscle = _muscle_key(exercise)
        if muscle not in muscles:
            muscles.append(muscle)
    session = _session_limits(limits, muscles)

    if len(exercises) > session.max_exercises:
        _add_issue(errors, "too_many_exercises", "Too many exercises", "exercises")

    total_sets = _total_sets(exercises)
    if total_sets > session.max_sets_per_workout:
        _add_issue(
            errors,
            "too_many_total_sets",
            f"Too many total sets ({total_sets}/{session.max_sets_per_workout})",
            "exercises",
        )

    for index, exercise in enumerate(exercises):
        muscle = _muscle_key(exercise)
        if muscle not in MUSCLE_CATEGORIES:
            _add_issue(
                warnings,
                "unknown_muscle_group",
                f"{_exercise_label(exercise, index)}: unknown muscle group '{muscle}'",
                f"exercises[{index}].muscle_group",
            )
        _check_exercise(exercise, index, _entry_for(limits, muscle), errors, warnings)

    duration = effective_duration_minutes(workout)
    if duration > session.max_duration_minutes:
        _add_issue(errors, "duration_too_long", "Duration too long", "estimated_duration_minutes")

    _check_weekly(workout, context, limits, errors, warnings)
    _check_recovery(context, session.level, warnings)

    return {
        "valid": not errors,
        "errors": errors,
        "warnings": warnings,
        "adjusted_workout": None,
        "adjustments": [],
    }


def _clamp_reps(reps):
    parsed = parse_reps(reps)
    low_cap = ABSOLUTE_LIMITS["min_reps"]
    high_cap = ABSOLUTE_LIMITS["max_reps"]
    if parsed is None:
        return low_cap
    low = max(low_cap, min(high_cap, parsed[0]))
    high = max(low_cap, min(high_cap, parsed[1]))
    if low == high:
        return low
    return f"{low}-{high}"


def _trim_weekly_volume(exercises, context, limits, adjustments):
    """Remove sets from the last exercises of any muscle over its weekly cap."""
    for muscle in {_muscle_key(ex) for ex in exercises}:
        entry = _entry_for(limits, muscle)
        allowed = entry.max_weekly_sets - context["muscle_volume"].get(muscle, 0)
        current = sum(ex["sets"] for ex in exercises if _muscle_key(ex) == muscle)
        excess = current - max(0, allowed)
        for exercise in reversed(exercises):
            if excess <= 0:
                break
            if _muscle_key(exercise) != muscle:
                continue
            removed = min(excess, exercise["sets"])
            exercise["sets"] -= removed
            excess -= removed
            adjustments.append(
                f"{exercise.get('exercise_name')}: sets reduced by {removed} for weekly {muscle} volume"
            )

    kept = [ex for ex in exercises if ex["sets"] > 0]
    for exercise in exercises:
        if exercise["sets"] <= 0:
            adjustments.append(f"{exercise.get('exercise_name')}: removed, weekly volume reached")
    return kept


def _trim_total_sets(exercises, cap, adjustments):
    """Remove sets from the last exercises until the workout total fits the cap."""
    excess = sum(ex["sets"] for ex in exercises) - cap
    for exercise in reversed(exercises):
        if excess <= 0:
            break
        removed = min(excess, exercise["sets"] - ABSOLUTE_LIMITS["min_sets_per_exercise"])
        if removed <= 0:
            continue
        exercise["sets"] -= removed
        excess -= removed
        adjustments.append(f"{exercise.get('exercise_name')}: sets reduced by {removed} for the {cap}-set workout cap")


def apply_adjustments(workout, result, limits=None, weekly_context=None):
    """
    Clamp erroring fields to their nearest legal boundary and validate once more.

    Sets, rest, reps and weight are clamped per exercise, exercises beyond the
    cap are dropped from the end, weekly volume is trimmed from the last
    exercises of each muscle, total sets are trimmed to the workout cap and the
    duration is recomputed from content. Validation runs exactly once on the
    result; if errors remain the caller falls back.

    Returns:
        ValidationResult for the adjusted workout, with adjusted_workout and
        the list of adjustments applied
    """
    adjusted = copy.deepcopy(workout)
    adjustments = []
    context = normalize_weekly_context(weekly_context)
    exercises = adjusted.get("exercises") or []

    muscles = []
    for exercise in exercises:
        if _muscle_key(exercise) not in muscles:
            muscles.append(_muscle_key(exercise))
    session = _session_limits(limits, muscles)

    if len(exercises) > session.max_exercises:
        dropped = exercises[session.max_exercises :]
        exercises = exercises[: session.max_exercises]
        adjustments.append(f"Removed {len(dropped)} exercise(s) beyond the {session.max_exercises}-exercise cap")

    for exercise in exercises:
        entry = _entry_for(limits, _muscle_key(exercise))
        name = exercise.get("exercise_name")

        sets = _safe_int(exercise.get("sets"))
        new_sets = max(ABSOLUTE_LIMITS["min_sets_per_exercise"], min(entry.max_sets_per_exercise, sets or 0))
        if new_sets != sets:
            adjustments.append(f"{name}: sets {sets} -> {new_sets}")
        exercise["sets"] = new_sets

        rest = _safe_int(exercise.get("rest_seconds"))
        new_rest = max(entry.min_rest, min(entry.max_rest, rest if rest is not None else entry.min_rest))
        if new_rest != rest:
            adjustments.append(f"{name}: rest {rest}s -> {new_rest}s")
        exercise["rest_seconds"] = new_rest

        new_reps = _clamp_reps(exercise.get("reps"))
        if parse_reps(new_reps) != parse_reps(exercise.get("reps")):
            adjustments.append(f"{name}: reps {exercise.get('reps')} -> {new_reps}")
            exercise["reps"] = new_reps

        weight = exercise.get("weight_suggestion_kg")
        if weight is not None:
            value = _safe_float(weight)
            new_weight = max(
                ABSOLUTE_LIMITS["min_weight_kg"],
                min(ABSOLUTE_LIMITS["max_weight_kg"], value if value is not None else 0.0),
            )
            if new_weight != value:
                adjustments.append(f"{name}: weight {weight} kg -> {new_weight:g} kg")
                exercise["weight_suggestion_kg"] = new_weight

    exercises = _trim_weekly_volume(exercises, context, limits, adjustments)
    _trim_total_sets(exercises, session.max_sets_per_workout, adjustments)
    adjusted["exercises"] = exercises

    declared = _declared_duration(adjusted)
    adjusted["estimated_duration_minutes"] = estimate_duration_minutes(adjusted)
    if int(round(declared)) != adjusted["estimated_duration_minutes"]:
        adjustments.append(
            f"Estimated duration recomputed: {declared:g} -> {adjusted['estimated_duration_minutes']} minutes"
        )

    revalidated = validate_workout(adjusted, weekly_context, limits)
    revalidated["adjusted_workout"] = adjusted
    revalidated["adjustments"] = adjustments
    return revalidated
