"""
Normalize caller-supplied weekly context (already logged volume, recent
training days) for generation and validation.
"""


def _safe_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def normalize_weekly_context(weekly_context):
    """
    Return a clean copy of the weekly context.

    Args:
        weekly_context: Optional dict with keys muscle_volume ({muscle: sets}),
            consecutive_training_days and days_since_deload

    Returns:
        Dict with the same keys; missing values become empty/zero/None
    """
    context = weekly_context or {}
    volume = {}
    for muscle, sets in (context.get("muscle_volume") or {}).items():
        key = str(muscle or "").strip().lower()
        if key:
            volume[key] = volume.get(key, 0) + max(0, _safe_int(sets))

    days_since_deload = context.get("days_since_deload")
    return {
        "muscle_volume": volume,
        "consecutive_training_days": max(0, _safe_int(context.get("consecutive_training_days"))),
        "days_since_deload": None if days_since_deload is None else max(0, _safe_int(days_since_deload)),
    }


def workout_volume(workout):
    """Sum sets per muscle group for one workout."""
    volume = {}
    for exercise in (workout or {}).get("exercises") or []:
        muscle = str(exercise.get("muscle_group") or "").strip().lower()
        volume[muscle] = volume.get(muscle, 0) + max(0, _safe_int(exercise.get("sets")))
    return volume


def add_workout_volume(weekly_context, workout, trained=True):
    """Return a new context with the workout's volume folded in."""
    context = normalize_weekly_context(weekly_context)
    for muscle, sets in workout_volume(workout).items():
        context["muscle_volume"][muscle] = context["muscle_volume"].get(muscle, 0) + sets

    if trained:
        context["consecutive_training_days"] += 1
    else:
        context["consecutive_training_days"] = 0
    return context


def remaining_weekly_sets(weekly_context, limits, muscles):
    """Sets still available this week per muscle under each muscle's cap."""
    context = normalize_weekly_context(weekly_context)
    remaining = {}
    for muscle in muscles:
        entry = limits.get(muscle)
        if entry is None:
            continue
        used = context["muscle_volume"].get(muscle, 0)
        remaining[muscle] = max(0, entry.max_weekly_sets - used)
    return remaining
