"""
Deterministic workout and weekly plan generation from the static catalogs.

Used as the default path when AI is disabled and as the guaranteed fallback
when the model cannot produce an acceptable workout. The same input always
produces the same output: no ids, clocks or randomness are involved.
"""

import copy
import math

from workout_engine.generation_context import (
    add_workout_volume,
    normalize_weekly_context,
    remaining_weekly_sets,
    workout_volume,
)
from workout_engine.safety_limits import (
    FITNESS_LEVELS,
    TRAINING_GOALS,
    age_group,
    age_modifiers,
    frequency_limits,
    limits_for_profile,
    strictest,
)
from workout_engine.time_fitter import (
    COOLDOWN_SECONDS,
    SECONDS_PER_REP,
    WARMUP_SECONDS,
    estimate_duration_minutes,
    fit_workout,
    tolerance_band,
)
from workout_engine.workout_templates import (
    GOAL_PARAMETERS,
    GOAL_TRAINING_DAYS,
    LEVEL_ADJUSTMENTS,
    MAJOR_MUSCLES,
    WEEKDAYS,
    available_templates,
    expand_muscles,
    split_for,
)


WARMUP_NOTES = (
    "5 minutes of light cardio, then dynamic mobility for today's muscles. "
    "Ramp up with 1-2 lighter sets before the first compound lift."
)
COOLDOWN_NOTES = "3 minutes of easy walking followed by static stretching for the muscles trained."


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _round_to_step(value, step):
    return step * math.floor(value / step + 0.5)


def _clamp(value, low, high):
    return max(low, min(high, value))


def _profile_keys(profile):
    level = str(profile.get("fitness_level") or "").strip().lower()
    goal = str(profile.get("goal") or "").strip().lower()
    if level not in FITNESS_LEVELS:
        level = "beginner"
    if goal not in TRAINING_GOALS:
        goal = "rehabilitation"
    return level, goal


def _format_rpe(value):
    if abs(value - round(value)) < 1e-9:
        return str(int(round(value)))
    return f"{value:.1f}"


def _prescription(entry, level, goal, age):
    """Sets, reps and rest from the midpoints of the allowed ranges."""
    goal_params = GOAL_PARAMETERS[goal]
    level_adj = LEVEL_ADJUSTMENTS[level]
    age_mods = age_modifiers(age)

    sets_mid = (goal_params["sets"][0] + goal_params["sets"][1]) / 2.0
    sets = _round_half_up(sets_mid * level_adj["set_count_modifier"] * age_mods["volume"])
    sets = _clamp(sets, entry.min_sets_per_exercise, entry.max_sets_per_exercise)

    reps = _round_half_up((entry.rep_range[0] + entry.rep_range[1]) / 2.0)

    rest_mid = (entry.target_rest_range[0] + entry.target_rest_range[1]) / 2.0
    rest = int(_round_to_step(rest_mid * level_adj["rest_modifier"] * age_mods["recovery"], 15))
    rest = _clamp(rest, entry.rest_range[0], entry.rest_range[1])
    return sets, reps, rest


def _suggest_weight(template, profile, level, goal):
    if template.load_ratio is None:
        return 0.0

    body_weight = profile.get("weight_kg")
    if not body_weight:
        return None

    load = (
        float(body_weight)
        * template.load_ratio
        * LEVEL_ADJUSTMENTS[level]["load_modifier"]
        * GOAL_PARAMETERS[goal]["load_factor"]
        * age_modifiers(profile.get("age"))["intensity"]
    )
    return max(2.5, _round_to_step(load, 2.5))


def _exercise_notes(template, goal, age):
    goal_params = GOAL_PARAMETERS[goal]
    mods = age_modifiers(age)
    rpe_cap = min(float(goal_params["rpe"][1]), mods["rpe_cap"])

    parts = [f"{goal_params['tempo']}.", f"Stop each set at RPE {_format_rpe(rpe_cap)} or lower."]
    if template.load_ratio is None:
        parts.append("Bodyweight; slow the tempo before adding reps.")
    elif template.category == "compound":
        parts.append("Brace before each rep and keep the last rep as clean as the first.")
    if mods["volume"] < 1.0:
        parts.append(f"Volume reduced for the {age_group(age)} age band.")
    return " ".join(parts)


def _pick_templates(muscles, equipment, variant):
    """
    Choose templates round-robin across muscles.

    Round one prefers a compound for every muscle; round two (major muscles in
    short sessions only) prefers an isolation movement.
    """
    per_muscle = {}
    for muscle in muscles:
        per_muscle[muscle] = 2 if muscle in MAJOR_MUSCLES and len(muscles) <= 3 else 1

    picks = []
    used = set()
    rounds = max(per_muscle.values()) if per_muscle else 0
    for round_index in range(rounds):
        preferred = "compound" if round_index == 0 else "isolation"
        for muscle in muscles:
            if per_muscle[muscle] <= round_index:
                continue
            options = available_templates(muscle, equipment)
            first = [t for t in options if t.category == preferred]
            rest = [t for t in options if t.category != preferred]
            if first and variant:
                shift = variant % len(first)
                first = first[shift:] + first[:shift]
            for template in first + rest:
                if template.exercise_id not in used:
                    used.add(template.exercise_id)
                    picks.append((muscle, template))
                    break
    return picks


def _exercise_seconds(sets, reps, rest):
    return sets * (reps * SECONDS_PER_REP + rest)


def _apply_weekly_budget(exercises, budget, limits):
    """Trim sets to the remaining weekly volume, dropping exercises that fall below minimum."""
    left = dict(budget)
    kept = []
    exhausted = []
    for exercise in exercises:
        muscle = exercise["muscle_group"]
        available = left.get(muscle, exercise["sets"])
        floor = limits[muscle].min_sets_per_exercise
        allowed = min(exercise["sets"], available)
        if allowed < floor:
            if muscle not in exhausted:
                exhausted.append(muscle)
            continue
        exercise["sets"] = allowed
        left[muscle] = available - allowed
        kept.append(exercise)
    return kept, exhausted


def _title(text):
    return text.replace("_", " ").title()


def _build_exercise(muscle, template, profile, level, goal, age, limits):
    sets, reps, rest = _prescription(limits[muscle], level, goal, age)
    return {
        "exercise_id": template.exercise_id,
        "exercise_name": template.name,
        "muscle_group": muscle,
        "category": template.category,
        "sets": sets,
        "reps": reps,
        "weight_suggestion_kg": _suggest_weight(template, profile, level, goal),
        "rest_seconds": rest,
        "notes": _exercise_notes(template, goal, age),
    }


def _spare_templates(targets, equipment, used_ids):
    """Unused templates for the targets, round-robin across muscles."""
    pools = {m: [t for t in available_templates(m, equipment) if t.exercise_id not in used_ids] for m in targets}
    spare = []
    depth = max((len(pool) for pool in pools.values()), default=0)
    for round_index in range(depth):
        for muscle in targets:
            if round_index < len(pools[muscle]):
                spare.append((muscle, pools[muscle][round_index]))
    return spare


def _by_category(exercises):
    return sorted(exercises, key=lambda ex: 0 if ex.get("category") == "compound" else 1)


def _fill_session(workout, spare, build, target_minutes, count_cap, budget, limits, fit_args):
    """
    Add exercises from the spare templates while the session is short of the band.

    Each addition stays within the remaining weekly budget for its muscle and
    the workout's total set cap, and is kept only if the refitted session does
    not overshoot the band.
    """
    low, high = tolerance_band(target_minutes)
    high = min(high, fit_args["max_minutes"])
    for muscle, template in spare:
        exercises = workout["exercises"]
        if workout["estimated_duration_minutes"] >= low or len(exercises) >= count_cap:
            break
        used = sum(ex["sets"] for ex in exercises if ex["muscle_group"] == muscle)
        total = sum(ex["sets"] for ex in exercises)
        candidate = build(muscle, template)
        sets = min(candidate["sets"], budget.get(muscle, 0) - used, fit_args["max_total_sets"] - total)
        if sets < limits[muscle].min_sets_per_exercise:
            continue
        candidate["sets"] = sets

        trial = copy.deepcopy(workout)
        trial["exercises"] = _by_category(trial["exercises"] + [candidate])
        fitted, _changes = fit_workout(trial, target_minutes, limits=limits, set_budget=budget, **fit_args)
        if fitted["estimated_duration_minutes"] > high:
            continue
        workout = fitted
    return workout


def session_target_minutes(profile, muscles, available_minutes):
    """Duration the generator fits to: available time capped by the level's maximum."""
    level, goal = _profile_keys(profile)
    limits = limits_for_profile(level, goal)
    targets = [m for m in expand_muscles(muscles) if m in limits] or expand_muscles(["full_body"])
    session_limits = strictest([limits[m] for m in targets])
    return max(1, min(int(available_minutes), session_limits.max_duration_minutes))


def generate_workout(profile, muscles, available_minutes, equipment=None, weekly_context=None, variant=0):
    """
    Build a workout from the template and limit catalogs.

    Args:
        profile: Dict with fitness_level, goal, age and optional weight_kg
        muscles: Requested muscle categories (full_body is expanded)
        available_minutes: Time budget for the session
        equipment: Available equipment; empty means a full gym
        weekly_context: Volume already logged this week
        variant: Rotates exercise choice so repeated split days differ

    Returns:
        GeneratedWorkout dict, valid against the profile's limits
    """
    level, goal = _profile_keys(profile)
    age = profile.get("age")
    limits = limits_for_profile(level, goal)
    targets = [m for m in expand_muscles(muscles) if m in limits] or expand_muscles(["full_body"])

    entries = [limits[m] for m in targets if m in limits]
    session_limits = strictest(entries)
    target_minutes = session_target_minutes(profile, muscles, available_minutes)

    picks = _pick_templates(targets, equipment, variant)

    count_cap = max(
        1,
        min(
            session_limits.max_exercises,
            _round_half_up(session_limits.max_exercises * LEVEL_ADJUSTMENTS[level]["exercise_count_modifier"]),
        ),
    )
    if picks:
        sample_sets, sample_reps, sample_rest = _prescription(limits[picks[0][0]], level, goal, age)
        per_exercise = _exercise_seconds(sample_sets, sample_reps, sample_rest)
        usable = target_minutes * 60 - WARMUP_SECONDS - COOLDOWN_SECONDS
        time_cap = max(1, int(usable // per_exercise)) if per_exercise else count_cap
        picks = picks[: min(count_cap, time_cap)]

    # Compounds lead the session; round-robin order is kept within each group.
    picks.sort(key=lambda pick: 0 if pick[1].category == "compound" else 1)

    exercises = [_build_exercise(muscle, template, profile, level, goal, age, limits) for muscle, template in picks]

    budget = remaining_weekly_sets(weekly_context, limits, targets)
    exercises, exhausted = _apply_weekly_budget(exercises, budget, limits)

    focus = ", ".join(_title(m) for m in targets)
    description = f"{_title(level)} {_title(goal).lower()} session targeting {focus.lower()}."
    if exhausted:
        description += " Weekly volume already reached for: " + ", ".join(exhausted) + "."

    workout = {
        "name": f"{_title(goal)} Session: {focus}",
        "description": description,
        "estimated_duration_minutes": 0,
        "exercises": exercises,
        "warmup_notes": WARMUP_NOTES,
        "cooldown_notes": COOLDOWN_NOTES,
    }

    fit_args = {
        "max_minutes": session_limits.max_duration_minutes,
        "max_total_sets": session_limits.max_sets_per_workout,
    }
    fitted, _changes = fit_workout(workout, target_minutes, limits=limits, set_budget=budget, **fit_args)
    if fitted["exercises"]:
        used_ids = {template.exercise_id for _muscle, template in picks}
        spare = [(m, t) for m, t in _spare_templates(targets, equipment, used_ids) if budget.get(m, 0) > 0]
        fitted = _fill_session(
            fitted,
            spare,
            lambda muscle, template: _build_exercise(muscle, template, profile, level, goal, age, limits),
            target_minutes,
            count_cap,
            budget,
            limits,
            fit_args,
        )
    while len(fitted["exercises"]) > 1 and fitted["estimated_duration_minutes"] > session_limits.max_duration_minutes:
        fitted["exercises"].pop()
        fitted["estimated_duration_minutes"] = estimate_duration_minutes(fitted)

    low, _high = tolerance_band(target_minutes)
    if fitted["exercises"] and fitted["estimated_duration_minutes"] < low:
        fitted["description"] += (
            f" Shorter than the requested {target_minutes} minutes: set limits for these muscles are reached."
        )
    return fitted


def training_days_for(profile, days_per_week=None):
    """Training days per week for the profile, clamped to the level's frequency limits."""
    level, goal = _profile_keys(profile)
    freq = frequency_limits(level)
    days = days_per_week or profile.get("days_per_week") or GOAL_TRAINING_DAYS[goal]
    return _clamp(int(days), freq["min_days"], freq["max_days"])


def generate_weekly_plan(
    profile,
    muscles=None,
    available_minutes=60,
    equipment=None,
    weekly_context=None,
    days_per_week=None,
):
    """
    Build a 7-slot weekly plan from the split configuration for the profile.

    Volume accumulates across training days so every muscle stays under its
    weekly cap. When specific muscles are requested, split days are filtered
    to them and days left empty become rest days.

    Returns:
        WeeklyPlan dict with name, description, days, weekly_volume and
        training_days
    """
    level, goal = _profile_keys(profile)
    days = training_days_for(profile, days_per_week)
    split, pattern = split_for(days)

    requested = None
    if muscles and "full_body" not in [str(m).lower() for m in muscles]:
        requested = set(expand_muscles(muscles))

    context = normalize_weekly_context(weekly_context)
    slots = []
    weekly_volume = {}
    for day_index, day_name in enumerate(WEEKDAYS):
        workout = None
        focus = "Rest"
        if day_index in pattern:
            split_index = pattern.index(day_index)
            focus, focus_muscles = split[split_index]
            day_muscles = expand_muscles(focus_muscles)
            if requested is not None:
                day_muscles = [m for m in day_muscles if m in requested]
            if day_muscles:
                workout = generate_workout(
                    profile,
                    day_muscles,
                    available_minutes,
                    equipment=equipment,
                    weekly_context=context,
                    variant=split_index,
                )

        if workout is not None and workout["exercises"]:
            context = add_workout_volume(context, workout, trained=True)
            for muscle, sets in workout_volume(workout).items():
                weekly_volume[muscle] = weekly_volume.get(muscle, 0) + sets
            slots.append({"day": day_name, "is_rest": False, "focus": focus, "workout": workout})
        else:
            context = add_workout_volume(context, None, trained=False)
            slots.append({"day": day_name, "is_rest": True, "focus": "Rest", "workout": None})

    training = sum(1 for slot in slots if not slot["is_rest"])
    return {
        "name": f"{training}-Day {_title(goal)} Plan",
        "description": f"{_title(level)} {_title(goal).lower()} week with {training} training days.",
        "days": slots,
        "weekly_volume": weekly_volume,
        "training_days": training,
    }
