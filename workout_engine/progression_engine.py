"""
Deterministic next-session suggestions derived from logged performance.
"""

import math
import re

from workout_engine.safety_limits import ABSOLUTE_LIMITS, CONSERVATIVE_LIMITS, PROGRESSION_LIMITS


RPE_VALUE_RE = re.compile(r"\brpe\s*[:=@]?\s*(\d+(?:\.\d+)?)\b", re.IGNORECASE)

TREND_WINDOW = 4
HIGH_RPE = 9.0
LOW_RPE = 7.0
PROGRESS_RPE = 8.0


def _parse_float(value):
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _parse_int(value):
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return None


def _parse_rpe(text):
    match = RPE_VALUE_RE.search(text or "")
    if not match:
        return None

    value = float(match.group(1))
    if 1.0 <= value <= 10.0:
        return value
    return None


def _average(values):
    values = [v for v in values if v is not None]
    if not values:
        return None
    return sum(values) / len(values)


def _session_rpe(session):
    rpe = session.get("rpe")
    if isinstance(rpe, (list, tuple)):
        value = _average([_parse_float(v) for v in rpe])
    else:
        value = _parse_float(rpe) if rpe is not None else None
    if value is None:
        value = _parse_rpe(session.get("log"))
    if value is not None and not 1.0 <= value <= 10.0:
        return None
    return value


def _session_reps(session):
    reps = session.get("reps")
    if isinstance(reps, (list, tuple)):
        parsed = [_parse_int(r) for r in reps]
        parsed = [r for r in parsed if r is not None]
        if not parsed:
            return None
        return int(math.floor(sum(parsed) / float(len(parsed))))
    return _parse_int(reps)


def _normalize_history(history):
    """Parse sessions and order them oldest first, dropping unusable entries."""
    sessions = []
    for position, raw in enumerate(history or []):
        weight = _parse_float(raw.get("weight_kg"))
        reps = _session_reps(raw)
        if weight is None or reps is None:
            continue
        sessions.append(
            {
                "date": str(raw.get("date") or ""),
                "position": position,
                "sets": _parse_int(raw.get("sets")) or 1,
                "reps": reps,
                "weight_kg": weight,
                "rpe": _session_rpe(raw),
            }
        )
    sessions.sort(key=lambda s: (s["date"], s["position"]))
    return sessions


def _weight_trend(window):
    first = window[0]["weight_kg"]
    last = window[-1]["weight_kg"]
    if last > first:
        return "increasing"
    if last < first:
        return "decreasing"
    return "stable"


def _high_rpe_streak(window):
    """Trailing sessions at RPE >= 9 with the same weight as the latest."""
    last_weight = window[-1]["weight_kg"]
    streak = 0
    for session in reversed(window):
        if session["rpe"] is None or session["rpe"] < HIGH_RPE:
            break
        if abs(session["weight_kg"] - last_weight) > 1e-9:
            break
        streak += 1
    return streak


def _round_down_to_increment(value, increment):
    return increment * math.floor(value / increment + 1e-9)


def _round_to_increment(value, increment):
    return increment * math.floor(value / increment + 0.5)


def _weight_step(weight, level):
    """Largest plate-friendly increase allowed for one session."""
    percent = PROGRESSION_LIMITS["weight_step_percent"].get(level, 2.5)
    percent = min(percent, PROGRESSION_LIMITS["max_weight_increase_percent"])
    raw = min(weight * percent / 100.0, PROGRESSION_LIMITS["max_weight_increase_kg"])
    return _round_down_to_increment(raw, PROGRESSION_LIMITS["weight_increment_kg"])


def _light_load_note(weight, level):
    percent = min(
        PROGRESSION_LIMITS["weight_step_percent"].get(level, 2.5),
        PROGRESSION_LIMITS["max_weight_increase_percent"],
    )
    increment = _format_kg(PROGRESSION_LIMITS["weight_increment_kg"])
    return f"{_format_kg(weight)} kg is too light for a {increment} kg step within the {percent:g}% limit"


def _deload_weight(weight, percent):
    percent = min(percent, PROGRESSION_LIMITS["max_weight_decrease_percent"])
    increment = PROGRESSION_LIMITS["weight_increment_kg"]
    target = _round_to_increment(weight * (1 - percent / 100.0), increment)
    floor = weight * (1 - PROGRESSION_LIMITS["max_weight_decrease_percent"] / 100.0)
    if target < floor:
        target = weight - _round_down_to_increment(weight - floor, increment)
    return max(0.0, target)


def _deload_volume(last, suggested, percent, entry):
    """Cut reps, or failing that a set, when the load cannot drop by a whole increment."""
    increment = _format_kg(PROGRESSION_LIMITS["weight_increment_kg"])
    reason = f"The load cannot drop by a {increment} kg step"
    reps = max(ABSOLUTE_LIMITS["min_reps"], int(math.floor(last["reps"] * (1 - percent / 100.0))))
    if reps < last["reps"]:
        suggested["reps"] = reps
        return f"{reason}; cut reps to {reps} instead."
    if last["sets"] > entry.min_sets_per_exercise:
        suggested["sets"] = last["sets"] - 1
        return f"{reason}; drop to {suggested['sets']} set(s) instead."
    return f"{reason} and the volume is already minimal; take an extra rest day before repeating it."


def _confidence(window):
    if all(s["rpe"] is None for s in window):
        return "low"
    if len(window) >= TREND_WINDOW:
        return "high"
    return "medium"


def _format_kg(value):
    if abs(value - round(value)) < 1e-9:
        return str(int(round(value)))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _build(exercise_id, exercise_name, current, suggested, kind, confidence, reasoning, trend):
    weight_diff = round(suggested["weight_kg"] - current["weight_kg"], 2)
    percent = 0.0
    if current["weight_kg"]:
        percent = round(weight_diff / current["weight_kg"] * 100.0, 1)
    return {
        "exercise_id": exercise_id,
        "exercise_name": exercise_name,
        "current": current,
        "suggested": suggested,
        "change": {
            "sets_diff": suggested["sets"] - current["sets"],
            "reps_diff": suggested["reps"] - current["reps"],
            "weight_diff_kg": weight_diff,
            "weight_percent": percent,
        },
        "type": kind,
        "confidence": confidence,
        "reasoning": reasoning,
        "trend": trend,
    }


def suggest_progression(history, limits=None, exercise_id=None, exercise_name=None):
    """
    Suggest the next session for one exercise.

    Args:
        history: List of sessions {date, sets, reps, weight_kg, rpe}; reps and
            rpe may be per-set lists, and rpe may instead appear in a free-text
            "log" field ("RPE 8.5")
        limits: LimitEntry supplying the rep ceiling, set cap and level
        exercise_id: Identifier echoed in the suggestion
        exercise_name: Display name echoed in the suggestion

    Returns:
        ProgressionSuggestion dict, or None with fewer than two usable sessions
    """
    entry = limits or CONSERVATIVE_LIMITS
    sessions = _normalize_history(history)
    if len(sessions) < 2:
        return None

    window = sessions[-TREND_WINDOW:]
    last = window[-1]
    trend = _weight_trend(window)
    recent_rpe = _average([s["rpe"] for s in window[-2:]])
    confidence = _confidence(window)
    rep_ceiling = entry.rep_range[1]
    max_sets = entry.max_sets_per_exercise

    current = {"sets": last["sets"], "reps": last["reps"], "weight_kg": last["weight_kg"]}
    suggested = dict(current)

    def result(kind, reasoning, level_of_confidence=None):
        return _build(
            exercise_id,
            exercise_name,
            current,
            suggested,
            kind,
            level_of_confidence or confidence,
            reasoning,
            trend,
        )

    streak = _high_rpe_streak(window)
    if streak >= 2:
        percent = 10.0 if streak == 2 else 15.0
        summary = f"RPE stayed at {HIGH_RPE:g}+ for {streak} sessions at {_format_kg(last['weight_kg'])} kg"
        lighter = _deload_weight(last["weight_kg"], percent)
        if lighter < last["weight_kg"]:
            suggested["weight_kg"] = lighter
            return result("deload", f"{summary}; reduce load about {percent:g}% to recover.", "high")
        return result("deload", f"{summary}. {_deload_volume(last, suggested, percent, entry)}", "high")

    step = _weight_step(last["weight_kg"], entry.level) if last["weight_kg"] > 0 else 0.0
    easy = recent_rpe is None or recent_rpe <= PROGRESS_RPE
    reps_below_ceiling = last["reps"] < rep_ceiling

    if trend == "increasing" and easy and step > 0:
        suggested["weight_kg"] = last["weight_kg"] + step
        return result(
            "increase_weight",
            f"Load has been rising with manageable effort; add {_format_kg(step)} kg.",
        )

    if trend == "decreasing":
        return result(
            "maintain",
            "Load has been trending down; hold the current prescription until it stabilizes.",
        )

    if reps_below_ceiling and easy:
        gain = min(PROGRESSION_LIMITS["max_rep_increase"], rep_ceiling - last["reps"])
        suggested["reps"] = last["reps"] + gain
        return result(
            "increase_reps",
            f"Reps are below the {rep_ceiling}-rep ceiling; add {gain} rep(s) before adding load.",
        )

    low_effort = recent_rpe is None or recent_rpe <= LOW_RPE
    if not reps_below_ceiling and easy:
        if low_effort and step > 0:
            suggested["weight_kg"] = last["weight_kg"] + step
            suggested["reps"] = entry.rep_range[0] if last["reps"] > entry.rep_range[0] else last["reps"]
            return result(
                "increase_weight",
                f"Top of the rep range reached; add {_format_kg(step)} kg and restart at "
                f"{suggested['reps']} reps.",
            )
        # Below this load the smallest plate step is over the per-session percent cap.
        light = low_effort and last["weight_kg"] > 0 and step == 0
        if last["sets"] < max_sets:
            suggested["sets"] = last["sets"] + PROGRESSION_LIMITS["max_set_increase"]
            if light:
                return result(
                    "add_set",
                    f"Top of the rep range reached; {_light_load_note(last['weight_kg'], entry.level)}, "
                    "so add one set instead.",
                )
            return result(
                "add_set",
                "Top of the rep range reached; add one set before adding load.",
            )
        if light:
            return result(
                "maintain",
                f"Top of the rep range and set cap reached; {_light_load_note(last['weight_kg'], entry.level)}. "
                "Move to a harder variation to keep progressing.",
            )

    return result("maintain", "No clear signal to progress; repeat the last session.")


def suggest_workout_progression(histories, limits=None):
    """
    Suggestions for several exercises at once.

    Args:
        histories: Dict of exercise_id -> {"exercise_name", "muscle_group", "history"}
        limits: LimitEntry or {muscle: LimitEntry}

    Returns:
        List of ProgressionSuggestion dicts (exercises without enough data are skipped)
    """
    suggestions = []
    for exercise_id, item in (histories or {}).items():
        entry = limits
        if limits is not None and not hasattr(limits, "rep_range"):
            entry = limits.get(str(item.get("muscle_group") or "").lower())
        suggestion = suggest_progression(
            item.get("history"),
            limits=entry,
            exercise_id=exercise_id,
            exercise_name=item.get("exercise_name") or exercise_id,
        )
        if suggestion is not None:
            suggestions.append(suggestion)
    return suggestions


def summarize_progression(suggestions):
    """Count suggestion types and describe the overall direction."""
    by_type = {}
    for suggestion in suggestions or []:
        by_type[suggestion["type"]] = by_type.get(suggestion["type"], 0) + 1

    total = sum(by_type.values())
    progressing = sum(by_type.get(k, 0) for k in ("increase_weight", "increase_reps", "add_set"))
    if total == 0:
        overall = "insufficient_data"
    elif by_type.get("deload", 0) * 2 >= total:
        overall = "recovering"
    elif progressing * 2 > total:
        overall = "progressing"
    else:
        overall = "stable"
    return {"total": total, "by_type": by_type, "overall_trend": overall}
