"""
Generation orchestrator: model call, validation, adjustment and deterministic
fallback.
"""

import math
import time
from concurrent import futures

from pydantic import ValidationError

from workout_engine.errors import ConfigurationError, InputError
from workout_engine.generation_context import add_workout_volume, normalize_weekly_context, workout_volume
from workout_engine.input_handler import AIWeeklyPlan, AIWorkout, GenerateWorkoutInput, workout_from_payload
from workout_engine.logging_config import get_logger
from workout_engine.model_gateway import AIError, AIRequest
from workout_engine.plan_validator import apply_adjustments, effective_duration_minutes, validate_workout
from workout_engine.prompts import build_system_prompt, build_weekly_prompt, build_workout_prompt
from workout_engine.safety_limits import frequency_limits, limits_for_profile
from workout_engine.time_fitter import tolerance_band
from workout_engine.workout_generator import (
    generate_weekly_plan,
    generate_workout,
    session_target_minutes,
    training_days_for,
)
from workout_engine.workout_templates import WEEKDAYS


logger = get_logger(__name__)


def _step(stage, outcome, **details):
    entry = {"stage": stage, "outcome": outcome}
    entry.update(details)
    return entry


def _input_error_message(exc):
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts) or str(exc)


class PlanGenerator:
    """Produces workouts that always respect the safety limits, with or without AI."""

    def __init__(
        self,
        gateway=None,
        max_workers=4,
        wait_timeout_seconds=None,
        max_tokens=4096,
        weekly_max_tokens=12000,
        temperature=0.7,
        poll_interval_seconds=0.05,
    ):
        """
        Initialize the orchestrator.

        Args:
            gateway: ModelGateway (None disables AI; AI requests then fail as
                a configuration error)
            max_workers: Threads available for in-flight model calls
            wait_timeout_seconds: Hard deadline for waiting on one model call
                (defaults to the gateway's total timeout plus a small grace)
            max_tokens: Output token cap for single workouts
            weekly_max_tokens: Output token cap for weekly plans
            temperature: Sampling temperature for the model
            poll_interval_seconds: How often cancellation is checked while waiting
        """
        self.gateway = gateway
        if wait_timeout_seconds is None:
            wait_timeout_seconds = getattr(gateway, "total_timeout_seconds", 120) + 5
        self.wait_timeout_seconds = wait_timeout_seconds
        self.max_tokens = max_tokens
        self.weekly_max_tokens = weekly_max_tokens
        self.temperature = temperature
        self.poll_interval_seconds = poll_interval_seconds
        self._executor = futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="model-call")

    def close(self):
        self._executor.shutdown(wait=False)

    def generate(self, request, weekly_context=None, cancel_event=None):
        """
        Produce a workout (or weekly plan) for one request.

        Args:
            request: GenerateWorkoutInput or a dict in its shape (camelCase accepted)
            weekly_context: Volume already logged this week
            cancel_event: threading.Event set when the caller gives up

        Returns:
            Dict with success, workout or plan, source (ai, ai_adjusted or
            fallback), warnings, trail and error
        """
        trail = []
        try:
            payload = (
                request
                if isinstance(request, GenerateWorkoutInput)
                else GenerateWorkoutInput.model_validate(request)
            )
        except ValidationError as exc:
            error = InputError(_input_error_message(exc))
            logger.info("Rejected generation request", extra={"ctx_error": error.message})
            return self._failure(error, trail)

        trail.append(_step("draft", "accepted", duration_type=payload.duration_type, use_ai=payload.use_ai))
        profile = payload.profile.model_dump()
        context = normalize_weekly_context(weekly_context)
        limits = limits_for_profile(profile["fitness_level"], profile["goal"])

        if payload.use_ai and self.gateway is None:
            error = ConfigurationError(
                "AI generation requested but no model gateway is configured", code="AI_NOT_CONFIGURED"
            )
            return self._failure(error, trail)

        if payload.duration_type == "weekly":
            return self._generate_weekly(payload, profile, context, limits, trail, cancel_event)
        return self._generate_single(payload, profile, context, limits, trail, cancel_event)

    def _generate_single(self, payload, profile, context, limits, trail, cancel_event):
        if not payload.use_ai:
            return self._fallback_workout(payload, profile, context, limits, trail, "ai_disabled")

        ai_request = AIRequest(
            request_type="workout",
            user_id=payload.user_id,
            system_prompt=build_system_prompt(),
            user_message=build_workout_prompt(
                profile,
                payload.muscles,
                payload.available_minutes,
                payload.equipment,
                context,
                limits,
                notes=payload.notes,
            ),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_schema=AIWorkout,
        )
        outcome = self._call_model(ai_request, cancel_event, trail)
        if isinstance(outcome, AIError):
            return self._fallback_workout(payload, profile, context, limits, trail, outcome.code)

        reviewed = self._review(workout_from_payload(outcome.payload), context, limits, trail)
        if reviewed is None:
            return self._fallback_workout(payload, profile, context, limits, trail, "validation_failed")

        source, workout, warnings = reviewed
        return self._answer(source, warnings, trail, workout=workout)

    def _generate_weekly(self, payload, profile, context, limits, trail, cancel_event):
        days_per_week = training_days_for(profile)
        if not payload.use_ai:
            return self._fallback_plan(payload, profile, context, trail, "ai_disabled")

        ai_request = AIRequest(
            request_type="weekly_plan",
            user_id=payload.user_id,
            system_prompt=build_system_prompt(),
            user_message=build_weekly_prompt(
                profile,
                payload.muscles,
                payload.available_minutes,
                payload.equipment,
                context,
                limits,
                days_per_week,
                notes=payload.notes,
            ),
            max_tokens=self.weekly_max_tokens,
            temperature=self.temperature,
            response_schema=AIWeeklyPlan,
        )
        outcome = self._call_model(ai_request, cancel_event, trail)
        if isinstance(outcome, AIError):
            return self._fallback_plan(payload, profile, context, trail, outcome.code)

        reviewed = self._review_plan(outcome.payload, profile, context, limits, trail)
        if reviewed is None:
            return self._fallback_plan(payload, profile, context, trail, "validation_failed")

        source, plan, warnings = reviewed
        return self._answer(source, warnings, trail, plan=plan)

    def _call_model(self, ai_request, cancel_event, trail):
        """Run the gateway call on a worker thread and wait with a deadline."""
        future = self._executor.submit(self.gateway.complete, ai_request)
        deadline = time.monotonic() + self.wait_timeout_seconds

        while True:
            if cancel_event is not None and cancel_event.is_set():
                # The call keeps running so its cache and cost updates still land.
                trail.append(_step("model_call", "cancelled"))
                return AIError("CANCELLED", "Request cancelled while waiting for the model")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                trail.append(_step("model_call", "timeout"))
                return AIError("ORCHESTRATOR_TIMEOUT", "Timed out waiting for the model")

            try:
                outcome = future.result(timeout=min(self.poll_interval_seconds, remaining))
            except futures.TimeoutError:
                continue
            except Exception as exc:
                logger.exception("Model gateway raised unexpectedly")
                outcome = AIError("GATEWAY_FAILURE", str(exc))
            break

        if isinstance(outcome, AIError):
            trail.append(_step("model_call", "error", code=outcome.code, message=outcome.message))
        else:
            trail.append(
                _step(
                    "model_call",
                    "cache_hit" if outcome.from_cache else "success",
                    request_id=outcome.request_id,
                    cost_usd=outcome.cost_usd,
                    attempts=outcome.attempts,
                )
            )
        return outcome

    def _review(self, candidate, context, limits, trail, day=None):
        """
        Validate, adjust once if needed, and decide whether to accept.

        Returns:
            Tuple (source, workout, warnings), or None when the candidate must
            be discarded
        """
        label = {"day": day} if day else {}
        result = validate_workout(candidate, context, limits)
        trail.append(
            _step(
                "validate",
                "passed" if result["valid"] else "failed",
                errors=[e["message"] for e in result["errors"]],
                **label,
            )
        )
        if result["valid"] and candidate["exercises"]:
            # A declared duration below the content estimate is not passed through.
            candidate["estimated_duration_minutes"] = int(math.ceil(effective_duration_minutes(candidate)))
            return "ai", candidate, result["warnings"]

        adjusted = apply_adjustments(candidate, result, limits, context)
        workout = adjusted["adjusted_workout"]
        trail.append(
            _step(
                "adjust",
                "passed" if adjusted["valid"] else "failed",
                adjustments=adjusted["adjustments"],
                errors=[e["message"] for e in adjusted["errors"]],
                **label,
            )
        )
        if adjusted["valid"] and workout["exercises"]:
            warnings = list(adjusted["warnings"])
            for message in adjusted["adjustments"]:
                warnings.append({"code": "adjusted", "field": "", "message": message})
            return "ai_adjusted", workout, warnings
        return None

    def _review_plan(self, payload, profile, context, limits, trail):
        by_day = {}
        for item in payload.get("days") or []:
            by_day.setdefault(str(item.get("day") or "").strip().lower(), item)

        running = context
        slots = []
        warnings = []
        weekly_volume = {}
        source = "ai"
        for day_name in WEEKDAYS:
            item = by_day.get(day_name.lower())
            if not item or item.get("is_rest") or not item.get("workout"):
                running = add_workout_volume(running, None, trained=False)
                slots.append({"day": day_name, "is_rest": True, "focus": "Rest", "workout": None})
                continue

            reviewed = self._review(workout_from_payload(item["workout"]), running, limits, trail, day=day_name)
            if reviewed is None:
                return None

            day_source, workout, day_warnings = reviewed
            if day_source == "ai_adjusted":
                source = "ai_adjusted"
            for warning in day_warnings:
                warnings.append(dict(warning, field=f"{day_name}.{warning['field']}".rstrip(".")))

            running = add_workout_volume(running, workout, trained=True)
            for muscle, sets in workout_volume(workout).items():
                weekly_volume[muscle] = weekly_volume.get(muscle, 0) + sets
            slots.append(
                {"day": day_name, "is_rest": False, "focus": item.get("focus") or workout["name"], "workout": workout}
            )

        training = sum(1 for slot in slots if not slot["is_rest"])
        freq = frequency_limits(profile["fitness_level"])
        if training == 0 or training > freq["max_days"]:
            trail.append(_step("validate_plan", "failed", training_days=training, max_days=freq["max_days"]))
            return None

        plan = {
            "name": payload.get("plan_name") or f"{training}-Day Plan",
            "description": payload.get("description") or "",
            "days": slots,
            "weekly_volume": weekly_volume,
            "training_days": training,
        }
        return source, plan, warnings

    def _fallback_workout(self, payload, profile, context, limits, trail, reason):
        workout = generate_workout(
            profile,
            payload.muscles,
            payload.available_minutes,
            equipment=payload.equipment,
            weekly_context=context,
        )
        result = validate_workout(workout, context, limits)
        if not result["valid"]:
            logger.error(
                "Deterministic workout failed validation",
                extra={"ctx_errors": [e["message"] for e in result["errors"]]},
            )
            result = apply_adjustments(workout, result, limits, context)
            workout = result["adjusted_workout"]

        warnings = list(result["warnings"])
        target = session_target_minutes(profile, payload.muscles, payload.available_minutes)
        if not workout["exercises"]:
            warnings.append(
                {
                    "code": "weekly_volume_exhausted",
                    "field": "exercises",
                    "message": "Weekly volume already reached for the requested muscles",
                }
            )
        elif workout["estimated_duration_minutes"] < tolerance_band(target)[0]:
            warnings.append(
                {
                    "code": "duration_below_target",
                    "field": "estimated_duration_minutes",
                    "message": (
                        f"Workout runs {workout['estimated_duration_minutes']} of the requested {target} minutes; "
                        "set limits for these muscles are reached"
                    ),
                }
            )
        trail.append(_step("fallback", "generated", reason=reason))
        logger.info("Served deterministic workout", extra={"ctx_reason": reason})
        return self._answer("fallback", warnings, trail, workout=workout)

    def _fallback_plan(self, payload, profile, context, trail, reason):
        plan = generate_weekly_plan(
            profile,
            muscles=payload.muscles,
            available_minutes=payload.available_minutes,
            equipment=payload.equipment,
            weekly_context=context,
        )
        trail.append(_step("fallback", "generated", reason=reason))
        logger.info("Served deterministic weekly plan", extra={"ctx_reason": reason})
        return self._answer("fallback", [], trail, plan=plan)

    def _answer(self, source, warnings, trail, workout=None, plan=None):
        answer = {
            "success": True,
            "source": source,
            "warnings": warnings,
            "trail": trail,
            "error": None,
        }
        if plan is not None:
            answer["plan"] = plan
        else:
            answer["workout"] = workout
        return answer

    def _failure(self, error, trail):
        trail.append(_step("rejected", error.code, message=error.message))
        return {
            "success": False,
            "source": None,
            "warnings": [],
            "trail": trail,
            "error": error.to_dict(),
        }
