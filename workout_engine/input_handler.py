"""
Pydantic models for inbound generation requests and for the JSON the model
is asked to return.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from workout_engine.safety_limits import FITNESS_LEVELS, MUSCLE_CATEGORIES, TRAINING_GOALS
from workout_engine.workout_templates import EQUIPMENT_TYPES


REPS_TEXT_RE = re.compile(r"^\s*\d+\s*(?:[-–]\s*\d+)?\s*$")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ProfileInput(_CamelModel):
    fitness_level: str
    goal: str
    age: int = Field(ge=13, le=100)
    weight_kg: Optional[float] = Field(default=None, gt=25, lt=350)
    height_cm: Optional[float] = Field(default=None, gt=100, lt=250)
    days_per_week: Optional[int] = Field(default=None, ge=1, le=7)

    @field_validator("fitness_level")
    @classmethod
    def valid_level(cls, v):
        value = v.strip().lower()
        if value not in FITNESS_LEVELS:
            raise ValueError(f"fitness_level must be one of {', '.join(FITNESS_LEVELS)}")
        return value

    @field_validator("goal")
    @classmethod
    def valid_goal(cls, v):
        value = v.strip().lower()
        if value not in TRAINING_GOALS:
            raise ValueError(f"goal must be one of {', '.join(TRAINING_GOALS)}")
        return value


class GenerateWorkoutInput(_CamelModel):
    user_id: str = Field(min_length=1, max_length=128)
    profile: ProfileInput
    muscles: List[str] = Field(min_length=1, max_length=len(MUSCLE_CATEGORIES))
    available_minutes: int = Field(ge=15, le=180)
    equipment: List[str] = Field(default_factory=list)
    duration_type: Literal["single", "weekly"] = "single"
    use_ai: bool = True
    notes: str = Field(default="", max_length=500)

    @field_validator("muscles")
    @classmethod
    def valid_muscles(cls, v):
        cleaned = []
        for muscle in v:
            value = str(muscle).strip().lower()
            if value not in MUSCLE_CATEGORIES:
                raise ValueError(f"unknown muscle category: {muscle}")
            if value not in cleaned:
                cleaned.append(value)
        return cleaned

    @field_validator("equipment")
    @classmethod
    def valid_equipment(cls, v):
        cleaned = []
        for item in v:
            value = str(item).strip().lower().replace(" ", "_").replace("-", "_")
            if value not in EQUIPMENT_TYPES:
                raise ValueError(f"unknown equipment: {item}")
            if value not in cleaned:
                cleaned.append(value)
        return cleaned


class AIExercise(BaseModel):
    model_config = ConfigDict(extra="ignore")

    exercise_id: str = ""
    exercise_name: str = Field(min_length=1)
    muscle_group: str = Field(min_length=1)
    sets: int
    reps: Union[int, str]
    weight_suggestion_kg: Optional[float] = Field(default=None, ge=0)
    rest_seconds: int
    notes: Optional[str] = None

    @field_validator("reps")
    @classmethod
    def reps_is_count_or_range(cls, v):
        if isinstance(v, str) and not REPS_TEXT_RE.match(v):
            raise ValueError("reps must be a number or a range like '8-10'")
        return v

    @field_validator("muscle_group")
    @classmethod
    def lower_muscle(cls, v):
        return v.strip().lower().replace(" ", "_")


class AIWorkout(BaseModel):
    model_config = ConfigDict(extra="ignore")

    workout_name: str = Field(min_length=1)
    description: str = ""
    estimated_duration_minutes: float = Field(ge=0)
    exercises: List[AIExercise] = Field(min_length=1)
    warmup_notes: str = ""
    cooldown_notes: str = ""


class AIPlanDay(BaseModel):
    model_config = ConfigDict(extra="ignore")

    day: str
    is_rest: bool = False
    focus: str = ""
    workout: Optional[AIWorkout] = None


class AIWeeklyPlan(BaseModel):
    model_config = ConfigDict(extra="ignore")

    plan_name: str = Field(min_length=1)
    description: str = ""
    days: List[AIPlanDay] = Field(min_length=1, max_length=7)


def workout_from_payload(payload):
    """Map a validated AIWorkout dump onto the engine's GeneratedWorkout shape."""
    exercises = []
    for index, item in enumerate(payload.get("exercises") or []):
        exercises.append(
            {
                "exercise_id": item.get("exercise_id") or f"ai_{index + 1}",
                "exercise_name": item.get("exercise_name"),
                "muscle_group": item.get("muscle_group"),
                "sets": item.get("sets"),
                "reps": item.get("reps"),
                "weight_suggestion_kg": item.get("weight_suggestion_kg"),
                "rest_seconds": item.get("rest_seconds"),
                "notes": item.get("notes") or "",
            }
        )
    return {
        "name": payload.get("workout_name") or "Workout",
        "description": payload.get("description") or "",
        "estimated_duration_minutes": payload.get("estimated_duration_minutes") or 0,
        "exercises": exercises,
        "warmup_notes": payload.get("warmup_notes") or "",
        "cooldown_notes": payload.get("cooldown_notes") or "",
    }
