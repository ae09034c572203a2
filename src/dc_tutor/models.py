from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Difficulty = Literal["beginner", "intermediate", "advanced"]
QuestionType = Literal["multiple-choice", "true-false", "fill-in-blank", "drag-drop", "free-text"]
Confidence = Literal["low", "medium", "high"]

DIFFICULTIES: tuple[Difficulty, ...] = ("beginner", "intermediate", "advanced")
QUESTION_TYPES: tuple[QuestionType, ...] = (
    "multiple-choice",
    "true-false",
    "fill-in-blank",
    "drag-drop",
    "free-text",
)

SKILL_DECOMPOSITION = "decomposition"
SKILL_BASE_CASE = "base-case"
SKILL_RECURRENCE = "recurrence"
SKILL_PSEUDOCODE = "pseudocode"
SKILLS: tuple[str, ...] = (
    SKILL_DECOMPOSITION,
    SKILL_BASE_CASE,
    SKILL_RECURRENCE,
    SKILL_PSEUDOCODE,
)

STEP_ALGORITHM_STEPS = "algorithm-steps"
STEP_ALGORITHM_INSIGHT = "algorithm-insight"


@dataclass(frozen=True, slots=True)
class SkillParameters:
    """BKT parameters for one (skill, difficulty) combination."""

    p_initial: float
    p_transition: float
    p_guess: float
    p_slip: float
    p_decay: float
    skill_id: str = ""
    difficulty: str = "intermediate"


@dataclass(frozen=True, slots=True)
class Attempt:
    correct: bool
    timestamp_ms: int
    difficulty: Difficulty = "intermediate"


@dataclass(frozen=True, slots=True)
class AggregateHistory:
    """Order-free projection of an attempt sequence."""

    correct_count: int = 0
    incorrect_count: int = 0

    def __post_init__(self) -> None:
        if self.correct_count < 0 or self.incorrect_count < 0:
            raise ValueError("attempt counts must not be negative")

    @property
    def total(self) -> int:
        return self.correct_count + self.incorrect_count


@dataclass(slots=True)
class Step:
    id: str
    title: str
    instructions: str
    question_type: QuestionType
    data: dict[str, Any] = field(default_factory=dict)
    hints: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Problem:
    id: str
    title: str
    difficulty: Difficulty
    description: str
    category: str = ""
    featured: bool = False
    estimated_time: str = ""
    learning_objectives: list[str] = field(default_factory=list)
    hints: list[str] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)

    def step(self, step_id: str) -> Step | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


@dataclass(slots=True)
class StepRecord:
    correct: bool = False
    attempts: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    history: list[Attempt] = field(default_factory=list)


@dataclass(slots=True)
class ProblemStats:
    difficulty: Difficulty
    attempts: int = 0
    accuracy: int = 0
    last_attempt_ms: int | None = None
    steps: dict[str, StepRecord] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Prediction:
    probability_correct: float
    knowledge_estimate: float
    original_knowledge: float
    confidence: Confidence
    attempts_to_mastery: int | None = None
    recommended_difficulty: Difficulty | None = None
    params: SkillParameters | None = None


__all__ = [
    "AggregateHistory",
    "Attempt",
    "Confidence",
    "DIFFICULTIES",
    "Difficulty",
    "Prediction",
    "Problem",
    "ProblemStats",
    "QUESTION_TYPES",
    "QuestionType",
    "SKILLS",
    "SKILL_BASE_CASE",
    "SKILL_DECOMPOSITION",
    "SKILL_PSEUDOCODE",
    "SKILL_RECURRENCE",
    "STEP_ALGORITHM_INSIGHT",
    "STEP_ALGORITHM_STEPS",
    "SkillParameters",
    "Step",
    "StepRecord",
]
