"""Problem catalog: YAML loader, lookups, and answer grading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import (
    DIFFICULTIES,
    QUESTION_TYPES,
    SKILL_PSEUDOCODE,
    SKILLS,
    STEP_ALGORITHM_STEPS,
    Difficulty,
    Problem,
    Step,
)
from .pseudocode import analyze_pseudocode

PACKAGE_ROOT = Path(__file__).resolve().parent
DATA_DIR = PACKAGE_ROOT / "data"
DEFAULT_PROBLEMS_FILE = DATA_DIR / "problems.yaml"
PROBLEMS_FILE = Path(os.environ.get("DC_TUTOR_PROBLEMS_PATH", DEFAULT_PROBLEMS_FILE))

_problem_cache: dict[str, Problem] | None = None


class InvalidAnswerError(ValueError):
    """The submitted answer does not have the shape the question type expects."""


@dataclass(slots=True)
class Grade:
    correct: bool
    partial_results: list[bool] = field(default_factory=list)
    details: list[str] = field(default_factory=list)


def _parse_step(entry: dict[str, Any]) -> Step:
    question_type = entry["type"]
    if question_type not in QUESTION_TYPES:
        raise ValueError(f"Step '{entry['id']}' has unknown question type '{question_type}'")
    return Step(
        id=entry["id"],
        title=entry.get("title", ""),
        instructions=entry.get("instructions", ""),
        question_type=question_type,
        data=entry.get("data") or {},
        hints=entry.get("hints", []),
    )


def _parse_problem(entry: dict[str, Any]) -> Problem:
    difficulty = str(entry.get("difficulty", "intermediate")).lower()
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Problem '{entry['id']}' has unknown difficulty '{difficulty}'")
    return Problem(
        id=entry["id"],
        title=entry["title"],
        difficulty=difficulty,  # type: ignore[arg-type]
        description=entry.get("description", ""),
        category=entry.get("category", ""),
        featured=bool(entry.get("featured", False)),
        estimated_time=entry.get("estimated_time", ""),
        learning_objectives=entry.get("learning_objectives", []),
        hints=entry.get("hints", []),
        steps=[_parse_step(step) for step in entry.get("steps", [])],
    )


def load_problems(path: Path | None = None) -> dict[str, Problem]:
    """Parse the catalog into dict[problem_id, Problem]. Cached in memory."""
    global _problem_cache
    if _problem_cache is not None and path is None:
        return _problem_cache

    file_path = path or PROBLEMS_FILE
    with open(file_path, encoding="utf-8") as f:
        raw: list[dict[str, Any]] = yaml.safe_load(f) or []

    problems: dict[str, Problem] = {}
    for entry in raw:
        problem = _parse_problem(entry)
        if problem.id in problems:
            raise ValueError(f"Duplicate problem id '{problem.id}'")
        problems[problem.id] = problem

    if path is None:
        _problem_cache = problems
    return problems


def clear_cache() -> None:
    """Clear the in-memory catalog cache."""
    global _problem_cache
    _problem_cache = None


def get_problem(problem_id: str, problems: dict[str, Problem] | None = None) -> Problem | None:
    if problems is None:
        problems = load_problems()
    return problems.get(problem_id)


def problems_by_difficulty(
    difficulty: Difficulty | None = None,
    problems: dict[str, Problem] | None = None,
) -> list[Problem]:
    if problems is None:
        problems = load_problems()
    if not difficulty:
        return list(problems.values())
    return [p for p in problems.values() if p.difficulty == difficulty]


def featured_problems(problems: dict[str, Problem] | None = None) -> list[Problem]:
    if problems is None:
        problems = load_problems()
    return [p for p in problems.values() if p.featured]


def skill_for_step(step_id: str) -> str | None:
    """Tracked skill for a step id, or None for untracked steps."""
    if step_id in SKILLS:
        return step_id
    if step_id == STEP_ALGORITHM_STEPS:
        return SKILL_PSEUDOCODE
    return None


_ANSWER_SHAPES: dict[str, str] = {
    "multiple-choice": "a string or a list of strings",
    "true-false": "true or false",
    "fill-in-blank": "a list of strings",
    "drag-drop": "a list of strings",
    "free-text": "a string",
}


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def check_answer_shape(step: Step, answer: Any) -> None:
    """Raise InvalidAnswerError when ``answer`` cannot be graded for ``step``.

    A missing answer (None) is gradeable, and wrong, for every type except
    true-false, which needs a real boolean.
    """
    question_type = step.question_type
    if question_type == "true-false":
        ok = isinstance(answer, bool)
    elif answer is None:
        ok = True
    elif question_type == "multiple-choice":
        ok = isinstance(answer, str) or _is_str_list(answer)
    elif question_type in ("fill-in-blank", "drag-drop"):
        ok = _is_str_list(answer)
    else:
        ok = isinstance(answer, str)
    if not ok:
        raise InvalidAnswerError(
            f"Step '{step.id}' expects {_ANSWER_SHAPES[question_type]}, got {type(answer).__name__}"
        )


def _normalize(text: Any) -> str:
    return str(text).strip().lower()


def _grade_multiple_choice(data: dict[str, Any], answer: Any) -> Grade:
    expected = data.get("correct_answer")
    if isinstance(expected, list):
        chosen = [answer] if isinstance(answer, str) else list(answer or [])
        return Grade(correct=set(chosen) == set(expected))
    return Grade(correct=answer == expected)


def _grade_fill_in_blank(data: dict[str, Any], answer: Any) -> Grade:
    blanks: list[list[Any]] = data.get("blanks", [])
    answers = list(answer or [])
    partial = [
        index < len(answers) and _normalize(answers[index]) in {_normalize(alt) for alt in accepted}
        for index, accepted in enumerate(blanks)
    ]
    return Grade(correct=bool(partial) and all(partial), partial_results=partial)


def _grade_free_text(problem: Problem, step: Step, answer: Any) -> Grade:
    text = "" if answer is None else str(answer)
    if step.id == SKILL_PSEUDOCODE:
        analysis = analyze_pseudocode(problem.id, text)
        return Grade(correct=analysis.is_correct, details=analysis.details)
    keywords = step.data.get("validation_keywords") or []
    if keywords:
        lowered = text.lower()
        return Grade(correct=all(_normalize(k) in lowered for k in keywords))
    return Grade(correct=bool(text.strip()))


def grade_answer(problem: Problem, step: Step, answer: Any) -> Grade:
    """Check an answer against the step's question data.

    Raises InvalidAnswerError for answers of the wrong JSON shape.
    """
    check_answer_shape(step, answer)
    if step.question_type == "multiple-choice":
        return _grade_multiple_choice(step.data, answer)
    if step.question_type == "true-false":
        return Grade(correct=answer is bool(step.data.get("correct_answer")))
    if step.question_type == "fill-in-blank":
        return _grade_fill_in_blank(step.data, answer)
    if step.question_type == "drag-drop":
        return Grade(correct=list(answer or []) == list(step.data.get("correct_order", [])))
    return _grade_free_text(problem, step, answer)


__all__ = [
    "DEFAULT_PROBLEMS_FILE",
    "Grade",
    "InvalidAnswerError",
    "PROBLEMS_FILE",
    "check_answer_shape",
    "clear_cache",
    "featured_problems",
    "get_problem",
    "grade_answer",
    "load_problems",
    "problems_by_difficulty",
    "skill_for_step",
]
