"""Rule-based feedback messages for answered steps."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .models import AggregateHistory

_GENERIC_POSITIVE = [
    "Correct! Well done.",
    "That's right! Good job.",
    "Perfect! You've got it.",
]

POSITIVE_MESSAGES: dict[str, list[str]] = {
    "decomposition": [
        "Excellent! You've correctly identified how to break down this problem.",
        "Great job on decomposing the problem into manageable subproblems!",
        "Correct! You've found an effective way to decompose this problem.",
    ],
    "base-case": [
        "Perfect! You've identified the correct base case for this algorithm.",
        "That's right! This base case will properly terminate the recursive process.",
        "Correct! This base case correctly handles the smallest instance of the problem.",
    ],
    "recurrence": [
        "Excellent work on formulating the recurrence relation!",
        "Correct! This recurrence relation accurately describes how subproblems combine.",
        "Perfect! You've identified how the solution is constructed from subproblems.",
    ],
    "pseudocode": [
        "Well done! Your pseudocode correctly implements the divide-and-conquer approach.",
        "Excellent job on translating the algorithm into pseudocode!",
        "Perfect! Your solution correctly implements all the necessary steps.",
    ],
}

NEGATIVE_MESSAGES: dict[str, str] = {
    "decomposition": "That approach to decomposing the problem needs refinement.",
    "base-case": "This base case might not handle all scenarios correctly.",
    "recurrence": "The recurrence relation doesn't correctly combine the subproblems.",
    "pseudocode": "Your pseudocode implementation needs some adjustments.",
}

MISCONCEPTIONS: dict[str, dict[str, str]] = {
    "decomposition": {
        "top-down": "Remember that divide-and-conquer typically starts by splitting the problem, not by solving from the top.",
        "sequential": "Divide-and-conquer is about breaking the problem into independent subproblems, not sequential steps.",
        "iterative": "You're thinking of an iterative approach, but divide-and-conquer is recursive by nature.",
    },
    "base-case": {
        "too-large": "The base case you selected handles too large of a problem. Think simpler.",
        "invalid": "This base case doesn't guarantee the algorithm will terminate.",
        "inefficient": "While this base case works, it's not the most efficient option.",
    },
    "recurrence": {
        "incorrect-operation": "Check the operation that combines your subproblems.",
        "missing-terms": "Your recurrence is missing some terms.",
        "wrong-complexity": "This recurrence would lead to a different time complexity than expected.",
    },
    "pseudocode": {
        "ordering": "Check the ordering of your operations.",
        "recursive-call": "Verify your recursive call structure.",
        "combination-step": "The way you combine results from subproblems needs adjustment.",
    },
}

_MULTIPLE_CHOICE_ADVICE: dict[str, str] = {
    "decomposition": "Consider how the problem can be broken into smaller versions of itself.",
    "base-case": "The base case should be the simplest form of the problem that can be solved directly.",
    "recurrence": "Think about how the solution to the original problem relates to solutions of the subproblems.",
    "pseudocode": "Ensure your pseudocode correctly implements the divide, conquer, and combine steps.",
}

_BLANK_GUIDANCE: dict[str, str] = {
    "decomposition": "Focus on how to split the problem into independent subproblems.",
    "base-case": "Think about the simplest version of this problem.",
    "recurrence": "Check the mathematical relationship between the problem and subproblems.",
    "pseudocode": "Review the algorithm structure for this divide-and-conquer approach.",
}

_FREE_TEXT_ADVICE: dict[str, list[str]] = {
    "decomposition": [
        "Your decomposition strategy may not effectively break down the problem.",
        "Consider how to divide this problem into independent subproblems of the same type.",
    ],
    "base-case": [
        "Your base case might not be simple enough.",
        "Ensure your base case covers all termination scenarios.",
    ],
    "recurrence": [
        "Your recurrence relation may not correctly describe how subproblems combine.",
        "Check if your recurrence relation captures the divide-and-conquer nature of the algorithm.",
    ],
    "pseudocode": [
        "Your pseudocode may not correctly implement all steps of the algorithm.",
        "Make sure your pseudocode includes divide, conquer, and combine phases.",
    ],
}

_TRUE_FALSE_ADVICE: dict[str, str] = {
    "decomposition": "Reconsider how divide-and-conquer problems should be decomposed.",
    "base-case": "Review the criteria for a proper base case in this algorithm.",
    "recurrence": "Think about how the subproblems relate to the original problem.",
    "pseudocode": "Examine the structure of divide-and-conquer algorithms more carefully.",
}


@dataclass(slots=True)
class Feedback:
    message: str
    details: list[str] = field(default_factory=list)


def _positive(step_type: str, rng: random.Random | None) -> Feedback:
    pool = POSITIVE_MESSAGES.get(step_type, _GENERIC_POSITIVE)
    chooser = rng if rng is not None else random
    return Feedback(message=chooser.choice(pool))


def _multiple_choice(step_type: str, data: Mapping[str, Any], answer: Any) -> list[str]:
    if not answer:
        return ["Please select an answer."]
    tags = data.get("option_tags") or {}
    if isinstance(answer, str) and answer in tags:
        hint = MISCONCEPTIONS.get(step_type, {}).get(tags[answer])
        if hint:
            return [hint]
    return [_MULTIPLE_CHOICE_ADVICE.get(step_type, "Consider the core principles of divide-and-conquer algorithms.")]


def _fill_in_blank(
    step_type: str,
    data: Mapping[str, Any],
    answer: Any,
    partial_results: Sequence[bool],
) -> list[str]:
    if not answer:
        return ["Please fill in all blanks."]
    if not partial_results:
        return ["Check your answers and try again."]

    blank_hints = data.get("blank_hints") or []
    details = [
        blank_hints[index]
        for index, ok in enumerate(partial_results)
        if not ok and index < len(blank_hints) and blank_hints[index]
    ]
    if details:
        return details

    incorrect = sum(1 for ok in partial_results if not ok)
    if incorrect == len(partial_results):
        details.append("All of your answers need revision.")
    elif incorrect > 1:
        details.append(f"{incorrect} of your answers need revision.")
    else:
        details.append("One of your answers needs revision.")
    if step_type in _BLANK_GUIDANCE:
        details.append(_BLANK_GUIDANCE[step_type])
    return details


def _drag_drop(step_type: str, data: Mapping[str, Any]) -> list[str]:
    if step_type == "pseudocode" or data.get("is_algorithm_steps"):
        return [
            "Check the ordering of the algorithm steps.",
            "Remember that divide-and-conquer follows: divide the problem, solve subproblems, combine results.",
        ]
    if step_type == "decomposition":
        return [
            "Consider the hierarchical nature of the problem decomposition.",
            "Make sure your decomposition breaks the problem into non-overlapping subproblems.",
        ]
    return ["The ordering is not correct. Try rearranging the items."]


def _free_text(step_type: str, answer: Any) -> list[str]:
    if not answer or not str(answer).strip():
        return ["Please provide an answer."]
    return list(_FREE_TEXT_ADVICE.get(step_type, ["Your answer needs revision. Try a different approach."]))


def _true_false(step_type: str, data: Mapping[str, Any]) -> list[str]:
    if data.get("explanation"):
        return [data["explanation"]]
    return [_TRUE_FALSE_ADVICE.get(step_type, "That's not correct. Consider the statement more carefully.")]


def generate_feedback(
    step_type: str,
    question_type: str,
    question_data: Mapping[str, Any],
    answer: Any,
    correct: bool,
    partial_results: Sequence[bool] = (),
    *,
    rng: random.Random | None = None,
) -> Feedback:
    """Pick canned feedback for an answered step.

    ``step_type`` is a skill id. Pass ``rng`` for reproducible positive
    messages.
    """
    if correct:
        return _positive(step_type, rng)

    message = NEGATIVE_MESSAGES.get(step_type, "That's not quite right. Let's try a different approach.")
    if question_type == "multiple-choice":
        details = _multiple_choice(step_type, question_data, answer)
    elif question_type == "fill-in-blank":
        details = _fill_in_blank(step_type, question_data, answer, partial_results)
    elif question_type == "drag-drop":
        details = _drag_drop(step_type, question_data)
    elif question_type == "free-text":
        details = _free_text(step_type, answer)
    elif question_type == "true-false":
        details = _true_false(step_type, question_data)
    else:
        details = ["Review the material and try again."]
    return Feedback(message=message, details=details)


def suggest_next_action(history: AggregateHistory, knowledge_estimate: float) -> str:
    if history.total == 0:
        return "Try solving this step to build your understanding."

    success_rate = history.correct_count / history.total

    if history.total > 3 and success_rate < 0.5:
        return "You might benefit from reviewing the fundamentals of divide-and-conquer before continuing."
    if history.incorrect_count > 2 and knowledge_estimate < 0.4:
        return "Consider reviewing related examples before trying again."
    if success_rate > 0.7 and 0.6 < knowledge_estimate < 0.9:
        return "You're on the right track! Try a more challenging problem next."
    if knowledge_estimate > 0.9:
        return "You've demonstrated strong understanding. Consider helping others or moving to advanced topics."
    return "Keep practicing to strengthen your understanding."


__all__ = [
    "Feedback",
    "MISCONCEPTIONS",
    "NEGATIVE_MESSAGES",
    "POSITIVE_MESSAGES",
    "generate_feedback",
    "suggest_next_action",
]
