"""Bayesian Knowledge Tracing (BKT) estimator for divide-and-conquer skills.

Every function here is pure: it takes the current estimate plus an event and
returns the next estimate. Callers own persistence and must feed attempts for
one (learner, skill) pair in timestamp order.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable, Mapping, Sequence

from .models import AggregateHistory, Attempt, Difficulty, SkillParameters

PARAM_MIN = 0.01
PARAM_MAX = 0.99

DEFAULT_PARAMETERS: dict[str, float] = {
    "p_initial": 0.30,
    "p_transition": 0.09,
    "p_guess": 0.20,
    "p_slip": 0.10,
    "p_decay": 0.02,
}

# Replacement values, not deltas.
SKILL_OVERRIDES: dict[str, dict[str, float]] = {
    "decomposition": {"p_initial": 0.35, "p_transition": 0.12},
    "base-case": {"p_initial": 0.40, "p_transition": 0.10},
    "recurrence": {"p_initial": 0.25, "p_transition": 0.08},
    "pseudocode": {"p_initial": 0.30, "p_transition": 0.07},
}

DIFFICULTY_FACTORS: dict[str, dict[str, float]] = {
    "beginner": {"p_initial": 1.2, "p_transition": 1.2, "p_guess": 1.1, "p_slip": 0.9, "p_decay": 0.9},
    "intermediate": {"p_initial": 1.0, "p_transition": 1.0, "p_guess": 1.0, "p_slip": 1.0, "p_decay": 1.0},
    "advanced": {"p_initial": 0.8, "p_transition": 0.8, "p_guess": 0.9, "p_slip": 1.1, "p_decay": 1.1},
}

MASTERY_THRESHOLD = 0.95
MAX_ATTEMPTS_TO_MASTERY = 100
DECAY_GAP_DAYS = 0.5
BLEND_FULL_TRUST_ATTEMPTS = 3
MS_PER_DAY = 1000 * 60 * 60 * 24

MIN_CALIBRATION_OBSERVATIONS = 5
CALIBRATION_CEILING = 0.3


class InvalidProbabilityError(ValueError):
    """A knowledge estimate outside [0, 1] was passed to the estimator."""


def _check_probability(value: float, name: str = "p_current") -> float:
    # NaN fails both comparisons
    if not (0.0 <= value <= 1.0):
        raise InvalidProbabilityError(f"{name} must be within [0, 1], got {value!r}")
    return value


def _clamp(value: float) -> float:
    return max(PARAM_MIN, min(PARAM_MAX, value))


def derive_parameters(
    skill_id: str,
    difficulty: str = "intermediate",
    *,
    skill_overrides: Mapping[str, Mapping[str, float]] | None = None,
    difficulty_factors: Mapping[str, Mapping[str, float]] | None = None,
) -> SkillParameters:
    """Defaults, then skill overrides, then difficulty scaling, then clamp.

    Unknown skills keep the defaults; unknown difficulties scale with the
    table's intermediate row.
    """
    overrides = SKILL_OVERRIDES if skill_overrides is None else skill_overrides
    factors_table = DIFFICULTY_FACTORS if difficulty_factors is None else difficulty_factors

    values = dict(DEFAULT_PARAMETERS)
    values.update(overrides.get(skill_id, {}))

    factors = (
        factors_table.get(difficulty)
        or factors_table.get("intermediate")
        or DIFFICULTY_FACTORS["intermediate"]
    )
    scaled = {key: _clamp(value * factors.get(key, 1.0)) for key, value in values.items()}

    return SkillParameters(skill_id=skill_id, difficulty=difficulty, **scaled)


def update_knowledge(p_current: float, correct: bool, params: SkillParameters) -> float:
    """Condition ``p_current`` on one observed answer, then allow learning.

    A correct answer is explained either by knowing the skill and not
    slipping (``1 - params.p_slip``) or by guessing (``params.p_guess``); a
    wrong one by slipping or by not knowing and not guessing. The resulting
    posterior then moves toward 1 by ``params.p_transition``.
    """
    _check_probability(p_current)
    if correct:
        numerator = p_current * (1 - params.p_slip)
        denominator = numerator + (1 - p_current) * params.p_guess
    else:
        numerator = p_current * params.p_slip
        denominator = numerator + (1 - p_current) * (1 - params.p_guess)

    if denominator == 0:
        p_posterior = 0.0
    else:
        p_posterior = numerator / denominator

    p_new = p_posterior + (1 - p_posterior) * params.p_transition
    return max(0.0, min(1.0, p_new))


def apply_decay(p_current: float, elapsed_days: float, params: SkillParameters) -> float:
    """Regress an estimate toward p_initial after a gap without practice.

    Stronger knowledge decays slower. The result never drops below
    p_initial.
    """
    _check_probability(p_current)
    if elapsed_days <= 0:
        return p_current

    stability = math.sqrt(p_current)
    decay_rate = params.p_decay * (1 - stability)
    decay_factor = math.exp(-decay_rate * elapsed_days)
    return max(params.p_initial, params.p_initial + (p_current - params.p_initial) * decay_factor)


def compute_mastery_from_counts(history: AggregateHistory, params: SkillParameters) -> float:
    """Replay all correct answers, then all incorrect ones, from the prior."""
    p = params.p_initial
    for _ in range(history.correct_count):
        p = update_knowledge(p, True, params)
    for _ in range(history.incorrect_count):
        p = update_knowledge(p, False, params)
    return p


def compute_mastery_from_sequence(attempts: Iterable[Attempt], params: SkillParameters) -> float:
    """Replay timestamped attempts oldest first, decaying across long gaps."""
    ordered = sorted(attempts, key=lambda attempt: attempt.timestamp_ms)
    p = params.p_initial
    if not ordered:
        return p

    last_timestamp = ordered[0].timestamp_ms
    for attempt in ordered:
        elapsed_days = (attempt.timestamp_ms - last_timestamp) / MS_PER_DAY
        if elapsed_days > DECAY_GAP_DAYS:
            p = apply_decay(p, elapsed_days, params)
        p = update_knowledge(p, attempt.correct, params)
        last_timestamp = attempt.timestamp_ms
    return p


def blend_mastery(aggregate: float, sequential: float, attempt_count: int) -> float:
    """Ramp trust from the aggregate estimate to the sequential one."""
    if attempt_count >= BLEND_FULL_TRUST_ATTEMPTS:
        return sequential
    weight = max(0, attempt_count) / BLEND_FULL_TRUST_ATTEMPTS
    return aggregate * (1 - weight) + sequential * weight


def predict_correct_probability(p: float, params: SkillParameters) -> float:
    _check_probability(p, "p")
    return p * (1 - params.p_slip) + (1 - p) * params.p_guess


def is_mastered(p: float, threshold: float = MASTERY_THRESHOLD) -> bool:
    return p >= threshold


def estimate_attempts_to_mastery(
    p: float,
    params: SkillParameters,
    threshold: float = MASTERY_THRESHOLD,
) -> int:
    """Correct answers needed to reach ``threshold``.

    Returns ``MAX_ATTEMPTS_TO_MASTERY`` when the cap is hit; callers treat
    that value as "no convergence found".
    """
    _check_probability(p, "p")
    attempts = 0
    current = p
    while current < threshold and attempts < MAX_ATTEMPTS_TO_MASTERY:
        current = update_knowledge(current, True, params)
        attempts += 1
    return attempts


def recommend_difficulty(p: float) -> Difficulty:
    if p < 0.4:
        return "beginner"
    if p < 0.75:
        return "intermediate"
    return "advanced"


def mastery_percent(p: float) -> int:
    """Whole-percent display value. Not for use between chained updates."""
    return round(p * 100)


def calibrate_parameters(
    params: SkillParameters,
    observations: Sequence[tuple[float, bool]],
) -> SkillParameters:
    """Nudge slip/guess upward when observed outcomes contradict estimates.

    ``observations`` holds ``(knowledge_estimate, answered_correctly)`` pairs.
    """
    if len(observations) < MIN_CALIBRATION_OBSERVATIONS:
        return params

    slips = sum(1 for estimate, correct in observations if estimate > 0.7 and not correct)
    guesses = sum(1 for estimate, correct in observations if estimate < 0.3 and correct)

    p_slip = params.p_slip
    p_guess = params.p_guess
    if slips > len(observations) * 0.1:
        p_slip = min(CALIBRATION_CEILING, p_slip * 1.1)
    if guesses > len(observations) * 0.2:
        p_guess = min(CALIBRATION_CEILING, p_guess * 1.1)
    return replace(params, p_slip=p_slip, p_guess=p_guess)


__all__ = [
    "BLEND_FULL_TRUST_ATTEMPTS",
    "DECAY_GAP_DAYS",
    "DEFAULT_PARAMETERS",
    "DIFFICULTY_FACTORS",
    "InvalidProbabilityError",
    "MASTERY_THRESHOLD",
    "MAX_ATTEMPTS_TO_MASTERY",
    "MS_PER_DAY",
    "PARAM_MAX",
    "PARAM_MIN",
    "SKILL_OVERRIDES",
    "apply_decay",
    "blend_mastery",
    "calibrate_parameters",
    "compute_mastery_from_counts",
    "compute_mastery_from_sequence",
    "derive_parameters",
    "estimate_attempts_to_mastery",
    "is_mastered",
    "mastery_percent",
    "predict_correct_probability",
    "recommend_difficulty",
    "update_knowledge",
]
