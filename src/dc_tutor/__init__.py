"""Divide & Conquer Tutor application package."""

from .bkt import (
    InvalidProbabilityError,
    apply_decay,
    blend_mastery,
    compute_mastery_from_counts,
    compute_mastery_from_sequence,
    derive_parameters,
    estimate_attempts_to_mastery,
    is_mastered,
    predict_correct_probability,
    recommend_difficulty,
    update_knowledge,
)
from .models import AggregateHistory, Attempt, SkillParameters

__all__ = [
    "AggregateHistory",
    "Attempt",
    "InvalidProbabilityError",
    "SkillParameters",
    "apply_decay",
    "blend_mastery",
    "compute_mastery_from_counts",
    "compute_mastery_from_sequence",
    "derive_parameters",
    "estimate_attempts_to_mastery",
    "is_mastered",
    "predict_correct_probability",
    "recommend_difficulty",
    "update_knowledge",
]
