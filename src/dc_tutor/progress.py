"""In-memory learner progress: attempt history, skill estimates, recommendations."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from typing import Iterable

from .bkt import (
    MS_PER_DAY,
    apply_decay,
    blend_mastery,
    compute_mastery_from_counts,
    compute_mastery_from_sequence,
    derive_parameters,
    estimate_attempts_to_mastery,
    mastery_percent,
    predict_correct_probability,
    recommend_difficulty,
)
from .models import (
    DIFFICULTIES,
    SKILLS,
    AggregateHistory,
    Attempt,
    Difficulty,
    Prediction,
    Problem,
    ProblemStats,
    StepRecord,
)
from .problems import load_problems, skill_for_step

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE = 0.3
DEFAULT_PREDICTION = 0.5
DECAY_AFTER_DAYS = 1.0
RECENCY_FULL_DAYS = 14
DIFFICULTY_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3
RECOMMENDATION_LIMIT = 2


def now_ms() -> int:
    return int(time.time() * 1000)


def _difficulty_match(problem_difficulty: str, target: str) -> float:
    distance = abs(DIFFICULTIES.index(problem_difficulty) - DIFFICULTIES.index(target))  # type: ignore[arg-type]
    if distance == 0:
        return 1.0
    if distance == 1:
        return 0.7
    return 0.3


def _recency(stats: ProblemStats | None, current_ms: int) -> float:
    """1.0 for never-attempted problems, ramping up over two weeks otherwise."""
    if stats is None or stats.last_attempt_ms is None:
        return 1.0
    days = (current_ms - stats.last_attempt_ms) / MS_PER_DAY
    return min(1.0, days / RECENCY_FULL_DAYS)


class ProgressStore:
    """Attempt history and knowledge estimates for one learner.

    Writes are serialized with a lock; estimates are recomputed from the full
    history after every write so they always reflect timestamp order.
    """

    def __init__(self, learner_id: str = "guest", problems: dict[str, Problem] | None = None) -> None:
        self.learner_id = learner_id
        self._problems = problems
        self._lock = threading.Lock()
        self.problem_stats: dict[str, ProblemStats] = {}
        self.completed: list[str] = []
        self.in_progress: list[str] = []
        self.knowledge_estimates: dict[str, float] = {}

    @property
    def problems(self) -> dict[str, Problem]:
        if self._problems is None:
            self._problems = load_problems()
        return self._problems

    def record_attempt(
        self,
        problem_id: str,
        step_id: str,
        correct: bool,
        *,
        timestamp_ms: int | None = None,
        difficulty: Difficulty | None = None,
    ) -> float | None:
        """Store one answered step and return the updated skill estimate.

        Returns None when the step does not feed a tracked skill.
        """
        problem = self.problems.get(problem_id)
        if problem is None:
            raise KeyError(f"Unknown problem '{problem_id}'")
        level: Difficulty = difficulty or problem.difficulty
        stamp = now_ms() if timestamp_ms is None else timestamp_ms

        with self._lock:
            stats = self.problem_stats.setdefault(problem_id, ProblemStats(difficulty=level))
            record = stats.steps.setdefault(step_id, StepRecord())
            record.attempts += 1
            if correct:
                record.correct = True
                record.correct_count += 1
            else:
                record.incorrect_count += 1
            record.history.append(Attempt(correct=correct, timestamp_ms=stamp, difficulty=level))

            stats.attempts += 1
            stats.last_attempt_ms = max(stamp, stats.last_attempt_ms or stamp)
            solved = sum(1 for r in stats.steps.values() if r.correct)
            stats.accuracy = round(solved / len(stats.steps) * 100)

            self._update_status(problem, stats)
            self._recompute_skills()

            logger.debug(
                "learner=%s problem=%s step=%s correct=%s", self.learner_id, problem_id, step_id, correct
            )
            skill = skill_for_step(step_id)
            return self.knowledge_estimates.get(skill) if skill else None

    def _update_status(self, problem: Problem, stats: ProblemStats) -> None:
        required = [step.id for step in problem.steps] or list(stats.steps)
        all_correct = all(stats.steps.get(step_id, StepRecord()).correct for step_id in required)
        if all_correct and problem.id not in self.completed:
            if problem.id in self.in_progress:
                self.in_progress.remove(problem.id)
            self.completed.append(problem.id)
            logger.info("learner=%s completed problem=%s", self.learner_id, problem.id)
        elif not all_correct and problem.id not in self.in_progress and problem.id not in self.completed:
            self.in_progress.append(problem.id)

    def _predominant_difficulty(self) -> Difficulty:
        counts = Counter(stats.difficulty for stats in self.problem_stats.values())
        best: Difficulty = "intermediate"
        best_count = 0
        for level in DIFFICULTIES:
            if counts[level] > best_count:
                best, best_count = level, counts[level]
        return best

    def _recompute_skills(self) -> None:
        params_level = self._predominant_difficulty()
        for skill in SKILLS:
            correct_count = 0
            incorrect_count = 0
            attempts: list[Attempt] = []
            for stats in self.problem_stats.values():
                for step_id, record in stats.steps.items():
                    if skill_for_step(step_id) != skill:
                        continue
                    correct_count += record.correct_count
                    incorrect_count += record.incorrect_count
                    attempts.extend(record.history)

            params = derive_parameters(skill, params_level)
            estimate = compute_mastery_from_counts(AggregateHistory(correct_count, incorrect_count), params)
            if attempts:
                sequential = compute_mastery_from_sequence(attempts, params)
                estimate = blend_mastery(estimate, sequential, len(attempts))
            self.knowledge_estimates[skill] = estimate

    def knowledge_estimate(self, skill: str) -> float:
        if skill in self.knowledge_estimates:
            return self.knowledge_estimates[skill]
        return derive_parameters(skill).p_initial

    def skill_mastery(self) -> dict[str, int]:
        return {skill: mastery_percent(self.knowledge_estimate(skill)) for skill in SKILLS}

    def skill_history(self, skill: str) -> AggregateHistory:
        correct_count = 0
        incorrect_count = 0
        for stats in self.problem_stats.values():
            for step_id, record in stats.steps.items():
                if skill_for_step(step_id) == skill:
                    correct_count += record.correct_count
                    incorrect_count += record.incorrect_count
        return AggregateHistory(correct_count, incorrect_count)

    def completion_rate(self, total_problems: int | None = None) -> int:
        total = len(self.problems) if total_problems is None else total_problems
        if total <= 0:
            return 0
        return round(len(self.completed) / total * 100)

    def overall_accuracy(self) -> int:
        values = [stats.accuracy for stats in self.problem_stats.values()]
        if not values:
            return 0
        return round(sum(values) / len(values))

    def recommended_problems(
        self,
        *,
        current_ms: int | None = None,
        limit: int = RECOMMENDATION_LIMIT,
    ) -> list[str]:
        """In-progress problems first, otherwise the best difficulty/recency match."""
        if self.in_progress:
            return self.in_progress[:limit]

        stamp = now_ms() if current_ms is None else current_ms
        estimates = list(self.knowledge_estimates.values())
        average = sum(estimates) / len(estimates) if estimates else DEFAULT_KNOWLEDGE
        target = recommend_difficulty(average)

        scored: list[tuple[float, str]] = []
        for problem in self.problems.values():
            if problem.id in self.completed:
                continue
            score = (
                _difficulty_match(problem.difficulty, target) * DIFFICULTY_WEIGHT
                + _recency(self.problem_stats.get(problem.id), stamp) * RECENCY_WEIGHT
            )
            scored.append((score, problem.id))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [problem_id for _, problem_id in scored[:limit]]

    def predict_next_attempt(self, problem_id: str, step_id: str, *, current_ms: int | None = None) -> Prediction:
        stats = self.problem_stats.get(problem_id)
        if stats is None:
            return Prediction(
                probability_correct=DEFAULT_PREDICTION,
                knowledge_estimate=DEFAULT_KNOWLEDGE,
                original_knowledge=DEFAULT_KNOWLEDGE,
                confidence="medium",
            )

        skill = skill_for_step(step_id) or step_id
        params = derive_parameters(skill, stats.difficulty)
        knowledge = self.knowledge_estimates.get(skill, params.p_initial)
        adjusted = knowledge

        record = stats.steps.get(step_id)
        if record is not None and record.history:
            stamp = now_ms() if current_ms is None else current_ms
            days = (stamp - max(a.timestamp_ms for a in record.history)) / MS_PER_DAY
            if days > DECAY_AFTER_DAYS:
                adjusted = apply_decay(knowledge, days, params)

        attempts = record.attempts if record is not None else 0
        if attempts > 5:
            confidence = "high"
        elif attempts > 2:
            confidence = "medium"
        else:
            confidence = "low"

        return Prediction(
            probability_correct=predict_correct_probability(adjusted, params),
            knowledge_estimate=adjusted,
            original_knowledge=knowledge,
            confidence=confidence,
            attempts_to_mastery=estimate_attempts_to_mastery(adjusted, params),
            recommended_difficulty=recommend_difficulty(adjusted),
            params=params,
        )


_stores: dict[str, ProgressStore] = {}
_stores_lock = threading.Lock()


def get_store(learner_id: str) -> ProgressStore:
    with _stores_lock:
        store = _stores.get(learner_id)
        if store is None:
            store = _stores[learner_id] = ProgressStore(learner_id)
        return store


def reset_stores(learner_ids: Iterable[str] | None = None) -> None:
    with _stores_lock:
        if learner_ids is None:
            _stores.clear()
            return
        for learner_id in learner_ids:
            _stores.pop(learner_id, None)


__all__ = [
    "ProgressStore",
    "get_store",
    "now_ms",
    "reset_stores",
]
