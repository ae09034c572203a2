"""Tests for bkt.py: parameter derivation, update rule, decay, mastery, predictions."""

from __future__ import annotations

import math

import pytest

from dc_tutor.bkt import (
    DEFAULT_PARAMETERS,
    MAX_ATTEMPTS_TO_MASTERY,
    MS_PER_DAY,
    InvalidProbabilityError,
    apply_decay,
    blend_mastery,
    calibrate_parameters,
    compute_mastery_from_counts,
    compute_mastery_from_sequence,
    derive_parameters,
    estimate_attempts_to_mastery,
    is_mastered,
    mastery_percent,
    predict_correct_probability,
    recommend_difficulty,
    update_knowledge,
)
from dc_tutor.models import AggregateHistory, Attempt, SkillParameters

START_MS = 1_700_000_000_000


@pytest.fixture
def defaults() -> SkillParameters:
    return derive_parameters("unknown-skill", "intermediate")


def _replay(p: float, outcomes: list[bool], params: SkillParameters) -> float:
    for correct in outcomes:
        p = update_knowledge(p, correct, params)
    return p


def _daily(outcomes: list[bool]) -> list[Attempt]:
    return [
        Attempt(correct=correct, timestamp_ms=START_MS + i * MS_PER_DAY)
        for i, correct in enumerate(outcomes)
    ]


class TestDeriveParameters:
    def test_unknown_skill_keeps_defaults(self, defaults):
        assert defaults.p_initial == pytest.approx(0.30)
        assert defaults.p_transition == pytest.approx(0.09)
        assert defaults.p_guess == pytest.approx(0.20)
        assert defaults.p_slip == pytest.approx(0.10)
        assert defaults.p_decay == pytest.approx(0.02)

    def test_skill_override_replaces_prior_and_learn_rate(self):
        params = derive_parameters("recurrence", "intermediate")
        assert params.p_initial == pytest.approx(0.25)
        assert params.p_transition == pytest.approx(0.08)
        assert params.p_guess == pytest.approx(0.20)

    def test_beginner_scaling(self):
        params = derive_parameters("decomposition", "beginner")
        assert params.p_initial == pytest.approx(0.42)
        assert params.p_transition == pytest.approx(0.144)
        assert params.p_guess == pytest.approx(0.22)
        assert params.p_slip == pytest.approx(0.09)
        assert params.p_decay == pytest.approx(0.018)

    def test_advanced_scaling(self):
        params = derive_parameters("base-case", "advanced")
        assert params.p_initial == pytest.approx(0.32)
        assert params.p_transition == pytest.approx(0.08)
        assert params.p_guess == pytest.approx(0.18)
        assert params.p_slip == pytest.approx(0.11)
        assert params.p_decay == pytest.approx(0.022)

    def test_unknown_difficulty_falls_back_to_intermediate(self):
        fallback = derive_parameters("pseudocode", "expert")
        intermediate = derive_parameters("pseudocode", "intermediate")
        assert (fallback.p_initial, fallback.p_transition, fallback.p_guess, fallback.p_slip, fallback.p_decay) == (
            intermediate.p_initial,
            intermediate.p_transition,
            intermediate.p_guess,
            intermediate.p_slip,
            intermediate.p_decay,
        )

    def test_metadata_recorded(self):
        params = derive_parameters("decomposition", "beginner")
        assert params.skill_id == "decomposition"
        assert params.difficulty == "beginner"

    def test_clamps_out_of_range_table_entries(self):
        params = derive_parameters(
            "decomposition",
            "beginner",
            skill_overrides={"decomposition": {"p_initial": 0.9, "p_transition": 0.005}},
        )
        assert params.p_initial == 0.99  # 0.9 * 1.2
        assert params.p_transition == 0.01  # 0.005 * 1.2

    def test_clamps_scaling_factors(self):
        params = derive_parameters(
            "base-case",
            "hostile",
            difficulty_factors={"hostile": {"p_initial": 10.0, "p_transition": 0.0, "p_guess": 1.0, "p_slip": 50.0, "p_decay": -1.0}},
        )
        for value in (params.p_initial, params.p_transition, params.p_guess, params.p_slip, params.p_decay):
            assert 0.01 <= value <= 0.99

    def test_injected_factors_fall_back_to_their_own_intermediate_row(self):
        params = derive_parameters(
            "unknown-skill",
            "expert",
            difficulty_factors={"intermediate": {"p_initial": 2.0, "p_guess": 0.5}},
        )
        assert params.p_initial == pytest.approx(0.60)
        assert params.p_guess == pytest.approx(0.10)
        assert params.p_slip == pytest.approx(0.10)

    def test_injected_factors_without_intermediate_row_use_identity(self):
        params = derive_parameters("unknown-skill", "expert", difficulty_factors={"beginner": {"p_initial": 2.0}})
        assert params.p_initial == pytest.approx(0.30)
        assert params.p_transition == pytest.approx(0.09)

    def test_real_tables_stay_in_range(self):
        for skill in ("decomposition", "base-case", "recurrence", "pseudocode", "other"):
            for level in ("beginner", "intermediate", "advanced"):
                params = derive_parameters(skill, level)
                for value in (params.p_initial, params.p_transition, params.p_guess, params.p_slip, params.p_decay):
                    assert 0.01 <= value <= 0.99

    def test_deterministic(self):
        assert derive_parameters("recurrence", "advanced") == derive_parameters("recurrence", "advanced")

    def test_default_table_not_mutated(self):
        derive_parameters("decomposition", "beginner")
        assert DEFAULT_PARAMETERS["p_initial"] == 0.30


class TestUpdateKnowledge:
    def test_correct_answer_vector(self, defaults):
        # posterior 0.27 / 0.41, then transition
        assert update_knowledge(0.3, True, defaults) == pytest.approx(0.6892682927, abs=1e-9)

    def test_incorrect_answer_vector(self, defaults):
        # posterior 0.03 / 0.59, then transition
        assert update_knowledge(0.3, False, defaults) == pytest.approx(0.1362711864, abs=1e-9)

    def test_order_matters(self, defaults):
        right_then_wrong = update_knowledge(update_knowledge(0.3, True, defaults), False, defaults)
        wrong_then_right = update_knowledge(update_knowledge(0.3, False, defaults), True, defaults)
        assert right_then_wrong != pytest.approx(wrong_then_right)

    def test_zero_prior_only_learns_through_transition(self, defaults):
        assert update_knowledge(0.0, True, defaults) == pytest.approx(defaults.p_transition)

    def test_certain_mastery_stays_certain(self, defaults):
        assert update_knowledge(1.0, False, defaults) == pytest.approx(1.0)

    def test_repeated_correct_approaches_one(self, defaults):
        p = defaults.p_initial
        for _ in range(30):
            p = update_knowledge(p, True, defaults)
        assert p > 0.99

    def test_zero_denominator_handled(self):
        params = SkillParameters(p_initial=0.0, p_transition=0.1, p_guess=0.0, p_slip=0.0, p_decay=0.02)
        assert update_knowledge(0.0, True, params) == pytest.approx(0.1)

    @pytest.mark.parametrize("bad", [-0.01, 1.01, math.nan])
    def test_rejects_out_of_range_estimate(self, defaults, bad):
        with pytest.raises(InvalidProbabilityError):
            update_knowledge(bad, True, defaults)

    def test_invalid_probability_is_value_error(self, defaults):
        with pytest.raises(ValueError):
            update_knowledge(2.0, False, defaults)


class TestApplyDecay:
    def test_zero_elapsed_is_identity(self, defaults):
        assert apply_decay(0.8123, 0, defaults) == 0.8123

    def test_negative_elapsed_is_identity(self, defaults):
        assert apply_decay(0.8123, -3, defaults) == 0.8123

    def test_decays_toward_prior(self, defaults):
        decayed = apply_decay(0.9, 10, defaults)
        assert defaults.p_initial < decayed < 0.9
        assert decayed == pytest.approx(0.3 + 0.6 * math.exp(-0.02 * (1 - math.sqrt(0.9)) * 10))

    def test_never_below_prior(self, defaults):
        assert apply_decay(0.5, 1_000_000, defaults) >= defaults.p_initial
        assert apply_decay(0.5, 1_000_000, defaults) == pytest.approx(defaults.p_initial)

    def test_estimate_below_prior_is_lifted_to_floor(self, defaults):
        assert apply_decay(0.1, 5, defaults) == defaults.p_initial

    def test_stable_knowledge_decays_slower(self, defaults):
        strong_loss = 0.95 - apply_decay(0.95, 30, defaults)
        weak_loss = 0.6 - apply_decay(0.6, 30, defaults)
        assert strong_loss < weak_loss

    def test_rejects_out_of_range_estimate(self, defaults):
        with pytest.raises(InvalidProbabilityError):
            apply_decay(1.5, 3, defaults)


class TestMasteryFromCounts:
    def test_empty_history_returns_prior(self, defaults):
        assert compute_mastery_from_counts(AggregateHistory(), defaults) == defaults.p_initial

    def test_empty_history_display_value(self, defaults):
        estimate = compute_mastery_from_counts(AggregateHistory(0, 0), defaults)
        assert mastery_percent(estimate) == round(defaults.p_initial * 100)

    def test_applies_correct_answers_first(self, defaults):
        expected = _replay(defaults.p_initial, [True, True, True, False], defaults)
        assert compute_mastery_from_counts(AggregateHistory(3, 1), defaults) == pytest.approx(expected)

    def test_differs_from_incorrect_first_ordering(self, defaults):
        incorrect_first = _replay(defaults.p_initial, [False, True, True, True], defaults)
        assert compute_mastery_from_counts(AggregateHistory(3, 1), defaults) != pytest.approx(incorrect_first)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            AggregateHistory(-1, 0)


class TestMasteryFromSequence:
    def test_empty_sequence_returns_prior(self, defaults):
        assert compute_mastery_from_sequence([], defaults) == defaults.p_initial

    def test_sorts_by_timestamp(self, defaults):
        attempts = [
            Attempt(correct=False, timestamp_ms=START_MS + 2000),
            Attempt(correct=True, timestamp_ms=START_MS),
            Attempt(correct=True, timestamp_ms=START_MS + 1000),
        ]
        expected = _replay(defaults.p_initial, [True, True, False], defaults)
        assert compute_mastery_from_sequence(attempts, defaults) == pytest.approx(expected)

    def test_ties_keep_input_order(self, defaults):
        attempts = [
            Attempt(correct=False, timestamp_ms=START_MS),
            Attempt(correct=True, timestamp_ms=START_MS),
        ]
        expected = _replay(defaults.p_initial, [False, True], defaults)
        assert compute_mastery_from_sequence(attempts, defaults) == pytest.approx(expected)

    def test_short_gaps_skip_decay(self, defaults):
        half_day = MS_PER_DAY // 2
        attempts = [Attempt(correct=True, timestamp_ms=START_MS + i * half_day) for i in range(3)]
        expected = _replay(defaults.p_initial, [True, True, True], defaults)
        assert compute_mastery_from_sequence(attempts, defaults) == pytest.approx(expected)

    def test_long_gap_applies_decay(self, defaults):
        attempts = [
            Attempt(correct=True, timestamp_ms=START_MS),
            Attempt(correct=True, timestamp_ms=START_MS + 30 * MS_PER_DAY),
        ]
        p = update_knowledge(defaults.p_initial, True, defaults)
        p = update_knowledge(apply_decay(p, 30, defaults), True, defaults)
        assert compute_mastery_from_sequence(attempts, defaults) == pytest.approx(p)
        assert p < _replay(defaults.p_initial, [True, True], defaults)

    def test_does_not_mutate_input(self, defaults):
        attempts = _daily([True, False, True])[::-1]
        snapshot = list(attempts)
        compute_mastery_from_sequence(attempts, defaults)
        assert attempts == snapshot

    def test_recurrence_scenario_with_daily_gaps(self):
        params = derive_parameters("recurrence", "intermediate")
        observed = compute_mastery_from_sequence(_daily([True, True, False, True]), params)
        two_correct = compute_mastery_from_sequence(_daily([True, True, False, False]), params)
        four_correct = compute_mastery_from_sequence(_daily([True, True, True, True]), params)

        assert two_correct < observed < four_correct
        assert observed == pytest.approx(0.8579, abs=1e-3)
        assert observed == compute_mastery_from_sequence(_daily([True, True, False, True]), params)

    def test_recurrence_scenario_decays_between_days(self):
        params = derive_parameters("recurrence", "intermediate")
        without_gaps = _replay(params.p_initial, [True, True, False, True], params)
        with_gaps = compute_mastery_from_sequence(_daily([True, True, False, True]), params)
        assert with_gaps < without_gaps


class TestBlendMastery:
    def test_no_attempts_uses_aggregate(self):
        assert blend_mastery(0.2, 0.8, 0) == pytest.approx(0.2)

    def test_linear_ramp(self):
        assert blend_mastery(0.2, 0.8, 1) == pytest.approx(0.4)
        assert blend_mastery(0.2, 0.8, 2) == pytest.approx(0.6)

    def test_three_or_more_uses_sequential(self):
        assert blend_mastery(0.2, 0.8, 3) == 0.8
        assert blend_mastery(0.2, 0.8, 10) == 0.8


class TestPredictions:
    def test_predict_correct_probability(self, defaults):
        assert predict_correct_probability(0.0, defaults) == pytest.approx(defaults.p_guess)
        assert predict_correct_probability(1.0, defaults) == pytest.approx(1 - defaults.p_slip)
        assert predict_correct_probability(0.5, defaults) == pytest.approx(0.5 * 0.9 + 0.5 * 0.2)

    def test_predict_rejects_out_of_range(self, defaults):
        with pytest.raises(InvalidProbabilityError):
            predict_correct_probability(-0.5, defaults)

    def test_is_mastered_default_threshold(self):
        assert is_mastered(0.95) is True
        assert is_mastered(0.9499) is False

    def test_is_mastered_custom_threshold(self):
        assert is_mastered(0.8, threshold=0.8) is True

    def test_attempts_to_mastery_already_mastered(self, defaults):
        assert estimate_attempts_to_mastery(0.97, defaults) == 0

    def test_attempts_to_mastery_counts_correct_answers(self, defaults):
        needed = estimate_attempts_to_mastery(defaults.p_initial, defaults)
        assert 1 <= needed < MAX_ATTEMPTS_TO_MASTERY
        p = _replay(defaults.p_initial, [True] * needed, defaults)
        assert p >= 0.95
        assert _replay(defaults.p_initial, [True] * (needed - 1), defaults) < 0.95

    def test_attempts_to_mastery_caps(self):
        hopeless = SkillParameters(p_initial=0.1, p_transition=0.0, p_guess=0.99, p_slip=0.99, p_decay=0.02)
        assert estimate_attempts_to_mastery(0.1, hopeless) == MAX_ATTEMPTS_TO_MASTERY

    @pytest.mark.parametrize(
        ("p", "expected"),
        [
            (0.0, "beginner"),
            (0.39, "beginner"),
            (0.4, "intermediate"),
            (0.749, "intermediate"),
            (0.75, "advanced"),
            (1.0, "advanced"),
        ],
    )
    def test_recommend_difficulty(self, p, expected):
        assert recommend_difficulty(p) == expected

    def test_mastery_percent_rounds(self):
        assert mastery_percent(0.6892) == 69
        assert mastery_percent(0.0) == 0
        assert mastery_percent(1.0) == 100


class TestCalibrateParameters:
    def test_too_few_observations_unchanged(self, defaults):
        assert calibrate_parameters(defaults, [(0.9, False)] * 4) is defaults

    def test_slips_raise_slip_rate(self, defaults):
        observations = [(0.9, False), (0.9, True), (0.5, True), (0.5, False), (0.6, True)]
        calibrated = calibrate_parameters(defaults, observations)
        assert calibrated.p_slip == pytest.approx(0.11)
        assert calibrated.p_guess == defaults.p_guess

    def test_guesses_raise_guess_rate(self, defaults):
        observations = [(0.1, True), (0.2, True), (0.5, True), (0.5, False), (0.6, True)]
        calibrated = calibrate_parameters(defaults, observations)
        assert calibrated.p_guess == pytest.approx(0.22)
        assert calibrated.p_slip == defaults.p_slip

    def test_calibration_capped(self):
        params = SkillParameters(p_initial=0.3, p_transition=0.1, p_guess=0.29, p_slip=0.29, p_decay=0.02)
        observations = [(0.9, False)] * 5 + [(0.1, True)] * 5
        calibrated = calibrate_parameters(params, observations)
        assert calibrated.p_slip == pytest.approx(0.3)
        assert calibrated.p_guess == pytest.approx(0.3)
