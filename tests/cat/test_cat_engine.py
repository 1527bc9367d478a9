"""
Tests for the CATEngine orchestrator.

Acceptance criteria:
- Fresh state carries the exam's initial ability, SE 1.0 and no responses
- update_ability never mutates its input and keeps the response count in sync
- Ability stays within [-3, 3] for any response pattern
- Stopping precedence: pool exhausted, then item ceiling, then precision
- should_continue and select_next_question agree on stopping
"""
import dataclasses

import pytest

from exam_cat.core.cat import engine as engine_module
from exam_cat.core.cat.engine import (
    CATEngine,
    CATSettings,
    CATState,
    cat_engine,
)
from exam_cat.core.cat.item_selection import CATNextQuestion
from exam_cat.core.cat.score_conversion import PerformanceSummary
from exam_cat.core.cat.stopping_rules import StopReason
from tests.conftest import MockQuestion


def _answer(engine, state, pattern, difficulty=0.5):
    for is_correct in pattern:
        state = engine.update_ability(state, difficulty, is_correct)
    return state


class TestCATSettings:
    def test_defaults(self, default_settings):
        assert default_settings.initial_ability == 0.0
        assert default_settings.precision_threshold == pytest.approx(0.3)
        assert default_settings.min_questions == 5
        assert default_settings.max_questions == 30

    def test_frozen(self, default_settings):
        with pytest.raises(AttributeError):
            default_settings.min_questions = 10

    def test_engine_falls_back_to_config(self):
        engine = CATEngine()
        assert engine.default_settings == CATSettings.from_config()

    def test_module_singleton(self):
        assert isinstance(cat_engine, CATEngine)


class TestInitializeState:
    def test_fresh_state(self, engine):
        state = engine.initialize_state()
        assert state.ability_estimate == 0.0
        assert state.standard_error == pytest.approx(1.0)
        assert state.questions_administered == 0
        assert state.responses == []

    def test_uses_initial_ability(self, engine):
        state = engine.initialize_state(CATSettings(initial_ability=1.5))
        assert state.ability_estimate == pytest.approx(1.5)
        assert state.standard_error == pytest.approx(1.0)

    def test_other_settings_ignored(self, engine):
        state = engine.initialize_state(
            CATSettings(precision_threshold=0.9, min_questions=1, max_questions=2)
        )
        assert state.ability_estimate == 0.0

    def test_no_settings_starts_at_zero(self, engine):
        assert engine.initialize_state().ability_estimate == 0.0

    def test_no_settings_ignores_configured_initial_ability(self, monkeypatch):
        from exam_cat.core.config import Settings

        monkeypatch.setenv("CAT_INITIAL_ABILITY", "1.5")
        monkeypatch.setattr(engine_module, "app_settings", Settings(_env_file=None))

        engine = CATEngine()
        assert engine.default_settings.initial_ability == pytest.approx(1.5)
        assert engine.initialize_state().ability_estimate == 0.0
        assert engine.initialize_state(
            engine.default_settings
        ).ability_estimate == pytest.approx(1.5)

    def test_states_are_independent(self, engine):
        first = engine.initialize_state()
        second = engine.initialize_state()
        first.responses.append("x")
        assert second.responses == []


class TestUpdateAbility:
    def test_single_correct(self, engine):
        state = engine.update_ability(engine.initialize_state(), 0.5, True)
        assert state.ability_estimate == pytest.approx(3.0)
        assert state.questions_administered == 1
        # SE at the clamped estimate: 1 / sqrt(P(1 - P)) with P = sigmoid(3)
        assert state.standard_error == pytest.approx(4.70, abs=0.01)

    def test_single_incorrect(self, engine):
        state = engine.update_ability(engine.initialize_state(), 0.5, False)
        assert state.ability_estimate == pytest.approx(-3.0)

    def test_input_state_not_mutated(self, engine):
        original = engine.initialize_state()
        updated = engine.update_ability(original, 0.5, True)

        assert original.questions_administered == 0
        assert original.responses == []
        assert original.ability_estimate == 0.0
        assert updated is not original
        assert updated.responses is not original.responses

    def test_history_preserved_across_updates(self, engine):
        s1 = engine.update_ability(engine.initialize_state(), 0.5, True)
        s2 = engine.update_ability(s1, 0.6, False)

        assert len(s1.responses) == 1
        assert len(s2.responses) == 2
        assert s2.responses[0] == s1.responses[0]
        assert s2.responses[1].difficulty == pytest.approx(0.6)
        assert s2.responses[1].is_correct is False

    def test_responses_are_immutable(self, engine):
        s1 = engine.update_ability(engine.initialize_state(), 0.5, True)
        s2 = engine.update_ability(s1, 0.6, False)

        with pytest.raises(dataclasses.FrozenInstanceError):
            s2.responses[0].is_correct = False

        s2.responses.pop(0)
        assert len(s1.responses) == 1
        assert s1.responses[0].is_correct is True

    def test_count_matches_responses(self, engine):
        state = _answer(engine, engine.initialize_state(), [True, False] * 6)
        assert state.questions_administered == len(state.responses) == 12

    def test_default_question_ids(self, engine):
        state = _answer(engine, engine.initialize_state(), [True, False, True])
        assert [r.question_id for r in state.responses] == ["q_0", "q_1", "q_2"]

    def test_explicit_question_id(self, engine):
        state = engine.update_ability(
            engine.initialize_state(), 0.5, True, question_id="item-42"
        )
        assert state.responses[0].question_id == "item-42"

    def test_balanced_responses(self, engine):
        state = _answer(engine, engine.initialize_state(), [True, False, True, False])
        assert state.ability_estimate == pytest.approx(0.0)
        assert state.standard_error == pytest.approx(1.0)

    @pytest.mark.parametrize("is_correct,bound", [(True, 3.0), (False, -3.0)])
    def test_uniform_responses_stay_clamped(self, engine, is_correct, bound):
        state = engine.initialize_state()
        for _ in range(25):
            state = engine.update_ability(state, 0.5, is_correct)
            assert -3.0 <= state.ability_estimate <= 3.0
        assert state.ability_estimate == pytest.approx(bound)

    def test_out_of_range_difficulty_accepted(self, engine):
        state = engine.update_ability(engine.initialize_state(), 1.4, False)
        state = engine.update_ability(state, -0.2, True)
        assert -3.0 <= state.ability_estimate <= 3.0
        assert state.questions_administered == 2

    def test_initial_ability_not_used_after_first_response(self, engine):
        state = engine.initialize_state(CATSettings(initial_ability=2.0))
        state = _answer(engine, state, [True, False])
        assert state.ability_estimate == pytest.approx(0.0)


class TestSelectNextQuestion:
    def test_selects_most_informative(self, engine, question_pool):
        result = engine.select_next_question(engine.initialize_state(), question_pool)
        assert isinstance(result, CATNextQuestion)
        assert result.question.id == "pool_3"

    def test_follows_ability(self, engine, question_pool):
        state = CATState(ability_estimate=2.4, standard_error=0.8, questions_administered=0)
        result = engine.select_next_question(state, question_pool)
        assert result.question.difficulty == pytest.approx(0.9)

    def test_empty_pool_returns_none(self, engine):
        state = engine.initialize_state()
        assert engine.select_next_question(state, []) is None
        assert engine.stop_reason(state, []) == StopReason.POOL_EXHAUSTED

    def test_does_not_mutate_state(self, engine, question_pool):
        state = engine.initialize_state()
        engine.select_next_question(state, question_pool)
        assert state.questions_administered == 0
        assert state.responses == []

    def test_max_questions_ceiling(self, engine, question_pool):
        settings = CATSettings(max_questions=5)
        state = _answer(engine, engine.initialize_state(settings), [True, False] * 2)
        assert engine.select_next_question(state, question_pool, settings) is not None

        state = engine.update_ability(state, 0.5, True)
        assert engine.select_next_question(state, question_pool, settings) is None
        assert engine.stop_reason(state, question_pool, settings) == (
            StopReason.MAX_QUESTIONS
        )

    def test_precision_stop_after_min(self, engine, question_pool):
        settings = CATSettings(precision_threshold=0.9, min_questions=3)
        state = engine.initialize_state(settings)

        # 4 items: theta=0, SE=1.0 -> continue
        state = _answer(engine, state, [True, False, True, False])
        assert engine.select_next_question(state, question_pool, settings) is not None

        # 5 items: SE ~ 0.913 -> continue
        state = engine.update_ability(state, 0.5, True)
        assert state.standard_error > 0.9
        assert engine.select_next_question(state, question_pool, settings) is not None

        # 6 items: theta=0, SE ~ 0.816 -> stop
        state = engine.update_ability(state, 0.5, False)
        assert state.standard_error == pytest.approx(0.8165, abs=1e-3)
        assert engine.select_next_question(state, question_pool, settings) is None
        assert engine.stop_reason(state, question_pool, settings) == (
            StopReason.PRECISION_REACHED
        )

    def test_precision_ignored_below_min(self, engine, question_pool):
        settings = CATSettings(precision_threshold=0.99, min_questions=10)
        state = _answer(engine, engine.initialize_state(), [True, False] * 3)
        assert engine.select_next_question(state, question_pool, settings) is not None

    def test_threshold_controls_stop(self, engine, question_pool):
        state = _answer(engine, engine.initialize_state(), [True, False] * 3)

        strict = CATSettings(precision_threshold=0.5, min_questions=3)
        loose = CATSettings(precision_threshold=0.9, min_questions=3)

        assert engine.select_next_question(state, question_pool, strict) is not None
        assert engine.select_next_question(state, question_pool, loose) is None

    def test_engine_defaults_used_without_settings(self, question_pool):
        engine = CATEngine(default_settings=CATSettings(max_questions=1))
        state = engine.update_ability(engine.initialize_state(), 0.5, True)
        assert engine.select_next_question(state, question_pool) is None

    def test_deterministic(self, engine, question_pool):
        state = _answer(engine, engine.initialize_state(), [True, True, False])
        first = engine.select_next_question(state, question_pool)
        second = engine.select_next_question(state, question_pool)
        assert first.question.id == second.question.id


class TestShouldContinue:
    def test_fresh_state_continues(self, engine):
        assert engine.should_continue(engine.initialize_state()) is True

    def test_stops_at_max(self, engine):
        settings = CATSettings(max_questions=3)
        state = _answer(engine, engine.initialize_state(), [True, False, True])
        assert engine.should_continue(state, settings) is False

    def test_max_wins_over_larger_min(self, engine):
        settings = CATSettings(min_questions=10, max_questions=5)
        state = _answer(engine, engine.initialize_state(), [True, False] * 2 + [True])
        assert engine.should_continue(state, settings) is False
        assert engine.stop_reason(state, None, settings) == StopReason.MAX_QUESTIONS

    def test_stops_on_precision(self, engine):
        settings = CATSettings(precision_threshold=0.9, min_questions=3)
        state = _answer(engine, engine.initialize_state(), [True, False] * 3)
        assert engine.should_continue(state, settings) is False

    @pytest.mark.parametrize("n_items", [0, 2, 4, 5, 6, 8])
    def test_agrees_with_selection(self, engine, question_pool, n_items):
        settings = CATSettings(precision_threshold=0.9, min_questions=3, max_questions=8)
        state = _answer(
            engine, engine.initialize_state(), [i % 2 == 0 for i in range(n_items)]
        )
        selected = engine.select_next_question(state, question_pool, settings)
        assert engine.should_continue(state, settings) is (selected is not None)


class TestScoring:
    @pytest.mark.parametrize(
        "theta,expected", [(0.0, 50), (1.0, 85), (-1.0, 15), (3.0, 99), (-3.0, 1)]
    )
    def test_calculate_score(self, engine, theta, expected):
        assert engine.calculate_score(theta) == expected

    def test_analyze_performance(self, engine):
        state = _answer(engine, engine.initialize_state(), [True, False, True, False])
        summary = engine.analyze_performance(state)

        assert isinstance(summary, PerformanceSummary)
        assert summary.precision == pytest.approx(1.0)
        assert summary.efficiency == pytest.approx(0.25)
        assert summary.score == 50
        assert summary.percentile == pytest.approx(50.0)

    def test_analyze_fresh_state(self, engine):
        summary = engine.analyze_performance(engine.initialize_state())
        assert summary.efficiency == 0.0


class TestFullAttempt:
    """Drives a complete attempt the way the exam workflow does."""

    def test_pool_exhausted_attempt(self, engine, question_pool):
        state = engine.initialize_state()
        available = list(question_pool)
        seen = []

        while True:
            next_question = engine.select_next_question(state, available)
            if next_question is None:
                break
            item = next_question.question
            # Examinee answers items at or below 0.5 correctly
            state = engine.update_ability(
                state, item.difficulty, item.difficulty <= 0.5, question_id=item.id
            )
            available.remove(item)
            seen.append(item.id)

        assert state.questions_administered == len(question_pool)
        assert sorted(seen) == sorted(q.id for q in question_pool)
        assert len(set(seen)) == len(seen)
        assert engine.stop_reason(state, available) == StopReason.POOL_EXHAUSTED
        assert -3.0 <= state.ability_estimate <= 3.0

    def test_attempt_respects_ceiling(self, engine):
        pool = [MockQuestion(id=f"q{i}", difficulty=0.5) for i in range(20)]
        settings = CATSettings(max_questions=6)
        state = engine.initialize_state(settings)

        while (nq := engine.select_next_question(state, pool, settings)) is not None:
            state = engine.update_ability(
                state, nq.question.difficulty, True, question_id=nq.question.id
            )
            pool.remove(nq.question)

        assert state.questions_administered == 6
        assert engine.stop_reason(state, pool, settings) == StopReason.MAX_QUESTIONS
