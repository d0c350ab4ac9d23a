"""Tests for the request context accumulator.

Results only accumulate: nothing is overwritten, steps are numbered by
the context alone, and a sealed context ignores the workflow.
"""
import pytest

from mindweave.shared.models import AgentExecutionResult, AgentName, ExecutionType, StepStatus
from mindweave.services.agent_service import score_emotions
from mindweave.services.orchestration_service import (
    ContextDelta,
    ContextInvariantError,
    PendingStep,
)


def make_step(description="step"):
    return PendingStep(
        description=description,
        agents_involved=["Orchestrator"],
        execution_type=ExecutionType.SERIAL,
        start_time_ms=0.0,
        duration_ms=1.0,
    )


def make_result(agent=AgentName.EMOTION_ANALYZER, success=True):
    return AgentExecutionResult(
        agent_name=agent,
        assigned_task="task",
        start_time_ms=0.0,
        end_time_ms=5.0,
        result=None,
        confidence=0.8,
        success=success,
        reasoning="test",
        influence_on_final_response=0.8,
    )


class TestStepNumbering:

    def test_steps_numbered_in_apply_order(self, make_context):
        context = make_context()

        context.apply(ContextDelta(steps=(make_step("a"),)))
        appended = context.apply(ContextDelta(steps=(make_step("b"), make_step("c"))))

        assert [s.step_number for s in context.orchestration_log] == [1, 2, 3]
        assert [s.step_id for s in appended] == ["step_2", "step_3"]
        assert context.last_step_id == "step_3"

    def test_step_fields_carried_over(self, make_context):
        context = make_context()
        pending = PendingStep(
            description="Emotion Analyzer: analyze",
            agents_involved=["Emotion Analyzer"],
            execution_type=ExecutionType.PARALLEL,
            start_time_ms=2.0,
            duration_ms=3.0,
            status=StepStatus.ERROR,
            dependencies=["step_1"],
            results={"agent": "emotion_analyzer"},
            error_message="boom",
        )

        step = context.apply(ContextDelta(steps=(pending,)))[0]

        assert step.execution_type == ExecutionType.PARALLEL
        assert step.status == StepStatus.ERROR
        assert step.dependencies == ["step_1"]
        assert step.error_message == "boom"


class TestAccumulation:

    def test_result_fields_populated(self, make_context):
        context = make_context()
        emotion = score_emotions("I'm so anxious")

        context.apply(ContextDelta(emotion=emotion, agent_results=(make_result(),)))

        assert context.emotion == emotion
        assert context.snapshot().emotion == emotion
        assert len(context.snapshot().agent_results) == 1

    def test_overwrite_with_different_value_rejected(self, make_context):
        context = make_context()
        context.apply(ContextDelta(emotion=score_emotions("I'm so anxious")))

        with pytest.raises(ContextInvariantError):
            context.apply(ContextDelta(emotion=score_emotions("I'm happy")))

    def test_same_value_is_accepted(self, make_context):
        context = make_context()
        emotion = score_emotions("I'm so anxious")
        context.apply(ContextDelta(emotion=emotion))

        context.apply(ContextDelta(emotion=emotion))

        assert context.emotion == emotion

    def test_duplicate_agent_result_rejected(self, make_context):
        context = make_context()
        context.apply(ContextDelta(agent_results=(make_result(),)))

        with pytest.raises(ContextInvariantError):
            context.apply(ContextDelta(agent_results=(make_result(success=False),)))

    def test_final_response_cannot_change(self, make_context):
        context = make_context()
        context.apply(ContextDelta(final_response="first", response_confidence=0.7))

        with pytest.raises(ContextInvariantError):
            context.apply(ContextDelta(final_response="second"))

    def test_confidence_out_of_range_rejected(self, make_context):
        context = make_context()

        with pytest.raises(ContextInvariantError):
            context.apply(ContextDelta(response_confidence=1.2))

    def test_rejected_delta_changes_nothing(self, make_context):
        context = make_context()
        context.apply(ContextDelta(agent_results=(make_result(),)))

        with pytest.raises(ContextInvariantError):
            context.apply(ContextDelta(
                agent_results=(make_result(AgentName.MEMORY_MANAGER), make_result()),
                warning_flags=frozenset({"agent_error"}),
                steps=(make_step(),),
            ))

        assert len(context.agent_results) == 1
        assert context.warning_flags == set()
        assert context.orchestration_log == []

    def test_follow_up_deduplicated(self, make_context):
        context = make_context()

        context.apply(ContextDelta(recommended_follow_up=("a", "b")))
        context.apply(ContextDelta(recommended_follow_up=("b", "c")))

        assert context.recommended_follow_up == ["a", "b", "c"]


class TestSealing:

    def test_sealed_context_discards_deltas(self, make_context):
        context = make_context()
        context.seal()

        appended = context.apply(ContextDelta(
            emotion=score_emotions("sad"),
            agent_results=(make_result(),),
            steps=(make_step(),),
        ))

        assert appended == []
        assert context.emotion is None
        assert context.agent_results == []

    def test_force_applies_after_seal(self, make_context):
        context = make_context()
        context.seal()

        context.apply(
            ContextDelta(final_response="fallback", steps=(make_step(),)),
            force=True,
        )

        assert context.final_response == "fallback"
        assert context.orchestration_log[0].step_number == 1

    def test_seal_is_idempotent(self, make_context):
        context = make_context()

        context.seal()
        context.seal()

        assert context.sealed is True
