import pytest
from pydantic import ValidationError

from conftest import FakeLLM, analysis_json
from panel_interview.interview.agents import build_panel
from panel_interview.interview.scheduler import AgentScheduler, RotationPolicy, TurnState
from panel_interview.models.errors import ConfigurationError, GenerationError, StateError, StateErrorKind
from panel_interview.models.schemas import InterviewPhase, InterviewerRole

ANSWER = "I would start by profiling the slow query and checking its execution plan. " * 3


def run_turns(scheduler, context, count):
    roles = []
    for _ in range(count):
        turn = scheduler.execute_turn(context)
        roles.append(turn.role)
        scheduler.process_answer(context, ANSWER)
    return roles


# ========================================
# Rotation
# ========================================

def test_fixed_order_cycles_through_the_panel(make_scheduler, context):
    scheduler = make_scheduler(policy=RotationPolicy.FIXED_ORDER)

    roles = run_turns(scheduler, context, 4)

    assert roles == [
        InterviewerRole.TECHNICAL, InterviewerRole.HR, InterviewerRole.BUSINESS, InterviewerRole.TECHNICAL,
    ]


def test_phase_based_follows_the_primary_role(make_scheduler, context):
    scheduler = make_scheduler()

    phases_and_roles = []
    while not scheduler.progress().is_completed:
        turn = scheduler.execute_turn(context)
        phases_and_roles.append((turn.phase, turn.role))
        scheduler.process_answer(context, ANSWER)

    primary = {
        InterviewPhase.WARM_UP: InterviewerRole.HR,
        InterviewPhase.TECHNICAL: InterviewerRole.TECHNICAL,
        InterviewPhase.BEHAVIORAL: InterviewerRole.HR,
        InterviewPhase.BUSINESS: InterviewerRole.BUSINESS,
        InterviewPhase.QUESTIONS: InterviewerRole.HR,
    }
    assert all(role == primary[phase] for phase, role in phases_and_roles)
    assert len(phases_and_roles) == 15


def test_first_turn_is_hr_warm_up(make_scheduler, context):
    scheduler = make_scheduler()

    turn = scheduler.execute_turn(context)

    assert turn.role == InterviewerRole.HR
    assert turn.role_name == "HR Interviewer"
    assert turn.phase == InterviewPhase.WARM_UP


def test_warm_up_ends_after_two_average_answers(make_scheduler, context):
    scheduler = make_scheduler()

    scheduler.execute_turn(context)
    assert scheduler.process_answer(context, ANSWER).phase_transition is None
    scheduler.execute_turn(context)
    outcome = scheduler.process_answer(context, ANSWER)

    assert outcome.phase_transition == InterviewPhase.TECHNICAL
    assert scheduler.execute_turn(context).role == InterviewerRole.TECHNICAL


def test_strong_first_answer_advances_early(make_scheduler, context):
    llm = FakeLLM(analyses=[analysis_json(9.0)])
    scheduler = make_scheduler(llm=llm)

    scheduler.execute_turn(context)
    outcome = scheduler.process_answer(context, ANSWER)

    assert outcome.analysis.score == 9.0
    assert outcome.phase_transition == InterviewPhase.TECHNICAL
    assert context.current_phase == InterviewPhase.TECHNICAL
    assert scheduler.execute_turn(context).role == InterviewerRole.TECHNICAL


def test_random_policy_is_reproducible_with_a_seed(make_scheduler, context, fake_llm):
    first = make_scheduler(policy=RotationPolicy.RANDOM, seed=7)
    second = make_scheduler(policy=RotationPolicy.RANDOM, seed=7)
    other_context = context.model_copy(deep=True)

    assert run_turns(first, context, 6) == run_turns(second, other_context, 6)


def test_phase_based_falls_back_to_first_agent_when_role_missing(make_scheduler, context):
    scheduler = make_scheduler(roles=(InterviewerRole.TECHNICAL, InterviewerRole.BUSINESS))

    # Warm-up wants HR, which is absent from this panel
    assert scheduler.execute_turn(context).role == InterviewerRole.TECHNICAL


def test_strict_roles_rejects_panel_without_primary_role(make_scheduler):
    with pytest.raises(ConfigurationError):
        make_scheduler(roles=(InterviewerRole.TECHNICAL,), strict_roles=True)


def test_empty_panel_is_rejected():
    with pytest.raises(ConfigurationError):
        AgentScheduler([])


# ========================================
# Turn protocol
# ========================================

def test_execute_turn_moves_to_awaiting_answer(make_scheduler, context):
    scheduler = make_scheduler()
    assert scheduler.state == TurnState.IDLE

    turn = scheduler.execute_turn(context)

    assert scheduler.state == TurnState.AWAITING_ANSWER
    assert context.pending_turn() is turn
    assert scheduler.current_agent().role() == InterviewerRole.HR


def test_second_question_without_answer_is_rejected(make_scheduler, context):
    scheduler = make_scheduler()
    scheduler.execute_turn(context)

    with pytest.raises(StateError) as exc_info:
        scheduler.execute_turn(context)

    assert exc_info.value.kind == StateErrorKind.TURN_ALREADY_PENDING
    assert len(context.conversation_history) == 1


def test_answer_without_question_is_rejected(make_scheduler, context):
    scheduler = make_scheduler()

    with pytest.raises(StateError) as exc_info:
        scheduler.process_answer(context, ANSWER)

    assert exc_info.value.kind == StateErrorKind.NO_PENDING_TURN
    assert scheduler.progress().total_question_count == 0


def test_asking_after_completion_is_rejected(make_scheduler, context):
    scheduler = make_scheduler()
    run_turns(scheduler, context, 15)
    assert scheduler.progress().is_completed

    with pytest.raises(StateError) as exc_info:
        scheduler.execute_turn(context)

    assert exc_info.value.kind == StateErrorKind.INTERVIEW_COMPLETED


def test_history_matches_question_count(make_scheduler, context):
    scheduler = make_scheduler(policy=RotationPolicy.FIXED_ORDER)

    run_turns(scheduler, context, 5)

    assert len(context.conversation_history) == scheduler.progress().total_question_count == 5
    assert all(t.answer == ANSWER and t.analysis is not None for t in context.conversation_history)


def test_answer_is_graded_by_the_persona_that_asked(make_scheduler, context, fake_llm):
    scheduler = make_scheduler(policy=RotationPolicy.FIXED_ORDER)
    scheduler.execute_turn(context)
    scheduler.process_answer(context, ANSWER)
    scheduler.execute_turn(context)
    scheduler.process_answer(context, ANSWER)

    grading_systems = [c["system"] for c in fake_llm.calls_of("grade")]
    panel = scheduler.agents
    assert grading_systems == [
        panel[0].profile.analysis_instruction,
        panel[1].profile.analysis_instruction,
    ]


def test_failed_generation_leaves_scheduler_idle(make_scheduler, context):
    llm = FakeLLM(questions=[GenerationError("service down")])
    scheduler = make_scheduler(llm=llm)

    with pytest.raises(GenerationError):
        scheduler.execute_turn(context)

    assert scheduler.state == TurnState.IDLE
    assert context.conversation_history == []
    # The same turn can be retried
    assert scheduler.execute_turn(context).question.startswith("Question")
    assert len(context.conversation_history) == 1


def test_context_phase_only_moves_when_a_turn_is_committed(make_scheduler, context):
    context.current_phase = InterviewPhase.BUSINESS
    llm = FakeLLM(questions=[GenerationError("service down")])
    scheduler = make_scheduler(llm=llm)

    with pytest.raises(GenerationError):
        scheduler.execute_turn(context)
    assert context.current_phase == InterviewPhase.BUSINESS

    scheduler.execute_turn(context)
    assert context.current_phase == InterviewPhase.WARM_UP


def test_asked_question_cannot_be_rewritten(make_scheduler, context):
    turn = make_scheduler().execute_turn(context)

    with pytest.raises(ValidationError):
        turn.question = "A different question"
    with pytest.raises(ValidationError):
        turn.role = InterviewerRole.BUSINESS

    # The answer is filled in later
    turn.answer = ANSWER
    assert turn.answer == ANSWER


def test_failed_analysis_keeps_the_turn_open(make_scheduler, context):
    llm = FakeLLM(analyses=[GenerationError("timeout")])
    scheduler = make_scheduler(llm=llm)
    turn = scheduler.execute_turn(context)

    with pytest.raises(GenerationError):
        scheduler.process_answer(context, ANSWER)

    assert scheduler.state == TurnState.AWAITING_ANSWER
    assert turn.answer is None
    assert scheduler.progress().total_question_count == 0

    outcome = scheduler.process_answer(context, ANSWER)
    assert outcome.analysis.score == 6.0
    assert turn.answer == ANSWER


def test_degraded_analysis_is_accepted(make_scheduler, context):
    llm = FakeLLM(analyses=["no json here"])
    scheduler = make_scheduler(llm=llm)
    turn = scheduler.execute_turn(context)

    outcome = scheduler.process_answer(context, ANSWER)

    assert outcome.analysis.degraded is True
    assert outcome.analysis.score == 5.0
    assert turn.degraded is True
    assert scheduler.state == TurnState.IDLE


def test_degraded_analysis_is_retried_once_when_requested(make_scheduler, context):
    llm = FakeLLM(analyses=["no json here", analysis_json(7.0)])
    scheduler = make_scheduler(llm=llm)
    turn = scheduler.execute_turn(context)

    outcome = scheduler.process_answer(context, ANSWER, retry_degraded=True)

    assert outcome.analysis.degraded is False
    assert outcome.analysis.score == 7.0
    assert turn.degraded is False
    assert len(llm.calls_of("grade")) == 2


def test_closed_scheduler_rejects_calls(make_scheduler, context):
    scheduler = make_scheduler()
    scheduler.close()

    with pytest.raises(StateError) as exc_info:
        scheduler.execute_turn(context)

    assert exc_info.value.kind == StateErrorKind.SESSION_CLOSED


def test_result_arriving_after_close_is_discarded(make_scheduler, context):
    holder = {}

    def close_during_generation():
        holder["scheduler"].close()
        return "A question nobody will see?"

    llm = FakeLLM(questions=[close_during_generation])
    scheduler = make_scheduler(llm=llm)
    holder["scheduler"] = scheduler

    with pytest.raises(StateError) as exc_info:
        scheduler.execute_turn(context)

    assert exc_info.value.kind == StateErrorKind.SESSION_CLOSED
    assert context.conversation_history == []
    assert scheduler.state == TurnState.IDLE


def test_analysis_arriving_after_close_is_discarded(make_scheduler, context):
    holder = {}

    def close_during_grading():
        holder["scheduler"].close()
        return analysis_json(9.0)

    llm = FakeLLM(analyses=[close_during_grading])
    scheduler = make_scheduler(llm=llm)
    holder["scheduler"] = scheduler
    turn = scheduler.execute_turn(context)

    with pytest.raises(StateError):
        scheduler.process_answer(context, ANSWER)

    assert turn.answer is None
    assert scheduler.progress().total_question_count == 0


# ========================================
# Streaming
# ========================================

def test_stream_turn_commits_after_the_stream_completes(make_scheduler, context):
    llm = FakeLLM(questions=["How would you shard this table?"])
    scheduler = make_scheduler(llm=llm)

    agent, fragments = scheduler.stream_turn(context)
    assert agent.role() == InterviewerRole.HR
    assert scheduler.state == TurnState.IDLE

    text = "".join(fragments)

    assert text == "How would you shard this table?"
    assert scheduler.state == TurnState.AWAITING_ANSWER
    assert context.pending_turn().question == text


def test_abandoned_stream_leaves_scheduler_idle(make_scheduler, context):
    scheduler = make_scheduler()

    _, fragments = scheduler.stream_turn(context)
    next(fragments)
    fragments.close()

    assert scheduler.state == TurnState.IDLE
    assert context.conversation_history == []


def test_stream_turn_checks_state_before_streaming(make_scheduler, context, fake_llm):
    scheduler = make_scheduler()
    scheduler.execute_turn(context)

    with pytest.raises(StateError) as exc_info:
        scheduler.stream_turn(context)

    assert exc_info.value.kind == StateErrorKind.TURN_ALREADY_PENDING
    assert fake_llm.calls_of("stream") == []


def test_stream_turn_raises_generation_failure_before_returning(make_scheduler, context):
    scheduler = make_scheduler(llm=FakeLLM(questions=[GenerationError("service down")]))

    with pytest.raises(GenerationError):
        scheduler.stream_turn(context)

    assert scheduler.state == TurnState.IDLE
    assert context.conversation_history == []


def test_should_follow_up_uses_the_current_persona(make_scheduler, context):
    scheduler = make_scheduler(llm=FakeLLM(analyses=[analysis_json(7.2)]))
    assert scheduler.should_follow_up(ANSWER, None) is False

    scheduler.execute_turn(context)
    outcome = scheduler.process_answer(context, ANSWER)

    # HR follows up below 7.5
    assert scheduler.should_follow_up(ANSWER, outcome.analysis) is True


def test_build_panel_order_does_not_affect_phase_based_selection(fake_llm, fake_retriever, context):
    panel = build_panel(llm=fake_llm, retriever=fake_retriever,
                        roles=(InterviewerRole.BUSINESS, InterviewerRole.HR, InterviewerRole.TECHNICAL))
    scheduler = AgentScheduler(panel)

    assert scheduler.execute_turn(context).role == InterviewerRole.HR
