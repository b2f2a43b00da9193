"""Unit tests for the practice session reducer."""

import pytest
from pydantic import ValidationError

from practice_engine.engines.practice.exceptions import (
    EmptyQuestionSet,
    InvalidQuestionSet,
    InvalidState,
)
from practice_engine.engines.practice.question_bank import TopicKey
from practice_engine.engines.practice.state_machine import (
    Advance,
    AnswerRecord,
    CheckAnswer,
    IntentType,
    PracticeSession,
    PracticeState,
    Restart,
    SelectChoice,
    Start,
    allowed_intents,
    apply,
    can_apply,
    just_completed,
)
from tests.conftest import make_question

TOPIC = TopicKey(module_id="circles", section_name="Circle Fundamentals")

# Picks for the five sample questions: correct, wrong, correct, wrong, wrong
PICKS = ["C", "A", "B", "A", "A"]


def assert_consistent(session: PracticeSession):
    """Invariants that must hold after every transition."""
    assert session.correct_count == sum(1 for a in session.answers if a.is_correct)
    assert session.correct_count <= len(session.answers) <= session.total_count
    assert len({a.question_id for a in session.answers}) == len(session.answers)
    if session.in_progress:
        assert 0 <= session.current_index < session.total_count
        assert len(session.answers) == session.current_index + (1 if session.feedback_revealed else 0)
    if session.state == PracticeState.ANSWERED:
        assert session.current_answer is not None
        assert session.current_answer.question_id == session.current_question.id
    if session.complete:
        assert len(session.answers) == session.total_count


def started(questions) -> PracticeSession:
    return apply(PracticeSession.idle(), Start(questions=tuple(questions), topic=TOPIC))


def answer(session: PracticeSession, choice_id: str) -> PracticeSession:
    session = apply(session, SelectChoice(choice_id=choice_id))
    assert_consistent(session)
    session = apply(session, CheckAnswer())
    assert_consistent(session)
    return session


class TestTransitionTable:
    """Tests for which intents each state accepts."""

    def test_idle_accepts_only_start(self):
        assert allowed_intents(PracticeState.IDLE) == [IntentType.START]

    def test_answered_ignores_select(self):
        assert IntentType.SELECT_CHOICE not in allowed_intents(PracticeState.ANSWERED)
        assert can_apply(PracticeState.ANSWERED, IntentType.SELECT_CHOICE)

    def test_complete_ignores_advance(self):
        assert can_apply(PracticeState.COMPLETE, IntentType.ADVANCE)
        assert not can_apply(PracticeState.COMPLETE, IntentType.CHECK_ANSWER)

    def test_restart_not_available_when_idle(self):
        assert not can_apply(PracticeState.IDLE, IntentType.RESTART)


class TestFullSession:
    """A learner working through all five questions."""

    def test_two_of_five_correct(self, sample_questions):
        session = started(sample_questions)
        assert session.state == PracticeState.UNANSWERED
        assert session.topic == TOPIC
        assert session.current_index == 0

        for index, pick in enumerate(PICKS):
            assert session.current_question.id == sample_questions[index].id
            session = answer(session, pick)
            assert session.feedback_revealed
            before = session
            session = apply(session, Advance())
            assert_consistent(session)
            assert just_completed(before, session) == (index == len(PICKS) - 1)

        assert session.state == PracticeState.COMPLETE
        assert session.correct_count == 2
        assert session.total_count == 5
        assert session.current_question is None
        assert session.selected_choice_id is None
        assert [a.is_correct for a in session.answers] == [True, False, True, False, False]

    def test_answers_record_selected_choice(self, sample_questions):
        session = answer(started(sample_questions), "D")
        assert session.answers == (
            AnswerRecord(question_id="1", selected_choice_id="D", is_correct=False),
        )

    def test_single_question_session(self):
        session = answer(started([make_question("only", "A")]), "A")
        session = apply(session, Advance())
        assert session.complete
        assert session.correct_count == 1

    def test_advance_clears_selection(self, sample_questions):
        session = apply(answer(started(sample_questions), "C"), Advance())
        assert session.state == PracticeState.UNANSWERED
        assert session.current_index == 1
        assert session.selected_choice_id is None

    def test_reselect_before_check(self, sample_questions):
        session = started(sample_questions)
        session = apply(session, SelectChoice(choice_id="A"))
        session = apply(session, SelectChoice(choice_id="C"))
        session = apply(session, CheckAnswer())
        assert session.answers[0].selected_choice_id == "C"
        assert session.answers[0].is_correct is True


class TestIgnoredIntents:
    """Intents accepted without effect."""

    def test_select_after_check_is_no_op(self, sample_questions):
        session = answer(started(sample_questions), "A")
        after = apply(session, SelectChoice(choice_id="C"))
        assert after is session
        assert after.selected_choice_id == "A"
        assert after.answers[0].is_correct is False

    def test_advance_when_complete_is_no_op(self, sample_questions):
        session = started(sample_questions[:1])
        session = apply(answer(session, "C"), Advance())
        assert apply(session, Advance()) is session


class TestInvalidIntents:
    """Rejected intents raise and leave the session unchanged."""

    def test_check_without_selection(self, sample_questions):
        session = started(sample_questions)
        with pytest.raises(InvalidState):
            apply(session, CheckAnswer())
        assert session.state == PracticeState.UNANSWERED
        assert session.answers == ()

    def test_check_twice(self, sample_questions):
        session = answer(started(sample_questions), "C")
        with pytest.raises(InvalidState) as exc_info:
            apply(session, CheckAnswer())
        assert exc_info.value.state == "answered"
        assert exc_info.value.intent == "check_answer"
        assert len(session.answers) == 1

    def test_advance_before_check(self, sample_questions):
        session = apply(started(sample_questions), SelectChoice(choice_id="C"))
        with pytest.raises(InvalidState):
            apply(session, Advance())
        assert session.current_index == 0

    @pytest.mark.parametrize(
        "intent",
        [SelectChoice(choice_id="A"), CheckAnswer(), Advance(), Restart()],
    )
    def test_idle_rejects_everything_but_start(self, intent):
        with pytest.raises(InvalidState):
            apply(PracticeSession.idle(), intent)

    def test_unknown_choice(self, sample_questions):
        session = started(sample_questions)
        with pytest.raises(InvalidState):
            apply(session, SelectChoice(choice_id="Z"))
        assert session.selected_choice_id is None

    def test_invalid_state_is_value_error(self, sample_questions):
        with pytest.raises(ValueError):
            apply(started(sample_questions), CheckAnswer())


class TestStart:
    """Starting and restarting sessions."""

    def test_empty_question_set(self):
        with pytest.raises(EmptyQuestionSet):
            apply(PracticeSession.idle(), Start(questions=(), topic=TOPIC))

    def test_duplicate_question_ids(self):
        questions = (make_question("1"), make_question("1"))
        with pytest.raises(InvalidQuestionSet):
            apply(PracticeSession.idle(), Start(questions=questions, topic=TOPIC))

    def test_start_discards_session_in_progress(self, sample_questions):
        session = answer(started(sample_questions), "C")
        session = apply(session, Start(questions=tuple(sample_questions[:2]), topic=TOPIC))
        assert session.state == PracticeState.UNANSWERED
        assert session.total_count == 2
        assert session.answers == ()

    def test_restart_from_complete(self, sample_questions):
        session = started(sample_questions[:2])
        session = apply(answer(session, "C"), Advance())
        session = apply(answer(session, "B"), Advance())
        assert session.complete

        restarted = apply(session, Restart())
        assert restarted.state == PracticeState.UNANSWERED
        assert restarted.current_index == 0
        assert restarted.answers == ()
        assert restarted.correct_count == 0
        assert restarted.questions == session.questions
        assert restarted.topic == TOPIC

    def test_restart_mid_session(self, sample_questions):
        session = apply(answer(started(sample_questions), "C"), Advance())
        restarted = apply(session, Restart())
        assert restarted.current_index == 0
        assert restarted.selected_choice_id is None
        assert restarted.answers == ()

    def test_snapshot_is_immutable(self, sample_questions):
        session = started(sample_questions)
        with pytest.raises(ValidationError):
            session.current_index = 3
