import pytest

from questions.errors import SessionError
from workflow.core.session_logic import (
    MAX_TURNS,
    add_question,
    clamp_confidence,
    complete_session,
    compute_session_diff,
    determine_account_context,
    format_turns,
    latest_confidence,
    new_session,
    pending_turn_index,
    record_answer,
    should_complete,
    stop_session,
    USER_STOPPED_SUMMARY,
)


def question(confidence=0.2, turn_type="text"):
    return {"question": "Why?", "rationale": "Context", "confidence": confidence, "type": turn_type}


def answered_session(turns):
    session = new_session(goal="Get fit")
    for _ in range(turns):
        session = add_question(session, question())
        session = record_answer(session, "Because")
    return session


class TestTurns:
    def test_add_question_appends_pending_turn(self):
        session = add_question(new_session(), question(0.4, "likert"))

        assert session["turns"] == [{
            "question": "Why?",
            "answer": "",
            "rationale": "Context",
            "confidenceAfter": 0.4,
            "type": "likert",
        }]
        assert pending_turn_index(session) == 0

    def test_unknown_type_becomes_text(self):
        session = add_question(new_session(), question(turn_type="essay"))
        assert session["turns"][0]["type"] == "text"

    def test_cannot_ask_twice_without_answer(self):
        session = add_question(new_session(), question())
        with pytest.raises(SessionError):
            add_question(session, question())

    def test_record_answer_fills_pending_turn(self):
        session = add_question(new_session(), question())
        session = record_answer(session, "  I want to run a marathon  ")

        assert session["turns"][0]["answer"] == "I want to run a marathon"
        assert pending_turn_index(session) is None

    def test_blank_answer_rejected(self):
        session = add_question(new_session(), question())
        with pytest.raises(SessionError):
            record_answer(session, "   ")

    def test_answer_without_question_rejected(self):
        with pytest.raises(SessionError):
            record_answer(new_session(), "hello")

    def test_turn_limit(self):
        session = answered_session(MAX_TURNS)

        assert len(session["turns"]) == 20
        assert should_complete(session)
        with pytest.raises(SessionError):
            add_question(session, question())

    def test_original_session_not_mutated(self):
        session = new_session()
        add_question(session, question())
        assert session["turns"] == []


class TestCompletion:
    def test_confidence_threshold(self):
        session = answered_session(3)
        assert not should_complete(session, 0.89)
        assert should_complete(session, 0.9)

    def test_complete_once(self):
        session = complete_session(answered_session(2), "Summary", goal="Run a marathon")

        assert session["status"] == "completed"
        assert session["goal"] == "Run a marathon"
        assert session["goalConfirmed"] is True
        assert not should_complete(session, 1.0)
        with pytest.raises(SessionError):
            complete_session(session, "Again")

    def test_completed_session_rejects_answers(self):
        session = complete_session(add_question(new_session(), question()), "Done")
        with pytest.raises(SessionError):
            record_answer(session, "late")

    def test_stop_session(self):
        session = stop_session(answered_session(1))
        assert session["userStopped"] is True
        assert session["finalSummary"] == USER_STOPPED_SUMMARY


@pytest.mark.parametrize("raw, expected", [
    (1.7, 1.0),
    (-0.3, 0.0),
    ("0.5", 0.5),
    ("high", 0.0),
    (None, 0.0),
    (float("nan"), 0.0),
])
def test_clamp_confidence(raw, expected):
    assert clamp_confidence(raw) == expected


def test_compute_session_diff():
    before = answered_session(1)
    after = complete_session(add_question(before, question()), "Summary", goal="New goal")

    assert compute_session_diff(before, after) == {
        "addedTurns": 1,
        "modifiedGoal": True,
        "statusChanged": True,
        "summaryAdded": True,
    }


def test_account_context_needs_clear_work_margin():
    work = new_session(goal="Prepare a project presentation for my manager and the client team")
    mixed = new_session(goal="Balance work deadlines with family time")

    assert determine_account_context(work) == "work"
    assert determine_account_context(mixed) == "personal"


def test_format_turns():
    turns = [{"question": "A?", "answer": "a"}, {"question": "B?", "answer": "b"}]
    assert format_turns(turns) == "Q1: A?\nA: a\n\nQ2: B?\nA: b"


def test_latest_confidence_reads_last_generated_turn():
    assert latest_confidence(new_session()) == 0.0
    session = add_question(new_session(), question(confidence=0.35))
    session = record_answer(session, "Because")
    session = add_question(session, question(confidence=1.7))
    assert latest_confidence(session) == 1.0
