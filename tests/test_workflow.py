"""
One 20 Questions step at a time through the LangGraph workflow, with a scripted model.
"""

from conftest import FakeLLM, question_reply
from workflow.core.session_logic import (
    COMPLETED_AFTER_MAX_SUMMARY,
    GOAL_FALLBACK_SUMMARY,
    MAX_TURNS,
    add_question,
    new_session,
    record_answer,
)
from workflow.graph import run_turn
from workflow.nodes.question import generate_next_turn


def session_with_turns(answered, pending=False):
    session = new_session(session_id="s-1")
    for index in range(answered):
        session = add_question(session, question_reply(0.1 + index * 0.01))
        session = record_answer(session, f"answer {index + 1}")
    if pending:
        session = add_question(session, question_reply(0.5))
    return session


def test_first_step_asks_goal_question():
    llm = FakeLLM([question_reply(0.1)])

    result = run_turn(new_session(session_id="s-1"), llm=llm)

    assert result["status"] == "in-progress"
    assert result["question"]["question"] == "What are you trying to achieve?"
    assert len(result["session"]["turns"]) == 1
    assert result["session"]["turns"][0]["answer"] == ""
    # first turn uses the goal-definition prompt
    assert "understand the user's goal" in llm.calls[0][1].content


def test_answer_then_next_question():
    llm = FakeLLM([question_reply(0.4, question="How much time do you have?")])

    result = run_turn(session_with_turns(1, pending=True), answer="Run a marathon", llm=llm)

    turns = result["session"]["turns"]
    assert result["status"] == "in-progress"
    assert turns[1]["answer"] == "Run a marathon"
    assert turns[2]["question"] == "How much time do you have?"
    assert "Run a marathon" in llm.calls[0][1].content


def test_confident_reply_completes_with_goal_summary():
    llm = FakeLLM([
        question_reply(0.95),
        {"goal": "Run a marathon in under 4 hours", "summary": "Has 6 months and trains 3x a week"},
    ])

    result = run_turn(session_with_turns(4, pending=True), answer="Yes", llm=llm)

    session = result["session"]
    assert result["status"] == "completed"
    assert result["completionReason"] == "confident"
    assert session["goal"] == "Run a marathon in under 4 hours"
    assert session["finalSummary"] == "Has 6 months and trains 3x a week"
    assert session["goalConfirmed"] is True
    assert len(session["turns"]) == 5


def test_twentieth_answer_completes_with_fixed_summary():
    llm = FakeLLM([])

    result = run_turn(session_with_turns(MAX_TURNS - 1, pending=True), answer="Last answer", llm=llm)

    session = result["session"]
    assert result["status"] == "completed"
    assert result["completionReason"] == "max_turns"
    assert session["finalSummary"] == COMPLETED_AFTER_MAX_SUMMARY
    assert len(session["turns"]) == MAX_TURNS
    assert llm.calls == []


def test_user_stop_summarizes():
    llm = FakeLLM([{"goal": "Find a new job", "summary": "Stopped early"}])

    result = run_turn(session_with_turns(2, pending=True), stop=True, llm=llm)

    assert result["status"] == "completed"
    assert result["completionReason"] == "user_stopped"
    assert result["session"]["userStopped"] is True


def test_failed_goal_summary_uses_fallback():
    llm = FakeLLM([question_reply(0.92), "not json"])

    result = run_turn(session_with_turns(3, pending=True), answer="Done", llm=llm)

    assert result["status"] == "completed"
    assert result["session"]["finalSummary"] == GOAL_FALLBACK_SUMMARY


def test_missing_answer_is_rejected():
    result = run_turn(session_with_turns(1, pending=True), llm=FakeLLM([]))

    assert result["status"] == "error"
    assert result["error_status"] == 400
    assert result["error"] == "An answer is required for the current question"


def test_completed_session_is_rejected():
    session = session_with_turns(1)
    session["status"] = "completed"

    result = run_turn(session, llm=FakeLLM([]))

    assert result["status"] == "error"
    assert "already completed" in result["error"]


def test_malformed_question_reply_reports_structure_error():
    llm = FakeLLM([{"question": "Why?", "confidence": 0.2}])

    result = run_turn(new_session(), llm=llm)

    assert result["status"] == "error"
    assert result["error"] == "Invalid response structure from AI"


def test_generate_next_turn_clamps_confidence():
    agent_question = generate_next_turn(new_session(), 0, llm=FakeLLM([question_reply(3, turn_type="poll")]))
    assert agent_question["confidence"] == 1.0
    assert agent_question["type"] == "text"
