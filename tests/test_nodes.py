"""
LLM-backed helpers outside the step graph: execution chat, nudges, insights,
rephrasing and the session summaries.
"""

import pytest

from conftest import FakeLLM
from questions.errors import InvalidLLMResponse, ValidationError
from questions.utils.data_models import ExecutionConversation
from workflow.core.prompts import build_execution_prompt, build_prompt
from workflow.core.session_logic import new_session
from workflow.nodes.execution import append_exchange, execute_goal
from workflow.nodes.insights import build_analysis_data, generate_insights
from workflow.nodes.nudge import decide_nudge
from workflow.nodes.rephrase import rephrase_text
from workflow.nodes.summary import analyze_session, summarize_session_text, SUMMARY_FAILED


def test_execution_prompt_skips_goal_context_message():
    prompt = build_execution_prompt(
        "Run a marathon",
        "",
        [
            {"id": "goal-context", "role": "assistant", "content": "Your goal is to run a marathon"},
            {"id": "m1", "role": "user", "content": "Where do I start?"},
            {"id": "m2", "role": "assistant", "content": "Buy shoes."},
        ],
        "Which shoes?",
    )
    assert "Your goal is to run a marathon" not in prompt
    assert "User: Where do I start?" in prompt
    assert "Assistant: Buy shoes." in prompt
    assert "Which shoes?" in prompt
    assert "No additional context provided." in prompt


def test_later_turns_embed_history():
    session = new_session(goal="Learn piano")
    session["turns"] = [{"question": "Why piano?", "answer": "I love Chopin"}]
    prompt = build_prompt(session, 1)
    assert "Q1: Why piano?\nA: I love Chopin" in prompt
    assert "Learn piano" in prompt


def test_execute_goal_returns_reply():
    llm = FakeLLM(["Start with three short runs a week."])
    assert execute_goal("Run a marathon", "Beginner", [], "Plan my week", llm=llm) == "Start with three short runs a week."


def test_execute_goal_requires_message():
    with pytest.raises(ValidationError):
        execute_goal("Run a marathon", None, [], "  ", llm=FakeLLM([]))


def test_append_exchange():
    conversation = ExecutionConversation(sessionId="s-1", goal="Run", updatedAt="2000-01-01T00:00:00Z")

    updated = append_exchange(conversation, "Hi", "Hello")

    assert [m.role for m in updated.messages] == ["user", "assistant"]
    assert updated.updatedAt != "2000-01-01T00:00:00Z"
    assert conversation.messages == []


def test_decide_nudge():
    llm = FakeLLM([{"shouldNudge": True, "reason": "Free evening", "timing": "Tonight", "message": "Go run"}])
    decision = decide_nudge("Run a marathon", "No upcoming events in the next 3 days.", llm=llm)
    assert decision == {"shouldNudge": True, "reason": "Free evening", "timing": "Tonight", "message": "Go run"}


def test_decide_nudge_rejects_non_boolean():
    with pytest.raises(InvalidLLMResponse):
        decide_nudge("Run", "none", llm=FakeLLM([{"shouldNudge": "yes"}]))


def test_rephrase():
    assert rephrase_text("I reckon it was grand", llm=FakeLLM(["It was good."])) == "It was good."
    with pytest.raises(ValidationError, match="text is required"):
        rephrase_text(None)


class TestInsights:
    def analysis(self, sample_config):
        analytics = [{
            "questionId": "q1", "questionLabel": "Did you enjoy the event?", "questionType": "yesno",
            "totalResponses": 2, "responseRate": 100,
            "data": {"options": ["Yes", "No"], "counts": [2, 0], "percentages": [100, 0]},
        }]
        responses = [{"id": "r1", "timestamp": "2024-01-01T00:00:00Z", "answers": {"q1": "Yes"}}]
        return build_analysis_data(sample_config, responses, analytics, selected_questions=["q1"])

    def test_selection_limits_questions(self, sample_config):
        data = self.analysis(sample_config)
        assert [q["id"] for q in data["questions"]] == ["q1"]
        assert data["totalResponses"] == 1

    def test_model_insights_are_normalized(self, sample_config):
        llm = FakeLLM([[
            {"type": "theme", "title": "Happy crowd", "description": "Everyone said yes", "confidence": 1.4},
            {"type": "weird", "title": "Odd", "description": "Unknown type", "confidence": "x"},
            {"title": "No description"},
        ]])

        insights = generate_insights(self.analysis(sample_config), llm=llm)

        assert len(insights) == 2
        assert insights[0]["confidence"] == 1.0
        assert insights[1]["type"] == "summary"
        assert insights[1]["confidence"] == 0.0
        assert insights[0]["relatedQuestions"] == []

    def test_related_questions_are_ids(self, sample_config):
        llm = FakeLLM([[
            {"type": "trend", "title": "Rising", "description": "More yes", "confidence": 0.5, "relatedQuestions": ["q1", 2]},
        ]])

        insights = generate_insights(self.analysis(sample_config), llm=llm)

        assert insights == [{
            "type": "trend", "title": "Rising", "description": "More yes",
            "confidence": 0.5, "relatedQuestions": ["q1", "2"],
        }]

    @pytest.mark.parametrize("reply", ["not json", {"insights": []}, []])
    def test_fallback_insights(self, sample_config, reply):
        insights = generate_insights(self.analysis(sample_config), llm=FakeLLM([reply]))
        assert insights[0]["title"] == "Overall Response Rate"


def test_summarize_session_text_fallback():
    session = new_session(goal="x")
    assert summarize_session_text(session, llm=FakeLLM(["A focused runner."]))["summary"] == "A focused runner."
    assert summarize_session_text(session, llm=FakeLLM([RuntimeError("down")]))["summary"] == SUMMARY_FAILED


def test_analyze_session_fallback():
    result = analyze_session(new_session(), llm=FakeLLM(["oops"]))
    assert result == {"insights": ["Analysis failed"], "recommendations": ["Try again later"], "confidence": 0}

    result = analyze_session(new_session(), llm=FakeLLM([{"insights": ["a"], "recommendations": ["b"], "confidence": 0.7}]))
    assert result["confidence"] == 0.7
