"""
Shared fixtures: a scripted chat model and small form/session builders.
"""

import json
import os
import sys
from typing import Any, List

import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class FakeReply:
    def __init__(self, content: str):
        self.content = content


class FakeLLM:
    """Chat model stand-in that returns scripted replies in order"""

    def __init__(self, replies: List[Any]):
        self.replies = list(replies)
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if not self.replies:
            raise AssertionError("FakeLLM ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return FakeReply(reply)


def question_reply(confidence: float = 0.3, question: str = "What are you trying to achieve?", turn_type: str = "text"):
    return {
        "question": question,
        "rationale": "Need to understand the goal",
        "confidence": confidence,
        "type": turn_type,
    }


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def sample_questions():
    return [
        {"id": "q1", "type": "yesno", "label": "Did you enjoy the event?"},
        {"id": "q2", "type": "checkbox", "label": "Which sessions?", "options": ["A", "B", "C"]},
        {
            "id": "q3",
            "type": "text",
            "label": "What went wrong?",
            "skipLogic": {"enabled": True, "dependsOn": "q1", "condition": "equals", "value": "No"},
        },
    ]


@pytest.fixture
def sample_config(sample_questions):
    return {
        "id": "abc123",
        "title": "Event Feedback",
        "description": "Tell us how it went",
        "enforceUnique": False,
        "questions": sample_questions,
        "googleScriptUrl": "https://script.google.com/macros/s/YOUR_DEPLOYED_SCRIPT_ID/exec",
    }


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from real credentials and the working directory"""
    for name in ("OPENAI_API_KEY", "GITHUB_TOKEN", "GOOGLE_SCRIPT_URL", "PUBLIC_BASE_URL",
                 "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "GOOGLE_SHEETS_CREDENTIALS_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SESSION_STORAGE_DIR", str(tmp_path / "sessions"))
