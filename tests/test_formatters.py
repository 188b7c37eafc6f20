import json
import shutil
import subprocess
from datetime import datetime, timezone

import pytest

from workflow.core.formatters import (
    collect_url,
    config_to_json,
    extract_config,
    format_calendar_for_prompt,
    format_duration,
    format_session_summary_text,
    inject_config,
    render_form_html,
    render_form_template,
)
from questions.tools.google_calendar import classify_event, get_upcoming_events, structure_event
from workflow.core.skip_logic import visibility_map


def test_static_template_fetches_config():
    html = render_form_template()
    assert 'const configPath = "./config.json";' in html
    assert "fetch(configPath)" in html


def test_pages_post_to_the_public_collector(monkeypatch, sample_config):
    assert collect_url() == "/api/collect"

    monkeypatch.setenv("PUBLIC_BASE_URL", "https://q.example.com/")

    assert collect_url() == "https://q.example.com/api/collect"
    assert 'const COLLECT_URL = "https://q.example.com/api/collect";' in render_form_template()
    assert 'const COLLECT_URL = "https://q.example.com/api/collect";' in render_form_html(sample_config)


def test_inject_config_inlines_and_round_trips(sample_config):
    html = inject_config(render_form_template(), sample_config)

    assert "fetch(configPath)" not in html
    assert "renderForm(config);" in html
    assert extract_config(html) == sample_config


def test_render_applies_skip_logic(sample_config):
    html = render_form_html(sample_config, answers={"q1": "Yes", "q2": ["A", "B"]}, preview=True)

    assert "Did you enjoy the event?" in html
    assert "What went wrong?" not in html.split("<script")[0]


def test_render_shows_dependent_when_condition_met(sample_config):
    html = render_form_html(sample_config, answers={"q1": "No"}, preview=True)
    assert "What went wrong?" in html.split("<script")[0]


def test_config_json_cannot_close_script_tag():
    assert "</script>" not in config_to_json({"title": "</script><b>"})


def test_session_summary_text():
    text = format_session_summary_text(
        {
            "id": "s-1",
            "createdAt": "2024-01-01T00:00:00Z",
            "goal": "Run a marathon",
            "finalSummary": "Six month plan",
            "turns": [{"question": "When?", "answer": "October"}],
        },
        "personal",
    )
    assert "Account Context: personal" in text
    assert "1. Q: When?\n   A: October" in text


def test_format_duration():
    assert format_duration(5400) == "1.5h"
    assert format_duration(3600) == "1h"
    assert format_duration(2700) == "45m"


def test_calendar_prompt_text():
    assert format_calendar_for_prompt([]) == "No upcoming events in the next 3 days."
    text = format_calendar_for_prompt([
        {"title": "Standup", "type": "meeting", "time": "2024-01-01 09:00", "duration": "15m"}
    ])
    assert text == "Upcoming events:\n- Standup (meeting) at 2024-01-01 09:00 for 15m"


def test_classify_event():
    assert classify_event("Zoom with Dana", "") == "meeting"
    assert classify_event("Report", "due tomorrow") == "deadline"
    assert classify_event("Family lunch", "") == "personal"
    assert classify_event("Gym", "") == "other"


def test_structure_event():
    event = structure_event({
        "summary": "Planning call",
        "start": {"dateTime": "2024-01-01T09:00:00Z"},
        "end": {"dateTime": "2024-01-01T10:30:00Z"},
    })
    assert event == {
        "title": "Planning call",
        "time": "2024-01-01 09:00",
        "duration": "1.5h",
        "type": "meeting",
        "description": "No description",
    }


class FakeEvents:
    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error
        self.kwargs = None

    def list(self, **kwargs):
        self.kwargs = kwargs
        return self

    def execute(self):
        if self.error:
            raise self.error
        return {"items": self.items}


class FakeCalendar:
    def __init__(self, events):
        self._events = events

    def events(self):
        return self._events


def test_upcoming_events_uses_window(monkeypatch):
    monkeypatch.setenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "svc@example.iam")
    monkeypatch.setenv("GOOGLE_PRIVATE_KEY", "key")
    monkeypatch.setenv("GOOGLE_CALENDAR_ID", "team@example.com")
    events = FakeEvents([{"summary": "Deadline: report", "start": {"date": "2024-01-02"}, "end": {"date": "2024-01-03"}}])
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    result = get_upcoming_events(3, service=FakeCalendar(events), now=now)

    assert result[0]["type"] == "deadline"
    assert result[0]["duration"] == "24h"
    assert events.kwargs["calendarId"] == "team@example.com"
    assert events.kwargs["timeMax"] == "2024-01-04T00:00:00Z"


def test_calendar_errors_give_empty_list(monkeypatch):
    monkeypatch.setenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "svc@example.iam")
    monkeypatch.setenv("GOOGLE_PRIVATE_KEY", "key")
    events = FakeEvents(error=RuntimeError("403"))

    assert get_upcoming_events(service=FakeCalendar(events)) == []


def page_visibility_script(cases):
    """The form page's own visibility code, run over each (questions, answers) case"""
    html = render_form_template()
    start = html.index("function unanswered")
    end = html.index("function inputFor")
    return (
        html[start:end]
        + f"\nconst cases = {json.dumps(cases)};\n"
        + "console.log(JSON.stringify(cases.map(([questions, answers]) => visibility(questions, answers))));\n"
    )


def rule(depends_on, condition, value):
    return {"enabled": True, "dependsOn": depends_on, "condition": condition, "value": value}


VISIBILITY_CASES = [
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "equals", "2")}], {"q1": "2 kids"}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "equals", "2")}], {"q1": " 2.0 "}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "greater_than", "3")}], {"q1": "4abc"}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "less_than", "3")}], {"q1": "1e0"}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "equals", "Infinity")}], {"q1": "Infinity"}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "not_equals", "Yes")}], {"q1": "No"}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "includes", "B")}], {"q1": ["A", "B"]}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "not_includes", "B")}], {"q1": []}),
    ([{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "contains", "LOUD")}], {"q1": "too loud"}),
    (
        [
            {"id": "q1"},
            {"id": "q2", "skipLogic": rule("q1", "equals", "No")},
            {"id": "q3", "skipLogic": rule("q2", "equals", "x")},
        ],
        {"q1": "Yes", "q2": "x"},
    ),
    ([{"id": "q1", "skipLogic": rule("q2", "equals", "a")}, {"id": "q2"}], {"q2": "a"}),
]


@pytest.mark.skipif(shutil.which("node") is None, reason="node is not installed")
def test_page_and_server_agree_on_visibility(tmp_path):
    script = tmp_path / "visibility.js"
    script.write_text(page_visibility_script(VISIBILITY_CASES))

    output = subprocess.run(["node", str(script)], capture_output=True, text=True, check=True).stdout

    assert json.loads(output) == [visibility_map(questions, answers) for questions, answers in VISIBILITY_CASES]


def test_number_like_text_is_not_a_number():
    questions = [{"id": "q1"}, {"id": "q2", "skipLogic": rule("q1", "equals", "2")}]
    assert visibility_map(questions, {"q1": "2 kids"}) == {"q1": True, "q2": False}
    assert visibility_map(questions, {"q1": "2.0"}) == {"q1": True, "q2": True}
