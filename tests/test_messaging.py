"""
Telegram notifications and the Apps Script response client over fake HTTP sessions.
"""

import json

import pytest
import requests

from questions.errors import ConfigurationError, UpstreamError
from questions.tools.apps_script import AppsScriptClient
from questions.tools.telegram import send_message, send_session_reminder, session_link


class FakeHTTPResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self._data = data if data is not None else {}
        self.text = json.dumps(self._data)

    def json(self):
        return self._data

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeHTTPResponse(data={"ok": True})
        self.error = error
        self.calls = []

    def _call(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._call("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._call("GET", url, kwargs)


@pytest.fixture
def telegram_env(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")


class TestTelegram:
    def test_unconfigured_bot_does_not_send(self):
        http = FakeSession()
        assert send_message("hi", session=http) is False
        assert http.calls == []

    def test_send_message(self, telegram_env):
        http = FakeSession()

        assert send_message("<b>hi</b>", session=http) is True

        method, url, kwargs = http.calls[0]
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert kwargs["json"] == {"chat_id": "42", "text": "<b>hi</b>", "parse_mode": "HTML"}

    def test_explicit_chat_overrides_default(self, telegram_env):
        http = FakeSession()
        send_message("hi", chat_id="7", session=http)
        assert http.calls[0][2]["json"]["chat_id"] == "7"

    def test_api_error_and_transport_error(self, telegram_env):
        assert send_message("hi", session=FakeSession(FakeHTTPResponse(400, {"ok": False}))) is False
        assert send_message("hi", session=FakeSession(error=requests.Timeout("slow"))) is False

    def test_session_reminder_links_back(self, telegram_env, monkeypatch):
        monkeypatch.setenv("PUBLIC_BASE_URL", "https://q.example.com/")
        http = FakeSession()

        send_session_reminder("Write a book", "s-1", session=http)

        text = http.calls[0][2]["json"]["text"]
        assert "Goal: Write a book" in text
        assert text.endswith("https://q.example.com/20q/session/s-1")
        assert session_link("s-1") == "https://q.example.com/20q/session/s-1"


class TestAppsScript:
    URL = "https://script.google.com/macros/s/abc/exec"

    def test_requires_url(self):
        with pytest.raises(ConfigurationError):
            AppsScriptClient()

    def test_get_responses(self):
        data = {"totalResponses": 1, "lastResponseAt": "2024-01-01T00:00:00Z", "responses": [{"answers": {"q1": "No"}}], "extra": 1}
        http = FakeSession(FakeHTTPResponse(data=data))

        result = AppsScriptClient(self.URL, session=http).get_responses("f1")

        assert http.calls[0][2]["params"] == {"action": "getResponses", "formId": "f1"}
        assert result == {
            "totalResponses": 1,
            "lastResponseAt": "2024-01-01T00:00:00Z",
            "responses": [{"answers": {"q1": "No"}}],
        }

    def test_get_responses_http_error(self):
        http = FakeSession(FakeHTTPResponse(503))
        with pytest.raises(UpstreamError, match="Failed to fetch responses"):
            AppsScriptClient(self.URL, session=http).get_responses("f1")
