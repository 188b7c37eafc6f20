"""
Pure formatting functions for forms and sessions.
HTML rendering of form configs, config injection into stored templates,
and the plain-text renderings of sessions and calendars used in prompts
and Drive files.
"""

import json
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Any, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from workflow.core.skip_logic import visible_questions
from workflow.core.validators import is_expired

TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "questions" / "templates"
FORM_TEMPLATE = "form.html"

CONFIG_PATH_LINE = 'const configPath = "./config.json";'
CONFIG_FETCH_PATTERN = re.compile(r"fetch\(configPath\)[\s\S]*?\.catch\(\(\) => \{[\s\S]*?\}\);")
INLINE_CONFIG_PATTERN = re.compile(r"let config = ({.*?});")
COLLECT_PATH = "/api/collect"


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
    )


def collect_url() -> str:
    """Where form pages post submissions when the form has no deployed Apps Script"""
    base_url = (os.getenv("PUBLIC_BASE_URL") or "").rstrip("/")
    return f"{base_url}{COLLECT_PATH}"


def config_to_json(config: Dict[str, Any]) -> str:
    """JSON safe to embed in an inline <script>"""
    return json.dumps(config).replace("</", "<\\/")


def render_form_template() -> str:
    """
    The static page committed next to each config.json.
    It fetches ./config.json at load time.
    """
    template = _environment().get_template(FORM_TEMPLATE)
    return template.render(
        title="Feedback Form",
        description=None,
        questions=[],
        answers={},
        expired=False,
        inline_config=False,
        preview=False,
        collect_url=collect_url(),
    )


def render_form_html(
    config: Dict[str, Any],
    answers: Optional[Dict[str, Any]] = None,
    preview: bool = False
) -> str:
    """
    Render a form with its config inlined.

    Args:
        config: Form config
        answers: Answers so far; only questions visible for them are rendered
        preview: Keep the server-rendered questions instead of re-rendering in the browser

    Returns:
        Complete HTML page
    """
    answers = answers or {}
    questions = config.get("questions") or []
    template = _environment().get_template(FORM_TEMPLATE)
    return template.render(
        title=config.get("title") or "Feedback Form",
        description=config.get("description"),
        questions=visible_questions(questions, answers),
        answers=answers,
        expired=is_expired(config.get("expires_at")),
        inline_config=True,
        preview=preview,
        config_json=config_to_json(config),
        collect_url=collect_url(),
    )


def inject_config(template_html: str, config: Dict[str, Any]) -> str:
    """Swap a stored template's remote config fetch for the inlined config"""
    html = template_html.replace(CONFIG_PATH_LINE, f"let config = {config_to_json(config)};")
    return CONFIG_FETCH_PATTERN.sub(lambda _: "renderForm(config);", html, count=1)


def extract_config(html: str) -> Optional[Dict[str, Any]]:
    """Read an inlined config back out of a rendered page"""
    match = INLINE_CONFIG_PATTERN.search(html)
    if not match:
        return None
    try:
        return json.loads(match.group(1).replace("<\\/", "</"))
    except json.JSONDecodeError:
        return None


def format_session_summary_text(session: Dict[str, Any], account_context: str) -> str:
    """Plain-text companion file written next to a summarized session"""
    turns = "\n\n".join(
        f"{index + 1}. Q: {turn.get('question', '')}\n   A: {turn.get('answer', '')}"
        for index, turn in enumerate(session.get("turns") or [])
    )
    return (
        "20 Questions Session Summary\n\n"
        f"Session ID: {session.get('id')}\n"
        f"Created: {session.get('createdAt')}\n"
        f"Account Context: {account_context}\n"
        f"Goal: {session.get('goal', '')}\n\n"
        f"Summary:\n{session.get('finalSummary', '')}\n\n"
        f"Questions & Answers:\n{turns}"
    )


def format_duration(seconds: float) -> str:
    """Event length as hours with one decimal ("1.5h") or whole minutes ("45m")"""
    hours = round(seconds / 3600 * 10) / 10
    if hours >= 1:
        return f"{hours:g}h"
    return f"{round(seconds / 60)}m"


def format_calendar_for_prompt(events: List[Dict[str, Any]], days_ahead: int = 3) -> str:
    if not events:
        return f"No upcoming events in the next {days_ahead} days."

    lines = [
        f"- {event['title']} ({event['type']}) at {event['time']} for {event['duration']}"
        for event in events
    ]
    return "Upcoming events:\n" + "\n".join(lines)
