"""
Pure validation functions for form configs and 20 Questions sessions.
No I/O, just the rules the builder and the API enforce.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Tuple, Optional

from workflow.core.skip_logic import CONDITIONS_BY_TYPE
from workflow.core.session_logic import MAX_TURNS

TITLE_MAX_CHARS = 50
DESCRIPTION_MAX_CHARS = 750
LABEL_MAX_CHARS = 200
OPTION_MAX_CHARS = 100

QUESTION_TYPES = ("text", "yesno", "mcq", "checkbox", "scale", "likert")


def validate_form_config(config: Dict[str, Any]) -> Tuple[bool, List[str], Dict[str, Any]]:
    """
    Validate a form before it is published or updated.

    Returns:
        Tuple of (is_valid, errors, validation_details)
    """
    errors = []
    questions = config.get("questions") or []
    validation_details = {
        "question_count": len(questions),
        "skip_logic_rules": 0,
        "limit_violations": [],
    }

    title = (config.get("title") or "").strip()
    if not title:
        errors.append("Title is required")
    elif len(title) > TITLE_MAX_CHARS:
        errors.append(f"Title exceeds {TITLE_MAX_CHARS} characters")
        validation_details["limit_violations"].append("title")

    description = config.get("description") or ""
    if len(description) > DESCRIPTION_MAX_CHARS:
        errors.append(f"Description exceeds {DESCRIPTION_MAX_CHARS} characters")
        validation_details["limit_violations"].append("description")

    if not questions:
        errors.append("At least one question is required")

    seen_ids = []
    for position, question in enumerate(questions, start=1):
        question_id = question.get("id")
        if not question_id:
            errors.append(f"Question {position} has no id")
        elif question_id in seen_ids:
            errors.append(f"Duplicate question id: {question_id}")

        if question.get("type") not in QUESTION_TYPES:
            errors.append(f"Question {position} has unknown type '{question.get('type')}'")

        label = question.get("label") or ""
        if not label.strip():
            errors.append(f"Question {position} has no text")
        elif len(label) > LABEL_MAX_CHARS:
            errors.append(f"Question {position} text exceeds {LABEL_MAX_CHARS} characters")
            validation_details["limit_violations"].append(question_id)

        if question.get("type") in ("mcq", "checkbox", "likert"):
            for option in question.get("options") or []:
                if len(option) > OPTION_MAX_CHARS:
                    errors.append(f"Question {position} has an option over {OPTION_MAX_CHARS} characters")
                    validation_details["limit_violations"].append(question_id)
                    break

        rule = question.get("skipLogic") or {}
        if rule.get("enabled"):
            validation_details["skip_logic_rules"] += 1
            depends_on = rule.get("dependsOn")
            if depends_on not in seen_ids:
                errors.append(f"Question {position} skip logic must depend on an earlier question")
            else:
                dependency = next(q for q in questions if q.get("id") == depends_on)
                allowed = CONDITIONS_BY_TYPE.get(dependency.get("type"), ["equals", "not_equals"])
                if rule.get("condition") not in allowed:
                    errors.append(
                        f"Question {position} uses condition '{rule.get('condition')}' "
                        f"which does not apply to a {dependency.get('type')} question"
                    )

        seen_ids.append(question_id)

    return len(errors) == 0, errors, validation_details


def is_character_limit_exceeded(config: Dict[str, Any]) -> bool:
    _, _, details = validate_form_config(config)
    return len(details["limit_violations"]) > 0


def normalize_title(title: str) -> str:
    """Lowercase and strip everything but letters and digits for duplicate checks"""
    return re.sub(r"[^a-z0-9]", "", (title or "").lower()).strip()


def parse_expiration(expiration: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
    """
    Turn a relative expiration ("30m", "12h", "7d") or an ISO date into an ISO timestamp.

    Returns:
        ISO-8601 UTC timestamp, or None for no expiration / unparseable input
    """
    if not expiration or not str(expiration).strip():
        return None

    now = now or datetime.now(timezone.utc)
    expiration = str(expiration).strip()

    match = re.fullmatch(r"(\d+)\s*([mhd])", expiration)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)
        if unit == "m":
            delta = timedelta(minutes=amount)
        elif unit == "h":
            delta = timedelta(hours=amount)
        else:
            delta = timedelta(days=amount)
        return to_iso(now + delta)

    parsed = parse_timestamp(expiration)
    return to_iso(parsed) if parsed else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, treating naive values as UTC"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_expired(expires_at: Optional[str], now: Optional[datetime] = None) -> bool:
    expiration = parse_timestamp(expires_at)
    if expiration is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now > expiration


def to_iso(value: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix, as stored in configs"""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_session(session: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Check the shape of a client-held session before it is stored.

    Returns:
        Tuple of (is_valid, errors)
    """
    errors = []

    if not session.get("id"):
        errors.append("Session id is required")

    turns = session.get("turns")
    if not isinstance(turns, list):
        errors.append("Session turns must be a list")
    elif len(turns) > MAX_TURNS:
        errors.append(f"Session has {len(turns)} turns, the limit is {MAX_TURNS}")

    if session.get("status") not in (None, "in-progress", "completed"):
        errors.append(f"Unknown session status '{session.get('status')}'")

    return len(errors) == 0, errors
