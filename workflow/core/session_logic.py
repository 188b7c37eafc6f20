"""
20 Questions session rules.
A session is a plain dict that the client holds and posts back on every
step; these functions advance it and enforce the completion rules:
at most 20 turns, and one transition from in-progress to completed,
triggered by the turn limit, by confidence >= 0.9, or by the user stopping.
"""

import logging
import uuid
from typing import Dict, Any, List, Optional

from questions.errors import SessionError
from questions.utils.data_models import QuestionTurn, utc_now_iso

logger = logging.getLogger(__name__)

MAX_TURNS = 20
CONFIDENCE_THRESHOLD = 0.9

COMPLETED_AFTER_MAX_SUMMARY = "Session completed after 20 questions"
GOAL_FALLBACK_SUMMARY = "Goal understanding achieved"
USER_STOPPED_SUMMARY = "Session stopped by user"

VALID_TURN_TYPES = ("text", "likert", "choice")

WORK_KEYWORDS = [
    'work', 'job', 'career', 'office', 'meeting', 'project', 'team', 'colleague',
    'boss', 'manager', 'client', 'business', 'company', 'professional', 'workplace',
    'deadline', 'presentation', 'budget', 'strategy', 'management', 'leadership'
]

PERSONAL_KEYWORDS = [
    'personal', 'family', 'home', 'life', 'relationship', 'health', 'fitness',
    'hobby', 'travel', 'vacation', 'friend', 'partner', 'child', 'daughter', 'parents',
    'house', 'therapy', 'personal goal', 'growth', 'happiness'
]


def new_session(goal: str = "", session_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": session_id or str(uuid.uuid4()),
        "createdAt": utc_now_iso(),
        "goal": goal,
        "goalConfirmed": False,
        "turns": [],
        "finalSummary": None,
        "status": "in-progress",
        "userStopped": False,
    }


def clamp_confidence(value: Any) -> float:
    """Force an upstream confidence into [0, 1]; anything non-numeric becomes 0"""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return max(0.0, min(1.0, confidence))


def normalize_question_type(value: Any) -> str:
    return value if value in VALID_TURN_TYPES else "text"


def is_completed(session: Dict[str, Any]) -> bool:
    return session.get("status") == "completed"


def turn_count(session: Dict[str, Any]) -> int:
    return len(session.get("turns") or [])


def latest_confidence(session: Dict[str, Any]) -> float:
    turns = session.get("turns") or []
    for turn in reversed(turns):
        if turn.get("confidenceAfter") is not None:
            return clamp_confidence(turn["confidenceAfter"])
    return 0.0


def has_reached_turn_limit(session: Dict[str, Any]) -> bool:
    return turn_count(session) >= MAX_TURNS


def should_complete(session: Dict[str, Any], confidence: Optional[float] = None) -> bool:
    """
    Whether the next step must finish the session instead of asking again.

    Args:
        session: Current session
        confidence: Confidence reported by the latest generation step, if any
    """
    if is_completed(session):
        return False
    if has_reached_turn_limit(session):
        return True
    if session.get("userStopped"):
        return True
    if confidence is not None and clamp_confidence(confidence) >= CONFIDENCE_THRESHOLD:
        return True
    return False


def pending_turn_index(session: Dict[str, Any]) -> Optional[int]:
    """Index of the last turn if it is still waiting for an answer"""
    turns = session.get("turns") or []
    if turns and not str(turns[-1].get("answer") or "").strip():
        return len(turns) - 1
    return None


def add_question(session: Dict[str, Any], agent_question: Dict[str, Any]) -> Dict[str, Any]:
    """
    Append a generated question as a new, unanswered turn.

    Args:
        session: Current session
        agent_question: Parsed generation reply {question, rationale, confidence, type}

    Returns:
        A new session dict with the turn appended

    Raises:
        SessionError: if the session is completed, already holds 20 turns,
            or the previous question is still unanswered
    """
    if is_completed(session):
        raise SessionError(f"Session {session.get('id')} is already completed")
    if has_reached_turn_limit(session):
        raise SessionError(f"Session {session.get('id')} already has {MAX_TURNS} turns")
    if pending_turn_index(session) is not None:
        raise SessionError("The previous question has not been answered yet")

    turn = QuestionTurn(
        question=str(agent_question.get("question", "")),
        rationale=agent_question.get("rationale"),
        confidenceAfter=clamp_confidence(agent_question.get("confidence")),
        type=normalize_question_type(agent_question.get("type")),
    ).model_dump()

    updated = dict(session)
    updated["turns"] = list(session.get("turns") or []) + [turn]
    logger.debug(f"Session {session.get('id')}: asked question {len(updated['turns'])}/{MAX_TURNS}")
    return updated


def record_answer(session: Dict[str, Any], answer: str) -> Dict[str, Any]:
    """
    Store the user's answer on the pending turn.

    Raises:
        SessionError: if the session is completed, the answer is blank,
            or no question is waiting for an answer
    """
    if is_completed(session):
        raise SessionError(f"Session {session.get('id')} is already completed")
    if not str(answer or "").strip():
        raise SessionError("Answer must not be empty")

    index = pending_turn_index(session)
    if index is None:
        raise SessionError("There is no unanswered question in this session")

    turns = [dict(turn) for turn in session.get("turns") or []]
    turns[index]["answer"] = str(answer).strip()

    updated = dict(session)
    updated["turns"] = turns
    return updated


def complete_session(
    session: Dict[str, Any],
    summary: str,
    goal: Optional[str] = None,
    user_stopped: bool = False
) -> Dict[str, Any]:
    """
    Mark the session completed. Happens exactly once per session.

    Raises:
        SessionError: if the session is already completed
    """
    if is_completed(session):
        raise SessionError(f"Session {session.get('id')} is already completed")

    updated = dict(session)
    updated["status"] = "completed"
    updated["finalSummary"] = summary
    if goal:
        updated["goal"] = goal
        updated["goalConfirmed"] = True
    if user_stopped:
        updated["userStopped"] = True

    logger.info(
        f"Session {session.get('id')} completed after {turn_count(session)} turns"
        f"{' (stopped by user)' if user_stopped else ''}"
    )
    return updated


def stop_session(session: Dict[str, Any], summary: Optional[str] = None) -> Dict[str, Any]:
    return complete_session(session, summary or USER_STOPPED_SUMMARY, user_stopped=True)


def compute_session_diff(prev: Dict[str, Any], next_session: Dict[str, Any]) -> Dict[str, Any]:
    """What changed between two snapshots of the same session"""
    return {
        "addedTurns": turn_count(next_session) - turn_count(prev),
        "modifiedGoal": prev.get("goal") != next_session.get("goal"),
        "statusChanged": prev.get("status") != next_session.get("status"),
        "summaryAdded": not prev.get("finalSummary") and bool(next_session.get("finalSummary")),
    }


def determine_account_context(session: Dict[str, Any]) -> str:
    """
    Pick the Google account ("personal" or "work") a session belongs to.
    Work wins only with a clear keyword margin; ambiguous sessions are personal.
    """
    goal = (session.get("goal") or "").lower()
    answers = " ".join((turn.get("answer") or "").lower() for turn in session.get("turns") or [])
    all_text = f"{goal} {answers}"

    work_score = len([keyword for keyword in WORK_KEYWORDS if keyword in all_text])
    personal_score = len([keyword for keyword in PERSONAL_KEYWORDS if keyword in all_text])

    if work_score > personal_score + 1:
        return "work"
    return "personal"


def format_turns(turns: List[Dict[str, Any]]) -> str:
    """Turn history as the prompts embed it"""
    return "\n\n".join(
        f"Q{index + 1}: {turn.get('question', '')}\nA: {turn.get('answer', '')}"
        for index, turn in enumerate(turns)
    )
