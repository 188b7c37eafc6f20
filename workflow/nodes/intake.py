"""
Intake node for the 20 Questions workflow.
Records the user's answer on the pending turn and applies the session limits
before any LLM call is made.
"""

import logging
from typing import Dict, Any
from datetime import datetime

from questions.errors import QuestionsError, SessionError
from workflow.core.session_logic import (
    record_answer,
    is_completed,
    turn_count,
    has_reached_turn_limit,
    pending_turn_index,
    MAX_TURNS
)
from workflow.core.validators import validate_session

logger = logging.getLogger(__name__)


def intake_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate the posted session and record the answer, if one was sent.

    Args:
        state: Current workflow state

    Returns:
        Updated state with the answered session
    """
    start_time = datetime.now()
    session = state["session"]
    logger.info(f"=== INTAKE NODE STARTED - Session: {session.get('id')} ===")

    try:
        state["current_stage"] = "intake"

        is_valid, errors = validate_session(session)
        if not is_valid:
            raise SessionError(f"Invalid session: {'; '.join(errors)}")

        if is_completed(session):
            raise SessionError(f"Session {session.get('id')} is already completed")

        answer = state.get("answer")
        if answer is not None and str(answer).strip():
            state["session"] = record_answer(session, answer)
            logger.info(f"Recorded answer for turn {turn_count(state['session'])}")
        elif pending_turn_index(session) is not None and not state.get("stop_requested"):
            if not has_reached_turn_limit(session):
                raise SessionError("An answer is required for the current question")

        processing_time = (datetime.now() - start_time).total_seconds()
        state["processing_time"]["intake"] = processing_time
        state["messages"].append(f"Intake completed - {turn_count(state['session'])}/{MAX_TURNS} turns")
        logger.info(f"=== INTAKE NODE COMPLETED - {processing_time:.2f}s ===")
        return state

    except QuestionsError as e:
        logger.warning(f"Intake rejected step: {e.message}")
        state["error"] = e.message
        state["error_status"] = e.status_code
        state["messages"].append(f"ERROR in intake: {e.message}")
        return state
    except Exception as e:
        logger.error(f"Error in intake node: {str(e)}", exc_info=True)
        state["error"] = f"Intake failed: {str(e)}"
        state["error_status"] = 500
        state["messages"].append(f"ERROR in intake: {str(e)}")
        return state


def check_limits_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """Decide whether this step may ask another question"""
    session = state["session"]
    count = turn_count(session)
    logger.info(f"=== CHECK LIMITS - {count}/{MAX_TURNS} turns ===")

    state["current_stage"] = "check_limits"
    if state.get("stop_requested"):
        state["completion_reason"] = "user_stopped"
    elif has_reached_turn_limit(session):
        state["completion_reason"] = "max_turns"

    state["messages"].append(
        f"Limits checked - {count} turns, "
        f"completion: {state.get('completion_reason') or 'none'}"
    )
    return state


def route_after_limits(state: Dict[str, Any]) -> str:
    if state.get("error"):
        return "end"
    reason = state.get("completion_reason")
    if reason == "max_turns":
        return "finalize_max_turns"
    if reason == "user_stopped":
        return "summarize_goal"
    return "generate_question"
