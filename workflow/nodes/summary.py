"""
Summary nodes for the 20 Questions workflow.
Turns a finished conversation into a goal statement, and closes sessions
that ran out of turns.
"""

import logging
from typing import Dict, Any, Optional
from datetime import datetime

from questions.errors import QuestionsError, InvalidLLMResponse
from questions.utils.data_models import GoalSummary
from workflow.core.llm_utils import (
    call_llm_json,
    call_llm_text,
    validate_llm_response,
    INVALID_STRUCTURE
)
from workflow.core.prompts import (
    build_goal_summary_prompt,
    build_summary_prompt,
    build_analysis_prompt,
    SYSTEM_PROMPTS
)
from workflow.core.session_logic import (
    complete_session,
    clamp_confidence,
    COMPLETED_AFTER_MAX_SUMMARY,
    GOAL_FALLBACK_SUMMARY
)

logger = logging.getLogger(__name__)

SUMMARY_FAILED = "Failed to generate summary"


def summarize_goal(session: Dict[str, Any], llm: Optional[Any] = None) -> Dict[str, str]:
    """
    Ask for a clear goal statement and supporting context.

    Returns:
        {goal, summary}

    Raises:
        InvalidLLMResponse: if the reply is not JSON or lacks goal/summary
    """
    result = call_llm_json(
        system_prompt=SYSTEM_PROMPTS["summarize_goal"],
        user_prompt=build_goal_summary_prompt(session),
        temperature=0.7,
        max_tokens=500,
        function_name="summarize_goal",
        llm=llm
    )
    is_valid, errors = validate_llm_response(result, required_fields=["goal", "summary"])
    if not is_valid:
        logger.error(f"Goal summary rejected: {errors}")
        raise InvalidLLMResponse(INVALID_STRUCTURE, metadata={"errors": errors})

    return GoalSummary(goal=str(result["goal"]), summary=str(result["summary"])).model_dump()


def summarize_goal_node(state: Dict[str, Any], llm: Optional[Any] = None) -> Dict[str, Any]:
    """
    Complete the session with a goal summary.
    A failed summary call completes it anyway with the canned summary.
    """
    start_time = datetime.now()
    session = state["session"]
    logger.info(f"=== SUMMARY NODE STARTED - Session: {session.get('id')} ===")
    user_stopped = state.get("completion_reason") == "user_stopped"

    try:
        state["current_stage"] = "summarize_goal"

        try:
            goal_summary = summarize_goal(session, llm=llm)
            state["goal_summary"] = goal_summary
            summary = goal_summary["summary"]
            goal = goal_summary["goal"]
        except QuestionsError as e:
            logger.warning(f"Goal summary failed ({e.message}), using fallback summary")
            summary = GOAL_FALLBACK_SUMMARY
            goal = None
            state["messages"].append("Goal summary unavailable, used fallback")

        state["session"] = complete_session(session, summary, goal=goal, user_stopped=user_stopped)

        processing_time = (datetime.now() - start_time).total_seconds()
        state["processing_time"]["summarize_goal"] = processing_time
        state["messages"].append(f"Session completed ({state.get('completion_reason')})")
        logger.info(f"=== SUMMARY NODE COMPLETED - {processing_time:.2f}s ===")
        return state

    except QuestionsError as e:
        logger.error(f"Could not complete session: {e.message}")
        state["error"] = e.message
        state["error_status"] = e.status_code
        return state
    except Exception as e:
        logger.error(f"Error in summary node: {str(e)}", exc_info=True)
        state["error"] = f"Summary failed: {str(e)}"
        state["error_status"] = 500
        state["messages"].append(f"ERROR in summarize_goal: {str(e)}")
        return state


def finalize_max_turns_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """Close a session that used all of its turns without reaching the confidence threshold"""
    session = state["session"]
    logger.info(f"=== FINALIZE NODE - Session {session.get('id')} hit the turn limit ===")

    try:
        state["current_stage"] = "finalize_max_turns"
        state["session"] = complete_session(session, COMPLETED_AFTER_MAX_SUMMARY)
        state["messages"].append(COMPLETED_AFTER_MAX_SUMMARY)
        return state
    except QuestionsError as e:
        state["error"] = e.message
        state["error_status"] = e.status_code
        return state


def summarize_session_text(session: Dict[str, Any], llm: Optional[Any] = None) -> Dict[str, str]:
    """
    Free-text recap of a completed session.

    Returns:
        {summary, diff}; summary is "Failed to generate summary" when the call fails
    """
    try:
        summary = call_llm_text(
            system_prompt=SYSTEM_PROMPTS["summarize_session"],
            user_prompt=build_summary_prompt(session),
            temperature=0.7,
            max_tokens=300,
            function_name="summarize_session_text",
            llm=llm
        )
        return {"summary": summary, "diff": ""}
    except QuestionsError as e:
        logger.error(f"Error in summarize_session_text: {e.message}")
        return {"summary": SUMMARY_FAILED, "diff": ""}


def analyze_session(session: Dict[str, Any], llm: Optional[Any] = None) -> Dict[str, Any]:
    """Insights and recommendations for a session, with a fixed fallback on any failure"""
    try:
        result = call_llm_json(
            system_prompt=SYSTEM_PROMPTS["analyze_session"],
            user_prompt=build_analysis_prompt(session),
            temperature=0.5,
            max_tokens=400,
            function_name="analyze_session",
            llm=llm
        )
        if not isinstance(result, dict):
            raise InvalidLLMResponse(INVALID_STRUCTURE)
        return {
            "insights": result.get("insights") or [],
            "recommendations": result.get("recommendations") or [],
            "confidence": clamp_confidence(result.get("confidence") or 0),
        }
    except QuestionsError as e:
        logger.error(f"Error analyzing session: {e.message}")
        return {
            "insights": ["Analysis failed"],
            "recommendations": ["Try again later"],
            "confidence": 0,
        }
