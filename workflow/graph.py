"""
LangGraph workflow orchestration for 20 Questions.
Defines the node execution order for one step of a session:
record the answer, check the limits, then ask the next question or complete.
"""

import asyncio
import logging
from functools import partial
from typing import Dict, Any, Optional
from datetime import datetime
from langgraph.graph import StateGraph, END

from workflow.state import TwentyQState
from workflow.nodes.intake import intake_node, check_limits_node, route_after_limits
from workflow.nodes.question import generate_question_node, route_after_question
from workflow.nodes.summary import summarize_goal_node, finalize_max_turns_node
from workflow.core.session_logic import new_session, is_completed

logger = logging.getLogger(__name__)


def _route_after_intake(state: Dict[str, Any]) -> str:
    return "end" if state.get("error") else "check_limits"


def create_workflow(llm: Optional[Any] = None):
    """
    Creates the LangGraph workflow for one 20 Questions step.

    Args:
        llm: Optional chat model shared by the LLM nodes (tests pass a fake)

    Returns:
        Compiled StateGraph ready for execution
    """
    workflow = StateGraph(TwentyQState)

    question_node = partial(generate_question_node, llm=llm) if llm is not None else generate_question_node
    summary_node = partial(summarize_goal_node, llm=llm) if llm is not None else summarize_goal_node

    workflow.add_node("intake", intake_node)
    workflow.add_node("check_limits", check_limits_node)
    workflow.add_node("generate_question", question_node)
    workflow.add_node("summarize_goal", summary_node)
    workflow.add_node("finalize_max_turns", finalize_max_turns_node)

    workflow.set_entry_point("intake")
    workflow.add_conditional_edges(
        "intake",
        _route_after_intake,
        {"check_limits": "check_limits", "end": END}
    )
    workflow.add_conditional_edges(
        "check_limits",
        route_after_limits,
        {
            "generate_question": "generate_question",
            "summarize_goal": "summarize_goal",
            "finalize_max_turns": "finalize_max_turns",
            "end": END
        }
    )
    workflow.add_conditional_edges(
        "generate_question",
        route_after_question,
        {"summarize_goal": "summarize_goal", "end": END}
    )
    workflow.add_edge("summarize_goal", END)
    workflow.add_edge("finalize_max_turns", END)

    return workflow.compile()


def _initial_state(session: Dict[str, Any], answer: Optional[str], stop: bool) -> Dict[str, Any]:
    return {
        "session": session,
        "answer": answer,
        "stop_requested": stop,
        "next_question": None,
        "goal_summary": None,
        "completion_reason": None,
        "current_stage": "intake",
        "error": None,
        "error_status": None,
        "processing_time": {},
        "messages": []
    }


def _format_result(result: Dict[str, Any], total_time: float) -> Dict[str, Any]:
    if result.get("error"):
        return {
            "status": "error",
            "error": result["error"],
            "error_status": result.get("error_status") or 500,
            "session": result.get("session")
        }

    session = result["session"]
    return {
        "status": "completed" if is_completed(session) else "in-progress",
        "session": session,
        "question": result.get("next_question"),
        "goalSummary": result.get("goal_summary"),
        "completionReason": result.get("completion_reason"),
        "processing_time": total_time,
        "metadata": {
            "stages_completed": list(result.get("processing_time", {}).keys()),
            "messages": result.get("messages", [])
        }
    }


async def run_turn_async(
    session: Optional[Dict[str, Any]] = None,
    answer: Optional[str] = None,
    stop: bool = False,
    llm: Optional[Any] = None
) -> Dict[str, Any]:
    """
    Async entry point for one session step.

    Args:
        session: Client-held session; a new one is started when omitted
        answer: Answer to the pending question
        stop: User asked to stop; the session is summarized and completed
        llm: Optional chat model override

    Returns:
        {status, session, question?, goalSummary?, completionReason?} or
        {status: "error", error, error_status}
    """
    start_time = datetime.now()
    session = session or new_session()
    logger.info(f"Starting 20Q step for session: {session.get('id')}")

    app = create_workflow(llm=llm)
    result = await app.ainvoke(_initial_state(session, answer, stop))

    total_time = (datetime.now() - start_time).total_seconds()
    formatted = _format_result(result, total_time)

    if formatted["status"] == "error":
        logger.error(f"20Q step failed: {formatted['error']}")
    else:
        logger.info(f"20Q step finished for session {session.get('id')} in {total_time:.1f}s ({formatted['status']})")
    return formatted


def run_turn(
    session: Optional[Dict[str, Any]] = None,
    answer: Optional[str] = None,
    stop: bool = False,
    llm: Optional[Any] = None
) -> Dict[str, Any]:
    """Synchronous wrapper for run_turn_async, used by the CLI and tests."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(run_turn_async(session, answer, stop, llm))

    # Already inside an event loop: run in a worker thread
    import concurrent.futures
    with concurrent.futures.ThreadPoolExecutor() as executor:
        future = executor.submit(asyncio.run, run_turn_async(session, answer, stop, llm))
        return future.result()
