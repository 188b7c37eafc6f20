"""
LangGraph state definition for one 20 Questions step.
Single source of truth for all data flowing through the workflow.
"""

from typing import TypedDict, Dict, Any, Optional, List


class TwentyQState(TypedDict):
    """
    State for a single step of a 20 Questions session.
    The session itself lives with the client; a step receives it, advances it
    and hands it back.
    """
    # Input data
    session: Dict[str, Any]
    answer: Optional[str]
    stop_requested: bool

    # Node outputs
    next_question: Optional[Dict[str, Any]]
    goal_summary: Optional[Dict[str, Any]]
    completion_reason: Optional[str]

    # Execution metadata
    current_stage: str
    error: Optional[str]
    error_status: Optional[int]
    processing_time: Dict[str, float]
    messages: List[str]
