"""
Question generation node for the 20 Questions workflow.
Asks the LLM for the next question given the full turn history and decides
whether the session is understood well enough to stop asking.
"""

import logging
from typing import Dict, Any, Optional
from datetime import datetime

from questions.errors import QuestionsError, InvalidLLMResponse
from questions.utils.data_models import AgentQuestion
from workflow.core.llm_utils import (
    call_llm_json,
    validate_llm_response,
    INVALID_STRUCTURE
)
from workflow.core.prompts import build_prompt, QUESTION_SYSTEM_PROMPT
from workflow.core.session_logic import (
    add_question,
    clamp_confidence,
    normalize_question_type,
    should_complete,
    turn_count
)

logger = logging.getLogger(__name__)


def parse_agent_question(result: Any) -> Dict[str, Any]:
    """
    Check and normalize a parsed question-generation reply.

    Returns:
        {question, rationale, confidence, type} with confidence clamped to [0, 1]
        and unknown types replaced by "text"

    Raises:
        InvalidLLMResponse: if a field is missing or confidence is not a number
    """
    is_valid, errors = validate_llm_response(
        result,
        required_fields=["question", "rationale", "confidence", "type"],
        field_types={"confidence": (int, float)}
    )
    if not is_valid:
        logger.error(f"Question reply rejected: {errors}")
        raise InvalidLLMResponse(INVALID_STRUCTURE, metadata={"errors": errors})

    return AgentQuestion(
        question=str(result["question"]),
        rationale=str(result["rationale"]),
        confidence=clamp_confidence(result["confidence"]),
        type=normalize_question_type(result["type"]),
    ).model_dump()


def generate_next_turn(
    session: Dict[str, Any],
    current_turn: int,
    llm: Optional[Any] = None
) -> Dict[str, Any]:
    """
    One question-generation call.

    Args:
        session: Current session
        current_turn: Number of turns so far (0 uses the goal-definition prompt)
        llm: Optional chat model, mainly for tests

    Returns:
        Normalized {question, rationale, confidence, type}
    """
    prompt = build_prompt(session, current_turn)
    result = call_llm_json(
        system_prompt=QUESTION_SYSTEM_PROMPT,
        user_prompt=prompt,
        temperature=0.7,
        max_tokens=500,
        function_name="generate_next_turn",
        llm=llm
    )
    agent_question = parse_agent_question(result)
    logger.info(
        f"Generated {agent_question['type']} question for turn {current_turn + 1} "
        f"(confidence {agent_question['confidence']:.2f})"
    )
    return agent_question


def generate_question_node(state: Dict[str, Any], llm: Optional[Any] = None) -> Dict[str, Any]:
    """
    Generate the next question, or flag the session for completion when
    confidence reaches the threshold.

    Args:
        state: Current workflow state
        llm: Optional chat model, mainly for tests

    Returns:
        Updated state with next_question or completion_reason set
    """
    start_time = datetime.now()
    session = state["session"]
    logger.info(f"=== QUESTION NODE STARTED - Session: {session.get('id')} ===")

    try:
        state["current_stage"] = "generate_question"

        agent_question = generate_next_turn(session, turn_count(session), llm=llm)

        if should_complete(session, agent_question["confidence"]):
            state["completion_reason"] = "confident"
            state["messages"].append(
                f"Confidence {agent_question['confidence']:.2f} reached the threshold, summarizing goal"
            )
        else:
            state["session"] = add_question(session, agent_question)
            state["next_question"] = agent_question

        processing_time = (datetime.now() - start_time).total_seconds()
        state["processing_time"]["generate_question"] = processing_time
        logger.info(f"=== QUESTION NODE COMPLETED - {processing_time:.2f}s ===")
        return state

    except QuestionsError as e:
        logger.error(f"Question generation failed: {e.message}")
        state["error"] = e.message
        state["error_status"] = e.status_code
        state["messages"].append(f"ERROR in generate_question: {e.message}")
        return state
    except Exception as e:
        logger.error(f"Error in question node: {str(e)}", exc_info=True)
        state["error"] = f"Question generation failed: {str(e)}"
        state["error_status"] = 500
        state["messages"].append(f"ERROR in generate_question: {str(e)}")
        return state


def route_after_question(state: Dict[str, Any]) -> str:
    if not state.get("error") and state.get("completion_reason") == "confident":
        return "summarize_goal"
    return "end"
