"""
Calendar-aware nudge decision.
Looks at the upcoming schedule and decides whether, when and how to remind
the user about their goal.
"""

import logging
from typing import Dict, Any, Optional

from questions.errors import InvalidLLMResponse
from questions.utils.data_models import NudgeDecision
from workflow.core.llm_utils import call_llm_json, INVALID_STRUCTURE
from workflow.core.prompts import build_calendar_prompt, SYSTEM_PROMPTS

logger = logging.getLogger(__name__)


def decide_nudge(goal: str, calendar_text: str, llm: Optional[Any] = None) -> Dict[str, Any]:
    """
    Ask the model whether a reminder would help right now.

    Args:
        goal: The session goal
        calendar_text: Output of format_calendar_for_prompt
        llm: Optional chat model, mainly for tests

    Returns:
        {shouldNudge, reason, timing, message}

    Raises:
        InvalidLLMResponse: if shouldNudge is missing or not a boolean
    """
    result = call_llm_json(
        system_prompt=SYSTEM_PROMPTS["calendar_nudge"],
        user_prompt=build_calendar_prompt(goal, calendar_text),
        temperature=0.7,
        max_tokens=300,
        function_name="decide_nudge",
        llm=llm
    )
    if not isinstance(result, dict) or not isinstance(result.get("shouldNudge"), bool):
        logger.error(f"Nudge decision rejected: {result}")
        raise InvalidLLMResponse(INVALID_STRUCTURE)

    decision = NudgeDecision(
        shouldNudge=result["shouldNudge"],
        reason=str(result.get("reason") or ""),
        timing=str(result.get("timing") or ""),
        message=str(result.get("message") or ""),
    ).model_dump()
    logger.info(f"Nudge decision: {decision['shouldNudge']} ({decision['timing'] or 'no timing'})")
    return decision
