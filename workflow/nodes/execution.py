"""
Goal execution chat.
After a session produces a goal, the user works on it in a short text-message
style conversation with an assistant.
"""

import logging
from typing import Dict, Any, List, Optional

from questions.errors import ValidationError
from questions.utils.data_models import ExecutionConversation, ExecutionMessage, utc_now_iso
from workflow.core.llm_utils import call_llm_text
from workflow.core.prompts import build_execution_prompt, SYSTEM_PROMPTS

logger = logging.getLogger(__name__)


def execute_goal(
    goal: str,
    context: Optional[str],
    conversation: List[Dict[str, Any]],
    user_message: str,
    llm: Optional[Any] = None
) -> str:
    """
    Produce the assistant's next message.

    Args:
        goal: Goal established by the session
        context: Session summary, if any
        conversation: Messages so far ({id, role, content, timestamp})
        user_message: The user's latest message
        llm: Optional chat model, mainly for tests

    Returns:
        Assistant reply text

    Raises:
        ValidationError: if the goal or the user message is empty
    """
    if not goal or not str(goal).strip() or not user_message or not str(user_message).strip():
        raise ValidationError("Invalid request body")

    logger.info(f"Executing goal with {len(conversation)} prior messages")
    prompt = build_execution_prompt(goal, context or "", conversation, user_message)
    return call_llm_text(
        system_prompt=SYSTEM_PROMPTS["execute_goal"],
        user_prompt=prompt,
        temperature=0.7,
        max_tokens=800,
        function_name="execute_goal",
        llm=llm
    )


def append_exchange(
    conversation: ExecutionConversation,
    user_message: str,
    assistant_reply: str
) -> ExecutionConversation:
    """Return a copy of the conversation with both messages added"""
    messages = list(conversation.messages) + [
        ExecutionMessage(role="user", content=user_message),
        ExecutionMessage(role="assistant", content=assistant_reply),
    ]
    return conversation.model_copy(update={"messages": messages, "updatedAt": utc_now_iso()})
