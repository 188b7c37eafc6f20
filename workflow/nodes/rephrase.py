"""
Anonymizing rephrase of free text in a plain, direct style.
"""

import logging
from typing import Any, Optional

from questions.errors import ValidationError
from workflow.core.llm_utils import call_llm_text
from workflow.core.prompts import build_rephrase_prompt, SYSTEM_PROMPTS

logger = logging.getLogger(__name__)


def rephrase_text(text: Any, llm: Optional[Any] = None) -> str:
    if not text or not isinstance(text, str):
        raise ValidationError("Invalid request body - text is required")

    logger.info(f"Rephrasing {len(text)} characters")
    return call_llm_text(
        system_prompt=SYSTEM_PROMPTS["rephrase"],
        user_prompt=build_rephrase_prompt(text),
        temperature=0.7,
        max_tokens=1000,
        function_name="rephrase_text",
        llm=llm
    )
