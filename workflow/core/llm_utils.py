"""
LLM utility functions for the 20 Questions workflow and the form tools.
Centralizes model construction, plain-text calls and strict JSON calls.
Replies that are not valid JSON are rejected, never repaired or retried.
"""

import json
import os
import logging
from typing import Dict, Any, List, Optional, Tuple

from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage, SystemMessage, HumanMessage

from questions.errors import ConfigurationError, InvalidLLMResponse, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"

INVALID_FORMAT = "Invalid response format from AI"
INVALID_STRUCTURE = "Invalid response structure from AI"


def get_llm(
    temperature: float = 0.7,
    max_tokens: int = 500,
    json_mode: bool = False,
    model: Optional[str] = None,
    **kwargs
) -> ChatOpenAI:
    """
    Create a ChatOpenAI instance for one kind of call.

    Args:
        temperature: Temperature for sampling
        max_tokens: Maximum tokens in response
        json_mode: Ask the API for a single JSON object
        model: Model name, defaults to OPENAI_MODEL or gpt-4.1-mini
        **kwargs: Additional parameters for ChatOpenAI

    Returns:
        Configured ChatOpenAI instance

    Raises:
        ConfigurationError: if OPENAI_API_KEY is not set
    """
    if not os.getenv("OPENAI_API_KEY"):
        raise ConfigurationError("OpenAI API key not configured")

    model_name = model or os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
    llm_kwargs = {
        "model": model_name,
        "temperature": temperature,
        "max_tokens": max_tokens,
        **kwargs
    }
    if json_mode:
        llm_kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

    logger.debug(f"Created LLM: {model_name} (temp={temperature}, json={json_mode})")
    return ChatOpenAI(**llm_kwargs)


def invoke_llm(llm: Any, messages: List[BaseMessage], function_name: str = "Unknown") -> str:
    """
    Send messages and return the reply text.

    Raises:
        UpstreamError: if the call fails or the reply is empty
    """
    try:
        response = llm.invoke(messages)
    except Exception as e:
        logger.error(f"{function_name}: LLM call failed: {e}")
        raise UpstreamError(f"LLM call failed in {function_name}") from e

    content = response.content if hasattr(response, "content") else str(response)
    if not content or not str(content).strip():
        logger.error(f"{function_name}: Empty response from LLM")
        raise UpstreamError("No response from OpenAI")

    logger.debug(f"{function_name}: Raw response length: {len(content)}")
    return content


def call_llm_text(
    system_prompt: str,
    user_prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 500,
    function_name: str = "call_llm_text",
    llm: Optional[Any] = None
) -> str:
    """Plain-text completion, stripped"""
    llm = llm or get_llm(temperature=temperature, max_tokens=max_tokens)
    messages = [
        SystemMessage(content=system_prompt),
        HumanMessage(content=user_prompt)
    ]
    return invoke_llm(llm, messages, function_name).strip()


def parse_json_response(content: Any, source_name: str = "Unknown") -> Any:
    """
    Parse an LLM reply as JSON.

    Args:
        content: Raw reply text (dicts and lists pass through)
        source_name: Name of the calling function for logging

    Returns:
        Parsed JSON value

    Raises:
        InvalidLLMResponse: if the reply is not valid JSON
    """
    if isinstance(content, (dict, list)):
        return content

    try:
        return json.loads(content)
    except (TypeError, json.JSONDecodeError) as e:
        logger.error(f"{source_name}: Failed to parse LLM response: {str(content)[:200]}")
        raise InvalidLLMResponse(INVALID_FORMAT, metadata={"source": source_name}) from e


def call_llm_json(
    system_prompt: str,
    user_prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 500,
    function_name: str = "call_llm_json",
    json_object: bool = True,
    llm: Optional[Any] = None
) -> Any:
    """
    Completion whose reply must be JSON.

    Args:
        json_object: Request API-level JSON object mode; turn off when an array is expected

    Returns:
        Parsed JSON value
    """
    llm = llm or get_llm(temperature=temperature, max_tokens=max_tokens, json_mode=json_object)
    messages = [
        SystemMessage(content=system_prompt),
        HumanMessage(content=user_prompt)
    ]
    content = invoke_llm(llm, messages, function_name)
    result = parse_json_response(content, source_name=function_name)
    logger.info(f"{function_name}: Parsed JSON response")
    return result


def validate_llm_response(
    response: Any,
    required_fields: List[str],
    field_types: Optional[Dict[str, type]] = None
) -> Tuple[bool, List[str]]:
    """
    Validate that an LLM response contains required, non-empty fields of the right types.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not isinstance(response, dict):
        return False, [f"Expected a JSON object, got {type(response).__name__}"]

    errors = []
    for field in required_fields:
        if field not in response or response[field] in (None, ""):
            errors.append(f"Missing required field: {field}")

    if field_types:
        for field, expected_type in field_types.items():
            if field not in response:
                continue
            value = response[field]
            # bool is an int subclass but never a valid number here
            if isinstance(value, bool) and expected_type is not bool:
                errors.append(f"Field '{field}' has wrong type: expected {_type_name(expected_type)}, got bool")
            elif not isinstance(value, expected_type):
                errors.append(
                    f"Field '{field}' has wrong type: expected {_type_name(expected_type)}, "
                    f"got {type(value).__name__}"
                )

    return len(errors) == 0, errors


def _type_name(expected_type: Any) -> str:
    if isinstance(expected_type, tuple):
        return "/".join(t.__name__ for t in expected_type)
    return expected_type.__name__
