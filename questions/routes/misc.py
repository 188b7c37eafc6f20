"""
Response collector, CORS proxy and text rephrasing.
"""

import logging
from typing import Dict, Any, Optional

import requests
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from questions.errors import ValidationError, UpstreamError
from questions.routes.deps import get_chat_model, get_form_store, get_response_collector
from questions.utils.data_models import Submission
from workflow.core.skip_logic import filter_answers
from workflow.nodes.rephrase import rephrase_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["misc"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
PROXY_TIMEOUT = 30


class ProxyRequest(BaseModel):
    url: Optional[str] = None
    data: Any = None


class RephraseRequest(BaseModel):
    text: Any = None


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


@router.post("/collect")
def collect_submission(
    submission: Submission,
    request: Request,
    store=Depends(get_form_store),
    collector=Depends(get_response_collector)
):
    """
    Store one form submission.
    Answers to questions hidden by skip logic are dropped, and repeat
    submissions are rejected when the form enforces unique responses.
    """
    config = store.read_form(submission.question_id)
    payload = submission.model_dump()
    payload["answers"] = filter_answers(config.get("questions") or [], payload["answers"])
    payload["enforceUnique"] = payload["enforceUnique"] or bool(config.get("enforceUnique"))
    payload["form_title"] = payload["form_title"] or config.get("title")
    payload["ip"] = payload["ip"] or _client_ip(request)
    payload["user_agent"] = payload["user_agent"] or request.headers.get("user-agent", "")

    result = collector.append_submission(payload)
    if result.get("status") == "error":
        raise UpstreamError(f"Failed to store response: {result.get('error')}")
    logger.info(f"Collected submission for form {submission.question_id} ({result.get('mode')})")
    return {"success": True, **result}


@router.get("/collect")
def collect_responses(
    action: Optional[str] = None,
    formId: Optional[str] = None,
    collector=Depends(get_response_collector)
):
    if action != "getResponses" or not formId:
        raise ValidationError("Use action=getResponses with a formId")
    return collector.get_responses(formId)


@router.post("/proxy")
def proxy(body: ProxyRequest):
    """Forward a JSON POST (typically to an Apps Script) and relay the reply with open CORS headers"""
    if not body.url:
        raise ValidationError("URL is required")

    try:
        upstream = requests.post(
            body.url,
            json=body.data,
            headers={"User-Agent": "Mozilla/5.0 (compatible; FormProxy/1.0)"},
            timeout=PROXY_TIMEOUT
        )
        content = upstream.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Proxy error: {e}")
        return JSONResponse(status_code=500, content={"error": "Proxy request failed"})

    return JSONResponse(status_code=upstream.status_code, content=content, headers=CORS_HEADERS)


@router.options("/proxy")
def proxy_options():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/rephrase-text")
def rephrase(body: RephraseRequest, llm=Depends(get_chat_model)):
    rephrased = rephrase_text(body.text, llm=llm)
    return {"rephrasedText": rephrased.strip()}
