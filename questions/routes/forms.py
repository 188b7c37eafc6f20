"""
Form builder, dashboard and analytics endpoints.
"""

import logging
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from questions.errors import ValidationError, NotFoundError
from questions.routes.deps import (
    get_chat_model,
    get_form_store,
    get_response_source_factory,
)
from questions.utils.data_models import Question
from workflow.core.analytics import DATE_RANGES, filter_by_date_range, generate_analytics, transform_responses
from workflow.core.formatters import inject_config, render_form_html, render_form_template
from workflow.core.validators import validate_form_config
from workflow.nodes.insights import build_analysis_data, generate_insights

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["forms"])


class FormBody(BaseModel):
    title: str = ""
    description: Optional[str] = None
    expiration: Optional[str] = None
    enforceUnique: bool = False
    questions: List[Question] = Field(default_factory=list)


class ToggleRequest(BaseModel):
    action: str


class TitleCheckRequest(BaseModel):
    title: str
    excludeId: Optional[str] = None


class PreviewRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class InsightsRequest(BaseModel):
    formConfig: Optional[Dict[str, Any]] = None
    responses: Optional[List[Dict[str, Any]]] = None
    analytics: Optional[List[Dict[str, Any]]] = None
    selectedQuestions: Optional[List[str]] = None
    dateRange: str = "all"


def _validated(body: FormBody) -> Dict[str, Any]:
    data = body.model_dump()
    data["questions"] = [question.model_dump(exclude_none=True) for question in body.questions]
    is_valid, errors, details = validate_form_config(data)
    if not is_valid:
        logger.warning(f"Rejected form '{body.title}': {errors}")
        raise ValidationError(errors[0], metadata={"errors": errors, "details": details})
    return data


@router.post("/create-page")
def create_page(body: FormBody, store=Depends(get_form_store)):
    """Validate a new form and commit it; returns the public link"""
    data = _validated(body)
    result = store.create_form(data, render_form_template())
    logger.info(f"Form created: {result['formId']} ({len(data['questions'])} questions)")
    return {"link": result["link"], "formId": result["formId"]}


@router.get("/forms")
def list_forms(store=Depends(get_form_store)):
    forms = store.list_forms()
    return {"forms": forms, "total": len(forms)}


@router.post("/forms/check-title")
def check_title(body: TitleCheckRequest, store=Depends(get_form_store)):
    if not body.title.strip():
        raise ValidationError("Title is required")
    return store.find_duplicate_title(body.title, exclude_id=body.excludeId)


@router.get("/forms/{form_id}", response_class=HTMLResponse)
def get_form(form_id: str, store=Depends(get_form_store)):
    """The published page with its config inlined"""
    config = store.read_form(form_id)
    try:
        html = inject_config(store.read_template(form_id), config)
    except NotFoundError:
        logger.warning(f"No stored template for form {form_id}, rendering from the bundled one")
        html = render_form_html(config)
    return HTMLResponse(content=html, headers={"Cache-Control": "no-cache"})


@router.get("/forms/{form_id}/config")
def get_form_config(form_id: str, store=Depends(get_form_store)):
    return store.read_form(form_id)


@router.post("/forms/{form_id}/update")
def update_form(form_id: str, body: FormBody, store=Depends(get_form_store)):
    data = _validated(body)
    config = store.update_form(form_id, data)
    return {"success": True, "config": config}


@router.post("/forms/{form_id}/toggle")
def toggle_form(form_id: str, body: ToggleRequest, store=Depends(get_form_store)):
    return store.set_form_status(form_id, body.action)


@router.post("/forms/{form_id}/preview", response_class=HTMLResponse)
def preview_form(form_id: str, body: PreviewRequest, store=Depends(get_form_store)):
    """Server-side render showing only the questions visible for the given answers"""
    config = store.read_form(form_id)
    return HTMLResponse(content=render_form_html(config, answers=body.answers, preview=True))


@router.get("/forms/{form_id}/responses")
def get_responses(
    form_id: str,
    store=Depends(get_form_store),
    source_for=Depends(get_response_source_factory)
):
    config = store.read_form(form_id)
    return source_for(config).get_responses(form_id)


@router.get("/forms/{form_id}/analytics/responses")
def get_analytics_responses(
    form_id: str,
    store=Depends(get_form_store),
    source_for=Depends(get_response_source_factory)
):
    config = store.read_form(form_id)
    data = source_for(config).get_responses(form_id)
    responses = transform_responses(data.get("responses", []))
    return {"responses": responses, "total": len(responses)}


@router.get("/forms/{form_id}/analytics")
def get_analytics(
    form_id: str,
    dateRange: str = "all",
    store=Depends(get_form_store),
    source_for=Depends(get_response_source_factory)
):
    """Per-question statistics over the responses in the date range"""
    if dateRange != "all" and dateRange not in DATE_RANGES:
        raise ValidationError(f"Unknown date range '{dateRange}'")

    config = store.read_form(form_id)
    data = source_for(config).get_responses(form_id)
    responses = filter_by_date_range(transform_responses(data.get("responses", [])), dateRange)
    analytics = generate_analytics(config.get("questions") or [], responses)
    return {"analytics": analytics, "totalResponses": len(responses), "dateRange": dateRange}


@router.post("/forms/{form_id}/analytics/insights")
def get_insights(form_id: str, body: InsightsRequest, llm=Depends(get_chat_model)):
    if body.formConfig is None or body.responses is None or body.analytics is None:
        raise ValidationError("Missing required data")

    analysis_data = build_analysis_data(
        body.formConfig,
        body.responses,
        body.analytics,
        selected_questions=body.selectedQuestions,
        date_range=body.dateRange
    )
    insights = generate_insights(analysis_data, llm=llm)
    logger.info(f"Generated {len(insights)} insights for form {form_id}")
    return {"insights": insights, "total": len(insights)}
