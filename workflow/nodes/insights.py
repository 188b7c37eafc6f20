"""
AI insights over form responses.
Any failure of the model call falls back to the rule-based insights.
"""

import logging
from typing import Dict, Any, List, Optional

from questions.errors import QuestionsError
from questions.utils.data_models import AIInsight
from workflow.core.analytics import generate_fallback_insights, filter_by_date_range
from workflow.core.llm_utils import call_llm_json
from workflow.core.prompts import build_insights_prompt, SYSTEM_PROMPTS

logger = logging.getLogger(__name__)

INSIGHT_TYPES = ("theme", "trend", "correlation", "anomaly", "summary")


def build_analysis_data(
    form_config: Dict[str, Any],
    responses: List[Dict[str, Any]],
    analytics: List[Dict[str, Any]],
    selected_questions: Optional[List[str]] = None,
    date_range: str = "all"
) -> Dict[str, Any]:
    """Restrict the data to the selected questions and date range"""
    selected = selected_questions if selected_questions is not None else [
        q.get("id") for q in form_config.get("questions") or []
    ]
    filtered_responses = filter_by_date_range(responses, date_range)
    return {
        "formTitle": form_config.get("title"),
        "formDescription": form_config.get("description"),
        "totalResponses": len(filtered_responses),
        "questions": [q for q in form_config.get("questions") or [] if q.get("id") in selected],
        "analytics": [a for a in analytics if a.get("questionId") in selected],
        "responses": filtered_responses,
    }


def _normalize_insight(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict) or not raw.get("title") or not raw.get("description"):
        return None
    try:
        confidence = max(0.0, min(1.0, float(raw.get("confidence", 0))))
    except (TypeError, ValueError):
        confidence = 0.0
    return AIInsight(
        type=raw.get("type") if raw.get("type") in INSIGHT_TYPES else "summary",
        title=str(raw["title"]),
        description=str(raw["description"]),
        confidence=confidence,
        relatedQuestions=[str(question_id) for question_id in raw.get("relatedQuestions") or []],
    ).model_dump()


def generate_insights(analysis_data: Dict[str, Any], llm: Optional[Any] = None) -> List[Dict[str, Any]]:
    """
    Ask for 3-5 insights as a JSON array.

    Returns:
        Insight dicts; the fallback insights when the call or its parsing fails
    """
    logger.info(f"=== INSIGHTS STARTED - {analysis_data.get('formTitle')} ({analysis_data.get('totalResponses')} responses) ===")
    try:
        result = call_llm_json(
            system_prompt=SYSTEM_PROMPTS["insights"],
            user_prompt=build_insights_prompt(analysis_data),
            temperature=0.7,
            max_tokens=2000,
            function_name="generate_insights",
            json_object=False,
            llm=llm
        )
    except QuestionsError as e:
        logger.warning(f"Insights call failed ({e.message}), using fallback insights")
        return generate_fallback_insights(analysis_data.get("analytics", []))

    if not isinstance(result, list):
        logger.warning("Insights reply was not a JSON array, using fallback insights")
        return generate_fallback_insights(analysis_data.get("analytics", []))

    insights = [insight for insight in (_normalize_insight(raw) for raw in result) if insight]
    if not insights:
        logger.warning("Insights reply held no usable insights, using fallback insights")
        return generate_fallback_insights(analysis_data.get("analytics", []))
    logger.info(f"=== INSIGHTS COMPLETED - {len(insights)} insights ===")
    return insights
