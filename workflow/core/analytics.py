"""
Pure response analytics for the form dashboard.
Per-question statistics, date-range filtering and the rule-based insights
used when the LLM is unavailable.
"""

import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional

from workflow.core.skip_logic import DEFAULT_SCALE_RANGE
from workflow.core.validators import parse_timestamp

DATE_RANGES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


def _answered(responses: List[Dict[str, Any]], question_id: str) -> List[Any]:
    """Answers to one question; a question counts as answered when its key is present"""
    return [r["answers"][question_id] for r in responses if question_id in (r.get("answers") or {})]


def _percentages(counts: List[int], answered: int) -> List[float]:
    return [(count / answered) * 100 if answered > 0 else 0 for count in counts]


def _as_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def get_common_words(texts: List[str], limit: int = 10) -> List[Dict[str, Any]]:
    """
    Most frequent words across free-text answers.
    Lowercased, punctuation stripped, words of three or more characters only.
    """
    word_count = Counter()
    for text in texts:
        cleaned = re.sub(r"[^\w\s]", "", text.lower())
        word_count.update(word for word in cleaned.split() if len(word) > 2)

    return [{"word": word, "count": count} for word, count in word_count.most_common(limit)]


def _text_stats(answers: List[Any]) -> Dict[str, Any]:
    texts = [str(answer) for answer in answers]
    return {
        "totalTextResponses": len(texts),
        "averageLength": sum(len(text) for text in texts) / len(texts) if texts else 0,
        "wordCounts": [len(text.split()) for text in texts],
        "commonWords": get_common_words(texts),
    }


def _choice_stats(answers: List[Any], options: List[str]) -> Dict[str, Any]:
    counts = [len([answer for answer in answers if answer == option]) for option in options]
    return {
        "options": options,
        "counts": counts,
        "percentages": _percentages(counts, len(answers)),
    }


def _checkbox_stats(answers: List[Any], options: List[str]) -> Dict[str, Any]:
    selections = [
        [str(item) for item in answer] if isinstance(answer, list) else [part.strip() for part in str(answer).split(",")]
        for answer in answers
    ]
    counts = [len([selected for selected in selections if option in selected]) for option in options]
    return {
        "options": options,
        "counts": counts,
        "percentages": _percentages(counts, len(answers)),
    }


def _scale_stats(answers: List[Any], scale_range: int) -> Dict[str, Any]:
    values = [_as_number(answer) for answer in answers]
    numeric = [value for value in values if value is not None]
    return {
        "scaleRange": scale_range,
        "values": values,
        "average": sum(numeric) / len(numeric) if numeric else 0,
        "distribution": [len([v for v in numeric if v == i + 1]) for i in range(scale_range)],
    }


def analyze_question(question: Dict[str, Any], responses: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Statistics for one question across all responses"""
    answers = _answered(responses, question["id"])
    total = len(responses)
    question_type = question.get("type")
    options = list(question.get("options") or [])

    if question_type == "text":
        data = _text_stats(answers)
    elif question_type == "yesno":
        data = _choice_stats(answers, options or ["Yes", "No"])
    elif question_type in ("mcq", "likert"):
        data = _choice_stats(answers, options)
    elif question_type == "checkbox":
        data = _checkbox_stats(answers, options)
    elif question_type == "scale":
        data = _scale_stats(answers, question.get("scaleRange") or DEFAULT_SCALE_RANGE)
    else:
        data = {}

    return {
        "questionId": question["id"],
        "questionLabel": question.get("label", ""),
        "questionType": question_type,
        "totalResponses": len(answers),
        "responseRate": (len(answers) / total) * 100 if total > 0 else 0,
        "data": data,
    }


def generate_analytics(questions: List[Dict[str, Any]], responses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Per-question statistics in form order.

    Args:
        questions: Form questions
        responses: Responses with an `answers` mapping each

    Returns:
        One analytics entry per question
    """
    return [analyze_question(question, responses) for question in questions]


def filter_by_date_range(
    responses: List[Dict[str, Any]],
    date_range: str,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Keep responses within the last 7, 30 or 90 days. "all" and unknown
    ranges keep everything; responses without a parseable timestamp are dropped
    from bounded ranges.
    """
    window = DATE_RANGES.get(date_range)
    if window is None:
        return list(responses)

    cutoff = (now or datetime.now(timezone.utc)) - window
    kept = []
    for response in responses:
        timestamp = parse_timestamp(response.get("timestamp"))
        if timestamp is not None and timestamp >= cutoff:
            kept.append(response)
    return kept


def transform_responses(raw_responses: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Collector rows reshaped for the analytics view"""
    fallback_timestamp = (now or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
    return [
        {
            "id": response.get("id") or f"response_{index}",
            "timestamp": response.get("timestamp") or fallback_timestamp,
            "answers": response.get("answers") or {},
            "metadata": {
                "ip": response.get("ip"),
                "userAgent": response.get("userAgent"),
            },
        }
        for index, response in enumerate(raw_responses)
    ]


def generate_fallback_insights(analytics: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Rule-based insights: overall response rate, text length pattern and
    most popular choices.
    """
    insights = []
    if not analytics:
        return insights

    average_rate = sum(a["responseRate"] for a in analytics) / len(analytics)
    if average_rate > 80:
        engagement = "This indicates good engagement."
    elif average_rate > 60:
        engagement = "This suggests moderate engagement."
    else:
        engagement = "This indicates low engagement."
    insights.append({
        "type": "trend",
        "title": "Overall Response Rate",
        "description": f"The form has an average response rate of {round(average_rate)}% across all questions. {engagement}",
        "confidence": 0.9,
        "relatedQuestions": [a["questionId"] for a in analytics],
    })

    text_questions = [a for a in analytics if a["questionType"] == "text"]
    if text_questions:
        average_length = sum((a["data"] or {}).get("averageLength", 0) for a in text_questions) / len(text_questions)
        if average_length > 100:
            detail = "Users are providing detailed responses."
        elif average_length > 50:
            detail = "Users are providing moderate responses."
        else:
            detail = "Users are providing brief responses."
        insights.append({
            "type": "summary",
            "title": "Text Response Patterns",
            "description": f"Text responses average {round(average_length)} characters. {detail}",
            "confidence": 0.8,
            "relatedQuestions": [a["questionId"] for a in text_questions],
        })

    choice_questions = [a for a in analytics if a["questionType"] in ("mcq", "yesno")]
    if choice_questions:
        popular = []
        for a in choice_questions:
            counts = (a["data"] or {}).get("counts") or []
            options = (a["data"] or {}).get("options") or []
            top_index = counts.index(max(counts)) if counts else 0
            option = options[top_index] if top_index < len(options) else "Unknown"
            popular.append(f"{a['questionLabel']}: {option}")
        insights.append({
            "type": "trend",
            "title": "Most Popular Choices",
            "description": f"Analysis shows the most selected options: {', '.join(popular)}",
            "confidence": 0.7,
            "relatedQuestions": [a["questionId"] for a in choice_questions],
        })

    return insights
