"""
Skip-logic rules for the form builder and renderer.
Pure functions over config dicts: which conditions a question type allows,
whether a question is shown for a set of answers, and how builder edits
keep every rule pointing at an earlier question.

The API stores whole question lists and only needs sanitize_skip_logic;
move_question and change_question are the per-edit helpers for builder
clients that edit a form one question at a time.
"""

import copy
import logging
import re
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

LIKERT_DEFAULT_OPTIONS = [
    "Strongly agree",
    "Somewhat agree",
    "Neither agree nor disagree",
    "Somewhat disagree",
    "Strongly disagree",
]

DEFAULT_SCALE_RANGE = 5

# Plain decimal numbers only; the form page parses with the same pattern
NUMBER_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

OPTION_TYPES = ("mcq", "checkbox", "likert")

CONDITIONS_BY_TYPE = {
    "yesno": ["equals", "not_equals"],
    "mcq": ["equals", "not_equals"],
    "likert": ["equals", "not_equals"],
    "checkbox": ["includes", "not_includes"],
    "scale": ["equals", "not_equals", "greater_than", "less_than"],
    "text": ["equals", "not_equals", "contains", "not_contains"],
}

CONDITION_LABELS = {
    "equals": "equals",
    "not_equals": "does not equal",
    "includes": "includes",
    "not_includes": "does not include",
    "greater_than": "greater than",
    "less_than": "less than",
    "contains": "contains",
    "not_contains": "does not contain",
}


def disabled_skip_logic() -> Dict[str, Any]:
    return {"enabled": False, "dependsOn": "", "condition": "equals", "value": ""}


def conditions_for_type(question_type: str) -> List[Dict[str, str]]:
    """Conditions the builder offers for a dependency of the given type"""
    conditions = CONDITIONS_BY_TYPE.get(question_type, ["equals", "not_equals"])
    return [{"value": c, "label": CONDITION_LABELS[c]} for c in conditions]


def values_for_question(question: Optional[Dict[str, Any]]) -> List[str]:
    """Selectable comparison values for a dependency (empty for free text)"""
    if not question:
        return []

    question_type = question.get("type")
    if question_type == "yesno":
        return ["Yes", "No"]
    if question_type in OPTION_TYPES:
        return list(question.get("options") or [])
    if question_type == "scale":
        scale_range = question.get("scaleRange") or DEFAULT_SCALE_RANGE
        return [str(i + 1) for i in range(scale_range)]
    return []


def _is_unanswered(answer: Any) -> bool:
    if answer is None:
        return True
    if isinstance(answer, str) and answer.strip() == "":
        return True
    if isinstance(answer, (list, tuple)) and len(answer) == 0:
        return True
    return False


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    text = str(value).strip()
    if not NUMBER_PATTERN.fullmatch(text):
        return None
    return float(text)


def _as_list(answer: Any) -> List[str]:
    if isinstance(answer, (list, tuple)):
        return [str(item) for item in answer]
    return [str(answer)]


def evaluate_condition(condition: str, answer: Any, value: Any) -> bool:
    """
    Compare one answer against a skip-logic value.

    An unanswered dependency never satisfies a condition, so questions that
    depend on it stay hidden until it is answered.

    Args:
        condition: One of the CONDITION_LABELS keys
        answer: The collected answer (string, number or list for checkboxes)
        value: The value configured on the rule

    Returns:
        True when the condition holds
    """
    if _is_unanswered(answer):
        return False

    if condition in ("includes", "not_includes"):
        included = str(value) in _as_list(answer)
        return included if condition == "includes" else not included

    if condition in ("greater_than", "less_than"):
        left = _as_number(answer)
        right = _as_number(value)
        if left is None or right is None:
            return False
        return left > right if condition == "greater_than" else left < right

    if condition in ("contains", "not_contains"):
        found = str(value).lower() in str(answer).lower()
        return found if condition == "contains" else not found

    if condition in ("equals", "not_equals"):
        if isinstance(answer, (list, tuple)):
            matches = _as_list(answer) == [str(value)]
        else:
            left = _as_number(answer)
            right = _as_number(value)
            if left is not None and right is not None:
                matches = left == right
            else:
                matches = str(answer).strip() == str(value).strip()
        return matches if condition == "equals" else not matches

    logger.warning(f"Unknown skip-logic condition '{condition}', treating as unmet")
    return False


def _active_rule(question: Dict[str, Any], earlier_ids: List[str]) -> Optional[Dict[str, Any]]:
    """The question's rule if it is enabled and points strictly earlier"""
    rule = question.get("skipLogic")
    if not rule or not rule.get("enabled"):
        return None

    depends_on = rule.get("dependsOn")
    if not depends_on or depends_on not in earlier_ids:
        logger.debug(
            f"Question {question.get('id')} depends on '{depends_on}' which is not an earlier question; rule ignored"
        )
        return None
    return rule


def visibility_map(questions: List[Dict[str, Any]], answers: Dict[str, Any]) -> Dict[str, bool]:
    """
    Decide visibility of every question in form order.

    A question whose dependency is itself hidden is hidden as well, whatever
    value the hidden question may still hold in `answers`.

    Returns:
        Mapping of question id to visibility
    """
    visible: Dict[str, bool] = {}
    earlier_ids: List[str] = []

    for question in questions:
        question_id = question.get("id")
        rule = _active_rule(question, earlier_ids)

        if rule is None:
            visible[question_id] = True
        else:
            depends_on = rule["dependsOn"]
            visible[question_id] = visible.get(depends_on, False) and evaluate_condition(
                rule.get("condition", "equals"),
                answers.get(depends_on),
                rule.get("value", ""),
            )

        earlier_ids.append(question_id)

    return visible


def is_visible(questions: List[Dict[str, Any]], question_id: str, answers: Dict[str, Any]) -> bool:
    return visibility_map(questions, answers).get(question_id, False)


def visible_questions(questions: List[Dict[str, Any]], answers: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Questions to render for the answers collected so far, in form order"""
    visible = visibility_map(questions, answers)
    return [q for q in questions if visible.get(q.get("id"))]


def filter_answers(questions: List[Dict[str, Any]], answers: Dict[str, Any]) -> Dict[str, Any]:
    """Drop answers given to questions that ended up hidden"""
    visible = visibility_map(questions, answers)
    return {key: value for key, value in answers.items() if visible.get(key, True)}


def dependency_edges(questions: List[Dict[str, Any]]) -> Dict[str, str]:
    """Active rules as a dependent -> dependency mapping"""
    edges = {}
    earlier_ids: List[str] = []
    for question in questions:
        rule = _active_rule(question, earlier_ids)
        if rule is not None:
            edges[question["id"]] = rule["dependsOn"]
        earlier_ids.append(question.get("id"))
    return edges


def sanitize_skip_logic(questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Disable every rule whose dependency is missing or not strictly earlier.

    Returns:
        A new question list; the input is not modified
    """
    sanitized = copy.deepcopy(questions)
    earlier_ids: List[str] = []

    for question in sanitized:
        rule = question.get("skipLogic")
        if rule and rule.get("enabled"):
            depends_on = rule.get("dependsOn")
            if not depends_on or depends_on not in earlier_ids:
                logger.info(
                    f"Disabling skip logic on {question.get('id')}: '{depends_on}' is no longer an earlier question"
                )
                question["skipLogic"] = disabled_skip_logic()
        earlier_ids.append(question.get("id"))

    return sanitized


def move_question(questions: List[Dict[str, Any]], old_index: int, new_index: int) -> List[Dict[str, Any]]:
    """Reorder one question, then drop rules the new order broke"""
    reordered = copy.deepcopy(questions)
    if old_index == new_index:
        return reordered

    question = reordered.pop(old_index)
    reordered.insert(new_index, question)
    return sanitize_skip_logic(reordered)


def _disable_dependents(questions: List[Dict[str, Any]], question_id: str) -> None:
    for question in questions:
        rule = question.get("skipLogic")
        if rule and rule.get("enabled") and rule.get("dependsOn") == question_id:
            question["skipLogic"] = disabled_skip_logic()


def change_question(
    questions: List[Dict[str, Any]],
    index: int,
    key: str,
    value: Any
) -> List[Dict[str, Any]]:
    """
    Apply one builder edit to the question at `index`.

    Changing type, options or scale range invalidates any rule that compares
    against this question, so those rules are switched off.

    Returns:
        A new question list
    """
    updated = copy.deepcopy(questions)
    question = updated[index]

    if key == "type":
        question["type"] = value
        if value not in OPTION_TYPES:
            question["options"] = []
        question["scaleRange"] = DEFAULT_SCALE_RANGE if value == "scale" else None
        if value == "likert":
            question["options"] = list(LIKERT_DEFAULT_OPTIONS)
        _disable_dependents(updated, question["id"])
    elif key == "label":
        question["label"] = value
    elif key == "options":
        question["options"] = list(value)
        _disable_dependents(updated, question["id"])
    elif key == "scaleRange":
        question["scaleRange"] = int(value)
        _disable_dependents(updated, question["id"])
    elif key == "skipLogic":
        if isinstance(value, dict) and "enabled" in value:
            question["skipLogic"] = value
    else:
        logger.warning(f"Ignoring edit of unknown question field '{key}'")

    return updated
