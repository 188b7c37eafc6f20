"""
All LLM prompts for the 20 Questions flow, goal execution, calendar nudges,
form insights and text rephrasing.
Pure prompt templates plus the builders that fill them from session data.
"""

from typing import Dict, Any, List

from workflow.core.session_logic import format_turns

QUESTION_SYSTEM_PROMPT = (
    "You are an intelligent agent conducting a 20 Questions session. Your goal is to ask the most "
    "relevant question to understand the user's goal or problem. Always respond with valid JSON."
)

QUESTION_JSON_FORMAT = """Always respond with valid JSON in this format:
{
  "question": "Your question here",
  "rationale": "Why you're asking this question",
  "confidence": 0.0-1.0,
  "type": "text|likert|choice"
}"""

QUESTION_TYPES_HELP = """Question types:
- "text": For detailed, open-ended responses
- "likert": For 1-5 scale responses (Strongly Disagree to Strongly Agree)
- "choice": For Yes/No/Maybe responses"""

TWENTY_Q_PROMPTS = {
    "goal_definition": """You are conducting a 20 Questions session to understand the user's goal or problem. Ask thoughtful, probing questions that will help you understand their situation deeply.

Guidelines:
- Start with broad, open-ended questions
- Ask follow-up questions based on their answers
- Use different question types: text (for detailed answers), likert (for scales), choice (for yes/no/maybe)
- Aim to understand their context, constraints, and desired outcomes
- Be empathetic and curious
- Don't make assumptions - ask clarifying questions

{question_types}

{json_format}""",

    "generate_turn": """You are continuing a 20 Questions session. Based on the previous questions and answers, generate the next most relevant question.

Previous conversation:
{turns}

Current goal understanding: {goal}

Guidelines:
- Ask the most relevant question based on previous answers
- Consider what information is still missing
- Use appropriate question type for the information needed
- Provide clear rationale for why this question is important
- Update confidence based on how well you understand their goal

{question_types}

{json_format}""",

    "summarize_session": """You are summarizing a completed 20 Questions session. Create a concise, insightful summary of what you learned about the user's goal or problem.

Session data:
{turns}

Goal: {goal}

Guidelines:
- Summarize the key insights about their situation
- Highlight any patterns or themes you noticed
- Include any constraints or challenges they mentioned
- Suggest potential next steps or areas to explore
- Keep it concise but comprehensive (2-3 paragraphs)

Respond with a clear, well-structured summary.""",

    "summarize_goal": """Based on the following conversation, I need you to:

1. Articulate a clear, actionable goal that summarizes what the user wants to accomplish
2. Provide a brief summary of the key context and constraints

Conversation:
{turns}

Please respond with JSON in this format:
{
  "goal": "A clear, concise statement of what needs to be accomplished",
  "summary": "Brief context about the situation, constraints, and key considerations"
}

The goal should be specific enough that another agent could work on it effectively.""",

    "analyze_session": """Analyze this 20 Questions session and provide insights and recommendations:

Session data:
{turns}

Goal: {goal}

Please provide:
1. Key insights about the user's situation
2. Specific recommendations for next steps
3. Overall confidence in understanding (0-1)

Respond with JSON:
{
  "insights": ["insight1", "insight2"],
  "recommendations": ["rec1", "rec2"],
  "confidence": 0.8
}""",
}

SYSTEM_PROMPTS = {
    "summarize_session": (
        "You are an AI assistant that creates concise, insightful summaries of 20 Questions sessions. "
        "Focus on key insights and actionable takeaways."
    ),
    "summarize_goal": (
        "You are an AI assistant that creates clear, actionable goals based on conversation summaries. "
        "Always respond with valid JSON."
    ),
    "analyze_session": (
        "You are an AI assistant that analyzes 20 Questions sessions to provide insights and recommendations."
    ),
    "execute_goal": (
        "You are an AI agent that helps execute goals established through 20 Questions sessions. "
        "Be proactive, helpful, and focused on making progress toward the goal. This is conversational, "
        "like a text message thread. Keep your questions and responses very concise and short. "
        "No message should be longer than three sentences. Never ask multiple questions in a single message."
    ),
    "calendar_nudge": (
        "You decide whether a short reminder about a personal goal would help right now. "
        "Always respond with valid JSON."
    ),
    "insights": """You are an expert data analyst specializing in form response analysis. Your task is to analyze form responses and generate insightful observations about patterns, themes, correlations, and trends.

You should look for:
1. **Themes** in text responses - recurring topics, sentiments, or concerns
2. **Trends** - patterns over time or across different question types
3. **Correlations** - relationships between different questions or response patterns
4. **Anomalies** - unusual patterns or outliers in the data
5. **Summaries** - high-level insights about the overall response set

For each insight, provide:
- A clear, descriptive title
- A detailed explanation of the finding
- Confidence level (0-1) based on the strength of the evidence
- Related question IDs if applicable

Respond with a valid JSON array of insights, each shaped like:
{"type": "theme|trend|correlation|anomaly|summary", "title": "...", "description": "...", "confidence": 0.0-1.0, "relatedQuestions": ["q1"]}""",
    "rephrase": """You are a text rephrasing assistant that helps anonymize writing styles. Your task is to rephrase the given text in a clear, simple, and direct essay style.

Style characteristics:
- Clear and straightforward sentences
- Maintains the original meaning and intent
- Maintains the sense of emotion or urgency, if that's present
- Removes personal writing quirks, typos, and distinctive phrasing
- Preserves the core message while making it more anonymous

Your response should be ONLY the rephrased text, nothing else.""",
}

EXECUTION_PROMPT = """You are an AI agent working to execute a specific goal that was established through a 20 Questions session.

GOAL TO EXECUTE:
{goal}

CONTEXT FROM 20Q SESSION:
{context}

CONVERSATION HISTORY:
{history}

USER'S LATEST MESSAGE:
{user_message}

INSTRUCTIONS:
- You are now in the EXECUTION phase - the goal has been established and you need to work on it
- Be proactive and helpful in advancing toward the goal
- Ask clarifying questions if needed
- Do one thing at a time. This is like a text message thread, so be really concise
- Be encouraging and supportive
- Always bring it back to the next thing that will make the most progress toward the goal
- No message should be longer than three sentences. Never ask multiple questions in a single message
- In the first message, jump right in with the first prompt or question that moves toward the goal
- If you need to contact someone or schedule something, mention that you can send a Telegram notification
"""

CALENDAR_NUDGE_PROMPT = """You are analyzing a user's calendar to determine if and when to send them a nudge about their 20 Questions goal.

User's goal: {goal}

Calendar events (next 24-72 hours) - BOTH Personal and Work calendars overlaid:
{calendar}

Guidelines:
- You can see the FULL schedule across both personal and work contexts
- Consider if there's a good time to remind them about their goal
- Look for natural breaks or transition periods in either calendar
- Avoid times when they're likely busy or stressed in either context
- Consider if their goal relates to any upcoming events in either calendar
- Only suggest nudging if it would be helpful and well-timed

Respond with JSON:
{
  "shouldNudge": true/false,
  "reason": "Why you're suggesting this nudge",
  "timing": "When to send the nudge",
  "message": "The nudge message to send"
}"""

INSIGHTS_PROMPT = """Analyze this form data and generate insights:

Form: {title}
Description: {description}
Total Responses: {total}

Questions and Analytics:
{analytics}

Sample Text Responses (first 5):
{samples}

Generate 3-5 most valuable insights from this data."""


def _fill(template: str, values: Dict[str, str]) -> str:
    """Substitute {name} placeholders without touching the JSON braces in the template"""
    for key, value in values.items():
        template = template.replace("{" + key + "}", value)
    return template


def build_prompt(session: Dict[str, Any], current_turn: int) -> str:
    """
    Question-generation prompt for the given turn.

    Args:
        session: Current session
        current_turn: Number of answered turns; 0 selects the goal-definition prompt

    Returns:
        Prompt text with the full turn history embedded
    """
    common = {"question_types": QUESTION_TYPES_HELP, "json_format": QUESTION_JSON_FORMAT}
    if current_turn == 0:
        return _fill(TWENTY_Q_PROMPTS["goal_definition"], common)

    return _fill(TWENTY_Q_PROMPTS["generate_turn"], {
        "turns": format_turns(session.get("turns") or []),
        "goal": session.get("goal") or "Not yet defined",
        **common,
    })


def build_summary_prompt(session: Dict[str, Any]) -> str:
    return _fill(TWENTY_Q_PROMPTS["summarize_session"], {
        "turns": format_turns(session.get("turns") or []),
        "goal": session.get("goal") or "Not defined",
    })


def build_goal_summary_prompt(session: Dict[str, Any]) -> str:
    return _fill(TWENTY_Q_PROMPTS["summarize_goal"], {
        "turns": format_turns(session.get("turns") or []),
    })


def build_analysis_prompt(session: Dict[str, Any]) -> str:
    return _fill(TWENTY_Q_PROMPTS["analyze_session"], {
        "turns": format_turns(session.get("turns") or []),
        "goal": session.get("goal") or "Not defined",
    })


def build_calendar_prompt(goal: str, calendar: str) -> str:
    return _fill(CALENDAR_NUDGE_PROMPT, {"goal": goal, "calendar": calendar})


def build_execution_prompt(
    goal: str,
    context: str,
    conversation: List[Dict[str, Any]],
    user_message: str
) -> str:
    """
    Execution-phase prompt. The synthetic `goal-context` message the client
    shows first is not part of the history the model sees.
    """
    history = "\n".join(
        f"{'User' if message.get('role') == 'user' else 'Assistant'}: {message.get('content', '')}"
        for message in conversation
        if message.get("id") != "goal-context"
    )
    return _fill(EXECUTION_PROMPT, {
        "goal": goal,
        "context": context or "No additional context provided.",
        "history": history,
        "user_message": user_message,
    })


def build_insights_prompt(analysis: Dict[str, Any]) -> str:
    """
    Insights prompt from the analysis payload
    ({formTitle, formDescription, totalResponses, questions, analytics, responses}).
    """
    lines = []
    for item in analysis.get("analytics", []):
        line = (
            f"- {item.get('questionLabel')} ({item.get('questionType')}): "
            f"{item.get('totalResponses', 0)} responses, {round(item.get('responseRate', 0))}% response rate"
        )
        data = item.get("data") or {}
        if item.get("questionType") == "text":
            line += f"\n  Average length: {round(data.get('averageLength') or 0)} characters"
        elif item.get("questionType") in ("yesno", "mcq"):
            line += f"\n  Options: {', '.join(data.get('options') or [])}"
        elif item.get("questionType") == "scale":
            line += f"\n  Average rating: {(data.get('average') or 0):.1f}"
        lines.append(line)

    text_questions = {
        q.get("id"): q.get("label") for q in analysis.get("questions", []) if q.get("type") == "text"
    }
    samples = []
    for response in analysis.get("responses", [])[:5]:
        parts = [
            f"{text_questions[key]}: {answer}"
            for key, answer in (response.get("answers") or {}).items()
            if key in text_questions and answer
        ]
        if parts:
            samples.append("; ".join(parts))

    return _fill(INSIGHTS_PROMPT, {
        "title": analysis.get("formTitle") or "",
        "description": analysis.get("formDescription") or "No description",
        "total": str(analysis.get("totalResponses", 0)),
        "analytics": "\n".join(lines),
        "samples": "\n".join(samples),
    })


def build_rephrase_prompt(text: str) -> str:
    return f'Please rephrase this text in a clear, direct style while preserving the original meaning: "{text}"'
