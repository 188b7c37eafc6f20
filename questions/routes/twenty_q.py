"""
20 Questions endpoints: question generation, the LangGraph turn, goal
summaries, session storage, goal execution and nudges.
"""

import logging
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from questions.errors import ValidationError, UpstreamError
from questions.routes.deps import get_chat_model, get_conversation_store, get_drive_store
from questions.tools.google_calendar import get_upcoming_events
from questions.tools.telegram import send_message, send_session_reminder, session_link
from questions.utils.data_models import ExecutionConversation, Session, utc_now_iso
from questions.utils.session_storage import save_session, load_session
from workflow.core.formatters import format_calendar_for_prompt
from workflow.graph import run_turn_async
from workflow.nodes.execution import execute_goal
from workflow.nodes.nudge import decide_nudge
from workflow.nodes.question import generate_next_turn
from workflow.nodes.summary import summarize_goal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/20q", tags=["20q"])


class GenerateQuestionRequest(BaseModel):
    session: Optional[Dict[str, Any]] = None
    currentTurn: Optional[int] = None


class TurnRequest(BaseModel):
    session: Optional[Dict[str, Any]] = None
    answer: Optional[str] = None
    stop: bool = False


class SummarizeGoalRequest(BaseModel):
    session: Optional[Dict[str, Any]] = None


class ExecuteGoalRequest(BaseModel):
    sessionId: Optional[str] = None
    goal: str = ""
    context: Optional[str] = None
    conversation: List[Dict[str, Any]] = Field(default_factory=list)
    userMessage: str = ""


class NudgeRequest(BaseModel):
    goal: str = ""
    sessionId: Optional[str] = None
    customMessage: Optional[str] = None
    accountContext: Optional[str] = None


class NotifyRequest(BaseModel):
    message: Optional[str] = None
    goal: Optional[str] = None
    sessionId: Optional[str] = None
    chatId: Optional[str] = None


@router.post("/generate-question")
def generate_question(body: GenerateQuestionRequest, llm=Depends(get_chat_model)):
    """One question-generation step for a client-driven session"""
    if not body.session or body.currentTurn is None:
        raise ValidationError("Invalid request body")
    return generate_next_turn(body.session, body.currentTurn, llm=llm)


@router.post("/turn")
async def take_turn(body: TurnRequest, llm=Depends(get_chat_model)):
    """Record an answer and advance the session through the workflow"""
    result = await run_turn_async(body.session, body.answer, body.stop, llm=llm)
    if result["status"] == "error":
        return JSONResponse(status_code=result["error_status"], content={"error": result["error"]})
    return result


@router.post("/summarize-goal")
def summarize_goal_route(body: SummarizeGoalRequest, llm=Depends(get_chat_model)):
    if not body.session or not isinstance(body.session.get("turns"), list):
        raise ValidationError("Invalid request body")
    return summarize_goal(body.session, llm=llm)


@router.post("/save-session")
def save_session_route(session: Session, drive_store=Depends(get_drive_store)):
    return save_session(session.model_dump(exclude_none=True), drive_store=drive_store)


@router.get("/session/{session_id}")
def get_session(session_id: str, drive_store=Depends(get_drive_store)):
    return load_session(session_id, drive_store=drive_store)


@router.post("/execute-goal")
def execute_goal_route(body: ExecuteGoalRequest, llm=Depends(get_chat_model)):
    reply = execute_goal(body.goal, body.context, body.conversation, body.userMessage, llm=llm)
    logger.info(f"Execution reply for session {body.sessionId}: {len(reply)} characters")
    return {"response": reply}


@router.post("/save-conversation")
def save_conversation(body: Dict[str, Any], store=Depends(get_conversation_store)):
    if not body.get("sessionId") or not body.get("goal") or body.get("messages") is None:
        raise ValidationError("Missing required fields")

    body.setdefault("createdAt", utc_now_iso())
    body["updatedAt"] = body.get("updatedAt") or utc_now_iso()
    conversation = ExecutionConversation.model_validate(body)
    return store.save(conversation.model_dump())


@router.get("/conversations")
def list_conversations(store=Depends(get_conversation_store)):
    conversations = store.list()
    return {"conversations": conversations, "total": len(conversations)}


@router.get("/conversations/{session_id}")
def get_conversation(session_id: str, store=Depends(get_conversation_store)):
    return store.get(session_id)


@router.post("/schedule-nudge")
def schedule_nudge(body: NudgeRequest, llm=Depends(get_chat_model)):
    """Check the calendar, let the model decide, and send the reminder when it says so"""
    if not body.goal:
        raise ValidationError("Goal is required")

    events = get_upcoming_events(3, context=body.accountContext)
    decision = decide_nudge(body.goal, format_calendar_for_prompt(events), llm=llm)

    if decision["shouldNudge"]:
        link = session_link(body.sessionId) if body.sessionId else ""
        message = body.customMessage or decision["message"] or (
            f"🤔 20 Questions Reminder\n\nGoal: {body.goal}\n\nReady to continue? {link}".rstrip()
        )
        if not send_message(message):
            raise UpstreamError("Failed to send notification")

    return {"success": True, "decision": decision, "events": len(events)}


@router.post("/notify")
def notify(body: NotifyRequest):
    if not body.message and (not body.goal or not body.sessionId):
        raise ValidationError("Either message or goal+sessionId is required")

    if body.message:
        success = send_message(body.message, chat_id=body.chatId)
    else:
        success = send_session_reminder(body.goal, body.sessionId)

    if not success:
        raise UpstreamError("Failed to send notification")
    return {"success": True}
