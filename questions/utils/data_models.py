from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime, timezone
import secrets
import uuid

QuestionType = Literal["text", "yesno", "mcq", "checkbox", "scale", "likert"]
TurnType = Literal["text", "likert", "choice"]
SessionStatus = Literal["in-progress", "completed"]
AccountContext = Literal["personal", "work"]

FORM_ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz_-"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_form_id(length: int = 6) -> str:
    """Short URL-safe form id"""
    return "".join(secrets.choice(FORM_ID_ALPHABET) for _ in range(length))


class SkipLogic(BaseModel):
    """Show a question only when an earlier answer matches"""
    enabled: bool = False
    dependsOn: str = ""
    condition: str = "equals"
    value: Any = ""


class Question(BaseModel):
    id: str
    type: QuestionType = "text"
    label: str = ""
    options: List[str] = Field(default_factory=list)
    scaleRange: Optional[int] = None
    skipLogic: Optional[SkipLogic] = None


class FormConfig(BaseModel):
    """Form definition committed as config.json"""
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: Optional[str] = None
    enforceUnique: bool = False
    questions: List[Question] = Field(default_factory=list)
    googleScriptUrl: Optional[str] = None
    expires_at: Optional[str] = None


class FormSummary(BaseModel):
    """One row of the dashboard form list"""
    id: str
    title: str
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    expires_at: Optional[str] = None
    status: Literal["active", "disabled"] = "active"
    isExpired: bool = False
    url: str


class FormResponse(BaseModel):
    """One submission as read back from the responses sheet"""
    timestamp: Optional[str] = None
    ip: Optional[str] = None
    userAgent: Optional[str] = None
    answers: Dict[str, Any] = Field(default_factory=dict)


class Submission(BaseModel):
    """Body posted to the response collector"""
    question_id: str
    form_title: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)
    ip: str = ""
    user_agent: str = ""
    answers: Dict[str, Any] = Field(default_factory=dict)
    enforceUnique: bool = False


class QuestionTurn(BaseModel):
    question: str
    answer: str = ""
    rationale: Optional[str] = None
    confidenceAfter: Optional[float] = None
    type: TurnType = "text"


class Session(BaseModel):
    """20 Questions session as held by the client"""
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    createdAt: str = Field(default_factory=utc_now_iso)
    goal: str = ""
    goalConfirmed: bool = False
    turns: List[QuestionTurn] = Field(default_factory=list)
    finalSummary: Optional[str] = None
    status: SessionStatus = "in-progress"
    userStopped: Optional[bool] = None
    savedAt: Optional[str] = None
    accountContext: Optional[AccountContext] = None


class AgentQuestion(BaseModel):
    """Parsed reply of the question-generation call"""
    question: str
    rationale: str
    confidence: float
    type: TurnType = "text"


class GoalSummary(BaseModel):
    goal: str
    summary: str


class ExecutionMessage(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    role: Literal["user", "assistant"]
    content: str
    timestamp: str = Field(default_factory=utc_now_iso)


class ExecutionConversation(BaseModel):
    sessionId: str
    goal: str
    context: Optional[str] = None
    messages: List[ExecutionMessage] = Field(default_factory=list)
    createdAt: str = Field(default_factory=utc_now_iso)
    updatedAt: str = Field(default_factory=utc_now_iso)


class ConversationInfo(BaseModel):
    sessionId: str
    goal: str
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    messageCount: int = 0


class NudgeDecision(BaseModel):
    shouldNudge: bool
    reason: str = ""
    timing: str = ""
    message: str = ""


class AIInsight(BaseModel):
    type: Literal["theme", "trend", "correlation", "anomaly", "summary"] = "summary"
    title: str
    description: str
    confidence: float = 0.0
    relatedQuestions: List[str] = Field(default_factory=list)
