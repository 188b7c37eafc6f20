"""
Domain errors for the forms and 20 Questions services.
Each error carries the HTTP status its route boundary reports.
"""

from typing import Any, Dict, Optional


class QuestionsError(RuntimeError):
    """Base error. Carries metadata for structured logging."""

    status_code: int = 500

    def __init__(self, message: str, *, metadata: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}


class ConfigurationError(QuestionsError):
    """Raised when a required environment setting is missing."""

    status_code = 500


class ValidationError(QuestionsError):
    """Raised when a request body or form config is invalid."""

    status_code = 400


class NotFoundError(QuestionsError):
    """Raised when a form, session or conversation does not exist."""

    status_code = 404


class SessionError(QuestionsError):
    """Raised on an illegal 20 Questions state transition."""

    status_code = 400


class DuplicateSubmissionError(QuestionsError):
    """Raised when a unique-response form receives a second submission from one IP."""

    status_code = 409


class InvalidLLMResponse(QuestionsError):
    """Raised when the model reply is not the JSON we asked for."""

    status_code = 500


class UpstreamError(QuestionsError):
    """Raised when GitHub, Google or Telegram answers with an error."""

    status_code = 500


class StorageError(QuestionsError):
    """Raised when no backing store accepted a write."""

    status_code = 500
