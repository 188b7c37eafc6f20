"""
Collaborators handed to the routes through FastAPI dependencies.
Tests replace them with app.dependency_overrides.
"""

import os
from functools import partial
from typing import Any, Dict, Optional

from fastapi import Depends

from questions.tools.apps_script import AppsScriptClient
from questions.tools.github_store import FormConfigStore, ConversationStore, PLACEHOLDER_SCRIPT_URL
from questions.tools.google_drive import DriveSessionStore
from questions.tools.google_sheets import ResponseCollector


def get_chat_model() -> Optional[Any]:
    """None lets each call build its own ChatOpenAI from the environment"""
    return None


def get_form_store() -> FormConfigStore:
    return FormConfigStore()


def get_conversation_store() -> ConversationStore:
    return ConversationStore()


def get_drive_store() -> DriveSessionStore:
    return DriveSessionStore()


def get_response_collector() -> ResponseCollector:
    return ResponseCollector()


def response_source_for(config: Dict[str, Any], collector: Optional[ResponseCollector] = None):
    """
    Where a form's responses live: its deployed Apps Script when the config
    names one, otherwise the spreadsheet behind /api/collect.
    """
    script_url = config.get("googleScriptUrl") or os.getenv("GOOGLE_SCRIPT_URL")
    if script_url and script_url != PLACEHOLDER_SCRIPT_URL:
        return AppsScriptClient(script_url)
    return collector or ResponseCollector()


def get_response_source_factory(collector=Depends(get_response_collector)):
    return partial(response_source_for, collector=collector)
