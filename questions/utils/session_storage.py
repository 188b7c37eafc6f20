"""
Session persistence: Google Drive first, then a local JSON file.
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from questions.errors import NotFoundError, StorageError, ValidationError
from questions.tools.google_drive import DriveSessionStore
from questions.utils.data_models import utc_now_iso
from workflow.core.session_logic import determine_account_context
from workflow.core.validators import validate_session

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = ".sessions"


def _storage_dir() -> Path:
    return Path(os.getenv("SESSION_STORAGE_DIR", DEFAULT_STORAGE_DIR))


def _local_path(session_id: str) -> Path:
    safe_id = "".join(ch for ch in session_id if ch.isalnum() or ch in "-_")
    return _storage_dir() / f"20q-session-{safe_id}.json"


def save_local(session: Dict[str, Any]) -> Path:
    path = _local_path(session["id"])
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(session, indent=2), encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to save session locally: {e}", metadata={"session_id": session["id"]})
    return path


def load_local(session_id: str) -> Optional[Dict[str, Any]]:
    path = _local_path(session_id)
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _drive_store(drive_store=None):
    if drive_store is not None:
        return drive_store
    return DriveSessionStore()


def save_session(session: Dict[str, Any], drive_store=None) -> Dict[str, Any]:
    """
    Persist a session, preferring Drive and falling back to local disk.

    Args:
        session: Client-held session dict
        drive_store: Object with write_session/read_session (defaults to DriveSessionStore)

    Returns:
        {"success", "sessionId", "storage": "drive"|"local"}

    Raises:
        ValidationError: malformed session
        StorageError: both backends failed
    """
    is_valid, errors = validate_session(session)
    if not is_valid:
        logger.error(f"Invalid session data: {errors}")
        raise ValidationError("Invalid session data", metadata={"errors": errors})

    stored = dict(session)
    stored["savedAt"] = utc_now_iso()
    stored["accountContext"] = stored.get("accountContext") or determine_account_context(stored)

    logger.info(f"Saving session {stored['id']} ({stored.get('status')}, {len(stored['turns'])} turns)")

    if _drive_store(drive_store).write_session(stored):
        return {"success": True, "sessionId": stored["id"], "storage": "drive"}

    logger.warning(f"Drive save failed for session {stored['id']}, writing local file")
    path = save_local(stored)
    logger.info(f"Session {stored['id']} saved to {path}")
    return {"success": True, "sessionId": stored["id"], "storage": "local"}


def load_session(session_id: str, drive_store=None) -> Dict[str, Any]:
    """
    Read a session from Drive, then from local disk.

    Raises:
        NotFoundError: neither backend has it
    """
    if not session_id:
        raise ValidationError("Session ID is required")

    session = _drive_store(drive_store).read_session(session_id)
    if session is None:
        session = load_local(session_id)
    if session is None:
        raise NotFoundError("Session not found", metadata={"session_id": session_id})
    return session
