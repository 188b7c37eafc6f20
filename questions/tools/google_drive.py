import io
import os
import json
import logging
from typing import Dict, Any, Optional

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from questions.errors import ConfigurationError
from workflow.core.formatters import format_session_summary_text
from workflow.core.session_logic import determine_account_context

logger = logging.getLogger(__name__)

ACCOUNT_CONTEXTS = ("personal", "work")
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]


def get_account_config(context: str) -> Dict[str, str]:
    """Service-account settings for one account context, read from env"""
    suffix = context.upper()
    config = {
        "service_account_email": os.getenv(f"GOOGLE_SERVICE_ACCOUNT_EMAIL_{suffix}", ""),
        "private_key": os.getenv(f"GOOGLE_PRIVATE_KEY_{suffix}", "").replace("\\n", "\n"),
        "drive_folder_id": os.getenv(f"GOOGLE_DRIVE_FOLDER_ID_{suffix}", ""),
        "calendar_id": os.getenv(f"GOOGLE_CALENDAR_ID_{suffix}", ""),
        "account_type": context,
    }
    if not config["service_account_email"] or not config["private_key"]:
        raise ConfigurationError(f"Google service account for '{context}' not configured")
    return config


def get_credentials(account_config: Dict[str, str], scopes) -> Credentials:
    return Credentials.from_service_account_info({
        "type": "service_account",
        "client_email": account_config["service_account_email"],
        "private_key": account_config["private_key"],
        "token_uri": "https://oauth2.googleapis.com/token",
    }, scopes=scopes)


class DriveSessionStore:
    """20 Questions sessions as JSON files in a per-account Drive folder"""

    def __init__(self, service_factory=None):
        self._service_factory = service_factory or self._build_service

    @staticmethod
    def _build_service(account_config: Dict[str, str]):
        credentials = get_credentials(account_config, DRIVE_SCOPES)
        return build("drive", "v3", credentials=credentials, cache_discovery=False)

    def _create_file(self, service, name: str, folder_id: str, content: str, mime_type: str) -> str:
        media = MediaIoBaseUpload(io.BytesIO(content.encode("utf-8")), mimetype=mime_type)
        created = service.files().create(
            body={"name": name, "parents": [folder_id], "mimeType": mime_type},
            media_body=media,
            fields="id"
        ).execute()
        return created.get("id")

    def write_session(self, session: Dict[str, Any]) -> bool:
        """
        Write the session JSON and, once summarized, a plain-text summary.

        Returns:
            True when the files were created, False on any Drive or config failure
        """
        try:
            account_context = session.get("accountContext") or determine_account_context(session)
            account_config = get_account_config(account_context)
            service = self._service_factory(account_config)
            folder_id = account_config["drive_folder_id"]

            stored = dict(session)
            stored["accountContext"] = account_context
            self._create_file(
                service,
                f"20q-session-{session['id']}.json",
                folder_id,
                json.dumps(stored, indent=2),
                "application/json"
            )

            if session.get("finalSummary"):
                self._create_file(
                    service,
                    f"20q-session-{session['id']}-summary.txt",
                    folder_id,
                    format_session_summary_text(session, account_context),
                    "text/plain"
                )

            logger.info(f"Wrote session {session['id']} to Drive ({account_context} account)")
            return True

        except Exception as e:
            logger.error(f"Error writing session to Google Drive: {e}")
            return False

    def read_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Look for the session file in the personal account, then the work account"""
        for account_context in ACCOUNT_CONTEXTS:
            try:
                account_config = get_account_config(account_context)
                service = self._service_factory(account_config)
                found = service.files().list(
                    q=f"'{account_config['drive_folder_id']}' in parents and name = '20q-session-{session_id}.json'",
                    fields="files(id, name)"
                ).execute()

                files = found.get("files") or []
                if files:
                    content = service.files().get_media(fileId=files[0]["id"]).execute()
                    if isinstance(content, bytes):
                        content = content.decode("utf-8")
                    logger.info(f"Found session {session_id} in {account_context} Drive")
                    return json.loads(content)

            except Exception as e:
                logger.error(f"Error reading session from {account_context} account: {e}")
                continue

        return None
