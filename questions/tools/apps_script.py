"""
Client for a deployed Google Apps Script response collector.
Form pages post submissions to the script directly; the API only reads
them back with GET ?action=getResponses&formId=<id>, the same contract
as ResponseCollector.
"""

import os
import logging
from typing import Dict, Any, Optional

import requests

from questions.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class AppsScriptClient:
    """Thin requests wrapper around the Apps Script web app"""

    def __init__(self, script_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.script_url = script_url or os.getenv("GOOGLE_SCRIPT_URL")
        if not self.script_url:
            raise ConfigurationError("No Google Script URL found")
        self.http = session or requests.Session()

    def get_responses(self, form_id: str) -> Dict[str, Any]:
        """Fetch {totalResponses, lastResponseAt, responses} for one form"""
        try:
            response = self.http.get(
                self.script_url,
                params={"action": "getResponses", "formId": form_id},
                timeout=DEFAULT_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch responses for {form_id}: {e}")
            raise UpstreamError("Failed to fetch responses from Google Sheets") from e

        return {
            "totalResponses": data.get("totalResponses", 0),
            "lastResponseAt": data.get("lastResponseAt"),
            "responses": data.get("responses", []),
        }
