import os
import gspread
from google.oauth2.service_account import Credentials
from typing import Dict, Any, List, Optional
import logging

from questions.errors import DuplicateSubmissionError
from questions.utils.data_models import FormResponse
from workflow.core.validators import parse_timestamp

logger = logging.getLogger(__name__)

BASE_HEADERS = ["Timestamp", "IP Address", "User Agent"]
IP_COLUMN = 1
DUPLICATE_MESSAGE = "You have already submitted a response."


def header_for_key(key: str) -> str:
    """Column header for an answer key ("q3" -> "Question 3")"""
    return f"Question {key.replace('q', '', 1)}"


def key_for_header(header: str) -> str:
    return "q" + header[len("Question "):]


def format_answer(answer: Any) -> Any:
    """Checkbox lists are stored joined with ", "; blanks become empty cells"""
    if isinstance(answer, list):
        return ", ".join(str(item) for item in answer)
    if answer is None:
        return ""
    return answer


class ResponseCollector:
    """Store form submissions in a spreadsheet, one worksheet per form"""

    def __init__(self, spreadsheet_id: Optional[str] = None, client: Optional[Any] = None):
        self.creds_path = os.getenv('GOOGLE_SHEETS_CREDENTIALS_PATH')
        self.spreadsheet_id = spreadsheet_id or os.getenv('RESPONSES_SPREADSHEET_ID')
        self.client = client
        if self.client is None:
            self._authenticate()

    def _authenticate(self):
        """Authenticate with Google Sheets"""
        try:
            if not self.creds_path or not os.path.exists(self.creds_path):
                logger.warning("Google Sheets credentials not found. Using mock mode.")
                return

            scope = ['https://spreadsheets.google.com/feeds',
                     'https://www.googleapis.com/auth/drive']

            creds = Credentials.from_service_account_file(self.creds_path, scopes=scope)
            self.client = gspread.authorize(creds)
            logger.info("Successfully authenticated with Google Sheets")

        except Exception as e:
            logger.error(f"Failed to authenticate with Google Sheets: {e}")
            self.client = None

    @property
    def mock_mode(self) -> bool:
        return self.client is None

    def _worksheet(self, form_id: str, answers: Optional[Dict[str, Any]] = None, create: bool = False):
        spreadsheet = self.client.open_by_key(self.spreadsheet_id)
        try:
            return spreadsheet.worksheet(form_id)
        except gspread.exceptions.WorksheetNotFound:
            if not create:
                return None

        headers = BASE_HEADERS + [header_for_key(key) for key in sorted(answers or {})]
        sheet = spreadsheet.add_worksheet(title=form_id, rows=1000, cols=max(len(headers), 26))
        sheet.append_row(headers)
        sheet.format("1:1", {
            "textFormat": {"bold": True},
            "backgroundColor": {"red": 0.94, "green": 0.94, "blue": 0.94}
        })
        sheet.freeze(rows=1)
        logger.info(f"Created worksheet '{form_id}' with {len(headers)} columns")
        return sheet

    def _ensure_headers(self, sheet, headers: List[str], answers: Dict[str, Any]) -> List[str]:
        """Append header cells for answer keys this worksheet has not seen yet"""
        missing = [header_for_key(key) for key in sorted(answers) if header_for_key(key) not in headers]
        if not missing:
            return headers

        if len(headers) + len(missing) > sheet.col_count:
            sheet.add_cols(len(headers) + len(missing) - sheet.col_count)
        for offset, header in enumerate(missing):
            sheet.update_cell(1, len(headers) + offset + 1, header)
        logger.info(f"Added {len(missing)} question column(s) to '{sheet.title}'")
        return headers + missing

    def append_submission(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Append one submission row.

        Args:
            payload: {question_id, form_title, timestamp, ip, user_agent, answers, enforceUnique}

        Returns:
            {"status": "success", "mode": "live"|"mock"} or {"status": "error", "error": ...}

        Raises:
            DuplicateSubmissionError: when the form enforces unique responses and this IP already answered
        """
        form_id = payload.get("question_id")
        answers = payload.get("answers") or {}

        if self.mock_mode:
            logger.info(f"Mock mode: Would log submission for form: {form_id}")
            logger.info(f"  Answers: {len(answers)}")
            return {"status": "success", "mode": "mock"}

        try:
            sheet = self._worksheet(form_id, answers, create=True)
            rows = sheet.get_all_values()
            headers = rows[0] if rows else list(BASE_HEADERS)

            if payload.get("enforceUnique"):
                ip = payload.get("ip")
                if any(len(row) > IP_COLUMN and row[IP_COLUMN] == ip for row in rows[1:]):
                    logger.info(f"Rejected repeat submission for form {form_id}")
                    raise DuplicateSubmissionError(DUPLICATE_MESSAGE, metadata={"form_id": form_id})

            headers = self._ensure_headers(sheet, headers, answers)
            row = [payload.get("timestamp"), payload.get("ip", ""), payload.get("user_agent", "")]
            for header in headers[len(BASE_HEADERS):]:
                row.append(format_answer(answers.get(key_for_header(header), "")))

            sheet.append_row(row, value_input_option="RAW")
            return {"status": "success", "mode": "live"}

        except DuplicateSubmissionError:
            raise
        except Exception as e:
            logger.error(f"Failed to log submission: {e}")
            return {"status": "error", "error": str(e)}

    def get_responses(self, form_id: str) -> Dict[str, Any]:
        """
        Read back a form's submissions.

        Returns:
            {totalResponses, lastResponseAt, responses}; a form without a worksheet has zero responses
        """
        empty = {"totalResponses": 0, "lastResponseAt": None, "responses": []}
        if self.mock_mode:
            logger.info(f"Mock mode: No responses stored for form: {form_id}")
            return empty

        sheet = self._worksheet(form_id)
        if sheet is None:
            logger.info(f"No worksheet for form {form_id} yet")
            return empty

        rows = sheet.get_all_values()
        if len(rows) <= 1:
            return empty

        headers = rows[0]
        responses = []
        for row in rows[1:]:
            answers = {}
            for index, header in enumerate(headers[len(BASE_HEADERS):], start=len(BASE_HEADERS)):
                if index < len(row) and row[index] != "":
                    answers[key_for_header(header)] = row[index]
            responses.append(FormResponse(
                timestamp=row[0] if row else None,
                ip=row[1] if len(row) > 1 else None,
                userAgent=row[2] if len(row) > 2 else None,
                answers=answers,
            ).model_dump())

        timestamps = [parse_timestamp(r["timestamp"]) for r in responses]
        timestamps = [t for t in timestamps if t is not None]
        last_response_at = max(timestamps).isoformat().replace("+00:00", "Z") if timestamps else None

        return {
            "totalResponses": len(responses),
            "lastResponseAt": last_response_at,
            "responses": responses,
        }
