import gspread
import pytest

from questions.errors import DuplicateSubmissionError
from questions.tools.google_sheets import ResponseCollector, format_answer, header_for_key


class FakeWorksheet:
    def __init__(self, title, cols):
        self.title = title
        self.col_count = cols
        self.rows = []

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(cell) for cell in row])

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def format(self, cell_range, fmt):
        pass

    def freeze(self, rows=None):
        pass

    def add_cols(self, count):
        self.col_count += count

    def update_cell(self, row, col, value):
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = value


class FakeSpreadsheet:
    def __init__(self):
        self.sheets = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.exceptions.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.sheets[title] = FakeWorksheet(title, cols)
        return self.sheets[title]


class FakeClient:
    def __init__(self):
        self.spreadsheet = FakeSpreadsheet()

    def open_by_key(self, key):
        return self.spreadsheet


def submission(answers, ip="1.1.1.1", enforce=False, timestamp="2024-01-01T00:00:00Z"):
    return {
        "question_id": "form1",
        "form_title": "Feedback",
        "timestamp": timestamp,
        "ip": ip,
        "user_agent": "pytest",
        "answers": answers,
        "enforceUnique": enforce,
    }


@pytest.fixture
def collector():
    return ResponseCollector(spreadsheet_id="sheet", client=FakeClient())


def test_helpers():
    assert header_for_key("q12") == "Question 12"
    assert format_answer(["A", "B"]) == "A, B"
    assert format_answer(None) == ""


def test_mock_mode_without_credentials():
    collector = ResponseCollector()
    assert collector.mock_mode
    assert collector.append_submission(submission({"q1": "Yes"})) == {"status": "success", "mode": "mock"}
    assert collector.get_responses("form1")["totalResponses"] == 0


def test_first_submission_creates_sheet_with_headers(collector):
    result = collector.append_submission(submission({"q1": "Yes", "q2": ["A", "B"]}))

    sheet = collector.client.spreadsheet.sheets["form1"]
    assert result == {"status": "success", "mode": "live"}
    assert sheet.rows[0] == ["Timestamp", "IP Address", "User Agent", "Question 1", "Question 2"]
    assert sheet.rows[1] == ["2024-01-01T00:00:00Z", "1.1.1.1", "pytest", "Yes", "A, B"]


def test_rows_align_with_headers_when_questions_are_skipped(collector):
    collector.append_submission(submission({"q1": "No", "q3": "Too loud"}))
    collector.append_submission(submission({"q1": "Yes", "q2": ["C"]}, ip="2.2.2.2"))

    sheet = collector.client.spreadsheet.sheets["form1"]
    assert sheet.rows[0] == ["Timestamp", "IP Address", "User Agent", "Question 1", "Question 3", "Question 2"]
    assert sheet.rows[2][3:] == ["Yes", "", "C"]


def test_enforce_unique_rejects_same_ip(collector):
    collector.append_submission(submission({"q1": "Yes"}, enforce=True))

    with pytest.raises(DuplicateSubmissionError, match="already submitted"):
        collector.append_submission(submission({"q1": "No"}, enforce=True))

    collector.append_submission(submission({"q1": "No"}, ip="9.9.9.9", enforce=True))
    assert len(collector.client.spreadsheet.sheets["form1"].rows) == 3


def test_get_responses_reads_back_answers(collector):
    collector.append_submission(submission({"q1": "Yes"}, timestamp="2024-01-01T00:00:00Z"))
    collector.append_submission(submission({"q1": "No", "q2": ["A"]}, timestamp="2024-01-05T00:00:00Z"))

    data = collector.get_responses("form1")

    assert data["totalResponses"] == 2
    assert data["lastResponseAt"] == "2024-01-05T00:00:00Z"
    assert data["responses"][0]["answers"] == {"q1": "Yes"}
    assert data["responses"][1]["answers"] == {"q1": "No", "q2": "A"}


def test_unknown_form_has_no_responses(collector):
    assert collector.get_responses("other") == {"totalResponses": 0, "lastResponseAt": None, "responses": []}
