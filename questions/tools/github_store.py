"""
Form configs and execution conversations stored as files in a GitHub repo.
Forms live under docs/question/<id>/ (config.json + index.html) and are
served by GitHub Pages; conversations under docs/conversations/<sessionId>.json.
There is no locking: two concurrent edits of one form race and the last
commit wins.
"""

import base64
import json
import os
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

import requests

from questions.errors import ConfigurationError, NotFoundError, UpstreamError, ValidationError
from questions.utils.data_models import ConversationInfo, FormConfig, FormSummary, new_form_id
from workflow.core.skip_logic import sanitize_skip_logic
from workflow.core.validators import parse_expiration, is_expired, normalize_title, to_iso

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
FORMS_PATH = "docs/question"
CONVERSATIONS_PATH = "docs/conversations"
DEFAULT_TIMEOUT = 30
PLACEHOLDER_SCRIPT_URL = "https://script.google.com/macros/s/YOUR_DEPLOYED_SCRIPT_ID/exec"


class GitHubClient:
    """Minimal GitHub REST client for one repository branch"""

    def __init__(
        self,
        token: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        self.token = token or os.getenv("GITHUB_TOKEN")
        if not self.token:
            raise ConfigurationError("GitHub token not configured")

        self.repo = repo or os.getenv("GITHUB_REPO", "")
        if "/" not in self.repo:
            raise ConfigurationError("GITHUB_REPO must look like owner/repo")
        self.owner, self.name = self.repo.split("/", 1)
        self.branch = branch or os.getenv("GITHUB_BRANCH", "main")

        self.http = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{GITHUB_API}/repos/{self.repo}/{path}"
        try:
            response = self.http.request(method, url, headers=self.headers, timeout=DEFAULT_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            logger.error(f"GitHub request failed: {method} {path}: {e}")
            raise UpstreamError("GitHub API error") from e

        if response.status_code == 404:
            raise NotFoundError(f"Not found on GitHub: {path}")
        if response.status_code >= 400:
            logger.error(f"GitHub API error {response.status_code} on {method} {path}: {response.text[:200]}")
            raise UpstreamError("GitHub API error", metadata={"status": response.status_code, "path": path})
        return response.json() if response.content else {}

    def head_commit(self) -> Tuple[str, str]:
        """Latest commit sha and its tree sha on the branch"""
        ref = self._request("GET", f"git/ref/heads/{self.branch}")
        commit_sha = ref["object"]["sha"]
        commit = self._request("GET", f"git/commits/{commit_sha}")
        return commit_sha, commit["tree"]["sha"]

    def list_tree(self) -> List[Dict[str, Any]]:
        _, tree_sha = self.head_commit()
        tree = self._request("GET", f"git/trees/{tree_sha}", params={"recursive": "true"})
        return tree.get("tree", [])

    def commit_files(self, files: Dict[str, str], message: str) -> str:
        """
        Commit several files at once on top of the branch head.

        Args:
            files: Repository path -> UTF-8 content
            message: Commit message

        Returns:
            The new commit sha
        """
        parent_sha, base_tree = self.head_commit()

        tree = []
        for path, content in files.items():
            blob = self._request("POST", "git/blobs", json={"content": content, "encoding": "utf-8"})
            tree.append({"path": path, "mode": "100644", "type": "blob", "sha": blob["sha"]})

        new_tree = self._request("POST", "git/trees", json={"base_tree": base_tree, "tree": tree})
        commit = self._request("POST", "git/commits", json={
            "message": message,
            "tree": new_tree["sha"],
            "parents": [parent_sha],
        })
        self._request("PATCH", f"git/refs/heads/{self.branch}", json={"sha": commit["sha"]})
        logger.info(f"Committed {len(files)} file(s) to {self.repo}@{self.branch}: {message}")
        return commit["sha"]

    def read_text(self, path: str) -> Tuple[str, str]:
        """Read a file through the contents API; returns (text, blob sha)"""
        data = self._request("GET", f"contents/{path}", params={"ref": self.branch})
        if not isinstance(data, dict) or "content" not in data:
            raise NotFoundError(f"Not a file: {path}")
        return base64.b64decode(data["content"]).decode("utf-8"), data.get("sha")

    def read_json(self, path: str) -> Tuple[Dict[str, Any], str]:
        content, sha = self.read_text(path)
        return json.loads(content), sha

    def put_file(self, path: str, content: str, message: str, sha: Optional[str] = None) -> Dict[str, Any]:
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha
        return self._request("PUT", f"contents/{path}", json=body)

    def commit_dates(self, path: str) -> Tuple[Optional[str], Optional[str]]:
        """(created_at, updated_at) from the file's commit history"""
        commits = self._request("GET", "commits", params={"path": path, "sha": self.branch, "per_page": 100})
        if not commits:
            return None, None
        created_at = commits[-1].get("commit", {}).get("author", {}).get("date")
        updated_at = commits[0].get("commit", {}).get("author", {}).get("date")
        return created_at, updated_at


def build_form_config(form_id: str, body: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Config as committed from a create/update request body"""
    form = FormConfig(
        id=form_id,
        title=(body.get("title") or "").strip(),
        description=body.get("description"),
        expires_at=parse_expiration(body.get("expiration"), now=now),
        enforceUnique=bool(body.get("enforceUnique", False)),
        questions=sanitize_skip_logic(body.get("questions") or []),
        googleScriptUrl=os.getenv("GOOGLE_SCRIPT_URL") or PLACEHOLDER_SCRIPT_URL,
    )
    config = form.model_dump()
    config["questions"] = [question.model_dump(exclude_none=True) for question in form.questions]
    return config


class FormConfigStore:
    """CRUD for form configs committed to the repository"""

    def __init__(self, client: Optional[GitHubClient] = None):
        self.client = client or GitHubClient()

    def form_url(self, form_id: str) -> str:
        base_url = os.getenv("PUBLIC_BASE_URL")
        if base_url:
            return f"{base_url.rstrip('/')}/api/forms/{form_id}"
        return f"https://{self.client.owner}.github.io/{self.client.name}/question/{form_id}/"

    def _config_path(self, form_id: str) -> str:
        return f"{FORMS_PATH}/{form_id}/config.json"

    def create_form(self, body: Dict[str, Any], template_html: str) -> Dict[str, Any]:
        """
        Commit a new form (config.json + index.html) in a single commit.

        Returns:
            {link, formId, config}
        """
        form_id = new_form_id()
        config = build_form_config(form_id, body)
        logger.info(f"Creating form with ID: {form_id}")

        self.client.commit_files({
            self._config_path(form_id): json.dumps(config, indent=2),
            f"{FORMS_PATH}/{form_id}/index.html": template_html,
        }, f"Add feedback form {form_id}")

        return {"link": self.form_url(form_id), "formId": form_id, "config": config}

    def read_form(self, form_id: str) -> Dict[str, Any]:
        try:
            config, _ = self.client.read_json(self._config_path(form_id))
        except NotFoundError:
            raise NotFoundError("Form not found", metadata={"form_id": form_id})
        return config

    def read_template(self, form_id: str) -> str:
        """The index.html committed with the form"""
        try:
            html, _ = self.client.read_text(f"{FORMS_PATH}/{form_id}/index.html")
        except NotFoundError:
            raise NotFoundError("Form template not found", metadata={"form_id": form_id})
        return html

    def update_form(self, form_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a form's config; the stored index.html is left alone"""
        self.read_form(form_id)
        config = build_form_config(form_id, body)
        self.client.commit_files(
            {self._config_path(form_id): json.dumps(config, indent=2)},
            f"Update form {form_id}"
        )
        return config

    def set_form_status(self, form_id: str, action: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Disable a form by expiring it now, or enable it by removing the expiration.

        Returns:
            {success, status}
        """
        if action not in ("disable", "enable"):
            raise ValidationError("Action must be 'disable' or 'enable'")

        config = self.read_form(form_id)
        if action == "disable":
            config["expires_at"] = to_iso(now or datetime.now(timezone.utc))
        else:
            config.pop("expires_at", None)

        self.client.commit_files(
            {self._config_path(form_id): json.dumps(config, indent=2)},
            f"{'Disable' if action == 'disable' else 'Enable'} form {form_id}"
        )
        return {"success": True, "status": "disabled" if action == "disable" else "active"}

    def _form_ids(self) -> List[str]:
        prefix = FORMS_PATH + "/"
        return [
            item["path"][len(prefix):]
            for item in self.client.list_tree()
            if item.get("type") == "tree"
            and item.get("path", "").startswith(prefix)
            and "/" not in item["path"][len(prefix):]
        ]

    def list_forms(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Every form with status and commit dates, newest first"""
        forms = []
        for form_id in self._form_ids():
            try:
                config = self.read_form(form_id)
                created_at, updated_at = self.client.commit_dates(self._config_path(form_id))
                expired = is_expired(config.get("expires_at"), now=now)
                forms.append(FormSummary(
                    id=form_id,
                    title=config.get("title") or "Untitled Form",
                    description=config.get("description"),
                    created_at=created_at,
                    updated_at=updated_at,
                    expires_at=config.get("expires_at"),
                    status="disabled" if expired else "active",
                    isExpired=expired,
                    url=self.form_url(form_id),
                ).model_dump())
            except (NotFoundError, UpstreamError, ValueError) as e:
                logger.error(f"Error fetching config for form {form_id}: {e}")
                forms.append(FormSummary(
                    id=form_id,
                    title="Unknown Form",
                    url=self.form_url(form_id),
                ).model_dump(exclude_none=True))

        dated = sorted((f for f in forms if f.get("created_at")), key=lambda f: f["created_at"], reverse=True)
        undated = [f for f in forms if not f.get("created_at")]
        logger.info(f"Listed {len(forms)} forms")
        return dated + undated

    def find_duplicate_title(self, title: str, exclude_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Compare a title against every stored form, ignoring case and punctuation.

        Returns:
            {isDuplicate, existingTitle?, message}
        """
        wanted = normalize_title(title)
        for form_id in self._form_ids():
            if exclude_id and form_id == exclude_id:
                continue
            try:
                config = self.read_form(form_id)
            except (NotFoundError, UpstreamError, ValueError) as e:
                logger.error(f"Error checking title for form {form_id}: {e}")
                continue

            existing_title = config.get("title") or "Untitled Form"
            if normalize_title(existing_title) == wanted:
                return {
                    "isDuplicate": True,
                    "existingTitle": existing_title,
                    "message": f'A form with the title "{existing_title}" already exists.',
                }

        return {"isDuplicate": False, "message": "Title is available."}


class ConversationStore:
    """Execution conversations as one JSON file per session"""

    def __init__(self, client: Optional[GitHubClient] = None):
        self.client = client or GitHubClient()

    def _path(self, session_id: str) -> str:
        return f"{CONVERSATIONS_PATH}/{session_id}.json"

    def save(self, conversation: Dict[str, Any]) -> Dict[str, Any]:
        """Create or update the conversation file"""
        session_id = conversation["sessionId"]
        path = self._path(session_id)

        try:
            _, existing_sha = self.client.read_json(path)
        except NotFoundError:
            existing_sha = None

        result = self.client.put_file(
            path,
            json.dumps(conversation, indent=2),
            f"Update conversation for session {session_id}",
            sha=existing_sha
        )
        logger.info(f"Saved conversation {session_id} ({len(conversation.get('messages', []))} messages)")
        return {
            "success": True,
            "sessionId": session_id,
            "fileSha": (result.get("content") or {}).get("sha"),
            "message": "Conversation saved successfully",
        }

    def get(self, session_id: str) -> Dict[str, Any]:
        try:
            conversation, _ = self.client.read_json(self._path(session_id))
        except NotFoundError:
            raise NotFoundError("Conversation not found", metadata={"session_id": session_id})
        return conversation

    def list(self) -> List[Dict[str, Any]]:
        """Conversation summaries, most recently updated first"""
        prefix = CONVERSATIONS_PATH + "/"
        paths = [
            item["path"] for item in self.client.list_tree()
            if item.get("type") == "blob"
            and item.get("path", "").startswith(prefix)
            and item["path"].endswith(".json")
        ]

        conversations = []
        for path in paths:
            try:
                conversation, _ = self.client.read_json(path)
            except (NotFoundError, UpstreamError, ValueError) as e:
                logger.error(f"Error reading conversation file {path}: {e}")
                continue
            conversations.append(ConversationInfo(
                sessionId=conversation.get("sessionId") or path[len(prefix):-len(".json")],
                goal=conversation.get("goal") or "",
                createdAt=conversation.get("createdAt"),
                updatedAt=conversation.get("updatedAt"),
                messageCount=len(conversation.get("messages") or []),
            ).model_dump())

        conversations.sort(key=lambda c: c.get("updatedAt") or "", reverse=True)
        return conversations
