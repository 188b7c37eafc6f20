"""
Logging setup shared by the API server and the CLI runner.
"""

import json
import logging
import os
from typing import Optional


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for extra_key in ("path", "method", "status_code", "form_id", "session_id", "error_type"):
            if hasattr(record, extra_key):
                data[extra_key] = getattr(record, extra_key)
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> logging.Logger:
    """
    Configure the root logger once for the process.

    Args:
        level: Log level name, defaults to LOG_LEVEL or INFO
        json_output: Emit one JSON object per line, defaults to LOG_JSON

    Returns:
        The application logger
    """
    resolved_level = level or os.getenv("LOG_LEVEL") or "INFO"
    if json_output is None:
        json_output = os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(getattr(logging, str(resolved_level).upper(), logging.INFO))
    root.addHandler(handler)

    # Google and HTTP client libraries are chatty at INFO
    for noisy in ("googleapiclient.discovery_cache", "urllib3", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger("questions")
