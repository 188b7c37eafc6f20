import os
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
DEFAULT_TIMEOUT = 15


def send_message(text: str, chat_id: Optional[str] = None, session: Optional[requests.Session] = None) -> bool:
    """
    Send an HTML-formatted message through the bot.

    Returns:
        True on success; False when the bot is not configured or the API rejects the call
    """
    bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    if not bot_token:
        logger.error("Telegram bot token not configured")
        return False

    target_chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID")
    if not target_chat_id:
        logger.error("Telegram chat ID not configured")
        return False

    http = session or requests
    try:
        response = http.post(
            f"{TELEGRAM_API}/bot{bot_token}/sendMessage",
            json={"chat_id": target_chat_id, "text": text, "parse_mode": "HTML"},
            timeout=DEFAULT_TIMEOUT
        )
    except requests.RequestException as e:
        logger.error(f"Error sending Telegram message: {e}")
        return False

    if not response.ok:
        logger.error(f"Telegram API error {response.status_code}: {response.text[:200]}")
        return False

    logger.info(f"Sent Telegram message to chat {target_chat_id}")
    return True


def session_link(session_id: str) -> str:
    base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
    return f"{base_url}/20q/session/{session_id}"


def send_session_reminder(
    goal: str,
    session_id: str,
    message: Optional[str] = None,
    session: Optional[requests.Session] = None
) -> bool:
    """Reminder pointing back at an unfinished 20 Questions session"""
    text = message or (
        "🤔 20 Questions Reminder\n\n"
        f"Goal: {goal}\n\n"
        f"Ready to continue your session? {session_link(session_id)}"
    )
    return send_message(text, session=session)
