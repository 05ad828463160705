# notifier.py
from __future__ import annotations
import logging
import time
from typing import Iterable, List, Protocol

import requests

from config import Settings

logger = logging.getLogger(__name__)

STATUS_API_URL = "https://slack.com/api/users.profile.set"


class StatusNotifier(Protocol):
    def set_status(self, text: str, icon: str, ttl_seconds: int) -> None: ...

    def clear_status(self) -> None: ...


class NullNotifier:
    """Used when no Slack token is configured."""
    def set_status(self, text: str, icon: str, ttl_seconds: int) -> None:
        logger.debug("No status notifier configured; skipping %r", text)

    def clear_status(self) -> None:
        logger.debug("No status notifier configured; skipping clear")


class SlackStatusNotifier:
    """
    Sets the profile status on every configured Slack workspace.
    Errors are logged per workspace and never raised.
    """
    def __init__(self, tokens: Iterable[str], timeout: float = 5.0):
        self.tokens: List[str] = list(tokens)
        self.timeout = timeout

    def set_status(self, text: str, icon: str, ttl_seconds: int) -> None:
        self._update(text, icon, int(time.time()) + int(ttl_seconds))

    def clear_status(self) -> None:
        self._update("", "", 0)

    def _update(self, text: str, emoji: str, expiration: int) -> None:
        payload = {
            "profile": {
                "status_text": text,
                "status_emoji": emoji,
                "status_expiration": expiration,
            }
        }
        for idx, token in enumerate(self.tokens, start=1):
            try:
                resp = requests.post(
                    STATUS_API_URL,
                    headers={"Authorization": f"Bearer {token}"},
                    json=payload,
                    timeout=self.timeout,
                )
                resp.raise_for_status()
                body = resp.json()
            except requests.exceptions.RequestException as e:
                logger.warning("Failed to update Slack status for workspace #%d: %s", idx, e)
                continue
            except ValueError:
                logger.warning("Slack returned a non-JSON response for workspace #%d", idx)
                continue
            if body.get("ok"):
                logger.info("Slack status updated for workspace #%d", idx)
            else:
                logger.warning("Failed to update Slack status for workspace #%d: %s",
                               idx, body.get("error", "unknown error"))


def build_notifier(settings: Settings) -> StatusNotifier:
    if settings.slack_tokens:
        return SlackStatusNotifier(settings.slack_tokens, timeout=settings.slack_timeout)
    return NullNotifier()
