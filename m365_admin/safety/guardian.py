"""
Safety Guardian — Gates destructive operations behind an explicit confirmation.
Prompts the user, blocks unconfirmed destructive requests, and logs safety events.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

logger = logging.getLogger("m365_admin.safety")

# ─── Destructive Requests ────────────────────────────────────────────────────

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Write requests that destroy or detach tenant objects
DESTRUCTIVE_URL_PATTERNS = [
    re.compile(r"/uninstall$", re.IGNORECASE),
    re.compile(r"/JoinHubSite\(", re.IGNORECASE),
    re.compile(r"/remove$", re.IGNORECASE),
]

AFFIRMATIVE_ANSWERS = {"y", "yes"}


class SafetyViolation(Exception):
    """Raised when a destructive request is attempted without confirmation."""
    pass


class SafetyGuardian:
    """
    Validates every outbound HTTP request before it is sent.
    Destructive requests pass only after confirm() succeeded; each one is
    kept in an audit list.
    """

    def __init__(self, prompt: Optional[Callable[[str], str]] = None):
        self.prompt = prompt or input
        self.audit: list[dict] = []
        self.checks_performed: int = 0
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def confirm(self, message: str, assume_yes: bool = False) -> bool:
        """
        Ask the user to confirm a destructive operation.
        Returns True (and arms the guardian) when confirmed.
        """
        if assume_yes:
            logger.debug(f"Confirmation skipped (--confirm): {message}")
            self._armed = True
            return True

        try:
            answer = self.prompt(f"{message} [y/N] ")
        except EOFError:
            raise SafetyViolation(
                "Confirmation required but no input is available. "
                "Use --confirm to skip the prompt"
            ) from None
        confirmed = (answer or "").strip().lower() in AFFIRMATIVE_ANSWERS
        if confirmed:
            self._armed = True
        else:
            logger.info("Operation cancelled by user.")
        return confirmed

    @staticmethod
    def is_destructive(method: str, url: str) -> bool:
        method_upper = method.upper()
        if method_upper == "DELETE":
            return True
        if method_upper not in WRITE_METHODS:
            return False
        path = url.split("?", 1)[0]
        return any(pattern.search(path) for pattern in DESTRUCTIVE_URL_PATTERNS)

    def validate_request(self, method: str, url: str) -> bool:
        """
        Validate that a request may be sent.
        Returns True if allowed, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        if not self.is_destructive(method, url):
            return True

        if not self._armed:
            logger.critical(f"SAFETY VIOLATION: unconfirmed destructive request {method.upper()} {url}")
            raise SafetyViolation(
                f"Destructive request requires confirmation: {method.upper()} {url}"
            )

        self.audit.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method.upper(),
            "url": url,
        })
        logger.info(f"Confirmed destructive request: {method.upper()} {url}")
        return True

    def get_audit_record(self) -> dict:
        """Return the destructive-request audit record."""
        return {
            "checks_performed": self.checks_performed,
            "destructive_requests": self.audit,
        }
