"""
Error mapping — turns REST failures into user-facing command errors.

Two kinds of failures are distinguished:
  - OData errors returned by Graph or SharePoint, whose message is extracted
  - anything else, which is surfaced as-is
"""

from __future__ import annotations

import json
from typing import Any

from .rest.client import ApiRequestError


class CommandError(Exception):
    """The single error type surfaced to the CLI user."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def _message_from_object(body: dict) -> str | None:
    odata_error = body.get("odata.error")
    if isinstance(odata_error, dict):
        message = odata_error.get("message", {})
        if isinstance(message, dict):
            return message.get("value")
        return str(message)

    error = body.get("error")
    if isinstance(error, dict) and "message" in error:
        return error["message"]

    if "error_description" in body:
        return body["error_description"]

    if isinstance(error, str):
        return extract_error_message(error)

    return None


def extract_error_message(body: Any) -> str:
    """
    Extract the human-readable message from an error response body.

    SharePoint nests it under ``odata.error.message.value``, Graph under
    ``error.message`` and Azure AD under ``error_description``. String bodies
    are parsed as JSON when possible; unrecognised JSON is returned verbatim.
    """
    if isinstance(body, dict):
        message = _message_from_object(body)
        if message is not None:
            return message
        return json.dumps(body)

    if isinstance(body, str):
        try:
            parsed = json.loads(body)
        except ValueError:
            return body
        if isinstance(parsed, dict):
            message = _message_from_object(parsed)
            if message is not None:
                return message
        return body

    if body is None:
        return "Unknown error"
    return str(body)


def to_command_error(exc: BaseException) -> CommandError:
    """Map any exception raised by a command action to a CommandError."""
    if isinstance(exc, CommandError):
        return exc
    if isinstance(exc, ApiRequestError):
        if exc.body in (None, ""):
            return CommandError(str(exc))
        return CommandError(extract_error_message(exc.body))
    # some httpx errors (timeouts) carry no message
    return CommandError(str(exc) or type(exc).__name__)
