# src/xyte_tui/errors.py

"""Typed failures raised by the API client and consumed by the connectivity classifier."""

from __future__ import annotations

from typing import Any


class XyteError(Exception):
    """Base class for every error raised by xyte-tui itself."""

    code = "XYTE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class HttpError(XyteError):
    """Non-2xx response from the Xyte API."""

    code = "XYTE_HTTP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status: int,
        status_text: str = "",
        endpoint_key: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.endpoint_key = endpoint_key
        self.details = details


class AuthError(XyteError):
    """No usable credential for the endpoint being called."""

    code = "XYTE_AUTH_ERROR"


class ValidationError(XyteError):
    """Request could not be built from the supplied arguments."""

    code = "XYTE_VALIDATION_ERROR"


def error_text(error: BaseException | object) -> str:
    """Return the human-readable message of any raised value."""
    if isinstance(error, XyteError):
        return error.message
    if isinstance(error, BaseException):
        text = str(error)
        return text if text else type(error).__name__
    return str(error)
