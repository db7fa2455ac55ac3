# src/xyte_tui/connectivity.py

"""Classify failed remote calls into connection states.

Every failure raised by the API client (or by the network underneath it) is
mapped to one of a fixed set of ConnectionStates plus a retriable flag. The
states are severity-ordered so several concurrent outcomes can be collapsed
into the worst one.
"""

from __future__ import annotations

import errno
import re
import socket
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from xyte_tui.errors import AuthError, HttpError, ValidationError, error_text

if TYPE_CHECKING:
    from xyte_tui.client import XyteClient


class ErrorClass(Enum):
    """Coarse failure category; decides whether a retry makes sense."""

    AUTH = "auth"
    MISSING_KEY = "missing_key"
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ConnectionState(Enum):
    """User-visible connection state of a load or probe."""

    CONNECTED = "connected"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    AUTH_REQUIRED = "auth_required"
    MISSING_KEY = "missing_key"
    UNKNOWN_ERROR = "unknown_error"
    NOT_CHECKED = "not_checked"

    @property
    def severity(self) -> int:
        """Position in the fixed severity order (higher is worse)."""
        return _SEVERITY[self]


_SEVERITY = {
    ConnectionState.CONNECTED: 0,
    ConnectionState.RATE_LIMITED: 1,
    ConnectionState.NETWORK_ERROR: 2,
    ConnectionState.TIMEOUT: 3,
    ConnectionState.AUTH_REQUIRED: 4,
    ConnectionState.MISSING_KEY: 5,
    ConnectionState.UNKNOWN_ERROR: 6,
    ConnectionState.NOT_CHECKED: 7,
}

_CLASS_TO_STATE = {
    ErrorClass.AUTH: ConnectionState.AUTH_REQUIRED,
    ErrorClass.MISSING_KEY: ConnectionState.MISSING_KEY,
    ErrorClass.NETWORK: ConnectionState.NETWORK_ERROR,
    ErrorClass.TIMEOUT: ConnectionState.TIMEOUT,
    ErrorClass.RATE_LIMIT: ConnectionState.RATE_LIMITED,
    ErrorClass.VALIDATION: ConnectionState.UNKNOWN_ERROR,
    ErrorClass.UNKNOWN: ConnectionState.UNKNOWN_ERROR,
}

_MISSING_KEY_RE = re.compile(r"missing api key|requires .*api key|no active .*key", re.IGNORECASE)

_NETWORK_ERRNOS = {errno.ECONNREFUSED, errno.ECONNRESET, errno.EHOSTUNREACH, errno.ENETUNREACH}
_NETWORK_GAI_ERRNOS = {socket.EAI_NONAME, socket.EAI_AGAIN}


@dataclass(frozen=True)
class ConnectivityResult:
    """Classified outcome of a remote call."""

    state: ConnectionState
    message: str
    retriable: bool
    error_class: ErrorClass | None = None
    endpoint_key: str | None = None
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for headless frames, omitting absent fields."""
        data: dict[str, Any] = {"state": self.state.value}
        if self.error_class is not None:
            data["class"] = self.error_class.value
        data["message"] = self.message
        data["retriable"] = self.retriable
        if self.endpoint_key is not None:
            data["endpointKey"] = self.endpoint_key
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        return data


def not_checked() -> ConnectivityResult:
    """Placeholder result for when no probe was run."""
    return ConnectivityResult(
        state=ConnectionState.NOT_CHECKED,
        message="Connectivity not checked.",
        retriable=False,
    )


def is_missing_key_message(message: str) -> bool:
    """Return True if an error message says a credential is absent."""
    return bool(_MISSING_KEY_RE.search(message))


def is_retriable_class(error_class: ErrorClass) -> bool:
    """Auth, missing-key and validation failures never fix themselves."""
    return error_class not in (ErrorClass.AUTH, ErrorClass.MISSING_KEY, ErrorClass.VALIDATION)


def _result(error_class: ErrorClass, message: str, **extra: Any) -> ConnectivityResult:
    return ConnectivityResult(
        state=_CLASS_TO_STATE[error_class],
        error_class=error_class,
        message=message,
        retriable=is_retriable_class(error_class),
        **extra,
    )


def _classify_http(error: HttpError) -> ConnectivityResult:
    status = error.status
    if status in (401, 403):
        error_class = ErrorClass.AUTH
    elif status == 429:
        error_class = ErrorClass.RATE_LIMIT
    elif status == 408:
        error_class = ErrorClass.TIMEOUT
    elif status >= 500:
        error_class = ErrorClass.NETWORK
    elif is_missing_key_message(error.message):
        error_class = ErrorClass.MISSING_KEY
    else:
        error_class = ErrorClass.UNKNOWN
    return _result(error_class, error.message, endpoint_key=error.endpoint_key, status_code=status)


def _classify_os_error(error: OSError) -> ErrorClass | None:
    if isinstance(error, socket.gaierror):
        return ErrorClass.NETWORK if error.errno in _NETWORK_GAI_ERRNOS else None
    if error.errno == errno.ETIMEDOUT:
        return ErrorClass.TIMEOUT
    if error.errno in _NETWORK_ERRNOS:
        return ErrorClass.NETWORK
    return None


def classify_error(error: BaseException) -> ConnectivityResult:
    """Map a raised failure to a connection state and retriable flag.

    Args:
        error: Anything raised by an API call

    Returns:
        ConnectivityResult; unknown failures are UNKNOWN_ERROR and retriable
    """
    message = error_text(error)

    if isinstance(error, AuthError):
        error_class = ErrorClass.MISSING_KEY if is_missing_key_message(message) else ErrorClass.AUTH
        return _result(error_class, message)

    if isinstance(error, HttpError):
        return _classify_http(error)

    if isinstance(error, ValidationError):
        return _result(ErrorClass.VALIDATION, message)

    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return _result(ErrorClass.TIMEOUT, message or "Request timed out.")

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return _result(ErrorClass.NETWORK, message or "Network error.")

    if isinstance(error, OSError):
        error_class = _classify_os_error(error)
        if error_class is not None:
            return _result(error_class, message)

    if is_missing_key_message(message):
        return _result(ErrorClass.MISSING_KEY, message)

    return ConnectivityResult(
        state=ConnectionState.UNKNOWN_ERROR,
        error_class=ErrorClass.UNKNOWN,
        message=message,
        retriable=True,
    )


def prefer_failure(a: ConnectivityResult, b: ConnectivityResult) -> ConnectivityResult:
    """Return the more severe of two results (the first wins ties)."""
    return a if a.state.severity >= b.state.severity else b


async def probe_connectivity(client: XyteClient, tenant_id: str | None) -> ConnectivityResult:
    """Check that the tenant can reach the API with its active credentials.

    Tries the organization scope first and falls back to the partner scope.
    When both fail, the more severe classification is reported.
    """
    try:
        await client.organization.get_organization_info(tenant_id)
        return ConnectivityResult(
            state=ConnectionState.CONNECTED,
            message="Organization connectivity OK.",
            retriable=False,
            endpoint_key="organization.getOrganizationInfo",
        )
    except Exception as first_error:
        first = classify_error(first_error)

    try:
        await client.partner.get_devices(tenant_id)
        return ConnectivityResult(
            state=ConnectionState.CONNECTED,
            message="Partner connectivity OK.",
            retriable=False,
            endpoint_key="partner.devices.getDevices",
        )
    except Exception as second_error:
        return prefer_failure(first, classify_error(second_error))
