"""Tests for failure classification and the connectivity probe."""

import errno
import socket

import httpx
import pytest

from tests.conftest import make_client
from xyte_tui.connectivity import (
    ConnectionState,
    ConnectivityResult,
    ErrorClass,
    classify_error,
    is_missing_key_message,
    prefer_failure,
    probe_connectivity,
)
from xyte_tui.errors import AuthError, HttpError, ValidationError


def http_error(status: int, message: str = "request failed") -> HttpError:
    return HttpError(message, status=status, endpoint_key="organization.devices.getDevices")


class TestClassifyError:
    @pytest.mark.parametrize(
        "status,state,retriable",
        [
            (401, ConnectionState.AUTH_REQUIRED, False),
            (403, ConnectionState.AUTH_REQUIRED, False),
            (429, ConnectionState.RATE_LIMITED, True),
            (408, ConnectionState.TIMEOUT, True),
            (502, ConnectionState.NETWORK_ERROR, True),
            (404, ConnectionState.UNKNOWN_ERROR, True),
        ],
    )
    def test_http_status(self, status: int, state: ConnectionState, retriable: bool) -> None:
        result = classify_error(http_error(status))
        assert result.state is state
        assert result.retriable is retriable
        assert result.status_code == status
        assert result.endpoint_key == "organization.devices.getDevices"

    def test_http_missing_key_message(self) -> None:
        result = classify_error(http_error(400, "Missing API key for this endpoint"))
        assert result.state is ConnectionState.MISSING_KEY
        assert not result.retriable

    def test_auth_error_missing_key(self) -> None:
        result = classify_error(AuthError("Missing API key: no active tenant is configured."))
        assert result.state is ConnectionState.MISSING_KEY
        assert result.error_class is ErrorClass.MISSING_KEY

    def test_auth_error_other(self) -> None:
        result = classify_error(AuthError("token revoked"))
        assert result.state is ConnectionState.AUTH_REQUIRED

    def test_validation_not_retriable(self) -> None:
        result = classify_error(ValidationError("space_id is required."))
        assert result.error_class is ErrorClass.VALIDATION
        assert not result.retriable

    def test_httpx_timeout(self) -> None:
        result = classify_error(httpx.ReadTimeout("read timed out"))
        assert result.state is ConnectionState.TIMEOUT
        assert result.retriable

    def test_httpx_connect_error(self) -> None:
        result = classify_error(httpx.ConnectError("connection refused"))
        assert result.state is ConnectionState.NETWORK_ERROR

    def test_os_error_codes(self) -> None:
        assert classify_error(OSError(errno.ECONNRESET, "reset")).state is ConnectionState.NETWORK_ERROR
        assert classify_error(OSError(errno.ETIMEDOUT, "timed out")).state is ConnectionState.TIMEOUT
        assert classify_error(socket.gaierror(socket.EAI_NONAME, "unknown host")).state is ConnectionState.NETWORK_ERROR

    def test_unknown_is_retriable(self) -> None:
        result = classify_error(RuntimeError("weird"))
        assert result.state is ConnectionState.UNKNOWN_ERROR
        assert result.retriable
        assert result.message == "weird"

    def test_to_dict_omits_absent_fields(self) -> None:
        data = ConnectivityResult(state=ConnectionState.CONNECTED, message="ok", retriable=False).to_dict()
        assert data == {"state": "connected", "message": "ok", "retriable": False}


class TestSeverity:
    def test_worst_state(self) -> None:
        """Worst of connected, network_error, rate_limited is network_error."""
        states = [ConnectionState.CONNECTED, ConnectionState.NETWORK_ERROR, ConnectionState.RATE_LIMITED]
        assert max(states, key=lambda s: s.severity) is ConnectionState.NETWORK_ERROR

    def test_prefer_failure(self) -> None:
        a = classify_error(http_error(429))
        b = classify_error(http_error(401))
        assert prefer_failure(a, b) is b
        assert prefer_failure(b, a) is b

    def test_missing_key_patterns(self) -> None:
        assert is_missing_key_message("This endpoint requires an organization API key")
        assert is_missing_key_message("no active xyte-org key")
        assert not is_missing_key_message("Forbidden")


class TestProbeConnectivity:
    @pytest.mark.asyncio
    async def test_organization_ok(self) -> None:
        client = make_client()
        result = await probe_connectivity(client, "acme")
        assert result.state is ConnectionState.CONNECTED
        assert result.endpoint_key == "organization.getOrganizationInfo"
        client.partner.get_devices.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partner_fallback(self) -> None:
        client = make_client(org_info=http_error(401))
        result = await probe_connectivity(client, "acme")
        assert result.state is ConnectionState.CONNECTED
        assert result.endpoint_key == "partner.devices.getDevices"

    @pytest.mark.asyncio
    async def test_both_fail_reports_worse(self) -> None:
        client = make_client(org_info=http_error(429), partner_devices=http_error(403))
        result = await probe_connectivity(client, "acme")
        assert result.state is ConnectionState.AUTH_REQUIRED
