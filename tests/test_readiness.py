"""Tests for setup readiness evaluation."""

import pytest

from tests.conftest import make_client
from xyte_tui.connectivity import ConnectionState
from xyte_tui.errors import HttpError
from xyte_tui.profiles import EnvSecretStore, ProfileStore
from xyte_tui.readiness import ReadinessState, evaluate_readiness


class TestEvaluateReadiness:
    @pytest.mark.asyncio
    async def test_no_tenant(self, tmp_path) -> None:
        check = await evaluate_readiness(ProfileStore(tmp_path / "p.toml"), EnvSecretStore({}))

        assert check.state is ReadinessState.NEEDS_SETUP
        assert check.missing_items == ["No active tenant is configured."]
        assert check.connection_state is ConnectionState.NOT_CHECKED

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, profiles, secrets) -> None:
        check = await evaluate_readiness(profiles, secrets, tenant_id="ghost")

        assert check.state is ReadinessState.NEEDS_SETUP
        assert check.tenant_id == "ghost"
        assert 'Active tenant "ghost"' in check.missing_items[0]

    @pytest.mark.asyncio
    async def test_missing_secret(self, profiles) -> None:
        check = await evaluate_readiness(profiles, EnvSecretStore({}))

        assert check.state is ReadinessState.NEEDS_SETUP
        assert not check.ready
        assert check.providers[0].slot_count == 1
        assert not check.providers[0].has_active_secret

    @pytest.mark.asyncio
    async def test_ready_without_probe(self, profiles, secrets) -> None:
        check = await evaluate_readiness(profiles, secrets)

        assert check.ready
        assert check.tenant_id == "acme"
        assert check.providers[0].active_slot_id == "default"
        assert check.connection_state is ConnectionState.NOT_CHECKED

    @pytest.mark.asyncio
    async def test_probe_connected(self, profiles, secrets) -> None:
        check = await evaluate_readiness(profiles, secrets, client=make_client(), check_connectivity=True)

        assert check.ready
        assert check.connection_state is ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_probe_auth_failure_needs_setup(self, profiles, secrets) -> None:
        client = make_client(
            org_info=HttpError("unauthorized", status=401),
            partner_devices=HttpError("unauthorized", status=401),
        )

        check = await evaluate_readiness(profiles, secrets, client=client, check_connectivity=True)

        assert check.state is ReadinessState.NEEDS_SETUP
        assert check.connection_state is ConnectionState.AUTH_REQUIRED
        assert "Update the active key slot secret and refresh (r)." in check.recommended_actions

    @pytest.mark.asyncio
    async def test_probe_network_failure_degraded(self, profiles, secrets) -> None:
        client = make_client(
            org_info=HttpError("busy", status=503),
            partner_devices=HttpError("busy", status=503),
        )

        check = await evaluate_readiness(profiles, secrets, client=client, check_connectivity=True)

        assert check.state is ReadinessState.DEGRADED
        assert check.missing_items == []
        assert check.connectivity.retriable
