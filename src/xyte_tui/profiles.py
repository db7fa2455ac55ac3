# src/xyte_tui/profiles.py

"""Tenant profiles, API key slots and where their secrets come from.

Profiles live in a TOML file next to config.toml and hold only metadata:
tenant ids, hub URLs, and the key slots registered per provider. Secrets are
never written to disk; EnvSecretStore reads them from environment variables.
"""

from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import tomlkit

PROVIDERS = ("xyte-org", "xyte-partner", "xyte-device")
DEFAULT_SLOT_ID = "default"

_ENV_PREFIX = {
    "xyte-org": "XYTE_ORG_API_KEY",
    "xyte-partner": "XYTE_PARTNER_API_KEY",
    "xyte-device": "XYTE_DEVICE_API_KEY",
}


@dataclass
class KeySlot:
    """One named API key registered for a provider."""

    provider: str
    slot_id: str
    name: str
    fingerprint: str = "sha256:unknown"
    last_validated_at: str | None = None


@dataclass
class TenantProfile:
    """A tenant and its key slots."""

    id: str
    name: str
    hub_base_url: str | None = None
    slots: list[KeySlot] = field(default_factory=list)
    active_slots: dict[str, str] = field(default_factory=dict)  # provider -> slot_id

    def slots_for(self, provider: str) -> list[KeySlot]:
        return [s for s in self.slots if s.provider == provider]

    def active_slot(self, provider: str) -> KeySlot | None:
        """Return the active slot for a provider, else its first slot."""
        slots = self.slots_for(provider)
        active_id = self.active_slots.get(provider)
        for slot in slots:
            if slot.slot_id == active_id:
                return slot
        return slots[0] if slots else None


def make_key_fingerprint(secret: str) -> str:
    """Short, non-reversible identifier for a secret."""
    return "sha256:" + hashlib.sha256(secret.encode()).hexdigest()[:12]


def slugify_slot_name(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or DEFAULT_SLOT_ID


def build_slot_id(name: str, existing: set[str]) -> str:
    """Slug the name, adding -2, -3, ... until it is unique."""
    base = slugify_slot_name(name)
    if base not in existing:
        return base
    counter = 2
    while f"{base}-{counter}" in existing:
        counter += 1
    return f"{base}-{counter}"


def secret_env_var(provider: str, slot_id: str) -> str:
    """Environment variable holding the secret for a key slot.

    The default slot uses the bare name (XYTE_ORG_API_KEY); other slots get
    the upper-cased slot id as suffix (XYTE_ORG_API_KEY_STAGING).
    """
    if provider not in _ENV_PREFIX:
        raise ValueError(f"Unknown provider: {provider!r}. Valid providers: {list(PROVIDERS)}")
    prefix = _ENV_PREFIX[provider]
    if slot_id == DEFAULT_SLOT_ID:
        return prefix
    return f"{prefix}_{re.sub(r'[^A-Z0-9]+', '_', slot_id.upper())}"


class EnvSecretStore:
    """Reads key slot secrets from the process environment."""

    def __init__(self, environ: dict[str, str] | None = None):
        self._environ = environ if environ is not None else os.environ

    def get(self, provider: str, slot_id: str) -> str | None:
        value = self._environ.get(secret_env_var(provider, slot_id))
        return value or None

    def has(self, provider: str, slot_id: str) -> bool:
        return self.get(provider, slot_id) is not None


class ProfileStore:
    """TOML-backed store of tenant profiles.

    Every mutating call reads the file, applies the change and writes it
    back, so concurrent CLI invocations see each other's changes.
    """

    def __init__(self, path: Path):
        self.path = path

    # ── reading ─────────────────────────────────────────────────────────────

    def _read(self) -> tuple[str | None, list[TenantProfile]]:
        if not self.path.exists():
            return None, []
        try:
            with open(self.path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse profile file {self.path}: {e}") from e

        tenants = [_tenant_from_toml(raw) for raw in data.get("tenants", [])]
        active = data.get("active_tenant")
        return (str(active) if active else None), tenants

    def list_tenants(self) -> list[TenantProfile]:
        return self._read()[1]

    def get_tenant(self, tenant_id: str) -> TenantProfile | None:
        for tenant in self.list_tenants():
            if tenant.id == tenant_id:
                return tenant
        return None

    def get_active_tenant_id(self) -> str | None:
        return self._read()[0]

    # ── writing ─────────────────────────────────────────────────────────────

    def _write(self, active: str | None, tenants: list[TenantProfile]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        doc = tomlkit.document()
        if active:
            doc.add("active_tenant", active)
        array = tomlkit.aot()
        for tenant in tenants:
            array.append(_tenant_to_toml(tenant))
        doc.add("tenants", array)
        self.path.write_text(tomlkit.dumps(doc))

    def upsert_tenant(self, tenant_id: str, name: str | None = None, hub_base_url: str | None = None) -> TenantProfile:
        """Create a tenant or update its name and hub URL.

        The first tenant ever added becomes the active one.
        """
        active, tenants = self._read()
        for tenant in tenants:
            if tenant.id == tenant_id:
                tenant.name = name or tenant.name
                tenant.hub_base_url = hub_base_url or tenant.hub_base_url
                self._write(active, tenants)
                return tenant

        tenant = TenantProfile(id=tenant_id, name=name or tenant_id, hub_base_url=hub_base_url)
        tenants.append(tenant)
        self._write(active or tenant_id, tenants)
        return tenant

    def set_active_tenant(self, tenant_id: str) -> None:
        """Raises ValueError for an unknown tenant."""
        _, tenants = self._read()
        if not any(t.id == tenant_id for t in tenants):
            raise ValueError(f"Unknown tenant: {tenant_id}")
        self._write(tenant_id, tenants)

    def add_key_slot(
        self, tenant_id: str, provider: str, name: str, fingerprint: str = "sha256:unknown"
    ) -> KeySlot:
        """Register a key slot; the first slot of a provider becomes active.

        Raises:
            ValueError: Unknown tenant or provider, or an empty slot name
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider!r}. Valid providers: {list(PROVIDERS)}")
        if not name.strip():
            raise ValueError("Slot name must not be empty.")
        active, tenants = self._read()
        tenant = next((t for t in tenants if t.id == tenant_id), None)
        if tenant is None:
            raise ValueError(f"Unknown tenant: {tenant_id}")

        existing = {s.slot_id for s in tenant.slots_for(provider)}
        slot = KeySlot(
            provider=provider,
            slot_id=build_slot_id(name, existing),
            name=name.strip(),
            fingerprint=fingerprint,
        )
        tenant.slots.append(slot)
        tenant.active_slots.setdefault(provider, slot.slot_id)
        self._write(active, tenants)
        return slot

    def mark_validated(self, tenant_id: str, provider: str, slot_id: str) -> None:
        active, tenants = self._read()
        for tenant in tenants:
            if tenant.id != tenant_id:
                continue
            for slot in tenant.slots_for(provider):
                if slot.slot_id == slot_id:
                    slot.last_validated_at = datetime.now(timezone.utc).isoformat()
        self._write(active, tenants)


def _tenant_from_toml(raw: dict) -> TenantProfile:
    slots = [
        KeySlot(
            provider=str(s["provider"]),
            slot_id=str(s["slot_id"]),
            name=str(s.get("name", s["slot_id"])),
            fingerprint=str(s.get("fingerprint", "sha256:unknown")),
            last_validated_at=s.get("last_validated_at"),
        )
        for s in raw.get("slots", [])
        if "provider" in s and "slot_id" in s
    ]
    tenant = TenantProfile(
        id=str(raw["id"]),
        name=str(raw.get("name", raw["id"])),
        hub_base_url=raw.get("hub_base_url"),
        slots=slots,
        active_slots={str(k): str(v) for k, v in raw.get("active_slots", {}).items()},
    )
    # Repair active pointers that name a deleted slot
    for provider in {s.provider for s in slots}:
        if tenant.active_slot(provider) is not None:
            tenant.active_slots[provider] = tenant.active_slot(provider).slot_id  # type: ignore[union-attr]
    return tenant


def _tenant_to_toml(tenant: TenantProfile) -> tomlkit.items.Table:
    table = tomlkit.table()
    table.add("id", tenant.id)
    table.add("name", tenant.name)
    if tenant.hub_base_url:
        table.add("hub_base_url", tenant.hub_base_url)
    active = tomlkit.table()
    for provider, slot_id in tenant.active_slots.items():
        active.add(provider, slot_id)
    table.add("active_slots", active)
    slots = tomlkit.aot()
    for slot in tenant.slots:
        item = tomlkit.table()
        item.add("provider", slot.provider)
        item.add("slot_id", slot.slot_id)
        item.add("name", slot.name)
        item.add("fingerprint", slot.fingerprint)
        if slot.last_validated_at:
            item.add("last_validated_at", slot.last_validated_at)
        slots.append(item)
    table.add("slots", slots)
    return table
