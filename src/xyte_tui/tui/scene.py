# src/xyte_tui/tui/scene.py

"""Scene assembly: screen state in, immutable panels out.

Scenes are the single description of what a screen shows. The Textual app
paints them and headless mode serializes them, so both modes always agree.
All cell text goes through the compact-v1 formatting helpers.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from xyte_tui.formatting import fit_cell, format_bool_tag, sanitize_printable, short_id
from xyte_tui.profiles import PROVIDERS, EnvSecretStore, TenantProfile
from xyte_tui.readiness import ReadinessCheck
from xyte_tui.tui.navigation import clamp_index
from xyte_tui.tui.serialize import safe_preview_lines

SAMPLE_ROWS = 6


@dataclass(frozen=True)
class SceneStat:
    label: str
    value: str | int


@dataclass(frozen=True)
class ScenePanel:
    """One panel of a screen: stats, text lines or a table."""

    id: str
    title: str
    kind: str  # "stats", "text" or "table"
    stats: tuple[SceneStat, ...] | None = None
    lines: tuple[str, ...] | None = None
    columns: tuple[str, ...] | None = None
    rows: tuple[tuple[str | int, ...], ...] | None = None
    status: str | None = None

    @classmethod
    def stats_panel(cls, id: str, title: str, stats: Sequence[tuple[str, str | int]], status: str | None = None) -> ScenePanel:
        return cls(id=id, title=title, kind="stats", stats=tuple(SceneStat(k, v) for k, v in stats), status=status)

    @classmethod
    def text_panel(cls, id: str, title: str, lines: Sequence[str], status: str | None = None) -> ScenePanel:
        return cls(id=id, title=title, kind="text", lines=tuple(lines), status=status)

    @classmethod
    def table_panel(
        cls,
        id: str,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[str | int]],
        status: str | None = None,
    ) -> ScenePanel:
        return cls(
            id=id,
            title=title,
            kind="table",
            columns=tuple(columns),
            rows=tuple(tuple(r) for r in rows),
            status=status,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize in headless frame shape, omitting absent parts."""
        data: dict[str, Any] = {"id": self.id, "title": self.title, "kind": self.kind}
        if self.stats is not None:
            data["stats"] = [{"label": s.label, "value": s.value} for s in self.stats]
        if self.lines is not None:
            data["text"] = {"lines": list(self.lines)}
        if self.columns is not None:
            data["table"] = {"columns": list(self.columns), "rows": [list(r) for r in self.rows or ()]}
        if self.status is not None:
            data["status"] = self.status
        return data


# ─────────────────────────────────────────────────────────────────────────────
# Record accessors
# ─────────────────────────────────────────────────────────────────────────────


def _get(item: Any, *keys: str, default: Any = None) -> Any:
    if not isinstance(item, dict):
        return default
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return default


def _nested_id(item: Any, key: str) -> Any:
    return _get(_get(item, key), "id")


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def safe_id(item: Any, index: int) -> str:
    return _text(_get(item, "id", "_id", "uuid", "device_id", default=f"row-{index + 1}"))


def safe_name(item: Any) -> str:
    return _text(_get(item, "name", "title", "subject", "status", default="n/a"))


def safe_status(item: Any) -> str:
    return _text(_get(item, "status", "state", "online_status", default="unknown"))


def safe_space_id(item: Any, index: int) -> str:
    return _text(_get(item, "id", "space_id", "_id", "uuid", default=f"space-{index + 1}"))


def detail_block(lines: list[str], preview: list[str] | None) -> list[str]:
    if preview is None:
        return lines
    return [*lines, "", "Preview:", *preview]


def _preview(item: Any) -> list[str]:
    return safe_preview_lines(item)[0]


# ─────────────────────────────────────────────────────────────────────────────
# Operational screens
# ─────────────────────────────────────────────────────────────────────────────


def scene_dashboard(
    *,
    tenant_id: str | None,
    devices: Sequence[Any],
    incidents: Sequence[Any],
    tickets: Sequence[Any],
    provider: str | None = None,
    ticket_mode: str | None = None,
) -> list[ScenePanel]:
    def recent(items: Sequence[Any]) -> list[list[str]]:
        return [
            [short_id(safe_id(item, i)), fit_cell(safe_name(item), 26), fit_cell(safe_status(item), 10)]
            for i, item in enumerate(items[:SAMPLE_ROWS])
        ]

    return [
        ScenePanel.stats_panel(
            "dashboard-kpis",
            "KPI",
            [
                ("Tenant", tenant_id or "none"),
                ("Devices", len(devices)),
                ("Open incidents", len(incidents)),
                ("Open tickets", len(tickets)),
            ],
        ),
        ScenePanel.text_panel(
            "dashboard-provider",
            "Provider Status",
            [
                f"Provider override: {provider or 'none'}",
                f"Ticket scope: {ticket_mode or 'n/a'}",
            ],
        ),
        ScenePanel.table_panel("dashboard-incidents", "Recent Incidents", ["ID", "Name", "State"], recent(incidents)),
        ScenePanel.table_panel("dashboard-tickets", "Recent Tickets", ["ID", "Subject", "State"], recent(tickets)),
    ]


def device_row(item: Any, index: int) -> list[str]:
    return [
        short_id(safe_id(item, index)),
        fit_cell(safe_name(item), 24),
        fit_cell(safe_status(item), 10),
        fit_cell(_get(item, "space_name", "space_id", default="n/a"), 20),
    ]


def scene_devices(*, search_text: str, selected_index: int, devices: Sequence[Any]) -> list[ScenePanel]:
    index = clamp_index(selected_index, len(devices))
    selected = devices[index] if devices else None
    if selected is not None:
        detail = detail_block(
            [
                f"ID: {sanitize_printable(_get(selected, 'id', '_id', 'uuid', default='n/a'))}",
                f"Name: {sanitize_printable(_get(selected, 'name', 'title', default='n/a'))}",
                f"State: {sanitize_printable(_get(selected, 'status', 'state', 'online_status', default='unknown'))}",
                f"Space: {sanitize_printable(_get(selected, 'space_name', 'space_id', default='n/a'))}",
            ],
            _preview(selected),
        )
    else:
        detail = ["No matching devices."]

    return [
        ScenePanel.table_panel(
            "devices-table",
            "Devices",
            ["ID", "Name", "State", "Space"],
            [device_row(item, i) for i, item in enumerate(devices)],
            status=f"filter={search_text}" if search_text else "filter=none",
        ),
        ScenePanel.text_panel("devices-detail", "Device Detail", detail),
    ]


def scene_incidents(
    *,
    severity_filter: str,
    selected_index: int,
    incidents: Sequence[Any],
    triage_text: str | None = None,
) -> list[ScenePanel]:
    index = clamp_index(selected_index, len(incidents))
    selected = incidents[index] if incidents else None
    if selected is not None:
        device = _get(selected, "device_id") or _nested_id(selected, "device") or "n/a"
        detail = detail_block(
            [
                f"ID: {sanitize_printable(_get(selected, 'id', '_id', 'uuid', default='n/a'))}",
                f"Sev: {sanitize_printable(_get(selected, 'severity', 'priority', default='unknown'))}",
                f"State: {sanitize_printable(_get(selected, 'status', 'state', default='unknown'))}",
                f"Device: {sanitize_printable(device)}",
            ],
            _preview(selected),
        )
    else:
        detail = ["No incidents."]

    rows = [
        [
            short_id(safe_id(item, i)),
            fit_cell(_get(item, "severity", "priority", default="unknown"), 7),
            fit_cell(safe_status(item), 10),
            short_id(_get(item, "device_id") or _nested_id(item, "device") or "n/a"),
        ]
        for i, item in enumerate(incidents)
    ]
    return [
        ScenePanel.table_panel(
            "incidents-table",
            "Incidents",
            ["ID", "Sev", "State", "Device"],
            rows,
            status=f"severity={severity_filter}" if severity_filter else "severity=all",
        ),
        ScenePanel.text_panel("incidents-detail", "Incident Detail", detail),
        ScenePanel.text_panel(
            "incidents-triage",
            "Triage",
            triage_text.split("\n") if triage_text else ["No triage notes."],
        ),
    ]


def scene_tickets(
    *,
    mode: str,
    search_text: str,
    selected_index: int,
    tickets: Sequence[Any],
    detail_text: str | None = None,
    draft_text: str | None = None,
) -> list[ScenePanel]:
    index = clamp_index(selected_index, len(tickets))
    selected = tickets[index] if tickets else None
    summary: list[str] = []
    if selected is not None:
        summary = [
            f"ID: {sanitize_printable(_get(selected, 'id', '_id', default='n/a'))}",
            f"State: {sanitize_printable(_get(selected, 'status', 'state', default='unknown'))}",
            f"Pri: {sanitize_printable(_get(selected, 'priority', default='n/a'))}",
            f"Subject: {sanitize_printable(_get(selected, 'subject', 'title', default='n/a'))}",
            "",
        ]
    if detail_text:
        detail = [*summary, *detail_text.split("\n")]
    elif selected is not None:
        detail = detail_block(summary, _preview(selected))
    else:
        detail = ["No tickets."]

    rows = [
        [
            short_id(safe_id(item, i)),
            fit_cell(safe_status(item), 10),
            fit_cell(_get(item, "priority", default="n/a"), 6),
            fit_cell(_get(item, "subject", "title", default="n/a"), 28),
        ]
        for i, item in enumerate(tickets)
    ]
    return [
        ScenePanel.table_panel(
            "tickets-table",
            "Tickets",
            ["ID", "State", "Pri", "Subject"],
            rows,
            status=f"mode={mode}" + (f" filter={search_text}" if search_text else ""),
        ),
        ScenePanel.text_panel("tickets-detail", "Ticket Detail", detail),
        ScenePanel.text_panel(
            "tickets-draft",
            "Draft Tool",
            draft_text.split("\n") if draft_text else ["No draft."],
        ),
    ]


def scene_spaces(
    *,
    search_text: str,
    selected_index: int,
    loading: bool,
    pane_status: str,
    spaces: Sequence[Any],
    space_detail: Any = None,
    devices_in_space: Sequence[Any] = (),
) -> list[ScenePanel]:
    index = clamp_index(selected_index, len(spaces))
    selected = spaces[index] if spaces else None
    if selected is not None:
        preview_source = space_detail if space_detail else selected
        detail = detail_block(
            [
                f"ID: {sanitize_printable(safe_space_id(selected, index))}",
                f"Name: {sanitize_printable(_get(selected, 'name', 'title', default='n/a'))}",
                f"Type: {sanitize_printable(_get(selected, 'space_type', 'type', default='n/a'))}",
                f"Path: {sanitize_printable(_get(selected, 'path', 'full_path', default='n/a'))}",
            ],
            _preview(preview_source),
        )
    else:
        detail = ["No spaces."]

    return [
        ScenePanel.table_panel(
            "spaces-list",
            "Spaces",
            ["ID", "Name", "Type", "Path"],
            [
                [
                    short_id(safe_id(item, i)),
                    fit_cell(safe_name(item), 22),
                    fit_cell(_get(item, "space_type", "type", default="n/a"), 10),
                    fit_cell(_get(item, "path", "full_path", default="n/a"), 28),
                ]
                for i, item in enumerate(spaces)
            ],
            status=f"filter={search_text}" if search_text else "filter=none",
        ),
        ScenePanel.text_panel("spaces-detail", "Space Detail", detail, status="loading=1" if loading else "loading=0"),
        ScenePanel.table_panel(
            "spaces-devices",
            "Devices In Space",
            ["ID", "Name", "State"],
            [
                [short_id(safe_id(item, i)), fit_cell(safe_name(item), 24), fit_cell(safe_status(item), 10)]
                for i, item in enumerate(devices_in_space)
            ],
            status=pane_status,
        ),
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Setup and config
# ─────────────────────────────────────────────────────────────────────────────

_GLOBAL_KEYS_LINE = "Global keys: u/g/d/s/v/i/t, r refresh, ? help, q quit"


@dataclass(frozen=True)
class ProviderRow:
    provider: str
    slot_count: int
    active_slot: str
    has_secret: bool
    last_validated_at: str | None = None


@dataclass(frozen=True)
class SlotRow:
    provider: str
    slot_id: str
    name: str
    active: bool
    has_secret: bool
    fingerprint: str


def scene_setup(
    *,
    tenant_id: str | None,
    readiness_state: str,
    connection_state: str,
    missing_items: Sequence[str],
    recommended_actions: Sequence[str],
    provider_rows: Sequence[ProviderRow],
) -> list[ScenePanel]:
    checklist = ["Missing:", *[f"- {m}" for m in missing_items]] if missing_items else ["No missing setup items."]
    checklist.append("")
    checklist += ["Recommended actions:"] if recommended_actions else ["No recommendations."]
    checklist += [f"- {a}" for a in recommended_actions]
    checklist += [
        "",
        "Interactive actions:",
        "- a add tenant",
        "- u set active tenant",
        "- c test connectivity",
        "- r refresh",
        "Tenants and key slots: xyte-tui tenant add / use / slot-add",
        _GLOBAL_KEYS_LINE,
    ]
    return [
        ScenePanel.stats_panel(
            "setup-overview",
            "Setup Readiness",
            [("Readiness", readiness_state), ("Tenant", tenant_id or "none"), ("Connection", connection_state)],
        ),
        ScenePanel.table_panel(
            "setup-providers",
            "Provider Slots",
            ["Provider", "Slots", "Active Slot", "Has Secret"],
            [
                [fit_cell(r.provider, 20), r.slot_count, short_id(r.active_slot), format_bool_tag(r.has_secret)]
                for r in provider_rows
            ],
        ),
        ScenePanel.text_panel("setup-checklist", "Checklist", checklist),
    ]


def scene_config(
    *,
    tenant_id: str | None,
    provider_rows: Sequence[ProviderRow],
    slot_rows: Sequence[SlotRow],
    selected_provider: str | None = None,
    selected_slot: SlotRow | None = None,
    doctor_status: str | None = None,
) -> list[ScenePanel]:
    actions = [
        f"Tenant: {tenant_id or 'none'}",
        f"Provider: {selected_provider or 'none'}",
        f"Doctor: {doctor_status or 'not run'}",
        "",
    ]
    if selected_slot is not None:
        actions += [
            "Selected slot:",
            f"- Provider: {selected_slot.provider}",
            f"- Slot: {selected_slot.name} ({selected_slot.slot_id})",
            f"- Fingerprint: {selected_slot.fingerprint}",
            f"- Active: {format_bool_tag(selected_slot.active)}",
            f"- Secret stored: {format_bool_tag(selected_slot.has_secret)}",
            "",
        ]
    else:
        actions += ["Selected slot: none", ""]
    actions += [
        "Interactive actions:",
        "- p cycle provider filter",
        "- c doctor",
        "- r refresh",
        _GLOBAL_KEYS_LINE,
    ]
    return [
        ScenePanel.table_panel(
            "config-providers",
            "Provider Health",
            ["Provider", "Slots", "Active Slot", "Has Secret", "Last Validated"],
            [
                [
                    fit_cell(r.provider, 16),
                    r.slot_count,
                    short_id(r.active_slot, head=4, tail=3),
                    format_bool_tag(r.has_secret),
                    fit_cell(r.last_validated_at or "n/a", 18),
                ]
                for r in provider_rows
            ],
        ),
        ScenePanel.table_panel(
            "config-slots",
            "Key Slots",
            ["Provider", "Slot", "Active", "Secret"],
            [
                [
                    fit_cell(r.provider, 16),
                    fit_cell(f"{r.name} ({short_id(r.slot_id, head=4, tail=3)})", 26),
                    format_bool_tag(r.active),
                    format_bool_tag(r.has_secret),
                ]
                for r in slot_rows
            ],
        ),
        ScenePanel.text_panel("config-actions", "Actions", actions),
    ]


def setup_provider_rows(readiness: ReadinessCheck) -> list[ProviderRow]:
    return [
        ProviderRow(
            provider=p.provider,
            slot_count=p.slot_count,
            active_slot=p.active_slot_id or "none",
            has_secret=p.has_active_secret,
        )
        for p in readiness.providers
    ]


@dataclass(frozen=True)
class ConfigRows:
    provider_rows: list[ProviderRow]
    selected_provider: str
    slot_rows: list[SlotRow]
    selected_slot: SlotRow | None


def config_rows(tenant: TenantProfile | None, secrets: EnvSecretStore, provider: str | None = None) -> ConfigRows:
    """Provider health and slot rows for the config screen.

    Args:
        tenant: Tenant to describe; None gives empty slot counts
        secrets: Secret source used for the "has secret" columns
        provider: Provider whose slots are listed; defaults to the first
            provider that has any
    """
    provider_rows = []
    for name in PROVIDERS:
        active = tenant.active_slot(name) if tenant else None
        provider_rows.append(
            ProviderRow(
                provider=name,
                slot_count=len(tenant.slots_for(name)) if tenant else 0,
                active_slot=active.slot_id if active else "none",
                has_secret=bool(active and secrets.has(name, active.slot_id)),
                last_validated_at=active.last_validated_at if active else None,
            )
        )

    selected = provider or next((r.provider for r in provider_rows if r.slot_count), PROVIDERS[0])
    active = tenant.active_slot(selected) if tenant else None
    slot_rows = [
        SlotRow(
            provider=slot.provider,
            slot_id=slot.slot_id,
            name=slot.name,
            active=active is not None and active.slot_id == slot.slot_id,
            has_secret=secrets.has(slot.provider, slot.slot_id),
            fingerprint=slot.fingerprint,
        )
        for slot in (tenant.slots_for(selected) if tenant else [])
    ]
    selected_slot = next((r for r in slot_rows if r.active), slot_rows[0] if slot_rows else None)
    return ConfigRows(provider_rows, selected, slot_rows, selected_slot)
