# src/xyte_tui/loaders.py

"""Retrying loaders that always return an outcome instead of raising.

Every remote fetch a screen makes goes through load_with_outcome(): the call is
retried according to a RetryPolicy while the classifier says the failure is
transient, and whatever happens the caller gets a LoadOutcome carrying either
the data or the fallback value plus the classified error.

When one screen loads several resources together, the aggregate state is the
worst individual state and the retry metadata is merged, so a degraded
sub-fetch is never hidden behind a healthy one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from xyte_tui.connectivity import ConnectionState, ConnectivityResult, ErrorClass, classify_error
from xyte_tui.retry import DEFAULT_RETRY_POLICY, RetryPolicy, is_retryable_class

if TYPE_CHECKING:
    from xyte_tui.client import XyteClient

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryState:
    """How many attempts a load took and whether any were retries."""

    attempts: int = 0
    retried: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"attempts": self.attempts, "retried": self.retried}


@dataclass(frozen=True)
class LoadOutcome(Generic[T]):
    """Result of one load: data (or fallback), state, classified error, retry info."""

    data: T
    connection_state: ConnectionState
    error: ConnectivityResult | None = None
    retry: RetryState = field(default_factory=RetryState)

    @property
    def connected(self) -> bool:
        return self.connection_state is ConnectionState.CONNECTED


async def load_with_outcome(
    operation: Callable[[], Awaitable[T]],
    fallback: T,
    policy: RetryPolicy | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> LoadOutcome[T]:
    """Run a remote operation with classified, bounded retry.

    Args:
        operation: Zero-argument coroutine factory performing the remote call
        fallback: Value returned as data when the operation ultimately fails
        policy: Retry policy (defaults to 3 attempts, 250ms exponential backoff)
        sleep: Awaitable sleep used between attempts (seconds)

    Returns:
        LoadOutcome; never raises for failures of the operation itself
    """
    policy = policy or DEFAULT_RETRY_POLICY
    attempts = 0
    retried = False

    for attempt in range(1, max(1, policy.max_attempts) + 1):
        attempts = attempt
        try:
            data = await operation()
        except Exception as e:
            classified = classify_error(e)
            retryable = is_retryable_class(classified.error_class) and classified.retriable
            if not retryable or not policy.has_budget(attempt):
                return LoadOutcome(
                    data=fallback,
                    connection_state=classified.state,
                    error=classified,
                    retry=RetryState(attempts=attempts, retried=retried),
                )
            retried = True
            await sleep(policy.delay_ms(attempt) / 1000)
        else:
            return LoadOutcome(
                data=data,
                connection_state=ConnectionState.CONNECTED,
                retry=RetryState(attempts=attempts, retried=retried),
            )

    # Only reachable with a non-positive attempt budget
    return LoadOutcome(
        data=fallback,
        connection_state=ConnectionState.UNKNOWN_ERROR,
        error=ConnectivityResult(
            state=ConnectionState.UNKNOWN_ERROR,
            error_class=ErrorClass.UNKNOWN,
            message="Unknown loader failure.",
            retriable=True,
        ),
        retry=RetryState(attempts=attempts, retried=retried),
    )


def pick_worst_outcome(outcomes: Sequence[LoadOutcome[Any]]) -> LoadOutcome[Any]:
    """Return the outcome with the most severe state; later outcomes win ties."""
    worst = outcomes[0]
    for outcome in outcomes[1:]:
        if outcome.connection_state.severity >= worst.connection_state.severity:
            worst = outcome
    return worst


def merge_retry(outcomes: Iterable[LoadOutcome[Any]]) -> RetryState:
    """Union of retry metadata: max attempts, OR of retried flags."""
    attempts = 0
    retried = False
    for outcome in outcomes:
        attempts = max(attempts, outcome.retry.attempts)
        retried = retried or outcome.retry.retried
    return RetryState(attempts=attempts, retried=retried)


# ─────────────────────────────────────────────────────────────────────────────
# Payload Shapes
# ─────────────────────────────────────────────────────────────────────────────


def _as_record(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def extract_array(value: Any, preferred_keys: Sequence[str] = ("data", "items")) -> list[Any]:
    """Find the list of records inside an API response.

    Accepts a bare list, a dict with one of the preferred keys, or any dict
    whose first list-valued key holds the rows.
    """
    if isinstance(value, list):
        return value
    record = _as_record(value)
    for key in preferred_keys:
        if isinstance(record.get(key), list):
            return record[key]
    for item in record.values():
        if isinstance(item, list):
            return item
    return []


_INCIDENT_KEYS = ("incidents", "data", "items")


def extract_incidents(value: Any) -> list[Any]:
    """Like extract_array, but also looks inside common response wrappers."""
    primary = extract_array(value, _INCIDENT_KEYS)
    if primary:
        return primary
    record = _as_record(value)
    for wrapper in ("payload", "result", "response", "body"):
        nested = extract_array(record.get(wrapper), _INCIDENT_KEYS)
        if nested:
            return nested
    return primary


def get_space_id(space: Any) -> str:
    record = _as_record(space)
    for key in ("id", "_id", "space_id"):
        if record.get(key) is not None:
            return str(record[key])
    return ""


def get_space_name(space: Any) -> str:
    record = _as_record(space)
    for key in ("name", "title", "path"):
        if record.get(key) is not None:
            return str(record[key])
    return "n/a"


def matches_space(device: Any, space_id: str) -> bool:
    """True if a device record belongs to the given space."""
    record = _as_record(device)
    nested = _as_record(record.get("space"))
    candidates = (record.get("space_id"), nested.get("id"), record.get("spaceId"))
    return any(c is not None and str(c) == space_id for c in candidates)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Loaders
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DashboardData:
    devices: list[Any]
    incidents: list[Any]
    tickets: list[Any]
    ticket_mode: str = "organization"  # Scope the tickets were loaded from


@dataclass(frozen=True)
class TicketsData:
    mode: str  # "organization" or "partner"
    tickets: list[Any]


@dataclass(frozen=True)
class SpaceDrilldown:
    space_detail: Any
    devices_in_space: list[Any]
    pane_status: str


async def load_devices(
    client: XyteClient, tenant_id: str | None, policy: RetryPolicy | None = None
) -> LoadOutcome[list[Any]]:
    """Load the device list, falling back to the partner scope."""

    async def operation() -> list[Any]:
        try:
            raw = await client.organization.get_devices(tenant_id)
        except Exception:
            raw = await client.partner.get_devices(tenant_id)
        return extract_array(raw, ("devices", "data", "items"))

    return await load_with_outcome(operation, [], policy)


async def load_incidents(
    client: XyteClient, tenant_id: str | None, policy: RetryPolicy | None = None
) -> LoadOutcome[list[Any]]:
    """Load incidents; non-object rows are wrapped as {"value": row}."""

    async def operation() -> list[Any]:
        raw = await client.organization.get_incidents(tenant_id)
        return [item if isinstance(item, dict) else {"value": item} for item in extract_incidents(raw)]

    return await load_with_outcome(operation, [], policy)


async def load_tickets(
    client: XyteClient, tenant_id: str | None, policy: RetryPolicy | None = None
) -> LoadOutcome[TicketsData]:
    """Load tickets from the organization scope, else from the partner scope."""

    async def org_operation() -> list[Any]:
        return extract_array(await client.organization.get_tickets(tenant_id), ("tickets", "data", "items"))

    org = await load_with_outcome(org_operation, [], policy)
    if org.data or org.connected:
        return LoadOutcome(
            data=TicketsData(mode="organization", tickets=org.data),
            connection_state=org.connection_state,
            error=org.error,
            retry=org.retry,
        )

    async def partner_operation() -> list[Any]:
        return extract_array(await client.partner.get_tickets(tenant_id), ("tickets", "data", "items"))

    partner = await load_with_outcome(partner_operation, [], policy)
    worst = pick_worst_outcome([org, partner])
    return LoadOutcome(
        data=TicketsData(mode="partner", tickets=partner.data),
        connection_state=worst.connection_state,
        error=worst.error,
        retry=merge_retry([org, partner]),
    )


async def load_spaces(
    client: XyteClient, tenant_id: str | None, policy: RetryPolicy | None = None
) -> LoadOutcome[list[Any]]:
    async def operation() -> list[Any]:
        return extract_array(await client.organization.get_spaces(tenant_id), ("spaces", "data", "items"))

    return await load_with_outcome(operation, [], policy)


async def load_dashboard(
    client: XyteClient, tenant_id: str | None, policy: RetryPolicy | None = None
) -> LoadOutcome[DashboardData]:
    """Load devices, incidents and tickets concurrently; report the worst state."""
    devices, incidents, tickets = await asyncio.gather(
        load_devices(client, tenant_id, policy),
        load_incidents(client, tenant_id, policy),
        load_tickets(client, tenant_id, policy),
    )
    outcomes = [devices, incidents, tickets]
    worst = pick_worst_outcome(outcomes)
    return LoadOutcome(
        data=DashboardData(
            devices=devices.data,
            incidents=incidents.data,
            tickets=tickets.data.tickets,
            ticket_mode=tickets.data.mode,
        ),
        connection_state=worst.connection_state,
        error=worst.error,
        retry=merge_retry(outcomes),
    )


async def load_space_drilldown(
    client: XyteClient,
    tenant_id: str | None,
    space_id: str,
    cached_devices: Sequence[Any] = (),
    policy: RetryPolicy | None = None,
) -> LoadOutcome[SpaceDrilldown]:
    """Load one space's detail and the devices inside it.

    The device list is queried by space id; if that comes back empty, devices
    are filtered out of the cached full list, or out of a fresh full fetch when
    nothing is cached.
    """

    async def detail_operation() -> Any:
        return await client.organization.get_space(tenant_id, space_id)

    async def devices_operation() -> list[Any]:
        queried = await client.organization.get_devices(tenant_id, query={"space_id": space_id})
        return extract_array(queried, ("devices", "data", "items"))

    detail, queried = await asyncio.gather(
        load_with_outcome(detail_operation, None, policy),
        load_with_outcome(devices_operation, [], policy),
    )
    outcomes: list[LoadOutcome[Any]] = [detail, queried]

    devices_in_space = queried.data
    pane_status = "Loaded space detail and device listing."
    if not devices_in_space:
        if cached_devices:
            devices_in_space = [d for d in cached_devices if matches_space(d, space_id)]
            pane_status = "Filtered devices by cached space_id fallback."
        else:
            fetched = await load_devices(client, tenant_id, policy)
            outcomes.append(fetched)
            devices_in_space = [d for d in fetched.data if matches_space(d, space_id)]
            pane_status = "Filtered devices by fetched space_id fallback."

    worst = pick_worst_outcome(outcomes)
    return LoadOutcome(
        data=SpaceDrilldown(
            space_detail=detail.data,
            devices_in_space=devices_in_space,
            pane_status=pane_status,
        ),
        connection_state=worst.connection_state,
        error=worst.error,
        retry=merge_retry(outcomes),
    )
