"""CLI commands for xyte-tui."""

import click

SCREEN_CHOICES = ["setup", "config", "dashboard", "spaces", "devices", "incidents", "tickets"]


def _load_config():
    from xyte_tui.config import Config

    try:
        return Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="xyte-tui")
def main() -> None:
    """Operator console for the Xyte device fleet."""
    pass


@main.command()
@click.option("--headless", is_flag=True, help="Stream NDJSON frames instead of the interactive UI")
@click.option("--screen", type=click.Choice(SCREEN_CHOICES), default="dashboard", help="Initial screen")
@click.option("--format", "fmt", type=click.Choice(["json", "text"]), default="json", help="Headless output format")
@click.option("--once/--follow", default=True, help="Headless: one snapshot, or keep streaming")
@click.option("--interval-ms", type=int, default=None, help="Headless follow interval in milliseconds")
@click.option("--tenant", default=None, help="Tenant to use instead of the active one")
@click.option("--no-motion", is_flag=True, help="Disable the logo animation and pulse")
@click.option("--debug", is_flag=True, help="Write the session debug event log")
@click.option("--debug-log", type=click.Path(dir_okay=False), default=None, help="Debug event log path")
def tui(
    headless: bool,
    screen: str,
    fmt: str,
    once: bool,
    interval_ms: int | None,
    tenant: str | None,
    no_motion: bool,
    debug: bool,
    debug_log: str | None,
) -> None:
    """Launch the interactive dashboard (or a headless snapshot stream)."""
    import asyncio

    from xyte_tui.logging import configure, create_event_log, get_structlog, headless_stopped
    from xyte_tui.tui.animation import is_motion_enabled

    if headless and fmt != "json":
        raise click.UsageError("Headless mode is JSON-only. Use --format json and parse NDJSON frames.")

    config = _load_config()
    configure(config)
    log = get_structlog()
    log.info("session_start", mode="headless" if headless else "interactive", screen=screen, tenant=tenant)
    event_log = create_event_log(enabled=debug, path=debug_log)
    motion = is_motion_enabled(headless=headless, explicit=False if no_motion else None) and config.tui.motion

    if headless:
        from xyte_tui.session import open_session
        from xyte_tui.tui.headless import run_headless

        async def stream() -> int:
            async with open_session(config, tenant_override=tenant, event_log=event_log) as session:
                return await run_headless(
                    session,
                    screen=screen,
                    motion_enabled=motion,
                    follow=not once,
                    interval_ms=interval_ms,
                )

        frames = asyncio.run(stream())
        log.info("session_end", mode="headless", frames=frames)
        if not once:
            headless_stopped(frames)
        return

    from xyte_tui.tui.app import run_tui

    run_tui(config, tenant=tenant, initial_screen=screen, motion=motion, event_log=event_log)
    log.info("session_end", mode="interactive")


@main.command()
@click.argument("source", type=click.File("r"), default="-")
def render(source) -> None:
    """Print NDJSON headless frames (file or stdin) as readable text."""
    import json

    from xyte_tui.tui.headless import render_frame_as_text

    for number, line in enumerate(source, start=1):
        if not line.strip():
            continue
        try:
            frame = json.loads(line)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Line {number} is not a JSON frame: {e}") from e
        click.echo(render_frame_as_text(frame))
        click.echo()


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo(f"Profiles: {cfg.profiles_path}")
    click.echo()
    click.echo("[input]")
    click.echo(f"  max_queue_size = {cfg.input.max_queue_size}")
    click.echo()
    click.echo("[retry]")
    click.echo(f"  max_attempts = {cfg.retry.max_attempts}")
    click.echo(f"  base_delay_ms = {cfg.retry.base_delay_ms}")
    click.echo(f"  max_delay_ms = {cfg.retry.max_delay_ms}")
    click.echo(f"  jitter_ratio = {cfg.retry.jitter_ratio}")
    click.echo()
    click.echo("[guards]")
    click.echo(f"  repeat_window_seconds = {cfg.guards.repeat_window_seconds}")
    click.echo(f"  render_fallback_threshold = {cfg.guards.render_fallback_threshold}")
    click.echo(f"  error_storm_threshold = {cfg.guards.error_storm_threshold}")
    click.echo(f"  error_modal_seconds = {cfg.guards.error_modal_seconds}")
    click.echo()
    click.echo("[headless]")
    click.echo(f"  interval_ms = {cfg.headless.interval_ms}")
    click.echo(f"  min_interval_ms = {cfg.headless.min_interval_ms}")
    click.echo()
    click.echo("[api]")
    click.echo(f"  hub_base_url = {cfg.api.hub_base_url}")
    click.echo(f"  timeout_seconds = {cfg.api.timeout_seconds}")
    click.echo()
    click.echo("[tui]")
    click.echo(f"  motion = {cfg.tui.motion}")
    click.echo(f"  pulse_interval = {cfg.tui.pulse_interval}")
    click.echo(f"  startup_frame_delay = {cfg.tui.startup_frame_delay}")


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from xyte_tui.config import Config
    from xyte_tui.logging import config_reset as log_config_reset

    cfg = Config()
    cfg.save()
    log_config_reset(str(cfg.config_path))


@main.group()
def tenant() -> None:
    """Manage tenant profiles and key slots."""
    pass


@tenant.command("list")
def tenant_list() -> None:
    """List tenants, their key slots and which secrets are present."""
    from xyte_tui.logging import no_tenants
    from xyte_tui.profiles import PROVIDERS, EnvSecretStore, ProfileStore, secret_env_var

    cfg = _load_config()
    store = ProfileStore(cfg.profiles_path)
    secrets = EnvSecretStore()
    tenants = store.list_tenants()
    if not tenants:
        no_tenants()
        return

    active = store.get_active_tenant_id()
    for profile in tenants:
        marker = "*" if profile.id == active else " "
        click.echo(f"{marker} {profile.id}  {profile.name}  {profile.hub_base_url or cfg.api.hub_base_url}")
        for provider in PROVIDERS:
            active_slot = profile.active_slot(provider)
            for slot in profile.slots_for(provider):
                flag = "active" if active_slot and slot.slot_id == active_slot.slot_id else ""
                secret = "secret" if secrets.has(provider, slot.slot_id) else f"missing ${secret_env_var(provider, slot.slot_id)}"
                click.echo(f"    {provider:<14} {slot.slot_id:<16} {flag:<6} {secret}")


@tenant.command("add")
@click.argument("tenant_id")
@click.option("--name", default=None, help="Display name (defaults to the id)")
@click.option("--hub-url", default=None, help="Hub base URL for this tenant")
@click.option("--use", "make_active", is_flag=True, help="Make this the active tenant")
def tenant_add(tenant_id: str, name: str | None, hub_url: str | None, make_active: bool) -> None:
    """Create or update a tenant profile."""
    from xyte_tui.logging import tenant_added, tenant_selected
    from xyte_tui.profiles import ProfileStore

    cfg = _load_config()
    store = ProfileStore(cfg.profiles_path)
    try:
        store.upsert_tenant(tenant_id, name, hub_url)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    tenant_added(tenant_id)
    if make_active:
        store.set_active_tenant(tenant_id)
        tenant_selected(tenant_id)


@tenant.command("use")
@click.argument("tenant_id")
def tenant_use(tenant_id: str) -> None:
    """Set the active tenant."""
    from xyte_tui.logging import tenant_selected
    from xyte_tui.profiles import ProfileStore

    store = ProfileStore(_load_config().profiles_path)
    try:
        store.set_active_tenant(tenant_id)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    tenant_selected(tenant_id)


@tenant.command("slot-add")
@click.argument("tenant_id")
@click.argument("provider")
@click.argument("name")
def tenant_slot_add(tenant_id: str, provider: str, name: str) -> None:
    """Register a key slot; the secret itself is read from the environment."""
    from xyte_tui.logging import slot_added
    from xyte_tui.profiles import ProfileStore, secret_env_var

    store = ProfileStore(_load_config().profiles_path)
    try:
        slot = store.add_key_slot(tenant_id, provider, name)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    slot_added(tenant_id, provider, slot.slot_id, secret_env_var(provider, slot.slot_id))
