"""Configuration system for xyte-tui."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from xyte_tui.retry import RetryPolicy


@dataclass
class InputConfig:
    """Keyboard input queue configuration."""

    max_queue_size: int = 64  # Pending non-critical key events before the oldest is dropped


@dataclass
class RetryConfig:
    """Retry policy for remote loads.

    Delay before retry n: min(max_delay_ms, base_delay_ms * 2^(n-1)) plus up to
    jitter_ratio of that as random jitter.
    """

    max_attempts: int = 3  # Total attempts including the first
    base_delay_ms: int = 250  # Delay before the first retry
    max_delay_ms: int = 5000  # Cap on the exponential part
    jitter_ratio: float = 0.2  # Fraction of the delay added as jitter

    def to_policy(self) -> RetryPolicy:
        """Return the immutable policy used by the loaders."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            jitter_ratio=self.jitter_ratio,
        )


@dataclass
class GuardsConfig:
    """Thresholds for the render fallback and error storm guards.

    Both guards count identical failures inside a sliding window; a different
    message or a gap longer than the window restarts the count at 1.
    """

    repeat_window_seconds: float = 2.0  # Window for counting repeated failures
    render_fallback_threshold: int = 3  # Identical render failures before fallback mode
    error_storm_threshold: int = 5  # Identical errors before the session shuts down
    error_modal_seconds: float = 4.0  # How long the error popup stays up


@dataclass
class HeadlessConfig:
    """Headless snapshot stream configuration."""

    interval_ms: int = 2000  # Delay between snapshots in follow mode
    min_interval_ms: int = 250  # Lower bound for --interval-ms


@dataclass
class ApiConfig:
    """Xyte API client configuration."""

    hub_base_url: str = "https://hub.xyte.io"  # Used when a tenant has no hub URL of its own
    timeout_seconds: float = 15.0  # Per-request timeout


@dataclass
class TUIConfig:
    """Interactive dashboard configuration."""

    pulse_interval: float = 0.22  # Seconds between activity pulse frames
    startup_frame_delay: float = 0.18  # Seconds between logo reveal frames
    motion: bool = True  # Animate the logo and pulse (XYTE_TUI_REDUCED_MOTION=1 overrides)


@dataclass
class LoggingConfig:
    """Log file rotation."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    input: InputConfig = field(default_factory=InputConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    guards: GuardsConfig = field(default_factory=GuardsConfig)
    headless: HeadlessConfig = field(default_factory=HeadlessConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "xyte-tui"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def profiles_path(self) -> Path:
        """Tenant profiles and key slot metadata (never secrets)."""
        return self.config_dir / "profiles.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs and other expendable persistent state."""
        return Path.home() / ".local" / "state" / "xyte-tui"

    @property
    def log_path(self) -> Path:
        """Structured application log path."""
        return self.state_dir / "tui.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        sections = ["input", "retry", "guards", "headless", "api", "tui", "logging"]
        for name in sections:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds an invalid value
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            input=_load_input_config(data.get("input", {})),
            retry=_load_retry_config(data.get("retry", {})),
            guards=_load_guards_config(data.get("guards", {})),
            headless=_load_headless_config(data.get("headless", {})),
            api=_load_api_config(data.get("api", {})),
            tui=_load_tui_config(data.get("tui", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_input_config(data: dict) -> InputConfig:
    """Load input config from TOML data."""
    d = InputConfig()
    max_queue_size = data.get("max_queue_size", d.max_queue_size)
    if max_queue_size < 1:
        raise ValueError(f"max_queue_size must be >= 1, got {max_queue_size}")
    return InputConfig(max_queue_size=max_queue_size)


def _load_retry_config(data: dict) -> RetryConfig:
    """Load retry config from TOML data."""
    d = RetryConfig()
    max_attempts = data.get("max_attempts", d.max_attempts)
    base_delay_ms = data.get("base_delay_ms", d.base_delay_ms)
    max_delay_ms = data.get("max_delay_ms", d.max_delay_ms)
    jitter_ratio = data.get("jitter_ratio", d.jitter_ratio)

    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    if base_delay_ms < 0:
        raise ValueError(f"base_delay_ms must be >= 0, got {base_delay_ms}")
    if max_delay_ms < base_delay_ms:
        raise ValueError(
            f"max_delay_ms ({max_delay_ms}) must be >= base_delay_ms ({base_delay_ms})"
        )
    if not 0 <= jitter_ratio <= 1:
        raise ValueError(f"jitter_ratio must be between 0 and 1, got {jitter_ratio}")

    return RetryConfig(
        max_attempts=max_attempts,
        base_delay_ms=base_delay_ms,
        max_delay_ms=max_delay_ms,
        jitter_ratio=jitter_ratio,
    )


def _load_guards_config(data: dict) -> GuardsConfig:
    """Load guard thresholds from TOML data."""
    d = GuardsConfig()
    window = data.get("repeat_window_seconds", d.repeat_window_seconds)
    render_threshold = data.get("render_fallback_threshold", d.render_fallback_threshold)
    storm_threshold = data.get("error_storm_threshold", d.error_storm_threshold)
    modal_seconds = data.get("error_modal_seconds", d.error_modal_seconds)

    if window <= 0:
        raise ValueError(f"repeat_window_seconds must be > 0, got {window}")
    if render_threshold < 1:
        raise ValueError(f"render_fallback_threshold must be >= 1, got {render_threshold}")
    if storm_threshold < 1:
        raise ValueError(f"error_storm_threshold must be >= 1, got {storm_threshold}")

    return GuardsConfig(
        repeat_window_seconds=window,
        render_fallback_threshold=render_threshold,
        error_storm_threshold=storm_threshold,
        error_modal_seconds=modal_seconds,
    )


def _load_headless_config(data: dict) -> HeadlessConfig:
    """Load headless config from TOML data."""
    d = HeadlessConfig()
    min_interval_ms = data.get("min_interval_ms", d.min_interval_ms)
    interval_ms = data.get("interval_ms", d.interval_ms)
    if min_interval_ms < 1:
        raise ValueError(f"min_interval_ms must be >= 1, got {min_interval_ms}")
    return HeadlessConfig(interval_ms=max(min_interval_ms, interval_ms), min_interval_ms=min_interval_ms)


def _load_api_config(data: dict) -> ApiConfig:
    """Load API client config from TOML data."""
    d = ApiConfig()
    hub_base_url = data.get("hub_base_url", d.hub_base_url)
    timeout_seconds = data.get("timeout_seconds", d.timeout_seconds)
    if not str(hub_base_url).startswith(("http://", "https://")):
        raise ValueError(f"hub_base_url must be an http(s) URL, got {hub_base_url!r}")
    if timeout_seconds <= 0:
        raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
    return ApiConfig(hub_base_url=str(hub_base_url), timeout_seconds=timeout_seconds)


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data."""
    d = TUIConfig()
    return TUIConfig(
        pulse_interval=data.get("pulse_interval", d.pulse_interval),
        startup_frame_delay=data.get("startup_frame_delay", d.startup_frame_delay),
        motion=data.get("motion", d.motion),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    return LoggingConfig(
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )
