"""Terminal dashboard and headless snapshot client for the Xyte device-fleet platform."""

__version__ = "0.1.0"
