"""ChronoGhost: always-on-top multi-timer overlay with global hotkeys."""

__version__ = "1.2.0"
