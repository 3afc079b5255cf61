"""Build Notifier - multi-channel build failure notifications."""

__version__ = "0.1.0"
