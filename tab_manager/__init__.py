"""Tab manager: domain grouping, idle suspension, sessions and cross-device sync for browser tabs."""

__version__ = "0.1.0"
