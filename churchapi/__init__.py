"""Multi-module church management API: per-module database routing."""

__version__ = "0.1.0"
