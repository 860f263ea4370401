"""Chat completion router with per-user daily quotas."""

__version__ = "0.1.0"
