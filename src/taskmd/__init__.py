"""taskmd - markdown work items with a derived JSON cache index."""

__version__ = "0.1.0"
