"""Track the live status of local AI coding-agent sessions."""

__version__ = "0.1.0"
