"""Newsdesk dashboard statistics orchestration."""

__version__ = "0.1.0"
