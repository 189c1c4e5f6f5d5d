#!/usr/bin/env python3
"""
Exception hierarchy for CircleCI job stats.

Every error here is fatal: the CLI reports it and exits with status 1.
"""

from typing import Optional


class CircleStatsError(Exception):
    """Base exception for all CircleCI job stats errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedInputError(CircleStatsError):
    """Input data (file, JSON document, record field) cannot be used."""

    def __init__(self, message: str, source: Optional[str] = None):
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
        self.source = source


class ConfigurationError(CircleStatsError):
    """Invalid command-line or download configuration."""


class InternalConsistencyError(CircleStatsError):
    """An invariant of the analysis pipeline was violated."""


class DownloadError(CircleStatsError):
    """Fetching a page from CircleCI failed for good."""

    def __init__(self, url: str, reason: str, attempts: int = 1):
        message = f"Failed to fetch {url} after {attempts} attempt(s): {reason}"
        super().__init__(message)
        self.url = url
        self.reason = reason
        self.attempts = attempts
