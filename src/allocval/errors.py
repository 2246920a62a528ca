# src/allocval/errors.py
from __future__ import annotations

from datetime import datetime, timezone


class AllocvalError(Exception):
    """Base class for all structured allocval exceptions."""

    def __init__(
        self, message: str, source: str | None = None, suggested_action: str | None = None
    ):
        super().__init__(message)
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_type = self.__class__.__name__
        self.source = source or "unknown"
        self.suggested_action = suggested_action

    def __str__(self) -> str:
        base = f"[{self.error_type}] {self.args[0]}"
        if self.source:
            base += f" (source={self.source})"
        if self.suggested_action:
            base += f" | action: {self.suggested_action}"
        return base


class ConfigError(AllocvalError):
    """Invalid or missing configuration (config.yaml)"""


class DataError(AllocvalError):
    """Unreadable input file or invalid argument passed to the engine"""


class ReportError(AllocvalError):
    """Validation report could not be serialized or written"""
