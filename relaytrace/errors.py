"""Relaytrace error hierarchy and exceptions."""

from __future__ import annotations


class RelaytraceError(Exception):
    """Base exception for all relaytrace errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(RelaytraceError):
    """Raised when configuration is invalid or conflicting."""
    pass


class InitializationError(RelaytraceError):
    """Raised when tracing initialization fails."""
    pass


class CarrierError(RelaytraceError):
    """Raised when a header carrier is used outside its allowed mode."""
    pass


class PropagationError(RelaytraceError):
    """Raised when a propagation header cannot be parsed."""
    pass
