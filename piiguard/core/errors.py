"""Exception hierarchy."""

from __future__ import annotations


class PIIGuardError(Exception):
    """Base class for all piiguard errors."""


class ConfigError(PIIGuardError, ValueError):
    """Invalid pipeline or component configuration."""


class PassError(PIIGuardError):
    """A detection pass failed while executing."""

    def __init__(self, pass_name: str, cause: BaseException):
        self.pass_name = pass_name
        self.cause = cause
        super().__init__(f"Pass '{pass_name}' failed: {type(cause).__name__}: {cause}")
