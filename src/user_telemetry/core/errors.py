"""
Service Error Types

Errors raised below the HTTP layer. The API layer maps these to
responses in its error handlers; startup code treats the configuration
and telemetry errors as fatal.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for all service errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(ServiceError):
    """
    Invalid or missing configuration.

    Raised at startup; the process exits before binding a listener.
    """

    def __init__(self, variable: str, message: str):
        self.variable = variable
        super().__init__(f"{variable}: {message}")


class TelemetryInitError(ServiceError):
    """Telemetry pipeline could not be constructed."""


class DataAccessError(ServiceError):
    """
    Data store operation failed.

    The message names the failed operation ("Failed to fetch users");
    the driver error is kept as ``__cause__``.
    """

    @property
    def detail(self) -> str:
        """Message plus the underlying cause, if any."""
        cause: Optional[BaseException] = self.__cause__
        if cause is None:
            return self.message
        return f"{self.message}: {cause}"
