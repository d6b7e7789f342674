"""
Analytics engine exception hierarchy

Every error is scoped to a single (symbol, metric) unit. Callers can catch
AnalyticsError to handle all engine failures uniformly, or inspect `kind`
to decide whether a retry makes sense.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds surfaced to API consumers"""

    INSUFFICIENT_DATA = "InsufficientData"
    INVALID_PARAMETERS = "InvalidParameters"
    OUT_OF_ORDER_BAR = "OutOfOrderBar"
    COMPUTATION_TIMEOUT = "ComputationTimeout"
    DEGENERATE_INPUT = "DegenerateInput"
    CONFIG = "Config"


class AnalyticsError(Exception):
    """
    Base class for analytics engine errors

    Attributes:
        kind: ErrorKind reported to consumers
        retryable: True if the caller may retry the same request
    """

    kind: ErrorKind = ErrorKind.INSUFFICIENT_DATA
    retryable: bool = False


class InsufficientDataError(AnalyticsError):
    """Raised when the requested window exceeds the available history."""

    kind = ErrorKind.INSUFFICIENT_DATA


class DegenerateInputError(InsufficientDataError):
    """
    Raised when the input is present but mathematically unusable
    (zero-variance benchmark, zero volatility, non-positive prices).
    """

    kind = ErrorKind.DEGENERATE_INPUT


class InvalidParametersError(AnalyticsError):
    """Raised when metric parameters are rejected before computation."""

    kind = ErrorKind.INVALID_PARAMETERS


class OutOfOrderBarError(AnalyticsError):
    """Raised when a bar is not strictly newer than the last accepted bar."""

    kind = ErrorKind.OUT_OF_ORDER_BAR


class ComputationTimeoutError(AnalyticsError):
    """Raised when a bounded wait on an in-flight computation expires."""

    kind = ErrorKind.COMPUTATION_TIMEOUT
    retryable = True


class ConfigError(AnalyticsError):
    """Raised when configuration files or values are missing or invalid."""

    kind = ErrorKind.CONFIG


__all__ = [
    "ErrorKind",
    "AnalyticsError",
    "InsufficientDataError",
    "DegenerateInputError",
    "InvalidParametersError",
    "OutOfOrderBarError",
    "ComputationTimeoutError",
    "ConfigError",
]
