# -*- coding: utf-8 -*-
"""FuelEU Exception Hierarchy.

Tagged exceptions for the compliance, banking and pooling operations. Each
exception carries an explicit :class:`ErrorKind` so that transport adapters
map failures to responses without inspecting message text.

Exception Hierarchy:
    FuelEUException (base)
    ├── InvalidInputError       - malformed or out-of-range arguments
    ├── NotFoundError           - referenced balance, route or pool missing
    ├── BusinessRuleViolation   - amount or pool rule broken
    └── UnavailableError        - collaborator I/O failure (retriable)

All exceptions include rich context:
- kind: ErrorKind tag used for dispatch
- error_code: Unique error identifier
- context: Dictionary with error-specific details (field, rule, values)
- timestamp: When the error occurred

Example:
    >>> from fueleu.exceptions import BusinessRuleViolation
    >>> raise BusinessRuleViolation(
    ...     "Amount 1500 exceeds available compliance balance 1000",
    ...     rule="amount_exceeds_available_cb",
    ...     values={"amount": 1500, "available_cb": 1000},
    ... )

Author: FuelEU Platform Team
Status: Production Ready
"""

import json
import math
import re
from enum import Enum
from typing import Any, Dict, Optional

from fueleu.determinism import utcnow


class ErrorKind(str, Enum):
    """Failure category carried by every FuelEU exception."""

    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    BUSINESS_RULE = "BUSINESS_RULE"
    UNAVAILABLE = "UNAVAILABLE"


def _json_safe(value: Any) -> Any:
    """Replace non-finite floats with their string form, recursively."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


# ==============================================================================
# Base Exception
# ==============================================================================

class FuelEUException(Exception):
    """Base exception for all FuelEU errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "FUELEU_NOT_FOUND_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "FUELEU"
    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = utcnow()

    def _generate_error_code(self) -> str:
        """Generate error code based on exception class.

        Returns:
            Error code like "FUELEU_INVALID_INPUT_ERROR"
        """
        class_name = self.__class__.__name__
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', class_name).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error": self.kind.value,
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": _json_safe(self.context),
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        """String representation with error code and message."""
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"kind='{self.kind.value}')"
        )


# ==============================================================================
# Concrete Exceptions
# ==============================================================================

class InvalidInputError(FuelEUException):
    """Malformed or out-of-range argument.

    Always detectable before any I/O and never retried.

    Example:
        >>> raise InvalidInputError(
        ...     "Year must be between 2000 and 2100",
        ...     field="year",
        ...     value=1999,
        ... )
    """

    kind = ErrorKind.INVALID_INPUT

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs,
    ):
        """Initialize invalid input error.

        Args:
            message: Error message
            field: Name of the offending argument
            value: Offending value
            **kwargs: Additional arguments for FuelEUException
        """
        context = kwargs.pop("context", {})
        if field is not None:
            context["field"] = field
            context["value"] = value
        super().__init__(message, context=context, **kwargs)
        self.field = field
        self.value = value


class NotFoundError(FuelEUException):
    """Referenced compliance balance, route or pool does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        key: Optional[Dict[str, Any]] = None,
        **kwargs,
    ):
        """Initialize not-found error.

        Args:
            message: Error message
            resource: Resource type (compliance_balance, route, pool)
            key: Lookup key that produced no result
            **kwargs: Additional arguments for FuelEUException
        """
        context = kwargs.pop("context", {})
        if resource:
            context["resource"] = resource
        if key:
            context["key"] = key
        super().__init__(message, context=context, **kwargs)
        self.resource = resource
        self.key = key or {}


class BusinessRuleViolation(FuelEUException):
    """A banking or pooling rule was broken.

    Retrying with identical input reproduces the same violation.

    Example:
        >>> raise BusinessRuleViolation(
        ...     "Deficit ship B cannot exit with worse balance",
        ...     rule="deficit_not_worse",
        ...     values={"ship_id": "B", "cb_before": -30, "cb_after": -40},
        ... )
    """

    kind = ErrorKind.BUSINESS_RULE

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
        **kwargs,
    ):
        """Initialize business rule violation.

        Args:
            message: Error message
            rule: Name of the violated rule
            values: Values involved in the violation
            **kwargs: Additional arguments for FuelEUException
        """
        context = kwargs.pop("context", {})
        if rule:
            context["rule"] = rule
        if values:
            context["values"] = values
        super().__init__(message, context=context, **kwargs)
        self.rule = rule
        self.values = values or {}


class UnavailableError(FuelEUException):
    """Store or collaborator I/O failure. May be retried with backoff."""

    kind = ErrorKind.UNAVAILABLE

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ):
        """Initialize unavailable error.

        Args:
            message: Error message
            operation: Repository operation that failed
            **kwargs: Additional arguments for FuelEUException
        """
        context = kwargs.pop("context", {})
        if operation:
            context["operation"] = operation
        super().__init__(message, context=context, **kwargs)
        self.operation = operation


# ==============================================================================
# Utilities
# ==============================================================================

def format_exception_chain(exc: BaseException) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current: Optional[BaseException] = exc

    while current is not None:
        if isinstance(current, FuelEUException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = current.__cause__

    return "\n".join(lines)


def is_retriable(exc: BaseException) -> bool:
    """Check if exception is retriable.

    Only collaborator failures are retried; input, lookup and rule
    failures reproduce on retry.

    Args:
        exc: Exception to check

    Returns:
        True if operation should be retried
    """
    return isinstance(exc, UnavailableError)


__all__ = [
    "ErrorKind",
    "FuelEUException",
    "InvalidInputError",
    "NotFoundError",
    "BusinessRuleViolation",
    "UnavailableError",
    "format_exception_chain",
    "is_retriable",
]
