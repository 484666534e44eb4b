"""Structured error types for the gifguard service.

Every error carries an :class:`ErrorContext` so that callers and log handlers
can tell which component failed and whether the failure is worth retrying.
All of them are recoverable at the granularity of a single request.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    """Enumeration of error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Enumeration of error categories for structured logging."""
    CONFIGURATION = "configuration"
    RESOURCE = "resource"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    STORAGE = "storage"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Structured error context information."""
    operation: str
    request_id: Optional[str] = None
    component: str = "unknown"
    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "operation": self.operation,
            "request_id": self.request_id,
            "component": self.component,
            "category": self.category.value,
            "severity": self.severity.value,
            "metadata": self.metadata,
            "timestamp": self.timestamp
        }


class GifGuardError(Exception):
    """Base exception for gifguard errors."""

    def __init__(self, message: str, context: Optional[ErrorContext] = None,
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(operation="unknown")
        self.suggestions = suggestions or []
        self.cause = cause

    def get_error_details(self) -> Dict[str, Any]:
        """Get detailed error information."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context.to_dict() if self.context else None,
            "suggestions": self.suggestions,
            "cause": str(self.cause) if self.cause else None
        }


class ConfigurationError(GifGuardError):
    """Exception raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None,
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        context = ErrorContext(
            operation="configuration_validation",
            component="config",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            metadata={"config_key": config_key} if config_key else {}
        )
        default_suggestions = [
            "Check configuration file syntax",
            "Ensure configuration values are valid"
        ]
        if config_key:
            default_suggestions.append(f"Verify configuration for key: {config_key}")

        super().__init__(message, context=context, suggestions=suggestions or default_suggestions, cause=cause)


class ResourceCreationFailed(GifGuardError):
    """The compute resource could not be started."""

    def __init__(self, message: str, resource: str = "compute_resource",
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        context = ErrorContext(
            operation="resource_create",
            component=resource,
            category=ErrorCategory.RESOURCE,
            severity=ErrorSeverity.HIGH,
            metadata={"resource": resource}
        )
        default_suggestions = [
            "Check that the worker interpreter and its imaging dependencies are installed",
            "Review the worker's stderr output",
        ]
        super().__init__(message, context=context, suggestions=suggestions or default_suggestions, cause=cause)


class RequestTimeout(GifGuardError):
    """A fingerprint request received no response before its deadline."""

    def __init__(self, message: str, request_id: Optional[str] = None, timeout: Optional[float] = None,
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        context = ErrorContext(
            operation="compute_fingerprint",
            request_id=request_id,
            component="hash_bridge",
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.MEDIUM,
            metadata={"timeout": timeout}
        )
        default_suggestions = ["Check that the thumbnail host is reachable"]
        if timeout:
            default_suggestions.append(f"Consider increasing request_timeout from {timeout}s")
        super().__init__(message, context=context, suggestions=suggestions or default_suggestions, cause=cause)


class TransportFailure(GifGuardError):
    """The compute resource was unreachable or reported a failure."""

    def __init__(self, message: str, request_id: Optional[str] = None,
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        context = ErrorContext(
            operation="compute_fingerprint",
            request_id=request_id,
            component="hash_bridge",
            category=ErrorCategory.TRANSPORT,
            severity=ErrorSeverity.MEDIUM,
        )
        super().__init__(message, context=context, suggestions=suggestions, cause=cause)


class MalformedResponse(GifGuardError):
    """The compute resource answered with an empty or unusable message."""

    def __init__(self, message: str, request_id: Optional[str] = None,
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        context = ErrorContext(
            operation="compute_fingerprint",
            request_id=request_id,
            component="hash_bridge",
            category=ErrorCategory.PROTOCOL,
            severity=ErrorSeverity.MEDIUM,
        )
        super().__init__(message, context=context, suggestions=suggestions, cause=cause)


class StoreUnavailable(GifGuardError):
    """The persistent key-value store could not be read or written."""

    def __init__(self, message: str, operation: str = "unknown",
                 suggestions: Optional[List[str]] = None, cause: Optional[Exception] = None):
        context = ErrorContext(
            operation=f"store_{operation}",
            component="persistent_store",
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
        )
        default_suggestions = [
            "Check that the store path is writable",
            "Verify the database file is not locked by another process",
        ]
        super().__init__(message, context=context, suggestions=suggestions or default_suggestions, cause=cause)
