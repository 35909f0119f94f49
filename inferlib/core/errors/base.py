"""Structured error types shared by every inferlib provider.

Errors carry a human readable message, an ``ErrorContext`` with the
machine readable details (paths, status codes, provider names) and,
optionally, the exception that caused them. ``to_dict()`` gives a form
that is safe to log; nothing secret is ever put into a context.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional


class ErrorContext:
    """Read-only bag of details attached to an error.

    ``add`` returns a new context, the original is never modified.
    """

    __slots__ = ("_data", "_timestamp")

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data = dict(data or {})
        self._timestamp = datetime.now()

    @classmethod
    def create(cls, **details: Any) -> "ErrorContext":
        return cls(details)

    def add(self, **details: Any) -> "ErrorContext":
        """Copy of this context with ``details`` merged in."""
        return ErrorContext({**self._data, **details})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self._data)

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"ErrorContext({self._data!r})"


class BaseError(Exception):
    """Root of the inferlib error hierarchy.

    Args:
        message: What went wrong, suitable for logs
        context: Structured details
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None
    ):
        self.message = message
        self.context = context or ErrorContext()
        self.cause = cause
        self.timestamp = datetime.now()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable summary of the error."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context.data,
            "cause": repr(self.cause) if self.cause is not None else None,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"


def _with(context: Optional[ErrorContext], **details: Any) -> ErrorContext:
    present = {key: value for key, value in details.items() if value is not None}
    context = context or ErrorContext()
    return context.add(**present) if present else context


class ConfigurationError(BaseError):
    """Raised for invalid or unknown configuration values."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None
    ):
        self.config_key = config_key
        super().__init__(message, _with(context, config_key=config_key), cause)


class ResourceError(BaseError):
    """Raised when acquiring or initialising a resource fails.

    Model weights and provider initialisation both report through this type.
    """

    def __init__(
        self,
        message: str,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None
    ):
        self.resource_id = resource_id
        self.resource_type = resource_type
        super().__init__(
            message,
            _with(context, resource_id=resource_id, resource_type=resource_type),
            cause
        )


class ProviderError(BaseError):
    """Raised when a provider operation fails.

    ``provider_name`` is the display identity of the backend (for example
    ``"Local LLaMA"`` or ``"OpenAI"``).
    """

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None
    ):
        self.provider_name = provider_name
        super().__init__(message, _with(context, provider_name=provider_name), cause)
