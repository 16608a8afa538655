"""Exceptions and lookup outcomes used across the connector."""

from typing import Any, Optional


class ConnectorError(Exception):
    """Base class for connector errors."""


class TransportError(ConnectorError):
    """Raised when the network or HTTP layer fails."""


class RemoteCallError(TransportError):
    """Raised when a single remote call (CRM or store) fails."""

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.method = method
        self.url = url
        self.status_code = status_code
        detail = f"{method} {url} failed"
        if status_code is not None:
            detail += f" with status {status_code}"
        super().__init__(f"{detail}: {message}")


class InvalidArgumentError(ConnectorError, ValueError):
    """Raised before any remote call when a required argument is missing."""


def require(value: Any, message: str) -> None:
    """Raise InvalidArgumentError if value is empty."""
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise InvalidArgumentError(message)


class Lookup:
    """
    Outcome of a CRM lookup: found data, nothing found, or a failed call.

    Existing call sites collapse empty and error to None; new call sites
    can inspect the distinction.
    """

    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"

    def __init__(self, status: str, data: Any = None, error: Optional[Exception] = None):
        self.status = status
        self.data = data
        self.error = error

    @classmethod
    def ok(cls, data: Any) -> "Lookup":
        return cls(cls.OK, data=data)

    @classmethod
    def empty(cls) -> "Lookup":
        return cls(cls.EMPTY)

    @classmethod
    def failed(cls, error: Exception) -> "Lookup":
        return cls(cls.ERROR, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status == self.OK

    def or_none(self) -> Any:
        return self.data if self.is_ok else None

    def __repr__(self) -> str:
        return f"Lookup(status={self.status!r}, data={self.data!r}, error={self.error!r})"
