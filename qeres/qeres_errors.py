"""
The closed set of error values produced while dispatching a request.

Errors are ordinary values inside a result tree. A `QeresError` is still an
`Exception` so that callables (and parameter transforms) can raise one of the
canonical instances and have it reported unchanged.
"""

from enum import Enum
from typing import Any, Dict


class ErrorKind(Enum):
    INVALID_STATEMENT = 400
    METHOD_NOT_FOUND = 404
    METHOD_ACCESS = 403
    METHOD_ERROR = 500

    @property
    def status(self) -> int:
        return self.value


class QeresError(Exception):
    """An error value with a human readable message and an HTTP-like status."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status(self) -> int:
        return self.kind.status

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "status": self.status}

    def __repr__(self):
        return f"QeresError({self.kind.name}, {self.message!r})"


INVALID_STATEMENT = QeresError(
    ErrorKind.INVALID_STATEMENT,
    "Invalid statement: The statement should be a call for a method",
)
METHOD_NOT_FOUND = QeresError(ErrorKind.METHOD_NOT_FOUND, "The method is not found")
METHOD_ACCESS = QeresError(
    ErrorKind.METHOD_ACCESS,
    "The method can't be accessed. You may be able to access this method in a different way.",
)
METHOD_ERROR = QeresError(
    ErrorKind.METHOD_ERROR,
    "The method is accessed and found, but it throwed an unknown error",
)


class QeresErrors:
    """Namespace holding the canonical error instances."""
    INVALID_STATEMENT = INVALID_STATEMENT
    METHOD_NOT_FOUND = METHOD_NOT_FOUND
    METHOD_ACCESS = METHOD_ACCESS
    METHOD_ERROR = METHOD_ERROR


def is_error(value: Any) -> bool:
    return isinstance(value, QeresError)


__all__ = [
    "ErrorKind",
    "QeresError",
    "QeresErrors",
    "INVALID_STATEMENT",
    "METHOD_NOT_FOUND",
    "METHOD_ACCESS",
    "METHOD_ERROR",
    "is_error",
]
