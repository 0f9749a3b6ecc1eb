"""Qeres - answer declarative request trees of call-shaped statements."""
__version__ = "0.1.0"

from qeres.qeres_errors import (
    ErrorKind, QeresError, QeresErrors,
    INVALID_STATEMENT, METHOD_NOT_FOUND, METHOD_ACCESS, METHOD_ERROR,
)
from qeres.qeres_parser import ParsedCall, parse_statement
from qeres.qeres_runtime import (
    DATA, PATH,
    qeres_method, data_method, path_method,
    QeresCallable, CallableTable,
    QeresProvider, ObjectProvider, FunctionProvider, as_provider,
    Dispatcher, Qeres,
)

__all__ = [
    "ErrorKind", "QeresError", "QeresErrors",
    "INVALID_STATEMENT", "METHOD_NOT_FOUND", "METHOD_ACCESS", "METHOD_ERROR",
    "ParsedCall", "parse_statement",
    "DATA", "PATH",
    "qeres_method", "data_method", "path_method",
    "QeresCallable", "CallableTable",
    "QeresProvider", "ObjectProvider", "FunctionProvider", "as_provider",
    "Dispatcher", "Qeres",
]
