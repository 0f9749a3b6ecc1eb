# qeres_runtime.py

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Tuple, Union

from qeres.qeres_errors import (
    QeresError, INVALID_STATEMENT, METHOD_NOT_FOUND, METHOD_ACCESS, METHOD_ERROR, is_error,
)
from qeres.qeres_parser import (
    parse_statement, variable_reference, unescape_literal,
    declaration_name, destructuring_paths,
)

logger = logging.getLogger(__name__)

Mode = Literal["data", "path"]
DATA: Mode = "data"
PATH: Mode = "path"

Transform = Callable[[Any], Any]

# ===================================================================
# 1. Capability flags
# ===================================================================

def qeres_method(func=None, *, data: bool = False, path: bool = False):
    """Mark a function or method as reachable from statements.

    `data` allows it as a leaf value statement, `path` allows it as the key of
    a nested scope. Flags accumulate when decorators are stacked.
    """
    def mark(f):
        target = getattr(f, "__func__", f)
        target._qeres_data = getattr(target, "_qeres_data", False) or data
        target._qeres_path = getattr(target, "_qeres_path", False) or path
        return f
    if func is not None:
        return mark(func)
    return mark


def data_method(func):
    """A decorator to expose a method as a data (leaf) statement."""
    return qeres_method(func, data=True)


def path_method(func):
    """A decorator to expose a method as a path (nested scope) statement."""
    return qeres_method(func, path=True)


def _flags_of(member) -> Tuple[bool, bool]:
    # Decorator may mark the bound method or the underlying function
    data = getattr(member, "_qeres_data", False)
    path = getattr(member, "_qeres_path", False)
    func = getattr(member, "__func__", None)
    if func is not None:
        data = data or getattr(func, "_qeres_data", False)
        path = path or getattr(func, "_qeres_path", False)
    return bool(data), bool(path)


# ===================================================================
# 2. Callables and the callable table
# ===================================================================

@dataclass
class QeresCallable:
    """A named callable together with its access flags."""
    name: str
    func: Callable[..., Any]
    data_eligible: bool = False
    path_eligible: bool = False

    @classmethod
    def from_member(cls, name: str, member) -> 'QeresCallable':
        data, path = _flags_of(member)
        return cls(name=name, func=member, data_eligible=data, path_eligible=path)

    def allows(self, mode: Mode) -> bool:
        if mode == DATA:
            return self.data_eligible
        if mode == PATH:
            return self.path_eligible
        raise ValueError(f"Unknown access mode: {mode!r}")

    async def __call__(self, *args):
        func = self.func
        if inspect.iscoroutinefunction(func):
            return await func(*args)
        result = func(*args)
        if inspect.isawaitable(result):
            return await result
        return result


class CallableTable:
    """Name -> QeresCallable mapping with access enforcement."""

    def __init__(self, callables: Optional[Mapping] = None):
        self._callables: Dict[str, QeresCallable] = {}
        for name, item in (callables or {}).items():
            if not isinstance(item, QeresCallable):
                item = QeresCallable.from_member(name, item)
            self._callables[name] = item

    @classmethod
    def from_provider(cls, provider) -> 'CallableTable':
        # A poisoned scope keeps an empty table
        if is_error(provider):
            return cls()
        return cls(provider.list_callables())

    def register(self, name: str, func: Callable[..., Any], *, data: bool = False, path: bool = False) -> 'CallableTable':
        """Register `func` under `name` with explicit access flags."""
        self._callables[name] = QeresCallable(name=name, func=func, data_eligible=data, path_eligible=path)
        return self

    def resolve(self, name: str, mode: Mode) -> Union[QeresCallable, QeresError]:
        target = self._callables.get(name)
        if target is None:
            return METHOD_NOT_FOUND
        if not target.allows(mode):
            return METHOD_ACCESS
        return target

    def __contains__(self, name) -> bool:
        return name in self._callables

    def __getitem__(self, name: str) -> QeresCallable:
        return self._callables[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._callables)

    def __len__(self) -> int:
        return len(self._callables)

    def __repr__(self):
        return f"CallableTable({sorted(self._callables)!r})"


# ===================================================================
# 3. Capability providers
# ===================================================================

def _static_member(obj, name):
    """Fetch `name` from `obj` without running properties or other data descriptors."""
    static = inspect.getattr_static(obj, name)
    if isinstance(static, (staticmethod, classmethod)) or inspect.isroutine(static):
        return getattr(obj, name)
    if inspect.isdatadescriptor(static):
        return None
    return static


def collect_callables(obj, skip: frozenset = frozenset()) -> Dict[str, QeresCallable]:
    """Enumerate the public callables of `obj` together with their flags."""
    found: Dict[str, QeresCallable] = {}
    for name in dir(obj):
        if name.startswith('_') or name in skip:
            continue
        try:
            member = _static_member(obj, name)
        except AttributeError:
            # Listed by a custom __dir__ but not actually present
            continue
        if member is None or not callable(member) or inspect.isclass(member):
            continue
        found[name] = QeresCallable.from_member(name, member)
    return found


class QeresProvider:
    """Base class for objects exposing callables to Qeres statements.

    Subclasses mark their methods with `data_method`, `path_method` or
    `qeres_method`. Unmarked public methods are listed without flags, so
    statements naming them get METHOD_ACCESS rather than METHOD_NOT_FOUND.
    Properties are never evaluated while listing.
    """

    def list_callables(self) -> Mapping:
        return collect_callables(self, skip=_PROVIDER_API)


_PROVIDER_API = frozenset(name for name in dir(QeresProvider) if not name.startswith('_'))


class ObjectProvider(QeresProvider):
    """Adapts an arbitrary object (e.g. the value returned by a path statement)."""

    def __init__(self, obj):
        self.obj = obj

    def list_callables(self) -> Mapping:
        return collect_callables(self.obj)

    def __repr__(self):
        return f"ObjectProvider({self.obj!r})"


class FunctionProvider(QeresProvider):
    """Exposes a set of plain functions, typically the root functions of an API.

    Positional functions are listed under their `__name__`; `named` maps any
    other names (including ones like "self") to functions.
    """

    def __init__(self, *funcs, named: Optional[Mapping] = None):
        self.funcs: Dict[str, Callable[..., Any]] = {}
        for func in funcs:
            self.funcs[func.__name__] = func
        for name, func in (named or {}).items():
            self.funcs[str(name)] = func

    def list_callables(self) -> Mapping:
        return {
            name: QeresCallable.from_member(name, func)
            for name, func in self.funcs.items()
            if callable(func)
        }


def as_provider(value) -> QeresProvider:
    """Pick the provider adapter matching `value`."""
    if isinstance(value, QeresProvider):
        return value
    if callable(getattr(type(value), "list_callables", None)):
        return value
    if isinstance(value, Mapping):
        return FunctionProvider(named=value)
    return ObjectProvider(value)


# ===================================================================
# 4. The scoped dispatcher
# ===================================================================

def extract_path(value: Any, path: Tuple[str, ...]) -> Any:
    """Walk dotted segments into mappings, then attributes; missing yields None."""
    for segment in path:
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(segment)
        else:
            value = getattr(value, segment, None)
    return value


def destructure(value: Any, paths: List[Tuple[str, ...]]) -> Dict[str, Any]:
    if is_error(value):
        return {path[-1]: value for path in paths}
    return {path[-1]: extract_path(value, path) for path in paths}


class Dispatcher:
    """Evaluates the statements of one scope against its provider's callables.

    A dispatcher bound to a QeresError is poisoned: every statement evaluated
    in it (and in the scopes below it) yields that same error. A provider
    whose callables cannot be listed poisons the scope with METHOD_ERROR.
    """

    def __init__(self, provider: Any, *, transform: Optional[Transform] = None):
        self.transform = transform
        self.provider = provider
        self.poisoned: Optional[QeresError] = None
        self.funcs = CallableTable()
        if is_error(provider):
            self.poisoned = provider
            logger.debug("Scope poisoned by %r", provider)
            return
        try:
            self.provider = as_provider(provider)
            self.funcs = CallableTable.from_provider(self.provider)
        except Exception:
            logger.exception("Cannot list the callables of %r", provider)
            self.poisoned = METHOD_ERROR
            return
        logger.debug("Scope bound to %r with %d callables", self.provider, len(self.funcs))

    def spawn(self, provider: Any) -> 'Dispatcher':
        """A child dispatcher for a nested scope, sharing the transform hook."""
        return Dispatcher(provider, transform=self.transform)

    def _substitute(self, arg: str, context: Mapping) -> Any:
        name = variable_reference(arg)
        if name is not None:
            return context.get(name)
        return unescape_literal(arg)

    async def _apply_transform(self, arg: Any) -> Any:
        result = self.transform(arg)
        if inspect.isawaitable(result):
            result = await result
        return arg if result is None else result

    async def evaluate_statement(self, statement: Any, mode: Mode, context: Optional[Mapping] = None) -> Any:
        """Evaluate one statement; errors are returned, never raised."""
        if self.poisoned is not None:
            return self.poisoned

        call = parse_statement(statement)
        if call is None:
            logger.debug("Invalid statement %r", statement)
            return INVALID_STATEMENT

        target = self.funcs.resolve(call.name, mode)
        if is_error(target):
            logger.debug("Cannot resolve %r in %s mode: %s", call.name, mode, target.kind.name)
            return target

        context = context or {}
        args = [self._substitute(arg, context) for arg in call.args]
        logger.debug("Calling %s%r in %s mode", call.name, tuple(args), mode)
        try:
            if self.transform is not None:
                args = [await self._apply_transform(arg) for arg in args]
            return await target(*args)
        except QeresError as e:
            return e
        except Exception:
            logger.exception("Method %r failed while evaluating %r", call.name, statement)
            return METHOD_ERROR

    async def handle_request(self, request: Mapping, inherited_context: Optional[Mapping] = None) -> Dict[Any, Any]:
        """Walk a request node in order and build its (flattened) result node."""
        if not isinstance(request, Mapping):
            raise TypeError(f"A request must be a mapping, not {type(request).__name__}")

        inherited = dict(inherited_context or {})
        local: Dict[Any, Any] = {}
        results: Dict[Any, Any] = {}

        for key, value in request.items():
            context = {**inherited, **local}

            name = declaration_name(key)
            if name is not None:
                local[name] = value
                continue

            match value:
                case str():
                    produced = await self.evaluate_statement(value, DATA, context)
                    paths = destructuring_paths(key)
                    bound = {key: produced} if paths is None else destructure(produced, paths)
                case Mapping():
                    provider = await self.evaluate_statement(key, PATH, context)
                    bound = await self.spawn(provider).handle_request(value, context)
                case _:
                    bound = {key: INVALID_STATEMENT}

            results.update(bound)
            local.update(bound)

        return results


# ===================================================================
# 5. Request handling
# ===================================================================

class Qeres:
    """Entry point: answers request trees against a root provider."""

    def __init__(self, root: Any, *, transform: Optional[Transform] = None):
        self.root = root
        self.transform = transform

    @classmethod
    def from_functions(cls, *funcs, transform: Optional[Transform] = None) -> 'Qeres':
        return cls(FunctionProvider(*funcs), transform=transform)

    async def handle_request(self, request: Mapping) -> Dict[Any, Any]:
        # A fresh dispatcher per request; nothing is cached between requests
        dispatcher = Dispatcher(self.root, transform=self.transform)
        return await dispatcher.handle_request(request)

    def run(self, request: Mapping) -> Dict[Any, Any]:
        """Synchronous wrapper around `handle_request`."""
        return asyncio.run(self.handle_request(request))


def find_errors(results: Mapping) -> Dict[Any, QeresError]:
    return {k: v for k, v in results.items() if is_error(v)}


__all__ = [
    "Mode", "DATA", "PATH",
    "qeres_method", "data_method", "path_method",
    "QeresCallable", "CallableTable",
    "QeresProvider", "ObjectProvider", "FunctionProvider", "as_provider", "collect_callables",
    "Dispatcher", "Qeres",
    "extract_path", "destructure", "find_errors",
]
