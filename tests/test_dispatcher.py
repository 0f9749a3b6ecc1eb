import logging

import pytest
from qeres.qeres_errors import (
    INVALID_STATEMENT, METHOD_NOT_FOUND, METHOD_ACCESS, METHOD_ERROR,
)
from qeres.qeres_runtime import (
    DATA, PATH, Dispatcher, CallableTable, FunctionProvider,
    QeresProvider, data_method, path_method,
)


class Counter(QeresProvider):
    """Counts invocations so tests can prove nothing was called."""

    def __init__(self):
        self.calls = []

    @data_method
    def echo(self, *args):
        self.calls.append(("echo", args))
        return list(args)

    @path_method
    def section(self, name):
        self.calls.append(("section", (name,)))
        return Counter()

    @data_method
    async def slow(self, value):
        self.calls.append(("slow", (value,)))
        return value.upper()

    @data_method
    def explode(self):
        self.calls.append(("explode", ()))
        raise RuntimeError("database is down")

    @data_method
    def forbidden(self):
        self.calls.append(("forbidden", ()))
        raise METHOD_ACCESS

    @data_method
    def no_args(self):
        self.calls.append(("no_args", ()))
        return "nothing"


@pytest.fixture
def provider():
    return Counter()


@pytest.fixture
def dispatcher(provider):
    return Dispatcher(provider)


@pytest.mark.asyncio
async def test_unknown_callable_in_empty_table():
    d = Dispatcher(FunctionProvider())
    assert len(d.funcs) == 0
    assert await d.evaluate_statement("x()", DATA, {}) is METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_invalid_statement(dispatcher, provider):
    assert await dispatcher.evaluate_statement("just text", DATA, {}) is INVALID_STATEMENT
    assert await dispatcher.evaluate_statement(42, DATA, {}) is INVALID_STATEMENT
    assert provider.calls == []


@pytest.mark.asyncio
async def test_data_call_passes_string_arguments(dispatcher):
    assert await dispatcher.evaluate_statement("echo(1, two , 3)", DATA, {}) == ["1", "two", "3"]


@pytest.mark.asyncio
async def test_empty_argument_list_calls_without_arguments(dispatcher):
    assert await dispatcher.evaluate_statement("no_args()", DATA) == "nothing"


@pytest.mark.asyncio
async def test_async_callables_are_awaited(dispatcher):
    assert await dispatcher.evaluate_statement("slow(abc)", DATA, {}) == "ABC"


@pytest.mark.asyncio
async def test_path_only_callable_is_rejected_in_data_mode(dispatcher, provider):
    assert await dispatcher.evaluate_statement("section(a)", DATA, {}) is METHOD_ACCESS
    assert provider.calls == []
    result = await dispatcher.evaluate_statement("section(a)", PATH, {})
    assert isinstance(result, Counter)


@pytest.mark.asyncio
async def test_data_only_callable_is_rejected_in_path_mode(dispatcher):
    assert await dispatcher.evaluate_statement("echo(a)", PATH, {}) is METHOD_ACCESS


@pytest.mark.asyncio
async def test_variable_substitution(dispatcher):
    ctx = {"user": {"id": 7}, "n": 3}
    assert await dispatcher.evaluate_statement("echo(${user}, ${n}, x)", DATA, ctx) == [{"id": 7}, 3, "x"]


@pytest.mark.asyncio
async def test_unbound_variable_is_none(dispatcher):
    assert await dispatcher.evaluate_statement("echo(${missing})", DATA, {}) == [None]


@pytest.mark.asyncio
async def test_partial_interpolation_is_not_substituted(dispatcher):
    assert await dispatcher.evaluate_statement("echo(id-${n})", DATA, {"n": 3}) == ["id-${n}"]


@pytest.mark.asyncio
async def test_escaped_variable_reference_stays_literal(dispatcher):
    assert await dispatcher.evaluate_statement("echo(\\${n})", DATA, {"n": 3}) == ["${n}"]


@pytest.mark.asyncio
async def test_opaque_failure_becomes_method_error_and_is_logged(dispatcher, caplog):
    with caplog.at_level(logging.ERROR, logger="qeres"):
        result = await dispatcher.evaluate_statement("explode()", DATA, {})
    assert result is METHOD_ERROR
    assert "database is down" in caplog.text
    # The failure detail never reaches the caller
    assert "database is down" not in result.message


@pytest.mark.asyncio
async def test_raised_error_value_propagates_unchanged(dispatcher):
    assert await dispatcher.evaluate_statement("forbidden()", DATA, {}) is METHOD_ACCESS


@pytest.mark.asyncio
async def test_poisoned_dispatcher_returns_the_same_instance(provider):
    d = Dispatcher(METHOD_NOT_FOUND)
    assert d.poisoned is METHOD_NOT_FOUND
    for stmt in ("echo(1)", "not a statement", "section(a)", "x()"):
        for mode in (DATA, PATH):
            assert await d.evaluate_statement(stmt, mode, {}) is METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_spawn_of_poisoned_scope_is_poisoned():
    child = Dispatcher(METHOD_ERROR).spawn(METHOD_ERROR)
    assert child.poisoned is METHOD_ERROR


@pytest.mark.asyncio
async def test_transform_overrides_defined_results(dispatcher):
    def to_int(arg):
        if isinstance(arg, str) and arg.isdigit():
            return int(arg)
        return None

    d = Dispatcher(Counter(), transform=to_int)
    assert await d.evaluate_statement("echo(1, a, 22)", DATA, {}) == [1, "a", 22]


@pytest.mark.asyncio
async def test_transform_sees_substituted_values():
    seen = []

    def record(arg):
        seen.append(arg)

    d = Dispatcher(Counter(), transform=record)
    assert await d.evaluate_statement("echo(${v}, b)", DATA, {"v": 10}) == [10, "b"]
    assert seen == [10, "b"]


@pytest.mark.asyncio
async def test_async_transform():
    async def shout(arg):
        return arg.upper()

    d = Dispatcher(Counter(), transform=shout)
    assert await d.evaluate_statement("echo(a, b)", DATA, {}) == ["A", "B"]


@pytest.mark.asyncio
async def test_transform_failures():
    provider = Counter()

    def reject(arg):
        raise METHOD_ACCESS

    def crash(arg):
        raise ValueError("bad argument")

    assert await Dispatcher(provider, transform=reject).evaluate_statement("echo(a)", DATA, {}) is METHOD_ACCESS
    assert await Dispatcher(provider, transform=crash).evaluate_statement("echo(a)", DATA, {}) is METHOD_ERROR
    assert provider.calls == []


@pytest.mark.asyncio
async def test_dispatcher_over_a_callable_table_builder():
    table = CallableTable().register("ping", lambda: "pong", data=True)

    class TableProvider:
        def list_callables(self):
            return {name: table[name] for name in table}

    d = Dispatcher(TableProvider())
    assert await d.evaluate_statement("ping()", DATA, {}) == "pong"
    assert await d.evaluate_statement("ping()", PATH, {}) is METHOD_ACCESS
