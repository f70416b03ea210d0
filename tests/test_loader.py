import asyncio

import pytest

from dircli.context import ErrorContext, ExecutionContext, MiddlewareContext
from dircli.loader import HandlerLoader, normalize
from dircli.models import HandlerExecutionError
from dircli.registry import get_definition
from dircli.scanner import HandlerEntry


@pytest.mark.asyncio
async def test_normalize_value():
    call = normalize({"a": 1})
    assert await call(ExecutionContext()) == {"a": 1}


@pytest.mark.asyncio
async def test_normalize_factories():
    context = ExecutionContext(command_path="x")

    def no_argument():
        return 1

    def with_context(ctx):
        return ctx.command_path

    async def coroutine(ctx):
        return ctx.command_path * 2

    assert await normalize(no_argument)(context) == 1
    assert await normalize(with_context)(context) == "x"
    assert await normalize(coroutine)(context) == "xx"


def test_normalize_requires_callable():
    with pytest.raises(TypeError, match="expected a callable"):
        normalize("text", callable_required=True)


@pytest.mark.asyncio
async def test_load_and_memoize(make_app, mocker):
    app = make_app({"a/command.py": "def command(ctx):\n    return 7\n", "a/help.py": 'help = "Short"\n'})
    loader = HandlerLoader()
    spy = mocker.spy(loader, "_import")
    command = HandlerEntry(app / "a" / "command.py", get_definition("command"), "a")

    first, second = await asyncio.gather(loader.load(command), loader.load(command))
    assert first.value is second.value
    assert spy.call_count == 1
    assert first.name == "command"
    assert await first.call(ExecutionContext()) == 7

    loaded = await loader.preload([command, HandlerEntry(app / "a" / "help.py", get_definition("help"), "a")])
    assert set(loaded) == {"command", "help"}
    assert await loaded["help"].call(ExecutionContext()) == "Short"
    assert spy.call_count == 2


@pytest.mark.asyncio
async def test_load_errors(make_app):
    app = make_app(
        {
            "bad/command.py": "raise RuntimeError('at import')\n",
            "text/command.py": 'command = "not callable"\n',
        }
    )
    loader = HandlerLoader()
    with pytest.raises(HandlerExecutionError, match="at import"):
        await loader.load(HandlerEntry(app / "bad" / "command.py", get_definition("command"), "bad"))
    with pytest.raises(HandlerExecutionError, match="expected a callable"):
        await loader.load(HandlerEntry(app / "text" / "command.py", get_definition("command"), "text"))


def test_context_derivation():
    base = ExecutionContext(args=("a",), options={"x": True}, command_path="cmd")
    derived = base.with_(validated_data={"n": 1})
    assert base.data == {}
    assert derived.data == {"n": 1}
    assert derived.args == ("a",)
    with pytest.raises(AttributeError):
        derived.args = ()  # type: ignore[misc]

    error = ValueError("x")
    error_context = ErrorContext.from_context(derived, error)
    assert error_context.error is error
    assert error_context.data == {"n": 1}
    assert error_context.issues == ()

    middleware_context = MiddlewareContext.from_context(derived, ("cmd",))
    assert middleware_context.command == ("cmd",)
    assert middleware_context.command_path == "cmd"
