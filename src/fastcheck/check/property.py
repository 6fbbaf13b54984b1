"""Properties: arbitraries bound to a predicate."""

from __future__ import annotations

import inspect
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Self

from fastcheck.arbitrary.tuple import tuple_
from fastcheck.check.parameters import read_configure_global
from fastcheck.core.arbitrary import Arbitrary, is_arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError, PreconditionFailure

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

RETURNED_FALSE_MESSAGE = "Property failed by returning false"

# Stands for a None context on generated values: a None context marks user examples
_UNDEFINED_CONTEXT: Any = object()


@dataclass(frozen=True)
class PropertyFailure:
    """Outcome of a predicate run that failed."""

    error: BaseException
    error_message: str


RunResult = PreconditionFailure | PropertyFailure | None
HookFunction = Callable[[], Any]


class RawProperty(Protocol):
    """What the runner needs from a property."""

    def is_async(self) -> bool: ...

    def generate(self, mrng: Random, run_id: int | None = None) -> Value[Any]: ...

    def shrink(self, value: Value[Any]) -> Stream[Value[Any]]: ...

    def run(self, v: Any) -> RunResult | Awaitable[RunResult]: ...

    def run_before_each(self) -> Any: ...

    def run_after_each(self) -> Any: ...


def run_id_to_frequency(run_id: int) -> int:
    """Bias factor of the n-th run: edge values get rarer as runs go."""
    return 2 + math.floor(math.log10(run_id + 1))


def no_undefined_as_context(value: Value[Any]) -> Value[Any]:
    if value.context is not None:
        return value
    if value.has_to_be_cloned:
        return Value(value.value_, _UNDEFINED_CONTEXT, lambda: value.value)
    return Value(value.value_, _UNDEFINED_CONTEXT)


def failure_from_error(err: Exception) -> PropertyFailure:
    return PropertyFailure(err, f"{type(err).__name__}: {err}")


def _failure_from_output(output: Any) -> PropertyFailure | None:
    if output is None or output is True:
        return None
    return PropertyFailure(AssertionError(RETURNED_FALSE_MESSAGE), RETURNED_FALSE_MESSAGE)


def _dummy_hook() -> None:
    return None


class _BaseProperty:
    def __init__(self, arb: Arbitrary[Any], predicate: Callable[[Any], Any]) -> None:
        self.arb = arb
        self.predicate = predicate
        self._before_each_hook: HookFunction = _dummy_hook
        self._after_each_hook: HookFunction = _dummy_hook

    def generate(self, mrng: Random, run_id: int | None = None) -> Value[Any]:
        bias = run_id_to_frequency(run_id) if run_id is not None else None
        return no_undefined_as_context(self.arb.generate(mrng, bias))

    def shrink(self, value: Value[Any]) -> Stream[Value[Any]]:
        if value.context is None and not self.arb.can_shrink_without_context(value.value_):
            # Only values coming from user examples come without context
            return Stream.nil()
        context = value.context if value.context is not _UNDEFINED_CONTEXT else None
        return self.arb.shrink(value.value_, context).map(no_undefined_as_context)

    def before_each(self, hook_function: Callable[[HookFunction], Any]) -> Self:
        """Run `hook_function` before each run; it receives the previous hook to call."""
        previous = self._before_each_hook
        self._before_each_hook = lambda: hook_function(previous)
        return self

    def after_each(self, hook_function: Callable[[HookFunction], Any]) -> Self:
        """Run `hook_function` after each run; it receives the previous hook to call."""
        previous = self._after_each_hook
        self._after_each_hook = lambda: hook_function(previous)
        return self


class Property(_BaseProperty):
    """Synchronous property.

    The predicate passes when it returns None or True, fails when it
    returns anything else or raises. Raising PreconditionFailure (see
    `pre`) discards the run.
    """

    def __init__(self, arb: Arbitrary[Any], predicate: Callable[[Any], Any]) -> None:
        super().__init__(arb, predicate)
        global_parameters = read_configure_global()
        for key in ("async_before_each", "async_after_each"):
            if global_parameters.get(key) is not None:
                msg = f'"{key}" can\'t be set when running synchronous properties'
                raise FastCheckError.invalid_configuration(msg)
        self._before_each_hook = global_parameters.get("before_each") or _dummy_hook
        self._after_each_hook = global_parameters.get("after_each") or _dummy_hook

    def is_async(self) -> bool:
        return False

    def run_before_each(self) -> None:
        self._before_each_hook()

    def run_after_each(self) -> None:
        self._after_each_hook()

    def run(self, v: Any) -> RunResult:
        try:
            output = self.predicate(v)
        except PreconditionFailure as err:
            return err
        except Exception as err:  # noqa: BLE001
            return failure_from_error(err)
        return _failure_from_output(output)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AsyncProperty(_BaseProperty):
    """Asynchronous property: the predicate is a coroutine function.

    Hooks may be plain or coroutine functions.
    """

    def __init__(self, arb: Arbitrary[Any], predicate: Callable[[Any], Awaitable[Any]]) -> None:
        super().__init__(arb, predicate)
        global_parameters = read_configure_global()
        before_each = global_parameters.get("before_each")
        after_each = global_parameters.get("after_each")
        async_before_each = global_parameters.get("async_before_each")
        async_after_each = global_parameters.get("async_after_each")
        if before_each is not None and async_before_each is not None:
            msg = 'Global "async_before_each" and "before_each" parameters can\'t be set at the same time'
            raise FastCheckError.invalid_configuration(msg)
        if after_each is not None and async_after_each is not None:
            msg = 'Global "async_after_each" and "after_each" parameters can\'t be set at the same time'
            raise FastCheckError.invalid_configuration(msg)
        self._before_each_hook = async_before_each or before_each or _dummy_hook
        self._after_each_hook = async_after_each or after_each or _dummy_hook

    def is_async(self) -> bool:
        return True

    async def run_before_each(self) -> None:
        await _maybe_await(self._before_each_hook())

    async def run_after_each(self) -> None:
        await _maybe_await(self._after_each_hook())

    def before_each(self, hook_function: Callable[[HookFunction], Any]) -> Self:
        previous = self._before_each_hook

        async def hook() -> None:
            await _maybe_await(hook_function(previous))

        self._before_each_hook = hook
        return self

    def after_each(self, hook_function: Callable[[HookFunction], Any]) -> Self:
        previous = self._after_each_hook

        async def hook() -> None:
            await _maybe_await(hook_function(previous))

        self._after_each_hook = hook
        return self

    async def run(self, v: Any) -> RunResult:
        try:
            output = await self.predicate(v)
        except PreconditionFailure as err:
            return err
        except Exception as err:  # noqa: BLE001
            return failure_from_error(err)
        return _failure_from_output(output)


def _split_arguments(args: tuple[Any, ...], name: str) -> tuple[list[Arbitrary[Any]], Callable[..., Any]]:
    if not args or not callable(args[-1]) or is_arbitrary(args[-1]):
        msg = f"{name} expects arbitraries followed by a predicate"
        raise FastCheckError.invalid_configuration(msg)
    arbs = list(args[:-1])
    for index, arb in enumerate(arbs):
        if not is_arbitrary(arb):
            msg = f"Invalid parameter encountered at index {index}: expecting an Arbitrary"
            raise FastCheckError.invalid_configuration(msg)
    return arbs, args[-1]


def property_(*args: Any) -> Property:
    """Bind arbitraries to a synchronous predicate.

    The last argument is the predicate, called with one value per arbitrary:

        property_(nat(), nat(), lambda a, b: a + b >= a)
    """
    arbs, predicate = _split_arguments(args, "property_")
    return Property(tuple_(*arbs), lambda t: predicate(*t))


def async_property(*args: Any) -> AsyncProperty:
    """Same as `property_` for a coroutine function predicate."""
    arbs, predicate = _split_arguments(args, "async_property")
    return AsyncProperty(tuple_(*arbs), lambda t: predicate(*t))


def pre(expected: bool) -> None:
    """Discard the current run unless `expected` holds."""
    if not expected:
        raise PreconditionFailure
