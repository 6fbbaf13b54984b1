"""Property wrappers applied by the runner according to its parameters."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastcheck.check.property import PropertyFailure, RawProperty, RunResult
from fastcheck.error import FastCheckError, PreconditionFailure
from fastcheck.stringify import stringify

if TYPE_CHECKING:
    from fastcheck.check.parameters import QualifiedParameters
    from fastcheck.core.rng import Random
    from fastcheck.core.stream import Stream
    from fastcheck.core.value import Value


class PropertyDecorator:
    """Forward everything to the wrapped property."""

    def __init__(self, property: RawProperty) -> None:  # noqa: A002
        self.property = property

    def is_async(self) -> bool:
        return self.property.is_async()

    def generate(self, mrng: Random, run_id: int | None = None) -> Value[Any]:
        return self.property.generate(mrng, run_id)

    def shrink(self, value: Value[Any]) -> Stream[Value[Any]]:
        return self.property.shrink(value)

    def run(self, v: Any) -> Any:
        return self.property.run(v)

    def run_before_each(self) -> Any:
        return self.property.run_before_each()

    def run_after_each(self) -> Any:
        return self.property.run_after_each()

    def _as_result(self, result: RunResult) -> Any:
        if not self.is_async():
            return result

        async def resolved() -> RunResult:
            return result

        return resolved()


def _retrieve_outcome(task: asyncio.Future[Any]) -> None:
    # The run was already reported as a timeout, its outcome is only marked as retrieved
    if not task.cancelled():
        task.exception()


class TimeoutProperty(PropertyDecorator):
    """Fail asynchronous runs lasting more than `timeout` milliseconds.

    The run is abandoned, not cancelled.
    """

    def __init__(self, property: RawProperty, timeout: float) -> None:  # noqa: A002
        super().__init__(property)
        self.timeout = timeout

    async def run(self, v: Any) -> RunResult:
        task = asyncio.ensure_future(self.property.run(v))
        done, _ = await asyncio.wait({task}, timeout=self.timeout / 1000)
        if task in done:
            return task.result()
        task.add_done_callback(_retrieve_outcome)
        msg = f"Property timeout: exceeded limit of {self.timeout:g} milliseconds"
        return PropertyFailure(FastCheckError.timeout(msg), msg)


class UnbiasedProperty(PropertyDecorator):
    def generate(self, mrng: Random, run_id: int | None = None) -> Value[Any]:
        return self.property.generate(mrng, None)


class SkipAfterProperty(PropertyDecorator):
    """Skip (or interrupt) every run started after `time_limit` milliseconds."""

    def __init__(
        self,
        property: RawProperty,  # noqa: A002
        get_time: Callable[[], float],
        time_limit: float,
        interrupt_execution: bool,
    ) -> None:
        super().__init__(property)
        self.get_time = get_time
        self.interrupt_execution = interrupt_execution
        self.skip_after_time = get_time() + time_limit

    def run(self, v: Any) -> Any:
        if self.get_time() >= self.skip_after_time:
            return self._as_result(PreconditionFailure(self.interrupt_execution))
        return self.property.run(v)


class IgnoreEqualValuesProperty(PropertyDecorator):
    """Do not run the predicate twice on values rendering the same way.

    With `skip_runs_on_equal`, repeated values count as skipped runs;
    otherwise they reuse the outcome of their first run.
    """

    def __init__(self, property: RawProperty, skip_runs_on_equal: bool) -> None:  # noqa: A002
        super().__init__(property)
        self.skip_runs_on_equal = skip_runs_on_equal
        self._covered_cases: dict[str, RunResult] = {}

    def run(self, v: Any) -> Any:
        stringified = stringify(v)
        if stringified in self._covered_cases:
            if self.skip_runs_on_equal:
                return self._as_result(PreconditionFailure())
            return self._as_result(self._covered_cases[stringified])
        out = self.property.run(v)
        if not self.is_async():
            self._covered_cases[stringified] = out
            return out

        async def record() -> RunResult:
            result = await out
            self._covered_cases[stringified] = result
            return result

        return record()


def _now_ms() -> float:
    return time.monotonic() * 1000


def decorate_property(raw_property: RawProperty, q_params: QualifiedParameters) -> RawProperty:
    """Wrap `raw_property` with the behaviours requested by `q_params`."""
    prop: Any = raw_property
    if raw_property.is_async() and q_params.timeout is not None:
        prop = TimeoutProperty(prop, q_params.timeout)
    if q_params.unbiased:
        prop = UnbiasedProperty(prop)
    if q_params.skip_all_after_time_limit is not None:
        prop = SkipAfterProperty(prop, _now_ms, q_params.skip_all_after_time_limit, False)
    if q_params.interrupt_after_time_limit is not None:
        prop = SkipAfterProperty(prop, _now_ms, q_params.interrupt_after_time_limit, True)
    if q_params.skip_equal_values:
        prop = IgnoreEqualValuesProperty(prop, True)
    if q_params.ignore_equal_values:
        prop = IgnoreEqualValuesProperty(prop, False)
    return prop
