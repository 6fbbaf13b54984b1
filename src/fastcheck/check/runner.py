"""Property runner: `check`, `assert_property`, `sample` and `statistics`.

Values are drawn one per run. As soon as one of them fails, the runner
switches to its shrinks: it executes them one by one and restarts from the
shrinks of the first one failing again, until none fails. The indexes of
the failing values form the replay path of the counterexample.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from fastcheck.check.decorators import UnbiasedProperty, decorate_property
from fastcheck.check.execution import RunDetails, RunExecution
from fastcheck.check.parameters import (
    Parameters,
    QualifiedParameters,
    VerbosityLevel,
    merge_with_global,
)
from fastcheck.check.property import Property, RawProperty
from fastcheck.check.report import async_report_run_details, report_run_details
from fastcheck.core.arbitrary import Arbitrary, is_arbitrary
from fastcheck.core.rng import RandomFactory, run_randoms
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError, PreconditionFailure

if TYPE_CHECKING:
    from fastcheck.check.property import RunResult

logger = logging.getLogger(__name__)

ShrinkFunction = Callable[[Value[Any]], Stream[Value[Any]]]


def lazy_toss(
    generator: RawProperty,
    seed: int,
    random_type: RandomFactory,
    examples: Sequence[Any],
) -> Iterator[Callable[[], Value[Any]]]:
    """Thunks producing the values of successive runs, examples first.

    A thunk can be skipped without generating its value: the random source
    of a run only depends on the seed and on the run index.
    """
    for example in examples:
        yield lambda example=example: Value(example, None)
    for run_id, mrng in enumerate(run_randoms(seed, random_type)):
        yield lambda mrng=mrng, run_id=run_id: generator.generate(mrng, run_id)


def toss(
    generator: RawProperty,
    seed: int,
    random_type: RandomFactory,
    examples: Sequence[Any],
) -> Iterator[Value[Any]]:
    for thunk in lazy_toss(generator, seed, random_type, examples):
        yield thunk()


def path_walk(
    path: str, initial_values: Stream[Callable[[], Value[Any]]], shrink: ShrinkFunction
) -> Stream[Value[Any]]:
    """Values to run in order to replay `path`.

    Raises:
        ConfigurationError: When the path does not lead to any value
    """
    try:
        segments = [int(segment) for segment in path.split(":")]
    except ValueError as err:
        msg = f"Unable to replay, got invalid path={path}"
        raise FastCheckError.invalid_configuration(msg) from err
    values = initial_values.drop(segments[0]).map(lambda thunk: thunk())
    for segment in segments[1:]:
        value_to_shrink = values.get_nth_or_last(0)
        if value_to_shrink is None:
            msg = f"Unable to replay, got wrong path={path}"
            raise FastCheckError.invalid_configuration(msg)
        values = shrink(value_to_shrink).drop(segment)
    return values


class SourceValuesIterator:
    """Bound the number of values pulled before the first failure.

    Every skipped value gives room for one more value, within the limit of
    `remaining_skips`. A negative `max_initial_iterations` means no limit.
    """

    def __init__(
        self, initial_values: Iterator[Value[Any]], max_initial_iterations: int, remaining_skips: int
    ) -> None:
        self._initial_values = initial_values
        self._max_initial_iterations = max_initial_iterations
        self._remaining_skips = remaining_skips

    def __iter__(self) -> SourceValuesIterator:
        return self

    def __next__(self) -> Value[Any]:
        self._max_initial_iterations -= 1
        if self._max_initial_iterations != -1 and self._remaining_skips >= 0:
            return next(self._initial_values)
        raise StopIteration

    def skipped_one(self) -> None:
        self._remaining_skips -= 1
        self._max_initial_iterations += 1


class RunnerIterator:
    """Yield the values to execute; `handle_result` decides what comes next."""

    def __init__(
        self,
        source_values: SourceValuesIterator,
        shrink: ShrinkFunction,
        verbose: VerbosityLevel,
        interrupted_as_failure: bool,
    ) -> None:
        self.run_execution = RunExecution(verbose, interrupted_as_failure)
        self._source_values = source_values
        self._shrink = shrink
        self._next_values: Iterator[Value[Any]] = source_values
        self._current_idx = -1
        self._current_value: Value[Any] | None = None

    def __iter__(self) -> RunnerIterator:
        return self

    def __next__(self) -> Any:
        next_value = next(self._next_values)
        if self.run_execution.interrupted:
            raise StopIteration
        self._current_value = next_value
        self._current_idx += 1
        return next_value.value_

    def handle_result(self, result: RunResult) -> None:
        if self._current_value is None:
            msg = "handle_result called before any value was produced"
            raise FastCheckError.contract_violation(msg)
        current = self._current_value
        if isinstance(result, PreconditionFailure):
            if result.interrupt_execution:
                logger.debug("Run %d interrupted", self._current_idx)
                self.run_execution.interrupt()
            else:
                self.run_execution.skip(current.value_)
                self._source_values.skipped_one()
        elif result is not None:
            logger.debug("Run %d failed: %s", self._current_idx, result.error_message)
            self.run_execution.fail(current.value_, self._current_idx, result)
            self._current_idx = -1
            self._next_values = iter(self._shrink(current))
        else:
            self.run_execution.success(current.value_)


def run_it(
    prop: RawProperty,
    shrink: ShrinkFunction,
    source_values: SourceValuesIterator,
    verbose: VerbosityLevel,
    interrupted_as_failure: bool,
) -> RunExecution:
    runner = RunnerIterator(source_values, shrink, verbose, interrupted_as_failure)
    for v in runner:
        prop.run_before_each()
        out = prop.run(v)
        prop.run_after_each()
        runner.handle_result(out)
    return runner.run_execution


async def async_run_it(
    prop: RawProperty,
    shrink: ShrinkFunction,
    source_values: SourceValuesIterator,
    verbose: VerbosityLevel,
    interrupted_as_failure: bool,
) -> RunExecution:
    runner = RunnerIterator(source_values, shrink, verbose, interrupted_as_failure)
    for v in runner:
        await prop.run_before_each()
        out = await prop.run(v)
        await prop.run_after_each()
        runner.handle_result(out)
    return runner.run_execution


def _log_outcome(details: RunDetails) -> RunDetails:
    if details.counterexample_path is None and details.failed:
        if details.interrupted:
            logger.warning("Property interrupted after %d runs (seed=%s)", details.num_runs, details.seed)
        else:
            logger.warning(
                "Property gave up after %d skipped runs (seed=%s)", details.num_skips, details.seed
            )
    return details


def _check_property(raw_property: Any) -> RawProperty:
    if raw_property is None or not callable(getattr(raw_property, "generate", None)):
        msg = "Invalid property encountered, please use a valid property"
        raise FastCheckError.invalid_configuration(msg)
    if not callable(getattr(raw_property, "run", None)):
        msg = "Invalid property encountered, please use a valid property not an arbitrary"
        raise FastCheckError.invalid_configuration(msg)
    return raw_property


def check(
    raw_property: RawProperty,
    parameters: Parameters | Mapping[str, Any] | None = None,
    **options: Any,
) -> RunDetails | Awaitable[RunDetails]:
    """Run the property and report what happened, without raising on failure.

    Returns a coroutine for asynchronous properties.

    Args:
        raw_property: Property built with `property_` or `async_property`
        parameters: Parameters or mapping of options, merged with `options`

    Returns:
        The RunDetails of the run

    Raises:
        ConfigurationError: When the property or the options are invalid
    """
    raw_property = _check_property(raw_property)
    merged = merge_with_global(parameters)
    merged.update(options)
    q_params = QualifiedParameters.read(merged)
    if q_params.reporter is not None and q_params.async_reporter is not None:
        msg = "Invalid parameters encountered, reporter and async_reporter cannot be specified together"
        raise FastCheckError.invalid_configuration(msg)
    if q_params.async_reporter is not None and not raw_property.is_async():
        msg = "Invalid parameters encountered, only async_property can be used when async_reporter specified"
        raise FastCheckError.invalid_configuration(msg)
    prop = decorate_property(raw_property, q_params)

    max_initial_iterations = q_params.num_runs if ":" not in q_params.path else -1
    max_skips = q_params.num_runs * q_params.max_skips_per_run

    def shrink(value: Value[Any]) -> Stream[Value[Any]]:
        return prop.shrink(value)

    if not q_params.path:
        initial_values: Iterator[Value[Any]] = toss(
            prop, q_params.seed, q_params.random_type, q_params.examples
        )
    else:
        initial_values = path_walk(
            q_params.path,
            Stream(lazy_toss(prop, q_params.seed, q_params.random_type, q_params.examples)),
            shrink,
        )
    source_values = SourceValuesIterator(iter(initial_values), max_initial_iterations, max_skips)
    final_shrink: ShrinkFunction = shrink if not q_params.end_on_failure else (lambda _: Stream.nil())
    logger.debug("Checking property with seed=%s num_runs=%d", q_params.seed, q_params.num_runs)

    if prop.is_async():

        async def run_async() -> RunDetails:
            execution = await async_run_it(
                prop, final_shrink, source_values, q_params.verbose, q_params.mark_interrupt_as_failure
            )
            return _log_outcome(execution.to_run_details(q_params.seed, q_params.path, max_skips, q_params))

        return run_async()

    execution = run_it(prop, final_shrink, source_values, q_params.verbose, q_params.mark_interrupt_as_failure)
    return _log_outcome(execution.to_run_details(q_params.seed, q_params.path, max_skips, q_params))


def assert_property(
    raw_property: RawProperty,
    parameters: Parameters | Mapping[str, Any] | None = None,
    **options: Any,
) -> Awaitable[None] | None:
    """Run the property and raise PropertyFailedError on failure.

    Returns a coroutine for asynchronous properties. When a reporter is
    configured, it receives the RunDetails instead.
    """
    out = check(raw_property, parameters, **options)
    if raw_property.is_async():

        async def report_async() -> None:
            await async_report_run_details(await out)  # type: ignore[misc]

        return report_async()
    report_run_details(out)  # type: ignore[arg-type]
    return None


def _to_property(generator: Arbitrary[Any] | RawProperty, q_params: QualifiedParameters) -> RawProperty:
    prop: RawProperty = Property(generator, lambda _: True) if is_arbitrary(generator) else generator  # type: ignore[arg-type]
    if q_params.unbiased:
        return UnbiasedProperty(prop)
    return prop


def _sample_parameters(parameters: int | Parameters | Mapping[str, Any] | None) -> QualifiedParameters:
    if isinstance(parameters, int):
        return QualifiedParameters.read({**merge_with_global(None), "num_runs": parameters})
    return QualifiedParameters.read(merge_with_global(parameters))


def stream_sample(
    generator: Arbitrary[Any] | RawProperty,
    parameters: int | Parameters | Mapping[str, Any] | None = None,
) -> Iterator[Any]:
    """Lazily generate the values a run with the same parameters would try first."""
    q_params = _sample_parameters(parameters)
    prop = _to_property(generator, q_params)
    if not q_params.path:
        tossed_values: Stream[Value[Any]] = Stream(
            toss(prop, q_params.seed, q_params.random_type, q_params.examples)
        )
    else:
        tossed_values = path_walk(
            q_params.path,
            Stream(lazy_toss(prop, q_params.seed, q_params.random_type, q_params.examples)),
            prop.shrink,
        )
    return iter(tossed_values.take(q_params.num_runs).map(lambda v: v.value_))


def sample(
    generator: Arbitrary[Any] | RawProperty,
    parameters: int | Parameters | Mapping[str, Any] | None = None,
) -> list[Any]:
    """Generate values out of an arbitrary or a property.

    Args:
        generator: Arbitrary or property to draw from
        parameters: Number of values, or run options (`num_runs`, `seed`, ...)

    Returns:
        The generated values
    """
    return list(stream_sample(generator, parameters))


def statistics(
    generator: Arbitrary[Any] | RawProperty,
    classify: Callable[[Any], str | list[str]],
    parameters: int | Parameters | Mapping[str, Any] | None = None,
    *,
    log: Callable[[str], None] | None = None,
) -> dict[str, float]:
    """Classify generated values and report how often each category shows up.

    Each line of the report is passed to `log` (the module logger at INFO
    level by default).

    Returns:
        The percentage of values falling in each category
    """
    q_params = _sample_parameters(parameters)
    recorded: dict[str, int] = {}
    for g in stream_sample(generator, parameters):
        out = classify(g)
        categories = out if isinstance(out, list) else [out]
        for category in categories:
            recorded[category] = recorded.get(category, 0) + 1
    percentages = {
        name: count * 100 / q_params.num_runs
        for name, count in sorted(recorded.items(), key=lambda item: item[1], reverse=True)
    }
    data = [(name, f"{percent:.2f}%") for name, percent in percentages.items()]
    longest_name = max((len(name) for name, _ in data), default=0)
    longest_percent = max((len(percent) for _, percent in data), default=0)
    emit = log if log is not None else logger.info
    for name, percent in data:
        emit(f"{name.ljust(longest_name, '.')}..{percent.rjust(longest_percent, '.')}")
    return percentages
