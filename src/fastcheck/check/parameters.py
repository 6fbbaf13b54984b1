"""Runner configuration.

`Parameters` holds what the caller passed, every field being optional.
`QualifiedParameters` is the validated version used by the runner, with
defaults resolved. Global defaults set through `configure_global` apply to
every run and are overridden by the options given at call site.
"""

from __future__ import annotations

import random
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any

from fastcheck.core.rng import RandomFactory, mersenne
from fastcheck.error import FastCheckError

DEFAULT_NUM_RUNS = 100
DEFAULT_MAX_SKIPS_PER_RUN = 100

RANDOM_TYPES: dict[str, RandomFactory] = {"mersenne": mersenne}

# Keys only meaningful globally, read by arbitraries and properties
GLOBAL_ONLY_KEYS = frozenset(
    {
        "base_size",
        "default_size_to_max_when_max_specified",
        "before_each",
        "after_each",
        "async_before_each",
        "async_after_each",
    }
)


class VerbosityLevel(IntEnum):
    """Amount of details reported on failure."""

    NONE = 0
    VERBOSE = 1
    VERY_VERBOSE = 2


@dataclass
class Parameters:
    """Options accepted by `check` and `assert_property`.

    Durations (`timeout`, `skip_all_after_time_limit`,
    `interrupt_after_time_limit`) are expressed in milliseconds.
    """

    seed: int | None = None
    random_type: str | RandomFactory | None = None
    num_runs: int | None = None
    max_skips_per_run: int | None = None
    timeout: float | None = None
    path: str | None = None
    unbiased: bool | None = None
    verbose: bool | int | None = None
    examples: list[tuple[Any, ...]] | None = None
    end_on_failure: bool | None = None
    skip_all_after_time_limit: float | None = None
    interrupt_after_time_limit: float | None = None
    mark_interrupt_as_failure: bool | None = None
    skip_equal_values: bool | None = None
    ignore_equal_values: bool | None = None
    reporter: Callable[[Any], None] | None = None
    async_reporter: Callable[[Any], Awaitable[None]] | None = None
    error_with_cause: bool | None = None


PARAMETER_KEYS = frozenset(f.name for f in fields(Parameters))


def _default_seed() -> int:
    return (time.time_ns() // 1_000_000) ^ random.getrandbits(32)


def _read_verbose(verbose: bool | int | None) -> VerbosityLevel:
    if verbose is None:
        return VerbosityLevel.NONE
    if isinstance(verbose, bool):
        return VerbosityLevel.VERBOSE if verbose else VerbosityLevel.NONE
    if verbose <= VerbosityLevel.NONE:
        return VerbosityLevel.NONE
    if verbose >= VerbosityLevel.VERY_VERBOSE:
        return VerbosityLevel.VERY_VERBOSE
    return VerbosityLevel(int(verbose))


def _read_random_type(random_type: str | RandomFactory | None) -> RandomFactory:
    if random_type is None:
        return mersenne
    if isinstance(random_type, str):
        factory = RANDOM_TYPES.get(random_type)
        if factory is None:
            msg = f"Invalid random specified: {random_type!r}"
            raise FastCheckError.invalid_configuration(msg)
        return factory
    if not callable(random_type):
        msg = "random_type must be the name of a generator or a callable building one from a seed"
        raise FastCheckError.invalid_configuration(msg)
    return random_type


def _read_positive(name: str, value: float | None, *, allow_zero: bool) -> float | None:
    if value is None:
        return None
    if value < 0 or (value == 0 and not allow_zero):
        msg = f"{name} must be {'a non-negative' if allow_zero else 'a strictly positive'} number, got {value}"
        raise FastCheckError.invalid_configuration(msg)
    return value


def _read_path(path: str | None) -> str:
    if not path:
        return ""
    segments = path.split(":")
    if not all(segment.isdigit() for segment in segments):
        msg = f"Unable to replay, got invalid path={path}"
        raise FastCheckError.invalid_configuration(msg)
    return path


@dataclass
class QualifiedParameters:
    """Validated parameters with every default resolved."""

    seed: int
    random_type: RandomFactory
    num_runs: int
    max_skips_per_run: int
    timeout: float | None
    path: str
    unbiased: bool
    verbose: VerbosityLevel
    examples: list[tuple[Any, ...]] = field(default_factory=list)
    end_on_failure: bool = False
    skip_all_after_time_limit: float | None = None
    interrupt_after_time_limit: float | None = None
    mark_interrupt_as_failure: bool = False
    skip_equal_values: bool = False
    ignore_equal_values: bool = False
    reporter: Callable[[Any], None] | None = None
    async_reporter: Callable[[Any], Awaitable[None]] | None = None
    error_with_cause: bool = False

    @classmethod
    def read(cls, parameters: Parameters | Mapping[str, Any] | None = None) -> QualifiedParameters:
        """Validate `parameters` and fill the blanks with defaults.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        if parameters is None:
            p = Parameters()
        elif isinstance(parameters, Parameters):
            p = parameters
        else:
            unknown = sorted(set(parameters) - PARAMETER_KEYS)
            if unknown:
                msg = f"Unknown parameters: {', '.join(unknown)}"
                raise FastCheckError.invalid_configuration(msg)
            p = Parameters(**parameters)

        num_runs = DEFAULT_NUM_RUNS if p.num_runs is None else p.num_runs
        if num_runs < 0:
            msg = f"num_runs must be a non-negative integer, got {num_runs}"
            raise FastCheckError.invalid_configuration(msg)
        max_skips_per_run = DEFAULT_MAX_SKIPS_PER_RUN if p.max_skips_per_run is None else p.max_skips_per_run
        if max_skips_per_run < 0:
            msg = f"max_skips_per_run must be a non-negative integer, got {max_skips_per_run}"
            raise FastCheckError.invalid_configuration(msg)

        return cls(
            seed=_default_seed() if p.seed is None else int(p.seed),
            random_type=_read_random_type(p.random_type),
            num_runs=num_runs,
            max_skips_per_run=max_skips_per_run,
            timeout=_read_positive("timeout", p.timeout, allow_zero=False),
            path=_read_path(p.path),
            unbiased=p.unbiased is True,
            verbose=_read_verbose(p.verbose),
            examples=list(p.examples or []),
            end_on_failure=p.end_on_failure is True,
            skip_all_after_time_limit=_read_positive(
                "skip_all_after_time_limit", p.skip_all_after_time_limit, allow_zero=True
            ),
            interrupt_after_time_limit=_read_positive(
                "interrupt_after_time_limit", p.interrupt_after_time_limit, allow_zero=True
            ),
            mark_interrupt_as_failure=p.mark_interrupt_as_failure is True,
            skip_equal_values=p.skip_equal_values is True,
            ignore_equal_values=p.ignore_equal_values is True,
            reporter=p.reporter,
            async_reporter=p.async_reporter,
            error_with_cause=p.error_with_cause is True,
        )

    def to_parameters(self) -> Parameters:
        """Parameters replaying the same run configuration."""
        return Parameters(**{f.name: getattr(self, f.name) for f in fields(Parameters)})


_global_parameters: dict[str, Any] = {}


def configure_global(**parameters: Any) -> None:
    """Replace the global defaults applied to every run.

    Accepts every `Parameters` field except `path` and `examples`, plus
    `base_size`, `default_size_to_max_when_max_specified`, `before_each`,
    `after_each`, `async_before_each` and `async_after_each`.
    """
    unknown = sorted(set(parameters) - (PARAMETER_KEYS - {"path", "examples"}) - GLOBAL_ONLY_KEYS)
    if unknown:
        msg = f"Unknown global parameters: {', '.join(unknown)}"
        raise FastCheckError.invalid_configuration(msg)
    _global_parameters.clear()
    _global_parameters.update(parameters)


def read_configure_global() -> dict[str, Any]:
    return dict(_global_parameters)


def reset_configure_global() -> None:
    _global_parameters.clear()


def merge_with_global(parameters: Parameters | Mapping[str, Any] | None) -> dict[str, Any]:
    """Runner options: globals overridden by call-site values."""
    merged = {k: v for k, v in _global_parameters.items() if k in PARAMETER_KEYS}
    if isinstance(parameters, Parameters):
        merged.update(
            {f.name: getattr(parameters, f.name) for f in fields(Parameters) if getattr(parameters, f.name) is not None}
        )
    elif parameters is not None:
        merged.update(parameters)
    return merged
