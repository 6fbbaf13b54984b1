"""Error types for fastcheck."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Error codes raised by the engine."""

    PROPERTY_FAILED = "property_failed"
    GENERATION_EXHAUSTED = "generation_exhausted"
    CONTRACT_VIOLATION = "contract_violation"
    INVALID_CONFIGURATION = "invalid_configuration"
    TIMEOUT = "timeout"
    WORKER_CRASHED = "worker_crashed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FastCheckError(Exception):
    """Engine error with code, message, and optional data."""

    code: ErrorCode
    message: str
    data: Any | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @staticmethod
    def property_failed(message: str, data: Any | None = None) -> PropertyFailedError:
        """Create a PROPERTY_FAILED error."""
        return PropertyFailedError(ErrorCode.PROPERTY_FAILED, message, data)

    @staticmethod
    def generation_exhausted(
        message: str, data: Any | None = None
    ) -> GenerationExhaustedError:
        """Create a GENERATION_EXHAUSTED error."""
        return GenerationExhaustedError(ErrorCode.GENERATION_EXHAUSTED, message, data)

    @staticmethod
    def contract_violation(
        message: str, data: Any | None = None
    ) -> ContractViolationError:
        """Create a CONTRACT_VIOLATION error."""
        return ContractViolationError(ErrorCode.CONTRACT_VIOLATION, message, data)

    @staticmethod
    def invalid_configuration(
        message: str, data: Any | None = None
    ) -> ConfigurationError:
        """Create an INVALID_CONFIGURATION error."""
        return ConfigurationError(ErrorCode.INVALID_CONFIGURATION, message, data)

    @staticmethod
    def timeout(message: str, data: Any | None = None) -> FastCheckError:
        """Create a TIMEOUT error."""
        return FastCheckError(ErrorCode.TIMEOUT, message, data)

    @staticmethod
    def worker_crashed(message: str, data: Any | None = None) -> WorkerCrashedError:
        """Create a WORKER_CRASHED error."""
        return WorkerCrashedError(ErrorCode.WORKER_CRASHED, message, data)


@dataclass(frozen=True)
class PropertyFailedError(FastCheckError):
    """Raised by assert_property when a counterexample has been found.

    The message embeds the seed and the replay path of the failure,
    `data` holds the RunDetails of the run.
    """

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class GenerationExhaustedError(FastCheckError):
    """An arbitrary was unable to produce a value within its attempt budget."""


@dataclass(frozen=True)
class ContractViolationError(FastCheckError):
    """A user supplied function or configuration broke a documented law."""


@dataclass(frozen=True)
class ConfigurationError(FastCheckError):
    """Invalid parameters passed to an arbitrary or to the runner."""


@dataclass(frozen=True)
class WorkerCrashedError(FastCheckError):
    """The isolated worker running a predicate stopped unexpectedly."""


class PreconditionFailure(Exception):  # noqa: N818
    """Raised by `pre` to discard the current run.

    This is not a failure: the runner skips the value and draws another one.
    When `interrupt_execution` is set, the runner stops issuing new runs.
    """

    def __init__(self, interrupt_execution: bool = False) -> None:
        super().__init__(
            "Execution interrupted" if interrupt_execution else "Precondition failed"
        )
        self.interrupt_execution = interrupt_execution

    @staticmethod
    def is_failure(err: object) -> bool:
        return isinstance(err, PreconditionFailure)
