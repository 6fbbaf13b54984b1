"""Bookkeeping of a run: outcomes of every executed value and final details."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from fastcheck.check.parameters import Parameters, QualifiedParameters, VerbosityLevel

if TYPE_CHECKING:
    from fastcheck.check.property import PropertyFailure


class ExecutionStatus(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class ExecutionTree:
    """A value executed by the runner and, for failures, the shrinks tried next."""

    status: ExecutionStatus
    value: Any
    children: list[ExecutionTree] = field(default_factory=list)


@dataclass
class RunDetails:
    """Outcome of `check`.

    `counterexample`, `counterexample_path`, `error` and `error_instance`
    are only set when a failing value was found. `failed` may also be True
    without any of them, when too many runs were skipped or when an
    interrupted run is considered as failed.
    """

    failed: bool
    interrupted: bool
    num_runs: int
    num_skips: int
    num_shrinks: int
    seed: int
    counterexample: Any
    counterexample_path: str | None
    error: str | None
    error_instance: BaseException | None
    failures: list[Any]
    execution_summary: list[ExecutionTree]
    verbose: VerbosityLevel
    run_configuration: Parameters


def merge_paths(offset_path: str, path: str) -> str:
    """Path of a failure found while replaying from `offset_path`."""
    if not offset_path:
        return path
    offset_items = offset_path.split(":")
    remaining_items = path.split(":")
    middle = int(offset_items[-1]) + int(remaining_items[0])
    return ":".join([*offset_items[:-1], str(middle), *remaining_items[1:]])


class RunExecution:
    """Record what happened to every value the runner executed.

    Counters only track what happened before the first failure, shrinking
    steps being reported through the path instead.
    """

    def __init__(self, verbosity: VerbosityLevel, interrupted_as_failure: bool) -> None:
        self.verbosity = verbosity
        self.interrupted_as_failure = interrupted_as_failure
        self.root_execution_trees: list[ExecutionTree] = []
        self._current_level_execution_trees = self.root_execution_trees
        self.path_to_failure: str | None = None
        self.value: Any = None
        self.failure: PropertyFailure | None = None
        self.num_skips = 0
        self.num_successes = 0
        self.interrupted = False

    def _append_execution_tree(self, status: ExecutionStatus, value: Any) -> ExecutionTree:
        current_tree = ExecutionTree(status, value)
        self._current_level_execution_trees.append(current_tree)
        return current_tree

    def fail(self, value: Any, id: int, failure: PropertyFailure) -> None:  # noqa: A002
        if self.verbosity >= VerbosityLevel.VERBOSE:
            current_tree = self._append_execution_tree(ExecutionStatus.FAILURE, value)
            self._current_level_execution_trees = current_tree.children
        if self.path_to_failure is None:
            self.path_to_failure = f"{id}"
        else:
            self.path_to_failure += f":{id}"
        self.value = value
        self.failure = failure

    def skip(self, value: Any) -> None:
        if self.verbosity >= VerbosityLevel.VERY_VERBOSE:
            self._append_execution_tree(ExecutionStatus.SKIPPED, value)
        if self.path_to_failure is None:
            self.num_skips += 1

    def success(self, value: Any) -> None:
        if self.verbosity >= VerbosityLevel.VERY_VERBOSE:
            self._append_execution_tree(ExecutionStatus.SUCCESS, value)
        if self.path_to_failure is None:
            self.num_successes += 1

    def interrupt(self) -> None:
        self.interrupted = True

    def _first_failure(self) -> int:
        return int(self.path_to_failure.split(":")[0]) if self.path_to_failure else -1

    def _num_shrinks(self) -> int:
        return len(self.path_to_failure.split(":")) - 1 if self.path_to_failure else 0

    def _extract_failures(self) -> list[Any]:
        failures = []
        cursor = self.root_execution_trees
        while cursor and cursor[-1].status is ExecutionStatus.FAILURE:
            failure_tree = cursor[-1]
            failures.append(failure_tree.value)
            cursor = failure_tree.children
        return failures

    def to_run_details(
        self, seed: int, base_path: str, max_skips: int, q_params: QualifiedParameters
    ) -> RunDetails:
        if self.path_to_failure is not None and self.failure is not None:
            return RunDetails(
                failed=True,
                interrupted=self.interrupted,
                num_runs=self._first_failure() + 1 - self.num_skips,
                num_skips=self.num_skips,
                num_shrinks=self._num_shrinks(),
                seed=seed,
                counterexample=self.value,
                counterexample_path=merge_paths(base_path, self.path_to_failure),
                error=self.failure.error_message,
                error_instance=self.failure.error,
                failures=self._extract_failures(),
                execution_summary=self.root_execution_trees,
                verbose=self.verbosity,
                run_configuration=q_params.to_parameters(),
            )

        # Too many skips and interruptions are exclusive: the runner stops after either
        consider_interrupted_as_failure = self.interrupted_as_failure or self.num_successes == 0
        failed = self.num_skips > max_skips or (self.interrupted and consider_interrupted_as_failure)
        return RunDetails(
            failed=failed,
            interrupted=self.interrupted,
            num_runs=self.num_successes,
            num_skips=self.num_skips,
            num_shrinks=0,
            seed=seed,
            counterexample=None,
            counterexample_path=None,
            error=None,
            error_instance=None,
            failures=[],
            execution_summary=self.root_execution_trees,
            verbose=self.verbosity,
            run_configuration=q_params.to_parameters(),
        )
