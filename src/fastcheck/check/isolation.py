"""Run predicates in an external worker.

Only the messages exchanged with the worker are defined here: spawning and
supervising workers is up to the caller, which provides a `run_in_worker`
function sending a WorkerRequest and returning the WorkerResponse.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from fastcheck.check.property import PropertyFailure, RawProperty, RunResult
from fastcheck.error import FastCheckError, PreconditionFailure, WorkerCrashedError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random
    from fastcheck.core.stream import Stream
    from fastcheck.core.value import Value

logger = logging.getLogger(__name__)

WORKER_CRASHED_MESSAGE = "Worker stopped unexpectedly"

WorkerStatus = Literal["success", "failure", "skipped"]


@dataclass(frozen=True)
class WorkerRequest:
    """Ask a worker to run predicate `target_predicate_id` on `payload`."""

    target_predicate_id: int
    payload: Any
    run_id: int

    def to_json(self) -> str:
        return json.dumps(
            {
                "targetPredicateId": self.target_predicate_id,
                "payload": self.payload,
                "runId": self.run_id,
            }
        )

    @staticmethod
    def from_json(data: str) -> WorkerRequest:
        raw = json.loads(data)
        if not isinstance(raw, dict) or not isinstance(raw.get("targetPredicateId"), int):
            msg = f"Invalid worker request: {data}"
            raise ValueError(msg)
        return WorkerRequest(raw["targetPredicateId"], raw.get("payload"), int(raw.get("runId", 0)))


@dataclass(frozen=True)
class WorkerResponse:
    """Outcome of a predicate run in a worker."""

    status: WorkerStatus
    output: Any = None
    error: str | None = None

    def to_json(self) -> str:
        result: dict[str, Any] = {"status": self.status, "output": self.output}
        if self.error is not None:
            result["error"] = self.error
        return json.dumps(result)

    @staticmethod
    def from_json(data: str) -> WorkerResponse:
        raw = json.loads(data)
        if not isinstance(raw, dict) or raw.get("status") not in ("success", "failure", "skipped"):
            msg = f"Invalid worker response: {data}"
            raise ValueError(msg)
        return WorkerResponse(raw["status"], raw.get("output"), raw.get("error"))

    def to_run_result(self) -> RunResult:
        match self.status:
            case "success":
                return None
            case "skipped":
                return PreconditionFailure()
            case _:
                message = self.error or "Property failed in worker"
                return PropertyFailure(FastCheckError.property_failed(message), message)


RunInWorker = Callable[[WorkerRequest], WorkerResponse | Awaitable[WorkerResponse]]


class IsolatedProperty:
    """Property whose predicate runs out of process.

    Values are generated and shrunk locally; every run is delegated to
    `run_in_worker`. A WorkerCrashedError raised while running counts as a
    failure of the value, the search going on with a fresh worker.
    """

    def __init__(
        self,
        property: RawProperty,  # noqa: A002
        run_in_worker: RunInWorker,
        target_predicate_id: int = 0,
    ) -> None:
        self.property = property
        self.run_in_worker = run_in_worker
        self.target_predicate_id = target_predicate_id
        self._run_id = 0

    def is_async(self) -> bool:
        return self.property.is_async() or inspect.iscoroutinefunction(self.run_in_worker)

    def generate(self, mrng: Random, run_id: int | None = None) -> Value[Any]:
        return self.property.generate(mrng, run_id)

    def shrink(self, value: Value[Any]) -> Stream[Value[Any]]:
        return self.property.shrink(value)

    def _as_hook_result(self, out: Any) -> Any:
        if not self.is_async() or inspect.isawaitable(out):
            return out

        async def resolved() -> Any:
            return out

        return resolved()

    def run_before_each(self) -> Any:
        return self._as_hook_result(self.property.run_before_each())

    def run_after_each(self) -> Any:
        return self._as_hook_result(self.property.run_after_each())

    def _next_request(self, v: Any) -> WorkerRequest:
        self._run_id += 1
        payload = list(v) if isinstance(v, tuple) else v
        logger.debug("Sending run %d to predicate %d", self._run_id, self.target_predicate_id)
        return WorkerRequest(self.target_predicate_id, payload, self._run_id)

    @staticmethod
    def _crashed(err: WorkerCrashedError) -> PropertyFailure:
        logger.debug("Worker crashed: %s", err.message)
        return PropertyFailure(err, WORKER_CRASHED_MESSAGE)

    def run(self, v: Any) -> Any:
        request = self._next_request(v)
        if not self.is_async():
            try:
                response = self.run_in_worker(request)
            except WorkerCrashedError as err:
                return self._crashed(err)
            return response.to_run_result()  # type: ignore[union-attr]
        return self._run_async(request)

    async def _run_async(self, request: WorkerRequest) -> RunResult:
        try:
            response = self.run_in_worker(request)
            if inspect.isawaitable(response):
                response = await response
        except WorkerCrashedError as err:
            return self._crashed(err)
        return response.to_run_result()
