"""Deterministic control over the completion order of asyncio tasks.

A Scheduler holds back the results of the awaitables registered on it.
Results are only handed over when the test asks for it (`wait_one`,
`wait_all`, `wait_for`, ...), in an order drawn from the random stream of
the run: the same seed replays the same interleaving.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol

from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError
from fastcheck.stringify import stringify

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

logger = logging.getLogger(__name__)

# Event loop iterations left to the code under test before releasing a task
NUM_TICKS_BEFORE_SCHEDULING = 50

SchedulingType = Literal["promise", "function", "sequence"]
SchedulerAct = Callable[[Callable[[], Awaitable[Any]]], Awaitable[Any]]


async def default_act(f: Callable[[], Awaitable[Any]]) -> Any:
    return await f()


@dataclass(frozen=True)
class SchedulerReportItem:
    """A task as seen by `Scheduler.report`."""

    status: Literal["resolved", "rejected", "pending"]
    scheduling_type: SchedulingType
    task_id: int
    label: str
    metadata: Any = None
    output_value: str | None = None


@dataclass
class ScheduledTask:
    trigger: Callable[[], Awaitable[Any]]
    scheduling_type: SchedulingType
    task_id: int
    label: str
    metadata: Any
    custom_act: SchedulerAct


@dataclass
class SequenceItem:
    """A step of `schedule_sequence`: `builder` is only called once the step is released."""

    builder: Callable[[], Awaitable[Any]]
    label: str
    metadata: Any = None


@dataclass
class ScheduledSequence:
    """Progress of a sequence; `task` completes when the sequence ends."""

    done: bool = False
    faulty: bool = False
    task: asyncio.Future[ScheduledSequence] | None = field(default=None, repr=False)


class TaskSelector(Protocol):
    def clone(self) -> TaskSelector: ...

    def next_task_index(self, scheduled_tasks: Sequence[ScheduledTask]) -> int: ...


class RandomTaskSelector:
    """Pick tasks uniformly from the random stream of the run."""

    def __init__(self, mrng: Random) -> None:
        self._cloned_mrng = mrng.clone()
        self._mrng = mrng

    def clone(self) -> RandomTaskSelector:
        return RandomTaskSelector(self._cloned_mrng)

    def next_task_index(self, scheduled_tasks: Sequence[ScheduledTask]) -> int:
        return self._mrng.next_int(0, len(scheduled_tasks) - 1)


class OrderingTaskSelector:
    """Release tasks following an explicit list of task ids."""

    def __init__(self, ordering: Sequence[int]) -> None:
        self._ordering = list(ordering)
        self._num_tasks = 0

    def clone(self) -> OrderingTaskSelector:
        return OrderingTaskSelector(self._ordering)

    def next_task_index(self, scheduled_tasks: Sequence[ScheduledTask]) -> int:
        if len(self._ordering) <= self._num_tasks:
            msg = "Invalid scheduler_for defined: too many tasks have been scheduled"
            raise FastCheckError.contract_violation(msg)
        expected = self._ordering[self._num_tasks]
        for index, task in enumerate(scheduled_tasks):
            if task.task_id == expected:
                self._num_tasks += 1
                return index
        msg = "Invalid scheduler_for defined: unable to find next task"
        raise FastCheckError.contract_violation(msg)


class Scheduler:
    """Hold back scheduled awaitables until the test releases them."""

    def __init__(self, act: SchedulerAct, task_selector: TaskSelector) -> None:
        self.act = act
        self._task_selector = task_selector
        self._source_task_selector = task_selector.clone()
        self._last_task_id = 0
        self._scheduled_tasks: list[ScheduledTask] = []
        self._triggered_tasks: list[SchedulerReportItem] = []
        self._scheduled_watchers: list[Callable[[], None]] = []

    def fc_clone(self) -> Scheduler:
        return Scheduler(self.act, self._source_task_selector)

    def _log(
        self,
        scheduling_type: SchedulingType,
        task_id: int,
        label: str,
        metadata: Any,
        status: Literal["resolved", "rejected"],
        data: Any,
    ) -> None:
        logger.debug("Scheduler released task %d (%s) as %s", task_id, label, status)
        self._triggered_tasks.append(
            SchedulerReportItem(
                status,
                scheduling_type,
                task_id,
                label,
                metadata,
                stringify(data) if data is not None else None,
            )
        )

    def _schedule_internal(
        self,
        scheduling_type: SchedulingType,
        label: str,
        task: Awaitable[Any] | None,
        metadata: Any,
        custom_act: SchedulerAct,
        then_task_to_be_awaited: Callable[[], Awaitable[Any]] | None = None,
    ) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        self._last_task_id += 1
        task_id = self._last_task_id
        scheduled: asyncio.Future[Any] = loop.create_future()
        # Like any started task, the awaitable runs right away: only its result is held back
        original = asyncio.ensure_future(task) if task is not None else None

        def reject(err: BaseException) -> None:
            self._log(scheduling_type, task_id, label, metadata, "rejected", err)
            if not scheduled.done():
                scheduled.set_exception(err)

        def resolve(data: Any) -> None:
            self._log(scheduling_type, task_id, label, metadata, "resolved", data)
            if not scheduled.done():
                scheduled.set_result(data)

        def on_follow_up_done(follow_up: asyncio.Future[Any]) -> None:
            if follow_up.cancelled():
                scheduled.cancel()
            elif follow_up.exception() is not None:
                reject(follow_up.exception())
            else:
                resolve(follow_up.result())

        async def trigger() -> Any:
            try:
                data = await original if original is not None else None
            except Exception as err:
                reject(err)
                raise
            if then_task_to_be_awaited is None:
                resolve(data)
                return data
            # The follow-up may itself wait for scheduled tasks: releasing must not wait for it
            follow_up = asyncio.ensure_future(then_task_to_be_awaited())
            follow_up.add_done_callback(on_follow_up_done)
            await asyncio.sleep(0)
            return None

        self._scheduled_tasks.append(
            ScheduledTask(trigger, scheduling_type, task_id, label, metadata, custom_act)
        )
        if self._scheduled_watchers:
            self._scheduled_watchers[0]()
        return scheduled

    def schedule(
        self,
        task: Awaitable[Any],
        label: str = "",
        metadata: Any = None,
        custom_act: SchedulerAct | None = None,
    ) -> asyncio.Future[Any]:
        """Register `task`; the returned future completes once the scheduler releases it."""
        return self._schedule_internal(
            "promise", label, task, metadata, custom_act or default_act
        )

    def schedule_function(
        self,
        async_function: Callable[..., Awaitable[Any]],
        custom_act: SchedulerAct | None = None,
    ) -> Callable[..., asyncio.Future[Any]]:
        """Wrap `async_function` so that every call becomes a scheduled task."""

        def scheduled_function(*args: Any) -> asyncio.Future[Any]:
            label = f"{getattr(async_function, '__name__', 'function')}({','.join(stringify(a) for a in args)})"
            return self._schedule_internal(
                "function", label, async_function(*args), None, custom_act or default_act
            )

        return scheduled_function

    def schedule_sequence(
        self,
        sequence_builders: Sequence[SequenceItem | Callable[[], Awaitable[Any]]],
        custom_act: SchedulerAct | None = None,
    ) -> ScheduledSequence:
        """Schedule steps that must run in order.

        Other scheduled tasks may still be released between two steps. A step
        is only built once the previous one completed successfully.
        """
        loop = asyncio.get_running_loop()
        status = ScheduledSequence(task=loop.create_future())
        act = custom_act or default_act

        def resolve_sequence_task() -> None:
            if status.task is not None and not status.task.done():
                status.task.set_result(status)

        def on_faulty_item() -> None:
            status.faulty = True
            resolve_sequence_task()

        def on_done() -> None:
            status.done = True
            resolve_sequence_task()

        def succeeded(previous: asyncio.Future[Any]) -> bool:
            return not previous.cancelled() and previous.exception() is None

        def register_next_builder(index: int, previous: asyncio.Future[Any] | None) -> None:
            if index >= len(sequence_builders):
                if previous is None:
                    on_done()
                else:
                    previous.add_done_callback(
                        lambda f: on_done() if succeeded(f) else on_faulty_item()
                    )
                return

            def schedule_item() -> None:
                item = sequence_builders[index]
                if isinstance(item, SequenceItem):
                    builder, label, metadata = item.builder, item.label, item.metadata
                else:
                    builder, label, metadata = item, getattr(item, "__name__", ""), None
                scheduled = self._schedule_internal("sequence", label, None, metadata, act, builder)
                register_next_builder(index + 1, scheduled)

            if previous is None:
                schedule_item()
            else:
                previous.add_done_callback(
                    lambda f: schedule_item() if succeeded(f) else on_faulty_item()
                )

        register_next_builder(0, None)
        return status

    def count(self) -> int:
        """Number of tasks waiting to be released."""
        return len(self._scheduled_tasks)

    async def _internal_wait_one(self) -> None:
        if not self._scheduled_tasks:
            msg = "No task scheduled"
            raise FastCheckError.contract_violation(msg)
        task_index = self._task_selector.next_task_index(self._scheduled_tasks)
        scheduled_task = self._scheduled_tasks.pop(task_index)

        async def release() -> None:
            # Failures reach whoever awaits the scheduled future, not the releaser
            with suppress(Exception):
                await scheduled_task.trigger()

        await scheduled_task.custom_act(release)

    async def wait_one(self, custom_act: SchedulerAct | None = None) -> None:
        """Release exactly one pending task, picked by the task selector."""
        wait_act = custom_act or default_act
        await self.act(lambda: wait_act(self._internal_wait_one))

    async def wait_all(self, custom_act: SchedulerAct | None = None) -> None:
        """Release tasks until none is pending, including the ones scheduled meanwhile."""
        while self._scheduled_tasks:
            await self.wait_one(custom_act)

    async def _internal_wait_for(
        self,
        unscheduled_task: Awaitable[Any],
        *,
        custom_act: SchedulerAct | None,
        on_wait_start: Callable[[], None] | None,
        on_wait_idle: Callable[[], None] | None,
        launch_awaiter_on_init: bool,
    ) -> Any:
        target = asyncio.ensure_future(unscheduled_task)
        notified = asyncio.Event()

        def handle_notified() -> None:
            notified.set()

        if (self._scheduled_tasks or launch_awaiter_on_init) and not self._scheduled_watchers:
            notified.set()
        self._scheduled_watchers.append(handle_notified)
        try:
            while not target.done():
                if not notified.is_set():
                    waiter = asyncio.ensure_future(notified.wait())
                    try:
                        await asyncio.wait({target, waiter}, return_when=asyncio.FIRST_COMPLETED)
                    finally:
                        waiter.cancel()
                    continue
                notified.clear()
                # Leave the code under test some ticks to schedule more tasks
                ticks = NUM_TICKS_BEFORE_SCHEDULING
                while ticks > 0 and not target.done():
                    await asyncio.sleep(0)
                    ticks -= 1
                    if notified.is_set():
                        notified.clear()
                        ticks = NUM_TICKS_BEFORE_SCHEDULING + 1
                if target.done():
                    break
                if self._scheduled_tasks:
                    if on_wait_start is not None:
                        on_wait_start()
                    await self.wait_one(custom_act)
                    notified.set()
                elif on_wait_idle is not None:
                    on_wait_idle()
        finally:
            watcher_index = self._scheduled_watchers.index(handle_notified)
            del self._scheduled_watchers[watcher_index]
            if watcher_index == 0 and self._scheduled_watchers:
                self._scheduled_watchers[0]()
        return target.result()

    async def wait_for(self, unscheduled_task: Awaitable[Any], custom_act: SchedulerAct | None = None) -> Any:
        """Release tasks until `unscheduled_task` completes, then return its result."""
        return await self._internal_wait_for(
            unscheduled_task,
            custom_act=custom_act,
            on_wait_start=None,
            on_wait_idle=None,
            launch_awaiter_on_init=False,
        )

    async def wait_next(self, count: int, custom_act: SchedulerAct | None = None) -> None:
        """Release the next `count` tasks, waiting for them to be scheduled if needed."""
        loop = asyncio.get_running_loop()
        awaited: asyncio.Future[None] = loop.create_future()
        remaining = count

        def resolver() -> None:
            nonlocal remaining
            remaining -= 1
            if remaining <= 0 and not awaited.done():
                awaited.set_result(None)

        if remaining <= 0:
            awaited.set_result(None)
        await self._internal_wait_for(
            awaited,
            custom_act=custom_act,
            on_wait_start=resolver,
            on_wait_idle=None,
            launch_awaiter_on_init=False,
        )

    async def wait_idle(self, custom_act: SchedulerAct | None = None) -> None:
        """Release tasks until nothing is pending and nothing new gets scheduled."""
        loop = asyncio.get_running_loop()
        awaited: asyncio.Future[None] = loop.create_future()

        def resolver() -> None:
            if not awaited.done():
                awaited.set_result(None)

        await self._internal_wait_for(
            awaited,
            custom_act=custom_act,
            on_wait_start=None,
            on_wait_idle=resolver,
            launch_awaiter_on_init=True,
        )

    def report(self) -> list[SchedulerReportItem]:
        """Released tasks in release order, followed by pending ones."""
        pending = [
            SchedulerReportItem("pending", t.scheduling_type, t.task_id, t.label, t.metadata)
            for t in self._scheduled_tasks
        ]
        return [*self._triggered_tasks, *pending]

    @staticmethod
    def _build_log(item: SchedulerReportItem) -> str:
        kind = f"{item.scheduling_type}::{item.label}" if item.label else item.scheduling_type
        output = f" with value {item.output_value}" if item.output_value is not None else ""
        return f"[task${{{item.task_id}}}] {kind} {item.status}{output}"

    def __repr__(self) -> str:
        logs = "\n".join(f"-> {self._build_log(item)}" for item in self.report())
        return f"scheduler_for()`\n{logs}`"


class SchedulerArbitrary(Arbitrary[Scheduler]):
    def __init__(self, act: SchedulerAct) -> None:
        self.act = act

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[Scheduler]:
        return Value(Scheduler(self.act, RandomTaskSelector(mrng.clone())), None)

    def can_shrink_without_context(self, value: Any) -> bool:
        return False

    def shrink(self, value: Scheduler, context: Any) -> Stream[Value[Scheduler]]:
        return Stream.nil()


def scheduler(act: SchedulerAct | None = None) -> Arbitrary[Scheduler]:
    """Arbitrary producing a fresh Scheduler for every run.

    Args:
        act: Wrapper applied around every release, for frameworks requiring
            state updates to happen within a dedicated context

    Returns:
        The scheduler arbitrary
    """
    return SchedulerArbitrary(act or default_act)


def scheduler_for(ordering: Sequence[int], act: SchedulerAct | None = None) -> Scheduler:
    """Scheduler releasing tasks in the order of their ids (starting at 1)."""
    return Scheduler(act or default_act, OrderingTaskSelector(ordering))
