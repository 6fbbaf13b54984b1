"""Tests for the scheduler of asynchronous tasks."""

from __future__ import annotations

import asyncio

import pytest

from fastcheck import Scheduler, SequenceItem, async_property, check, scheduler, scheduler_for
from fastcheck.error import ContractViolationError


class TestSchedulerFor:
    """Tests for schedulers with an explicit release order."""

    @pytest.mark.asyncio
    async def test_releases_in_given_order(self) -> None:
        """Tasks are released following their ids."""
        s = scheduler_for([2, 1])
        first = s.schedule(asyncio.sleep(0, "first"), "first")
        second = s.schedule(asyncio.sleep(0, "second"), "second")
        assert s.count() == 2

        await s.wait_one()
        assert second.done()
        assert not first.done()

        await s.wait_all()
        assert await first == "first"
        assert s.count() == 0
        assert [item.label for item in s.report()] == ["second", "first"]
        assert [item.task_id for item in s.report()] == [2, 1]

    @pytest.mark.asyncio
    async def test_report_lists_pending_tasks(self) -> None:
        """Pending tasks come after the released ones."""
        s = scheduler_for([1, 2])
        s.schedule(asyncio.sleep(0, 1), "a")
        s.schedule(asyncio.sleep(0, 2), "b", metadata={"id": 2})
        await s.wait_one()
        report = s.report()
        assert [item.status for item in report] == ["resolved", "pending"]
        assert report[0].output_value == "1"
        assert report[1].metadata == {"id": 2}
        assert report[1].output_value is None
        await s.wait_all()

    @pytest.mark.asyncio
    async def test_rejected_task(self) -> None:
        """Failures reach the scheduled future and the report."""

        async def failing() -> None:
            msg = "nope"
            raise ValueError(msg)

        s = scheduler_for([1])
        scheduled = s.schedule(failing(), "failing")
        await s.wait_all()
        with pytest.raises(ValueError, match="nope"):
            await scheduled
        assert s.report()[0].status == "rejected"
        assert s.report()[0].output_value == "ValueError('nope')"

    @pytest.mark.asyncio
    async def test_too_many_tasks(self) -> None:
        """Releasing more tasks than ordered is a contract violation."""
        s = scheduler_for([1])
        s.schedule(asyncio.sleep(0, 1))
        s.schedule(asyncio.sleep(0, 2))
        await s.wait_one()
        with pytest.raises(ContractViolationError, match="too many tasks have been scheduled"):
            await s.wait_one()

    @pytest.mark.asyncio
    async def test_unknown_task(self) -> None:
        """Ordering ids must match a scheduled task."""
        s = scheduler_for([5])
        s.schedule(asyncio.sleep(0, 1))
        with pytest.raises(ContractViolationError, match="unable to find next task"):
            await s.wait_one()

    @pytest.mark.asyncio
    async def test_wait_one_without_task(self) -> None:
        """There must be something to release."""
        s = scheduler_for([])
        with pytest.raises(ContractViolationError, match="No task scheduled"):
            await s.wait_one()

    @pytest.mark.asyncio
    async def test_repr(self) -> None:
        """Schedulers render the tasks they released."""
        s = scheduler_for([1])
        s.schedule(asyncio.sleep(0, 1), "a")
        await s.wait_all()
        assert repr(s) == "scheduler_for()`\n-> [task${1}] promise::a resolved with 1`"


class TestWaiting:
    """Tests for wait_for, wait_next and wait_idle."""

    @pytest.mark.asyncio
    async def test_wait_for(self) -> None:
        """wait_for releases tasks until the awaited task completes."""
        s = scheduler_for([1, 2])

        async def flow() -> int:
            x = await s.schedule(asyncio.sleep(0, 1))
            y = await s.schedule(asyncio.sleep(0, 2))
            return x + y

        assert await s.wait_for(flow()) == 3
        assert s.count() == 0

    @pytest.mark.asyncio
    async def test_wait_next(self) -> None:
        """wait_next releases exactly the requested number of tasks."""
        s = scheduler_for([1, 2, 3])
        for value in range(3):
            s.schedule(asyncio.sleep(0, value))
        await s.wait_next(2)
        assert s.count() == 1
        await s.wait_all()

    @pytest.mark.asyncio
    async def test_wait_idle(self) -> None:
        """wait_idle also releases tasks scheduled by released ones."""
        s = scheduler_for([1, 2])
        outer = s.schedule(asyncio.sleep(0, "outer"), "outer")
        outer.add_done_callback(lambda _: s.schedule(asyncio.sleep(0, "inner"), "inner"))
        await s.wait_idle()
        assert s.count() == 0
        assert {item.label for item in s.report()} == {"outer", "inner"}


class TestScheduleFunctionAndSequence:
    """Tests for schedule_function and schedule_sequence."""

    @pytest.mark.asyncio
    async def test_schedule_function(self) -> None:
        """Calls of scheduled functions are labelled with their arguments."""

        async def fetch(x: int) -> int:
            return x * 2

        s = scheduler_for([1])
        result = s.schedule_function(fetch)(21)
        await s.wait_all()
        assert await result == 42
        item = s.report()[0]
        assert item.label == "fetch(21)"
        assert item.scheduling_type == "function"
        assert item.output_value == "42"

    @pytest.mark.asyncio
    async def test_sequence_runs_in_order(self) -> None:
        """Sequence steps are only built once the previous one is done."""
        steps: list[str] = []

        async def step_a() -> None:
            steps.append("a")

        async def step_b() -> None:
            steps.append("b")

        s = scheduler_for([1, 2])
        sequence = s.schedule_sequence([SequenceItem(step_a, "a"), step_b])
        assert s.count() == 1

        status = await s.wait_for(sequence.task)
        assert steps == ["a", "b"]
        assert status.done
        assert not status.faulty
        assert [item.label for item in s.report()] == ["a", "step_b"]

    @pytest.mark.asyncio
    async def test_faulty_sequence(self) -> None:
        """A failing step stops the sequence."""
        steps: list[str] = []

        async def failing() -> None:
            msg = "nope"
            raise ValueError(msg)

        async def never() -> None:
            steps.append("never")

        s = scheduler_for([1])
        sequence = s.schedule_sequence([SequenceItem(failing, "fail"), never])
        status = await s.wait_for(sequence.task)
        assert status.faulty
        assert not status.done
        assert steps == []
        assert s.report()[0].status == "rejected"


class TestSchedulerArbitrary:
    """Tests for the scheduler arbitrary."""

    @pytest.mark.asyncio
    async def test_finds_ordering_bug(self) -> None:
        """Properties relying on completion order are caught."""

        async def predicate(s: Scheduler) -> None:
            received: list[str] = []
            for name in ("first", "second"):
                s.schedule(asyncio.sleep(0, name), name).add_done_callback(
                    lambda f: received.append(f.result())
                )
            await s.wait_all()
            await asyncio.sleep(0)
            assert received == ["first", "second"]

        out = await check(async_property(scheduler(), predicate), seed=1)
        assert out.failed
        assert "[task${2}] promise::second resolved" in repr(out.counterexample[0])

    @pytest.mark.asyncio
    async def test_seeds_cover_both_orders(self) -> None:
        """Across seeds, two tasks get released in both orders."""
        orders: set[tuple[str, ...]] = set()

        async def predicate(s: Scheduler) -> None:
            s.schedule(asyncio.sleep(0, "a"), "a")
            s.schedule(asyncio.sleep(0, "b"), "b")
            await s.wait_all()
            report = s.report()
            task_ids = [item.task_id for item in report]
            assert len(set(task_ids)) == len(task_ids)
            assert set(task_ids) <= {1, 2}
            assert all(item.status == "resolved" for item in report)
            orders.add(tuple(item.label for item in report))

        for seed in range(30):
            out = await check(async_property(scheduler(), predicate), seed=seed, num_runs=1)
            assert not out.failed
        assert orders == {("a", "b"), ("b", "a")}

    @pytest.mark.asyncio
    async def test_same_seed_same_order(self) -> None:
        """The release order only depends on the seed."""

        async def predicate(s: Scheduler) -> None:
            for value in range(5):
                s.schedule(asyncio.sleep(0, value))
            await s.wait_all()
            orders.append([item.task_id for item in s.report()])

        orders: list[list[int]] = []
        await check(async_property(scheduler(), predicate), seed=7, num_runs=5)
        first_orders = list(orders)
        orders.clear()
        await check(async_property(scheduler(), predicate), seed=7, num_runs=5)
        assert orders == first_orders
