"""Run sequences of commands against a model and a real system."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from fastcheck.arbitrary.commands import AsyncCommand, Command
from fastcheck.arbitrary.scheduler import Scheduler, SequenceItem

Setup = Callable[[], tuple[Any, Any]]
AsyncSetup = Callable[[], tuple[Any, Any] | Awaitable[tuple[Any, Any]]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def model_run(setup: Setup, cmds: Iterable[Any]) -> None:
    """Run synchronous commands, raising on the first inconsistency.

    Args:
        setup: Build the initial `(model, real)` pair
        cmds: Commands, usually produced by the `commands` arbitrary
    """
    model, real = setup()
    for cmd in cmds:
        if cmd.check(model):
            cmd.run(model, real)


async def _internal_async_model_run(
    setup: AsyncSetup, cmds: Iterable[Any], start: Awaitable[Any] | None = None
) -> None:
    if start is not None:
        await start
    model, real = await _maybe_await(setup())
    for cmd in cmds:
        if await _maybe_await(cmd.check(model)):
            await cmd.run(model, real)


async def async_model_run(setup: AsyncSetup, cmds: Iterable[Any]) -> None:
    """Same as `model_run` for asynchronous commands; `setup` may be a coroutine function."""
    await _internal_async_model_run(setup, cmds)


class ScheduledCommand(AsyncCommand[Any, Any]):
    """Route `check` and `run` of a command through a scheduler.

    Both steps become scheduled tasks, so that the scheduler decides when
    they happen relative to the other scheduled tasks.
    """

    def __init__(self, scheduler: Scheduler, cmd: Command[Any, Any] | AsyncCommand[Any, Any]) -> None:
        self.scheduler = scheduler
        self.cmd = cmd

    async def _scheduled_step(self, label: str, step: Callable[[], Any]) -> Any:
        outcome: list[Any] = []
        error: list[BaseException] = []

        async def builder() -> None:
            try:
                outcome.append(await _maybe_await(step()))
            except Exception as err:
                error.append(err)
                raise

        status = self.scheduler.schedule_sequence([SequenceItem(builder, label)])
        if status.task is not None:
            await status.task
        if status.faulty and error:
            raise error[0]
        return outcome[0] if outcome else None

    async def check(self, model: Any) -> bool:
        return bool(await self._scheduled_step(f"check@{self.cmd}", lambda: self.cmd.check(model)))

    async def run(self, model: Any, real: Any) -> None:
        await self._scheduled_step(f"run@{self.cmd}", lambda: self.cmd.run(model, real))

    def __str__(self) -> str:
        return str(self.cmd)


def schedule_commands(scheduler: Scheduler, cmds: Iterable[Any]) -> Iterable[ScheduledCommand]:
    for cmd in cmds:
        yield ScheduledCommand(scheduler, cmd)


async def scheduled_model_run(scheduler: Scheduler, setup: AsyncSetup, cmds: Iterable[Any]) -> None:
    """Same as `async_model_run`, every check and run being a task of `scheduler`.

    Returns once all the commands ran, releasing scheduled tasks meanwhile.
    """
    loop = asyncio.get_running_loop()
    started: asyncio.Future[None] = loop.create_future()
    started.set_result(None)
    start = scheduler.schedule(started, "startModel")
    out = asyncio.ensure_future(_internal_async_model_run(setup, schedule_commands(scheduler, cmds), start))
    await scheduler.wait_for(out)
