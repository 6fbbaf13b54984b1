"""Commands for model based testing.

A command checks whether it applies to the current model, then runs against
both the model and the real system, raising on any discrepancy. The
`commands` arbitrary produces sequences of such commands and shrinks them
towards shorter sequences ending with the command that failed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fastcheck.arbitrary.integer import IntegerArbitrary
from fastcheck.arbitrary.oneof import oneof
from fastcheck.arbitrary.size import (
    MAX_LENGTH_UPPER_BOUND,
    SizeForArbitrary,
    max_generated_length_from_size_for_arbitrary,
)
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.stream import Stream, lazy
from fastcheck.core.value import Value
from fastcheck.error import FastCheckError

if TYPE_CHECKING:
    from fastcheck.core.rng import Random

M = TypeVar("M")
R = TypeVar("R")


class Command(ABC, Generic[M, R]):
    """Synchronous command, run by `model_run`."""

    @abstractmethod
    def check(self, model: M) -> bool:
        """Whether the command can be executed given the current model."""

    @abstractmethod
    def run(self, model: M, real: R) -> None:
        """Apply the command on the model and the real system, raise on mismatch."""


class AsyncCommand(ABC, Generic[M, R]):
    """Asynchronous command, run by `async_model_run` and `scheduled_model_run`.

    `check` may be a plain or a coroutine function.
    """

    @abstractmethod
    def check(self, model: M) -> bool | Awaitable[bool]: ...

    @abstractmethod
    async def run(self, model: M, real: R) -> None: ...


class CommandWrapper:
    """Track whether a generated command has actually been executed."""

    def __init__(self, cmd: Command[Any, Any] | AsyncCommand[Any, Any]) -> None:
        self.cmd = cmd
        self.has_ran = False

    def check(self, model: Any) -> Any:
        return self.cmd.check(model)

    def run(self, model: Any, real: Any) -> Any:
        self.has_ran = True
        return self.cmd.run(model, real)

    def fc_clone(self) -> CommandWrapper:
        return CommandWrapper(self.cmd)

    def fc_to_string(self) -> str:
        return str(self.cmd)

    def __repr__(self) -> str:
        return self.fc_to_string()


class CommandsIterable:
    """Sequence of commands handed to the predicate.

    Rendered as the list of the commands that ran, which is what a failure
    report should show.
    """

    def __init__(self, commands: Sequence[CommandWrapper]) -> None:
        self.commands = list(commands)

    def __iter__(self) -> Iterator[CommandWrapper]:
        return iter(self.commands)

    def __len__(self) -> int:
        return len(self.commands)

    def fc_clone(self) -> CommandsIterable:
        return CommandsIterable([c.fc_clone() for c in self.commands])

    def fc_to_string(self) -> str:
        return ",".join(c.fc_to_string() for c in self.commands if c.has_ran)

    def __repr__(self) -> str:
        return self.fc_to_string()


@dataclass(frozen=True)
class _CommandsContext:
    shrunk_once: bool
    items: list[Value[CommandWrapper]]


class CommandsArbitrary(Arbitrary[CommandsIterable]):
    """Arbitrary producing CommandsIterable values.

    Shrinking only considers commands that ran during the failing execution.
    The last of them is always kept: it is the one revealing the failure.
    """

    def __init__(
        self,
        command_arbs: Sequence[Arbitrary[Any]],
        max_generated_commands: int,
        max_commands: int,
    ) -> None:
        self.one_command_arb = oneof(*command_arbs).map(CommandWrapper)
        self.generate_length_arb = IntegerArbitrary(0, max_generated_commands)
        self.length_arb = IntegerArbitrary(0, max_commands)

    @staticmethod
    def _build_value_for(items: list[Value[CommandWrapper]], shrunk_once: bool) -> Value[CommandsIterable]:
        commands = CommandsIterable([item.value_ for item in items])
        return Value(commands, _CommandsContext(shrunk_once, items))

    def generate(self, mrng: Random, bias_factor: int | None) -> Value[CommandsIterable]:
        # Bias is ignored: neither the length nor the commands use it
        size = self.generate_length_arb.generate(mrng, None).value
        items = [self.one_command_arb.generate(mrng, None) for _ in range(size)]
        return self._build_value_for(items, False)

    def can_shrink_without_context(self, value: Any) -> bool:
        return False

    def shrink(self, value: CommandsIterable, context: Any) -> Stream[Value[CommandsIterable]]:
        if not isinstance(context, _CommandsContext):
            return Stream.nil()
        items = [c for c in context.items if c.value_.has_ran]
        if not items:
            return Stream.nil()
        root_shrink: Stream[list[Value[CommandWrapper]]] = (
            Stream.nil() if context.shrunk_once else Stream.of([])
        )

        def keeping_first(num_to_keep: int) -> Iterator[list[Value[CommandWrapper]]]:
            fixed_start = items[:num_to_keep]
            for length in self.length_arb.shrink(len(items) - 1 - num_to_keep, None):
                yield fixed_start + items[len(items) - (length.value + 1) :]

        def shrinking_item(item_at: int) -> Iterator[list[Value[CommandWrapper]]]:
            item = items[item_at]
            for shrunk in self.one_command_arb.shrink(item.value_, item.context):
                yield [*items[:item_at], shrunk, *items[item_at + 1 :]]

        next_shrinks = [
            *(lazy(lambda n=n: keeping_first(n)) for n in range(len(items))),
            *(lazy(lambda n=n: shrinking_item(n)) for n in range(len(items))),
        ]
        return root_shrink.join(*next_shrinks).map(
            lambda shrinkables: self._build_value_for(
                [Value(c.value_.fc_clone(), c.context) for c in shrinkables], True
            )
        )


def commands(
    command_arbs: Sequence[Arbitrary[Any]],
    *,
    max_commands: int | None = None,
    size: SizeForArbitrary = None,
) -> Arbitrary[CommandsIterable]:
    """Sequences of commands drawn from `command_arbs`.

    Args:
        command_arbs: Arbitraries producing Command or AsyncCommand instances
        max_commands: Maximal number of commands in a sequence
        size: Size used to derive the number of commands generated by default

    Returns:
        The commands arbitrary

    Raises:
        ConfigurationError: When no command arbitrary is given
    """
    if not command_arbs:
        msg = "commands expects at least one command arbitrary"
        raise FastCheckError.invalid_configuration(msg)
    specified_max = max_commands is not None
    max_length = max_commands if max_commands is not None else MAX_LENGTH_UPPER_BOUND
    max_generated = max_generated_length_from_size_for_arbitrary(size, 0, max_length, specified_max)
    return CommandsArbitrary(command_arbs, max_generated, max_length)
