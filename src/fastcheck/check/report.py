"""Human readable reports of RunDetails, and their delivery."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

from fastcheck.check.execution import ExecutionStatus, ExecutionTree, RunDetails
from fastcheck.check.parameters import VerbosityLevel
from fastcheck.error import FastCheckError, PropertyFailedError
from fastcheck.stringify import stringify

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    ExecutionStatus.SUCCESS: "√",
    ExecutionStatus.FAILURE: "×",
    ExecutionStatus.SKIPPED: "!",
}


def format_hints(hints: list[str]) -> str:
    if len(hints) == 1:
        return f"Hint: {hints[0]}"
    return "\n".join(f"Hint ({index + 1}): {hint}" for index, hint in enumerate(hints))


def format_failures(failures: list[Any], stringify_one: Callable[[Any], str]) -> str:
    return "Encountered failures were:\n- " + "\n- ".join(stringify_one(f) for f in failures)


def format_execution_summary(
    execution_trees: list[ExecutionTree], stringify_one: Callable[[Any], str]
) -> str:
    """Depth first rendering of the execution trees, one line per executed value."""
    summary_lines = []
    remaining = [(1, tree) for tree in reversed(execution_trees)]
    while remaining:
        depth, tree = remaining.pop()
        left_padding = ". " * (depth - 1)
        summary_lines.append(f"{left_padding}{_STATUS_ICONS[tree.status]} {stringify_one(tree.value)}")
        remaining.extend((depth + 1, child) for child in reversed(tree.children))
    return "Execution summary:\n" + "\n".join(summary_lines)


def _pre_format_too_many_skipped(
    out: RunDetails, stringify_one: Callable[[Any], str]
) -> tuple[str, str | None, list[str]]:
    message = (
        "Failed to run property, too many pre-condition failures encountered\n"
        f"{{ seed: {out.seed} }}\n\nRan {out.num_runs} time(s)\nSkipped {out.num_skips} time(s)"
    )
    details = None
    hints = [
        "Try to reduce the number of rejected values by combining map, chain and built-in arbitraries",
        "Increase failure tolerance by setting max_skips_per_run to an higher value",
    ]
    if out.verbose >= VerbosityLevel.VERY_VERBOSE:
        details = format_execution_summary(out.execution_summary, stringify_one)
    else:
        hints.append(
            "Enable verbose mode at level VERY_VERBOSE in order to check all generated values "
            "and their associated status"
        )
    return message, details, hints


def _pre_format_failure(
    out: RunDetails, stringify_one: Callable[[Any], str]
) -> tuple[str, str | None, list[str]]:
    error_part = "" if out.run_configuration.error_with_cause else f"\nGot error: {out.error}"
    message = (
        f"Property failed after {out.num_runs} tests\n"
        f'{{ seed: {out.seed}, path: "{out.counterexample_path}", endOnFailure: true }}\n'
        f"Counterexample: {stringify_one(out.counterexample)}\n"
        f"Shrunk {out.num_shrinks} time(s){error_part}"
    )
    details = None
    hints = []
    if out.verbose >= VerbosityLevel.VERY_VERBOSE:
        details = format_execution_summary(out.execution_summary, stringify_one)
    elif out.verbose == VerbosityLevel.VERBOSE:
        details = format_failures(out.failures, stringify_one)
    else:
        hints.append("Enable verbose mode in order to have the list of all failing values encountered during the run")
    return message, details, hints


def _pre_format_early_interrupted(
    out: RunDetails, stringify_one: Callable[[Any], str]
) -> tuple[str, str | None, list[str]]:
    message = f"Property interrupted after {out.num_runs} tests\n{{ seed: {out.seed} }}"
    details = None
    hints = []
    if out.verbose >= VerbosityLevel.VERY_VERBOSE:
        details = format_execution_summary(out.execution_summary, stringify_one)
    else:
        hints.append(
            "Enable verbose mode at level VERY_VERBOSE in order to check all generated values "
            "and their associated status"
        )
    return message, details, hints


def default_report_message(out: RunDetails) -> str | None:
    """Message describing a failed run, None when the run succeeded."""
    if not out.failed:
        return None
    if out.counterexample_path is None:
        if out.interrupted:
            message, details, hints = _pre_format_early_interrupted(out, stringify)
        else:
            message, details, hints = _pre_format_too_many_skipped(out, stringify)
    else:
        message, details, hints = _pre_format_failure(out, stringify)
    error_message = message
    if details is not None:
        error_message += f"\n\n{details}"
    if hints:
        error_message += f"\n\n{format_hints(hints)}"
    return error_message


def _build_error(error_message: str, out: RunDetails) -> PropertyFailedError:
    return FastCheckError.property_failed(error_message, out)


def throw_if_failed(out: RunDetails) -> None:
    """Raise PropertyFailedError when `out` describes a failed run.

    With `error_with_cause`, the error raised by the predicate is chained
    as the cause instead of being part of the message.
    """
    if not out.failed:
        return
    error_message = default_report_message(out) or ""
    logger.debug("Property failed with seed=%s path=%s", out.seed, out.counterexample_path)
    if out.run_configuration.error_with_cause and out.error_instance is not None:
        raise _build_error(error_message, out) from out.error_instance
    raise _build_error(error_message, out)


def report_run_details(out: RunDetails) -> None:
    if out.run_configuration.async_reporter is not None:
        msg = "async_reporter cannot be used to report synchronous runs"
        raise FastCheckError.invalid_configuration(msg)
    if out.run_configuration.reporter is not None:
        out.run_configuration.reporter(out)
        return
    throw_if_failed(out)


async def async_report_run_details(out: RunDetails) -> None:
    if out.run_configuration.async_reporter is not None:
        await out.run_configuration.async_reporter(out)
        return
    if out.run_configuration.reporter is not None:
        result = out.run_configuration.reporter(out)
        if inspect.isawaitable(result):
            await result
        return
    throw_if_failed(out)
