"""fastcheck - Property based testing for Python

This module provides arbitraries describing input domains, a runner checking
properties against generated values and shrinking failures to minimal,
replayable counterexamples.
"""

from fastcheck.arbitrary.array import array, shuffled_subarray, subarray, unique_array
from fastcheck.arbitrary.character import ascii_char, char, unicode_char
from fastcheck.arbitrary.commands import AsyncCommand, Command, commands
from fastcheck.arbitrary.constant import boolean, constant, constant_from
from fastcheck.arbitrary.entity_graph import Relation, entity_graph
from fastcheck.arbitrary.floating import double, float32
from fastcheck.arbitrary.integer import big_int, integer, nat
from fastcheck.arbitrary.letrec import letrec
from fastcheck.arbitrary.oneof import WeightedArbitrary, frequency, oneof, option
from fastcheck.arbitrary.scheduler import Scheduler, SequenceItem, scheduler, scheduler_for
from fastcheck.arbitrary.string import mixed_case, string
from fastcheck.arbitrary.tuple import dictionary, record, tuple_
from fastcheck.check.execution import ExecutionStatus, ExecutionTree, RunDetails
from fastcheck.check.isolation import IsolatedProperty, WorkerRequest, WorkerResponse
from fastcheck.check.model import async_model_run, model_run, scheduled_model_run
from fastcheck.check.parameters import (
    Parameters,
    QualifiedParameters,
    VerbosityLevel,
    configure_global,
    read_configure_global,
    reset_configure_global,
)
from fastcheck.check.property import AsyncProperty, Property, async_property, pre, property_
from fastcheck.check.report import default_report_message
from fastcheck.check.runner import assert_property, check, sample, statistics
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.core.rng import Random
from fastcheck.core.stream import Stream
from fastcheck.core.value import Value
from fastcheck.error import (
    ConfigurationError,
    ContractViolationError,
    ErrorCode,
    FastCheckError,
    GenerationExhaustedError,
    PreconditionFailure,
    PropertyFailedError,
    WorkerCrashedError,
)
from fastcheck.stringify import stringify

__version__ = "0.1.0"

__all__ = [
    # Runner
    "check",
    "assert_property",
    "sample",
    "statistics",
    "Parameters",
    "QualifiedParameters",
    "VerbosityLevel",
    "configure_global",
    "read_configure_global",
    "reset_configure_global",
    "RunDetails",
    "ExecutionTree",
    "ExecutionStatus",
    "default_report_message",
    # Properties
    "Property",
    "AsyncProperty",
    "property_",
    "async_property",
    "pre",
    "IsolatedProperty",
    "WorkerRequest",
    "WorkerResponse",
    # Core types
    "Arbitrary",
    "Value",
    "Stream",
    "Random",
    "stringify",
    # Arbitraries
    "integer",
    "nat",
    "big_int",
    "double",
    "float32",
    "boolean",
    "constant",
    "constant_from",
    "char",
    "ascii_char",
    "unicode_char",
    "string",
    "mixed_case",
    "array",
    "unique_array",
    "subarray",
    "shuffled_subarray",
    "tuple_",
    "record",
    "dictionary",
    "oneof",
    "frequency",
    "option",
    "WeightedArbitrary",
    "letrec",
    "entity_graph",
    "Relation",
    # Scheduler
    "scheduler",
    "scheduler_for",
    "Scheduler",
    "SequenceItem",
    # Model based testing
    "commands",
    "Command",
    "AsyncCommand",
    "model_run",
    "async_model_run",
    "scheduled_model_run",
    # Errors
    "FastCheckError",
    "ErrorCode",
    "PropertyFailedError",
    "GenerationExhaustedError",
    "ContractViolationError",
    "ConfigurationError",
    "WorkerCrashedError",
    "PreconditionFailure",
]
