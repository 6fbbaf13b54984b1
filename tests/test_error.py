"""Tests for error types."""

import pytest

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


class TestErrorCode:
    """Tests for ErrorCode enum."""

    def test_error_codes(self) -> None:
        """Test all error code values."""
        assert str(ErrorCode.PROPERTY_FAILED) == "property_failed"
        assert str(ErrorCode.GENERATION_EXHAUSTED) == "generation_exhausted"
        assert str(ErrorCode.CONTRACT_VIOLATION) == "contract_violation"
        assert str(ErrorCode.INVALID_CONFIGURATION) == "invalid_configuration"
        assert str(ErrorCode.TIMEOUT) == "timeout"
        assert str(ErrorCode.WORKER_CRASHED) == "worker_crashed"


class TestFastCheckError:
    """Tests for FastCheckError."""

    def test_basic_error(self) -> None:
        """Test basic error creation."""
        error = FastCheckError(ErrorCode.INVALID_CONFIGURATION, "Invalid input")
        assert error.code == ErrorCode.INVALID_CONFIGURATION
        assert error.message == "Invalid input"
        assert error.data is None

    def test_error_with_data(self) -> None:
        """Test error with additional data."""
        data = {"attempts": 10}
        error = FastCheckError(ErrorCode.GENERATION_EXHAUSTED, "Too many attempts", data)
        assert error.data == data

    def test_property_failed_constructor(self) -> None:
        """Test property_failed convenience constructor."""
        error = FastCheckError.property_failed("Property failed after 1 tests")
        assert isinstance(error, PropertyFailedError)
        assert error.code == ErrorCode.PROPERTY_FAILED
        assert error.message == "Property failed after 1 tests"

    def test_generation_exhausted_constructor(self) -> None:
        """Test generation_exhausted convenience constructor."""
        error = FastCheckError.generation_exhausted("filter too strict")
        assert isinstance(error, GenerationExhaustedError)
        assert error.code == ErrorCode.GENERATION_EXHAUSTED

    def test_contract_violation_constructor(self) -> None:
        """Test contract_violation convenience constructor."""
        error = FastCheckError.contract_violation("unmapper is not the inverse of mapper")
        assert isinstance(error, ContractViolationError)
        assert error.code == ErrorCode.CONTRACT_VIOLATION

    def test_invalid_configuration_constructor(self) -> None:
        """Test invalid_configuration convenience constructor."""
        error = FastCheckError.invalid_configuration("num_runs must be positive")
        assert isinstance(error, ConfigurationError)
        assert error.code == ErrorCode.INVALID_CONFIGURATION

    def test_timeout_constructor(self) -> None:
        """Test timeout convenience constructor."""
        error = FastCheckError.timeout("Property timeout: exceeded limit of 10 milliseconds")
        assert error.code == ErrorCode.TIMEOUT

    def test_worker_crashed_constructor(self) -> None:
        """Test worker_crashed convenience constructor."""
        error = FastCheckError.worker_crashed("Worker exited with code 1")
        assert isinstance(error, WorkerCrashedError)
        assert error.code == ErrorCode.WORKER_CRASHED

    def test_str_representation(self) -> None:
        """Test string representation."""
        error = FastCheckError.contract_violation("Something went wrong")
        error_str = str(error)
        assert "contract_violation" in error_str
        assert "Something went wrong" in error_str

    def test_property_failed_str_is_the_report(self) -> None:
        """Property failures render as their report only."""
        error = FastCheckError.property_failed("Property failed after 3 tests")
        assert str(error) == "Property failed after 3 tests"

    def test_exception_behavior(self) -> None:
        """Test that errors can be raised and caught."""
        with pytest.raises(FastCheckError) as exc_info:
            raise FastCheckError.invalid_configuration("Bad")
        assert exc_info.value.code == ErrorCode.INVALID_CONFIGURATION

    def test_subclasses_caught_as_base(self) -> None:
        """Specialised errors are FastCheckErrors."""
        with pytest.raises(FastCheckError):
            raise FastCheckError.generation_exhausted("exhausted")


class TestPreconditionFailure:
    """Tests for PreconditionFailure."""

    def test_default_is_not_an_interruption(self) -> None:
        """Test default precondition failure."""
        failure = PreconditionFailure()
        assert failure.interrupt_execution is False
        assert str(failure) == "Precondition failed"

    def test_interruption(self) -> None:
        """Test interrupting precondition failure."""
        failure = PreconditionFailure(interrupt_execution=True)
        assert failure.interrupt_execution is True
        assert str(failure) == "Execution interrupted"

    def test_is_failure(self) -> None:
        """Test is_failure recognises precondition failures only."""
        assert PreconditionFailure.is_failure(PreconditionFailure())
        assert not PreconditionFailure.is_failure(ValueError("nope"))
