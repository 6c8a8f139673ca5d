"""Status codes, structured errors and the tagged result type.

Every public operation of the pipeline reports exactly one :class:`StatusCode`.
Internally the operations raise :class:`PipelineError` subclasses; the
:class:`~xgb_pipeline.context.PipelineContext` converts those into a
:class:`Result` carrying either the success value or an :class:`ErrorInfo`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class StatusCode(IntEnum):
    """Closed set of outcomes for pipeline operations."""

    SUCCESS = 0
    INVALID_PARAMETER = 1
    MEMORY_ERROR = 2
    FILE_IO_ERROR = 3
    ENGINE_ERROR = 4
    NOT_INITIALIZED = 5
    SIZE_MISMATCH = 6


_STATUS_TEXT: Dict[StatusCode, str] = {
    StatusCode.SUCCESS: "Success",
    StatusCode.INVALID_PARAMETER: "Invalid parameter",
    StatusCode.MEMORY_ERROR: "Memory allocation failed",
    StatusCode.FILE_IO_ERROR: "File I/O error",
    StatusCode.ENGINE_ERROR: "XGBoost engine error",
    StatusCode.NOT_INITIALIZED: "Library not initialized",
    StatusCode.SIZE_MISMATCH: "Size mismatch",
}


def status_to_string(code: int | StatusCode) -> str:
    """Return a human readable description for a status code."""
    try:
        return _STATUS_TEXT[StatusCode(code)]
    except ValueError:
        return "Unknown status"


class PipelineError(Exception):
    """Base error raised by pipeline operations.

    Parameters
    ----------
    message : str
        Human readable description of the failure.
    operation : str, optional
        Name of the operation that failed (e.g. ``"split"``).
    context : dict, optional
        Offending operands, e.g. ``{"rows_train": 0, "rows": 10}``.
    """

    code: StatusCode = StatusCode.ENGINE_ERROR

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context: Dict[str, Any] = dict(context or {})

    def to_info(self) -> "ErrorInfo":
        return ErrorInfo(
            code=self.code,
            message=self.message,
            operation=self.operation,
            context=dict(self.context),
        )


class InvalidParameterError(PipelineError):
    code = StatusCode.INVALID_PARAMETER


class AllocationError(PipelineError):
    code = StatusCode.MEMORY_ERROR


class FileIOError(PipelineError):
    code = StatusCode.FILE_IO_ERROR


class EngineError(PipelineError):
    code = StatusCode.ENGINE_ERROR


class NotInitializedError(PipelineError):
    code = StatusCode.NOT_INITIALIZED


class SizeMismatchError(PipelineError):
    code = StatusCode.SIZE_MISMATCH


@dataclass(frozen=True)
class ErrorInfo:
    """Structured description of a failed operation."""

    code: StatusCode
    message: str
    operation: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        """Format as ``"<operation>: <message> (k=v, ...)"``."""
        text = f"{self.operation}: {self.message}" if self.operation else self.message
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            text = f"{text} ({details})"
        return text


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged result: either ``value`` (on success) or ``error``."""

    value: Optional[T] = None
    error: Optional[ErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> StatusCode:
        return StatusCode.SUCCESS if self.error is None else self.error.code

    def unwrap(self) -> T:
        """Return the value or raise the error as a :class:`PipelineError`."""
        if self.error is not None:
            raise error_from_info(self.error)
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorInfo) -> "Result[T]":
        return cls(error=error)


_ERROR_TYPES: Dict[StatusCode, type] = {
    StatusCode.INVALID_PARAMETER: InvalidParameterError,
    StatusCode.MEMORY_ERROR: AllocationError,
    StatusCode.FILE_IO_ERROR: FileIOError,
    StatusCode.ENGINE_ERROR: EngineError,
    StatusCode.NOT_INITIALIZED: NotInitializedError,
    StatusCode.SIZE_MISMATCH: SizeMismatchError,
}


def error_from_info(info: ErrorInfo) -> PipelineError:
    error_cls = _ERROR_TYPES.get(info.code, PipelineError)
    return error_cls(info.message, operation=info.operation, context=info.context)
