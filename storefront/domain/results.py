"""
Result and Error types returned by domain operations.

Expected business-rule violations (an invalid state transition, a currency
mismatch, a refund overdraft) are reported as failure Results carrying a
structured Error. Exceptions are reserved for programmer errors and for
infrastructure failures such as a concurrency conflict at commit time.
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ErrorType(str, Enum):
    """Category of an Error, used by callers to pick a transport status."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    FAILURE = "failure"


class Error(BaseModel):
    """Structured description of why an operation failed."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Stable machine-readable error code")
    message: str = Field(description="Human-readable explanation")
    type: ErrorType = ErrorType.FAILURE

    @classmethod
    def validation(cls, code: str, message: str) -> "Error":
        return cls(code=code, message=message, type=ErrorType.VALIDATION)

    @classmethod
    def not_found(cls, code: str, message: str) -> "Error":
        return cls(code=code, message=message, type=ErrorType.NOT_FOUND)

    @classmethod
    def conflict(cls, code: str, message: str) -> "Error":
        return cls(code=code, message=message, type=ErrorType.CONFLICT)

    @classmethod
    def unauthorized(cls, code: str, message: str) -> "Error":
        return cls(code=code, message=message, type=ErrorType.UNAUTHORIZED)

    @classmethod
    def forbidden(cls, code: str, message: str) -> "Error":
        return cls(code=code, message=message, type=ErrorType.FORBIDDEN)

    @classmethod
    def failure(cls, code: str, message: str) -> "Error":
        return cls(code=code, message=message, type=ErrorType.FAILURE)


class Result(Generic[T]):
    """Outcome of an operation: either a success value or an Error.

    Build instances with ``Result.success`` and ``Result.failure``. Reading
    ``value`` from a failed Result is a programmer error and raises
    ``ValueError``.
    """

    __slots__ = ("_value", "_error")

    def __init__(self, value: Optional[T], error: Optional[Error]) -> None:
        if error is not None and value is not None:
            raise ValueError("A failed Result cannot carry a value")
        self._value = value
        self._error = error

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value, None)

    @classmethod
    def failure(cls, error: Error) -> "Result[T]":
        if error is None:
            raise ValueError("A failed Result requires an Error")
        return cls(None, error)

    @property
    def is_success(self) -> bool:
        return self._error is None

    @property
    def is_failure(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        if self._error is not None:
            raise ValueError(
                f"Cannot read the value of a failed result: {self._error.code}"
            )
        return self._value  # type: ignore[return-value]

    @property
    def error(self) -> Optional[Error]:
        return self._error

    def __repr__(self) -> str:
        if self.is_failure:
            return f"Result.failure({self._error!r})"
        return f"Result.success({self._value!r})"
