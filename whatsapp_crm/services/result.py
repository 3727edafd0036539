from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of a call to an external provider. Failures are values, not exceptions."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Optional[Any] = None

    @staticmethod
    def success(value: T, details: Optional[Any] = None) -> "Result[T]":
        return Result(ok=True, value=value, details=details)

    @staticmethod
    def failure(error: str, code: str = "unknown", details: Optional[Any] = None) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code, details=details)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
