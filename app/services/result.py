from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


@dataclass(frozen=True)
class Replied:
    """Mode handler produced the reply text."""

    text: str


@dataclass(frozen=True)
class RedirectToGeneralMode:
    """Mode handler gave up; the same text must be answered in general mode."""

    original_text: str


ModeOutcome = Union[Replied, RedirectToGeneralMode]
