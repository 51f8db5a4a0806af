"""Outcome of a call across a collaborator boundary (LLM, usage ledger).

Collaborator failures never raise into the reply path; callers branch on
``ok`` and report ``error_code``.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: str = "unknown") -> "Result[T]":
        return cls(ok=False, error=error, error_code=code)

    @classmethod
    def from_exception(cls, exc: BaseException, code: str = "unknown") -> "Result[T]":
        return cls.failure(f"{type(exc).__name__}: {exc}", code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
