"""Success-or-error value passed back from the installer worker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar


T = TypeVar("T")
E = TypeVar("E", bound=BaseException)
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Result(Generic[T, E]):
    """Discriminated union capturing either a success value or an error.

    A successful result may legitimately carry ``None`` (for example when a
    config reset found nothing to move), so success is defined purely by the
    absence of an error.
    """

    value: Optional[T] = None
    error: Optional[E] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def err(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the value, re-raising the stored error when there is one."""

        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def map(self, func: Callable[[T], U]) -> "Result[U, E]":
        if self.error is not None:
            return Result(error=self.error)
        return Result(value=func(self.value))  # type: ignore[arg-type]


__all__ = ["Result"]
