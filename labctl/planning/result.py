"""Explicit success/failure values for planner operations."""
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

T = TypeVar('T')
E = TypeVar('E')
U = TypeVar('U')


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    def map(self, func: Callable[[T], U]) -> 'Success[U]':
        return Success(func(self.value))

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure(Generic[E]):
    error: E

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    def map(self, func) -> 'Failure[E]':
        return self

    def unwrap(self):
        raise ResultError(f"Operation failed: {self.error}")


Result = Union[Success[T], Failure[E]]


class ResultError(Exception):
    """Raised when unwrapping a Failure."""
    pass
