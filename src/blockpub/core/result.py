"""Two-variant result type returned by every collaborator call"""

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, TypeVar, Union


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful call carrying its value."""
    value: T

    def is_err(self) -> bool:
        return False


@dataclass(frozen=True)
class Err:
    """Failed call carrying the underlying exception."""
    error: BaseException

    def is_err(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


Result = Union[Ok[T], Err]


def is_result(obj: Any) -> bool:
    return isinstance(obj, (Ok, Err))


async def resolve(awaitable: Awaitable[T]) -> Result:
    """Await a coroutine that may raise and fold the outcome into a Result."""
    try:
        return Ok(await awaitable)
    except Exception as e:
        return Err(e)
