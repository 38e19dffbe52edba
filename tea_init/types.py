from __future__ import annotations
from typing import Awaitable, Callable, Literal, Protocol, TypeVar

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

InitState = Literal["NOT_INITIALIZED", "PENDING", "INITIALIZED"]

Producer = Callable[[], Awaitable[T]]


class InitializationError(RuntimeError):
    """Raised by the bundled producers when the CLI cannot be made available."""


class Observable(Protocol[T_co]):
    async def observe(self) -> T_co: ...
    def reset(self) -> None: ...
    def get_state(self) -> InitState: ...
