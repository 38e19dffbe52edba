from __future__ import annotations
import asyncio
import logging
from typing import Any, Generic, Optional

from .types import InitState, Producer, T

RETRY_BOUND = 3


def _consume_exception(task: "asyncio.Task[Any]") -> None:
    # Nobody may be awaiting a background attempt; keep asyncio quiet about it.
    if not task.cancelled():
        task.exception()


class InitWatcher(Generic[T]):
    """
    Run an async producer at most once at a time and share its outcome.

    Every caller arriving while an attempt is pending joins that attempt.
    A successful value is cached until reset(); a failure (after the retry
    bound is exhausted) clears the watcher so the next call starts over.
    """

    def __init__(self, init_function: Producer[T], retries: int = RETRY_BOUND, name: str = "init") -> None:
        if retries < 1:
            raise ValueError("retries must be >= 1")
        self._init_state: InitState = "NOT_INITIALIZED"
        self._init_function = init_function
        self._retries = retries
        self._task: Optional[asyncio.Task[T]] = None
        self._name = name
        self._logger = logging.getLogger("tea_init")

    async def initialize(self) -> T:
        if self._init_state == "NOT_INITIALIZED":
            self._init_state = "PENDING"
            task = asyncio.ensure_future(self._attempt())
            task.add_done_callback(_consume_exception)
            self._task = task
            if self._logger.isEnabledFor(logging.INFO):
                self._logger.info("init leader name=%s", self._name)
        elif self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug("init join name=%s state=%s", self._name, self._init_state)

        assert self._task is not None
        # a cancelled caller must not take the shared attempt down with it
        return await asyncio.shield(self._task)

    async def observe(self) -> T:
        return await self.initialize()

    def reset(self) -> None:
        if self._init_state != "NOT_INITIALIZED" and self._logger.isEnabledFor(logging.INFO):
            self._logger.info("init reset name=%s state=%s", self._name, self._init_state)
        self._init_state = "NOT_INITIALIZED"
        self._task = None

    def get_state(self) -> InitState:
        return self._init_state

    async def _attempt(self) -> T:
        try:
            value = await self._retry()
        except BaseException:
            if self._owns_current_task():
                self._init_state = "NOT_INITIALIZED"
                self._task = None
            raise
        if self._owns_current_task():
            self._init_state = "INITIALIZED"
            if self._logger.isEnabledFor(logging.INFO):
                self._logger.info("init done name=%s", self._name)
        return value

    async def _retry(self) -> T:
        attempt = 1
        while True:
            try:
                return await self._init_function()
            except Exception as e:
                if attempt >= self._retries:
                    self._logger.error(
                        "init failed name=%s attempts=%d err=%r", self._name, attempt, e
                    )
                    raise
                self._logger.warning(
                    "init retry name=%s attempt=%d/%d err=%r", self._name, attempt, self._retries, e
                )
                attempt += 1

    def _owns_current_task(self) -> bool:
        # False once reset() has detached this attempt
        return self._task is not None and self._task is asyncio.current_task()
