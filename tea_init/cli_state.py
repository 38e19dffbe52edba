from __future__ import annotations
import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional

from packaging.version import InvalidVersion, Version

from .init_watcher import InitWatcher
from .installer import install_tea_cli
from .settings import Settings
from .types import InitializationError, InitState, Observable

logger = logging.getLogger("tea_init")

Installer = Callable[[Settings], Awaitable[str]]


def parse_version(name: str) -> str:
    """Normalize a release directory name such as ``v0.31.2`` to ``0.31.2``."""
    try:
        return str(Version(name))
    except InvalidVersion:
        raise InitializationError(f"couldn't parse to semver: {name}") from None


class TeaCli:
    """
    Owns the watcher that makes the tea CLI available and reports its version.

    The watcher caches "installed at version X"; ensure() drops that cache
    when the binary has since disappeared from disk.
    """

    def __init__(self, settings: Settings, installer: Installer = install_tea_cli) -> None:
        self.settings = settings
        self._installer = installer
        self.watcher: InitWatcher[str] = InitWatcher(
            self._resolve, retries=settings.init_retries, name="tea-cli"
        )
        self._background: Optional[asyncio.Task[str]] = None

    @property
    def pinned_dir(self) -> Path:
        # literal "v*" link, not a glob
        return self.settings.cli_dir / "v*"

    @property
    def binary(self) -> Path:
        return self.pinned_dir / "bin" / "tea"

    def is_installed(self) -> bool:
        return self.binary.exists()

    async def _resolve(self) -> str:
        if not self.is_installed():
            # same normalization as the pinned-link path
            return parse_version(await self._installer(self.settings))
        return parse_version(os.readlink(self.pinned_dir))

    def start(self) -> None:
        """Begin initializing without waiting for the outcome."""
        if self._background is not None and not self._background.done():
            return
        if self.watcher.get_state() == "NOT_INITIALIZED":
            self._background = asyncio.ensure_future(self.watcher.initialize())
            self._background.add_done_callback(_log_background_failure)

    async def ensure(self) -> str:
        if self.watcher.get_state() == "INITIALIZED" and not self.is_installed():
            logger.info("tea cli missing from %s, reinitializing", self.binary)
            self.watcher.reset()
        return await self.watcher.observe()

    def get_state(self) -> InitState:
        return self.watcher.get_state()

    def reset(self) -> None:
        self.watcher.reset()


def _log_background_failure(task: "asyncio.Task[str]") -> None:
    if task.cancelled():
        return
    e = task.exception()
    if e is not None:
        logger.warning("background tea cli initialization failed err=%r", e)


class Bootstrap:
    """Bring up the CLI alongside any other watched state; yields the CLI version."""

    def __init__(self, cli: TeaCli, *watchers: Observable[object]) -> None:
        self.cli = cli
        self.watchers = watchers

    async def initialize(self) -> str:
        version, *_ = await asyncio.gather(
            self.cli.ensure(), *(w.observe() for w in self.watchers)
        )
        return version
