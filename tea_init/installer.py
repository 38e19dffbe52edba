"""
Download and unpack the tea CLI into the configured prefix.

The distribution layout is ``<dist>/tea.xyz/<platform>/<arch>/``, holding a
semver-sorted ``versions.txt`` plus one ``v<version>.tar.gz`` per release.
The tarball unpacks to ``tea.xyz/v<version>/``; the ``v*`` and ``v0`` links
beside it are then pointed at the fresh release.
"""
from __future__ import annotations
import asyncio
import logging
import platform
import sys
from pathlib import Path

from .settings import Settings
from .types import InitializationError
from .utils import fetch_text, get_http_client

logger = logging.getLogger("tea_init")

_ARCHES = {
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "x64": "x86-64",
    "x86_64": "x86-64",
    "amd64": "x86-64",
}


def platform_midfix(system: str | None = None, machine: str | None = None) -> str:
    system = system or sys.platform
    machine = machine or platform.machine()
    arch = _ARCHES.get(machine.lower())
    if arch is None:
        raise InitializationError(f"unsupported platform: {system}/{machine}")
    return f"{system}/{arch}"


def dist_base(settings: Settings, midfix: str) -> str:
    return f"{settings.dist_url.rstrip('/')}/tea.xyz/{midfix}"


async def latest_version(settings: Settings, midfix: str | None = None) -> str:
    base = dist_base(settings, midfix or platform_midfix())
    # .value re-raises the fetch error
    text = (await fetch_text(f"{base}/versions.txt")).map(str.strip).value
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise InitializationError("invalid versions.txt for tea/cli")
    return lines[-1]


async def _stream_into_tar(url: str, cwd: Path) -> int:
    client = await get_http_client()
    async with client.stream("GET", url) as resp:
        if resp.status_code != 200:
            raise InitializationError(f"GET {url} returned status code {resp.status_code}")
        proc = await asyncio.create_subprocess_exec(
            "tar", "xzf", "-", stdin=asyncio.subprocess.PIPE, cwd=str(cwd)
        )
        assert proc.stdin is not None
        try:
            async for chunk in resp.aiter_bytes():
                proc.stdin.write(chunk)
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # tar exited early; its exit code says why
            pass
        except BaseException:
            # download broke off; tar would otherwise sit on a half-read pipe
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            raise
        finally:
            proc.stdin.close()
            await proc.wait()
        return proc.returncode


def _relink(link: Path, target: str) -> None:
    if link.is_symlink() or link.exists():
        link.unlink()
    link.symlink_to(target, target_is_directory=True)


def pin_version(cli_dir: Path, version: str) -> None:
    target = f"v{version}"
    _relink(cli_dir / "v*", target)
    _relink(cli_dir / "v0", target)


async def install_tea_cli(settings: Settings) -> str:
    midfix = platform_midfix()
    version = await latest_version(settings, midfix)
    logger.info("installing tea cli version=%s prefix=%s", version, settings.tea_prefix)

    settings.tea_prefix.mkdir(parents=True, exist_ok=True)
    url = f"{dist_base(settings, midfix)}/v{version}.tar.gz"
    exitcode = await _stream_into_tar(url, settings.tea_prefix)
    if exitcode != 0:
        raise InitializationError(f"tar: {exitcode}")

    pin_version(settings.cli_dir, version)
    logger.info("installed tea cli version=%s", version)
    return version
