"""
Tests for TeaCli and Bootstrap.
"""

import asyncio

import pytest

from tea_init.cli_state import Bootstrap, TeaCli, parse_version
from tea_init.init_watcher import InitWatcher
from tea_init.types import InitializationError
from tests.test_utils import make_release

pytest_plugins = ("pytest_asyncio",)


class FakeInstaller:
    def __init__(self, version="0.31.2", fail=False):
        self.version = version
        self.fail = fail
        self.calls = 0

    async def __call__(self, settings):
        self.calls += 1
        if self.fail:
            raise InitializationError("tar: 2")
        make_release(settings.tea_prefix, self.version)
        return self.version


def test_parse_version_strips_prefix():
    assert parse_version("v0.31.2") == "0.31.2"
    assert parse_version("1.2.3") == "1.2.3"


def test_parse_version_rejects_garbage():
    with pytest.raises(InitializationError, match="couldn't parse to semver: vnext"):
        parse_version("vnext")


@pytest.mark.asyncio
async def test_installed_cli_reports_pinned_version(settings):
    make_release(settings.tea_prefix, "0.29.0")
    install = FakeInstaller()
    cli = TeaCli(settings, installer=install)

    assert await cli.ensure() == "0.29.0"
    assert install.calls == 0
    assert cli.get_state() == "INITIALIZED"


@pytest.mark.asyncio
async def test_missing_cli_is_installed_once(settings):
    install = FakeInstaller()
    cli = TeaCli(settings, installer=install)

    versions = await asyncio.gather(*(cli.ensure() for _ in range(3)))

    assert versions == ["0.31.2"] * 3
    assert install.calls == 1
    assert cli.is_installed()


@pytest.mark.asyncio
async def test_unparsable_pin_fails_after_retries(settings):
    make_release(settings.tea_prefix, "0.29.0")
    link = settings.cli_dir / "v*"
    link.unlink()
    (settings.cli_dir / "vnext" / "bin").mkdir(parents=True)
    (settings.cli_dir / "vnext" / "bin" / "tea").write_text("")
    link.symlink_to("vnext", target_is_directory=True)

    cli = TeaCli(settings, installer=FakeInstaller())
    with pytest.raises(InitializationError, match="couldn't parse to semver"):
        await cli.ensure()
    assert cli.get_state() == "NOT_INITIALIZED"


@pytest.mark.asyncio
async def test_failed_install_is_retried_then_surfaced(settings):
    install = FakeInstaller(fail=True)
    cli = TeaCli(settings, installer=install)

    with pytest.raises(InitializationError, match="tar: 2"):
        await cli.ensure()
    assert install.calls == 3

    install.fail = False
    assert await cli.ensure() == "0.31.2"
    assert install.calls == 4


@pytest.mark.asyncio
async def test_ensure_reinstalls_when_binary_vanishes(settings):
    install = FakeInstaller()
    cli = TeaCli(settings, installer=install)
    assert await cli.ensure() == "0.31.2"

    cli.binary.unlink()
    install.version = "0.32.0"

    assert await cli.ensure() == "0.32.0"
    assert install.calls == 2


@pytest.mark.asyncio
async def test_ensure_keeps_cache_while_binary_present(settings):
    install = FakeInstaller()
    cli = TeaCli(settings, installer=install)
    await cli.ensure()
    await cli.ensure()
    assert install.calls == 1


@pytest.mark.asyncio
async def test_start_runs_in_background(settings):
    install = FakeInstaller()
    cli = TeaCli(settings, installer=install)

    cli.start()
    cli.start()
    assert cli.get_state() == "NOT_INITIALIZED"
    await asyncio.sleep(0)
    assert cli.get_state() == "PENDING"

    assert await cli.ensure() == "0.31.2"
    assert install.calls == 1


@pytest.mark.asyncio
async def test_start_failure_does_not_raise(settings):
    cli = TeaCli(settings, installer=FakeInstaller(fail=True))
    cli.start()
    for _ in range(10):
        await asyncio.sleep(0)
    assert cli.get_state() == "NOT_INITIALIZED"


@pytest.mark.asyncio
async def test_bootstrap_observes_every_watcher(settings):
    auth_calls = []

    async def load_auth():
        auth_calls.append(1)
        return {"token": "abc"}

    auth = InitWatcher(load_auth, name="auth")
    boot = Bootstrap(TeaCli(settings, installer=FakeInstaller()), auth)

    assert await boot.initialize() == "0.31.2"
    assert auth.get_state() == "INITIALIZED"
    assert await boot.initialize() == "0.31.2"
    assert len(auth_calls) == 1


@pytest.mark.asyncio
async def test_prerelease_reported_the_same_on_both_paths(settings):
    install = FakeInstaller(version="1.2.3-beta.1")
    cli = TeaCli(settings, installer=install)
    fresh = await cli.ensure()

    # second instance finds the pinned release on disk instead of installing
    pinned = await TeaCli(settings, installer=install).ensure()

    assert fresh == pinned == "1.2.3b1"
    assert install.calls == 1


@pytest.mark.asyncio
async def test_bootstrap_surfaces_watcher_failure(settings):
    async def load_auth():
        raise PermissionError("auth file unreadable")

    auth = InitWatcher(load_auth, name="auth")
    boot = Bootstrap(TeaCli(settings, installer=FakeInstaller()), auth)

    with pytest.raises(PermissionError, match="auth file unreadable"):
        await boot.initialize()
    assert auth.get_state() == "NOT_INITIALIZED"
