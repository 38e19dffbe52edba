import pytest

from tea_init.settings import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(tea_prefix=tmp_path / ".tea", dist_url="https://dist.example.test")
