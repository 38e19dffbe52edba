from __future__ import annotations
import os
from pathlib import Path

import dotenv
from pydantic import BaseModel, Field

from .init_watcher import RETRY_BOUND


def _default_prefix() -> Path:
    return Path.home() / ".tea"


class Settings(BaseModel):
    tea_prefix: Path = Field(default_factory=_default_prefix)
    dist_url: str = "https://dist.tea.xyz"
    init_retries: int = Field(default=RETRY_BOUND, ge=1)
    http_timeout: float = 30.0
    debug_mode: bool = False

    @property
    def cli_dir(self) -> Path:
        # holds v<version>/ plus the v* and v0 links
        return self.tea_prefix / "tea.xyz"

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Settings":
        dotenv.load_dotenv(env_file)
        overrides: dict[str, str] = {}
        for field, var in (
            ("tea_prefix", "TEA_PREFIX"),
            ("dist_url", "TEA_DIST_URL"),
            ("init_retries", "TEA_INIT_RETRIES"),
            ("http_timeout", "TEA_HTTP_TIMEOUT"),
            ("debug_mode", "TEA_DEBUG"),
        ):
            value = os.getenv(var)
            if value:
                overrides[field] = value
        return cls(**overrides)
