from pathlib import Path
from typing import Callable

import pytest

from mender_cli.config import CliConfig, load_config


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., CliConfig]:
    """Build a configuration pointing at ``base_url`` without touching the real environment."""

    def factory(base_url: str = "http://127.0.0.1:1", token: str = "test-token") -> CliConfig:
        config = load_config(tmp_path / "mender-cli.cfg", environ={})
        config.server.url = base_url.rstrip("/")
        config.server.token = token
        return config

    return factory
