"""Pytest fixtures for deeplink tests."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

from deeplink.config import DeepLinkSettings

# Unix socket paths are length-limited; keep the base directory shallow.
_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="dl-"))
os.environ["DEEPLINK_RUNTIME_DIR"] = str(_TEST_BASE_DIR / "run")
os.environ["DEEPLINK_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")
os.environ["XDG_DATA_HOME"] = str(_TEST_BASE_DIR / "data")

if TYPE_CHECKING:
    from collections.abc import Generator


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=None,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def runtime_dir(monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Give every test its own runtime, config and XDG data directories."""
    base = Path(tempfile.mkdtemp(prefix="t", dir=_TEST_BASE_DIR))
    runtime = base / "run"
    runtime.mkdir(mode=0o700)
    monkeypatch.setenv("DEEPLINK_RUNTIME_DIR", str(runtime))
    monkeypatch.setenv("DEEPLINK_CONFIG_DIR", str(base / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(base / "data"))
    yield runtime
    shutil.rmtree(base, ignore_errors=True)


@pytest.fixture
def settings_for(runtime_dir: Path):
    """Factory for settings rooted in the per-test runtime directory."""

    def _make(**overrides: object) -> DeepLinkSettings:
        values: dict[str, object] = {"runtime_dir": runtime_dir, "forward_wait_seconds": 1.0}
        values.update(overrides)
        return DeepLinkSettings.model_validate(values)

    return _make


@pytest.fixture
def link_settings(settings_for) -> DeepLinkSettings:
    return settings_for()


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    del session, exitstatus
    shutil.rmtree(_TEST_BASE_DIR, ignore_errors=True)
