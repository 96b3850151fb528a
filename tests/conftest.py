"""
Global test configuration: environment isolation and shared fixtures.
"""

from collections.abc import Callable
import logging
import os
from pathlib import Path

import pytest


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_wechat_env(request, monkeypatch):
    """Ensure a clean WECHAT_* environment for each test.

    Removes all WECHAT_* variables and debug toggles before each test; other
    variables are left intact.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("WECHAT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def neutral_config_files(request, monkeypatch, tmp_path, isolate_wechat_env):  # noqa: ARG001
    """Point the home and project config paths at isolated temp files.

    Prevents reading a developer's real ~/.config/wechat_pub.toml or a
    pyproject.toml found above the working directory.

    Escape hatch: @pytest.mark.allow_real_home_config uses the real paths.
    """
    if request.node.get_closest_marker("allow_real_home_config"):
        return

    isolated = tmp_path / "config_isolated"
    isolated.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("WECHAT_PUB_CONFIG_HOME", str(isolated / "wechat_pub.toml"))
    monkeypatch.setenv("WECHAT_PUB_PYPROJECT_PATH", str(isolated / "pyproject.toml"))


@pytest.fixture
def write_config_files(tmp_path) -> Callable[..., tuple[Path, Path]]:
    """Write project and home TOML files at the isolated config paths."""

    def _write(*, pyproject: str = "", home: str = "") -> tuple[Path, Path]:
        isolated = tmp_path / "config_isolated"
        isolated.mkdir(parents=True, exist_ok=True)
        pyproject_path = isolated / "pyproject.toml"
        home_path = isolated / "wechat_pub.toml"
        if pyproject:
            pyproject_path.write_text(pyproject, encoding="utf-8")
        if home:
            home_path.write_text(home, encoding="utf-8")
        return pyproject_path, home_path

    return _write


# --- Logging Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Sets the log level for noisy external libraries to WARNING."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Test Environment Markers ---
def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "contract: Tests pinning public behavior guarantees",
        "allow_env_pollution: Keep the caller's WECHAT_* environment",
        "allow_real_home_config: Read the real configuration files",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Core Fixtures ---


@pytest.fixture
def app_credentials() -> tuple[str, str]:
    """Well-formed, fake app credentials."""
    return "wx0123456789abcdef", "0123456789abcdef0123456789abcdef"
