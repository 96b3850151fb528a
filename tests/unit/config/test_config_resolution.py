"""Configuration resolution, validation and introspection."""

import json
import os

import pytest

from wechat_pub.config import (
    ConfigFileError,
    FrozenConfig,
    check_environment,
    get_config_warnings,
    get_effective_profile,
    list_available_profiles,
    resolve_config,
    validate_app_credentials,
    validate_config,
)
from wechat_pub.config.introspection import get_config_info, main
from wechat_pub.exceptions import ConfigurationError

APP_ID = "wx0123456789abcdef"
APP_SECRET = "0123456789abcdef0123456789abcdef"

PROJECT_TOML = """
[tool.wechat_pub]
concurrency = 4
base_url = "https://project.example.com/"

[tool.wechat_pub.profiles.fast]
concurrency = 8
max_retries = 0
"""

HOME_TOML = """
concurrency = 2
request_timeout = 12.5

[profiles.fast]
refresh_margin = 60
"""


# --- Precedence ---


@pytest.mark.unit
def test_defaults_when_nothing_is_configured():
    config = resolve_config()

    assert config.app_id is None
    assert config.app_secret is None
    assert config.concurrency == 5
    assert config.max_retries == 2
    assert config.base_url == "https://api.weixin.qq.com"
    assert set(config.origin.values()) == {"default"}


@pytest.mark.unit
def test_environment_values_are_coerced(monkeypatch):
    monkeypatch.setenv("WECHAT_APP_ID", APP_ID)
    monkeypatch.setenv("WECHAT_CONCURRENCY", "3")
    monkeypatch.setenv("WECHAT_BACKOFF_BASE", "0.1")

    config = resolve_config()

    assert config.app_id == APP_ID
    assert config.concurrency == 3
    assert config.backoff_base == pytest.approx(0.1)
    assert config.origin["concurrency"] == "env"
    assert config.origin["max_retries"] == "default"


@pytest.mark.unit
def test_invalid_environment_value_raises(monkeypatch):
    monkeypatch.setenv("WECHAT_CONCURRENCY", "0")
    with pytest.raises(ConfigurationError, match="WECHAT_CONCURRENCY"):
        resolve_config()


@pytest.mark.unit
def test_project_file_overrides_home_file(write_config_files):
    write_config_files(pyproject=PROJECT_TOML, home=HOME_TOML)

    config = resolve_config()

    assert config.concurrency == 4
    assert config.request_timeout == pytest.approx(12.5)
    assert config.base_url == "https://project.example.com"
    assert config.origin["concurrency"] == "file"
    assert config.origin["request_timeout"] == "file"


@pytest.mark.unit
def test_env_overrides_files_and_programmatic_overrides_env(
    write_config_files, monkeypatch
):
    write_config_files(pyproject=PROJECT_TOML)
    monkeypatch.setenv("WECHAT_CONCURRENCY", "6")

    assert resolve_config().concurrency == 6

    config = resolve_config({"concurrency": 9, "unknown_key": "ignored"})
    assert config.concurrency == 9
    assert config.origin["concurrency"] == "programmatic"
    assert not hasattr(config, "unknown_key")


@pytest.mark.unit
def test_profile_selects_profile_tables(write_config_files):
    write_config_files(pyproject=PROJECT_TOML, home=HOME_TOML)

    config = resolve_config(profile="fast")

    assert config.concurrency == 8
    assert config.max_retries == 0
    assert config.refresh_margin == pytest.approx(60)
    assert config.base_url == "https://api.weixin.qq.com"


@pytest.mark.unit
def test_profile_from_environment(write_config_files, monkeypatch):
    write_config_files(pyproject=PROJECT_TOML)
    monkeypatch.setenv("WECHAT_PUB_PROFILE", "fast")

    assert get_effective_profile() == "fast"
    assert resolve_config().concurrency == 8


@pytest.mark.unit
def test_unknown_profile_falls_back_to_other_sources(write_config_files):
    write_config_files(pyproject=PROJECT_TOML, home=HOME_TOML)

    config = resolve_config(profile="missing")

    assert config.concurrency == 5
    assert config.origin["concurrency"] == "default"


@pytest.mark.unit
def test_malformed_project_file_raises(write_config_files):
    write_config_files(pyproject="[tool.wechat_pub\nconcurrency = ")
    with pytest.raises(ConfigFileError, match="Failed to parse TOML"):
        resolve_config()


@pytest.mark.unit
def test_malformed_home_file_is_ignored(write_config_files, caplog):
    write_config_files(home="concurrency = = 3")

    config = resolve_config()

    assert config.concurrency == 5
    assert "Ignoring home configuration" in caplog.text


@pytest.mark.unit
def test_available_profiles_are_listed(write_config_files):
    write_config_files(pyproject=PROJECT_TOML, home=HOME_TOML)
    assert list_available_profiles() == {"project": ["fast"], "home": ["fast"]}


@pytest.mark.unit
def test_env_file_is_loaded(tmp_path, monkeypatch):
    monkeypatch.setattr(os, "environ", dict(os.environ))
    env_file = tmp_path / ".env"
    env_file.write_text(
        f'# credentials\nWECHAT_APP_ID="{APP_ID}"\nWECHAT_MAX_RETRIES=4\n',
        encoding="utf-8",
    )

    config = resolve_config(use_env_file=env_file)

    assert config.app_id == APP_ID
    assert config.max_retries == 4
    assert config.origin["app_id"] == "env"


@pytest.mark.unit
def test_missing_env_file_raises(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        resolve_config(use_env_file=tmp_path / "absent.env")


# --- Schema rules ---


@pytest.mark.unit
def test_blank_credentials_are_treated_as_missing():
    config = resolve_config({"app_id": "   ", "app_secret": ""})
    assert config.app_id is None
    assert config.app_secret is None


@pytest.mark.unit
def test_base_url_requires_http_scheme():
    with pytest.raises(ConfigurationError, match="base_url"):
        resolve_config({"base_url": "ftp://example.com"})


@pytest.mark.unit
@pytest.mark.parametrize(
    ("field", "value"),
    [("request_timeout", 0), ("concurrency", 0), ("max_retries", -1), ("refresh_margin", -5)],
)
def test_out_of_range_values_are_rejected(field, value):
    with pytest.raises(ConfigurationError):
        resolve_config({field: value})


# --- Freezing and redaction ---


@pytest.mark.unit
def test_frozen_config_carries_resolved_values():
    resolved = resolve_config({"app_id": APP_ID, "app_secret": APP_SECRET, "concurrency": 2})
    frozen = resolved.to_frozen()

    assert isinstance(frozen, FrozenConfig)
    assert (frozen.app_id, frozen.app_secret, frozen.concurrency) == (APP_ID, APP_SECRET, 2)
    with pytest.raises(AttributeError):
        frozen.concurrency = 3  # type: ignore[misc]


@pytest.mark.unit
def test_with_overrides_marks_programmatic_origin():
    resolved = resolve_config().with_overrides(max_retries=7, bogus=1)
    assert resolved.max_retries == 7
    assert resolved.origin["max_retries"] == "programmatic"


@pytest.mark.unit
def test_secret_never_appears_in_text_forms(monkeypatch):
    monkeypatch.setenv("WECHAT_APP_SECRET", APP_SECRET)
    resolved = resolve_config({"app_id": APP_ID})

    for text in (str(resolved), repr(resolved), str(resolved.to_frozen()), resolved.audit()):
        assert APP_SECRET not in text
    assert "app_secret: env:WECHAT_APP_SECRET=[REDACTED]" in resolved.audit()
    assert "app_id: programmatic:" + APP_ID in resolved.audit()
    assert check_environment() == {"WECHAT_APP_SECRET": "<redacted>"}


# --- Validation ---


@pytest.mark.unit
def test_well_formed_credentials_pass():
    validate_app_credentials(APP_ID, APP_SECRET)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("app_id", "app_secret", "message"),
    [
        (None, APP_SECRET, "app_id is required"),
        (APP_ID, None, "app_secret is required"),
        ("ab0123456789abcdef", APP_SECRET, "Invalid app_id"),
        ("wx0123", APP_SECRET, "Invalid app_id"),
        ("wx0123456789abcde!", APP_SECRET, "Invalid app_id"),
        (APP_ID, "short", "Invalid app_secret"),
        (APP_ID, "0123456789abcdef0123456789abcde-", "Invalid app_secret"),
    ],
)
def test_malformed_credentials_are_rejected(app_id, app_secret, message):
    with pytest.raises(ConfigurationError, match=message):
        validate_app_credentials(app_id, app_secret)


@pytest.mark.unit
def test_validate_config_and_warnings():
    config = resolve_config(
        {"base_url": "http://localhost:8080", "concurrency": 50, "refresh_margin": 7200}
    )

    with pytest.raises(ConfigurationError):
        validate_config(config)
    warnings = get_config_warnings(config)
    assert len(warnings) == 4
    assert any("HTTPS" in w for w in warnings)

    good = resolve_config({"app_id": APP_ID, "app_secret": APP_SECRET})
    validate_config(good)
    assert get_config_warnings(good) == []


# --- Introspection CLI ---


@pytest.mark.unit
def test_check_exits_nonzero_without_credentials():
    with pytest.raises(SystemExit) as exc_info:
        main(["--check"])
    assert exc_info.value.code == 1


@pytest.mark.unit
def test_check_exits_zero_with_credentials(monkeypatch):
    monkeypatch.setenv("WECHAT_APP_ID", APP_ID)
    monkeypatch.setenv("WECHAT_APP_SECRET", APP_SECRET)
    with pytest.raises(SystemExit) as exc_info:
        main(["--check"])
    assert exc_info.value.code == 0


@pytest.mark.unit
def test_json_output_hides_secret(monkeypatch, capsys):
    monkeypatch.setenv("WECHAT_APP_ID", APP_ID)
    monkeypatch.setenv("WECHAT_APP_SECRET", APP_SECRET)

    main(["--json"])

    out = capsys.readouterr().out
    info = json.loads(out)
    assert info["status"] == "valid"
    assert info["config"]["has_app_secret"] is True
    assert info["sources"]["app_secret"] == "env"
    assert APP_SECRET not in out


@pytest.mark.unit
def test_human_output_lists_sources_and_validation(monkeypatch, capsys):
    monkeypatch.setenv("WECHAT_APP_SECRET", APP_SECRET)

    main([])

    out = capsys.readouterr().out
    assert "=== Effective Configuration ===" in out
    assert "app_id: [NOT SET]" in out
    assert "app_secret: [SET]" in out
    assert "=== Configuration Sources ===" in out
    assert "Invalid: app_id is required" in out
    assert APP_SECRET not in out


@pytest.mark.unit
def test_config_info_reports_resolution_errors(monkeypatch):
    monkeypatch.setenv("WECHAT_REQUEST_TIMEOUT", "-1")
    info = get_config_info()
    assert info["status"] == "invalid"
    assert info["config"] is None
