from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest

from repairsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    SyncPolicy,
    env_flag,
    env_float,
    env_int,
    get_api_config,
    get_credential_config,
    get_database_config,
    get_storage_config,
    get_sync_policy,
    optional_env_var,
    require_env_var,
    require_env_vars,
)
from repairsync.config.storage import DEFAULT_DB_FILENAME


def test_require_env_vars_reports_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REPAIRSYNC_A", raising=False)
    monkeypatch.setenv("REPAIRSYNC_B", "  ")
    monkeypatch.setenv("REPAIRSYNC_C", "ok")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["REPAIRSYNC_A", "REPAIRSYNC_B", "REPAIRSYNC_C"])

    assert "REPAIRSYNC_A, REPAIRSYNC_B" in str(exc.value)
    assert require_env_var("REPAIRSYNC_C") == "ok"


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_BLANK", "   ")

    assert optional_env_var("REPAIRSYNC_BLANK") is None


def test_numeric_env_vars_are_validated(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_NUMBER", "abc")
    with pytest.raises(ConfigurationError, match="integer"):
        env_int("REPAIRSYNC_NUMBER", 1)
    with pytest.raises(ConfigurationError, match="number"):
        env_float("REPAIRSYNC_NUMBER", 1.0)

    monkeypatch.setenv("REPAIRSYNC_NUMBER", "0")
    with pytest.raises(ConfigurationError, match=">= 1"):
        env_int("REPAIRSYNC_NUMBER", 3, minimum=1)


def test_api_config_requires_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REPAIRSYNC_API_BASE_URL", raising=False)

    with pytest.raises(MissingConfigurationError, match="REPAIRSYNC_API_BASE_URL"):
        get_api_config()


def test_api_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_API_BASE_URL", "https://api.repairminder.test/ ")
    monkeypatch.setenv("REPAIRSYNC_API_TIMEOUT_SECONDS", "12.5")
    monkeypatch.delenv("REPAIRSYNC_USER_AGENT", raising=False)

    config = get_api_config()

    assert config.base_url == "https://api.repairminder.test"
    assert config.timeout_seconds == 12.5
    assert config.default_headers()["User-Agent"] == "RepairMinder-Python/1.0"
    assert config.default_headers()["Content-Type"] == "application/json"


def test_credential_config_is_optional(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REPAIRSYNC_ACCESS_TOKEN", raising=False)
    monkeypatch.setenv("REPAIRSYNC_REFRESH_TOKEN", "refresh")

    config = get_credential_config()

    assert config.access_token is None
    assert config.refresh_token == "refresh"


def test_sync_policy_defaults() -> None:
    policy = SyncPolicy()

    assert policy.max_concurrency == 3
    assert policy.max_attempts == 5
    assert [policy.backoff_seconds(n) for n in range(7)] == [0, 2, 4, 8, 16, 32, 60]


def test_sync_policy_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_SYNC_MAX_CONCURRENCY", "5")
    monkeypatch.setenv("REPAIRSYNC_SYNC_BACKOFF_CAP_SECONDS", "10")

    policy = get_sync_policy()

    assert policy.max_concurrency == 5
    assert policy.backoff_cap_seconds == 10.0


def test_sync_policy_rejects_inconsistent_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_SYNC_BACKOFF_BASE_SECONDS", "30")
    monkeypatch.setenv("REPAIRSYNC_SYNC_BACKOFF_CAP_SECONDS", "10")

    with pytest.raises(ConfigurationError, match="backoff_cap_seconds"):
        get_sync_policy()


def test_storage_prefers_explicit_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("REPAIRSYNC_DATA_DIR", str(custom))

    storage = get_storage_config()

    assert storage.data_dir == custom.resolve()
    assert not custom.exists()


def test_database_uri_uses_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///override.db")

    assert get_database_config().uri == "sqlite:///override.db"


def test_database_uri_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("REPAIRSYNC_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_database_config().uri

    expected_path = (tmp_path / "data-dir" / DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()


@pytest.mark.parametrize(("raw", "expected"), [("1", True), ("Yes", True), ("off", False)])
def test_env_flag_parses_common_spellings(
    monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
) -> None:
    monkeypatch.setenv("REPAIRSYNC_FLAG", raw)

    assert env_flag("REPAIRSYNC_FLAG") is expected


def test_env_flag_rejects_other_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_FLAG", "maybe")

    with pytest.raises(ConfigurationError, match="boolean"):
        env_flag("REPAIRSYNC_FLAG")


def test_database_echo_is_opt_in(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPAIRSYNC_DATABASE_ECHO", "true")

    assert get_database_config().echo is True
