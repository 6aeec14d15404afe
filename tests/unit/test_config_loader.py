"""Runtime settings: packaged defaults, overlay file and environment."""

from decimal import Decimal

import pytest
import yaml

from member_ledger.config import get_active_config, reset_active_config
from member_ledger.config.loader import (
    ENV_CONFIG_FILE,
    ENV_DATABASE_URL,
    ENV_INTEREST_RATE,
    ENV_LOG_LEVEL,
    load_settings,
    merge,
    parse_settings,
)
from member_ledger.exceptions import InvalidInterestRateError


def _write(tmp_path, data) -> str:
    path = tmp_path / "overlay.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestDefaults:

    def test_packaged_defaults(self):
        settings = load_settings(environ={})
        assert settings.monthly_interest_rate == Decimal("0.01")
        assert settings.credit_interest_rate == Decimal("0.01")
        assert settings.payable_interest_rate == Decimal("0.01")
        assert settings.default_loan_interest_percent == Decimal("1")
        assert settings.recent_saving_capture_limit == 10
        assert settings.log_level == "INFO"
        assert settings.database_url.startswith("sqlite:///")


class TestOverlay:

    def test_overlay_file_from_env(self, tmp_path):
        path = _write(tmp_path, {"interest": {"payable_rate": "0.05"}})
        settings = load_settings(environ={ENV_CONFIG_FILE: path})
        assert settings.payable_interest_rate == Decimal("0.05")
        # Untouched keys keep their defaults
        assert settings.monthly_interest_rate == Decimal("0.01")

    def test_explicit_file_wins_over_env_file(self, tmp_path):
        env_path = tmp_path / "env.yaml"
        env_path.write_text(yaml.safe_dump({"logging": {"level": "ERROR"}}))
        path = _write(tmp_path, {"logging": {"level": "debug"}})
        settings = load_settings(config_file=path, environ={ENV_CONFIG_FILE: str(env_path)})
        assert settings.log_level == "DEBUG"

    def test_missing_overlay_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(environ={ENV_CONFIG_FILE: str(tmp_path / "nope.yaml")})

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("interest: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_settings(config_file=path, environ={})


class TestEnvironment:

    def test_env_overrides(self, tmp_path):
        path = _write(tmp_path, {"interest": {"monthly_rate": "0.03"}})
        settings = load_settings(
            environ={
                ENV_CONFIG_FILE: path,
                ENV_DATABASE_URL: "postgresql://ledger@localhost/ledger",
                ENV_INTEREST_RATE: "0.02",
                ENV_LOG_LEVEL: "warning",
            }
        )
        assert settings.database_url == "postgresql://ledger@localhost/ledger"
        assert settings.monthly_interest_rate == Decimal("0.02")
        assert settings.log_level == "WARNING"

    def test_invalid_env_rate(self):
        with pytest.raises(InvalidInterestRateError):
            load_settings(environ={ENV_INTEREST_RATE: "1.5"})


class TestParseSettings:

    def test_requires_database_url(self):
        with pytest.raises(KeyError):
            parse_settings({})

    @pytest.mark.parametrize("percent", ["-1", "101"])
    def test_loan_percent_bounds(self, percent):
        with pytest.raises(ValueError):
            parse_settings({"database_url": "sqlite://", "interest": {"default_loan_percent": percent}})

    def test_capture_limit_positive(self):
        with pytest.raises(ValueError):
            parse_settings({"database_url": "sqlite://", "effects": {"recent_saving_capture_limit": 0}})

    def test_merge_is_recursive(self):
        merged = merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"b": 9}})
        assert merged == {"a": {"b": 9, "c": 2}, "d": 3}


class TestActiveConfig:

    def test_cached_until_reset(self, monkeypatch):
        first = get_active_config()
        monkeypatch.setenv(ENV_INTEREST_RATE, "0.04")
        assert get_active_config() is first
        reset_active_config()
        assert get_active_config().monthly_interest_rate == Decimal("0.04")

    def test_explicit_file_forces_reload(self, tmp_path):
        get_active_config()
        path = _write(tmp_path, {"effects": {"recent_saving_capture_limit": 3}})
        assert get_active_config(config_file=path).recent_saving_capture_limit == 3

    def test_logs_load(self, captured_logs):
        get_active_config()
        assert any(r["message"] == "config_loaded" for r in captured_logs())
