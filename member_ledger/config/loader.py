"""
Configuration loader (``member_ledger.config.loader``).

Responsibility
--------------
Reads the packaged ``defaults.yaml``, overlays an optional operator file
and environment variables, and parses the result into a frozen
``LedgerSettings``.  Callers use ``member_ledger.config.get_active_config()``
rather than this module.

Precedence (last wins)
----------------------
1. ``defaults.yaml`` shipped with the package
2. YAML file named by ``MEMBER_LEDGER_CONFIG``
3. ``MEMBER_LEDGER_DATABASE_URL``, ``MEMBER_LEDGER_INTEREST_RATE``,
   ``MEMBER_LEDGER_LOG_LEVEL``

Failure modes
-------------
* Missing overlay file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Rate outside [0, 1]  -> ``InvalidInterestRateError``.
* Non-integer capture limit  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from member_ledger.config.schema import LedgerSettings
from member_ledger.db.types import to_money
from member_ledger.domain.interest import validate_rate

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_FILE = "MEMBER_LEDGER_CONFIG"
ENV_DATABASE_URL = "MEMBER_LEDGER_DATABASE_URL"
ENV_INTEREST_RATE = "MEMBER_LEDGER_INTEREST_RATE"
ENV_LOG_LEVEL = "MEMBER_LEDGER_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overlay`` onto ``base`` (overlay wins)."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """Parse a merged config mapping into LedgerSettings."""
    interest = data.get("interest") or {}
    effects = data.get("effects") or {}
    log = data.get("logging") or {}

    loan_percent = to_money(interest.get("default_loan_percent", "1"))
    if loan_percent < 0 or loan_percent > 100:
        raise ValueError(f"default_loan_percent must be in [0, 100], got {loan_percent}")

    capture_limit = int(effects.get("recent_saving_capture_limit", 10))
    if capture_limit < 1:
        raise ValueError("recent_saving_capture_limit must be at least 1")

    return LedgerSettings(
        database_url=str(data["database_url"]),
        monthly_interest_rate=validate_rate(interest.get("monthly_rate", "0.01")),
        credit_interest_rate=validate_rate(interest.get("credit_rate", "0.01")),
        payable_interest_rate=validate_rate(interest.get("payable_rate", "0.01")),
        default_loan_interest_percent=Decimal(loan_percent),
        recent_saving_capture_limit=capture_limit,
        log_level=str(log.get("level", "INFO")).upper(),
    )


def load_settings(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Build settings from defaults, an optional overlay file and the environment."""
    env = os.environ if environ is None else environ

    data = load_yaml_file(DEFAULTS_PATH)

    overlay_path = config_file or env.get(ENV_CONFIG_FILE)
    if overlay_path:
        data = merge(data, load_yaml_file(Path(overlay_path)))

    if env.get(ENV_DATABASE_URL):
        data["database_url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_INTEREST_RATE):
        data = merge(data, {"interest": {"monthly_rate": env[ENV_INTEREST_RATE]}})
    if env.get(ENV_LOG_LEVEL):
        data = merge(data, {"logging": {"level": env[ENV_LOG_LEVEL]}})

    return parse_settings(data)
