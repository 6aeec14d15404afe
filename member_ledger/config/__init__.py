"""
member_ledger.config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_config()`` is the ONLY way services and scripts obtain
    settings.  No other component reads YAML files or MEMBER_LEDGER_*
    environment variables directly.

Failure modes:
    - ``InvalidInterestRateError`` for a configured rate outside [0, 1].
    - ``yaml.YAMLError`` / ``FileNotFoundError`` for a broken overlay file.
"""

from __future__ import annotations

import threading
from pathlib import Path

from member_ledger.config.loader import load_settings
from member_ledger.config.schema import LedgerSettings
from member_ledger.logging_config import get_logger

__all__ = ["LedgerSettings", "get_active_config", "reset_active_config"]

_logger = get_logger("config")

_active: LedgerSettings | None = None
_lock = threading.Lock()


def get_active_config(config_file: Path | None = None) -> LedgerSettings:
    """
    Return the process-wide settings, loading them on first use.

    Passing ``config_file`` forces a reload from that overlay.
    """
    global _active
    with _lock:
        if _active is None or config_file is not None:
            _active = load_settings(config_file=config_file)
            _logger.info(
                "config_loaded",
                extra={
                    "monthly_interest_rate": _active.monthly_interest_rate,
                    "credit_interest_rate": _active.credit_interest_rate,
                    "payable_interest_rate": _active.payable_interest_rate,
                    "log_level": _active.log_level,
                },
            )
        return _active


def reset_active_config() -> None:
    """Forget cached settings. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None
