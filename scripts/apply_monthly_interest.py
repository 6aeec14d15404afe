#!/usr/bin/env python3
"""
Apply one month of interest to every outstanding debt.

Meant to be scheduled on the first day of each month (cron, systemd timer).
Running it again in the same month charges nothing: each debt is stamped
with the period it was last charged for.

Prints a summary table, or with --json a single object
{"processed": int, "errors": int, "total_interest": "decimal"}.
Exit code 0 on success, 1 on failure (bad rate, database error).

Usage:
  python3 scripts/apply_monthly_interest.py
  python3 scripts/apply_monthly_interest.py --rate 0.02 --json
  python3 scripts/apply_monthly_interest.py --db-url sqlite:///ledger.db --create-tables
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Apply monthly interest to outstanding debts")
    p.add_argument(
        "--db-url",
        default=None,
        help="Database URL (default: database_url from config / MEMBER_LEDGER_DATABASE_URL)",
    )
    p.add_argument(
        "--rate",
        default=None,
        help="Interest rate as a fraction, e.g. 0.01 for 1%% (default: interest.monthly_rate)",
    )
    p.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running",
    )
    p.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON",
    )
    return p.parse_args(argv)


def _print_table(result, rate) -> None:
    print()
    print("  Monthly interest run")
    print("  " + "-" * 36)
    print(f"  {'Rate':<18}{rate:>18}")
    print(f"  {'Debts processed':<18}{result.processed:>18}")
    print(f"  {'Errors':<18}{result.errors:>18}")
    print(f"  {'Total interest':<18}{str(result.total_interest):>18}")
    print("  " + "-" * 36)
    print()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from member_ledger.config import get_active_config
    from member_ledger.db.engine import create_tables, init_engine_from_url, session_scope
    from member_ledger.exceptions import InvalidInterestRateError
    from member_ledger.logging_config import configure_logging, get_logger
    from member_ledger.services.debt_interest_service import DebtInterestService

    settings = get_active_config()
    configure_logging(level=settings.log_level)
    logger = get_logger("scripts.apply_monthly_interest")

    try:
        init_engine_from_url(args.db_url or settings.database_url)
        if args.create_tables:
            create_tables()
        with session_scope() as session:
            service = DebtInterestService(session, rate=args.rate, settings=settings)
            result = service.apply_monthly_interest()
            rate = service.interest_rate
    except InvalidInterestRateError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.critical("interest_command_failed", exc_info=True)
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({**result.as_dict(), "total_interest": str(result.total_interest)}))
    else:
        _print_table(result, rate)
    return 0


if __name__ == "__main__":
    sys.exit(main())
