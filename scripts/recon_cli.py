#!/usr/bin/env python3
"""
Reconciliation engine command line.

Usage:
    python3 scripts/recon_cli.py init-db
    python3 scripts/recon_cli.py reconcile [--date 2024-01-15] [--run-by ops]
    python3 scripts/recon_cli.py verify <transaction-id>
    python3 scripts/recon_cli.py correct --account ACC-1 --current "৳5,000.00" \\
        --correct "৳5,500.00" --reason "Missed deposit" --actor admin-7
    python3 scripts/recon_cli.py audit-trail --start 2024-01-01 --end 2024-02-01 [--format csv]
    python3 scripts/recon_cli.py health
    python3 scripts/recon_cli.py discrepancies [--severity HIGH] [--account ACC-1]
    python3 scripts/recon_cli.py resolve <alert-id> --notes "Bank fee" --actor admin-7

Global options:
    --db-url     Database URL (default: $DATABASE_URL, else sqlite:///recon.db)
    --config     YAML file overriding the packaged policy
    --timeout    Seconds; a call that does not finish in time is rolled back
                 and reported as STORE_UNAVAILABLE

Output is JSON on stdout (CSV text for ``audit-trail --format csv``).
Errors print {"error": <code>, "message": ...} on stderr.

Exit codes:
    0  success
    2  validation, not-found, state or configuration error
    3  store unavailable or timed out
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError  # noqa: E402

from recon_config import get_active_config  # noqa: E402
from recon_config.bridges import build_currency  # noqa: E402
from recon_kernel.db import (  # noqa: E402
    build_engine,
    build_session_factory,
    create_tables,
    register_immutability_listeners,
)
from recon_kernel.domain.currency import DEFAULT_CURRENCY, CurrencyInfo, format_amount  # noqa: E402
from recon_kernel.domain.dtos import CorrectionRequest  # noqa: E402
from recon_kernel.exceptions import ReconKernelError, UnavailableError  # noqa: E402
from recon_kernel.logging_config import configure_logging  # noqa: E402
from recon_services.engine import ReconciliationEngine  # noqa: E402

DEFAULT_DB_URL = "sqlite:///recon.db"

EXIT_OK = 0
EXIT_ERROR = 2
EXIT_UNAVAILABLE = 3


# =============================================================================
# Renderers
# =============================================================================


def _value(obj: Any) -> Any:
    return getattr(obj, "value", obj)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _display(amount, currency: CurrencyInfo) -> str:
    return format_amount(amount, currency=currency, decimal_places=currency.decimal_places)


def render_record(record) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "reconciliation_date": record.reconciliation_date.isoformat(),
        "status": _value(record.status),
        "expected_balances": record.expected_balances,
        "actual_balances": record.actual_balances,
        "discrepancies": record.discrepancies,
        "alert_ids": [str(alert.id) for alert in record.alerts],
        "run_by": record.run_by,
        "created_at": _iso(record.created_at),
    }


def render_alert(alert) -> dict[str, Any]:
    return {
        "id": str(alert.id),
        "reconciliation_id": str(alert.reconciliation_id),
        "account_id": alert.account_id,
        "expected_amount": str(alert.expected_amount),
        "actual_amount": str(alert.actual_amount),
        "difference": str(alert.difference),
        "severity": _value(alert.severity),
        "status": _value(alert.status),
        "resolution_notes": alert.resolution_notes,
        "resolved_by": alert.resolved_by,
        "resolved_at": _iso(alert.resolved_at),
        "created_at": _iso(alert.created_at),
    }


def render_correction(correction, currency: CurrencyInfo = DEFAULT_CURRENCY) -> dict[str, Any]:
    return {
        "id": str(correction.id),
        "adjustment_reference": correction.adjustment_reference,
        "account_id": correction.account_id,
        "original_balance": str(correction.original_balance),
        "corrected_balance": str(correction.corrected_balance),
        "difference": str(correction.difference),
        "correction_type": _value(correction.correction_type),
        "reason": correction.reason,
        "evidence": correction.evidence,
        "actor_id": correction.actor_id,
        "created_at": _iso(correction.created_at),
        "display": {
            name: _display(getattr(correction, name), currency)
            for name in ("original_balance", "corrected_balance", "difference")
        },
    }


def render_health(check) -> dict[str, Any]:
    return {
        "id": str(check.id),
        "status": _value(check.status),
        "metrics": check.metrics,
        "alerts": check.alerts,
        "checked_at": _iso(check.checked_at),
    }


# =============================================================================
# Argument parsing
# =============================================================================


def _iso_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {text!r}") from exc


def _evidence(text: str | None) -> dict[str, Any] | None:
    if text is None:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {"description": text}
    return parsed if isinstance(parsed, dict) else {"description": text}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recon_cli",
        description="Financial reconciliation engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url", type=str,
        default=os.environ.get("DATABASE_URL", DEFAULT_DB_URL),
        help="Database URL (default: $DATABASE_URL or sqlite:///recon.db)",
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML file overriding the packaged reconciliation policy",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Seconds before the call is rolled back as unavailable",
    )
    parser.add_argument(
        "--log-level", type=str, default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Structured log level on stderr (default: WARNING)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and sequence counters")

    p = sub.add_parser("reconcile", help="Run a reconciliation pass")
    p.add_argument("--date", type=_iso_date, default=None, help="Business date (default: today)")
    p.add_argument("--run-by", type=str, default=None, help="Actor triggering the pass")

    p = sub.add_parser("verify", help="Verify one transaction")
    p.add_argument("transaction_id", type=str)

    p = sub.add_parser("correct", help="Apply a balance correction")
    p.add_argument("--account", required=True)
    p.add_argument("--current", required=True, help="Balance you observed")
    p.add_argument("--correct", required=True, help="Balance to apply")
    p.add_argument("--reason", required=True)
    p.add_argument("--evidence", default=None, help="JSON object or free text")
    p.add_argument("--actor", required=True)

    p = sub.add_parser("audit-trail", help="Audit trail report for [start, end)")
    p.add_argument("--start", required=True)
    p.add_argument("--end", required=True)
    p.add_argument("--format", dest="output_format", default="json", choices=("json", "csv"))

    sub.add_parser("health", help="Run and persist a health check")

    p = sub.add_parser("discrepancies", help="List outstanding discrepancies")
    p.add_argument("--severity", choices=("LOW", "MEDIUM", "HIGH"), default=None)
    p.add_argument("--account", default=None)
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=None)

    p = sub.add_parser("resolve", help="Resolve an OPEN discrepancy")
    p.add_argument("alert_id", type=str)
    p.add_argument("--notes", required=True)
    p.add_argument("--actor", required=True)

    return parser


# =============================================================================
# Commands
# =============================================================================


def run_command(args: argparse.Namespace, recon: ReconciliationEngine) -> Any:
    """Execute the parsed command; returns JSON-able data or CSV text."""
    if args.command == "reconcile":
        return render_record(recon.reconcile(args.date, run_by=args.run_by))
    if args.command == "verify":
        return recon.verify(args.transaction_id).to_dict()
    if args.command == "correct":
        request = CorrectionRequest(
            account_id=args.account,
            current_balance=args.current,
            correct_balance=args.correct,
            reason=args.reason,
            evidence=_evidence(args.evidence),
        )
        return render_correction(
            recon.correct_balance(request, args.actor), build_currency(recon.config),
        )
    if args.command == "audit-trail":
        return recon.generate_audit_trail(args.start, args.end, args.output_format)
    if args.command == "health":
        return render_health(recon.monitor_financial_health())
    if args.command == "discrepancies":
        page = recon.get_outstanding_discrepancies(
            severity=args.severity, account_id=args.account,
            page=args.page, limit=args.limit,
        )
        return page.to_dict(render_alert)
    if args.command == "resolve":
        return render_alert(recon.resolve_discrepancy(args.alert_id, args.actor, args.notes))
    raise ValueError(f"Unknown command {args.command!r}")


def _print_error(exc: ReconKernelError) -> None:
    print(json.dumps({"error": exc.code, "message": str(exc)}, ensure_ascii=False), file=sys.stderr)


# =============================================================================
# Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)
    register_immutability_listeners()

    engine = None
    try:
        config = get_active_config(args.config)
        engine = build_engine(args.db_url, statement_timeout=args.timeout)

        if args.command == "init-db":
            create_tables(engine)
            result: Any = {"status": "ok", "database": engine.url.render_as_string(hide_password=True)}
        else:
            recon = ReconciliationEngine(
                build_session_factory(engine), config, timeout=args.timeout,
            )
            result = run_command(args, recon)
    except UnavailableError as exc:
        _print_error(exc)
        return EXIT_UNAVAILABLE
    except (OperationalError, InterfaceError, DisconnectionError) as exc:
        _print_error(UnavailableError(args.command, str(exc).splitlines()[0]))
        return EXIT_UNAVAILABLE
    except ReconKernelError as exc:
        _print_error(exc)
        return EXIT_ERROR
    finally:
        if engine is not None:
            engine.dispose()

    if isinstance(result, str):
        sys.stdout.write(result)
    else:
        print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
