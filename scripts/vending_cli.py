#!/usr/bin/env python3
"""
Command line entry point for the vending sales core.

Settings come from --config, $VENDING_CONFIG or defaults; $DATABASE_URL
overrides the database. Every command prints JSON on stdout.

Usage:
    python3 scripts/vending_cli.py init-db
    python3 scripts/vending_cli.py import sales_2025_01.xlsx
    python3 scripts/vending_cli.py reconcile --machine A01 --from 2025-01-01 --to 2025-01-31
    python3 scripts/vending_cli.py reconcile --export
    python3 scripts/vending_cli.py stats summary --from 2025-01-01
    python3 scripts/vending_cli.py batches
    python3 scripts/vending_cli.py delete-batch 3f9a1c2e
"""

from __future__ import annotations

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if is_dataclass(obj):
        return asdict(obj)
    raise TypeError(f"Not JSON serializable: {type(obj).__name__}")


def _emit(payload: Any) -> None:
    if is_dataclass(payload):
        payload = asdict(payload)
    print(json.dumps(payload, default=_json_default, ensure_ascii=False, indent=2))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import POS sales spreadsheets and reconcile cash collections.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")

    p_import = sub.add_parser("import", help="Import one .xlsx file.")
    p_import.add_argument("file", type=Path)
    p_import.add_argument("--name", default=None, help="Original file name (default: file's name).")

    p_recon = sub.add_parser("reconcile", help="Reconcile collections against cash sales.")
    p_recon.add_argument("--machine", default=None, help="Machine code (case-insensitive).")
    p_recon.add_argument("--from", dest="date_from", default=None, help="Date or timestamp.")
    p_recon.add_argument("--to", dest="date_to", default=None, help="Date or timestamp.")
    p_recon.add_argument("--export", action="store_true", help="Print flat export rows.")

    p_stats = sub.add_parser("stats", help="Sales rollups.")
    p_stats.add_argument("kind", choices=("daily", "top", "summary", "machines"))
    p_stats.add_argument("--from", dest="date_from", default=None)
    p_stats.add_argument("--to", dest="date_to", default=None)
    p_stats.add_argument("--limit", type=int, default=10, help="Rows for 'top'.")

    p_delete = sub.add_parser("delete-batch", help="Delete every order of one import batch.")
    p_delete.add_argument("batch_id")

    sub.add_parser("batches", help="List import batches.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    import logging

    from vending_config import load_settings
    from vending_kernel.db.engine import (
        create_tables,
        get_session,
        get_session_factory,
        init_engine_from_url,
    )
    from vending_kernel.exceptions import VendingKernelError
    from vending_kernel.logging_config import configure_logging

    try:
        settings = load_settings(args.config)
    except VendingKernelError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    init_engine_from_url(
        settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
    )
    tz = settings.reconciliation.timezone

    if args.command == "init-db":
        create_tables()
        _emit({"status": "ok"})
        return 0

    session = get_session()
    executor: ThreadPoolExecutor | None = None
    try:
        if args.command == "import":
            from vending_ingestion.adapters import DirectoryArchiveSink
            from vending_ingestion.services import FileArchiver, SalesImportService

            source = args.file.resolve()
            if not source.is_file():
                print(f"ERROR: File not found: {source}", file=sys.stderr)
                return 1

            archiver = None
            if settings.archive.enabled:
                executor = ThreadPoolExecutor(max_workers=settings.archive.max_workers)
                archiver = FileArchiver(
                    DirectoryArchiveSink(settings.archive.directory),
                    get_session_factory(),
                    executor=executor,
                    tz=tz,
                )
            service = SalesImportService(
                session,
                archiver=archiver,
                settings=settings.ingestion,
                tz=tz,
            )
            summary = service.import_spreadsheet(source.read_bytes(), args.name or source.name)
            session.commit()
            _emit(summary)

        elif args.command == "reconcile":
            from vending_services import ReconciliationService

            service = ReconciliationService(session, tz=tz)
            report = service.get_reconciliation(args.machine, args.date_from, args.date_to)
            _emit(service.export_rows(report) if args.export else report)

        elif args.command == "stats":
            from vending_kernel.selectors import SalesSelector

            selector = SalesSelector(session, tz=tz)
            if args.kind == "daily":
                _emit([asdict(d) for d in selector.daily_stats(args.date_from, args.date_to)])
            elif args.kind == "top":
                _emit(selector.top_machines(args.date_from, args.date_to, limit=args.limit))
            elif args.kind == "summary":
                _emit(selector.summary(args.date_from, args.date_to))
            else:
                _emit(selector.machine_codes())

        elif args.command == "delete-batch":
            from vending_ingestion.services import SalesImportService

            result = SalesImportService(session, settings=settings.ingestion).delete_batch(args.batch_id)
            session.commit()
            _emit(result)

        elif args.command == "batches":
            from vending_ingestion.services import SalesImportService

            _emit(SalesImportService(session, settings=settings.ingestion).list_import_batches())

    except VendingKernelError as e:
        session.rollback()
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()
        if executor is not None:
            executor.shutdown(wait=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
