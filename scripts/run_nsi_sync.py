#!/usr/bin/env python3
"""
Operate the NSI reference-data sync from the command line.

Every command prints its structured result as JSON on stdout.

Usage:
    python3 scripts/run_nsi_sync.py [--config settings.yaml] [--db-url URL] <command>

Commands:
    sync                      One incremental sync (manual trigger)
    sync-warehouses           Reconcile the warehouse feed only (cursor untouched)
    serve [--interval SEC]    Periodic sync until interrupted
    status                    Current cursor and recent run history
    clear-nsi                 Delete synchronized reference data, reset cursor
    clear-portal              Also delete documents, packages and the UH queue
    seed-warehouses           Create placeholder warehouses for organizations without any
    clear-seeded-warehouses   Delete the placeholder warehouses
    create-tables             Create all tables (idempotent)

Examples:
    # First full load against a local UH stub
    UH_API_URL=http://localhost:8080/api python3 scripts/run_nsi_sync.py sync

    # Background service, every 2 minutes
    python3 scripts/run_nsi_sync.py serve --interval 120
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run and maintain the NSI reference-data synchronization.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML settings file (default: packaged defaults + environment).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL; overrides settings and DATABASE_URL.",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("sync", help="Run one incremental sync.")
    sub.add_parser("sync-warehouses", help="Reconcile the warehouse feed only.")
    serve = sub.add_parser("serve", help="Run the periodic sync until interrupted.")
    serve.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between runs (default: sync.interval_seconds).",
    )
    status = sub.add_parser("status", help="Show cursor and recent runs.")
    status.add_argument("--limit", type=int, default=10, help="History rows (default: 10).")
    sub.add_parser("clear-nsi", help="Delete synchronized NSI data and reset the cursor.")
    sub.add_parser("clear-portal", help="Delete NSI and portal document data, reset the cursor.")
    sub.add_parser("seed-warehouses", help="Create placeholder warehouses.")
    sub.add_parser("clear-seeded-warehouses", help="Delete placeholder warehouses.")
    sub.add_parser("create-tables", help="Create all tables.")
    return parser.parse_args(argv)


def _print(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _serve(orchestrator, interval: float) -> int:
    stop = threading.Event()

    def _handle(signum, frame):
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)

    orchestrator.start_periodic(interval)
    try:
        stop.wait()
    finally:
        orchestrator.stop_periodic()
    _print(orchestrator.status())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from portal_config import get_settings
    from portal_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
        session_scope,
    )
    from portal_kernel.exceptions import PortalKernelError
    from portal_kernel.logging_config import configure_logging

    from nsi_sync.services import SyncOrchestrator, SyncStateStore

    try:
        settings = get_settings(args.config)
    except (OSError, PortalKernelError) as e:
        print(f"ERROR: Failed to load settings: {e}", file=sys.stderr)
        return 1

    configure_logging(level=settings.logging.level)
    init_engine_from_url(
        args.db_url or settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
    )

    if args.command == "create-tables":
        create_tables()
        _print({"success": True, "message": "Tables created"})
        return 0

    if args.command == "status":
        with session_scope() as session:
            store = SyncStateStore(session)
            cursor = store.latest()
            history = store.history(args.limit)
        _print({
            "cursor": cursor.to_dict() if cursor else None,
            "history": [c.to_dict() for c in history],
        })
        return 0

    orchestrator = SyncOrchestrator.from_settings(
        settings,
        session_factory=get_session_factory(),
    )

    if args.command == "serve":
        return _serve(orchestrator, args.interval or settings.sync.interval_seconds)

    if args.command in ("sync", "sync-warehouses"):
        if args.command == "sync":
            result = orchestrator.manual_sync()
        else:
            result = orchestrator.manual_sync_warehouses()
        _print(result.to_dict())
        return 0 if result.success else 2

    maintenance = {
        "clear-nsi": orchestrator.clear_nsi_data,
        "clear-portal": orchestrator.clear_portal_data,
        "seed-warehouses": orchestrator.seed_warehouses,
        "clear-seeded-warehouses": orchestrator.clear_seeded_warehouses,
    }
    try:
        result = maintenance[args.command]()
    except PortalKernelError as e:
        _print({"success": False, "error": {"code": e.code, "message": str(e)}})
        return 1
    _print(result.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
