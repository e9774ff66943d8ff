#!/usr/bin/env python3
"""
Finalize one tenant month from an events file.

Loads business events (a JSON list of event documents, or an object with an
``events`` list) into a SQL close store, marks the period FINALIZED and runs
the period finalization workflow.  The result is printed as JSON.

Usage:
    python3 scripts/finalize_period.py --tenant <id> --month YYYY-MM --events <file> [options]

Examples:
    # In-memory run, default config
    python3 scripts/finalize_period.py --tenant t1 --month 2026-01 --events events.json

    # Persist to a SQLite file and write the CSV/PDF exports to ./out
    python3 scripts/finalize_period.py --tenant t1 --month 2026-01 --events events.json \\
        --db-url sqlite:///close.db --export-dir out
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = "sqlite://"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Finalize a month: load events -> mark FINALIZED -> rebuild read models and exports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--tenant", required=True, help="Tenant id.")
    parser.add_argument("--month", required=True, help="Month key (YYYY-MM).")
    parser.add_argument("--events", required=True, type=Path, help="Path to the events JSON file.")
    parser.add_argument("--currency", default=None, help="Report currency (default: config default_currency).")
    parser.add_argument(
        "--as-of-days",
        default=None,
        type=lambda s: [int(p) for p in s.split(",") if p.strip()],
        help="Comma-separated as-of days, e.g. 5,10,20 (default: config as_of_days).",
    )
    parser.add_argument(
        "--late-arrival-days",
        default=None,
        type=int,
        help="Late arrival threshold in days after period end (default: largest as-of day).",
    )
    parser.add_argument("--config", default=None, type=Path, help="Close config YAML (default: bundled).")
    parser.add_argument("--actor-id", default="cli", help="Actor id recorded in logs.")
    parser.add_argument("--export-dir", default=None, type=Path, help="Write generated exports here.")
    parser.add_argument("--db-url", default=DB_URL, help=f"Database URL (default: {DB_URL!r}).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Emit structured logs to stderr.")
    return parser.parse_args()


def _load_event_documents(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("events", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of events or an object with 'events'")
    return data


def main() -> int:
    args = _parse_args()

    events_path = args.events.resolve()
    if not events_path.is_file():
        print(f"ERROR: File not found: {events_path}", file=sys.stderr)
        return 1

    # Lazy imports so we fail fast on args first
    import logging

    from close_config import get_close_config
    from close_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from close_kernel.domain.clock import SystemClock
    from close_kernel.domain.events import BusinessEvent
    from close_kernel.domain.records import ArtifactKind, PeriodRecord, PeriodStatus
    from close_kernel.exceptions import CloseKernelError, DuplicateEntryError, InvalidCurrencyError
    from close_kernel.logging_config import configure_logging
    from close_kernel.services.close_store import SqlCloseStore
    from close_services import PeriodFinalizationWorkflow

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        config = get_close_config(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    try:
        events = [BusinessEvent.from_document(doc) for doc in _load_event_documents(events_path)]
    except (OSError, ValueError, CloseKernelError) as e:
        print(f"ERROR: Failed to read events: {e}", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(args.db_url)
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    clock = SystemClock()
    with session_scope() as session:
        store = SqlCloseStore(session, clock=clock)

        skipped = 0
        for evt in events:
            try:
                store.append_event(evt)
            except DuplicateEntryError:
                skipped += 1
        if skipped:
            print(f"Skipped {skipped} events already in the store.", file=sys.stderr)

        period = store.read_period(args.tenant, args.month)
        as_of_days = tuple(args.as_of_days) if args.as_of_days is not None else None
        if period is None or period.status != PeriodStatus.FINALIZED or as_of_days is not None:
            store.upsert_period(
                PeriodRecord(
                    tenant_id=args.tenant,
                    month_key=args.month,
                    status=PeriodStatus.FINALIZED,
                    finalized_at=period.finalized_at if period is not None else clock.now_iso(),
                    as_of_days=as_of_days if as_of_days is not None else (period.as_of_days if period else None),
                    period_lock_hash=period.period_lock_hash if period is not None else None,
                )
            )

        workflow = PeriodFinalizationWorkflow(store, clock, config)
        try:
            result = workflow.finalize(
                args.tenant,
                args.month,
                currency=args.currency,
                day_for_late_arrival=args.late_arrival_days,
                actor_id=args.actor_id,
            )
        except InvalidCurrencyError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        if result.success and args.export_dir is not None:
            args.export_dir.mkdir(parents=True, exist_ok=True)
            for kind in ArtifactKind:
                artifact = store.read_export_artifact(args.tenant, args.month, kind)
                if artifact is not None:
                    target = args.export_dir / artifact.filename
                    target.write_bytes(artifact.content)
                    print(f"Wrote {target}", file=sys.stderr)

    print(json.dumps(result.to_dict(), indent=2, sort_keys=True))
    return 0 if result.success else 2


if __name__ == "__main__":
    sys.exit(main())
