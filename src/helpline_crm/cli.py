#!/usr/bin/env python3
"""Command line tools for the Helpline CRM.

Usage:
    helpline-crm serve                   # Run the API and dashboard
    helpline-crm init-db                 # Create database tables
    helpline-crm seed                    # Load demo patients and calls
    helpline-crm export-calls -o f.csv   # Export call history as CSV
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from helpline_crm.config import get_settings
from helpline_crm.core.exceptions import HelplineError
from helpline_crm.core.logging import get_logger, setup_logging

log = get_logger(__name__)


DEMO_PATIENTS: list[dict[str, Any]] = [
    {
        "name": "John Smith",
        "phone": "+1234567890",
        "email": "john.smith@email.com",
        "address": "123 Main St, City",
        "medical_history": "Hypertension, Diabetes Type 2",
        "priority": "medium",
    },
    {
        "name": "Sarah Johnson",
        "phone": "+1234567891",
        "email": "sarah.j@email.com",
        "address": "456 Oak Ave, City",
        "medical_history": "Asthma, Allergies",
        "priority": "high",
    },
    {
        "name": "Michael Brown",
        "phone": "+1234567892",
        "email": "mbrown@email.com",
        "address": "789 Pine Rd, City",
        "medical_history": "None reported",
        "priority": "low",
    },
]

# (patient phone, call type, duration seconds, start)
DEMO_CALLS: list[tuple[str, str, int, datetime]] = [
    ("+1234567890", "emergency", 323, datetime(2024, 12, 16, 10, 30, tzinfo=timezone.utc)),
    ("+1234567891", "consultation", 765, datetime(2024, 12, 16, 9, 15, tzinfo=timezone.utc)),
    ("+1234567892", "followup", 490, datetime(2024, 12, 15, 16, 45, tzinfo=timezone.utc)),
]


async def seed_demo_data(session: AsyncSession) -> dict[str, int]:
    """Insert the demo roster and call history.

    Patients whose phone number already exists are skipped, so seeding
    twice does not duplicate rows.

    Returns:
        Number of patients and calls created.
    """
    from helpline_crm.db.base import as_utc
    from helpline_crm.db.models import CallModel, PatientModel
    from helpline_crm.db.repositories import CallRepository, PatientRepository
    from helpline_crm.services.calls import generate_call_code

    patients = PatientRepository(session)
    calls = CallRepository(session)
    created = {"patients": 0, "calls": 0}

    for data in DEMO_PATIENTS:
        if await patients.find_by_phone(data["phone"]) is not None:
            continue
        await patients.create(
            PatientModel(patient_code=await patients.next_patient_code(), **data)
        )
        created["patients"] += 1

    if created["patients"] == 0:
        return created

    for phone, call_type, duration, start in DEMO_CALLS:
        patient = await patients.find_by_phone(phone)
        await calls.create(
            CallModel(
                call_code=generate_call_code(int(start.timestamp() * 1000)),
                patient_id=patient.id if patient else None,
                phone_number=phone,
                call_type=call_type,
                duration=duration,
                status="completed",
                call_start=start,
                call_end=start + timedelta(seconds=duration),
            )
        )
        if patient is not None and (patient.last_contact is None or as_utc(patient.last_contact) < start):
            patient.last_contact = start
            await patients.save(patient)
        created["calls"] += 1

    return created


def serve(args: argparse.Namespace) -> int:
    """Run the API server."""
    from helpline_crm.main import run

    run()
    return 0


def init_database(args: argparse.Namespace) -> int:
    """Create all tables."""
    from helpline_crm.db import close_db, init_db

    async def _run() -> None:
        try:
            await init_db()
        finally:
            await close_db()

    asyncio.run(_run())
    print(f"Database ready: {get_settings().database.url}")
    return 0


def seed(args: argparse.Namespace) -> int:
    """Load demo data."""
    from helpline_crm.db import close_db, get_db_context, init_db

    async def _run() -> dict[str, int]:
        try:
            await init_db()
            async with get_db_context() as session:
                return await seed_demo_data(session)
        finally:
            await close_db()

    created = asyncio.run(_run())
    print(f"Seeded {created['patients']} patients and {created['calls']} calls")
    return 0


def export_calls(args: argparse.Namespace) -> int:
    """Write the call history to a CSV file (or stdout)."""
    from helpline_crm.api.calls import parse_date_bound
    from helpline_crm.db import close_db, get_db_context
    from helpline_crm.services.reports import ReportService

    async def _run() -> str:
        try:
            async with get_db_context() as session:
                return await ReportService(session).export_history_csv(
                    start=parse_date_bound(args.start_date),
                    end=parse_date_bound(args.end_date, end=True),
                    call_type=args.call_type,
                    status=args.status,
                )
        finally:
            await close_db()

    content = asyncio.run(_run())

    if args.output:
        Path(args.output).write_text(content, encoding="utf-8")
        print(f"Call history written to {args.output}")
    else:
        sys.stdout.write(content)
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="104 Medical Helpline CRM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # serve
    subparsers.add_parser("serve", help="Run the API server and dashboard")

    # init-db
    subparsers.add_parser("init-db", help="Create database tables")

    # seed
    subparsers.add_parser("seed", help="Load demo patients and call history")

    # export-calls
    export_parser = subparsers.add_parser("export-calls", help="Export call history as CSV")
    export_parser.add_argument("-o", "--output", type=str, help="Output file (default: stdout)")
    export_parser.add_argument("--start-date", type=str, help="YYYY-MM-DD")
    export_parser.add_argument("--end-date", type=str, help="YYYY-MM-DD")
    export_parser.add_argument(
        "--call-type",
        choices=["emergency", "consultation", "followup", "general"],
    )
    export_parser.add_argument(
        "--status",
        choices=["initiated", "ringing", "connected", "completed", "failed", "missed"],
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    setup_logging(level=settings.log_level, json_output=settings.log_json)

    commands = {
        "serve": serve,
        "init-db": init_database,
        "seed": seed,
        "export-calls": export_calls,
    }

    try:
        return commands[args.command](args)
    except HelplineError as e:
        log.error("Command failed", command=args.command, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
