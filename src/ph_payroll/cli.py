"""Payroll Command Line Interface.

Provides operational tools for:
- Schema creation and statutory table seeding
- DTR computation for an employee
- Period generation, payroll runs, and closing

Usage:
    python -m ph_payroll.cli init-db
    python -m ph_payroll.cli seed-tables
    python -m ph_payroll.cli generate-periods --year 2025
    python -m ph_payroll.cli compute-dtr --employee-id X --start 2025-01-01 --end 2025-01-15
    python -m ph_payroll.cli run-period --period-id X --concurrency 4
    python -m ph_payroll.cli close-period --period-id X
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime
from typing import Any, Callable, Coroutine
from uuid import UUID

from ph_payroll.attendance.dtr_service import DtrService
from ph_payroll.config import get_settings
from ph_payroll.database import create_all, dispose_db, get_session, init_db
from ph_payroll.errors import PayrollError
from ph_payroll.seeds import seed_statutory_tables
from ph_payroll.services.period_service import PAY_DATE_ADJUSTMENTS, PeriodService
from ph_payroll.services.run_orchestrator import PayrollRunOrchestrator

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class PayrollCli:
    """Payroll Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m ph_payroll.cli",
            description="Payroll operational tools",
        )
        parser.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Log at DEBUG level",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create all tables")
        subparsers.add_parser(
            "seed-tables",
            help="Seed SSS, PhilHealth, Pag-IBIG, and withholding tax tables",
        )

        generate = subparsers.add_parser(
            "generate-periods",
            help="Create a year of draft payroll periods",
        )
        generate.add_argument("--year", type=int, required=True, help="Calendar year")
        generate.add_argument(
            "--frequency",
            default="semi_monthly",
            choices=["semi_monthly", "monthly"],
            help="Pay frequency (default: semi_monthly)",
        )
        generate.add_argument(
            "--pay-date-adjustment",
            default="before",
            choices=PAY_DATE_ADJUSTMENTS,
            help="Move weekend pay dates to the Friday before or the Monday after",
        )

        dtr = subparsers.add_parser(
            "compute-dtr",
            help="Compute daily time records for one employee",
        )
        dtr.add_argument("--employee-id", type=parse_uuid, required=True)
        dtr.add_argument("--start", type=parse_date, required=True, help="First day (ISO)")
        dtr.add_argument("--end", type=parse_date, help="Last day (ISO, default: start)")

        run = subparsers.add_parser(
            "run-period",
            help="Compute every eligible employee of a period",
        )
        run.add_argument("--period-id", type=parse_uuid, required=True)
        run.add_argument(
            "--concurrency",
            type=int,
            help="Maximum employees computed at once (default: PAYROLL_CONCURRENCY)",
        )
        run.add_argument(
            "--allow-failures",
            action="store_true",
            help="Mark the period computed even when some employees failed",
        )
        run.add_argument("--actor", help="Recorded on the audit trail")

        close = subparsers.add_parser("close-period", help="Close an approved period")
        close.add_argument("--period-id", type=parse_uuid, required=True)
        close.add_argument("--actor", help="Recorded on the audit trail")
        close.add_argument("--reason")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        logging.basicConfig(
            level=logging.DEBUG if parsed.verbose else get_settings().log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Coroutine[Any, Any, int]]] = {
            "init-db": self._cmd_init_db,
            "seed-tables": self._cmd_seed_tables,
            "generate-periods": self._cmd_generate_periods,
            "compute-dtr": self._cmd_compute_dtr,
            "run-period": self._cmd_run_period,
            "close-period": self._cmd_close_period,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(self._dispatch(handler, parsed))
        except (PayrollError, ValueError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    async def _dispatch(
        self,
        handler: Callable[[argparse.Namespace], Coroutine[Any, Any, int]],
        args: argparse.Namespace,
    ) -> int:
        try:
            return await handler(args)
        finally:
            await dispose_db()

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        await create_all()
        print("Tables created.")
        return 0

    async def _cmd_seed_tables(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            created = await seed_statutory_tables(session)
        print(f"Seeded {created} statutory table version(s).")
        return 0

    async def _cmd_generate_periods(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            periods = await PeriodService(session).generate_periods(
                args.year,
                pay_frequency=args.frequency,
                pay_date_adjustment=args.pay_date_adjustment,
                actor="cli",
            )
            for period in periods:
                print(
                    f"  {period.name}: {period.cutoff_start} to {period.cutoff_end}, "
                    f"pay date {period.pay_date}"
                )
        print(f"Created {len(periods)} period(s).")
        return 0

    async def _cmd_compute_dtr(self, args: argparse.Namespace) -> int:
        """Compute and print DTRs; days needing review are flagged."""
        end = args.end or args.start
        async with get_session() as session:
            service = DtrService(session, get_settings().punch_window_lead_minutes)
            records = await service.compute_range(
                args.employee_id, args.start, end, datetime.now()
            )
            for record in records:
                flag = f"  REVIEW: {record.review_reason}" if record.needs_review else ""
                print(
                    f"  {record.work_date} {record.status:<8} work={record.work_minutes:>4} "
                    f"late={record.late_minutes:>3} ut={record.undertime_minutes:>3} "
                    f"ot={record.overtime_minutes:>3} nd={record.night_diff_minutes:>3}{flag}"
                )
        return 0

    async def _cmd_run_period(self, args: argparse.Namespace) -> int:
        """Run payroll; optionally force the period to computed despite failures."""
        _, factory = init_db()
        orchestrator = PayrollRunOrchestrator(factory)
        report = await orchestrator.run(
            args.period_id, concurrency=args.concurrency, actor=args.actor
        )

        print(f"Payroll run for period {args.period_id}")
        print("=" * 40)
        print(f"  Eligible:  {report.eligible}")
        print(f"  Computed:  {len(report.computed)}")
        print(f"  Failed:    {report.failure_count}")
        print(f"  Skipped:   {len(report.skipped)}")
        for failure in report.failures:
            print(f"    - {failure.employee_id} {failure.error_type}: {failure.reason}")
        print(f"\n  Gross:      {report.total_gross:>15,.2f}")
        print(f"  Deductions: {report.total_deductions:>15,.2f}")
        print(f"  Net:        {report.total_net:>15,.2f}")

        if report.failures and args.allow_failures and report.period_status == "open":
            async with get_session() as session:
                period = await PeriodService(session).mark_computed(
                    args.period_id, actor=args.actor, allow_failures=True
                )
                report.period_status = period.status

        print(f"\n  Period status: {report.period_status}")
        return 0 if report.success or args.allow_failures else 1

    async def _cmd_close_period(self, args: argparse.Namespace) -> int:
        async with get_session() as session:
            period = await PeriodService(session).close_period(
                args.period_id, actor=args.actor, reason=args.reason
            )
        print(f"Period {period.name} closed.")
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
