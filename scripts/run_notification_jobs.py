"""Run the scheduled contract notification checks once.

Intended to be triggered daily by cron or a platform scheduler.
"""

from __future__ import annotations

import argparse
import logging
from datetime import date

from notification_hub.application.use_cases.notifications import (
    JobReport,
    NotificationDispatcher,
    check_expiring_contracts,
    check_overdue_payments,
    purge_old_notifications,
)
from notification_hub.config import get_settings
from notification_hub.infrastructure.database import SessionLocal, initialize_database

JOBS = ("expiring", "overdue", "purge")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for the notification jobs."""

    parser = argparse.ArgumentParser(
        description="Genera las notificaciones programadas de contratos.",
    )
    parser.add_argument(
        "--only",
        choices=JOBS,
        action="append",
        help="Ejecuta solo el job indicado (se puede repetir). Por defecto se ejecutan todos.",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Fecha de referencia en formato AAAA-MM-DD (por defecto: hoy).",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Antigüedad en días de las notificaciones a eliminar.",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> JobReport:
    settings = get_settings()
    selected = set(args.only or JOBS)
    report = JobReport()

    session = SessionLocal()
    try:
        dispatcher = NotificationDispatcher(session, settings=settings)
        if "expiring" in selected:
            check_expiring_contracts(dispatcher, today=args.date, report=report)
        if "overdue" in selected:
            check_overdue_payments(dispatcher, today=args.date, report=report)
        if "purge" in selected:
            purge_old_notifications(
                dispatcher.notifications,
                retention_days=args.retention_days or settings.notification_retention_days,
                report=report,
            )
    finally:
        session.close()
    return report


def main(argv: list[str] | None = None) -> None:
    """Run the selected jobs and print a short summary."""

    args = parse_args(argv)
    logging.basicConfig(level=get_settings().log_level.upper())
    initialize_database()

    report = run(args)
    print(
        "Jobs de notificaciones completados:\n"
        f"  Contratos por vencer: {report.expiring_contracts}\n"
        f"  Pagos atrasados: {report.overdue_contracts}\n"
        f"  Notificaciones creadas: {report.notifications_created}\n"
        f"  Notificaciones eliminadas: {report.purged}"
    )
    if report.errors:
        raise SystemExit(f"Jobs con errores: {', '.join(report.errors)}")


if __name__ == "__main__":
    main()
