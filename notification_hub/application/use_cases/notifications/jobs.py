"""Periodic checks that raise contract deadline notifications."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from notification_hub.infrastructure.repositories import NotificationRepository
from notification_hub.utils import app_now

from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

EXPIRING_MILESTONES: Sequence[int] = (30, 15, 7, 3, 1)
OVERDUE_REMINDER_INTERVAL_DAYS = 7


@dataclass
class JobReport:
    """Counters collected while running the scheduled jobs."""

    expiring_contracts: int = 0
    overdue_contracts: int = 0
    notifications_created: int = 0
    purged: int = 0
    errors: list[str] = field(default_factory=list)


def check_expiring_contracts(
    dispatcher: NotificationDispatcher,
    *,
    today: date | None = None,
    milestones: Sequence[int] = EXPIRING_MILESTONES,
    report: JobReport | None = None,
) -> JobReport:
    """Notify about active contracts that hit one of the expiry milestones today."""

    report = report or JobReport()
    today = today or app_now().date()
    try:
        expiring = dispatcher.contracts.list_active_expiring(today, milestones)
    except SQLAlchemyError:
        dispatcher.session.rollback()
        logger.exception("Could not list expiring contracts")
        report.errors.append("expiring")
        return report

    for contract, days in expiring:
        logger.info(
            "Contract %s expires in %s days", contract.contract_number, days
        )
        report.expiring_contracts += 1
        report.notifications_created += len(
            dispatcher.notify_contract_expiring(contract.id, days)
        )
    return report


def check_overdue_payments(
    dispatcher: NotificationDispatcher,
    *,
    today: date | None = None,
    interval_days: int = OVERDUE_REMINDER_INTERVAL_DAYS,
    report: JobReport | None = None,
) -> JobReport:
    """Remind about pending payments once every ``interval_days`` of delay."""

    report = report or JobReport()
    today = today or app_now().date()
    try:
        overdue = dispatcher.contracts.list_pending_overdue(today)
    except SQLAlchemyError:
        dispatcher.session.rollback()
        logger.exception("Could not list overdue payments")
        report.errors.append("overdue")
        return report

    for contract, days_overdue in overdue:
        if days_overdue % interval_days != 0:
            continue
        logger.info(
            "Payment of contract %s is %s days overdue",
            contract.contract_number,
            days_overdue,
        )
        report.overdue_contracts += 1
        report.notifications_created += len(
            dispatcher.notify_payment_overdue(contract.id, days_overdue)
        )
    return report


def purge_old_notifications(
    repository: NotificationRepository,
    *,
    retention_days: int,
    report: JobReport | None = None,
) -> JobReport:
    report = report or JobReport()
    try:
        report.purged += repository.purge_older_than(retention_days)
    except SQLAlchemyError:
        repository.session.rollback()
        logger.exception("Could not purge notifications older than %s days", retention_days)
        report.errors.append("purge")
    return report


def run_all(
    dispatcher: NotificationDispatcher,
    *,
    today: date | None = None,
    purge: bool = True,
) -> JobReport:
    report = JobReport()
    check_expiring_contracts(dispatcher, today=today, report=report)
    check_overdue_payments(dispatcher, today=today, report=report)
    if purge:
        purge_old_notifications(
            dispatcher.notifications,
            retention_days=dispatcher.settings.notification_retention_days,
            report=report,
        )
    return report


__all__ = [
    "EXPIRING_MILESTONES",
    "OVERDUE_REMINDER_INTERVAL_DAYS",
    "JobReport",
    "check_expiring_contracts",
    "check_overdue_payments",
    "purge_old_notifications",
    "run_all",
]
