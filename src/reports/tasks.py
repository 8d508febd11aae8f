"""Celery tasks for the reports app."""
from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def refresh_pnl_snapshot_task(self, *, statement_type: str, anchor_period: str, window: int | None = None, line: str = "all"):
    """Recompute one cached P&L statement."""
    from celery.exceptions import Retry

    try:
        from reports.services import refresh_pnl_snapshot

        snapshot = refresh_pnl_snapshot(statement_type, anchor_period, window, line)
        if snapshot is None:
            # Lock not acquired, another worker is computing it
            raise self.retry(countdown=5)
        logger.info("Refreshed P&L %s period=%s", statement_type, anchor_period)
        return snapshot.pk
    except Retry:
        raise
    except Exception as exc:
        logger.exception("refresh_pnl_snapshot_task failed: %s", exc)
        raise self.retry(exc=exc)


@shared_task(name="reports.tasks.refresh_current_pnl_snapshots")
def refresh_current_pnl_snapshots():
    """
    Scheduled hourly (Celery Beat). Queue a refresh of the waterfall and
    the trend for the current and the previous period.
    """
    from core.periods import current_period, previous_period
    from reports.models import PnlSnapshot

    period = current_period()
    periods = [previous_period(period), period]
    window = settings.PNL_WINDOW
    for anchor in periods:
        for statement_type in PnlSnapshot.StatementType.values:
            refresh_pnl_snapshot_task.delay(
                statement_type=statement_type,
                anchor_period=anchor,
                window=window,
            )
    logger.info("Queued P&L refresh for periods=%s", ", ".join(periods))
    return len(periods) * len(PnlSnapshot.StatementType.values)
