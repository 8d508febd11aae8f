"""Service functions for the reports app.

Statements are expensive to build, so they are cached in ``PnlSnapshot``
rows. A refresh runs inside a transaction holding a PostgreSQL advisory
lock keyed by statement type and period: a second worker asking for the
same statement while the first is computing gets ``None`` back instead
of recomputing in parallel.
"""
from __future__ import annotations

import hashlib
import logging
from datetime import timedelta

from django.conf import settings
from django.db import connection, transaction
from django.utils import timezone

from compensation import rules

logger = logging.getLogger("signcrm")


def _make_lock_key(statement_type: str, anchor_period: str, window: int, line: str) -> int:
    raw = f"pnl:{statement_type}:{anchor_period}:{window}:{line}"
    hex_digest = hashlib.md5(raw.encode()).hexdigest()[:8]
    return int(hex_digest, 16) % (2**31)


def build_statement(statement_type: str, anchor_period: str, window: int, line: str = "all") -> dict:
    from reports.models import PnlSnapshot
    from reports.pnl import PnlTrendBuilder, PnlWaterfallBuilder

    if statement_type == PnlSnapshot.StatementType.WATERFALL:
        return PnlWaterfallBuilder(anchor_period, window).build()
    if statement_type == PnlSnapshot.StatementType.TREND:
        return PnlTrendBuilder(anchor_period, window, line=line).build()
    raise ValueError(f"Type de rapport inconnu : {statement_type}")


def refresh_pnl_snapshot(statement_type: str, anchor_period: str, window: int | None = None, line: str = "all"):
    """
    Recompute and persist a statement.

    Returns the ``PnlSnapshot`` or ``None`` when another transaction holds
    the advisory lock for the same statement.
    """
    from reports.models import PnlSnapshot

    window = window or settings.PNL_WINDOW
    lock_key = _make_lock_key(statement_type, anchor_period, window, line)

    with transaction.atomic():
        # Only PostgreSQL has advisory locks; other engines run unlocked.
        acquired = True
        if connection.vendor == "postgresql":
            with connection.cursor() as cursor:
                cursor.execute("SELECT pg_try_advisory_xact_lock(%s)", [lock_key])
                row = cursor.fetchone()
                acquired = bool(row and row[0])

        if not acquired:
            logger.debug(
                "Advisory lock not acquired for P&L %s period=%s window=%s, skipping",
                statement_type,
                anchor_period,
                window,
            )
            return None

        payload = build_statement(statement_type, anchor_period, window, line)
        snapshot, _ = PnlSnapshot.objects.update_or_create(
            statement_type=statement_type,
            anchor_period=anchor_period,
            window=window,
            line=line,
            defaults={
                "payload": payload,
                "version": rules.RULES_VERSION,
                "computed_at": timezone.now(),
            },
        )

    logger.info(
        "Stored P&L snapshot %s period=%s window=%s line=%s",
        statement_type,
        anchor_period,
        window,
        line,
    )
    return snapshot


def get_cached_snapshot(statement_type: str, anchor_period: str, window: int, line: str = "all", max_age_minutes=None):
    """Return a snapshot younger than ``max_age_minutes`` computed with the current rules, else ``None``."""
    from reports.models import PnlSnapshot

    if max_age_minutes is None:
        max_age_minutes = settings.PNL_SNAPSHOT_MAX_AGE_MINUTES
    cutoff = timezone.now() - timedelta(minutes=max_age_minutes)
    return (
        PnlSnapshot.objects.filter(
            statement_type=statement_type,
            anchor_period=anchor_period,
            window=window,
            line=line,
            version=rules.RULES_VERSION,
            computed_at__gte=cutoff,
        )
        .order_by("-computed_at")
        .first()
    )


def get_pnl_statement(
    statement_type: str,
    anchor_period: str,
    window: int | None = None,
    line: str = "all",
    refresh: bool = False,
) -> dict:
    """
    Payload of a statement, from the cache when fresh enough.

    When the refresh lock is busy the statement is built without being
    stored, so the caller always gets an answer.
    """
    window = window or settings.PNL_WINDOW
    if not refresh:
        snapshot = get_cached_snapshot(statement_type, anchor_period, window, line)
        if snapshot is not None:
            return snapshot.payload

    snapshot = refresh_pnl_snapshot(statement_type, anchor_period, window, line)
    if snapshot is not None:
        return snapshot.payload
    return build_statement(statement_type, anchor_period, window, line)
