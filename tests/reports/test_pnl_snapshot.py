from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from compensation import rules
from reports.models import PnlSnapshot
from reports.services import get_cached_snapshot, get_pnl_statement, refresh_pnl_snapshot
from reports.tasks import refresh_current_pnl_snapshots, refresh_pnl_snapshot_task


@pytest.mark.django_db
def test_refresh_stores_one_row_per_statement():
    first = refresh_pnl_snapshot(PnlSnapshot.StatementType.WATERFALL, "2025-03", window=2)
    second = refresh_pnl_snapshot(PnlSnapshot.StatementType.WATERFALL, "2025-03", window=2)

    assert first.pk == second.pk
    assert PnlSnapshot.objects.count() == 1
    assert second.version == rules.RULES_VERSION
    assert second.payload["periods"] == ["2025-02", "2025-03"]


@pytest.mark.django_db
def test_stale_or_outdated_snapshot_is_not_served():
    snapshot = refresh_pnl_snapshot(PnlSnapshot.StatementType.TREND, "2025-03", window=2)

    assert get_cached_snapshot("TREND", "2025-03", 2) == snapshot

    PnlSnapshot.objects.filter(pk=snapshot.pk).update(computed_at=timezone.now() - timedelta(hours=3))
    assert get_cached_snapshot("TREND", "2025-03", 2, max_age_minutes=60) is None

    PnlSnapshot.objects.filter(pk=snapshot.pk).update(computed_at=timezone.now(), version="2024-01")
    assert get_cached_snapshot("TREND", "2025-03", 2) is None


@pytest.mark.django_db
def test_get_statement_uses_cache_unless_refresh_requested():
    get_pnl_statement("WATERFALL", "2025-03", window=1)

    with patch("reports.services.build_statement") as build:
        get_pnl_statement("WATERFALL", "2025-03", window=1)
        build.assert_not_called()

        build.return_value = {"statement_type": "WATERFALL", "periods": ["2025-03"]}
        payload = get_pnl_statement("WATERFALL", "2025-03", window=1, refresh=True)
        build.assert_called_once_with("WATERFALL", "2025-03", 1, "all")

    assert payload["periods"] == ["2025-03"]


@pytest.mark.django_db
def test_busy_lock_still_returns_a_statement():
    with patch("reports.services.refresh_pnl_snapshot", return_value=None):
        payload = get_pnl_statement("WATERFALL", "2025-03", window=1)

    assert payload["statement_type"] == "WATERFALL"
    assert PnlSnapshot.objects.count() == 0


@pytest.mark.django_db
def test_unknown_statement_type_is_rejected():
    with pytest.raises(ValueError):
        refresh_pnl_snapshot("BALANCE", "2025-03", window=1)


@pytest.mark.django_db
def test_refresh_task_returns_snapshot_id():
    result = refresh_pnl_snapshot_task.apply(
        kwargs={"statement_type": "TREND", "anchor_period": "2025-03", "window": 1, "line": "book"}
    )

    snapshot = PnlSnapshot.objects.get(pk=result.get())
    assert snapshot.line == "book"
    assert snapshot.payload["line"] == "book"


@pytest.mark.django_db
def test_scheduled_refresh_queues_current_and_previous_period():
    with patch("reports.tasks.refresh_pnl_snapshot_task.delay") as delay:
        queued = refresh_current_pnl_snapshots()

    assert queued == 4
    assert delay.call_count == 4
