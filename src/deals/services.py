"""Read helpers shared by the statistics and P&L engines."""
from __future__ import annotations

from decimal import Decimal

from django.db.models import Sum

from deals.models import AddOn, Deal, Delivery

SHIPPED_STATUSES = (Delivery.Status.SHIPPED, Delivery.Status.DELIVERED)


def deal_values(deal_ids) -> dict[int, Decimal]:
    """Deal price plus the price of all its add-ons, per deal id."""
    deal_ids = list(deal_ids)
    if not deal_ids:
        return {}
    values = dict(Deal.objects.filter(id__in=deal_ids).values_list("id", "price"))
    addon_rows = (
        AddOn.objects.filter(deal_id__in=deal_ids)
        .order_by()
        .values("deal_id")
        .annotate(total=Sum("price"))
    )
    for row in addon_rows:
        values[row["deal_id"]] = values.get(row["deal_id"], Decimal("0")) + (row["total"] or Decimal("0"))
    return values


def latest_shipments(start, end, **deal_filters) -> dict[int, Delivery]:
    """
    Latest shipped delivery per countable deal, for deliveries shipped in
    ``[start, end)``.

    A deal shipped more than once counts once, on its most recent
    delivery (ties broken by id).
    """
    qs = (
        Delivery.objects.filter(
            status__in=SHIPPED_STATUSES,
            date__gte=start,
            date__lt=end,
            deal_id__in=Deal.objects.countable().filter(**deal_filters).values("id"),
        )
        .select_related("deal")
        .order_by("deal_id", "date", "id")
    )
    latest = {}
    for delivery in qs:
        latest[delivery.deal_id] = delivery
    return latest
