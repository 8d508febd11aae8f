"""Per-salesperson sales and funnel counters for a period.

Counters are collected for a whole list of users with one query per
source table, so ranking a business line does not cost a query per
member.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from django.db.models import Count, Q, Sum

from compensation import rules
from core.numbers import ZERO, percent, round0, round2, safe_ratio
from core.periods import period_bounds


@dataclass
class MemberMetrics:
    user_id: int
    full_name: str = ""
    role: str = ""
    workspace_id: int | None = None
    group_id: int | None = None
    deal_sales: Decimal = ZERO
    deals_amount: int = 0
    addon_sales: Decimal = ZERO
    addons_amount: int = 0
    dimmer_sales: Decimal = ZERO
    deals_day_to_day: int = 0
    deals_day_to_day_price: Decimal = ZERO
    deals_without_designers: int = 0
    deals_sales_without_designers: Decimal = ZERO
    calls: int = 0
    makets: int = 0
    makets_day_to_day: int = 0
    redirect_to_msg: int = 0
    shift: int = 0
    shift_bonus: Decimal = ZERO
    is_intern: bool = False
    maket_sales: dict = field(default_factory=dict)

    @property
    def total_sales(self) -> Decimal:
        return self.deal_sales + self.addon_sales

    @property
    def average_bill(self) -> Decimal:
        return round0(safe_ratio(self.total_sales, self.deals_amount))

    @property
    def conversion_deals_to_calls(self) -> Decimal:
        return percent(self.deals_amount, self.calls)

    @property
    def conversion_day_to_day(self) -> Decimal:
        return percent(self.deals_day_to_day, self.calls)

    @property
    def conversion_makets_to_calls(self) -> Decimal:
        return percent(self.makets, self.calls)

    @property
    def conversion_makets_to_sales(self) -> Decimal:
        return percent(self.deals_amount, self.makets)

    @property
    def conversion_makets_day_to_day_to_calls(self) -> Decimal:
        return percent(self.makets_day_to_day, self.calls)

    def drr(self, call_cost: Decimal) -> Decimal:
        """Ad spend attributable to the user's leads as a share of their sales."""
        return round2(safe_ratio(self.calls * call_cost, self.total_sales) * 100)


def collect_metrics(users, period: str) -> dict[int, MemberMetrics]:
    """Build ``MemberMetrics`` for every user, keyed by user id, in input order."""
    from commercial.models import ManagerReport
    from deals.models import AddOn, Deal, DealParticipant

    users = list(users)
    metrics = {
        user.id: MemberMetrics(
            user_id=user.id,
            full_name=user.get_full_name(),
            role=user.role,
            workspace_id=user.workspace_id,
            group_id=user.group_id,
        )
        for user in users
    }
    if not metrics:
        return metrics

    start, end = period_bounds(period)
    user_ids = list(metrics)
    countable = Deal.objects.countable().values("id")

    shares = (
        DealParticipant.objects.filter(
            user_id__in=user_ids,
            deal_id__in=countable,
            deal__sale_date__gte=start,
            deal__sale_date__lt=end,
        )
        .select_related("deal", "deal__client")
        .order_by("deal_id", "id")
    )
    for share in shares:
        m = metrics[share.user_id]
        deal = share.deal
        m.deal_sales += share.price
        m.deals_amount += 1
        m.maket_sales[deal.maket_type] = m.maket_sales.get(deal.maket_type, ZERO) + share.price
        if deal.client_id and deal.client.first_contact == deal.sale_date:
            m.deals_day_to_day += 1
            m.deals_day_to_day_price += share.price
        if rules.is_without_designer(deal.maket_type):
            m.deals_without_designers += 1
            m.deals_sales_without_designers += deal.price

    addons = AddOn.objects.filter(
        user_id__in=user_ids,
        deal_id__in=countable,
        sale_date__gte=start,
        sale_date__lt=end,
    ).values_list("user_id", "price", "type")
    for user_id, price, addon_type in addons:
        m = metrics[user_id]
        m.addon_sales += price
        m.addons_amount += 1
        if addon_type == rules.DIMMER_ADDON_TYPE:
            m.dimmer_sales += price

    reports = (
        ManagerReport.objects.filter(user_id__in=user_ids, period=period)
        .order_by()
        .values("user_id")
        .annotate(
            calls=Sum("calls"),
            makets=Sum("makets"),
            makets_day_to_day=Sum("makets_day_to_day"),
            redirect_to_msg=Sum("redirect_to_msg"),
            shift=Count("id"),
            shift_bonus=Sum("shift_cost"),
            intern_reports=Count("id", filter=Q(is_intern=True)),
        )
    )
    for row in reports:
        m = metrics[row["user_id"]]
        m.calls = row["calls"] or 0
        m.makets = row["makets"] or 0
        m.makets_day_to_day = row["makets_day_to_day"] or 0
        m.redirect_to_msg = row["redirect_to_msg"] or 0
        m.shift = row["shift"] or 0
        m.shift_bonus = row["shift_bonus"] or ZERO
        m.is_intern = bool(row["intern_reports"])

    return metrics
