"""Period aggregation engine behind the sales statistics dashboard.

``PeriodAggregate`` holds only additive raw totals; every ratio is a
property derived from them. Merging business lines into the company
view therefore sums raw totals and the ratios come out recomputed, never
averaged.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from compensation import rules
from compensation.calculator import calculate_temp
from core.numbers import ZERO, percent, round0, round2, safe_ratio
from core.periods import period_bounds

logger = logging.getLogger(__name__)

DAYS = tuple(f"{day:02d}" for day in range(1, 32))
TOP_USERS_LIMIT = 10


# ----------------------------------------------------------------------
# Folds over keyed breakdowns
# ----------------------------------------------------------------------

def fold_breakdown(pairs, seed=None) -> dict:
    """Fold ``(key, value)`` pairs into a new dict, first occurrence fixing key order."""
    result = dict(seed or {})
    for key, value in pairs:
        result[key] = result.get(key, 0) + value
    return result


def merge_breakdowns(left: dict, right: dict) -> dict:
    return fold_breakdown(right.items(), seed=left)


def sorted_breakdown(breakdown: dict) -> list[dict]:
    """Read view: largest value first, insertion order among equals."""
    ordered = sorted(breakdown.items(), key=lambda item: item[1], reverse=True)
    return [{"title": key, "value": value} for key, value in ordered]


def empty_day_buckets(channels=()) -> dict:
    return {
        day: {"deals": ZERO, "addons": ZERO, "calls": {channel: 0 for channel in channels}}
        for day in DAYS
    }


def merge_day_buckets(left: dict, right: dict) -> dict:
    merged = {}
    for day in DAYS:
        a, b = left[day], right[day]
        merged[day] = {
            "deals": a["deals"] + b["deals"],
            "addons": a["addons"] + b["addons"],
            "calls": fold_breakdown(b["calls"].items(), seed=a["calls"]),
        }
    return merged


# ----------------------------------------------------------------------
# Aggregate
# ----------------------------------------------------------------------

@dataclass
class PeriodAggregate:
    title: str
    period: str
    today: date
    plan: Decimal = ZERO
    deal_sales: Decimal = ZERO
    deals_amount: int = 0
    addon_sales: Decimal = ZERO
    addons_amount: int = 0
    received_payments: Decimal = ZERO
    ad_expenses: Decimal = ZERO
    calls: int = 0
    makets: int = 0
    shipped_count: int = 0
    shipped_value: Decimal = ZERO
    delivered_count: int = 0
    delivered_value: Decimal = ZERO
    free_delivery_count: int = 0
    free_delivery_value: Decimal = ZERO
    days: dict = field(default_factory=empty_day_buckets)
    sources: dict = field(default_factory=dict)
    ad_tags: dict = field(default_factory=dict)
    maket_types: dict = field(default_factory=dict)
    ad_sources: dict = field(default_factory=dict)
    sellers: dict = field(default_factory=dict)

    _ADDITIVE = (
        "plan",
        "deal_sales",
        "deals_amount",
        "addon_sales",
        "addons_amount",
        "received_payments",
        "ad_expenses",
        "calls",
        "makets",
        "shipped_count",
        "shipped_value",
        "delivered_count",
        "delivered_value",
        "free_delivery_count",
        "free_delivery_value",
    )

    # ------------------------------------------------------------------
    # Derived ratios
    # ------------------------------------------------------------------

    @property
    def total_sales(self) -> Decimal:
        return self.deal_sales + self.addon_sales

    @property
    def sales_to_plan(self) -> Decimal:
        return round0(safe_ratio(self.total_sales, self.plan) * 100)

    @property
    def remainder(self) -> Decimal:
        return self.plan - self.total_sales

    @property
    def addons_to_sales(self) -> Decimal:
        return round0(safe_ratio(self.addon_sales, self.total_sales) * 100)

    @property
    def average_bill(self) -> Decimal:
        return round0(safe_ratio(self.deal_sales, self.deals_amount))

    @property
    def temp(self) -> Decimal:
        return calculate_temp(self.total_sales, self.period, self.today)

    @property
    def cost_per_lead(self) -> Decimal:
        return round2(safe_ratio(self.ad_expenses, self.calls))

    @property
    def conversion_deals_to_calls(self) -> Decimal:
        return percent(self.deals_amount, self.calls)

    @property
    def conversion_makets_to_calls(self) -> Decimal:
        return percent(self.makets, self.calls)

    @property
    def conversion_deals_to_makets(self) -> Decimal:
        return percent(self.deals_amount, self.makets)

    # ------------------------------------------------------------------

    def merge(self, other: "PeriodAggregate", title: str | None = None) -> "PeriodAggregate":
        """New aggregate holding the sum of both operands."""
        merged = PeriodAggregate(title=title or self.title, period=self.period, today=self.today)
        for name in self._ADDITIVE:
            setattr(merged, name, getattr(self, name) + getattr(other, name))
        merged.days = merge_day_buckets(self.days, other.days)
        merged.sources = merge_breakdowns(self.sources, other.sources)
        merged.ad_tags = merge_breakdowns(self.ad_tags, other.ad_tags)
        merged.maket_types = merge_breakdowns(self.maket_types, other.maket_types)
        merged.ad_sources = merge_breakdowns(self.ad_sources, other.ad_sources)
        merged.sellers = dict(self.sellers)
        for user_id, seller in other.sellers.items():
            if user_id in merged.sellers:
                current = merged.sellers[user_id]
                merged.sellers[user_id] = {**current, "sales": current["sales"] + seller["sales"]}
            else:
                merged.sellers[user_id] = seller
        return merged

    def top_sellers(self, limit: int = TOP_USERS_LIMIT) -> list[dict]:
        ordered = sorted(self.sellers.values(), key=lambda s: s["sales"], reverse=True)
        return ordered[:limit]

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "period": self.period,
            "chart": [
                {"day": day, "deals": bucket["deals"], "addons": bucket["addons"]}
                for day, bucket in self.days.items()
            ],
            "calls_chart": [{"day": day, **bucket["calls"]} for day, bucket in self.days.items()],
            "plan": self.plan,
            "deal_sales": self.deal_sales,
            "deals_amount": self.deals_amount,
            "addon_sales": self.addon_sales,
            "addons_amount": self.addons_amount,
            "total_sales": self.total_sales,
            "sales_to_plan": self.sales_to_plan,
            "remainder": self.remainder,
            "addons_to_sales": self.addons_to_sales,
            "average_bill": self.average_bill,
            "received_payments": self.received_payments,
            "temp": self.temp,
            "calls": self.calls,
            "makets": self.makets,
            "ad_expenses": self.ad_expenses,
            "cost_per_lead": self.cost_per_lead,
            "conversion_deals_to_calls": self.conversion_deals_to_calls,
            "conversion_makets_to_calls": self.conversion_makets_to_calls,
            "conversion_deals_to_makets": self.conversion_deals_to_makets,
            "deliveries": {
                "shipped_count": self.shipped_count,
                "shipped_value": self.shipped_value,
                "delivered_count": self.delivered_count,
                "delivered_value": self.delivered_value,
                "free_count": self.free_delivery_count,
                "free_value": self.free_delivery_value,
            },
            "sources": sorted_breakdown(self.sources),
            "ad_tags": sorted_breakdown(self.ad_tags),
            "maket_types": sorted_breakdown(self.maket_types),
            "ad_sources": sorted_breakdown(self.ad_sources),
            "top_sellers": self.top_sellers(),
        }


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------

class PeriodAggregationEngine:
    """Build ``PeriodAggregate`` objects for business lines or teams."""

    def __init__(self, period: str, today: date | None = None) -> None:
        self.period = period
        self.today = today or timezone.localdate()
        self.start, self.end = period_bounds(period)
        self._channels = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def channels(self) -> list[str]:
        """Lead channels (one per commercial business line) seeded in every day bucket."""
        if self._channels is None:
            from workspaces.models import Workspace

            self._channels = list(
                Workspace.objects.alive()
                .filter(department=Workspace.Department.COMMERCIAL)
                .order_by("id")
                .values_list("title", flat=True)
            )
        return self._channels

    def build_workspace(self, workspace, group=None) -> PeriodAggregate:
        """Aggregate one business line, or one team of it when ``group`` is given."""
        from deals.models import Deal

        aggregate = PeriodAggregate(
            title=group.title if group is not None else workspace.title,
            period=self.period,
            today=self.today,
            days=empty_day_buckets(self.channels),
            maket_types={choice: ZERO for choice in Deal.MaketType.values},
        )
        scope = {"workspace_id": workspace.id}
        if group is not None:
            scope["group_id"] = group.id

        self._fold_deals(aggregate, scope)
        self._fold_addons(aggregate, scope)
        self._fold_sellers(aggregate, scope)
        self._fold_payments(aggregate, scope)
        self._fold_reports(aggregate, workspace, group)
        self._fold_ad_expenses(aggregate, scope)
        self._fold_deliveries(aggregate, scope)
        aggregate.plan = self._plan(workspace, group)
        return aggregate

    def build_company(self, workspaces) -> tuple[PeriodAggregate, list[PeriodAggregate]]:
        """Company aggregate plus the per-business-line aggregates it was summed from."""
        parts = [self.build_workspace(workspace) for workspace in workspaces]
        company = PeriodAggregate(
            title="Total",
            period=self.period,
            today=self.today,
            days=empty_day_buckets(self.channels),
        )
        for part in parts:
            company = company.merge(part, title="Total")
        logger.info("Built company statistics period=%s lines=%d", self.period, len(parts))
        return company, parts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _countable_deals(self, scope):
        from deals.models import Deal

        return Deal.objects.countable().filter(**scope)

    def _fold_deals(self, aggregate, scope):
        rows = self._countable_deals(scope).filter(
            sale_date__gte=self.start, sale_date__lt=self.end
        ).values_list("price", "sale_date", "source", "ad_tag", "maket_type")
        sources, ad_tags, makets = [], [], []
        for price, sale_date, source, ad_tag, maket_type in rows:
            aggregate.deal_sales += price
            aggregate.deals_amount += 1
            aggregate.days[f"{sale_date.day:02d}"]["deals"] += price
            sources.append((source or "Sans source", price))
            ad_tags.append((ad_tag or "Sans tag", price))
            makets.append((maket_type, price))
        aggregate.sources = fold_breakdown(sources, seed=aggregate.sources)
        aggregate.ad_tags = fold_breakdown(ad_tags, seed=aggregate.ad_tags)
        aggregate.maket_types = fold_breakdown(makets, seed=aggregate.maket_types)

    def _fold_addons(self, aggregate, scope):
        from deals.models import AddOn

        rows = AddOn.objects.filter(
            sale_date__gte=self.start,
            sale_date__lt=self.end,
            deal_id__in=self._countable_deals({}).values("id"),
            **scope,
        ).values_list("price", "sale_date")
        for price, sale_date in rows:
            aggregate.addon_sales += price
            aggregate.addons_amount += 1
            aggregate.days[f"{sale_date.day:02d}"]["addons"] += price

    def _fold_sellers(self, aggregate, scope):
        from accounts.models import User
        from deals.models import AddOn, DealParticipant

        sales = defaultdict(lambda: ZERO)
        shares = (
            DealParticipant.objects.filter(
                deal_id__in=self._countable_deals(scope)
                .filter(sale_date__gte=self.start, sale_date__lt=self.end)
                .values("id"),
            )
            .order_by()
            .values("user_id")
            .annotate(total=Sum("price"))
        )
        for row in shares:
            sales[row["user_id"]] += row["total"] or ZERO
        addons = (
            AddOn.objects.filter(
                sale_date__gte=self.start,
                sale_date__lt=self.end,
                deal_id__in=self._countable_deals({}).values("id"),
                **scope,
            )
            .order_by()
            .values("user_id")
            .annotate(total=Sum("price"))
        )
        for row in addons:
            sales[row["user_id"]] += row["total"] or ZERO

        users = User.objects.filter(id__in=list(sales)).order_by("id")
        aggregate.sellers = {
            user.id: {"id": user.id, "full_name": user.get_full_name(), "sales": sales[user.id]}
            for user in users
        }

    def _fold_payments(self, aggregate, scope):
        from deals.models import Payment

        deal_scope = {f"deal__{key}": value for key, value in scope.items()}
        aggregate.received_payments = Payment.objects.filter(
            date__gte=self.start,
            date__lt=self.end,
            deal_id__in=self._countable_deals({}).values("id"),
            **deal_scope,
        ).aggregate(total=Sum("price"))["total"] or ZERO

    def _fold_reports(self, aggregate, workspace, group):
        from commercial.models import ManagerReport

        qs = ManagerReport.objects.filter(period=self.period, user__workspace_id=workspace.id)
        if group is not None:
            qs = qs.filter(user__group_id=group.id)
        rows = qs.order_by().values("date").annotate(calls=Sum("calls"), makets=Sum("makets"))
        for row in rows:
            calls = row["calls"] or 0
            aggregate.calls += calls
            aggregate.makets += row["makets"] or 0
            bucket = aggregate.days[f"{row['date'].day:02d}"]["calls"]
            bucket[workspace.title] = bucket.get(workspace.title, 0) + calls

    def _fold_ad_expenses(self, aggregate, scope):
        from commercial.models import AdExpense

        rows = (
            AdExpense.objects.filter(date__gte=self.start, date__lt=self.end, **scope)
            .order_by()
            .values("ad_source__title")
            .annotate(total=Sum("price"))
            .order_by("ad_source__title")
        )
        pairs = [(row["ad_source__title"], row["total"] or ZERO) for row in rows]
        aggregate.ad_expenses = sum((value for _, value in pairs), ZERO)
        aggregate.ad_sources = fold_breakdown(pairs, seed=aggregate.ad_sources)

    def _fold_deliveries(self, aggregate, scope):
        from deals.models import Delivery
        from deals.services import SHIPPED_STATUSES, deal_values

        shipped = {}
        delivered = {}
        deal_ids = self._countable_deals(scope).values("id")
        rows = Delivery.objects.filter(deal_id__in=deal_ids).filter(
            date__gte=self.start, date__lt=self.end, status__in=SHIPPED_STATUSES
        ).order_by("date", "id")
        for delivery in rows:
            shipped[delivery.deal_id] = delivery
        free = [d for d in shipped.values() if d.type == Delivery.Type.FREE]
        rows = Delivery.objects.filter(
            deal_id__in=deal_ids,
            delivered_date__gte=self.start,
            delivered_date__lt=self.end,
            status=Delivery.Status.DELIVERED,
        ).order_by("delivered_date", "id")
        for delivery in rows:
            delivered[delivery.deal_id] = delivery

        values = deal_values(set(shipped) | set(delivered))
        aggregate.shipped_count = len(shipped)
        aggregate.shipped_value = sum((values.get(i, ZERO) for i in shipped), ZERO)
        aggregate.delivered_count = len(delivered)
        aggregate.delivered_value = sum((values.get(i, ZERO) for i in delivered), ZERO)
        aggregate.free_delivery_count = len(free)
        aggregate.free_delivery_value = sum((d.price for d in free), ZERO)

    def _plan(self, workspace, group=None) -> Decimal:
        """Director plan of the business line, or the team lead plan of ``group``."""
        from commercial.models import ManagerPlan

        owner = {"user__role": rules.ROLE_SALES_DIRECTOR, "user__workspace_id": workspace.id}
        if group is not None:
            owner = {"user__role": rules.ROLE_TEAM_LEAD, "user__group_id": group.id}
        plan = (
            ManagerPlan.objects.filter(period=self.period, deleted_at__isnull=True, **owner)
            .order_by("id")
            .first()
        )
        return plan.plan if plan else ZERO
