"""Commission calculator: the monthly pay card of a salesperson.

Pulls together the sales counters, the proration of the period's
payments, the rule tables, corrections, shift pay and top bonuses.
Everything is read-only; results are memoised per engine instance so a
P&L build touching many people does not recompute the same card.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from django.db.models import Count, Q, Sum
from django.utils import timezone

from compensation import rules
from compensation.metrics import MemberMetrics, collect_metrics
from compensation.proration import ProrationLoader
from compensation.ranking import RankingResult, rank_business_line
from core.numbers import ZERO, round0, round2, safe_ratio
from core.periods import current_period, days_in_period, parse_period, period_bounds

logger = logging.getLogger(__name__)


def calculate_temp(total_sales: Decimal, period: str, today: date | None = None) -> Decimal:
    """Run-rate projection of ``total_sales`` to the end of the month."""
    today = today or timezone.localdate()
    parse_period(period)
    month_days = days_in_period(period)
    elapsed = today.day if current_period(today) == period else month_days
    if not elapsed:
        return ZERO
    return round0(Decimal(total_sales) / elapsed * month_days)


@dataclass
class GroupContext:
    group_id: int
    workspace_id: int | None
    ad_expenses: Decimal
    calls: int
    call_cost: Decimal
    total_sales: Decimal
    plan: Decimal
    is_over_plan: bool
    revenue: Decimal


class CommissionEngine:
    """Compute compensation cards for one period."""

    def __init__(self, period: str, today: date | None = None) -> None:
        parse_period(period)
        self.period = period
        self.today = today or timezone.localdate()
        self._cards: dict[int, dict] = {}
        self._groups: dict[int, GroupContext] = {}
        self._rankings: dict[int, RankingResult] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute_for_manager(self, user_id: int) -> dict:
        """
        Full pay card for ``user_id``.

        Raises ``User.DoesNotExist`` for an unknown id; a user without
        sales, plan or reports gets a zero-valued card.
        """
        if user_id in self._cards:
            return self._cards[user_id]

        from accounts.models import User

        user = User.objects.select_related("workspace", "group").get(pk=user_id)
        metrics = collect_metrics([user], self.period)[user.id]
        card = self._build_card(user, metrics)
        self._cards[user_id] = card
        return card

    def compute_group_summary(self, group_id: int) -> list[dict]:
        """Overview of every salesperson of a team, best sellers first."""
        from accounts.models import User

        context = self.group_context(group_id)
        users = list(
            User.objects.filter(group_id=group_id, role__in=rules.GROUP_SUMMARY_ROLES)
            .select_related("workspace", "group")
            .order_by("id")
        )
        metrics = collect_metrics(users, self.period)
        facts = self._facts([u.id for u in users])

        rows = []
        for user in users:
            m = metrics[user.id]
            if user.is_fired and m.total_sales == 0:
                continue
            fact, fact_amount = facts.get(user.id, (ZERO, 0))
            rows.append(
                {
                    "id": user.id,
                    "full_name": user.get_full_name(),
                    "role": user.role,
                    "fired": user.is_fired,
                    "deal_sales": m.deal_sales,
                    "deals_amount": m.deals_amount,
                    "addon_sales": m.addon_sales,
                    "total_sales": m.total_sales,
                    "calls": m.calls,
                    "average_bill": m.average_bill,
                    "drr": m.drr(context.call_cost),
                    "conversion_deals_to_calls": m.conversion_deals_to_calls,
                    "fact": fact if self._has_fact(user) else ZERO,
                    "fact_amount": fact_amount if self._has_fact(user) else 0,
                }
            )
        return sorted(rows, key=lambda row: row["total_sales"], reverse=True)

    def compute_total_salaries(self, users) -> Decimal:
        """Sum of ``total_salary`` over ``users`` (used by the P&L)."""
        return round2(
            sum((self.compute_for_manager(user.id)["total_salary"] for user in users), ZERO)
        )

    def group_context(self, group_id: int) -> GroupContext:
        if group_id in self._groups:
            return self._groups[group_id]

        from commercial.models import AdExpense, ManagerPlan, ManagerReport
        from deals.models import AddOn, Deal, Payment
        from workspaces.models import Group

        group = Group.objects.get(pk=group_id)
        start, end = period_bounds(self.period)

        ad_expenses = AdExpense.objects.filter(
            group_id=group_id, date__gte=start, date__lt=end
        ).aggregate(total=Sum("price"))["total"] or ZERO
        calls = ManagerReport.objects.filter(
            user__group_id=group_id, period=self.period
        ).aggregate(total=Sum("calls"))["total"] or 0

        countable = Deal.objects.countable()
        deal_sales = countable.filter(
            group_id=group_id, sale_date__gte=start, sale_date__lt=end
        ).aggregate(total=Sum("price"))["total"] or ZERO
        addon_sales = AddOn.objects.filter(
            group_id=group_id,
            sale_date__gte=start,
            sale_date__lt=end,
            deal_id__in=countable.values("id"),
        ).aggregate(total=Sum("price"))["total"] or ZERO
        revenue = Payment.objects.filter(
            deal__group_id=group_id,
            deal_id__in=countable.values("id"),
            date__gte=start,
            date__lt=end,
        ).aggregate(total=Sum("price"))["total"] or ZERO

        director_plan = (
            ManagerPlan.objects.filter(
                period=self.period,
                deleted_at__isnull=True,
                user__role=rules.ROLE_SALES_DIRECTOR,
                user__workspace_id=group.workspace_id,
            )
            .order_by("id")
            .first()
        )
        plan = director_plan.plan if director_plan else ZERO
        total_sales = deal_sales + addon_sales

        context = GroupContext(
            group_id=group_id,
            workspace_id=group.workspace_id,
            ad_expenses=ad_expenses,
            calls=calls,
            call_cost=safe_ratio(ad_expenses, calls),
            total_sales=total_sales,
            plan=plan,
            is_over_plan=plan > 0 and total_sales > plan,
            revenue=revenue,
        )
        self._groups[group_id] = context
        return context

    def ranking(self, workspace_id) -> RankingResult:
        if workspace_id not in self._rankings:
            self._rankings[workspace_id] = rank_business_line(workspace_id, self.period)
        return self._rankings[workspace_id]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _has_fact(self, user) -> bool:
        return user.group_id == rules.book_group_id() and user.role == rules.ROLE_ACCOUNT_REP

    def _facts(self, user_ids) -> dict[int, tuple[Decimal, int]]:
        """Payments collected by each user during the period."""
        from deals.models import Payment

        start, end = period_bounds(self.period)
        rows = (
            Payment.objects.filter(user_id__in=user_ids, date__gte=start, date__lt=end)
            .order_by()
            .values("user_id")
            .annotate(total=Sum("price"), amount=Count("id"))
        )
        return {row["user_id"]: (row["total"] or ZERO, row["amount"]) for row in rows}

    def _salary_rows(self, user) -> dict:
        from commercial.models import ManagerPlan, SalaryCorrection, SalaryPay

        plan_row = (
            ManagerPlan.objects.filter(user=user, period=self.period, deleted_at__isnull=True)
            .order_by("id")
            .first()
        )
        pays = SalaryPay.objects.filter(user=user, period=self.period).aggregate(
            total=Sum("price")
        )["total"] or ZERO
        corrections = SalaryCorrection.objects.filter(user=user, period=self.period).aggregate(
            plus=Sum("price", filter=Q(type=SalaryCorrection.Type.ADDITION)),
            minus=Sum("price", filter=Q(type=SalaryCorrection.Type.DEDUCTION)),
        )
        return {
            "plan": plan_row.plan if plan_row else ZERO,
            "pays": pays,
            "corrections_plus": corrections["plus"] or ZERO,
            "corrections_minus": corrections["minus"] or ZERO,
        }

    def _build_card(self, user, m: MemberMetrics) -> dict:
        salary = self._salary_rows(user)
        allocation = ProrationLoader(user).allocate(self.period)
        rule = rules.compute_bonus(
            m.total_sales,
            user.workspace_id,
            user.group_id,
            m.is_intern,
            user.role,
            self.period,
        )

        context = self.group_context(user.group_id) if user.group_id else None
        call_cost = context.call_cost if context else ZERO

        group_plan_bonus = ZERO
        if (
            context is not None
            and context.is_over_plan
            and not user.is_fired
            and user.group_id in rules.group_plan_bonus_group_ids()
        ):
            group_plan_bonus = rules.GROUP_PLAN_BONUS

        top_bonus = ZERO
        if user.workspace_id and user.group_id not in rules.ranking_excluded_group_ids():
            top_bonus = self.ranking(user.workspace_id).bonus_for(user.id)

        fact, fact_amount, fact_percentage = ZERO, 0, ZERO
        if self._has_fact(user):
            fact, fact_amount = self._facts([user.id]).get(user.id, (ZERO, 0))
            fact_percentage = rules.BOOK_ACCOUNT_REP_FACT_PERCENTAGE
        fact_bonus = round2(fact * fact_percentage)

        business_development_bonus = ZERO
        business_development_percentage = ZERO
        if (
            context is not None
            and user.role == rules.ROLE_TEAM_LEAD
            and user.group_id == rules.book_group_id()
        ):
            business_development_percentage = rules.business_development_percentage(
                context.revenue, salary["plan"]
            )
            business_development_bonus = round2(context.revenue * business_development_percentage)

        total_salary = round2(
            salary["corrections_plus"]
            - salary["corrections_minus"]
            + allocation.prev_periods_deal_pays
            + allocation.prev_periods_addon_pays
            + rule.flat_bonus
            + allocation.deal_pays
            + allocation.addon_pays
            + m.shift_bonus
            + group_plan_bonus
            + top_bonus
            + fact_bonus
            + business_development_bonus
        )

        logger.debug(
            "Pay card user=%s period=%s total_salary=%s",
            user.id,
            self.period,
            total_salary,
        )

        return {
            "id": user.id,
            "full_name": user.get_full_name(),
            "role": user.role,
            "workspace_id": user.workspace_id,
            "group_id": user.group_id,
            "fired": user.is_fired,
            "period": self.period,
            "plan": salary["plan"],
            # sales
            "deal_sales": m.deal_sales,
            "deals_amount": m.deals_amount,
            "addon_sales": m.addon_sales,
            "addons_amount": m.addons_amount,
            "total_sales": m.total_sales,
            "average_bill": m.average_bill,
            "temp": calculate_temp(m.total_sales, self.period, self.today),
            # funnel
            "calls": m.calls,
            "makets": m.makets,
            "makets_day_to_day": m.makets_day_to_day,
            "redirect_to_msg": m.redirect_to_msg,
            "drr": m.drr(call_cost),
            "conversion_deals_to_calls": m.conversion_deals_to_calls,
            "conversion_makets_to_calls": m.conversion_makets_to_calls,
            "conversion_makets_to_sales": m.conversion_makets_to_sales,
            "conversion_makets_day_to_day_to_calls": m.conversion_makets_day_to_day_to_calls,
            "deals_day_to_day": m.deals_day_to_day,
            "deals_day_to_day_price": m.deals_day_to_day_price,
            "deals_without_designers": m.deals_without_designers,
            "deals_sales_without_designers": m.deals_sales_without_designers,
            # account-management fact
            "fact": fact,
            "fact_amount": fact_amount,
            "fact_percentage": fact_percentage,
            "fact_bonus": fact_bonus,
            # pay
            "pays": salary["pays"],
            "shift": m.shift,
            "shift_bonus": m.shift_bonus,
            "corrections_plus": salary["corrections_plus"],
            "corrections_minus": salary["corrections_minus"],
            "is_intern": m.is_intern,
            "bonus_percentage": rule.bonus_percentage,
            "addon_percentage": rule.addon_percentage,
            "bonus": rule.flat_bonus,
            "deal_pays": allocation.deal_pays,
            "addon_pays": allocation.addon_pays,
            "prev_periods_deal_pays": allocation.prev_periods_deal_pays,
            "prev_periods_addon_pays": allocation.prev_periods_addon_pays,
            "group_plan_bonus": group_plan_bonus,
            "top_bonus": top_bonus,
            "business_development_percentage": business_development_percentage,
            "business_development_bonus": business_development_bonus,
            "total_salary": total_salary,
            "salary_balance": round2(total_salary - salary["pays"]),
            "allocations": allocation.details(),
        }
