"""Profit and loss statements over a trailing window of periods.

``PnlWaterfallBuilder`` produces the signed waterfall (revenue down to
net profit) for the neon and book business lines plus the combined view.
``PnlTrendBuilder`` produces the income trend and the expense groups as
a share of shipped revenue.

Every figure is a ``Decimal`` rounded to cents and the subtotals are
computed from the rounded lines, so ``gross_profit == revenue - cogs``
and ``net_profit == profit_before_tax - taxes_payroll - taxes_profit``
hold exactly.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db.models import Sum
from django.utils import timezone

from compensation import rules
from core.numbers import ZERO, percent, round2
from core.periods import last_periods, period_bounds, period_of, previous_period, window_bounds

logger = logging.getLogger(__name__)

LINE_NEON = "neon"
LINE_BOOK = "book"
LINE_ALL = "all"
LINES = (LINE_NEON, LINE_BOOK)

LABOR_KINDS = ("ASSEMBLER", "PACKER", "MILLER", "OTHER")
REPAIR_KIND = "REPAIR"


def default_window() -> int:
    return getattr(settings, "PNL_WINDOW", 4)


def checked_window(window: int | None) -> int:
    """The number of periods to build, ``PNL_WINDOW`` when not given."""
    if window is None:
        window = default_window()
    if window < 1:
        raise ValueError(f"P&L window must be at least 1, got {window}")
    return window


def line_groups(line: str) -> tuple[int, ...]:
    if line == LINE_NEON:
        return rules.neon_group_ids()
    if line == LINE_BOOK:
        return rules.book_group_ids()
    if line == LINE_ALL:
        return rules.neon_group_ids() + rules.book_group_ids()
    raise ValueError(f"Ligne d'activite inconnue : {line}")


def line_project(line: str) -> str | None:
    return {LINE_NEON: rules.NEON_PROJECT_CODE, LINE_BOOK: rules.BOOK_PROJECT_CODE}.get(line)


def change_percent(value, previous) -> Decimal:
    """Period-over-period change, 0 for the first period or a zero base."""
    if previous is None:
        return ZERO
    return percent(value - previous, previous)


def _sum(values) -> Decimal:
    return round2(sum(values, ZERO))


# ----------------------------------------------------------------------
# Shared inputs
# ----------------------------------------------------------------------

class ShippedDeals:
    """Latest shipped delivery per deal of a line, with deal values, per period."""

    def __init__(self, periods, groups) -> None:
        from deals.services import deal_values, latest_shipments

        self.by_period = {}
        for period in periods:
            start, end = period_bounds(period)
            shipments = latest_shipments(start, end, group_id__in=groups)
            values = deal_values(shipments)
            self.by_period[period] = (shipments, values)

    def deal_ids(self, period) -> list[int]:
        return list(self.by_period[period][0])

    def revenue(self, period):
        shipments, values = self.by_period[period]
        return _sum(values.get(deal_id, ZERO) for deal_id in shipments)

    def free_delivery(self, period):
        from deals.models import Delivery

        shipments, _ = self.by_period[period]
        return _sum(d.price for d in shipments.values() if d.type == Delivery.Type.FREE)


def labor_by_kind(deal_ids) -> dict[str, Decimal]:
    """Production report cost net of penalties, per kind, for the given deals."""
    from production.models import ProductionReport

    totals = {kind: ZERO for kind in LABOR_KINDS + (REPAIR_KIND,)}
    if not deal_ids:
        return totals
    for report in ProductionReport.objects.filter(deal_id__in=deal_ids):
        totals[report.kind] = totals.get(report.kind, ZERO) + report.net_cost
    return {kind: round2(value) for kind, value in totals.items()}


def logistics_cost(period):
    from production.models import LogisticsShift

    start, end = period_bounds(period)
    totals = LogisticsShift.objects.filter(
        shift_date__gte=start, shift_date__lt=end
    ).aggregate(cost=Sum("cost"), penalty=Sum("penalty_cost"))
    return round2((totals["cost"] or ZERO) - (totals["penalty"] or ZERO))


def ad_spend_by_period(periods, groups) -> dict[str, Decimal]:
    from commercial.models import AdExpense

    totals = {period: ZERO for period in periods}
    start, end = window_bounds(periods)
    rows = AdExpense.objects.filter(
        date__gte=start, date__lt=end, group_id__in=groups
    ).values_list("date", "price")
    for spent_on, price in rows:
        key = period_of(spent_on)
        if key in totals:
            totals[key] += price
    return {period: round2(value) for period, value in totals.items()}


def salary_pays_by_period(periods, **user_filters) -> dict[str, Decimal]:
    from commercial.models import SalaryPay

    totals = {period: ZERO for period in periods}
    rows = (
        SalaryPay.objects.filter(period__in=periods, **user_filters)
        .order_by()
        .values("period")
        .annotate(total=Sum("price"))
    )
    for row in rows:
        totals[row["period"]] = round2(row["total"] or ZERO)
    return totals


# ----------------------------------------------------------------------
# Waterfall
# ----------------------------------------------------------------------

class PnlWaterfallBuilder:
    """Signed P&L waterfall per period for each business line and combined."""

    def __init__(self, anchor_period: str, window: int | None = None, today: date | None = None) -> None:
        self.anchor_period = anchor_period
        self.window = checked_window(window)
        self.today = today or timezone.localdate()
        self.periods = last_periods(anchor_period, self.window)
        self._engines = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self) -> dict:
        from expenses.services import sum_positions

        lines = {line: self._build_line(line) for line in LINES}

        opex = sum_positions(self.periods, rules.OPEX_CATEGORIES.values())
        # The cashback is paid one month after the ad spend it rebates.
        cashback_periods = [previous_period(self.periods[0])] + self.periods
        below = sum_positions(
            cashback_periods,
            [
                rules.INTEREST_EXPENSE_CATEGORY,
                rules.DEPOSIT_INTEREST_CATEGORY,
                rules.VK_ADS_CATEGORY,
                rules.DIVIDENDS_CATEGORY,
            ],
        )

        statements = []
        for period in self.periods:
            by_line = {line: lines[line][period] for line in LINES}
            combined = self._combine(period, by_line, opex, below)
            statements.append({"period": period, "lines": by_line, "combined": combined})

        logger.info(
            "Built P&L waterfall anchor=%s window=%d",
            self.anchor_period,
            self.window,
        )
        return {
            "statement_type": "WATERFALL",
            "anchor_period": self.anchor_period,
            "window": self.window,
            "periods": self.periods,
            "rules_version": rules.RULES_VERSION,
            "statements": statements,
        }

    def commission_engine(self, period: str):
        from compensation.calculator import CommissionEngine

        if period not in self._engines:
            self._engines[period] = CommissionEngine(period, today=self.today)
        return self._engines[period]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build_line(self, line: str) -> dict[str, dict]:
        from accounts.models import User
        from expenses.services import WIRE_ACOUSTIC, WIRE_CONTROL, sum_positions, sum_wiring_by_kind

        groups = line_groups(line)
        project = line_project(line)
        shipped = ShippedDeals(self.periods, groups)

        material_codes = list(rules.COGS_MATERIAL_CATEGORIES.values())
        positions = sum_positions(
            self.periods,
            material_codes + [rules.INSTALLERS_CATEGORY, rules.RENT_CATEGORY, rules.MARKETING_CATEGORY],
            project_code=project,
        )
        wiring = sum_wiring_by_kind(self.periods, project_code=project)
        ad_spend = ad_spend_by_period(self.periods, groups)

        is_production_line = line == LINE_NEON
        design_salaries = (
            salary_pays_by_period(self.periods, user__role=rules.ROLE_DESIGNER)
            if is_production_line
            else {period: ZERO for period in self.periods}
        )
        commissioned = list(
            User.objects.filter(group_id__in=groups, role__in=rules.COMMISSIONED_ROLES).order_by("id")
        )

        result = {}
        for period in self.periods:
            revenue = shipped.revenue(period)
            labor = labor_by_kind(shipped.deal_ids(period))

            materials = {
                name: round2(positions[(period, code)])
                for name, code in rules.COGS_MATERIAL_CATEGORIES.items()
            }
            wires = {
                WIRE_ACOUSTIC: round2(wiring[(period, WIRE_ACOUSTIC)]),
                WIRE_CONTROL: round2(wiring[(period, WIRE_CONTROL)]),
            }
            cogs = {
                "materials": materials,
                "wiring": wires,
                "labor": {kind: labor[kind] for kind in LABOR_KINDS},
                "logistics": logistics_cost(period) if is_production_line else ZERO,
                "installers": round2(positions[(period, rules.INSTALLERS_CATEGORY)]),
                "repairs": labor[REPAIR_KIND],
                "free_delivery": shipped.free_delivery(period),
                "rent": round2(positions[(period, rules.RENT_CATEGORY)]),
            }
            cogs["total"] = _sum(
                list(materials.values())
                + list(wires.values())
                + list(cogs["labor"].values())
                + [cogs["logistics"], cogs["installers"], cogs["repairs"], cogs["free_delivery"], cogs["rent"]]
            )

            commercial = {
                "ad_spend": ad_spend[period],
                "design_salaries": design_salaries[period],
                "director_salary": (
                    round2(rules.commercial_director_salary()) if is_production_line else ZERO
                ),
                "commission": self.commission_engine(period).compute_total_salaries(commissioned),
                "marketing": round2(positions[(period, rules.MARKETING_CATEGORY)]),
            }
            commercial["total"] = _sum(commercial.values())

            gross_profit = revenue - cogs["total"]
            vat = round2(revenue * rules.VAT_RATE)
            marginal_income = gross_profit - vat - commercial["total"]
            result[period] = {
                "revenue": revenue,
                "shipped_deals": len(shipped.deal_ids(period)),
                "cogs": cogs,
                "gross_profit": gross_profit,
                "gross_margin": percent(gross_profit, revenue),
                "vat": vat,
                "commercial": commercial,
                "marginal_income": marginal_income,
                "marginal_margin": percent(marginal_income, revenue),
            }
        return result

    def _combine(self, period: str, by_line: dict, opex: dict, below: dict) -> dict:
        revenue = _sum(section["revenue"] for section in by_line.values())
        cogs = _sum(section["cogs"]["total"] for section in by_line.values())
        vat = _sum(section["vat"] for section in by_line.values())
        commercial = _sum(section["commercial"]["total"] for section in by_line.values())
        marginal_income = _sum(section["marginal_income"] for section in by_line.values())

        opex_lines = {
            name: round2(opex[(period, code)]) for name, code in rules.OPEX_CATEGORIES.items()
        }
        opex_total = _sum(opex_lines.values())
        ebitda = marginal_income - opex_total

        interest_expense = round2(below[(period, rules.INTEREST_EXPENSE_CATEGORY)])
        deposit_interest = round2(below[(period, rules.DEPOSIT_INTEREST_CATEGORY)])
        vk_cashback = round2(
            below[(previous_period(period), rules.VK_ADS_CATEGORY)] * rules.VK_CASHBACK_RATE
        )
        profit_before_tax = ebitda - interest_expense + deposit_interest + vk_cashback

        taxable_base = revenue - vat
        taxes_profit = round2(taxable_base * rules.PROFIT_TAX_RATE)
        taxes_payroll = round2(taxable_base * rules.PAYROLL_TAX_RATE)
        taxes_total = taxes_profit + taxes_payroll

        return {
            "revenue": revenue,
            "cogs": cogs,
            "gross_profit": revenue - cogs,
            "gross_margin": percent(revenue - cogs, revenue),
            "vat": vat,
            "commercial": commercial,
            "marginal_income": marginal_income,
            "marginal_margin": percent(marginal_income, revenue),
            "opex": {**opex_lines, "total": opex_total},
            "ebitda": ebitda,
            "ebitda_margin": percent(ebitda, revenue),
            "interest_expense": interest_expense,
            "deposit_interest": deposit_interest,
            "vk_cashback": vk_cashback,
            "profit_before_tax": profit_before_tax,
            "taxes_profit": taxes_profit,
            "taxes_payroll": taxes_payroll,
            "taxes_total": taxes_total,
            "tax_load": percent(taxes_total, taxable_base),
            "net_profit": profit_before_tax - taxes_payroll - taxes_profit,
            "dividends": round2(below[(period, rules.DIVIDENDS_CATEGORY)]),
        }


# ----------------------------------------------------------------------
# Trend
# ----------------------------------------------------------------------

class PnlTrendBuilder:
    """Income trend and expense groups of one line (or all lines) over a window."""

    def __init__(self, anchor_period: str, window: int | None = None, line: str = LINE_ALL) -> None:
        self.anchor_period = anchor_period
        self.window = checked_window(window)
        self.line = line
        self.groups = line_groups(line)
        self.periods = last_periods(anchor_period, self.window)

    def build(self) -> dict:
        income = self._income()
        shipped = {row["period"]: row["value"] for row in income["shipped"]}

        ad_sources = self._ad_spend_by_source()
        production = self._production_salaries() if self.line != LINE_BOOK else {}
        commercial = self._commercial_salaries()

        groups = {
            "ad_expenses": self._group(ad_sources, shipped),
            "production_salaries": self._group(production, shipped),
            "commercial_salaries": self._group(commercial, shipped),
        }
        totals = []
        for period in self.periods:
            value = _sum(
                entry["value"]
                for group in groups.values()
                for entry in group["totals"]
                if entry["period"] == period
            )
            totals.append(
                {"period": period, "value": value, "share": percent(value, shipped[period])}
            )

        return {
            "statement_type": "TREND",
            "anchor_period": self.anchor_period,
            "window": self.window,
            "line": self.line,
            "periods": self.periods,
            "income": income,
            "expenses": {**groups, "totals": totals},
        }

    # ------------------------------------------------------------------

    def _income(self) -> dict:
        from deals.models import AddOn, Deal, Payment

        countable = Deal.objects.countable().filter(group_id__in=self.groups)
        start, end = window_bounds(self.periods)
        all_deals = {period: ZERO for period in self.periods}
        revenue = {period: ZERO for period in self.periods}

        for sale_date, price in countable.filter(
            sale_date__gte=start, sale_date__lt=end
        ).values_list("sale_date", "price"):
            all_deals[period_of(sale_date)] += price
        for sale_date, price in AddOn.objects.filter(
            sale_date__gte=start,
            sale_date__lt=end,
            group_id__in=self.groups,
            deal_id__in=Deal.objects.countable().values("id"),
        ).values_list("sale_date", "price"):
            all_deals[period_of(sale_date)] += price
        for paid_on, price in Payment.objects.filter(
            date__gte=start, date__lt=end, deal_id__in=countable.values("id")
        ).values_list("date", "price"):
            revenue[period_of(paid_on)] += price

        shipped_deals = ShippedDeals(self.periods, self.groups)
        shipped = {period: shipped_deals.revenue(period) for period in self.periods}

        return {
            "all_deals_price": self._series(all_deals),
            "revenue": self._series(revenue),
            "shipped": self._series(shipped),
        }

    def _series(self, values: dict) -> list[dict]:
        series = []
        previous = None
        for period in self.periods:
            value = round2(values[period])
            series.append(
                {"period": period, "value": value, "change_percent": change_percent(value, previous)}
            )
            previous = value
        return series

    def _group(self, items: dict, shipped: dict) -> dict:
        data = []
        for title, values in items.items():
            data.append(
                {
                    "title": title,
                    "data": [
                        {
                            "period": period,
                            "value": values[period],
                            "share": percent(values[period], shipped[period]),
                        }
                        for period in self.periods
                    ],
                }
            )
        totals = []
        for period in self.periods:
            value = _sum(values[period] for values in items.values())
            totals.append({"period": period, "value": value, "share": percent(value, shipped[period])})
        return {"data": data, "totals": totals}

    def _ad_spend_by_source(self) -> dict[str, dict]:
        from commercial.models import AdExpense

        start, end = window_bounds(self.periods)
        items = defaultdict(lambda: {period: ZERO for period in self.periods})
        rows = (
            AdExpense.objects.filter(date__gte=start, date__lt=end, group_id__in=self.groups)
            .order_by("ad_source__title", "date")
            .values_list("ad_source__title", "date", "price")
        )
        for title, spent_on, price in rows:
            items[title][period_of(spent_on)] += price
        return dict(items)

    def _production_salaries(self) -> dict[str, dict]:
        from production.models import LogisticsShift, ProductionReport

        start, end = window_bounds(self.periods)
        items = {
            label: {period: ZERO for period in self.periods}
            for label in ProductionReport.Kind.labels + ["Logistique"]
        }
        for report in ProductionReport.objects.filter(date__gte=start, date__lt=end):
            items[report.get_kind_display()][period_of(report.date)] += report.net_cost
        for shift_date, cost, penalty in LogisticsShift.objects.filter(
            shift_date__gte=start, shift_date__lt=end
        ).values_list("shift_date", "cost", "penalty_cost"):
            items["Logistique"][period_of(shift_date)] += cost - penalty
        return items

    def _commercial_salaries(self) -> dict[str, dict]:
        from accounts.models import User
        from compensation.calculator import CommissionEngine

        items = {}
        commissioned = list(
            User.objects.filter(group_id__in=self.groups, role__in=rules.COMMISSIONED_ROLES).order_by("id")
        )
        by_role = defaultdict(list)
        for user in commissioned:
            by_role[user.get_role_display()].append(user)

        engines = {period: CommissionEngine(period) for period in self.periods}
        for label, users in by_role.items():
            items[label] = {
                period: engines[period].compute_total_salaries(users) for period in self.periods
            }
        if self.line != LINE_BOOK:
            designers = salary_pays_by_period(self.periods, user__role=rules.ROLE_DESIGNER)
            items[User.Role(rules.ROLE_DESIGNER).label] = designers
        return items
