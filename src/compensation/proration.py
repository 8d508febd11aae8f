"""Attribute a period's payments to the deals and add-ons they settle.

A payment landing in period P may belong to a deal sold months earlier.
The allocator splits what was received on each deal between the deal
balance and the add-on balance, spreads each part over the salesperson's
shares, and prices the result with the commission rates of the period in
which the deal or add-on was *sold*.

``allocate_payments`` is pure and works on the plain snapshots below;
``ProrationLoader`` builds those snapshots from the ORM.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal

from compensation import rules
from core.numbers import ZERO, round2, safe_ratio
from core.periods import period_bounds, period_of

logger = logging.getLogger(__name__)

TARGET_DEAL = "deal"
TARGET_ADDON = "addon"


@dataclass(frozen=True)
class ParticipantShare:
    user_id: int
    price: Decimal


@dataclass(frozen=True)
class AddOnShare:
    id: int
    user_id: int
    price: Decimal
    sale_date: date
    type: str = ""


@dataclass(frozen=True)
class PaymentLine:
    date: date
    price: Decimal


@dataclass(frozen=True)
class PaidDeal:
    """A deal with everything needed to split its payments."""

    id: int
    title: str
    price: Decimal
    sale_date: date
    participants: tuple[ParticipantShare, ...] = ()
    addons: tuple[AddOnShare, ...] = ()
    payments: tuple[PaymentLine, ...] = ()


@dataclass(frozen=True)
class PeriodPayment:
    """A payment recorded in the computed period."""

    id: int
    date: date
    price: Decimal
    deal: PaidDeal


@dataclass(frozen=True)
class PeriodRates:
    bonus_percentage: Decimal
    addon_percentage: Decimal


@dataclass
class AllocationItem:
    target_type: str
    target_id: int
    deal_id: int
    title: str
    deal_title: str
    sale_date: date
    sale_period: str
    paying_period: str
    price: Decimal
    share: Decimal
    paid: Decimal
    bonus_percentage: Decimal
    to_salary: Decimal

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class Allocation:
    period: str
    deals: list[AllocationItem] = field(default_factory=list)
    addons: list[AllocationItem] = field(default_factory=list)
    previous_deals: list[AllocationItem] = field(default_factory=list)
    previous_addons: list[AllocationItem] = field(default_factory=list)

    @staticmethod
    def _total(items) -> Decimal:
        return round2(sum((item.to_salary for item in items), ZERO))

    @property
    def deal_pays(self) -> Decimal:
        return self._total(self.deals)

    @property
    def addon_pays(self) -> Decimal:
        return self._total(self.addons)

    @property
    def prev_periods_deal_pays(self) -> Decimal:
        return self._total(self.previous_deals)

    @property
    def prev_periods_addon_pays(self) -> Decimal:
        return self._total(self.previous_addons)

    @property
    def items(self) -> list[AllocationItem]:
        return self.deals + self.addons + self.previous_deals + self.previous_addons

    def details(self) -> dict:
        """Detail lists as shown on the pay slip: ordered by deal, paying items only."""

        def visible(items):
            ordered = sorted(items, key=lambda item: item.deal_id)
            return [item.as_dict() for item in ordered if item.to_salary > 0]

        return {
            "deals": visible(self.deals),
            "addons": visible(self.addons),
            "previous_deals": visible(self.previous_deals),
            "previous_addons": visible(self.previous_addons),
        }


def split_deal_payments(deal: PaidDeal, period: str) -> tuple[Decimal, Decimal]:
    """Return ``(deal_part, addon_part)`` of what was paid on ``deal`` during ``period``."""
    start, end = period_bounds(period)
    prior = sum((p.price for p in deal.payments if p.date < start), ZERO)
    current = sum((p.price for p in deal.payments if start <= p.date < end), ZERO)

    if deal.price < prior + current:
        addon_part = prior + current - deal.price
        if deal.price < prior:
            addon_part = current
        deal_part = max(deal.price - prior, ZERO)
    else:
        deal_part = current
        addon_part = ZERO
    return deal_part, addon_part


def allocate_payments(
    payments,
    user_id: int,
    period: str,
    rates_by_period: dict[str, PeriodRates],
) -> Allocation:
    """
    Split the period's payments into commission items for ``user_id``.

    Each deal is processed once, on its earliest payment of the period;
    later payments on the same deal are already part of that deal's
    current-period sum.
    """
    allocation = Allocation(period=period)
    seen: set[int] = set()

    for payment in sorted(payments, key=lambda p: (p.date, p.id)):
        deal = payment.deal
        if deal.id in seen:
            continue
        seen.add(deal.id)

        deal_part, addon_part = split_deal_payments(deal, period)
        deal_sale_period = period_of(deal.sale_date)

        participant_total = sum((p.price for p in deal.participants), ZERO)
        if participant_total > deal.price:
            logger.warning(
                "Deal %s participant shares (%s) exceed its price (%s)",
                deal.id,
                participant_total,
                deal.price,
            )

        for participant in deal.participants:
            if participant.user_id != user_id:
                continue
            share = safe_ratio(participant.price, deal.price)
            paid = round2(deal_part * share)
            rates = rates_by_period.get(deal_sale_period)
            percentage = rates.bonus_percentage if rates else ZERO
            item = AllocationItem(
                target_type=TARGET_DEAL,
                target_id=deal.id,
                deal_id=deal.id,
                title=deal.title,
                deal_title=deal.title,
                sale_date=deal.sale_date,
                sale_period=deal_sale_period,
                paying_period=period,
                price=participant.price,
                share=share,
                paid=paid,
                bonus_percentage=percentage,
                to_salary=paid * percentage,
            )
            if deal_sale_period == period:
                allocation.deals.append(item)
            else:
                allocation.previous_deals.append(item)

        own_addons = [addon for addon in deal.addons if addon.user_id == user_id]
        if not own_addons:
            continue
        addons_total = sum((addon.price for addon in deal.addons), ZERO)
        for addon in own_addons:
            share = safe_ratio(addon.price, addons_total)
            paid = round2(addon_part * share)
            sale_period = period_of(addon.sale_date)
            rates = rates_by_period.get(sale_period)
            percentage = rates.addon_percentage if rates else ZERO
            item = AllocationItem(
                target_type=TARGET_ADDON,
                target_id=addon.id,
                deal_id=deal.id,
                title=addon.type,
                deal_title=deal.title,
                sale_date=addon.sale_date,
                sale_period=sale_period,
                paying_period=period,
                price=addon.price,
                share=share,
                paid=paid,
                bonus_percentage=percentage,
                to_salary=paid * percentage,
            )
            if sale_period == period:
                allocation.addons.append(item)
            else:
                allocation.previous_addons.append(item)

    return allocation


def bonus_periods(period: str, payments) -> list[str]:
    """The computed period plus the sale period of every paid deal and add-on."""
    periods = {period}
    for payment in payments:
        periods.add(period_of(payment.deal.sale_date))
        periods.update(period_of(addon.sale_date) for addon in payment.deal.addons)
    return sorted(periods)


# ----------------------------------------------------------------------
# ORM side
# ----------------------------------------------------------------------

class ProrationLoader:
    """Fetch the rows ``allocate_payments`` needs for one user and period."""

    def __init__(self, user) -> None:
        self.user = user

    def load_payments(self, period: str) -> list[PeriodPayment]:
        from django.db.models import Q, Prefetch

        from deals.models import Deal, Payment

        start, end = period_bounds(period)
        deal_ids = (
            Deal.objects.countable()
            .filter(Q(dealers__user=self.user) | Q(addons__user=self.user))
            .values("id")
        )
        qs = (
            Payment.objects.filter(date__gte=start, date__lt=end, deal_id__in=deal_ids)
            .select_related("deal")
            .prefetch_related(
                "deal__dealers",
                "deal__addons",
                Prefetch("deal__payments", queryset=Payment.objects.order_by("date", "id")),
            )
            .order_by("date", "id")
        )

        snapshots: dict[int, PaidDeal] = {}
        result = []
        for payment in qs:
            deal = payment.deal
            if deal.id not in snapshots:
                snapshots[deal.id] = PaidDeal(
                    id=deal.id,
                    title=deal.title,
                    price=deal.price,
                    sale_date=deal.sale_date,
                    participants=tuple(
                        ParticipantShare(user_id=d.user_id, price=d.price)
                        for d in deal.dealers.all()
                    ),
                    addons=tuple(
                        AddOnShare(
                            id=a.id,
                            user_id=a.user_id,
                            price=a.price,
                            sale_date=a.sale_date,
                            type=a.type,
                        )
                        for a in deal.addons.all()
                    ),
                    payments=tuple(
                        PaymentLine(date=p.date, price=p.price) for p in deal.payments.all()
                    ),
                )
            result.append(
                PeriodPayment(
                    id=payment.id,
                    date=payment.date,
                    price=payment.price,
                    deal=snapshots[deal.id],
                )
            )
        return result

    def sales_by_period(self, periods) -> dict[str, Decimal]:
        """Deal shares plus add-ons the user sold, per sale period."""
        from deals.models import AddOn, Deal, DealParticipant

        totals = defaultdict(lambda: ZERO)
        periods = list(periods)
        if not periods:
            return totals
        start = period_bounds(min(periods))[0]
        end = period_bounds(max(periods))[1]
        wanted = set(periods)
        countable = Deal.objects.countable().values("id")

        shares = DealParticipant.objects.filter(
            user=self.user,
            deal_id__in=countable,
            deal__sale_date__gte=start,
            deal__sale_date__lt=end,
        ).values_list("deal__sale_date", "price")
        for sale_date, price in shares:
            key = period_of(sale_date)
            if key in wanted:
                totals[key] += price

        addons = AddOn.objects.filter(
            user=self.user,
            deal_id__in=countable,
            sale_date__gte=start,
            sale_date__lt=end,
        ).values_list("sale_date", "price")
        for sale_date, price in addons:
            key = period_of(sale_date)
            if key in wanted:
                totals[key] += price
        return totals

    def is_intern(self, period: str) -> bool:
        from commercial.models import ManagerReport

        return ManagerReport.objects.filter(
            user=self.user,
            period=period,
            is_intern=True,
        ).exists()

    def rates_by_period(self, period: str, payments) -> dict[str, PeriodRates]:
        periods = bonus_periods(period, payments)
        sales = self.sales_by_period(periods)
        is_intern = self.is_intern(period)
        rates = {}
        for key in periods:
            rule = rules.compute_bonus(
                sales[key],
                self.user.workspace_id,
                self.user.group_id,
                is_intern,
                self.user.role,
                key,
            )
            rates[key] = PeriodRates(rule.bonus_percentage, rule.addon_percentage)
        return rates

    def allocate(self, period: str) -> Allocation:
        payments = self.load_payments(period)
        rates = self.rates_by_period(period, payments)
        return allocate_payments(payments, self.user.id, period, rates)
