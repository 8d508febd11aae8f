from datetime import date
from decimal import Decimal

import pytest

from accounts.models import User
from commercial.models import ManagerPlan, ManagerReport, SalaryCorrection, SalaryPay
from compensation.calculator import CommissionEngine, calculate_temp
from compensation.proration import ProrationLoader
from deals.models import AddOn, Payment


def test_temp_projects_run_rate_in_current_period():
    assert calculate_temp(Decimal("140000"), "2025-02", today=date(2025, 2, 14)) == Decimal("280000")


def test_temp_equals_total_once_period_is_over():
    assert calculate_temp(Decimal("140000"), "2025-02", today=date(2025, 3, 5)) == Decimal("140000")


def test_temp_rejects_malformed_period():
    with pytest.raises(ValueError):
        calculate_temp(Decimal("1"), "2025-2", today=date(2025, 2, 1))


@pytest.mark.django_db
def test_user_without_activity_gets_zero_card(b2b_manager, period_today):
    card = CommissionEngine("2025-02", today=period_today).compute_for_manager(b2b_manager.id)

    assert card["total_sales"] == 0
    assert card["total_salary"] == 0
    assert card["salary_balance"] == 0
    assert card["drr"] == 0
    assert card["allocations"] == {
        "deals": [],
        "addons": [],
        "previous_deals": [],
        "previous_addons": [],
    }


@pytest.mark.django_db
def test_unknown_user_raises(db):
    with pytest.raises(User.DoesNotExist):
        CommissionEngine("2025-02").compute_for_manager(999999)


@pytest.mark.django_db
def test_card_sums_every_pay_component(
    b2b_manager, b2b_workspace, b2b_group, make_deal, period_today
):
    make_deal(
        b2b_workspace,
        b2b_group,
        "500000",
        date(2025, 2, 3),
        seller=b2b_manager,
        paid_on=date(2025, 2, 10),
    )
    for day in (3, 4):
        ManagerReport.objects.create(
            user=b2b_manager, date=date(2025, 2, day), calls=10, shift_cost=Decimal("1000")
        )
    SalaryCorrection.objects.create(
        user=b2b_manager, period="2025-02", price=Decimal("500"), type=SalaryCorrection.Type.ADDITION
    )
    SalaryCorrection.objects.create(
        user=b2b_manager, period="2025-02", price=Decimal("200"), type=SalaryCorrection.Type.DEDUCTION
    )
    SalaryPay.objects.create(
        user=b2b_manager, period="2025-02", price=Decimal("10000"), date=date(2025, 3, 5)
    )

    card = CommissionEngine("2025-02", today=period_today).compute_for_manager(b2b_manager.id)

    assert card["total_sales"] == Decimal("500000")
    assert card["bonus_percentage"] == Decimal("0.03")
    assert card["deal_pays"] == Decimal("15000.00")
    assert card["shift"] == 2
    assert card["shift_bonus"] == Decimal("2000")
    # Two shifts are below the gate, so first place earns nothing.
    assert card["top_bonus"] == 0
    assert card["group_plan_bonus"] == 0
    assert card["total_salary"] == Decimal("17300.00")
    assert card["salary_balance"] == Decimal("7300.00")
    assert card["temp"] == Decimal("500000")
    assert len(card["allocations"]["deals"]) == 1


@pytest.mark.django_db
def test_group_over_plan_earns_team_bonus(
    b2b_manager, b2b_workspace, b2b_group, make_user, make_deal, period_today
):
    director = make_user(role=User.Role.SALES_DIRECTOR, workspace=b2b_workspace)
    ManagerPlan.objects.create(user=director, period="2025-02", plan=Decimal("400000"))
    make_deal(
        b2b_workspace,
        b2b_group,
        "500000",
        date(2025, 2, 3),
        seller=b2b_manager,
        paid_on=date(2025, 2, 10),
    )

    engine = CommissionEngine("2025-02", today=period_today)
    card = engine.compute_for_manager(b2b_manager.id)

    assert engine.group_context(b2b_group.id).is_over_plan is True
    assert card["group_plan_bonus"] == Decimal("3000")
    assert card["total_salary"] == Decimal("18000.00")


@pytest.mark.django_db
def test_payment_on_previous_period_deal_uses_its_sale_period_rate(
    b2b_manager, b2b_workspace, b2b_group, make_deal, period_today
):
    make_deal(
        b2b_workspace,
        b2b_group,
        "700000",
        date(2025, 1, 20),
        seller=b2b_manager,
        paid_on=date(2025, 2, 5),
    )

    card = CommissionEngine("2025-02", today=period_today).compute_for_manager(b2b_manager.id)

    assert card["deal_pays"] == 0
    # January sales of 700 000 sit in the 4 % band.
    assert card["prev_periods_deal_pays"] == Decimal("28000.00")
    assert card["total_salary"] == Decimal("28000.00")
    assert card["allocations"]["previous_deals"][0]["sale_period"] == "2025-01"


@pytest.mark.django_db
def test_addon_paid_later_uses_rate_of_its_own_sale_period(
    b2b_manager, b2b_workspace, b2b_group, make_deal
):
    deal = make_deal(
        b2b_workspace,
        b2b_group,
        "100000",
        date(2025, 1, 10),
        seller=b2b_manager,
        paid_on=date(2025, 1, 15),
    )
    addon = AddOn.objects.create(
        deal=deal,
        user=b2b_manager,
        price=Decimal("20000"),
        sale_date=date(2025, 2, 5),
        workspace=b2b_workspace,
        group=b2b_group,
    )
    Payment.objects.create(deal=deal, price=Decimal("20000"), date=date(2025, 3, 3))

    allocation = ProrationLoader(b2b_manager).allocate("2025-03")

    assert allocation.deals == []
    [item] = allocation.previous_addons
    assert item.target_id == addon.id
    assert item.sale_period == "2025-02"
    assert item.paid == Decimal("20000.00")
    assert item.bonus_percentage == Decimal("0.1")
    assert allocation.prev_periods_addon_pays == Decimal("2000.00")


@pytest.mark.django_db
def test_group_summary_orders_by_sales_and_hides_fired_without_sales(
    b2b_manager, b2b_workspace, b2b_group, make_user, make_deal, period_today
):
    from django.utils import timezone

    colleague = make_user(workspace=b2b_workspace, group=b2b_group)
    make_user(workspace=b2b_workspace, group=b2b_group, deleted_at=timezone.now())
    make_deal(b2b_workspace, b2b_group, "100000", date(2025, 2, 3), seller=b2b_manager)
    make_deal(b2b_workspace, b2b_group, "300000", date(2025, 2, 4), seller=colleague)

    rows = CommissionEngine("2025-02", today=period_today).compute_group_summary(b2b_group.id)

    assert [row["id"] for row in rows] == [colleague.id, b2b_manager.id]
    assert rows[0]["total_sales"] == Decimal("300000")


@pytest.mark.django_db
def test_book_team_lead_earns_business_development_bonus(
    b2b_workspace, book_group, make_user, make_deal, period_today
):
    lead = make_user(role=User.Role.TEAM_LEAD, workspace=b2b_workspace, group=book_group)
    ManagerPlan.objects.create(user=lead, period="2025-02", plan=Decimal("100000"))
    make_deal(
        b2b_workspace,
        book_group,
        "200000",
        date(2025, 2, 3),
        paid_on=date(2025, 2, 6),
    )

    card = CommissionEngine("2025-02", today=period_today).compute_for_manager(lead.id)

    assert card["business_development_percentage"] == Decimal("0.01")
    assert card["business_development_bonus"] == Decimal("2000.00")
    assert card["top_bonus"] == 0
