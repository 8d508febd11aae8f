from datetime import date
from decimal import Decimal

import pytest

from deals.models import AddOn, Delivery
from expenses.models import ExpenseCategory, OperationPosition, Project
from production.models import LogisticsShift, ProductionReport
from reports.pnl import PnlTrendBuilder, PnlWaterfallBuilder, change_percent, line_groups


def test_change_percent_is_zero_without_base():
    assert change_percent(Decimal("100"), None) == 0
    assert change_percent(Decimal("100"), Decimal("0")) == 0
    assert change_percent(Decimal("150"), Decimal("100")) == Decimal("50.00")


def test_unknown_line_is_rejected():
    with pytest.raises(ValueError):
        line_groups("outdoor")


@pytest.mark.parametrize("builder", [PnlWaterfallBuilder, PnlTrendBuilder])
def test_builders_reject_empty_window(builder):
    with pytest.raises(ValueError):
        builder("2025-03", window=-2)


@pytest.fixture
def shipped_march(b2b_manager, b2b_workspace, b2b_group, book_group, make_deal):
    neon = make_deal(b2b_workspace, b2b_group, "100000", date(2025, 2, 10))
    AddOn.objects.create(
        deal=neon,
        user=b2b_manager,
        price=Decimal("20000"),
        sale_date=date(2025, 2, 12),
        workspace=b2b_workspace,
        group=b2b_group,
    )
    Delivery.objects.create(
        deal=neon,
        price=Decimal("1000"),
        date=date(2025, 3, 10),
        status=Delivery.Status.SHIPPED,
        type=Delivery.Type.FREE,
    )
    ProductionReport.objects.create(
        kind=ProductionReport.Kind.ASSEMBLER,
        deal=neon,
        date=date(2025, 2, 20),
        cost=Decimal("5000"),
        penalty_cost=Decimal("500"),
    )
    ProductionReport.objects.create(
        kind=ProductionReport.Kind.REPAIR,
        deal=neon,
        date=date(2025, 3, 15),
        cost=Decimal("800"),
    )
    LogisticsShift.objects.create(shift_date=date(2025, 3, 11), cost=Decimal("1200"))

    book = make_deal(b2b_workspace, book_group, "50000", date(2025, 3, 1))
    Delivery.objects.create(
        deal=book,
        date=date(2025, 3, 12),
        delivered_date=date(2025, 3, 14),
        status=Delivery.Status.DELIVERED,
    )

    neon_project = Project.objects.create(title="Neon", code="neon")
    boards = ExpenseCategory.objects.create(name="Panneaux", code="boards")
    accounting = ExpenseCategory.objects.create(name="Comptabilite", code="accounting")
    vk_ads = ExpenseCategory.objects.create(name="Publicite VK", code="vk-ads")
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 4), amount=Decimal("3000"), category=boards, project=neon_project
    )
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 25), amount=Decimal("2000"), category=accounting
    )
    OperationPosition.objects.create(
        operation_date=date(2025, 2, 25), amount=Decimal("10000"), category=vk_ads
    )
    return neon, book


@pytest.mark.django_db
def test_waterfall_lines(shipped_march, period_today):
    payload = PnlWaterfallBuilder("2025-03", window=1, today=period_today).build()

    assert payload["periods"] == ["2025-03"]
    statement = payload["statements"][0]
    neon = statement["lines"]["neon"]
    book = statement["lines"]["book"]

    assert neon["revenue"] == Decimal("120000.00")
    assert neon["shipped_deals"] == 1
    assert neon["cogs"]["materials"]["boards"] == Decimal("3000.00")
    assert neon["cogs"]["labor"]["ASSEMBLER"] == Decimal("4500.00")
    assert neon["cogs"]["repairs"] == Decimal("800.00")
    assert neon["cogs"]["logistics"] == Decimal("1200.00")
    assert neon["cogs"]["free_delivery"] == Decimal("1000.00")
    assert neon["cogs"]["total"] == Decimal("10500.00")
    assert neon["gross_profit"] == Decimal("109500.00")
    assert neon["vat"] == Decimal("6000.00")
    assert neon["commercial"]["director_salary"] == Decimal("100000.00")
    assert neon["marginal_income"] == Decimal("3500.00")

    assert book["revenue"] == Decimal("50000.00")
    assert book["cogs"]["total"] == 0
    assert book["cogs"]["logistics"] == 0
    assert book["commercial"]["total"] == 0
    assert book["marginal_income"] == Decimal("47500.00")


@pytest.mark.django_db
def test_waterfall_combined_is_additive(shipped_march, period_today):
    payload = PnlWaterfallBuilder("2025-03", window=1, today=period_today).build()
    statement = payload["statements"][0]
    combined = statement["combined"]
    lines = statement["lines"].values()

    assert combined["revenue"] == sum(line["revenue"] for line in lines)
    assert combined["marginal_income"] == sum(line["marginal_income"] for line in lines)
    assert combined["gross_profit"] == combined["revenue"] - combined["cogs"]
    assert combined["opex"]["accounting"] == Decimal("2000.00")
    assert combined["ebitda"] == Decimal("49000.00")
    assert combined["vk_cashback"] == Decimal("1700.00")
    assert combined["profit_before_tax"] == Decimal("50700.00")
    assert combined["taxes_profit"] == Decimal("1615.00")
    assert combined["net_profit"] == (
        combined["profit_before_tax"] - combined["taxes_payroll"] - combined["taxes_profit"]
    )
    assert combined["net_profit"] == Decimal("49085.00")


@pytest.mark.django_db
def test_deal_shipped_twice_counts_once(shipped_march, period_today):
    neon, _ = shipped_march
    Delivery.objects.create(deal=neon, date=date(2025, 3, 20), status=Delivery.Status.SHIPPED)

    payload = PnlWaterfallBuilder("2025-03", window=1, today=period_today).build()
    neon_line = payload["statements"][0]["lines"]["neon"]

    assert neon_line["shipped_deals"] == 1
    assert neon_line["revenue"] == Decimal("120000.00")
    # The latest delivery is the paid one.
    assert neon_line["cogs"]["free_delivery"] == 0


@pytest.mark.django_db
def test_empty_window_yields_zero_statements(db, period_today):
    payload = PnlWaterfallBuilder("2025-03", window=3, today=period_today).build()

    assert payload["periods"] == ["2025-01", "2025-02", "2025-03"]
    for statement in payload["statements"]:
        assert statement["combined"]["revenue"] == 0
        assert statement["combined"]["gross_margin"] == 0


@pytest.mark.django_db
def test_trend_income_series(shipped_march):
    payload = PnlTrendBuilder("2025-03", window=2, line="neon").build()

    shipped = payload["income"]["shipped"]
    assert shipped == [
        {"period": "2025-02", "value": Decimal("0.00"), "change_percent": Decimal("0")},
        {"period": "2025-03", "value": Decimal("120000.00"), "change_percent": Decimal("0")},
    ]
    all_deals = payload["income"]["all_deals_price"]
    assert all_deals[0]["value"] == Decimal("120000.00")

    production = payload["expenses"]["production_salaries"]
    titles = [item["title"] for item in production["data"]]
    assert "Logistique" in titles
    march_total = production["totals"][1]
    assert march_total["value"] == Decimal("2000.00")
