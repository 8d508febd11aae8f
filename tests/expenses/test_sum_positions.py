from datetime import date
from decimal import Decimal

import pytest

from expenses.models import ExpenseCategory, OperationPosition, Project
from expenses.services import (
    WIRE_ACOUSTIC,
    WIRE_CONTROL,
    classify_wire,
    sum_positions,
    sum_wiring_by_kind,
)


@pytest.fixture
def neon_project(db):
    return Project.objects.create(title="Neon", code="neon")


@pytest.fixture
def book_project(db):
    return Project.objects.create(title="Book", code="book")


@pytest.mark.django_db
def test_sub_category_postings_roll_up(neon_project):
    boards = ExpenseCategory.objects.create(name="Panneaux", code="boards")
    led = ExpenseCategory.objects.create(name="Panneaux LED", code="boards-led", parent=boards)
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 3), amount=Decimal("1000"), category=boards, project=neon_project
    )
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 20), amount=Decimal("250"), category=led, project=neon_project
    )

    totals = sum_positions(["2025-03"], ["boards", "boards-led"])

    assert totals[("2025-03", "boards")] == Decimal("1250")
    assert totals[("2025-03", "boards-led")] == Decimal("250")


@pytest.mark.django_db
def test_missing_combinations_are_zero(neon_project):
    rent = ExpenseCategory.objects.create(name="Loyer", code="rent")
    OperationPosition.objects.create(
        operation_date=date(2025, 2, 1), amount=Decimal("5000"), category=rent, project=neon_project
    )

    totals = sum_positions(["2025-02", "2025-03"], ["rent", "unknown-code"])

    assert totals == {
        ("2025-02", "rent"): Decimal("5000"),
        ("2025-03", "rent"): Decimal("0"),
        ("2025-02", "unknown-code"): Decimal("0"),
        ("2025-03", "unknown-code"): Decimal("0"),
    }


@pytest.mark.django_db
def test_project_filter(neon_project, book_project):
    rent = ExpenseCategory.objects.create(name="Loyer", code="rent")
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 1), amount=Decimal("5000"), category=rent, project=neon_project
    )
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 1), amount=Decimal("700"), category=rent, project=book_project
    )

    assert sum_positions(["2025-03"], ["rent"], project_code="book")[("2025-03", "rent")] == Decimal("700")
    assert sum_positions(["2025-03"], ["rent"])[("2025-03", "rent")] == Decimal("5700")


def test_classify_wire():
    assert classify_wire("Кабель акустический 2x0.75") == WIRE_ACOUSTIC
    assert classify_wire("Acoustic cable") == WIRE_ACOUSTIC
    assert classify_wire("Провод ПВС") == WIRE_CONTROL
    assert classify_wire("") == WIRE_CONTROL


@pytest.mark.django_db
def test_wiring_split_by_kind():
    wiring = ExpenseCategory.objects.create(name="Cablage", code="wiring")
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 2),
        amount=Decimal("300"),
        category=wiring,
        description="Кабель акустический",
    )
    OperationPosition.objects.create(
        operation_date=date(2025, 3, 4),
        amount=Decimal("120"),
        category=wiring,
        description="Провод управления",
    )

    totals = sum_wiring_by_kind(["2025-03"])

    assert totals[("2025-03", WIRE_ACOUSTIC)] == Decimal("300")
    assert totals[("2025-03", WIRE_CONTROL)] == Decimal("120")
