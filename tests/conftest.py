from datetime import date
from decimal import Decimal

import pytest

from accounts.models import User
from deals.models import Deal, DealParticipant, Payment
from workspaces.models import Group, Workspace


@pytest.fixture
def b2b_workspace(db):
    return Workspace.objects.create(pk=2, title="B2B")


@pytest.fixture
def vk_workspace(db):
    return Workspace.objects.create(pk=3, title="VK")


@pytest.fixture
def b2b_group(b2b_workspace):
    return Group.objects.create(pk=2, title="Equipe B2B", workspace=b2b_workspace)


@pytest.fixture
def vk_group(vk_workspace):
    return Group.objects.create(pk=3, title="Equipe VK", workspace=vk_workspace)


@pytest.fixture
def book_group(b2b_workspace):
    return Group.objects.create(pk=19, title="Book", workspace=b2b_workspace)


@pytest.fixture
def make_user(db):
    counter = {"value": 0}

    def factory(role=User.Role.SALES_REP, workspace=None, group=None, **extra):
        counter["value"] += 1
        extra.setdefault("first_name", f"User{counter['value']}")
        return User.objects.create_user(
            email=f"user{counter['value']}@test.com",
            password="testpass123",
            role=role,
            workspace=workspace,
            group=group,
            **extra,
        )

    return factory


@pytest.fixture
def admin_user(make_user):
    return make_user(role=User.Role.ADMIN, first_name="Admin", last_name="User")


@pytest.fixture
def b2b_manager(make_user, b2b_workspace, b2b_group):
    return make_user(
        role=User.Role.SALES_REP,
        workspace=b2b_workspace,
        group=b2b_group,
        first_name="Anna",
        last_name="Petrova",
    )


@pytest.fixture
def make_deal(db):
    """Create a deal, optionally with one participant holding the whole price and one payment."""

    def factory(
        workspace,
        group,
        price,
        sale_date,
        seller=None,
        paid_on=None,
        paid=None,
        **extra,
    ):
        deal = Deal.objects.create(
            title=extra.pop("title", f"Enseigne {price}"),
            workspace=workspace,
            group=group,
            price=Decimal(price),
            sale_date=sale_date,
            **extra,
        )
        if seller is not None:
            DealParticipant.objects.create(deal=deal, user=seller, price=Decimal(price))
        if paid_on is not None:
            Payment.objects.create(
                deal=deal,
                price=Decimal(paid if paid is not None else price),
                date=paid_on,
            )
        return deal

    return factory


@pytest.fixture
def period_today():
    """A date after the end of the periods used in tests, so run rates equal totals."""
    return date(2025, 6, 1)
