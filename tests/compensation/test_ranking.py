from datetime import date
from decimal import Decimal

import pytest

from commercial.models import ManagerReport
from compensation.metrics import MemberMetrics
from compensation.ranking import (
    B2B_CATEGORIES,
    VK_CATEGORIES,
    TopPerformerRanker,
    categories_for_workspace,
    rank_business_line,
)

VK_TOP_SALES = VK_CATEGORIES[0]
B2B_TOP_DEALS = B2B_CATEGORIES[0]


def _member(user_id, deal_sales, shift=13, **extra):
    return MemberMetrics(
        user_id=user_id,
        full_name=f"Manager {user_id}",
        deal_sales=Decimal(deal_sales),
        shift=shift,
        **extra,
    )


def test_vk_top_three_earn_decreasing_bonus():
    cohort = [_member(1, 100), _member(2, 300), _member(3, 200), _member(4, 50)]

    result = TopPerformerRanker([VK_TOP_SALES]).rank(cohort)

    entries = result.tops["total_sales"]
    assert [entry["user_id"] for entry in entries] == [2, 3, 1]
    assert [entry["bonus"] for entry in entries] == [Decimal("3000"), Decimal("2000"), Decimal("1000")]
    assert result.bonus_for(4) == 0


def test_ties_keep_cohort_order():
    cohort = [_member(1, 100), _member(2, 100), _member(3, 100), _member(4, 100)]

    result = TopPerformerRanker([VK_TOP_SALES]).rank(cohort)

    assert [entry["user_id"] for entry in result.tops["total_sales"]] == [1, 2, 3]
    assert result.bonus_for(4) == 0


def test_member_below_shift_gate_is_listed_without_bonus():
    cohort = [_member(1, 300, shift=10), _member(2, 200), _member(3, 100)]

    result = TopPerformerRanker([VK_TOP_SALES]).rank(cohort)

    entries = result.tops["total_sales"]
    assert entries[0]["user_id"] == 1
    assert entries[0]["bonus"] == 0
    # The next member keeps the award of their own place.
    assert result.bonus_for(2) == Decimal("2000")
    assert result.bonus_for(3) == Decimal("1000")


def test_shift_gate_is_strict():
    cohort = [_member(1, 300, shift=12)]

    result = TopPerformerRanker([VK_TOP_SALES]).rank(cohort)

    assert result.bonus_for(1) == 0


def test_members_without_sales_are_skipped():
    cohort = [_member(1, 300), _member(2, 0)]

    result = TopPerformerRanker([VK_TOP_SALES]).rank(cohort)

    assert [entry["user_id"] for entry in result.tops["total_sales"]] == [1]
    assert result.bonus_for(2) == 0


def test_b2b_winner_takes_flat_bonus():
    cohort = [_member(1, 300), _member(2, 200)]

    result = TopPerformerRanker([B2B_TOP_DEALS]).rank(cohort)

    assert result.bonus_for(1) == Decimal("2000")
    assert result.bonus_for(2) == 0
    assert len(result.tops["deal_sales"]) == 1


def test_bonuses_add_up_across_categories():
    cohort = [
        _member(1, 300, addon_sales=Decimal("50")),
        _member(2, 200, addon_sales=Decimal("10")),
    ]

    result = TopPerformerRanker(B2B_CATEGORIES[:2]).rank(cohort)

    assert result.bonus_for(1) == Decimal("4000")


def test_unknown_workspace_has_no_categories(settings):
    assert categories_for_workspace(99) == ()
    settings.SIGNCRM_VK_WORKSPACE_ID = 99
    assert categories_for_workspace(99) == VK_CATEGORIES


@pytest.mark.django_db
def test_business_line_ranking_excludes_book_team(
    b2b_manager, b2b_workspace, b2b_group, book_group, make_user, make_deal
):
    book_member = make_user(workspace=b2b_workspace, group=book_group)
    make_deal(b2b_workspace, b2b_group, "100000", date(2025, 2, 3), seller=b2b_manager)
    make_deal(b2b_workspace, book_group, "900000", date(2025, 2, 3), seller=book_member)
    for day in range(1, 14):
        ManagerReport.objects.create(user=b2b_manager, date=date(2025, 2, day), calls=5)

    result = rank_business_line(b2b_workspace.id, "2025-02")

    assert result.tops["deal_sales"][0]["user_id"] == b2b_manager.id
    assert result.tops["deal_sales"][0]["shift"] == 13
    assert book_member.id not in result.top_bonus
    assert result.bonus_for(b2b_manager.id) == Decimal("8000")
