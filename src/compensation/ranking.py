"""Top-performer rankings and the bonuses they grant."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from compensation import rules
from compensation.metrics import MemberMetrics, collect_metrics
from core.numbers import ZERO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingCategory:
    """One ranked metric.

    The member at index ``i`` of the top list earns ``flat_bonus`` when set,
    else ``(size - i) * step``, provided their shift count exceeds the gate.
    """

    key: str
    label: str
    metric: str
    size: int
    step: Decimal = ZERO
    flat_bonus: Decimal | None = None

    def award(self, index: int) -> Decimal:
        if self.flat_bonus is not None:
            return self.flat_bonus
        return (self.size - index) * self.step


VK_CATEGORIES = (
    RankingCategory("total_sales", "Top ventes", "total_sales", rules.VK_TOP_SIZE, rules.VK_TOP_STEP),
    RankingCategory("addon_sales", "Top options", "addon_sales", rules.VK_TOP_SIZE, rules.VK_TOP_STEP),
    RankingCategory("dimmer_sales", "Top variateurs", "dimmer_sales", rules.VK_TOP_SIZE, rules.VK_TOP_STEP),
    RankingCategory(
        "without_designers",
        "Top ventes sans designer",
        "deals_sales_without_designers",
        rules.VK_TOP_SIZE,
        rules.VK_TOP_STEP,
    ),
    RankingCategory(
        "day_to_day",
        "Top conversion du jour",
        "conversion_day_to_day",
        rules.VK_TOP_SIZE,
        rules.VK_TOP_STEP,
    ),
)

B2B_CATEGORIES = (
    RankingCategory("deal_sales", "Top montant des commandes", "deal_sales", rules.B2B_TOP_SIZE,
                    flat_bonus=rules.B2B_TOP_BONUS),
    RankingCategory("addon_sales", "Top montant des options", "addon_sales", rules.B2B_TOP_SIZE,
                    flat_bonus=rules.B2B_TOP_BONUS),
    RankingCategory("average_bill", "Top panier moyen", "average_bill", rules.B2B_TOP_SIZE,
                    flat_bonus=rules.B2B_TOP_BONUS),
    RankingCategory("conversion", "Top conversion", "conversion_deals_to_calls", rules.B2B_TOP_SIZE,
                    flat_bonus=rules.B2B_TOP_BONUS),
)


def categories_for_workspace(workspace_id) -> tuple[RankingCategory, ...]:
    if workspace_id == rules.vk_workspace_id():
        return VK_CATEGORIES
    if workspace_id == rules.b2b_workspace_id():
        return B2B_CATEGORIES
    return ()


@dataclass
class RankingResult:
    tops: dict[str, list[dict]] = field(default_factory=dict)
    top_bonus: dict[int, Decimal] = field(default_factory=dict)

    def bonus_for(self, user_id: int) -> Decimal:
        return self.top_bonus.get(user_id, ZERO)

    def as_dict(self) -> dict:
        return {
            "tops": self.tops,
            "top_bonus": {str(user_id): bonus for user_id, bonus in self.top_bonus.items()},
        }


class TopPerformerRanker:
    """Rank a cohort on several independent metrics."""

    def __init__(self, categories, shift_minimum: int = rules.TOP_SHIFT_MINIMUM) -> None:
        self.categories = tuple(categories)
        self.shift_minimum = shift_minimum

    def rank(self, cohort: list[MemberMetrics]) -> RankingResult:
        """
        ``cohort`` order is the tie-breaker: ``sorted`` is stable, so equal
        values keep their cohort position and exactly ``size`` members are
        considered per category.
        """
        result = RankingResult(top_bonus={member.user_id: ZERO for member in cohort})

        for category in self.categories:
            ordered = sorted(
                cohort,
                key=lambda member: getattr(member, category.metric),
                reverse=True,
            )
            entries = []
            for index, member in enumerate(ordered[: category.size]):
                if member.total_sales == 0:
                    continue
                bonus = ZERO
                if member.shift > self.shift_minimum:
                    bonus = category.award(index)
                    result.top_bonus[member.user_id] += bonus
                entries.append(
                    {
                        "place": index + 1,
                        "user_id": member.user_id,
                        "full_name": member.full_name,
                        "value": getattr(member, category.metric),
                        "shift": member.shift,
                        "bonus": bonus,
                    }
                )
            result.tops[category.key] = entries
        return result


def cohort_users(workspace_id):
    """Sales staff of a business line, minus teams on their own incentive scheme."""
    from accounts.models import User

    return (
        User.objects.filter(workspace_id=workspace_id, role__in=rules.SALES_ROLES)
        .exclude(group_id__in=rules.ranking_excluded_group_ids())
        .order_by("id")
    )


def build_cohort_metrics(workspace_id, period: str) -> list[MemberMetrics]:
    return list(collect_metrics(cohort_users(workspace_id), period).values())


def rank_business_line(workspace_id, period: str) -> RankingResult:
    categories = categories_for_workspace(workspace_id)
    if not categories:
        return RankingResult()
    cohort = build_cohort_metrics(workspace_id, period)
    result = TopPerformerRanker(categories).rank(cohort)
    logger.debug(
        "Ranked workspace=%s period=%s members=%d",
        workspace_id,
        period,
        len(cohort),
    )
    return result
