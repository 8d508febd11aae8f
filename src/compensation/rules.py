"""Commission ladders and every named business constant of the pay scheme.

Pure data plus lookup functions, no database access. Ids that depend on
the deployment (workspaces, teams) are read from settings on each call so
tests can override them.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

RULES_VERSION = "2025-10"

ZERO = Decimal("0")


@dataclass(frozen=True)
class Band:
    """One rung of a ladder; ``limit`` is exclusive, ``None`` means open-ended."""

    limit: Decimal | None
    percentage: Decimal
    flat_bonus: Decimal = ZERO

    def matches(self, total_sales: Decimal) -> bool:
        return self.limit is None or total_sales < self.limit


@dataclass(frozen=True)
class BonusRule:
    bonus_percentage: Decimal
    addon_percentage: Decimal
    flat_bonus: Decimal


ZERO_RULE = BonusRule(ZERO, ZERO, ZERO)


def _band(limit, percentage, flat_bonus=0) -> Band:
    return Band(
        None if limit is None else Decimal(limit),
        Decimal(percentage),
        Decimal(flat_bonus),
    )


# Bands from 1M up are shared by the regular and intern ladders of the B2B line.
_B2B_UPPER_BANDS = (
    _band(1_000_000, "0.045", 10_480),
    _band(1_100_000, "0.05", 15_000),
    _band(1_200_000, "0.05", 17_500),
    _band(1_350_000, "0.05", 20_000),
    _band(1_500_000, "0.05", 23_700),
    _band(1_700_000, "0.05", 27_500),
    _band(2_000_000, "0.05", 32_500),
    _band(None, "0.05", 40_000),
)

B2B_REGULAR_LADDER = (
    _band(400_000, "0.03"),
    _band(560_000, "0.03"),
    _band(680_000, "0.035"),
    _band(800_000, "0.04"),
) + _B2B_UPPER_BANDS

B2B_INTERN_LADDER = (
    _band(800_000, "0.04"),
) + _B2B_UPPER_BANDS

B2B_ADDON_PERCENTAGE = Decimal("0.1")
B2B_INTERN_EXTRA_THRESHOLD = Decimal("600000")
B2B_INTERN_EXTRA_BONUS = Decimal("2000")

VK_REGULAR_LADDER = (
    _band(400_000, "0.03"),
    _band(600_000, "0.05"),
    _band(700_000, "0.06"),
    _band(1_000_000, "0.07"),
    _band(None, "0.07", 10_000),
)

VK_INTERN_LADDER = (
    _band(250_000, "0.03"),
    _band(450_000, "0.05"),
    _band(550_000, "0.06"),
    _band(850_000, "0.07"),
    _band(None, "0.07", 10_000),
)

BOOK_TEAM_PERCENTAGE = Decimal("0.07")
BOOK_ACCOUNT_REP_ZERO_FROM = "2025-10"

BUSINESS_DEVELOPMENT_ABOVE_PLAN = Decimal("0.01")
BUSINESS_DEVELOPMENT_BELOW_PLAN = Decimal("0.005")

# Role codes
ROLE_SALES_DIRECTOR = "DO"
ROLE_TEAM_LEAD = "ROP"
ROLE_SALES_REP = "MOP"
ROLE_ACCOUNT_LEAD = "ROV"
ROLE_ACCOUNT_REP = "MOV"
ROLE_DESIGNER = "DIZ"
ROLE_COMMERCIAL_DIRECTOR = "KD"

SALES_ROLES = (ROLE_SALES_REP, ROLE_TEAM_LEAD, ROLE_ACCOUNT_REP)
GROUP_SUMMARY_ROLES = (ROLE_SALES_DIRECTOR, ROLE_SALES_REP, ROLE_TEAM_LEAD, ROLE_ACCOUNT_REP)
COMMISSIONED_ROLES = (ROLE_SALES_REP, ROLE_TEAM_LEAD, ROLE_ACCOUNT_REP, ROLE_ACCOUNT_LEAD)
DESIGN_ROLES = (ROLE_DESIGNER,)

# Top-performer scheme
TOP_SHIFT_MINIMUM = 12
VK_TOP_SIZE = 3
VK_TOP_STEP = Decimal("1000")
B2B_TOP_SIZE = 1
B2B_TOP_BONUS = Decimal("2000")
DIMMER_ADDON_TYPE = "Диммер"
NO_DESIGNER_MAKET_TYPES = ("TEMPLATE", "PROMOTIONAL", "MAILING", "VISUALIZER")

# Other pay components
GROUP_PLAN_BONUS = Decimal("3000")
BOOK_ACCOUNT_REP_FACT_PERCENTAGE = Decimal("0.1")

# P&L
VAT_RATE = Decimal("0.05")
PROFIT_TAX_RATE = Decimal("0.01")
PAYROLL_TAX_RATE = ZERO
VK_CASHBACK_RATE = Decimal("0.17")
NEON_PROJECT_CODE = "neon"
BOOK_PROJECT_CODE = "book"

# Line item -> expense category code.
COGS_MATERIAL_CATEGORIES = {
    "boards": "boards",
    "screens": "screens",
    "power_adapters": "power-adapters",
    "lighting": "lighting",
    "acrylic": "acrylic",
    "film": "film",
    "packaging": "packaging",
    "spare_parts": "spare-parts",
}
WIRING_CATEGORY = "wiring"
ACOUSTIC_WIRE_KEYWORDS = ("акустич", "acoustic")
INSTALLERS_CATEGORY = "installers"
RENT_CATEGORY = "rent"
MARKETING_CATEGORY = "marketing"
OPEX_CATEGORIES = {
    "accounting": "accounting",
    "hr": "hr",
    "bank_fees": "rko",
    "engineering": "engineering",
}
INTEREST_EXPENSE_CATEGORY = "interest-expense"
DEPOSIT_INTEREST_CATEGORY = "deposit-interest"
VK_ADS_CATEGORY = "vk-ads"
DIVIDENDS_CATEGORY = "dividends"


# ----------------------------------------------------------------------
# Deployment ids
# ----------------------------------------------------------------------

def b2b_workspace_id() -> int:
    return getattr(settings, "SIGNCRM_B2B_WORKSPACE_ID", 2)


def vk_workspace_id() -> int:
    return getattr(settings, "SIGNCRM_VK_WORKSPACE_ID", 3)


def book_group_id() -> int:
    return getattr(settings, "SIGNCRM_BOOK_GROUP_ID", 19)


def neon_group_ids() -> tuple[int, ...]:
    return tuple(getattr(settings, "SIGNCRM_NEON_GROUP_IDS", (2, 3, 4, 18)))


def book_group_ids() -> tuple[int, ...]:
    return (book_group_id(),)


def ranking_excluded_group_ids() -> tuple[int, ...]:
    return (book_group_id(),)


def group_plan_bonus_group_ids() -> tuple[int, ...]:
    return tuple(getattr(settings, "SIGNCRM_GROUP_PLAN_BONUS_GROUP_IDS", (2, 3)))


def commercial_director_salary() -> Decimal:
    return Decimal(str(getattr(settings, "SIGNCRM_COMMERCIAL_DIRECTOR_SALARY", 100000)))


# ----------------------------------------------------------------------
# Lookups
# ----------------------------------------------------------------------

def match_band(ladder, total_sales: Decimal) -> Band | None:
    for band in ladder:
        if band.matches(total_sales):
            return band
    return None


def compute_bonus(
    total_sales: Decimal,
    workspace_id: int | None,
    group_id: int | None,
    is_intern: bool,
    role: str,
    period: str,
) -> BonusRule:
    """Percentages and flat bonus earned for ``total_sales`` in a period."""
    total_sales = Decimal(total_sales)
    bonus_percentage = ZERO
    addon_percentage = ZERO
    flat_bonus = ZERO

    if workspace_id == b2b_workspace_id():
        band = match_band(B2B_INTERN_LADDER if is_intern else B2B_REGULAR_LADDER, total_sales)
        if band is not None:
            bonus_percentage = band.percentage
            flat_bonus += band.flat_bonus
        if is_intern and total_sales > B2B_INTERN_EXTRA_THRESHOLD:
            flat_bonus += B2B_INTERN_EXTRA_BONUS
        addon_percentage = B2B_ADDON_PERCENTAGE
    elif workspace_id == vk_workspace_id():
        band = match_band(VK_INTERN_LADDER if is_intern else VK_REGULAR_LADDER, total_sales)
        if band is not None:
            bonus_percentage = band.percentage
            flat_bonus += band.flat_bonus
        addon_percentage = bonus_percentage

    if group_id == book_group_id():
        bonus_percentage = BOOK_TEAM_PERCENTAGE
        if role == ROLE_ACCOUNT_REP and period >= BOOK_ACCOUNT_REP_ZERO_FROM:
            bonus_percentage = ZERO

    return BonusRule(bonus_percentage, addon_percentage, flat_bonus)


def business_development_percentage(total_sales: Decimal, plan: Decimal) -> Decimal:
    """Flat rate of the business development scheme: above plan or not."""
    if plan and plan > 0 and total_sales >= plan:
        return BUSINESS_DEVELOPMENT_ABOVE_PLAN
    return BUSINESS_DEVELOPMENT_BELOW_PLAN


def is_without_designer(maket_type: str) -> bool:
    return maket_type in NO_DESIGNER_MAKET_TYPES
