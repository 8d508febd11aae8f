"""Read services over categorized postings.

Every P&L line backed by bank-statement data goes through
``sum_positions``: one grouped query for a whole window of periods
instead of one query per line item and period.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from django.db.models import Sum
from django.db.models.functions import TruncMonth

from compensation import rules
from core.periods import period_of, window_bounds
from expenses.models import ExpenseCategory, OperationPosition

logger = logging.getLogger("signcrm")

WIRE_ACOUSTIC = "acoustic"
WIRE_CONTROL = "control"


def _descendant_ids(codes) -> dict[str, set[int]]:
    """Map each requested code to its category id and every descendant id."""
    nodes = list(ExpenseCategory.objects.values_list("id", "parent_id", "code"))
    children = defaultdict(list)
    by_code = {}
    for node_id, parent_id, code in nodes:
        children[parent_id].append(node_id)
        by_code[code] = node_id

    result = {}
    for code in codes:
        root = by_code.get(code)
        if root is None:
            result[code] = set()
            continue
        seen = {root}
        stack = [root]
        while stack:
            for child in children.get(stack.pop(), ()):
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        result[code] = seen
    return result


def sum_positions(periods, category_codes, project_code: str | None = None) -> dict:
    """
    Sum ``OperationPosition.amount`` per (period, category code).

    Postings on sub-categories roll up into the requested code. Missing
    combinations are present with ``Decimal("0")``.
    """
    periods = list(periods)
    codes = list(dict.fromkeys(category_codes))
    totals = {(period, code): Decimal("0") for period in periods for code in codes}
    if not periods or not codes:
        return totals

    ids_by_code = _descendant_ids(codes)
    all_ids = set().union(*ids_by_code.values())
    if not all_ids:
        return totals

    start, end = window_bounds(periods)
    qs = OperationPosition.objects.filter(
        category_id__in=all_ids,
        operation_date__gte=start,
        operation_date__lt=end,
    )
    if project_code:
        qs = qs.filter(project__code=project_code)

    rows = (
        qs.annotate(month=TruncMonth("operation_date"))
        .values("month", "category_id")
        .annotate(total=Sum("amount"))
    )
    for row in rows:
        period = period_of(row["month"])
        for code, ids in ids_by_code.items():
            if row["category_id"] in ids and (period, code) in totals:
                totals[(period, code)] += row["total"] or Decimal("0")
    return totals


def classify_wire(description: str) -> str:
    """Acoustic wire when the description says so, control wire otherwise."""
    text = (description or "").lower()
    if any(keyword in text for keyword in rules.ACOUSTIC_WIRE_KEYWORDS):
        return WIRE_ACOUSTIC
    return WIRE_CONTROL


def sum_wiring_by_kind(periods, project_code: str | None = None) -> dict:
    """Split the wiring category into acoustic and control wire per period."""
    periods = list(periods)
    totals = {
        (period, kind): Decimal("0")
        for period in periods
        for kind in (WIRE_ACOUSTIC, WIRE_CONTROL)
    }
    if not periods:
        return totals

    ids = _descendant_ids([rules.WIRING_CATEGORY])[rules.WIRING_CATEGORY]
    if not ids:
        return totals

    start, end = window_bounds(periods)
    qs = OperationPosition.objects.filter(
        category_id__in=ids,
        operation_date__gte=start,
        operation_date__lt=end,
    )
    if project_code:
        qs = qs.filter(project__code=project_code)

    for operation_date, description, amount in qs.values_list(
        "operation_date", "description", "amount"
    ):
        key = (period_of(operation_date), classify_wire(description))
        if key in totals:
            totals[key] += amount
    return totals
