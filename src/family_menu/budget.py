"""
Budget aggregation and chart math.
"""

import logging
from dataclasses import replace
from typing import List, Tuple

from .data.models import Budget, BudgetCategory

logger = logging.getLogger(__name__)

DEFAULT_EXPENSE_CATEGORY = "Other"
CHART_COLORS = ("#8B5E3C", "#D4A373", "#E07A5F", "#5E7A6E")

# Chart kinds
PLANNED = "planned"
ACTUAL = "actual"


def add_expense(budget: Budget, amount: float, category: str = DEFAULT_EXPENSE_CATEGORY) -> Budget:
    """
    Record an expense.

    Recomputes remaining (total - actual) and savings (planned - actual).
    Unknown categories are created with a zero planned amount. Non-positive
    amounts are ignored.
    """
    if not amount or amount <= 0:
        return budget

    actual_spent = budget.actual_spent + amount

    categories = [
        replace(c, actual_amount=c.actual_amount + amount) if c.name == category else c
        for c in budget.categories
    ]
    if not any(c.name == category for c in categories):
        categories.append(BudgetCategory(name=category, planned_amount=0, actual_amount=amount))

    logger.info(f"Recorded expense of {amount} in '{category}'")
    return replace(
        budget,
        actual_spent=actual_spent,
        remaining=budget.total - actual_spent,
        savings=budget.planned_spent - actual_spent,
        categories=categories,
    )


def expense_categories(budget: Budget) -> List[str]:
    """Categories offered for a new expense (always includes the default)."""
    names = [c.name for c in budget.categories]
    if DEFAULT_EXPENSE_CATEGORY not in names:
        names.append(DEFAULT_EXPENSE_CATEGORY)
    return names


def category_segments(budget: Budget, kind: str = PLANNED) -> List[Tuple[str, str, float, float]]:
    """
    Pie-chart segments as (category, color, start %, end %).

    Empty when the planned/actual total is zero.
    """
    total = budget.planned_spent if kind == PLANNED else budget.actual_spent
    if total <= 0:
        return []

    segments = []
    current = 0.0
    for index, category in enumerate(budget.categories):
        amount = category.planned_amount if kind == PLANNED else category.actual_amount
        percentage = amount / total * 100
        color = CHART_COLORS[index % len(CHART_COLORS)]
        segments.append((category.name, color, current, current + percentage))
        current += percentage
    return segments

