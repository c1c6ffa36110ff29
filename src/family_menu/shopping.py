"""
Shopping list operations.

All functions return new ShoppingList / ShoppingListItem objects and never
mutate their inputs.

Matching recipes to shopping items is a heuristic: names are compared by
case-insensitive substring containment. An item whose name happens to be a
substring of an unrelated ingredient ("oil" in "boiled eggs") will match.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .data.models import Purchase, Recipe, ShoppingList, ShoppingListItem

logger = logging.getLogger(__name__)

# Ingredient statuses
BOUGHT = "bought"
PENDING = "pending"
MISSING = "missing"


def update_item(shopping_list: ShoppingList, updated: ShoppingListItem) -> ShoppingList:
    """Replace the item with the same name and recompute the actual total cost."""
    items = [updated if item.item == updated.item else item for item in shopping_list.items]
    return replace(
        shopping_list,
        items=items,
        actual_total_cost=sum(item.purchased_price for item in items),
    )


def toggle_completion(shopping_list: ShoppingList, item_name: str) -> ShoppingList:
    """
    Mark an item bought (or not bought).

    Completing an item counts its planned price as spent; un-completing it
    resets the purchased price to zero.
    """
    item = _require_item(shopping_list, item_name)
    completing = not item.is_completed
    updated = replace(
        item,
        is_completed=completing,
        purchased_price=item.planned_price if completing else 0,
    )
    return update_item(shopping_list, updated)


def record_partial_purchase(
    shopping_list: ShoppingList,
    item_name: str,
    quantity: str,
    price: float,
    now: Optional[datetime] = None,
) -> ShoppingList:
    """Add a purchase event to a partially bought item."""
    item = _require_item(shopping_list, item_name)
    now = now or datetime.now()
    purchase = Purchase(
        id=str(int(now.timestamp() * 1000)),
        quantity=quantity,
        price=price,
        date=now.isoformat(),
    )
    updated = replace(
        item,
        purchases=item.purchases + [purchase],
        purchased_price=item.purchased_price + price,
    )
    logger.debug(f"Recorded purchase of {quantity} {item_name} for {price}")
    return update_item(shopping_list, updated)


def group_by_category(shopping_list: ShoppingList) -> Dict[str, List[ShoppingListItem]]:
    """Group items by category, preserving first-seen category order."""
    groups: Dict[str, List[ShoppingListItem]] = {}
    for item in shopping_list.items:
        groups.setdefault(item.category, []).append(item)
    return groups


def completion_progress(shopping_list: ShoppingList) -> float:
    """Percentage of completed items (0 for an empty list)."""
    if not shopping_list.items:
        return 0.0
    completed = sum(1 for item in shopping_list.items if item.is_completed)
    return completed / len(shopping_list.items) * 100


def recipes_using_item(item_name: str, recipes: Dict[str, Recipe]) -> List[Recipe]:
    """Recipes with an ingredient that contains the item name."""
    needle = item_name.lower()
    return [
        recipe for recipe in recipes.values()
        if any(needle in ingredient.lower() for ingredient in recipe.ingredients)
    ]


def find_item_for_ingredient(
    ingredient: str, shopping_list: Optional[ShoppingList]
) -> Optional[ShoppingListItem]:
    """First shopping item whose name is contained in the ingredient."""
    if not shopping_list:
        return None
    haystack = ingredient.lower()
    for item in shopping_list.items:
        if item.item.lower() in haystack:
            return item
    return None


def ingredient_status(ingredient: str, shopping_list: Optional[ShoppingList]) -> str:
    item = find_item_for_ingredient(ingredient, shopping_list)
    if item is None:
        return MISSING
    return BOUGHT if item.is_completed else PENDING


def missing_ingredients(recipe: Recipe, shopping_list: Optional[ShoppingList]) -> List[str]:
    """Ingredients not yet bought: absent from the list or not completed."""
    return [
        ingredient for ingredient in recipe.ingredients
        if ingredient_status(ingredient, shopping_list) != BOUGHT
    ]


def _require_item(shopping_list: ShoppingList, item_name: str) -> ShoppingListItem:
    item = shopping_list.find(item_name)
    if item is None:
        raise KeyError(f"No shopping list item named '{item_name}'")
    return item
