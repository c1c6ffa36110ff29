"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests.
"""

import json
import tempfile
import shutil
from typing import Dict, List

import pytest

from family_menu.config import Settings
from family_menu.controller import AppController
from family_menu.data.database import SnapshotDatabase
from family_menu.data.models import (
    AppSettings,
    Budget,
    BudgetCategory,
    FamilyMember,
    MenuData,
    MenuDay,
    Recipe,
    RecipeStep,
    ShoppingList,
    ShoppingListItem,
)
from family_menu.gateway import AIGateway
from family_menu.llm_provider import LLMProvider


# ============================================================================
# Scripted AI backend
# ============================================================================

# Prompt prefix -> request kind
PROMPT_KINDS = (
    ("Reply with exactly one word", "verify"),
    ("Analyze the household settings", "analyze"),
    ("Create a menu", "menu"),
    ("Write a detailed recipe", "recipe"),
    ("Describe an image", "image"),
    ("Build a shopping list", "shopping_list"),
    ("Build a household budget", "budget"),
    ("Calculate the total daily calorie", "calories"),
    ("The following JSON response was invalid", "repair"),
)

DEFAULT_MENU = {
    "menu": [
        {"day": "Monday", "breakfast": "Oatmeal", "lunch": "Chicken soup", "dinner": "Beef stew", "calories": 2100},
        {"day": "Tuesday", "breakfast": "Oatmeal", "lunch": "Chicken soup (leftovers)", "dinner": "Fish tacos", "calories": 2000},
    ]
}

DEFAULT_SHOPPING_LIST = {
    "shoppingList": [
        {"category": "Meat", "item": "Chicken", "plannedQuantity": "1 kg", "plannedPrice": 300,
         "isPartial": False, "purchasedPrice": 99, "isCompleted": True},
        {"category": "Pantry", "item": "Salt", "plannedQuantity": "200 g", "plannedPrice": 50,
         "isPartial": True, "minQty": "100 g"},
    ],
    "plannedTotalCost": 350,
}

DEFAULT_BUDGET = {
    "budget": {
        "total": 10000,
        "plannedSpent": 350,
        "actualSpent": 0,
        "remaining": 9650,
        "savings": 0,
        "categories": [
            {"name": "Groceries", "plannedAmount": 300, "actualAmount": 0},
            {"name": "Household", "plannedAmount": 50, "actualAmount": 0},
        ],
    }
}


def recipe_reply(dish: str) -> str:
    return json.dumps({
        "recipe": {
            "name": dish,
            "ingredients": ["chicken breast", "salt", "olive oil"],
            "steps": [
                {"title": "Prep", "description": "Chop everything"},
                {"title": "Cook", "description": "Simmer gently", "time": 600},
            ],
            "calories": 450,
        }
    })


def classify_prompt(prompt: str) -> str:
    for prefix, kind in PROMPT_KINDS:
        if prompt.startswith(prefix):
            return kind
    return "unknown"


class FakeAIBackend(LLMProvider):
    """
    Scripted stand-in for the model.

    Every prompt is classified by its opening phrase. Queued replies (or
    exceptions) for a kind are consumed first; otherwise a canned reply
    is returned.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.queued: Dict[str, list] = {}

    def reply_with(self, kind: str, *replies):
        self.queued.setdefault(kind, []).extend(replies)

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)

    def prompts(self, kind: str) -> List[str]:
        return [p for k, p in self.calls if k == kind]

    def kinds(self) -> List[str]:
        return [k for k, _ in self.calls]

    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        kind = classify_prompt(prompt)
        self.calls.append((kind, prompt))

        if self.queued.get(kind):
            reply = self.queued[kind].pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply

        if kind == "verify":
            return "OK"
        if kind == "analyze":
            return json.dumps({"analysis": "Simple seasonal home cooking."})
        if kind == "menu":
            return json.dumps(DEFAULT_MENU)
        if kind == "recipe":
            dish = prompt.split('"')[1]
            return recipe_reply(dish)
        if kind == "image":
            return "Golden dish on a wooden board"
        if kind == "shopping_list":
            return json.dumps(DEFAULT_SHOPPING_LIST)
        if kind == "budget":
            return json.dumps(DEFAULT_BUDGET)
        if kind == "calories":
            return "6500 kcal"
        raise AssertionError(f"Unexpected prompt: {prompt[:60]}")

    @property
    def is_null(self) -> bool:
        return False


@pytest.fixture
def backend():
    """Fresh scripted AI backend for each test."""
    return FakeAIBackend()


@pytest.fixture
def gateway(backend):
    """Gateway over the scripted backend."""
    return AIGateway(backend)


# ============================================================================
# Data fixtures
# ============================================================================

@pytest.fixture
def temp_db_dir():
    """
    Create a temporary database directory for testing.

    This fixture is automatically cleaned up after each test.
    """
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def db(temp_db_dir):
    """Fresh SnapshotDatabase for each test."""
    return SnapshotDatabase(db_dir=temp_db_dir)


@pytest.fixture
def app_settings():
    """Two-day, three-meal settings for a single-person household."""
    return AppSettings(
        family=[FamilyMember(id="1", name="Anna", restrictions=["no mushrooms"])],
        period=2,
        meals_per_day=3,
        budget_amount=10000,
    )


@pytest.fixture
def sample_recipe():
    """Three-step recipe with one timed step."""
    return Recipe(
        name="Chicken soup",
        ingredients=["Chicken breast", "Salt", "Carrots"],
        steps=[
            RecipeStep(title="Prep", description="Chop the vegetables"),
            RecipeStep(title="Simmer", description="Simmer for 10 minutes", time=600),
            RecipeStep(title="Serve", description="Serve hot"),
        ],
        calories=420,
    )


@pytest.fixture
def sample_shopping_list():
    """Shopping list with one partial item and nothing bought."""
    return ShoppingList(
        items=[
            ShoppingListItem(category="Meat", item="Chicken", planned_quantity="1 kg", planned_price=300),
            ShoppingListItem(category="Pantry", item="Salt", planned_quantity="200 g", planned_price=50,
                             is_partial=True, min_qty="100 g"),
            ShoppingListItem(category="Meat", item="Beef", planned_quantity="500 g", planned_price=400),
        ],
        planned_total_cost=750,
    )


@pytest.fixture
def sample_budget():
    """Budget with two planned categories and no spending."""
    return Budget(
        total=10000,
        planned_spent=750,
        actual_spent=0,
        remaining=10000,
        savings=750,
        categories=[
            BudgetCategory(name="Groceries", planned_amount=700),
            BudgetCategory(name="Household", planned_amount=50),
        ],
    )


@pytest.fixture
def sample_menu():
    """Two-day menu with a repeated dish and a leftover marker."""
    return MenuData(days=[
        MenuDay(day="Monday", meals={"breakfast": "Oatmeal", "lunch": "Chicken soup", "dinner": "Beef stew"}),
        MenuDay(day="Tuesday", meals={"breakfast": "Oatmeal", "lunch": "Chicken soup (leftovers)", "dinner": "Fish tacos"}),
    ])


# ============================================================================
# Controller fixtures
# ============================================================================

@pytest.fixture
def controller(db, backend):
    """Controller wired to the scripted backend with no pacing delay."""
    return AppController(
        db,
        settings=Settings(step_delay=0.0),
        gateway_factory=lambda api_key: AIGateway(backend),
    )
