"""
AI Gateway.

Typed operations on top of an LLMProvider. JSON replies go through
decode_json(); a reply that does not parse gets exactly one repair
round-trip before the call fails.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

from . import prompts
from .data.models import (
    AppSettings,
    Budget,
    FamilyMember,
    MenuData,
    MenuDay,
    Recipe,
    ShoppingList,
    ShoppingListItem,
)
from .errors import InvalidResponseError, MalformedResponseError
from .llm_provider import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_FAMILY_CALORIES = 2000

T = TypeVar("T")

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

# DecodeResult statuses
OK = "ok"
NEEDS_REPAIR = "needs_repair"
FATAL = "fatal"


@dataclass
class DecodeResult:
    """Outcome of decoding a model reply as JSON."""

    status: str
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OK


def decode_json(text: str, allow_repair: bool = True) -> DecodeResult:
    """
    Decode a model reply as JSON, tolerating markdown code fences.

    Args:
        text: Raw reply text
        allow_repair: Whether a parse failure may still be repaired

    Returns:
        DecodeResult tagged ok / needs_repair / fatal
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    try:
        return DecodeResult(OK, value=json.loads(cleaned))
    except json.JSONDecodeError as e:
        return DecodeResult(NEEDS_REPAIR if allow_repair else FATAL, error=str(e))


def _parse(factory: Callable[[Any], T], data: Any, what: str) -> T:
    """Build a model from decoded JSON; wrong field types are invalid replies."""
    try:
        return factory(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise InvalidResponseError(f"AI returned a malformed {what}: {e}") from e


@dataclass
class AnalysisResult:
    """Either an analysis summary or a single clarifying question."""

    analysis: Optional[str] = None
    question: Optional[str] = None

    @property
    def needs_clarification(self) -> bool:
        return bool(self.question)


class AIGateway:
    """Meal-planning operations backed by an LLM."""

    def __init__(self, provider: LLMProvider):
        """
        Initialize the gateway.

        Args:
            provider: LLM provider used for every call
        """
        self.provider = provider

    async def _request_json(self, prompt: str) -> Any:
        text = await self.provider.complete(prompt, json_mode=True)
        result = decode_json(text)
        if result.ok:
            return result.value

        logger.warning(f"Failed to parse JSON ({result.error}), attempting repair")
        repaired = await self.provider.complete(
            prompts.repair_json_prompt(prompt, text, result.error),
            json_mode=True,
        )
        result = decode_json(repaired, allow_repair=False)
        if not result.ok:
            raise MalformedResponseError(
                "Could not get valid data from the AI even after a repair attempt."
            )
        return result.value

    async def verify_api_key(self) -> bool:
        """Check that the provider's key works: the model must reply `OK`."""
        try:
            reply = await self.provider.complete(prompts.verify_key_prompt())
        except Exception as e:
            logger.warning(f"API key verification failed: {e}")
            return False
        return reply.strip().upper() == "OK"

    async def analyze_settings(self, settings: AppSettings, user_answer: str = "") -> AnalysisResult:
        """
        Summarize the household settings or ask one clarifying question.

        Raises:
            InvalidResponseError: If the reply has neither an analysis nor a question
        """
        data = await self._request_json(prompts.analyze_settings_prompt(settings, user_answer))
        if isinstance(data, dict):
            if data.get("question"):
                return AnalysisResult(question=str(data["question"]))
            if data.get("analysis"):
                return AnalysisResult(analysis=str(data["analysis"]))
        raise InvalidResponseError("AI returned unexpected analysis format.")

    async def generate_menu(self, settings: AppSettings, analysis: str) -> MenuData:
        """Generate the menu; accepts either {"menu": [...]} or a bare list of days."""
        data = await self._request_json(prompts.menu_prompt(settings, analysis))
        if isinstance(data, list):
            days = data
        elif isinstance(data, dict) and isinstance(data.get("menu"), list):
            days = data["menu"]
        else:
            raise InvalidResponseError("Could not recognize the menu structure returned by the AI.")
        return MenuData(days=[_parse(MenuDay.from_dict, d, "menu day") for d in days if isinstance(d, dict)])

    async def generate_recipe(self, dish_name: str, restrictions: List[str]) -> Recipe:
        data = await self._request_json(prompts.recipe_prompt(dish_name, restrictions))
        if not isinstance(data, dict) or not isinstance(data.get("recipe"), dict):
            raise InvalidResponseError(f"AI returned no recipe for '{dish_name}'.")
        recipe = _parse(Recipe.from_dict, data["recipe"], f"recipe for '{dish_name}'")
        if not recipe.name:
            recipe.name = dish_name
        return recipe

    async def generate_image_description(self, step_description: str, recipe_name: str) -> str:
        reply = await self.provider.complete(
            prompts.image_description_prompt(step_description, recipe_name)
        )
        return reply.strip()

    async def generate_shopping_list(self, recipe_names: List[str], settings: AppSettings) -> ShoppingList:
        """
        Generate the shopping list for a set of recipes.

        Purchase tracking fields always start empty regardless of what the
        model returned.
        """
        data = await self._request_json(prompts.shopping_list_prompt(recipe_names, settings))
        if not isinstance(data, dict) or not isinstance(data.get("shoppingList"), list):
            raise InvalidResponseError("AI returned no shopping list.")

        items = []
        for raw in data["shoppingList"]:
            if not isinstance(raw, dict) or not raw.get("item"):
                continue
            item = _parse(ShoppingListItem.from_dict, raw, "shopping list item")
            item.purchased_quantity = 0
            item.purchased_price = 0
            item.purchases = []
            item.is_completed = False
            items.append(item)

        planned_total = data.get("plannedTotalCost")
        if not isinstance(planned_total, (int, float)):
            planned_total = sum(i.planned_price for i in items)

        return ShoppingList(items=items, planned_total_cost=float(planned_total), actual_total_cost=0)

    async def generate_budget(self, planned_cost: float, total_budget: float) -> Budget:
        data = await self._request_json(prompts.budget_prompt(planned_cost, total_budget))
        if not isinstance(data, dict) or not isinstance(data.get("budget"), dict):
            raise InvalidResponseError("AI returned no budget.")
        return _parse(Budget.from_dict, data["budget"], "budget")

    async def calculate_family_calories(self, family: List[FamilyMember]) -> int:
        """Daily calorie need of the whole family; falls back to 2000."""
        if not family:
            return DEFAULT_FAMILY_CALORIES
        reply = await self.provider.complete(prompts.family_calories_prompt(family))
        digits = re.sub(r"\D", "", reply)
        return int(digits) if digits and int(digits) > 0 else DEFAULT_FAMILY_CALORIES
