"""
Prompt builders for every AI Gateway operation.

Each builder returns a single user prompt. JSON-producing prompts describe the
exact shape the gateway expects back.
"""

import json
import textwrap
from typing import List

from .data.models import AppSettings, FamilyMember, LEFTOVER_MARKER


def _family_json(family: List[FamilyMember]) -> str:
    return json.dumps([m.to_dict() for m in family], ensure_ascii=False)


def _preferences_json(settings: AppSettings) -> str:
    return json.dumps(settings.generation.to_dict(), ensure_ascii=False)


def verify_key_prompt() -> str:
    return "Reply with exactly one word: OK"


def analyze_settings_prompt(settings: AppSettings, user_answer: str = "") -> str:
    clarification = f'Clarification from the user: "{user_answer}"' if user_answer else ""
    return textwrap.dedent(
        f"""
        Analyze the household settings for a meal plan:
        Family: {_family_json(settings.family)}
        Period: {settings.period} days, {settings.meals_per_day} meals per day.
        Budget: {settings.budget_amount}.
        Preferences: {_preferences_json(settings)}.
        {clarification}

        Your task:
        1. If the settings are clear, give a 1-2 sentence summary of the cooking style.
           JSON: {{"analysis": "Your summary..."}}
        2. If something is ambiguous (for example "vegetarian" - which kind?), ask ONE
           clarifying question. JSON: {{"question": "Your question..."}}
        Return only JSON.
        """
    ).strip()


def menu_prompt(settings: AppSettings, analysis: str) -> str:
    slots = ", ".join(f'"{slot}"' for slot in settings.meal_slots)
    example_day = {"day": "Day 1"}
    example_day.update({slot: "..." for slot in settings.meal_slots})
    example_day["calories"] = 0
    leftovers = (
        f'When a dish reuses a meal cooked earlier, append " {LEFTOVER_MARKER}" to its name.'
        if settings.generation.use_leftovers
        else "Do not plan leftovers."
    )
    return textwrap.dedent(
        f"""
        Create a menu based on the analysis: "{analysis}".
        Plan {settings.period} days for the family: {_family_json(settings.family)}.
        Every day must include the meal slots: {slots}.
        Take the preferences into account: {_preferences_json(settings)}.
        {leftovers}
        Estimate the approximate calories per day.
        Format: JSON object {{"menu": [{json.dumps(example_day)}]}}.
        """
    ).strip()


def recipe_prompt(dish_name: str, restrictions: List[str]) -> str:
    constraints = ", ".join(restrictions) if restrictions else "none"
    return textwrap.dedent(
        f"""
        Write a detailed recipe for the dish: "{dish_name}".
        Respect the family's dietary restrictions: {constraints}.
        Use ingredients that are easy to buy in a regular supermarket.
        Give 5-7 steps; add a "time" in seconds to steps that involve waiting.
        Format: JSON object {{"recipe": {{"name": "...", "ingredients": ["..."],
        "steps": [{{"title": "...", "description": "...", "time": 600}}], "calories": 0}}}}
        with no extra text.
        """
    ).strip()


def image_description_prompt(step_description: str, recipe_name: str) -> str:
    return textwrap.dedent(
        f"""
        Describe an image for the step: "{step_description}" of the dish "{recipe_name}".
        Style: realistic food photography, natural light, wooden board, soft shadow.
        Format: a single line of text, at most 12 words.
        """
    ).strip()


def shopping_list_prompt(recipe_names: List[str], settings: AppSettings) -> str:
    return textwrap.dedent(
        f"""
        Build a shopping list from the recipes: {", ".join(recipe_names)}
        for the family {_family_json(settings.family)} for {settings.period} days.
        For every product return: category, item, plannedQuantity (for example "1.5 kg"),
        plannedPrice (number), isPartial (true if it can be bought in portions),
        minQty (smallest purchasable portion, when isPartial).
        Use average supermarket prices.
        Format: JSON object {{"shoppingList": [...], "plannedTotalCost": 0}}.
        """
    ).strip()


def budget_prompt(planned_cost: float, total_budget: float) -> str:
    return textwrap.dedent(
        f"""
        Build a household budget from a shopping list with a planned cost of {planned_cost}.
        The total budget is {total_budget}.
        Split spending into categories: Groceries, Household, Other.
        Format: JSON object {{"budget": {{"total": 0, "plannedSpent": 0, "actualSpent": 0,
        "remaining": 0, "savings": 0, "categories": [{{"name": "...", "plannedAmount": 0,
        "actualAmount": 0}}]}}}} with no extra text.
        """
    ).strip()


def family_calories_prompt(family: List[FamilyMember]) -> str:
    return (
        "Calculate the total daily calorie need of the family using Mifflin-St Jeor "
        f"plus an activity factor: {_family_json(family)}. Return only the number in kcal."
    )


def repair_json_prompt(original_prompt: str, response: str, error: str) -> str:
    return (
        f'The following JSON response was invalid. Original prompt: "{original_prompt}". '
        f'Response: "{response}". Error: "{error}". '
        "Please correct the JSON and return ONLY the valid JSON object."
    )
