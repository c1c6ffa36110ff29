"""
Tests for the AI Gateway: JSON decoding, the repair round-trip and the
shape checks on every operation.
"""

import json

import pytest

from family_menu.data.models import FamilyMember
from family_menu.errors import InvalidResponseError, MalformedResponseError
from family_menu.gateway import (
    DEFAULT_FAMILY_CALORIES,
    FATAL,
    NEEDS_REPAIR,
    OK,
    AIGateway,
    decode_json,
)
from family_menu.llm_provider import NullLLMProvider


class TestDecodeJson:

    def test_plain_json(self):
        """Test decoding a plain JSON reply."""
        result = decode_json('{"a": 1}')
        assert result.status == OK
        assert result.value == {"a": 1}

    def test_code_fences_stripped(self):
        """Test that json code fences are stripped."""
        result = decode_json('```json\n{"menu": []}\n```')
        assert result.ok
        assert result.value == {"menu": []}

    def test_bare_fences_stripped(self):
        """Test that bare code fences are stripped."""
        assert decode_json("```\n[1, 2]\n```").value == [1, 2]

    def test_invalid_needs_repair(self):
        """Test that a first parse failure asks for repair."""
        result = decode_json("not json")
        assert result.status == NEEDS_REPAIR
        assert result.error

    def test_invalid_after_repair_is_fatal(self):
        """Test that a parse failure after repair is fatal."""
        assert decode_json("{broken", allow_repair=False).status == FATAL

    def test_empty_text(self):
        """Test that an empty reply needs repair."""
        assert decode_json("").status == NEEDS_REPAIR


class TestRepair:
    """A reply that does not parse gets exactly one repair attempt."""

    @pytest.mark.asyncio
    async def test_repair_succeeds(self, backend, gateway, app_settings):
        """Test that one repair round-trip rescues a broken reply."""
        backend.reply_with("analyze", "Sure! {analysis: oops")
        backend.reply_with("repair", json.dumps({"analysis": "Fixed."}))

        result = await gateway.analyze_settings(app_settings)

        assert result.analysis == "Fixed."
        assert backend.count("repair") == 1
        repair_prompt = backend.prompts("repair")[0]
        assert "Analyze the household settings" in repair_prompt
        assert "Sure! {analysis: oops" in repair_prompt

    @pytest.mark.asyncio
    async def test_repair_fails_terminally(self, backend, gateway, app_settings):
        """Test that a broken repaired reply fails without a second repair."""
        backend.reply_with("menu", "garbage")
        backend.reply_with("repair", "still garbage", "never used")

        with pytest.raises(MalformedResponseError):
            await gateway.generate_menu(app_settings, "analysis")

        assert backend.count("repair") == 1

    @pytest.mark.asyncio
    async def test_valid_reply_skips_repair(self, backend, gateway, app_settings):
        """Test that a valid reply needs no repair."""
        await gateway.generate_menu(app_settings, "analysis")
        assert backend.count("repair") == 0


class TestVerifyApiKey:

    @pytest.mark.asyncio
    async def test_ok_reply(self, backend, gateway):
        """Test that OK with stray whitespace and case is accepted."""
        backend.reply_with("verify", " ok\n")
        assert await gateway.verify_api_key() is True

    @pytest.mark.asyncio
    async def test_other_reply(self, backend, gateway):
        """Test that any other reply rejects the key."""
        backend.reply_with("verify", "Hello there")
        assert await gateway.verify_api_key() is False

    @pytest.mark.asyncio
    async def test_error_is_false(self, backend, gateway):
        """Test that a transport error rejects the key."""
        backend.reply_with("verify", ConnectionError("offline"))
        assert await gateway.verify_api_key() is False

    @pytest.mark.asyncio
    async def test_null_provider_is_rejected(self):
        """Test that the keyless provider never verifies."""
        assert await AIGateway(NullLLMProvider()).verify_api_key() is False


class TestAnalyzeSettings:

    @pytest.mark.asyncio
    async def test_analysis(self, gateway, app_settings):
        """Test a plain analysis reply."""
        result = await gateway.analyze_settings(app_settings)
        assert result.analysis == "Simple seasonal home cooking."
        assert not result.needs_clarification

    @pytest.mark.asyncio
    async def test_question_wins(self, backend, gateway, app_settings):
        """Test that a question takes precedence over an analysis."""
        backend.reply_with("analyze", json.dumps({"analysis": "x", "question": "Which vegetarian?"}))
        result = await gateway.analyze_settings(app_settings)
        assert result.needs_clarification
        assert result.question == "Which vegetarian?"

    @pytest.mark.asyncio
    async def test_answer_included_in_prompt(self, backend, gateway, app_settings):
        """Test that the user's answer is quoted in the prompt."""
        await gateway.analyze_settings(app_settings, "Lacto-ovo")
        assert 'Clarification from the user: "Lacto-ovo"' in backend.prompts("analyze")[0]

    @pytest.mark.asyncio
    async def test_neither_field(self, backend, gateway, app_settings):
        """Test that a reply without analysis or question is invalid."""
        backend.reply_with("analyze", json.dumps({"summary": "x"}))
        with pytest.raises(InvalidResponseError):
            await gateway.analyze_settings(app_settings)


class TestGenerateMenu:

    @pytest.mark.asyncio
    async def test_wrapped_menu(self, gateway, app_settings):
        """Test a menu wrapped in a menu key."""
        menu = await gateway.generate_menu(app_settings, "analysis")
        assert len(menu) == 2
        assert menu.days[0].meals["lunch"] == "Chicken soup"
        assert menu.days[0].calories == 2100

    @pytest.mark.asyncio
    async def test_bare_list(self, backend, gateway, app_settings):
        """Test a menu returned as a bare list of days."""
        backend.reply_with("menu", json.dumps([{"day": "Monday", "dinner": "Stew"}]))
        menu = await gateway.generate_menu(app_settings, "analysis")
        assert menu.days[0].meals == {"dinner": "Stew"}

    @pytest.mark.asyncio
    async def test_unrecognized_structure(self, backend, gateway, app_settings):
        """Test that an unknown menu shape is invalid."""
        backend.reply_with("menu", json.dumps({"days": []}))
        with pytest.raises(InvalidResponseError):
            await gateway.generate_menu(app_settings, "analysis")

    @pytest.mark.asyncio
    async def test_prompt_mentions_period_and_slots(self, backend, gateway, app_settings):
        """Test that the prompt names the period and the meal slots."""
        await gateway.generate_menu(app_settings, "Quick meals")
        prompt = backend.prompts("menu")[0]
        assert "Plan 2 days" in prompt
        assert '"breakfast", "lunch", "dinner"' in prompt
        assert '"snack"' not in prompt
        assert "(leftovers)" in prompt


class TestGenerateRecipe:

    @pytest.mark.asyncio
    async def test_recipe(self, backend, gateway):
        """Test a full recipe reply."""
        recipe = await gateway.generate_recipe("Beef stew", ["no mushrooms"])
        assert recipe.name == "Beef stew"
        assert len(recipe.steps) == 2
        assert recipe.steps[1].time == 600
        assert "no mushrooms" in backend.prompts("recipe")[0]

    @pytest.mark.asyncio
    async def test_missing_name_filled(self, backend, gateway):
        """Test that a nameless recipe takes the dish name."""
        backend.reply_with("recipe", json.dumps({"recipe": {"ingredients": [], "steps": ["Mix"]}}))
        recipe = await gateway.generate_recipe("Salad", [])
        assert recipe.name == "Salad"
        assert recipe.steps[0].description == "Mix"

    @pytest.mark.asyncio
    async def test_missing_recipe(self, backend, gateway):
        """Test that a reply without a recipe object is invalid."""
        backend.reply_with("recipe", json.dumps({"name": "Salad"}))
        with pytest.raises(InvalidResponseError):
            await gateway.generate_recipe("Salad", [])


class TestGenerateShoppingList:

    @pytest.mark.asyncio
    async def test_purchase_tracking_reset(self, gateway, app_settings):
        """Test that purchase tracking starts empty whatever the model says."""
        shopping_list = await gateway.generate_shopping_list(["Chicken soup"], app_settings)

        chicken = shopping_list.find("Chicken")
        assert chicken.purchased_price == 0
        assert chicken.is_completed is False
        assert chicken.purchases == []
        assert shopping_list.actual_total_cost == 0
        assert shopping_list.planned_total_cost == 350
        assert shopping_list.find("Salt").is_partial

    @pytest.mark.asyncio
    async def test_total_falls_back_to_sum(self, backend, gateway, app_settings):
        """Test that a missing total is the sum of planned prices."""
        backend.reply_with("shopping_list", json.dumps({"shoppingList": [
            {"category": "Meat", "item": "Beef", "plannedPrice": 400},
            {"category": "Veg", "item": "Onion", "plannedPrice": 20},
            {"category": "Veg", "plannedPrice": 99},
        ]}))
        shopping_list = await gateway.generate_shopping_list(["Stew"], app_settings)
        assert [i.item for i in shopping_list.items] == ["Beef", "Onion"]
        assert shopping_list.planned_total_cost == 420

    @pytest.mark.asyncio
    async def test_missing_list(self, backend, gateway, app_settings):
        """Test that a reply without a shopping list is invalid."""
        backend.reply_with("shopping_list", json.dumps({"items": []}))
        with pytest.raises(InvalidResponseError):
            await gateway.generate_shopping_list(["Stew"], app_settings)


class TestGenerateBudget:

    @pytest.mark.asyncio
    async def test_budget(self, gateway):
        """Test a budget reply."""
        budget = await gateway.generate_budget(350, 10000)
        assert budget.total == 10000
        assert budget.remaining == 9650
        assert [c.name for c in budget.categories] == ["Groceries", "Household"]

    @pytest.mark.asyncio
    async def test_missing_budget(self, backend, gateway):
        """Test that a reply without a budget object is invalid."""
        backend.reply_with("budget", json.dumps({"total": 1}))
        with pytest.raises(InvalidResponseError):
            await gateway.generate_budget(350, 10000)


class TestFamilyCalories:

    @pytest.mark.asyncio
    async def test_digits_parsed(self, gateway):
        """Test that the digits of the reply are the calorie total."""
        family = [FamilyMember(id="1", name="Anna")]
        assert await gateway.calculate_family_calories(family) == 6500

    @pytest.mark.asyncio
    async def test_empty_family_needs_no_call(self, backend, gateway):
        """Test that an empty family uses the default without a call."""
        assert await gateway.calculate_family_calories([]) == DEFAULT_FAMILY_CALORIES
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_falls_back(self, backend, gateway):
        """Test that a reply without digits falls back to the default."""
        backend.reply_with("calories", "I cannot say")
        family = [FamilyMember(id="1", name="Anna")]
        assert await gateway.calculate_family_calories(family) == DEFAULT_FAMILY_CALORIES


class TestMalformedReplies:
    """Well-formed JSON with wrong field types is an invalid reply, not a crash."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("recipe", [
        {"name": "Stew", "steps": [5]},
        {"name": "Stew", "ingredients": 3},
    ])
    async def test_recipe(self, backend, gateway, recipe):
        """Test that bad steps or ingredients make the recipe invalid."""
        backend.reply_with("recipe", json.dumps({"recipe": recipe}))
        with pytest.raises(InvalidResponseError, match="malformed recipe for 'Stew'"):
            await gateway.generate_recipe("Stew", [])

    @pytest.mark.asyncio
    async def test_shopping_item_price(self, backend, gateway, app_settings):
        """Test that a price with a currency sign makes the list invalid."""
        backend.reply_with("shopping_list", json.dumps({"shoppingList": [
            {"category": "Meat", "item": "Beef", "plannedPrice": "300 ₽"},
        ]}))
        with pytest.raises(InvalidResponseError, match="malformed shopping list item"):
            await gateway.generate_shopping_list(["Stew"], app_settings)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("budget", [
        {"total": 10000, "categories": [{"plannedAmount": 300}]},
        {"total": "a lot"},
        {"total": 10000, "categories": 7},
    ])
    async def test_budget(self, backend, gateway, budget):
        """Test that a nameless category or a bad number makes the budget invalid."""
        backend.reply_with("budget", json.dumps({"budget": budget}))
        with pytest.raises(InvalidResponseError, match="malformed budget"):
            await gateway.generate_budget(350, 10000)

    @pytest.mark.asyncio
    async def test_menu_skips_non_object_days(self, backend, gateway, app_settings):
        """Test that days that are not objects are dropped from the menu."""
        backend.reply_with("menu", json.dumps({"menu": ["Monday", {"day": "Tuesday", "dinner": "Stew"}]}))
        menu = await gateway.generate_menu(app_settings, "analysis")
        assert [d.day for d in menu.days] == ["Tuesday"]
