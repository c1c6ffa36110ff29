"""
Interactive mode for the Family Menu Planner.

A terminal front end over AppController.
"""

import asyncio
import logging
import shlex
from dataclasses import replace
from typing import Optional

from . import budget as budget_ops
from . import leftovers
from . import shopping
from .controller import (
    API_KEY_SETUP,
    AppController,
    AppState,
    BUDGET_VIEW,
    MENU_VIEW,
    REMAINING_ITEMS_VIEW,
    SETTINGS_VIEW,
    SHOPPING_LIST_VIEW,
)
from .cooking import format_time
from .data.models import IMAGE_MODES, GenerationParams, MEAL_LABELS
from .errors import FamilyMenuError

logger = logging.getLogger(__name__)

STATUS_ICONS = {shopping.BOUGHT: "✅", shopping.PENDING: "❌", shopping.MISSING: "⚠️"}


class InteractiveSession:
    """Interactive session handler."""

    def __init__(self, controller: AppController):
        """
        Initialize interactive session.

        Args:
            controller: Application controller (already loaded)
        """
        self.controller = controller
        self.controller.listener = self._on_state
        self._shown_progress = -1
        self._shown_log_lines = 0

        # One loop for the whole session: AI clients keep connections bound to it
        self._loop = asyncio.new_event_loop()

    @property
    def state(self) -> AppState:
        return self.controller.state

    def _run(self, coro):
        return self._loop.run_until_complete(coro)

    def close(self):
        if not self._loop.is_closed():
            self._loop.close()

    # ==================== Rendering ====================

    def _on_state(self, state: AppState):
        """Print generation progress while a run is loading."""
        if not state.is_loading:
            return
        lines = [
            line
            for entry in state.generation_log
            for line in [f"\n{entry.title}"] + [f"   {d}" for d in entry.details] + [f"   › {p}" for p in entry.preview]
        ]
        for line in lines[self._shown_log_lines:]:
            print(line)
        self._shown_log_lines = len(lines)
        if state.generation_progress != self._shown_progress:
            self._shown_progress = state.generation_progress
            print(f"   [{state.generation_progress:3d}%]")

    def show_welcome(self):
        print("\n" + "=" * 70)
        print("🍽️  FAMILY MENU - Interactive Mode")
        print("=" * 70)
        if self.state.view == API_KEY_SETUP:
            print("\nFirst, enter your API key:  key <your-key>")
        else:
            print("\nType 'help' for all commands, 'quit' to exit.\n")

    def show_help(self):
        print("\n" + "=" * 70)
        print("Available Commands")
        print("=" * 70)
        print("\n🔑 Setup:")
        print("  key <key>                       - Verify and store your API key")
        print("  key update <key>                - Replace the stored key after verifying it")
        print("  logout                          - Forget the key and generated data")
        print()
        print("📅 Menu:")
        print("  quick <people> <days> <meals> [main|all|none]")
        print("                                  - Set up a family quickly and generate")
        print("  generate                        - Regenerate with the current settings")
        print("  answer <text>                   - Answer the AI's clarifying question")
        print("  menu / day <n>                  - Show the menu (or one day)")
        print("  recipe <dish>                   - Show a recipe")
        print("  cook <dish>                     - Cook a recipe step by step")
        print()
        print("🛒 Shopping & budget:")
        print("  list                            - Show the shopping list")
        print("  buy <item>                      - Toggle an item as bought")
        print("  partial <item> <price> <qty>    - Record a partial purchase")
        print("  edit <item> <price> <qty>       - Change an item's planned price and quantity")
        print("  uses <item>                     - Show the recipes that use an item")
        print("  budget                          - Show the budget")
        print("  expense <amount> [category]     - Record an expense")
        print()
        print("🥡 Leftovers:")
        print("  leftovers                       - Show remaining products")
        print("  leftover add <name> <qty> <YYYY-MM-DD>")
        print("  leftover rm <id>")
        print()
        print("⚙️  Settings & data:")
        print("  settings                        - Show settings and family calories")
        print("  set <period|meals|budget|images> <value>")
        print("  member add <name> <age> <weight> [goal] [activity]")
        print("  member set <n> <field> <value>  - name, age, weight, goal, activity, restrictions, allergies")
        print("  member rm <n>                   - Remove a family member")
        print("  export [dir] / import <file>    - Export or import all data")
        print()
        print("  help / quit")
        print()

    def show_menu(self, day_index: Optional[int] = None):
        menu = self.state.menu_data
        if not menu:
            print("\n❌ No menu yet. Run 'quick' or 'generate' first.")
            return
        indices = [day_index] if day_index is not None else range(len(menu.days))
        for i in indices:
            day = menu.days[i]
            calories = f"  (~{day.calories} kcal)" if day.calories else ""
            print(f"\n📅 {day.day}{calories}")
            for slot, dish in day.meals.items():
                print(f"   {MEAL_LABELS.get(slot, slot):<16} {dish}")

    def show_recipe(self, dish: str):
        if not self.controller.select_recipe(dish):
            print(f"\n❌ Recipe not found: {dish}")
            return
        recipe = self.state.recipes[self.state.active_recipe_name]
        print(f"\n👨‍🍳 {recipe.name}" + (f"  ({recipe.calories} kcal)" if recipe.calories else ""))
        print("\nIngredients:")
        for ingredient in recipe.ingredients:
            status = shopping.ingredient_status(ingredient, self.state.shopping_list)
            print(f"  {STATUS_ICONS[status]} {ingredient}")
        print("\nSteps:")
        for i, step in enumerate(recipe.steps, 1):
            timer = f" [{format_time(step.time)}]" if step.time else ""
            print(f"  {i}. {step.title}{timer}")
            print(f"     {step.description}")

    def show_shopping_list(self):
        shopping_list = self.state.shopping_list
        if not shopping_list:
            print("\n❌ No shopping list yet.")
            return
        progress = shopping.completion_progress(shopping_list)
        print(f"\n🛒 Shopping list ({progress:.0f}% bought)")
        print(f"   Planned: {shopping_list.planned_total_cost:.2f}   Actual: {shopping_list.actual_total_cost:.2f}")
        for category, items in shopping.group_by_category(shopping_list).items():
            print(f"\n{category.upper()}")
            print("-" * 30)
            for item in items:
                checkbox = "☑" if item.is_completed else "☐"
                partial = f"  (partial, min {item.min_qty})" if item.is_partial and item.min_qty else ""
                print(f"  {checkbox} {item.item} - {item.planned_quantity} @ {item.planned_price:.2f}{partial}")

    def show_budget(self):
        budget = self.state.budget
        if not budget:
            print("\n❌ No budget yet.")
            return
        print("\n💰 Budget")
        print(f"   Total:     {budget.total:.2f}")
        print(f"   Planned:   {budget.planned_spent:.2f}")
        print(f"   Spent:     {budget.actual_spent:.2f}")
        print(f"   Remaining: {budget.remaining:.2f}")
        print(f"   Savings:   {budget.savings:.2f}")
        for kind in (budget_ops.PLANNED, budget_ops.ACTUAL):
            segments = budget_ops.category_segments(budget, kind)
            if segments:
                shares = ", ".join(f"{name} {end - start:.0f}%" for name, _, start, end in segments)
                print(f"   {kind.title()} split: {shares}")
        print(f"   Expense categories: {', '.join(budget_ops.expense_categories(budget))}")

    def show_leftovers(self):
        items = leftovers.sort_by_expiry(self.state.remaining_items)
        if not items:
            print("\n🥡 No remaining products.")
            return
        print("\n🥡 Remaining products")
        for item in items:
            status = leftovers.expiry_status(item.expiry_date)
            print(f"  [{item.id}] {item.name} - {item.quantity}  {status.text}  ({item.source})")

    def show_settings(self):
        settings = self.state.app_settings
        print("\n⚙️  Settings")
        print(f"   Period: {settings.period} days, {settings.meals_per_day} meals/day")
        print(f"   Budget: {settings.budget_amount}")
        print(f"   Images: {settings.generation.image_generation_mode}")
        print(f"   Family ({len(settings.family)}):")
        for number, member in enumerate(settings.family, 1):
            print(f"     {number}. {member.name}, {member.age} y, {member.weight} kg, {member.goal}, {member.activity}")
        if settings.family and self.state.api_key:
            print(f"   Daily calories (family): {self._run(self.controller.family_calories())}")

    def _report_generation(self):
        state = self.state
        self._shown_progress = -1
        self._shown_log_lines = 0
        if state.clarification_question:
            print(f"\n🤔 {state.clarification_question}")
            print("💡 Reply with: answer <your answer>")
        elif state.error:
            print(f"\n❌ Generation failed: {state.error}")
        elif state.menu_data:
            print(f"\n✅ Menu ready: {len(state.menu_data.days)} days, {len(state.recipes)} recipes")
            print("💡 Type 'menu', 'list' or 'budget'")

    # ==================== Commands ====================

    def handle_key(self, args):
        if not args:
            print("\n❌ Usage: key <your-key> | key update <new-key>")
            return
        if args[0] == "update":
            if len(args) != 2 or not self.state.api_key:
                print("\n❌ Usage: key update <new-key> (after a key is stored)")
            elif self._run(self.controller.update_api_key(args[1])):
                print("\n✅ Key updated.")
            else:
                print("\n❌ The new key was rejected; the old key is kept.")
            return
        if self._run(self.controller.submit_api_key(args[0])):
            print("\n✅ Key verified. Type 'quick 3 7 5' to generate a menu.")
        else:
            print(f"\n❌ {self.state.error}")

    def handle_quick(self, args):
        try:
            params = GenerationParams(
                people=int(args[0]) if len(args) > 0 else 3,
                period=int(args[1]) if len(args) > 1 else 7,
                meals_per_day=int(args[2]) if len(args) > 2 else 5,
                image_generation_mode=args[3] if len(args) > 3 else "main",
            )
        except ValueError:
            print("\n❌ Usage: quick <people> <days> <meals> [main|all|none]")
            return
        if params.image_generation_mode not in IMAGE_MODES:
            print(f"\n❌ Image mode must be one of {', '.join(IMAGE_MODES)}")
            return
        self._run(self.controller.generate(params))
        self._report_generation()

    def handle_generate(self):
        self._run(self.controller.start_generation())
        self._report_generation()

    def handle_answer(self, text: str):
        if not self.state.clarification_question:
            print("\n❌ No question is waiting for an answer.")
            return
        self._run(self.controller.submit_clarification(text))
        self._report_generation()

    def handle_cook(self, dish: str):
        if not self.controller.select_recipe(dish):
            print(f"\n❌ Recipe not found: {dish}")
            return
        session = self.controller.cooking_session(notifier=lambda title, body: print(f"\n🔔 {title} {body}"))
        if session is None:
            print("\n❌ This recipe has no steps.")
            return

        for ingredient, status in session.ingredient_statuses():
            print(f"  {STATUS_ICONS[status]} {ingredient}")
        missing = session.missing_ingredients()
        if missing:
            print("\n⚠️  Not bought yet: " + ", ".join(missing))

        while not session.finished:
            step = session.active_step
            print(f"\nStep {session.active_step_index + 1}/{len(session.recipe.steps)}: {step.title}")
            print(f"   {step.description}")
            if step.image_url:
                print(f"   🖼  {step.image_url}")
            if step.time:
                print(f"   ⏱  {format_time(session.time_left)}  (t = start/pause, w <sec> = wait, r = reset)")
            choice = input("   [n]ext, [p]rev, [q]uit > ").strip().lower()
            if choice in ("q", "quit"):
                break
            elif choice in ("", "n", "next"):
                if session.next_step():
                    print("\n🎉 Recipe complete!")
            elif choice in ("p", "prev"):
                session.prev_step()
            elif choice == "t":
                session.toggle_timer()
            elif choice == "r":
                session.reset_timer()
            elif choice.startswith("w"):
                parts = choice.split()
                session.tick(int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 60)
        self.controller.set_view(MENU_VIEW)

    def handle_buy(self, item_name: str):
        try:
            self.controller.toggle_shopping_item(item_name)
        except KeyError as e:
            print(f"\n❌ {e}")
            return
        print(f"\n✅ Updated: {item_name}")

    def handle_partial(self, args):
        if len(args) < 3:
            print("\n❌ Usage: partial <item> <price> <quantity>")
            return
        try:
            self.controller.record_purchase(args[0], " ".join(args[2:]), float(args[1]))
        except (KeyError, ValueError) as e:
            print(f"\n❌ {e}")
            return
        print(f"\n✅ Purchase recorded for {args[0]}")

    def handle_edit(self, args):
        if len(args) < 3:
            print("\n❌ Usage: edit <item> <price> <quantity>")
            return
        item = self.state.shopping_list.find(args[0]) if self.state.shopping_list else None
        if item is None:
            print(f"\n❌ No shopping list item named '{args[0]}'")
            return
        try:
            edited = replace(item, planned_price=float(args[1]), planned_quantity=" ".join(args[2:]))
        except ValueError:
            print(f"\n❌ Invalid price: {args[1]}")
            return
        self.controller.edit_shopping_item(edited)
        print(f"\n✅ Updated: {item.item}")

    def handle_uses(self, item_name: str):
        recipes = shopping.recipes_using_item(item_name, self.state.recipes)
        if not recipes:
            print(f"\n❌ No recipe uses {item_name}")
            return
        print(f"\n📖 Recipes with {item_name}:")
        for recipe in recipes:
            print(f"   - {recipe.name}")

    def handle_expense(self, args):
        try:
            amount = float(args[0])
        except (IndexError, ValueError):
            print("\n❌ Usage: expense <amount> [category]")
            if self.state.budget:
                print(f"   Categories: {', '.join(budget_ops.expense_categories(self.state.budget))}")
            return
        category = " ".join(args[1:]) or budget_ops.DEFAULT_EXPENSE_CATEGORY
        self.controller.record_expense(amount, category)
        self.show_budget()

    def handle_leftover(self, args):
        if len(args) >= 4 and args[0] == "add":
            try:
                self.controller.add_remaining_item(args[1], args[2], args[3])
            except ValueError as e:
                print(f"\n❌ {e}")
                return
        elif len(args) == 2 and args[0] == "rm":
            self.controller.delete_remaining_item(args[1])
        else:
            print("\n❌ Usage: leftover add <name> <qty> <YYYY-MM-DD> | leftover rm <id>")
            return
        self.show_leftovers()

    def handle_set(self, args):
        if len(args) != 2:
            print("\n❌ Usage: set <period|meals|budget|images> <value>")
            return
        field_name, value = args
        settings = self.state.app_settings
        try:
            if field_name == "period":
                settings = replace(settings, period=int(value))
            elif field_name == "meals":
                settings = replace(settings, meals_per_day=int(value))
            elif field_name == "budget":
                settings = replace(settings, budget_amount=float(value))
            elif field_name == "images" and value in IMAGE_MODES:
                settings = replace(
                    settings,
                    generation=replace(settings.generation, image_generation_mode=value),
                )
            else:
                print(f"\n❌ Cannot set {field_name} to {value}")
                return
        except ValueError:
            print(f"\n❌ Invalid value: {value}")
            return
        self.controller.update_settings(settings)
        self.show_settings()

    def handle_member(self, args):
        settings = self.state.app_settings
        try:
            if len(args) >= 4 and args[0] == "add":
                settings = settings.add_member(args[1], int(args[2]), float(args[3]), *args[4:6])
            elif len(args) >= 4 and args[0] == "set":
                settings = settings.update_member(int(args[1]) - 1, args[2], " ".join(args[3:]))
            elif len(args) == 2 and args[0] == "rm":
                settings = settings.remove_member(int(args[1]) - 1)
            else:
                print("\n❌ Usage: member add <name> <age> <weight> [goal] [activity]")
                print("         member set <n> <field> <value> | member rm <n>")
                return
        except (IndexError, ValueError) as e:
            print(f"\n❌ {e}")
            return
        self.controller.update_settings(settings)
        self.show_settings()

    def handle_export(self, args):
        path = self.controller.export_data(args[0] if args else ".")
        print(f"\n✅ Exported to {path}")

    def handle_import(self, args):
        if not args:
            print("\n❌ Usage: import <file>")
            return
        try:
            self.controller.import_data(args[0])
        except FamilyMenuError as e:
            print(f"\n❌ Could not import data. The file is damaged or has the wrong format. ({e})")
            return
        print("\n✅ Data imported!")

    def dispatch(self, command: str) -> bool:
        """
        Run one command line.

        Returns:
            False when the session should end
        """
        parts = shlex.split(command)
        cmd = parts[0].lower()
        args = parts[1:]
        rest = " ".join(args)

        if cmd in ("quit", "exit", "q"):
            print("\n👋 Goodbye! Enjoy your meals!")
            return False

        if cmd == "help":
            self.show_help()
        elif cmd == "key":
            self.handle_key(args)
        elif not self.state.api_key:
            print("\n❌ Enter your API key first:  key <your-key>")
        elif cmd == "logout":
            self.controller.delete_api_key()
            print("\n✅ Key and generated data removed.")
        elif cmd == "quick":
            self.handle_quick(args)
        elif cmd == "generate":
            self.handle_generate()
        elif cmd == "answer":
            self.handle_answer(rest)
        elif cmd == "menu":
            self.controller.set_view(MENU_VIEW)
            self.show_menu()
        elif cmd == "day" and args and args[0].isdigit():
            if self.controller.set_active_day(int(args[0]) - 1):
                self.show_menu(self.state.active_day_index)
            else:
                print("\n❌ No such day.")
        elif cmd == "recipe":
            self.show_recipe(rest)
        elif cmd == "cook":
            self.handle_cook(rest)
        elif cmd == "list":
            self.controller.set_view(SHOPPING_LIST_VIEW)
            self.show_shopping_list()
        elif cmd == "buy":
            self.handle_buy(rest)
        elif cmd == "partial":
            self.handle_partial(args)
        elif cmd == "edit":
            self.handle_edit(args)
        elif cmd == "uses":
            self.handle_uses(rest)
        elif cmd == "budget":
            self.controller.set_view(BUDGET_VIEW)
            self.show_budget()
        elif cmd == "expense":
            self.handle_expense(args)
        elif cmd == "leftovers":
            self.controller.set_view(REMAINING_ITEMS_VIEW)
            self.show_leftovers()
        elif cmd == "leftover":
            self.handle_leftover(args)
        elif cmd == "settings":
            self.controller.set_view(SETTINGS_VIEW)
            self.show_settings()
        elif cmd == "set":
            self.handle_set(args)
        elif cmd == "member":
            self.handle_member(args)
        elif cmd == "export":
            self.handle_export(args)
        elif cmd == "import":
            self.handle_import(args)
        else:
            print(f"\n❌ Unknown command: {cmd}")
            print("💡 Type 'help' for available commands")
        return True

    def run(self):
        """Run the interactive loop."""
        self.show_welcome()

        try:
            while True:
                try:
                    command = input("🍽️  > ").strip()
                    if not command:
                        continue
                    if not self.dispatch(command):
                        break

                except KeyboardInterrupt:
                    print("\n\n👋 Goodbye! (Use 'quit' to exit gracefully)")
                    break

                except Exception as e:
                    logger.error(f"Command failed: {e}", exc_info=True)
                    print(f"\n❌ Error: {e}")
        finally:
            self.close()
