"""
Application controller.

Owns the single AppState. Every update replaces the state object wholesale
and notifies an optional listener; durable changes are persisted to the
snapshot database at the points where they happen.
"""

import logging
import sqlite3
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import budget as budget_ops
from . import leftovers
from . import shopping
from .config import Settings
from .cooking import CookingSession, Notifier
from .data.database import SnapshotDatabase
from .data.models import (
    AppSettings,
    Budget,
    GenerationLogEntry,
    GenerationParams,
    MenuData,
    Recipe,
    RemainingItem,
    ShoppingList,
    ShoppingListItem,
    Snapshot,
    strip_leftover_marker,
)
from .data.sync import export_snapshot, import_snapshot
from .gateway import AIGateway
from .llm_provider import get_llm_provider
from .pipeline import GenerationPipeline, GenerationResult, ProgressTracker

logger = logging.getLogger(__name__)

# Views
API_KEY_SETUP = "apiKeySetup"
GENERATOR_FORM = "generatorForm"
MENU_VIEW = "menu"
RECIPE_VIEW = "recipe"
SHOPPING_LIST_VIEW = "shoppingList"
BUDGET_VIEW = "budget"
DATA_SYNC_VIEW = "dataSync"
REMAINING_ITEMS_VIEW = "remainingItems"
SETTINGS_VIEW = "settings"

VIEWS = (
    API_KEY_SETUP, GENERATOR_FORM, MENU_VIEW, RECIPE_VIEW, SHOPPING_LIST_VIEW,
    BUDGET_VIEW, DATA_SYNC_VIEW, REMAINING_ITEMS_VIEW, SETTINGS_VIEW,
)

INVALID_KEY_MESSAGE = "Invalid key or no access to the AI service."


@dataclass
class AppState:
    """Complete in-memory application state."""

    api_key: Optional[str] = None
    view: str = API_KEY_SETUP
    is_loading: bool = False
    error: Optional[str] = None

    app_settings: AppSettings = field(default_factory=AppSettings)

    menu_data: Optional[MenuData] = None
    recipes: Dict[str, Recipe] = field(default_factory=dict)
    shopping_list: Optional[ShoppingList] = None
    budget: Optional[Budget] = None
    remaining_items: List[RemainingItem] = field(default_factory=list)

    active_day_index: int = 0
    active_recipe_name: Optional[str] = None

    # Generation process
    generation_progress: int = 0
    generation_log: List[GenerationLogEntry] = field(default_factory=list)
    clarification_question: Optional[str] = None
    clarification_answer: str = ""

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            api_key=self.api_key,
            app_settings=self.app_settings,
            menu_data=self.menu_data,
            recipes=self.recipes,
            shopping_list=self.shopping_list,
            budget=self.budget,
            remaining_items=self.remaining_items,
        )


def default_gateway_factory(settings: Settings) -> Callable[[str], AIGateway]:
    return lambda api_key: AIGateway(get_llm_provider(api_key, settings))


class AppController:
    """Single owner of the application state."""

    def __init__(
        self,
        db: SnapshotDatabase,
        settings: Optional[Settings] = None,
        gateway_factory: Optional[Callable[[str], AIGateway]] = None,
        listener: Optional[Callable[[AppState], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            db: Snapshot database used for persistence
            settings: Runtime settings (step delay, image URL, model)
            gateway_factory: Builds an AIGateway for an API key
            listener: Called with the new state after every update
        """
        self.db = db
        self.settings = settings or Settings()
        self.gateway_factory = gateway_factory or default_gateway_factory(self.settings)
        self.listener = listener

        self.state = AppState()
        self._pipeline: Optional[GenerationPipeline] = None

    # ==================== State plumbing ====================

    def _set(self, **changes) -> AppState:
        self.state = replace(self.state, **changes)
        if self.listener:
            self.listener(self.state)
        return self.state

    def _save(self):
        self.db.save_snapshot(self.state.to_snapshot())

    def _gateway(self) -> AIGateway:
        return self.gateway_factory(self.state.api_key)

    def load(self) -> AppState:
        """
        Restore the stored snapshot and pick the starting view.

        No snapshot or no stored key routes to key setup; a stored menu routes
        to the menu, otherwise to the generator form.
        """
        try:
            snapshot = self.db.load_snapshot()
        except (sqlite3.Error, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load stored state: {e}", exc_info=True)
            snapshot = None

        if not snapshot or not snapshot.api_key:
            return self._set(is_loading=False, view=API_KEY_SETUP)

        return self._set(
            api_key=snapshot.api_key,
            app_settings=snapshot.app_settings,
            menu_data=snapshot.menu_data,
            recipes=snapshot.recipes,
            shopping_list=snapshot.shopping_list,
            budget=snapshot.budget,
            remaining_items=snapshot.remaining_items,
            is_loading=False,
            view=MENU_VIEW if snapshot.menu_data else GENERATOR_FORM,
        )

    # ==================== API key ====================

    async def submit_api_key(self, api_key: str) -> bool:
        """Verify and store the key entered on the setup screen."""
        self._set(
            is_loading=True,
            generation_progress=0,
            generation_log=[GenerationLogEntry("Connecting to the AI service...", ["Checking the key..."])],
        )
        valid = await self.gateway_factory(api_key).verify_api_key()
        if not valid:
            logger.warning("Submitted API key was rejected")
            self._set(is_loading=False, error=INVALID_KEY_MESSAGE, generation_log=[])
            return False

        self._set(
            api_key=api_key,
            view=GENERATOR_FORM,
            is_loading=False,
            error=None,
            generation_progress=0,
            generation_log=[],
        )
        self._save()
        return True

    async def update_api_key(self, api_key: str) -> bool:
        """Replace the stored key after verifying the new one."""
        if not await self.gateway_factory(api_key).verify_api_key():
            logger.warning("New API key was rejected")
            return False
        self._set(api_key=api_key)
        self._save()
        return True

    def delete_api_key(self):
        """Forget the key and all generated data."""
        self._set(
            api_key=None,
            view=API_KEY_SETUP,
            menu_data=None,
            recipes={},
            shopping_list=None,
            budget=None,
        )
        self.db.clear_snapshot()

    # ==================== Settings ====================

    def update_settings(self, app_settings: AppSettings):
        self._set(app_settings=app_settings)
        self._save()

    async def family_calories(self) -> int:
        return await self._gateway().calculate_family_calories(self.state.app_settings.family)

    # ==================== Generation ====================

    async def generate(self, params: GenerationParams) -> AppState:
        """Apply the quick generation form to the settings and start generating."""
        if not self.state.api_key:
            return self.state
        self._set(app_settings=self.state.app_settings.apply_params(params))
        return await self.start_generation()

    async def start_generation(self) -> AppState:
        """
        Start a new generation run.

        A no-op while a run is already loading (including one waiting for a
        clarification answer).
        """
        if self.state.is_loading:
            logger.info("Generation already in progress, ignoring start request")
            return self.state
        if not self.state.api_key:
            return self.state

        self._set(
            is_loading=True,
            error=None,
            recipes={},
            menu_data=None,
            shopping_list=None,
            budget=None,
            generation_log=[],
            generation_progress=0,
            clarification_question=None,
            clarification_answer="",
        )
        self._pipeline = GenerationPipeline(
            self._gateway(),
            self.state.app_settings,
            step_delay=self.settings.step_delay,
            image_base_url=self.settings.image_base_url,
            on_update=self._on_progress,
        )
        logger.info("Starting menu generation")
        return await self._drive(self._pipeline.run())

    async def submit_clarification(self, answer: str) -> AppState:
        """Answer the pending question; generation restarts at the analysis step."""
        if not self._pipeline or not self.state.clarification_question:
            logger.warning("No clarification question is pending")
            return self.state

        self._set(clarification_question=None, clarification_answer=answer)
        return await self._drive(self._pipeline.answer(answer))

    def _on_progress(self, tracker: ProgressTracker):
        log = [replace(e, details=list(e.details), preview=list(e.preview)) for e in tracker.log]
        self._set(generation_progress=tracker.progress, generation_log=log)

    async def _drive(self, run) -> AppState:
        try:
            result: GenerationResult = await run
        except Exception as e:
            logger.error(f"Generation failed: {e}", exc_info=True)
            self._pipeline = None
            return self._set(
                is_loading=False,
                error=str(e) or "An unknown error occurred.",
                view=GENERATOR_FORM,
                menu_data=None,
                recipes={},
                shopping_list=None,
                budget=None,
                clarification_question=None,
                clarification_answer="",
            )

        if not result.completed:
            return self._set(clarification_question=result.question)

        self._pipeline = None
        self._set(
            menu_data=result.menu,
            recipes=result.recipes,
            shopping_list=result.shopping_list,
            budget=result.budget,
            is_loading=False,
            clarification_answer="",
            view=MENU_VIEW,
            active_day_index=0,
            active_recipe_name=None,
        )
        self._save()
        logger.info("Menu generation complete")
        return self.state

    # ==================== Navigation ====================

    def set_view(self, view: str):
        if view not in VIEWS:
            raise ValueError(f"Unknown view '{view}'")
        self._set(view=view)

    def set_active_day(self, index: int) -> bool:
        if not self.state.menu_data or not 0 <= index < len(self.state.menu_data.days):
            return False
        self._set(active_day_index=index)
        return True

    def select_recipe(self, dish_name: str) -> bool:
        """Open the recipe for a dish (leftover dishes open the original recipe)."""
        name = strip_leftover_marker(dish_name)
        if name not in self.state.recipes:
            return False
        self._set(view=RECIPE_VIEW, active_recipe_name=name)
        return True

    def cooking_session(self, notifier: Optional[Notifier] = None) -> Optional[CookingSession]:
        recipe = self.state.recipes.get(self.state.active_recipe_name or "")
        if not recipe or not recipe.steps:
            return None
        return CookingSession(recipe, self.state.shopping_list, notifier)

    # ==================== Shopping list ====================

    def _update_shopping_list(self, shopping_list: ShoppingList):
        self._set(shopping_list=shopping_list)
        self._save()

    def _require_shopping_list(self) -> ShoppingList:
        if not self.state.shopping_list:
            raise KeyError("There is no shopping list yet")
        return self.state.shopping_list

    def toggle_shopping_item(self, item_name: str):
        """
        Raises:
            KeyError: If there is no shopping list or no item with that name
        """
        self._update_shopping_list(shopping.toggle_completion(self._require_shopping_list(), item_name))

    def record_purchase(self, item_name: str, quantity: str, price: float):
        self._update_shopping_list(
            shopping.record_partial_purchase(self._require_shopping_list(), item_name, quantity, price)
        )

    def edit_shopping_item(self, item: ShoppingListItem):
        self._update_shopping_list(shopping.update_item(self._require_shopping_list(), item))

    # ==================== Budget ====================

    def record_expense(self, amount: float, category: str = budget_ops.DEFAULT_EXPENSE_CATEGORY):
        if not self.state.budget:
            return
        updated = budget_ops.add_expense(self.state.budget, amount, category)
        if updated is self.state.budget:
            return
        self._set(budget=updated)
        self._save()

    # ==================== Leftovers ====================

    def add_remaining_item(self, name: str, quantity: str, expiry_date: str):
        self._set(remaining_items=leftovers.add_item(self.state.remaining_items, name, quantity, expiry_date))
        self._save()

    def delete_remaining_item(self, item_id: str):
        self._set(remaining_items=leftovers.delete_item(self.state.remaining_items, item_id))
        self._save()

    # ==================== Export / import ====================

    def export_data(self, directory: str = ".") -> Path:
        return export_snapshot(self.state.to_snapshot(), directory)

    def import_data(self, path: str) -> AppState:
        """
        Replace the state with an export file.

        Raises:
            ImportFormatError: If the file is unreadable or incomplete; the
                current state is left untouched
        """
        snapshot = import_snapshot(path)
        self._set(
            api_key=snapshot.api_key,
            app_settings=snapshot.app_settings,
            menu_data=snapshot.menu_data,
            recipes=snapshot.recipes,
            shopping_list=snapshot.shopping_list,
            budget=snapshot.budget,
            remaining_items=snapshot.remaining_items,
            generation_log=[],
            is_loading=False,
            view=MENU_VIEW,
        )
        self._save()
        return self.state
