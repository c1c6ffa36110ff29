"""
Step-by-step cooking mode for a recipe.

Tracks the active step, runs a countdown for timed steps and sends a
best-effort notification when a countdown ends.
"""

import logging
from typing import Callable, List, Optional, Tuple

from .data.models import Recipe, RecipeStep, ShoppingList
from . import shopping

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


def format_time(seconds: int) -> str:
    """Format seconds as mm:ss."""
    seconds = max(int(seconds), 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class CookingSession:
    """Cooking-mode state for one recipe."""

    def __init__(
        self,
        recipe: Recipe,
        shopping_list: Optional[ShoppingList] = None,
        notifier: Optional[Notifier] = None,
    ):
        """
        Start cooking a recipe.

        Args:
            recipe: Recipe to cook (must have at least one step)
            shopping_list: Used to check which ingredients are bought
            notifier: Called with (title, body) when a step timer ends
        """
        if not recipe.steps:
            raise ValueError(f"Recipe '{recipe.name}' has no steps")
        self.recipe = recipe
        self.shopping_list = shopping_list
        self.notifier = notifier

        self.active_step_index = 0
        self.time_left = self.active_step.time or 0
        self.timer_running = False
        self.finished = False

    @property
    def active_step(self) -> RecipeStep:
        return self.recipe.steps[self.active_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.active_step_index == len(self.recipe.steps) - 1

    def missing_ingredients(self) -> List[str]:
        return shopping.missing_ingredients(self.recipe, self.shopping_list)

    def ingredient_statuses(self) -> List[Tuple[str, str]]:
        return [
            (ingredient, shopping.ingredient_status(ingredient, self.shopping_list))
            for ingredient in self.recipe.ingredients
        ]

    def _enter_step(self, index: int):
        self.active_step_index = index
        self.time_left = self.active_step.time or 0
        self.timer_running = False

    def next_step(self) -> bool:
        """
        Advance to the next step.

        Returns:
            True when the recipe was already on its last step (cooking done)
        """
        if self.is_last_step:
            self.finished = True
            self.timer_running = False
            return True
        self._enter_step(self.active_step_index + 1)
        return False

    def prev_step(self):
        self._enter_step(max(self.active_step_index - 1, 0))

    def toggle_timer(self):
        if not self.active_step.time:
            return
        self.timer_running = not self.timer_running

    def reset_timer(self):
        self.timer_running = False
        self.time_left = self.active_step.time or 0

    def tick(self, seconds: int = 1):
        """Advance a running countdown; notifies when it reaches zero."""
        if not self.timer_running:
            return
        self.time_left = max(self.time_left - seconds, 0)
        if self.time_left == 0:
            self.timer_running = False
            self._notify_step_finished()

    def _notify_step_finished(self):
        if not self.notifier:
            return
        title = f'⏱️ Step "{self.active_step.title}" finished!'
        body = f'Time to move on to the next step of "{self.recipe.name}".'
        try:
            self.notifier(title, body)
        except Exception as e:
            # Notifications are optional; cooking continues without them
            logger.debug(f"Notification not shown: {e}")
