"""Data models and local persistence."""

from .models import (
    AppSettings,
    Budget,
    BudgetCategory,
    FamilyMember,
    GenerationLogEntry,
    GenerationParams,
    GenerationSettings,
    MenuData,
    MenuDay,
    Purchase,
    Recipe,
    RecipeStep,
    RemainingItem,
    ShoppingList,
    ShoppingListItem,
    Snapshot,
)
from .database import SnapshotDatabase
