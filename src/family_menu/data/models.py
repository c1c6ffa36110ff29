"""
Data models for the Family Menu Planner.

These models define the core entities used throughout the system:
- AppSettings / FamilyMember: household description and generation preferences
- MenuData / MenuDay: the generated multi-day menu
- Recipe / RecipeStep: recipes keyed by dish name
- ShoppingList / ShoppingListItem / Purchase: planned and actual shopping
- Budget / BudgetCategory: planned vs actual spending
- RemainingItem: leftover products with an expiry date
- Snapshot: everything that is persisted or exported

Python attributes are snake_case; to_dict()/from_dict() use the camelCase keys
of the stored snapshot and the export file.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

ALL_MEAL_SLOTS = ("breakfast", "snack", "lunch", "afternoonSnack", "dinner")
MAIN_MEAL_SLOTS = ("breakfast", "lunch", "dinner")
MEAL_LABELS = {
    "breakfast": "Breakfast",
    "snack": "Snack",
    "lunch": "Lunch",
    "afternoonSnack": "Afternoon snack",
    "dinner": "Dinner",
}

IMAGE_MODES = ("main", "all", "none")
GOALS = ("maintain", "lose", "gain", "health")
ACTIVITY_LEVELS = ("sedentary", "moderate", "active", "very_active")

LEFTOVER_MARKER = "(leftovers)"
_LEFTOVER_RE = re.compile(r"\s*\(leftovers\)", re.IGNORECASE)


def is_leftover(dish: str) -> bool:
    """Check whether a dish string reuses a previously cooked meal."""
    return LEFTOVER_MARKER in dish.lower()


def strip_leftover_marker(dish: str) -> str:
    """Return the recipe key for a dish string (leftover marker removed)."""
    return _LEFTOVER_RE.sub("", dish).strip()


def meal_slots_for(meals_per_day: int) -> tuple:
    """Meal slot names used for a given number of meals per day."""
    return ALL_MEAL_SLOTS if meals_per_day == 5 else MAIN_MEAL_SLOTS


# ==================== Settings ====================


@dataclass
class FamilyMember:
    """A household member the menu is planned for."""

    id: str
    name: str
    age: int = 30
    weight: float = 70
    goal: str = "maintain"
    activity: str = "moderate"
    restrictions: List[str] = field(default_factory=list)
    allergies: str = ""

    def __post_init__(self):
        if self.goal not in GOALS:
            raise ValueError(f"Unknown goal '{self.goal}'. Expected one of {GOALS}")
        if self.activity not in ACTIVITY_LEVELS:
            raise ValueError(f"Unknown activity '{self.activity}'. Expected one of {ACTIVITY_LEVELS}")

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "weight": self.weight,
            "goal": self.goal,
            "activity": self.activity,
            "restrictions": list(self.restrictions),
            "allergies": self.allergies,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "FamilyMember":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            age=data.get("age", 30),
            weight=data.get("weight", 70),
            goal=data.get("goal", "maintain"),
            activity=data.get("activity", "moderate"),
            restrictions=list(data.get("restrictions", [])),
            allergies=data.get("allergies", ""),
        )


@dataclass
class GenerationSettings:
    """Preferences that shape menu generation."""

    avoid_repetition: bool = True
    use_leftovers: bool = True
    minimize_ingredients: bool = True
    prefer_simple: bool = True
    is_seasonal: bool = True
    add_veggie_days: bool = False
    image_generation_mode: str = "main"
    preferred_protein: Optional[str] = None

    def __post_init__(self):
        if self.image_generation_mode not in IMAGE_MODES:
            raise ValueError(
                f"Unknown image mode '{self.image_generation_mode}'. Expected one of {IMAGE_MODES}"
            )

    def to_dict(self) -> Dict:
        data = {
            "avoidRepetition": self.avoid_repetition,
            "useLeftovers": self.use_leftovers,
            "minimizeIngredients": self.minimize_ingredients,
            "preferSimple": self.prefer_simple,
            "isSeasonal": self.is_seasonal,
            "addVeggiDays": self.add_veggie_days,
            "imageGenerationMode": self.image_generation_mode,
        }
        if self.preferred_protein:
            data["preferredProtein"] = self.preferred_protein
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "GenerationSettings":
        return cls(
            avoid_repetition=data.get("avoidRepetition", True),
            use_leftovers=data.get("useLeftovers", True),
            minimize_ingredients=data.get("minimizeIngredients", True),
            prefer_simple=data.get("preferSimple", True),
            is_seasonal=data.get("isSeasonal", True),
            add_veggie_days=data.get("addVeggiDays", False),
            image_generation_mode=data.get("imageGenerationMode", "main"),
            preferred_protein=data.get("preferredProtein"),
        )


@dataclass
class GenerationParams:
    """Quick generation form: a simplified way to describe the household."""

    people: int = 3
    period: int = 7
    protein: str = "Chicken"
    restrictions: List[str] = field(default_factory=list)
    allergies: str = ""
    meals_per_day: int = 5
    image_generation_mode: str = "main"


@dataclass
class AppSettings:
    """Household settings. The main source of truth for generation."""

    family: List[FamilyMember] = field(default_factory=list)
    period: int = 7
    budget_amount: float = 10000
    meals_per_day: int = 5
    generation: GenerationSettings = field(default_factory=GenerationSettings)

    @property
    def meal_slots(self) -> tuple:
        return meal_slots_for(self.meals_per_day)

    def dietary_constraints(self) -> List[str]:
        """Union of all members' restrictions and allergies, in first-seen order."""
        seen = []
        for member in self.family:
            constraints = list(member.restrictions)
            if member.allergies:
                constraints.append(f"allergy: {member.allergies}")
            for constraint in constraints:
                if constraint not in seen:
                    seen.append(constraint)
        return seen

    def apply_params(self, params: GenerationParams) -> "AppSettings":
        """
        Build new settings from the quick generation form.

        The family is replaced by `params.people` default members who all share
        the form's restrictions and allergies.
        """
        family = [
            FamilyMember(
                id=str(i),
                name=f"Person {i + 1}",
                restrictions=list(params.restrictions),
                allergies=params.allergies,
            )
            for i in range(params.people)
        ]
        generation = replace(
            self.generation,
            image_generation_mode=params.image_generation_mode,
            preferred_protein=params.protein or None,
        )

        return AppSettings(
            family=family,
            period=params.period,
            budget_amount=self.budget_amount,
            meals_per_day=params.meals_per_day,
            generation=generation,
        )

    def _member_at(self, index: int) -> FamilyMember:
        if not 0 <= index < len(self.family):
            raise IndexError(f"No family member number {index + 1}")
        return self.family[index]

    def add_member(
        self,
        name: str,
        age: int = 30,
        weight: float = 70,
        goal: str = "maintain",
        activity: str = "moderate",
    ) -> "AppSettings":
        """Return new settings with one more family member."""
        ids = [int(m.id) for m in self.family if m.id.isdigit()]
        member = FamilyMember(
            id=str(max(ids, default=-1) + 1),
            name=name,
            age=age,
            weight=weight,
            goal=goal,
            activity=activity,
        )
        return replace(self, family=self.family + [member])

    def update_member(self, index: int, field_name: str, value: str) -> "AppSettings":
        """
        Return new settings with one member field changed.

        Args:
            index: Position of the member in the family (0-based)
            field_name: name, age, weight, goal, activity, restrictions or allergies
            value: New value as text; restrictions are comma separated

        Raises:
            IndexError: If there is no member at `index`
            ValueError: If the field is unknown or the value is invalid
        """
        member = self._member_at(index)
        if field_name in ("name", "goal", "activity", "allergies"):
            converted: Any = value
        elif field_name == "age":
            converted = int(value)
        elif field_name == "weight":
            converted = float(value)
        elif field_name == "restrictions":
            converted = [r.strip() for r in value.split(",") if r.strip()]
        else:
            raise ValueError(f"Unknown member field '{field_name}'")

        family = list(self.family)
        family[index] = replace(member, **{field_name: converted})
        return replace(self, family=family)

    def remove_member(self, index: int) -> "AppSettings":
        """
        Raises:
            IndexError: If there is no member at `index`
        """
        self._member_at(index)
        return replace(self, family=self.family[:index] + self.family[index + 1:])

    def to_dict(self) -> Dict:
        return {
            "family": [m.to_dict() for m in self.family],
            "period": self.period,
            "budgetAmount": self.budget_amount,
            "mealsPerDay": self.meals_per_day,
            "generation": self.generation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "AppSettings":
        return cls(
            family=[FamilyMember.from_dict(m) for m in data.get("family", [])],
            period=data.get("period", 7),
            budget_amount=data.get("budgetAmount", 10000),
            meals_per_day=data.get("mealsPerDay", 5),
            generation=GenerationSettings.from_dict(data.get("generation", {})),
        )


# ==================== Menu ====================


@dataclass
class MenuDay:
    """One day of the menu: dish strings per meal slot."""

    day: str
    meals: Dict[str, str] = field(default_factory=dict)
    calories: Optional[int] = None

    def dishes(self) -> List[str]:
        """Dish strings in canonical slot order (empty slots skipped)."""
        return [self.meals[slot] for slot in ALL_MEAL_SLOTS if self.meals.get(slot)]

    def to_dict(self) -> Dict:
        data: Dict[str, Any] = {"day": self.day}
        for slot in ALL_MEAL_SLOTS:
            if slot in self.meals:
                data[slot] = self.meals[slot]
        if self.calories is not None:
            data["calories"] = self.calories
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "MenuDay":
        meals = {
            slot: data[slot]
            for slot in ALL_MEAL_SLOTS
            if isinstance(data.get(slot), str) and data[slot]
        }
        calories = data.get("calories")
        return cls(
            day=str(data.get("day", "")),
            meals=meals,
            calories=int(calories) if isinstance(calories, (int, float)) else None,
        )


@dataclass
class MenuData:
    """The generated menu: an ordered list of days."""

    days: List[MenuDay] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.days)

    def distinct_dishes(self) -> List[str]:
        """
        Distinct dishes that need a recipe, in first-appearance order.

        Dishes carrying the leftover marker are skipped: they reuse a meal
        cooked on an earlier day.
        """
        dishes = []
        for day in self.days:
            for dish in day.dishes():
                if is_leftover(dish) or dish in dishes:
                    continue
                dishes.append(dish)
        return dishes

    def to_dict(self) -> Dict:
        return {"menu": [d.to_dict() for d in self.days]}

    @classmethod
    def from_dict(cls, data: Dict) -> "MenuData":
        return cls(days=[MenuDay.from_dict(d) for d in data.get("menu", [])])


# ==================== Recipes ====================


@dataclass
class RecipeStep:
    """A single recipe step, optionally timed (seconds) and illustrated."""

    title: str
    description: str
    time: Optional[int] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict:
        data: Dict[str, Any] = {"title": self.title, "description": self.description}
        if self.time:
            data["time"] = self.time
        if self.image_url:
            data["imageUrl"] = self.image_url
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "RecipeStep":
        # Models sometimes return bare strings for steps
        if isinstance(data, str):
            return cls(title=data, description=data)
        time = data.get("time")
        return cls(
            title=data.get("title", ""),
            description=data.get("description", ""),
            time=int(time) if isinstance(time, (int, float)) and time > 0 else None,
            image_url=data.get("imageUrl"),
        )


@dataclass
class Recipe:
    """Recipe for one dish of the menu."""

    name: str
    ingredients: List[str] = field(default_factory=list)
    steps: List[RecipeStep] = field(default_factory=list)
    calories: Optional[int] = None

    def to_dict(self) -> Dict:
        data: Dict[str, Any] = {
            "name": self.name,
            "ingredients": list(self.ingredients),
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.calories is not None:
            data["calories"] = self.calories
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "Recipe":
        calories = data.get("calories")
        return cls(
            name=data.get("name", ""),
            ingredients=[str(i) for i in data.get("ingredients", [])],
            steps=[RecipeStep.from_dict(s) for s in data.get("steps", [])],
            calories=int(calories) if isinstance(calories, (int, float)) else None,
        )


# ==================== Shopping ====================


@dataclass
class Purchase:
    """A single purchase event for a shopping list item."""

    id: str
    quantity: str
    price: float
    date: str  # ISO format

    def to_dict(self) -> Dict:
        return {"id": self.id, "quantity": self.quantity, "price": self.price, "date": self.date}

    @classmethod
    def from_dict(cls, data: Dict) -> "Purchase":
        return cls(
            id=str(data["id"]),
            quantity=str(data.get("quantity", "")),
            price=float(data.get("price", 0)),
            date=data.get("date", ""),
        )


@dataclass
class ShoppingListItem:
    """A product to buy, with planned values and actual purchase tracking."""

    category: str
    item: str

    # Planned values
    planned_quantity: str = ""
    planned_price: float = 0

    # Actual tracking
    purchased_quantity: float = 0
    purchased_price: float = 0

    # Partial buys
    is_partial: bool = False
    min_qty: Optional[str] = None

    purchases: List[Purchase] = field(default_factory=list)
    is_completed: bool = False

    def to_dict(self) -> Dict:
        data = {
            "category": self.category,
            "item": self.item,
            "plannedQuantity": self.planned_quantity,
            "plannedPrice": self.planned_price,
            "purchasedQuantity": self.purchased_quantity,
            "purchasedPrice": self.purchased_price,
            "isPartial": self.is_partial,
            "purchases": [p.to_dict() for p in self.purchases],
            "isCompleted": self.is_completed,
        }
        if self.min_qty:
            data["minQty"] = self.min_qty
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "ShoppingListItem":
        return cls(
            category=data.get("category", "Other"),
            item=data["item"],
            planned_quantity=str(data.get("plannedQuantity", "")),
            planned_price=float(data.get("plannedPrice") or 0),
            purchased_quantity=float(data.get("purchasedQuantity") or 0),
            purchased_price=float(data.get("purchasedPrice") or 0),
            is_partial=bool(data.get("isPartial", False)),
            min_qty=data.get("minQty"),
            purchases=[Purchase.from_dict(p) for p in data.get("purchases", [])],
            is_completed=bool(data.get("isCompleted", False)),
        )


@dataclass
class ShoppingList:
    """Shopping list for the whole planning period."""

    items: List[ShoppingListItem] = field(default_factory=list)
    planned_total_cost: float = 0
    actual_total_cost: float = 0

    def find(self, item_name: str) -> Optional[ShoppingListItem]:
        for item in self.items:
            if item.item == item_name:
                return item
        return None

    def to_dict(self) -> Dict:
        return {
            "shoppingList": [i.to_dict() for i in self.items],
            "plannedTotalCost": self.planned_total_cost,
            "actualTotalCost": self.actual_total_cost,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ShoppingList":
        return cls(
            items=[ShoppingListItem.from_dict(i) for i in data.get("shoppingList", [])],
            planned_total_cost=float(data.get("plannedTotalCost") or 0),
            actual_total_cost=float(data.get("actualTotalCost") or 0),
        )


# ==================== Budget ====================


@dataclass
class BudgetCategory:
    name: str
    planned_amount: float = 0
    actual_amount: float = 0

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "plannedAmount": self.planned_amount,
            "actualAmount": self.actual_amount,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "BudgetCategory":
        return cls(
            name=data["name"],
            planned_amount=float(data.get("plannedAmount") or 0),
            actual_amount=float(data.get("actualAmount") or 0),
        )


@dataclass
class Budget:
    """Household budget: planned vs actual spending."""

    total: float
    planned_spent: float = 0
    actual_spent: float = 0
    remaining: float = 0
    savings: float = 0
    categories: List[BudgetCategory] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "plannedSpent": self.planned_spent,
            "actualSpent": self.actual_spent,
            "remaining": self.remaining,
            "savings": self.savings,
            "categories": [c.to_dict() for c in self.categories],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Budget":
        return cls(
            total=float(data.get("total") or 0),
            planned_spent=float(data.get("plannedSpent") or 0),
            actual_spent=float(data.get("actualSpent") or 0),
            remaining=float(data.get("remaining") or 0),
            savings=float(data.get("savings") or 0),
            categories=[BudgetCategory.from_dict(c) for c in data.get("categories", [])],
        )


# ==================== Leftovers ====================


@dataclass
class RemainingItem:
    """A leftover product tracked until its expiry date."""

    id: str
    name: str
    quantity: str
    expiry_date: str  # ISO format: "2025-01-20"
    source: str = ""

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "expiryDate": self.expiry_date,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RemainingItem":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            quantity=data.get("quantity", ""),
            expiry_date=data["expiryDate"],
            source=data.get("source", ""),
        )


# ==================== Generation log ====================


@dataclass
class GenerationLogEntry:
    """One narrated step of a generation run."""

    title: str
    details: List[str] = field(default_factory=list)
    preview: List[str] = field(default_factory=list)


# ==================== Snapshot ====================


@dataclass
class Snapshot:
    """Everything that is persisted locally or written to an export file."""

    api_key: Optional[str] = None
    app_settings: AppSettings = field(default_factory=AppSettings)
    menu_data: Optional[MenuData] = None
    recipes: Dict[str, Recipe] = field(default_factory=dict)
    shopping_list: Optional[ShoppingList] = None
    budget: Optional[Budget] = None
    remaining_items: List[RemainingItem] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "apiKey": self.api_key,
            "appSettings": self.app_settings.to_dict(),
            "menuData": self.menu_data.to_dict() if self.menu_data else None,
            "recipes": {name: r.to_dict() for name, r in self.recipes.items()},
            "shoppingList": self.shopping_list.to_dict() if self.shopping_list else None,
            "budget": self.budget.to_dict() if self.budget else None,
            "remainingItems": [i.to_dict() for i in self.remaining_items],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Snapshot":
        return cls(
            api_key=data.get("apiKey"),
            app_settings=AppSettings.from_dict(data["appSettings"]) if data.get("appSettings") else AppSettings(),
            menu_data=MenuData.from_dict(data["menuData"]) if data.get("menuData") else None,
            recipes={name: Recipe.from_dict(r) for name, r in (data.get("recipes") or {}).items()},
            shopping_list=ShoppingList.from_dict(data["shoppingList"]) if data.get("shoppingList") else None,
            budget=Budget.from_dict(data["budget"]) if data.get("budget") else None,
            remaining_items=[RemainingItem.from_dict(i) for i in data.get("remainingItems") or []],
        )
