"""
Generation Pipeline using LangGraph.

Runs the seven generation stages in a fixed order:

    analyze -> menu -> recipes -> images -> shopping_list -> budget -> finalize

Each stage owns a slice of the 0-100 progress range and progress is derived
from that slice, so it never moves backwards. The analyze stage may stop the
run with a clarifying question; answering it restarts the run at analyze.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TypedDict
from urllib.parse import quote

from langgraph.graph import StateGraph, END

from .config import PLACEHOLDER_IMAGE_URL
from .data.models import (
    AppSettings,
    Budget,
    GenerationLogEntry,
    MenuData,
    Recipe,
    ShoppingList,
    strip_leftover_marker,
)
from .errors import InvalidResponseError
from .gateway import AIGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """A named pipeline stage and the progress range it covers."""

    key: str
    title: str
    start: int
    end: int


ANALYZE = Stage("analyze", "Analyzing family settings", 0, 10)
MENU = Stage("menu", "Generating the menu", 10, 20)
RECIPES = Stage("recipes", "Generating recipes", 20, 50)
IMAGES = Stage("images", "Generating images", 50, 65)
SHOPPING_LIST = Stage("shopping_list", "Building the shopping list", 65, 85)
BUDGET = Stage("budget", "Calculating the budget", 85, 95)
FINALIZE = Stage("finalize", "Finishing up", 95, 100)

STAGES = (ANALYZE, MENU, RECIPES, IMAGES, SHOPPING_LIST, BUDGET, FINALIZE)


def stage_number(stage: Stage) -> str:
    return f"Step {STAGES.index(stage) + 1}/{len(STAGES)}"


class ProgressTracker:
    """Progress percentage and append-only generation log for one run."""

    def __init__(self, on_update: Optional[Callable[["ProgressTracker"], None]] = None):
        self.progress = 0
        self.log: List[GenerationLogEntry] = []
        self.on_update = on_update

    def _notify(self):
        if self.on_update:
            self.on_update(self)

    def advance(self, stage: Stage, fraction: float = 1.0) -> int:
        """
        Move progress to `fraction` of the way through `stage`.

        Progress never decreases, and only a completed finalize stage
        reaches 100.
        """
        fraction = min(max(fraction, 0.0), 1.0)
        value = round(stage.start + (stage.end - stage.start) * fraction)
        if stage is not FINALIZE:
            value = min(value, FINALIZE.start)
        self.progress = max(self.progress, value)
        self._notify()
        return self.progress

    def begin(self, title: str, details: Optional[List[str]] = None, preview: Optional[List[str]] = None):
        """Start a new log entry."""
        self.log.append(GenerationLogEntry(title=title, details=list(details or []), preview=list(preview or [])))
        self._notify()

    def add(self, details: Optional[List[str]] = None, preview: Optional[List[str]] = None):
        """Append details and preview lines to the latest log entry."""
        if not self.log:
            return
        entry = self.log[-1]
        entry.details.extend(details or [])
        entry.preview.extend(preview or [])
        self._notify()


class GenerationState(TypedDict):
    """State for the generation workflow."""

    settings: AppSettings
    clarification_answer: str

    # Stage outputs
    analysis: Optional[str]
    question: Optional[str]
    menu: Optional[MenuData]
    recipes: Dict[str, Recipe]
    shopping_list: Optional[ShoppingList]
    budget: Optional[Budget]


# GenerationResult statuses
COMPLETED = "completed"
NEEDS_CLARIFICATION = "needs_clarification"


@dataclass
class GenerationResult:
    """Outcome of a pipeline run: either finished data or a pending question."""

    status: str
    question: Optional[str] = None
    analysis: Optional[str] = None
    menu: Optional[MenuData] = None
    recipes: Dict[str, Recipe] = field(default_factory=dict)
    shopping_list: Optional[ShoppingList] = None
    budget: Optional[Budget] = None

    @property
    def completed(self) -> bool:
        return self.status == COMPLETED


class GenerationPipeline:
    """Single-flight generation run with one possible clarification stop."""

    def __init__(
        self,
        gateway: AIGateway,
        settings: AppSettings,
        step_delay: float = 0.0,
        image_base_url: str = PLACEHOLDER_IMAGE_URL,
        on_update: Optional[Callable[[ProgressTracker], None]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            gateway: AI Gateway used by every stage
            settings: Household settings to generate for
            step_delay: Seconds awaited before each stage and each per-item call
            image_base_url: Placeholder image service; the description is appended
            on_update: Called after every progress or log change
        """
        self.gateway = gateway
        self.settings = settings
        self.step_delay = step_delay
        self.image_base_url = image_base_url
        self.tracker = ProgressTracker(on_update)
        self.pending_question: Optional[str] = None

        self.graph = self._build_graph()

    @property
    def progress(self) -> int:
        return self.tracker.progress

    @property
    def log(self) -> List[GenerationLogEntry]:
        return self.tracker.log

    def _build_graph(self):
        """Build the LangGraph state graph for the generation workflow."""
        workflow = StateGraph(GenerationState)

        workflow.add_node(ANALYZE.key, self._analyze_node)
        workflow.add_node(MENU.key, self._menu_node)
        workflow.add_node(RECIPES.key, self._recipes_node)
        workflow.add_node(IMAGES.key, self._images_node)
        workflow.add_node(SHOPPING_LIST.key, self._shopping_list_node)
        workflow.add_node(BUDGET.key, self._budget_node)
        workflow.add_node(FINALIZE.key, self._finalize_node)

        workflow.set_entry_point(ANALYZE.key)
        workflow.add_conditional_edges(
            ANALYZE.key,
            self._route_after_analysis,
            {"clarify": END, "continue": MENU.key},
        )
        workflow.add_edge(MENU.key, RECIPES.key)
        workflow.add_edge(RECIPES.key, IMAGES.key)
        workflow.add_edge(IMAGES.key, SHOPPING_LIST.key)
        workflow.add_edge(SHOPPING_LIST.key, BUDGET.key)
        workflow.add_edge(BUDGET.key, FINALIZE.key)
        workflow.add_edge(FINALIZE.key, END)

        return workflow.compile()

    async def run(self, clarification_answer: str = "") -> GenerationResult:
        """
        Run the workflow from the analyze stage.

        Any stage failure propagates to the caller; nothing is kept for a
        partial resume.
        """
        initial_state = GenerationState(
            settings=self.settings,
            clarification_answer=clarification_answer,
            analysis=None,
            question=None,
            menu=None,
            recipes={},
            shopping_list=None,
            budget=None,
        )

        final_state = await self.graph.ainvoke(initial_state)

        if final_state.get("question"):
            self.pending_question = final_state["question"]
            return GenerationResult(status=NEEDS_CLARIFICATION, question=self.pending_question)

        return GenerationResult(
            status=COMPLETED,
            analysis=final_state["analysis"],
            menu=final_state["menu"],
            recipes=final_state["recipes"],
            shopping_list=final_state["shopping_list"],
            budget=final_state["budget"],
        )

    async def answer(self, text: str) -> GenerationResult:
        """Answer the pending question and restart at the analyze stage."""
        if not self.pending_question:
            raise ValueError("No clarification question is pending")
        self.pending_question = None
        return await self.run(clarification_answer=text)

    async def _pause(self):
        if self.step_delay > 0:
            await asyncio.sleep(self.step_delay)

    def _route_after_analysis(self, state: GenerationState) -> str:
        return "clarify" if state.get("question") else "continue"

    async def _analyze_node(self, state: GenerationState) -> Dict:
        """LangGraph node: summarize settings or ask a clarifying question."""
        settings = state["settings"]
        await self._pause()
        self.tracker.advance(ANALYZE, 0.5)
        self.tracker.begin(
            f"{stage_number(ANALYZE)}: {ANALYZE.title}...",
            [f"Family of {len(settings.family)}", f"Budget: {settings.budget_amount}"],
        )

        result = await self.gateway.analyze_settings(settings, state["clarification_answer"])
        if result.needs_clarification:
            logger.info("Analysis needs clarification from the user")
            self.tracker.add(["🤔 The AI needs a clarification..."])
            return {"question": result.question}

        self.tracker.add(["✅ Analysis complete."], [result.analysis])
        self.tracker.advance(ANALYZE)
        return {"analysis": result.analysis, "question": None}

    async def _menu_node(self, state: GenerationState) -> Dict:
        """LangGraph node: generate the menu."""
        await self._pause()
        self.tracker.begin(f"{stage_number(MENU)}: {MENU.title}...", ["Building the menu structure from the analysis..."])

        menu = await self.gateway.generate_menu(state["settings"], state["analysis"])
        if not menu.days:
            raise InvalidResponseError("AI returned invalid menu data.")

        preview = [f"- {day.day}: {day.meals.get('lunch', '')}" for day in menu.days[:2]]
        self.tracker.add([f"✅ Generated {len(menu.days)} days."], preview)
        self.tracker.advance(MENU)
        logger.info(f"Generated menu with {len(menu.days)} days")
        return {"menu": menu}

    async def _recipes_node(self, state: GenerationState) -> Dict:
        """LangGraph node: one recipe per distinct non-leftover dish."""
        settings = state["settings"]
        dishes = state["menu"].distinct_dishes()
        restrictions = settings.dietary_constraints()
        self.tracker.begin(f"{stage_number(RECIPES)}: Generating {len(dishes)} recipes...")

        recipes: Dict[str, Recipe] = {}
        for i, dish in enumerate(dishes):
            await self._pause()
            self.tracker.add([f'- Working on: "{dish}"...'])
            recipe = await self.gateway.generate_recipe(dish, restrictions)
            recipes[strip_leftover_marker(dish)] = recipe
            self.tracker.add([f"  ✅ Recipe ready: {len(recipe.ingredients)} ingredients, {len(recipe.steps)} steps"])
            self.tracker.advance(RECIPES, (i + 1) / len(dishes))

        self.tracker.add([f"✅ All {len(dishes)} recipes generated."])
        self.tracker.advance(RECIPES)
        logger.info(f"Generated {len(recipes)} recipes")
        return {"recipes": recipes}

    async def _images_node(self, state: GenerationState) -> Dict:
        """LangGraph node: image descriptions for recipes or for every step."""
        mode = state["settings"].generation.image_generation_mode
        recipes = state["recipes"]

        if mode == "none":
            self.tracker.begin(f"{stage_number(IMAGES)}: Image generation skipped", ["Skipped by the user."])
            self.tracker.advance(IMAGES)
            return {"recipes": recipes}

        if mode == "main":
            items = [(recipe, None) for recipe in recipes.values()]
        else:
            items = [(recipe, step) for recipe in recipes.values() for step in recipe.steps]

        self.tracker.begin(
            f"{stage_number(IMAGES)}: Generating {len(items)} images...",
            [f"Mode: {'main images only' if mode == 'main' else 'every step'}"],
        )

        for i, (recipe, step) in enumerate(items):
            await self._pause()
            if step is None:
                self.tracker.add([f'- Main image for "{recipe.name}"...'])
                description = await self.gateway.generate_image_description(recipe.name, recipe.name)
                if recipe.steps:
                    recipe.steps[0].image_url = self._image_url(description)
            else:
                self.tracker.add([f'- Illustration for "{step.title}"...'])
                description = await self.gateway.generate_image_description(step.description, recipe.name)
                step.image_url = self._image_url(description)
            self.tracker.advance(IMAGES, (i + 1) / len(items))

        self.tracker.add([f"✅ All {len(items)} images generated."])
        self.tracker.advance(IMAGES)
        return {"recipes": recipes}

    async def _shopping_list_node(self, state: GenerationState) -> Dict:
        """LangGraph node: shopping list for all recipes."""
        await self._pause()
        self.tracker.begin(f"{stage_number(SHOPPING_LIST)}: {SHOPPING_LIST.title}...", ["Collecting ingredients..."])

        shopping_list = await self.gateway.generate_shopping_list(list(state["recipes"].keys()), state["settings"])

        self.tracker.add([
            f"✅ List of {len(shopping_list.items)} products.",
            f"Planned: {shopping_list.planned_total_cost}",
        ])
        self.tracker.advance(SHOPPING_LIST)
        return {"shopping_list": shopping_list}

    async def _budget_node(self, state: GenerationState) -> Dict:
        """LangGraph node: household budget from the planned cost."""
        await self._pause()
        planned_cost = state["shopping_list"].planned_total_cost
        self.tracker.begin(f"{stage_number(BUDGET)}: {BUDGET.title}...", [f"Planned cost: {planned_cost}"])

        budget = await self.gateway.generate_budget(planned_cost, state["settings"].budget_amount)

        self.tracker.add([f"✅ Budget ready. Planned remainder: {budget.remaining}"])
        self.tracker.advance(BUDGET)
        return {"budget": budget}

    async def _finalize_node(self, state: GenerationState) -> Dict:
        """LangGraph node: mark the run complete."""
        self.tracker.begin(f"{stage_number(FINALIZE)}: {FINALIZE.title}...", ["Your menu is ready!"])
        self.tracker.advance(FINALIZE)
        return {"budget": state["budget"]}

    def _image_url(self, description: str) -> str:
        return f"{self.image_base_url}{quote(description)}"
