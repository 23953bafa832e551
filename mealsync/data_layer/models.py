"""Data models for meal plans, days, meals and recipes."""
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class PlanStatus(Enum):
    """Lifecycle status of a meal plan.

    ARCHIVED is assigned by the store to plans displaced by an activation.
    """
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    @classmethod
    def from_string(cls, value: str) -> Optional["PlanStatus"]:
        """Convert a wire string to PlanStatus.

        Args:
            value: Status string from the store

        Returns:
            PlanStatus or None if unknown
        """
        for status in cls:
            if status.value == str(value).strip().lower():
                return status
        return None


@dataclass
class NutritionFacts:
    """Canonical nutrition shape for recipes and meals."""

    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0
    sugar_g: float = 0.0


@dataclass
class Ingredient:
    """An ingredient line of a plan recipe."""

    name: str
    amount: str = ""  # Free text from the store (e.g. "200", "1/2")
    unit: str = ""
    category: str = "other"


@dataclass
class Recipe:
    """Recipe assigned to a meal or offered as an alternative."""

    name: str
    description: str = ""
    nutrition: NutritionFacts = field(default_factory=NutritionFacts)
    ingredients: List[Ingredient] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    recipe_id: Optional[str] = None  # Store reference id; None for inline-only recipes
    prep_time_minutes: Optional[int] = None
    cook_time_minutes: Optional[int] = None
    servings: int = 1


@dataclass
class Meal:
    """A scheduled eating occasion. recipes[0] is the current recipe."""

    meal_id: str
    type: str  # "breakfast", "lunch", "dinner", "snack"
    recipes: List[Recipe] = field(default_factory=list)
    scheduled_time: Optional[str] = None  # HH:MM
    is_completed: bool = False
    total_nutrition: Optional[NutritionFacts] = None
    notes: str = ""

    @property
    def current_recipe(self) -> Optional[Recipe]:
        return self.recipes[0] if self.recipes else None


@dataclass
class Day:
    """One calendar slot of a plan. An explicit date is authoritative."""

    date: Optional[dt.date] = None
    meals: List[Meal] = field(default_factory=list)


@dataclass
class Plan:
    """A meal plan as cached on the client."""

    id: str
    title: str
    status: PlanStatus
    created_at: dt.datetime
    start_date: Optional[dt.date] = None
    days: List[Day] = field(default_factory=list)
    description: str = ""

    @property
    def is_active(self) -> bool:
        return self.status is PlanStatus.ACTIVE


@dataclass(frozen=True)
class RecipeRef:
    """Reference to the recipe an alternative swap should install.

    Exactly one of recipe_id (a store catalogue id) or recipe (an inline,
    plan-ready recipe) must be set.
    """

    recipe_id: Optional[str] = None
    recipe: Optional[Recipe] = None

    def __post_init__(self):
        if (self.recipe_id is None) == (self.recipe is None):
            raise ValueError("RecipeRef needs exactly one of recipe_id or recipe")

    @classmethod
    def for_recipe(cls, recipe: Recipe) -> "RecipeRef":
        """Reference a fetched alternative by id when it has one, else inline."""
        if recipe.recipe_id:
            return cls(recipe_id=recipe.recipe_id)
        return cls(recipe=recipe)
