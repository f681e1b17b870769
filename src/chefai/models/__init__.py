"""Pydantic models for the analysis pipeline."""

from .analysis import AnalysisResult, AnalysisSnapshot, AnalysisStatus
from .ingredient import Ingredient, IngredientCategory, NutritionInfo, manual_ingredient
from .job import Job, JobsSnapshot, JobStatus
from .profile import (
    DietaryRestriction,
    MainGoal,
    SkillLevel,
    TimeAvailability,
    UserProfile,
)
from .recipe import DifficultyLevel, Recipe, RecipeIngredient, RecipeSource, RecipeStep

__all__ = [
    # Analysis
    "AnalysisResult",
    "AnalysisSnapshot",
    "AnalysisStatus",
    # Ingredients
    "Ingredient",
    "IngredientCategory",
    "NutritionInfo",
    "manual_ingredient",
    # Jobs
    "Job",
    "JobsSnapshot",
    "JobStatus",
    # Profile
    "DietaryRestriction",
    "MainGoal",
    "SkillLevel",
    "TimeAvailability",
    "UserProfile",
    # Recipes
    "DifficultyLevel",
    "Recipe",
    "RecipeIngredient",
    "RecipeSource",
    "RecipeStep",
]
