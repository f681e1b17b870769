"""ChefAI analysis pipeline: photos in, ingredients and recipes out."""

__version__ = "0.1.0"
