"""
Family Menu Planner.

Generates a multi-day family menu, recipes, a shopping list and a budget with
an LLM, then keeps that data in a local snapshot for browsing and editing.
"""

__version__ = "0.1.0"
