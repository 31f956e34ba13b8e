"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import ItemKind, MovementKind
from .item import Item
from .movement import Movement, MovementComponent
from .recipe import RecipeComponent

__all__ = [
    "Base",
    "BaseModel",
    "ItemKind",
    "MovementKind",
    "Item",
    "Movement",
    "MovementComponent",
    "RecipeComponent",
]
