"""
Models Package

Exports all database models and the db instance for use throughout the application.
"""

from .base import db, new_id, JSONText

from .user import User, ROLE_ADMIN, ROLE_USER, ROLE_READONLY
from .collection import Collection
from .recipe import Recipe, RecipeImage
from .mealplan import MealPlanEntry
from .settings import Setting
from .audit import AuditLog
from .session import UserSession

__all__ = [
    'db',
    'new_id',
    'JSONText',
    'User',
    'ROLE_ADMIN',
    'ROLE_USER',
    'ROLE_READONLY',
    'Collection',
    'Recipe',
    'RecipeImage',
    'MealPlanEntry',
    'Setting',
    'AuditLog',
    'UserSession',
]
