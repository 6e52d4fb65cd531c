"""Инициализация модуля репозиториев."""

from .habit_repository import (
    COMPLETIONS_COLLECTION,
    HABITS_COLLECTION,
    HabitRepository,
    validate_habit_create,
    validate_habit_patch,
)
from .todo_repository import TODOS_COLLECTION, TodoRepository

__all__ = [
    "HABITS_COLLECTION",
    "COMPLETIONS_COLLECTION",
    "TODOS_COLLECTION",
    "HabitRepository",
    "TodoRepository",
    "validate_habit_create",
    "validate_habit_patch",
]
