"""Инициализация модуля схем Pydantic."""

from .base_schema import BaseSchema
from .completion_schema import CompletionSchemaRead
from .habit_schema import HabitSchemaCreate, HabitSchemaRead, HabitSchemaUpdate
from .store_schema import (
    TEMP_ID_PREFIX,
    ChartPoint,
    HabitContext,
    HabitRow,
    HabitStatistics,
    RowState,
    TopHabit,
)
from .todo_schema import TodoSchemaCreate, TodoSchemaRead

__all__ = [
    "BaseSchema",
    "HabitSchemaCreate",
    "HabitSchemaRead",
    "HabitSchemaUpdate",
    "CompletionSchemaRead",
    "TEMP_ID_PREFIX",
    "RowState",
    "HabitRow",
    "HabitStatistics",
    "ChartPoint",
    "TopHabit",
    "HabitContext",
    "TodoSchemaCreate",
    "TodoSchemaRead",
]
