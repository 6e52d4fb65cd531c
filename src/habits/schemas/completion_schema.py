"""Схемы Pydantic для записи о выполнении привычки."""

from datetime import date

from pydantic import Field

from .base_schema import BaseSchema


class CompletionSchemaRead(BaseSchema):
    """Факт "привычка X выполнена в день Y"."""

    id: str = Field(..., description="ID записи о выполнении")
    habit_id: str = Field(..., description="ID привычки, к которой относится выполнение")
    owner_id: str = Field(..., description="ID владельца (совпадает с владельцем привычки)")
    completed_at: date = Field(..., description="Календарный день выполнения")
