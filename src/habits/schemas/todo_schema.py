"""Схемы Pydantic для задачи."""

from datetime import datetime, timezone

from pydantic import Field, field_validator

from .base_schema import BaseSchema


class TodoSchemaCreate(BaseSchema):
    """Схема для создания задачи."""

    text: str = Field(..., min_length=1, max_length=1000, description="Текст задачи")

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        return value.strip() if isinstance(value, str) else value


class TodoSchemaRead(BaseSchema):
    """Схема задачи, прочитанной из хранилища документов."""

    id: str = Field(..., description="ID задачи")
    owner_id: str = Field(..., description="ID владельца задачи")
    text: str = Field(..., description="Текст задачи")
    completed: bool = Field(default=False, description="Задача выполнена")
    created_at: datetime = Field(..., description="Время создания задачи")

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
