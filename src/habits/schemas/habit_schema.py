"""Схемы Pydantic для привычки."""

from datetime import date, datetime, timezone

from pydantic import ConfigDict, Field, field_validator

from .base_schema import BaseSchema


def _strip_name(value: str | None) -> str | None:
    # Название из одних пробелов считается пустым
    return value.strip() if isinstance(value, str) else value


class HabitSchemaCreate(BaseSchema):
    """Схема для создания новой привычки."""

    name: str = Field(..., min_length=1, max_length=255, description="Название привычки")
    description: str | None = Field(None, description="Описание привычки (может отсутствовать)")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        return _strip_name(value)


class HabitSchemaUpdate(BaseSchema):
    """
    Схема для обновления существующей привычки.

    Все поля опциональны. Идентификатор, владелец, дата создания и кэш стрика
    через эту схему не меняются: лишние поля запрещены.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1, max_length=255, description="Новое название привычки")
    description: str | None = Field(None, description="Новое описание привычки")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        return _strip_name(value)


class HabitSchemaRead(BaseSchema):
    """Схема привычки, прочитанной из хранилища документов."""

    id: str = Field(..., description="ID привычки")
    owner_id: str = Field(..., description="ID владельца привычки")
    name: str = Field(..., description="Название привычки")
    description: str | None = Field(None, description="Описание привычки")
    created_at: datetime = Field(..., description="Время создания привычки")
    cached_streak: int = Field(default=0, ge=0, description="Кэшированный текущий стрик (не источник истины)")
    last_completed_date: date | None = Field(None, description="День последнего выполнения")

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        # SQLite возвращает naive datetime, время создания хранится в UTC
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
