"""Схемы Pydantic для состояния хранилища привычек и производных данных."""

from datetime import date
from enum import Enum

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base_schema import BaseSchema
from .habit_schema import HabitSchemaRead

# Префикс временного ID для строки, созданной оптимистично до ответа хранилища
TEMP_ID_PREFIX = "temp-"


class RowState(str, Enum):
    """Состояние строки привычки в хранилище состояния."""

    IDLE = "idle"  # Нет незавершенных операций
    PENDING = "pending"  # Оптимистичная мутация ожидает ответа хранилища


class HabitRow(HabitSchemaRead):
    """
    Строка привычки в клиентском представлении.

    Attributes:
        streak: Текущий стрик (оптимистичный или подтвержденный).
        completed_today: Выполнена ли привычка сегодня.
        state: Состояние строки (IDLE/PENDING).
        is_stale: Данные о стрике не удалось подтвердить, отображаемое значение может быть устаревшим.
    """

    model_config = ConfigDict(frozen=True)

    streak: int = Field(default=0, ge=0, description="Текущий стрик")
    completed_today: bool = Field(default=False, description="Выполнена ли привычка сегодня")
    state: RowState = Field(default=RowState.IDLE, description="Состояние строки")
    is_stale: bool = Field(default=False, description="Стрик не подтвержден хранилищем")

    @property
    def is_loading(self) -> bool:
        """Строка находится в состоянии незавершенной оптимистичной мутации."""
        return self.state is RowState.PENDING

    @property
    def is_provisional(self) -> bool:
        """Строка создана оптимистично и еще не получила настоящий ID."""
        return self.id.startswith(TEMP_ID_PREFIX)


class HabitStatistics(BaseSchema):
    """Статистика привычки, посчитанная по журналу выполнений."""

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    completion_rate: int = Field(default=0, ge=0, le=100, description="Процент выполнения в окне")
    total_completions: int = Field(default=0, ge=0, description="Количество дней с выполнением в выборке")
    last_completed_date: date | None = None


class ChartPoint(BaseSchema):
    """Точка данных для графиков."""

    x: str | int
    y: int


class TopHabit(BaseSchema):
    """Привычка с активным стриком для контекста чат-коуча."""

    name: str
    streak: int


class HabitContext(BaseSchema):
    """
    Контекст привычек пользователя, передаваемый в чат-коуч.

    Сериализуется в camelCase (totalHabits, completedToday, progressPercentage, topHabits),
    форму ожидает облачная функция.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    total_habits: int = 0
    completed_today: int = 0
    progress_percentage: int = 0
    top_habits: list[TopHabit] = Field(default_factory=list)
