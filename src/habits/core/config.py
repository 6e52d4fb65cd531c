"""Конфигурация слоя данных привычек."""

from pydantic import Field

from src.core_shared.config import AppSettings


class Settings(AppSettings):
    """Основные настройки слоя данных привычек."""

    # --- Хранилище документов ---

    # URL базы данных для SqlAlchemyDocumentStore
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./personal_coach.db",
        description="Асинхронный URL SQLAlchemy (например, sqlite+aiosqlite:///... или postgresql+psycopg://...)",
    )

    # --- Даты и стрики ---

    # Часовой пояс, в котором сравниваются календарные дни
    TIMEZONE: str = Field(default="UTC", description="Часовой пояс пользователя (IANA, например Europe/Berlin)")

    # Окно пересчета стрика. Стрики длиннее окна будут недосчитаны
    STREAK_WINDOW_DAYS: int = Field(default=365, gt=0, description="Глубина выборки выполнений для пересчета стрика")

    # Окно для процента выполнения по умолчанию
    COMPLETION_RATE_WINDOW_DAYS: int = Field(default=30, gt=0, description="Окно расчета процента выполнения")

    # Количество попыток удаления документа привычки после удаления выполнений
    DELETE_RETRY_ATTEMPTS: int = Field(default=3, ge=1, description="Попытки удаления привычки")

    # --- Чат-коуч ---

    # URL облачной функции чат-коуча. Если не задан, используется только локальный коуч
    CHAT_FUNCTION_URL: str | None = Field(default=None, description="URL облачной функции чат-коуча")
    CHAT_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0, description="Таймаут запроса к чат-коучу")
    CHAT_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Количество попыток запроса к чат-коучу")


# Создаем глобальный экземпляр настроек
settings = Settings()
