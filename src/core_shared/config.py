"""Общие настройки окружения: метаданные проекта, режим запуска, логирование и Sentry."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Базовые настройки, которые наследуют настройки слоев.

    Значения читаются из переменных окружения и файла `.env`.
    """

    PROJECT_NAME: str = "Personal Coach"
    APP_VERSION: str = "0.1.0"

    # В режиме разработки SQL-запросы пишутся в лог, трейсы Sentry не сэмплируются
    DEVELOPMENT: bool = Field(default=False, description="Режим разработки/тестирования")

    # --- Логирование ---
    LOG_LEVEL: str = Field(default="INFO", description="Минимальный уровень логов Loguru")
    LOG_TO_FILE: bool = Field(default=True, description="Дублировать логи в файл")
    LOG_DIR: str = Field(default="logs", description="Директория файлов логов")

    # --- Sentry ---
    SENTRY_DSN: str | None = Field(default=None, description="Sentry DSN. Если не задан, мониторинг отключен.")

    @property
    def ENVIRONMENT(self) -> str:
        """Имя окружения для Sentry."""
        return "development" if self.DEVELOPMENT else "production"

    @property
    def RELEASE(self) -> str:
        return f"{self.PROJECT_NAME}@{self.APP_VERSION}"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
