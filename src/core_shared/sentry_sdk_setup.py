"""Подключение Sentry SDK."""

from logging import ERROR, INFO
from typing import Protocol

import sentry_sdk
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.loguru import LoguruIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from .logging_setup import setup_logger


class SentrySettingsProtocol(Protocol):
    """Настройки, которые нужны для инициализации Sentry."""

    SENTRY_DSN: str | None
    DEVELOPMENT: bool
    ENVIRONMENT: str
    RELEASE: str


def setup_sentry(settings: SentrySettingsProtocol, log_level: str) -> bool:
    """
    Инициализирует Sentry SDK, если задан DSN.

    Ошибки хранилища (SQLAlchemy), запросы к облачной функции чат-коуча (httpx)
    и записи Loguru уровня ERROR и выше уходят в Sentry как события, записи INFO и выше
    прикрепляются к ним как breadcrumbs.

    Args:
        settings (SentrySettingsProtocol): Настройки приложения.
        log_level (str): Уровень логирования для логгера настройки.

    Returns:
        bool: True, если Sentry SDK инициализирован.
    """
    sentry_log = setup_logger(service_name="SentrySetup", log_level_override=log_level)

    if not settings.SENTRY_DSN:
        sentry_log.info("SENTRY_DSN не задан, мониторинг отключен.")
        return False

    traces_sample_rate = 1.0 if settings.DEVELOPMENT else 0.1

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[
                SqlalchemyIntegration(),
                HttpxIntegration(),
                LoguruIntegration(level=INFO, event_level=ERROR),
            ],
            environment=settings.ENVIRONMENT,
            release=settings.RELEASE,
            traces_sample_rate=traces_sample_rate,
        )
    except Exception as exc:
        # Мониторинг не должен мешать запуску
        sentry_log.exception(f"Не удалось инициализировать Sentry SDK: {exc}")
        return False

    sentry_log.info(
        f"Sentry SDK инициализирован: окружение {settings.ENVIRONMENT}, релиз {settings.RELEASE}, "
        f"трейсы {traces_sample_rate:.0%}."
    )
    return True
