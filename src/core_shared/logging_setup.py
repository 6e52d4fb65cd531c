"""Настройка Loguru для слоев приложения."""

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger as global_loguru_logger
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from loguru import Logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[service_name]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[service_name]} | {name}:{line} - {message}"


class LogConfig(BaseModel):
    """
    Параметры логирования слоя.

    Attributes:
        level: Минимальный уровень записей.
        log_dir: Директория файлов логов. Файл называется `<service_name>_<дата>.log`.
        enable_file_logging: Писать ли логи в файл помимо stderr.
        rotation: Условие ротации файла.
        retention: Срок хранения старых файлов.
        serialize: Писать записи в JSON.
    """

    level: str = "INFO"
    log_dir: str = "logs"
    enable_file_logging: bool = True
    rotation: str = Field(default="10 MB", description="Ротация лог-файлов по размеру")
    retention: str = Field(default="7 days", description="Время хранения лог-файлов")
    serialize: bool = False

    def file_path(self, service_name: str) -> Path:
        return Path(self.log_dir) / f"{service_name.lower()}_{{time:YYYY-MM-DD}}.log"


def _add_file_sink(service_logger: "Logger", config: LogConfig, service_name: str) -> None:
    """Подключает файловый обработчик. Без директории логов остается только stderr."""
    path = config.file_path(service_name)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        service_logger.warning(f"Логи '{service_name}' не будут писаться в файл: директория {path.parent} - {exc}")
        return

    service_logger.add(
        str(path),
        level=config.level,
        format=FILE_FORMAT,
        rotation=config.rotation,
        retention=config.retention,
        serialize=config.serialize,
        encoding="utf-8",
    )


def setup_logger(
    service_name: str,
    log_config: LogConfig | None = None,
    log_level_override: str | None = None,
) -> "Logger":
    """
    Настраивает Loguru и возвращает логгер, привязанный к имени слоя.

    Обработчики Loguru глобальные, поэтому предыдущие обработчики удаляются:
    повторный вызов (например, из тестов) не дублирует записи.

    Args:
        service_name: Имя слоя, попадает в каждую запись как `extra[service_name]`.
        log_config: Параметры логирования. По умолчанию `LogConfig()`.
        log_level_override: Уровень, заменяющий `log_config.level`.

    Returns:
        Logger: Логгер Loguru с привязанным `service_name`.
    """
    config = log_config or LogConfig()
    level = (log_level_override or config.level).upper()
    config = config.model_copy(update={"level": level})

    global_loguru_logger.remove()
    service_logger = global_loguru_logger.bind(service_name=service_name)

    service_logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True, serialize=config.serialize)

    if config.enable_file_logging:
        _add_file_sink(service_logger, config, service_name)

    service_logger.debug(f"Логирование '{service_name}' настроено, уровень {level}.")
    return service_logger


__all__ = ["setup_logger", "LogConfig"]
