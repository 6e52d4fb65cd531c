"""Логгер слоя данных привычек."""

from src.core_shared.logging_setup import LogConfig, setup_logger

from .config import settings

habits_log = setup_logger(
    service_name="Habits",
    log_config=LogConfig(log_dir=settings.LOG_DIR, enable_file_logging=settings.LOG_TO_FILE),
    log_level_override=settings.LOG_LEVEL,
)
