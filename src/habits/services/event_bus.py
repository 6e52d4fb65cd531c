"""Типизированная шина событий для сигналов между компонентами."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, TypeVar

from src.habits.core.logging import habits_log as log


class NotificationLevel(str, Enum):
    """Уровень уведомления."""

    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class NotificationEvent:
    """
    Временное уведомление для пользователя (например, об откате оптимистичного изменения).

    Attributes:
        message (str): Текст уведомления.
        level (NotificationLevel): Уровень уведомления.
        error_type (str | None): Машинный тип ошибки, если уведомление об ошибке.
        habit_id (str | None): Привычка, к которой относится уведомление.
        created_at (datetime): Время создания уведомления.
    """

    message: str
    level: NotificationLevel = NotificationLevel.ERROR
    error_type: str | None = None
    habit_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class AddHabitRequested:
    """Запрос на открытие диалога добавления привычки (например, из чата или пустого списка)."""

    suggested_name: str | None = None


EventType = TypeVar("EventType")


class EventBus:
    """
    Синхронная шина событий.

    Обработчики вызываются в порядке подписки. Ошибка обработчика логируется
    и не мешает остальным обработчикам.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[EventType], handler: Callable[[EventType], None]) -> Callable[[], None]:
        """
        Подписывает обработчик на события указанного типа.

        Args:
            event_type (type[EventType]): Класс события.
            handler (Callable[[EventType], None]): Обработчик.

        Returns:
            Callable[[], None]: Функция отписки (повторный вызов безопасен).
        """
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: object) -> int:
        """
        Публикует событие всем подписчикам его типа.

        Args:
            event (object): Событие.

        Returns:
            int: Количество обработчиков, успешно получивших событие.
        """
        delivered = 0

        for handler in list(self._handlers.get(type(event), [])):
            try:
                handler(event)
            except Exception as exc:
                log.exception(f"Ошибка обработчика события {type(event).__name__}: {exc}")
                continue
            delivered += 1

        log.debug(f"Событие {type(event).__name__} доставлено обработчикам: {delivered}.")
        return delivered
