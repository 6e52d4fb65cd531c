"""Модуль вспомогательных утилит для работы с датами/таймзонами."""

from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.habits.core.logging import habits_log as log


def resolve_timezone(timezone_name: str | None) -> tzinfo:
    """
    Возвращает объект часового пояса по IANA-имени.

    Если имя пустое или некорректное, используется UTC.

    Args:
        timezone_name (str | None): Имя часового пояса (например, "Europe/Berlin").

    Returns:
        tzinfo: Объект часового пояса.
    """
    if not timezone_name:
        return ZoneInfo("UTC")

    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        # Если записана несуществующая таймзона (например, опечатка),
        # не роняем расчет, а логируем проблему и откатываемся к UTC
        log.warning(f"Некорректный часовой пояс '{timezone_name}'. Используется UTC по умолчанию.")
        return ZoneInfo("UTC")


def get_today_date(timezone_name: str | None) -> date:
    """
    Вычисляет текущую дату ("сегодня") с учетом часового пояса пользователя.

    Args:
        timezone_name (str | None): Имя часового пояса пользователя.

    Returns:
        date: Объект даты, соответствующий "сегодня" для пользователя.
    """
    # Метод astimezone() сохраняет абсолютный момент времени,
    # но пересчитывает календарные атрибуты под смещение таймзоны
    return datetime.now(timezone.utc).astimezone(resolve_timezone(timezone_name)).date()


def normalize_day(value: date | datetime | str, tz: tzinfo | None = None) -> date:
    """
    Приводит значение к календарному дню.

    Время суток для логики стриков не важно: aware datetime переводится в часовой пояс `tz`
    и усекается до даты, naive datetime считается уже локальным.

    Args:
        value (date | datetime | str): Дата, момент времени или ISO-строка.
        tz (tzinfo | None): Часовой пояс пользователя. По умолчанию UTC.

    Returns:
        date: Календарный день.

    Raises:
        TypeError: Если значение нельзя интерпретировать как дату.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value) if "T" in value or " " in value else date.fromisoformat(value)

    # datetime является подклассом date, поэтому проверяем его первым
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(tz or timezone.utc).date()
        return value.date()

    if isinstance(value, date):
        return value

    raise TypeError(f"Невозможно привести значение типа {type(value).__name__} к дате.")


def day_range(end: date, window_days: int) -> tuple[date, date]:
    """
    Возвращает границы окна из `window_days` дней, заканчивающегося днем `end` (включительно).

    Args:
        end (date): Последний день окна.
        window_days (int): Размер окна в днях.

    Returns:
        tuple[date, date]: Первый и последний день окна.
    """
    return end - timedelta(days=window_days - 1), end
