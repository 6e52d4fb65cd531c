"""
Расчет стриков и процента выполнения привычки.

Все функции чистые: на вход получают набор дат выполнения и опорный день,
не обращаются к хранилищу и не зависят от текущего времени.
"""

from datetime import date, datetime, timedelta, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from src.habits.core.exceptions import ValidationError
from src.habits.schemas import HabitStatistics
from src.habits.utils.date_utils import day_range, normalize_day

CompletionInput = Iterable[date | datetime | str]


def to_percentage(part: int, total: int) -> int:
    """
    Процент `part` от `total`, округленный до целого (половина вверх). 0, если `total` не положителен.
    """
    if total <= 0:
        return 0

    # round() в Python округляет половину к четному, здесь нужна арифметика "половина вверх"
    rate = Decimal(part * 100) / Decimal(total)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_day_set(completions: CompletionInput, tz: tzinfo | None = None) -> set[date]:
    """
    Приводит выполнения к множеству календарных дней.

    Повторная запись за один день (например, двойная отправка) схлопывается.

    Args:
        completions (CompletionInput): Даты, моменты времени или ISO-строки выполнений.
        tz (tzinfo | None): Часовой пояс пользователя.

    Returns:
        set[date]: Множество дней с выполнением.
    """
    return {normalize_day(value, tz) for value in completions}


def compute_current_streak(completions: CompletionInput, as_of: date, tz: tzinfo | None = None) -> int:
    """
    Считает текущий стрик на день `as_of`.

    Если привычка еще не выполнена в `as_of`, стрик не считается прерванным:
    отсчет начинается со вчерашнего дня.

    Args:
        completions (CompletionInput): Выполнения привычки.
        as_of (date): Опорный день ("сегодня").
        tz (tzinfo | None): Часовой пояс пользователя.

    Returns:
        int: Количество подряд идущих дней, заканчивающихся в `as_of` или `as_of - 1`.
    """
    days = to_day_set(completions, tz)
    if not days:
        return 0

    # Сегодня еще можно успеть выполнить привычку
    cursor = as_of if as_of in days else as_of - timedelta(days=1)

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)

    return streak


def compute_longest_streak(completions: CompletionInput, tz: tzinfo | None = None) -> int:
    """
    Считает самую длинную серию подряд идущих дней.

    Args:
        completions (CompletionInput): Выполнения привычки.
        tz (tzinfo | None): Часовой пояс пользователя.

    Returns:
        int: Длина самой длинной серии (0 для пустого набора).
    """
    days = to_day_set(completions, tz)

    longest = 0
    for day in days:
        # Считаем только от начала серии, чтобы каждая серия обходилась один раз
        if day - timedelta(days=1) in days:
            continue

        length = 1
        while day + timedelta(days=length) in days:
            length += 1
        longest = max(longest, length)

    return longest


def compute_completion_rate(
    completions: CompletionInput, window_days: int, as_of: date, tz: tzinfo | None = None
) -> int:
    """
    Считает процент дней с выполнением в окне `[as_of - window_days + 1, as_of]`.

    Args:
        completions (CompletionInput): Выполнения привычки.
        window_days (int): Размер окна в днях.
        as_of (date): Последний день окна.
        tz (tzinfo | None): Часовой пояс пользователя.

    Returns:
        int: Процент (0-100), округленный до целого, половина округляется вверх.

    Raises:
        ValidationError: Если размер окна не положительный.
    """
    if window_days <= 0:
        raise ValidationError(
            message=f"Размер окна должен быть положительным, получено: {window_days}.",
            error_type="invalid_window",
        )

    start, end = day_range(as_of, window_days)
    completed_in_window = sum(1 for day in to_day_set(completions, tz) if start <= day <= end)

    return to_percentage(completed_in_window, window_days)


def compute_habit_statistics(
    completions: CompletionInput, window_days: int, as_of: date, tz: tzinfo | None = None
) -> HabitStatistics:
    """
    Собирает статистику привычки: текущий и лучший стрик, процент выполнения, общее число дней.

    Args:
        completions (CompletionInput): Выполнения привычки.
        window_days (int): Окно для процента выполнения.
        as_of (date): Опорный день.
        tz (tzinfo | None): Часовой пояс пользователя.

    Returns:
        HabitStatistics: Статистика привычки.
    """
    days = to_day_set(completions, tz)

    return HabitStatistics(
        current_streak=compute_current_streak(days, as_of),
        longest_streak=compute_longest_streak(days),
        completion_rate=compute_completion_rate(days, window_days, as_of),
        total_completions=len(days),
        last_completed_date=max(days) if days else None,
    )
