"""Журнал выполнений привычки: ограниченная выборка дат для расчета стриков."""

from dataclasses import dataclass
from datetime import date, timedelta

from src.habits.core.config import settings
from src.habits.core.exceptions import AuthError, ValidationError
from src.habits.core.logging import habits_log as log
from src.habits.repositories import HabitRepository
from src.habits.utils.date_utils import day_range

from .auth import AuthProvider
from .streak_calculator import compute_current_streak


@dataclass(frozen=True)
class StreakSnapshot:
    """
    Подтвержденное хранилищем состояние стрика привычки.

    Attributes:
        habit_id (str): ID привычки.
        streak (int): Текущий стрик.
        completed_today (bool): Выполнена ли привычка сегодня.
        as_of (date): День расчета.
        window_start (date): Первый день окна выборки.
        window_days (int): Размер окна выборки.
        window_saturated (bool): Серия доходит до начала окна и может быть недосчитана.
    """

    habit_id: str
    streak: int
    completed_today: bool
    as_of: date
    window_start: date
    window_days: int
    window_saturated: bool


class CompletionLog:
    """
    Доступ к выполнениям привычки текущего владельца в виде множества дней.

    Все выборки ограничены окном, заканчивающимся сегодняшним днем.
    Ошибки хранилища передаются вызывающему коду как BackendError.
    """

    def __init__(self, repository: HabitRepository, auth: AuthProvider, default_window_days: int | None = None):
        self.repository = repository
        self.auth = auth
        self.default_window_days = default_window_days or settings.STREAK_WINDOW_DAYS

    def _owner_id(self) -> str:
        owner_id = self.auth.current_owner_id
        if not owner_id:
            raise AuthError(message="Пользователь не аутентифицирован.")
        return owner_id

    async def get_completion_dates(
        self, habit_id: str, window_days: int | None = None, as_of: date | None = None
    ) -> set[date]:
        """
        Возвращает дни выполнения привычки за последние `window_days` дней.

        Args:
            habit_id (str): ID привычки.
            window_days (int | None): Размер окна. По умолчанию окно пересчета стрика.
            as_of (date | None): Последний день окна. По умолчанию сегодня.

        Returns:
            set[date]: Дни с выполнением.

        Raises:
            ValidationError: Если размер окна не положительный.
            AuthError: Если нет аутентифицированного владельца.
            BackendError: Если выборку не удалось получить.
        """
        window_days = self.default_window_days if window_days is None else window_days
        if window_days <= 0:
            raise ValidationError(message=f"Размер окна должен быть положительным, получено: {window_days}.")

        start, end = day_range(as_of or self.repository.today(), window_days)
        completions = await self.repository.query_completions(habit_id, self._owner_id(), start, end)

        return {completion.completed_at for completion in completions}

    async def get_streak_snapshot(self, habit_id: str, window_days: int | None = None) -> StreakSnapshot:
        """
        Считает подтвержденный стрик привычки по свежей выборке.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            BackendError: Если выборку не удалось получить.
        """
        window_days = self.default_window_days if window_days is None else window_days
        today = self.repository.today()
        window_start, _ = day_range(today, window_days)

        days = await self.get_completion_dates(habit_id, window_days, as_of=today)
        streak = compute_current_streak(days, today)
        completed_today = today in days

        # Первый день серии: от сегодня или от вчера, если сегодня еще не выполнено
        run_end = today if completed_today else today - timedelta(days=1)
        window_saturated = streak > 0 and run_end - timedelta(days=streak - 1) <= window_start

        if window_saturated:
            log.warning(
                f"Стрик привычки ID {habit_id} ({streak} дн.) достигает начала окна {window_start}, "
                "значение может быть недосчитано."
            )

        return StreakSnapshot(
            habit_id=habit_id,
            streak=streak,
            completed_today=completed_today,
            as_of=today,
            window_start=window_start,
            window_days=window_days,
            window_saturated=window_saturated,
        )

    async def get_completion_calendar(self, habit_id: str, days: int = 30) -> dict[date, bool]:
        """
        Возвращает календарь выполнения за последние `days` дней (от старых к новым).

        Raises:
            BackendError: Если выборку не удалось получить.
        """
        today = self.repository.today()
        completed = await self.get_completion_dates(habit_id, days, as_of=today)
        start, _ = day_range(today, days)

        return {start + timedelta(days=offset): start + timedelta(days=offset) in completed for offset in range(days)}
