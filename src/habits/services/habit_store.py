"""
Хранилище состояния привычек для UI.

Единственный владелец списка привычек в памяти: все изменения проходят через оптимистичные
операции этого класса, все чтения - через его аксессоры и селекторы.

Каждая строка привычки находится в одном из двух состояний:
- IDLE: отображаются последние подтвержденные или оптимистичные данные;
- PENDING: оптимистичное изменение ожидает ответа хранилища. Повторные изменения строки
  отклоняются, а снимки подписки ее не перезаписывают.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from src.habits.core.config import settings
from src.habits.core.exceptions import (
    AuthError,
    BackendError,
    HabitTrackerException,
    NotFoundError,
    StaleStreakWarning,
    ValidationError,
)
from src.habits.core.logging import habits_log as log
from src.habits.repositories import HabitRepository, validate_habit_create, validate_habit_patch
from src.habits.schemas import (
    TEMP_ID_PREFIX,
    ChartPoint,
    HabitContext,
    HabitRow,
    HabitSchemaRead,
    HabitStatistics,
    RowState,
    TopHabit,
)
from src.habits.stores import Unsubscribe
from src.habits.utils.date_utils import day_range

from .auth import AuthProvider
from .completion_log import CompletionLog, StreakSnapshot
from .event_bus import EventBus, NotificationEvent
from .streak_calculator import compute_current_streak, compute_habit_statistics, to_percentage

# Подписи дней недели для графика выполнений (date.weekday(): 0 - понедельник)
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# Количество привычек в контексте чат-коуча
TOP_HABITS_LIMIT = 3

StoreListener = Callable[[], None]


class HabitStore:
    """
    Реактивное хранилище привычек с оптимистичными изменениями и откатом.

    Attributes:
        repository (HabitRepository): Репозиторий привычек.
        auth (AuthProvider): Источник текущего владельца.
        event_bus (EventBus): Шина для уведомлений об ошибках.
        completion_log (CompletionLog): Журнал выполнений для подтверждения стриков.
    """

    def __init__(
        self,
        repository: HabitRepository,
        auth: AuthProvider,
        event_bus: EventBus | None = None,
        completion_log: CompletionLog | None = None,
    ):
        self.repository = repository
        self.auth = auth
        self.event_bus = event_bus or EventBus()
        self.completion_log = completion_log or CompletionLog(repository, auth, repository.streak_window_days)

        self._rows: dict[str, HabitRow] = {}
        # Строки, удаление которых еще не подтверждено хранилищем
        self._pending_deletes: dict[str, HabitRow] = {}
        self._diagnostics: dict[str, StaleStreakWarning] = {}
        # Привычки, у которых кэш стрика в документе отстает от журнала выполнений
        self._stale_cache: set[str] = set()
        # Владелец, чьи привычки сейчас в списке
        self._rows_owner: str | None = None

        self._is_loading = False
        self._error: str | None = None
        self._last_sync: datetime | None = None

        self._listeners: list[StoreListener] = []
        self._unsubscribe: Unsubscribe | None = None
        self._subscribed_owner: str | None = None

    # --- Реактивные аксессоры ---

    @property
    def habits(self) -> list[HabitRow]:
        """Текущий список привычек, новые первыми."""
        return sorted(self._rows.values(), key=lambda row: row.created_at, reverse=True)

    @property
    def is_loading(self) -> bool:
        """Идет загрузка списка привычек."""
        return self._is_loading

    @property
    def error(self) -> str | None:
        """Сообщение последней ошибки (до вызова clear_error)."""
        return self._error

    @property
    def last_sync(self) -> datetime | None:
        """Время последнего примененного снимка хранилища."""
        return self._last_sync

    @property
    def diagnostics(self) -> list[StaleStreakWarning]:
        """Предупреждения о стриках, которые могут быть недосчитаны."""
        return list(self._diagnostics.values())

    @property
    def subscribed_owner(self) -> str | None:
        """Владелец активной подписки."""
        return self._subscribed_owner

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """
        Регистрирует слушателя изменений состояния.

        Returns:
            Callable[[], None]: Функция удаления слушателя.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as exc:
                log.exception(f"Ошибка слушателя хранилища привычек: {exc}")

    # --- Внутренние помощники ---

    def _require_owner(self) -> str:
        owner_id = self.auth.current_owner_id
        if not owner_id:
            log.warning("Попытка изменить привычки без аутентифицированного пользователя.")
            raise AuthError(message="Войдите в систему, чтобы изменять привычки.")
        return owner_id

    def _mutable_row(self, habit_id: str, action: str) -> HabitRow | None:
        """
        Возвращает строку, если ее можно менять, иначе логирует причину и возвращает None.
        """
        row = self._rows.get(habit_id)

        if row is None:
            # Привычку могли удалить с другого устройства
            log.warning(f"Привычка ID {habit_id} отсутствует локально, '{action}' пропущено.")
            return None

        if row.is_loading:
            log.debug(f"Привычка ID {habit_id} ожидает ответа хранилища, '{action}' отклонено.")
            return None

        if row.is_provisional:
            log.warning(f"Привычка ID {habit_id} еще не сохранена, '{action}' отклонено.")
            return None

        return row

    def _is_session_owner(self, owner_id: str) -> bool:
        """Проверяет, что операция завершается в той же сессии, в которой началась."""
        if self.auth.current_owner_id == owner_id:
            return True
        log.info(f"Сессия владельца {owner_id} завершена во время операции, результат не применяется к списку.")
        return False

    def _set_row(self, row: HabitRow) -> None:
        self._rows[row.id] = row
        self._emit()

    def _drop_row(self, habit_id: str) -> None:
        self._rows.pop(habit_id, None)
        self._diagnostics.pop(habit_id, None)
        self._stale_cache.discard(habit_id)
        self._emit()

    def _fail(self, exc: HabitTrackerException, habit_id: str | None = None) -> None:
        self._error = exc.message
        self.event_bus.publish(NotificationEvent(message=exc.message, error_type=exc.error_type, habit_id=habit_id))
        self._emit()

    def _row_from_habit(self, habit: HabitSchemaRead, today: date) -> HabitRow:
        """
        Строит строку из документа привычки.

        Кэш стрика действителен, только если последнее выполнение было сегодня или вчера.
        """
        last_completed = habit.last_completed_date
        is_current = last_completed is not None and last_completed >= today - timedelta(days=1)

        return HabitRow(
            **habit.model_dump(),
            streak=habit.cached_streak if is_current else 0,
            completed_today=last_completed == today,
        )

    def _apply_streak(self, habit_id: str, snapshot: StreakSnapshot) -> None:
        row = self._rows.get(habit_id)
        if row is None:
            return

        self._rows[habit_id] = row.model_copy(
            update={
                "streak": snapshot.streak,
                "completed_today": snapshot.completed_today,
                "cached_streak": snapshot.streak,
                "state": RowState.IDLE,
                "is_stale": False,
            }
        )
        self._record_diagnostics(habit_id, snapshot.streak, snapshot.window_saturated, snapshot.window_start)

    def _record_diagnostics(self, habit_id: str, streak: int, saturated: bool, window_start: date) -> None:
        if saturated:
            self._diagnostics[habit_id] = StaleStreakWarning(
                habit_id=habit_id,
                streak=streak,
                window_days=self.repository.streak_window_days,
                window_start=window_start,
            )
        else:
            self._diagnostics.pop(habit_id, None)

    async def _confirm_streak(self, habit_id: str, owner_id: str) -> None:
        """
        Заменяет оптимистичный стрик подтвержденным по свежей выборке и завершает операцию строки.

        Если выборку получить не удалось, строка помечается устаревшей вместо показа нулевого стрика.
        Результат отбрасывается, если за время запроса сменился владелец сессии.
        """
        if not self._is_session_owner(owner_id):
            return

        try:
            snapshot = await self.completion_log.get_streak_snapshot(habit_id)
        except BackendError as exc:
            if not self._is_session_owner(owner_id):
                return
            log.warning(f"Не удалось подтвердить стрик привычки ID {habit_id}: {exc.message}")
            row = self._rows.get(habit_id)
            if row is not None:
                self._rows[habit_id] = row.model_copy(update={"state": RowState.IDLE, "is_stale": True})
            self._emit()
            return

        if not self._is_session_owner(owner_id):
            return

        self._apply_streak(habit_id, snapshot)
        self._emit()

    # --- Подписка ---

    def _on_snapshot(self, habits: list[HabitSchemaRead]) -> None:
        """
        Применяет снимок хранилища.

        Не перезаписываются: строки в состоянии PENDING, строки с незавершенным удалением
        и строки, у которых кэш стрика в документе отстает от журнала. Временная строка
        уступает место сохраненной привычке с теми же данными.
        """
        today = self.repository.today()
        rows: dict[str, HabitRow] = {}
        arrived: list[HabitSchemaRead] = []

        for habit in habits:
            if habit.id in self._pending_deletes:
                continue

            current = self._rows.get(habit.id)
            if current is None:
                arrived.append(habit)
            elif current.is_loading:
                # Результат незавершенной операции важнее снимка
                rows[habit.id] = current
                continue
            elif habit.id in self._stale_cache:
                # Поля привычки берутся из снимка, стрик - из подтвержденной по журналу строки
                rows[habit.id] = self._row_from_habit(habit, today).model_copy(
                    update={"streak": current.streak, "completed_today": current.completed_today}
                )
                continue

            rows[habit.id] = self._row_from_habit(habit, today)

        # Оптимистичные строки живут до завершения своей операции, даже если их нет в снимке
        for row in self._rows.values():
            if row.id in rows or not (row.is_loading or row.is_provisional):
                continue

            if row.is_provisional:
                saved = next((habit for habit in arrived if self._is_saved_copy(row, habit)), None)
                if saved is not None:
                    arrived.remove(saved)
                    continue

            rows[row.id] = row

        self._rows = rows
        for habit_id in set(self._diagnostics) - set(rows):
            self._diagnostics.pop(habit_id)
        self._stale_cache &= set(rows)

        self._is_loading = False
        self._last_sync = datetime.now(timezone.utc)
        log.debug(f"Применен снимок привычек: {len(habits)} шт.")
        self._emit()

    @staticmethod
    def _is_saved_copy(row: HabitRow, habit: HabitSchemaRead) -> bool:
        return (row.owner_id, row.name, row.description) == (habit.owner_id, habit.name, habit.description)

    def _on_snapshot_error(self, exc: BackendError) -> None:
        self._is_loading = False
        log.error(f"Ошибка подписки на привычки: {exc.message}")
        self._fail(exc)

    async def subscribe(self) -> None:
        """
        Подписывается на привычки текущего владельца.

        Предыдущая подписка предварительно отменяется. Если владелец сменился, список
        очищается вместе с незавершенными строками прежнего владельца.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            BackendError: Если подписку не удалось оформить.
        """
        owner_id = self._require_owner()
        self.unsubscribe_all()

        if self._rows_owner not in (None, owner_id):
            log.info(f"Смена владельца {self._rows_owner} -> {owner_id}, список привычек очищается.")
            self._reset()
        self._rows_owner = owner_id

        self._is_loading = True
        self._emit()

        try:
            unsubscribe = await self.repository.subscribe(owner_id, self._on_snapshot, self._on_snapshot_error)
        except BackendError as exc:
            self._is_loading = False
            self._fail(exc)
            raise

        self._unsubscribe = unsubscribe
        self._subscribed_owner = owner_id
        log.info(f"Хранилище привычек подписано на владельца {owner_id}.")

    def unsubscribe_all(self) -> None:
        """Отменяет активную подписку. Повторный вызов безопасен."""
        if self._unsubscribe is None:
            return

        self._unsubscribe()
        log.info(f"Подписка на привычки владельца {self._subscribed_owner} отменена.")
        self._unsubscribe = None
        self._subscribed_owner = None

    async def bind_auth(self) -> Callable[[], None]:
        """
        Связывает подписку с сессией: вход переоформляет подписку, выход отменяет ее и очищает список.

        Если пользователь уже вошел, подписка оформляется сразу.

        Returns:
            Callable[[], None]: Функция отвязки от провайдера аутентификации.
        """

        async def on_owner_changed(owner_id: str | None) -> None:
            if owner_id:
                await self.subscribe()
            else:
                self.unsubscribe_all()
                self._reset()

        remove = self.auth.add_listener(on_owner_changed)

        if self.auth.current_owner_id:
            await self.subscribe()

        return remove

    def _reset(self) -> None:
        self._rows.clear()
        self._pending_deletes.clear()
        self._diagnostics.clear()
        self._stale_cache.clear()
        self._rows_owner = None
        self._is_loading = False
        self._error = None
        self._last_sync = None
        self._emit()

    async def refresh_all(self) -> None:
        """
        Полностью перезагружает привычки и пересчитывает стрики по журналу выполнений.

        Кэш стрика в документах не используется.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            BackendError: Если данные не удалось загрузить.
        """
        owner_id = self._require_owner()
        if self._rows_owner not in (None, owner_id):
            self._reset()
        self._rows_owner = owner_id
        self._is_loading = True
        self._emit()

        today = self.repository.today()
        start, end = day_range(today, self.repository.streak_window_days)

        try:
            habits = await self.repository.list_habits(owner_id)
            completions = await self.repository.query_owner_completions(owner_id, start, end)
        except BackendError as exc:
            self._is_loading = False
            self._fail(exc)
            raise

        if not self._is_session_owner(owner_id):
            return

        for habit_id in list(self._stale_cache):
            if await self.repository.refresh_cached_streak(habit_id, owner_id) is not None:
                self._stale_cache.discard(habit_id)
        self._on_snapshot(habits)

        days_by_habit: defaultdict[str, set[date]] = defaultdict(set)
        for completion in completions:
            days_by_habit[completion.habit_id].add(completion.completed_at)

        for habit_id, row in list(self._rows.items()):
            if row.is_loading or row.is_provisional:
                continue

            days = days_by_habit.get(habit_id, set())
            streak = compute_current_streak(days, today)
            self._rows[habit_id] = row.model_copy(
                update={"streak": streak, "completed_today": today in days, "is_stale": False}
            )
            run_end = today if today in days else today - timedelta(days=1)
            saturated = streak > 0 and run_end - timedelta(days=streak - 1) <= start
            self._record_diagnostics(habit_id, streak, saturated, start)

        log.info(f"Привычки владельца {owner_id} перезагружены: {len(self._rows)} шт.")
        self._emit()

    def clear_error(self) -> None:
        """Сбрасывает сообщение об ошибке."""
        self._error = None
        self._emit()

    # --- Оптимистичные операции ---

    async def add_habit(self, name: str, description: str | None = None) -> str:
        """
        Добавляет привычку: временная строка появляется сразу и заменяется сохраненной.

        Args:
            name (str): Название привычки.
            description (str | None): Описание привычки.

        Returns:
            str: ID сохраненной привычки.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            ValidationError: Если название пустое (список не меняется).
            BackendError: Если привычку не удалось сохранить (временная строка удаляется).
        """
        owner_id = self._require_owner()
        habit_in = validate_habit_create(name, description)

        temp_id = f"{TEMP_ID_PREFIX}{uuid4().hex}"
        provisional = HabitRow(
            id=temp_id,
            owner_id=owner_id,
            name=habit_in.name,
            description=habit_in.description,
            created_at=datetime.now(timezone.utc),
            state=RowState.PENDING,
        )
        self._set_row(provisional)

        try:
            habit_id = await self.repository.create_habit(owner_id, habit_in.name, habit_in.description)
        except (BackendError, ValidationError) as exc:
            if self._is_session_owner(owner_id):
                self._rows.pop(temp_id, None)
                log.warning(f"Создание привычки '{habit_in.name}' отменено: {exc.message}")
                self._fail(exc)
            raise

        if not self._is_session_owner(owner_id):
            return habit_id

        self._rows.pop(temp_id, None)
        # Снимок подписки мог уже принести сохраненную привычку
        if habit_id not in self._rows:
            self._rows[habit_id] = provisional.model_copy(update={"id": habit_id, "state": RowState.IDLE})
        self._emit()

        return habit_id

    async def update_habit(self, habit_id: str, **fields: Any) -> None:
        """
        Изменяет поля привычки (name, description) с откатом при ошибке.

        Если привычку уже удалили на другом устройстве, строка убирается из списка.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            ValidationError: При пустом названии или попытке изменить неизменяемые поля.
            BackendError: Если изменение не сохранено (строка восстанавливается).
        """
        owner_id = self._require_owner()
        patch = validate_habit_patch(fields)

        row = self._mutable_row(habit_id, "изменение")
        if row is None or not patch:
            return

        self._set_row(row.model_copy(update={**patch, "state": RowState.PENDING}))

        try:
            await self.repository.update_habit(habit_id, owner_id, patch)
        except NotFoundError as exc:
            if self._is_session_owner(owner_id):
                log.warning(f"Изменение привычки ID {habit_id} пропущено: {exc.message}")
                self._drop_row(habit_id)
            return
        except BackendError as exc:
            if self._is_session_owner(owner_id):
                self._set_row(row)
                self._fail(exc, habit_id)
            raise

        if not self._is_session_owner(owner_id):
            return

        current = self._rows.get(habit_id)
        if current is not None:
            self._set_row(current.model_copy(update={"state": RowState.IDLE}))

    async def delete_habit(self, habit_id: str) -> None:
        """
        Удаляет привычку: строка исчезает сразу и возвращается при ошибке.

        Если к моменту ошибки выполнения привычки уже удалены, возвращенная строка
        пересчитывается по журналу выполнений.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            BackendError: Если привычку не удалось удалить.
        """
        owner_id = self._require_owner()

        row = self._mutable_row(habit_id, "удаление")
        if row is None:
            return

        self._pending_deletes[habit_id] = row
        self._rows.pop(habit_id, None)
        diagnostic = self._diagnostics.pop(habit_id, None)
        self._emit()

        try:
            await self.repository.delete_habit(habit_id, owner_id)
        except NotFoundError:
            self._pending_deletes.pop(habit_id, None)
            log.warning(f"Привычка ID {habit_id} уже удалена в хранилище.")
        except BackendError as exc:
            self._pending_deletes.pop(habit_id, None)
            if not self._is_session_owner(owner_id):
                raise

            self._rows[habit_id] = row
            if diagnostic is not None:
                self._diagnostics[habit_id] = diagnostic
            self._fail(exc, habit_id)
            await self._confirm_streak(habit_id, owner_id)
            raise
        else:
            self._pending_deletes.pop(habit_id, None)
            self._stale_cache.discard(habit_id)

        self._emit()

    async def toggle_completion(self, habit_id: str) -> None:
        """
        Переключает выполнение привычки за сегодня.

        Строка сразу меняет completed_today и стрик на единицу и переходит в PENDING.
        Повторный вызов до завершения операции игнорируется. После успеха стрик
        пересчитывается по свежей выборке, при ошибке строка возвращается к исходному виду.
        Если привычку уже удалили на другом устройстве, строка убирается из списка.

        Raises:
            AuthError: Если нет аутентифицированного владельца.
            BackendError: Если изменение не сохранено (строка восстанавливается).
        """
        owner_id = self._require_owner()

        row = self._mutable_row(habit_id, "переключение выполнения")
        if row is None:
            return

        completed = not row.completed_today
        streak = row.streak + 1 if completed else max(row.streak - 1, 0)
        # Строка переходит в PENDING до первой точки переключения
        self._set_row(
            row.model_copy(update={"completed_today": completed, "streak": streak, "state": RowState.PENDING})
        )

        today = self.repository.today()
        try:
            if completed:
                cache_synced = await self.repository.mark_complete(habit_id, owner_id, today)
            else:
                cache_synced = await self.repository.mark_incomplete(habit_id, owner_id, today)
        except NotFoundError as exc:
            if self._is_session_owner(owner_id):
                log.warning(f"Переключение выполнения привычки ID {habit_id} пропущено: {exc.message}")
                self._drop_row(habit_id)
            return
        except BackendError as exc:
            if self._is_session_owner(owner_id):
                self._set_row(row)
                log.warning(f"Переключение выполнения привычки ID {habit_id} отменено: {exc.message}")
                self._fail(exc, habit_id)
            raise

        if not self._is_session_owner(owner_id):
            return

        if cache_synced:
            self._stale_cache.discard(habit_id)
        else:
            # Снимки с устаревшим кэшем не должны перезаписывать подтвержденную строку
            self._stale_cache.add(habit_id)

        await self._confirm_streak(habit_id, owner_id)

    # --- Селекторы ---

    def get_habit_by_id(self, habit_id: str) -> HabitRow | None:
        return self._rows.get(habit_id)

    def get_completed_today_habits(self) -> list[HabitRow]:
        return [row for row in self.habits if row.completed_today]

    def get_completed_habits_count(self) -> int:
        return len(self.get_completed_today_habits())

    def get_progress_percentage(self) -> int:
        """Процент привычек, выполненных сегодня (0, если привычек нет)."""
        return to_percentage(self.get_completed_habits_count(), len(self._rows))

    def get_habits_with_streaks(self) -> list[HabitRow]:
        """Привычки с активным стриком, самые длинные первыми."""
        return sorted((row for row in self._rows.values() if row.streak > 0), key=lambda row: row.streak, reverse=True)

    def get_habit_context(self) -> HabitContext:
        """Контекст привычек для чат-коуча."""
        return HabitContext(
            total_habits=len(self._rows),
            completed_today=self.get_completed_habits_count(),
            progress_percentage=self.get_progress_percentage(),
            top_habits=[
                TopHabit(name=row.name, streak=row.streak)
                for row in self.get_habits_with_streaks()[:TOP_HABITS_LIMIT]
            ],
        )

    async def _owner_completions_by_day(self, window_days: int) -> tuple[list[date], dict[date, set[str]]]:
        """
        Загружает выполнения владельца за окно одним запросом и группирует ID привычек по дням.
        """
        if window_days <= 0:
            raise ValidationError(message=f"Размер окна должен быть положительным, получено: {window_days}.")

        owner_id = self._require_owner()
        start, end = day_range(self.repository.today(), window_days)
        completions = await self.repository.query_owner_completions(owner_id, start, end)

        habits_by_day: defaultdict[date, set[str]] = defaultdict(set)
        for completion in completions:
            # Учитываются только привычки, которые есть в списке
            if completion.habit_id in self._rows:
                habits_by_day[completion.completed_at].add(completion.habit_id)

        days = [start + timedelta(days=offset) for offset in range(window_days)]
        return days, habits_by_day

    async def get_completed_habits_per_day(self, window_days: int = 7) -> list[ChartPoint]:
        """
        Количество выполненных привычек по дням за последние `window_days` дней.

        Returns:
            list[ChartPoint]: Точки (день недели, количество), от старых к новым.
        """
        days, habits_by_day = await self._owner_completions_by_day(window_days)
        return [ChartPoint(x=WEEKDAY_LABELS[day.weekday()], y=len(habits_by_day.get(day, ()))) for day in days]

    async def get_daily_success_rate(self, window_days: int = 30) -> list[ChartPoint]:
        """
        Процент выполненных привычек по дням за последние `window_days` дней.

        Returns:
            list[ChartPoint]: Точки (номер дня 1..N, процент), от старых к новым.
        """
        total = len(self._rows)
        if total == 0:
            if window_days <= 0:
                raise ValidationError(message=f"Размер окна должен быть положительным, получено: {window_days}.")
            return [ChartPoint(x=index, y=0) for index in range(1, window_days + 1)]

        days, habits_by_day = await self._owner_completions_by_day(window_days)
        return [
            ChartPoint(x=index, y=to_percentage(len(habits_by_day.get(day, ())), total))
            for index, day in enumerate(days, start=1)
        ]

    async def get_habit_completion_dates(self, habit_id: str, days: int = 90) -> set[date]:
        """Дни выполнения привычки за последние `days` дней."""
        return await self.completion_log.get_completion_dates(habit_id, days)

    async def get_habit_statistics(self, habit_id: str, window_days: int | None = None) -> HabitStatistics:
        """
        Статистика привычки по журналу выполнений.

        Args:
            habit_id (str): ID привычки.
            window_days (int | None): Окно процента выполнения. По умолчанию COMPLETION_RATE_WINDOW_DAYS.

        Raises:
            ValidationError: Если окно не положительное.
            BackendError: Если выборку не удалось получить.
        """
        window_days = settings.COMPLETION_RATE_WINDOW_DAYS if window_days is None else window_days
        if window_days <= 0:
            raise ValidationError(message=f"Размер окна должен быть положительным, получено: {window_days}.")

        today = self.repository.today()
        fetch_days = max(window_days, self.repository.streak_window_days)
        days = await self.completion_log.get_completion_dates(habit_id, fetch_days, as_of=today)

        return compute_habit_statistics(days, window_days, today)
