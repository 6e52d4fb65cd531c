"""Репозиторий привычек и выполнений поверх хранилища документов."""

from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import ValidationError as PydanticValidationError

from src.habits.core.config import settings
from src.habits.core.exceptions import BackendError, NotFoundError, ValidationError
from src.habits.core.logging import habits_log as log
from src.habits.schemas import CompletionSchemaRead, HabitSchemaCreate, HabitSchemaRead, HabitSchemaUpdate
from src.habits.services.streak_calculator import compute_current_streak
from src.habits.stores import (
    Document,
    DocumentStore,
    DocumentStoreError,
    DuplicateDocumentError,
    OrderBy,
    QueryFilter,
    Unsubscribe,
)
from src.habits.utils.date_utils import day_range, get_today_date

HABITS_COLLECTION = "habits"
COMPLETIONS_COLLECTION = "completions"

# Поля, которые нельзя менять после создания привычки
IMMUTABLE_HABIT_FIELDS = frozenset({"id", "owner_id", "created_at"})

T = TypeVar("T")

HabitsCallback = Callable[[list[HabitSchemaRead]], None]
BackendErrorCallback = Callable[[BackendError], None]


def _validation_message(exc: PydanticValidationError) -> str:
    # Берем первую ошибку: для пользователя достаточно одной причины
    error = exc.errors()[0]
    field_name = ".".join(str(part) for part in error["loc"])
    return f"Некорректное значение поля '{field_name}': {error['msg']}"


def validate_habit_create(name: str, description: str | None = None) -> HabitSchemaCreate:
    """
    Проверяет данные новой привычки.

    Raises:
        ValidationError: Если название пустое или слишком длинное.
    """
    try:
        return HabitSchemaCreate(name=name, description=description)
    except PydanticValidationError as exc:
        raise ValidationError(message=_validation_message(exc), error_type="invalid_habit") from exc


def validate_habit_patch(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Проверяет частичное обновление привычки и возвращает нормализованный патч.

    Raises:
        ValidationError: При попытке изменить неизменяемые поля, пустом названии или неизвестных полях.
    """
    forbidden = IMMUTABLE_HABIT_FIELDS.intersection(fields)
    if forbidden:
        raise ValidationError(
            message=f"Поля {sorted(forbidden)} нельзя изменить после создания привычки.",
            error_type="immutable_field",
        )

    try:
        patch = HabitSchemaUpdate.model_validate(fields).model_dump(exclude_unset=True)
    except PydanticValidationError as exc:
        raise ValidationError(message=_validation_message(exc), error_type="invalid_habit") from exc

    if "name" in patch and patch["name"] is None:
        raise ValidationError(message="Название привычки не может быть пустым.", error_type="invalid_habit")

    return patch


class HabitRepository:
    """
    Репозиторий для CRUD-операций с привычками и их выполнениями.

    Все запросы ограничиваются владельцем. Фильтрация по диапазону дат выполняется на стороне хранилища.
    Ошибки хранилища переводятся в BackendError.

    Attributes:
        store (DocumentStore): Хранилище документов.
        streak_window_days (int): Окно выборки выполнений для пересчета кэша стрика.
        delete_retry_attempts (int): Количество попыток удаления документа привычки.
        timezone_name (str): Часовой пояс, в котором определяется "сегодня".
    """

    def __init__(
        self,
        store: DocumentStore,
        streak_window_days: int | None = None,
        delete_retry_attempts: int | None = None,
        timezone_name: str | None = None,
    ):
        self.store = store
        self.streak_window_days = streak_window_days or settings.STREAK_WINDOW_DAYS
        self.delete_retry_attempts = delete_retry_attempts or settings.DELETE_RETRY_ATTEMPTS
        self.timezone_name = timezone_name or settings.TIMEZONE

    def today(self) -> date:
        """Текущий календарный день в часовом поясе пользователя."""
        return get_today_date(self.timezone_name)

    async def _call(self, action: str, operation: Awaitable[T]) -> T:
        """
        Выполняет операцию хранилища, переводя его ошибки в BackendError.

        Args:
            action (str): Описание действия для сообщений и логов.
            operation (Awaitable[T]): Операция хранилища.

        Returns:
            T: Результат операции.

        Raises:
            BackendError: Если хранилище вернуло ошибку.
        """
        try:
            return await operation
        except DocumentStoreError as exc:
            log.error(f"Ошибка хранилища при попытке '{action}': {exc}")
            raise BackendError(message=f"Не удалось {action}. Попробуйте позже.") from exc

    @staticmethod
    def _to_habit(document: Document) -> HabitSchemaRead:
        return HabitSchemaRead.model_validate({**document.data, "id": document.id})

    @staticmethod
    def _to_completion(document: Document) -> CompletionSchemaRead:
        return CompletionSchemaRead.model_validate({**document.data, "id": document.id})

    # --- Привычки ---

    async def create_habit(self, owner_id: str, name: str, description: str | None = None) -> str:
        """
        Создает привычку.

        Args:
            owner_id (str): ID владельца.
            name (str): Название привычки.
            description (str | None): Описание привычки.

        Returns:
            str: ID созданной привычки.

        Raises:
            ValidationError: Если название пустое или владелец не указан.
            BackendError: При ошибке хранилища.
        """
        if not owner_id:
            raise ValidationError(message="Не указан владелец привычки.", error_type="invalid_owner")

        habit_in = validate_habit_create(name, description)

        data = {
            "owner_id": owner_id,
            "name": habit_in.name,
            "description": habit_in.description,
            "created_at": datetime.now(timezone.utc),
            "cached_streak": 0,
            "last_completed_date": None,
        }
        habit_id = await self._call("создать привычку", self.store.add(HABITS_COLLECTION, data))
        log.info(f"Привычка '{habit_in.name}' (ID: {habit_id}) создана для владельца {owner_id}.")

        return habit_id

    async def get_habit(self, habit_id: str, owner_id: str) -> HabitSchemaRead:
        """
        Получает привычку владельца по ID.

        Raises:
            NotFoundError: Если привычки нет или она принадлежит другому владельцу.
            BackendError: При ошибке хранилища.
        """
        if not habit_id:
            raise ValidationError(message="Не указан ID привычки.", error_type="invalid_habit_id")

        document = await self._call("получить привычку", self.store.get(HABITS_COLLECTION, habit_id))

        # Чужая привычка для владельца неотличима от отсутствующей
        if document is None or document.data.get("owner_id") != owner_id:
            log.warning(f"Привычка ID {habit_id} не найдена для владельца {owner_id}.")
            raise NotFoundError(message=f"Привычка с ID {habit_id} не найдена.", error_type="habit_not_found")

        return self._to_habit(document)

    async def list_habits(self, owner_id: str) -> list[HabitSchemaRead]:
        """Возвращает все привычки владельца, новые первыми."""
        documents = await self._call(
            "загрузить привычки",
            self.store.query(
                HABITS_COLLECTION,
                [QueryFilter("owner_id", "==", owner_id)],
                order_by=OrderBy("created_at", descending=True),
            ),
        )
        return [self._to_habit(document) for document in documents]

    async def update_habit(self, habit_id: str, owner_id: str, fields: dict[str, Any]) -> None:
        """
        Частично обновляет привычку.

        Args:
            habit_id (str): ID привычки.
            owner_id (str): ID владельца.
            fields (dict[str, Any]): Изменяемые поля (name, description).

        Raises:
            ValidationError: При попытке изменить id/owner_id/created_at или пустом названии.
            NotFoundError: Если привычки нет у владельца.
            BackendError: При ошибке хранилища.
        """
        patch = validate_habit_patch(fields)
        if not patch:
            log.debug(f"Пустое обновление привычки ID {habit_id}, пропуск.")
            return

        await self.get_habit(habit_id, owner_id)
        await self._call("обновить привычку", self.store.update(HABITS_COLLECTION, habit_id, patch))
        log.info(f"Привычка ID {habit_id} обновлена: {sorted(patch)}.")

    async def delete_habit(self, habit_id: str, owner_id: str) -> None:
        """
        Удаляет привычку вместе со всеми ее выполнениями.

        Сначала удаляются выполнения, затем документ привычки. Удаление привычки повторяется
        до `delete_retry_attempts` раз, итоговая неудача не игнорируется.

        Raises:
            NotFoundError: Если привычки нет у владельца.
            BackendError: Если выполнения или привычку удалить не удалось.
        """
        await self.get_habit(habit_id, owner_id)

        completions = await self._call(
            "загрузить выполнения привычки",
            self.store.query(
                COMPLETIONS_COLLECTION,
                [QueryFilter("owner_id", "==", owner_id), QueryFilter("habit_id", "==", habit_id)],
            ),
        )
        try:
            for completion in completions:
                await self._call("удалить выполнение", self.store.delete(COMPLETIONS_COLLECTION, completion.id))
        except BackendError:
            # Часть выполнений уже удалена: кэш привычки должен соответствовать оставшимся
            await self.refresh_cached_streak(habit_id, owner_id)
            raise
        log.debug(f"Удалено выполнений привычки ID {habit_id}: {len(completions)}.")

        last_error: DocumentStoreError | None = None
        for attempt in range(1, self.delete_retry_attempts + 1):
            try:
                await self.store.delete(HABITS_COLLECTION, habit_id)
            except DocumentStoreError as exc:
                last_error = exc
                log.warning(
                    f"Попытка {attempt}/{self.delete_retry_attempts} удаления привычки ID {habit_id} не удалась: {exc}"
                )
                continue

            log.info(f"Привычка ID {habit_id} удалена вместе с {len(completions)} выполнениями.")
            return

        # Выполнения уже удалены, а привычка осталась: кэш сбрасывается, ошибка передается вызывающему коду
        log.error(f"Привычка ID {habit_id} не удалена после {self.delete_retry_attempts} попыток.")
        await self.refresh_cached_streak(habit_id, owner_id)
        raise BackendError(
            message="Не удалось удалить привычку. Попробуйте позже.",
            error_type="habit_delete_failed",
        ) from last_error

    # --- Выполнения ---

    async def _find_completions_for_day(self, habit_id: str, owner_id: str, day: date) -> list[Document]:
        return await self._call(
            "проверить выполнение",
            self.store.query(
                COMPLETIONS_COLLECTION,
                [
                    QueryFilter("owner_id", "==", owner_id),
                    QueryFilter("habit_id", "==", habit_id),
                    QueryFilter("completed_at", "==", day),
                ],
            ),
        )

    async def mark_complete(self, habit_id: str, owner_id: str, day: date | None = None) -> bool:
        """
        Отмечает привычку выполненной в день `day` (по умолчанию сегодня).

        Повторный вызов для того же дня ничего не создает, только пересчитывает кэш стрика.
        Кэш стрика обновляется после записи выполнения, его сбой не отменяет отметку.

        Returns:
            bool: True, если кэш стрика соответствует журналу выполнений.

        Raises:
            NotFoundError: Если привычки нет у владельца.
            BackendError: При ошибке хранилища.
        """
        day = day or self.today()
        await self.get_habit(habit_id, owner_id)

        if await self._find_completions_for_day(habit_id, owner_id, day):
            log.debug(f"Привычка ID {habit_id} уже выполнена {day}, повторная запись не создается.")
            # Кэш мог остаться устаревшим после прошлой неудачной попытки
            return await self.refresh_cached_streak(habit_id, owner_id) is not None

        data = {"habit_id": habit_id, "owner_id": owner_id, "completed_at": day}
        try:
            await self.store.add(COMPLETIONS_COLLECTION, data)
        except DuplicateDocumentError:
            # Запись за этот день успели создать параллельно
            log.debug(f"Выполнение привычки ID {habit_id} за {day} уже существует.")
            return await self.refresh_cached_streak(habit_id, owner_id) is not None
        except DocumentStoreError as exc:
            log.error(f"Ошибка хранилища при отметке выполнения привычки ID {habit_id}: {exc}")
            raise BackendError(message="Не удалось отметить выполнение. Попробуйте позже.") from exc

        log.info(f"Привычка ID {habit_id} отмечена выполненной {day}.")
        return await self.refresh_cached_streak(habit_id, owner_id) is not None

    async def mark_incomplete(self, habit_id: str, owner_id: str, day: date | None = None) -> bool:
        """
        Снимает отметку выполнения за день `day` (по умолчанию сегодня).

        Если отметки нет, только пересчитывает кэш стрика.

        Returns:
            bool: True, если кэш стрика соответствует журналу выполнений.

        Raises:
            NotFoundError: Если привычки нет у владельца.
            BackendError: При ошибке хранилища.
        """
        day = day or self.today()
        await self.get_habit(habit_id, owner_id)

        completions = await self._find_completions_for_day(habit_id, owner_id, day)
        if not completions:
            log.debug(f"Выполнения привычки ID {habit_id} за {day} нет, снимать нечего.")
            return await self.refresh_cached_streak(habit_id, owner_id) is not None

        for completion in completions:
            await self._call("снять отметку выполнения", self.store.delete(COMPLETIONS_COLLECTION, completion.id))

        log.info(f"Отметка выполнения привычки ID {habit_id} за {day} снята.")
        return await self.refresh_cached_streak(habit_id, owner_id) is not None

    async def query_completions(
        self, habit_id: str, owner_id: str, start: date, end: date
    ) -> list[CompletionSchemaRead]:
        """
        Возвращает выполнения привычки в диапазоне дней `[start, end]`.

        Raises:
            ValidationError: Если `start` позже `end`.
            BackendError: При ошибке хранилища.
        """
        self._check_range(start, end)

        documents = await self._call(
            "загрузить выполнения привычки",
            self.store.query(
                COMPLETIONS_COLLECTION,
                [
                    QueryFilter("owner_id", "==", owner_id),
                    QueryFilter("habit_id", "==", habit_id),
                    QueryFilter("completed_at", ">=", start),
                    QueryFilter("completed_at", "<=", end),
                ],
                order_by=OrderBy("completed_at"),
            ),
        )
        return [self._to_completion(document) for document in documents]

    async def query_owner_completions(self, owner_id: str, start: date, end: date) -> list[CompletionSchemaRead]:
        """
        Возвращает выполнения всех привычек владельца в диапазоне `[start, end]` одним запросом.

        Raises:
            ValidationError: Если `start` позже `end`.
            BackendError: При ошибке хранилища.
        """
        self._check_range(start, end)

        documents = await self._call(
            "загрузить выполнения",
            self.store.query(
                COMPLETIONS_COLLECTION,
                [
                    QueryFilter("owner_id", "==", owner_id),
                    QueryFilter("completed_at", ">=", start),
                    QueryFilter("completed_at", "<=", end),
                ],
                order_by=OrderBy("completed_at"),
            ),
        )
        return [self._to_completion(document) for document in documents]

    @staticmethod
    def _check_range(start: date, end: date) -> None:
        if start > end:
            raise ValidationError(
                message=f"Начало диапазона ({start}) позже его конца ({end}).",
                error_type="invalid_range",
            )

    async def recompute_cached_streak(self, habit_id: str, owner_id: str) -> int:
        """
        Пересчитывает кэш стрика и день последнего выполнения привычки.

        Выборка ограничена окном `streak_window_days`: стрик длиннее окна будет недосчитан.

        Returns:
            int: Новое значение кэша стрика.

        Raises:
            BackendError: При ошибке хранилища.
        """
        today = self.today()
        start, end = day_range(today, self.streak_window_days)
        completions = await self.query_completions(habit_id, owner_id, start, end)

        days = {completion.completed_at for completion in completions}
        streak = compute_current_streak(days, today)
        last_completed_date = max(days) if days else None

        await self._call(
            "обновить стрик привычки",
            self.store.update(
                HABITS_COLLECTION,
                habit_id,
                {"cached_streak": streak, "last_completed_date": last_completed_date},
            ),
        )
        log.debug(
            f"Кэш стрика привычки ID {habit_id} пересчитан: {streak} (последнее выполнение: {last_completed_date})."
        )

        return streak

    async def refresh_cached_streak(self, habit_id: str, owner_id: str) -> int | None:
        """
        Пересчитывает кэш стрика после уже сохраненного изменения выполнений.

        Ошибка не пробрасывается: выполнение уже записано, а кэш исправит следующий пересчет.

        Returns:
            int | None: Новое значение кэша или None, если кэш обновить не удалось.
        """
        try:
            return await self.recompute_cached_streak(habit_id, owner_id)
        except BackendError as exc:
            log.warning(f"Кэш стрика привычки ID {habit_id} не обновлен: {exc.message}")
            return None

    # --- Подписки ---

    async def subscribe(
        self, owner_id: str, on_change: HabitsCallback, on_error: BackendErrorCallback
    ) -> Unsubscribe:
        """
        Подписывается на полный список привычек владельца.

        Начальный снимок доставляется до возврата функции отписки.

        Args:
            owner_id (str): ID владельца.
            on_change (HabitsCallback): Получает список привычек (новые первыми).
            on_error (BackendErrorCallback): Получает ошибку подписки.

        Returns:
            Unsubscribe: Функция отписки.
        """

        def handle_snapshot(documents: list[Document]) -> None:
            on_change([self._to_habit(document) for document in documents])

        def handle_error(exc: Exception) -> None:
            on_error(BackendError(message="Не удалось синхронизировать привычки.", error_type="subscription_error"))

        unsubscribe = await self._call(
            "подписаться на привычки",
            self.store.subscribe(
                HABITS_COLLECTION,
                [QueryFilter("owner_id", "==", owner_id)],
                handle_snapshot,
                handle_error,
                order_by=OrderBy("created_at", descending=True),
            ),
        )
        log.debug(f"Подписка на привычки владельца {owner_id} оформлена.")

        return unsubscribe
