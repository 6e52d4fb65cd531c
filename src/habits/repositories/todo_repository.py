"""Репозиторий задач владельца поверх хранилища документов."""

from datetime import datetime, timezone
from typing import Awaitable, TypeVar

from pydantic import ValidationError as PydanticValidationError

from src.habits.core.exceptions import BackendError, NotFoundError, ValidationError
from src.habits.core.logging import habits_log as log
from src.habits.schemas import TodoSchemaCreate, TodoSchemaRead
from src.habits.stores import Document, DocumentStore, DocumentStoreError, OrderBy, QueryFilter

from .habit_repository import _validation_message

TODOS_COLLECTION = "todos"

T = TypeVar("T")


class TodoRepository:
    """
    Репозиторий для CRUD-операций с задачами.

    Задачи принадлежат владельцу: чужая задача для него неотличима от отсутствующей.

    Attributes:
        store (DocumentStore): Хранилище документов.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def _call(self, action: str, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except DocumentStoreError as exc:
            log.error(f"Ошибка хранилища при попытке '{action}': {exc}")
            raise BackendError(message=f"Не удалось {action}. Попробуйте позже.") from exc

    @staticmethod
    def _to_todo(document: Document) -> TodoSchemaRead:
        return TodoSchemaRead.model_validate({**document.data, "id": document.id})

    async def add_todo(self, owner_id: str, text: str) -> str:
        """
        Создает невыполненную задачу.

        Returns:
            str: ID созданной задачи.

        Raises:
            ValidationError: Если текст пустой или владелец не указан.
            BackendError: При ошибке хранилища.
        """
        if not owner_id:
            raise ValidationError(message="Не указан владелец задачи.", error_type="invalid_owner")

        try:
            todo_in = TodoSchemaCreate(text=text)
        except PydanticValidationError as exc:
            raise ValidationError(message=_validation_message(exc), error_type="invalid_todo") from exc

        data = {
            "owner_id": owner_id,
            "text": todo_in.text,
            "completed": False,
            "created_at": datetime.now(timezone.utc),
        }
        todo_id = await self._call("создать задачу", self.store.add(TODOS_COLLECTION, data))
        log.info(f"Задача ID {todo_id} создана для владельца {owner_id}.")

        return todo_id

    async def get_todo(self, todo_id: str, owner_id: str) -> TodoSchemaRead:
        """
        Получает задачу владельца по ID.

        Raises:
            NotFoundError: Если задачи нет или она принадлежит другому владельцу.
            BackendError: При ошибке хранилища.
        """
        document = await self._call("получить задачу", self.store.get(TODOS_COLLECTION, todo_id))

        if document is None or document.data.get("owner_id") != owner_id:
            log.warning(f"Задача ID {todo_id} не найдена для владельца {owner_id}.")
            raise NotFoundError(message=f"Задача с ID {todo_id} не найдена.", error_type="todo_not_found")

        return self._to_todo(document)

    async def list_todos(self, owner_id: str) -> list[TodoSchemaRead]:
        """Возвращает задачи владельца, новые первыми."""
        documents = await self._call(
            "загрузить задачи",
            self.store.query(
                TODOS_COLLECTION,
                [QueryFilter("owner_id", "==", owner_id)],
                order_by=OrderBy("created_at", descending=True),
            ),
        )
        return [self._to_todo(document) for document in documents]

    async def toggle_todo(self, todo_id: str, owner_id: str, completed: bool) -> None:
        """
        Устанавливает признак выполнения задачи.

        Raises:
            NotFoundError: Если задачи нет у владельца.
            BackendError: При ошибке хранилища.
        """
        await self.get_todo(todo_id, owner_id)
        await self._call("обновить задачу", self.store.update(TODOS_COLLECTION, todo_id, {"completed": completed}))
        log.debug(f"Задача ID {todo_id}: completed={completed}.")

    async def delete_todo(self, todo_id: str, owner_id: str) -> None:
        """
        Удаляет задачу владельца.

        Raises:
            NotFoundError: Если задачи нет у владельца.
            BackendError: При ошибке хранилища.
        """
        await self.get_todo(todo_id, owner_id)
        await self._call("удалить задачу", self.store.delete(TODOS_COLLECTION, todo_id))
        log.info(f"Задача ID {todo_id} удалена.")
