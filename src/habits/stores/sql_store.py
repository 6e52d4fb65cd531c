"""Хранилище документов поверх асинхронного SQLAlchemy."""

from typing import Any, Sequence

from sqlalchemy import ColumnElement, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.habits.core.database import Database
from src.habits.core.logging import habits_log as log
from src.habits.models import Base, CompletionDocument, HabitDocument, TodoDocument

from .document_store import (
    FILTER_OPERATORS,
    Document,
    DocumentStoreError,
    DuplicateDocumentError,
    OrderBy,
    QueryFilter,
    SubscriptionRegistryMixin,
    validate_filters,
)

# Служебные колонки не входят в данные документа
_SERVICE_COLUMNS = frozenset({"id", "updated_at"})

DEFAULT_COLLECTIONS: dict[str, type[Base]] = {
    "habits": HabitDocument,
    "completions": CompletionDocument,
    "todos": TodoDocument,
}


class SqlAlchemyDocumentStore(SubscriptionRegistryMixin):
    """
    Реализация DocumentStore на типизированных таблицах.

    Каждая коллекция отображается на модель SQLAlchemy, фильтры и сортировка
    транслируются в SQL, поэтому выборка по диапазону дат выполняется базой данных.
    Ошибки SQLAlchemy переводятся в DocumentStoreError.

    Attributes:
        database (Database): Менеджер подключений к базе данных.
        collections (dict[str, type[Base]]): Соответствие коллекций моделям.
    """

    def __init__(self, database: Database, collections: dict[str, type[Base]] | None = None) -> None:
        self.database = database
        self.collections = collections or DEFAULT_COLLECTIONS
        self._init_listeners()

    def _model(self, collection: str) -> type[Base]:
        try:
            return self.collections[collection]
        except KeyError:
            raise DocumentStoreError(f"Неизвестная коллекция '{collection}'.") from None

    @staticmethod
    def _to_document(instance: Base) -> Document:
        data = {
            attr.key: attr.value for attr in inspect(instance).attrs if attr.key not in _SERVICE_COLUMNS
        }
        return Document(instance.id, data)

    @staticmethod
    def _column(model: type[Base], field_name: str) -> Any:
        if field_name in _SERVICE_COLUMNS or field_name not in model.__table__.columns:
            raise DocumentStoreError(f"Поле '{field_name}' отсутствует в коллекции '{model.__tablename__}'.")
        return getattr(model, field_name)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        model = self._model(collection)
        for field_name in data:
            self._column(model, field_name)

        try:
            async with self.database.transaction() as session:
                instance = model(**data)
                session.add(instance)
                await session.flush()
                doc_id = instance.id
        except IntegrityError as exc:
            raise DuplicateDocumentError(f"Нарушено ограничение коллекции '{collection}': {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Не удалось добавить документ в '{collection}': {exc}") from exc

        log.debug(f"Документ {doc_id} добавлен в коллекцию '{collection}'.")
        await self._notify(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Document | None:
        model = self._model(collection)

        try:
            async with self.database.session() as session:
                instance = await session.get(model, doc_id)
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Не удалось получить документ {doc_id} из '{collection}': {exc}") from exc

        return self._to_document(instance) if instance is not None else None

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        model = self._model(collection)
        validate_filters(filters)

        conditions: list[ColumnElement[bool]] = [
            FILTER_OPERATORS[query_filter.op](self._column(model, query_filter.field), query_filter.value)
            for query_filter in filters
        ]
        statement = select(model).where(*conditions)

        if order_by:
            column = self._column(model, order_by.field)
            statement = statement.order_by(column.desc() if order_by.descending else column.asc())

        if limit is not None:
            statement = statement.limit(limit)

        try:
            async with self.database.session() as session:
                result = await session.execute(statement)
                instances = result.scalars().all()
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Не удалось выполнить запрос к '{collection}': {exc}") from exc

        return [self._to_document(instance) for instance in instances]

    async def update(self, collection: str, doc_id: str, patch: dict[str, Any]) -> None:
        model = self._model(collection)
        for field_name in patch:
            self._column(model, field_name)

        try:
            async with self.database.transaction() as session:
                instance = await session.get(model, doc_id)
                if instance is None:
                    raise DocumentStoreError(f"Документ {doc_id} не найден в коллекции '{collection}'.")

                for field_name, value in patch.items():
                    setattr(instance, field_name, value)
        except IntegrityError as exc:
            raise DuplicateDocumentError(f"Нарушено ограничение коллекции '{collection}': {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Не удалось обновить документ {doc_id} в '{collection}': {exc}") from exc

        log.debug(f"Документ {doc_id} коллекции '{collection}' обновлен: {sorted(patch)}.")
        await self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        model = self._model(collection)

        try:
            async with self.database.transaction() as session:
                instance = await session.get(model, doc_id)
                if instance is None:
                    return
                await session.delete(instance)
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Не удалось удалить документ {doc_id} из '{collection}': {exc}") from exc

        log.debug(f"Документ {doc_id} удален из коллекции '{collection}'.")
        await self._notify(collection)
