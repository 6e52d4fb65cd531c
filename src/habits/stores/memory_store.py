"""Хранилище документов в памяти процесса (офлайн-режим и тесты)."""

import copy
from collections import defaultdict
from typing import Any, Sequence
from uuid import uuid4

from src.habits.core.logging import habits_log as log

from .document_store import (
    FILTER_OPERATORS,
    Document,
    DocumentStoreError,
    OrderBy,
    QueryFilter,
    SubscriptionRegistryMixin,
    validate_filters,
)


def _matches(data: dict[str, Any], filters: Sequence[QueryFilter]) -> bool:
    for query_filter in filters:
        field_value = data.get(query_filter.field)

        # Как и в Firestore, документ без поля не попадает в выборку с условием на это поле
        if field_value is None:
            return False

        if not FILTER_OPERATORS[query_filter.op](field_value, query_filter.value):
            return False

    return True


class InMemoryDocumentStore(SubscriptionRegistryMixin):
    """
    Реализация DocumentStore на словарях.

    Данные копируются при записи и чтении, поэтому вызывающий код не может изменить хранилище в обход операций.
    Поддерживает внедрение сбоев через fail_next() для проверки откатов.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._failures: dict[tuple[str, str | None], int] = {}
        self._init_listeners()

    def fail_next(self, operation: str, collection: str | None = None, times: int = 1) -> None:
        """
        Заставляет следующие `times` вызовов операции завершиться ошибкой DocumentStoreError.

        Args:
            operation (str): Имя операции ("add", "get", "query", "update", "delete").
            collection (str | None): Коллекция. None - любая коллекция.
            times (int): Количество сбоев подряд.
        """
        self._failures[(operation, collection)] = times

    def _maybe_fail(self, operation: str, collection: str) -> None:
        for key in ((operation, collection), (operation, None)):
            remaining = self._failures.get(key, 0)
            if remaining > 0:
                self._failures[key] = remaining - 1
                raise DocumentStoreError(f"Сбой операции '{operation}' для коллекции '{collection}'.")

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        self._maybe_fail("add", collection)

        doc_id = uuid4().hex
        self._collections[collection][doc_id] = copy.deepcopy(data)
        log.debug(f"Документ {doc_id} добавлен в коллекцию '{collection}'.")

        await self._notify(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Document | None:
        self._maybe_fail("get", collection)

        data = self._collections[collection].get(doc_id)
        return Document(doc_id, copy.deepcopy(data)) if data is not None else None

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        self._maybe_fail("query", collection)
        validate_filters(filters)

        documents = [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collections[collection].items()
            if _matches(data, filters)
        ]

        if order_by:
            # Документы без поля сортировки уходят в конец
            with_field = [doc for doc in documents if doc.data.get(order_by.field) is not None]
            without_field = [doc for doc in documents if doc.data.get(order_by.field) is None]
            with_field.sort(key=lambda doc: doc.data[order_by.field], reverse=order_by.descending)
            documents = with_field + without_field

        if limit is not None:
            documents = documents[:limit]

        return documents

    async def update(self, collection: str, doc_id: str, patch: dict[str, Any]) -> None:
        self._maybe_fail("update", collection)

        if doc_id not in self._collections[collection]:
            raise DocumentStoreError(f"Документ {doc_id} не найден в коллекции '{collection}'.")

        self._collections[collection][doc_id].update(copy.deepcopy(patch))
        log.debug(f"Документ {doc_id} коллекции '{collection}' обновлен: {sorted(patch)}.")

        await self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._maybe_fail("delete", collection)

        # Удаление отсутствующего документа не является ошибкой
        if self._collections[collection].pop(doc_id, None) is None:
            return

        log.debug(f"Документ {doc_id} удален из коллекции '{collection}'.")
        await self._notify(collection)

    def count(self, collection: str) -> int:
        """Количество документов в коллекции."""
        return len(self._collections[collection])
