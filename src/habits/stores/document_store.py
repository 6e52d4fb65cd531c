"""
Контракт хранилища документов и общая логика подписок.

Хранилище документов - внешний коллаборатор слоя привычек: коллекции документов с запросами
по равенству и диапазону, добавлением, обновлением, удалением и подписками в реальном времени.
"""

import operator
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple, Protocol, Sequence

from src.habits.core.logging import habits_log as log


class DocumentStoreError(Exception):
    """Операция хранилища документов не выполнена (сеть, права доступа, квоты и т.д.)."""

    pass


class DuplicateDocumentError(DocumentStoreError):
    """Нарушено ограничение уникальности коллекции."""

    pass


@dataclass(frozen=True)
class Document:
    """Документ коллекции: ID и данные."""

    id: str
    data: dict[str, Any]


class QueryFilter(NamedTuple):
    """Условие запроса: (поле, оператор, значение)."""

    field: str
    op: str
    value: Any


class OrderBy(NamedTuple):
    """Сортировка результата запроса."""

    field: str
    descending: bool = False


# Поддерживаемые операторы фильтрации
FILTER_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

Unsubscribe = Callable[[], None]
SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]


class DocumentStore(Protocol):
    """Контракт хранилища документов."""

    async def add(self, collection: str, data: dict[str, Any]) -> str: ...

    async def get(self, collection: str, doc_id: str) -> Document | None: ...

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Document]: ...

    async def update(self, collection: str, doc_id: str, patch: dict[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def subscribe(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
        order_by: OrderBy | None = None,
    ) -> Unsubscribe: ...


def validate_filters(filters: Sequence[QueryFilter]) -> None:
    """
    Проверяет, что все операторы фильтров поддерживаются.

    Raises:
        ValueError: Если оператор не поддерживается.
    """
    for query_filter in filters:
        if query_filter.op not in FILTER_OPERATORS:
            raise ValueError(f"Неподдерживаемый оператор фильтра '{query_filter.op}' для поля '{query_filter.field}'.")


@dataclass(eq=False)
class _Listener:
    """Активная подписка на коллекцию."""

    collection: str
    filters: tuple[QueryFilter, ...]
    on_change: SnapshotCallback
    on_error: ErrorCallback
    order_by: OrderBy | None = None
    active: bool = field(default=True)


class SubscriptionRegistryMixin:
    """
    Реестр подписок для реализаций хранилища.

    Подписка сразу получает начальный снимок, а затем свежий снимок после каждой записи в коллекцию.
    Ошибка одного слушателя не мешает остальным и не влияет на операцию записи.
    """

    def _init_listeners(self) -> None:
        self._listeners: list[_Listener] = []

    # Реализация хранилища предоставляет query()
    query: Callable[..., Any]

    async def subscribe(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
        order_by: OrderBy | None = None,
    ) -> Unsubscribe:
        """
        Подписывается на изменения коллекции.

        Args:
            collection (str): Имя коллекции.
            filters (Sequence[QueryFilter]): Условия выборки документов подписки.
            on_change (SnapshotCallback): Получает полный текущий список документов.
            on_error (ErrorCallback): Получает ошибку, если снимок не удалось построить.
            order_by (OrderBy | None): Сортировка снимка.

        Returns:
            Unsubscribe: Функция отписки (повторный вызов безопасен).
        """
        validate_filters(filters)
        listener = _Listener(collection, tuple(filters), on_change, on_error, order_by)
        self._listeners.append(listener)
        log.debug(f"Подписка на коллекцию '{collection}' с фильтрами {list(filters)} создана.")

        # Начальный снимок доставляем до возврата функции отписки
        await self._deliver(listener)

        def unsubscribe() -> None:
            if not listener.active:
                return
            listener.active = False
            self._listeners.remove(listener)
            log.debug(f"Подписка на коллекцию '{collection}' отменена.")

        return unsubscribe

    @property
    def active_subscriptions(self) -> int:
        """Количество активных подписок."""
        return len(self._listeners)

    async def _notify(self, collection: str) -> None:
        # Копия списка: слушатель может отписаться прямо во время доставки
        for listener in list(self._listeners):
            if listener.active and listener.collection == collection:
                await self._deliver(listener)

    async def _deliver(self, listener: _Listener) -> None:
        try:
            documents = await self.query(listener.collection, listener.filters, listener.order_by)
        except DocumentStoreError as exc:
            log.warning(f"Не удалось построить снимок коллекции '{listener.collection}': {exc}")
            listener.on_error(exc)
            return

        try:
            listener.on_change(documents)
        except Exception as exc:
            log.exception(f"Ошибка в обработчике снимка коллекции '{listener.collection}': {exc}")
