from datetime import date
from typing import AsyncGenerator, Awaitable, Callable, Iterable

import pytest
import pytest_asyncio

from src.habits.repositories import COMPLETIONS_COLLECTION, HabitRepository
from src.habits.services.auth import SessionAuthProvider
from src.habits.services.completion_log import CompletionLog
from src.habits.services.event_bus import EventBus, NotificationEvent
from src.habits.services.habit_store import HabitStore
from src.habits.stores import InMemoryDocumentStore

# Владелец, от имени которого работают тесты
OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"

AddCompletions = Callable[[str, Iterable[date], str], Awaitable[None]]


# --- Хранилище и репозиторий ---


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def other_owner_id() -> str:
    return OTHER_OWNER_ID


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    """Чистое хранилище документов в памяти для каждого теста."""
    return InMemoryDocumentStore()


@pytest.fixture
def repository(document_store: InMemoryDocumentStore) -> HabitRepository:
    """Репозиторий привычек с окном пересчета 365 дней и UTC."""
    return HabitRepository(document_store, streak_window_days=365, delete_retry_attempts=3, timezone_name="UTC")


@pytest.fixture
def today(repository: HabitRepository) -> date:
    """Текущий день в часовом поясе репозитория."""
    return repository.today()


@pytest.fixture
def add_completions(document_store: InMemoryDocumentStore) -> AddCompletions:
    """
    Записывает выполнения напрямую в хранилище, минуя пересчет кэша стрика.

    Используется для подготовки истории выполнений.
    """

    async def _add(habit_id: str, days: Iterable[date], owner_id: str = OWNER_ID) -> None:
        for day in days:
            await document_store.add(
                COMPLETIONS_COLLECTION,
                {"habit_id": habit_id, "owner_id": owner_id, "completed_at": day},
            )

    return _add


# --- Сервисы ---


@pytest.fixture
def auth() -> SessionAuthProvider:
    return SessionAuthProvider(OWNER_ID)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def notifications(event_bus: EventBus) -> list[NotificationEvent]:
    """Собирает уведомления, опубликованные в шину событий."""
    received: list[NotificationEvent] = []
    event_bus.subscribe(NotificationEvent, received.append)
    return received


@pytest.fixture
def completion_log(repository: HabitRepository, auth: SessionAuthProvider) -> CompletionLog:
    return CompletionLog(repository, auth)


@pytest.fixture
def habit_store(repository: HabitRepository, auth: SessionAuthProvider, event_bus: EventBus) -> HabitStore:
    return HabitStore(repository, auth, event_bus)


@pytest_asyncio.fixture
async def subscribed_store(habit_store: HabitStore) -> AsyncGenerator[HabitStore, None]:
    """Хранилище состояния, подписанное на привычки владельца."""
    await habit_store.subscribe()
    yield habit_store
    habit_store.unsubscribe_all()
