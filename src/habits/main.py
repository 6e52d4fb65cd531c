"""
Сборка слоя данных привычек.

Отвечает за:
1. Инициализацию Sentry (если задан DSN).
2. Подключение к базе данных и выбор хранилища документов.
3. Создание репозиториев привычек и задач, журнала выполнений, хранилища состояния и чат-коуча.
4. Корректное завершение работы (отписки, HTTP-сессия, соединения с БД).
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from src.core_shared.sentry_sdk_setup import setup_sentry
from src.habits.core.config import Settings, settings
from src.habits.core.database import Database
from src.habits.core.logging import habits_log as log
from src.habits.repositories import HabitRepository, TodoRepository
from src.habits.services.auth import SessionAuthProvider
from src.habits.services.chat_coach import ChatCoachService, CloudFunctionChatBackend
from src.habits.services.completion_log import CompletionLog
from src.habits.services.event_bus import EventBus
from src.habits.services.habit_store import HabitStore
from src.habits.stores import DocumentStore, InMemoryDocumentStore, SqlAlchemyDocumentStore


@dataclass
class HabitsApp:
    """Собранные компоненты слоя данных привычек."""

    auth: SessionAuthProvider
    event_bus: EventBus
    repository: HabitRepository
    todos: TodoRepository
    completion_log: CompletionLog
    habit_store: HabitStore
    chat: ChatCoachService


@asynccontextmanager
async def create_habits_app(
    app_settings: Settings | None = None,
    in_memory: bool = False,
) -> AsyncGenerator[HabitsApp, None]:
    """
    Собирает компоненты и управляет их жизненным циклом.

    Хранилище состояния привязывается к провайдеру сессии: после `auth.sign_in(...)`
    оно подписывается на привычки владельца, после `auth.sign_out()` очищается.

    Args:
        app_settings (Settings | None): Настройки. По умолчанию глобальные `settings`.
        in_memory (bool): Использовать InMemoryDocumentStore вместо базы данных (офлайн режим, тесты).

    Yields:
        HabitsApp: Собранные компоненты.
    """
    app_settings = app_settings or settings

    # Инициализация Sentry, если задан DSN
    if app_settings.SENTRY_DSN:
        setup_sentry(app_settings, log_level=app_settings.LOG_LEVEL)

    log.info(f"Запуск '{app_settings.RELEASE}' ({app_settings.ENVIRONMENT})...")

    database: Database | None = None
    store: DocumentStore

    if in_memory:
        store = InMemoryDocumentStore()
    else:
        database = Database(app_settings.DATABASE_URL)
        await database.connect()
        store = SqlAlchemyDocumentStore(database)

    repository = HabitRepository(
        store,
        streak_window_days=app_settings.STREAK_WINDOW_DAYS,
        delete_retry_attempts=app_settings.DELETE_RETRY_ATTEMPTS,
        timezone_name=app_settings.TIMEZONE,
    )
    auth = SessionAuthProvider()
    event_bus = EventBus()
    completion_log = CompletionLog(repository, auth, default_window_days=app_settings.STREAK_WINDOW_DAYS)
    habit_store = HabitStore(repository, auth, event_bus=event_bus, completion_log=completion_log)
    remove_auth_binding = await habit_store.bind_auth()

    remote_backend = None
    if app_settings.CHAT_FUNCTION_URL:
        remote_backend = CloudFunctionChatBackend(
            app_settings.CHAT_FUNCTION_URL,
            max_attempts=app_settings.CHAT_MAX_ATTEMPTS,
        )
    else:
        log.info("CHAT_FUNCTION_URL не задан, чат-коуч работает локально.")

    app = HabitsApp(
        auth=auth,
        event_bus=event_bus,
        repository=repository,
        todos=TodoRepository(store),
        completion_log=completion_log,
        habit_store=habit_store,
        chat=ChatCoachService(habit_store, remote_backend),
    )

    try:
        yield app
    finally:
        log.info("Остановка слоя данных привычек...")
        remove_auth_binding()
        habit_store.unsubscribe_all()
        if remote_backend is not None:
            await remote_backend.close()
        if database is not None:
            await database.disconnect()
        log.info("Слой данных привычек остановлен.")
