"""Подключение SqlAlchemyDocumentStore к базе данных."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.habits.models import metadata_obj

from .config import settings
from .logging import habits_log as log


def _is_sqlite_memory(database_url: str) -> bool:
    """База SQLite в памяти живет, пока открыто соединение."""
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


class Database:
    """
    Менеджер подключения хранилища документов к базе данных.

    Коллекции хранятся в типизированных таблицах, поэтому схема создается
    при подключении (миграции для слоя привычек не используются).

    Attributes:
        database_url (str): Асинхронный URL SQLAlchemy.
        engine (AsyncEngine | None): Движок, пока подключение открыто.
    """

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url or settings.DATABASE_URL
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    async def connect(self, create_tables: bool = True, **engine_options: Any) -> None:
        """
        Создает движок, проверяет соединение и (по умолчанию) создает таблицы коллекций.

        Args:
            create_tables (bool): Создать таблицы `habits` и `completions`, если их нет.
            **engine_options: Дополнительные параметры для create_async_engine.

        Raises:
            RuntimeError: Если база данных недоступна.
        """
        if self.is_connected:
            log.warning("Повторный вызов connect: подключение к базе данных уже открыто.")
            return

        if _is_sqlite_memory(self.database_url):
            # Все сессии должны видеть одну и ту же базу в памяти
            engine_options.setdefault("poolclass", StaticPool)
            engine_options.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_options.setdefault("pool_pre_ping", True)

        self.engine = create_async_engine(self.database_url, echo=settings.DEVELOPMENT, **engine_options)
        self._session_factory = async_sessionmaker(self.engine, expire_on_commit=False, autoflush=False)

        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except Exception as exc:
            log.critical(f"База данных недоступна ({make_url(self.database_url).get_backend_name()}): {exc}")
            await self.disconnect()
            raise RuntimeError("Не удалось подключиться к базе данных хранилища документов.") from exc

        if create_tables:
            async with self.engine.begin() as connection:
                await connection.run_sync(metadata_obj.create_all)
            log.debug("Таблицы коллекций готовы.")

        log.success("Хранилище документов подключено к базе данных.")

    async def disconnect(self) -> None:
        """Закрывает пул соединений. Повторный вызов безопасен."""
        if self.engine is None:
            return

        await self.engine.dispose()
        self.engine = None
        self._session_factory = None
        log.info("Подключение к базе данных закрыто.")

    def _new_session(self) -> AsyncSession:
        if self._session_factory is None:
            raise RuntimeError("Нет подключения к базе данных. Вызовите `await database.connect()`.")
        return self._session_factory()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Сессия для чтения.

        Yields:
            AsyncSession: Сессия БД.

        Raises:
            RuntimeError: Если подключение не открыто.
        """
        async with self._new_session() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Сессия для записи: коммит при успешном выходе, откат при исключении.

        Yields:
            AsyncSession: Сессия БД с открытой транзакцией.

        Raises:
            RuntimeError: Если подключение не открыто.
        """
        async with self._new_session() as session:
            try:
                async with session.begin():
                    yield session
            except Exception as exc:
                # Трейсбек только в DEVELOPMENT
                log.warning(f"Транзакция хранилища документов отменена: {exc}", exc_info=settings.DEVELOPMENT)
                raise
