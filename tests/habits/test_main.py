from pathlib import Path

import pytest

from src.habits.core.config import Settings
from src.habits.main import create_habits_app
from src.habits.stores import InMemoryDocumentStore, SqlAlchemyDocumentStore

pytestmark = pytest.mark.asyncio


async def test_in_memory_app_follows_session():
    async with create_habits_app(Settings(SENTRY_DSN=None, CHAT_FUNCTION_URL=None), in_memory=True) as app:
        assert isinstance(app.repository.store, InMemoryDocumentStore)

        await app.auth.sign_in("owner-1")
        habit_id = await app.habit_store.add_habit("Read")
        await app.habit_store.toggle_completion(habit_id)

        assert app.habit_store.subscribed_owner == "owner-1"
        assert app.habit_store.get_completed_habits_count() == 1
        assert app.chat.remote_backend is None

        todo_id = await app.todos.add_todo("owner-1", "Купить молоко")
        assert [todo.id for todo in await app.todos.list_todos("owner-1")] == [todo_id]

        await app.auth.sign_out()

        assert app.habit_store.habits == []
        assert app.habit_store.subscribed_owner is None


async def test_sql_app_persists_between_runs(tmp_path: Path):
    app_settings = Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'coach.db'}",
        SENTRY_DSN=None,
        CHAT_FUNCTION_URL=None,
    )

    async with create_habits_app(app_settings) as app:
        assert isinstance(app.repository.store, SqlAlchemyDocumentStore)
        await app.auth.sign_in("owner-1")
        await app.habit_store.add_habit("Read", "20 pages")

    async with create_habits_app(app_settings) as app:
        await app.auth.sign_in("owner-1")

        assert [(row.name, row.description) for row in app.habit_store.habits] == [("Read", "20 pages")]
