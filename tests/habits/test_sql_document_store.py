from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from src.habits.core.database import Database
from src.habits.repositories import COMPLETIONS_COLLECTION, HABITS_COLLECTION, HabitRepository, TodoRepository
from src.habits.stores import (
    Document,
    DocumentStoreError,
    DuplicateDocumentError,
    OrderBy,
    QueryFilter,
    SqlAlchemyDocumentStore,
)

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Файловая SQLite база во временной директории, таблицы создаются при подключении."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'habits.db'}")
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def sql_store(database: Database) -> SqlAlchemyDocumentStore:
    return SqlAlchemyDocumentStore(database)


def _habit_data(owner_id: str, name: str, created_at: datetime) -> dict:
    return {
        "owner_id": owner_id,
        "name": name,
        "description": None,
        "created_at": created_at,
        "cached_streak": 0,
        "last_completed_date": None,
    }


async def test_add_and_get(sql_store: SqlAlchemyDocumentStore):
    created_at = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)

    doc_id = await sql_store.add(HABITS_COLLECTION, _habit_data("owner-1", "Read", created_at))
    document = await sql_store.get(HABITS_COLLECTION, doc_id)

    assert document is not None
    assert document.id == doc_id
    assert document.data["name"] == "Read"
    assert document.data["owner_id"] == "owner-1"
    assert "updated_at" not in document.data
    assert await sql_store.get(HABITS_COLLECTION, "missing") is None


async def test_query_filters_and_order(sql_store: SqlAlchemyDocumentStore):
    base = datetime(2024, 1, 10, tzinfo=timezone.utc)
    await sql_store.add(HABITS_COLLECTION, _habit_data("owner-1", "First", base))
    await sql_store.add(HABITS_COLLECTION, _habit_data("owner-1", "Second", base + timedelta(hours=1)))
    await sql_store.add(HABITS_COLLECTION, _habit_data("owner-2", "Foreign", base + timedelta(hours=2)))

    documents = await sql_store.query(
        HABITS_COLLECTION,
        [QueryFilter("owner_id", "==", "owner-1")],
        order_by=OrderBy("created_at", descending=True),
    )

    assert [document.data["name"] for document in documents] == ["Second", "First"]

    limited = await sql_store.query(HABITS_COLLECTION, order_by=OrderBy("created_at"), limit=1)
    assert [document.data["name"] for document in limited] == ["First"]


async def test_query_date_range(sql_store: SqlAlchemyDocumentStore):
    habit_id = await sql_store.add(
        HABITS_COLLECTION, _habit_data("owner-1", "Read", datetime(2024, 1, 1, tzinfo=timezone.utc))
    )
    for day in (1, 5, 10, 15):
        await sql_store.add(
            COMPLETIONS_COLLECTION, {"habit_id": habit_id, "owner_id": "owner-1", "completed_at": date(2024, 1, day)}
        )

    documents = await sql_store.query(
        COMPLETIONS_COLLECTION,
        [
            QueryFilter("owner_id", "==", "owner-1"),
            QueryFilter("completed_at", ">=", date(2024, 1, 5)),
            QueryFilter("completed_at", "<", date(2024, 1, 15)),
        ],
        order_by=OrderBy("completed_at"),
    )

    assert [document.data["completed_at"] for document in documents] == [date(2024, 1, 5), date(2024, 1, 10)]


async def test_unique_completion_per_day(sql_store: SqlAlchemyDocumentStore):
    habit_id = await sql_store.add(
        HABITS_COLLECTION, _habit_data("owner-1", "Read", datetime(2024, 1, 1, tzinfo=timezone.utc))
    )
    completion = {"habit_id": habit_id, "owner_id": "owner-1", "completed_at": date(2024, 1, 2)}
    await sql_store.add(COMPLETIONS_COLLECTION, completion)

    with pytest.raises(DuplicateDocumentError):
        await sql_store.add(COMPLETIONS_COLLECTION, completion)


async def test_update_and_delete(sql_store: SqlAlchemyDocumentStore):
    doc_id = await sql_store.add(
        HABITS_COLLECTION, _habit_data("owner-1", "Read", datetime(2024, 1, 1, tzinfo=timezone.utc))
    )

    await sql_store.update(HABITS_COLLECTION, doc_id, {"name": "Read more", "cached_streak": 3})
    document = await sql_store.get(HABITS_COLLECTION, doc_id)
    assert (document.data["name"], document.data["cached_streak"]) == ("Read more", 3)

    with pytest.raises(DocumentStoreError):
        await sql_store.update(HABITS_COLLECTION, "missing", {"name": "x"})

    await sql_store.delete(HABITS_COLLECTION, doc_id)
    # Повторное удаление не является ошибкой
    await sql_store.delete(HABITS_COLLECTION, doc_id)
    assert await sql_store.get(HABITS_COLLECTION, doc_id) is None


async def test_unknown_collection_and_field(sql_store: SqlAlchemyDocumentStore):
    with pytest.raises(DocumentStoreError):
        await sql_store.query("notes")

    with pytest.raises(DocumentStoreError):
        await sql_store.query(HABITS_COLLECTION, [QueryFilter("color", "==", "red")])


async def test_subscribe_receives_snapshots(sql_store: SqlAlchemyDocumentStore):
    snapshots: list[list[Document]] = []

    unsubscribe = await sql_store.subscribe(
        HABITS_COLLECTION, [QueryFilter("owner_id", "==", "owner-1")], snapshots.append, pytest.fail
    )
    assert snapshots == [[]]

    await sql_store.add(HABITS_COLLECTION, _habit_data("owner-1", "Read", datetime.now(timezone.utc)))
    assert [document.data["name"] for document in snapshots[-1]] == ["Read"]

    unsubscribe()
    assert sql_store.active_subscriptions == 0


async def test_repository_on_sql_store(sql_store: SqlAlchemyDocumentStore):
    """Идемпотентная отметка и каскадное удаление поверх SQL-хранилища."""
    repository = HabitRepository(sql_store, streak_window_days=365, timezone_name="UTC")
    today = repository.today()
    habit_id = await repository.create_habit("owner-1", "Read")

    await repository.mark_complete(habit_id, "owner-1", today - timedelta(days=1))
    await repository.mark_complete(habit_id, "owner-1", today)
    await repository.mark_complete(habit_id, "owner-1", today)

    habit = await repository.get_habit(habit_id, "owner-1")
    assert habit.cached_streak == 2
    assert habit.last_completed_date == today
    assert habit.created_at.tzinfo is not None
    assert len(await repository.query_completions(habit_id, "owner-1", today - timedelta(days=7), today)) == 2

    await repository.delete_habit(habit_id, "owner-1")

    assert await sql_store.query(COMPLETIONS_COLLECTION, [QueryFilter("habit_id", "==", habit_id)]) == []
    assert await repository.list_habits("owner-1") == []


async def test_todo_repository_on_sql_store(sql_store: SqlAlchemyDocumentStore):
    todos = TodoRepository(sql_store)
    todo_id = await todos.add_todo("owner-1", "Купить молоко")
    await todos.add_todo("owner-2", "Чужая")

    await todos.toggle_todo(todo_id, "owner-1", True)

    [todo] = await todos.list_todos("owner-1")
    assert (todo.id, todo.text, todo.completed) == (todo_id, "Купить молоко", True)
    assert todo.created_at.tzinfo is not None

    await todos.delete_todo(todo_id, "owner-1")
    assert await todos.list_todos("owner-1") == []


async def test_in_memory_database_shares_connection():
    """База в памяти видна всем сессиям, пока подключение открыто."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.connect()
    store = SqlAlchemyDocumentStore(db)

    doc_id = await store.add(HABITS_COLLECTION, _habit_data("owner-1", "Read", datetime.now(timezone.utc)))

    assert (await store.get(HABITS_COLLECTION, doc_id)).data["name"] == "Read"

    await db.disconnect()
    await db.disconnect()

    assert db.is_connected is False
    with pytest.raises(RuntimeError):
        async with db.session():
            pass
