from datetime import date, timedelta

import pytest

from src.habits.core.exceptions import BackendError, NotFoundError, ValidationError
from src.habits.repositories import COMPLETIONS_COLLECTION, HABITS_COLLECTION, HabitRepository
from src.habits.schemas import HabitSchemaRead
from src.habits.stores import InMemoryDocumentStore, QueryFilter

# Помечаем все тесты в модуле как асинхронные
pytestmark = pytest.mark.asyncio


async def _completions_of(document_store: InMemoryDocumentStore, habit_id: str) -> list:
    return await document_store.query(COMPLETIONS_COLLECTION, [QueryFilter("habit_id", "==", habit_id)])


# --- Создание и чтение ---


async def test_create_habit(repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str):
    habit_id = await repository.create_habit(owner_id, "  Read  ", "10 pages")

    habit = await repository.get_habit(habit_id, owner_id)

    assert habit.name == "Read"  # Пробелы по краям отбрасываются
    assert habit.description == "10 pages"
    assert habit.owner_id == owner_id
    assert habit.cached_streak == 0
    assert habit.last_completed_date is None
    assert habit.created_at.tzinfo is not None
    assert document_store.count(HABITS_COLLECTION) == 1


@pytest.mark.parametrize("name", ["", "   "])
async def test_create_habit_rejects_empty_name(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, name: str
):
    with pytest.raises(ValidationError):
        await repository.create_habit(owner_id, name)

    # До хранилища запрос не доходит
    assert document_store.count(HABITS_COLLECTION) == 0


async def test_create_habit_store_failure(repository: HabitRepository, document_store: InMemoryDocumentStore):
    document_store.fail_next("add", HABITS_COLLECTION)

    with pytest.raises(BackendError):
        await repository.create_habit("owner-1", "Read")


async def test_get_habit_of_other_owner_is_not_found(
    repository: HabitRepository, owner_id: str, other_owner_id: str
):
    habit_id = await repository.create_habit(owner_id, "Read")

    with pytest.raises(NotFoundError):
        await repository.get_habit(habit_id, other_owner_id)


async def test_list_habits_is_owner_scoped_and_newest_first(
    repository: HabitRepository, owner_id: str, other_owner_id: str
):
    first_id = await repository.create_habit(owner_id, "First")
    second_id = await repository.create_habit(owner_id, "Second")
    await repository.create_habit(other_owner_id, "Foreign")

    habits = await repository.list_habits(owner_id)

    assert [habit.id for habit in habits] == [second_id, first_id]


# --- Обновление ---


async def test_update_habit(repository: HabitRepository, owner_id: str):
    habit_id = await repository.create_habit(owner_id, "Read")

    await repository.update_habit(habit_id, owner_id, {"name": "Read more", "description": "20 pages"})

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.name == "Read more"
    assert habit.description == "20 pages"


@pytest.mark.parametrize(
    "fields",
    [
        {"owner_id": "owner-2"},
        {"id": "other-id"},
        {"created_at": "2024-01-01T00:00:00+00:00"},
        {"name": "  "},
        {"name": None},
        {"cached_streak": 100},  # Кэш стрика меняет только пересчет
    ],
)
async def test_update_habit_rejects_invalid_fields(repository: HabitRepository, owner_id: str, fields: dict):
    habit_id = await repository.create_habit(owner_id, "Read")

    with pytest.raises(ValidationError):
        await repository.update_habit(habit_id, owner_id, fields)

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.name == "Read"
    assert habit.owner_id == owner_id


async def test_update_habit_of_other_owner(repository: HabitRepository, owner_id: str, other_owner_id: str):
    habit_id = await repository.create_habit(owner_id, "Read")

    with pytest.raises(NotFoundError):
        await repository.update_habit(habit_id, other_owner_id, {"name": "Hijacked"})


# --- Выполнения ---


async def test_mark_complete_is_idempotent(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, today: date
):
    habit_id = await repository.create_habit(owner_id, "Read")

    await repository.mark_complete(habit_id, owner_id, today)
    await repository.mark_complete(habit_id, owner_id, today)

    assert len(await _completions_of(document_store, habit_id)) == 1

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.cached_streak == 1
    assert habit.last_completed_date == today


async def test_mark_complete_defaults_to_today(repository: HabitRepository, owner_id: str, today: date):
    habit_id = await repository.create_habit(owner_id, "Read")

    await repository.mark_complete(habit_id, owner_id)

    completions = await repository.query_completions(habit_id, owner_id, today, today)
    assert [completion.completed_at for completion in completions] == [today]


async def test_mark_complete_updates_cached_streak(
    repository: HabitRepository, owner_id: str, today: date, add_completions
):
    habit_id = await repository.create_habit(owner_id, "Read")
    await add_completions(habit_id, [today - timedelta(days=2), today - timedelta(days=1)])

    await repository.mark_complete(habit_id, owner_id, today)

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.cached_streak == 3


async def test_mark_incomplete(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, today: date
):
    habit_id = await repository.create_habit(owner_id, "Read")
    await repository.mark_complete(habit_id, owner_id, today - timedelta(days=1))
    await repository.mark_complete(habit_id, owner_id, today)

    await repository.mark_incomplete(habit_id, owner_id, today)
    # Повторный вызов ничего не делает
    await repository.mark_incomplete(habit_id, owner_id, today)

    completions = await _completions_of(document_store, habit_id)
    assert [completion.data["completed_at"] for completion in completions] == [today - timedelta(days=1)]

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.cached_streak == 1  # Вчерашнее выполнение сохраняет серию
    assert habit.last_completed_date == today - timedelta(days=1)


async def test_mark_complete_keeps_completion_when_cache_update_fails(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, today: date
):
    habit_id = await repository.create_habit(owner_id, "Read")
    document_store.fail_next("update", HABITS_COLLECTION)

    # Выполнение сохранено, сбой обновления кэша не превращается в ошибку отметки
    await repository.mark_complete(habit_id, owner_id, today)

    assert len(await _completions_of(document_store, habit_id)) == 1
    habit = await repository.get_habit(habit_id, owner_id)
    assert (habit.cached_streak, habit.last_completed_date) == (0, None)

    # Повторная отметка того же дня исправляет кэш
    await repository.mark_complete(habit_id, owner_id, today)

    habit = await repository.get_habit(habit_id, owner_id)
    assert (habit.cached_streak, habit.last_completed_date) == (1, today)
    assert len(await _completions_of(document_store, habit_id)) == 1


async def test_mark_incomplete_repairs_stale_cache(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, today: date
):
    habit_id = await repository.create_habit(owner_id, "Read")
    await repository.mark_complete(habit_id, owner_id, today)
    document_store.fail_next("update", HABITS_COLLECTION)
    await repository.mark_incomplete(habit_id, owner_id, today)

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.last_completed_date == today  # Кэш устарел

    await repository.mark_incomplete(habit_id, owner_id, today)

    habit = await repository.get_habit(habit_id, owner_id)
    assert (habit.cached_streak, habit.last_completed_date) == (0, None)


async def test_mark_complete_on_foreign_habit(repository: HabitRepository, owner_id: str, other_owner_id: str):
    habit_id = await repository.create_habit(owner_id, "Read")

    with pytest.raises(NotFoundError):
        await repository.mark_complete(habit_id, other_owner_id)


async def test_mark_complete_store_failure(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str
):
    habit_id = await repository.create_habit(owner_id, "Read")
    document_store.fail_next("add", COMPLETIONS_COLLECTION)

    with pytest.raises(BackendError):
        await repository.mark_complete(habit_id, owner_id)

    assert await _completions_of(document_store, habit_id) == []


async def test_cached_streak_is_bounded_by_window(
    document_store: InMemoryDocumentStore, owner_id: str, add_completions
):
    """Стрик длиннее окна пересчета недосчитывается до размера окна."""
    repository = HabitRepository(document_store, streak_window_days=5, timezone_name="UTC")
    today = repository.today()
    habit_id = await repository.create_habit(owner_id, "Read")
    await add_completions(habit_id, [today - timedelta(days=offset) for offset in range(1, 10)])

    await repository.mark_complete(habit_id, owner_id, today)

    habit = await repository.get_habit(habit_id, owner_id)
    assert habit.cached_streak == 5


# --- Выборки ---


async def test_query_completions_filters_range(
    repository: HabitRepository, owner_id: str, other_owner_id: str, add_completions
):
    habit_id = await repository.create_habit(owner_id, "Read")
    other_habit_id = await repository.create_habit(owner_id, "Run")
    await add_completions(habit_id, [date(2024, 1, day) for day in (1, 5, 10, 15)])
    await add_completions(other_habit_id, [date(2024, 1, 5)])
    await add_completions(habit_id, [date(2024, 1, 6)], other_owner_id)

    completions = await repository.query_completions(habit_id, owner_id, date(2024, 1, 5), date(2024, 1, 10))

    assert [completion.completed_at for completion in completions] == [date(2024, 1, 5), date(2024, 1, 10)]
    assert all(completion.owner_id == owner_id for completion in completions)


async def test_query_owner_completions(
    repository: HabitRepository, owner_id: str, other_owner_id: str, add_completions
):
    read_id = await repository.create_habit(owner_id, "Read")
    run_id = await repository.create_habit(owner_id, "Run")
    await add_completions(read_id, [date(2024, 1, 1), date(2024, 1, 2)])
    await add_completions(run_id, [date(2024, 1, 2), date(2024, 1, 3)])
    await add_completions(read_id, [date(2024, 1, 2)], other_owner_id)

    completions = await repository.query_owner_completions(owner_id, date(2024, 1, 2), date(2024, 1, 3))

    assert sorted((c.habit_id, c.completed_at) for c in completions) == sorted(
        [(read_id, date(2024, 1, 2)), (run_id, date(2024, 1, 2)), (run_id, date(2024, 1, 3))]
    )


async def test_query_completions_rejects_inverted_range(repository: HabitRepository, owner_id: str):
    with pytest.raises(ValidationError):
        await repository.query_completions("habit", owner_id, date(2024, 1, 10), date(2024, 1, 1))


# --- Удаление ---


async def test_delete_habit_cascades_to_completions(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, today: date, add_completions
):
    habit_id = await repository.create_habit(owner_id, "Read")
    other_habit_id = await repository.create_habit(owner_id, "Run")
    await add_completions(habit_id, [today - timedelta(days=offset) for offset in range(5)])
    await add_completions(other_habit_id, [today])

    await repository.delete_habit(habit_id, owner_id)

    assert await _completions_of(document_store, habit_id) == []
    assert len(await _completions_of(document_store, other_habit_id)) == 1
    with pytest.raises(NotFoundError):
        await repository.get_habit(habit_id, owner_id)


async def test_delete_habit_retries_habit_delete(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str
):
    habit_id = await repository.create_habit(owner_id, "Read")
    document_store.fail_next("delete", HABITS_COLLECTION, times=2)

    await repository.delete_habit(habit_id, owner_id)

    assert document_store.count(HABITS_COLLECTION) == 0


async def test_delete_habit_surfaces_final_failure(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str, today: date, add_completions
):
    habit_id = await repository.create_habit(owner_id, "Read")
    await add_completions(habit_id, [today])
    document_store.fail_next("delete", HABITS_COLLECTION, times=3)

    with pytest.raises(BackendError):
        await repository.delete_habit(habit_id, owner_id)

    # Выполнения уже удалены, привычка осталась: ошибка не скрыта
    assert await _completions_of(document_store, habit_id) == []
    assert document_store.count(HABITS_COLLECTION) == 1
    # Кэш соответствует пустому журналу
    habit = await repository.get_habit(habit_id, owner_id)
    assert (habit.cached_streak, habit.last_completed_date) == (0, None)


async def test_delete_foreign_habit(repository: HabitRepository, owner_id: str, other_owner_id: str):
    habit_id = await repository.create_habit(owner_id, "Read")

    with pytest.raises(NotFoundError):
        await repository.delete_habit(habit_id, other_owner_id)


# --- Подписка ---


async def test_subscribe_delivers_initial_and_updated_snapshots(repository: HabitRepository, owner_id: str):
    existing_id = await repository.create_habit(owner_id, "Read")
    snapshots: list[list[HabitSchemaRead]] = []

    unsubscribe = await repository.subscribe(owner_id, snapshots.append, pytest.fail)

    # Начальный снимок доставлен до возврата функции отписки
    assert [[habit.id for habit in snapshot] for snapshot in snapshots] == [[existing_id]]

    new_id = await repository.create_habit(owner_id, "Run")
    assert [habit.id for habit in snapshots[-1]] == [new_id, existing_id]

    unsubscribe()
    await repository.create_habit(owner_id, "Swim")
    assert len(snapshots) == 2


async def test_subscribe_reports_backend_errors(
    repository: HabitRepository, document_store: InMemoryDocumentStore, owner_id: str
):
    errors: list[BackendError] = []
    document_store.fail_next("query", HABITS_COLLECTION)

    await repository.subscribe(owner_id, pytest.fail, errors.append)

    assert len(errors) == 1
    assert isinstance(errors[0], BackendError)
