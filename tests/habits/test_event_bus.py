import pytest

from src.habits.core.exceptions import AuthError
from src.habits.services.auth import SessionAuthProvider
from src.habits.services.event_bus import AddHabitRequested, EventBus, NotificationEvent, NotificationLevel


# --- Шина событий ---


def test_publish_delivers_by_event_type():
    bus = EventBus()
    notifications: list[NotificationEvent] = []
    requests: list[AddHabitRequested] = []
    bus.subscribe(NotificationEvent, notifications.append)
    bus.subscribe(AddHabitRequested, requests.append)

    delivered = bus.publish(AddHabitRequested(suggested_name="Read"))

    assert delivered == 1
    assert requests == [AddHabitRequested(suggested_name="Read")]
    assert notifications == []


def test_unsubscribe_is_idempotent():
    bus = EventBus()
    received: list[NotificationEvent] = []
    unsubscribe = bus.subscribe(NotificationEvent, received.append)

    unsubscribe()
    unsubscribe()
    bus.publish(NotificationEvent(message="hidden"))

    assert received == []


def test_failing_handler_does_not_stop_others():
    bus = EventBus()
    received: list[NotificationEvent] = []

    def broken(event: NotificationEvent) -> None:
        raise RuntimeError("boom")

    bus.subscribe(NotificationEvent, broken)
    bus.subscribe(NotificationEvent, received.append)

    delivered = bus.publish(NotificationEvent(message="Не удалось сохранить"))

    assert delivered == 1
    assert received[0].level is NotificationLevel.ERROR


# --- Провайдер сессии ---


@pytest.mark.asyncio
async def test_session_auth_notifies_listeners():
    auth = SessionAuthProvider()
    sync_calls: list[str | None] = []
    async_calls: list[str | None] = []

    async def on_change(owner_id: str | None) -> None:
        async_calls.append(owner_id)

    auth.add_listener(sync_calls.append)
    remove = auth.add_listener(on_change)

    await auth.sign_in("owner-1")
    await auth.sign_in("owner-1")  # Тот же владелец: без оповещения
    remove()
    await auth.sign_out()
    await auth.sign_out()

    assert auth.current_owner_id is None
    assert sync_calls == ["owner-1", None]
    assert async_calls == ["owner-1"]


@pytest.mark.asyncio
async def test_session_auth_rejects_empty_owner():
    auth = SessionAuthProvider()

    with pytest.raises(AuthError):
        await auth.sign_in("")
