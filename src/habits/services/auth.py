"""Источник текущего владельца данных (аутентифицированного пользователя)."""

import inspect
from typing import Awaitable, Callable, Protocol

from src.habits.core.exceptions import AuthError
from src.habits.core.logging import habits_log as log

AuthListener = Callable[[str | None], Awaitable[None] | None]


class AuthProvider(Protocol):
    """Контракт провайдера аутентификации для слоя привычек."""

    @property
    def current_owner_id(self) -> str | None: ...

    def add_listener(self, listener: AuthListener) -> Callable[[], None]: ...


class SessionAuthProvider:
    """
    Хранит владельца текущей сессии и оповещает слушателей о входе и выходе.

    Сами процедуры регистрации и входа выполняются внешним сервисом,
    сюда передается только итоговый ID пользователя.
    """

    def __init__(self, owner_id: str | None = None) -> None:
        self._owner_id = owner_id
        self._listeners: list[AuthListener] = []

    @property
    def current_owner_id(self) -> str | None:
        return self._owner_id

    def add_listener(self, listener: AuthListener) -> Callable[[], None]:
        """
        Регистрирует слушателя смены владельца.

        Слушатель может быть обычной функцией или корутинной функцией.

        Returns:
            Callable[[], None]: Функция удаления слушателя.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def sign_in(self, owner_id: str) -> None:
        """
        Устанавливает владельца сессии.

        Raises:
            AuthError: Если ID владельца пустой.
        """
        if not owner_id:
            raise AuthError(message="Пустой ID пользователя.", error_type="invalid_owner")

        if owner_id == self._owner_id:
            return

        log.info(f"Пользователь {owner_id} вошел в систему.")
        await self._set_owner(owner_id)

    async def sign_out(self) -> None:
        """Завершает сессию владельца. Повторный вызов ничего не делает."""
        if self._owner_id is None:
            return

        log.info(f"Пользователь {self._owner_id} вышел из системы.")
        await self._set_owner(None)

    async def _set_owner(self, owner_id: str | None) -> None:
        self._owner_id = owner_id

        for listener in list(self._listeners):
            result = listener(owner_id)
            if inspect.isawaitable(result):
                await result
