"""
Чат-коуч: транспорт к облачной функции и локальный запасной коуч.

Содержимое промптов формируется на стороне облачной функции, здесь только
передается сообщение пользователя и контекст его привычек.
"""

import asyncio
import random
from typing import Any, Protocol

import httpx

from src.habits.core.config import settings
from src.habits.core.exceptions import ChatError, ValidationError
from src.habits.core.logging import habits_log as log

from .habit_store import HabitStore

# Статусы ответа, при которых запрос имеет смысл повторить
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ChatBackend(Protocol):
    """Контракт бэкенда чат-коуча."""

    async def send_message(self, message: str, context: dict[str, Any]) -> str: ...


class CloudFunctionChatBackend:
    """
    HTTP-клиент облачной функции чат-коуча.

    Запрос отправляется в формате вызываемой функции: `{"data": {...}}`, ответ ожидается
    в виде `{"result": {"text": ...}}`. Сетевые ошибки, таймауты и ответы 5xx/429 повторяются
    с экспоненциальной задержкой, остальные ошибки сразу переводятся в ChatError.
    """

    def __init__(
        self,
        url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float = 0.5,
    ):
        """
        Инициализирует клиент.

        Args:
            url (str | None): URL облачной функции. По умолчанию `settings.CHAT_FUNCTION_URL`.
            http_client (httpx.AsyncClient | None): Готовый HTTP-клиент (например, в тестах).
            max_attempts (int | None): Количество попыток. По умолчанию `settings.CHAT_MAX_ATTEMPTS`.
            backoff_seconds (float): Базовая задержка между попытками.

        Raises:
            ChatError: Если URL облачной функции не задан.
        """
        self.url = url or settings.CHAT_FUNCTION_URL
        if not self.url:
            raise ChatError(message="URL облачной функции чат-коуча не настроен.", error_type="chat_not_configured")

        self.max_attempts = max_attempts or settings.CHAT_MAX_ATTEMPTS
        self.backoff_seconds = backoff_seconds
        self.http_client = http_client or httpx.AsyncClient(timeout=settings.CHAT_TIMEOUT_SECONDS)

    async def close(self) -> None:
        """Корректно закрывает сессию HTTP-клиента."""
        await self.http_client.aclose()

    async def _post_once(self, payload: dict[str, Any]) -> str:
        response = await self.http_client.post(self.url, json=payload)
        response.raise_for_status()

        try:
            text = response.json()["result"]["text"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ChatError(message="Некорректный ответ облачной функции чат-коуча.") from exc

        if not isinstance(text, str) or not text.strip():
            raise ChatError(message="Облачная функция чат-коуча вернула пустой ответ.")

        return text.strip()

    async def send_message(self, message: str, context: dict[str, Any]) -> str:
        """
        Отправляет сообщение облачной функции.

        Raises:
            ChatError: Если ответ не получен за `max_attempts` попыток или ошибка не подлежит повтору.
        """
        payload = {"data": {"message": message, "context": context}}

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._post_once(payload)
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_STATUS_CODES:
                    log.error(f"Облачная функция чат-коуча вернула ошибку {status_code}: {exc.response.text}")
                    raise ChatError(message=f"Чат-коуч недоступен (код {status_code}).") from exc
                reason = f"код {status_code}"
            except httpx.RequestError as exc:
                reason = f"сетевая ошибка: {exc}"

            log.warning(f"Попытка {attempt}/{self.max_attempts} запроса к чат-коучу не удалась ({reason}).")
            if attempt < self.max_attempts:
                await asyncio.sleep(self.backoff_seconds * 2 ** (attempt - 1))

        raise ChatError(message="Чат-коуч не ответил. Попробуйте позже.", error_type="chat_unavailable")


class RuleBasedChatBackend:
    """Локальный коуч: отвечает по ключевым словам, используя контекст привычек."""

    GREETING_KEYWORDS = ("привет", "здравств", "hello", "hi", "hey")
    PROGRESS_KEYWORDS = ("прогресс", "как дела", "progress")
    MOTIVATION_KEYWORDS = ("мотивац", "сдаюсь", "motivation")
    DIFFICULTY_KEYWORDS = ("сложно", "трудно", "не получается", "problem")
    TIP_KEYWORDS = ("совет", "помоги", "tip", "help")

    TIPS = (
        "Совет: привяжите новую привычку к уже существующей. Например: после чистки зубов - 5 минут медитации.",
        "Совет: начните с минимума. Лучше 1 минута каждый день, чем час раз в неделю.",
        "Совет: пропустили день - просто продолжайте на следующий. Главное - не пропускать два дня подряд.",
        "Совет: отмечайте выполнение сразу, видимый прогресс мотивирует.",
    )

    MOTIVATION = (
        "Каждый день - новая возможность. Маленькие шаги складываются в большие перемены.",
        "Дело не в идеальности, а в регулярности. Вы на правильном пути!",
        "Привычки как мышцы: крепнут от тренировок.",
    )

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    @staticmethod
    def _matches(text: str, keywords: tuple[str, ...]) -> bool:
        words = set(text.replace(",", " ").replace("!", " ").replace("?", " ").split())
        return any(keyword in words if len(keyword) <= 3 else keyword in text for keyword in keywords)

    async def send_message(self, message: str, context: dict[str, Any]) -> str:
        text = message.lower()
        total = context.get("totalHabits", 0)
        completed = context.get("completedToday", 0)
        progress = context.get("progressPercentage", 0)
        top_habits = context.get("topHabits", [])

        if self._matches(text, self.GREETING_KEYWORDS):
            if total == 0:
                return "Привет! У вас пока нет привычек. Давайте подумаем, с какой начать?"
            return f"Привет! Сегодня выполнено {completed} из {total} привычек. Чем помочь?"

        if self._matches(text, self.PROGRESS_KEYWORDS):
            if total == 0:
                return "Привычек пока нет. Создайте первую, и я буду следить за прогрессом вместе с вами."
            answer = f"Сегодня выполнено {completed} из {total} привычек ({progress}%)."
            if top_habits:
                best = top_habits[0]
                answer += f" Лучшая серия: '{best['name']}' - {best['streak']} дн. подряд."
            return answer

        if self._matches(text, self.MOTIVATION_KEYWORDS):
            return self.rng.choice(self.MOTIVATION)

        if self._matches(text, self.DIFFICULTY_KEYWORDS):
            return (
                "Трудности - это нормально. Начните с малого, привяжите привычку к рутине "
                "и не ругайте себя за пропуски. Что именно не получается?"
            )

        if self._matches(text, self.TIP_KEYWORDS):
            return self.rng.choice(self.TIPS)

        if total > 0:
            return f"Расскажите подробнее! Как это связано с вашими {total} привычками?"
        return "Расскажите подробнее! Возможно, из этого получится хорошая привычка."


class ChatCoachService:
    """
    Сервис ответов чат-коуча.

    Собирает контекст привычек из хранилища состояния, обращается к облачной функции
    и при ошибке отвечает локальным коучем.
    """

    def __init__(
        self,
        habit_store: HabitStore,
        remote_backend: ChatBackend | None = None,
        fallback_backend: ChatBackend | None = None,
    ):
        self.habit_store = habit_store
        self.remote_backend = remote_backend
        self.fallback_backend = fallback_backend or RuleBasedChatBackend()

    async def reply(self, message: str) -> str:
        """
        Возвращает ответ коуча на сообщение пользователя.

        Raises:
            ValidationError: Если сообщение пустое.
        """
        message = message.strip()
        if not message:
            raise ValidationError(message="Сообщение не может быть пустым.", error_type="empty_message")

        context = self.habit_store.get_habit_context().model_dump(by_alias=True)

        if self.remote_backend is not None:
            try:
                return await self.remote_backend.send_message(message, context)
            except ChatError as exc:
                log.warning(f"Облачный чат-коуч недоступен, используется локальный: {exc.message}")

        return await self.fallback_backend.send_message(message, context)
