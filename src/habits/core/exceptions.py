"""
Иерархия исключений слоя данных привычек.

Все ошибки, которые слой отдает наружу (хранилищу состояния и UI), наследуются от HabitTrackerException
и несут человекочитаемое сообщение и машинный тип ошибки.
"""

from dataclasses import dataclass
from datetime import date


class HabitTrackerException(Exception):
    """
    Базовое исключение слоя данных привычек.

    Attributes:
        message (str): Сообщение об ошибке для пользователя.
        error_type (str): Машинный идентификатор типа ошибки.
    """

    default_error_type = "habit_tracker_error"

    def __init__(self, message: str, error_type: str | None = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type or self.default_error_type

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, error_type={self.error_type!r})"


class ValidationError(HabitTrackerException):
    """Переданные данные нарушают предусловие (пустое название, неверный ID). До хранилища не доходят."""

    default_error_type = "validation_error"


class BackendError(HabitTrackerException):
    """
    Операция хранилища документов не была надежно выполнена.

    Сеть, права доступа, квоты и таймауты на этом уровне не различаются.
    """

    default_error_type = "backend_error"


class NotFoundError(HabitTrackerException):
    """Привычка с указанным ID отсутствует (например, удалена с другого устройства)."""

    default_error_type = "not_found"


class AuthError(HabitTrackerException):
    """Нет аутентифицированного владельца, мутации запрещены."""

    default_error_type = "not_authenticated"


class ChatError(HabitTrackerException):
    """Облачная функция чат-коуча не вернула ответ."""

    default_error_type = "chat_error"


@dataclass(frozen=True)
class StaleStreakWarning:
    """
    Информационное предупреждение: стрик не подтвержден за пределами окна выборки.

    Не является ошибкой, попадает только в диагностику хранилища состояния.

    Attributes:
        habit_id (str): ID привычки.
        streak (int): Посчитанный в окне стрик.
        window_days (int): Размер окна выборки.
        window_start (date): Первый день окна.
    """

    habit_id: str
    streak: int
    window_days: int
    window_start: date

    @property
    def message(self) -> str:
        return (
            f"Стрик привычки {self.habit_id} ({self.streak} дн.) достигает начала окна выборки "
            f"({self.window_start.isoformat()}, {self.window_days} дн.) и может быть недосчитан."
        )
