"""Модель SQLAlchemy для документа выполнения привычки."""

from datetime import date

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CompletionDocument(Base):
    """
    Документ коллекции "completions": привычка выполнена в конкретный календарный день.

    Attributes:
        id: Непрозрачный ID записи (унаследован от Base).
        habit_id: Ссылка на привычку.
        owner_id: Владелец (совпадает с владельцем привычки).
        completed_at: Календарный день выполнения.
    """

    __tablename__ = "completions"

    habit_id: Mapped[str] = mapped_column(ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    completed_at: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        # Не больше одной записи на привычку в день
        UniqueConstraint("habit_id", "completed_at", name="uq_completion_per_day"),
        # Фильтрация диапазона дат выполняется на стороне базы данных
        Index("ix_completions_owner_habit_day", "owner_id", "habit_id", "completed_at"),
        Index("ix_completions_owner_day", "owner_id", "completed_at"),
    )
