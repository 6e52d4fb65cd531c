"""Модель SQLAlchemy для документа привычки."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class HabitDocument(Base):
    """
    Документ коллекции "habits".

    Attributes:
        id: Непрозрачный ID привычки (унаследован от Base).
        owner_id: ID владельца. Все запросы ограничиваются владельцем.
        name: Название привычки.
        description: Описание привычки (опционально).
        created_at: Время создания, не меняется после создания.
        cached_streak: Денормализованный текущий стрик (не источник истины).
        last_completed_date: День последнего выполнения.
    """

    __tablename__ = "habits"

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cached_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_completed_date: Mapped[date | None] = mapped_column(Date)

    # Индекс под подписку владельца: where owner_id == ? order by created_at desc
    __table_args__ = (Index("ix_habits_owner_created", "owner_id", "created_at"),)
