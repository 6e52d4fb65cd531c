"""Модель SQLAlchemy для документа задачи."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TodoDocument(Base):
    """
    Документ коллекции "todos": простая задача владельца.

    Attributes:
        id: Непрозрачный ID задачи (унаследован от Base).
        owner_id: ID владельца.
        text: Текст задачи.
        completed: Признак выполнения.
        created_at: Время создания.
    """

    __tablename__ = "todos"

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_todos_owner_created", "owner_id", "created_at"),)
