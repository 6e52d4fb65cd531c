"""Общая основа таблиц коллекций документов."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Имена ограничений задаются явно, чтобы они совпадали между SQLite и PostgreSQL
metadata_obj = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "pk": "pk_%(table_name)s",
    }
)

DOCUMENT_ID_LENGTH = 32


def generate_document_id() -> str:
    """Непрозрачный ID документа (32 hex-символа)."""
    return uuid4().hex


class Base(DeclarativeBase):
    """
    Таблица коллекции документов.

    Каждая строка - документ с непрозрачным строковым `id`. Колонка `updated_at`
    служебная и не попадает в данные документа.
    """

    metadata = metadata_obj

    id: Mapped[str] = mapped_column(String(DOCUMENT_ID_LENGTH), primary_key=True, default=generate_document_id)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<{self.__tablename__}/{self.id}>"
