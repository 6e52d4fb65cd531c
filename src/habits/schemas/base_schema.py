"""Общая конфигурация схем слоя привычек."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Схема, которая строится из данных документа или из модели таблицы."""

    # Служебные поля документов (например, updated_at) отбрасываются
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")
