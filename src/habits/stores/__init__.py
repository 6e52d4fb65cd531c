from .document_store import (
    Document,
    DocumentStore,
    DocumentStoreError,
    DuplicateDocumentError,
    OrderBy,
    QueryFilter,
    Unsubscribe,
)
from .memory_store import InMemoryDocumentStore
from .sql_store import SqlAlchemyDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "DocumentStoreError",
    "DuplicateDocumentError",
    "OrderBy",
    "QueryFilter",
    "Unsubscribe",
    "InMemoryDocumentStore",
    "SqlAlchemyDocumentStore",
]
