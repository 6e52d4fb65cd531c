from .base import Base, metadata_obj
from .completion import CompletionDocument
from .habit import HabitDocument
from .todo import TodoDocument

__all__ = [
    "metadata_obj",
    "Base",
    "HabitDocument",
    "CompletionDocument",
    "TodoDocument",
]
