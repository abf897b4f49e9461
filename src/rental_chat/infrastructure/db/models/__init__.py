"""Import all models so Alembic can discover them via Base.metadata."""
from rental_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
