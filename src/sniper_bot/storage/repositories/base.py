"""
Base repository class for async PostgreSQL access.
"""
from __future__ import annotations

from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from sniper_bot.storage.database import Database

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Base class for async repositories.

    Subclasses set ``table_name`` and ``model_class``.
    """

    table_name: str
    model_class: Type[T]

    def __init__(self, db: Database) -> None:
        self.db = db

    def _record_to_model(self, record) -> Optional[T]:
        """Convert an asyncpg Record to the model, passing None through."""
        if record is None:
            return None
        return self.model_class(**dict(record))

    def _records_to_models(self, records) -> list[T]:
        return [self._record_to_model(r) for r in records]

    async def get_by_id(self, id_value, id_column: str = "id") -> Optional[T]:
        query = f"SELECT * FROM {self.table_name} WHERE {id_column} = $1"
        record = await self.db.fetchrow(query, id_value)
        return self._record_to_model(record)
