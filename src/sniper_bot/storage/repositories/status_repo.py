"""
System status repository.

A single row with id = 1. update() writes only the columns it is given.
"""
from __future__ import annotations

from typing import Any, Optional

from sniper_bot.storage.models import SystemStatus
from sniper_bot.storage.repositories.base import BaseRepository

STATUS_COLUMNS = frozenset({
    "status",
    "wallet_address",
    "balance_sol",
    "sniper_enabled",
    "tokens_scanned",
    "snipes_executed",
    "wins",
    "losses",
    "total_pnl",
})


class SystemStatusRepository(BaseRepository[SystemStatus]):
    """Repository for the bot's status row."""

    table_name = "system_status"
    model_class = SystemStatus

    async def get(self) -> Optional[SystemStatus]:
        return await self.get_by_id(1)

    async def update(self, **fields: Any) -> Optional[SystemStatus]:
        """Upsert the status row with the given columns."""
        unknown = set(fields) - STATUS_COLUMNS
        if unknown:
            raise ValueError(f"Unknown status columns: {sorted(unknown)}")
        if not fields:
            return await self.get()

        columns = sorted(fields)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in columns)
        query = f"""
            INSERT INTO system_status (id, {", ".join(columns)}, updated_at)
            VALUES (1, {placeholders}, NOW())
            ON CONFLICT (id) DO UPDATE SET {updates}, updated_at = NOW()
            RETURNING *
        """
        record = await self.db.fetchrow(query, *(fields[col] for col in columns))
        return self._record_to_model(record)
