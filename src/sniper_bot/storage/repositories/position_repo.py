"""
Position repository.

Only open rows are ever updated; close() and update_price() both filter on
status = 'open' so a closed row cannot be changed.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sniper_bot.storage.models import PositionRecord
from sniper_bot.storage.repositories.base import BaseRepository


class PositionRepository(BaseRepository[PositionRecord]):
    """Repository for held positions."""

    table_name = "positions"
    model_class = PositionRecord

    async def create(self, position: PositionRecord) -> PositionRecord:
        query = """
            INSERT INTO positions
            (token_address, size_sol, entry_price, current_price, status,
             entry_signature, opened_at)
            VALUES ($1, $2, $3, $4, 'open', $5, NOW())
            RETURNING *
        """
        record = await self.db.fetchrow(
            query,
            position.token_address,
            position.size_sol,
            position.entry_price,
            position.current_price,
            position.entry_signature,
        )
        return self._record_to_model(record)

    async def get_open(self) -> list[PositionRecord]:
        query = """
            SELECT * FROM positions
            WHERE status = 'open'
            ORDER BY opened_at ASC
        """
        records = await self.db.fetch(query)
        return self._records_to_models(records)

    async def update_price(
        self, position_id: int, current_price: Decimal, pnl_percent: Decimal
    ) -> bool:
        query = """
            UPDATE positions
            SET current_price = $2, pnl_percent = $3
            WHERE id = $1 AND status = 'open'
        """
        result = await self.db.execute(query, position_id, current_price, pnl_percent)
        return result != "UPDATE 0"

    async def close(
        self,
        position_id: int,
        pnl_percent: Optional[Decimal],
        exit_reason: str,
        exit_signature: Optional[str] = None,
    ) -> Optional[PositionRecord]:
        """Mark an open position closed. Returns None if it was not open."""
        query = """
            UPDATE positions
            SET status = 'closed',
                pnl_percent = COALESCE($2, pnl_percent),
                exit_reason = $3,
                exit_signature = $4,
                closed_at = NOW()
            WHERE id = $1 AND status = 'open'
            RETURNING *
        """
        record = await self.db.fetchrow(
            query, position_id, pnl_percent, exit_reason, exit_signature
        )
        return self._record_to_model(record)
