"""
Trade repository. Trades are insert-only.
"""
from __future__ import annotations

from sniper_bot.storage.models import TradeRecord
from sniper_bot.storage.repositories.base import BaseRepository


class TradeRepository(BaseRepository[TradeRecord]):
    """Repository for executed buys and sells."""

    table_name = "trades"
    model_class = TradeRecord

    async def create(self, trade: TradeRecord) -> TradeRecord:
        query = """
            INSERT INTO trades (token_address, side, amount_sol, price, tx_signature, created_at)
            VALUES ($1, $2, $3, $4, $5, NOW())
            RETURNING *
        """
        record = await self.db.fetchrow(
            query,
            trade.token_address,
            trade.side,
            trade.amount_sol,
            trade.price,
            trade.tx_signature,
        )
        return self._record_to_model(record)

    async def get_recent(self, limit: int = 50) -> list[TradeRecord]:
        query = """
            SELECT * FROM trades
            ORDER BY created_at DESC
            LIMIT $1
        """
        records = await self.db.fetch(query, limit)
        return self._records_to_models(records)
