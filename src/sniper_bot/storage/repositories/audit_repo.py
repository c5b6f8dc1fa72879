"""
Audit log repository (sniper_logs).
"""
from __future__ import annotations

from sniper_bot.storage.models import AuditEntry
from sniper_bot.storage.repositories.base import BaseRepository


class AuditRepository(BaseRepository[AuditEntry]):
    """Append-only record of every pipeline state transition."""

    table_name = "sniper_logs"
    model_class = AuditEntry

    async def create(self, entry: AuditEntry) -> AuditEntry:
        query = """
            INSERT INTO sniper_logs
            (token_address, action, reason, score, market_cap, liquidity,
             pnl_percent, tx_signature, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, NOW())
            RETURNING *
        """
        record = await self.db.fetchrow(
            query,
            entry.token_address,
            entry.action,
            entry.reason,
            entry.score,
            entry.market_cap,
            entry.liquidity,
            entry.pnl_percent,
            entry.tx_signature,
        )
        return self._record_to_model(record)

    async def get_recent(self, limit: int = 50) -> list[AuditEntry]:
        query = """
            SELECT * FROM sniper_logs
            ORDER BY created_at DESC, id DESC
            LIMIT $1
        """
        records = await self.db.fetch(query, limit)
        return self._records_to_models(records)

    async def get_for_address(self, token_address: str, limit: int = 50) -> list[AuditEntry]:
        query = """
            SELECT * FROM sniper_logs
            WHERE token_address = $1
            ORDER BY created_at DESC, id DESC
            LIMIT $2
        """
        records = await self.db.fetch(query, token_address, limit)
        return self._records_to_models(records)
