"""
Token repository.

One row per contract address. Upserts merge: a column left as None in the
incoming record keeps whatever is already stored.
"""
from __future__ import annotations

from typing import Optional

from sniper_bot.storage.models import TokenRecord
from sniper_bot.storage.repositories.base import BaseRepository

# Columns written by upsert, in parameter order after contract_address
_UPSERT_COLUMNS = (
    "name",
    "symbol",
    "metadata_uri",
    "logo_uri",
    "market_cap",
    "price",
    "liquidity",
    "holders",
    "score",
    "verdict",
    "status",
    "reject_reason",
)


class TokenRepository(BaseRepository[TokenRecord]):
    """Repository for scanned tokens."""

    table_name = "tokens"
    model_class = TokenRecord

    async def upsert(self, token: TokenRecord) -> TokenRecord:
        """Insert a token or merge non-null fields into the stored row."""
        columns = ", ".join(_UPSERT_COLUMNS)
        placeholders = ", ".join(f"${i}" for i in range(2, len(_UPSERT_COLUMNS) + 2))
        updates = ",\n                ".join(
            f"{col} = COALESCE(EXCLUDED.{col}, tokens.{col})" for col in _UPSERT_COLUMNS
        )
        query = f"""
            INSERT INTO tokens (contract_address, {columns}, created_at, updated_at)
            VALUES ($1, {placeholders}, NOW(), NOW())
            ON CONFLICT (contract_address) DO UPDATE SET
                {updates},
                updated_at = NOW()
            RETURNING *
        """
        record = await self.db.fetchrow(
            query,
            token.contract_address,
            *(getattr(token, col) for col in _UPSERT_COLUMNS),
        )
        return self._record_to_model(record)

    async def update_status(self, contract_address: str, status: str) -> bool:
        query = """
            UPDATE tokens
            SET status = $2, updated_at = NOW()
            WHERE contract_address = $1
        """
        result = await self.db.execute(query, contract_address, status)
        return result != "UPDATE 0"

    async def get_by_address(self, contract_address: str) -> Optional[TokenRecord]:
        return await self.get_by_id(contract_address, id_column="contract_address")
