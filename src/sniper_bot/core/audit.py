"""
AuditTrail - records every pipeline state transition.

Entries are kept in a bounded in-memory history and written to the
sniper_logs table. A storage failure is logged and never stops the
pipeline.
"""
from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sniper_bot.storage.models import AuditAction, AuditEntry

if TYPE_CHECKING:
    from sniper_bot.storage import SniperStore

logger = logging.getLogger(__name__)


class AuditTrail:
    """Writes audit entries to memory and storage."""

    def __init__(self, store: Optional["SniperStore"] = None, history_size: int = 500) -> None:
        self._store = store
        self._recent: deque[AuditEntry] = deque(maxlen=history_size)

    async def record(
        self,
        action: AuditAction,
        token_address: Optional[str] = None,
        *,
        reason: Optional[str] = None,
        score: Optional[int] = None,
        market_cap: Optional[Decimal] = None,
        liquidity: Optional[Decimal] = None,
        pnl_percent: Optional[Decimal] = None,
        tx_signature: Optional[str] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            token_address=token_address,
            action=action.value,
            reason=reason,
            score=score,
            market_cap=market_cap,
            liquidity=liquidity,
            pnl_percent=pnl_percent,
            tx_signature=tx_signature,
            created_at=datetime.now(timezone.utc),
        )
        self._recent.appendleft(entry)
        logger.info(f"[{action.value}] {token_address or '-'}{f' {reason}' if reason else ''}")

        if self._store is not None:
            try:
                await self._store.audit.create(entry)
            except Exception as e:
                logger.error(f"Failed to persist audit entry {action.value}: {e}")

        return entry

    def recent(self, limit: int = 50, token_address: Optional[str] = None) -> list[AuditEntry]:
        """Newest-first entries from this process, optionally for one token."""
        entries = (
            e for e in self._recent
            if token_address is None or e.token_address == token_address
        )
        result = []
        for entry in entries:
            if len(result) >= limit:
                break
            result.append(entry)
        return result
