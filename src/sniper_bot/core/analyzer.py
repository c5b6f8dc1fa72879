"""
TokenAnalyzer - gathers market data for a token and scores it.

Market cap and liquidity come from two sources: the feed (in SOL, converted
with the cached SOL/USD price) and Birdeye (USD). Precedence:
    - market cap: feed-derived when positive, else Birdeye
    - liquidity: Birdeye when positive, else feed bonding-curve SOL

Any failure while gathering turns into an ERROR result instead of raising.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from .scoring import ScoreResult, ScoringEngine, ScoringInputs

if TYPE_CHECKING:
    from sniper_bot.ingestion import BirdeyeClient, TokenInfo, TokenSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Analysis:
    """A score plus the market figures it was computed from."""

    contract_address: str
    result: ScoreResult
    inputs: Optional[ScoringInputs] = None
    price: Optional[Decimal] = None
    info: Optional["TokenInfo"] = None

    @property
    def approved(self) -> bool:
        return self.result.approved


class TokenAnalyzer:
    """
    Enriches a token snapshot and runs the scoring rubric on it.

    Usage:
        analyzer = TokenAnalyzer(market_data=birdeye, engine=ScoringEngine())
        analysis = await analyzer.analyze(snapshot)
    """

    def __init__(
        self,
        market_data: "BirdeyeClient",
        engine: Optional[ScoringEngine] = None,
    ) -> None:
        self._market_data = market_data
        self._engine = engine or ScoringEngine()

    @property
    def engine(self) -> ScoringEngine:
        return self._engine

    async def analyze(self, snapshot: "TokenSnapshot") -> Analysis:
        address = snapshot.contract_address
        try:
            info = await self._market_data.get_token_info(address)
            sol_price = await self._market_data.get_sol_price()

            inputs = build_inputs(snapshot, info, sol_price)
            result = self._engine.score(inputs)
        except Exception as e:
            logger.warning(f"Analysis failed for {address}: {e}")
            return Analysis(contract_address=address, result=ScoreResult.error(str(e)))

        logger.info(
            f"Scored {snapshot.symbol or address}: {result.score} {result.verdict.value} "
            f"(liq=${inputs.liquidity:.0f}, mcap=${inputs.market_cap:.0f}, "
            f"holders={inputs.holders})"
        )
        return Analysis(
            contract_address=address,
            result=result,
            inputs=inputs,
            price=info.price if info else None,
            info=info,
        )


def build_inputs(
    snapshot: "TokenSnapshot",
    info: Optional["TokenInfo"],
    sol_price: Decimal,
) -> ScoringInputs:
    """Resolve scoring inputs from feed and Birdeye figures."""
    market_cap = snapshot.market_cap_native * sol_price
    if market_cap <= 0 and info is not None and info.market_cap:
        market_cap = info.market_cap

    liquidity = Decimal("0")
    if info is not None and info.liquidity and info.liquidity > 0:
        liquidity = info.liquidity
    else:
        liquidity = snapshot.liquidity_native * sol_price

    holders = info.holders if info is not None and info.holders else 0

    return ScoringInputs(
        liquidity=liquidity,
        market_cap=market_cap,
        holders=holders,
        age_minutes=snapshot.age_minutes,
    )
