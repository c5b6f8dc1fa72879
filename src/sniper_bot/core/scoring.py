"""
Token Scoring Rubric.

Pure scoring of a freshly launched token from four inputs:
liquidity, market cap, holder count and age. Each input maps to a
sub-score in [0, 100]; the total is the weighted mean, rounded half-up.

Hard gates sit on top of the weighted score: a token below the liquidity
floor or above the market-cap ceiling is REJECTED regardless of its score.

Nothing in this module does I/O. Data gathering lives in analyzer.py.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    """Outcome category of a score."""
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    RISKY = "RISKY"
    AVOID = "AVOID"
    REJECTED = "REJECTED"
    ERROR = "ERROR"


APPROVABLE_VERDICTS = frozenset({Verdict.EXCELLENT, Verdict.GOOD})

VERDICT_REASONS = {
    Verdict.EXCELLENT: "High score across all metrics",
    Verdict.GOOD: "Good potential with acceptable risk",
    Verdict.RISKY: "Medium score - proceed with caution",
    Verdict.AVOID: "Low score - too risky",
}


class ScoringConfig(BaseModel):
    """
    Thresholds and weights for the rubric.

    Monetary thresholds are USD. Validated at construction.
    """

    model_config = ConfigDict(frozen=True)

    # Liquidity tiers
    liquidity_excellent: Decimal = Decimal("10000")
    liquidity_good: Decimal = Decimal("5000")
    liquidity_minimum: Decimal = Decimal("1000")
    liquidity_weight: int = 25

    # Market cap sweet spot and ceiling
    market_cap_sweet_spot_min: Decimal = Decimal("5000")
    market_cap_sweet_spot_max: Decimal = Decimal("30000")
    market_cap_ceiling: Decimal = Decimal("100000")
    market_cap_weight: int = 25

    # Holder tiers
    holders_excellent: int = 100
    holders_good: int = 50
    holders_minimum: int = 10
    holders_weight: int = 15

    age_weight: int = 15

    # Verdict cut-offs
    excellent_score: int = 80
    good_score: int = 65
    risky_score: int = 50

    # Hard gates
    gate_min_liquidity: Decimal = Decimal("1000")
    gate_max_market_cap: Decimal = Decimal("50000")

    @model_validator(mode="after")
    def _check_ordering(self) -> "ScoringConfig":
        if not (self.liquidity_minimum <= self.liquidity_good <= self.liquidity_excellent):
            raise ValueError("liquidity tiers must be ascending")
        if not (self.holders_minimum <= self.holders_good <= self.holders_excellent):
            raise ValueError("holder tiers must be ascending")
        if not (
            self.market_cap_sweet_spot_min
            <= self.market_cap_sweet_spot_max
            <= self.market_cap_ceiling
        ):
            raise ValueError("market cap sweet spot must sit below the ceiling")
        if not (0 <= self.risky_score <= self.good_score <= self.excellent_score <= 100):
            raise ValueError("verdict cut-offs must be ascending within 0..100")
        weights = (
            self.liquidity_weight,
            self.market_cap_weight,
            self.holders_weight,
            self.age_weight,
        )
        if any(w < 0 for w in weights) or sum(weights) <= 0:
            raise ValueError("weights must be non-negative with a positive sum")
        return self


@dataclass
class ScoringInputs:
    """Values the rubric scores. Monetary fields are USD; zero means unknown."""

    liquidity: Decimal = Decimal("0")
    market_cap: Decimal = Decimal("0")
    holders: int = 0
    age_minutes: Optional[float] = None


@dataclass
class SubScore:
    """One weighted component of a score."""

    value: int
    weight: int


@dataclass
class ScoreResult:
    """Outcome of scoring one token."""

    score: int
    verdict: Verdict
    approved: bool
    reasons: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    opportunities: list[str] = field(default_factory=list)
    sub_scores: dict[str, SubScore] = field(default_factory=dict)

    @classmethod
    def error(cls, message: str) -> "ScoreResult":
        """Result for a token whose data could not be gathered."""
        return cls(
            score=0,
            verdict=Verdict.ERROR,
            approved=False,
            reasons=[f"Analysis failed: {message}"],
        )

    @property
    def reject_reason(self) -> Optional[str]:
        """First reason when not approved, for the token record."""
        if self.approved or not self.reasons:
            return None
        return self.reasons[0]


# =============================================================================
# Sub-scores
# =============================================================================


def score_liquidity(liquidity: Decimal, config: ScoringConfig) -> int:
    if liquidity <= 0:
        return 0
    if liquidity >= config.liquidity_excellent:
        return 100
    if liquidity >= config.liquidity_good:
        return 75
    if liquidity >= config.liquidity_minimum:
        return 50
    return 25


def score_market_cap(market_cap: Decimal, config: ScoringConfig) -> int:
    # Unknown market cap scores nothing
    if market_cap <= 0:
        return 0
    if config.market_cap_sweet_spot_min <= market_cap <= config.market_cap_sweet_spot_max:
        return 100
    if market_cap < config.market_cap_sweet_spot_min:
        return 80
    if market_cap <= config.market_cap_ceiling:
        return 60
    return 20


def score_holders(holders: int, config: ScoringConfig) -> int:
    if holders <= 0:
        return 0
    if holders >= config.holders_excellent:
        return 100
    if holders >= config.holders_good:
        return 75
    if holders >= config.holders_minimum:
        return 50
    return 25


def score_age(age_minutes: Optional[float]) -> int:
    """Younger is better; unknown age is neutral."""
    if age_minutes is None:
        return 50
    if age_minutes < 5:
        return 90
    if age_minutes < 30:
        return 80
    if age_minutes < 60:
        return 60
    if age_minutes < 240:
        return 40
    return 20


def weighted_score(sub_scores: dict[str, SubScore]) -> int:
    """Weighted mean of sub-scores, rounded half-up and clamped to 0..100."""
    total_weight = sum(s.weight for s in sub_scores.values())
    if total_weight <= 0:
        return 0
    weighted = Decimal(sum(s.value * s.weight for s in sub_scores.values())) / Decimal(total_weight)
    score = int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, score))


# =============================================================================
# Engine
# =============================================================================


class ScoringEngine:
    """
    Applies the rubric.

    Usage:
        engine = ScoringEngine(ScoringConfig())
        result = engine.score(ScoringInputs(liquidity=Decimal("6000"), ...))
        if result.approved:
            ...
    """

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or ScoringConfig()

    def score(self, inputs: ScoringInputs) -> ScoreResult:
        config = self.config

        sub_scores = {
            "liquidity": SubScore(score_liquidity(inputs.liquidity, config), config.liquidity_weight),
            "market_cap": SubScore(score_market_cap(inputs.market_cap, config), config.market_cap_weight),
            "holders": SubScore(score_holders(inputs.holders, config), config.holders_weight),
            "age": SubScore(score_age(inputs.age_minutes), config.age_weight),
        }
        score = weighted_score(sub_scores)

        risks: list[str] = []
        opportunities: list[str] = []

        if inputs.liquidity < config.liquidity_minimum:
            risks.append("LOW_LIQUIDITY")
        elif inputs.liquidity >= config.liquidity_excellent:
            opportunities.append("HIGH_LIQUIDITY")

        if inputs.market_cap > config.market_cap_ceiling:
            risks.append("HIGH_MCAP")
        elif config.market_cap_sweet_spot_min <= inputs.market_cap <= config.market_cap_sweet_spot_max:
            opportunities.append("SWEET_SPOT_MCAP")

        if inputs.holders < config.holders_minimum:
            risks.append("FEW_HOLDERS")
        elif inputs.holders >= config.holders_excellent:
            opportunities.append("MANY_HOLDERS")

        if score >= config.excellent_score:
            verdict = Verdict.EXCELLENT
        elif score >= config.good_score:
            verdict = Verdict.GOOD
        elif score >= config.risky_score:
            verdict = Verdict.RISKY
        else:
            verdict = Verdict.AVOID
        reasons = [VERDICT_REASONS[verdict]]

        # Gates override the weighted verdict; the market cap reason wins if both fail
        if inputs.liquidity < config.gate_min_liquidity:
            verdict = Verdict.REJECTED
            reasons = ["Liquidity below minimum threshold"]
        if inputs.market_cap > config.gate_max_market_cap:
            verdict = Verdict.REJECTED
            reasons = ["Market cap above maximum threshold"]

        approved = (
            verdict in APPROVABLE_VERDICTS
            and inputs.liquidity >= config.gate_min_liquidity
            and inputs.market_cap <= config.gate_max_market_cap
        )

        return ScoreResult(
            score=score,
            verdict=verdict,
            approved=approved,
            reasons=reasons,
            risks=risks,
            opportunities=opportunities,
            sub_scores=sub_scores,
        )
