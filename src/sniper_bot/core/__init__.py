"""
Core Layer - Scoring and orchestration.

This module provides:
    - SniperEngine: Feed observer running detect -> score -> buy per token
    - EngineConfig: Configuration for the engine
    - ScoringEngine / ScoringConfig / ScoreResult: The token rubric
    - TokenAnalyzer: Market-data enrichment in front of the rubric
    - PositionSupervisor: Take-profit / stop-loss loop body
    - PipelineStats: Lock-guarded counters
    - AuditTrail: Audit log writer
    - BackgroundTasksManager: Periodic loops

Data Flow:
    1. Feed emits token-created
    2. Engine persists and audits, then TokenAnalyzer scores
    3. Approved tokens are bought through the TradeGateway
    4. PositionSupervisor closes positions on take-profit / stop-loss
"""

from .analyzer import Analysis, TokenAnalyzer
from .audit import AuditTrail
from .background_tasks import BackgroundTaskConfig, BackgroundTasksManager
from .engine import EngineConfig, SniperEngine
from .scoring import (
    ScoreResult,
    ScoringConfig,
    ScoringEngine,
    ScoringInputs,
    SubScore,
    Verdict,
)
from .stats import PipelineStats, StatsSnapshot
from .supervisor import PositionSupervisor

__all__ = [
    # Engine
    "SniperEngine",
    "EngineConfig",
    # Scoring
    "ScoringEngine",
    "ScoringConfig",
    "ScoringInputs",
    "ScoreResult",
    "SubScore",
    "Verdict",
    "TokenAnalyzer",
    "Analysis",
    # Positions
    "PositionSupervisor",
    # Bookkeeping
    "PipelineStats",
    "StatsSnapshot",
    "AuditTrail",
    # Background tasks
    "BackgroundTasksManager",
    "BackgroundTaskConfig",
]
