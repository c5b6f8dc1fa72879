"""
Pump.fun Sniper Bot.

Watches the PumpPortal feed for newly launched tokens, scores each one
against a liquidity / market-cap / holders / age rubric, buys the ones
that pass, and supervises the resulting positions until a take-profit or
stop-loss rule closes them.
"""

__version__ = "0.1.0"
