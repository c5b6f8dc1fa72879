"""
Integration tests for the Pump.fun Sniper Bot.

These tests wire the feed, engine, gateway and supervisor together with
the network mocked out. No database or live endpoint is needed.

Run with:
    pytest tests/integration/ -v -m integration

Skip with:
    pytest -m "not integration"
"""
