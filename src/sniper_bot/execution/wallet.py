"""
Wallet key loading.

Accepts the three encodings a Solana secret key is usually exported in:
a JSON byte array (solana-keygen), base64, or base58 (Phantom).
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Optional

from solders.keypair import Keypair

logger = logging.getLogger(__name__)

KEYPAIR_LENGTH = 64


class WalletError(Exception):
    """The configured key could not be parsed."""
    pass


def load_keypair(secret: Optional[str]) -> Optional[Keypair]:
    """
    Parse a secret key.

    Returns:
        The Keypair, or None when no key is configured (observer mode).

    Raises:
        WalletError: If a key is configured but cannot be parsed.
    """
    if secret is None or not secret.strip():
        return None
    secret = secret.strip()

    if secret.startswith("["):
        try:
            raw = bytes(json.loads(secret))
        except (ValueError, TypeError) as e:
            raise WalletError(f"Invalid JSON key array: {e}") from e
        return _from_bytes(raw)

    try:
        raw = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        raw = b""
    if len(raw) == KEYPAIR_LENGTH:
        return _from_bytes(raw)

    try:
        return Keypair.from_base58_string(secret)
    except Exception as e:
        raise WalletError("Key is neither a JSON array, base64 nor base58") from e


def _from_bytes(raw: bytes) -> Keypair:
    if len(raw) != KEYPAIR_LENGTH:
        raise WalletError(f"Expected {KEYPAIR_LENGTH} key bytes, got {len(raw)}")
    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise WalletError(f"Invalid keypair bytes: {e}") from e
