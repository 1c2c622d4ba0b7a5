"""Session token helpers for ``Authorization: Bearer a,b,c`` credentials."""
from __future__ import annotations

import secrets
from typing import List


def split_tokens(authorization: str) -> List[str]:
    """Split a bearer header value into its comma-separated session tokens."""
    value = (authorization or "").replace("Bearer ", "", 1)
    return [token.strip() for token in value.split(",") if token.strip()]


def pick_token(authorization: str) -> str:
    """Pick one session token at random; raises ``ValueError`` when none is present."""
    tokens = split_tokens(authorization)
    if not tokens:
        raise ValueError("no session token in credential")
    return secrets.choice(tokens)


__all__ = ["split_tokens", "pick_token"]
