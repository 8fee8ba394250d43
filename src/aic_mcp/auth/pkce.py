"""PKCE (RFC 7636) and CSRF state generation.

A fresh verifier/challenge pair and state token are generated for every
authentication attempt and discarded afterwards. Never log the verifier.
"""

from __future__ import annotations

__all__ = [
    "PkcePair",
    "compute_challenge",
    "generate_pkce_pair",
    "generate_state",
]

import base64
import hashlib
import secrets
from dataclasses import dataclass

# 32 random bytes -> 43 base64url characters without padding
_VERIFIER_BYTES = 32
_STATE_BYTES = 16


@dataclass(frozen=True)
class PkcePair:
    """PKCE code verifier and its S256 challenge.

    Attributes:
        verifier: Secret sent only to the token endpoint.
        challenge: base64url(SHA-256(verifier)), sent with the authorization request.
    """

    verifier: str
    challenge: str

    def __repr__(self) -> str:
        return f"PkcePair(verifier=<redacted>, challenge={self.challenge!r})"


def _base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def compute_challenge(verifier: str) -> str:
    """Compute the S256 code challenge for a verifier."""
    return _base64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce_pair() -> PkcePair:
    """Generate a new PKCE verifier and challenge.

    Returns:
        PkcePair with a 43-character verifier.
    """
    verifier = _base64url(secrets.token_bytes(_VERIFIER_BYTES))
    return PkcePair(verifier=verifier, challenge=compute_challenge(verifier))


def generate_state() -> str:
    """Generate an opaque, single-use CSRF state token."""
    return secrets.token_urlsafe(_STATE_BYTES)
