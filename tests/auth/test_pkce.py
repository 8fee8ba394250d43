"""Tests for PKCE pair and CSRF state generation."""

from __future__ import annotations

import base64
import hashlib
import re

from aic_mcp.auth.pkce import compute_challenge, generate_pkce_pair, generate_state

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")


class TestGeneratePkcePair:
    """Tests for generate_pkce_pair."""

    def test_verifier_is_43_base64url_chars(self) -> None:
        """Given 32 random bytes, the verifier is 43 unpadded base64url characters."""
        # Act
        pair = generate_pkce_pair()

        # Assert
        assert len(pair.verifier) == 43
        assert _BASE64URL.match(pair.verifier)
        assert "=" not in pair.verifier

    def test_challenge_is_sha256_of_verifier(self) -> None:
        """Given a pair, the challenge is base64url(SHA-256(verifier)) without padding."""
        # Act
        pair = generate_pkce_pair()

        # Assert
        digest = hashlib.sha256(pair.verifier.encode("ascii")).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        assert pair.challenge == expected

    def test_pairs_are_fresh_per_call(self) -> None:
        """Given two calls, verifiers differ."""
        # Act
        first = generate_pkce_pair()
        second = generate_pkce_pair()

        # Assert
        assert first.verifier != second.verifier
        assert first.challenge != second.challenge

    def test_repr_hides_verifier(self) -> None:
        """Given a pair, repr never shows the verifier."""
        # Arrange
        pair = generate_pkce_pair()

        # Act
        text = repr(pair)

        # Assert
        assert pair.verifier not in text
        assert "<redacted>" in text


class TestComputeChallenge:
    """Tests for compute_challenge."""

    def test_rfc7636_appendix_b_vector(self) -> None:
        """Given the RFC 7636 example verifier, the challenge matches the published value."""
        # Arrange
        verifier = "dBjftJeZ4CVP-mJ92K2vdFQlqN1Xv8ZeNAuXgjp2TUY"  # noqa: S105

        # Act
        challenge = compute_challenge(verifier)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class TestGenerateState:
    """Tests for generate_state."""

    def test_state_is_url_safe_and_unique(self) -> None:
        """Given two calls, each state is URL-safe and different."""
        # Act
        first = generate_state()
        second = generate_state()

        # Assert
        assert _BASE64URL.match(first)
        assert first != second
