"""Tests for PKCE parameter and state generation.

- S256 challenge derivation from the verifier
- Verifier length and alphabet
- Freshness across attempts and independence from the state nonce
"""

import base64
import hashlib

import pytest

from latchkey.auth.models.security import PKCEParameters
from latchkey.auth.primitives.pkce import (
    UNRESERVED_CHARACTERS,
    PKCEManager,
    compute_code_challenge,
)


class TestCodeChallenge:
    def test_matches_rfc7636_appendix_b_example(self):
        # Arrange
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        challenge = compute_code_challenge(verifier)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_is_unpadded_base64url_sha256(self):
        # Arrange
        verifier = "a" * 64
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest())
            .decode()
            .rstrip("=")
        )

        # Act
        challenge = compute_code_challenge(verifier)

        # Assert
        assert challenge == expected
        assert len(challenge) == 43
        assert "=" not in challenge
        assert "+" not in challenge and "/" not in challenge


class TestPKCEManager:
    def setup_method(self):
        self.manager = PKCEManager()

    def test_generated_challenge_is_derived_from_verifier(self):
        # Act
        params = self.manager.generate_parameters()

        # Assert
        assert params.code_challenge == compute_code_challenge(params.code_verifier)
        assert params.code_challenge_method == "S256"

    def test_verifier_length_and_alphabet(self):
        for _ in range(50):
            # Act
            verifier = self.manager.generate_parameters().code_verifier

            # Assert
            assert 43 <= len(verifier) <= 128
            assert set(verifier) <= set(UNRESERVED_CHARACTERS)

    def test_default_verifier_uses_maximum_length(self):
        assert len(self.manager.generate_parameters().code_verifier) == 128

    def test_parameters_are_fresh_for_each_attempt(self):
        # Act
        verifiers = {self.manager.generate_parameters().code_verifier for _ in range(20)}
        states = {self.manager.generate_state() for _ in range(20)}

        # Assert
        assert len(verifiers) == 20
        assert len(states) == 20

    def test_state_is_independent_of_verifier(self):
        # Act
        params = self.manager.generate_parameters()
        state = self.manager.generate_state()

        # Assert
        assert state not in params.code_verifier
        assert state != params.code_challenge
        assert len(state) == 32

    @pytest.mark.parametrize("length", [42, 129])
    def test_rejects_out_of_range_verifier_length(self, length):
        with pytest.raises(ValueError):
            PKCEManager(verifier_length=length)


class TestPKCEParameters:
    def test_rejects_short_verifier(self):
        with pytest.raises(ValueError):
            PKCEParameters(code_verifier="short", code_challenge="x" * 43)

    @pytest.mark.parametrize("bad_character", ["+", "/", " ", "="])
    def test_rejects_reserved_verifier_characters(self, bad_character):
        verifier = "a" * 42 + bad_character
        with pytest.raises(ValueError):
            PKCEParameters(
                code_verifier=verifier,
                code_challenge=compute_code_challenge(verifier),
            )

    def test_rejects_plain_method(self):
        verifier = "a" * 43
        with pytest.raises(ValueError):
            PKCEParameters(
                code_verifier=verifier,
                code_challenge=compute_code_challenge(verifier),
                code_challenge_method="plain",
            )

    def test_is_immutable(self):
        params = PKCEManager().generate_parameters()
        with pytest.raises(AttributeError):
            params.code_verifier = "a" * 43
