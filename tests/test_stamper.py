"""Tests for WebAuthn and API-key request stamping."""

import asyncio
import hashlib
import json

import pytest

from custodian.encoding import base64url_decode
from custodian.errors import ConfigError, StampingError
from custodian.stamper import (
    API_KEY_SCHEME,
    API_KEY_STAMP_HEADER,
    WEBAUTHN_STAMP_HEADER,
    ApiKeyStamper,
    WebAuthnStamper,
    challenge_from_body,
    verify_api_key_stamp,
)

from conftest import FakeAuthenticator

BODY = '{"organizationId":"org-parent"}'


class TestWebAuthnStamper:

    def test_challenge_is_hex_digest_of_body(self):
        expected = hashlib.sha256(BODY.encode()).hexdigest().encode()
        assert challenge_from_body(BODY) == expected

    def test_stamp_header(self, authenticator):
        stamper = WebAuthnStamper(authenticator, rp_id="localhost")
        stamp = asyncio.run(stamper.stamp(BODY))

        assert stamp.header_name == WEBAUTHN_STAMP_HEADER
        assert json.loads(stamp.header_value) == {
            "authenticatorData": "YXV0aC1kYXRh",
            "clientDataJson": "Y2xpZW50LWRhdGE",
            "credentialId": "cred-1",
            "signature": "c2lnbmF0dXJl",
        }

    def test_assertion_options(self, authenticator):
        stamper = WebAuthnStamper(authenticator, rp_id="localhost", allow_credentials=["Y3JlZA"])
        asyncio.run(stamper.stamp(BODY))

        options = authenticator.assertion_options[0]
        assert options.challenge == challenge_from_body(BODY)
        assert options.rp_id == "localhost"
        assert [c.id for c in options.allow_credentials] == [b"cred"]

    def test_no_credential_creation(self, authenticator):
        stamper = WebAuthnStamper(authenticator, rp_id="localhost")
        asyncio.run(stamper.stamp(BODY))

        assert authenticator.creation_options == []

    def test_authenticator_failure(self):
        error = RuntimeError("no credential")
        stamper = WebAuthnStamper(FakeAuthenticator(error=error), rp_id="localhost")

        with pytest.raises(StampingError) as exc_info:
            asyncio.run(stamper.stamp(BODY))

        assert exc_info.value.cause is error


class TestApiKeyStamper:

    @pytest.fixture
    def api_stamper(self):
        return ApiKeyStamper.generate()

    def test_stamp_verifies(self, api_stamper):
        stamp = asyncio.run(api_stamper.stamp(BODY))

        assert stamp.header_name == API_KEY_STAMP_HEADER
        assert verify_api_key_stamp(BODY, stamp.header_value)

    def test_stamp_contents(self, api_stamper):
        stamp = asyncio.run(api_stamper.stamp(BODY))
        decoded = json.loads(base64url_decode(stamp.header_value))

        assert decoded["publicKey"] == api_stamper.public_key
        assert decoded["scheme"] == API_KEY_SCHEME
        assert len(decoded["publicKey"]) == 66

    def test_tampered_body_fails(self, api_stamper):
        stamp = asyncio.run(api_stamper.stamp(BODY))
        assert not verify_api_key_stamp(BODY.replace("parent", "other"), stamp.header_value)

    def test_garbage_header_fails(self):
        assert not verify_api_key_stamp(BODY, "not-a-stamp")

    def test_round_trip_from_hex(self, api_stamper):
        restored = ApiKeyStamper(api_stamper.public_key, api_stamper.private_key_hex)
        stamp = asyncio.run(restored.stamp(BODY))

        assert restored.public_key == api_stamper.public_key
        assert verify_api_key_stamp(BODY, stamp.header_value)

    def test_mismatched_public_key(self, api_stamper):
        other = ApiKeyStamper.generate()
        with pytest.raises(ConfigError):
            ApiKeyStamper(other.public_key, api_stamper.private_key_hex)

    def test_invalid_private_key(self):
        with pytest.raises(ConfigError):
            ApiKeyStamper("02" + "00" * 32, "not-hex")
