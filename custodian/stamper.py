# custodian/stamper.py
"""
Request stamping.

A stamp is a credential-backed signature over the exact request body,
sent in a header next to it. The service authorizes a request purely by
who could produce its stamp; there is no session token.

Two stampers are provided:
- WebAuthnStamper: asserts the passkey held by an Authenticator
  (header X-Stamp-WebAuthn)
- ApiKeyStamper: signs with a P-256 API key, used by backends acting for
  the parent organization (header X-Stamp)
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from webauthn.helpers.structs import (
    PublicKeyCredentialDescriptor,
    PublicKeyCredentialRequestOptions,
    UserVerificationRequirement,
)

from .ceremony import DEFAULT_TIMEOUT_MS, Authenticator
from .encoding import base64url_decode, base64url_encode
from .errors import ConfigError, StampingError

logger = logging.getLogger(__name__)

WEBAUTHN_STAMP_HEADER = "X-Stamp-WebAuthn"
API_KEY_STAMP_HEADER = "X-Stamp"
API_KEY_SCHEME = "SIGNATURE_SCHEME_TK_API_P256"


@dataclass
class Stamp:
    """A header carrying the signature over a request body."""
    header_name: str
    header_value: str

    def to_dict(self) -> dict:
        return {
            "stampHeaderName": self.header_name,
            "stampHeaderValue": self.header_value,
        }


class Stamper(ABC):
    """Signs outbound request bodies."""

    @abstractmethod
    async def stamp(self, body: str) -> Stamp:
        """
        Stamp `body`.

        Raises:
            StampingError: if no credential is available or signing fails
        """
        pass


def challenge_from_body(body: str) -> bytes:
    """The WebAuthn challenge for a body: UTF-8 of its hex SHA-256."""
    return hashlib.sha256(body.encode("utf-8")).hexdigest().encode("utf-8")


class WebAuthnStamper(Stamper):
    """
    Stamps requests with a passkey assertion.

    Args:
        authenticator: Device holding the passkey
        rp_id: Relying party the passkey is bound to
        allow_credentials: Restrict to these base64url credential IDs
            (empty lets the authenticator choose any discoverable one)
    """

    def __init__(
        self,
        authenticator: Authenticator,
        rp_id: str,
        allow_credentials: Optional[List[str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.authenticator = authenticator
        self.rp_id = rp_id
        self.allow_credentials = allow_credentials or []
        self.timeout_ms = timeout_ms

    def build_options(self, body: str) -> PublicKeyCredentialRequestOptions:
        return PublicKeyCredentialRequestOptions(
            challenge=challenge_from_body(body),
            timeout=self.timeout_ms,
            rp_id=self.rp_id,
            allow_credentials=[
                PublicKeyCredentialDescriptor(id=base64url_decode(cid))
                for cid in self.allow_credentials
            ],
            user_verification=UserVerificationRequirement.PREFERRED,
        )

    async def stamp(self, body: str) -> Stamp:
        try:
            assertion = await self.authenticator.get_assertion(self.build_options(body))
        except Exception as e:
            raise StampingError(f"Passkey assertion failed: {e}", cause=e) from e

        value = json.dumps({
            "authenticatorData": assertion.authenticator_data,
            "clientDataJson": assertion.client_data_json,
            "credentialId": assertion.credential_id,
            "signature": assertion.signature,
        })
        logger.debug(f"Stamped request with credential {assertion.credential_id}")
        return Stamp(WEBAUTHN_STAMP_HEADER, value)


def _compressed_public_key(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    ).hex()


class ApiKeyStamper(Stamper):
    """
    Stamps requests with a P-256 API key.

    Args:
        public_key: Compressed public key, hex
        private_key: Private scalar, hex
    """

    def __init__(self, public_key: str, private_key: str):
        try:
            self._private_key = ec.derive_private_key(int(private_key, 16), ec.SECP256R1())
        except ValueError as e:
            raise ConfigError(f"Invalid API private key: {e}", cause=e) from e

        derived = _compressed_public_key(self._private_key)
        if derived != public_key.lower():
            raise ConfigError("API public key does not match private key")
        self.public_key = derived

    @classmethod
    def generate(cls) -> "ApiKeyStamper":
        """Create a stamper with a freshly generated key pair."""
        private_key = ec.generate_private_key(ec.SECP256R1())
        private_hex = format(private_key.private_numbers().private_value, "064x")
        return cls(_compressed_public_key(private_key), private_hex)

    @property
    def private_key_hex(self) -> str:
        return format(self._private_key.private_numbers().private_value, "064x")

    async def stamp(self, body: str) -> Stamp:
        try:
            signature = self._private_key.sign(
                body.encode("utf-8"),
                ec.ECDSA(hashes.SHA256()),
            )
        except Exception as e:
            raise StampingError(f"API key signing failed: {e}", cause=e) from e

        stamp = {
            "publicKey": self.public_key,
            "scheme": API_KEY_SCHEME,
            "signature": signature.hex(),
        }
        value = base64url_encode(json.dumps(stamp).encode("utf-8"))
        return Stamp(API_KEY_STAMP_HEADER, value)


def verify_api_key_stamp(body: str, header_value: str) -> bool:
    """
    Verify an X-Stamp header against a body.

    Returns:
        True if the stamp is a valid P-256 signature over `body`
    """
    try:
        stamp = json.loads(base64url_decode(header_value))
        if stamp["scheme"] != API_KEY_SCHEME:
            return False
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256R1(), bytes.fromhex(stamp["publicKey"])
        )
        public_key.verify(
            bytes.fromhex(stamp["signature"]),
            body.encode("utf-8"),
            ec.ECDSA(hashes.SHA256()),
        )
        return True
    except (InvalidSignature, KeyError, ValueError, TypeError):
        return False
