# custodian/encoding.py
"""
Byte and JSON encodings shared by the ceremony, stampers and transport.
"""

import json
import secrets
from typing import Any, Dict

from webauthn.helpers import base64url_to_bytes, bytes_to_base64url

BUFFER_SIZE = 32


def generate_random_buffer(size: int = BUFFER_SIZE) -> bytes:
    """Return `size` cryptographically random bytes (challenges, user handles)."""
    return secrets.token_bytes(size)


def base64url_encode(data: bytes) -> str:
    """Unpadded base64url, as WebAuthn transmits binary fields."""
    return bytes_to_base64url(data)


def base64url_decode(value: str) -> bytes:
    return base64url_to_bytes(value)


def canonical_json(data: Dict[str, Any]) -> str:
    """
    Serialize a request body deterministically.

    The stamp covers these exact bytes, so the same string must be sent
    on the wire.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"))
