# custodian/ceremony.py
"""
WebAuthn credential ceremony.

Drives a platform authenticator to create a new public-key credential for
a sub-organization. The authenticator itself (browser, OS, security key)
sits behind the Authenticator interface; this module only builds the
creation options and turns whatever the device does into either an
AttestationBundle or a CeremonyCancelled error.
"""

import asyncio
import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from webauthn.helpers.cose import COSEAlgorithmIdentifier
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    PublicKeyCredentialCreationOptions,
    PublicKeyCredentialParameters,
    PublicKeyCredentialRequestOptions,
    PublicKeyCredentialRpEntity,
    PublicKeyCredentialUserEntity,
)

from .encoding import base64url_encode, generate_random_buffer
from .errors import CeremonyCancelled, cancelled_by_caller

logger = logging.getLogger(__name__)

# Only ES256 is accepted by the service; see
# https://www.iana.org/assignments/cose/cose.xhtml#algorithms
ES256 = COSEAlgorithmIdentifier.ECDSA_SHA_256

# The only credential type WebAuthn defines.
PUBLIC_KEY = "public-key"

DEFAULT_TIMEOUT_MS = 60000


@dataclass
class AttestationBundle:
    """
    Output of a credential creation.

    All binary fields are base64url strings and are forwarded untouched.
    `challenge` is the raw challenge the ceremony generated.
    """
    credential_id: str
    client_data_json: str
    attestation_object: str
    transports: List[str] = field(default_factory=list)
    challenge: bytes = b""

    @property
    def encoded_challenge(self) -> str:
        return base64url_encode(self.challenge)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape expected by the provisioning endpoint."""
        return {
            "credentialId": self.credential_id,
            "clientDataJson": self.client_data_json,
            "attestationObject": self.attestation_object,
            "transports": list(self.transports),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttestationBundle":
        return cls(
            credential_id=data["credentialId"],
            client_data_json=data["clientDataJson"],
            attestation_object=data["attestationObject"],
            transports=data.get("transports", []),
        )


@dataclass
class AssertionBundle:
    """Output of a credential assertion, base64url-encoded like the attestation."""
    credential_id: str
    client_data_json: str
    authenticator_data: str
    signature: str
    user_handle: str = ""


class Authenticator(ABC):
    """
    A WebAuthn authenticator.

    Implementations raise any exception to report that the user dismissed
    the prompt or the device refused; the caller maps it to
    CeremonyCancelled or StampingError.
    """

    @abstractmethod
    async def create_credential(
        self, options: PublicKeyCredentialCreationOptions
    ) -> AttestationBundle:
        pass

    @abstractmethod
    async def get_assertion(
        self, options: PublicKeyCredentialRequestOptions
    ) -> AssertionBundle:
        pass


class CredentialCeremony:
    """
    Creates credentials bound to one relying party.

    Args:
        authenticator: Device to drive
        rp_id: Relying-party identifier (domain scope of the credential)
        rp_name: Relying-party display name
        timeout_ms: Upper bound on the authenticator interaction
    """

    def __init__(
        self,
        authenticator: Authenticator,
        rp_id: str,
        rp_name: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.authenticator = authenticator
        self.rp_id = rp_id
        self.rp_name = rp_name
        self.timeout_ms = timeout_ms

    def build_options(self, label: str) -> PublicKeyCredentialCreationOptions:
        """Creation options with a fresh challenge and user handle."""
        return PublicKeyCredentialCreationOptions(
            rp=PublicKeyCredentialRpEntity(id=self.rp_id, name=self.rp_name),
            user=PublicKeyCredentialUserEntity(
                id=generate_random_buffer(),
                name=label,
                display_name=label,
            ),
            challenge=generate_random_buffer(),
            pub_key_cred_params=[
                PublicKeyCredentialParameters(type=PUBLIC_KEY, alg=ES256),
            ],
            timeout=self.timeout_ms,
            attestation=AttestationConveyancePreference.NONE,
        )

    async def create(self, label: str) -> AttestationBundle:
        """
        Create a credential labelled `label`.

        Raises:
            CeremonyCancelled: if the device fails, the user aborts, the
                interaction exceeds the timeout, or no attestation comes back
        """
        options = self.build_options(label)
        logger.debug(f"Requesting credential for '{label}' on {self.rp_id}")

        try:
            bundle = await asyncio.wait_for(
                self.authenticator.create_credential(options),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise CeremonyCancelled(
                f"Credential creation timed out after {self.timeout_ms}ms", cause=e
            ) from e
        except asyncio.CancelledError as e:
            if cancelled_by_caller():
                raise
            raise CeremonyCancelled("Credential creation was cancelled", cause=e) from e
        except Exception as e:
            raise CeremonyCancelled(f"Credential creation failed: {e}", cause=e) from e

        if not isinstance(bundle, AttestationBundle):
            raise CeremonyCancelled(
                f"Authenticator returned {type(bundle).__name__}, not an attestation"
            )

        logger.info(f"Created credential {bundle.credential_id} for '{label}'")
        return dataclasses.replace(bundle, challenge=options.challenge)
