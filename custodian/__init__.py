# custodian - Passkey-bound client for a custodial key-management service
#
# The client never holds key material. A WebAuthn passkey identifies the user
# as a sub-organization of a fixed parent organization, and every privileged
# operation is an activity the service performs on the user's behalf.
#
# Core concepts:
# - Ceremony: Creates a passkey on a platform authenticator
# - Stamp: Credential-backed signature over a request body
# - Bootstrap / Login: Create a sub-organization, or recover it from the passkey
# - Activity: Privileged work (create keys, sign transactions) resolved to a
#   result or a typed error
# - Signer: Transaction signing backed by a custodial key

from .errors import (
    SigningError,
    CeremonyCancelled,
    StampingError,
    TransportError,
    IdentityCreationError,
    LookupFailure,
    ActivityRejectedError,
    ActivityPendingError,
    MalformedResultError,
    UnsupportedOperationError,
    ConfigError,
)
from .ceremony import Authenticator, AttestationBundle, AssertionBundle, CredentialCeremony
from .stamper import Stamp, Stamper, WebAuthnStamper, ApiKeyStamper, verify_api_key_stamp
from .transport import HttpTransport, SignedRequest
from .activity import Activity, ActivityStatus, ActivitySubmitter, register_intent, get_intent
from .identity import (
    IdentityBootstrap,
    LoginResolver,
    ProvisioningEndpoint,
    HttpProvisioningEndpoint,
    ParentProvisioner,
)
from .codec import TransactionCodec, EthereumTransactionCodec
from .signer import Signer, CustodialSigner
from .config import ClientConfig
from .client import CustodianClient

__all__ = [
    # Errors
    "SigningError",
    "CeremonyCancelled",
    "StampingError",
    "TransportError",
    "IdentityCreationError",
    "LookupFailure",
    "ActivityRejectedError",
    "ActivityPendingError",
    "MalformedResultError",
    "UnsupportedOperationError",
    "ConfigError",
    # Identity
    "Authenticator",
    "AttestationBundle",
    "AssertionBundle",
    "CredentialCeremony",
    "IdentityBootstrap",
    "LoginResolver",
    "ProvisioningEndpoint",
    "HttpProvisioningEndpoint",
    "ParentProvisioner",
    # Requests
    "Stamp",
    "Stamper",
    "WebAuthnStamper",
    "ApiKeyStamper",
    "verify_api_key_stamp",
    "HttpTransport",
    "SignedRequest",
    # Activities
    "Activity",
    "ActivityStatus",
    "ActivitySubmitter",
    "register_intent",
    "get_intent",
    # Signing
    "TransactionCodec",
    "EthereumTransactionCodec",
    "Signer",
    "CustodialSigner",
    # Client
    "ClientConfig",
    "CustodianClient",
]

__version__ = "0.1.0"
