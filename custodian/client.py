# custodian/client.py
"""
Client facade for the key-management service.

Wires the ceremony, stamper, transport and activity submitter together
and remembers the current sub-organization for the session.

Usage:
    client = CustodianClient(config, authenticator=authenticator)

    # First visit
    await client.bootstrap("alice")
    # ...or, on a later visit
    await client.login()

    key_id = await client.create_private_key("main")
    signer = client.signer(key_id)
    signed = await signer.sign_transaction(tx)
"""

import logging
from typing import Any, Dict, Optional

from .activity import CREATE_PRIVATE_KEYS, ActivitySubmitter
from .ceremony import Authenticator, CredentialCeremony
from .config import ClientConfig
from .errors import ConfigError, MalformedResultError
from .identity import (
    HttpProvisioningEndpoint,
    IdentityBootstrap,
    LoginResolver,
    ProvisioningEndpoint,
)
from .signer import ETHEREUM_ADDRESS_FORMAT, CustodialSigner
from .stamper import ApiKeyStamper, Stamper, WebAuthnStamper
from .transport import HttpTransport

logger = logging.getLogger(__name__)

SECP256K1 = "CURVE_SECP256K1"


class CustodianClient:
    """
    Session-scoped client.

    The only state kept is the organization ID obtained from bootstrap()
    or login(); nothing is persisted.

    Args:
        config: Client configuration
        authenticator: Passkey device; enables bootstrap() and passkey stamping
        stamper: Explicit stamper, overriding the one derived from the
            authenticator or the configured API key
        transport: Explicit transport
        provisioning: Where bootstrap() registers new sub-organizations
    """

    def __init__(
        self,
        config: ClientConfig,
        authenticator: Optional[Authenticator] = None,
        stamper: Optional[Stamper] = None,
        transport: Optional[HttpTransport] = None,
        provisioning: Optional[ProvisioningEndpoint] = None,
    ):
        self.config = config
        self.authenticator = authenticator
        self.transport = transport or HttpTransport(config.base_url, config.timeout)
        self.stamper = stamper or self._default_stamper()
        self.provisioning = provisioning or HttpProvisioningEndpoint(self.transport)
        self.organization_id: Optional[str] = None

    def _default_stamper(self) -> Optional[Stamper]:
        if self.authenticator is not None:
            return WebAuthnStamper(self.authenticator, self.config.rp_id)
        if self.config.api_key is not None:
            return ApiKeyStamper(self.config.api_key.public_key, self.config.api_key.private_key)
        return None

    def _require_stamper(self) -> Stamper:
        if self.stamper is None:
            raise ConfigError("No stamper: provide an authenticator, a stamper or an api_key")
        return self.stamper

    def _require_organization(self) -> str:
        if not self.organization_id:
            raise ConfigError("No sub-organization: call bootstrap() or login() first")
        return self.organization_id

    @property
    def submitter(self) -> ActivitySubmitter:
        return ActivitySubmitter(self.transport, self._require_stamper())

    async def bootstrap(self, label: str) -> str:
        """Create a passkey and a sub-organization for it."""
        if self.authenticator is None:
            raise ConfigError("bootstrap() needs an authenticator")
        ceremony = CredentialCeremony(self.authenticator, self.config.rp_id, self.config.rp_name)
        bootstrap = IdentityBootstrap(ceremony, self.provisioning)
        self.organization_id = await bootstrap.bootstrap(label)
        return self.organization_id

    async def login(self) -> str:
        """Recover the sub-organization registered for the current passkey."""
        resolver = LoginResolver(self.transport, self._require_stamper(), self.config.organization_id)
        self.organization_id = await resolver.login()
        return self.organization_id

    async def submit(self, activity_type: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Submit an intent in the current sub-organization."""
        return await self.submitter.submit(activity_type, self._require_organization(), parameters)

    async def create_private_key(self, name: str, tags: Optional[list] = None) -> str:
        """
        Create a secp256k1 key with an Ethereum address.

        Returns:
            The new private key ID
        """
        outcome = await self.submitter.execute(
            CREATE_PRIVATE_KEYS.activity_type,
            self._require_organization(),
            {
                "privateKeys": [
                    {
                        "privateKeyName": name,
                        "curve": SECP256K1,
                        "addressFormats": [ETHEREUM_ADDRESS_FORMAT],
                        "privateKeyTags": tags or [],
                    }
                ],
            },
        )
        result = outcome.result
        keys = result.get("privateKeys") if isinstance(result, dict) else None
        key = keys[0] if isinstance(keys, list) and keys else None
        key_id = key.get("privateKeyId") if isinstance(key, dict) else None
        if not key_id:
            raise MalformedResultError(
                "Create private keys result has no privateKeyId",
                **outcome.activity.error_fields(),
            )
        logger.info(f"Created private key {name} ({key_id})")
        return key_id

    def signer(self, key_id: Optional[str] = None, provider: Any = None) -> CustodialSigner:
        """A signer for `key_id` (default: the configured key) in the current sub-organization."""
        key_id = key_id or self.config.key_id
        if not key_id:
            raise ConfigError("No key_id given or configured")
        return CustodialSigner(
            self.submitter, self._require_organization(), key_id, provider=provider
        )
