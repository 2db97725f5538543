# custodian/identity.py
"""
Sub-organization identity: bootstrap and login.

Bootstrap creates a passkey and registers it as the root user of a new
sub-organization under a fixed parent organization. Login needs no local
database: it stamps a "whoami" query scoped to the parent, and the service
answers with whichever sub-organization registered the stamping passkey.
The credential is the identity proof; there is no session token.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from .activity import CREATE_SUB_ORGANIZATION, ActivitySubmitter
from .ceremony import AttestationBundle, CredentialCeremony
from .errors import IdentityCreationError, LookupFailure, SigningError
from .stamper import Stamper
from .transport import WHOAMI_PATH, HttpTransport, stamp_request

logger = logging.getLogger(__name__)


class ProvisioningEndpoint(ABC):
    """Registers a fresh attestation as a new sub-organization."""

    @abstractmethod
    async def provision(self, label: str, attestation: AttestationBundle) -> str:
        """
        Create a sub-organization and return its ID.

        `attestation.encoded_challenge` is the challenge the verifier must
        check; it is spent whether or not provisioning succeeds.
        """
        pass


class HttpProvisioningEndpoint(ProvisioningEndpoint):
    """
    Provisions through a backend route that holds the parent's API key.

    Args:
        transport: Connection to the backend
        path: Route accepting {subOrgName, attestation, challenge}
    """

    def __init__(self, transport: HttpTransport, path: str = "/api/subOrg"):
        self.transport = transport
        self.path = path

    async def provision(self, label: str, attestation: AttestationBundle) -> str:
        response = await self.transport.post(self.path, {
            "subOrgName": label,
            "attestation": attestation.to_dict(),
            "challenge": attestation.encoded_challenge,
        })
        if not isinstance(response, dict):
            raise IdentityCreationError(f"Provisioning response is not an object: {response!r}")
        organization_id = response.get("subOrgId") or response.get("organizationId")
        if not organization_id:
            raise IdentityCreationError(
                response.get("message") or "Provisioning response has no organization ID"
            )
        return organization_id


class ParentProvisioner(ProvisioningEndpoint):
    """
    Creates sub-organizations directly, acting for the parent organization.

    Runs where the parent's API key lives (a backend), never in the
    browser.

    Args:
        submitter: Activity submitter stamping with the parent's API key
        parent_organization_id: Organization the sub-organizations belong to
    """

    def __init__(self, submitter: ActivitySubmitter, parent_organization_id: str):
        self.submitter = submitter
        self.parent_organization_id = parent_organization_id

    def build_parameters(self, label: str, attestation: AttestationBundle) -> Dict[str, Any]:
        return {
            "subOrganizationName": label,
            "rootQuorumThreshold": 1,
            "rootUsers": [
                {
                    "userName": label,
                    "apiKeys": [],
                    "authenticators": [
                        {
                            "authenticatorName": label,
                            "challenge": attestation.encoded_challenge,
                            "attestation": attestation.to_dict(),
                        }
                    ],
                }
            ],
        }

    async def provision(self, label: str, attestation: AttestationBundle) -> str:
        outcome = await self.submitter.execute(
            CREATE_SUB_ORGANIZATION.activity_type,
            self.parent_organization_id,
            self.build_parameters(label, attestation),
        )
        result = outcome.result
        organization_id = result.get("subOrganizationId") if isinstance(result, dict) else None
        if not organization_id:
            raise IdentityCreationError(
                "Sub-organization result has no subOrganizationId",
                **outcome.activity.error_fields(),
            )
        return organization_id


class IdentityBootstrap:
    """
    First-use flow: new passkey, new sub-organization.

    Calling bootstrap() twice with the same label creates two
    sub-organizations; deduplication is a server policy.
    """

    def __init__(self, ceremony: CredentialCeremony, provisioning: ProvisioningEndpoint):
        self.ceremony = ceremony
        self.provisioning = provisioning

    async def bootstrap(self, label: str) -> str:
        """
        Create a passkey labelled `label` and register it.

        Returns:
            The new sub-organization ID

        Raises:
            CeremonyCancelled: if the passkey could not be created
            IdentityCreationError: if provisioning rejected the attestation;
                the endpoint's message is kept verbatim
        """
        attestation = await self.ceremony.create(label)

        try:
            organization_id = await self.provisioning.provision(label, attestation)
        except IdentityCreationError:
            raise
        except SigningError as e:
            raise IdentityCreationError(
                e.message,
                cause=e,
                activity_id=e.activity_id,
                activity_status=e.activity_status,
                activity_type=e.activity_type,
            ) from e
        except Exception as e:
            raise IdentityCreationError(str(e), cause=e) from e

        logger.info(f"Created sub-organization {organization_id} for '{label}'")
        return organization_id


class LoginResolver:
    """
    Repeat-use flow: recover the sub-organization from the passkey alone.

    Args:
        transport: Connection to the service
        stamper: Passkey stamper; the only authenticator interaction
        parent_organization_id: Well-known parent organization
    """

    def __init__(self, transport: HttpTransport, stamper: Stamper, parent_organization_id: str):
        self.transport = transport
        self.stamper = stamper
        self.parent_organization_id = parent_organization_id

    async def login(self) -> str:
        """
        Resolve the caller's sub-organization.

        Raises:
            LookupFailure: if no registered passkey could stamp the lookup,
                the request failed, or the response has no organization ID
        """
        try:
            request = await stamp_request(
                self.stamper,
                self.transport.url_for(WHOAMI_PATH),
                {"organizationId": self.parent_organization_id},
            )
            response = await self.transport.send(request)
        except SigningError as e:
            raise LookupFailure(f"Login failed: {e.message}", cause=e) from e
        except Exception as e:
            raise LookupFailure(f"Login failed: {e}", cause=e) from e

        organization_id = response.get("organizationId") if isinstance(response, dict) else None
        if not organization_id or not isinstance(organization_id, str):
            raise LookupFailure(f"Whoami response has no organizationId: {response!r}")

        logger.info(f"Resolved sub-organization {organization_id}")
        return organization_id
