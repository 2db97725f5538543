# custodian/signer.py
"""
Transaction signer backed by a custodial key.

CustodialSigner exposes the activity protocol as a generic Signer, so it
can be dropped into a transaction-sending pipeline that only knows how to
ask for an address and a signed transaction. The private key never leaves
the service.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from eth_utils import remove_0x_prefix

from .activity import SIGN_TRANSACTION, ActivitySubmitter
from .codec import EthereumTransactionCodec, TransactionCodec
from .errors import MalformedResultError, SigningError, UnsupportedOperationError
from .transport import GET_PRIVATE_KEY_PATH, stamp_request

logger = logging.getLogger(__name__)

ETHEREUM_ADDRESS_FORMAT = "ADDRESS_FORMAT_ETHEREUM"
ETHEREUM_TRANSACTION_TYPE = "TRANSACTION_TYPE_ETHEREUM"


class Signer(ABC):
    """Anything that can produce an address and signed transactions."""

    provider: Any = None

    @abstractmethod
    async def get_address(self) -> str:
        pass

    @abstractmethod
    async def sign_transaction(self, transaction: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def sign_message(self, message: Union[str, bytes]) -> str:
        pass

    @abstractmethod
    def connect(self, provider: Any) -> "Signer":
        pass


class CustodialSigner(Signer):
    """
    Signs with one private key held by the service.

    Args:
        submitter: Activity submitter for the key's organization
        organization_id: Organization owning the key
        key_id: Private key ID
        codec: Serializes unsigned transactions
        provider: Optional chain provider, carried for the pipeline
    """

    def __init__(
        self,
        submitter: ActivitySubmitter,
        organization_id: str,
        key_id: str,
        codec: Optional[TransactionCodec] = None,
        provider: Any = None,
    ):
        self.submitter = submitter
        self.organization_id = organization_id
        self.key_id = key_id
        self.codec = codec or EthereumTransactionCodec()
        self.provider = provider

    def connect(self, provider: Any) -> "CustodialSigner":
        return CustodialSigner(
            self.submitter, self.organization_id, self.key_id, self.codec, provider
        )

    async def resolve_address(self) -> str:
        """
        The key's Ethereum address.

        Raises:
            SigningError: if the key has no Ethereum-format address or
                the lookup failed
            MalformedResultError: if the address entries are not objects
        """
        transport = self.submitter.transport
        try:
            request = await stamp_request(
                self.submitter.stamper,
                transport.url_for(GET_PRIVATE_KEY_PATH),
                {"organizationId": self.organization_id, "privateKeyId": self.key_id},
            )
            response = await transport.send(request)
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Failed to look up key {self.key_id}", cause=e) from e

        for item in _addresses(response):
            if item.get("format") == ETHEREUM_ADDRESS_FORMAT and item.get("address"):
                return item["address"]

        raise SigningError(
            f"Unable to find Ethereum address for key {self.key_id} "
            f"under organization {self.organization_id}"
        )

    async def get_address(self) -> str:
        return await self.resolve_address()

    async def sign_transaction(self, transaction: Dict[str, Any]) -> str:
        """
        Sign an unsigned transaction.

        Returns:
            The 0x-prefixed signed transaction

        Raises:
            SigningError: on any failure, carrying the activity identifiers
                when an activity was created
        """
        try:
            serialized = self.codec.serialize(transaction)
        except Exception as e:
            raise SigningError("Failed to serialize transaction", cause=e) from e

        outcome = await self.submitter.execute(
            SIGN_TRANSACTION.activity_type,
            self.organization_id,
            {
                "privateKeyId": self.key_id,
                "type": ETHEREUM_TRANSACTION_TYPE,
                "unsignedTransaction": remove_0x_prefix(serialized),
            },
        )

        result = outcome.result
        signed = result.get("signedTransaction") if isinstance(result, dict) else None
        if not signed or not isinstance(signed, str):
            raise MalformedResultError(
                "Sign transaction result has no signedTransaction",
                **outcome.activity.error_fields(),
            )
        logger.info(f"Signed transaction with key {self.key_id}")
        return f"0x{signed}"

    async def sign_message(self, message: Union[str, bytes]) -> str:
        raise UnsupportedOperationError(
            "Message signing is not supported; only transactions can be signed"
        )


def _addresses(response: Any) -> List[Dict[str, Any]]:
    """The address entries of a get_private_key response."""
    key = response.get("privateKey") if isinstance(response, dict) else None
    addresses = key.get("addresses") if isinstance(key, dict) else None
    if addresses is None:
        return []
    if not isinstance(addresses, list) or not all(isinstance(a, dict) for a in addresses):
        raise MalformedResultError(f"Malformed addresses in key response: {addresses!r}")
    return addresses
