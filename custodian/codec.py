# custodian/codec.py
"""
Canonical serialization of unsigned Ethereum transactions.

Produces the exact bytes the service signs: the RLP list of the
transaction's fields, prefixed by the envelope type for typed
transactions. Field names follow the JSON-RPC camelCase convention.

Supported envelopes:
- legacy (no `type` or type 0), EIP-155 replay protection when `chainId` is set
- EIP-2930 (type 1)
- EIP-1559 (type 2)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

import rlp
from eth_utils import encode_hex, to_bytes, to_canonical_address, to_int

Quantity = Union[int, str, None]


class TransactionCodec(ABC):
    """Serializes an unsigned transaction to a 0x-prefixed hex string."""

    @abstractmethod
    def serialize(self, transaction: Dict[str, Any]) -> str:
        pass


def _quantity(value: Quantity) -> int:
    if value is None or value in ("", "0x"):
        return 0
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Negative quantity: {value}")
        return value
    return to_int(hexstr=value)


def _data(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return to_bytes(hexstr=value)


def _address(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return to_canonical_address(value)


def _access_list(entries: Optional[List[Dict[str, Any]]]) -> list:
    return [
        [_address(entry["address"]), [to_bytes(hexstr=key) for key in entry.get("storageKeys", [])]]
        for entry in entries or []
    ]


def _gas_limit(tx: Dict[str, Any]) -> int:
    return _quantity(tx.get("gasLimit", tx.get("gas")))


class EthereumTransactionCodec(TransactionCodec):
    """RLP serialization matching what wallets sign."""

    def serialize(self, transaction: Dict[str, Any]) -> str:
        tx_type = _quantity(transaction.get("type"))

        if tx_type == 0:
            return encode_hex(self._legacy(transaction))
        if tx_type == 1:
            return encode_hex(b"\x01" + self._eip2930(transaction))
        if tx_type == 2:
            return encode_hex(b"\x02" + self._eip1559(transaction))
        raise ValueError(f"Unsupported transaction type: {tx_type}")

    def _legacy(self, tx: Dict[str, Any]) -> bytes:
        fields = [
            _quantity(tx.get("nonce")),
            _quantity(tx.get("gasPrice")),
            _gas_limit(tx),
            _address(tx.get("to")),
            _quantity(tx.get("value")),
            _data(tx.get("data")),
        ]
        chain_id = _quantity(tx.get("chainId"))
        if chain_id:
            # EIP-155: chainId, 0, 0 in place of v, r, s
            fields += [chain_id, b"", b""]
        return rlp.encode(fields)

    def _eip2930(self, tx: Dict[str, Any]) -> bytes:
        return rlp.encode([
            _quantity(tx.get("chainId")),
            _quantity(tx.get("nonce")),
            _quantity(tx.get("gasPrice")),
            _gas_limit(tx),
            _address(tx.get("to")),
            _quantity(tx.get("value")),
            _data(tx.get("data")),
            _access_list(tx.get("accessList")),
        ])

    def _eip1559(self, tx: Dict[str, Any]) -> bytes:
        return rlp.encode([
            _quantity(tx.get("chainId")),
            _quantity(tx.get("nonce")),
            _quantity(tx.get("maxPriorityFeePerGas")),
            _quantity(tx.get("maxFeePerGas")),
            _gas_limit(tx),
            _address(tx.get("to")),
            _quantity(tx.get("value")),
            _data(tx.get("data")),
            _access_list(tx.get("accessList")),
        ])
