"""Tests for unsigned Ethereum transaction serialization."""

import pytest

from custodian.codec import EthereumTransactionCodec


@pytest.fixture
def codec():
    return EthereumTransactionCodec()


class TestLegacy:

    def test_eip155_signing_data(self, codec):
        """Example transaction from EIP-155."""
        tx = {
            "nonce": 9,
            "gasPrice": 20 * 10**9,
            "gasLimit": 21000,
            "to": "0x3535353535353535353535353535353535353535",
            "value": 10**18,
            "data": "0x",
            "chainId": 1,
        }

        assert codec.serialize(tx) == (
            "0xec098504a817c800825208943535353535353535353535353535353535353535"
            "880de0b6b3a764000080018080"
        )

    def test_hex_quantities_and_gas_alias(self, codec):
        tx = {
            "nonce": "0x9",
            "gasPrice": "0x4a817c800",
            "gas": "0x5208",
            "to": "0x3535353535353535353535353535353535353535",
            "value": "0xde0b6b3a7640000",
            "chainId": "0x1",
        }

        assert codec.serialize(tx) == (
            "0xec098504a817c800825208943535353535353535353535353535353535353535"
            "880de0b6b3a764000080018080"
        )

    def test_without_chain_id(self, codec):
        serialized = codec.serialize({"nonce": 0, "gasLimit": 21000})
        # nonce, gasPrice, gasLimit, to, value, data
        assert serialized == "0xc88080825208808080"


class TestTyped:

    def test_eip1559_empty(self, codec):
        serialized = codec.serialize({"type": 2, "chainId": 1})
        assert serialized == "0x02c90180808080808080c0"

    def test_eip2930_prefix(self, codec):
        serialized = codec.serialize({
            "type": 1,
            "chainId": 1,
            "accessList": [
                {
                    "address": "0x3535353535353535353535353535353535353535",
                    "storageKeys": ["0x" + "00" * 32],
                }
            ],
        })
        assert serialized.startswith("0x01")

    def test_deterministic(self, codec):
        tx = {"type": 2, "chainId": 5, "nonce": 3, "maxFeePerGas": 100, "maxPriorityFeePerGas": 2}
        assert codec.serialize(tx) == codec.serialize(dict(tx))

    def test_unsupported_type(self, codec):
        with pytest.raises(ValueError):
            codec.serialize({"type": 3})

    def test_negative_quantity(self, codec):
        with pytest.raises(ValueError):
            codec.serialize({"nonce": -1})
