"""Tests for the client facade."""

import asyncio

import pytest

from custodian.activity import CREATE_PRIVATE_KEYS, SIGN_TRANSACTION
from custodian.client import CustodianClient
from custodian.config import ApiKeyConfig, ClientConfig
from custodian.errors import ConfigError, MalformedResultError
from custodian.stamper import ApiKeyStamper, WebAuthnStamper
from custodian.transport import WHOAMI_PATH

from conftest import completed


@pytest.fixture
def config():
    return ClientConfig(base_url="https://api.test", organization_id="org-parent", key_id="key-1")


@pytest.fixture
def client(config, authenticator, transport):
    return CustodianClient(config, authenticator=authenticator, transport=transport)


class TestStamperSelection:

    def test_authenticator_gives_webauthn_stamper(self, client):
        assert isinstance(client.stamper, WebAuthnStamper)

    def test_api_key_gives_api_key_stamper(self, config):
        key = ApiKeyStamper.generate()
        config.api_key = ApiKeyConfig(key.public_key, key.private_key_hex)

        client = CustodianClient(config)

        assert isinstance(client.stamper, ApiKeyStamper)
        assert client.stamper.public_key == key.public_key

    def test_no_stamper(self, config):
        client = CustodianClient(config)
        client.organization_id = "org-1"

        with pytest.raises(ConfigError):
            asyncio.run(client.submit(SIGN_TRANSACTION.activity_type, {}))


class TestSession:

    def test_bootstrap_sets_organization(self, client, transport):
        transport.respond("/api/subOrg", {"subOrgId": "org_1"})

        assert asyncio.run(client.bootstrap("acme")) == "org_1"
        assert client.organization_id == "org_1"

    def test_bootstrap_needs_authenticator(self, config, transport, stamper):
        client = CustodianClient(config, stamper=stamper, transport=transport)

        with pytest.raises(ConfigError):
            asyncio.run(client.bootstrap("acme"))

    def test_login_sets_organization(self, client, transport, authenticator):
        transport.respond(WHOAMI_PATH, {"organizationId": "org_2"})

        assert asyncio.run(client.login()) == "org_2"
        assert client.organization_id == "org_2"
        assert transport.bodies(WHOAMI_PATH) == [{"organizationId": "org-parent"}]
        assert authenticator.creation_options == []

    def test_submit_before_login(self, client):
        with pytest.raises(ConfigError):
            asyncio.run(client.submit(SIGN_TRANSACTION.activity_type, {}))


class TestPrivateKeys:

    def test_create_private_key(self, client, transport):
        client.organization_id = "org_1"
        transport.respond(CREATE_PRIVATE_KEYS.path, completed(
            CREATE_PRIVATE_KEYS.activity_type,
            {"createPrivateKeysResultV2": {"privateKeys": [{"privateKeyId": "pk-1"}]}},
        ))

        assert asyncio.run(client.create_private_key("main")) == "pk-1"

        params = transport.bodies(CREATE_PRIVATE_KEYS.path)[0]["parameters"]
        key = params["privateKeys"][0]
        assert key["privateKeyName"] == "main"
        assert key["curve"] == "CURVE_SECP256K1"
        assert key["addressFormats"] == ["ADDRESS_FORMAT_ETHEREUM"]

    def test_create_private_key_without_id(self, client, transport):
        client.organization_id = "org_1"
        transport.respond(CREATE_PRIVATE_KEYS.path, completed(
            CREATE_PRIVATE_KEYS.activity_type,
            {"createPrivateKeysResultV2": {"privateKeys": []}},
        ))

        with pytest.raises(MalformedResultError):
            asyncio.run(client.create_private_key("main"))

    @pytest.mark.parametrize("result", ["pk-1", {"privateKeys": ["pk-1"]}, {"privateKeys": "pk-1"}])
    def test_create_private_key_result_of_wrong_shape(self, client, transport, result):
        client.organization_id = "org_1"
        transport.respond(CREATE_PRIVATE_KEYS.path, completed(
            CREATE_PRIVATE_KEYS.activity_type,
            {"createPrivateKeysResultV2": result},
            activity_id="act-4",
        ))

        with pytest.raises(MalformedResultError) as exc_info:
            asyncio.run(client.create_private_key("main"))

        assert exc_info.value.activity_id == "act-4"

    def test_signer_uses_configured_key(self, client):
        client.organization_id = "org_1"
        signer = client.signer()

        assert signer.key_id == "key-1"
        assert signer.organization_id == "org_1"

    def test_signer_without_key(self, config, authenticator, transport):
        config.key_id = None
        client = CustodianClient(config, authenticator=authenticator, transport=transport)
        client.organization_id = "org_1"

        with pytest.raises(ConfigError):
            client.signer()
