"""Shared fakes for the custodian tests."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Union

import pytest

from custodian.ceremony import AssertionBundle, AttestationBundle, Authenticator
from custodian.stamper import Stamp, Stamper
from custodian.transport import HttpTransport

BASE_URL = "https://api.test"

Response = Union[Dict[str, Any], Exception, Callable[[Dict[str, Any]], Dict[str, Any]]]


class FakeTransport(HttpTransport):
    """
    Transport that answers from a table instead of the network.

    Responses are keyed by path. A response may be a dict, an exception
    to raise, or a function of the decoded request body.
    """

    def __init__(self):
        super().__init__(BASE_URL)
        self.responses: Dict[str, Response] = {}
        self.requests: List[Dict[str, Any]] = []

    def respond(self, path: str, response: Response):
        self.responses[path] = response

    def _request(self, url: str, body: str, headers: Dict[str, str]) -> dict:
        path = url[len(BASE_URL):]
        self.requests.append({"path": path, "body": body, "headers": dict(headers)})
        response = self.responses.get(path)
        if response is None:
            raise AssertionError(f"Unexpected request to {path}")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(json.loads(body))
        return response

    def bodies(self, path: str) -> List[Dict[str, Any]]:
        return [json.loads(r["body"]) for r in self.requests if r["path"] == path]


class FakeStamper(Stamper):
    """Records every body it stamps."""

    def __init__(self, error: Exception = None):
        self.bodies: List[str] = []
        self.error = error

    async def stamp(self, body: str) -> Stamp:
        if self.error is not None:
            raise self.error
        self.bodies.append(body)
        return Stamp("X-Stamp", f"stamp-{len(self.bodies)}")


class FakeAuthenticator(Authenticator):
    """Authenticator returning fixed credentials and counting invocations."""

    def __init__(self, error: Exception = None, delay: float = 0):
        self.error = error
        self.delay = delay
        self.creation_options = []
        self.assertion_options = []

    async def create_credential(self, options):
        self.creation_options.append(options)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AttestationBundle(
            credential_id="cred-1",
            client_data_json="Y2xpZW50LWRhdGE",
            attestation_object="YXR0ZXN0YXRpb24",
            transports=["internal"],
        )

    async def get_assertion(self, options):
        self.assertion_options.append(options)
        if self.error is not None:
            raise self.error
        return AssertionBundle(
            credential_id="cred-1",
            client_data_json="Y2xpZW50LWRhdGE",
            authenticator_data="YXV0aC1kYXRh",
            signature="c2lnbmF0dXJl",
        )


def completed(activity_type: str, result: Dict[str, Any], activity_id: str = "act-1") -> dict:
    """A response carrying a completed activity."""
    return {
        "activity": {
            "id": activity_id,
            "organizationId": "org-1",
            "type": activity_type,
            "status": "ACTIVITY_STATUS_COMPLETED",
            "result": result,
        }
    }


def with_status(activity_type: str, status: str, activity_id: str = "act-1") -> dict:
    return {
        "activity": {
            "id": activity_id,
            "organizationId": "org-1",
            "type": activity_type,
            "status": status,
        }
    }


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def stamper():
    return FakeStamper()


@pytest.fixture
def authenticator():
    return FakeAuthenticator()
