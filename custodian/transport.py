# custodian/transport.py
"""
JSON-over-HTTP transport for the key-management service.

Requests are sent with the body string exactly as it was stamped; the
server recomputes the stamp over those bytes.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .encoding import canonical_json
from .errors import SigningError, StampingError, TransportError, cancelled_by_caller
from .stamper import Stamp

logger = logging.getLogger(__name__)

WHOAMI_PATH = "/public/v1/query/whoami"
GET_PRIVATE_KEY_PATH = "/public/v1/query/get_private_key"


@dataclass
class SignedRequest:
    """A stamped request ready to be sent directly or through a proxy."""
    url: str
    body: str
    stamp: Stamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "body": self.body,
            "stamp": self.stamp.to_dict(),
        }


class HttpTransport:
    """
    Posts JSON to the service.

    Args:
        base_url: Service URL (e.g., "https://api.example.com")
        timeout: Request timeout in seconds
    """

    def __init__(self, base_url: str, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, url: str, body: str, headers: Dict[str, str]) -> dict:
        """Blocking POST; runs in a worker thread."""
        all_headers = {"Content-Type": "application/json"}
        all_headers.update(headers)
        req = Request(url, data=body.encode("utf-8"), headers=all_headers, method="POST")

        try:
            with urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read().decode())
        except HTTPError as e:
            error_body = e.read().decode()
            try:
                error_data = json.loads(error_body)
            except json.JSONDecodeError:
                raise TransportError(f"HTTP {e.code}: {error_body}", status_code=e.code, cause=e) from e
            message = error_data.get("message") or error_data.get("error") or str(e)
            raise TransportError(message, status_code=e.code, cause=e) from e
        except URLError as e:
            raise TransportError(f"Failed to connect to {url}: {e.reason}", cause=e) from e
        except TimeoutError as e:
            raise TransportError(f"Request to {url} timed out", cause=e) from e
        except json.JSONDecodeError as e:
            raise TransportError(f"Invalid JSON from {url}", cause=e) from e

    async def post(
        self,
        path: str,
        body: Union[str, Dict[str, Any]],
        headers: Optional[Dict[str, str]] = None,
    ) -> dict:
        """
        POST `body` to `path` and decode the JSON response.

        Raises:
            TransportError: on connection failure, HTTP error status or
                undecodable response; the server's message is kept verbatim
        """
        if not isinstance(body, str):
            body = canonical_json(body)
        url = self.url_for(path)
        logger.debug(f"POST {url}")
        return await asyncio.to_thread(self._request, url, body, headers or {})

    async def send(self, request: SignedRequest) -> dict:
        """Send a previously stamped request."""
        headers = {request.stamp.header_name: request.stamp.header_value}
        logger.debug(f"POST {request.url}")
        return await asyncio.to_thread(self._request, request.url, request.body, headers)


async def stamp_request(stamper, url: str, body: Dict[str, Any]) -> SignedRequest:
    """
    Serialize and stamp `body` for `url`.

    Raises:
        StampingError: if the stamper fails or is cancelled from inside
    """
    payload = canonical_json(body)
    try:
        stamp = await stamper.stamp(payload)
    except SigningError:
        raise
    except asyncio.CancelledError as e:
        if cancelled_by_caller():
            raise
        raise StampingError("Stamping was cancelled", cause=e) from e
    except Exception as e:
        raise StampingError(f"Failed to stamp request: {e}", cause=e) from e
    return SignedRequest(url=url, body=payload, stamp=stamp)
