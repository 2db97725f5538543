# custodian/activity.py
"""
Activity submission and resolution.

An activity is the unit of privileged work on the service: creating keys,
signing a transaction, creating a sub-organization. A client builds an
intent envelope, stamps it, posts it, and gets back the activity with its
status. This module turns that response into either the intent's result
payload or a typed SigningError.

Activity statuses are modeled as a tagged outcome:
- Pending: non-terminal (CREATED, PENDING)
- Completed: COMPLETED, carrying the result payload for the intent type
- Rejected: FAILED, REJECTED, CONSENSUS_NEEDED

Nothing here retries. A failed activity may already have had effects on
the server, so retry policy belongs to the caller.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from .errors import (
    ActivityPendingError,
    ActivityRejectedError,
    MalformedResultError,
    SigningError,
    cancelled_by_caller,
)
from .stamper import Stamper
from .transport import HttpTransport, SignedRequest, stamp_request

logger = logging.getLogger(__name__)


class ActivityStatus(Enum):
    """Status values reported by the service."""
    CREATED = "ACTIVITY_STATUS_CREATED"
    PENDING = "ACTIVITY_STATUS_PENDING"
    COMPLETED = "ACTIVITY_STATUS_COMPLETED"
    FAILED = "ACTIVITY_STATUS_FAILED"
    CONSENSUS_NEEDED = "ACTIVITY_STATUS_CONSENSUS_NEEDED"
    REJECTED = "ACTIVITY_STATUS_REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self not in (ActivityStatus.CREATED, ActivityStatus.PENDING)

    @property
    def is_failure(self) -> bool:
        return self.is_terminal and self is not ActivityStatus.COMPLETED


@dataclass
class Activity:
    """An activity as returned by the service."""
    activity_id: str
    organization_id: str
    activity_type: str
    status: ActivityStatus
    result: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Activity":
        """
        Parse the `activity` object of a response.

        Raises:
            MalformedResultError: if required fields are missing or the
                status is not one the service defines
        """
        try:
            activity_id = data["id"]
            activity_type = data["type"]
            raw_status = data["status"]
        except (KeyError, TypeError) as e:
            raise MalformedResultError(f"Activity is missing field {e}", cause=e) from e

        try:
            status = ActivityStatus(raw_status)
        except ValueError as e:
            raise MalformedResultError(
                f"Unknown activity status: {raw_status}",
                cause=e,
                activity_id=activity_id,
                activity_status=raw_status,
                activity_type=activity_type,
            ) from e

        return cls(
            activity_id=activity_id,
            organization_id=data.get("organizationId", ""),
            activity_type=activity_type,
            status=status,
            result=data.get("result") or {},
        )

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> "Activity":
        activity = response.get("activity") if isinstance(response, dict) else None
        if not isinstance(activity, dict):
            raise MalformedResultError("Response does not contain an activity")
        return cls.from_dict(activity)

    def error_fields(self) -> Dict[str, str]:
        """Identifiers attached to any error about this activity."""
        return {
            "activity_id": self.activity_id,
            "activity_status": self.status.value,
            "activity_type": self.activity_type,
        }


@dataclass
class Pending:
    activity: Activity


@dataclass
class Completed:
    activity: Activity
    result: Any


@dataclass
class Rejected:
    activity: Activity


Outcome = Union[Pending, Completed, Rejected]


def classify(activity: Activity, result_field: str) -> Outcome:
    """
    Sort an activity into its outcome.

    Raises:
        MalformedResultError: if the activity completed without
            `result_field` in its result
    """
    if activity.status is ActivityStatus.COMPLETED:
        payload = activity.result.get(result_field)
        if payload is None:
            raise MalformedResultError(
                f"Completed activity has no {result_field}",
                **activity.error_fields(),
            )
        return Completed(activity, payload)
    if activity.status.is_failure:
        return Rejected(activity)
    return Pending(activity)


# Intent registry

@dataclass(frozen=True)
class Intent:
    """
    A kind of activity.

    Attributes:
        activity_type: Value of the envelope's `type`
        path: Submit route on the service
        result_field: Key of the payload in a completed activity's result
    """
    activity_type: str
    path: str
    result_field: str


_INTENTS: Dict[str, Intent] = {}


def register_intent(activity_type: str, path: str, result_field: str) -> Intent:
    """Register an intent type so submit() can route and resolve it."""
    if activity_type in _INTENTS:
        logger.warning(f"Overwriting intent {activity_type}")
    intent = Intent(activity_type, path, result_field)
    _INTENTS[activity_type] = intent
    return intent


def get_intent(activity_type: str) -> Optional[Intent]:
    return _INTENTS.get(activity_type)


def list_intents() -> Dict[str, Intent]:
    return dict(_INTENTS)


CREATE_PRIVATE_KEYS = register_intent(
    "ACTIVITY_TYPE_CREATE_PRIVATE_KEYS_V2",
    "/public/v1/submit/create_private_keys",
    "createPrivateKeysResultV2",
)
SIGN_TRANSACTION = register_intent(
    "ACTIVITY_TYPE_SIGN_TRANSACTION",
    "/public/v1/submit/sign_transaction",
    "signTransactionResult",
)
CREATE_SUB_ORGANIZATION = register_intent(
    "ACTIVITY_TYPE_CREATE_SUB_ORGANIZATION_V2",
    "/public/v1/submit/create_sub_organization",
    "createSubOrganizationResult",
)
SIGN_RAW_PAYLOAD = register_intent(
    "ACTIVITY_TYPE_SIGN_RAW_PAYLOAD",
    "/public/v1/submit/sign_raw_payload",
    "signRawPayloadResult",
)


def _timestamp_ms() -> str:
    return str(int(time.time() * 1000))


class ActivitySubmitter:
    """
    Builds, stamps and submits intents, one activity per call.

    Args:
        transport: Connection to the service
        stamper: Signs every envelope; a passkey stamper prompts the user
        clock: Returns the envelope timestamp (milliseconds, as a string)
    """

    def __init__(
        self,
        transport: HttpTransport,
        stamper: Stamper,
        clock: Callable[[], str] = _timestamp_ms,
    ):
        self.transport = transport
        self.stamper = stamper
        self._clock = clock

    def build_envelope(
        self, activity_type: str, organization_id: str, parameters: Dict[str, Any]
    ) -> Dict[str, Any]:
        return {
            "type": activity_type,
            "organizationId": organization_id,
            "timestampMs": self._clock(),
            "parameters": parameters,
        }

    async def stamp(
        self, activity_type: str, organization_id: str, parameters: Dict[str, Any]
    ) -> SignedRequest:
        """
        Stamp an intent without sending it.

        The returned request can be forwarded by a proxy that holds no
        credentials of its own.
        """
        intent = _require_intent(activity_type)
        envelope = self.build_envelope(activity_type, organization_id, parameters)
        return await stamp_request(self.stamper, self.transport.url_for(intent.path), envelope)

    async def execute(
        self, activity_type: str, organization_id: str, parameters: Dict[str, Any]
    ) -> Completed:
        """
        Submit an intent and resolve its activity.

        Returns:
            The Completed outcome: the activity and its result payload

        Raises:
            StampingError: if the envelope could not be stamped
            TransportError: if the service could not be reached or
                answered with an error
            ActivityRejectedError: if the activity failed or was rejected
            ActivityPendingError: if the activity is not yet resolved
            MalformedResultError: if a completed activity has no result
            SigningError: for anything else, wrapping the underlying exception
        """
        request_id = str(uuid.uuid4())
        activity = None
        try:
            intent = _require_intent(activity_type)
            logger.debug(f"Request {request_id}: {activity_type} in {organization_id}")
            request = await self.stamp(activity_type, organization_id, parameters)
            response = await self.transport.send(request)
            activity = Activity.from_response(response)
            outcome = classify(activity, intent.result_field)
        except SigningError:
            raise
        except asyncio.CancelledError as e:
            if cancelled_by_caller():
                raise
            fields = activity.error_fields() if activity else {"activity_type": activity_type}
            raise SigningError(f"Submitting {activity_type} was cancelled", cause=e, **fields) from e
        except Exception as e:
            fields = activity.error_fields() if activity else {"activity_type": activity_type}
            raise SigningError(f"Failed to submit {activity_type}: {e}", cause=e, **fields) from e

        if isinstance(outcome, Completed):
            logger.info(f"Activity {activity.activity_id} ({activity_type}) completed")
            return outcome

        if isinstance(outcome, Rejected):
            logger.warning(
                f"Activity {activity.activity_id} ({activity_type}) ended with {activity.status.value}"
            )
            raise ActivityRejectedError(
                f"Invalid activity status: {activity.status.value}",
                **activity.error_fields(),
            )

        raise ActivityPendingError(
            f"Activity {activity.activity_id} is still {activity.status.value}",
            **activity.error_fields(),
        )

    async def submit(
        self, activity_type: str, organization_id: str, parameters: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Like execute(), returning only the result payload for `activity_type`."""
        outcome = await self.execute(activity_type, organization_id, parameters)
        return outcome.result


def _require_intent(activity_type: str) -> Intent:
    intent = get_intent(activity_type)
    if intent is None:
        raise SigningError(f"Unknown activity type: {activity_type}", activity_type=activity_type)
    return intent
