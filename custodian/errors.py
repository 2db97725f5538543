# custodian/errors.py
"""
Error taxonomy for custodial signing.

Every failure raised by this package is a SigningError. Subclasses name the
step that failed; the structured fields carry whatever is known about the
activity so callers can correlate a failure with server-side audit logs.
"""

import asyncio
from typing import Optional


class SigningError(Exception):
    """
    Base error for every failure surfaced by the package.

    Attributes:
        message: Human-readable description
        cause: The underlying exception, if this error wraps one
        activity_id: ID of the activity involved, if known
        activity_status: Status of that activity, if known
        activity_type: Type of that activity, if known
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        activity_id: Optional[str] = None,
        activity_status: Optional[str] = None,
        activity_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.activity_id = activity_id
        self.activity_status = activity_status
        self.activity_type = activity_type

    def __str__(self) -> str:
        parts = []
        if self.activity_id:
            parts.append(f"activity_id={self.activity_id}")
        if self.activity_status:
            parts.append(f"status={self.activity_status}")
        if self.activity_type:
            parts.append(f"type={self.activity_type}")
        if self.cause is not None:
            parts.append(f"cause={self.cause!r}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class CeremonyCancelled(SigningError):
    """The user or device aborted the WebAuthn ceremony."""


class StampingError(SigningError):
    """The request stamper was unavailable or refused to stamp."""


class TransportError(SigningError):
    """Network or HTTP failure talking to the service."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class IdentityCreationError(SigningError):
    """The provisioning endpoint rejected a new sub-organization."""


class LookupFailure(SigningError):
    """No sub-organization could be resolved from the stamping credential."""


class ActivityRejectedError(SigningError):
    """An activity reached a terminal status other than COMPLETED."""


class ActivityPendingError(SigningError):
    """An activity came back in a non-terminal status."""


class MalformedResultError(SigningError):
    """The service reported success without the expected result payload."""


class UnsupportedOperationError(SigningError):
    """The requested operation is not offered by this signer."""


class ConfigError(SigningError):
    """Client configuration is missing or invalid."""


def cancelled_by_caller() -> bool:
    """
    True when the running task itself is being cancelled.

    A CancelledError seen while this is False came from an authenticator
    or stamper refusing, and is wrapped like any other failure.
    """
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
