"""
Failure taxonomy for the meeting pipeline.

Collaborators (message source, busy source, oracle, reply sink) raise these
so the controller can decide, per step, whether a message is acknowledged,
left claimed, or treated as not meeting-related.

    MeetwatchError
    ├── ExternalCallFailure
    │   ├── TransientExternalFailure   network / auth / rate limit / timeout
    │   └── PermanentExternalFailure   bad id, malformed request
    ├── PermanentClassificationFailure oracle output could not be parsed
    ├── SlotComputationFailure         malformed date or timezone input
    └── ReplyTransmissionFailure       reply could not be sent
"""

from __future__ import annotations


class MeetwatchError(Exception):
    """Base class for all meetwatch errors."""


class ExternalCallFailure(MeetwatchError):
    """A call to an external collaborator failed."""

    retryable = False

    def __init__(self, message: str, *, service: str | None = None, status: int | None = None):
        super().__init__(message)
        self.service = service
        self.status = status


class TransientExternalFailure(ExternalCallFailure):
    """Network, auth, rate-limit or timeout failure. Worth retrying later."""

    retryable = True


class PermanentExternalFailure(ExternalCallFailure):
    """The request itself is bad (unknown id, rejected payload)."""


class PermanentClassificationFailure(MeetwatchError):
    """The intent oracle returned output that is not valid structured JSON."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class SlotComputationFailure(MeetwatchError):
    """A date or timezone given to the slot engine could not be interpreted."""


class ReplyTransmissionFailure(MeetwatchError):
    """The reply sink could not transmit a reply."""


__all__ = [
    "MeetwatchError",
    "ExternalCallFailure",
    "TransientExternalFailure",
    "PermanentExternalFailure",
    "PermanentClassificationFailure",
    "SlotComputationFailure",
    "ReplyTransmissionFailure",
]
