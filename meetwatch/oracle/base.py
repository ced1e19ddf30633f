"""
IntentOracle interface.

classify() decides whether a message is about scheduling a meeting and,
if so, which dates and preferences it names. rank() picks concrete,
presentable slots for the reply given the computed free slots. Both
return the normalized MeetingRequestContext; the controller never sees a
raw model response.
"""

from abc import ABC, abstractmethod
from datetime import date

from meetwatch.models import FreeSlot, MeetingRequestContext


class IntentOracle(ABC):
    """External intent classification and ranking service."""

    @abstractmethod
    async def classify(self, text: str, today: date, timezone: str) -> MeetingRequestContext | None:
        """
        Classify a message.

        Args:
            text: Message text (usually the snippet)
            today: Reference date for relative expressions ("next Friday")
            timezone: Default timezone of the calendar owner

        Returns:
            MeetingRequestContext, or None if the message is not meeting-related

        Raises:
            PermanentClassificationFailure: output could not be parsed
            TransientExternalFailure: the service could not be reached
        """
        pass

    @abstractmethod
    async def rank(
        self,
        text: str,
        today: date,
        timezone: str,
        constraints: list[FreeSlot],
        context: MeetingRequestContext | None = None,
    ) -> MeetingRequestContext:
        """
        Choose the slots to offer, drawn from the free-slot constraints.

        Returns:
            MeetingRequestContext whose candidate_slots are the ranked choices
        """
        pass
