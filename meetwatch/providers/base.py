"""
Tool: Collaborator Interfaces
Purpose: Abstract base classes for the pipeline's external collaborators

The controller talks to the outside world only through these interfaces,
so any mail or calendar platform can be plugged in. Failures surface as
meetwatch.errors exceptions; a platform's own error types never leak out.

Usage:
    from meetwatch.providers.base import MessageSource, BusySource, ReplySink
    from meetwatch.providers.gmail import GmailMessageSource, GmailReplySink

    source = GmailMessageSource(credentials)
    ids = await source.list_unread(max_results=10)
"""

from abc import ABC, abstractmethod
from datetime import date

from meetwatch.models import BusyInterval, InboundMessage


class CredentialProvider(ABC):
    """
    Supplies a valid access token to providers.

    Passed explicitly to each provider's constructor. Lifecycle:
    init() once, then get_valid() before each call; get_valid() refreshes
    when needed. Refresh failures surface as TransientExternalFailure.
    """

    @abstractmethod
    async def init(self) -> None:
        """Load credentials from wherever they are kept."""
        pass

    @abstractmethod
    async def refresh_if_needed(self) -> bool:
        """
        Refresh the access token if it is expired or about to expire.

        Returns:
            True if a refresh happened
        """
        pass

    @abstractmethod
    async def get_valid(self) -> str:
        """
        Return an access token that is valid right now.

        Raises:
            TransientExternalFailure: if no valid token can be obtained
        """
        pass

    @property
    def account_email(self) -> str | None:
        """Address of the account the credentials belong to, if known."""
        return None


class MessageSource(ABC):
    """
    Inbound message source (e.g. a Gmail inbox).

    All methods may raise TransientExternalFailure or PermanentExternalFailure.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'gmail')."""
        pass

    @abstractmethod
    async def list_unread(self, max_results: int = 10) -> list[str]:
        """
        List unread message ids, most recent first.

        Args:
            max_results: Page size bound

        Returns:
            Message ids in source order
        """
        pass

    @abstractmethod
    async def get(self, message_id: str) -> InboundMessage:
        """
        Fetch a message's headers, snippet and thread.

        Args:
            message_id: Source message id
        """
        pass

    @abstractmethod
    async def mark_processed(self, message_id: str) -> None:
        """
        Record the message as handled at the source. Idempotent.

        Args:
            message_id: Source message id
        """
        pass


class BusySource(ABC):
    """Supplies busy intervals for a set of dates, always as UTC instants."""

    @abstractmethod
    async def get_busy_intervals(self, dates: list[date]) -> list[BusyInterval]:
        """
        Get busy intervals covering the given calendar dates.

        The window must be wide enough for any working day on those dates
        in any timezone; extra intervals outside it are harmless.
        """
        pass


class ReplySink(ABC):
    """Composes and transmits outbound replies. Body formatting lives here."""

    @abstractmethod
    async def send(
        self,
        to_address: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
        in_reply_to_message_id: str | None = None,
    ) -> bool:
        """
        Send a reply.

        Args:
            to_address: Recipient address
            subject: Subject line
            body: Plain text body
            thread_id: Source thread to attach the reply to
            in_reply_to_message_id: RFC 822 Message-ID being answered

        Returns:
            True if the sink accepted the message
        """
        pass
