"""
External collaborators: credentials, message source, busy source, reply sink.

Usage:
    from meetwatch.providers import (
        OAuthCredentialProvider,
        GmailMessageSource,
        GmailReplySink,
        GoogleCalendarBusySource,
    )
"""

from meetwatch.providers.base import BusySource, CredentialProvider, MessageSource, ReplySink
from meetwatch.providers.credentials import OAuthCredentialProvider
from meetwatch.providers.gmail import GmailMessageSource, GmailReplySink
from meetwatch.providers.google_calendar import GoogleCalendarBusySource

__all__ = [
    "BusySource",
    "CredentialProvider",
    "MessageSource",
    "ReplySink",
    "OAuthCredentialProvider",
    "GmailMessageSource",
    "GmailReplySink",
    "GoogleCalendarBusySource",
]
