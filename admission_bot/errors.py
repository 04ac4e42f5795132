"""
Error types raised inside admission-bot.

None of these ever reach Slack as an error status: the dispatcher
acknowledges every delivery and the runner turns user-relevant failures
into a best-effort direct message.
"""

from typing import Optional


class AdmissionBotError(Exception):
    """Base class for admission-bot errors."""


class MalformedEnvelope(AdmissionBotError):
    """Inbound request body could not be decoded into an event envelope."""


class UnrecognizedEventType(AdmissionBotError):
    """Envelope type is neither a handshake nor an event callback."""


class SlackApiError(AdmissionBotError):
    """A Slack Web API call failed (``ok: false`` or transport error)."""

    def __init__(self, method: str, error: str):
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


class ChannelOpenError(AdmissionBotError):
    """A direct message channel with the user could not be opened."""


class MessageSendError(AdmissionBotError):
    """A message could not be posted."""


class InviteError(AdmissionBotError):
    """Inviting a user to a channel failed.

    ``reason`` is the Slack error code (``not_in_channel``,
    ``already_in_channel``, ``channel_not_found``, ...).
    """

    def __init__(self, channel_id: str, user_id: str, reason: Optional[str] = None):
        super().__init__(f"Could not invite {user_id} to {channel_id}: {reason}")
        self.channel_id = channel_id
        self.user_id = user_id
        self.reason = reason
