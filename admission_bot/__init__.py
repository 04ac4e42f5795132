"""
admission-bot: Slack onboarding bot that sorts new members into batch channels.

Usage:
    from admission_bot import AdmissionConfig, AdmissionRunner, EventDispatcher
    from admission_bot import SlackAdapter, SlackMessenger

    config = AdmissionConfig.from_env()
    runner = AdmissionRunner(config=config, messenger=SlackMessenger())
    SlackAdapter(EventDispatcher(runner)).start()

Or simply:
    python -m admission_bot
"""

from .dispatcher import DispatchResult, EventDispatcher
from .errors import (
    AdmissionBotError,
    ChannelOpenError,
    InviteError,
    MalformedEnvelope,
    MessageSendError,
    SlackApiError,
    UnrecognizedEventType,
)
from .messenger import SlackMessenger
from .runner import AdmissionConfig, AdmissionRunner, invite_failure_message
from .slack_adapter import SlackAdapter
from .state import ConversationRecord, ConversationStep, ConversationStore

__all__ = [
    "AdmissionConfig",
    "AdmissionRunner",
    "invite_failure_message",
    "EventDispatcher",
    "DispatchResult",
    "SlackAdapter",
    "SlackMessenger",
    "ConversationRecord",
    "ConversationStep",
    "ConversationStore",
    "AdmissionBotError",
    "MalformedEnvelope",
    "UnrecognizedEventType",
    "SlackApiError",
    "ChannelOpenError",
    "MessageSendError",
    "InviteError",
]
__version__ = "0.1.0"
