"""
AdmissionRunner — onboarding conversation state machine.

The runner owns:
- Per-user conversation records (name -> batch -> removed)
- Prompt wording and batch -> channel resolution
- The channel-invite side effect and its user-facing outcome

The dispatcher decides which events reach the runner; the messenger
talks to Slack.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from .errors import (
    AdmissionBotError,
    ChannelOpenError,
    InviteError,
    MessageSendError,
    SlackApiError,
)
from .state import ConversationRecord, ConversationStep, ConversationStore
from .utils import (
    DEFAULT_GREETING_WORDS,
    format_choices,
    is_greeting,
    normalize_batch,
    parse_batch_channels,
    section_blocks,
)

logger = logging.getLogger(__name__)

WELCOME_PROMPT = "Welcome! What is your full name?"
NAME_REPROMPT = "Please share your full name."
INVITE_CONFIRMATION = "You have been invited to <#{channel}>. Welcome!"
INVITE_FALLBACK = "I could not add you automatically. A moderator will help you shortly."


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AdmissionConfig:
    """Configuration for the admission bot.

    Required:
        announce_channel_id: Channel whose joins start onboarding
        batch_channels: Batch number -> destination channel id. A batch with
            an empty channel id is still listed in prompts but cannot be
            resolved.

    Optional:
        lenient_greeting: Let a greeting DM start onboarding without a join
        greeting_words: Words that count as a greeting
        join_before_invite: Have the bot join the batch channel before inviting
        status_channel: Slack channel ID for startup/shutdown status messages
    """

    announce_channel_id: str
    batch_channels: Dict[str, str]
    bot_name: str = "admission-bot"
    version: str = "0.1.0"
    lenient_greeting: bool = True
    greeting_words: List[str] = field(default_factory=lambda: list(DEFAULT_GREETING_WORDS))
    join_before_invite: bool = True
    status_channel: Optional[str] = None

    def __post_init__(self):
        if not self.announce_channel_id:
            raise ValueError("Missing ANNOUNCE_CHANNEL_ID")
        if not any(self.batch_channels.values()):
            raise ValueError("Missing batch channels (BATCH_CHANNELS or BATCH2_CHANNEL_ID/BATCH3_CHANNEL_ID)")

    @classmethod
    def from_env(cls) -> "AdmissionConfig":
        """Build config from environment variables, failing fast on missing values."""
        batch_channels = parse_batch_channels(os.environ.get("BATCH_CHANNELS"))
        if not batch_channels:
            batch_channels = {
                "2": os.environ.get("BATCH2_CHANNEL_ID", ""),
                "3": os.environ.get("BATCH3_CHANNEL_ID", ""),
            }
        return cls(
            announce_channel_id=os.environ.get("ANNOUNCE_CHANNEL_ID", ""),
            batch_channels=batch_channels,
            lenient_greeting=_env_flag("LENIENT_GREETING", True),
            join_before_invite=_env_flag("JOIN_BEFORE_INVITE", True),
            status_channel=os.environ.get("STATUS_CHANNEL_ID") or None,
        )

    @property
    def valid_batches(self) -> List[str]:
        return sorted(self.batch_channels, key=lambda b: (len(b), b))

    def resolve_batch_channel(self, batch: str) -> Optional[str]:
        """Destination channel for a normalized batch number, or None."""
        return self.batch_channels.get(batch) or None


def invite_failure_message(error: AdmissionBotError) -> str:
    """User-facing text for a failed invite.

    Every failure gets the same moderator fallback; raw Slack error codes are
    only logged.
    """
    return INVITE_FALLBACK


class AdmissionRunner:
    """
    Drives the onboarding dialogue for each user.

    States: AWAITING_NAME -> AWAITING_BATCH -> (record removed).

    A non-terminal transition is committed only after its prompt reached the
    user, so a message that failed half-way can simply be sent again.
    """

    def __init__(
        self,
        config: AdmissionConfig,
        messenger,
        store: Optional[ConversationStore] = None,
    ):
        self.config = config
        self.messenger = messenger
        self.store = store if store is not None else ConversationStore()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def on_member_joined(self, user_id: str, channel_id: str) -> None:
        """Start onboarding when someone joins the announcement channel."""
        if not user_id or channel_id != self.config.announce_channel_id:
            return
        if self._is_bot_user(user_id):
            logger.info(f"Ignoring bot user {user_id} joining {channel_id}")
            return

        logger.info(f"User {user_id} joined announcement channel {channel_id}")
        with self.store.lock(user_id):
            self._start_conversation(user_id)

    def on_direct_message(self, user_id: str, text: str, automated: bool = False) -> None:
        """Handle a DM from a user, starting or advancing their conversation."""
        if automated or not user_id:
            return

        with self.store.lock(user_id):
            record = self.store.get(user_id)
            if record is None:
                if self.config.lenient_greeting and is_greeting(text, self.config.greeting_words):
                    logger.info(f"Greeting from {user_id}, starting onboarding")
                    self._start_conversation(user_id)
                return
            self.advance(record, text)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def advance(self, record: ConversationRecord, text: str) -> None:
        """Apply one user answer to ``record``. Caller holds ``store.lock``."""
        if record.step is ConversationStep.AWAITING_NAME:
            self._handle_name(record, text)
        elif record.step is ConversationStep.AWAITING_BATCH:
            self._handle_batch(record, text)
        else:
            raise ValueError(f"Unknown conversation step: {record.step}")

    def _start_conversation(self, user_id: str) -> None:
        if self._send(user_id, WELCOME_PROMPT, section_blocks(WELCOME_PROMPT)):
            self.store.upsert(ConversationRecord(user_id=user_id))

    def _handle_name(self, record: ConversationRecord, text: str) -> None:
        name = (text or "").strip()
        if not name:
            self._send(record.user_id, NAME_REPROMPT)
            return

        choices = self.config.valid_batches
        plain = f"Thanks, {name}. Which batch are you in? {format_choices(choices)}?"
        rich = f"Thanks, {name}. Which batch are you in? {format_choices(choices, bold=True)}?"
        if self._send(record.user_id, plain, section_blocks(rich)):
            self.store.upsert(
                replace(record, step=ConversationStep.AWAITING_BATCH, name=name)
            )

    def _handle_batch(self, record: ConversationRecord, text: str) -> None:
        user_id = record.user_id
        batch = normalize_batch(text)
        channel = self.config.resolve_batch_channel(batch)
        if not channel:
            logger.info(f"Unrecognized batch {text!r} from {user_id}")
            self._send(user_id, f"Please reply with {format_choices(self.config.valid_batches)}.")
            return

        try:
            if self.config.join_before_invite:
                self.messenger.join_channel(channel)
            self.messenger.invite_to_channel(channel, user_id)
            logger.info(f"Invited {user_id} ({record.name}) to batch {batch} channel {channel}")
            reply = INVITE_CONFIRMATION.format(channel=channel)
        except InviteError as e:
            logger.error(f"conversations.invite failed for {user_id} -> {channel}: {e.reason}")
            reply = invite_failure_message(e)
        except AdmissionBotError as e:
            logger.error(f"Invite of {user_id} -> {channel} failed: {e}", exc_info=True)
            reply = invite_failure_message(e)
        finally:
            self.store.delete(user_id)
        self._send(user_id, reply)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send(self, user_id: str, text: str, blocks: Optional[List[Dict]] = None) -> bool:
        """DM the user. Returns False (after logging) if Slack could not be reached."""
        try:
            self.messenger.send_dm(user_id, text, blocks)
            return True
        except (ChannelOpenError, MessageSendError) as e:
            logger.error(f"Could not message {user_id}: {e}")
            return False

    def _is_bot_user(self, user_id: str) -> bool:
        try:
            return bool(self.messenger.get_user_info(user_id).get("is_bot"))
        except SlackApiError as e:
            logger.warning(f"users.info failed for {user_id}, assuming human: {e.error}")
            return False
