"""
SlackMessenger - outbound Slack Web API calls used by the conversation flow.
"""

import logging
import os
from typing import Dict, List, Optional

import httpx

from .errors import ChannelOpenError, InviteError, MessageSendError, SlackApiError
from .utils import call_slack_api

logger = logging.getLogger(__name__)


class SlackMessenger:
    """Opens DMs, posts messages and invites users, raising typed errors on failure."""

    def __init__(self, bot_token: Optional[str] = None, timeout: float = 10.0):
        self.bot_token = bot_token or os.environ.get("SLACK_BOT_TOKEN")
        if not self.bot_token:
            raise ValueError("Missing SLACK_BOT_TOKEN")
        self.client = httpx.Client(timeout=timeout)

    def _call(self, method: str, payload: Dict, http_method: str = "POST") -> Dict:
        return call_slack_api(self.client, self.bot_token, method, payload, http_method)

    def open_direct_channel(self, user_id: str) -> str:
        """Open (or reuse) the IM channel with ``user_id`` and return its id."""
        try:
            data = self._call("conversations.open", {"users": user_id})
        except SlackApiError as e:
            raise ChannelOpenError(f"Could not open DM with {user_id}: {e.error}") from e
        channel = (data.get("channel") or {}).get("id")
        if not channel:
            raise ChannelOpenError(f"conversations.open returned no channel for {user_id}")
        return channel

    def post_message(
        self,
        channel: str,
        text: str,
        blocks: Optional[List[Dict]] = None,
    ) -> None:
        payload: Dict = {"channel": channel, "text": text, "mrkdwn": True}
        if blocks:
            payload["blocks"] = blocks
        try:
            self._call("chat.postMessage", payload)
        except SlackApiError as e:
            raise MessageSendError(f"Could not post to {channel}: {e.error}") from e

    def send_dm(self, user_id: str, text: str, blocks: Optional[List[Dict]] = None) -> None:
        """Open the user's DM channel and post ``text`` there."""
        channel = self.open_direct_channel(user_id)
        self.post_message(channel, text, blocks)

    def invite_to_channel(self, channel_id: str, user_id: str) -> None:
        try:
            self._call("conversations.invite", {"channel": channel_id, "users": user_id})
        except SlackApiError as e:
            raise InviteError(channel_id, user_id, e.error) from e

    def join_channel(self, channel_id: str) -> bool:
        """Join a public channel so the bot can invite into it. Returns False on failure."""
        try:
            self._call("conversations.join", {"channel": channel_id})
            return True
        except SlackApiError as e:
            logger.info(f"Bot already in {channel_id} or cannot join: {e.error}")
            return False

    def get_user_info(self, user_id: str) -> Dict:
        """Return ``{"is_bot": bool}`` for the user.

        Raises:
            SlackApiError: if the lookup fails
        """
        data = self._call("users.info", {"user": user_id}, http_method="GET")
        user = data.get("user") or {}
        return {"is_bot": bool(user.get("is_bot"))}
