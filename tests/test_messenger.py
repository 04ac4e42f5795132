"""Tests for admission_bot.messenger"""

from unittest.mock import MagicMock, patch

import pytest

from admission_bot.errors import ChannelOpenError, InviteError, MessageSendError, SlackApiError
from admission_bot.messenger import SlackMessenger


@pytest.fixture
def messenger():
    """Create a messenger with mocked httpx."""
    m = SlackMessenger(bot_token="xoxb-test")
    m.client = MagicMock()
    return m


def _mock_response(data):
    """Create a mock httpx response."""
    resp = MagicMock()
    resp.json.return_value = data
    return resp


def _posted(messenger, index=0):
    call = messenger.client.post.call_args_list[index]
    return call.args[0].rsplit("/", 1)[-1], call.kwargs["json"]


class TestSlackMessengerInit:
    @patch.dict("os.environ", {"SLACK_BOT_TOKEN": "xoxb-env"})
    def test_init_with_env_var(self):
        assert SlackMessenger().bot_token == "xoxb-env"

    def test_init_with_explicit_token(self):
        assert SlackMessenger(bot_token="xoxb-explicit").bot_token == "xoxb-explicit"

    @patch.dict("os.environ", {}, clear=True)
    def test_init_missing_token_raises(self):
        with pytest.raises(ValueError, match="Missing SLACK_BOT_TOKEN"):
            SlackMessenger()


class TestOpenDirectChannel:
    def test_returns_channel_id(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": True, "channel": {"id": "D123"}})

        assert messenger.open_direct_channel("U1") == "D123"
        assert _posted(messenger) == ("conversations.open", {"users": "U1"})

    def test_api_error_raises_channel_open_error(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": False, "error": "user_not_found"})

        with pytest.raises(ChannelOpenError, match="user_not_found"):
            messenger.open_direct_channel("U1")

    def test_missing_channel_raises(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": True})

        with pytest.raises(ChannelOpenError):
            messenger.open_direct_channel("U1")


class TestPostMessage:
    def test_posts_text_and_blocks(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": True})
        blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": "*hi*"}}]

        messenger.post_message("D123", "hi", blocks)

        method, payload = _posted(messenger)
        assert method == "chat.postMessage"
        assert payload == {"channel": "D123", "text": "hi", "mrkdwn": True, "blocks": blocks}

    def test_omits_blocks_when_none(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": True})

        messenger.post_message("D123", "hi")

        assert "blocks" not in _posted(messenger)[1]

    def test_api_error_raises_message_send_error(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": False, "error": "not_in_channel"})

        with pytest.raises(MessageSendError, match="not_in_channel"):
            messenger.post_message("C1", "hi")


class TestSendDm:
    def test_opens_then_posts(self, messenger):
        messenger.client.post.side_effect = [
            _mock_response({"ok": True, "channel": {"id": "D123"}}),
            _mock_response({"ok": True}),
        ]

        messenger.send_dm("U1", "Welcome!")

        assert _posted(messenger, 0)[0] == "conversations.open"
        method, payload = _posted(messenger, 1)
        assert method == "chat.postMessage"
        assert payload["channel"] == "D123"
        assert payload["text"] == "Welcome!"

    def test_open_failure_skips_post(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": False, "error": "cannot_dm_bot"})

        with pytest.raises(ChannelOpenError):
            messenger.send_dm("U1", "Welcome!")

        assert messenger.client.post.call_count == 1


class TestInviteToChannel:
    def test_invites_user(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": True})

        messenger.invite_to_channel("C_BATCH2", "U1")

        assert _posted(messenger) == ("conversations.invite", {"channel": "C_BATCH2", "users": "U1"})

    @pytest.mark.parametrize("reason", ["already_in_channel", "not_in_channel", "channel_not_found"])
    def test_failure_carries_reason(self, messenger, reason):
        messenger.client.post.return_value = _mock_response({"ok": False, "error": reason})

        with pytest.raises(InviteError) as exc_info:
            messenger.invite_to_channel("C_BATCH2", "U1")

        assert exc_info.value.reason == reason
        assert exc_info.value.channel_id == "C_BATCH2"
        assert exc_info.value.user_id == "U1"


class TestJoinChannel:
    def test_success(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": True})
        assert messenger.join_channel("C1") is True

    def test_failure_returns_false(self, messenger):
        messenger.client.post.return_value = _mock_response({"ok": False, "error": "method_not_supported_for_channel_type"})
        assert messenger.join_channel("G1") is False


class TestGetUserInfo:
    def test_bot_user(self, messenger):
        messenger.client.get.return_value = _mock_response({"ok": True, "user": {"is_bot": True}})

        assert messenger.get_user_info("U1") == {"is_bot": True}
        assert messenger.client.get.call_args.kwargs["params"] == {"user": "U1"}

    def test_human_user(self, messenger):
        messenger.client.get.return_value = _mock_response({"ok": True, "user": {"id": "U1"}})

        assert messenger.get_user_info("U1") == {"is_bot": False}

    def test_lookup_failure_raises(self, messenger):
        messenger.client.get.return_value = _mock_response({"ok": False, "error": "user_not_found"})

        with pytest.raises(SlackApiError):
            messenger.get_user_info("U1")
