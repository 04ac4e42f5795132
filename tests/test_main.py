"""Tests for admission_bot.__main__"""

from unittest.mock import patch

import pytest

from admission_bot.__main__ import build_adapter, main
from admission_bot.slack_adapter import SlackAdapter

ENV = {
    "SLACK_BOT_TOKEN": "xoxb-test",
    "ANNOUNCE_CHANNEL_ID": "C_ANN",
    "BATCH2_CHANNEL_ID": "C_B2",
    "BATCH3_CHANNEL_ID": "C_B3",
    "PORT": "4000",
}


class TestBuildAdapter:
    @patch.dict("os.environ", ENV, clear=True)
    def test_wires_components(self):
        adapter = build_adapter()

        assert isinstance(adapter, SlackAdapter)
        assert adapter.port == 4000
        assert adapter.runner.config.announce_channel_id == "C_ANN"
        assert adapter.runner.messenger.bot_token == "xoxb-test"

    @patch.dict("os.environ", {k: v for k, v in ENV.items() if k != "SLACK_BOT_TOKEN"}, clear=True)
    def test_missing_token_raises(self):
        with pytest.raises(ValueError, match="Missing SLACK_BOT_TOKEN"):
            build_adapter()


class TestMain:
    @patch.dict("os.environ", {"SLACK_BOT_TOKEN": "xoxb-test"}, clear=True)
    def test_missing_config_exits_before_serving(self):
        with patch.object(SlackAdapter, "start") as mock_start, pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        mock_start.assert_not_called()

    @patch.dict("os.environ", ENV, clear=True)
    def test_starts_adapter(self):
        with patch.object(SlackAdapter, "start") as mock_start:
            main()

        mock_start.assert_called_once_with()
