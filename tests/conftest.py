"""Shared fixtures for admission_bot tests"""

from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest

from admission_bot.runner import AdmissionConfig, AdmissionRunner


class ImmediateExecutor(Executor):
    """Runs submitted work inline so dispatcher tests are deterministic."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def config():
    return AdmissionConfig(
        announce_channel_id="C_ANNOUNCE",
        batch_channels={"2": "C_BATCH2", "3": "C_BATCH3"},
    )


@pytest.fixture
def messenger():
    """Mock outbound Slack collaborator."""
    m = MagicMock()
    m.get_user_info.return_value = {"is_bot": False}
    return m


@pytest.fixture
def runner(config, messenger):
    return AdmissionRunner(config=config, messenger=messenger)

