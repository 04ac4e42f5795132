"""
In-memory conversation state, one record per Slack user.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class ConversationStep(Enum):
    AWAITING_NAME = "awaiting_name"
    AWAITING_BATCH = "awaiting_batch"


@dataclass
class ConversationRecord:
    """Where a user is in the onboarding dialogue."""

    user_id: str
    step: ConversationStep = ConversationStep.AWAITING_NAME
    name: Optional[str] = None


class ConversationStore:
    """
    Thread-safe user id -> ConversationRecord map.

    get/upsert/delete are individually atomic. Callers that read, talk to
    Slack, then write must hold ``lock(user_id)`` for the whole sequence so
    two deliveries for the same user cannot interleave. Different users
    never wait on each other.
    """

    def __init__(self):
        self._records: Dict[str, ConversationRecord] = {}
        self._guard = threading.Lock()
        # user id -> [lock, number of threads holding or waiting for it]
        self._user_locks: Dict[str, list] = {}

    @contextmanager
    def lock(self, user_id: str) -> Iterator[None]:
        """Serialize all work for ``user_id``.

        The lock is dropped once no thread holds or waits for it.
        """
        with self._guard:
            entry = self._user_locks.setdefault(user_id, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._user_locks[user_id]

    def get(self, user_id: str) -> Optional[ConversationRecord]:
        with self._guard:
            return self._records.get(user_id)

    def upsert(self, record: ConversationRecord) -> ConversationRecord:
        with self._guard:
            self._records[record.user_id] = record
        logger.debug(f"Stored {record.user_id} at {record.step.value}")
        return record

    def delete(self, user_id: str) -> Optional[ConversationRecord]:
        with self._guard:
            record = self._records.pop(user_id, None)
        if record:
            logger.debug(f"Removed conversation for {user_id}")
        return record

    def __contains__(self, user_id: str) -> bool:
        with self._guard:
            return user_id in self._records

    def __len__(self) -> int:
        with self._guard:
            return len(self._records)
