"""
EventDispatcher - classifies Slack Events API deliveries and routes them to the runner.

Slack retries any delivery it does not see acknowledged within a few
seconds, so every envelope except the URL handshake gets the same empty
200 immediately and its handler runs on a background worker.

Deliveries for one user run in arrival order, one at a time, without
holding a worker while they wait. Redeliveries of an already seen
``event_id`` are dropped.
"""

import json
import logging
import threading
import time
from collections import OrderedDict, deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from .errors import MalformedEnvelope, UnrecognizedEventType
from .utils import is_automated_message

logger = logging.getLogger(__name__)

HANDSHAKE = "url_verification"
EVENT_CALLBACK = "event_callback"


@dataclass
class DispatchResult:
    """HTTP response the adapter should send back to Slack."""

    status: int = 200
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


def parse_envelope(raw_body: Union[bytes, str, Dict]) -> Dict:
    """Decode a request body into an envelope dict.

    Raises:
        MalformedEnvelope: if the body is not a JSON object
    """
    if isinstance(raw_body, dict):
        return raw_body
    if isinstance(raw_body, bytes):
        try:
            raw_body = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEnvelope(f"Body is not UTF-8: {e}") from e
    try:
        envelope = json.loads(raw_body or "{}")
    except json.JSONDecodeError as e:
        raise MalformedEnvelope(f"Body is not valid JSON: {e}") from e
    if not isinstance(envelope, dict):
        raise MalformedEnvelope(f"Expected a JSON object, got {type(envelope).__name__}")
    return envelope


class EventDispatcher:
    """Router from Slack envelopes to AdmissionRunner triggers."""

    def __init__(
        self,
        runner,
        executor: Optional[Executor] = None,
        max_workers: int = 8,
        seen_ttl: float = 3600.0,
        seen_max: int = 10000,
    ):
        self.runner = runner
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="admission-event"
        )
        self.seen_ttl = seen_ttl
        self.seen_max = seen_max
        self._seen_events: "OrderedDict[str, float]" = OrderedDict()
        self._pending: Dict[str, deque] = {}
        self._guard = threading.Lock()

    def dispatch(self, raw_body: Union[bytes, str, Dict]) -> DispatchResult:
        """Handle one delivery. Never raises and never returns a non-200 result."""
        try:
            envelope = parse_envelope(raw_body)
            envelope_type = envelope.get("type")
            logger.debug(f"Received Slack request: type = {envelope_type!r}")

            if envelope_type == HANDSHAKE:
                return self._handshake(envelope)
            if envelope_type == EVENT_CALLBACK:
                event_id = envelope.get("event_id")
                if self._already_seen(event_id):
                    logger.info(f"Skipping duplicate delivery of {event_id}")
                else:
                    self._route(envelope.get("event") or {})
                return DispatchResult()
            raise UnrecognizedEventType(f"Unsupported envelope type: {envelope_type!r}")
        except (MalformedEnvelope, UnrecognizedEventType) as e:
            logger.warning(f"Discarding delivery: {e}")
        except Exception as e:
            logger.error(f"Error dispatching Slack delivery: {e}", exc_info=True)
        return DispatchResult()

    def _already_seen(self, event_id: Optional[str]) -> bool:
        """Record ``event_id`` and report whether it was delivered before."""
        if not event_id:
            return False
        now = time.monotonic()
        with self._guard:
            while self._seen_events:
                oldest_id, seen_at = next(iter(self._seen_events.items()))
                if now - seen_at < self.seen_ttl:
                    break
                del self._seen_events[oldest_id]
            if event_id in self._seen_events:
                return True
            self._seen_events[event_id] = now
            if len(self._seen_events) > self.seen_max:
                self._seen_events.popitem(last=False)
            return False

    def _handshake(self, envelope: Dict) -> DispatchResult:
        challenge = envelope.get("challenge")
        logger.info("URL verification challenge received")
        return DispatchResult(
            status=200,
            body=json.dumps({"challenge": challenge}),
            headers={"Content-Type": "application/json"},
        )

    def _route(self, event: Dict) -> None:
        event_type = event.get("type")
        user_id = event.get("user")

        if event_type == "member_joined_channel":
            self._submit(user_id, self.runner.on_member_joined, user_id, event.get("channel"))
        elif event_type == "message":
            if event.get("channel_type") != "im":
                return
            self._submit(
                user_id,
                self.runner.on_direct_message,
                user_id,
                event.get("text", ""),
                automated=is_automated_message(event),
            )
        else:
            logger.debug(f"Ignoring event type {event_type!r}")

    def _submit(self, key: Optional[str], handler: Callable[..., Any], *args, **kwargs) -> None:
        """Queue work for ``key``; start a drain task if none is running for it."""
        key = key or ""
        with self._guard:
            queue = self._pending.get(key)
            if queue is not None:
                queue.append((handler, args, kwargs))
                return
            self._pending[key] = deque([(handler, args, kwargs)])
        try:
            future = self.executor.submit(self._drain, key)
        except Exception:
            with self._guard:
                del self._pending[key]
            raise
        future.add_done_callback(self._log_failure)

    def _drain(self, key: str) -> None:
        """Run queued work for one user until the queue is empty."""
        while True:
            with self._guard:
                queue = self._pending[key]
                if not queue:
                    del self._pending[key]
                    return
                handler, args, kwargs = queue.popleft()
            try:
                handler(*args, **kwargs)
            except Exception as e:
                logger.error(f"Event handler failed: {e}", exc_info=True)

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                f"Event drain failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
