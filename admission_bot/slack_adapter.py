"""
SlackAdapter — HTTP interface for the admission bot.

Serves the Slack Events API endpoint, verifies request signatures,
and hands every delivery to the EventDispatcher.
"""

import logging
import os
import signal
import sys
from typing import Optional

from flask import Flask, Response, request
from slack_sdk.signature import SignatureVerifier

from .dispatcher import EventDispatcher
from .errors import MessageSendError

logger = logging.getLogger(__name__)

EVENTS_PATH = "/slack/events"


class SlackAdapter:
    """Slack Events API (HTTP) adapter. Routes deliveries to an EventDispatcher."""

    def __init__(
        self,
        dispatcher: EventDispatcher,
        signing_secret: Optional[str] = None,
        port: Optional[int] = None,
    ):
        self.dispatcher = dispatcher
        self.signing_secret = signing_secret or os.environ.get("SLACK_SIGNING_SECRET")
        self.port = port or int(os.environ.get("PORT", "3000"))
        self.verifier = SignatureVerifier(self.signing_secret) if self.signing_secret else None
        if self.verifier is None:
            logger.warning("SLACK_SIGNING_SECRET not set, request signatures are not verified")

        self.app = Flask("admission_bot")
        self._register_routes()

    @property
    def runner(self):
        return self.dispatcher.runner

    def _register_routes(self):
        """Register HTTP routes."""

        @self.app.get("/")
        def index():
            return Response("admission-bot up", mimetype="text/plain")

        @self.app.get("/health")
        def health():
            return Response("OK", mimetype="text/plain")

        @self.app.post(EVENTS_PATH)
        def slack_events():
            return self._handle_events()

    def _handle_events(self) -> Response:
        """Verify and dispatch one Slack delivery."""
        raw_body = request.get_data()

        headers = {name.lower(): value for name, value in request.headers.items()}
        if self.verifier and not self.verifier.is_valid_request(raw_body, headers):
            logger.warning("Rejected Slack request with invalid signature")
            return Response("invalid signature", status=401, mimetype="text/plain")

        retry_num = request.headers.get("X-Slack-Retry-Num")
        if retry_num:
            logger.info(
                f"Slack retry #{retry_num} ({request.headers.get('X-Slack-Retry-Reason')})"
            )

        result = self.dispatcher.dispatch(raw_body)
        response = Response(result.body, status=result.status)
        for name, value in result.headers.items():
            response.headers[name] = value
        return response

    def _post_status(self, message: str):
        """Post to status channel if configured."""
        channel = self.runner.config.status_channel
        if not channel:
            return
        try:
            self.runner.messenger.post_message(channel, message)
        except MessageSendError as e:
            logger.error(f"Error posting status message: {e}")

    def _shutdown_handler(self, signum, frame):
        """Graceful shutdown."""
        logger.info("Shutdown signal received...")
        self._post_status(
            f":warning: {self.runner.config.bot_name} v{self.runner.config.version}"
            " is shutting down..."
        )
        self.dispatcher.shutdown(wait=False)
        sys.exit(0)

    def start(self, host: str = "0.0.0.0", register_signals: bool = True):
        """Serve HTTP until interrupted."""
        if register_signals:
            signal.signal(signal.SIGTERM, self._shutdown_handler)
            signal.signal(signal.SIGINT, self._shutdown_handler)

        self._post_status(
            f":white_check_mark: {self.runner.config.bot_name} v{self.runner.config.version} is online!"
        )
        logger.info(f"Slack Events URL: http://{host}:{self.port}{EVENTS_PATH}")
        self.app.run(host=host, port=self.port, threaded=True)
