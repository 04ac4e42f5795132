"""
Slack utilities - pure functions for Web API calls, text normalization, message blocks.
"""

import re
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .errors import SlackApiError

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"

DEFAULT_GREETING_WORDS = ["hi", "hello", "hey", "help", "start"]


def call_slack_api(
    client: httpx.Client,
    slack_token: str,
    method: str,
    payload: Dict[str, Any],
    http_method: str = "POST",
) -> Dict:
    """
    Call a Slack Web API method and return the decoded response.

    Args:
        client: httpx client to send the request with
        slack_token: Slack Bot OAuth token
        method: Web API method name, e.g. "chat.postMessage"
        payload: JSON body for POST, query params for GET
        http_method: "POST" or "GET" (read methods such as users.info)

    Returns:
        Response data (always has ``ok: true``)

    Raises:
        SlackApiError: on transport errors or ``ok: false``
    """
    url = f"{SLACK_API_URL}/{method}"
    try:
        if http_method == "GET":
            response = client.get(
                url,
                headers={"Authorization": f"Bearer {slack_token}"},
                params=payload,
            )
        else:
            response = client.post(
                url,
                headers={
                    "Authorization": f"Bearer {slack_token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                json=payload,
            )
        data = response.json()
    except httpx.TimeoutException:
        logger.error(f"Timeout calling {method}")
        raise SlackApiError(method, "timeout")
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error calling {method}: {e}")
        raise SlackApiError(method, str(e))

    if not data.get("ok"):
        error = data.get("error", "unknown_error")
        logger.warning(f"Slack API error from {method}: {error}")
        raise SlackApiError(method, error)
    return data


def normalize_batch(text: str) -> str:
    """Keep only the digits of a batch answer ("Batch #2!" -> "2")."""
    return re.sub(r"[^0-9]", "", text or "")


def is_greeting(text: str, greeting_words: Iterable[str] = DEFAULT_GREETING_WORDS) -> bool:
    """True when any whole word of ``text`` is a greeting word, ignoring case."""
    words = {w.lower() for w in greeting_words}
    return any(token in words for token in re.findall(r"[a-z0-9']+", (text or "").lower()))


def is_automated_message(event: Dict) -> bool:
    """Messages posted by bots (including ourselves) or with a subtype (edits, joins...)."""
    return bool(event.get("bot_id") or event.get("subtype"))


def section_blocks(text: str) -> List[Dict]:
    """Wrap mrkdwn text in a single section block."""
    return [{"type": "section", "text": {"type": "mrkdwn", "text": text}}]


def format_choices(choices: List[str], bold: bool = False) -> str:
    """Render ["2", "3"] as "2 or 3", ["1", "2", "3"] as "1, 2 or 3"."""
    items = [f"*{c}*" if bold else c for c in choices]
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} or {items[-1]}"


def parse_batch_channels(value: Optional[str]) -> Dict[str, str]:
    """Parse "2:C123,3:C456" into {"2": "C123", "3": "C456"}.

    Entries without a channel id are kept with an empty channel so the batch
    stays a valid answer that cannot be resolved.
    """
    mapping: Dict[str, str] = {}
    if not value:
        return mapping
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        batch, _, channel = entry.partition(":")
        batch = normalize_batch(batch)
        if not batch:
            raise ValueError(f"Invalid BATCH_CHANNELS entry: {entry!r}")
        mapping[batch] = channel.strip()
    return mapping
