"""Evolution API HTTP client, the WhatsApp transport.

Scheduled sends can be paced with a random pause so a tick that fans out to
many subjects does not burst the instance. Replies to inbound messages go out
immediately.
"""

import asyncio
import logging
import random
from typing import Any, List, Optional

import httpx

from remindcare.config import get_settings
from remindcare.core.exceptions import TransportError

settings = get_settings()
logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)
SERVER_ERROR_WAIT_SECONDS = 5


def wa_number(address: str) -> str:
    """'6281234@c.us' -> '6281234'."""
    return address.split("@", 1)[0]


def extract_message_id(result: Any) -> Optional[str]:
    """Pull the message id out of an Evolution send response."""
    if not isinstance(result, dict):
        return None
    key = result.get("key") or {}
    message_id = key.get("id") if isinstance(key, dict) else None
    return str(message_id) if message_id else None


class EvolutionAPIClient:
    """Client for the Evolution API WhatsApp integration."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, instance: Optional[str] = None):
        self.base_url = (base_url or settings.EVOLUTION_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.EVOLUTION_API_KEY
        self.instance = instance or settings.EVOLUTION_INSTANCE
        self.headers = {
            "apikey": self.api_key,
            "Content-Type": "application/json",
        }
        self.max_retries = 3
        self.retry_delay = 2  # seconds
        self.timeout = 45

    async def _apply_rate_limit(self):
        """Random pause between scheduled messages."""
        low = max(settings.SEND_MIN_DELAY_SECONDS, 0)
        high = max(settings.SEND_MAX_DELAY_SECONDS, low)
        if high <= 0:
            return
        delay = random.uniform(low, high)
        logger.debug(f"Rate limit delay: {delay:.1f}s")
        await asyncio.sleep(delay)

    async def _post(self, path: str, payload: dict) -> dict:
        """POST with bounded retries; raises TransportError when every attempt fails."""
        url = f"{self.base_url}/{path}/{self.instance}"

        last_error = None
        for attempt in range(1, self.max_retries + 1):
            wait = self.retry_delay * attempt
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=self.headers)
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as e:
                last_error = e
                error_text = e.response.text[:200] if e.response.text else "No response body"
                logger.warning(
                    f"Evolution API error on {path} (attempt {attempt}/{self.max_retries}): "
                    f"{e.response.status_code} - {error_text}"
                )
                if e.response.status_code not in RETRYABLE_STATUS:
                    break
                # Rate limited or server error: wait longer before the next attempt
                wait = SERVER_ERROR_WAIT_SECONDS * attempt
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(f"Evolution API connection error on {path} (attempt {attempt}/{self.max_retries}): {e}")

            if attempt < self.max_retries:
                await asyncio.sleep(wait)

        raise TransportError(
            f"Failed to call {path} after {self.max_retries} attempts",
            details={"error": str(last_error)[:300]},
        )

    async def send_text(self, address: str, text: str, apply_rate_limit: bool = False) -> str:
        """Send a text message, return its message id."""
        if apply_rate_limit:
            await self._apply_rate_limit()

        result = await self._post(
            "message/sendText",
            {
                "number": wa_number(address),
                "textMessage": {"text": text},
                "options": {"delay": 1200, "presence": "composing"},
            },
        )
        message_id = extract_message_id(result)
        if not message_id:
            raise TransportError("Text sent without a message id", details={"number": wa_number(address)})
        logger.info(f"Text sent to {wa_number(address)} ({message_id})")
        return message_id

    async def send_poll(
        self, address: str, question: str, options: List[str], apply_rate_limit: bool = False
    ) -> str:
        """Send a single-choice poll, return its message id (used to match votes)."""
        if apply_rate_limit:
            await self._apply_rate_limit()

        result = await self._post(
            "message/sendPoll",
            {
                "number": wa_number(address),
                "pollMessage": {
                    "name": question,
                    "selectableCount": 1,
                    "values": list(options),
                },
                "options": {"delay": 1200, "presence": "composing"},
            },
        )
        message_id = extract_message_id(result)
        if not message_id:
            raise TransportError("Poll sent without a message id", details={"number": wa_number(address)})
        logger.info(f"Poll sent to {wa_number(address)} ({message_id})")
        return message_id

    async def check_instance_status(self) -> dict:
        """Check if the Evolution API instance is connected."""
        url = f"{self.base_url}/instance/connectionState/{self.instance}"
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.get(url, headers=self.headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to check instance status: {e}")
            return {"state": "error", "error": str(e)}
