"""Messaging transport capability consumed by the scheduler and the reply handlers."""

from typing import List, Protocol


class MessagingTransport(Protocol):
    """Anything that can deliver WhatsApp messages.

    Both calls return the transport-assigned message id and raise
    ``TransportError`` when the channel does not accept the message.
    """

    async def send_text(self, address: str, text: str, apply_rate_limit: bool = False) -> str:
        ...

    async def send_poll(
        self, address: str, question: str, options: List[str], apply_rate_limit: bool = False
    ) -> str:
        ...
