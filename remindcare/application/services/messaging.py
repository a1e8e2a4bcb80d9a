"""Send helpers that turn transport failures into a ``None`` handle."""

from typing import List, Optional

import structlog

from remindcare.core.exceptions import TransportError
from remindcare.domain.transport import MessagingTransport

logger = structlog.get_logger(__name__)


async def deliver_text(
    transport: MessagingTransport, address: str, text: str, apply_rate_limit: bool = False
) -> Optional[str]:
    try:
        return await transport.send_text(address, text, apply_rate_limit=apply_rate_limit)
    except TransportError as e:
        logger.warning("Text delivery failed", subject=address, error=e.message)
        return None


async def deliver_poll(
    transport: MessagingTransport,
    address: str,
    question: str,
    options: List[str],
    apply_rate_limit: bool = False,
) -> Optional[str]:
    try:
        return await transport.send_poll(address, question, options, apply_rate_limit=apply_rate_limit)
    except TransportError as e:
        logger.warning("Poll delivery failed", subject=address, error=e.message)
        return None
