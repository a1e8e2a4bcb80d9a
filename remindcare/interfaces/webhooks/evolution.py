"""Evolution API webhook: incoming WhatsApp texts and poll votes go to the reply reconciler."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from remindcare.application.services.parsers import normalize_wa_id
from remindcare.application.services.reconciliation import ReplyReconciler
from remindcare.interfaces.deps import get_reconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

TEXT_MESSAGE_TYPES = ("conversation", "extendedTextMessage")


@dataclass(frozen=True)
class InboundEvent:
    kind: str  # "text" | "selection"
    wa_id: str
    text: Optional[str] = None
    prompt_id: Optional[str] = None
    option: Optional[str] = None


def _normalize_event_name(event: Any) -> str:
    return str(event or "").lower().replace("_", ".")


def _sender(key: dict) -> Optional[str]:
    """Subject address for a direct chat, None for groups and status broadcasts."""
    remote_jid = key.get("remoteJid") or ""
    if not remote_jid or remote_jid.endswith("@g.us") or "status@broadcast" in remote_jid:
        return None
    return normalize_wa_id(remote_jid.split("@", 1)[0])


def _option_label(vote: Any) -> Optional[str]:
    if not isinstance(vote, dict):
        return None
    selected = vote.get("selectedOptions") or []
    if not selected:
        return None
    first = selected[0]
    if isinstance(first, dict):
        first = first.get("name")
    return str(first) if first else None


def parse_inbound_event(body: dict) -> Optional[InboundEvent]:
    """Map an Evolution webhook payload to a text or selection event; None when irrelevant."""
    event = _normalize_event_name(body.get("event"))
    data = body.get("data") or {}
    if isinstance(data, list):
        data = data[0] if data else {}
    key = data.get("key") or {}
    wa_id = _sender(key)
    if not wa_id:
        return None

    # Updates carry the key of our own poll message, so fromMe is expected there
    if event == "messages.update":
        updates = data.get("pollUpdates") or []
        if not updates:
            return None
        latest = updates[-1]
        prompt_id = key.get("id") or (latest.get("pollUpdateMessageKey") or {}).get("id")
        return InboundEvent("selection", wa_id, prompt_id=prompt_id, option=_option_label(latest.get("vote")))

    if event != "messages.upsert" or key.get("fromMe", False):
        return None

    message = data.get("message") or {}
    message_type = data.get("messageType", "")

    if message_type == "pollUpdateMessage" or "pollUpdateMessage" in message:
        poll = message.get("pollUpdateMessage") or {}
        prompt_id = (poll.get("pollCreationMessageKey") or {}).get("id")
        return InboundEvent("selection", wa_id, prompt_id=prompt_id, option=_option_label(poll.get("vote")))

    if message_type and message_type not in TEXT_MESSAGE_TYPES:
        return None
    text = message.get("conversation") or (message.get("extendedTextMessage") or {}).get("text") or ""
    if not text.strip():
        return None
    return InboundEvent("text", wa_id, text=text)


@router.post("/evolution")
async def evolution_webhook(request: Request, reconciler: ReplyReconciler = Depends(get_reconciler)):
    """
    Receive WhatsApp events from Evolution API.
    Texts and poll votes are reconciled against the subject's pending questions.
    """
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    inbound = parse_inbound_event(body if isinstance(body, dict) else {})
    if inbound is None:
        return {"status": "ignored", "event": body.get("event") if isinstance(body, dict) else None}

    try:
        if inbound.kind == "selection":
            route = await reconciler.handle_selection(inbound.wa_id, inbound.prompt_id, inbound.option)
        else:
            route = await reconciler.handle_text(inbound.wa_id, inbound.text)
    except Exception as e:
        logger.exception(f"Failed to handle inbound {inbound.kind} from {inbound.wa_id}: {e}")
        return {"status": "error", "kind": inbound.kind}

    return {"status": "processed", "kind": inbound.kind, "route": route.value}
