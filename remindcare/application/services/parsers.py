"""Free-text validators and parsers.

Pure functions: WhatsApp text in, typed value (or None) out.
"""

import re
from datetime import date
from typing import NamedTuple, Optional, Set

from remindcare.domain.workflow import CheckinAnswer, DeliveryAnswer

YES_PATTERN = re.compile(r"\b(ya|iya|yes|y|ok|mau|boleh)\b")
# "belum" (not yet) also reads as "no" here, same as in the check-in answers
NO_PATTERN = re.compile(r"\b(tidak|tdk|no|gak|ga|nggak|belum)\b")

DELIVERY_KEYWORDS = re.compile(r"(melahirkan|lahiran|lahir|persalinan|bersalin|partus)")

GREETING_PATTERN = re.compile(r"^(halo|hai|hi|hey|hei|assalamualaikum|salam)$")
ALWAYS_COMMAND_PATTERN = re.compile(r"^(help|menu|about|abotu|website|delete|hapus)$")
ADMIN_PATTERN = re.compile(r"^admin(?:\s+(.*))?$", re.IGNORECASE)

DATE_PATTERNS = (
    (re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$"), "ymd"),
    (re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$"), "dmy"),
)


class ParsedDate(NamedTuple):
    raw: str
    iso: Optional[str]

    @property
    def value(self) -> Optional[date]:
        return date.fromisoformat(self.iso) if self.iso else None


class AdminCommand(NamedTuple):
    action: str
    args: list
    raw_args: str


def parse_yes_no(text: Optional[str]) -> Optional[bool]:
    """True / False / None (unparseable)."""
    if not text:
        return None
    normalized = text.strip().lower()
    if YES_PATTERN.search(normalized):
        return True
    if NO_PATTERN.search(normalized):
        return False
    return None


def normalize_time_input(text: Optional[str]) -> Optional[str]:
    """Accept '7', '7:30', '17.05', '730', '1730' and return 'HH:MM'."""
    if not text:
        return None
    cleaned = re.sub(r"\s+", "", text.strip().lower()).replace(".", ":", 1)

    if re.fullmatch(r"\d{1,2}", cleaned):
        hour, minute = int(cleaned), 0
    elif re.fullmatch(r"\d{1,2}:\d{1,2}", cleaned):
        hour_part, minute_part = cleaned.split(":")
        hour, minute = int(hour_part), int(minute_part)
    elif re.fullmatch(r"\d{3,4}", cleaned):
        split_at = len(cleaned) - 2
        hour, minute = int(cleaned[:split_at]), int(cleaned[split_at:])
    else:
        return None

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return f"{hour:02d}:{minute:02d}"


def parse_calendar_date(text: Optional[str]) -> ParsedDate:
    """Parse 'YYYY-MM-DD', 'YYYY/MM/DD', 'DD-MM-YYYY' or 'DD/MM/YYYY'."""
    raw = text.strip() if text else ""
    if not raw:
        return ParsedDate("", None)

    for pattern, order in DATE_PATTERNS:
        match = pattern.match(raw)
        if not match:
            continue
        first, second, third = (int(group) for group in match.groups())
        year, month, day = (first, second, third) if order == "ymd" else (third, second, first)
        try:
            return ParsedDate(raw, date(year, month, day).isoformat())
        except ValueError:
            continue

    return ParsedDate(raw, None)


def parse_checkin_answer(text: Optional[str]) -> Optional[CheckinAnswer]:
    """'sudah' / 'udah' -> done, 'belum' -> not done."""
    if not text:
        return None
    normalized = text.strip().lower()
    if "sudah" in normalized or "udah" in normalized:
        return CheckinAnswer.DONE
    if "belum" in normalized:
        return CheckinAnswer.NOT_DONE
    return None


def parse_delivery_answer(text: Optional[str]) -> Optional[DeliveryAnswer]:
    """Delivered / not yet, only when the text names the delivery explicitly.

    Stricter than the check-in parser so a plain 'sudah' keeps meaning the
    daily medication answer.
    """
    if not text:
        return None
    normalized = text.strip().lower()
    if not DELIVERY_KEYWORDS.search(normalized):
        return None
    if "sudah" in normalized or "udah" in normalized:
        return DeliveryAnswer.DELIVERED
    if "belum" in normalized:
        return DeliveryAnswer.NOT_DELIVERED
    return None


def is_greeting(text: Optional[str]) -> bool:
    return bool(text) and bool(GREETING_PATTERN.match(text.strip().lower()))


def is_always_command(text: Optional[str]) -> bool:
    """Commands that work even in the middle of onboarding."""
    return bool(text) and bool(ALWAYS_COMMAND_PATTERN.match(text.strip().lower()))


def parse_admin_command(text: Optional[str]) -> Optional[AdminCommand]:
    if not text:
        return None
    match = ADMIN_PATTERN.match(text.strip())
    if not match:
        return None
    rest = (match.group(1) or "").strip()
    if not rest:
        return AdminCommand("help", [], "")
    parts = rest.split()
    action = parts[0].lower()
    return AdminCommand(action, parts[1:], rest[len(parts[0]):].strip())


def normalize_wa_id(value: Optional[str]) -> Optional[str]:
    """'+62 812-3456' -> '628123456@c.us'; full JIDs pass through."""
    if not value:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    if "@" in trimmed:
        return trimmed
    digits = re.sub(r"\D", "", trimmed)
    return f"{digits}@c.us" if digits else None


def parse_wa_id_list(raw: Optional[str]) -> Set[str]:
    if not raw:
        return set()
    return {wa_id for wa_id in (normalize_wa_id(item) for item in raw.split(",")) if wa_id}
