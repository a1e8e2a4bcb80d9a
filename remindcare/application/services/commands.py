"""Subject and admin commands typed into the chat."""

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import structlog

from remindcare.application.services import delivery_data, messages, onboarding
from remindcare.application.services.context import WorkflowContext
from remindcare.application.services.inbound_guard import InboundGuard
from remindcare.application.services.messaging import deliver_text
from remindcare.application.services.parsers import (
    normalize_time_input,
    normalize_wa_id,
    parse_admin_command,
)
from remindcare.core.clock import to_day_key
from remindcare.domain.models.subject import Subject
from remindcare.domain.workflow import SubjectPhase

logger = structlog.get_logger(__name__)

SIMPLE_COMMANDS = (
    (re.compile(r"^(help|menu)$"), "help"),
    (re.compile(r"^(about|abotu)$"), "about"),
    (re.compile(r"^website$"), "website"),
    (re.compile(r"^(delete|hapus)$"), "delete"),
    (re.compile(r"^(stop|berhenti)$"), "stop"),
    (re.compile(r"^(start|mulai)$"), "start"),
    (re.compile(r"^(ubah|isi ulang)\s+(data\s+)?persalinan$"), "change_delivery"),
)
CHANGE_TIME_PATTERN = re.compile(r"^(?:(?:ubah|set)\s+)?jam\b\s*(.*)$")


@dataclass(frozen=True)
class Command:
    name: str
    argument: str = ""


def match_command(text: Optional[str]) -> Optional[Command]:
    if not text:
        return None
    stripped = text.strip()
    if parse_admin_command(stripped):
        return Command("admin", stripped)

    normalized = stripped.lower()
    for pattern, name in SIMPLE_COMMANDS:
        if pattern.match(normalized):
            return Command(name)

    match = CHANGE_TIME_PATTERN.match(normalized)
    if match:
        return Command("change_time", match.group(1).strip())
    return None


async def execute_command(ctx: WorkflowContext, subject: Subject, command: Command, guard: InboundGuard) -> None:
    wa_id = subject.wa_id
    settings = ctx.settings
    logger.info("Command received", subject=wa_id, command=command.name)

    if command.name == "admin":
        await execute_admin_command(ctx, subject, command.argument)
    elif command.name == "help":
        await deliver_text(ctx.transport, wa_id, messages.MENU)
    elif command.name == "about":
        await deliver_text(ctx.transport, wa_id, messages.ABOUT.format(phone=settings.CONTACT_PHONE))
    elif command.name == "website":
        await deliver_text(ctx.transport, wa_id, messages.WEBSITE.format(url=settings.WEBSITE_URL))
    elif command.name == "delete":
        if not guard.confirm_delete(wa_id):
            await deliver_text(ctx.transport, wa_id, messages.DELETE_CONFIRM)
            return
        ctx.subjects.delete_with_logs(wa_id)
        guard.forget(wa_id)
        await deliver_text(ctx.transport, wa_id, messages.DELETED)
        logger.info("Subject deleted", subject=wa_id)
    elif command.name == "stop":
        ctx.subjects.update(subject, {"phase": SubjectPhase.PAUSED.value, "allow_reminders": False})
        await deliver_text(ctx.transport, wa_id, messages.PAUSED)
    elif command.name == "start":
        await _resume(ctx, subject)
    elif command.name == "change_time":
        await _change_time(ctx, subject, command.argument)
    elif command.name == "change_delivery":
        await delivery_data.start_collection(ctx, subject)
    else:
        raise ValueError(f"Unknown command: {command.name}")


async def _resume(ctx: WorkflowContext, subject: Subject) -> None:
    if not subject.reminder_time:
        step = onboarding.step_of("reminder_time")
        ctx.subjects.update(
            subject,
            {"phase": SubjectPhase.ONBOARDING.value, "onboarding_step": step, "allow_reminders": True},
        )
        await onboarding.ask(ctx, subject, step)
        return

    ctx.subjects.update(
        subject, {"phase": SubjectPhase.ACTIVE.value, "onboarding_step": 0, "allow_reminders": True}
    )
    await deliver_text(ctx.transport, subject.wa_id, messages.RESUMED.format(time=subject.reminder_time))


async def _change_time(ctx: WorkflowContext, subject: Subject, raw_time: str) -> None:
    value = normalize_time_input(raw_time)
    if value is None:
        await deliver_text(ctx.transport, subject.wa_id, messages.TIME_CHANGE_INVALID)
        return
    ctx.subjects.update(
        subject,
        {
            "reminder_time": value,
            "allow_reminders": True,
            "phase": SubjectPhase.ACTIVE.value,
            "onboarding_step": 0,
        },
    )
    await deliver_text(ctx.transport, subject.wa_id, messages.TIME_CHANGED.format(time=value))


def purge_checkin_logs(ctx: WorkflowContext, days: int) -> int:
    """Delete daily check-in rows older than ``days`` days; returns rows removed."""
    cutoff = to_day_key(ctx.now.date() - timedelta(days=days))
    return ctx.checkins.purge_older_than(cutoff)


async def execute_admin_command(ctx: WorkflowContext, subject: Subject, text: str) -> None:
    parsed = parse_admin_command(text)
    wa_id = subject.wa_id
    if parsed is None:
        return
    if not subject.is_admin:
        await deliver_text(ctx.transport, wa_id, messages.ADMIN_ONLY)
        return

    if parsed.action == "help":
        await deliver_text(ctx.transport, wa_id, messages.ADMIN_HELP)
        return

    if parsed.action == "stats":
        stats = ctx.subjects.count_by_status()
        await deliver_text(ctx.transport, wa_id, messages.ADMIN_STATS.format(**stats))
        return

    if parsed.action in ("allow", "block", "unblock"):
        target = normalize_wa_id(parsed.raw_args)
        if not target:
            await deliver_text(ctx.transport, wa_id, messages.ADMIN_TARGET_FORMAT)
            return
        target_subject, _ = ctx.subjects.ensure(target)
        if parsed.action == "allow":
            updates = {"is_allowed": True, "is_blocked": False}
        elif parsed.action == "block":
            updates = {"is_blocked": True}
        else:
            updates = {"is_blocked": False}
        ctx.subjects.update(target_subject, updates)
        await deliver_text(ctx.transport, wa_id, messages.ADMIN_DONE.format(action=parsed.action, wa_id=target))
        logger.info("Admin access change", admin=wa_id, action=parsed.action, target=target)
        return

    if parsed.action == "purge":
        args = parsed.args
        raw_days = None
        if len(args) == 1:
            raw_days = args[0]
        elif len(args) >= 2 and args[0].lower() == "logs":
            raw_days = args[1]
        days = int(raw_days) if raw_days and raw_days.isdigit() else ctx.settings.REMINDER_LOG_RETENTION_DAYS
        removed = purge_checkin_logs(ctx, days)
        await deliver_text(ctx.transport, wa_id, messages.ADMIN_PURGED.format(removed=removed, days=days))
        logger.info("Admin purge", admin=wa_id, days=days, removed=removed)
        return

    await deliver_text(ctx.transport, wa_id, messages.ADMIN_UNKNOWN)
