"""Text rendered into notifications and command replies."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from urllib.parse import quote, urlencode

from reply_tracker.tracking.models import ConversationRecord, StatusReport

MAX_QUOTED_TEXT = 500


def _clip(text: str, limit: int = MAX_QUOTED_TEXT) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _minutes(delta_seconds: float) -> int:
    return max(0, int(delta_seconds // 60))


class MessageTemplates:
    """Renders Slack-flavoured (mrkdwn) text for every notification we emit."""

    def __init__(self, public_base_url: Optional[str] = None):
        self._base_url = public_base_url.rstrip("/") if public_base_url else None

    def confirmation_url(self, record: ConversationRecord) -> str | None:
        if not self._base_url or not record.confirmation_token:
            return None
        query = urlencode({"token": record.confirmation_token})
        return f"{self._base_url}/confirm/{quote(record.conversation_id, safe='')}?{query}"

    def _confirm_line(self, record: ConversationRecord) -> str:
        url = self.confirmation_url(record)
        return f"\n<{url}|Mark as replied>" if url else ""

    def new_message(self, record: ConversationRecord) -> str:
        inbound = record.last_inbound
        text = _clip(inbound.text) if inbound else ""
        message_id = inbound.external_message_id if inbound else "-"
        return (
            "*New message*\n"
            f"*Source*: {record.source_kind.label}\n"
            f"*Sender*: {record.display_name}\n"
            f"*Text*: {text}\n"
            f"*Message ID*: {message_id}"
            f"{self._confirm_line(record)}"
        )

    def reminder(self, record: ConversationRecord, now: datetime) -> str:
        inbound = record.last_inbound
        elapsed = _minutes((now - inbound.received_at).total_seconds()) if inbound else 0
        ordinal = record.reminder_count + 1
        return (
            f"*Unanswered message reminder #{ordinal}*\n"
            f"*Sender*: {record.display_name}\n"
            f"*Source*: {record.source_kind.label}\n"
            f"*Text*: {_clip(inbound.text) if inbound else ''}\n"
            f"*Message ID*: {inbound.external_message_id if inbound else '-'}\n"
            f"*Waiting*: {elapsed} min"
            f"{self._confirm_line(record)}"
        )

    def all_replied(self, display_name: str) -> str:
        return (
            "*Marked as replied*\n"
            f"*User*: {display_name}\n"
            "The unanswered state of this chat has been cleared."
        )

    def reset(self, changed: int) -> str:
        return f"*Reset*\n{changed} conversation(s) were marked as replied."

    def status(self, report: StatusReport) -> str:
        lines = [
            f"Needs reply: {'yes' if report.needs_reply else 'no'}",
            f"Reminders sent: {report.reminder_count}",
        ]
        if report.last_inbound:
            lines.append(
                f"Last message: {_clip(report.last_inbound.text, 200)} "
                f"({report.last_inbound.received_at:%Y-%m-%d %H:%M} UTC)"
            )
        else:
            lines.append("Last message: -")
        if report.last_outbound:
            lines.append(
                f"Last reply: {_clip(report.last_outbound.text, 200)} "
                f"({report.last_outbound.sent_at:%Y-%m-%d %H:%M} UTC)"
            )
        else:
            lines.append("Last reply: -")
        return "\n".join(lines)

    def debug_dump(self, records: list[ConversationRecord], now: datetime) -> str:
        if not records:
            return "*Conversation state*\n(no conversations tracked)"
        lines = [f"*Conversation state* ({len(records)} tracked)"]
        for record in records:
            age = (
                f"{_minutes((now - record.last_inbound.received_at).total_seconds())} min"
                if record.last_inbound
                else "-"
            )
            lines.append(
                f"• {record.display_name} [{record.source_kind.value}] "
                f"needs_reply={record.needs_reply} reminders={record.reminder_count} age={age}"
            )
        return "\n".join(lines)

    def test_notification(self, sender: str, now: datetime) -> str:
        return (
            "*Notification test*\n"
            f"*Sender*: {sender}\n"
            f"*Time*: {now:%Y-%m-%d %H:%M:%S} UTC"
        )
