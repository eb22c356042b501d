"""Email search options, applied as a predicate after messages are fetched."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from pydantic import BaseModel

from ctximport.core.email_types import EmailMessage


class EmailFilter(BaseModel):
    from_address: str | None = None
    to_address: str | None = None
    subject: str | None = None
    folder: str | None = None
    has_attachment: bool = False
    unread: bool = False
    flagged: bool = False
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = 50
    offset: int = 0

    def matches(self, message: EmailMessage) -> bool:
        if self.from_address and self.from_address.lower() not in message.sender.address.lower():
            return False
        if self.to_address:
            wanted = self.to_address.lower()
            if not any(wanted in addr.address.lower() for addr in message.to + message.cc):
                return False
        if self.subject and self.subject.lower() not in message.subject.lower():
            return False
        if self.folder and self.folder != message.folder:
            return False
        if self.has_attachment and not message.attachments:
            return False
        if self.unread and "\\Seen" in message.flags:
            return False
        if self.flagged and "\\Flagged" not in message.flags:
            return False
        if self.date_from and message.sent_at < _aware(self.date_from):
            return False
        if self.date_to and message.sent_at > _aware(self.date_to):
            return False
        return True

    def apply(self, messages: Iterable[EmailMessage]) -> list[EmailMessage]:
        matched = [m for m in messages if self.matches(m)]
        return matched[self.offset : self.offset + self.limit]


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def coerce_email_filter(params: EmailFilter | Mapping[str, Any] | None) -> EmailFilter:
    if params is None:
        return EmailFilter()
    if isinstance(params, EmailFilter):
        return params
    return EmailFilter.model_validate(dict(params))
