"""Transport-neutral email records produced by a MailTransport."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class EmailAddress(BaseModel):
    address: str
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.address


class EmailBody(BaseModel):
    text: str = ""
    html: str = ""
    preview: str = ""


class EmailAttachment(BaseModel):
    id: str
    filename: str
    content_type: str = "application/octet-stream"
    size: int = 0
    content_id: str | None = None
    is_inline: bool = False


class EmailMessage(BaseModel):
    id: str
    message_id: str = ""
    thread_id: str | None = None
    subject: str = ""
    sender: EmailAddress
    to: list[EmailAddress] = Field(default_factory=list)
    cc: list[EmailAddress] = Field(default_factory=list)
    date: str
    body: EmailBody = Field(default_factory=EmailBody)
    attachments: list[EmailAttachment] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    flags: list[str] = Field(default_factory=list)
    folder: str = "INBOX"
    importance: str | None = None  # "low", "normal", "high"

    @property
    def sent_at(self) -> datetime:
        return parse_date(self.date)


class EmailThread(BaseModel):
    id: str
    subject: str
    participants: list[EmailAddress]
    messages: list[EmailMessage]
    first_message: str
    last_message: str
    folder: str = "INBOX"
    labels: list[str] = Field(default_factory=list)

    @property
    def message_count(self) -> int:
        return len(self.messages)


def parse_date(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (accepting a trailing 'Z'); naive values are UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
