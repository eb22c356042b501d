"""Email importer over a pluggable mail transport.

A connection test validates the provider config, probes the transport and
hands back an explicit EmailSession. Searches need an authenticated
session: messages are fetched, filtered, turned into items and, when
enabled, grouped into threads that become one composite item each.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from ctximport.core.email_types import EmailAddress, EmailMessage, EmailThread
from ctximport.core.errors import ContextImportError
from ctximport.core.preview import (
    collapse_whitespace,
    content_hash,
    dedupe_tags,
    make_preview,
    serialized_size,
    slug_tag,
    utc_now_iso,
)
from ctximport.core.schema import (
    EMAIL_MESSAGE,
    EMAIL_THREAD,
    ConnectionStatus,
    ContextItem,
    ImportResult,
    SourceKind,
)
from ctximport.queries.email_filter import EmailFilter, coerce_email_filter
from ctximport.sources import email_processor
from ctximport.sources.base import load_config

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_SIZE = 10 * 1024 * 1024

_REPLY_PREFIX_RE = re.compile(r"^(re|fwd?):\s*", re.IGNORECASE)


class MailTransportError(ContextImportError):
    """The mail server refused the connection or a fetch failed."""


# -- Providers --


@dataclass(frozen=True)
class ProviderField:
    key: str
    label: str
    required: bool = True
    secret: bool = False


@dataclass(frozen=True)
class EmailProvider:
    type: str
    name: str
    auth_required: bool
    fields: tuple[ProviderField, ...] = field(default_factory=tuple)

    @property
    def required_keys(self) -> list[str]:
        return [f.key for f in self.fields if f.required]


EMAIL_PROVIDERS: dict[str, EmailProvider] = {
    "outlook": EmailProvider(
        "outlook",
        "Microsoft Outlook",
        auth_required=True,
        fields=(
            ProviderField("client_id", "Client ID"),
            ProviderField("client_secret", "Client Secret", secret=True),
            ProviderField("tenant_id", "Tenant ID"),
        ),
    ),
    "gmail": EmailProvider(
        "gmail",
        "Gmail",
        auth_required=True,
        fields=(
            ProviderField("client_id", "Client ID"),
            ProviderField("client_secret", "Client Secret", secret=True),
        ),
    ),
    "imap": EmailProvider(
        "imap",
        "IMAP",
        auth_required=False,
        fields=(
            ProviderField("host", "IMAP Server"),
            ProviderField("port", "Port"),
            ProviderField("username", "Username"),
            ProviderField("password", "Password", secret=True),
            ProviderField("secure", "Use SSL/TLS"),
        ),
    ),
    "exchange": EmailProvider(
        "exchange",
        "Microsoft Exchange",
        auth_required=True,
        fields=(
            ProviderField("server_url", "Exchange Server URL"),
            ProviderField("domain", "Domain", required=False),
            ProviderField("username", "Username"),
            ProviderField("password", "Password", secret=True),
        ),
    ),
}


def get_provider(provider: str | EmailProvider) -> EmailProvider | None:
    if isinstance(provider, EmailProvider):
        return provider
    return EMAIL_PROVIDERS.get(provider)


def missing_fields(provider: EmailProvider, config: Mapping[str, Any]) -> list[str]:
    """Required keys that are absent or blank in ``config``."""
    return [
        key for key in provider.required_keys
        if config.get(key) is None or str(config.get(key)).strip() == ""
    ]


# -- Session and transport --


class EmailSession(BaseModel):
    provider: str
    config: dict[str, Any] = Field(default_factory=dict)
    authenticated: bool = False
    last_tested: str = Field(default_factory=utc_now_iso)


class EmailConnectionResult(ConnectionStatus):
    session: EmailSession | None = None


@runtime_checkable
class MailTransport(Protocol):
    """Talks to an actual mail server. Both methods raise MailTransportError."""

    async def connect(self, provider: EmailProvider, config: Mapping[str, Any]) -> None: ...

    async def fetch_messages(
        self, session: EmailSession, folders: list[str], limit: int
    ) -> list[EmailMessage]: ...


class InMemoryTransport:
    """Serves a fixed message list; used for development and tests.

    Connecting as ``fail@test.com`` or to ``invalid.server.com`` fails the
    way a real server would.
    """

    FAIL_USERNAME = "fail@test.com"
    FAIL_HOST = "invalid.server.com"

    def __init__(self, messages: list[EmailMessage] | None = None):
        self.messages = list(messages or [])
        self.connections = 0

    async def connect(self, provider: EmailProvider, config: Mapping[str, Any]) -> None:
        self.connections += 1
        if config.get("username") == self.FAIL_USERNAME:
            raise MailTransportError("Authentication failed")
        if config.get("host") == self.FAIL_HOST:
            raise MailTransportError("Server not found")

    async def fetch_messages(
        self, session: EmailSession, folders: list[str], limit: int
    ) -> list[EmailMessage]:
        wanted = set(folders)
        found = [m for m in self.messages if not wanted or m.folder in wanted]
        return found[:limit]


# -- Importer --


class EmailImportOptions(BaseModel):
    include_attachments: bool = True
    process_threads: bool = True
    max_messages: int = Field(default=100, ge=1)
    max_attachment_size: int = Field(default=MAX_ATTACHMENT_SIZE, ge=0)
    folders: list[str] = Field(default_factory=lambda: ["INBOX"])
    internal_domains: list[str] = Field(default_factory=list)


class EmailImporter:
    """Import messages (and conversation threads) from a mail provider."""

    source = SourceKind.email

    def __init__(
        self,
        options: EmailImportOptions | Mapping[str, Any] | None = None,
        transport: MailTransport | None = None,
    ):
        self.options = load_config(EmailImportOptions, options, "email")
        self.transport = transport if transport is not None else InMemoryTransport()
        self.session: EmailSession | None = None

    @staticmethod
    def providers() -> list[EmailProvider]:
        return list(EMAIL_PROVIDERS.values())

    async def test_connection(
        self,
        provider: str | EmailProvider | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> EmailConnectionResult:
        """Validate config and probe the transport.

        With no arguments, re-tests the remembered session. On success the
        new session is returned and also kept on the importer.
        """
        if provider is None and self.session is not None:
            provider, config = self.session.provider, self.session.config
        chosen = get_provider(provider) if provider is not None else None
        if chosen is None:
            return EmailConnectionResult(success=False, error=f"Unknown email provider: {provider}")

        config = dict(config or {})
        missing = missing_fields(chosen, config)
        if missing:
            return EmailConnectionResult(
                success=False,
                error="Invalid configuration parameters: missing " + ", ".join(missing),
            )

        try:
            await self.transport.connect(chosen, config)
        except ContextImportError as e:
            logger.error("Email connection to %s failed: %s", chosen.type, e)
            return EmailConnectionResult(success=False, error=f"Connection failed: {e}")

        self.session = EmailSession(provider=chosen.type, config=config, authenticated=True)
        return EmailConnectionResult(
            success=True,
            session=self.session,
            details={"provider": chosen.name},
        )

    async def search(
        self,
        params: EmailFilter | Mapping[str, Any] | None = None,
        session: EmailSession | None = None,
    ) -> ImportResult:
        session = session or self.session
        if session is None or not session.authenticated:
            return ImportResult.failed(
                SourceKind.email,
                "No authenticated email connection. Run a connection test first.",
            )

        try:
            flt = coerce_email_filter(params)
            folders = [flt.folder] if flt.folder else self.options.folders
            logger.info("Email search on %s (%s)", session.provider, ", ".join(folders))
            fetched = await self.transport.fetch_messages(session, folders, self.options.max_messages)
        except (ContextImportError, ValidationError) as e:
            logger.error("Email import failed: %s", e)
            return ImportResult.failed(SourceKind.email, str(e))

        messages = flt.apply(fetched)
        items: list[ContextItem] = []
        errors: list[str] = []
        for message in messages:
            try:
                items.append(transform_message(message, self.options))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping email %s: %s", message.id, e)
                errors.append(f"{message.id}: {e}")

        threads: list[EmailThread] = []
        if self.options.process_threads:
            threads = group_threads(messages)
            items.extend(transform_thread(t) for t in threads)

        return ImportResult(
            success=True,
            source=SourceKind.email,
            total=len(items),
            items=items,
            errors=errors,
            metadata={
                "provider": session.provider,
                "filter": flt.model_dump(mode="json", exclude_defaults=True),
                "messages_found": len(messages),
                "threads": len(threads),
            },
        )

    def disconnect(self) -> None:
        self.session = None


# -- Transformation --


def normalize_subject(subject: str) -> str:
    """Thread key for a subject: reply/forward prefix dropped, whitespace collapsed, lower-cased."""
    return collapse_whitespace(_REPLY_PREFIX_RE.sub("", subject)).lower()


def group_threads(messages: list[EmailMessage]) -> list[EmailThread]:
    """Group by thread id (or normalized subject); only groups with more than one message count.

    Messages with neither a thread id nor a subject stay ungrouped.
    """
    groups: dict[str, list[EmailMessage]] = {}
    for message in messages:
        key = message.thread_id or normalize_subject(message.subject)
        if not key:
            continue
        groups.setdefault(key, []).append(message)

    threads = []
    for key, group in groups.items():
        if len(group) < 2:
            continue
        ordered = sorted(group, key=lambda m: m.sent_at)
        threads.append(
            EmailThread(
                id=key,
                subject=ordered[0].subject,
                participants=unique_participants(ordered),
                messages=ordered,
                first_message=ordered[0].date,
                last_message=ordered[-1].date,
                folder=ordered[0].folder,
            )
        )
    return threads


def unique_participants(messages: list[EmailMessage]) -> list[EmailAddress]:
    seen: dict[str, EmailAddress] = {}
    for message in messages:
        for addr in [message.sender, *message.to, *message.cc]:
            seen.setdefault(addr.address.lower(), addr)
    return list(seen.values())


def transform_message(
    message: EmailMessage, options: EmailImportOptions | None = None
) -> ContextItem:
    options = options or EmailImportOptions()
    body = email_processor.extract_text(message)
    info = email_processor.message_metadata(message, options.internal_domains)
    attachments = []
    if options.include_attachments:
        for attachment in message.attachments:
            described = email_processor.process_attachment(attachment)
            if attachment.size > options.max_attachment_size:
                described["skipped"] = "too large"
                described.pop("extraction_needed", None)
            attachments.append(described)

    raw = message.model_dump(mode="json")
    subject = message.subject or "(no subject)"
    tags = ["email", slug_tag("folder", message.folder), f"priority-{info['priority']}"]
    category = info["classification"]["category"]
    if category != "unknown":
        tags.append(category)
    if attachments:
        tags.append("has-attachments")
    if info["is_auto_reply"]:
        tags.append("auto-reply")

    return ContextItem(
        id=f"email-{message.id}",
        title=subject,
        description=f"Email from {message.sender.label}",
        content={
            "message_id": message.message_id,
            "subject": message.subject,
            "body": body,
            "from": message.sender.model_dump(),
            "to": [a.model_dump() for a in message.to],
            "date": message.date,
            "attachments": attachments,
            "raw": raw,
        },
        metadata={
            "source": "email",
            "email_id": message.id,
            "message_id": message.message_id,
            "thread_id": message.thread_id,
            "from_address": message.sender.address,
            "from_name": message.sender.name,
            "to_addresses": [a.address for a in message.to],
            "date": message.date,
            "folder": message.folder,
            "has_attachments": bool(attachments),
            "attachment_count": len(attachments),
            **info,
        },
        source=SourceKind.email,
        type=EMAIL_MESSAGE,
        preview=make_preview(collapse_whitespace(body) or subject),
        tags=dedupe_tags(tags),
        size_bytes=serialized_size(raw),
    )


def thread_body(thread: EmailThread) -> str:
    parts = [
        f"From: {m.sender.label}\nDate: {m.date}\n\n{m.body.text or m.body.preview}"
        for m in thread.messages
    ]
    return "\n\n---\n\n".join(parts)


def transform_thread(thread: EmailThread) -> ContextItem:
    body = thread_body(thread)
    return ContextItem(
        id=f"email-thread-{content_hash(thread.id, 12)}",
        title=f"Thread: {thread.subject}",
        description=f"Conversation of {thread.message_count} messages",
        content={
            "thread_id": thread.id,
            "subject": thread.subject,
            "messages": body,
            "message_count": thread.message_count,
            "participants": [p.model_dump() for p in thread.participants],
        },
        metadata={
            "source": "email",
            "is_thread": True,
            "thread_id": thread.id,
            "message_count": thread.message_count,
            "participant_count": len(thread.participants),
            "first_message": thread.first_message,
            "last_message": thread.last_message,
            "folder": thread.folder,
            "labels": thread.labels,
        },
        source=SourceKind.email,
        type=EMAIL_THREAD,
        preview=make_preview(collapse_whitespace(thread.messages[0].body.text or thread.subject)),
        tags=["email", "thread"],
        size_bytes=serialized_size(body),
    )
