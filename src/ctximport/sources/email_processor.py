"""Text extraction, cleanup and heuristic classification for email messages.

Everything here is pure: a message goes in, strings and dicts come out.
The classification is keyword scoring, good enough to tag and sort an
inbox, not a spam filter.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Iterable

from ctximport.core.email_types import EmailAttachment, EmailMessage

# Attachments whose text could be extracted by a document backend
PROCESSABLE_TYPES = {
    "text/plain",
    "text/html",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

# The body is cut at the first match of the first pattern that matches
_SIGNATURE_PATTERNS = [
    re.compile(r"^--\s*$", re.M),
    re.compile(r"^Best regards?[,.]?\s*$", re.M | re.I),
    re.compile(r"^Kind regards?[,.]?\s*$", re.M | re.I),
    re.compile(r"^Sincerely[,.]?\s*$", re.M | re.I),
    re.compile(r"^Thank you[,.]?\s*$", re.M | re.I),
    re.compile(r"^Thanks[,.]?\s*$", re.M | re.I),
    re.compile(r"Sent from my \w+", re.I),
    re.compile(r"Get Outlook for \w+", re.I),
]

_QUOTED_PATTERNS = [
    re.compile(r"^On .* wrote:$", re.M),
    re.compile(r"^From: .*$", re.M),
    re.compile(r"^Sent: .*$", re.M),
    re.compile(r"^To: .*$", re.M),
    re.compile(r"^Subject: .*$", re.M),
    re.compile(r"^> .*", re.M),
    re.compile(r"^\| .*", re.M),
]

AUTO_REPLY_MARKERS = ("auto-reply", "automatic reply", "out of office", "vacation", "away", "do not reply")
NEWSLETTER_MARKERS = ("newsletter", "unsubscribe", "marketing", "promotional", "no-reply@", "noreply@")
HIGH_PRIORITY_WORDS = ("urgent", "asap", "important", "critical", "emergency")
LOW_PRIORITY_WORDS = ("fyi", "info", "newsletter", "update")

BUSINESS_WORDS = ("meeting", "project", "deadline", "budget", "proposal", "contract")
PERSONAL_WORDS = ("lunch", "dinner", "weekend", "family", "friend")
NOTIFICATION_WORDS = ("notification", "alert", "reminder", "update", "status")


@dataclass
class Classification:
    category: str = "unknown"  # business, personal, notification, newsletter, unknown
    confidence: float = 0.0
    keywords: list[str] = field(default_factory=list)
    sender: str = "external"  # internal, external, automated

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "confidence": self.confidence,
            "keywords": self.keywords,
            "sender_classification": self.sender,
        }


# -- Text extraction --


def extract_text(message: EmailMessage) -> str:
    """Best readable body: plain text, else stripped HTML, else the preview, then cleaned."""
    body = message.body
    if body.text:
        content = body.text
    elif body.html:
        content = strip_html(body.html)
    else:
        content = body.preview
    return clean_content(content)


def strip_html(markup: str) -> str:
    text = re.sub(r"<[^>]*>", " ", markup)
    text = html.unescape(text).replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


def clean_content(content: str) -> str:
    content = _cut_at_first(content, _SIGNATURE_PATTERNS)
    content = _cut_at_first(content, _QUOTED_PATTERNS)
    content = re.sub(r"\n\s*\n\s*\n", "\n\n", content)
    content = re.sub(r"[ \t]+", " ", content)
    return content.strip()


def _cut_at_first(content: str, patterns: list[re.Pattern]) -> str:
    # A match at offset 0 would leave nothing; keep the text in that case
    for pattern in patterns:
        m = pattern.search(content)
        if m and m.start() > 0:
            return content[: m.start()].strip()
    return content


# -- Attachments --


def is_processable(attachment: EmailAttachment) -> bool:
    return attachment.content_type in PROCESSABLE_TYPES


def process_attachment(attachment: EmailAttachment) -> dict:
    """Describe an attachment; extraction itself is left to a document backend."""
    info = {
        "id": attachment.id,
        "filename": attachment.filename,
        "content_type": attachment.content_type,
        "size": attachment.size,
        "is_inline": attachment.is_inline,
        "is_processable": is_processable(attachment),
    }
    if info["is_processable"]:
        info["extraction_needed"] = True
    return info


# -- Metadata --


def extract_domain(address: str) -> str:
    m = re.search(r"@(.+)$", address)
    return m.group(1).lower() if m else ""


def participant_addresses(message: EmailMessage) -> list[str]:
    seen: dict[str, None] = {message.sender.address: None}
    for addr in message.to + message.cc:
        seen.setdefault(addr.address, None)
    return list(seen)


def _body_lower(message: EmailMessage) -> str:
    return (message.body.text or message.body.preview or "").lower()


def is_auto_reply(message: EmailMessage) -> bool:
    haystacks = (message.subject.lower(), _body_lower(message))
    return any(marker in text for marker in AUTO_REPLY_MARKERS for text in haystacks)


def is_newsletter(message: EmailMessage) -> bool:
    haystacks = (message.sender.address.lower(), message.subject.lower(), _body_lower(message))
    return any(marker in text for marker in NEWSLETTER_MARKERS for text in haystacks)


def determine_priority(message: EmailMessage) -> str:
    if message.importance:
        return message.importance
    subject = message.subject.lower()
    if any(word in subject for word in HIGH_PRIORITY_WORDS):
        return "high"
    if any(word in subject for word in LOW_PRIORITY_WORDS):
        return "low"
    return "normal"


def keyword_score(content: str, words: Iterable[str]) -> int:
    return sum(content.count(word) for word in words)


def classify_sender(address: str, internal_domains: Iterable[str] = ()) -> str:
    domain = extract_domain(address)
    if any(d in domain for d in internal_domains):
        return "internal"
    if "noreply" in address or "no-reply" in address or "auto" in address:
        return "automated"
    return "external"


def classify(message: EmailMessage, internal_domains: Iterable[str] = ()) -> Classification:
    content = f"{message.subject.lower()} {_body_lower(message)}"
    business = keyword_score(content, BUSINESS_WORDS)
    personal = keyword_score(content, PERSONAL_WORDS)
    notification = keyword_score(content, NOTIFICATION_WORDS)

    result = Classification(sender=classify_sender(message.sender.address, internal_domains))
    if is_newsletter(message):
        result.category, result.confidence = "newsletter", 0.8
    elif business > personal and business > notification:
        result.category, result.confidence = "business", min(business / 10, 0.9)
        result.keywords = [w for w in BUSINESS_WORDS if w in content]
    elif personal > notification:
        result.category, result.confidence = "personal", min(personal / 5, 0.8)
        result.keywords = [w for w in PERSONAL_WORDS if w in content]
    elif notification > 0:
        result.category, result.confidence = "notification", min(notification / 5, 0.7)
        result.keywords = [w for w in NOTIFICATION_WORDS if w in content]
    return result


def message_metadata(message: EmailMessage, internal_domains: Iterable[str] = ()) -> dict:
    return {
        "participant_count": len(participant_addresses(message)),
        "domain": extract_domain(message.sender.address),
        "is_auto_reply": is_auto_reply(message),
        "is_newsletter": is_newsletter(message),
        "priority": determine_priority(message),
        "classification": classify(message, internal_domains).to_dict(),
    }
