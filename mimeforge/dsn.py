"""Delivery Status Notifications: multipart/report messages (RFC 3464, RFC 6522)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from mimeforge.part import MIMEHeader, Part

_KEY_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_DELIVERY_STATUS_TYPES = ("message/delivery-status", "message/global-delivery-status")


@dataclass
class Explanation:
    """Human-readable description of why the report was generated."""

    text: str = ""
    html: str = ""


@dataclass
class DeliveryStatus:
    """Machine-readable per-message and per-recipient status fields."""

    message_dsns: list[MIMEHeader] = field(default_factory=list)
    recipient_dsns: list[MIMEHeader] = field(default_factory=list)


@dataclass
class Report:
    """The three parts of a multipart/report delivery status report."""

    explanation: Explanation = field(default_factory=Explanation)
    delivery_status: DeliveryStatus = field(default_factory=DeliveryStatus)
    original_message: Optional[bytes] = None


def is_failed(fields: MIMEHeader) -> bool:
    """True if the Action field says the message could not be delivered."""
    return fields.get("Action").casefold() == "failed"


def parse_report(part: Part) -> Optional[Report]:
    """Read part as a delivery status report; None unless it is multipart/report."""
    if part.content_type != "multipart/report":
        return None

    report = Report()
    explanation = part.first_child
    if explanation is None or not _fill_explanation(report.explanation, explanation):
        return report

    status = explanation.next_sibling
    if status is None or status.content_type not in _DELIVERY_STATUS_TYPES:
        return report
    report.delivery_status = parse_delivery_status(status.content)

    original = status.next_sibling
    if original is None or original.content_type != "message/rfc822":
        return report
    report.original_message = original.content
    return report


def explanation_from_part(part: Optional[Part]) -> Explanation:
    """Collect the text and HTML explanation held by part."""
    explanation = Explanation()
    _fill_explanation(explanation, part)
    return explanation


def _fill_explanation(explanation: Explanation, part: Optional[Part]) -> bool:
    if part is None:
        return False
    ctype = part.content_type
    if ctype in ("text/plain", ""):
        explanation.text = part.content.decode("utf-8", "replace")
        return True
    if ctype == "text/html":
        explanation.html = part.content.decode("utf-8", "replace")
        return True
    if ctype == "multipart/alternative":
        first = part.first_child
        if _fill_explanation(explanation, first):
            return _fill_explanation(explanation, first.next_sibling)
    return False


def parse_delivery_status(data: bytes) -> DeliveryStatus:
    """Parse a message/delivery-status body into per-message and per-recipient fields."""
    try:
        fields = parse_delivery_status_fields(data)
    except ValueError as exc:
        raise ValueError(f"parse delivery status: {exc}") from exc

    per_message: list[MIMEHeader] = []
    per_recipient: list[MIMEHeader] = []
    for index, block in enumerate(fields):
        if block.get("Reporting-MTA"):
            per_message.append(block)
            continue
        per_recipient = fields[index:]
        break
    return DeliveryStatus(message_dsns=per_message, recipient_dsns=per_recipient)


def parse_delivery_status_fields(data: bytes) -> list[MIMEHeader]:
    """Split a delivery-status body into header blocks separated by blank lines."""
    data = bytes(data)
    if data and not data.endswith(b"\n"):
        data += b"\n"
    data += b"\n"
    lines = [line.rstrip("\r") for line in data.decode("utf-8", "replace").split("\n")[:-1]]

    fields: list[MIMEHeader] = []
    pos = 0
    while pos < len(lines):
        block, pos = _read_block(lines, pos)
        if block is None:
            break
        fields.append(block)
    return fields


def _read_block(lines: list[str], pos: int) -> tuple[Optional[MIMEHeader], int]:
    header = MIMEHeader()
    if pos < len(lines) and lines[pos][:1] in (" ", "\t"):
        raise ValueError(f"read MIME header fields: malformed MIME header initial line: {lines[pos]!r}")
    while pos < len(lines):
        line = lines[pos].rstrip(" \t")
        pos += 1
        if not line:
            return header, pos
        while pos < len(lines) and lines[pos][:1] in (" ", "\t"):
            continuation = lines[pos].strip(" \t")
            pos += 1
            if continuation:
                line += " " + continuation
        key, colon, value = line.partition(":")
        if not colon:
            raise ValueError(f"read MIME header fields: malformed MIME header line: {line!r}")
        if not key:
            continue
        if not _KEY_RE.fullmatch(key):
            raise ValueError(f"read MIME header fields: malformed MIME header key: {key!r}")
        header.add(key, value.strip(" \t"))
    return None, pos