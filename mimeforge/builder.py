"""An immutable builder for composing MIME messages."""

from __future__ import annotations

import base64
import mimetypes
import os
import random
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

from mimeforge.part import MIMEHeader, Part, new_part

UTF8 = "utf-8"

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_B_SPECIALS = set("\"#$%&'(),.:;<>@[]^`{|}~")
_WORD_MAX = 75 - len("=?utf-8?q?") - len("?=")


class BuildError(ValueError):
    """Raised when a message cannot be built from the builder's settings."""


class MissingRecipientError(BuildError):
    """Raised when no To, Cc or Bcc recipient has been given."""

    def __init__(self, message: str = "no recipients (to, cc, bcc) set") -> None:
        super().__init__(message)


def _q_encode(value: str) -> str:
    words, current = [], ""
    for ch in value:
        enc = ""
        for b in ch.encode(UTF8):
            if b == 0x20:
                enc += "_"
            elif 0x21 <= b <= 0x7E and chr(b) not in "=?_":
                enc += chr(b)
            else:
                enc += f"={b:02X}"
        if current and len(current) + len(enc) > _WORD_MAX:
            words.append(current)
            current = ""
        current += enc
    words.append(current)
    return " ".join(f"=?utf-8?q?{w}?=" for w in words)


def _b_encode(value: str) -> str:
    max_raw = _WORD_MAX // 4 * 3
    words, current = [], b""
    for ch in value:
        enc = ch.encode(UTF8)
        if current and len(current) + len(enc) > max_raw:
            words.append(current)
            current = b""
        current += enc
    words.append(current)
    return " ".join(f"=?utf-8?b?{base64.b64encode(w).decode('ascii')}?=" for w in words)


@dataclass(frozen=True)
class Address:
    """A mailbox: an optional display name and an e-mail address."""

    name: str = ""
    address: str = ""

    def __str__(self) -> str:
        addr = f"<{self.address}>"
        if not self.name:
            return addr
        printable = all(ch in " \t" or "!" <= ch <= "~" for ch in self.name)
        if printable:
            escaped = self.name.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}" {addr}'
        if any(ch in _B_SPECIALS for ch in self.name):
            return f"{_b_encode(self.name)} {addr}"
        return f"{_q_encode(self.name)} {addr}"


class Sender(Protocol):
    """Something that can transmit an encoded message."""

    def send(self, reverse_path: str, recipients: list[str], message: bytes) -> None:
        """Deliver message from reverse_path to every address in recipients."""


def _join_addresses(addresses: Iterable[Address]) -> str:
    return ", ".join(str(a) for a in addresses)


def _rfc1123z(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.astimezone()
    offset = dt.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return (
        f"{_DAYS[dt.weekday()]}, {dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year:04d} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} {sign}{minutes // 60:02d}{minutes % 60:02d}"
    )


def _load_file(path: Union[str, os.PathLike]) -> tuple[bytes, str, str]:
    content = Path(path).read_bytes()
    name = os.path.basename(os.fspath(path))
    ctype = mimetypes.guess_type(name)[0] or ""
    return content, ctype, name


def _isolated_copy(part: Part) -> Part:
    return replace(part, header=MIMEHeader(), content_type_params=dict(part.content_type_params),
                   errors=[], parent=None, next_sibling=None)


@dataclass(frozen=True)
class MailBuilder:
    """Composes a message; every method returns a new builder."""

    to: tuple[Address, ...] = ()
    cc: tuple[Address, ...] = ()
    bcc: tuple[Address, ...] = ()
    reply_to: tuple[Address, ...] = ()
    from_address: Address = field(default_factory=Address)
    subject: str = ""
    date: Optional[datetime] = None
    header: tuple[tuple[str, str], ...] = ()
    text: Optional[bytes] = None
    html: Optional[bytes] = None
    inlines: tuple[Part, ...] = ()
    attachments: tuple[Part, ...] = ()
    error: Optional[Exception] = None
    rand_source: Optional[random.Random] = field(default=None, compare=False, repr=False)

    def rand_seed(self, seed: int) -> "MailBuilder":
        """Seed the generator used for boundary strings."""
        return replace(self, rand_source=random.Random(seed))

    def with_date(self, date: datetime) -> "MailBuilder":
        return replace(self, date=date)

    def with_from(self, name: str, addr: str) -> "MailBuilder":
        return replace(self, from_address=Address(name, addr))

    def with_subject(self, subject: str) -> "MailBuilder":
        return replace(self, subject=subject)

    def add_to(self, name: str, addr: str) -> "MailBuilder":
        """Append a To recipient; ignored when addr is empty."""
        return replace(self, to=self.to + (Address(name, addr),)) if addr else self

    def with_to(self, addresses: Iterable[Address]) -> "MailBuilder":
        return replace(self, to=tuple(addresses))

    def add_cc(self, name: str, addr: str) -> "MailBuilder":
        """Append a Cc recipient; ignored when addr is empty."""
        return replace(self, cc=self.cc + (Address(name, addr),)) if addr else self

    def with_cc(self, addresses: Iterable[Address]) -> "MailBuilder":
        return replace(self, cc=tuple(addresses))

    def add_bcc(self, name: str, addr: str) -> "MailBuilder":
        """Append a blind recipient; it only affects send, never the headers."""
        return replace(self, bcc=self.bcc + (Address(name, addr),)) if addr else self

    def with_bcc(self, addresses: Iterable[Address]) -> "MailBuilder":
        return replace(self, bcc=tuple(addresses))

    def add_reply_to(self, name: str, addr: str) -> "MailBuilder":
        """Append a Reply-To address; ignored when addr is empty."""
        return replace(self, reply_to=self.reply_to + (Address(name, addr),)) if addr else self

    def with_reply_to(self, addresses: Iterable[Address]) -> "MailBuilder":
        return replace(self, reply_to=tuple(addresses))

    def with_header(self, name: str, value: str) -> "MailBuilder":
        """Add a value to the named header."""
        return replace(self, header=self.header + ((name, value),))

    def header_value(self, name: str) -> str:
        """Return the first value of the named header, or ""."""
        return MIMEHeader(self.header).get(name)

    def with_text(self, body: bytes) -> "MailBuilder":
        return replace(self, text=bytes(body))

    def with_html(self, body: bytes) -> "MailBuilder":
        return replace(self, html=bytes(body))

    def add_attachment(self, content: bytes, content_type: str, file_name: str) -> "MailBuilder":
        part = new_part(content_type)
        part.content = bytes(content)
        part.file_name = file_name
        part.disposition = "attachment"
        return replace(self, attachments=self.attachments + (part,))

    def add_file_attachment(self, path: Union[str, os.PathLike]) -> "MailBuilder":
        """Attach a file; the first read error is kept and stops build."""
        if self.error is not None:
            return self
        try:
            content, ctype, name = _load_file(path)
        except OSError as exc:
            return replace(self, error=exc)
        return self.add_attachment(content, ctype, name)

    def add_inline(self, content: bytes, content_type: str, file_name: str,
                   content_id: str) -> "MailBuilder":
        part = new_part(content_type)
        part.content = bytes(content)
        part.file_name = file_name
        part.disposition = "inline"
        part.content_id = content_id
        return replace(self, inlines=self.inlines + (part,))

    def add_file_inline(self, path: Union[str, os.PathLike]) -> "MailBuilder":
        """Add a file inline, using its base name as file name and content ID."""
        if self.error is not None:
            return self
        try:
            content, ctype, name = _load_file(path)
        except OSError as exc:
            return replace(self, error=exc)
        return self.add_inline(content, ctype, name, name)

    def add_other_part(self, content: bytes, content_type: str, file_name: str,
                       content_id: str) -> "MailBuilder":
        """Embed a related part without a disposition, e.g. an image referenced by CID."""
        part = new_part(content_type)
        part.content = bytes(content)
        part.file_name = file_name
        part.content_id = content_id
        return replace(self, inlines=self.inlines + (part,))

    def add_file_other_part(self, path: Union[str, os.PathLike]) -> "MailBuilder":
        if self.error is not None:
            return self
        try:
            content, ctype, name = _load_file(path)
        except OSError as exc:
            return replace(self, error=exc)
        return self.add_other_part(content, ctype, name, name)

    def build(self) -> Part:
        """Validate and return the root of the message's part tree.

        The Date header defaults to now when no date was given.
        """
        if self.error is not None:
            raise self.error
        if not self.from_address.address:
            raise BuildError("from not set")
        if not (self.to or self.cc or self.bcc):
            raise MissingRecipientError()

        bodies = []
        if self.text is not None or self.html is None:
            text = new_part("text/plain")
            text.content = self.text or b""
            text.charset = UTF8
            bodies.append(text)
        if self.html is not None:
            html = new_part("text/html")
            html.content = self.html
            html.charset = UTF8
            bodies.append(html)
        if len(bodies) > 1:
            root = new_part("multipart/alternative")
            for body in bodies:
                root.add_child(body)
        else:
            root = bodies[0]
        if self.inlines:
            related = new_part("multipart/related")
            related.add_child(root)
            for inline in self.inlines:
                related.add_child(_isolated_copy(inline))
            root = related
        if self.attachments:
            mixed = new_part("multipart/mixed")
            mixed.add_child(root)
            for attachment in self.attachments:
                mixed.add_child(_isolated_copy(attachment))
            root = mixed

        h = root.header
        h.set("MIME-Version", "1.0")
        h.set("From", str(self.from_address))
        h.set("Subject", self.subject)
        if self.to:
            h.set("To", _join_addresses(self.to))
        if self.cc:
            h.set("Cc", _join_addresses(self.cc))
        if self.reply_to:
            h.set("Reply-To", _join_addresses(self.reply_to))
        h.set("Date", _rfc1123z(self.date if self.date is not None else datetime.now().astimezone()))
        for name, value in self.header:
            h.add(name, value)
        if self.rand_source is not None:
            for part in root.depth_match_all(lambda _p: True):
                part.rand_source = self.rand_source
        return root

    def send_with_reverse_path(self, sender: Sender, reverse_path: str) -> None:
        """Encode the message and hand it to sender with the given reverse path."""
        message = self.build().to_bytes()
        recipients = [a.address for a in (*self.to, *self.cc, *self.bcc)]
        sender.send(reverse_path, recipients, message)

    def send(self, sender: Sender) -> None:
        """Encode and send, using the From address as the reverse path."""
        self.send_with_reverse_path(sender, self.from_address.address)