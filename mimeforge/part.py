"""The MIME part tree and its encoding to wire format."""

from __future__ import annotations

import base64
import enum
import io
import random
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Callable, Iterable, Iterator, Optional

B64_PERCENT = 20
UTF8 = "utf-8"
CRLF = b"\r\n"

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_TSPECIALS = set('()<>@,;:\\"/[]?=')


class TransferEncoding(enum.Enum):
    SEVEN_BIT = "7bit"
    QUOTED = "quoted-printable"
    BASE64 = "base64"


def _canonical_key(name: str) -> str:
    if not _TOKEN_RE.match(name):
        return name
    return "-".join(w[:1].upper() + w[1:].lower() for w in name.split("-"))


class MIMEHeader:
    """A header map with canonical, case-insensitive keys and multiple values."""

    def __init__(self, items: Optional[Iterable[tuple[str, str]]] = None) -> None:
        self._data: dict[str, list[str]] = {}
        for name, value in items or ():
            self.add(name, value)

    def get(self, name: str, default: str = "") -> str:
        values = self._data.get(_canonical_key(name))
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return list(self._data.get(_canonical_key(name), []))

    def set(self, name: str, value: str) -> None:
        self._data[_canonical_key(name)] = [value]

    def add(self, name: str, value: str) -> None:
        self._data.setdefault(_canonical_key(name), []).append(value)

    def delete(self, name: str) -> None:
        self._data.pop(_canonical_key(name), None)

    def copy(self) -> "MIMEHeader":
        new = MIMEHeader()
        new._data = {k: list(v) for k, v in self._data.items()}
        return new

    def items(self) -> Iterator[tuple[str, list[str]]]:
        return ((k, list(v)) for k, v in self._data.items())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _canonical_key(name) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MIMEHeader):
            return self._data == other._data
        if isinstance(other, dict):
            return self._data == {_canonical_key(k): list(v) for k, v in other.items()}
        return NotImplemented

    def __repr__(self) -> str:
        return f"MIMEHeader({self._data!r})"


@dataclass(eq=True)
class Part:
    """One node of a MIME message tree."""

    content_type: str = ""
    header: MIMEHeader = field(default_factory=MIMEHeader)
    content: bytes = b""
    charset: str = ""
    boundary: str = ""
    content_id: str = ""
    content_type_params: dict = field(default_factory=dict)
    disposition: str = ""
    file_name: str = ""
    file_mod_date: Optional[datetime] = None
    errors: list = field(default_factory=list)
    parent: Optional["Part"] = field(default=None, repr=False, compare=False)
    first_child: Optional["Part"] = field(default=None, repr=False)
    next_sibling: Optional["Part"] = field(default=None, repr=False)
    rand_source: Optional[random.Random] = field(default=None, repr=False, compare=False)

    def add_child(self, child: "Part") -> None:
        """Append child as the last child of this part."""
        child.parent = self
        if self.first_child is None:
            self.first_child = child
            return
        last = self.first_child
        while last.next_sibling is not None:
            last = last.next_sibling
        last.next_sibling = child

    def children(self) -> Iterator["Part"]:
        child = self.first_child
        while child is not None:
            yield child
            child = child.next_sibling

    def is_text(self) -> bool:
        """True when the content is text (or the type is unset or multipart)."""
        if not self.content_type:
            return True
        return self.content_type.startswith(("text/", "multipart/"))

    def _walk(self) -> Iterator["Part"]:
        yield self
        for child in self.children():
            yield from child._walk()

    def depth_match_all(self, matcher: Callable[["Part"], bool]) -> list["Part"]:
        return [p for p in self._walk() if matcher(p)]

    def depth_match_first(self, matcher: Callable[["Part"], bool]) -> Optional["Part"]:
        return next((p for p in self._walk() if matcher(p)), None)

    def encode(self, writer: BinaryIO) -> None:
        """Write this part and its children in MIME format."""
        writer.write(b"".join(self._encode_chunks()))

    def to_bytes(self) -> bytes:
        out = io.BytesIO()
        self.encode(out)
        return out.getvalue()

    def _encode_chunks(self) -> Iterator[bytes]:
        cte = self._setup_mime_headers()
        yield self._encode_header()
        if self.content:
            yield CRLF
            yield _encode_content(self.content, cte)
        if self.first_child is None:
            return
        marker = b"\r\n--" + self.boundary.encode("utf-8")
        for child in self.children():
            yield marker + CRLF
            yield from child._encode_chunks()
        yield marker + b"--" + CRLF

    def _setup_mime_headers(self) -> TransferEncoding:
        self.header.delete("Content-Transfer-Encoding")
        cte = TransferEncoding.SEVEN_BIT
        if self.content:
            cte = TransferEncoding.BASE64
            if self.is_text():
                cte = select_transfer_encoding(self.content, False)
                if not self.charset:
                    self.charset = UTF8
            if cte is not TransferEncoding.SEVEN_BIT:
                self.header.set("Content-Transfer-Encoding", cte.value)
        if self.first_child is not None and not self.boundary:
            self.boundary = "mimeforge-" + _uuid(self.rand_source)
        if self.content_id:
            self.header.set("Content-ID", _to_id_header(self.content_id))
        file_name = _encode_word(self.file_name)
        if self.content_type:
            params = dict(self.content_type_params)
            for key, value in (("charset", self.charset), ("name", file_name),
                               ("boundary", self.boundary)):
                if value:
                    params[key] = value
            formatted = _format_media_type(self.content_type, params)
            if formatted:
                self.content_type = formatted
            self.header.set("Content-Type", self.content_type)
        if self.disposition:
            params = {}
            if file_name:
                params["filename"] = file_name
            if self.file_mod_date is not None:
                params["modification-date"] = _rfc822(self.file_mod_date)
            formatted = _format_media_type(self.disposition, params)
            if formatted:
                self.disposition = formatted
            self.header.set("Content-Disposition", self.disposition)
        return cte

    def _encode_header(self) -> bytes:
        out = []
        for key in sorted(self.header):
            for value in self.header.get_all(key):
                wrapped = bytearray(_wrap(76, [key, ":_", _encode_word(value), "\r\n"]))
                wrapped[len(key.encode("utf-8")) + 1] = ord(" ")
                out.append(bytes(wrapped))
        return b"".join(out)


def new_part(content_type: str) -> Part:
    """Return a part of the given content type with an empty header."""
    return Part(content_type=content_type)


def select_transfer_encoding(content: bytes, quote_line_breaks: bool) -> TransferEncoding:
    """Pick 7bit, quoted-printable or base64 by the share of non-ASCII bytes."""
    if not content:
        return TransferEncoding.SEVEN_BIT
    threshold = B64_PERCENT * len(content) // 100
    bincount = 0
    for b in content:
        if (b < 0x20 or b > 0x7E) and b != 0x09:
            if not quote_line_breaks and b in (0x0D, 0x0A):
                continue
            bincount += 1
            if bincount >= threshold:
                return TransferEncoding.BASE64
    return TransferEncoding.SEVEN_BIT if bincount == 0 else TransferEncoding.QUOTED


def _uuid(rng: Optional[random.Random]) -> str:
    if rng is None:
        return str(uuid.uuid4())
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def _to_id_header(value: str) -> str:
    value = value.strip()
    if value.startswith("<") and value.endswith(">"):
        return value
    return f"<{value}>"


def _rfc822(dt: datetime) -> str:
    zone = dt.tzname() or dt.strftime("%z") or "UTC"
    return dt.strftime("%d %b %y %H:%M ") + zone


_ENCODED_WORD_MAX = 75 - len("=?utf-8?q?") - len("?=")


def _encode_word(value: str) -> str:
    """Encode a header value as RFC 2047 words when it needs it."""
    raw = value.encode("utf-8")
    cte = select_transfer_encoding(raw, True)
    if cte is TransferEncoding.SEVEN_BIT:
        return value
    words: list[str] = []
    if cte is TransferEncoding.BASE64:
        max_raw = _ENCODED_WORD_MAX // 4 * 3
        current = b""
        for ch in value:
            enc = ch.encode("utf-8")
            if current and len(current) + len(enc) > max_raw:
                words.append(base64.b64encode(current).decode("ascii"))
                current = b""
            current += enc
        words.append(base64.b64encode(current).decode("ascii"))
        return " ".join(f"=?utf-8?b?{w}?=" for w in words)
    current_q = ""
    for ch in value:
        enc = "".join(_q_byte(b) for b in ch.encode("utf-8"))
        if current_q and len(current_q) + len(enc) > _ENCODED_WORD_MAX:
            words.append(current_q)
            current_q = ""
        current_q += enc
    words.append(current_q)
    return " ".join(f"=?utf-8?q?{w}?=" for w in words)


def _q_byte(b: int) -> str:
    if b == 0x20:
        return "_"
    if 0x21 <= b <= 0x7E and chr(b) not in "=?_":
        return chr(b)
    return f"={b:02X}"


def _is_token(value: str) -> bool:
    return bool(value) and all(0x20 < ord(c) < 0x7F and c not in _TSPECIALS for c in value)


def _format_media_type(media_type: str, params: dict) -> str:
    """Serialize a media type with sorted parameters; "" if invalid."""
    major, slash, minor = media_type.partition("/")
    if slash:
        if not (_is_token(major) and _is_token(minor)):
            return ""
        out = [major.lower() + "/" + minor.lower()]
    else:
        if not _is_token(media_type):
            return ""
        out = [media_type.lower()]
    for attr in sorted(params):
        value = params[attr]
        if not _is_token(attr):
            return ""
        attr = attr.lower()
        if any((ord(c) < 0x20 or ord(c) > 0x7E) and c != "\t" for c in value):
            enc = "".join(
                f"%{b:02X}" if (b <= 0x20 or b >= 0x7F or chr(b) in "*'%" or chr(b) in _TSPECIALS)
                else chr(b)
                for b in value.encode("utf-8")
            )
            out.append(f"{attr}*=utf-8''{enc}")
        elif _is_token(value):
            out.append(f"{attr}={value}")
        else:
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            out.append(f'{attr}="{escaped}"')
    return "; ".join(out)


def _wrap(limit: int, parts: list[str]) -> bytes:
    """Join parts and fold lines longer than limit at spaces."""
    data = "".join(parts).encode("utf-8")
    if len(data) < limit:
        return data
    out = bytearray()
    last_space = -1
    last_written = -1
    line_len = 0
    for i, b in enumerate(data):
        line_len += 1
        if b in (0x20, 0x09):
            last_space = i
        if line_len >= limit and last_space >= 0:
            out += data[last_written + 1:last_space]
            out += b"\r\n "
            last_written = last_space
            line_len = i - last_space
            last_space = -1
    out += data[last_written + 1:]
    return bytes(out)


def _encode_content(content: bytes, cte: TransferEncoding) -> bytes:
    if cte is TransferEncoding.BASE64:
        text = base64.b64encode(content)
        return b"".join(text[i:i + 76] + CRLF for i in range(0, len(text), 76))
    if cte is TransferEncoding.QUOTED:
        return _quoted_printable(content)
    return content


def _qp_token(b: int) -> str:
    if b in (0x20, 0x09) or (0x21 <= b <= 0x7E and b != 0x3D):
        return chr(b)
    return f"={b:02X}"


def _quoted_printable(content: bytes) -> bytes:
    lines = re.split(rb"\r\n|\r|\n", content)
    encoded = []
    for line in lines:
        pieces: list[str] = []
        current = ""

        def push(token: str) -> None:
            nonlocal current
            if len(current) + len(token) > 75:
                pieces.append(current + "=")
                current = ""
            current += token

        for b in line:
            push(_qp_token(b))
        if current and current[-1] in " \t":
            last = current[-1]
            current = current[:-1]
            push(f"={ord(last):02X}")
        pieces.append(current)
        encoded.append("\r\n".join(pieces))
    return "\r\n".join(encoded).encode("ascii")