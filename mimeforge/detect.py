"""Classifying MIME parts by their Content-Type and Content-Disposition headers."""

from __future__ import annotations

import re
from typing import Iterator

from mimeforge.part import MIMEHeader, Part

CT_TEXT_PLAIN = "text/plain"
CT_TEXT_HTML = "text/html"
CT_MULTIPART_PREFIX = "multipart/"
CD_ATTACHMENT = "attachment"
CD_INLINE = "inline"

_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_PARAM_RE = re.compile(r'\s*([^\s=;"]+)\s*=\s*("(?:[^"\\]|\\.)*"|[^;]*)')
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def _iter_params(text: str) -> Iterator[tuple[str, str]]:
    pos = 0
    while pos < len(text):
        match = _PARAM_RE.match(text, pos)
        if match:
            key, raw = match.group(1), match.group(2)
            if raw.startswith('"'):
                value = _ESCAPE_RE.sub(r"\1", raw[1:-1])
            else:
                value = raw.strip()
            yield key, value
            pos = match.end()
        nxt = text.find(";", pos)
        if nxt == -1:
            return
        pos = nxt + 1


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """Split a header value into a lower-cased media type and its parameters.

    Parameters without a value are skipped. Raises ValueError when the media
    type itself is missing or malformed.
    """
    head, _, rest = value.partition(";")
    mtype = head.strip().lower()
    if not mtype:
        raise ValueError("no media type")
    major, slash, minor = mtype.partition("/")
    if not _TOKEN_RE.fullmatch(major) or (slash and not _TOKEN_RE.fullmatch(minor)):
        raise ValueError(f"invalid media type {mtype!r}")
    params: dict[str, str] = {}
    for key, val in _iter_params(rest):
        params.setdefault(key.lower(), val)
    return mtype, params


def _media_type(value: str) -> tuple[str, dict[str, str]]:
    try:
        return parse_media_type(value)
    except ValueError:
        return "", {}


def detect_multipart_message(root: Part, multipart_without_boundary_as_singlepart: bool) -> bool:
    """True if the part has a recognized multipart Content-Type header."""
    try:
        mtype, params = parse_media_type(root.header.get("Content-Type"))
    except ValueError:
        return False
    if multipart_without_boundary_as_singlepart and not params.get("boundary"):
        return False
    # Unknown multipart subtypes are treated as multipart/mixed (RFC 2046 5.1.7).
    return mtype.startswith(CT_MULTIPART_PREFIX)


def detect_attachment_header(header: MIMEHeader) -> bool:
    """True if the headers describe an attachment.

    An attachment disposition, or an inline disposition with parameters,
    counts; failing that, a Content-Type of "attachment" does.
    """
    mtype, params = _media_type(header.get("Content-Disposition"))
    if mtype == CD_ATTACHMENT or (mtype == CD_INLINE and params):
        return True
    mtype, _ = _media_type(header.get("Content-Type"))
    return mtype == CD_ATTACHMENT


def detect_text_header(header: MIMEHeader, empty_content_type_is_text: bool) -> bool:
    """True if the headers define a text/plain or text/html part."""
    ctype = header.get("Content-Type")
    if not ctype and empty_content_type_is_text:
        return True
    try:
        mtype, _ = parse_media_type(ctype)
    except ValueError:
        return False
    return mtype in (CT_TEXT_PLAIN, CT_TEXT_HTML)


def detect_binary_body(root: Part) -> bool:
    """True if the message headers define a binary (non-text) body."""
    if detect_text_header(root.header, True):
        # A text part is binary only when explicitly marked as an attachment.
        mtype, _ = _media_type(root.header.get("Content-Disposition"))
        return mtype == CD_ATTACHMENT
    if detect_attachment_header(root.header):
        return True
    mtype, _ = _media_type(root.header.get("Content-Type"))
    return mtype not in (CT_TEXT_PLAIN, CT_TEXT_HTML)