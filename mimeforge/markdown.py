"""Markdown-style rendering helpers for describing messages and part trees."""

from __future__ import annotations

from typing import Optional, TextIO

from mimeforge.part import Part


class Markdown:
    """Writes simple Markdown constructs to a text stream."""

    def __init__(self, writer: TextIO) -> None:
        self.writer = writer

    def h1(self, content: str) -> None:
        bar = "=" * len(content.encode("utf-8"))
        self.writer.write(f"{content}\n{bar}\n\n")

    def h2(self, content: str) -> None:
        self.writer.write(f"## {content}\n")

    def h3(self, content: str) -> None:
        self.writer.write(f"### {content}\n")

    def printf(self, fmt: str, *args: object) -> None:
        """Write fmt formatted with %-style args."""
        self.writer.write(fmt % args if args else fmt)

    def println(self, *args: object) -> None:
        """Write args separated by spaces, followed by a newline."""
        self.writer.write(" ".join(str(a) for a in args) + "\n")


def _quote(value: str) -> str:
    out = ['"']
    for ch in value:
        if ch in ('"', "\\"):
            out.append("\\" + ch)
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ch.isprintable():
            out.append(ch)
        elif ord(ch) < 0x100:
            out.append(f"\\x{ord(ch):02x}")
        elif ord(ch) < 0x10000:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(f"\\U{ord(ch):08x}")
    out.append('"')
    return "".join(out)


def format_part(writer: TextIO, part: Optional[Part], indent: str) -> None:
    """Pretty-print part, its children and its following siblings as a tree."""
    while part is not None:
        sibling = part.next_sibling
        if part.parent is None:
            own_indent = child_indent = indent
        elif sibling is not None:
            own_indent, child_indent = indent + "|-- ", indent + "|   "
        else:
            own_indent, child_indent = indent + "`-- ", indent + "    "

        ctype = part.content_type or "MISSING TYPE"
        disposition = f", disposition: {part.disposition}" if part.disposition else ""
        filename = f", filename: {_quote(part.file_name)}" if part.file_name else ""
        errors = f" (errors: {len(part.errors)})" if part.errors else ""
        writer.write(f"{own_indent}{ctype}{disposition}{filename}{errors}\n")

        format_part(writer, part.first_child, child_indent)
        part = sibling