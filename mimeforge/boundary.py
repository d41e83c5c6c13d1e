"""Reading the parts of a multipart body, split on a MIME boundary."""

from __future__ import annotations

import io
from typing import BinaryIO, Union

_BLANK_PREFIXES = (b"\n\n", b"\n\r", b"\r\n\r", b"\r\n\n")


class NoBoundaryTerminatorError(ValueError):
    """Raised when a line where a boundary was expected holds something else."""


class _Source:
    """A byte source that supports peeking without consuming."""

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self._buf = bytearray()
        seekable = getattr(raw, "seekable", None)
        self._seekable = bool(seekable and seekable())

    def _fill(self, n: int) -> None:
        while len(self._buf) < n:
            chunk = self._raw.read(max(n - len(self._buf), 4096))
            if not chunk:
                break
            self._buf += chunk

    def peek(self, n: int) -> bytes:
        if self._seekable:
            pos = self._raw.tell()
            data = self._raw.read(n) or b""
            self._raw.seek(pos)
            return data
        self._fill(n)
        return bytes(self._buf[:n])

    def read_byte(self) -> bytes:
        if self._seekable:
            return self._raw.read(1) or b""
        self._fill(1)
        data = bytes(self._buf[:1])
        del self._buf[:1]
        return data

    def readline(self) -> bytes:
        if self._seekable:
            return self._raw.readline()
        start = 0
        while True:
            idx = self._buf.find(b"\n", start)
            if idx >= 0:
                line = bytes(self._buf[: idx + 1])
                del self._buf[: idx + 1]
                return line
            start = len(self._buf)
            chunk = self._raw.read(4096)
            if not chunk:
                line = bytes(self._buf)
                self._buf.clear()
                return line
            self._buf += chunk


class BoundaryReader:
    """Reads the content of one part at a time, stopping at the boundary."""

    def __init__(self, reader: Union[BinaryIO, bytes, bytearray], boundary: str) -> None:
        if isinstance(reader, (bytes, bytearray)):
            reader = io.BytesIO(bytes(reader))
        self._src = _Source(reader)
        full = b"\n--" + boundary.encode("utf-8") + b"--"
        self._nl_prefix = full[:-2]
        self._prefix = full[1:-2]
        self._final = full[1:]
        self._buffer = bytearray()
        self._finished = False
        self._parts_read = 0
        self._at_part_start = False
        self.unbounded = False

    def _take(self, size: int) -> bytes:
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        if data:
            self._at_part_start = False
        return data

    def read(self, size: int = -1) -> bytes:
        """Return up to size bytes of the current part; b"" at its end."""
        if size is None or size < 0:
            return self.read_all()
        if size == 0:
            return b""
        if len(self._buffer) >= size:
            return self._take(size)
        for _ in range(size):
            head = self._src.peek(1)
            if head:
                padding, check = 1, False
                if head[0] == 0x0D:
                    padding, check = 2, True
                elif head[0] == 0x0A:
                    check = True
                elif self._at_part_start:
                    padding, check = 0, True
                if check:
                    want = len(self._nl_prefix) + padding + 1
                    window = self._src.peek(want)
                    if len(window) < want:
                        self.unbounded = True
                    elif not window.startswith(_BLANK_PREFIXES):
                        rest = window[padding:]
                        if self.is_delimiter(rest) or self.is_terminator(rest):
                            return self._take(size)
            byte = self._src.read_byte()
            if not byte:
                break
            self._buffer += byte
        return self._take(size)

    def read_all(self) -> bytes:
        """Return everything left in the current part."""
        chunks = []
        while True:
            chunk = self.read(4096)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def next(self) -> bool:
        """Move past the next boundary; return True if another part follows.

        Raises EOFError when the input ends before a boundary, and
        NoBoundaryTerminatorError when an unexpected line replaces one.
        """
        if self._finished:
            return False
        if self._parts_read > 0:
            self.read_all()
        while True:
            line = self._src.readline()
            at_eof = not line.endswith(b"\n")
            if line and line[0] in (0x0D, 0x0A):
                continue
            if self.is_terminator(line):
                self._finished = True
                return False
            if not at_eof and self.is_delimiter(line):
                self._parts_read += 1
                self._at_part_start = True
                return True
            if at_eof:
                raise EOFError("unexpected EOF")
            if self._parts_read == 0:
                continue
            self._finished = True
            raise NoBoundaryTerminatorError(
                f"expected boundary not present: expecting boundary "
                f"{self._prefix.decode('utf-8', 'replace')!r}, got {line!r}"
            )

    def is_delimiter(self, buf: bytes) -> bool:
        """True for --BOUNDARY followed by whitespace, not for --BOUNDARY--."""
        idx = buf.find(self._prefix)
        if idx == -1:
            return False
        rest = buf[idx + len(self._prefix):]
        return bool(rest) and chr(rest[0]).isspace()

    def is_terminator(self, buf: bytes) -> bool:
        """True when buf holds --BOUNDARY--."""
        return self._final in buf