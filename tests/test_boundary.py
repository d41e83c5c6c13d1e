import io

import pytest

from mimeforge.boundary import BoundaryReader

CASES = [
    (b"good\r\n--STOPHERE\r\nafter", b"good"),
    (b"good\r\n--STOPHERE\t\r\nafter", b"good"),
    (b"good\r\n--STOPHERE--\r\nafter", b"good"),
    (b"good\r\n--STOPHERE \t\r\nafter", b"good"),
    (b"good\r\n--STOPHERE--\t \r\nafter", b"good"),
    (b"good\r\n--STOPHEREA\r\n--STOPHERE--\r\nafter", b"good\r\n--STOPHEREA"),
    (b"good\r\n--STOPHERE-A\r\n--STOPHERE--\r\nafter", b"good\r\n--STOPHERE-A"),
    (b"good\n--STOPHERE\nafter", b"good"),
    (b"good\n--STOPHERE--\nafter", b"good"),
    (b"good\n--STOPHEREA\n--STOPHERE--\nafter", b"good\n--STOPHEREA"),
    (b"good\n--STOPHERE-A\n--STOPHERE--\nafter", b"good\n--STOPHERE-A"),
]


@pytest.mark.parametrize("data,want", CASES)
def test_boundary_reader(data, want):
    stream = io.BytesIO(data)
    br = BoundaryReader(stream, "STOPHERE")
    assert br.read_all() == want
    assert stream.read() == data[len(want):]


class _Unseekable:
    def __init__(self, data):
        self._inner = io.BytesIO(data)

    def read(self, n=-1):
        return self._inner.read(n)


@pytest.mark.parametrize("data,want", CASES)
def test_boundary_reader_unseekable(data, want):
    br = BoundaryReader(_Unseekable(data), "STOPHERE")
    assert br.read_all() == want


def test_read_from_buffer_byte_by_byte():
    br = BoundaryReader(io.BytesIO(b"good\r\n--STOPHERE\r\nafter"), "STOPHERE")
    got = [br.read(1) for _ in range(4)]
    assert got == [b"g", b"o", b"o", b"d"]
    assert br.read(1) == b""


def test_eof_at_end():
    br = BoundaryReader(io.BytesIO(b"good\r\n--STOPHERE\r\nafter"), "STOPHERE")
    assert br.read_all() == b"good"
    assert br.read(256) == b""


@pytest.mark.parametrize(
    "data,parts",
    [
        (b"preamble\r\n--STOP\r\npart1\r\n--STOP\r\npart2\r\n--STOP--\r\n", [b"part1", b"part2"]),
        (b"preamble\r\n--STOP \t\r\npart1\r\n--STOP\t \r\npart2\r\n--STOP-- \t\r\n", [b"part1", b"part2"]),
        (b"\npreamble\n--STOP\npart1\n--STOP\npart2\n--STOP--\n", [b"part1", b"part2"]),
        (b"\n--STOP\npart1\n--STOP\npart2\n--STOP--\n", [b"part1", b"part2"]),
        (b"--STOP\npart1\n--STOP\npart2\n--STOP--\n", [b"part1", b"part2"]),
        (b"--STOP\npart1\n--STOP\n--STOP--\n", [b"part1", b""]),
        (b"--STOP\n--STOP\npart2\n--STOP--\n", [b"", b"part2"]),
        (b"--STOP\n--STOP\n--STOP--\n", [b"", b""]),
    ],
)
def test_parts(data, parts):
    br = BoundaryReader(io.BytesIO(data), "STOP")
    got = []
    for _ in parts:
        assert br.next() is True
        got.append(br.read_all())
    assert got == parts
    assert br.next() is False
    assert br.next() is False


def test_partial_read():
    data = b"\r\n--STOPHERE\r\n1111\r\n--STOPHERE\r\n2222\r\n--STOPHERE\r\n"
    br = BoundaryReader(io.BytesIO(data), "STOPHERE")
    for want in (b"11", b"2222"):
        assert br.next() is True
        assert br.read(len(want)) == want


def test_no_match():
    data = b"\r\n--STOPHERE\r\n1111\r\n--STOPHERE\r\n2222\r\n--STOPHERE\r\n"
    br = BoundaryReader(io.BytesIO(data), "NOMATCH")
    with pytest.raises(EOFError):
        br.next()


def test_no_terminator():
    br = BoundaryReader(io.BytesIO(b"preamble\r\n--STOPHERE\r\n1111\r\n"), "STOPHERE")
    assert br.next() is True
    with pytest.raises(EOFError, match="EOF"):
        br.next()


@pytest.mark.parametrize(
    "peek_suffix,after",
    [
        (b"\r\n--STOPHERE", b"\r\nanother part\r\n--STOPHERE--"),
        (b"\r\n--STOP", b"HERE\r\nanother part\r\n--STOPHERE--"),
    ],
)
def test_boundary_near_4096(peek_suffix, after):
    padding = 4096 - len(peek_suffix)
    data = b"preamble\r\n--STOPHERE\r\n" + b"x" * padding + peek_suffix + after
    br = BoundaryReader(io.BytesIO(data), "STOPHERE")
    assert br.next() is True
    assert len(br.read_all()) == padding
    assert br.next() is True
    assert br.read_all() == b"another part"


def test_long_preamble_line():
    data = b"\x01" * 6144 + b"\n--B\nbody\n--B--\n"
    br = BoundaryReader(io.BytesIO(data), "B")
    assert br.next() is True
    assert br.read_all() == b"body"
    assert br.next() is False


def test_read_len_not_cap():
    data = b"--STOP\nabcdefghijklm\n--STOP\nnopqrstuvwxyz\n--STOP--\n"
    br = BoundaryReader(io.BytesIO(data), "STOP")
    for want in (b"abcdefghijklm", b"nopqrstuvwxyz"):
        assert br.next() is True
        out = b""
        while True:
            chunk = br.read(6)
            assert len(chunk) <= 6
            if not chunk:
                break
            out += chunk
        assert out == want


def test_delimiter_and_terminator():
    br = BoundaryReader(b"", "X")
    assert br.is_delimiter(b"--X\r\n") is True
    assert br.is_delimiter(b"--X--\r\n") is False
    assert br.is_delimiter(b"--X") is False
    assert br.is_terminator(b"--X--") is True
    assert br.is_terminator(b"--X\r\n") is False


def test_accepts_bytes():
    br = BoundaryReader(b"--S\nhi\n--S--\n", "S")
    assert br.next() is True
    assert br.read_all() == b"hi"