import base64
import io
from datetime import datetime, timedelta, timezone
from email.header import decode_header

import pytest

from mimeforge.part import (
    MIMEHeader,
    Part,
    TransferEncoding,
    new_part,
    select_transfer_encoding,
)

GMT = timezone(timedelta(0), "GMT")


def test_header_canonical_keys():
    h = MIMEHeader()
    h.add("content-id", "a")
    h.add("CONTENT-ID", "b")
    assert h.get_all("Content-Id") == ["a", "b"]
    assert h.get("Content-ID") == "a"
    h.set("content-id", "c")
    assert h.get_all("Content-Id") == ["c"]
    h.delete("CONTENT-id")
    assert h.get("content-id") == ""
    assert "Content-Id" not in h


def test_header_copy_is_independent():
    h = MIMEHeader([("X-A", "1")])
    c = h.copy()
    c.add("X-A", "2")
    assert h.get_all("X-A") == ["1"]
    assert c.get_all("X-A") == ["1", "2"]


def test_encode_empty():
    assert Part().to_bytes() == b""


def test_encode_header_only():
    assert new_part("text/plain").to_bytes() == b"Content-Type: text/plain\r\n"


def test_encode_empty_header_value():
    p = new_part("text/plain")
    p.header.add("X-Empty-Header", "")
    assert p.to_bytes() == b"Content-Type: text/plain\r\nX-Empty-Header: \r\n"


def test_encode_content_only():
    p = Part(content=b"No header, only content.")
    assert p.to_bytes() == b"\r\nNo header, only content."


def test_encode_content_only_qp():
    p = Part(content="☆ No header, only content.".encode("utf-8"))
    assert p.to_bytes() == (
        b"Content-Transfer-Encoding: quoted-printable\r\n\r\n"
        b"=E2=98=86 No header, only content."
    )


def test_encode_plain():
    body = b"This is a test of a plain text part.\r\n\r\nAnother line.\r\n"
    p = new_part("text/plain")
    p.content = body
    assert p.to_bytes() == b"Content-Type: text/plain; charset=utf-8\r\n\r\n" + body


def test_encode_quoted_content():
    p = new_part("text/plain")
    p.content = "¡Hola, señor! Welcome to MIME".encode("utf-8")
    assert p.to_bytes() == (
        b"Content-Transfer-Encoding: quoted-printable\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n\r\n"
        b"=C2=A1Hola, se=C3=B1or! Welcome to MIME"
    )


def test_existing_encoding_header_replaced():
    p = new_part("text/plain")
    p.header.add("Content-Transfer-Encoding", "quoted-printable")
    p.content = b"Hello="
    assert p.to_bytes() == b"Content-Type: text/plain; charset=utf-8\r\n\r\nHello="


def test_default_headers():
    p = new_part("application/zip")
    p.boundary = "enmime-abcdefg0123456789"
    p.charset = "binary"
    p.content_id = "mycontentid"
    p.content_type_params.update(param1="myparameter1", param2="myparameter2")
    p.disposition = "attachment"
    p.file_name = "stuff.zip"
    p.file_mod_date = datetime(2003, 2, 1, 4, 5, tzinfo=GMT)
    p.content = b"ZIPZIPZIP"
    out = p.to_bytes()
    assert p.header.get("Content-Type") == (
        "application/zip; boundary=enmime-abcdefg0123456789; charset=binary; "
        "name=stuff.zip; param1=myparameter1; param2=myparameter2"
    )
    assert p.header.get("Content-Disposition") == (
        'attachment; filename=stuff.zip; modification-date="01 Feb 03 04:05 GMT"'
    )
    assert b"Content-Id: <mycontentid>\r\n" in out
    assert b"Content-Transfer-Encoding: base64\r\n" in out
    assert out.endswith(b"\r\n\r\nWklQWklQWklQ\r\n")


def test_quoted_file_name():
    name = 'árvíztűrő "x" tükörfúrógép.zip'
    p = new_part("application/zip")
    p.disposition = "attachment"
    p.file_name = name
    p.content = b"ZIPZIPZIP"
    p.to_bytes()
    ctype = p.header.get("Content-Type")
    assert 'name="=?utf-8?b?' in ctype
    encoded = ctype.split('name="', 1)[1].rstrip('"')
    decoded, charset = decode_header(encoded)[0]
    assert decoded.decode(charset) == name


def test_qp_header():
    p = new_part("text/plain")
    p.header.add("X-QP-Header", "Just enough to need qp ☆")
    out = p.to_bytes()
    assert b"X-Qp-Header: =?utf-8?q?Just_enough_to_need_qp_=E2=98=86?=\r\n" in out


def test_b_header():
    p = new_part("text/plain")
    p.header.set("Subject", "ñ")
    assert b"Subject: =?utf-8?b?w7E=?=\r\n" in p.to_bytes()


def test_children():
    root = new_part("multipart/alternative")
    root.boundary = "enmime-1234567890-parent"
    html = new_part("text/html")
    html.content = b"<div>HTML part</div>"
    plain = new_part("text/plain")
    plain.content = b"Plain text part"
    root.add_child(html)
    root.add_child(plain)
    out = root.to_bytes()
    assert out.startswith(
        b"Content-Type: multipart/alternative; boundary=enmime-1234567890-parent;\r\n"
        b" charset=utf-8\r\n"
    ) is False  # no content: charset is not set
    assert out.startswith(
        b"Content-Type: multipart/alternative; boundary=enmime-1234567890-parent\r\n"
    )
    assert (
        b"\r\n--enmime-1234567890-parent\r\nContent-Type: text/html; charset=utf-8\r\n\r\n"
        b"<div>HTML part</div>\r\n--enmime-1234567890-parent\r\n"
    ) in out
    assert out.endswith(b"Plain text part\r\n--enmime-1234567890-parent--\r\n")


def test_children_with_content_wraps_header():
    root = new_part("multipart/alternative")
    root.boundary = "enmime-1234567890-parent"
    root.content = b"Bro, do you even MIME?"
    child = new_part("text/plain")
    child.content = b"x"
    root.add_child(child)
    out = root.to_bytes()
    assert out.startswith(
        b"Content-Type: multipart/alternative; boundary=enmime-1234567890-parent;\r\n"
        b" charset=utf-8\r\n\r\nBro, do you even MIME?\r\n--enmime-1234567890-parent\r\n"
    )


def test_generated_boundary():
    root = new_part("multipart/mixed")
    root.add_child(new_part("text/plain"))
    out = root.to_bytes()
    assert root.boundary.startswith("mimeforge-")
    assert out.endswith(b"--" + root.boundary.encode() + b"--\r\n")


def test_binary_content_round_trip():
    data = bytes(i % 256 for i in range(2000))
    p = new_part("image/jpeg")
    p.content = data
    out = p.to_bytes()
    head, body = out.split(b"\r\n\r\n", 1)
    assert b"Content-Transfer-Encoding: base64" in head
    lines = body.split(b"\r\n")
    assert all(len(line) <= 76 for line in lines)
    assert base64.b64decode(b"".join(lines)) == data


def test_file_mod_date():
    p = new_part("text/plain")
    p.content = b"hi"
    p.disposition = "inline"
    p.file_mod_date = datetime(2003, 2, 1, 4, 5, tzinfo=GMT)
    p.to_bytes()
    assert p.header.get("Content-Disposition") == 'inline; modification-date="01 Feb 03 04:05 GMT"'


@pytest.mark.parametrize("count,want", [(19, "quoted-printable"), (20, "base64"), (21, "base64")])
def test_non_ascii_threshold(count, want):
    p = new_part("text/plain")
    p.content = b"\x10" * count + b"A" * (100 - count)
    p.to_bytes()
    assert p.header.get("Content-Transfer-Encoding") == want


def test_select_transfer_encoding():
    assert select_transfer_encoding(b"", False) is TransferEncoding.SEVEN_BIT
    assert select_transfer_encoding(b"a\r\nb", False) is TransferEncoding.SEVEN_BIT
    assert select_transfer_encoding(b"a\r\nb", True) is TransferEncoding.BASE64


def test_encode_writes_to_stream():
    p = new_part("text/plain")
    out = io.BytesIO()
    p.encode(out)
    assert out.getvalue() == b"Content-Type: text/plain\r\n"


def test_tree_matching():
    root = new_part("multipart/mixed")
    a = new_part("text/plain")
    b = new_part("image/png")
    root.add_child(a)
    root.add_child(b)
    assert [p.content_type for p in root.depth_match_all(lambda p: True)] == [
        "multipart/mixed", "text/plain", "image/png"]
    assert root.depth_match_first(lambda p: p.content_type == "image/png") is b
    assert b.parent is root
    assert list(root.children()) == [a, b]
    assert root.depth_match_first(lambda p: False) is None


def test_is_text():
    assert Part().is_text() is True
    assert new_part("multipart/mixed").is_text() is True
    assert new_part("image/png").is_text() is False