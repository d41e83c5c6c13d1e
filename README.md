# mimeforge

A small library for working with MIME e-mail messages:

- compose messages with an immutable builder and encode them to bytes
  (`mimeforge.builder`, `mimeforge.part`),
- split a multipart body into its parts on a boundary (`mimeforge.boundary`),
- classify parts as text, attachment or multipart container by their
  headers (`mimeforge.detect`),
- read delivery status notifications, `multipart/report` (`mimeforge.dsn`),
- print a part tree as an indented outline (`mimeforge.markdown`).

It uses only the standard library.

## Installation

```
pip install mimeforge
```

## Composing a message

`MailBuilder` is a frozen dataclass: every method returns a new builder and
leaves the one it was called on unchanged, so a partly filled builder can be
shared and reused.

```python
from mimeforge.builder import MailBuilder

message = (
    MailBuilder()
    .with_from("Sender", "sender@example.com")
    .add_to("Reader", "reader@example.com")
    .add_cc("Copy", "copy@example.com")
    .with_subject("Quarterly figures")
    .with_text(b"The figures are attached.")
    .with_html(b"<p>The figures are <b>attached</b>.</p>")
    .add_attachment(b"a,b\n1,2\n", "text/csv", "figures.csv")
)

root = message.build()   # a mimeforge.part.Part
raw = root.to_bytes()
```

What `build()` produces depends on what was given: a single `text/plain` or
`text/html` part, wrapped in `multipart/alternative` when both are set, in
`multipart/related` when inlines or other parts were added, and in
`multipart/mixed` when attachments were added. The root carries
`MIME-Version`, `From`, `Subject`, `To`, `Cc`, `Reply-To` (when set), `Date`
(the current time unless `with_date` was used) and any headers added with
`with_header`.

`build()` raises `BuildError` when no From address is set and
`MissingRecipientError` (a `BuildError`) when there is no To, Cc or Bcc
recipient. `add_to`, `add_cc`, `add_bcc` and `add_reply_to` ignore an empty
address; `with_to`, `with_cc`, `with_bcc` and `with_reply_to` replace the whole
list with `Address` values.

Files can be added from disk with `add_file_attachment`, `add_file_inline`
and `add_file_other_part`; the content type is guessed from the file
extension and the base name is used as file name (and, for inlines and other
parts, as content ID). If reading a file fails, the builder keeps the first
`OSError` in its `error` field, ignores further file additions, and `build()`
raises that error. `rand_seed(seed)` makes the generated boundary strings
reproducible.

### Sending

Anything with a `send(reverse_path, recipients, message)` method satisfies
the `Sender` protocol:

```python
class Outbox:
    def send(self, reverse_path, recipients, message):
        print(reverse_path, recipients, len(message))

message.send(Outbox())
message.send_with_reverse_path(Outbox(), "bounces@example.com")
```

`send` uses the From address as the reverse path. The recipients are the To,
Cc and Bcc addresses in that order; Bcc addresses never appear in the
headers.

## Encoding parts by hand

```python
from mimeforge.part import new_part

part = new_part("text/plain")
part.content = "¡Hola, señor!".encode()
print(part.to_bytes().decode())
```

`Part.encode(writer)` writes to any binary stream; `to_bytes()` returns the
result. Headers are written in sorted order and folded at 76 columns. Text
content is written as 7bit or quoted-printable and gets `charset=utf-8` when
no charset is set; binary content, or text in which at least 20% of the bytes
are not printable ASCII, is written as base64 (`select_transfer_encoding`
makes that choice). Header values and file names that are not plain ASCII are
written as RFC 2047 encoded words. Multipart parts without a boundary get a
random one starting with `mimeforge-`.

Parts form a tree through `first_child`, `next_sibling` and `parent`;
`add_child`, `children()`, `depth_match_all(matcher)` and
`depth_match_first(matcher)` walk it. Headers live in a `MIMEHeader`, a
case-insensitive multi-value map with `get`, `get_all`, `set`, `add`,
`delete` and `copy`.

## Splitting multipart bodies

```python
import io
from mimeforge.boundary import BoundaryReader

body = b"preamble\r\n--frontier\r\npart one\r\n--frontier\r\npart two\r\n--frontier--\r\n"
reader = BoundaryReader(io.BytesIO(body), "frontier")
while reader.next():
    print(reader.read_all())     # b'part one', then b'part two'
```

`next()` skips the preamble and returns `False` after the closing boundary.
It raises `EOFError` when the input ends before a boundary, and
`NoBoundaryTerminatorError` when a line where a boundary was expected holds
something else. `read(size)` returns up to `size` bytes of the current part
and `b""` at its end.

## Classifying parts

`mimeforge.detect` offers `detect_multipart_message`, `detect_attachment_header`,
`detect_text_header` and `detect_binary_body`, all working on a part's
`Content-Type` and `Content-Disposition` headers, and `parse_media_type`, which
splits a header value into a lower-cased media type and a parameter dict.

## Delivery status notifications

`parse_report(part)` returns `None` unless the part's content type is
`multipart/report`. Otherwise it reads the explanation (text, HTML, or a
`multipart/alternative` of both), the `message/delivery-status` fields split
into per-message and per-recipient blocks, and the `message/rfc822` original
message, stopping at the first piece that is missing or of the wrong type.

```python
from mimeforge.dsn import is_failed, parse_report
from mimeforge.part import new_part

root = new_part("multipart/report")
explanation = new_part("text/plain")
explanation.content = b"The message could not be delivered.\n"
status = new_part("message/delivery-status")
status.content = (
    b"Reporting-MTA: dns; mx.example.com\n\n"
    b"Final-Recipient: rfc822;reader@example.com\n"
    b"Action: failed\n"
    b"Status: 5.0.0\n"
)
root.add_child(explanation)
root.add_child(status)

report = parse_report(root)
print(report.explanation.text)
print(is_failed(report.delivery_status.recipient_dsns[0]))   # True
```

`parse_delivery_status_fields` and `parse_delivery_status` can also be used on
a delivery-status body directly; malformed header lines raise `ValueError`.

## Showing the part tree

```python
import sys
from mimeforge.markdown import format_part

format_part(sys.stdout, root, "    ")
```

prints one line per part with its content type, disposition, file name and
error count, using `|--` and `` `-- `` connectors. The `Markdown` class
writes simple headings (`h1`, `h2`, `h3`) and lines (`printf`, `println`) to
a text stream.

## What it does not do

- It does not parse raw message bytes into a `Part` tree: there is no
  function that reads a whole message, decodes transfer encodings or converts
  character sets. Trees given to `parse_report`, `format_part` and the
  `detect` functions must be built by the caller (for example with
  `new_part` and `add_child`), while `BoundaryReader` only splits a body.
- It does not deliver mail itself; sending goes through a `Sender` you
  supply.
- It installs no command-line tools.

## Running the tests

```
pip install -e ".[test]"
pytest
```