"""
Header rewriting of raw MIME messages for forwarding through SES.

The header block is parsed once into an ordered list of fields (folded
continuation lines stay with their field), the rewrite rules are applied in
a single pass producing a new list, and the result is serialized once. The
body is carried over byte for byte.

Rules applied per recipient:
1. From is replaced with "<display> via <local>" <recipient>
2. Reply-To pointing at the original sender is added if missing
3. Subject gets the configured prefix
4. To is replaced with the destination list
5. Cc is replaced with the event CC list (when there is one)
6. Return-Path, Sender, Message-ID, DKIM-Signature, List-Id and
   X-Forwarded-For are removed
7. List-Id (when the recipient has a domain) and X-Forwarded-For are
   appended
8. Everything else passes through unchanged and in order
"""

import logging
import re
from dataclasses import dataclass
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.utils import formataddr
from typing import List, Optional, Sequence, Tuple

from .addresses import domain_part, local_part, normalize
from .errors import RewriteError
from .models import ForwardRequest

logger = logging.getLogger(__name__)

CRLF = '\r\n'

# Surrogate escapes let non-UTF-8 header bytes survive the round trip
_HEADER_ENCODING = 'utf-8'
_HEADER_ERRORS = 'surrogateescape'

_FIELD_NAME = re.compile(r'^([!-9;-~]+)[ \t]*:')
_FIELD_PREFIX = re.compile(r'^[^:]*:[ \t]?')
_ANGLE_ADDRESS = re.compile(r'<([^>]+)>')
_ANGLE_PART = re.compile(r'<.*?>')
_FOLD = re.compile(r'\r?\n(?=[ \t])')

STRIPPED_FIELDS = frozenset([
    'return-path',
    'sender',
    'message-id',
    'dkim-signature',
    'list-id',
    'x-forwarded-for',
])

ORIGINAL_SENDER_NAME = 'Original Sender'


@dataclass(frozen=True)
class HeaderField:
    """
    One header field as it appeared in the message.

    Attributes:
        name: Field name, or None for a line that is not a field
        raw: Complete text of the field including continuation lines
             and line endings
    """
    name: Optional[str]
    raw: str

    @property
    def lname(self) -> str:
        return self.name.lower() if self.name else ''

    @property
    def value(self) -> str:
        """Unfolded, trimmed field value."""
        if self.name is None:
            return ''
        body = self.raw.split(':', 1)[1]
        return _FOLD.sub('', body).strip()


@dataclass(frozen=True)
class ParsedMessage:
    """
    A raw message split into header fields, separator and body.

    Attributes:
        headers: Header fields in original order
        separator: Blank line between header and body (empty if absent)
        body: Body bytes, untouched
        newline: Line ending used for generated fields
    """
    headers: Tuple[HeaderField, ...]
    separator: bytes
    body: bytes
    newline: str = CRLF

    def find(self, name: str) -> Optional[HeaderField]:
        """Return the first field called name (case-insensitive)."""
        lname = name.lower()
        for header in self.headers:
            if header.lname == lname:
                return header
        return None

    def has(self, name: str) -> bool:
        return self.find(name) is not None


def _split_lines(data):
    # Only LF ends a line; str.splitlines() would also break on \x0b, \x1c and friends
    nl = b'\n' if isinstance(data, bytes) else '\n'
    lines = data.split(nl)
    result = [line + nl for line in lines[:-1]]
    if lines[-1]:
        result.append(lines[-1])
    return result


def _parse_fields(text: str) -> Tuple[HeaderField, ...]:
    fields: List[List] = []
    for line in _split_lines(text):
        if line[:1] in (' ', '\t') and fields:
            fields[-1][1] += line
            continue
        match = _FIELD_NAME.match(line)
        fields.append([match.group(1) if match else None, line])
    return tuple(HeaderField(name=name, raw=raw) for name, raw in fields)


def parse_message(raw: bytes) -> ParsedMessage:
    """
    Split a raw MIME message into header fields and body.

    The first empty line separates header from body. Without one, the whole
    content is treated as header and the body is empty.

    Args:
        raw: Raw message bytes as stored by SES

    Returns:
        ParsedMessage: The parsed message

    Raises:
        RewriteError: If the input is not bytes
    """
    if isinstance(raw, str):
        raw = raw.encode(_HEADER_ENCODING, _HEADER_ERRORS)
    if not isinstance(raw, (bytes, bytearray)):
        raise RewriteError(f"Raw message must be bytes, got: {type(raw).__name__}")
    raw = bytes(raw)

    offset = 0
    separator = b''
    header_end = len(raw)
    for line in _split_lines(raw):
        if line in (b'\r\n', b'\n'):
            header_end = offset
            separator = line
            break
        offset += len(line)

    header_bytes = raw[:header_end]
    body = raw[header_end + len(separator):] if separator else b''

    first_line = raw.split(b'\n', 1)[0]
    newline = '\n' if b'\n' in raw and not first_line.endswith(b'\r') else CRLF
    headers = _parse_fields(header_bytes.decode(_HEADER_ENCODING, _HEADER_ERRORS))
    return ParsedMessage(headers=headers, separator=separator, body=body, newline=newline)


def serialize(message: ParsedMessage) -> bytes:
    """Join header fields, separator and body back into raw bytes."""
    parts = []
    for header in message.headers:
        raw = header.raw
        if not raw.endswith('\n'):
            raw += message.newline
        parts.append(raw)
    header_bytes = ''.join(parts).encode(_HEADER_ENCODING, _HEADER_ERRORS)
    return header_bytes + (message.separator or message.newline.encode('ascii')) + message.body


def extract_sender(from_field: Optional[HeaderField]) -> Tuple[str, str]:
    """
    Extract display text and address from a From field.

    The display text is the value without its <...> part, so a bare
    "From: user@example.com" keeps the address as display text.

    Returns:
        Tuple of (display text, normalized address); both empty if the
        field is missing or empty
    """
    if from_field is None:
        return '', ''
    value = from_field.value
    if not value:
        return '', ''

    match = _ANGLE_ADDRESS.search(value)
    address = normalize(match.group(1) if match else value)

    display = _ANGLE_PART.sub('', value, count=1).strip()
    if len(display) >= 2 and display.startswith('"') and display.endswith('"'):
        display = display[1:-1].replace('\\"', '"').replace('\\\\', '\\').strip()
    if '=?' in display:
        try:
            display = str(make_header(decode_header(display)))
        except (HeaderParseError, LookupError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Could not decode From display name, keeping it encoded: {e}")
    # Undecodable raw bytes cannot be re-encoded into the new From
    display = display.encode(_HEADER_ENCODING, _HEADER_ERRORS).decode(_HEADER_ENCODING, 'replace')
    return display, address


def format_from(display: str, sender_key: str) -> str:
    """
    Build the value of the rewritten From field.

    Args:
        display: Display text of the original sender
        sender_key: Verified address the forward is sent from

    Returns:
        str: '"<display> via <local>" <sender_key>'

    Raises:
        RewriteError: If a non-ASCII display name is combined with a
                      non-ASCII sender address
    """
    name = f"{display} via {local_part(sender_key)}"
    if name.isascii():
        quoted = name.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{quoted}" <{sender_key}>'
    try:
        return formataddr((name, sender_key), charset='utf-8')
    except UnicodeError as e:
        raise RewriteError(f"Cannot encode From for non-ASCII address {sender_key}: {e}") from e


def _field(name: str, value: str, newline: str) -> HeaderField:
    return HeaderField(name=name, raw=f"{name}: {value}{newline}")


def _prefix_subject(header: HeaderField, prefix: str) -> HeaderField:
    rest = _FIELD_PREFIX.sub('', header.raw, count=1)
    return HeaderField(name='Subject', raw=f"Subject: {prefix}{rest}")


def rewrite_message(
    message: ParsedMessage,
    request: ForwardRequest,
    subject_prefix: str = ''
) -> bytes:
    """
    Produce the raw message forwarded for one recipient.

    Args:
        message: Parsed original message (not modified)
        request: Recipient, destinations and CC list
        subject_prefix: Text prepended to the Subject (empty to keep it)

    Returns:
        bytes: Complete rewritten raw message

    Raises:
        RewriteError: If the message has no header fields or the request
                      has no destinations
    """
    if not any(h.name for h in message.headers):
        raise RewriteError("Message has no header fields")
    if not request.destinations:
        raise RewriteError(f"No destinations for {request.original_recipient}")

    newline = message.newline
    sender_key = request.sender_key
    display, sender_address = extract_sender(message.find('From'))

    replacements = {
        'from': _field('From', format_from(display, sender_key), newline),
        'to': _field('To', ','.join(request.normalized_destinations), newline),
    }
    if request.cc_recipients:
        cc_value = ','.join(normalize(cc) for cc in request.cc_recipients)
        replacements['cc'] = _field('Cc', cc_value, newline)

    headers: List[HeaderField] = []
    placed = set()
    for header in message.headers:
        lname = header.lname
        if lname in STRIPPED_FIELDS:
            continue
        if lname in replacements:
            # Single-instance fields: rewrite the first, drop duplicates
            if lname not in placed:
                headers.append(replacements[lname])
                placed.add(lname)
            continue
        if lname == 'subject' and subject_prefix:
            headers.append(_prefix_subject(header, subject_prefix))
            continue
        headers.append(header)

    for lname in ('from', 'to'):
        if lname not in placed:
            headers.append(replacements[lname])

    if not message.has('Reply-To'):
        if sender_address:
            headers.append(_field('Reply-To', f'"{ORIGINAL_SENDER_NAME}" <{sender_address}>', newline))
        else:
            logger.warning(
                f"Reply-To not added for {sender_key}: "
                f"From address could not be extracted"
            )

    if 'cc' in replacements and 'cc' not in placed:
        headers.append(replacements['cc'])

    # A recipient without a domain has nothing to build a list id from
    domain = normalize(domain_part(sender_key))
    if domain:
        headers.append(_field('List-Id', f"Forwarded emails via {domain} <bounce.{domain}>", newline))
    else:
        logger.warning(f"List-Id not added for {sender_key}: recipient has no domain")
    if sender_address:
        headers.append(_field('X-Forwarded-For', sender_address, newline))

    rewritten = ParsedMessage(
        headers=tuple(headers),
        separator=message.separator,
        body=message.body,
        newline=newline,
    )
    return serialize(rewritten)


def rewrite(
    raw: bytes,
    original_recipient: str,
    destinations: Sequence[str],
    cc_list: Sequence[str] = (),
    subject_prefix: str = ''
) -> bytes:
    """
    Parse a raw message and rewrite it for one recipient.

    Example:
        >>> raw = b"From: sender@example.com\\r\\nTo: x@y.com\\r\\n\\r\\nBody"
        >>> out = rewrite(raw, "x@y.com", ["f1@z.com"])
        >>> b"To: f1@z.com\\r\\n" in out
        True
    """
    request = ForwardRequest(
        original_recipient=original_recipient,
        destinations=tuple(destinations),
        cc_recipients=tuple(cc_list),
    )
    return rewrite_message(parse_message(raw), request, subject_prefix)
