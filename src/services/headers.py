"""
Header rewriting for raw email forwarding.

SES only sends from verified identities, so a raw forward keeps the original
body but replaces the header block: From becomes the verified forwarding
address (keeping the original display name) and the original sender moves to
Reply-To.

Output header order:
    From, Reply-To, X-Original-To, To, [Cc], Subject,
    Content-Type, Content-Transfer-Encoding, MIME-Version

Bytes are decoded as Latin-1 so the original body round-trips unchanged.

Header names are matched case-insensitively, as RFC 5322 field names are, so
a "Content-type" or "MIME-version" line in the original is still copied.
"""

import logging
import re
from email.header import Header
from email.utils import formataddr, parseaddr
from typing import Iterable, List, Optional, Tuple

from domain.errors import MalformedInputError
from domain.models import RawOutboundMessage
from services.email import EMPTY_BODY_PLACEHOLDER

logger = logging.getLogger(__name__)

CRLF = '\r\n'
HEADER_BODY_SEPARATOR = CRLF + CRLF
BARE_LF = re.compile(r'(?<!\r)\n')

# Copied verbatim from the original, in this order
MIME_HEADERS = ('Content-Type', 'Content-Transfer-Encoding', 'MIME-Version')


def rewrite_message(
    raw_content: bytes,
    forward_from: str,
    forward_to: str,
    original_from: str,
    original_to: str,
    subject: str,
    original_cc: Optional[Iterable[str]] = None
) -> RawOutboundMessage:
    """
    Build the raw outbound message for SES send_raw_email.

    Args:
        raw_content: Original raw email
        forward_from: Verified sender the email is forwarded from
        forward_to: Recipient the email is forwarded to
        original_from: Original From header value
        original_to: Address the original email was sent to
        subject: Subject line (already prefixed if configured)
        original_cc: CC addresses to use when the raw headers carry none

    Returns:
        RawOutboundMessage addressed to forward_to

    Raises:
        MalformedInputError: If a required MIME header cannot be found
    """
    data = rewrite(
        raw_content,
        forward_from=forward_from,
        original_from=original_from,
        original_to=original_to,
        subject=subject,
        original_cc=original_cc
    )
    return RawOutboundMessage(source=forward_from, destinations=[forward_to], data=data)


def rewrite(
    raw_content: bytes,
    forward_from: str,
    original_from: str,
    original_to: str,
    subject: str,
    original_cc: Optional[Iterable[str]] = None
) -> bytes:
    """
    Replace the header block of raw_content with the forwarding headers.

    Returns:
        bytes: New header block + CRLF + original body

    Raises:
        MalformedInputError: If raw_content is empty or a required MIME
            header (Content-Type, Content-Transfer-Encoding, MIME-Version)
            is missing
    """
    if not raw_content:
        raise MalformedInputError("Raw email content is empty")

    text = _normalize_line_endings(raw_content.decode('latin-1'))

    header_block, body_segments = split_message(text)
    original_headers = parse_header_lines(header_block)

    lines = [
        _to_wire(f"From: {_format_address((_display_name(original_from), forward_from))}"),
        _to_wire(f"Reply-To: {_encode_address(original_from)}"),
        _to_wire(f"X-Original-To: {_encode_address(original_to)}"),
        _to_wire(f"To: {_encode_address(original_to)}"),
    ]

    cc_line = find_header(original_headers, 'Cc')
    if cc_line is not None:
        lines.append(cc_line)
    else:
        cc = [address for address in (original_cc or []) if address]
        if cc:
            lines.append(_to_wire(f"Cc: {', '.join(_encode_address(a) for a in cc)}"))

    lines.append(_to_wire(f"Subject: {_encode_subject(subject)}"))

    for name in MIME_HEADERS:
        line = find_header(original_headers, name)
        if line is None:
            line = _search_body(body_segments, name)
        if line is None:
            raise MalformedInputError(f"Raw email has no {name} header")
        lines.append(line)

    body = HEADER_BODY_SEPARATOR.join(body_segments)
    if not body.strip():
        logger.warning(f"Raw email body is empty, using placeholder {EMPTY_BODY_PLACEHOLDER!r}")
        body = EMPTY_BODY_PLACEHOLDER

    new_headers = CRLF.join(lines) + CRLF
    logger.info(f"Rewrote headers: {len(original_headers)} original -> {len(lines)} forwarded")
    return (new_headers + CRLF + body).encode('latin-1')


def _normalize_line_endings(text: str) -> str:
    """Convert bare LF to CRLF when the header block is LF terminated."""
    first_line_end = text.find('\n')
    if first_line_end > 0 and text[first_line_end - 1] == '\r':
        return text
    return BARE_LF.sub(CRLF, text)


def split_message(text: str) -> Tuple[str, List[str]]:
    """Split at the first blank line into (header block, body segments)."""
    segments = text.split(HEADER_BODY_SEPARATOR)
    return segments[0], segments[1:]


def parse_header_lines(header_block: str) -> List[Tuple[str, str]]:
    """
    Parse a header block into (name, verbatim line) pairs.

    Folded continuation lines stay attached to their header, so a
    Content-Type split across lines keeps its boundary parameter. Lines
    without a colon (mbox "From " lines, MIME boundaries) are skipped.
    """
    headers: List[Tuple[str, str]] = []
    for line in header_block.split(CRLF):
        if line[:1] in (' ', '\t'):
            if headers:
                name, text = headers[-1]
                headers[-1] = (name, text + CRLF + line)
            continue
        name, sep, _ = line.partition(':')
        if not sep or not name.strip() or ' ' in name.strip():
            continue
        headers.append((name.strip(), line))
    return headers


def find_header(headers: List[Tuple[str, str]], name: str) -> Optional[str]:
    """Return the first verbatim line for header name (case-insensitive)."""
    wanted = name.lower()
    for header_name, line in headers:
        if header_name.lower() == wanted:
            return line
    return None


def _search_body(body_segments: List[str], name: str) -> Optional[str]:
    # Multipart emails often declare Content-Transfer-Encoding only on their
    # parts; the first part header carrying it is used.
    for segment in body_segments:
        line = find_header(parse_header_lines(segment), name)
        if line is not None:
            logger.info(f"Using {name} header found in message body")
            return line
    return None


def _display_name(original_from: str) -> str:
    name, address = parseaddr(original_from)
    return name or address or original_from.strip()


def _format_address(pair: Tuple[str, str]) -> str:
    return formataddr(pair, charset='utf-8')


def _encode_address(value: str) -> str:
    name, address = parseaddr(value)
    if not address or not address.isascii():
        # formataddr only takes ASCII addresses; EAI values go out as-is
        return _single_line(value)
    return _format_address((name, address))


def _encode_subject(subject: str) -> str:
    subject = _single_line(subject)
    if subject.isascii():
        return subject
    return Header(subject, charset='utf-8', header_name='Subject').encode(linesep=CRLF)


def _single_line(value: str) -> str:
    return value.replace('\r', ' ').replace('\n', ' ').strip()


def _to_wire(line: str) -> str:
    # Generated lines may hold non-Latin-1 characters (EAI addresses); these
    # go out as UTF-8 bytes. Verbatim lines are already in Latin-1 space.
    return line.encode('utf-8').decode('latin-1')
