"""
MIME body extraction for forwarded emails.

This module turns the raw email SES received into the plain text and HTML
bodies used to compose the forwarded message.
"""

import logging
from email import policy
from email.message import Message
from email.parser import BytesParser
from typing import Optional

from domain.errors import ParseError
from domain.models import ExtractedBodies

logger = logging.getLogger(__name__)

# Used for both bodies when the original has no content
EMPTY_BODY_PLACEHOLDER = 'No message!'

FALLBACK_CHARSET = 'latin-1'


def extract_bodies(raw_content: Optional[bytes]) -> ExtractedBodies:
    """
    Parse raw email (MIME format) and extract the text and HTML bodies.

    With two or more top-level parts, part 0 is the plain text alternative
    and part 1 the HTML alternative. A flat (single part) email provides its
    body for both.

    Args:
        raw_content: Raw email bytes (headers + body)

    Returns:
        ExtractedBodies with text_body and html_body

    Raises:
        ParseError: If the content is empty or its multipart structure is broken

    Example:
        >>> bodies = extract_bodies(b"From: sender@example.com\\r\\n\\r\\nHello World")
        >>> bodies.text_body, bodies.html_body
        ('Hello World', 'Hello World')
    """
    if not raw_content:
        raise ParseError("Raw email content is empty")

    msg = BytesParser(policy=policy.default).parsebytes(raw_content)
    container = _alternative_container(msg)

    if container.is_multipart():
        parts = container.get_payload()
        if len(parts) >= 2:
            text_body = _decode_part(parts[0])
            html_body = _decode_part(parts[1])
        else:
            text_body = html_body = _decode_part(parts[0])
    else:
        text_body = html_body = _decode_part(container)

    if not text_body.strip() and not html_body.strip():
        logger.warning(f"Email body is empty, using placeholder {EMPTY_BODY_PLACEHOLDER!r}")
        text_body = html_body = EMPTY_BODY_PLACEHOLDER

    return ExtractedBodies(text_body=text_body, html_body=html_body)


def _alternative_container(msg: Message) -> Message:
    """
    Find the message whose direct parts are the body alternatives.

    Descends while the first part is itself multipart, so that
    multipart/mixed wrapping multipart/alternative yields the alternatives.
    """
    _check_structure(msg)
    container = msg
    while container.is_multipart():
        first = container.get_payload()[0]
        if not first.is_multipart():
            break
        _check_structure(first)
        container = first
    return container


def _check_structure(msg: Message) -> None:
    if msg.get_content_maintype() != 'multipart':
        return
    if not msg.is_multipart():
        # Missing boundary parameter or start boundary never found
        defects = ', '.join(type(d).__name__ for d in msg.defects) or 'no parts found'
        raise ParseError(f"Malformed multipart email ({msg.get_content_type()}): {defects}")
    if not msg.get_payload():
        raise ParseError(f"Multipart email has no parts ({msg.get_content_type()})")


def _decode_part(part: Message) -> str:
    """
    Decode a part's payload using its declared charset.

    Falls back to Latin-1 when the charset is absent, unknown, or does not
    match the bytes.
    """
    if part.is_multipart():
        subparts = part.get_payload()
        return _decode_part(subparts[0]) if subparts else ''

    payload = part.get_payload(decode=True) or b''

    charset = part.get_content_charset()
    if charset:
        try:
            return payload.decode(charset)
        except (LookupError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to decode part with charset {charset}: {e}, falling back to {FALLBACK_CHARSET}")

    return payload.decode(FALLBACK_CHARSET)
