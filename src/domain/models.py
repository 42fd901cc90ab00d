"""
Data models for the forwarding domain.

These type-safe data structures define clear contracts between components.
"""

from dataclasses import dataclass, field
from email.utils import parseaddr
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple, Union


class Verdict(Enum):
    """Status of a single SES receipt check."""
    PASS = 'PASS'
    FAIL = 'FAIL'
    GRAY = 'GRAY'
    PROCESSING_FAILED = 'PROCESSING_FAILED'
    UNKNOWN = 'UNKNOWN'

    @classmethod
    def from_status(cls, status: Optional[str]) -> 'Verdict':
        """Map an SES status string to a Verdict (exact, case-sensitive)."""
        for verdict in cls:
            if verdict.value == status:
                return verdict
        return cls.UNKNOWN


@dataclass(frozen=True)
class ReceiptAction:
    """
    The SES receipt rule action that delivered the notification.

    Attributes:
        type: Action type ("Lambda", "SNS", "S3")
        bucket_name: S3 bucket holding the raw email (S3 action only)
        object_key: S3 object key of the raw email (S3 action only)
        encoding: Encoding of embedded content ("UTF8" or "BASE64", SNS only)
    """
    type: str = ''
    bucket_name: Optional[str] = None
    object_key: Optional[str] = None
    encoding: Optional[str] = None


@dataclass(frozen=True)
class Receipt:
    """
    Verdicts attached to the inbound email by SES.

    spam_verdict and virus_verdict are required by the classifier; a None
    value means the field was absent from the notification.
    """
    spam_verdict: Optional[str]
    virus_verdict: Optional[str]
    spf_verdict: str = ''
    dkim_verdict: str = ''
    dmarc_verdict: str = ''
    action: ReceiptAction = field(default_factory=ReceiptAction)


@dataclass(frozen=True)
class CommonHeaders:
    """Headers SES extracts from every inbound email."""
    subject: str = ''
    return_path: str = ''
    from_addresses: Tuple[str, ...] = ()
    to_addresses: Tuple[str, ...] = ()
    cc_addresses: Tuple[str, ...] = ()
    bcc_addresses: Tuple[str, ...] = ()
    date: str = ''
    message_id: str = ''


@dataclass(frozen=True)
class InboundNotification:
    """
    One SES mail-receipt event.

    Attributes:
        timestamp: ISO 8601 time at which SES received the email
        source: Envelope MAIL FROM address
        message_id: SES message identifier (also the S3 key for S3 actions)
        destination: Envelope recipients
        common_headers: Parsed common headers
        receipt: Spam/virus/authentication verdicts
        raw_content: Full raw email (headers + body), None until loaded
        content_location: (bucket, key) of the raw email in S3, if stored there
    """
    timestamp: str
    source: str
    message_id: str
    destination: Tuple[str, ...]
    common_headers: CommonHeaders
    receipt: Receipt
    raw_content: Optional[bytes] = None
    content_location: Optional[Tuple[str, str]] = None

    @property
    def original_from(self) -> str:
        """
        Full original sender header value ("Name <addr>" when available).

        Priority: From header > returnPath > envelope source
        """
        if self.common_headers.from_addresses:
            return self.common_headers.from_addresses[0]
        return self.common_headers.return_path or self.source

    @property
    def original_sender(self) -> str:
        """Bare address of original_from, used for blacklist matching."""
        address = parseaddr(self.original_from)[1]
        return address or self.original_from.strip()

    @property
    def original_recipient(self) -> str:
        """Address the email was sent to (To header > envelope destination)."""
        if self.common_headers.to_addresses:
            return self.common_headers.to_addresses[0]
        if self.destination:
            return self.destination[0]
        return ''


@dataclass(frozen=True)
class ExtractedBodies:
    """
    Decoded bodies of an inbound email.

    Attributes:
        text_body: Plain text body
        html_body: HTML body
        charset: Charset the outbound bodies are tagged with
    """
    text_body: str
    html_body: str
    charset: str = 'UTF-8'


@dataclass(frozen=True)
class OutboundMessage:
    """
    Composed forward request for SES send_email.

    Attributes:
        source: Configured forwarding sender (from_email)
        to_addresses: Configured recipient ([to_email])
        reply_to_addresses: Original sender
        subject: Subject line, prefixed when configured
        text_body: Plain text body (empty to omit)
        html_body: HTML body (empty to omit)
        cc_addresses: CC addresses carried over from the original
        charset: Charset tag for subject and bodies
    """
    source: str
    to_addresses: List[str]
    reply_to_addresses: List[str]
    subject: str
    text_body: str
    html_body: str
    cc_addresses: List[str] = field(default_factory=list)
    charset: str = 'UTF-8'

    def to_request(self) -> Dict[str, Any]:
        """Build keyword arguments for SES send_email."""
        destination: Dict[str, Any] = {'ToAddresses': list(self.to_addresses)}
        if self.cc_addresses:
            destination['CcAddresses'] = list(self.cc_addresses)

        body: Dict[str, Any] = {}
        if self.html_body:
            body['Html'] = {'Charset': self.charset, 'Data': self.html_body}
        if self.text_body:
            body['Text'] = {'Charset': self.charset, 'Data': self.text_body}

        return {
            'Source': self.source,
            'Destination': destination,
            'ReplyToAddresses': list(self.reply_to_addresses),
            'Message': {
                'Subject': {'Charset': self.charset, 'Data': self.subject},
                'Body': body,
            },
        }


@dataclass(frozen=True)
class RawOutboundMessage:
    """
    Reconstructed raw email for SES send_raw_email.

    Attributes:
        source: Configured forwarding sender (from_email)
        destinations: Configured recipient ([to_email])
        data: Rewritten header block spliced onto the original body
    """
    source: str
    destinations: List[str]
    data: bytes

    def to_request(self) -> Dict[str, Any]:
        """Build keyword arguments for SES send_raw_email."""
        return {
            'Source': self.source,
            'Destinations': list(self.destinations),
            'RawMessage': {'Data': self.data},
        }


ForwardMessage = Union[OutboundMessage, RawOutboundMessage]


@dataclass(frozen=True)
class ClassifyResult:
    """Outcome of the verdict classifier; failed_checks is empty on accept."""
    failed_checks: Tuple[str, ...] = ()

    @property
    def rejected(self) -> bool:
        return bool(self.failed_checks)


class SkipKind(Enum):
    SPAM_OR_VIRUS = 'spam_or_virus'
    BLACKLISTED = 'blacklisted'


@dataclass(frozen=True)
class SkipReason:
    """Why a notification was deliberately not forwarded."""
    kind: SkipKind
    rule: Optional[str] = None
    failed_checks: Tuple[str, ...] = ()

    @classmethod
    def spam_or_virus(cls, failed_checks: Tuple[str, ...]) -> 'SkipReason':
        return cls(kind=SkipKind.SPAM_OR_VIRUS, failed_checks=tuple(failed_checks))

    @classmethod
    def blacklisted(cls, rule: str) -> 'SkipReason':
        return cls(kind=SkipKind.BLACKLISTED, rule=rule)

    def describe(self) -> str:
        """Human-readable reason for the Lambda response body."""
        if self.kind is SkipKind.BLACKLISTED:
            return f"Email skipped: sender matches blacklist rule '{self.rule}'"
        checks = ', '.join(self.failed_checks)
        return f"Email skipped: flagged as spam or virus ({checks})"


@dataclass(frozen=True)
class ForwardResponse:
    """Normalized Lambda response."""
    status_code: int
    body: str

    def to_dict(self) -> Dict[str, Any]:
        return {'statusCode': self.status_code, 'body': self.body}


class OutcomeKind(Enum):
    FORWARDED = 'forwarded'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass(frozen=True)
class PipelineOutcome:
    """
    Result of processing one notification.

    Exactly one of message/reason/error is set, matching kind.

    Attributes:
        kind: Terminal state reached
        message_id: SES message identifier of the inbound email
        message: Outbound message (FORWARDED)
        provider_message_id: SES message id of the forwarded email (FORWARDED)
        reason: Skip reason (SKIPPED)
        error: Failure cause (FAILED)
    """
    kind: OutcomeKind
    message_id: str = 'UNKNOWN'
    message: Optional[ForwardMessage] = None
    provider_message_id: Optional[str] = None
    reason: Optional[SkipReason] = None
    error: Optional[Exception] = None

    @classmethod
    def forwarded(
        cls,
        message_id: str,
        message: ForwardMessage,
        provider_message_id: str
    ) -> 'PipelineOutcome':
        return cls(
            kind=OutcomeKind.FORWARDED,
            message_id=message_id,
            message=message,
            provider_message_id=provider_message_id
        )

    @classmethod
    def skipped(cls, message_id: str, reason: SkipReason) -> 'PipelineOutcome':
        return cls(kind=OutcomeKind.SKIPPED, message_id=message_id, reason=reason)

    @classmethod
    def failed(cls, message_id: str, error: Exception) -> 'PipelineOutcome':
        return cls(kind=OutcomeKind.FAILED, message_id=message_id, error=error)

    def to_response(self) -> ForwardResponse:
        """
        Convert to a Lambda response.

        Skips are reported as 200 so the invoking framework does not retry a
        deliberate decision.

        Raises:
            The stored error for FAILED outcomes
        """
        if self.kind is OutcomeKind.FAILED:
            raise self.error
        if self.kind is OutcomeKind.SKIPPED:
            return ForwardResponse(status_code=200, body=self.reason.describe())
        return ForwardResponse(status_code=200, body=self.provider_message_id)

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.kind is OutcomeKind.FORWARDED:
            return (
                f"PipelineOutcome(forwarded, message_id={self.message_id}, "
                f"provider_message_id={self.provider_message_id})"
            )
        if self.kind is OutcomeKind.SKIPPED:
            return f"PipelineOutcome(skipped, message_id={self.message_id}, reason={self.reason.describe()})"
        return f"PipelineOutcome(failed, message_id={self.message_id}, error={self.error})"
