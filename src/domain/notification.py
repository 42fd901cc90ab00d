"""
Typed deserialization of SES inbound notifications.

Accepted event shapes:
1. SES Lambda action: {"Records": [{"ses": {"mail": ..., "receipt": ...}}]}
2. SNS: {"Records": [{"Sns": {"Message": "<json notification>"}}]}
3. SQS: {"Records": [{"body": "<json notification or SNS envelope>"}]}
4. A bare notification: {"mail": ..., "receipt": ...}

Every field the pipeline relies on is validated here; a missing one raises
MalformedInputError instead of surfacing later as a KeyError.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional, Tuple

from .errors import MalformedInputError
from .models import CommonHeaders, InboundNotification, Receipt, ReceiptAction

logger = logging.getLogger(__name__)


def parse_event(event: Dict[str, Any]) -> InboundNotification:
    """
    Parse a Lambda event carrying exactly one SES notification.

    Args:
        event: Lambda event dict

    Returns:
        InboundNotification

    Raises:
        MalformedInputError: If the event or notification structure is invalid
    """
    return parse_notification(_unwrap_event(event))


def _unwrap_event(event: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(event, dict):
        raise MalformedInputError(f"Event must be a JSON object, got {type(event).__name__}")

    if 'Records' not in event:
        return event

    records = event['Records']
    if not isinstance(records, list) or len(records) != 1:
        count = len(records) if isinstance(records, list) else 'invalid'
        raise MalformedInputError(f"Expected exactly one record, got {count}")

    record = records[0]
    if not isinstance(record, dict):
        raise MalformedInputError("Event record must be a JSON object")

    if 'ses' in record:
        return record['ses']

    if 'Sns' in record:
        logger.info("Unwrapping SNS notification")
        sns = record['Sns'] if isinstance(record['Sns'], dict) else {}
        return _loads(sns.get('Message'), 'Sns.Message')

    if 'body' in record:
        body = _loads(record['body'], 'body')
        # Optional setup: SES -> SNS -> SQS
        if body.get('Type') == 'Notification' and 'Message' in body:
            logger.info("Unwrapping SNS message (SES -> SNS -> SQS)")
            return _loads(body['Message'], 'Message')
        return body

    raise MalformedInputError("Unsupported event record: no 'ses', 'Sns' or 'body' field")


def _loads(value: Any, name: str) -> Dict[str, Any]:
    if not isinstance(value, str):
        raise MalformedInputError(f"{name} must be a JSON string")
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"{name} is not valid JSON: {e}") from e
    if not isinstance(loaded, dict):
        raise MalformedInputError(f"{name} must decode to a JSON object")
    return loaded


def parse_notification(notification: Dict[str, Any]) -> InboundNotification:
    """
    Build an InboundNotification from an SES notification dict.

    Raises:
        MalformedInputError: If 'mail', 'receipt', the message id, the source
            or the spam/virus verdicts are missing
    """
    if not isinstance(notification, dict):
        raise MalformedInputError("SES notification must be a JSON object")

    mail = notification.get('mail')
    receipt = notification.get('receipt')
    if not isinstance(mail, dict) or not isinstance(receipt, dict):
        raise MalformedInputError("SES notification missing 'mail' or 'receipt' fields")

    message_id = _required_str(mail, 'messageId', 'mail')
    source = _required_str(mail, 'source', 'mail')

    parsed_receipt = _parse_receipt(receipt)
    raw_content = _decode_content(notification.get('content'), parsed_receipt.action.encoding)

    content_location: Optional[Tuple[str, str]] = None
    action = parsed_receipt.action
    if action.type == 'S3' and action.bucket_name and action.object_key:
        content_location = (action.bucket_name, action.object_key)

    return InboundNotification(
        timestamp=str(mail.get('timestamp', '')),
        source=source,
        message_id=message_id,
        destination=_as_tuple(mail.get('destination')),
        common_headers=_parse_common_headers(mail.get('commonHeaders') or {}),
        receipt=parsed_receipt,
        raw_content=raw_content,
        content_location=content_location
    )


def _required_str(container: Dict[str, Any], key: str, where: str) -> str:
    value = container.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedInputError(f"SES notification missing {where}.{key}")
    return value


def _status(receipt: Dict[str, Any], key: str) -> Optional[str]:
    verdict = receipt.get(key)
    if not isinstance(verdict, dict):
        return None
    status = verdict.get('status')
    return status if isinstance(status, str) else None


def _parse_receipt(receipt: Dict[str, Any]) -> Receipt:
    spam = _status(receipt, 'spamVerdict')
    virus = _status(receipt, 'virusVerdict')
    if spam is None:
        raise MalformedInputError("SES notification missing receipt.spamVerdict.status")
    if virus is None:
        raise MalformedInputError("SES notification missing receipt.virusVerdict.status")

    action = receipt.get('action')
    if not isinstance(action, dict):
        action = {}
    return Receipt(
        spam_verdict=spam,
        virus_verdict=virus,
        spf_verdict=_status(receipt, 'spfVerdict') or '',
        dkim_verdict=_status(receipt, 'dkimVerdict') or '',
        dmarc_verdict=_status(receipt, 'dmarcVerdict') or '',
        action=ReceiptAction(
            type=action.get('type', ''),
            bucket_name=action.get('bucketName'),
            object_key=action.get('objectKey'),
            encoding=action.get('encoding')
        )
    )


def _as_tuple(value: Any) -> Tuple[str, ...]:
    """Normalize a header that may be a list, a string or missing."""
    if isinstance(value, list):
        return tuple(str(v) for v in value if v)
    if isinstance(value, str) and value:
        return (value,)
    return ()


def _parse_common_headers(headers: Dict[str, Any]) -> CommonHeaders:
    return CommonHeaders(
        subject=headers.get('subject') or '',
        return_path=headers.get('returnPath') or '',
        from_addresses=_as_tuple(headers.get('from')),
        to_addresses=_as_tuple(headers.get('to')),
        cc_addresses=_as_tuple(headers.get('cc')),
        bcc_addresses=_as_tuple(headers.get('bcc')),
        date=headers.get('date') or '',
        message_id=headers.get('messageId') or ''
    )


def _decode_content(content: Any, encoding: Optional[str]) -> Optional[bytes]:
    """Decode the raw email embedded in SNS notifications."""
    if content is None:
        return None
    if not isinstance(content, str):
        raise MalformedInputError("Notification content must be a string")
    if encoding == 'BASE64':
        try:
            return base64.b64decode(''.join(content.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedInputError(f"Notification content is not valid base64: {e}") from e
    return content.encode('utf-8')
