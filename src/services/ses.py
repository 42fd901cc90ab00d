"""
Amazon SES mail transfer.

One send attempt per forwarded email: the client is configured without
retries, and SES errors are raised as UpstreamError for the Lambda runtime
to handle.
"""

import logging
import os

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import UpstreamError
from domain.models import OutboundMessage, RawOutboundMessage

logger = logging.getLogger(__name__)

ses_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=30
)

# SES is regional; fall back to us-east-1 when running outside Lambda
region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-east-1'))

ses_client = boto3.client('ses', region_name=region, config=ses_config)
logger.info(f"SES client initialized: region={region}, connect=10s, read=30s, max_attempts=1")


def send_email(message: OutboundMessage) -> str:
    """
    Send a composed message with SES send_email.

    Args:
        message: Outbound message descriptor

    Returns:
        str: SES message id of the sent email

    Raises:
        UpstreamError: If SES rejects the request
    """
    logger.info(
        f"Sending email: source={message.source}, to={message.to_addresses}, "
        f"subject={message.subject!r}"
    )
    return _call('send_email', message.to_request())


def send_raw_email(message: RawOutboundMessage) -> str:
    """
    Send a reconstructed raw message with SES send_raw_email.

    Args:
        message: Raw outbound message

    Returns:
        str: SES message id of the sent email

    Raises:
        UpstreamError: If SES rejects the request
    """
    logger.info(
        f"Sending raw email: source={message.source}, destinations={message.destinations}, "
        f"size={len(message.data):,} bytes"
    )
    return _call('send_raw_email', message.to_request())


def _call(operation: str, request: dict) -> str:
    try:
        response = getattr(ses_client, operation)(**request)
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        error_message = e.response.get('Error', {}).get('Message', str(e))
        logger.error(
            f"SES {operation} failed: error_code={error_code}, "
            f"error_message={error_message}"
        )
        raise UpstreamError(f"SES {operation} failed ({error_code}): {error_message}") from e
    except BotoCoreError as e:
        logger.error(f"SES {operation} failed: {e}")
        raise UpstreamError(f"SES {operation} failed: {e}") from e

    message_id = response['MessageId']
    logger.info(f"SES accepted email: MessageId={message_id}")
    return message_id
