"""
S3 access for raw emails stored by SES receipt rules.

Used when a notification does not embed the raw email (SES S3 action, or a
configured EMAIL_BUCKET).
"""

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import UpstreamError

logger = logging.getLogger(__name__)

# Configure S3 client with timeouts to prevent infinite hangs
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,  # 10 seconds to establish connection
    read_timeout=60      # 60 seconds max for reading response
)

# Initialize S3 client at module level (thread-safe, reused across invocations)
s3_client = boto3.client('s3', config=s3_config)
logger.info("S3 client initialized with timeouts: connect=10s, read=60s, max_attempts=1")


def fetch_email(bucket: str, key: str) -> bytes:
    """
    Fetch raw email content from S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key (SES uses the message id, optionally prefixed)

    Returns:
        bytes: The raw email content

    Raises:
        UpstreamError: If the object cannot be read

    Example:
        >>> raw = fetch_email(
        ...     bucket="my-ses-bucket",
        ...     key="inbound/0000014a2b3c4d5e-example"
        ... )
        >>> len(raw)
        12345
    """
    if not bucket or not key:
        raise UpstreamError(f"Invalid S3 location: bucket={bucket!r}, key={key!r}")

    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
        content = response['Body'].read()
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', '')
        if error_code == 'NoSuchKey':
            logger.error(f"S3 object not found: s3://{bucket}/{key}")
            raise UpstreamError(f"Email file not found in S3: {key}") from e
        elif error_code == 'NoSuchBucket':
            logger.error(f"S3 bucket not found: {bucket}")
            raise UpstreamError(f"S3 bucket not found: {bucket}") from e
        logger.error(f"Failed to fetch from S3 s3://{bucket}/{key}: {e}")
        raise UpstreamError(f"Failed to fetch s3://{bucket}/{key}: {e}") from e
    except BotoCoreError as e:
        logger.error(f"Failed to fetch from S3 s3://{bucket}/{key}: {e}")
        raise UpstreamError(f"Failed to fetch s3://{bucket}/{key}: {e}") from e

    logger.info(f"Fetched {len(content):,} bytes from s3://{bucket}/{key}")
    return content
