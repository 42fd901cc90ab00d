"""
AWS Lambda handler forwarding SES inbound emails.

Thin orchestration layer that delegates to ForwardingPipeline.
Policy: spam/virus/blacklist skips return 200 (no retry). Malformed input and
SES/S3 failures are raised so Lambda's retry policy applies.
"""

import logging
import os
from typing import Dict, Any, Optional

from config import load_config
from domain.models import OutcomeKind
from domain.pipeline import ForwardingPipeline


def log_level(value: Optional[str]) -> int:
    """Map a LOG_LEVEL name to a logging level, defaulting to INFO."""
    level = logging.getLevelName((value or 'INFO').strip().upper())
    return level if isinstance(level, int) else logging.INFO


# Configure logging
logger = logging.getLogger()
logger.setLevel(log_level(os.environ.get('LOG_LEVEL')))

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Built on first invocation (reused across warm invocations)
_pipeline: Optional[ForwardingPipeline] = None


def get_pipeline() -> ForwardingPipeline:
    """Return the process-wide pipeline, loading configuration once."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ForwardingPipeline(load_config(), log=logging.getLogger('forwarder'))
    return _pipeline


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Forward one SES inbound email.

    Args:
        event: Lambda event carrying one SES notification
        context: Lambda context

    Returns:
        Dict with statusCode and body (SES message id or skip reason)

    Raises:
        MalformedInputError: If the notification or raw email is malformed
        UpstreamError: If SES or S3 fails
    """
    logger.info("=" * 70)
    logger.info("SES Email Forwarder - Started")
    logger.info("=" * 70)

    outcome = get_pipeline().process_event(event)

    if outcome.kind is OutcomeKind.FORWARDED:
        logger.info(f"✓ Forwarded message {outcome.message_id} as {outcome.provider_message_id}")
    elif outcome.kind is OutcomeKind.SKIPPED:
        logger.info(f"Skipped message {outcome.message_id}: {outcome.reason.describe()}")
    else:
        logger.error(f"⚠ Failed to forward message {outcome.message_id}: {outcome.error}")

    response = outcome.to_response()
    return response.to_dict()
