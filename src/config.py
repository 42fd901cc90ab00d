"""
Forwarder configuration.

Read once from the Lambda environment by the handler; the pipeline only ever
sees the resulting ForwarderConfig.

Environment variables:
    FROM_EMAIL        SES verified address forwarded emails are sent from (required)
    TO_EMAIL          Recipient of forwarded emails (required)
    SUBJECT_PREFIX    Prefix added to forwarded subjects
    BLACK_LIST        Comma separated sender substrings to drop
    EMAIL_BUCKET      S3 bucket where SES stores raw emails
    EMAIL_KEY_PREFIX  S3 key prefix where SES stores raw emails
    FORWARD_MODE      "raw" (default) or "compose"
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

FORWARD_MODE_RAW = 'raw'
FORWARD_MODE_COMPOSE = 'compose'
FORWARD_MODES = (FORWARD_MODE_RAW, FORWARD_MODE_COMPOSE)


@dataclass(frozen=True)
class ForwarderConfig:
    """
    Configuration for the forwarding pipeline.

    Attributes:
        from_email: Forwarded emails are sent from this SES verified address
        to_email: Recipient address that receives forwarded emails
        subject_prefix: Prefix for forwarded subjects (None for no prefix)
        black_list: Ordered sender substrings; empty entries are ignored
        email_bucket: S3 bucket holding raw SES emails
        email_key_prefix: S3 key prefix of raw SES emails
        forward_mode: "raw" (send_raw_email) or "compose" (send_email)
    """
    from_email: str
    to_email: str
    subject_prefix: Optional[str] = None
    black_list: Tuple[str, ...] = ()
    email_bucket: Optional[str] = None
    email_key_prefix: str = ''
    forward_mode: str = FORWARD_MODE_RAW

    def __post_init__(self):
        if not self.from_email:
            raise ConfigurationError("from_email is required")
        if not self.to_email:
            raise ConfigurationError("to_email is required")
        if self.forward_mode not in FORWARD_MODES:
            raise ConfigurationError(
                f"forward_mode must be one of {FORWARD_MODES}, got: {self.forward_mode!r}"
            )

    def apply_subject_prefix(self, subject: str) -> str:
        """Return subject with the configured prefix."""
        return f"{self.subject_prefix or ''}{subject}"

    def storage_key(self, message_id: str) -> str:
        """S3 key under which SES stored the raw email for message_id."""
        return f"{self.email_key_prefix}{message_id}"


def parse_black_list(value: str) -> Tuple[str, ...]:
    """
    Split a comma separated blacklist, removing spaces.

    Example:
        >>> parse_black_list("fake@email.t, second@fake.email")
        ('fake@email.t', 'second@fake.email')
    """
    return tuple(rule.replace(' ', '') for rule in value.split(','))


def load_config(environ: Optional[Mapping[str, str]] = None) -> ForwarderConfig:
    """
    Build ForwarderConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        ForwarderConfig

    Raises:
        ConfigurationError: If FROM_EMAIL or TO_EMAIL is missing, or
            FORWARD_MODE is invalid
    """
    env = os.environ if environ is None else environ

    from_email = env.get('FROM_EMAIL', '').strip()
    to_email = env.get('TO_EMAIL', '').strip()
    if not from_email:
        raise ConfigurationError(
            "FROM_EMAIL environment variable is required but not set. "
            "Please configure this in your SAM template or Lambda environment."
        )
    if not to_email:
        raise ConfigurationError(
            "TO_EMAIL environment variable is required but not set. "
            "Please configure this in your SAM template or Lambda environment."
        )

    config = ForwarderConfig(
        from_email=from_email,
        to_email=to_email,
        subject_prefix=env.get('SUBJECT_PREFIX') or None,
        black_list=parse_black_list(env.get('BLACK_LIST', '')),
        email_bucket=env.get('EMAIL_BUCKET') or None,
        email_key_prefix=env.get('EMAIL_KEY_PREFIX', ''),
        forward_mode=env.get('FORWARD_MODE', FORWARD_MODE_RAW).strip().lower() or FORWARD_MODE_RAW
    )

    logger.info(
        f"Config loaded: from={config.from_email}, to={config.to_email}, "
        f"mode={config.forward_mode}, black_list_rules={len([r for r in config.black_list if r])}"
    )
    return config
