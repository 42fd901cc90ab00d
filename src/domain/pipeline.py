"""
Forwarding decision pipeline - core business logic.

This module decides what happens to one SES inbound notification:
1. Parse the notification from the Lambda event
2. Classify spam/virus verdicts
3. Check the sender against the blacklist
4. Load the raw email (embedded or from S3)
5. Build the outbound message (raw header rewrite or composed bodies)
6. Send it once through SES

Every run ends in exactly one PipelineOutcome: forwarded, skipped or failed.
No exceptions other than programming errors propagate out of the public
methods; failures are carried in the outcome.
"""

import dataclasses
import logging
import time
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from config import FORWARD_MODE_RAW, ForwarderConfig
from .blacklist import is_blacklisted
from .errors import MalformedInputError, UpstreamError
from .models import (
    ForwardMessage,
    InboundNotification,
    OutboundMessage,
    PipelineOutcome,
    RawOutboundMessage,
    SkipReason,
)
from .notification import parse_event
from .verdicts import classify
from services import email as email_service
from services import headers as header_service
from services import s3 as s3_service
from services import ses as ses_service

logger = logging.getLogger(__name__)


class ForwardingPipeline:
    """
    Handles the forward/skip decision for one notification at a time.

    Collaborators are injected so the runtime wiring owns them:
        mailer: module or object with send_email/send_raw_email
        storage: module or object with fetch_email(bucket, key)
        log: logger receiving all pipeline events
    """

    def __init__(
        self,
        config: ForwarderConfig,
        mailer: Any = None,
        storage: Any = None,
        log: Optional[logging.Logger] = None
    ):
        self.config = config
        self.mailer = mailer if mailer is not None else ses_service
        self.storage = storage if storage is not None else s3_service
        self.logger = log or logger

    def process_event(self, event: Dict[str, Any]) -> PipelineOutcome:
        """
        Parse a Lambda event and process the notification it carries.

        Args:
            event: Lambda event (SES, SNS, SQS or bare notification)

        Returns:
            PipelineOutcome (failed if the event cannot be parsed)
        """
        try:
            notification = parse_event(event)
        except MalformedInputError as e:
            self.logger.error(f"Invalid notification: {e}")
            return PipelineOutcome.failed('UNKNOWN', e)

        return self.process(notification)

    def process(self, notification: InboundNotification) -> PipelineOutcome:
        """
        Decide and act on a single notification.

        Args:
            notification: Parsed inbound notification

        Returns:
            PipelineOutcome: forwarded, skipped or failed
        """
        message_id = notification.message_id
        self.logger.info(
            f"Processing message {message_id}: source={notification.source}, "
            f"from={notification.original_from}, "
            f"subject={notification.common_headers.subject!r}"
        )

        try:
            verdicts = classify(notification.receipt, self.logger)
            if verdicts.rejected:
                reason = SkipReason.spam_or_virus(verdicts.failed_checks)
                self.logger.warning(f"Skipping {message_id}: {reason.describe()}")
                return PipelineOutcome.skipped(message_id, reason)

            rule = is_blacklisted(notification.original_sender, self.config.black_list)
            if rule is not None:
                reason = SkipReason.blacklisted(rule)
                self.logger.warning(
                    f"Skipping {message_id}: sender {notification.original_sender} "
                    f"matches blacklist rule {rule!r}"
                )
                return PipelineOutcome.skipped(message_id, reason)

            notification = self._load_raw_content(notification)
            message = self.build_message(notification)
            provider_message_id = self._send(message)

        except (MalformedInputError, UpstreamError) as e:
            self.logger.error(f"Failed to forward {message_id}: {e}", exc_info=True)
            return PipelineOutcome.failed(message_id, e)

        self.logger.info(f"Forwarded {message_id} to {self.config.to_email} as {provider_message_id}")
        return PipelineOutcome.forwarded(message_id, message, provider_message_id)

    def build_message(self, notification: InboundNotification) -> ForwardMessage:
        """
        Build the outbound message for the configured forward mode.

        Raises:
            MalformedInputError: If the raw email is missing or malformed
        """
        if notification.raw_content is None:
            raise MalformedInputError(
                f"No raw content for message {notification.message_id}: notification "
                f"does not embed it and no S3 location is known"
            )

        headers = notification.common_headers
        subject = self.config.apply_subject_prefix(headers.subject)

        if self.config.forward_mode == FORWARD_MODE_RAW:
            return header_service.rewrite_message(
                notification.raw_content,
                forward_from=self.config.from_email,
                forward_to=self.config.to_email,
                original_from=notification.original_from,
                original_to=notification.original_recipient,
                subject=subject,
                original_cc=headers.cc_addresses
            )

        bodies = email_service.extract_bodies(notification.raw_content)
        return OutboundMessage(
            source=self.config.from_email,
            to_addresses=[self.config.to_email],
            reply_to_addresses=[notification.original_from],
            subject=subject,
            text_body=bodies.text_body,
            html_body=bodies.html_body,
            cc_addresses=list(headers.cc_addresses),
            charset=bodies.charset
        )

    def _load_raw_content(self, notification: InboundNotification) -> InboundNotification:
        """Fetch the raw email from S3 when the notification does not embed it."""
        if notification.raw_content is not None:
            return notification

        location = notification.content_location
        if location is None and self.config.email_bucket:
            location = (self.config.email_bucket, self.config.storage_key(notification.message_id))
        if location is None:
            return notification

        bucket, key = location
        self.logger.info(f"Fetching raw email from: s3://{bucket}/{key}")
        raw_content = self.storage.fetch_email(bucket, key)
        return dataclasses.replace(notification, raw_content=raw_content)

    def _send(self, message: ForwardMessage) -> str:
        """Single send attempt; SES errors surface as UpstreamError."""
        start_time = time.time()
        try:
            if isinstance(message, RawOutboundMessage):
                provider_message_id = self.mailer.send_raw_email(message)
            else:
                provider_message_id = self.mailer.send_email(message)
        except (ClientError, BotoCoreError) as e:
            raise UpstreamError(f"Mail transfer failed: {e}") from e

        self.logger.info(f"Send completed: {time.time() - start_time:.3f}s")
        return provider_message_id
