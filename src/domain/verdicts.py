"""
Spam and virus verdict classification.

Only an exact "FAIL" rejects. GRAY, PROCESSING_FAILED and unknown statuses
are let through.
"""

import logging
from typing import Optional

from .errors import MalformedInputError
from .models import ClassifyResult, Receipt, Verdict

logger = logging.getLogger(__name__)

BLOCKING_CHECKS = ('spamVerdict', 'virusVerdict')


def classify(receipt: Receipt, log: Optional[logging.Logger] = None) -> ClassifyResult:
    """
    Decide whether an inbound email must be dropped based on its SES verdicts.

    Args:
        receipt: Receipt verdicts of the notification
        log: Logger to report rejections on (defaults to module logger)

    Returns:
        ClassifyResult naming the failing checks (empty when accepted)

    Raises:
        MalformedInputError: If the spam or virus verdict is missing
    """
    log = log or logger
    statuses = {
        'spamVerdict': receipt.spam_verdict,
        'virusVerdict': receipt.virus_verdict,
    }

    for name in BLOCKING_CHECKS:
        if statuses[name] is None:
            raise MalformedInputError(f"Receipt is missing {name}")

    log.info(
        f"Verdicts: spam={receipt.spam_verdict}, virus={receipt.virus_verdict}, "
        f"spf={receipt.spf_verdict or '-'}, dkim={receipt.dkim_verdict or '-'}, "
        f"dmarc={receipt.dmarc_verdict or '-'}"
    )

    failed = tuple(
        name for name in BLOCKING_CHECKS
        if Verdict.from_status(statuses[name]) is Verdict.FAIL
    )
    for name in failed:
        log.warning(f"Rejecting email: {name} is FAIL")

    return ClassifyResult(failed_checks=failed)
