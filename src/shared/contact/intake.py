"""
Contact submission intake pipeline.

Checks run in a fixed order and stop at the first rejection:
honeypot, required fields, email shape, field lengths, rate limit, delivery.
The cheap checks come first so malformed or spam submissions never consume
rate-limit budget, and the rate limit comes before the delivery call.
"""

import re
import logging
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Optional

from src.shared.contact.delivery import ContactDelivery, DeliveryStatus
from src.shared.contact.rate_limit import RateLimitLedger
from src.shared.contact.schemas import ContactSubmission

MAX_NAME_LENGTH = 100
MAX_MESSAGE_LENGTH = 5000
UNKNOWN_SOURCE = "unknown"

# Permissive on purpose: something@something.something, no spaces
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


class RejectionReason(str, Enum):
    SPAM_DETECTED = "spam_detected"
    MISSING_FIELD = "missing_field"
    INVALID_EMAIL = "invalid_email"
    FIELD_TOO_LONG = "field_too_long"
    RATE_LIMITED = "rate_limited"


class OutcomeKind(str, Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    DELIVERY_FAILED = "delivery_failed"


@dataclass(frozen=True)
class Outcome:
    """Result of handling one submission. Equality ignores `retry_after`."""

    kind: OutcomeKind
    reason: Optional[RejectionReason] = None
    field: Optional[str] = None
    retry_after: Optional[int] = dataclass_field(default=None, compare=False)
    delivery_status: Optional[DeliveryStatus] = None

    @classmethod
    def delivered(cls) -> "Outcome":
        return cls(OutcomeKind.DELIVERED, delivery_status=DeliveryStatus.SENT)

    @classmethod
    def rejected(cls, reason: RejectionReason, field: Optional[str] = None,
                 retry_after: Optional[int] = None) -> "Outcome":
        return cls(OutcomeKind.REJECTED, reason=reason, field=field, retry_after=retry_after)

    @classmethod
    def delivery_failed(cls, status: DeliveryStatus) -> "Outcome":
        return cls(OutcomeKind.DELIVERY_FAILED, delivery_status=status)

    def __repr__(self):
        if self.kind == OutcomeKind.REJECTED:
            detail = self.reason.value + (f":{self.field}" if self.field else "")
            return f"Outcome(rejected, {detail})"
        if self.kind == OutcomeKind.DELIVERY_FAILED:
            return f"Outcome(delivery_failed, {self.delivery_status.value})"
        return "Outcome(delivered)"


def is_valid_email(email: str) -> bool:
    """Basic syntactic check, not full RFC 5322 validation."""
    return EMAIL_PATTERN.fullmatch(email) is not None


def validate_submission(submission: ContactSubmission) -> Optional[Outcome]:
    """Run the stateless checks. Returns a rejection, or None if all pass."""
    if submission.honeypot:
        return Outcome.rejected(RejectionReason.SPAM_DETECTED)

    if not submission.name or not submission.email or not submission.message:
        return Outcome.rejected(RejectionReason.MISSING_FIELD)

    if not is_valid_email(submission.email):
        return Outcome.rejected(RejectionReason.INVALID_EMAIL)

    if len(submission.name) > MAX_NAME_LENGTH:
        return Outcome.rejected(RejectionReason.FIELD_TOO_LONG, field="name")

    if len(submission.message) > MAX_MESSAGE_LENGTH:
        return Outcome.rejected(RejectionReason.FIELD_TOO_LONG, field="message")

    return None


class IntakeHandler:
    """Validates, rate-limits and forwards contact submissions."""

    def __init__(self, delivery: ContactDelivery, ledger: Optional[RateLimitLedger] = None):
        self.delivery = delivery
        self.ledger = ledger if ledger is not None else RateLimitLedger()

    def handle(self, submission: ContactSubmission, source_id: Optional[str], now: float) -> Outcome:
        """
        Handle one submission from `source_id` at time `now` (seconds).

        Never raises: every failure becomes a rejected or delivery_failed
        outcome.
        """
        source_id = source_id or UNKNOWN_SOURCE

        rejection = validate_submission(submission)
        if rejection is not None:
            logging.warning(f"Contact submission from {source_id} rejected: {rejection.reason.value}")
            return rejection

        retry_after = self.ledger.check_and_record(source_id, now)
        if retry_after is not None:
            logging.warning(f"Contact submission from {source_id} rate limited (retry in {retry_after}s)")
            return Outcome.rejected(RejectionReason.RATE_LIMITED, retry_after=retry_after)

        try:
            status = self.delivery.deliver(submission)
        except Exception as e:
            logging.error(f"Contact delivery raised unexpectedly: {str(e)}", exc_info=True)
            return Outcome.delivery_failed(DeliveryStatus.FAILED)

        if status != DeliveryStatus.SENT:
            return Outcome.delivery_failed(status)

        logging.info(f"Contact submission from {source_id} delivered")
        return Outcome.delivered()
