"""Contact route for the portfolio contact form."""

import time
import logging
from threading import Lock
from typing import Optional
from fastapi import APIRouter, HTTPException, status, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from src.shared.contact.config import get_settings
from src.shared.contact.delivery import DeliveryStatus, create_delivery
from src.shared.contact.intake import IntakeHandler, Outcome, OutcomeKind, RejectionReason
from src.shared.contact.schemas import ContactSubmission, ContactResponse

router = APIRouter(prefix="/api", tags=["contact"])

GENERIC_FAILURE = "Failed to send message"

REJECTION_MESSAGES = {
    RejectionReason.SPAM_DETECTED: "Spam detected",
    RejectionReason.MISSING_FIELD: "Missing required fields",
    RejectionReason.INVALID_EMAIL: "Invalid email address",
    RejectionReason.RATE_LIMITED: "Too many requests. Please try again later.",
}

FIELD_TOO_LONG_MESSAGES = {
    "name": "Name is too long",
    "message": "Message is too long",
}

_intake_handler: Optional[IntakeHandler] = None
_intake_handler_lock = Lock()


def get_intake_handler() -> IntakeHandler:
    """Process-wide intake handler, built from the environment on first use."""
    global _intake_handler
    if _intake_handler is None:
        with _intake_handler_lock:
            # One handler per process, so every request shares one ledger
            if _intake_handler is None:
                settings = get_settings()
                _intake_handler = IntakeHandler(create_delivery(settings))
                logging.info(f"Contact intake ready (delivery: {settings.delivery_mode})")
    return _intake_handler


def get_source_id(request: Request) -> str:
    """Get the client address used as the rate limiting key."""
    # Check for forwarded IP (from proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return "unknown"


def outcome_to_http_exception(outcome: Outcome) -> HTTPException:
    """Translate a non-delivered outcome into the error response to send."""
    if outcome.kind == OutcomeKind.REJECTED:
        if outcome.reason == RejectionReason.RATE_LIMITED:
            return HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"error": REJECTION_MESSAGES[RejectionReason.RATE_LIMITED]},
                headers={"Retry-After": str(outcome.retry_after or 1)},
            )
        if outcome.reason == RejectionReason.FIELD_TOO_LONG:
            message = FIELD_TOO_LONG_MESSAGES[outcome.field]
        else:
            message = REJECTION_MESSAGES[outcome.reason]
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": message})

    if outcome.delivery_status == DeliveryStatus.NOT_CONFIGURED:
        message = "Email service not configured"
    else:
        message = GENERIC_FAILURE
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"error": message})


@router.post("/contact", response_model=ContactResponse, status_code=status.HTTP_200_OK)
async def submit_contact_form(
    request: Request,
    handler: IntakeHandler = Depends(get_intake_handler),
):
    """
    Accept a contact form submission.

    Features:
    - Honeypot field (`website`) to catch bots
    - Required field, email and length validation
    - In-memory rate limiting: max 5 messages per minute per client address
    - Delivery to the log or over SMTP, depending on CONTACT_DELIVERY
    """
    try:
        payload = await request.json()
        submission = ContactSubmission.from_payload(payload)
    except (ValueError, ValidationError) as e:
        logging.error(f"Could not parse contact submission: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": GENERIC_FAILURE},
        )

    source_id = get_source_id(request)
    try:
        # Delivery may block on SMTP, keep it off the event loop
        outcome = await run_in_threadpool(handler.handle, submission, source_id, time.time())
    except Exception as e:
        logging.error(f"Error handling contact submission: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": GENERIC_FAILURE},
        )

    if outcome.kind != OutcomeKind.DELIVERED:
        raise outcome_to_http_exception(outcome)

    return ContactResponse(success=True)
