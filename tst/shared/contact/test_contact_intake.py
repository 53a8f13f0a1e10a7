import pytest

from src.shared.contact.delivery import ContactDelivery, DeliveryStatus
from src.shared.contact.intake import (
    IntakeHandler,
    Outcome,
    OutcomeKind,
    RejectionReason,
    is_valid_email,
)
from src.shared.contact.rate_limit import RateLimitLedger
from src.shared.contact.schemas import ContactSubmission

NOW = 1_700_000_000.0


class FakeDelivery(ContactDelivery):
    def __init__(self, status=DeliveryStatus.SENT):
        self.status = status
        self.delivered = []

    def deliver(self, submission):
        self.delivered.append(submission)
        return self.status


class ExplodingDelivery(ContactDelivery):
    def deliver(self, submission):
        raise RuntimeError("transport blew up")


def make_submission(**overrides):
    data = {"name": "Jo", "email": "jo@x.com", "message": "hi", "honeypot": ""}
    data.update(overrides)
    return ContactSubmission(**data)


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def handler(delivery):
    return IntakeHandler(delivery)


def test_valid_submission_is_delivered(handler, delivery):
    outcome = handler.handle(make_submission(), "1.2.3.4", NOW)
    assert outcome == Outcome.delivered()
    assert len(delivery.delivered) == 1
    assert delivery.delivered[0].name == "Jo"


@pytest.mark.parametrize("overrides", [
    {},
    {"name": "", "email": "", "message": ""},
    {"email": "not-an-email"},
    {"name": "x" * 101},
])
def test_honeypot_wins_over_everything(handler, delivery, overrides):
    outcome = handler.handle(make_submission(honeypot="http://spam.example", **overrides), "1.2.3.4", NOW)
    assert outcome.kind == OutcomeKind.REJECTED
    assert outcome.reason == RejectionReason.SPAM_DETECTED
    assert delivery.delivered == []


@pytest.mark.parametrize("field", ["name", "email", "message"])
def test_missing_field_rejected(handler, field):
    outcome = handler.handle(make_submission(**{field: ""}), "1.2.3.4", NOW)
    assert outcome.reason == RejectionReason.MISSING_FIELD


def test_missing_field_checked_before_email_shape(handler):
    outcome = handler.handle(make_submission(email="bad", message=""), "1.2.3.4", NOW)
    assert outcome.reason == RejectionReason.MISSING_FIELD


def test_null_fields_count_as_missing(handler):
    submission = ContactSubmission.model_validate({"name": None, "email": "jo@x.com", "message": "hi"})
    outcome = handler.handle(submission, "1.2.3.4", NOW)
    assert outcome.reason == RejectionReason.MISSING_FIELD


def test_invalid_email_rejected(handler):
    outcome = handler.handle(make_submission(email="not-an-email"), "1.2.3.4", NOW)
    assert outcome.reason == RejectionReason.INVALID_EMAIL


@pytest.mark.parametrize("email", ["a@b.c", "first.last@sub.example.org", "a..b@c..d"])
def test_permissive_email_shape_accepts(email):
    assert is_valid_email(email)


@pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.d", "a@b.c\n", "@b.c", "a@@b.c"])
def test_email_shape_rejects(email):
    assert not is_valid_email(email)


def test_name_length_bounds(handler):
    assert handler.handle(make_submission(name="x" * 100), "a", NOW).kind == OutcomeKind.DELIVERED
    outcome = handler.handle(make_submission(name="x" * 101), "b", NOW)
    assert outcome.reason == RejectionReason.FIELD_TOO_LONG
    assert outcome.field == "name"


def test_message_length_bounds(handler):
    assert handler.handle(make_submission(message="x" * 5000), "a", NOW).kind == OutcomeKind.DELIVERED
    outcome = handler.handle(make_submission(message="x" * 5001), "b", NOW)
    assert outcome.reason == RejectionReason.FIELD_TOO_LONG
    assert outcome.field == "message"


def test_invalid_submissions_do_not_consume_rate_limit(handler):
    for _ in range(10):
        handler.handle(make_submission(email="nope"), "1.2.3.4", NOW)
    assert handler.ledger.count("1.2.3.4", NOW) == 0
    assert handler.handle(make_submission(), "1.2.3.4", NOW).kind == OutcomeKind.DELIVERED


def test_sixth_submission_in_window_is_rate_limited(handler, delivery):
    for i in range(5):
        outcome = handler.handle(make_submission(message=f"hi {i}"), "1.2.3.4", NOW + i)
        assert outcome.kind == OutcomeKind.DELIVERED

    outcome = handler.handle(make_submission(), "1.2.3.4", NOW + 10)
    assert outcome.reason == RejectionReason.RATE_LIMITED
    assert outcome.retry_after == 50
    assert len(delivery.delivered) == 5


def test_rate_limit_window_expires(handler):
    for _ in range(5):
        handler.handle(make_submission(), "1.2.3.4", NOW)
    assert handler.handle(make_submission(), "1.2.3.4", NOW + 60.001).kind == OutcomeKind.DELIVERED


def test_rate_limit_is_per_source(handler):
    for _ in range(5):
        handler.handle(make_submission(), "10.0.0.1", NOW)
    assert handler.handle(make_submission(), "10.0.0.1", NOW).reason == RejectionReason.RATE_LIMITED
    assert handler.handle(make_submission(), "10.0.0.2", NOW).kind == OutcomeKind.DELIVERED


def test_rate_limited_attempts_are_not_recorded(handler):
    for _ in range(5):
        handler.handle(make_submission(), "1.2.3.4", NOW)
    assert handler.handle(make_submission(), "1.2.3.4", NOW).reason == RejectionReason.RATE_LIMITED
    assert handler.handle(make_submission(), "1.2.3.4", NOW).reason == RejectionReason.RATE_LIMITED
    assert handler.ledger.count("1.2.3.4", NOW) == 5
    # Only the five admitted requests age out
    assert handler.handle(make_submission(), "1.2.3.4", NOW + 60).kind == OutcomeKind.DELIVERED


def test_empty_source_uses_unknown_key(handler):
    handler.handle(make_submission(), "", NOW)
    handler.handle(make_submission(), None, NOW)
    assert handler.ledger.count("unknown", NOW) == 2


@pytest.mark.parametrize("status", [DeliveryStatus.NOT_CONFIGURED, DeliveryStatus.FAILED])
def test_delivery_failure_is_reported(status):
    handler = IntakeHandler(FakeDelivery(status))
    outcome = handler.handle(make_submission(), "1.2.3.4", NOW)
    assert outcome == Outcome.delivery_failed(status)


def test_delivery_exception_does_not_escape():
    handler = IntakeHandler(ExplodingDelivery())
    outcome = handler.handle(make_submission(), "1.2.3.4", NOW)
    assert outcome.kind == OutcomeKind.DELIVERY_FAILED
    assert outcome.delivery_status == DeliveryStatus.FAILED


def test_delivery_failure_still_counts_against_rate_limit():
    handler = IntakeHandler(FakeDelivery(DeliveryStatus.FAILED), RateLimitLedger(max_requests=1))
    handler.handle(make_submission(), "1.2.3.4", NOW)
    assert handler.handle(make_submission(), "1.2.3.4", NOW).reason == RejectionReason.RATE_LIMITED


def test_outcomes_are_hashable_and_compare_by_value():
    limited = Outcome.rejected(RejectionReason.RATE_LIMITED, retry_after=30)
    assert limited == Outcome.rejected(RejectionReason.RATE_LIMITED, retry_after=5)
    assert len({Outcome.delivered(), Outcome.delivered(), limited}) == 2


def test_submission_with_filled_honeypot_skips_other_field_parsing(handler):
    submission = ContactSubmission.from_payload({"name": 5, "email": ["x"], "website": True})
    outcome = handler.handle(submission, "1.2.3.4", NOW)
    assert outcome.reason == RejectionReason.SPAM_DETECTED
