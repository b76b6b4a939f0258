from datetime import datetime, timedelta, timezone

import pytest

from rfqhub.common.enums import QuoteStatus, RFQStatus
from rfqhub.common.exceptions import ConflictError
from rfqhub.core.lifecycle.state_machine import (
    can_transition_quote,
    can_transition_rfq,
    expiry_from_timeline,
    require_quote_transition,
    require_rfq_transition,
    rfq_sources,
)

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_open_rfq_transitions():
    for source in ("active", "quoted"):
        assert can_transition_rfq(source, RFQStatus.ACCEPTED)
        assert can_transition_rfq(source, RFQStatus.CANCELLED)
        assert can_transition_rfq(source, RFQStatus.EXPIRED)
        assert not can_transition_rfq(source, RFQStatus.COMPLETED)


def test_accepted_rfq_can_only_complete_or_close_externally():
    assert can_transition_rfq("accepted", RFQStatus.COMPLETED)
    assert can_transition_rfq("accepted", RFQStatus.CLOSED_EXTERNAL)
    assert not can_transition_rfq("accepted", RFQStatus.ACCEPTED)
    assert not can_transition_rfq("accepted", RFQStatus.CANCELLED)


@pytest.mark.parametrize("status", ["completed", "cancelled", "expired", "closed_external"])
def test_terminal_rfq_states(status):
    with pytest.raises(ConflictError):
        require_rfq_transition(status, RFQStatus.ACCEPTED)


def test_quote_leaves_pending_exactly_once():
    assert can_transition_quote("pending", QuoteStatus.ACCEPTED)
    assert can_transition_quote("pending", QuoteStatus.REJECTED)
    for done in ("accepted", "rejected", "expired"):
        with pytest.raises(ConflictError):
            require_quote_transition(done, QuoteStatus.ACCEPTED)


def test_rfq_sources():
    assert rfq_sources(RFQStatus.ACCEPTED) == ["active", "quoted"]
    assert rfq_sources(RFQStatus.COMPLETED) == ["accepted"]
    assert rfq_sources(RFQStatus.ACTIVE) == []


@pytest.mark.parametrize(
    "timeline,days",
    [
        ("2 weeks", 14),
        ("week", 14),
        ("45 days", 45),
        ("3 months", 90),
        ("ASAP", 30),
        (None, 30),
    ],
)
def test_expiry_from_timeline(timeline, days):
    assert expiry_from_timeline(timeline, NOW) == NOW + timedelta(days=days)
