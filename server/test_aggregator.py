"""Tests for derived document and verification statistics."""

import pytest

from conftest import make_events
from signify.errors import AggregationInconsistency, ValidationError
from signify.models import OwnerRef, PasteEvents, VerificationStatus
from signify.services.aggregator import aggregator
from signify.services.document_service import document_service
from signify.services.sequencer import sequencer


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", 0),
        (None, 0),
        ("   \n\t ", 0),
        ("<p>hello world</p>", 2),
        ("<p>hello</p><p>world</p>", 2),
        ("one  two\nthree", 3),
        ("<p>un<em>believ</em>able</p>", 1),
        ("<p>a</p><p>b</p>", 2),
        ("line<br>break", 2),
    ],
)
def test_compute_word_count(text, expected):
    assert aggregator.compute_word_count(text) == expected


@pytest.mark.parametrize("words, minutes", [(0, 0), (1, 1), (200, 1), (201, 2), (1000, 5)])
def test_compute_reading_minutes(words, minutes):
    assert aggregator.compute_reading_minutes(words) == minutes


def test_negative_word_count_is_inconsistent():
    with pytest.raises(AggregationInconsistency):
        aggregator.compute_reading_minutes(-1)


@pytest.mark.parametrize(
    "paste, status",
    [
        (None, VerificationStatus.HUMAN_WRITTEN),
        ({}, VerificationStatus.HUMAN_WRITTEN),
        ({"occurred": True, "count": 2}, VerificationStatus.MIXED),
        ({"occurred": "true", "count": 1}, VerificationStatus.MIXED),
        ({"occurred": "false", "count": 3}, VerificationStatus.HUMAN_WRITTEN),
        ({"occurred": True, "count": 0}, VerificationStatus.HUMAN_WRITTEN),
        (PasteEvents(occurred=True, count=1), VerificationStatus.MIXED),
        ({"occurred": "yes", "count": 2}, VerificationStatus.HUMAN_WRITTEN),
        ({"occurred": 1, "count": 2}, VerificationStatus.HUMAN_WRITTEN),
        ({"occurred": "on", "count": 2}, VerificationStatus.HUMAN_WRITTEN),
        ({"occurred": "TRUE", "count": 2}, VerificationStatus.HUMAN_WRITTEN),
    ],
)
def test_derive_verification_status(paste, status):
    assert aggregator.derive_verification_status(paste) == status


def test_invalid_paste_metadata_is_validation_error():
    with pytest.raises(ValidationError) as excinfo:
        aggregator.derive_verification_status({"occurred": True, "count": -1})

    assert "paste.count" in excinfo.value.fields


async def test_keystroke_count_is_live(session, user, draft):
    owner = OwnerRef.for_document(draft.id)
    assert await aggregator.compute_keystroke_count(session, owner) == 0

    events = sequencer.validate_events(owner, make_events(6))
    await document_service.append_keystrokes(session, user.id, draft.id, events)

    assert await aggregator.compute_keystroke_count(session, owner) == 6


async def test_document_stats_recomputed_on_update_without_content_change(session, user, draft):
    owner = OwnerRef.for_document(draft.id)
    events = sequencer.validate_events(owner, make_events(3))
    await document_service.append_keystrokes(session, user.id, draft.id, events)

    stats = await aggregator.document_stats(session, owner, draft.content)

    assert stats.word_count == 2
    assert stats.reading_time_minutes == 1
    assert stats.keystroke_count == 3
