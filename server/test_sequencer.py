"""Tests for keystroke batch validation and timestamp resolution."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from conftest import BASE_TS, make_events
from signify.errors import ValidationError
from signify.models import OwnerKind, OwnerRef
from signify.services.sequencer import resolve_timestamp, sequencer


def test_owner_ref_requires_exactly_one_owner():
    with pytest.raises(ValueError):
        OwnerRef()
    with pytest.raises(ValueError):
        OwnerRef(document_id=uuid4(), verification_id=uuid4())

    owner = OwnerRef.for_verification(uuid4())
    assert owner.kind == OwnerKind.VERIFICATION
    assert str(owner).startswith("verification:")


def test_validate_batch_accepts_document_batch():
    document_id = uuid4()
    batch = sequencer.validate_batch({"document_id": str(document_id), "events": make_events(4)})

    assert batch.owner.document_id == document_id
    assert [e.sequence_number for e in batch.events] == [0, 1, 2, 3]


def test_validate_batch_rejects_missing_owner():
    with pytest.raises(ValidationError) as excinfo:
        sequencer.validate_batch({"events": make_events(1)})

    assert excinfo.value.status_code == 422
    assert "owner" in excinfo.value.fields


def test_validate_batch_rejects_both_owners():
    payload = {
        "document_id": str(uuid4()),
        "verification_id": str(uuid4()),
        "events": make_events(1),
    }
    with pytest.raises(ValidationError):
        sequencer.validate_batch(payload)


def test_field_errors_use_dotted_locations():
    events = make_events(5)
    events[3]["cursor_position"] = -1
    del events[1]["key_code"]

    with pytest.raises(ValidationError) as excinfo:
        sequencer.validate_batch({"document_id": str(uuid4()), "events": events})

    fields = excinfo.value.fields
    assert "events.3.cursor_position" in fields
    assert "events.1.key_code" in fields


def test_integer_fields_are_bounded_to_int32():
    events = make_events(2)
    events[0]["sequence_number"] = 2**31
    events[1]["cursor_position"] = 2**31

    with pytest.raises(ValidationError) as excinfo:
        sequencer.validate_events(OwnerRef.for_document(uuid4()), events)

    assert "events.0.sequence_number" in excinfo.value.fields
    assert "events.1.cursor_position" in excinfo.value.fields


def test_largest_int32_sequence_is_accepted():
    events = make_events(1)
    events[0]["sequence_number"] = 2**31 - 1

    accepted = sequencer.validate_events(OwnerRef.for_document(uuid4()), events)

    assert accepted[0].sequence_number == 2**31 - 1


def test_unknown_event_type_is_rejected():
    events = make_events(1)
    events[0]["event_type"] = "keypress"

    with pytest.raises(ValidationError) as excinfo:
        sequencer.validate_events(OwnerRef.for_document(uuid4()), events)

    assert "events.0.event_type" in excinfo.value.fields


def test_duplicate_sequence_inside_batch_is_validation_error():
    events = make_events(3)
    events[2]["sequence_number"] = 0

    with pytest.raises(ValidationError) as excinfo:
        sequencer.validate_events(OwnerRef.for_document(uuid4()), events)

    assert excinfo.value.fields == {
        "events.2.sequence_number": ["duplicates events.0.sequence_number"]
    }


def test_batch_over_limit_is_rejected_whole():
    with pytest.raises(ValidationError) as excinfo:
        sequencer.validate_events(OwnerRef.for_document(uuid4()), make_events(11), max_events=10)

    assert "events" in excinfo.value.fields


def test_empty_batch_is_rejected():
    with pytest.raises(ValidationError):
        sequencer.validate_batch({"document_id": str(uuid4()), "events": []})


def test_numeric_key_code_and_unsafe_character():
    events = make_events(1)
    events[0]["key_code"] = 65
    events[0]["character"] = "<"

    (event,) = sequencer.validate_events(OwnerRef.for_document(uuid4()), events)

    assert event.key_code == "65"
    assert event.character is None


def test_resolve_timestamp_units():
    anchor = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert resolve_timestamp(BASE_TS, anchor) == pytest.approx(BASE_TS / 1000)
    assert resolve_timestamp(1_700_000_000, anchor) == pytest.approx(1_700_000_000)
    assert resolve_timestamp(1500, anchor) == pytest.approx(anchor.timestamp() + 1.5)


def test_resolve_timestamp_treats_naive_anchor_as_utc():
    naive = datetime(2024, 1, 1)
    aware = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert resolve_timestamp(250, naive) == resolve_timestamp(250, aware)


def test_prepare_resolves_relative_offsets():
    anchor = datetime(2024, 1, 1, tzinfo=timezone.utc)
    events = sequencer.validate_events(
        OwnerRef.for_document(uuid4()), make_events(2, base_ts=0)
    )

    prepared = sequencer.prepare(events, anchor)

    assert prepared[0].timestamp == pytest.approx(anchor.timestamp())
    assert prepared[1].timestamp == pytest.approx(anchor.timestamp() + 0.06)
