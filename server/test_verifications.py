"""Tests for extension verifications."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_events
from signify.errors import DuplicateSequence, ValidationError
from signify.models import OwnerRef, VerificationCreate, VerificationStatus
from signify.services.keystroke_service import keystroke_service
from signify.services.sequencer import sequencer
from signify.services.verification_service import PUBLIC_ID_LENGTH, verification_service


def _create(**overrides):
    data = {
        "platform": "twitter",
        "content_hash": "sha256:abc123",
        "keystroke_stats": {"total_keystrokes": 999, "duration_ms": 4000},
        "keystrokes": make_events(6),
    }
    data.update(overrides)
    return VerificationCreate.model_validate(data)


async def test_create_stores_keystrokes_and_overwrites_total(session, user):
    verification = await verification_service.create(session, user.id, _create())

    assert len(verification.public_id) == PUBLIC_ID_LENGTH
    assert verification.status == VerificationStatus.HUMAN_WRITTEN
    assert verification.keystroke_stats.total_keystrokes == 6
    assert verification.keystroke_stats.duration_ms == 4000
    owner = OwnerRef.for_verification(verification.id)
    assert await keystroke_service.count(session, owner) == 6


async def test_paste_makes_verification_mixed(session, user):
    verification = await verification_service.create(
        session, user.id, _create(paste_events={"occurred": "true", "count": 2})
    )

    assert verification.status == VerificationStatus.MIXED
    assert verification.paste.count == 2


async def test_unknown_platform_is_rejected(session, user):
    with pytest.raises(ValidationError) as excinfo:
        await verification_service.create(session, user.id, _create(platform="myspace"))

    assert "platform" in excinfo.value.fields


async def test_invalid_keystrokes_reject_the_verification(session, user):
    events = make_events(3)
    events[1]["sequence_number"] = -5

    with pytest.raises(ValidationError) as excinfo:
        await verification_service.create(session, user.id, _create(keystrokes=events))

    assert "events.1.sequence_number" in excinfo.value.fields


async def test_relative_timestamps_anchor_on_start(session, user):
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    verification = await verification_service.create(
        session,
        user.id,
        _create(
            keystrokes=make_events(2, base_ts=0),
            start_at=start,
            end_at=start + timedelta(seconds=90),
        ),
    )

    page = await keystroke_service.list_ordered(session, OwnerRef.for_verification(verification.id))
    assert page.events[0].timestamp == pytest.approx(start.timestamp())
    assert page.events[1].timestamp_ms == int(start.timestamp() * 1000) + 60
    assert verification.duration_seconds == 90


async def test_append_keystrokes_refreshes_total(session, user):
    verification = await verification_service.create(session, user.id, _create())
    owner = OwnerRef.for_verification(verification.id)

    events = sequencer.validate_events(owner, make_events(4, start=6))
    updated = await verification_service.append_keystrokes(session, user.id, verification.id, events)

    assert updated.keystroke_stats.total_keystrokes == 10


async def test_append_duplicate_to_verification(session, user):
    verification = await verification_service.create(session, user.id, _create())
    owner = OwnerRef.for_verification(verification.id)

    events = sequencer.validate_events(owner, make_events(2, start=5))
    with pytest.raises(DuplicateSequence):
        await verification_service.append_keystrokes(session, user.id, verification.id, events)

    assert await keystroke_service.count(session, owner) == 6
