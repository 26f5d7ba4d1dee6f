"""Tests for public and author keystroke replay."""

import pytest

from conftest import BASE_TS, make_events
from signify.errors import OwnerNotFound
from signify.models import DocumentCreate, OwnerRef
from signify.services.document_service import document_service
from signify.services.replay_service import replay_service
from signify.services.sequencer import sequencer

REPLAY_FIELDS = {
    "event_type",
    "key_code",
    "character",
    "cursor_position",
    "sequence_number",
    "timestamp",
}


async def _publish_with_events(session, user, total):
    document = await document_service.create(
        session, user.id, DocumentCreate(title="Long Read", content="<p>a long read</p>")
    )
    owner = OwnerRef.for_document(document.id)
    for start in range(0, total, 1000):
        events = sequencer.validate_events(owner, make_events(min(1000, total - start), start=start))
        await document_service.append_keystrokes(session, user.id, document.id, events)
    return await document_service.publish(session, user.id, document.id)


async def test_fifteen_hundred_events_paginate_at_one_thousand(session, user):
    document = await _publish_with_events(session, user, 1500)

    first = await replay_service.replay_post(session, document.public_slug, page=1)
    second = await replay_service.replay_post(session, document.public_slug, page=2)

    assert len(first.keystrokes) == 1000
    assert first.pagination.has_more is True
    assert first.pagination.per_page == 1000
    assert first.pagination.total_keystrokes == 1500
    assert len(second.keystrokes) == 500
    assert second.pagination.has_more is False
    assert second.keystrokes[0].sequence_number == 1000


async def test_replay_events_expose_whitelisted_fields_in_ms(session, user, published):
    page = await replay_service.replay_post(session, published.public_slug)

    event = page.keystrokes[0].model_dump()
    assert set(event) == REPLAY_FIELDS
    assert event["timestamp"] == BASE_TS
    assert page.keystrokes[1].timestamp == BASE_TS + 60


async def test_draft_is_not_publicly_replayable(session, user, draft):
    owner = OwnerRef.for_document(draft.id)
    events = sequencer.validate_events(owner, make_events(3))
    await document_service.append_keystrokes(session, user.id, draft.id, events)

    with pytest.raises(OwnerNotFound):
        await replay_service.replay_post(session, draft.slug)

    own = await replay_service.replay_own_document(session, user.id, draft.id)
    assert [k.sequence_number for k in own.keystrokes] == [0, 1, 2]


async def test_author_path_rejects_other_users(session, other_user, draft):
    with pytest.raises(OwnerNotFound):
        await replay_service.replay_own_document(session, other_user.id, draft.id)


async def test_unknown_verification_is_not_found(session):
    with pytest.raises(OwnerNotFound):
        await replay_service.replay_verification(session, "doesnotexist")


async def test_total_can_be_skipped(session, published):
    page = await replay_service.replay_post(session, published.public_slug, include_total=False)

    assert page.pagination.total_keystrokes is None
    assert len(page.keystrokes) == 40
