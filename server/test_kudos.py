"""Tests for kudos on published posts and the public user feed."""

from conftest import make_events
from signify.models import DocumentCreate, OwnerRef
from signify.services.document_service import document_service
from signify.services.kudos_service import VISITOR_COOKIE, kudos_service
from signify.services.sequencer import sequencer


async def publish(session, user, title):
    document = await document_service.create(
        session, user.id, DocumentCreate(title=title, content="<p>some words</p>")
    )
    events = sequencer.validate_events(OwnerRef.for_document(document.id), make_events(4))
    await document_service.append_keystrokes(session, user.id, document.id, events)
    return await document_service.publish(session, user.id, document.id)


# ==================== SERVICE ====================

async def test_give_counts_each_visitor_once(session, published):
    first = await kudos_service.give(session, published.id, "visitor-a")
    again = await kudos_service.give(session, published.id, "visitor-a")
    other = await kudos_service.give(session, published.id, "visitor-b")

    assert first == (1, True)
    assert again == (1, False)
    assert other == (2, True)
    refreshed = await document_service.get_owned(session, published.user_id, published.id)
    assert refreshed.kudos_count == 2


async def test_has_given(session, published):
    await kudos_service.give(session, published.id, "visitor-a")

    assert await kudos_service.has_given(session, published.id, "visitor-a") is True
    assert await kudos_service.has_given(session, published.id, "visitor-b") is False


def test_visitor_cookie_signature():
    signed = kudos_service.sign_visitor("abc")

    assert kudos_service.read_visitor(signed) == "abc"
    assert kudos_service.read_visitor("abc." + "0" * 64) is None
    assert kudos_service.read_visitor("abc") is None
    assert kudos_service.read_visitor(None) is None


async def test_public_listing_orders_by_kudos(session, user):
    older = await publish(session, user, "Older Favourite")
    newer = await publish(session, user, "Newer Post")
    await kudos_service.give(session, older.id, "visitor-a")

    listing = await document_service.list_public(session)

    assert [d.id for d in listing] == [older.id, newer.id]


# ==================== API ====================

async def test_kudos_endpoint_sets_cookie_and_is_idempotent(client, published):
    first = await client.post("/posts/published-piece/kudos")
    assert first.status_code == 201
    assert first.json() == {"kudos_count": 1, "given": True}
    assert VISITOR_COOKIE in first.headers["set-cookie"]

    again = await client.post("/posts/published-piece/kudos")
    assert again.status_code == 200
    assert again.json() == {"kudos_count": 1, "given": True}

    detail = await client.get("/posts/published-piece")
    assert detail.json()["kudos_count"] == 1
    assert detail.json()["kudos_given"] is True

    listing = await client.get("/posts")
    assert listing.json()[0]["kudos_count"] == 1


async def test_new_visitor_adds_to_count(client, published):
    await client.post("/posts/published-piece/kudos")
    client.cookies.clear()

    response = await client.post("/posts/published-piece/kudos")

    assert response.status_code == 201
    assert response.json()["kudos_count"] == 2


async def test_kudos_for_draft_or_missing_post_is_not_found(client, draft):
    missing = await client.post("/posts/never-existed/kudos")
    unpublished = await client.post(f"/posts/{draft.slug}/kudos")

    assert missing.status_code == unpublished.status_code == 404
    assert missing.json()["detail"] == "Post not found"


async def test_post_detail_without_cookie_has_not_given(client, published):
    response = await client.get("/posts/published-piece")

    assert response.json()["kudos_count"] == 0
    assert response.json()["kudos_given"] is False


# ==================== USER FEED ====================

async def test_user_feed_lists_verifications_newest_first(client, auth_headers, user):
    ids = []
    for paste in ({"occurred": False, "count": 0}, {"occurred": True, "count": 3}):
        response = await client.post(
            "/api/v1/verifications",
            json={
                "verification": {
                    "platform": "twitter",
                    "content_hash": "sha256:feed",
                    "paste_events": paste,
                    "keystrokes": make_events(3),
                }
            },
            headers=auth_headers,
        )
        ids.append(response.json()["id"])

    feed = await client.get(f"/u/{user.id}")

    assert feed.status_code == 200
    body = feed.json()
    assert body["user"]["display_name"] == "Ada Author"
    items = body["verifications"]
    assert {item["id"] for item in items} == set(ids)
    assert items[0]["created_at"] >= items[1]["created_at"]
    mixed = next(item for item in items if item["status"] == "mixed")
    assert mixed["paste"] == {"occurred": True, "count": 3}
    assert mixed["public_url"] == f"https://signify.test/p/{mixed['id']}"


async def test_user_feed_for_user_without_verifications(client, other_user):
    feed = await client.get(f"/u/{other_user.id}")

    assert feed.status_code == 200
    assert feed.json()["verifications"] == []


async def test_user_feed_unknown_user_is_not_found(client):
    response = await client.get("/u/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "detail": "User not found"}
