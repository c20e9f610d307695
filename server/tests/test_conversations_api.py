"""REST surface: conversation creation, history, sending and read cursors."""
from pymongo.errors import AutoReconnect

from chat_app.repositories.conversation_repository import ConversationRepository


class FailingMemberships:
    """Membership collection whose writes fail while reads pass through."""

    def __init__(self, collection):
        self._collection = collection

    async def insert_many(self, *args, **kwargs):
        raise AutoReconnect("memberships unavailable")

    async def update_one(self, *args, **kwargs):
        raise AutoReconnect("memberships unavailable")

    def __getattr__(self, name):
        return getattr(self._collection, name)


def _break_memberships(patch):
    patch.setattr(
        ConversationRepository,
        "memberships",
        property(lambda repo: FailingMemberships(repo._db["memberships"])),
    )


def _direct(client, creator, other):
    res = client.post("/conversations/direct", json={"username": other.identity.username}, headers=creator.headers)
    assert res.status_code == 201
    return res.json()["conversationId"]


def _summary(client, account, conversation_id):
    res = client.get("/conversations", headers=account.headers)
    assert res.status_code == 200
    return next(s for s in res.json() if s["id"] == conversation_id)


def test_requests_without_identity_are_rejected(client):
    res = client.get("/conversations")
    assert res.status_code == 401
    assert res.json()["error"]["kind"] == "AuthRequired"

    res = client.get("/conversations", headers={"Authorization": "Bearer nope"})
    assert res.status_code == 401


def test_session_cookie_is_accepted(client, register):
    alice = register("alice", "alice")
    client.cookies.set("session", alice.token)
    try:
        assert client.get("/conversations").status_code == 200
    finally:
        client.cookies.clear()


def test_direct_message_read_flow(client, register):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    conversation_id = _direct(client, alice, bob)

    sent = client.post(f"/conversations/{conversation_id}/messages", json={"body": "oi"}, headers=alice.headers)
    assert sent.status_code == 201
    echo = sent.json()
    assert echo["body"] == "oi"
    assert echo["isMine"] is True
    assert echo["username"] == "alice"

    # sending never marks anything read for the sender
    assert _summary(client, alice, conversation_id)["unreadCount"] == 0
    assert _summary(client, bob, conversation_id)["unreadCount"] == 1

    page = client.get(f"/conversations/{conversation_id}/messages", params={"page": 1}, headers=bob.headers)
    assert page.status_code == 200
    data = page.json()
    assert len(data["messages"]) == 1
    assert data["messages"][0]["body"] == "oi"
    assert data["messages"][0]["isMine"] is False
    assert data["cursor"] == echo["id"]

    assert _summary(client, bob, conversation_id)["unreadCount"] == 0
    assert _summary(client, alice, conversation_id)["unreadCount"] == 0

    alice_page = client.get(f"/conversations/{conversation_id}/messages", headers=alice.headers).json()
    assert alice_page["messages"][0]["seen"] is True


def test_outsider_cannot_read_or_write(client, register):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    mallory = register("mallory", "mallory")
    conversation_id = _direct(client, alice, bob)
    client.post(f"/conversations/{conversation_id}/messages", json={"body": "secret"}, headers=alice.headers)

    res = client.get(f"/conversations/{conversation_id}/messages", headers=mallory.headers)
    assert res.status_code == 403
    assert res.json()["error"]["kind"] == "AccessDenied"
    assert "messages" not in res.json()

    res = client.post(f"/conversations/{conversation_id}/messages", json={"body": "hi"}, headers=mallory.headers)
    assert res.status_code == 403

    res = client.post(f"/conversations/{conversation_id}/read", headers=mallory.headers)
    assert res.status_code == 403


def test_unknown_conversation_is_404(client, register):
    alice = register("alice", "alice")
    assert client.get("/conversations/4242/messages", headers=alice.headers).status_code == 404
    res = client.post("/conversations/nowhere/messages", json={"body": "x"}, headers=alice.headers)
    assert res.status_code == 404
    assert res.json()["error"]["kind"] == "NotFound"


def test_duplicate_direct_conversation_conflicts(client, register, db):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    conversation_id = _direct(client, alice, bob)

    again = client.post("/conversations/direct", json={"userId": "alice"}, headers=bob.headers)
    assert again.status_code == 409
    body = again.json()["error"]
    assert body["kind"] == "Conflict"
    assert body["conversationId"] == conversation_id

    members = client.portal.call(db["memberships"].count_documents, {"conversation_id": conversation_id})
    assert members == 2


def test_direct_conversation_target_validation(client, register):
    alice = register("alice", "alice")
    res = client.post("/conversations/direct", json={"username": "alice"}, headers=alice.headers)
    assert res.status_code == 400
    assert res.json()["error"]["kind"] == "ValidationError"

    res = client.post("/conversations/direct", json={"username": "ghost"}, headers=alice.headers)
    assert res.status_code == 404

    res = client.post("/conversations/direct", json={}, headers=alice.headers)
    assert res.status_code == 400


def test_empty_body_is_rejected_and_nothing_is_stored(client, register, db):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    conversation_id = _direct(client, alice, bob)

    for body in ("", "   "):
        res = client.post(f"/conversations/{conversation_id}/messages", json={"body": body}, headers=alice.headers)
        assert res.status_code == 400
        assert res.json()["error"]["kind"] == "ValidationError"

    res = client.post(f"/conversations/{conversation_id}/messages", json={"body": "z" * 101}, headers=alice.headers)
    assert res.status_code == 400

    count = client.portal.call(db["messages"].count_documents, {"conversation_id": conversation_id})
    assert count == 0


def test_public_conversation_lifecycle(client, register):
    alice = register("alice", "alice")
    bob = register("bob", "bob")

    created = client.post("/conversations/public", json={"name": "general"}, headers=alice.headers)
    assert created.status_code == 201
    conversation_id = created.json()["conversationId"]
    assert created.json()["kind"] == "public"

    taken = client.post("/conversations/public", json={"name": "general"}, headers=bob.headers)
    assert taken.status_code == 409
    assert taken.json()["error"]["conversationId"] == conversation_id

    # visible in the directory but not readable until joined
    summary = _summary(client, bob, conversation_id)
    assert summary["isMember"] is False
    assert client.get("/conversations/general/messages", headers=bob.headers).status_code == 403

    joined = client.post("/conversations/general/members", headers=bob.headers)
    assert joined.status_code == 200
    assert joined.json() == {"conversationId": conversation_id, "joined": True}
    assert client.post("/conversations/general/members", headers=bob.headers).json()["joined"] is False

    sent = client.post("/conversations/general/messages", json={"body": "hello all"}, headers=bob.headers)
    assert sent.status_code == 201
    assert _summary(client, alice, conversation_id)["unreadCount"] == 1


def test_invalid_public_names(client, register):
    alice = register("alice", "alice")
    for name in ("", "ab", "12345", "x" * 51, "bad/name"):
        res = client.post("/conversations/public", json={"name": name}, headers=alice.headers)
        assert res.status_code == 400, name
        assert res.json()["error"]["kind"] == "ValidationError"


def test_direct_membership_cannot_be_joined(client, register):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    carol = register("carol", "carol")
    conversation_id = _direct(client, alice, bob)
    res = client.post(f"/conversations/{conversation_id}/members", headers=carol.headers)
    assert res.status_code == 403


def test_mark_read(client, register):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    conversation_id = _direct(client, alice, bob)

    # nothing from anyone else yet
    res = client.post(f"/conversations/{conversation_id}/read", headers=bob.headers)
    assert res.status_code == 404

    ids = []
    for body in ("one", "two", "three"):
        res = client.post(f"/conversations/{conversation_id}/messages", json={"body": body}, headers=alice.headers)
        ids.append(res.json()["id"])

    res = client.post(f"/conversations/{conversation_id}/read", json={"messageId": ids[0]}, headers=bob.headers)
    assert res.json() == {"conversationId": conversation_id, "cursor": ids[0]}
    assert _summary(client, bob, conversation_id)["unreadCount"] == 2

    res = client.post(f"/conversations/{conversation_id}/read", headers=bob.headers)
    assert res.json()["cursor"] == ids[2]

    res = client.post(f"/conversations/{conversation_id}/read", json={"messageId": ids[1]}, headers=bob.headers)
    assert res.json()["cursor"] == ids[2]

    res = client.post(f"/conversations/{conversation_id}/read", json={"messageId": 99999}, headers=bob.headers)
    assert res.status_code == 404

    # alice's own messages leave her cursor alone
    res = client.post(f"/conversations/{conversation_id}/read", json={"messageId": ids[2]}, headers=alice.headers)
    assert res.json()["cursor"] == 0


def test_history_pages(client, register, db, settings):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    conversation_id = _direct(client, alice, bob)
    for i in range(settings.page_size + 5):
        client.post(f"/conversations/{conversation_id}/messages", json={"body": f"m{i}"}, headers=alice.headers)

    first = client.get(f"/conversations/{conversation_id}/messages", params={"page": 1}, headers=bob.headers).json()
    second = client.get(f"/conversations/{conversation_id}/messages", params={"page": 2}, headers=bob.headers).json()
    assert len(first["messages"]) == settings.page_size
    assert len(second["messages"]) == 5
    ids = [m["id"] for m in first["messages"] + second["messages"]]
    assert ids == sorted(ids)
    assert second["cursor"] == ids[-1]

    # an older page never pulls the cursor back
    again = client.get(f"/conversations/{conversation_id}/messages", params={"page": 1}, headers=bob.headers).json()
    assert again["cursor"] == ids[-1]

    assert client.get(f"/conversations/{conversation_id}/messages", params={"page": 0}, headers=bob.headers).status_code == 400


def test_available_users_excludes_existing_direct_partners(client, register):
    alice = register("alice", "alice")
    bob = register("bob", "bob")
    register("carol", "carol")
    _direct(client, alice, bob)

    res = client.get("/conversations/users", headers=alice.headers)
    assert res.status_code == 200
    assert [u["username"] for u in res.json()] == ["carol"]


def test_failed_direct_membership_write_leaves_nothing_behind(client, register, db, monkeypatch):
    alice = register("alice", "alice")
    bob = register("bob", "bob")

    with monkeypatch.context() as patch:
        _break_memberships(patch)
        res = client.post("/conversations/direct", json={"username": "bob"}, headers=alice.headers)
    assert res.status_code == 503
    assert res.json()["error"]["kind"] == "TransientStoreError"
    assert client.portal.call(db["conversations"].count_documents, {}) == 0

    retry = client.post("/conversations/direct", json={"username": "bob"}, headers=alice.headers)
    assert retry.status_code == 201
    conversation_id = retry.json()["conversationId"]
    members = client.portal.call(db["memberships"].count_documents, {"conversation_id": conversation_id})
    assert members == 2

    sent = client.post(f"/conversations/{conversation_id}/messages", json={"body": "finally"}, headers=bob.headers)
    assert sent.status_code == 201


def test_failed_public_membership_write_releases_the_name(client, register, db, monkeypatch):
    alice = register("alice", "alice")

    with monkeypatch.context() as patch:
        _break_memberships(patch)
        res = client.post("/conversations/public", json={"name": "general"}, headers=alice.headers)
    assert res.status_code == 503
    assert client.portal.call(db["conversations"].count_documents, {"name": "general"}) == 0

    retry = client.post("/conversations/public", json={"name": "general"}, headers=alice.headers)
    assert retry.status_code == 201
    assert client.get("/conversations/general/messages", headers=alice.headers).status_code == 200


def test_odd_numeric_references_are_not_found(client, register):
    alice = register("alice", "alice")
    for ref in ("%C2%B2", "99999999999999999999", "0"):
        res = client.get(f"/conversations/{ref}/messages", headers=alice.headers)
        assert res.status_code == 404, ref
        assert res.json()["error"]["kind"] == "NotFound"

    res = client.post("/conversations/%C2%B2/messages", json={"body": "x"}, headers=alice.headers)
    assert res.status_code == 404
