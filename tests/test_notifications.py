import pytest


async def _liked_post(client, make_user, make_post, follow):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await follow(bob, alice)
    post = await make_post(alice, "notify me")
    await client.post(f"/posts/{post['post_id']}/like", headers=bob["headers"])
    await client.post(
        f"/posts/{post['post_id']}/comments/", json={"text": "nice"}, headers=bob["headers"]
    )
    return alice, bob, post


@pytest.mark.asyncio
async def test_like_and_comment_notify_author(client, make_user, make_post, follow):
    alice, bob, post = await _liked_post(client, make_user, make_post, follow)

    r = await client.get("/notifications/", headers=alice["headers"])
    notes = r.json()
    assert [n["type"] for n in notes] == ["comment", "like"]
    assert all(n["actor"]["user_id"] == bob["id"] for n in notes)
    assert all(n["post_id"] == post["post_id"] for n in notes)

    r = await client.get("/notifications/unread-count", headers=alice["headers"])
    assert r.json() == {"count": 2}
    assert (await client.get("/notifications/", headers=bob["headers"])).json() == []


@pytest.mark.asyncio
async def test_own_activity_does_not_notify(client, make_user, make_post):
    alice = await make_user("Alice")
    post = await make_post(alice, "self")
    await client.post(f"/posts/{post['post_id']}/like", headers=alice["headers"])
    await client.post(
        f"/posts/{post['post_id']}/comments/", json={"text": "me"}, headers=alice["headers"]
    )
    assert (await client.get("/notifications/", headers=alice["headers"])).json() == []


@pytest.mark.asyncio
async def test_mark_read_and_delete(client, make_user, make_post, follow):
    alice, bob, _ = await _liked_post(client, make_user, make_post, follow)
    notes = (await client.get("/notifications/", headers=alice["headers"])).json()
    first, second = notes[0]["notification_id"], notes[1]["notification_id"]

    r = await client.put(f"/notifications/{first}/read", headers=bob["headers"])
    assert r.status_code == 403

    r = await client.put(f"/notifications/{first}/read", headers=alice["headers"])
    assert r.status_code == 200
    r = await client.get("/notifications/unread-count", headers=alice["headers"])
    assert r.json() == {"count": 1}

    r = await client.delete(f"/notifications/{second}", headers=alice["headers"])
    assert r.status_code == 200
    r = await client.delete(f"/notifications/{second}", headers=alice["headers"])
    assert r.status_code == 404

    notes = (await client.get("/notifications/", headers=alice["headers"])).json()
    assert [n["notification_id"] for n in notes] == [first]
    assert notes[0]["read"] is True


@pytest.mark.asyncio
async def test_notifications_require_auth(client):
    assert (await client.get("/notifications/")).status_code == 401
