from datetime import datetime

import pytest
from sqlalchemy import update

from luna.database import AsyncSessionLocal
from luna.models import Post


def _captions(r):
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "ok"
    return [p["caption"] for p in body["posts"]]


@pytest.mark.asyncio
async def test_main_feed_is_own_plus_followed_newest_first(client, make_user, make_post, follow):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    await follow(bob, alice)

    await make_post(alice, "a1")
    await make_post(carol, "c1")
    await make_post(bob, "b1")
    await make_post(alice, "a2")

    r = await client.get("/feed/", headers=bob["headers"])
    assert _captions(r) == ["a2", "b1", "a1"]


@pytest.mark.asyncio
async def test_main_feed_without_following_shows_own_posts(client, make_user, make_post):
    alice = await make_user("Alice")
    await make_post(alice, "mine")
    r = await client.get("/feed/", headers=alice["headers"])
    assert _captions(r) == ["mine"]


@pytest.mark.asyncio
async def test_anonymous_main_feed_is_empty(client, make_user, make_post):
    alice = await make_user("Alice")
    await make_post(alice, "hello #x")
    assert _captions(await client.get("/feed/")) == []
    assert _captions(await client.get("/feed/", params={"tag": "x"})) == []


@pytest.mark.asyncio
async def test_invalid_token_is_treated_as_anonymous(client, make_user, make_post):
    alice = await make_user("Alice")
    await make_post(alice, "hello")
    r = await client.get("/feed/", headers={"Authorization": "Bearer garbage"})
    assert _captions(r) == []

    r = await client.get(
        "/feed/", params={"author": alice["id"]}, headers={"Authorization": "Bearer garbage"}
    )
    assert r.json() == {"status": "private", "posts": []}


@pytest.mark.asyncio
async def test_profile_feed_visibility(client, make_user, make_post, follow):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    await follow(bob, alice)
    await make_post(alice, "a1")
    await make_post(alice, "a2")

    params = {"author": alice["id"]}
    assert _captions(await client.get("/feed/", params=params, headers=alice["headers"])) == [
        "a2",
        "a1",
    ]
    assert _captions(await client.get("/feed/", params=params, headers=bob["headers"])) == [
        "a2",
        "a1",
    ]

    r = await client.get("/feed/", params=params, headers=carol["headers"])
    assert r.status_code == 200
    assert r.json() == {"status": "private", "posts": []}

    r = await client.get("/feed/", params=params)
    assert r.json()["status"] == "private"


@pytest.mark.asyncio
async def test_private_differs_from_empty(client, make_user, follow):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    await follow(bob, alice)

    params = {"author": alice["id"]}
    r = await client.get("/feed/", params=params, headers=bob["headers"])
    assert r.json() == {"status": "ok", "posts": []}
    r = await client.get("/feed/", params=params, headers=carol["headers"])
    assert r.json() == {"status": "private", "posts": []}


@pytest.mark.asyncio
async def test_unknown_author_is_404(client, make_user):
    alice = await make_user("Alice")
    r = await client.get("/feed/", params={"author": "nobody"}, headers=alice["headers"])
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_tag_filter_is_case_insensitive(client, make_user, make_post, follow):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await follow(bob, alice)
    await make_post(alice, "Loving #Sunsets")
    await make_post(alice, "just lunch")
    await make_post(bob, "more #sunsets")

    r = await client.get("/feed/", params={"tag": "SUNSETS"}, headers=bob["headers"])
    assert _captions(r) == ["more #sunsets", "Loving #Sunsets"]

    r = await client.get(
        "/feed/", params={"tag": "sunsets", "author": alice["id"]}, headers=bob["headers"]
    )
    assert _captions(r) == ["Loving #Sunsets"]

    r = await client.get("/feed/", params={"tag": "nothing"}, headers=bob["headers"])
    assert _captions(r) == []


@pytest.mark.asyncio
async def test_unfollow_removes_posts_from_feed(client, make_user, make_post, follow):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await follow(bob, alice)
    await make_post(alice, "a1")
    assert _captions(await client.get("/feed/", headers=bob["headers"])) == ["a1"]

    await client.delete(f"/users/{alice['id']}/follow", headers=bob["headers"])
    assert _captions(await client.get("/feed/", headers=bob["headers"])) == []


@pytest.mark.asyncio
async def test_long_hashtag_is_found_by_its_full_text(client, make_user, make_post):
    alice = await make_user("Alice")
    word = "long" * 30
    await make_post(alice, f"see #{word}")
    r = await client.get("/feed/", params={"tag": word}, headers=alice["headers"])
    assert _captions(r) == [f"see #{word}"]


@pytest.mark.asyncio
async def test_same_second_posts_stay_in_creation_order(client, make_user, make_post):
    alice = await make_user("Alice")
    for i in range(8):
        await make_post(alice, f"p{i}")
    await make_post(alice, "latest")

    # MySQL without fractional seconds would store these as one instant
    async with AsyncSessionLocal() as session:
        await session.execute(
            update(Post)
            .where(Post.caption != "latest")
            .values(created_at=datetime(2024, 1, 1, 12, 0, 0))
        )
        await session.commit()

    r = await client.get("/feed/", headers=alice["headers"])
    assert _captions(r) == ["latest"] + [f"p{i}" for i in range(8)]
