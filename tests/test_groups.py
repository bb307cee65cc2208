import pytest


async def _create_group(client, user, name="Hikers", description="Weekend trails"):
    r = await client.post(
        "/groups/", json={"name": name, "description": description}, headers=user["headers"]
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_group_adds_creator(client, make_user):
    alice = await make_user("Alice")
    group = await _create_group(client, alice)
    assert group["created_by"]["user_id"] == alice["id"]
    assert [m["user_id"] for m in group["members"]] == [alice["id"]]

    r = await client.get("/groups/", headers=alice["headers"])
    assert [g["group_id"] for g in r.json()] == [group["group_id"]]


@pytest.mark.asyncio
async def test_group_names_are_unique_ignoring_case(client, make_user):
    alice = await make_user("Alice")
    await _create_group(client, alice, name="Hikers")
    r = await client.post("/groups/", json={"name": "hikers"}, headers=alice["headers"])
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_non_members_cannot_see_group(client, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    group = await _create_group(client, alice)
    r = await client.get(f"/groups/{group['group_id']}", headers=bob["headers"])
    assert r.status_code == 404
    assert (await client.get("/groups/", headers=bob["headers"])).json() == []


@pytest.mark.asyncio
async def test_invite_accept_flow(client, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    group = await _create_group(client, alice)
    gid = group["group_id"]

    r = await client.post(
        f"/groups/{gid}/invite", json={"email": bob["email"]}, headers=alice["headers"]
    )
    assert r.status_code == 201
    invite = r.json()["invite"]
    assert invite["status"] == "pending"
    assert invite["invitee"]["user_id"] == bob["id"]
    assert r.json()["notification_id"]

    # a second pending invite is refused
    r = await client.post(
        f"/groups/{gid}/invite", json={"email": bob["email"]}, headers=alice["headers"]
    )
    assert r.status_code == 400

    r = await client.get("/groups/invites", headers=bob["headers"])
    assert [i["invite_id"] for i in r.json()] == [invite["invite_id"]]

    notes = (await client.get("/notifications/", headers=bob["headers"])).json()
    assert notes[0]["type"] == "group_invite"

    r = await client.post(
        f"/groups/invites/{invite['invite_id']}/respond",
        json={"action": "accept"},
        headers=bob["headers"],
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Invite accepted successfully"

    r = await client.get(f"/groups/{gid}", headers=bob["headers"])
    assert r.status_code == 200
    assert {m["user_id"] for m in r.json()["members"]} == {alice["id"], bob["id"]}

    r = await client.post(
        f"/groups/invites/{invite['invite_id']}/respond",
        json={"action": "decline"},
        headers=bob["headers"],
    )
    assert r.status_code == 400

    notes = (await client.get("/notifications/", headers=alice["headers"])).json()
    assert notes[0]["type"] == "group_invite_response"
    assert notes[0]["action"] == "accept"

    # already a member now
    r = await client.post(
        f"/groups/{gid}/invite", json={"email": bob["email"]}, headers=alice["headers"]
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_invite_decline(client, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    group = await _create_group(client, alice)

    r = await client.post(
        f"/groups/{group['group_id']}/invite",
        json={"email": bob["email"]},
        headers=alice["headers"],
    )
    invite_id = r.json()["invite"]["invite_id"]

    r = await client.post(
        f"/groups/invites/{invite_id}/respond",
        json={"action": "decline"},
        headers=bob["headers"],
    )
    assert r.json()["message"] == "Invite declined successfully"
    assert (await client.get("/groups/", headers=bob["headers"])).json() == []
    assert (await client.get("/groups/invites", headers=bob["headers"])).json() == []


@pytest.mark.asyncio
async def test_invite_rules(client, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    group = await _create_group(client, alice)
    gid = group["group_id"]

    r = await client.post(
        f"/groups/{gid}/invite", json={"email": carol["email"]}, headers=bob["headers"]
    )
    assert r.status_code == 403
    r = await client.post(
        f"/groups/{gid}/invite", json={"email": "ghost@lunamail.com"}, headers=alice["headers"]
    )
    assert r.status_code == 404

    r = await client.post(
        f"/groups/{gid}/invite", json={"email": bob["email"]}, headers=alice["headers"]
    )
    invite_id = r.json()["invite"]["invite_id"]
    # only the invitee may answer
    r = await client.post(
        f"/groups/invites/{invite_id}/respond",
        json={"action": "accept"},
        headers=carol["headers"],
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_member_removal(client, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    group = await _create_group(client, alice)
    gid = group["group_id"]

    for user in (bob, carol):
        r = await client.post(
            f"/groups/{gid}/invite", json={"email": user["email"]}, headers=alice["headers"]
        )
        await client.post(
            f"/groups/invites/{r.json()['invite']['invite_id']}/respond",
            json={"action": "accept"},
            headers=user["headers"],
        )

    # members cannot remove each other
    r = await client.delete(f"/groups/{gid}/members/{carol['id']}", headers=bob["headers"])
    assert r.status_code == 403

    # but can leave
    r = await client.delete(f"/groups/{gid}/members/{bob['id']}", headers=bob["headers"])
    assert r.status_code == 200

    # creator removes others
    r = await client.delete(f"/groups/{gid}/members/{carol['id']}", headers=alice["headers"])
    assert r.status_code == 200
    r = await client.delete(f"/groups/{gid}/members/{carol['id']}", headers=alice["headers"])
    assert r.status_code == 404

    r = await client.get(f"/groups/{gid}", headers=alice["headers"])
    assert [m["user_id"] for m in r.json()["members"]] == [alice["id"]]
