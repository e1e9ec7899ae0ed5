"""
HTTP API tests
HTTP接口测试
"""

import pytest
from httpx import AsyncClient, ASGITransport

from imposter.core.database import get_db
from imposter.main import app


@pytest.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _room_with_players(client, names=("Bea", "Cal", "Dee")):
    response = await client.post("/api/v1/rooms", json={
        "creator_name": "Ann",
        "config": {"num_players": max(len(names) + 1, 2), "num_imposters": 1, "categories": ["Food"]},
    })
    assert response.status_code == 201
    created = response.json()
    ids = [created["player_id"]]
    for name in names:
        joined = await client.post(f"/api/v1/rooms/{created['code']}/join", json={"display_name": name})
        assert joined.status_code == 201
        ids.append(joined.json()["player_id"])
    return created, ids


def _as(player_id):
    return {"X-Player-Id": player_id}


class TestRoomEndpoints:

    @pytest.mark.asyncio
    async def test_create_and_lookup(self, client):
        created, ids = await _room_with_players(client, names=())

        response = await client.get(f"/api/v1/rooms/{created['code'].lower()}")
        assert response.status_code == 200
        room = response.json()
        assert room["id"] == created["room_id"]
        assert room["phase"] == "waiting"
        assert room["creator_id"] == ids[0]

    @pytest.mark.asyncio
    async def test_unknown_room_is_404(self, client):
        response = await client.get("/api/v1/rooms/ZZZZZZ")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    @pytest.mark.asyncio
    async def test_invalid_config_is_400(self, client):
        response = await client.post("/api/v1/rooms", json={
            "creator_name": "Ann", "config": {"num_players": 3, "num_imposters": 3},
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_state_snapshot(self, client):
        created, ids = await _room_with_players(client)
        response = await client.get(f"/api/v1/rooms/{created['code']}/state")
        assert response.status_code == 200
        state = response.json()
        assert [p["id"] for p in state["players"]] == ids
        assert [p["turn_order"] for p in state["players"]] == [0, 1, 2, 3]
        assert state["round"] is None
        assert state["settings"]["clue_seconds"] == 30

    @pytest.mark.asyncio
    async def test_chat_round_trip(self, client):
        created, ids = await _room_with_players(client, names=("Bea",))
        code = created["code"]

        response = await client.post(f"/api/v1/rooms/{code}/messages", headers=_as(ids[1]),
                                     json={"message": "hello there"})
        assert response.status_code == 201
        assert response.json()["username"] == "Bea"

        blank = await client.post(f"/api/v1/rooms/{code}/messages", headers=_as(ids[0]),
                                  json={"message": "   "})
        assert blank.status_code == 400

        history = (await client.get(f"/api/v1/rooms/{code}/messages")).json()
        assert [m["message"] for m in history] == ["hello there"]


class TestGameEndpoints:
    """完整一轮流程"""

    @pytest.mark.asyncio
    async def test_full_round(self, client):
        created, ids = await _room_with_players(client)
        room_id = created["room_id"]
        host = ids[0]

        response = await client.post(f"/api/v1/games/{room_id}/start", headers=_as(ids[1]))
        assert response.status_code == 400

        response = await client.post(f"/api/v1/games/{room_id}/start", headers=_as(host))
        assert response.status_code == 200
        assert response.json()["phase"] == "role_reveal"

        response = await client.post(f"/api/v1/games/{room_id}/clues", headers=_as(ids[1]),
                                     json={"text": "too early"})
        assert response.status_code == 409

        response = await client.post(f"/api/v1/games/{room_id}/begin-clues", headers=_as(host))
        assert response.json()["phase"] == "clue_phase"

        for player_id in ids:
            response = await client.post(f"/api/v1/games/{room_id}/clues", headers=_as(player_id),
                                         json={"text": "tasty"})
            assert response.status_code == 201

        state = (await client.get(f"/api/v1/rooms/{created['code']}/state")).json()
        assert state["room"]["phase"] == "voting"
        assert [c["turn_order"] for c in state["clues"]] == [0, 1, 2, 3]

        targets = {ids[0]: ids[1], ids[1]: ids[0], ids[2]: ids[1], ids[3]: ids[1]}
        result = None
        for voter, target in targets.items():
            response = await client.post(f"/api/v1/games/{room_id}/votes", headers=_as(voter),
                                         json={"target_id": target})
            assert response.status_code == 201
            result = response.json()["result"]

        assert result["eliminated_id"] == ids[1]
        assert result["vote_counts"][ids[1]] == 3

        response = await client.post(f"/api/v1/games/{room_id}/resolve")
        assert response.json() == {"resolved": False, "result": None}

    @pytest.mark.asyncio
    async def test_missing_identity_header(self, client):
        created, _ = await _room_with_players(client)
        response = await client.post(f"/api/v1/games/{created['room_id']}/start")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_clue_is_409(self, client):
        created, ids = await _room_with_players(client)
        room_id = created["room_id"]
        await client.post(f"/api/v1/games/{room_id}/start", headers=_as(ids[0]))
        await client.post(f"/api/v1/games/{room_id}/begin-clues", headers=_as(ids[0]))

        first = await client.post(f"/api/v1/games/{room_id}/clues", headers=_as(ids[2]), json={"text": "a"})
        second = await client.post(f"/api/v1/games/{room_id}/clues", headers=_as(ids[2]), json={"text": "b"})
        assert first.status_code == 201
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_restart_with_stale_generation(self, client):
        created, ids = await _room_with_players(client)
        room_id = created["room_id"]
        await client.post(f"/api/v1/games/{room_id}/start", headers=_as(ids[0]))
        change = (await client.post(f"/api/v1/games/{room_id}/begin-clues", headers=_as(ids[0]))).json()

        first = await client.post(f"/api/v1/games/{room_id}/restart",
                                  params={"generation": change["generation"]}, headers=_as(ids[0]))
        second = await client.post(f"/api/v1/games/{room_id}/restart",
                                   params={"generation": change["generation"]}, headers=_as(ids[0]))

        assert first.json()["applied"] is True
        assert second.json()["applied"] is False
        assert second.json()["generation"] == change["generation"] + 1


class TestHealth:

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"
