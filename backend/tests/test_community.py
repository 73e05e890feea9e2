"""Favorites, series and multiplayer rooms."""
from fastapi.testclient import TestClient

from app.routes.multiplayer import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, generate_room_code


class TestFavorites:
    def test_add_list_remove(self, client: TestClient, game, playable_game):
        resp = client.post("/api/users/u1/favorites", json={"game_id": game["id"]})
        assert resp.status_code == 201
        assert resp.json()["name"] == "Catan"
        client.post("/api/users/u1/favorites", json={"game_id": playable_game["id"]})

        listed = client.get("/api/users/u1/favorites").json()
        assert {f["game_id"] for f in listed} == {game["id"], playable_game["id"]}
        assert client.get("/api/users/u2/favorites").json() == []

        assert client.delete(f"/api/users/u1/favorites/{game['id']}").status_code == 204
        assert [f["game_id"] for f in client.get("/api/users/u1/favorites").json()] == [playable_game["id"]]

    def test_adding_twice_returns_existing(self, client: TestClient, game):
        first = client.post("/api/users/u1/favorites", json={"game_id": game["id"]})
        second = client.post("/api/users/u1/favorites", json={"game_id": game["id"]})
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert len(client.get("/api/users/u1/favorites").json()) == 1

    def test_unknown_game_and_favorite(self, client: TestClient):
        assert client.post("/api/users/u1/favorites", json={"game_id": 999}).status_code == 404
        assert client.delete("/api/users/u1/favorites/999").status_code == 404


class TestSeries:
    def test_series_with_tournaments(self, client: TestClient, game):
        resp = client.post("/api/series", json={"name": "Winter League", "game_id": game["id"]})
        assert resp.status_code == 201, resp.text
        series = resp.json()
        assert series["status"] == "upcoming"

        for name in ("Week 1", "Week 2"):
            r = client.post(
                "/api/tournaments",
                json={"name": name, "game_id": game["id"], "series_id": series["id"]},
            )
            assert r.status_code == 201, r.text

        listed = client.get(f"/api/series/{series['id']}/tournaments").json()
        assert [t["name"] for t in listed] == ["Week 1", "Week 2"]
        assert client.get(f"/api/series/{series['id']}").json()["tournament_count"] == 2

    def test_series_game_must_match(self, client: TestClient, game, playable_game):
        series = client.post("/api/series", json={"name": "S", "game_id": game["id"]}).json()
        resp = client.post(
            "/api/tournaments",
            json={"name": "T", "game_id": playable_game["id"], "series_id": series["id"]},
        )
        assert resp.status_code == 422

    def test_update_status(self, client: TestClient, game):
        series = client.post("/api/series", json={"name": "S", "game_id": game["id"]}).json()
        assert client.put(f"/api/series/{series['id']}", json={"status": "active"}).json()["status"] == "active"
        assert client.put(f"/api/series/{series['id']}", json={"status": "paused"}).status_code == 422

    def test_delete_detaches_tournaments(self, client: TestClient, game):
        series = client.post("/api/series", json={"name": "S", "game_id": game["id"]}).json()
        t = client.post("/api/tournaments", json={"name": "T", "game_id": game["id"], "series_id": series["id"]}).json()
        assert client.delete(f"/api/series/{series['id']}").status_code == 204
        assert client.get(f"/api/tournaments/{t['id']}").json()["series_id"] is None


class TestMultiplayer:
    def test_room_code_shape(self):
        for _ in range(50):
            code = generate_room_code()
            assert len(code) == ROOM_CODE_LENGTH
            assert set(code) <= set(ROOM_CODE_ALPHABET)

    def test_create_and_join(self, client: TestClient, playable_game):
        resp = client.post(
            "/api/multiplayer/sessions",
            json={"game_id": playable_game["id"], "host_id": "u1", "players": [{"name": "Ann", "user_id": "u1"}], "max_players": 2},
        )
        assert resp.status_code == 201, resp.text
        room = resp.json()
        assert room["status"] == "waiting"
        assert room["players"][0]["is_host"] is True

        code = room["room_code"]
        joined = client.post(f"/api/multiplayer/sessions/{code.lower()}/join", json={"player_name": "Bob"})
        assert joined.status_code == 200
        assert [p["player_name"] for p in joined.json()["players"]] == ["Ann", "Bob"]

        full = client.post(f"/api/multiplayer/sessions/{code}/join", json={"player_name": "Cy"})
        assert full.status_code == 409

    def test_legal_restriction_403(self, client: TestClient, game):
        resp = client.post(
            "/api/multiplayer/sessions",
            json={"game_id": game["id"], "players": [{"name": "Ann"}]},
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["play_restrictions"]

    def test_game_player_limit(self, client: TestClient, playable_game):
        resp = client.post(
            "/api/multiplayer/sessions",
            json={"game_id": playable_game["id"], "players": [{"name": "Ann"}], "max_players": 5},
        )
        assert resp.status_code == 422

    def test_status_transitions(self, client: TestClient, playable_game):
        room = client.post(
            "/api/multiplayer/sessions",
            json={"game_id": playable_game["id"], "players": [{"name": "Ann"}, {"name": "Bob"}]},
        ).json()
        url = f"/api/multiplayer/sessions/{room['room_code']}"
        assert client.put(f"{url}/status", json={"status": "active"}).json()["status"] == "active"
        assert client.post(f"{url}/join", json={"player_name": "Late"}).status_code == 409
        assert client.put(f"{url}/status", json={"status": "waiting"}).status_code == 409
        assert client.put(f"{url}/status", json={"status": "finished"}).status_code == 200

    def test_unknown_room_404(self, client: TestClient):
        assert client.get("/api/multiplayer/sessions/ZZZZZZ").status_code == 404
