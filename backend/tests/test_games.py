"""Catalog API: games, search popularity, rules with attribution, sources, legal status."""
from fastapi.testclient import TestClient


def _make_game(client: TestClient, name: str, **extra) -> dict:
    resp = client.post("/api/games", json={"name": name, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestGames:
    def test_create_and_get(self, client: TestClient, game):
        assert game["name"] == "Catan"
        assert game["search_count"] == 0
        resp = client.get(f"/api/games/{game['id']}")
        assert resp.status_code == 200
        assert resp.json()["category"] == "Strategy"

    def test_validation(self, client: TestClient):
        assert client.post("/api/games", json={"name": "  "}).status_code == 422
        assert client.post("/api/games", json={"name": "X", "min_players": 4, "max_players": 2}).status_code == 422
        assert client.post("/api/games", json={"name": "X", "complexity": 9}).status_code == 422

    def test_list_filters_and_paging(self, client: TestClient):
        _make_game(client, "Azul", category="Abstract")
        _make_game(client, "Brass", category="Economic")
        _make_game(client, "Carcassonne", category="Abstract", description="Tile laying")

        assert [g["name"] for g in client.get("/api/games", params={"category": "Abstract"}).json()] == [
            "Azul",
            "Carcassonne",
        ]
        assert [g["name"] for g in client.get("/api/games", params={"search": "tile"}).json()] == ["Carcassonne"]
        assert [g["name"] for g in client.get("/api/games", params={"limit": 1, "offset": 1}).json()] == ["Brass"]

    def test_update(self, client: TestClient, game):
        resp = client.put(f"/api/games/{game['id']}", json={"description": "Updated"})
        assert resp.status_code == 200
        assert resp.json()["description"] == "Updated"
        assert resp.json()["name"] == "Catan"

    def test_delete(self, client: TestClient, game):
        client.put(f"/api/games/{game['id']}/rules", json={"content": "Roll dice"})
        assert client.delete(f"/api/games/{game['id']}").status_code == 204
        assert client.get(f"/api/games/{game['id']}").status_code == 404

    def test_delete_with_scoresheet_409(self, client: TestClient, game):
        client.post(f"/api/games/{game['id']}/scoresheets/presets/dnd5e")
        assert client.delete(f"/api/games/{game['id']}").status_code == 409

    def test_missing_game_404(self, client: TestClient):
        assert client.get("/api/games/999").status_code == 404
        assert client.get("/api/games/999/rules").status_code == 404


class TestSearch:
    def test_search_counts_hits(self, client: TestClient, game):
        _make_game(client, "Ticket to Ride")

        hits = client.get("/api/search/games", params={"query": "cat"}).json()
        assert [g["name"] for g in hits] == ["Catan"]
        assert hits[0]["search_count"] == 1

        client.get("/api/search/games", params={"query": "catan"})
        popular = client.get("/api/games/popular").json()
        assert [(g["name"], g["search_count"]) for g in popular] == [("Catan", 2)]

    def test_search_matches_description_and_category(self, client: TestClient, game):
        _make_game(client, "Azul", category="Abstract", description="Tile drafting")

        assert [g["name"] for g in client.get("/api/search/games", params={"query": "TRADE"}).json()] == ["Catan"]
        assert [g["name"] for g in client.get("/api/search/games", params={"query": "strategy"}).json()] == ["Catan"]
        assert [g["name"] for g in client.get("/api/search/games", params={"query": "draft"}).json()] == ["Azul"]

    def test_empty_query_rejected(self, client: TestClient):
        assert client.get("/api/search/games", params={"query": " "}).status_code == 422


class TestRulesAndAttribution:
    def test_rules_roundtrip_with_attribution(self, client: TestClient, game):
        resp = client.put(
            f"/api/games/{game['id']}/rules",
            json={"content": "Build settlements", "components": ["board", "dice"], "setup": "Shuffle tiles"},
        )
        assert resp.status_code == 200, resp.text

        client.post(
            f"/api/games/{game['id']}/sources",
            json={"name": "Fan wiki", "url": "https://wiki.example.org/catan"},
        )
        client.post(
            f"/api/games/{game['id']}/sources",
            json={"name": "Publisher", "url": "https://publisher.example.com/catan", "is_official": True},
        )

        body = client.get(f"/api/games/{game['id']}/rules").json()
        assert body["game"]["players"] == "3-4"
        assert body["game"]["duration"] == "60-120 minutes"
        assert body["rules"]["components"] == ["board", "dice"]
        assert [s["name"] for s in body["sources"]] == ["Publisher", "Fan wiki"]
        assert body["attribution"]["message"]
        assert body["legal_status"]["can_play"] is False

    def test_rules_absent(self, client: TestClient, game):
        assert client.get(f"/api/games/{game['id']}/rules").json()["rules"] is None

    def test_duplicate_source_409(self, client: TestClient, game):
        payload = {"name": "Publisher", "url": "https://publisher.example.com/catan"}
        assert client.post(f"/api/games/{game['id']}/sources", json=payload).status_code == 201
        assert client.post(f"/api/games/{game['id']}/sources", json=payload).status_code == 409

    def test_source_url_must_be_http(self, client: TestClient, game):
        resp = client.post(f"/api/games/{game['id']}/sources", json={"name": "X", "url": "ftp://x"})
        assert resp.status_code == 422


class TestLegalStatus:
    def test_inferred_public_domain(self, client: TestClient, playable_game):
        body = client.get(f"/api/games/{playable_game['id']}/legal").json()
        assert body["can_play"] is True
        assert body["inferred"] is True
        assert body["license_info"] == "Public Domain"

    def test_inferred_copyrighted(self, client: TestClient, game):
        body = client.get(f"/api/games/{game['id']}/legal").json()
        assert body["can_play"] is False
        assert "Scoresheet functionality only" in body["play_restrictions"]

    def test_whole_word_match(self, client: TestClient):
        g = _make_game(client, "Mongoose Rally")
        assert client.get(f"/api/games/{g['id']}/legal").json()["can_play"] is False

    def test_role_playing_category(self, client: TestClient):
        g = _make_game(client, "Dungeon Delve", category="Role Playing")
        body = client.get(f"/api/games/{g['id']}/legal").json()
        assert body["can_play"] is True
        assert len(body["play_restrictions"]) == 3

    def test_stored_status_wins(self, client: TestClient, game):
        resp = client.put(
            f"/api/games/{game['id']}/legal",
            json={"can_play": True, "reason": "Licensed", "play_restrictions": ["Personal use"]},
        )
        assert resp.status_code == 200
        body = client.get(f"/api/games/{game['id']}/legal").json()
        assert body == {
            "can_play": True,
            "reason": "Licensed",
            "license_info": None,
            "copyright_owner": None,
            "play_restrictions": ["Personal use"],
            "inferred": False,
        }
