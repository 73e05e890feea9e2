"""Scoresheet templates and sessions over HTTP."""
import pytest
from fastapi.testclient import TestClient


def _template_payload(name: str = "Round Sheet") -> dict:
    return {
        "name": name,
        "subcategories": [
            {
                "name": "Summary",
                # reads fields declared in the next subcategory
                "fields": [{"field_id": "total", "name": "Total", "type": "calculation", "formula": "hits * 3 + bonus"}],
            },
            {
                "name": "Inputs",
                "fields": [
                    {"field_id": "hits", "name": "Hits", "type": "number", "min_value": 0, "max_value": 20},
                    {"field_id": "bonus", "name": "Bonus", "type": "number", "default_value": 1},
                    {"field_id": "note", "name": "Note", "type": "text"},
                    {"field_id": "mvp", "name": "MVP", "type": "checkbox"},
                ],
            },
        ],
    }


@pytest.fixture
def template(client: TestClient, game):
    resp = client.post(f"/api/games/{game['id']}/scoresheets", json=_template_payload())
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def sheet(client: TestClient, template):
    resp = client.post("/api/scoresheet-sessions", json={"template_id": template["id"], "player_name": "Ann"})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestTemplates:
    def test_create_preserves_order(self, template):
        assert [s["name"] for s in template["subcategories"]] == ["Summary", "Inputs"]
        inputs = template["subcategories"][1]
        assert [f["field_id"] for f in inputs["fields"]] == ["hits", "bonus", "note", "mvp"]
        assert [f["display_order"] for f in inputs["fields"]] == [0, 1, 2, 3]

    def test_get_and_list(self, client: TestClient, game, template):
        assert client.get(f"/api/scoresheets/{template['id']}").json()["name"] == "Round Sheet"
        listed = client.get(f"/api/games/{game['id']}/scoresheets").json()
        assert [t["id"] for t in listed] == [template["id"]]

    def test_unknown_template_404(self, client: TestClient):
        assert client.get("/api/scoresheets/999").status_code == 404

    def test_cycle_rejected(self, client: TestClient, game):
        payload = {
            "name": "Loop",
            "subcategories": [
                {
                    "name": "Main",
                    "fields": [
                        {"field_id": "a", "name": "A", "type": "calculation", "formula": "b + 1"},
                        {"field_id": "b", "name": "B", "type": "calculation", "formula": "a + 1"},
                    ],
                }
            ],
        }
        resp = client.post(f"/api/games/{game['id']}/scoresheets", json=payload)
        assert resp.status_code == 422
        assert "cycle" in resp.json()["detail"]

    def test_unknown_reference_rejected(self, client: TestClient, game):
        payload = _template_payload()
        payload["subcategories"][0]["fields"][0]["formula"] = "misses + 1"
        resp = client.post(f"/api/games/{game['id']}/scoresheets", json=payload)
        assert resp.status_code == 422

    def test_bad_field_type_rejected(self, client: TestClient, game):
        payload = _template_payload()
        payload["subcategories"][1]["fields"][0]["type"] = "slider"
        assert client.post(f"/api/games/{game['id']}/scoresheets", json=payload).status_code == 422

    def test_defaults(self, client: TestClient, template):
        body = client.get(f"/api/scoresheets/{template['id']}/defaults").json()
        assert body["values"] == {"total": 1, "hits": 0, "bonus": 1, "note": "", "mvp": False}
        assert body["formula_errors"] == {}

    def test_update_replaces_structure(self, client: TestClient, template):
        payload = {
            "name": "Simpler",
            "subcategories": [{"name": "Only", "fields": [{"field_id": "hits", "name": "Hits", "type": "number"}]}],
        }
        resp = client.put(f"/api/scoresheets/{template['id']}", json=payload)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["name"] == "Simpler"
        assert [s["name"] for s in body["subcategories"]] == ["Only"]

    def test_delete_in_use_409(self, client: TestClient, template, sheet):
        assert client.delete(f"/api/scoresheets/{template['id']}").status_code == 409
        client.delete(f"/api/scoresheet-sessions/{sheet['id']}")
        assert client.delete(f"/api/scoresheets/{template['id']}").status_code == 204

    def test_dnd5e_preset(self, client: TestClient, game):
        assert "dnd5e" in client.get("/api/scoresheets/presets").json()
        resp = client.post(f"/api/games/{game['id']}/scoresheets/presets/dnd5e")
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["is_official"] is True
        assert [s["name"] for s in body["subcategories"]][:2] == ["Character Information", "Ability Scores"]

        defaults = client.get(f"/api/scoresheets/{body['id']}/defaults").json()["values"]
        assert defaults["str_mod"] == 0
        assert defaults["passive_perception"] == 10

    def test_unknown_preset_404(self, client: TestClient, game):
        assert client.post(f"/api/games/{game['id']}/scoresheets/presets/nope").status_code == 404


class TestSessions:
    def test_created_with_defaults(self, sheet):
        assert sheet["status"] == "active"
        assert sheet["player_name"] == "Ann"
        assert sheet["values"]["total"] == 1

    def test_field_edit_recomputes_forward_reference(self, client: TestClient, sheet):
        resp = client.patch(f"/api/scoresheet-sessions/{sheet['id']}/fields/hits", json={"value": 4})
        assert resp.status_code == 200, resp.text
        assert resp.json()["values"]["total"] == 13

        # persisted
        assert client.get(f"/api/scoresheet-sessions/{sheet['id']}").json()["values"]["total"] == 13

    def test_field_edit_validation(self, client: TestClient, sheet):
        url = f"/api/scoresheet-sessions/{sheet['id']}/fields"
        assert client.patch(f"{url}/hits", json={"value": 21}).status_code == 422
        assert client.patch(f"{url}/hits", json={"value": "four"}).status_code == 422
        assert client.patch(f"{url}/total", json={"value": 99}).status_code == 422
        assert client.patch(f"{url}/missing", json={"value": 1}).status_code == 404
        assert client.get(f"/api/scoresheet-sessions/{sheet['id']}").json()["values"]["hits"] == 0

    def test_overflowing_formula_does_not_break_edit(self, client: TestClient, game):
        payload = {
            "name": "Blowup",
            "subcategories": [
                {
                    "name": "Main",
                    "fields": [
                        {"field_id": "a", "name": "A", "type": "number"},
                        {"field_id": "big", "name": "Big", "type": "calculation", "formula": "a ** 400 / 3"},
                        {"field_id": "ok", "name": "OK", "type": "calculation", "formula": "a + 1"},
                    ],
                }
            ],
        }
        template = client.post(f"/api/games/{game['id']}/scoresheets", json=payload).json()
        sheet = client.post("/api/scoresheet-sessions", json={"template_id": template["id"]}).json()

        resp = client.patch(f"/api/scoresheet-sessions/{sheet['id']}/fields/a", json={"value": 10})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["values"]["ok"] == 11
        assert "big" in body["formula_errors"]

    def test_bulk_save(self, client: TestClient, sheet):
        resp = client.put(
            f"/api/scoresheet-sessions/{sheet['id']}/values",
            json={"values": {"hits": 2, "bonus": 5, "note": "close game", "mvp": True, "total": 0}},
        )
        assert resp.status_code == 200, resp.text
        values = resp.json()["values"]
        assert values["total"] == 11
        assert values["note"] == "close game"

    def test_bulk_save_all_or_nothing(self, client: TestClient, sheet):
        resp = client.put(f"/api/scoresheet-sessions/{sheet['id']}/values", json={"values": {"hits": 2, "bonus": "x"}})
        assert resp.status_code == 422
        assert client.get(f"/api/scoresheet-sessions/{sheet['id']}").json()["values"]["hits"] == 0

    def test_completed_session_read_only(self, client: TestClient, sheet):
        resp = client.post(f"/api/scoresheet-sessions/{sheet['id']}/complete")
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"
        assert resp.json()["completed_at"] is not None

        assert client.patch(f"/api/scoresheet-sessions/{sheet['id']}/fields/hits", json={"value": 1}).status_code == 409
        assert client.put(f"/api/scoresheet-sessions/{sheet['id']}/values", json={"values": {}}).status_code == 409
        assert client.post(f"/api/scoresheet-sessions/{sheet['id']}/complete").status_code == 409

    def test_initial_values_on_create(self, client: TestClient, template):
        resp = client.post("/api/scoresheet-sessions", json={"template_id": template["id"], "values": {"hits": 3}})
        assert resp.status_code == 201
        assert resp.json()["values"]["total"] == 10

    def test_session_follows_template_changes(self, client: TestClient, template, sheet):
        payload = _template_payload()
        payload["subcategories"][1]["fields"].append(
            {"field_id": "penalty", "name": "Penalty", "type": "number", "default_value": 2}
        )
        payload["subcategories"][0]["fields"][0]["formula"] = "hits * 3 + bonus - penalty"
        assert client.put(f"/api/scoresheets/{template['id']}", json=payload).status_code == 200

        values = client.get(f"/api/scoresheet-sessions/{sheet['id']}").json()["values"]
        assert values["penalty"] == 2
        assert values["total"] == -1

    def test_list_by_template(self, client: TestClient, template, sheet):
        listed = client.get("/api/scoresheet-sessions", params={"template_id": template["id"]}).json()
        assert [s["id"] for s in listed] == [sheet["id"]]

    def test_unknown_session_404(self, client: TestClient):
        assert client.get("/api/scoresheet-sessions/999").status_code == 404
