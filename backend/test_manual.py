"""
Manual testing script for the Game Catalog API
Run this after starting the server with: uvicorn app.main:app --reload

Note: This file is NOT meant to be run with pytest. Run it directly: python test_manual.py
"""

import json

import pytest
import requests

pytest.skip("This is a manual test script, not a pytest test", allow_module_level=True)

BASE_URL = "http://localhost:8000/api"


def print_response(title, response):
    """Pretty print API response"""
    print(f"\n{'=' * 60}")
    print(f"{title}")
    print(f"{'=' * 60}")
    print(f"Status: {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except (json.JSONDecodeError, ValueError):
        print(response.text)
    print()


def test_game_catalog():
    """Create a game, search for it and read its rules page"""
    print("\n" + "=" * 60)
    print("TESTING GAME CATALOG")
    print("=" * 60)

    print("\n1. Creating game...")
    response = requests.post(
        f"{BASE_URL}/games",
        json={
            "name": "Chess",
            "description": "Classic abstract strategy",
            "category": "Abstract",
            "min_players": 2,
            "max_players": 2,
            "duration_min": 10,
            "duration_max": 90,
        },
    )
    print_response("Create Game", response)

    if response.status_code != 201:
        print("❌ Failed to create game")
        return None

    game_id = response.json()["id"]
    print(f"✅ Game created with ID: {game_id}")

    print("\n2. Searching...")
    response = requests.get(f"{BASE_URL}/search/games", params={"query": "chess"})
    print_response("Search Games", response)

    print("\n3. Rules page with attribution...")
    response = requests.get(f"{BASE_URL}/games/{game_id}/rules")
    print_response("Game Rules", response)

    print("\n4. Legal status...")
    response = requests.get(f"{BASE_URL}/games/{game_id}/legal")
    print_response("Legal Status", response)

    return game_id


def test_scoresheet(game_id):
    """Install the D&D preset and edit a character sheet"""
    print("\n" + "=" * 60)
    print("TESTING SCORESHEETS")
    print("=" * 60)

    print("\n1. Installing dnd5e preset...")
    response = requests.post(f"{BASE_URL}/games/{game_id}/scoresheets/presets/dnd5e")
    print_response("Install Preset", response)

    if response.status_code != 201:
        print("❌ Failed to install preset")
        return

    template_id = response.json()["id"]

    print("\n2. Starting a session...")
    response = requests.post(
        f"{BASE_URL}/scoresheet-sessions",
        json={"template_id": template_id, "player_name": "Tester"},
    )
    print_response("Create Session", response)
    if response.status_code != 201:
        print("❌ Failed to create session")
        return

    session_id = response.json()["id"]

    print("\n3. Setting strength to 16...")
    response = requests.patch(
        f"{BASE_URL}/scoresheet-sessions/{session_id}/fields/strength",
        json={"value": 16},
    )
    print_response("Edit Field", response)
    if response.status_code == 200 and response.json()["values"].get("str_mod") == 3:
        print("✅ Modifier recomputed")
    else:
        print("❌ Modifier not recomputed")


def test_tournament(game_id):
    """Run a four-player single elimination bracket to completion"""
    print("\n" + "=" * 60)
    print("TESTING TOURNAMENT")
    print("=" * 60)

    print("\n1. Creating tournament...")
    response = requests.post(
        f"{BASE_URL}/tournaments",
        json={
            "name": "Friday Night Chess",
            "game_id": game_id,
            "players": [{"name": name} for name in ("Ann", "Bob", "Cy", "Di")],
        },
    )
    print_response("Create Tournament", response)
    if response.status_code != 201:
        print("❌ Failed to create tournament")
        return

    tournament_id = response.json()["id"]

    print("\n2. Generating bracket...")
    response = requests.post(f"{BASE_URL}/tournaments/{tournament_id}/bracket")
    print_response("Generate Bracket", response)
    if response.status_code != 201:
        print("❌ Failed to generate bracket")
        return

    print("\n3. Playing every match...")
    for _ in range(3):
        matches = requests.get(f"{BASE_URL}/tournaments/{tournament_id}/matches").json()
        ready = [
            m for m in matches
            if m["status"] != "completed" and m["player1_id"] and m["player2_id"]
        ]
        if not ready:
            break
        for m in ready:
            response = requests.put(
                f"{BASE_URL}/tournaments/{tournament_id}/matches/{m['id']}/result",
                json={"score1": 3, "score2": 1},
            )
            print_response(f"Result R{m['round_number']} P{m['position']}", response)

    response = requests.get(f"{BASE_URL}/tournaments/{tournament_id}/bracket")
    print_response("Final Bracket", response)
    if response.json()["champion_player_id"]:
        print("✅ Tournament completed")
    else:
        print("⚠️  Tournament has no champion yet")


def test_validation_errors():
    """Test validation error handling"""
    print("\n" + "=" * 60)
    print("TESTING VALIDATION ERRORS")
    print("=" * 60)

    print("\n1. Testing invalid player range...")
    response = requests.post(
        f"{BASE_URL}/games",
        json={"name": "Broken", "min_players": 5, "max_players": 2},
    )
    print_response("Create Game (Invalid Player Range)", response)
    if response.status_code == 422:
        print("✅ Correctly rejected invalid player range")

    print("\n2. Testing empty search...")
    response = requests.get(f"{BASE_URL}/search/games", params={"query": "  "})
    print_response("Search (Empty Query)", response)
    if response.status_code == 422:
        print("✅ Correctly rejected empty query")


def main():
    """Run all tests"""
    print("\n" + "=" * 60)
    print("GAME CATALOG - MANUAL API TESTING")
    print("=" * 60)
    print("\nMake sure the server is running: uvicorn app.main:app --reload")
    print("Server should be at: http://localhost:8000")

    try:
        response = requests.get(f"{BASE_URL}/health")
        if response.status_code != 200:
            print("\n❌ Server is not running or not accessible")
            return
        print("\n✅ Server is running")
    except requests.exceptions.ConnectionError:
        print("\n❌ Cannot connect to server. Make sure it's running at http://localhost:8000")
        return

    game_id = test_game_catalog()
    if game_id:
        test_scoresheet(game_id)
        test_tournament(game_id)

    test_validation_errors()

    print("\n" + "=" * 60)
    print("TESTING COMPLETE")
    print("=" * 60)
    print("\nVisit http://localhost:8000/docs for interactive API documentation")


if __name__ == "__main__":
    main()
