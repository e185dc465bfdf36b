from fastapi.testclient import TestClient

from mahjong_league.api.dependencies import get_game_service
from mahjong_league.main import app
from mahjong_league.services.game_service import GameService
from mahjong_league.storage.repository import MahjongRepository

TABLE = [
    {"raw_score": 40000, "members": [{"name": "Aoi", "user_id": "u1"}]},
    {"raw_score": 30000, "members": [{"name": "Ren", "user_id": "u2"}]},
    {"raw_score": 20000, "members": [{"name": "Mio", "user_id": "u3"}]},
    {"raw_score": 10000, "members": [{"name": "Sora"}]},
]


def _create_game(client: TestClient, **extra) -> dict:
    response = client.post("/games", json={"created_by": "u1", "seats": TABLE, **extra})
    assert response.status_code == 201, response.json()
    return response.json()


def _create_league(client: TestClient, **extra) -> dict:
    response = client.post("/leagues", json={"name": "Friday", "owner_id": "u1", "owner_name": "Aoi", **extra})
    assert response.status_code == 201, response.json()
    return response.json()


def test_rule_with_unbalanced_uma_is_rejected(client: TestClient) -> None:
    response = client.post("/rules", json={"name": "Lopsided", "uma_fourth": -20})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "validation_error"
    assert client.get("/rules").json() == []


def test_three_player_defaults_use_the_three_player_uma(client: TestClient) -> None:
    rule = client.post("/rules", json={"name": "Sanma", "game_type": "three_player"})
    league = client.post("/leagues", json={"name": "Sanma night", "game_type": "three_player", "owner_id": "u1"})

    assert rule.status_code == 201
    assert rule.json()["uma"] == [30, 0, -30]
    assert league.status_code == 201
    assert league.json()["ruleset"]["uma"] == [30, 0, -30]


def test_league_with_unbalanced_uma_is_rejected(client: TestClient) -> None:
    response = client.post("/leagues", json={"name": "Odd", "owner_id": "u1", "uma_first": 40})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "validation_error"


def test_update_rule(client: TestClient) -> None:
    rule_id = client.post("/rules", json={"name": "Club"}).json()["id"]
    game = _create_game(client, rule_id=rule_id)

    renamed = client.patch(f"/rules/{rule_id}", json={"name": "Club 2", "uma_first": 20, "uma_fourth": -20})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Club 2"
    assert renamed.json()["uma"] == [20, 10, -10, -20]

    # a stored game keeps the uma it was settled with
    assert client.get(f"/games/{game['id']}").json()["ruleset"]["uma"] == [30, 10, -10, -30]

    unbalanced = client.patch(f"/rules/{rule_id}", json={"uma_first": 50})
    assert unbalanced.status_code == 400
    assert client.get(f"/rules/{rule_id}").json()["uma"] == [20, 10, -10, -20]

    assert client.patch("/rules/99", json={"name": "x"}).status_code == 404


def test_delete_rule(client: TestClient) -> None:
    used = client.post("/rules", json={"name": "League rule"}).json()["id"]
    unused = client.post("/rules", json={"name": "Spare"}).json()["id"]
    league = _create_league(client, rule_id=used)

    in_use = client.delete(f"/rules/{used}")
    assert in_use.status_code == 409
    assert in_use.json()["detail"] == {
        "code": "rule_in_use",
        "message": f"rule {used} is used by 1 league(s)",
        "details": {"id": used, "league_ids": [league["id"]]},
    }

    assert client.delete(f"/rules/{unused}").status_code == 204
    assert client.get(f"/rules/{unused}").status_code == 404
    assert client.delete(f"/rules/{unused}").status_code == 404


def test_list_and_update_leagues(client: TestClient) -> None:
    first = _create_league(client)
    second = _create_league(client, name="Sunday", owner_id="u2", owner_name="Ren")
    client.post(f"/leagues/{second['id']}/members", json={"user_id": "u3", "display_name": "Mio"})

    assert [league["name"] for league in client.get("/leagues").json()] == ["Friday", "Sunday"]
    assert [league["id"] for league in client.get("/leagues", params={"user_id": "u1"}).json()] == [first["id"]]
    assert [league["id"] for league in client.get("/leagues", params={"user_id": "u3"}).json()] == [second["id"]]

    updated = client.patch(f"/leagues/{first['id']}", json={"name": "Friday club", "description": "weekly"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Friday club"
    assert updated.json()["description"] == "weekly"
    assert updated.json()["ruleset"] == first["ruleset"]

    assert client.patch("/leagues/99", json={"name": "x"}).status_code == 404


def test_delete_league_keeps_its_games(client: TestClient) -> None:
    league = _create_league(client)
    game = _create_game(client, league_id=league["id"])

    assert client.delete(f"/leagues/{league['id']}").status_code == 204

    assert client.get(f"/leagues/{league['id']}/ranking").status_code == 404
    assert client.get(f"/games/{game['id']}").json()["league_id"] is None
    assert client.get("/stats/player/u1").json()["stats"]["four_player"]["game_count"] == 1
    assert client.delete(f"/leagues/{league['id']}").status_code == 404


def test_remove_member(client: TestClient) -> None:
    league_id = _create_league(client)["id"]
    client.post(f"/leagues/{league_id}/members", json={"user_id": "u4", "display_name": "Hana"})

    assert client.delete(f"/leagues/{league_id}/members/u4").status_code == 204
    assert client.get(f"/leagues/{league_id}/ranking").json()["unplayed"] == [{"user_id": "u1", "name": "Aoi"}]

    missing = client.delete(f"/leagues/{league_id}/members/u4")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "member_not_found"

    owner = client.delete(f"/leagues/{league_id}/members/u1")
    assert owner.status_code == 400
    assert owner.json()["detail"]["code"] == "validation_error"


def test_list_games_for_a_user(client: TestClient) -> None:
    older = _create_game(client, played_at="2024-03-01T20:00:00")
    newer = _create_game(client, played_at="2024-03-02T20:00:00")
    client.post(
        "/games",
        json={
            "created_by": "u9",
            "seats": [{"raw_score": 25000, "members": [{"name": name}]} for name in ("A", "B", "C", "D")],
        },
    )

    mine = client.get("/games", params={"user_id": "u1"}).json()
    assert [game["id"] for game in mine] == [newer["id"], older["id"]]
    assert len(client.get("/games").json()) == 3
    assert [game["id"] for game in client.get("/games", params={"user_id": "u1", "limit": 1}).json()] == [newer["id"]]
    assert client.get("/games", params={"limit": 0}).status_code == 422


def test_delete_game(client: TestClient) -> None:
    game = _create_game(client)

    assert client.delete(f"/games/{game['id']}").status_code == 204
    assert client.get(f"/games/{game['id']}").status_code == 404
    assert client.get("/stats/player/u1").json()["stats"]["four_player"]["game_count"] == 0

    missing = client.delete(f"/games/{game['id']}")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "game_not_found"


def test_rolled_up_game_cannot_be_deleted(client: TestClient, db) -> None:
    app.dependency_overrides[get_game_service] = lambda: GameService(MahjongRepository(db), rollup_keep=1)
    first = _create_game(client, played_at="2024-03-01T20:00:00")
    second = _create_game(client, played_at="2024-03-02T20:00:00")

    conflict = client.delete(f"/games/{first['id']}")
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "game_rolled_up"
    assert conflict.json()["detail"]["details"] == {"id": first["id"], "user_ids": ["u1", "u2", "u3"]}

    assert client.delete(f"/games/{second['id']}").status_code == 204
    assert client.get("/stats/player/u1").json()["stats"]["four_player"]["game_count"] == 1
