import pytest
from fastapi.testclient import TestClient

TABLE = [
    {"raw_score": 40000, "members": [{"name": "Aoi", "user_id": "u1"}]},
    {"raw_score": 30000, "members": [{"name": "Ren", "user_id": "u2"}]},
    {"raw_score": 20000, "members": [{"name": "Mio", "user_id": "u3"}]},
    {"raw_score": 10000, "members": [{"name": "Sora"}]},
]


def _create_game(client: TestClient, seats=None, **extra) -> dict:
    response = client.post("/games", json={"created_by": "u1", "seats": seats or TABLE, **extra})
    assert response.status_code == 201, response.json()
    return response.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_preview_does_not_store(client: TestClient) -> None:
    response = client.post("/games/preview", json={"seats": TABLE})

    assert response.status_code == 200
    body = response.json()
    assert [result["point"] for result in body["results"]] == [60.0, 10.0, -20.0, -50.0]
    assert body["total_points"] == 0.0
    assert body["ruleset"]["uma"] == [30, 10, -10, -30]
    assert client.get("/games/1").status_code == 404


def test_create_and_read_game(client: TestClient) -> None:
    created = _create_game(client, played_at="2024-03-01T20:00:00")

    assert set(created.keys()) == {"id", "game_type", "league_id", "created_by", "played_at", "ruleset", "results"}
    assert [result["rank"] for result in created["results"]] == [1, 2, 3, 4]

    fetched = client.get(f"/games/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == created


def test_unbalanced_scores_error_shape(client: TestClient) -> None:
    seats = [dict(seat) for seat in TABLE]
    seats[3] = {"raw_score": 5000, "members": [{"name": "Sora"}]}

    response = client.post("/games", json={"created_by": "u1", "seats": seats})

    assert response.status_code == 400
    assert response.json()["detail"] == {
        "code": "score_balance_mismatch",
        "message": "raw scores must total 100000, got 95000",
        "details": {"expected": 100000, "actual": 95000},
    }


def test_unbalanced_bonus_is_a_server_error(client: TestClient) -> None:
    seats = [dict(seat) for seat in TABLE]
    seats[0] = {**TABLE[0], "bonus_points": 2.5}

    response = client.post("/games", json={"created_by": "u1", "seats": seats})

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "point_balance_error"


def test_validation_errors(client: TestClient) -> None:
    seats = [dict(seat) for seat in TABLE]
    seats[1] = {"raw_score": 30000, "members": [{"name": "Ren", "user_id": "u1"}]}
    twice = client.post("/games", json={"created_by": "u1", "seats": seats})
    assert twice.status_code == 400
    assert twice.json()["detail"]["code"] == "validation_error"

    three_seats = client.post("/games", json={"created_by": "u1", "game_type": "four_player", "seats": TABLE[:3]})
    assert three_seats.status_code == 400
    assert three_seats.json()["detail"]["code"] == "validation_error"

    missing_league = client.post("/games", json={"created_by": "u1", "seats": TABLE, "league_id": 99})
    assert missing_league.status_code == 404
    assert missing_league.json()["detail"] == {
        "code": "league_not_found",
        "message": "league 99 not found",
        "details": {"id": 99},
    }


def test_rules_crud(client: TestClient) -> None:
    created = client.post(
        "/rules",
        json={"name": "Sanma", "game_type": "three_player", "starting_points": 35000, "return_points": 40000,
              "uma_first": 20, "uma_second": 0, "uma_third": -20},
    )
    assert created.status_code == 201
    body = created.json()
    assert body["uma"] == [20, 0, -20]
    assert body["oka_pool"] == 15.0

    client.post("/rules", json={"name": "Yonma"})
    assert [rule["name"] for rule in client.get("/rules").json()] == ["Sanma", "Yonma"]
    assert [rule["name"] for rule in client.get("/rules", params={"game_type": "three_player"}).json()] == ["Sanma"]

    missing = client.get("/rules/42")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "rule_not_found"


def test_rule_for_other_game_type_is_rejected(client: TestClient) -> None:
    rule_id = client.post("/rules", json={"name": "Yonma"}).json()["id"]

    response = client.post(
        "/games/preview",
        json={"game_type": "three_player", "rule_id": rule_id, "seats": TABLE[:3]},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "validation_error"


def test_league_ranking(client: TestClient) -> None:
    league = client.post("/leagues", json={"name": "Friday", "owner_id": "u1", "owner_name": "Aoi"})
    assert league.status_code == 201
    league_id = league.json()["id"]
    assert league.json()["ruleset"]["uma"] == [30, 10, -10, -30]
    client.post(f"/leagues/{league_id}/members", json={"user_id": "u4", "display_name": "Hana"})

    _create_game(client, league_id=league_id)

    ranking = client.get(f"/leagues/{league_id}/ranking").json()
    assert [(row["rank"], row["user_id"], row["total_points"]) for row in ranking["standings"]] == [
        (1, "u1", 60.0),
        (2, "u2", 10.0),
        (3, "u3", -20.0),
    ]
    assert ranking["unplayed"] == [{"user_id": "u4", "name": "Hana"}]
    assert [row["user_id"] for row in ranking["best_scores"]] == ["u1", "u2", "u3"]

    assert client.get("/leagues/99/ranking").status_code == 404
    assert client.post("/leagues/99/members", json={"user_id": "u5", "display_name": "Yui"}).status_code == 404


def test_player_and_session_stats(client: TestClient) -> None:
    first = _create_game(client)
    swapped = [{**TABLE[0], "raw_score": 30000}, {**TABLE[1], "raw_score": 40000}, TABLE[2], TABLE[3]]
    second = _create_game(client, seats=swapped)

    stats = client.get("/stats/player/u1").json()
    four = stats["stats"]["four_player"]
    assert four["game_count"] == 2
    assert four["total_points"] == 70.0
    assert four["rank_counts"] == [1, 1, 0, 0]
    assert [point["points"] for point in four["history"]] == [60.0, 70.0]
    assert stats["stats"]["three_player"]["game_count"] == 0

    session = client.post("/stats/session", json={"game_ids": [first["id"], second["id"]]})
    assert session.status_code == 200
    totals = session.json()["totals"]
    assert totals[0] == {"name": "Aoi", "user_id": "u1", "total": 70.0}
    assert totals[1] == {"name": "Ren", "user_id": "u2", "total": 70.0}

    missing = client.post("/stats/session", json={"game_ids": [first["id"], 99]})
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "game_not_found"


@pytest.mark.parametrize("bonus", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_bonus_is_rejected(client: TestClient, bonus: str) -> None:
    seats = [{**TABLE[0], "bonus_points": bonus}, *TABLE[1:]]

    preview = client.post("/games/preview", json={"seats": seats})
    create = client.post("/games", json={"created_by": "u1", "seats": seats})

    assert preview.status_code == 422
    assert create.status_code == 422
    assert client.get("/games").json() == []


def test_session_counts_a_repeated_game_once(client: TestClient) -> None:
    game_id = _create_game(client)["id"]

    response = client.post("/stats/session", json={"game_ids": [game_id, game_id]})

    assert response.status_code == 200
    assert response.json()["game_ids"] == [game_id]
    assert response.json()["totals"][0] == {"name": "Aoi", "user_id": "u1", "total": 60.0}
