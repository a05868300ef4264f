"""
HTTP surface: host-key guard, error mapping and a full play-through.
"""

import pytest


def _create(client, courts=2):
    response = client.post("/api/sessions", json={"court_count": courts})
    assert response.status_code == 201
    body = response.json()
    return body["session_id"], {"X-Host-Key": body["host_key"]}


def _started(client, players=8, courts=2):
    session_id, host = _create(client, courts)
    names = [f"Player {i}" for i in range(1, players + 1)]
    assert client.post(f"/api/sessions/{session_id}/players", json={"names": names}, headers=host).status_code == 201
    response = client.post(f"/api/sessions/{session_id}/start", headers=host)
    assert response.status_code == 200
    return session_id, host, response.json()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_read_session(client):
    session_id, _ = _create(client, courts=3)

    body = client.get(f"/api/sessions/{session_id}").json()
    assert body["phase"] == "coverage"
    assert body["locked"] is False
    assert "host_key_hash" not in body

    courts = client.get(f"/api/sessions/{session_id}/courts").json()
    assert [c["court_number"] for c in courts] == [1, 2, 3]


def test_invalid_court_count(client):
    assert client.post("/api/sessions", json={"court_count": 0}).status_code == 422


@pytest.mark.parametrize("headers", [{}, {"X-Host-Key": "wrong"}])
def test_mutations_need_host_key(client, headers):
    session_id, _ = _create(client)
    response = client.post(f"/api/sessions/{session_id}/players", json={"names": ["Ann"]}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"].startswith("NOT_HOST")


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/nope").status_code == 404
    assert client.get("/api/sessions/nope/teams").status_code == 404
    assert client.get("/api/sessions/nope/proposal").status_code == 404
    assert client.post("/api/sessions/nope/start", headers={"X-Host-Key": "x"}).status_code == 404


def test_start_with_too_few_players(client):
    session_id, host = _create(client)
    client.post(f"/api/sessions/{session_id}/players", json={"names": ["A", "B"]}, headers=host)

    response = client.post(f"/api/sessions/{session_id}/start", headers=host)

    assert response.status_code == 422
    assert "at least 4 players" in response.json()["detail"]


def test_start_reports_rotation_team(client):
    _, _, body = _started(client, players=5)
    sizes = sorted(len(t["player_ids"]) for t in body["teams"])
    assert sizes == [2, 3]
    trio = next(t for t in body["teams"] if len(t["player_ids"]) == 3)
    assert trio["rotation_index"] == 0
    assert trio["pending_odd_choice"] is True
    assert any("3-player team" in w for w in body["warnings"])


def test_locked_roster_is_409(client):
    session_id, host, _ = _started(client)
    response = client.post(f"/api/sessions/{session_id}/players", json={"names": ["Late"]}, headers=host)
    assert response.status_code == 409


def test_full_play_through(client):
    session_id, host, start = _started(client, players=4, courts=2)
    team_ids = {t["id"] for t in start["teams"]}

    proposal = client.get(f"/api/sessions/{session_id}/proposal").json()
    assert {proposal["team_a_id"], proposal["team_b_id"]} == team_ids

    assigned = client.post(f"/api/sessions/{session_id}/courts/1/assign", headers=host).json()
    assert assigned["status"] == "assigned"
    match = assigned["match"]

    idle = client.post(f"/api/sessions/{session_id}/courts/2/assign", headers=host).json()
    assert idle == {"status": "idle", "match": None, "reason": None}

    busy = client.post(f"/api/sessions/{session_id}/courts/1/assign", headers=host)
    assert busy.status_code == 409

    score = client.patch(
        f"/api/sessions/{session_id}/matches/{match['id']}/score",
        json={"score_a": 10, "score_b": 8},
        headers=host,
    )
    assert score.status_code == 200
    assert (score.json()["score_a"], score.json()["score_b"]) == (10, 8)

    finished = client.post(
        f"/api/sessions/{session_id}/matches/{match['id']}/finish",
        json={"winner_team_id": match["team_a_id"], "score_a": 21},
        headers=host,
    )
    assert finished.status_code == 200
    body = finished.json()
    assert body["status"] == "finished"
    assert (body["score_a"], body["score_b"]) == (21, 8)

    # Both teams have met and played: nothing left to propose, phase moved on
    assert client.get(f"/api/sessions/{session_id}/proposal").json() is None
    state = client.get(f"/api/sessions/{session_id}").json()
    assert state["phase"] == "bracket"
    assert state["active_team_ids"] == []

    results = client.get(f"/api/sessions/{session_id}/results").json()
    assert [r["match_id"] for r in results] == [match["id"]]

    players = client.get(f"/api/sessions/{session_id}/players").json()
    assert sum(p["played"] for p in players) == 4
    assert sum(p["wins"] for p in players) == 2

    invariants = client.get(f"/api/sessions/{session_id}/invariants").json()
    assert invariants == {"ok": True, "violations": []}


def test_finish_with_outside_winner_is_422(client):
    session_id, host, start = _started(client, players=8)
    match = client.post(f"/api/sessions/{session_id}/courts/1/assign", headers=host).json()["match"]
    outsider = next(t["id"] for t in start["teams"] if t["id"] not in (match["team_a_id"], match["team_b_id"]))

    response = client.post(
        f"/api/sessions/{session_id}/matches/{match['id']}/finish",
        json={"winner_team_id": outsider},
        headers=host,
    )
    assert response.status_code == 422


def test_cancel_and_filter_matches(client):
    session_id, host, _ = _started(client)
    match = client.post(f"/api/sessions/{session_id}/courts/1/assign", headers=host).json()["match"]

    canceled = client.post(f"/api/sessions/{session_id}/matches/{match['id']}/cancel", headers=host)
    assert canceled.json()["status"] == "canceled"

    assert client.get(f"/api/sessions/{session_id}/matches", params={"status": "in_progress"}).json() == []
    assert len(client.get(f"/api/sessions/{session_id}/matches", params={"status": "canceled"}).json()) == 1
    courts = client.get(f"/api/sessions/{session_id}/courts").json()
    assert all(c["current_match_id"] is None for c in courts)


def test_unknown_match_is_404(client):
    session_id, host, _ = _started(client)
    response = client.post(f"/api/sessions/{session_id}/matches/nope/cancel", headers=host)
    assert response.status_code == 404


def test_pair_preference(client):
    session_id, host, start = _started(client, players=5, courts=1)
    trio = next(t for t in start["teams"] if len(t["player_ids"]) == 3)
    a, b, c = trio["player_ids"]
    url = f"/api/sessions/{session_id}/teams/{trio['id']}/pair-preference"

    assert client.post(url, json={"player_ids": [a, a]}, headers=host).status_code == 422

    response = client.post(url, json={"player_ids": [b, c]}, headers=host)
    assert response.status_code == 200
    assert response.json()["pair_preference"] == [b, c]
    assert response.json()["pending_odd_choice"] is False


def test_reset_pairing_and_full_reset(client):
    session_id, host, start = _started(client, players=8)
    client.post(f"/api/sessions/{session_id}/courts/1/assign", headers=host)

    rebuilt = client.post(f"/api/sessions/{session_id}/reset-pairing", headers=host)
    assert rebuilt.status_code == 200
    new_ids = {t["id"] for t in rebuilt.json()["teams"]}
    assert len(new_ids) == 4
    assert not new_ids & {t["id"] for t in start["teams"]}

    all_teams = client.get(f"/api/sessions/{session_id}/teams", params={"include_archived": True}).json()
    assert len(all_teams) == 8

    reset = client.post(f"/api/sessions/{session_id}/reset", json={"keep_names": False}, headers=host)
    assert reset.status_code == 200
    assert reset.json()["locked"] is False
    assert client.get(f"/api/sessions/{session_id}/players").json() == []
    assert client.get(f"/api/sessions/{session_id}/teams").json() == []


def test_reset_stats(client):
    session_id, host, _ = _started(client, players=4)
    response = client.post(f"/api/sessions/{session_id}/reset-stats", headers=host)
    assert response.json() == {"players_reset": 4}


def test_lock_toggle_and_phase_advance(client):
    session_id, host = _create(client)

    locked = client.post(f"/api/sessions/{session_id}/lock", json={"locked": True}, headers=host)
    assert locked.json()["locked"] is True
    assert client.post(f"/api/sessions/{session_id}/players", json={"names": ["Ann"]}, headers=host).status_code == 409

    client.post(f"/api/sessions/{session_id}/lock", json={"locked": False}, headers=host)
    assert client.post(f"/api/sessions/{session_id}/players", json={"names": ["Ann"]}, headers=host).status_code == 201

    # No teams yet: coverage stays
    advanced = client.post(f"/api/sessions/{session_id}/phase/advance", headers=host)
    assert advanced.json()["phase"] == "coverage"
