from models import EventLog, Player, Room, ScavengerSubmission, Submission


def test_start_requires_host_key(client, make_room, join_player):
    code, _, _ = make_room()
    join_player(code, "Sam")
    response = client.post(f"/api/rooms/{code}/start", json={"host_key": "x" * 32})
    assert response.status_code == 403
    assert client.get(f"/api/rooms/{code}").json()["room"]["game_state"]["status"] == "lobby"


def test_start_requires_a_connected_player(client, make_room, join_player):
    code, host_key, _ = make_room()
    response = client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    assert response.status_code == 400

    player = join_player(code, "Sam")
    client.post(f"/api/rooms/{code}/players/{player['id']}/heartbeat", json={"connected": False})
    assert client.post(f"/api/rooms/{code}/start", json={"host_key": host_key}).status_code == 400


def test_start_enters_first_trivia_question(client, make_room, join_player, db):
    code, host_key, _ = make_room()
    join_player(code, "Sam")

    response = client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    assert response.status_code == 200
    room = response.json()
    state = room["game_state"]
    assert state["status"] == "trivia"
    assert (state["current_round"], state["current_question"]) == (1, 1)
    assert state["question_start_time"] is not None
    assert room["state_version"] == 1

    room_row = db.query(Room).filter(Room.room_code == code).one()
    events = [e.event_type for e in db.query(EventLog).filter(EventLog.room_id == room_row.id)]
    assert "GAME_STARTED" in events


def test_advance_from_lobby_is_rejected(client, make_room):
    code, host_key, _ = make_room()
    response = client.post(f"/api/rooms/{code}/advance", json={"host_key": host_key})
    assert response.status_code == 400
    assert client.get(f"/api/rooms/{code}").json()["room"]["game_state"]["status"] == "lobby"


def test_full_game_walks_every_phase(client, make_room, join_player, advance):
    code, host_key, _ = make_room(number_of_rounds=2, questions_per_round=1)
    join_player(code, "Sam")
    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})

    visited = []
    while True:
        state = advance(code, host_key)
        visited.append((state["status"], state["current_round"], state["current_question"]))
        if state["status"] == "finished":
            break

    assert visited == [
        ("trivia_review", 1, 1),
        ("scavenger", 1, 1),
        ("review", 1, 1),
        ("round_summary", 1, 1),
        ("trivia", 2, 1),
        ("trivia_review", 2, 1),
        ("scavenger", 2, 1),
        ("review", 2, 1),
        ("finished", 0, 0),
    ]

    response = client.post(f"/api/rooms/{code}/advance", json={"host_key": host_key})
    assert response.status_code == 200
    assert response.json()["changed"] is False
    assert response.json()["room"]["game_state"]["status"] == "finished"


def test_scavenger_entry_sets_scavenger_anchor(client, make_room, join_player, advance):
    code, host_key, _ = make_room()
    join_player(code, "Sam")
    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    advance(code, host_key)
    state = advance(code, host_key)
    assert state["status"] == "scavenger"
    assert state["scavenger_start_time"] is not None


def test_stale_advance_is_rejected_instead_of_skipping(client, make_room, join_player):
    code, host_key, _ = make_room()
    join_player(code, "Sam")
    room = client.post(f"/api/rooms/{code}/start", json={"host_key": host_key}).json()
    seen = {"expected_status": "trivia", "expected_version": room["state_version"]}

    first = client.post(f"/api/rooms/{code}/advance", json={"host_key": host_key, **seen})
    second = client.post(f"/api/rooms/{code}/advance", json={"host_key": host_key, **seen})

    assert first.status_code == 200
    assert second.status_code == 409
    state = client.get(f"/api/rooms/{code}").json()["room"]["game_state"]
    assert state["status"] == "trivia_review"


def test_stale_version_alone_is_rejected(client, make_room, join_player):
    code, host_key, _ = make_room()
    join_player(code, "Sam")
    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    response = client.post(f"/api/rooms/{code}/advance", json={"host_key": host_key, "expected_version": 0})
    assert response.status_code == 409


def test_game_state_replacement(client, make_room, join_player):
    code, host_key, _ = make_room()
    join_player(code, "Sam")
    room = client.post(f"/api/rooms/{code}/start", json={"host_key": host_key}).json()
    trivia = room["game_state"]

    skip = {
        "status": "scavenger",
        "current_round": 1,
        "current_question": 1,
        "question_start_time": trivia["question_start_time"],
        "scavenger_start_time": trivia["question_start_time"],
    }
    body = {"host_key": host_key, "game_state": skip, "expected_version": room["state_version"]}
    assert client.post(f"/api/rooms/{code}/game-state", json=body).status_code == 400

    review = {
        "status": "trivia_review",
        "current_round": 1,
        "current_question": 1,
        "question_start_time": trivia["question_start_time"],
    }
    body = {"host_key": host_key, "game_state": review, "expected_version": room["state_version"]}
    ok = client.post(f"/api/rooms/{code}/game-state", json=body)
    assert ok.status_code == 200
    assert ok.json()["game_state"]["status"] == "trivia_review"

    # Same expected_version again: someone already wrote
    assert client.post(f"/api/rooms/{code}/game-state", json=body).status_code == 409


def test_game_state_replacement_cannot_finish_mid_round(client, make_room, join_player, advance):
    code, host_key, _ = make_room(number_of_rounds=2, questions_per_round=3)
    join_player(code, "Sam")
    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    for _ in range(3):
        advance(code, host_key)
    room = client.get(f"/api/rooms/{code}").json()["room"]
    assert room["game_state"]["status"] == "review"

    body = {"host_key": host_key, "game_state": {"status": "finished"}, "expected_version": room["state_version"]}
    assert client.post(f"/api/rooms/{code}/game-state", json=body).status_code == 400
    assert client.get(f"/api/rooms/{code}").json()["room"]["game_state"]["status"] == "review"


def test_game_state_replacement_keeps_round_and_question(client, make_room, join_player):
    code, host_key, _ = make_room(number_of_rounds=2, questions_per_round=3)
    join_player(code, "Sam")
    room = client.post(f"/api/rooms/{code}/start", json={"host_key": host_key}).json()
    trivia = room["game_state"]

    jump = {
        "status": "trivia_review",
        "current_round": 2,
        "current_question": 3,
        "question_start_time": trivia["question_start_time"],
    }
    body = {"host_key": host_key, "game_state": jump, "expected_version": room["state_version"]}
    assert client.post(f"/api/rooms/{code}/game-state", json=body).status_code == 400

    state = client.get(f"/api/rooms/{code}").json()["room"]["game_state"]
    assert (state["status"], state["current_round"], state["current_question"]) == ("trivia", 1, 1)


def test_game_state_replacement_rejects_unknown_status(client, make_room):
    code, host_key, _ = make_room()
    body = {"host_key": host_key, "game_state": {"status": "dancing"}, "expected_version": 0}
    assert client.post(f"/api/rooms/{code}/game-state", json=body).status_code == 400


def test_restart_only_from_finished_and_resets_scores(client, make_room, join_player, advance, current_question, db):
    code, host_key, _ = make_room(number_of_rounds=1, questions_per_round=1)
    player = join_player(code, "Sam")

    assert client.post(f"/api/rooms/{code}/restart", json={"host_key": host_key}).status_code == 400

    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    question = current_question(code)
    # First slot comes from the default bank: "Green"
    correct = "b"
    client.post(f"/api/rooms/{code}/answers", json={
        "player_id": player["id"],
        "question_id": question["id"],
        "answer_choice_id": correct,
        "answer_time_ms": 0,
    })
    for _ in range(4):
        advance(code, host_key)
    assert client.get(f"/api/rooms/{code}").json()["room"]["game_state"]["status"] == "finished"

    response = client.post(f"/api/rooms/{code}/restart", json={"host_key": host_key})
    assert response.status_code == 200
    assert response.json()["game_state"]["status"] == "lobby"

    room = db.query(Room).filter(Room.room_code == code).one()
    assert db.query(Submission).filter(Submission.room_id == room.id).count() == 0
    assert db.query(ScavengerSubmission).filter(ScavengerSubmission.room_id == room.id).count() == 0
    assert all(p.points == 0 for p in db.query(Player).filter(Player.room_id == room.id))


def test_start_clears_previous_points(client, make_room, join_player, db):
    code, host_key, _ = make_room()
    player = join_player(code, "Sam")
    row = db.query(Player).filter(Player.id == player["id"]).one()
    row.points = 500
    db.commit()

    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    db.expire_all()
    assert db.query(Player).filter(Player.id == player["id"]).one().points == 0


def test_answer_revealed_only_after_trivia(client, make_room, join_player, advance, current_question):
    code, host_key, _ = make_room()
    join_player(code, "Sam")

    assert current_question(code)["correct_choice_id"] is None
    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    assert current_question(code)["correct_choice_id"] is None

    advance(code, host_key)
    assert current_question(code)["correct_choice_id"] is not None
    assert current_question(code, 1, 2)["correct_choice_id"] is None


def test_unknown_question_position_is_404(client, make_room):
    code, _, _ = make_room(number_of_rounds=1, questions_per_round=1)
    assert client.get(f"/api/rooms/{code}/questions/1/2").status_code == 404
