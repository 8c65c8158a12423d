import pytest

# Default question bank, first slot: mix blue and yellow -> "b" (Green)
CORRECT = "b"
WRONG = "a"


@pytest.fixture
def game(client, make_room, join_player, current_question):
    """A started one-question game with three players, in trivia."""
    code, host_key, _ = make_room(number_of_rounds=1, questions_per_round=1)
    players = [join_player(code, name) for name in ("Ann", "Ben", "Cat")]
    client.post(f"/api/rooms/{code}/start", json={"host_key": host_key})
    question = current_question(code)
    return code, host_key, players, question


def answer(client, code, player, question, choice, ms=0):
    return client.post(f"/api/rooms/{code}/answers", json={
        "player_id": player["id"],
        "question_id": question["id"],
        "answer_choice_id": choice,
        "answer_time_ms": ms,
    })


def submit_scavenger(client, code, player, question):
    return client.post(f"/api/rooms/{code}/scavenger", json={
        "player_id": player["id"],
        "question_id": question["id"],
    })


def review(client, code, host_key, submission_id, approved):
    return client.post(
        f"/api/rooms/{code}/scavenger/{submission_id}/review",
        json={"host_key": host_key, "approved": approved},
    )


def to_scavenger(advance, code, host_key):
    advance(code, host_key)
    return advance(code, host_key)


class TestTriviaAnswers:
    def test_correct_answer_scored_by_time(self, client, game):
        code, _, players, question = game
        fast = answer(client, code, players[0], question, CORRECT, ms=0).json()
        half = answer(client, code, players[1], question, CORRECT, ms=15000).json()
        wrong = answer(client, code, players[2], question, WRONG, ms=0).json()

        assert (fast["is_correct"], fast["points_awarded"], fast["player_points"]) == (True, 100, 100)
        assert (half["points_awarded"], half["player_points"]) == (75, 75)
        assert (wrong["is_correct"], wrong["points_awarded"]) == (False, 0)

    def test_duplicate_answer_rejected_and_total_unchanged(self, client, game):
        code, _, players, question = game
        assert answer(client, code, players[0], question, CORRECT).status_code == 201
        again = answer(client, code, players[0], question, WRONG)
        assert again.status_code == 409

        board = client.get(f"/api/rooms/{code}/leaderboard").json()["leaderboard"]
        assert board[0]["points"] == 100

    def test_unknown_choice_is_validation_error(self, client, game):
        code, _, players, question = game
        response = answer(client, code, players[0], question, "zz")
        assert response.status_code == 400

    def test_negative_time_rejected(self, client, game):
        code, _, players, question = game
        assert answer(client, code, players[0], question, CORRECT, ms=-1).status_code == 400

    def test_answers_closed_after_trivia(self, client, game, advance):
        code, host_key, players, question = game
        advance(code, host_key)
        response = answer(client, code, players[0], question, CORRECT)
        assert response.status_code == 409

    def test_unknown_player(self, client, game):
        code, _, _, question = game
        response = answer(client, code, {"id": "nobody"}, question, CORRECT)
        assert response.status_code == 404

    def test_answered_count(self, client, game):
        code, _, players, question = game
        count = client.get(f"/api/rooms/{code}/answers/count", params={"question_id": question["id"]}).json()
        assert count == {"answered_count": 0, "player_count": 3, "all_answered": False, "has_submissions": False}

        for player in players[:2]:
            answer(client, code, player, question, CORRECT)
        count = client.get(f"/api/rooms/{code}/answers/count", params={"question_id": question["id"]}).json()
        assert (count["answered_count"], count["all_answered"], count["has_submissions"]) == (2, False, True)

        answer(client, code, players[2], question, WRONG)
        count = client.get(f"/api/rooms/{code}/answers/count", params={"question_id": question["id"]}).json()
        assert count["all_answered"] is True

    def test_disconnected_players_do_not_block_all_answered(self, client, game):
        code, _, players, question = game
        client.post(f"/api/rooms/{code}/players/{players[2]['id']}/heartbeat", json={"connected": False})
        for player in players[:2]:
            answer(client, code, player, question, CORRECT)
        count = client.get(f"/api/rooms/{code}/answers/count", params={"question_id": question["id"]}).json()
        assert (count["player_count"], count["all_answered"]) == (2, True)


class TestScavenger:
    def test_submission_only_in_scavenger_phase(self, client, game):
        code, _, players, question = game
        assert submit_scavenger(client, code, players[0], question).status_code == 409

    def test_submission_order_and_duplicates(self, client, game, advance):
        code, host_key, players, question = game
        to_scavenger(advance, code, host_key)

        orders = [submit_scavenger(client, code, p, question).json()["submission_order"] for p in players]
        assert orders == [1, 2, 3]
        assert submit_scavenger(client, code, players[0], question).status_code == 409

        check = client.get(
            f"/api/rooms/{code}/scavenger/check",
            params={"player_id": players[0]["id"], "question_id": question["id"]},
        ).json()
        assert check == {"submitted": True}

        count = client.get(f"/api/rooms/{code}/scavenger/count", params={"question_id": question["id"]}).json()
        assert count == {"submitted_count": 3, "player_count": 3, "all_submitted": True}

    def test_first_approved_is_not_first_submitted(self, client, game, advance):
        """A submits first and is rejected; B submits second and is approved first."""
        code, host_key, players, question = game
        to_scavenger(advance, code, host_key)
        a = submit_scavenger(client, code, players[0], question).json()
        b = submit_scavenger(client, code, players[1], question).json()
        c = submit_scavenger(client, code, players[2], question).json()

        rejected = review(client, code, host_key, a["submission_id"], False).json()
        assert (rejected["approved"], rejected["points_awarded"]) == (False, 2)

        first = review(client, code, host_key, b["submission_id"], True).json()
        assert first["is_first_approved"] is True
        assert first["points_awarded"] == 10

        other = review(client, code, host_key, c["submission_id"], True).json()
        assert other["is_first_approved"] is False
        assert other["points_awarded"] == 5

    def test_pending_list_in_submission_order(self, client, game, advance):
        code, host_key, players, question = game
        to_scavenger(advance, code, host_key)
        ids = [submit_scavenger(client, code, p, question).json()["submission_id"] for p in players]
        review(client, code, host_key, ids[1], True)

        pending = client.get(f"/api/rooms/{code}/scavenger/pending", params={"question_id": question["id"]}).json()
        assert [p["id"] for p in pending] == [ids[0], ids[2]]
        assert [p["player_name"] for p in pending] == ["Ann", "Cat"]

    def test_re_review_applies_only_the_difference(self, client, game, advance):
        code, host_key, players, question = game
        to_scavenger(advance, code, host_key)
        sub = submit_scavenger(client, code, players[0], question).json()

        assert review(client, code, host_key, sub["submission_id"], True).json()["player_points"] == 10
        # Re-approving: still the only approved entry, so still first
        again = review(client, code, host_key, sub["submission_id"], True).json()
        assert (again["is_first_approved"], again["player_points"]) == (True, 10)
        flipped = review(client, code, host_key, sub["submission_id"], False).json()
        assert (flipped["points_awarded"], flipped["player_points"]) == (2, 2)

    def test_re_approving_first_approved_keeps_the_first_award(self, client, game, advance):
        code, host_key, players, question = game
        to_scavenger(advance, code, host_key)
        a = submit_scavenger(client, code, players[0], question).json()
        b = submit_scavenger(client, code, players[1], question).json()

        assert review(client, code, host_key, a["submission_id"], True).json()["points_awarded"] == 10
        assert review(client, code, host_key, b["submission_id"], True).json()["points_awarded"] == 5

        again = review(client, code, host_key, a["submission_id"], True).json()
        assert (again["is_first_approved"], again["points_awarded"], again["player_points"]) == (True, 10, 10)
        # B stays second
        b_again = review(client, code, host_key, b["submission_id"], True).json()
        assert (b_again["is_first_approved"], b_again["player_points"]) == (False, 5)

    def test_review_requires_host_key(self, client, game, advance):
        code, host_key, players, question = game
        to_scavenger(advance, code, host_key)
        sub = submit_scavenger(client, code, players[0], question).json()
        response = review(client, code, "wrong-key", sub["submission_id"], True)
        assert response.status_code == 403

    def test_review_unknown_submission(self, client, game):
        code, host_key, _, _ = game
        assert review(client, code, host_key, "missing", True).status_code == 404


class TestLeaderboard:
    def test_ranked_by_points_then_join_order(self, client, game, advance):
        code, host_key, players, question = game
        answer(client, code, players[1], question, CORRECT, ms=0)
        answer(client, code, players[2], question, CORRECT, ms=0)
        answer(client, code, players[0], question, WRONG)

        board = client.get(f"/api/rooms/{code}/leaderboard").json()["leaderboard"]
        assert [(e["display_name"], e["points"], e["rank"]) for e in board] == [
            ("Ben", 100, 1),
            ("Cat", 100, 2),
            ("Ann", 0, 3),
        ]

    def test_snapshot_requires_host_and_persists(self, client, game):
        code, host_key, _, _ = game
        assert client.post(f"/api/rooms/{code}/leaderboard/snapshot", json={"host_key": "bad"}).status_code == 403
        response = client.post(f"/api/rooms/{code}/leaderboard/snapshot", json={"host_key": host_key})
        assert response.status_code == 201
        assert len(response.json()["leaderboard"]) == 3

    def test_csv_export(self, client, game):
        code, _, players, question = game
        answer(client, code, players[0], question, CORRECT, ms=0)
        response = client.get(f"/api/rooms/{code}/leaderboard.csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().split("\n")
        assert lines[0] == "Rank,Player,Points"
        assert lines[1] == "1,Ann,100"
