"""
HTTP client for the party-game API

One method per endpoint, returning the same pydantic models the server
responds with. Every failure (transport error or non-2xx) surfaces as
GameApiError so callers handle a single exception type.
"""
from typing import Any, List, Optional

import httpx

from schemas import (
    AdvanceResponse,
    AnswerResponse,
    AnsweredCount,
    GameSettings,
    GameState,
    GameStatus,
    LeaderboardEntry,
    PendingScavengerOut,
    PlayerOut,
    QuestionIn,
    QuestionOut,
    RoomCreateResponse,
    RoomOut,
    RoomSnapshot,
    ScavengerReviewResponse,
    ScavengerSubmitResponse,
    SubmittedCount,
    dump_game_state,
)


class GameApiError(Exception):
    """
    Request failed

    status_code is None for transport failures (timeout, connection refused).
    """
    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{status_code}] {message}" if status_code else message)

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


class GameApiClient:
    """
    Synchronous API client

    Args:
        base_url: server root, e.g. http://localhost:8000
        http: an existing httpx.Client to reuse (FastAPI's TestClient works
            here too); when given, base_url is ignored
        timeout: seconds, for the client created here
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0
    ):
        self._owns_http = http is None
        self.http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)

    def close(self):
        if self._owns_http:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise GameApiError(None, f"{method} {path} failed: {e}")

        if response.is_success:
            if response.headers.get("content-type", "").startswith("application/json"):
                return response.json()
            return response.text

        try:
            message = response.json().get("error") or response.reason_phrase
        except ValueError:
            message = response.text or response.reason_phrase
        raise GameApiError(response.status_code, message)

    # ── rooms ─────────────────────────────────────────────────────────────

    def create_room(
        self,
        title: str = "Party Game",
        settings: Optional[GameSettings] = None,
        questions: Optional[List[QuestionIn]] = None,
        host_client_uuid: Optional[str] = None
    ) -> RoomCreateResponse:
        body = {"title": title, "host_client_uuid": host_client_uuid}
        if settings is not None:
            body["settings"] = settings.model_dump()
        if questions is not None:
            body["questions"] = [q.model_dump() for q in questions]
        return RoomCreateResponse.model_validate(self._request("POST", "/api/rooms", json=body))

    def get_room(self, code: str) -> RoomSnapshot:
        return RoomSnapshot.model_validate(self._request("GET", f"/api/rooms/{code}"))

    def get_question(self, code: str, round_number: int, question_number: int) -> QuestionOut:
        data = self._request("GET", f"/api/rooms/{code}/questions/{round_number}/{question_number}")
        return QuestionOut.model_validate(data)

    # ── players ───────────────────────────────────────────────────────────

    def join(self, code: str, client_uuid: str, display_name: str) -> PlayerOut:
        data = self._request(
            "POST",
            f"/api/rooms/{code}/join",
            json={"client_uuid": client_uuid, "display_name": display_name},
        )
        return PlayerOut.model_validate(data)

    def heartbeat(self, code: str, player_id: str, connected: bool = True) -> PlayerOut:
        data = self._request(
            "POST",
            f"/api/rooms/{code}/players/{player_id}/heartbeat",
            json={"connected": connected},
        )
        return PlayerOut.model_validate(data)

    # ── host phase control ────────────────────────────────────────────────

    def start_game(self, code: str, host_key: str) -> RoomOut:
        return RoomOut.model_validate(
            self._request("POST", f"/api/rooms/{code}/start", json={"host_key": host_key})
        )

    def advance(
        self,
        code: str,
        host_key: str,
        expected_status: Optional[GameStatus] = None,
        expected_version: Optional[int] = None
    ) -> AdvanceResponse:
        body = {"host_key": host_key, "expected_version": expected_version}
        if expected_status is not None:
            body["expected_status"] = GameStatus(expected_status).value
        return AdvanceResponse.model_validate(
            self._request("POST", f"/api/rooms/{code}/advance", json=body)
        )

    def replace_game_state(self, code: str, host_key: str, state: GameState, expected_version: int) -> RoomOut:
        body = {
            "host_key": host_key,
            "game_state": dump_game_state(state),
            "expected_version": expected_version,
        }
        return RoomOut.model_validate(
            self._request("POST", f"/api/rooms/{code}/game-state", json=body)
        )

    def restart_game(self, code: str, host_key: str) -> RoomOut:
        return RoomOut.model_validate(
            self._request("POST", f"/api/rooms/{code}/restart", json={"host_key": host_key})
        )

    def ping_host(self, code: str, host_key: str) -> None:
        self._request("POST", f"/api/rooms/{code}/host-ping", json={"host_key": host_key})

    # ── submissions ───────────────────────────────────────────────────────

    def submit_answer(
        self,
        code: str,
        player_id: str,
        question_id: str,
        answer_choice_id: str,
        answer_time_ms: int
    ) -> AnswerResponse:
        body = {
            "player_id": player_id,
            "question_id": question_id,
            "answer_choice_id": answer_choice_id,
            "answer_time_ms": answer_time_ms,
        }
        return AnswerResponse.model_validate(self._request("POST", f"/api/rooms/{code}/answers", json=body))

    def answered_count(self, code: str, question_id: str) -> AnsweredCount:
        data = self._request("GET", f"/api/rooms/{code}/answers/count", params={"question_id": question_id})
        return AnsweredCount.model_validate(data)

    def submit_scavenger(self, code: str, player_id: str, question_id: str) -> ScavengerSubmitResponse:
        data = self._request(
            "POST",
            f"/api/rooms/{code}/scavenger",
            json={"player_id": player_id, "question_id": question_id},
        )
        return ScavengerSubmitResponse.model_validate(data)

    def submitted_count(self, code: str, question_id: str) -> SubmittedCount:
        data = self._request("GET", f"/api/rooms/{code}/scavenger/count", params={"question_id": question_id})
        return SubmittedCount.model_validate(data)

    def has_scavenger_submission(self, code: str, player_id: str, question_id: str) -> bool:
        data = self._request(
            "GET",
            f"/api/rooms/{code}/scavenger/check",
            params={"player_id": player_id, "question_id": question_id},
        )
        return bool(data["submitted"])

    def pending_scavenger(self, code: str, question_id: str) -> List[PendingScavengerOut]:
        data = self._request("GET", f"/api/rooms/{code}/scavenger/pending", params={"question_id": question_id})
        return [PendingScavengerOut.model_validate(item) for item in data]

    def review_scavenger(self, code: str, submission_id: str, host_key: str, approved: bool) -> ScavengerReviewResponse:
        data = self._request(
            "POST",
            f"/api/rooms/{code}/scavenger/{submission_id}/review",
            json={"host_key": host_key, "approved": approved},
        )
        return ScavengerReviewResponse.model_validate(data)

    # ── leaderboard ───────────────────────────────────────────────────────

    def leaderboard(self, code: str) -> List[LeaderboardEntry]:
        data = self._request("GET", f"/api/rooms/{code}/leaderboard")
        return [LeaderboardEntry.model_validate(item) for item in data["leaderboard"]]
