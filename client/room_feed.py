"""
Room change feed

Polling and pushed change notifications both end up in `apply`, so a client
behaves the same whichever channel delivered the snapshot, and a late
notification can never roll the view back to an older game state.
"""
from typing import Any, Callable, Dict
import logging

from schemas import RoomSnapshot

logger = logging.getLogger(__name__)


class RoomFeed:
    def __init__(self, api, room_code: str, on_snapshot: Callable[[RoomSnapshot], None]):
        self.api = api
        self.room_code = room_code
        self.on_snapshot = on_snapshot
        self.last_version = -1

    def apply(self, snapshot: RoomSnapshot) -> bool:
        """
        Hand a snapshot to the handler unless it is older than the last one

        Equal versions are applied: player rows change without touching
        the game state.
        """
        version = snapshot.room.state_version
        if version < self.last_version:
            logger.debug(
                f"Dropping stale snapshot for {self.room_code} "
                f"(version {version} < {self.last_version})"
            )
            return False
        self.last_version = version
        self.on_snapshot(snapshot)
        return True

    def poll(self) -> bool:
        """Fetch the room; GameApiError propagates to the caller's loop."""
        return self.apply(self.api.get_room(self.room_code))

    def notify(self, payload: Dict[str, Any]) -> bool:
        """Entry point for pushed notifications carrying a room snapshot."""
        return self.apply(RoomSnapshot.model_validate(payload))

