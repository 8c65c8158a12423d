"""
Client package

Host and player loops that talk to the API over HTTP:
- GameApiClient: httpx client, one method per endpoint
- RoomFeed: poll / notification reconciliation
- PhaseTimer: wall-clock anchored timers
- AutoAdvanceCoordinator: host auto-advance loop
- PlayerSession: player view and submission guards

Only config, schemas and the pure services are imported here, never the
database layer.
"""
from client.api_client import GameApiClient, GameApiError
from client.coordinator import AdvanceLock, AutoAdvanceCoordinator
from client.player_session import PlayerSession
from client.room_feed import RoomFeed
from client.timers import PhaseTimer

__all__ = [
    "AdvanceLock",
    "AutoAdvanceCoordinator",
    "GameApiClient",
    "GameApiError",
    "PhaseTimer",
    "PlayerSession",
    "RoomFeed",
]
