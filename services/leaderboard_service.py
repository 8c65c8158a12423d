"""
Leaderboard service.

Ranks a room's players from the authoritative point totals, stores
snapshots of the ranking, and renders it as CSV for export.
"""
import csv
import io
from typing import List

from sqlalchemy.orm import Session

from models import LeaderboardSnapshot, Player
from schemas import LeaderboardEntry


def get_leaderboard(room_id: str, db: Session) -> List[LeaderboardEntry]:
    """
    Players ordered by points (desc); ties keep join order so ranks are stable
    between polls.
    """
    players = (
        db.query(Player)
        .filter(Player.room_id == room_id)
        .order_by(Player.points.desc(), Player.joined_at, Player.id)
        .all()
    )
    return [
        LeaderboardEntry(
            player_id=player.id,
            display_name=player.display_name,
            points=player.points,
            rank=index + 1,
        )
        for index, player in enumerate(players)
    ]


def save_leaderboard_snapshot(room_id: str, db: Session) -> List[LeaderboardEntry]:
    """Persist the current ranking. Flushes only; the caller's transaction commits."""
    leaderboard = get_leaderboard(room_id, db)
    db.add(LeaderboardSnapshot(
        room_id=room_id,
        payload=[entry.model_dump() for entry in leaderboard],
    ))
    db.flush()
    return leaderboard


def leaderboard_to_csv(leaderboard: List[LeaderboardEntry]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Rank", "Player", "Points"])
    for entry in leaderboard:
        writer.writerow([entry.rank, entry.display_name, entry.points])
    return buffer.getvalue()
