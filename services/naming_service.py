"""
Naming service: room codes, host keys and player display names
"""
import random
import re
import secrets
import string
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from models import Player

# Visually ambiguous characters (O/0, I/1) are left out
ROOM_CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
HOST_KEY_CHARS = string.ascii_letters + string.digits
HOST_KEY_LENGTH = 32
MAX_DISPLAY_NAME_LENGTH = 20

_DISALLOWED_NAME_CHARS = re.compile(r"[^\w\s-]")


def generate_room_code() -> str:
    """
    Random 6-character room code

    Examples: K7QM2D, XH3PZA

    Notes:
    - uniqueness is not checked here (the caller retries on collision)
    - 32^6 ≈ 1.07e9 codes
    """
    return ''.join(random.choices(ROOM_CODE_CHARS, k=ROOM_CODE_LENGTH))


def generate_host_key() -> str:
    """32-character capability secret; drawn from `secrets` since it authorizes host writes."""
    return ''.join(secrets.choice(HOST_KEY_CHARS) for _ in range(HOST_KEY_LENGTH))


def normalize_room_code(code: str) -> str:
    return code.strip().upper()


def sanitize_display_name(name: str) -> str:
    """Trim, cap at 20 characters, keep only letters, digits, underscore, space and hyphen."""
    return _DISALLOWED_NAME_CHARS.sub("", name.strip()[:MAX_DISPLAY_NAME_LENGTH]).strip()


def make_unique_display_name(name: str, taken: Iterable[str]) -> str:
    """
    Suffix a number until the name is free

    Examples (taken = {"Sam", "Sam1"}):
        "Sam" -> "Sam2"
        "Alex" -> "Alex"
    """
    taken = set(taken)
    unique_name = name
    counter = 1
    while unique_name in taken:
        unique_name = f"{name}{counter}"
        counter += 1
    return unique_name


def generate_display_name(
    room_id: str,
    requested: str,
    db: Session,
    exclude_player_id: Optional[str] = None
) -> str:
    """
    Display name for a player joining (or renaming in) a room

    Args:
        room_id: room UUID
        requested: already-sanitized name the player asked for
        db: SQLAlchemy Session
        exclude_player_id: the rejoining player's own row, so keeping the same
            name is not a collision

    Returns:
        `requested`, or `requested` with the lowest free numeric suffix
    """
    query = db.query(Player.display_name).filter(Player.room_id == room_id)
    if exclude_player_id is not None:
        query = query.filter(Player.id != exclude_player_id)
    taken = [row[0] for row in query.all()]
    return make_unique_display_name(requested, taken)
