"""
Domain exceptions

Every business-rule rejection raises one of these so the API layer can map
it to a status code in one place.
"""


class PartyGameException(Exception):
    """Base class for all game exceptions"""
    pass


# ============ Lookups ============

class RoomNotFound(PartyGameException):
    """Room does not exist"""
    def __init__(self, room_ref, message=None):
        self.room_ref = room_ref
        super().__init__(message or f"Room {room_ref} not found")


class RoomExpired(RoomNotFound):
    """Room is past its retention window"""
    def __init__(self, room_ref):
        super().__init__(room_ref, f"Room {room_ref} has expired")


class PlayerNotFound(PartyGameException):
    """Player does not exist in this room"""
    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")


class QuestionNotFound(PartyGameException):
    """No question at this position"""
    def __init__(self, question_ref):
        self.question_ref = question_ref
        super().__init__(f"Question {question_ref} not found")


class SubmissionNotFound(PartyGameException):
    """Scavenger submission does not exist"""
    def __init__(self, submission_id):
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id} not found")


# ============ Authorization ============

class Unauthorized(PartyGameException):
    """Host key does not match the room"""
    def __init__(self, message="Host key does not match this room"):
        super().__init__(message)


# ============ Conflicts ============

class DuplicateSubmission(PartyGameException):
    """Player already submitted for this question"""
    pass


class StaleGameState(PartyGameException):
    """The game state changed since the caller last read it"""
    pass


class SubmissionClosed(PartyGameException):
    """Submission arrived outside the phase that accepts it"""
    pass


# ============ Validation ============

class ValidationFailed(PartyGameException):
    """Request data is missing or out of range"""
    pass


class InvalidStateTransition(PartyGameException):
    """Illegal game-state transition"""
    pass


class NoConnectedPlayers(PartyGameException):
    """Game cannot start without at least one connected player"""
    pass


class RoomFull(PartyGameException):
    """Room reached its player cap"""
    pass
