"""
Custom exceptions for the score tracker with user-friendly error messages.

None of these are fatal: each one is raised for a single player, score or
webhook post and handled by the caller that owns that unit of work.
"""

class TrackerException(Exception):
    """Base exception for tracker-related errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class ScoreSourceError(TrackerException):
    """Raised when the osu! API cannot be queried for a player."""
    def __init__(self, player_id: int, details: str = None, status: int = None):
        super().__init__(
            f"Failed to fetch scores for player {player_id}: {details}",
            "❌ Could not reach the osu! API. Please try again later."
        )
        self.player_id = player_id
        self.status = status

class ScoreLogError(TrackerException):
    """Raised when a score cannot be written to or read from disk."""
    def __init__(self, score_id, details: str = None):
        super().__init__(
            f"Score log error for score {score_id}: {details}",
            "❌ Failed to store score."
        )
        self.score_id = score_id

class ScoreParseError(TrackerException):
    """Raised when a score payload is missing required fields."""
    def __init__(self, reason: str):
        super().__init__(
            f"Invalid score payload: {reason}",
            "❌ That file does not contain a valid score."
        )

class DispatchError(TrackerException):
    """Raised when a webhook notification cannot be delivered."""
    def __init__(self, details: str = None, status: int = None):
        super().__init__(
            f"Notification delivery failed: {details}",
            "❌ Failed to post score notification."
        )
        self.status = status

class PlayerNotTrackedError(TrackerException):
    """Raised when a command targets a player outside the roster."""
    def __init__(self, player: str):
        super().__init__(
            f"Player '{player}' is not tracked",
            f"❌ Player '{player}' is not being tracked!"
        )

class MapNotFoundError(TrackerException):
    """Raised when a map id has no scheduled challenge."""
    def __init__(self, map_id: int):
        super().__init__(
            f"Challenge map {map_id} not found",
            "❌ Map not found!"
        )
