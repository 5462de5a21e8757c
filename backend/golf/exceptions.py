class GolfError(Exception):
    """Base class for errors raised by the duel server."""


class MalformedFrameError(GolfError):
    """The inbound byte stream does not follow the length:type:payload framing.

    ``completed`` holds the messages the same chunk finished before the bad
    bytes; callers decide whether they still count.
    """

    def __init__(self, reason: str, completed: list | None = None) -> None:
        super().__init__(reason)
        self.completed = completed or []


class MatchFullError(GolfError):
    """A third connection was added to a match that already has two players."""


class MatchInvariantError(GolfError):
    """Match state that correct add_player sequencing can never produce."""
