from enum import StrEnum


class DeadlineType(StrEnum):
    READY = "ready"
    START_ACK = "start_ack"
    PLAY = "play"
    OPPONENT = "opponent"


class PlayerPhase(StrEnum):
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    STARTED = "started"
    FINISHED = "finished"
    TIMED_OUT = "timed_out"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class EndReason(StrEnum):
    FAILURE = "failure"
    EXPIRED = "expired"
    COMPLETED = "completed"
    FORFEIT = "forfeit"
    ABANDONED = "abandoned"
    NO_OPPONENT = "no_opponent"
