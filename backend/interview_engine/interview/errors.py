from enum import Enum


class SessionErrorKind(str, Enum):
    SESSION_NOT_FOUND = "session_not_found"
    NOT_IN_PROGRESS = "not_in_progress"
    NOT_PAUSED = "not_paused"
    NO_PENDING_QUESTION = "no_pending_question"
    ALREADY_COMPLETED = "already_completed"
    SESSION_ABANDONED = "session_abandoned"
    CONCURRENT_UPDATE = "concurrent_update"
    INVALID_REQUEST = "invalid_request"


DEFAULT_MESSAGES = {
    SessionErrorKind.SESSION_NOT_FOUND: "Interview session not found",
    SessionErrorKind.NOT_IN_PROGRESS: "Interview session is not in progress",
    SessionErrorKind.NOT_PAUSED: "No paused session found",
    SessionErrorKind.NO_PENDING_QUESTION: "No active question to answer",
    SessionErrorKind.ALREADY_COMPLETED: "Interview session is already completed",
    SessionErrorKind.SESSION_ABANDONED: "Session was abandoned",
    SessionErrorKind.CONCURRENT_UPDATE: "Interview session was modified concurrently",
    SessionErrorKind.INVALID_REQUEST: "Invalid interview request",
}

HTTP_STATUS_BY_KIND = {
    SessionErrorKind.SESSION_NOT_FOUND: 404,
    SessionErrorKind.NOT_IN_PROGRESS: 409,
    SessionErrorKind.NOT_PAUSED: 409,
    SessionErrorKind.NO_PENDING_QUESTION: 409,
    SessionErrorKind.ALREADY_COMPLETED: 409,
    SessionErrorKind.SESSION_ABANDONED: 410,
    SessionErrorKind.CONCURRENT_UPDATE: 409,
    SessionErrorKind.INVALID_REQUEST: 422,
}


class InterviewSessionError(Exception):
    def __init__(self, kind: SessionErrorKind, message: str | None = None):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES.get(kind, "Interview session error")
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 400)


class StaleSessionError(RuntimeError):
    """Raised by a repository when a conditional save finds a different stored status."""
