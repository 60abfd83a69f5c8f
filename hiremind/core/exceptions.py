class HireMindError(Exception):
    """Base class for every error raised by the interview room."""

    code = "internal_error"
    retryable = False

    def __init__(self, message: str = "", *, retryable: bool | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        if retryable is not None:
            self.retryable = retryable

    @property
    def message(self) -> str:
        return str(self)


# Interview flow

class InterviewError(HireMindError):
    code = "interview_error"


class InvalidTransitionError(InterviewError):
    """The requested action is not allowed in the current conversation state."""
    code = "invalid_transition"


class InvalidSessionRequestError(InterviewError):
    """The interview parameters are not valid."""
    code = "invalid_request"


class InvalidMessageError(InterviewError):
    """The client message could not be understood."""
    code = "invalid_message"


class PermissionDeniedError(InterviewError):
    """Camera or microphone access was denied."""
    code = "permission_denied"

    def __init__(self, devices: list[str]):
        self.devices = list(devices)
        names = " and ".join(self.devices)
        super().__init__(
            f"{names.capitalize()} access denied. Allow {names} access in your "
            "browser settings and reload the page."
        )


# External collaborators

class BackendError(HireMindError):
    code = "backend_error"
    retryable = True


class QuestionGenerationError(BackendError):
    code = "question_generation_failed"


class TurnClassificationError(BackendError):
    code = "turn_classification_failed"


class AnalysisError(BackendError):
    code = "analysis_failed"


class SynthesisError(BackendError):
    code = "synthesis_failed"


class ResumeParseError(BackendError):
    code = "resume_parse_failed"


# Persistence

class PersistenceError(HireMindError):
    code = "persistence_error"
    retryable = True


class TurnSaveError(PersistenceError):
    code = "save_failed"


class SessionNotFoundError(PersistenceError):
    code = "session_not_found"
    retryable = False

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Interview session {session_id} not found")


class DuplicateTurnError(PersistenceError):
    code = "duplicate_turn"
    retryable = False

    def __init__(self, session_id: str, index: int):
        self.session_id = session_id
        self.index = index
        super().__init__(f"Question {index} of session {session_id} was already saved")
