"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

UNSUPPORTED_CAPABILITY = "UNSUPPORTED_CAPABILITY"
ALREADY_RUNNING = "ALREADY_RUNNING"
RECOGNITION_ERROR = "RECOGNITION_ERROR"
START_FAILURE = "START_FAILURE"

ERROR_MESSAGES = {
    UNSUPPORTED_CAPABILITY: "Speech recognition is not supported on this host",
    ALREADY_RUNNING: "Speech recognition has already started",
    RECOGNITION_ERROR: "Speech recognition error: {kind}",
    START_FAILURE: "Failed to start recognition: {message}",
}

# Platform error kinds that carry no actionable information.
NO_SPEECH = "no-speech"
ABORTED = "aborted"
NETWORK = "network"
NOT_ALLOWED = "not-allowed"
SERVICE_NOT_ALLOWED = "service-not-allowed"

SUPPRESSED_ERROR_KINDS = frozenset({NO_SPEECH, ABORTED})


class TranscriberError(Exception):
    """Base error carrying a code from this module and a display message."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class UnsupportedCapabilityError(TranscriberError):
    def __init__(self) -> None:
        super().__init__(UNSUPPORTED_CAPABILITY, ERROR_MESSAGES[UNSUPPORTED_CAPABILITY])


class AlreadyRunningError(TranscriberError):
    def __init__(self) -> None:
        super().__init__(ALREADY_RUNNING, ERROR_MESSAGES[ALREADY_RUNNING])


class StartFailureError(TranscriberError):
    def __init__(self, reason: str) -> None:
        super().__init__(START_FAILURE, ERROR_MESSAGES[START_FAILURE].format(message=reason))
        self.reason = reason


class RecognitionError(TranscriberError):
    def __init__(self, kind: str) -> None:
        super().__init__(RECOGNITION_ERROR, ERROR_MESSAGES[RECOGNITION_ERROR].format(kind=kind))
        self.kind = kind
