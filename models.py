"""Core data models for the transcriber."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ActivationState(str, Enum):
    WAITING = "WAITING"
    ACTIVE = "ACTIVE"


class NotificationKind(str, Enum):
    TRANSCRIPT = "transcript"
    WAKE = "wake"
    SLEEP = "sleep"
    ERROR = "error"


@dataclass(frozen=True)
class Hypothesis:
    text: str
    is_final: bool = False


@dataclass(frozen=True)
class RecognitionEvent:
    hypotheses: Tuple[Hypothesis, ...] = ()
    sequence_index: int = 0


@dataclass(frozen=True)
class RecognizerOptions:
    continuous: bool = True
    interim_results: bool = True
    lang: str = "en-US"


@dataclass(frozen=True)
class SessionState:
    is_listening: bool = False
    is_active: bool = False
    transcript: str = ""
    interim_transcript: str = ""
    last_error: Optional[str] = None

    @property
    def activation(self) -> ActivationState:
        return ActivationState.ACTIVE if self.is_active else ActivationState.WAITING


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    text: str = ""
    is_final: bool = False
    message: str = ""


@dataclass
class TranscriberSettings:
    wake_word: str = "hi"
    sleep_word: str = "bye"
    continuous: bool = True
    interim_results: bool = True
    lang: str = "en-US"

    def recognizer_options(self) -> RecognizerOptions:
        return RecognizerOptions(
            continuous=self.continuous,
            interim_results=self.interim_results,
            lang=self.lang,
        )
