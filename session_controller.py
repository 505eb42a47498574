"""Wake/sleep gated transcription state machine."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from errors import (
    ERROR_MESSAGES,
    UNSUPPORTED_CAPABILITY,
    AlreadyRunningError,
    RecognitionError,
    TranscriberError,
)
from interfaces import EventAdapter, RecognizerFactory
from models import (
    Notification,
    NotificationKind,
    RecognitionEvent,
    SessionState,
    TranscriberSettings,
)
from recognizer import RecognitionEventAdapter

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str, bool], None]
SignalCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]
StateCallback = Callable[[SessionState, SessionState], None]
AdapterFactory = Callable[..., EventAdapter]


def _find_span(text: str, lower: str, word: str) -> Tuple[int, int]:
    """Return the ``text`` slice bounds of the first ``word`` match in ``lower``.

    Some characters lower-case to more than one code point ("İ"), so offsets
    found in ``lower`` are mapped back onto ``text``.
    """
    origin: List[int] = []
    for position, char in enumerate(text):
        origin.extend([position] * len(char.lower()))
    start = lower.index(word)
    end = start + len(word)
    return origin[start], origin[end - 1] + 1


def apply_event(
    state: SessionState,
    event: RecognitionEvent,
    wake_word: str,
    sleep_word: str,
) -> Tuple[SessionState, List[Notification]]:
    """Apply one recognition event and return the new state plus notifications.

    Final text is handled before interim text so the preview left behind
    belongs to the utterance still in progress.  Wake and sleep words are
    matched as lower-cased substrings of the event's concatenated final text.
    """
    final_text = ""
    interim_text = ""
    for hypothesis in event.hypotheses:
        text = hypothesis.text.strip()
        if hypothesis.is_final:
            final_text += text + " "
            logger.debug("FINAL: %s | active: %s", text, state.is_active)
        else:
            interim_text += text
            logger.debug("INTERIM: %s | active: %s", text, state.is_active)

    notes: List[Notification] = []

    if final_text.strip():
        lower = final_text.lower()
        wake = wake_word.lower()
        sleep = sleep_word.lower()

        if not state.is_active and wake in lower:
            logger.info("Wake word detected, transcription active")
            state = replace(state, is_active=True, transcript="", interim_transcript="")
            notes.append(Notification(NotificationKind.WAKE))
            _, end = _find_span(final_text, lower, wake)
            after = final_text[end:].strip()
            if after:
                state = replace(state, transcript=after + " ")
                notes.append(Notification(NotificationKind.TRANSCRIPT, text=after, is_final=True))
        elif state.is_active and sleep in lower:
            logger.info("Sleep word detected, transcription stopped")
            start, _ = _find_span(final_text, lower, sleep)
            before = final_text[:start].strip()
            if before:
                state = replace(state, transcript=state.transcript + before + " ")
                notes.append(Notification(NotificationKind.TRANSCRIPT, text=before, is_final=True))
            state = replace(state, is_active=False)
            notes.append(Notification(NotificationKind.SLEEP))
        elif state.is_active:
            state = replace(state, transcript=state.transcript + final_text)
            notes.append(
                Notification(NotificationKind.TRANSCRIPT, text=final_text.strip(), is_final=True)
            )
        else:
            logger.debug("Waiting, ignoring text: %s", final_text.strip())
            notes.append(
                Notification(NotificationKind.TRANSCRIPT, text=final_text.strip(), is_final=True)
            )

        state = replace(state, interim_transcript="")

    if interim_text:
        state = replace(state, interim_transcript=interim_text)
        if not state.is_active:
            notes.append(Notification(NotificationKind.TRANSCRIPT, text=interim_text, is_final=False))

    return state, notes


class SessionController:
    def __init__(
        self,
        recognizer_factory: Optional[RecognizerFactory] = None,
        settings: Optional[TranscriberSettings] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_wake_word_detected: Optional[SignalCallback] = None,
        on_sleep_word_detected: Optional[SignalCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_state_change: Optional[StateCallback] = None,
        adapter_factory: AdapterFactory = RecognitionEventAdapter,
    ) -> None:
        self._settings = settings or TranscriberSettings()
        self._validate(self._settings)
        self._on_transcript = on_transcript
        self._on_wake = on_wake_word_detected
        self._on_sleep = on_sleep_word_detected
        self._on_error = on_error
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = SessionState()
        self._adapter = adapter_factory(
            recognizer_factory,
            on_event=self._handle_recognition_event,
            on_error=self._handle_recognition_error,
            options=self._settings.recognizer_options(),
        )
        if not self._adapter.is_supported:
            with self._lock:
                self._record_error(ERROR_MESSAGES[UNSUPPORTED_CAPABILITY])

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def settings(self) -> TranscriberSettings:
        return self._settings

    @property
    def is_listening(self) -> bool:
        return self._state.is_listening

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def transcript(self) -> str:
        return self._state.transcript

    @property
    def interim_transcript(self) -> str:
        return self._state.interim_transcript

    @property
    def error(self) -> Optional[str]:
        return self._state.last_error

    @property
    def is_supported(self) -> bool:
        return self._adapter.is_supported

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_listening(self) -> None:
        with self._lock:
            try:
                self._adapter.start()
            except AlreadyRunningError:
                return
            except TranscriberError as exc:
                self._record_error(exc.message)
                return
            self._update(replace(self._state, is_listening=True, last_error=None))

    def stop_listening(self) -> None:
        with self._lock:
            try:
                self._adapter.stop()
            except Exception as exc:
                logger.warning("Recognizer stop failed: %s", exc)
            self._update(replace(self._state, is_listening=False, is_active=False))

    def reset_transcript(self) -> None:
        with self._lock:
            self._update(replace(self._state, transcript="", interim_transcript=""))

    def configure(self, settings: TranscriberSettings) -> None:
        """Swap wake/sleep words and recognizer options in place."""
        self._validate(settings)
        with self._lock:
            self._settings = settings
            try:
                self._adapter.configure(settings.recognizer_options())
            except TranscriberError as exc:
                self._record_error(exc.message)
            except Exception as exc:
                self._record_error(str(exc))

    # ------------------------------------------------------------------
    # Recognizer callbacks
    # ------------------------------------------------------------------

    def _handle_recognition_event(self, event: RecognitionEvent) -> None:
        with self._lock:
            if not self._state.is_listening:
                return
            state, notes = apply_event(
                self._state, event, self._settings.wake_word, self._settings.sleep_word
            )
            self._update(state)
            for note in notes:
                self._dispatch(note)

    def _handle_recognition_error(self, kind: str) -> None:
        with self._lock:
            self._record_error(RecognitionError(kind).message)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _record_error(self, message: str) -> None:
        logger.warning(message)
        self._update(replace(self._state, last_error=message))
        self._dispatch(Notification(NotificationKind.ERROR, message=message))

    def _dispatch(self, note: Notification) -> None:
        if note.kind == NotificationKind.TRANSCRIPT:
            if self._on_transcript:
                self._on_transcript(note.text, note.is_final)
        elif note.kind == NotificationKind.WAKE:
            if self._on_wake:
                self._on_wake()
        elif note.kind == NotificationKind.SLEEP:
            if self._on_sleep:
                self._on_sleep()
        elif note.kind == NotificationKind.ERROR:
            if self._on_error:
                self._on_error(note.message)

    def _update(self, new_state: SessionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        if self._on_state_change:
            self._on_state_change(old_state, new_state)

    @staticmethod
    def _validate(settings: TranscriberSettings) -> None:
        if not settings.wake_word.strip():
            raise ValueError("wake_word must not be blank")
        if not settings.sleep_word.strip():
            raise ValueError("sleep_word must not be blank")
