"""Recognition event adapter.

Bridges a platform ``Recognizer`` into an ordered stream of
``RecognitionEvent`` objects and owns the recognizer's run/stop lifecycle.

The recognizer reports results as ``on_result(results, result_index)`` where
``results`` is the full result list of the current recognizer session and
``result_index`` is the first entry that changed.  Entries may be
``Hypothesis`` objects, mappings (``text``/``transcript`` and
``is_final``/``isFinal``) or ``(text, is_final)`` pairs.

A recognizer that ends on its own while the caller still wants to listen is
restarted immediately.  The restart is guarded by the caller's intent flag,
not by anything the recognizer reports, so a ``stop()`` racing the end
callback always wins.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence

from errors import (
    SUPPRESSED_ERROR_KINDS,
    AlreadyRunningError,
    StartFailureError,
    UnsupportedCapabilityError,
)
from interfaces import EventCallback, Recognizer, RecognizerFactory
from models import Hypothesis, RecognitionEvent, RecognizerOptions

logger = logging.getLogger(__name__)


def normalize_result(result: Any) -> Optional[Hypothesis]:
    """Convert one native recognizer result into a ``Hypothesis``."""
    if isinstance(result, Hypothesis):
        text, is_final = result.text, result.is_final
    elif isinstance(result, Mapping):
        text = result.get("text", result.get("transcript", ""))
        is_final = result.get("is_final", result.get("isFinal", False))
    elif isinstance(result, (tuple, list)) and len(result) == 2:
        text, is_final = result
    else:
        raise TypeError(f"unsupported recognition result: {result!r}")
    text = str(text or "").strip()
    if not text:
        return None
    return Hypothesis(text=text, is_final=bool(is_final))


class RecognitionEventAdapter:
    def __init__(
        self,
        recognizer_factory: Optional[RecognizerFactory],
        on_event: EventCallback,
        on_error: Callable[[str], None],
        options: Optional[RecognizerOptions] = None,
    ) -> None:
        self._factory = recognizer_factory
        self._on_event = on_event
        self._on_error = on_error
        self._options = options or RecognizerOptions()
        self._lock = threading.Lock()
        self._recognizer: Optional[Recognizer] = None
        self._listening = False
        self._sequence = 0

    @property
    def is_supported(self) -> bool:
        return self._factory is not None

    @property
    def is_listening(self) -> bool:
        return self._listening

    def configure(self, options: RecognizerOptions) -> None:
        with self._lock:
            if options == self._options and self._recognizer is not None:
                return
            self._options = options
            old = self._recognizer
            self._recognizer = None
            restart = self._listening and self._factory is not None
            if restart:
                self._recognizer = self._create()
        if old is not None:
            self._teardown(old)
        if restart:
            logger.info("Recognizer reconfigured while listening, restarting: %s", options)
            self._restart()

    def start(self) -> None:
        with self._lock:
            if self._listening:
                raise AlreadyRunningError()
            if self._recognizer is None:
                self._recognizer = self._create()
            recognizer = self._recognizer
            try:
                recognizer.start()
            except AlreadyRunningError:
                raise
            except Exception as exc:
                raise StartFailureError(str(exc)) from exc
            self._listening = True
        logger.info("Recognizer started (%s)", self._options.lang)

    def stop(self) -> None:
        with self._lock:
            self._listening = False
            recognizer = self._recognizer
        if recognizer is not None:
            recognizer.stop()
        logger.info("Recognizer stopped")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _create(self) -> Recognizer:
        if self._factory is None:
            raise UnsupportedCapabilityError()
        recognizer = self._factory(self._options)
        recognizer.set_handlers(
            on_result=lambda results, index: self._handle_result(recognizer, results, index),
            on_error=lambda kind: self._handle_error(recognizer, kind),
            on_end=lambda: self._handle_end(recognizer),
        )
        return recognizer

    def _teardown(self, recognizer: Recognizer) -> None:
        recognizer.set_handlers(None, None, None)
        try:
            recognizer.stop()
        except Exception:
            logger.warning("Failed to stop replaced recognizer", exc_info=True)

    def _is_current(self, recognizer: Recognizer) -> bool:
        return self._listening and recognizer is self._recognizer

    def _handle_result(self, recognizer: Recognizer, results: Sequence[Any], result_index: int) -> None:
        with self._lock:
            if not self._is_current(recognizer):
                return
            hypotheses = []
            for result in list(results)[max(result_index, 0):]:
                hypothesis = normalize_result(result)
                if hypothesis is not None:
                    hypotheses.append(hypothesis)
            if not hypotheses:
                return
            event = RecognitionEvent(hypotheses=tuple(hypotheses), sequence_index=self._sequence)
            self._sequence += 1
        self._on_event(event)

    def _handle_error(self, recognizer: Recognizer, kind: str) -> None:
        with self._lock:
            if not self._is_current(recognizer):
                return
        if kind in SUPPRESSED_ERROR_KINDS:
            logger.debug("Suppressed recognizer error: %s", kind)
            return
        self._on_error(kind)

    def _handle_end(self, recognizer: Recognizer) -> None:
        with self._lock:
            if not self._is_current(recognizer):
                return
        logger.debug("Recognizer session ended, restarting")
        self._restart()

    def _restart(self) -> None:
        # Held across start() so a concurrent stop() lands after the restart.
        with self._lock:
            recognizer = self._recognizer
            if not self._listening or recognizer is None:
                return
            try:
                recognizer.start()
            except AlreadyRunningError:
                pass
            except Exception as exc:
                logger.warning("Failed to restart recognition: %s", exc)
