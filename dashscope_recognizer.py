"""Recognizer binding using DashScope qwen3-asr-flash.

The qwen3-asr-flash model accepts complete audio (file path, URL, or base64)
and streams back recognition results via ``stream=True``.  This binding reads
WAV clips from a queue, one utterance per clip, and reports streamed text as
interim results followed by one final result per clip.  A ``None`` sentinel
in the queue ends the recognizer session on its own, the same way a browser
recognizer ends after a platform timeout.
"""

from __future__ import annotations

import base64
import logging
import os
import threading
from queue import Empty, Queue
from typing import Optional

from errors import NETWORK, NO_SPEECH, NOT_ALLOWED, SERVICE_NOT_ALLOWED, AlreadyRunningError
from interfaces import EndHandler, ErrorHandler, ResultHandler
from models import Hypothesis, RecognizerOptions

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _language_code(lang: str) -> str:
    """``en-US`` -> ``en``; DashScope takes the primary subtag only."""
    return lang.split("-", 1)[0].lower()


class DashscopeRecognizer:
    def __init__(
        self,
        clip_queue: Queue[bytes | None],
        api_key: str = "",
        options: Optional[RecognizerOptions] = None,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
    ) -> None:
        self._clip_queue = clip_queue
        self._api_key = api_key
        self._options = options or RecognizerOptions()
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._running = False
        self._on_result: Optional[ResultHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._on_end: Optional[EndHandler] = None

    @staticmethod
    def is_available() -> bool:
        return dashscope is not None

    def set_handlers(
        self,
        on_result: Optional[ResultHandler],
        on_error: Optional[ErrorHandler],
        on_end: Optional[EndHandler],
    ) -> None:
        self._on_result = on_result
        self._on_error = on_error
        self._on_end = on_end

    def start(self) -> None:
        with self._lock:
            if self._running:
                raise AlreadyRunningError()
            self._running = True
            # A worker still finishing a request after stop() keeps the old event.
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._worker, args=(self._stop_event,), daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_event.set()
            # The stopped worker never reports again, so a new run may begin.
            self._running = False
            thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, stop_event: threading.Event) -> None:
        """Recognise clips until the sentinel, a stop, or one clip in single-shot mode."""
        ended = False
        try:
            while not stop_event.is_set():
                try:
                    clip = self._clip_queue.get(timeout=0.2)
                except Empty:
                    continue
                try:
                    if clip is None:  # Sentinel
                        ended = True
                        break
                    self._recognize_stream(base64.b64encode(clip).decode("ascii"), stop_event)
                finally:
                    self._clip_queue.task_done()
                if not self._options.continuous:
                    ended = True
                    break
        finally:
            with self._lock:
                if stop_event is self._stop_event:
                    self._running = False
        if ended and not stop_event.is_set() and self._on_end:
            self._on_end()

    def _emit_result(self, text: str, is_final: bool, stop_event: threading.Event) -> None:
        if self._on_result and not stop_event.is_set():
            self._on_result([Hypothesis(text=text, is_final=is_final)], 0)

    def _emit_error(self, kind: str, stop_event: threading.Event) -> None:
        if self._on_error and not stop_event.is_set():
            self._on_error(kind)

    def _recognize_stream(self, wav_base64: str, stop_event: threading.Event) -> None:
        """Send one clip to dashscope and stream interim/final results."""
        if dashscope is None:
            self._emit_error(SERVICE_NOT_ALLOWED, stop_event)
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            logger.warning("No DashScope API key configured")
            self._emit_error(NOT_ALLOWED, stop_event)
            return

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={
                    "enable_itn": False,
                    "language": _language_code(self._options.lang),
                },
                stream=True,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            self._emit_error(self._error_kind(exc), stop_event)
            return

        latest_text = ""
        try:
            for chunk in response:
                if stop_event.is_set():
                    return
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    if self._options.interim_results:
                        self._emit_result(text, False, stop_event)
        except Exception as exc:
            self._emit_error(self._error_kind(exc), stop_event)
            return

        if not latest_text.strip():
            self._emit_error(NO_SPEECH, stop_event)
            return
        self._emit_result(latest_text, True, stop_event)

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output", {})
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _error_kind(self, exc: Exception) -> str:
        """Map an SDK/network exception to a platform error kind."""
        message = str(exc)
        low = message.lower()
        logger.debug("DashScope request failed: %s", message)
        if "401" in low or "auth" in low or "api key" in low:
            return NOT_ALLOWED
        if "timeout" in low or "network" in low or "connection" in low:
            return NETWORK
        return SERVICE_NOT_ALLOWED
