"""Tests for DashscopeRecognizer."""

from __future__ import annotations

import threading
import time
from queue import Queue
from typing import List, Tuple
from unittest.mock import MagicMock, patch

import pytest

from dashscope_recognizer import DashscopeRecognizer, _language_code
from errors import AlreadyRunningError
from models import RecognizerOptions
from session_controller import SessionController


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class Collector:
    def __init__(self) -> None:
        self.results: List[Tuple[str, bool]] = []
        self.errors: List[str] = []
        self.ended = threading.Event()

    def on_result(self, results, index) -> None:  # noqa: ANN001
        for result in results[index:]:
            self.results.append((result.text, result.is_final))

    def on_error(self, kind: str) -> None:
        self.errors.append(kind)

    def on_end(self) -> None:
        self.ended.set()


def _make_recognizer(
    clips: List[bytes | None],
    options: RecognizerOptions | None = None,
    api_key: str = "test-key",
) -> Tuple[DashscopeRecognizer, Collector]:
    q: Queue[bytes | None] = Queue()
    for clip in clips:
        q.put(clip)
    recognizer = DashscopeRecognizer(q, api_key=api_key, options=options)
    collector = Collector()
    recognizer.set_handlers(collector.on_result, collector.on_error, collector.on_end)
    return recognizer, collector


def _chunk(text: str) -> dict:
    return {"output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


def _fake_streaming_response():
    """Simulate dashscope streaming chunks."""
    yield _chunk("hi")
    yield _chunk("hi there")
    yield _chunk("hi there friend")


# ---------------------------------------------------------------
# Language mapping
# ---------------------------------------------------------------

@pytest.mark.parametrize("lang, expected", [("en-US", "en"), ("zh-CN", "zh"), ("DE", "de")])
def test_language_code_uses_primary_subtag(lang: str, expected: str) -> None:
    assert _language_code(lang) == expected


# ---------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------

@patch("dashscope_recognizer.dashscope")
def test_streaming_emits_interims_final_then_end(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _fake_streaming_response()
    recognizer, collector = _make_recognizer([b"RIFF-clip", None])

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)
    recognizer.stop()

    assert collector.results == [
        ("hi", False),
        ("hi there", False),
        ("hi there friend", False),
        ("hi there friend", True),
    ]
    assert collector.errors == []
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["asr_options"]["language"] == "en"


@patch("dashscope_recognizer.dashscope")
def test_interim_results_disabled_emits_final_only(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _fake_streaming_response()
    recognizer, collector = _make_recognizer(
        [b"clip", None], options=RecognizerOptions(interim_results=False)
    )

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.results == [("hi there friend", True)]


@patch("dashscope_recognizer.dashscope")
def test_single_shot_session_ends_after_one_clip(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _fake_streaming_response()
    recognizer, collector = _make_recognizer(
        [b"clip"], options=RecognizerOptions(continuous=False)
    )

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.results[-1] == ("hi there friend", True)


@patch("dashscope_recognizer.dashscope")
def test_empty_stream_reports_no_speech(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([{"output": {"choices": []}}])
    recognizer, collector = _make_recognizer([b"clip", None])

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.results == []
    assert collector.errors == ["no-speech"]


@patch("dashscope_recognizer.dashscope")
def test_start_while_running_raises(mock_ds: MagicMock) -> None:
    recognizer, _ = _make_recognizer([])

    recognizer.start()
    try:
        with pytest.raises(AlreadyRunningError):
            recognizer.start()
    finally:
        recognizer.stop()


@patch("dashscope_recognizer.dashscope")
def test_restart_after_end(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = lambda **_: _fake_streaming_response()
    recognizer, collector = _make_recognizer([None])

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)
    deadline = time.time() + 3.0
    while time.time() < deadline:
        try:
            recognizer.start()
            break
        except AlreadyRunningError:
            time.sleep(0.01)
    recognizer._clip_queue.put(b"clip")
    recognizer._clip_queue.join()
    recognizer.stop()

    assert collector.results[-1] == ("hi there friend", True)


# ---------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------

@patch("dashscope_recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_reports_not_allowed() -> None:
    recognizer, collector = _make_recognizer([b"clip", None], api_key="")

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.errors == ["not-allowed"]


@patch("dashscope_recognizer.dashscope")
def test_network_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")
    recognizer, collector = _make_recognizer([b"clip", None])

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.errors == ["network"]


@patch("dashscope_recognizer.dashscope")
def test_auth_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = Exception("401 Unauthorized: invalid api key")
    recognizer, collector = _make_recognizer([b"clip", None])

    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.errors == ["not-allowed"]


@patch("dashscope_recognizer.dashscope", None)
def test_dashscope_not_installed() -> None:
    recognizer, collector = _make_recognizer([b"clip", None])

    assert DashscopeRecognizer.is_available() is False
    recognizer.start()
    assert collector.ended.wait(timeout=3.0)

    assert collector.errors == ["service-not-allowed"]


# ---------------------------------------------------------------
# Stop during recognition
# ---------------------------------------------------------------

@patch("dashscope_recognizer.dashscope")
def test_stop_during_streaming_cancels_gracefully(mock_ds: MagicMock) -> None:
    def slow_response():
        yield _chunk("hello")
        time.sleep(5)  # hang to simulate slow stream
        yield _chunk("world")

    mock_ds.MultiModalConversation.call.return_value = slow_response()
    recognizer, collector = _make_recognizer([b"clip", None])

    recognizer.start()
    time.sleep(0.3)  # let worker pick up and start streaming
    recognizer.stop()
    time.sleep(0.2)

    finals = [r for r in collector.results if r[1]]
    assert finals == []
    assert not collector.ended.is_set()


@patch("dashscope_recognizer.dashscope")
def test_start_right_after_stop_during_request(mock_ds: MagicMock) -> None:
    def slow_response():
        time.sleep(2)  # still inside the request when stop() gives up waiting
        yield _chunk("late")

    mock_ds.MultiModalConversation.call.side_effect = lambda **_: slow_response()
    recognizer, collector = _make_recognizer([b"clip"])

    recognizer.start()
    time.sleep(0.3)
    recognizer.stop()
    recognizer.start()
    try:
        with pytest.raises(AlreadyRunningError):
            recognizer.start()
    finally:
        recognizer.stop()

    assert collector.results == []


@patch("dashscope_recognizer.dashscope")
def test_controller_relistens_after_stop_during_request(mock_ds: MagicMock) -> None:
    def slow_response():
        time.sleep(2)
        yield _chunk("late")

    mock_ds.MultiModalConversation.call.side_effect = lambda **_: slow_response()
    clips: Queue[bytes | None] = Queue()
    clips.put(b"clip")
    errors: List[str] = []
    controller = SessionController(
        recognizer_factory=lambda options: DashscopeRecognizer(clips, api_key="k", options=options),
        on_error=errors.append,
    )

    controller.start_listening()
    time.sleep(0.3)
    controller.stop_listening()
    controller.start_listening()
    try:
        assert controller.is_listening is True
        assert controller.error is None
        assert errors == []
    finally:
        controller.stop_listening()
