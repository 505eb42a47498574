from __future__ import annotations

from typing import Any, List, Optional

from errors import AlreadyRunningError
from models import Hypothesis, RecognizerOptions


class FakeRecognizer:
    def __init__(self, options: Optional[RecognizerOptions] = None) -> None:
        self.options = options
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0
        self.start_error: Optional[Exception] = None
        self.on_result = None
        self.on_error = None
        self.on_end = None

    def set_handlers(self, on_result, on_error, on_end) -> None:  # noqa: ANN001
        self.on_result = on_result
        self.on_error = on_error
        self.on_end = on_end

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        if self.running:
            raise AlreadyRunningError()
        self.running = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    def emit(self, *results: Any, index: int = 0) -> None:
        assert self.on_result is not None
        self.on_result(list(results), index)

    def final(self, text: str) -> None:
        self.emit(Hypothesis(text, is_final=True))

    def interim(self, text: str) -> None:
        self.emit(Hypothesis(text, is_final=False))

    def fail(self, kind: str) -> None:
        assert self.on_error is not None
        self.on_error(kind)

    def end(self) -> None:
        self.running = False
        assert self.on_end is not None
        self.on_end()


class FakeRecognizerFactory:
    def __init__(self) -> None:
        self.created: List[FakeRecognizer] = []

    def __call__(self, options: RecognizerOptions) -> FakeRecognizer:
        recognizer = FakeRecognizer(options)
        self.created.append(recognizer)
        return recognizer

    @property
    def current(self) -> FakeRecognizer:
        return self.created[-1]
