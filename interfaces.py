"""Protocol interfaces used by the adapter and SessionController."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

from models import RecognitionEvent, RecognizerOptions, TranscriberSettings

# A native result is a Hypothesis, a mapping with text/is_final keys, or a
# (text, is_final) pair.
ResultHandler = Callable[[Sequence[Any], int], None]
ErrorHandler = Callable[[str], None]
EndHandler = Callable[[], None]


class Recognizer(Protocol):
    """Platform speech recognition capability."""

    def set_handlers(
        self,
        on_result: Optional[ResultHandler],
        on_error: Optional[ErrorHandler],
        on_end: Optional[EndHandler],
    ) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


RecognizerFactory = Callable[[RecognizerOptions], Recognizer]


class EventAdapter(Protocol):
    @property
    def is_supported(self) -> bool: ...

    def configure(self, options: RecognizerOptions) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


EventCallback = Callable[[RecognitionEvent], None]


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def load_settings(self) -> TranscriberSettings: ...

    def save_settings(self, settings: TranscriberSettings) -> None: ...
