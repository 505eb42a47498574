"""Console entrypoint: transcribe WAV clips through the wake/sleep gate."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from queue import Queue
from typing import List, Optional, Sequence, TextIO

from config import JsonConfigStore
from dashscope_recognizer import DashscopeRecognizer
from interfaces import ConfigStore, RecognizerFactory
from models import RecognizerOptions, SessionState, TranscriberSettings
from session_controller import SessionController

logger = logging.getLogger("wake_transcriber")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transcribe speech between a wake word and a sleep word."
    )
    parser.add_argument("clips", nargs="*", type=Path, help="WAV clips, one utterance each")
    parser.add_argument("--wake-word", help="phrase that starts transcription")
    parser.add_argument("--sleep-word", help="phrase that stops transcription")
    parser.add_argument("--lang", help="recognition language, e.g. en-US")
    parser.add_argument("--no-interim", action="store_true", help="disable interim results")
    parser.add_argument("--single", action="store_true", help="end each recognizer session after one clip")
    parser.add_argument("--api-key", help="DashScope API key (saved to config)")
    parser.add_argument("--config", type=Path, help="config file path")
    parser.add_argument("--save", action="store_true", help="persist the resolved settings")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def resolve_settings(store: ConfigStore, args: argparse.Namespace) -> TranscriberSettings:
    settings = store.load_settings()
    overrides = {}
    if args.wake_word:
        overrides["wake_word"] = args.wake_word
    if args.sleep_word:
        overrides["sleep_word"] = args.sleep_word
    if args.lang:
        overrides["lang"] = args.lang
    if args.no_interim:
        overrides["interim_results"] = False
    if args.single:
        overrides["continuous"] = False
    return replace(settings, **overrides)


def make_recognizer_factory(
    clip_queue: Queue[bytes | None], api_key: str
) -> Optional[RecognizerFactory]:
    if not DashscopeRecognizer.is_available():
        return None

    def factory(options: RecognizerOptions) -> DashscopeRecognizer:
        return DashscopeRecognizer(clip_queue, api_key=api_key, options=options)

    return factory


class ConsoleReporter:
    """Prints notifications; stands in for a presentation layer."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stdout
        self.errors: List[str] = []

    def on_transcript(self, text: str, is_final: bool) -> None:
        label = "final" if is_final else "interim"
        print(f"[{label}] {text}", file=self._stream)

    def on_wake(self) -> None:
        print("[wake] transcription active", file=self._stream)

    def on_sleep(self) -> None:
        print("[sleep] transcription stopped", file=self._stream)

    def on_error(self, message: str) -> None:
        self.errors.append(message)
        print(f"[error] {message}", file=self._stream)

    def on_state_change(self, previous: SessionState, current: SessionState) -> None:
        if previous.activation != current.activation:
            logger.debug("%s -> %s", previous.activation.value, current.activation.value)


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if not args.clips:
        logger.error("No clips given")
        return 2

    store = JsonConfigStore(path=args.config)
    if args.api_key:
        store.set_api_key(args.api_key)
    settings = resolve_settings(store, args)
    if args.save:
        store.save_settings(settings)

    clip_queue: Queue[bytes | None] = Queue()
    reporter = ConsoleReporter()
    controller = SessionController(
        recognizer_factory=make_recognizer_factory(clip_queue, store.get_api_key()),
        settings=settings,
        on_transcript=reporter.on_transcript,
        on_wake_word_detected=reporter.on_wake,
        on_sleep_word_detected=reporter.on_sleep,
        on_error=reporter.on_error,
        on_state_change=reporter.on_state_change,
    )
    if not controller.is_supported:
        return 1

    for clip in args.clips:
        clip_queue.put(clip.read_bytes())
    clip_queue.put(None)

    controller.start_listening()
    if not controller.is_listening:
        return 1
    try:
        clip_queue.join()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        controller.stop_listening()

    print(f"Transcript: {controller.transcript.strip()}")
    return 1 if reporter.errors else 0


def main() -> int:
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
