"""
Main voicetrack application.
Follows a script in the terminal: captures speech with Vosk, aligns it to the
script and prints the passage the speaker has reached.
"""

import argparse
import asyncio
import contextlib
import logging
import math
import signal
import sys
from pathlib import Path

from . import debug_log
from .config import (
    Config,
    SpeechSettings,
    TrackingSettings,
    get_config_path,
    get_speech_settings,
    load_config,
    resolve_tracking_settings,
    save_config,
)
from .positions import StaticLayout
from .script_text import load_script
from .service import AlignmentService
from .speech_source import SourceStatus, SpeechErrorCode, SpeechSourceError
from .vosk_source import VoskSpeechSource, download_model, get_available_models, list_devices

logger = logging.getLogger(__name__)

# Terminal "layout": one row per line of words
WORDS_PER_ROW: int = 12
VISIBLE_ROWS: int = 10


class TerminalPrompter:
    """
    Runs an AlignmentService against the microphone and reports progress
    through the script on stdout.
    """

    def __init__(
        self,
        script_text: str,
        speech_settings: SpeechSettings,
        tracking_settings: TrackingSettings,
        context_words: int = 8
    ) -> None:
        self.context_words: int = context_words
        self.source: VoskSpeechSource = VoskSpeechSource(
            language=speech_settings["language"],
            model_dir=speech_settings["model_dir"],
            sample_rate=speech_settings["sample_rate"],
            chunk_ms=speech_settings["chunk_ms"],
            device=speech_settings["audio_device"],
        )
        self.service: AlignmentService = AlignmentService(self.source, tracking_settings)
        self.service.initialize(script_text)
        rows: int = max(1, math.ceil(self.service.total_words / WORDS_PER_ROW))
        self.service.update_layout(StaticLayout(content=float(rows), viewport=float(VISIBLE_ROWS)))

        self.service.on_word_match = self._on_word_match
        self.service.on_status_change = self._on_status_change
        self.service.on_recognized_text = self._on_recognized_text
        self.service.on_error = self._on_error
        self.service.on_progress = self._on_progress
        self.stopped: asyncio.Event = asyncio.Event()

    def _on_word_match(self, word_index: int, target_offset: float) -> None:
        words: list[str] = self.service.words
        passage: str = " ".join(words[word_index:word_index + self.context_words])
        print(f"[{word_index:5d}/{len(words)}] {passage}")

    def _on_status_change(self, status: SourceStatus) -> None:
        print(f"Status: {status}")

    def _on_recognized_text(self, text: str, is_final: bool) -> None:
        logger.debug("%s: %s", "final" if is_final else "partial", text)

    def _on_error(self, code: SpeechErrorCode, message: str) -> None:
        print(f"Error ({code}): {message}", file=sys.stderr)

    def _on_progress(self, loaded: int, total: int) -> None:
        percent: int = int(loaded * 100 / total) if total else 0
        print(f"\rDownloading model: {percent:3d}%", end="", flush=True)
        if loaded >= total:
            print()

    async def run(self) -> None:
        """Listen until stop() is called."""
        print(f"Script loaded: {self.service.total_words} words")
        await self.service.start()
        print("Listening... start reading. Press Ctrl+C to stop.\n")
        await self.stopped.wait()

    def stop(self) -> None:
        self.stopped.set()

    def close(self) -> None:
        self.service.dispose()
        print(f"Stopped at word {self.service.current_word_index} of {self.service.total_words}.")


def main() -> None:
    """Main entry point."""
    config: Config = load_config()
    speech: SpeechSettings = get_speech_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="voicetrack - follow a script by listening to the speaker"
    )
    parser.add_argument(
        "script",
        type=Path,
        nargs="?",
        help="Script file to follow (.md files are reduced to prose)"
    )
    parser.add_argument(
        "--language", "-l",
        default=speech["language"],
        help="Recognition language (default: from config or en-US)"
    )
    parser.add_argument(
        "--model-dir",
        default=speech["model_dir"],
        help="Model cache directory (default: ~/.cache/voicetrack/models)"
    )
    parser.add_argument(
        "--device", "-d",
        type=int,
        default=speech["audio_device"],
        help="Audio input device index"
    )
    parser.add_argument(
        "--chunk-ms",
        type=int,
        default=speech["chunk_ms"],
        help="Audio chunk size in milliseconds (default: from config or 100)"
    )
    parser.add_argument(
        "--preset",
        choices=["conservative", "balanced", "responsive", "custom"],
        default=None,
        help="Speaking pace preset (default: from config)"
    )
    parser.add_argument(
        "--skip-headers",
        action="store_true",
        help="Do not track Markdown headers"
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio input devices and exit"
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List available recognition models and exit"
    )
    parser.add_argument(
        "--download-model",
        action="store_true",
        help="Download the model for --language and exit"
    )
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )
    parser.add_argument(
        "--debug-log",
        action="store_true",
        help="Write alignment decisions to ./logs/alignment.log"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output"
    )

    args: argparse.Namespace = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    if args.list_devices:
        print("\nAvailable audio input devices:")
        print("-" * 50)
        for dev in list_devices():
            print(f"  [{dev['index']}] {dev['name']}")
            print(f"      Channels: {dev['channels']}, Sample rate: {dev['sample_rate']}")
        return

    if args.list_models:
        print("\nAvailable recognition models:")
        print("-" * 50)
        for model in get_available_models():
            print(f"  {model.language}: {model.name} ({model.size_mb}MB)")
        return

    if args.download_model:
        print(f"Downloading model for {args.language}...")
        path: Path = download_model(args.language, args.model_dir)
        print(f"Model installed to {path}")
        return

    if args.save_config:
        config["speech"]["language"] = args.language
        config["speech"]["model_dir"] = args.model_dir
        config["speech"]["audio_device"] = args.device
        config["speech"]["chunk_ms"] = args.chunk_ms
        if args.preset:
            config["tracking"]["pace_preset"] = args.preset
        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    if args.script is None:
        parser.error("a script file is required")
    if not args.script.exists():
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        sys.exit(1)

    if args.debug_log:
        debug_log.enable()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    if args.preset:
        config["tracking"]["pace_preset"] = args.preset
    speech.update({
        "language": args.language,
        "model_dir": args.model_dir,
        "audio_device": args.device,
        "chunk_ms": args.chunk_ms,
    })

    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    app: TerminalPrompter = TerminalPrompter(
        load_script(args.script, skip_headers=args.skip_headers),
        speech,
        resolve_tracking_settings(config),
    )

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        loop.call_soon_threadsafe(app.stop)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.run())
    except SpeechSourceError as e:
        print(f"Could not start listening: {e.message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        with contextlib.suppress(Exception):
            app.close()
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
