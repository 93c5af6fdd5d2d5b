# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Vosk speech source: microphone capture with sounddevice, offline recognition
with Vosk.

Audio arrives on the PortAudio callback thread and is handed to the event
loop with call_soon_threadsafe. A single consumer task feeds chunks to the
recognizer in an executor, so recognition results are always emitted on the
loop thread in the order the audio was captured.
"""

import asyncio
import json
import logging
import os
import tempfile
import urllib.error
import urllib.request
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt
from vosk import KaldiRecognizer, Model, SetLogLevel

from .speech_source import ModelInfo, SpeechSource, SpeechSourceError

logger = logging.getLogger(__name__)

# Suppress Vosk's verbose logging
SetLogLevel(-1)

VOSK_MODEL_BASE_URL: str = "https://alphacephei.com/vosk/models"
DEFAULT_MODEL_DIR: Path = Path.home() / ".cache" / "voicetrack" / "models"

# Available models, keyed by language
MODELS: dict[str, ModelInfo] = {
    "en-US": ModelInfo(
        language="en-US",
        name="vosk-model-small-en-us-0.15",
        url=f"{VOSK_MODEL_BASE_URL}/vosk-model-small-en-us-0.15.zip",
        size_mb=40,
    ),
    "en-GB": ModelInfo(
        language="en-GB",
        name="vosk-model-small-en-gb-0.15",
        url=f"{VOSK_MODEL_BASE_URL}/vosk-model-small-en-gb-0.15.zip",
        size_mb=40,
    ),
}


def get_available_models() -> list[ModelInfo]:
    """List the models that can be downloaded."""
    return list(MODELS.values())


def get_model_info(language: str) -> ModelInfo:
    """Look up the model for a language.

    Raises:
        ValueError: If the language has no model.
    """
    info: ModelInfo | None = MODELS.get(language)
    if info is None:
        raise ValueError(
            f"Language {language} is not supported. "
            f"Choose from: {list(MODELS.keys())}"
        )
    return info


def model_path(language: str, model_dir: str | Path | None = None) -> Path:
    """Directory a language's model is (or would be) installed in."""
    base: Path = Path(model_dir) if model_dir is not None else DEFAULT_MODEL_DIR
    return base / get_model_info(language).name


def download_model(
    language: str,
    model_dir: str | Path | None = None,
    progress_callback: Callable[[int, int], None] | None = None
) -> Path:
    """
    Download and unpack the model for a language, if not already present.

    Args:
        language: Language tag (e.g., "en-US")
        model_dir: Directory to install into, or None for the default cache
        progress_callback: Optional callback(loaded_bytes, total_bytes)

    Returns:
        Path to the installed model directory.
    """
    info: ModelInfo = get_model_info(language)
    target: Path = model_path(language, model_dir)
    if target.exists():
        logger.info("Model already exists at %s", target)
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s from %s...", info.name, info.url)

    def download_hook(block_count: int, block_size: int, total_size: int) -> None:
        if progress_callback and total_size > 0:
            progress_callback(min(total_size, block_count * block_size), total_size)

    with tempfile.NamedTemporaryFile(suffix=".zip", delete=False) as tmp:
        tmp_path: str = tmp.name
    try:
        urllib.request.urlretrieve(info.url, tmp_path, download_hook)
        logger.info("Extracting model...")
        with zipfile.ZipFile(tmp_path, "r") as zf:
            zf.extractall(target.parent)
    finally:
        try:
            os.unlink(tmp_path)
        except OSError as e:
            logger.warning("Could not delete temporary file %s: %s", tmp_path, e)

    logger.info("Model installed to %s", target)
    return target


def list_devices() -> list[dict[str, Any]]:
    """List available audio input devices."""
    import sounddevice as sd  # pylint: disable=import-outside-toplevel

    devices: list[dict[str, Any]] = []
    for i, dev in enumerate(sd.query_devices()):
        if dev["max_input_channels"] > 0:
            devices.append({
                "index": i,
                "name": dev["name"],
                "channels": dev["max_input_channels"],
                "sample_rate": dev["default_samplerate"],
            })
    return devices


def is_vosk_artifact(text: str) -> bool:
    """Vosk sometimes returns "the" when there's no valid sound input."""
    return text.lower() == "the"


class VoskSpeechSource(SpeechSource):
    """Offline speech recognition from the default (or given) microphone."""

    def __init__(
        self,
        language: str = "en-US",
        model_dir: str | Path | None = None,
        sample_rate: int = 16000,
        chunk_ms: int = 100,
        device: int | None = None,
        auto_download: bool = True
    ) -> None:
        """
        Args:
            language: Language tag selecting the Vosk model
            model_dir: Model cache directory, or None for the default
            sample_rate: Capture sample rate (16000 is optimal for Vosk)
            chunk_ms: Duration of each audio chunk in milliseconds
            device: Audio device index, or None for the default input
            auto_download: Download the model on initialize() if missing
        """
        super().__init__()
        self.language: str = language
        self.model_dir: str | Path | None = model_dir
        self.sample_rate: int = sample_rate
        self.chunk_size: int = int(sample_rate * chunk_ms / 1000)
        self.device: int | None = device
        self.auto_download: bool = auto_download

        self._model: Model | None = None
        self._recognizer: KaldiRecognizer | None = None
        self._stream: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[bytes | None] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._last_partial: str = ""

    @property
    def is_initialized(self) -> bool:
        return self._recognizer is not None

    async def initialize(self) -> None:
        if self.is_initialized:
            return
        self.emit_status("initializing")
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()

        try:
            path: Path = model_path(self.language, self.model_dir)
        except ValueError as e:
            raise self.fail("model-not-found", str(e)) from e

        if not path.exists():
            if not self.auto_download:
                raise self.fail(
                    "model-not-found",
                    f"Vosk model not found at {path}. "
                    f"Download it with: voicetrack --download-model {self.language}")

            def on_progress(loaded: int, total: int) -> None:
                loop.call_soon_threadsafe(self.emit_progress, loaded, total)

            try:
                await loop.run_in_executor(
                    None, download_model, self.language, self.model_dir, on_progress)
            except (OSError, urllib.error.URLError, zipfile.BadZipFile) as e:
                raise self.fail("model-download-failed", str(e)) from e

        logger.info("Loading Vosk model from: %s", path)
        try:
            self._model = await loop.run_in_executor(None, Model, str(path))
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise self.fail("model-not-found", f"Failed to load model: {e}") from e

        self._recognizer = self._create_recognizer()
        self.emit_status("off")

    def _create_recognizer(self) -> KaldiRecognizer:
        recognizer: KaldiRecognizer = KaldiRecognizer(self._model, self.sample_rate)
        recognizer.SetWords(True)
        return recognizer

    async def start(self) -> None:
        if not self.is_initialized:
            raise RuntimeError("Recognizer not initialized. Call initialize() first.")
        if self.is_listening:
            return
        if self._consumer is not None:
            # The previous session must flush before the recognizer is fed again
            await self._consumer
            self._consumer = None

        try:
            import sounddevice as sd  # pylint: disable=import-outside-toplevel
        except OSError as e:
            raise self.fail("not-supported", f"Audio capture is unavailable: {e}") from e

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._last_partial = ""
        try:
            self._stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                blocksize=self.chunk_size,
                device=self.device,
                dtype=np.int16,
                channels=1,
                callback=self._audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise self._microphone_error(e) from e

        self._consumer = self._loop.create_task(self._consume(self._queue))
        self.emit_status("listening")

    def _microphone_error(self, exc: Exception) -> SpeechSourceError:
        message: str = str(exc)
        lowered: str = message.lower()
        if "permission" in lowered or "denied" in lowered:
            return self.fail("microphone-denied", "Microphone access was denied")
        if "invalid device" in lowered or "no default input device" in lowered \
                or "device unavailable" in lowered or "no such device" in lowered:
            return self.fail("microphone-not-found", "No microphone found")
        return self.fail("recognition-failed", message)

    def _audio_callback(
        self,
        indata: npt.NDArray[np.int16],
        frames: int,
        time: Any,
        status: Any
    ) -> None:
        """Called on the PortAudio thread for each captured chunk."""
        if status:
            logger.debug("Audio status: %s", status)
        if self._loop is not None and self._queue is not None:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, bytes(indata))

    async def _consume(self, chunks: asyncio.Queue[bytes | None]) -> None:
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        try:
            while True:
                chunk: bytes | None = await chunks.get()
                if chunk is None:
                    final: str | None = await loop.run_in_executor(None, self.flush)
                    if final:
                        self.emit_result(final, True)
                    return
                result: tuple[str, bool] | None = await loop.run_in_executor(
                    None, self.process_audio, chunk)
                if result is not None:
                    self.emit_result(*result)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.fail("recognition-failed", str(e))

    def process_audio(self, audio_data: bytes) -> tuple[str, bool] | None:
        """
        Feed one chunk to the recognizer.

        Returns:
            (text, is_final), or None when there is nothing new to report.
        """
        if self._recognizer is None:
            return None
        if self._recognizer.AcceptWaveform(audio_data):
            self._last_partial = ""
            text: str = json.loads(self._recognizer.Result()).get("text", "").strip()
            if text and not is_vosk_artifact(text):
                return text, True
            return None

        partial: str = json.loads(self._recognizer.PartialResult()).get("partial", "").strip()
        if not partial or is_vosk_artifact(partial) or partial == self._last_partial:
            return None
        self._last_partial = partial
        return partial, False

    def flush(self) -> str | None:
        """Return any buffered speech as final text."""
        if self._recognizer is None:
            return None
        self._last_partial = ""
        text: str = json.loads(self._recognizer.FinalResult()).get("text", "").strip()
        if text and not is_vosk_artifact(text):
            return text
        return None

    def stop(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            finally:
                self._stream = None
        if self._queue is not None:
            # The consumer drains queued audio, then emits the final result
            self._queue.put_nowait(None)
            self._queue = None
        if self.status != "off":
            self.emit_status("off")

    def dispose(self) -> None:
        self.stop()
        self._consumer = None
        self.clear_callbacks()
        self._recognizer = None
        self._model = None
