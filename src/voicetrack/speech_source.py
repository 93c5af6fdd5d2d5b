# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Base interface for speech sources.

A speech source turns microphone audio into a stream of recognized text
events. The alignment service treats it as a black box: it subscribes to
results, statuses, errors and model download progress, and it calls
initialize/start/stop. Error codes are passed to the host unmodified.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

SourceStatus = Literal["off", "initializing", "listening", "error"]

SpeechErrorCode = Literal[
    "model-not-found",
    "model-download-failed",
    "microphone-denied",
    "microphone-not-found",
    "recognition-failed",
    "not-supported",
]

ResultCallback = Callable[[str, bool], None]
StatusCallback = Callable[[SourceStatus], None]
ErrorCallback = Callable[[SpeechErrorCode, str], None]
ProgressCallback = Callable[[int, int], None]


class SpeechSourceError(RuntimeError):
    """A speech source failure carrying a typed error code."""

    def __init__(self, code: SpeechErrorCode, message: str) -> None:
        super().__init__(message)
        self.code: SpeechErrorCode = code
        self.message: str = message

    def __repr__(self) -> str:
        return f"SpeechSourceError({self.code}: {self.message})"


@dataclass
class ModelInfo:
    """Information about a recognition model for one language."""

    language: str  # BCP-47 tag (e.g., "en-US")
    name: str  # Model directory name
    url: str
    size_mb: int | None = None


class SpeechSource(ABC):
    """Base class for speech sources with simple subscriber lists."""

    def __init__(self) -> None:
        self._result_callbacks: list[ResultCallback] = []
        self._status_callbacks: list[StatusCallback] = []
        self._error_callbacks: list[ErrorCallback] = []
        self._progress_callbacks: list[ProgressCallback] = []
        self.status: SourceStatus = "off"

    def on_result(self, callback: ResultCallback) -> None:
        self._result_callbacks.append(callback)

    def on_status(self, callback: StatusCallback) -> None:
        self._status_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    def on_progress(self, callback: ProgressCallback) -> None:
        self._progress_callbacks.append(callback)

    def clear_callbacks(self) -> None:
        self._result_callbacks.clear()
        self._status_callbacks.clear()
        self._error_callbacks.clear()
        self._progress_callbacks.clear()

    def emit_result(self, text: str, is_final: bool) -> None:
        for callback in list(self._result_callbacks):
            callback(text, is_final)

    def emit_status(self, status: SourceStatus) -> None:
        self.status = status
        for callback in list(self._status_callbacks):
            callback(status)

    def emit_error(self, code: SpeechErrorCode, message: str) -> None:
        logger.error("Speech source error (%s): %s", code, message)
        for callback in list(self._error_callbacks):
            callback(code, message)

    def emit_progress(self, loaded: int, total: int) -> None:
        for callback in list(self._progress_callbacks):
            callback(loaded, total)

    def fail(self, code: SpeechErrorCode, message: str) -> SpeechSourceError:
        """Report an error to subscribers and return the exception to raise."""
        self.emit_error(code, message)
        self.emit_status("error")
        return SpeechSourceError(code, message)

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the recognizer (e.g., download and load a model)."""

    @abstractmethod
    async def start(self) -> None:
        """Begin emitting recognition results.

        Raises:
            SpeechSourceError: If the model or microphone is unavailable.
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop listening. Any buffered speech is emitted as a final result."""

    @abstractmethod
    def dispose(self) -> None:
        """Release the model and audio resources."""

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether initialize() has completed."""

    @property
    def is_listening(self) -> bool:
        return self.status == "listening"
