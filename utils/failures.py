"""
Structured error handling and failure tracking for BombusCV.

Error kinds:
    setup-fatal       ConfigNotFound, BrokenConfig, InvalidCameraIndex,
                      InvalidVideoFile, InvalidOutput (critical=True)
    end-of-stream     EmptyFrame
    transient         FrameDropped, TextOverlayFail
"""
import threading
import time
from typing import Dict, List, Optional
from utils.logger import Logger


class BombusError(Exception):
    """Base class for all BombusCV exceptions."""
    default_message = ""
    default_critical = False

    def __init__(self, message: Optional[str] = None, critical: Optional[bool] = None):
        message = message if message is not None else self.default_message
        super().__init__(message)
        self.message = message
        self.critical = self.default_critical if critical is None else critical
        self.timestamp = time.time()


class ConfigNotFound(BombusError):
    """Raised when no valid configuration path can be determined."""
    default_message = "no valid config path found"
    default_critical = True


class BrokenConfig(BombusError):
    """Raised when a config file given explicitly (--config) is missing or cannot be parsed."""
    default_message = "broken configuration"
    default_critical = True


class InvalidCameraIndex(BombusError):
    """Raised when the capture device cannot be opened."""
    default_message = "unable to open camera by index"
    default_critical = True


class InvalidVideoFile(BombusError):
    """Raised when the input video file cannot be opened."""
    default_message = "unable to open video file"
    default_critical = True


class InvalidOutput(BombusError):
    """Raised when the output video file cannot be opened for writing."""
    default_message = "unable to open video output file"
    default_critical = True


class FrameDropped(BombusError):
    """A single read or write failed; the stream is still live."""
    default_message = "frame dropped"


class EmptyFrame(BombusError):
    """The source delivered no content: end of stream."""
    default_message = "empty video frame"


class TextOverlayFail(BombusError):
    """The date & time overlay could not be drawn on a frame."""
    default_message = "unable to print text overlay"


class FailureManager:
    """Tracks and manages recurring failures to improve system resilience."""

    def __init__(self, settings: Optional[dict] = None):
        """
        Initialize the failure manager.

        Args:
            settings: Dictionary containing failure thresholds ('threshold', 'window_seconds')
        """
        self.logger = Logger("FailureManager")

        self.settings = settings or {}
        self.threshold = self.settings.get('threshold', 25)
        self.window_seconds = self.settings.get('window_seconds', 60)

        self.failures: Dict[str, List[float]] = {}
        self.history: List[BombusError] = []
        self._max_history = 100  # Cap to prevent unbounded memory growth
        self._lock = threading.Lock()

    def record_failure(self, error: Exception):
        """
        Record a failure incident (thread-safe).

        Args:
            error: The exception that occurred.
        """
        with self._lock:
            error_type = type(error).__name__
            now = time.time()

            self.failures.setdefault(error_type, []).append(now)

            # Prune old entries beyond the time window
            cutoff = now - self.window_seconds
            self.failures[error_type] = [
                t for t in self.failures[error_type] if t > cutoff
            ]

            if isinstance(error, BombusError):
                self.history.append(error)
                msg = f"Failure detected: {error_type} - {error.message}"
                if error.critical:
                    self.logger.error(f"CRITICAL: {msg}")
                else:
                    self.logger.warning(msg)
            else:
                self.logger.error(f"Unexpected failure: {error_type} - {str(error)}")

            # Cap history to prevent memory leak
            if len(self.history) > self._max_history:
                self.history = self.history[-self._max_history:]

            if len(self.failures[error_type]) == self.threshold:
                self.logger.warning(
                    f"Resilience Alert: '{error_type}' exceeded threshold "
                    f"({self.threshold} in {self.window_seconds}s)"
                )

    def is_threshold_exceeded(self, error_type: str) -> bool:
        """Check if a specific error type has exceeded the frequency threshold."""
        with self._lock:
            if error_type not in self.failures:
                return False

            now = time.time()
            self.failures[error_type] = [
                t for t in self.failures[error_type] if (now - t) < self.window_seconds
            ]
            return len(self.failures[error_type]) >= self.threshold

    def count(self, error_type: str) -> int:
        """Number of failures of *error_type* still inside the window."""
        with self._lock:
            return len(self.failures.get(error_type, []))

    def get_recent_history(self, count: int = 10) -> List[BombusError]:
        """Return the most recent failures."""
        with self._lock:
            return self.history[-count:]
