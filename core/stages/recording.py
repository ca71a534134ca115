"""
Recording Stage — consumes motion frames and appends them to the output video.

Runs in its own thread. Write failures are transient: they are recorded
and the loop goes on. The sink is released on every exit path so the
container is finalized even after an abrupt shutdown.
"""
from queue import Queue
from threading import Thread
from typing import Callable, Optional

from core.events import EndOfStream, END_OF_STREAM, ERROR
from core.protocols import FrameSink
from utils.failures import FailureManager, FrameDropped
from utils.logger import Logger


class RecordingStage(Thread):
    """
    Pipeline Stage 2: Frame persistence.

    Owns the FrameSink exclusively.
    """

    def __init__(
        self,
        sink: FrameSink,
        in_queue: Queue,
        failures: Optional[FailureManager] = None,
        stop_upstream: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            sink: Object implementing the FrameSink protocol.
            in_queue: Queue of motion Frames from DetectionStage.
            failures: Shared FailureManager recording write failures.
            stop_upstream: Called when the stage stops before its inbound queue is closed.
        """
        super().__init__(name="RecordingStage", daemon=True)
        self.sink = sink
        self.in_queue = in_queue
        self.failures = failures or FailureManager()
        self.stop_upstream = stop_upstream
        self.logger = Logger("RecordingStage")

        self.frames_written = 0
        self.write_failures = 0
        self.reason = END_OF_STREAM
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        """Main recording loop. Writes frames until the motion queue is closed."""
        self.logger.info("Recording stage running")
        upstream_closed = False

        try:
            while True:
                item = self.in_queue.get()
                if isinstance(item, EndOfStream):
                    upstream_closed = True
                    self.reason = item.reason
                    break

                try:
                    self.sink.write(item)
                except FrameDropped as e:
                    self.write_failures += 1
                    self.failures.record_failure(e)
                    continue
                self.frames_written += 1
        except Exception as e:
            self._fail(e)
        finally:
            try:
                self.sink.release()
            except Exception as e:
                self._fail(e)

        if not upstream_closed:
            if self.stop_upstream is not None:
                self.stop_upstream()
            discarded = 0
            while not isinstance(self.in_queue.get(), EndOfStream):
                discarded += 1
            if discarded:
                self.logger.warning(f"Discarded {discarded} motion frame(s) after recording stopped")

        self.logger.info(
            f"Recording stage stopped ({self.reason}, {self.frames_written} written, "
            f"{self.write_failures} failed)"
        )

    def _fail(self, error: Exception) -> None:
        """Record an unexpected error; the first one is kept as the stage error."""
        self.reason = ERROR
        if self.error is None:
            self.error = error
        self.failures.record_failure(error)
