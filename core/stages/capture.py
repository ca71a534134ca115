"""
Capture Stage — grabs frames from a FrameSource and puts them into the frame queue.

Runs in its own thread. Uses a blocking put() so that a slow detector
throttles acquisition (bounded queue backpressure) instead of growing
memory. This is the only stage that watches the cancellation token.
"""
import time
from queue import Queue
from threading import Thread, Event
from typing import Optional

from core.events import EndOfStream, END_OF_STREAM, CANCELLED, ERROR
from core.protocols import FrameSource
from utils.constants import GRAB_RETRY_DELAY
from utils.failures import EmptyFrame, FailureManager, FrameDropped
from utils.logger import Logger


class CaptureStage(Thread):
    """
    Pipeline Stage 0: Frame acquisition.

    Owns the FrameSource: releases it and closes the frame queue
    (EndOfStream) on every exit path.
    """

    def __init__(
        self,
        source: FrameSource,
        out_queue: Queue,
        cancel_event: Event,
        failures: Optional[FailureManager] = None,
        retry_delay: float = GRAB_RETRY_DELAY,
    ):
        """
        Args:
            source: Any object implementing the FrameSource protocol.
            out_queue: Bounded queue to push Frame messages into.
            cancel_event: Cancellation token, set to stop acquisition.
            failures: Shared FailureManager recording dropped frames.
            retry_delay: Pause after a dropped frame before grabbing again.
        """
        super().__init__(name="CaptureStage", daemon=True)
        self.source = source
        self.out_queue = out_queue
        self.cancel_event = cancel_event
        self.failures = failures or FailureManager()
        self.retry_delay = retry_delay
        self.logger = Logger("CaptureStage")

        self.frames_grabbed = 0
        self.frames_dropped = 0
        self.reason = END_OF_STREAM
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        """Main capture loop. Runs until the source ends or is cancelled."""
        self.logger.info("Capture stage running")

        try:
            while True:
                if self.cancel_event.is_set():
                    self.reason = CANCELLED
                    self.logger.info("Cancellation requested, stopping acquisition")
                    break

                try:
                    frame = self.source.grab()
                except FrameDropped as e:
                    # Camera glitch, brief retry
                    self.frames_dropped += 1
                    self.failures.record_failure(e)
                    time.sleep(self.retry_delay)
                    continue
                except EmptyFrame as e:
                    self.logger.info(f"Frame source exhausted: {e.message}")
                    break

                self.frames_grabbed += 1
                self.out_queue.put(frame)
        except Exception as e:
            self._fail(e)
        finally:
            try:
                self.source.release()
            except Exception as e:
                self._fail(e)
            finally:
                self.out_queue.put(EndOfStream(reason=self.reason))

        self.logger.info(
            f"Capture stage stopped ({self.reason}, {self.frames_grabbed} grabbed, "
            f"{self.frames_dropped} dropped)"
        )

    def _fail(self, error: Exception) -> None:
        """Record an unexpected error; the first one is kept as the stage error."""
        self.reason = ERROR
        if self.error is None:
            self.error = error
        self.failures.record_failure(error)
