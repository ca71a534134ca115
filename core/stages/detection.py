"""
Detection Stage — pulls frames from the frame queue, runs the motion
detector, and forwards motion frames to the motion queue.

Runs in its own thread. Exits when the capture stage closes the frame
queue or the detector reports an empty frame.
"""
from queue import Queue
from threading import Thread
from typing import Callable, Optional

from core.events import EndOfStream, END_OF_STREAM, ERROR
from core.protocols import Detector
from utils.failures import EmptyFrame, FailureManager
from utils.logger import Logger


class DetectionStage(Thread):
    """
    Pipeline Stage 1: Motion detection.

    Owns the detector (and therefore its reference frame) exclusively.
    """

    def __init__(
        self,
        detector: Detector,
        in_queue: Queue,
        out_queue: Queue,
        failures: Optional[FailureManager] = None,
        stop_upstream: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            detector: Object implementing the Detector protocol.
            in_queue: Queue of Frame messages from CaptureStage.
            out_queue: Queue of motion Frames for RecordingStage.
            failures: Shared FailureManager.
            stop_upstream: Called when the stage stops before its inbound queue
                           is closed (the pipeline uses it to stop acquisition).
        """
        super().__init__(name="DetectionStage", daemon=True)
        self.detector = detector
        self.in_queue = in_queue
        self.out_queue = out_queue
        self.failures = failures or FailureManager()
        self.stop_upstream = stop_upstream
        self.logger = Logger("DetectionStage")

        self.frames_analysed = 0
        self.motion_frames = 0
        self.reason = END_OF_STREAM
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        """Main detection loop. Blocks on the frame queue until it is closed."""
        self.logger.info("Detection stage running")
        upstream_closed = False

        try:
            while True:
                item = self.in_queue.get()
                if isinstance(item, EndOfStream):
                    upstream_closed = True
                    self.reason = item.reason
                    break

                try:
                    motion = self.detector.detect(item)
                except EmptyFrame:
                    self.logger.info("Empty frame received, end of stream")
                    break

                self.frames_analysed += 1
                if motion is not None:
                    self.motion_frames += 1
                    self.out_queue.put(motion)
        except Exception as e:
            self.reason = ERROR
            self.error = e
            self.failures.record_failure(e)
        finally:
            self.out_queue.put(EndOfStream(reason=self.reason))

        # Upstream still producing: drain so the capture stage never blocks on put()
        if not upstream_closed:
            self._drain()

        self.logger.info(
            f"Detection stage stopped ({self.reason}, {self.frames_analysed} analysed, "
            f"{self.motion_frames} with motion)"
        )

    def _drain(self) -> None:
        """Stop acquisition and discard inbound frames until the frame queue is closed."""
        if self.stop_upstream is not None:
            self.stop_upstream()
        discarded = 0
        while not isinstance(self.in_queue.get(), EndOfStream):
            discarded += 1
        if discarded:
            self.logger.warning(f"Discarded {discarded} frame(s) after detection stopped")
