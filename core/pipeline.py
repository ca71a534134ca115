"""
Motion Pipeline — wires FrameSource → MotionDetector → FrameSink.

    CaptureStage → [frame_queue] → DetectionStage → [motion_queue] → RecordingStage

One pipeline instance is one recording run: it owns the three stage
threads, the two bounded queues and the cancellation token. The token
is read by the capture stage only; once acquisition stops, the frames
already queued drain through detection and recording before those
stages exit.
"""
from dataclasses import dataclass, field
from queue import Queue
from threading import Event
from typing import List, Optional

from core.events import CANCELLED, END_OF_STREAM, ERROR
from core.protocols import Detector, FrameSink, FrameSource
from core.stages import CaptureStage, DetectionStage, RecordingStage
from utils.constants import DEFAULT_QUEUE_SIZE, GRAB_RETRY_DELAY
from utils.failures import FailureManager
from utils.logger import Logger


@dataclass
class PipelineResult:
    """Aggregated outcome of one pipeline run."""
    reason: str = END_OF_STREAM
    frames_grabbed: int = 0
    frames_dropped: int = 0
    frames_analysed: int = 0
    motion_frames: int = 0
    frames_written: int = 0
    write_failures: int = 0
    overlay_failures: int = 0
    errors: List[BaseException] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class MotionPipeline:
    """
    Orchestrates the three stages of one recording run.

    Usage:
        pipeline = MotionPipeline(source, MotionDetector(), sink)
        result = pipeline.run()          # blocks until all stages terminate

    ``stop()`` (e.g. from a signal handler) requests a graceful shutdown.
    """

    def __init__(
        self,
        source: FrameSource,
        detector: Detector,
        sink: FrameSink,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        cancel_event: Optional[Event] = None,
        failures: Optional[FailureManager] = None,
        retry_delay: float = GRAB_RETRY_DELAY,
    ):
        """
        Args:
            source: Opened frame source; released by the capture stage.
            detector: Motion detector, used by the detection stage only.
            sink: Opened frame sink; released by the recording stage.
            queue_size: Capacity of each hand-off queue.
            cancel_event: Cancellation token (a fresh one by default).
            failures: FailureManager shared by the stages.
            retry_delay: Pause after a dropped frame.
        """
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {queue_size}")

        self.logger = Logger("MotionPipeline")
        self.queue_size = queue_size
        self.cancel_event = cancel_event or Event()
        self.failures = failures or FailureManager()
        self._sink = sink

        # Bounded queues (pipeline backpressure)
        self.frame_queue: Queue = Queue(maxsize=queue_size)
        self.motion_queue: Queue = Queue(maxsize=queue_size)

        self.capture_stage = CaptureStage(
            source=source,
            out_queue=self.frame_queue,
            cancel_event=self.cancel_event,
            failures=self.failures,
            retry_delay=retry_delay,
        )
        self.detection_stage = DetectionStage(
            detector=detector,
            in_queue=self.frame_queue,
            out_queue=self.motion_queue,
            failures=self.failures,
            stop_upstream=self.stop,
        )
        self.recording_stage = RecordingStage(
            sink=sink,
            in_queue=self.motion_queue,
            failures=self.failures,
            stop_upstream=self.stop,
        )
        self._started = False

    @property
    def stages(self):
        return [self.capture_stage, self.detection_stage, self.recording_stage]

    def start(self) -> None:
        """Start all stages (consumers first)."""
        if self._started:
            raise RuntimeError("pipeline already started")
        self._started = True

        self.logger.info(f"Starting pipeline (queue capacity {self.queue_size})")
        self.recording_stage.start()
        self.detection_stage.start()
        self.capture_stage.start()

    def stop(self) -> None:
        """Request a graceful shutdown: stop acquisition, let queued frames drain."""
        if not self.cancel_event.is_set():
            self.logger.info("Shutdown requested")
            self.cancel_event.set()

    def wait(self, poll_interval: float = 0.5) -> PipelineResult:
        """Block until every stage has terminated and return the outcome."""
        # Join the capture stage first: it is the one reacting to cancellation.
        # A short timeout keeps the main thread responsive to signals.
        for stage in self.stages:
            while stage.is_alive():
                stage.join(timeout=poll_interval)

        result = self.result()
        self.logger.info(
            f"Pipeline finished ({result.reason}): {result.frames_grabbed} grabbed, "
            f"{result.motion_frames} with motion, {result.frames_written} written"
        )
        return result

    def run(self) -> PipelineResult:
        """Start the pipeline and block until it has fully drained."""
        self.start()
        return self.wait()

    def result(self) -> PipelineResult:
        """Snapshot of the aggregated stage counters."""
        errors = [s.error for s in self.stages if s.error is not None]

        if errors:
            reason = ERROR
        elif self.capture_stage.reason == CANCELLED:
            reason = CANCELLED
        else:
            reason = END_OF_STREAM

        return PipelineResult(
            reason=reason,
            frames_grabbed=self.capture_stage.frames_grabbed,
            frames_dropped=self.capture_stage.frames_dropped,
            frames_analysed=self.detection_stage.frames_analysed,
            motion_frames=self.detection_stage.motion_frames,
            frames_written=self.recording_stage.frames_written,
            write_failures=self.recording_stage.write_failures,
            overlay_failures=getattr(self._sink, "overlay_failures", 0),
            errors=errors,
        )
