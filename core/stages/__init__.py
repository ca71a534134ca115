"""
Pipeline stages for BombusCV.

The video processing pipeline is modeled as independent stages
connected by bounded queues:

    CaptureStage → [frame_queue] → DetectionStage → [motion_queue] → RecordingStage

Each stage runs in its own thread. Bounded queues provide natural
backpressure: if detection or encoding is slow, acquisition blocks
instead of buffering without limit. A stage closes its outbound queue
by putting an EndOfStream message on it.
"""
from .capture import CaptureStage
from .detection import DetectionStage
from .recording import RecordingStage

__all__ = ["CaptureStage", "DetectionStage", "RecordingStage"]
