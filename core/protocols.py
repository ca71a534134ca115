"""
Protocol definitions (interfaces) for BombusCV.

These define the contracts the handlers implement, so stages can be
wired to cameras, files or test doubles interchangeably.
"""
from typing import Protocol, Optional, runtime_checkable

from core.events import Frame


@runtime_checkable
class FrameSource(Protocol):
    """Interface for any frame-producing component (camera, video file, etc.)."""

    released: bool

    def grab(self) -> Frame:
        """
        Read the next frame, stamped with the current wall-clock time.

        Raises:
            FrameDropped: the read failed but the source is still live.
            EmptyFrame: the source is exhausted.
        """
        ...

    def release(self) -> None:
        """Release the capture handle. Idempotent."""
        ...


@runtime_checkable
class Detector(Protocol):
    """Interface for a motion classifier."""

    def detect(self, frame: Frame) -> Optional[Frame]:
        """
        Classify a frame.

        Returns:
            The frame if it contains motion, otherwise None.

        Raises:
            EmptyFrame: the frame carries no image data.
        """
        ...


@runtime_checkable
class FrameSink(Protocol):
    """Interface for a frame-persisting component (video file)."""

    released: bool

    def write(self, frame: Frame) -> None:
        """
        Append a frame to the output.

        Raises:
            FrameDropped: the frame could not be encoded.
        """
        ...

    def release(self) -> None:
        """Finalize and close the output. Idempotent."""
        ...
