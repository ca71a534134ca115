"""Video Writer Handler - persists motion frames to the output video file.

Optionally burns the capture date & time into each frame. An overlay that
cannot be drawn is logged and the frame is written without it.
"""
from pathlib import Path
from typing import Optional, Tuple

import cv2

from core.events import Frame
from core.params import Codec
from utils.constants import (
    OVERLAY_COLOR,
    OVERLAY_FORMAT,
    OVERLAY_ORIGIN,
    OVERLAY_SCALE,
    OVERLAY_THICKNESS,
)
from utils.failures import FrameDropped, InvalidOutput, TextOverlayFail
from utils.logger import Logger


class VideoWriterHandler:
    """Wraps a cv2.VideoWriter; implements the FrameSink protocol."""

    def __init__(
        self,
        video_path,
        codec: Codec,
        fps: float,
        frame_size: Tuple[int, int],
        overlay: bool = False,
    ):
        """
        Open the output video.

        Args:
            video_path: Output file path.
            codec: Output codec.
            fps: Output framerate.
            frame_size: (width, height) of every frame written.
            overlay: Draw the capture date & time on each frame.

        Raises:
            InvalidOutput: the writer could not be opened.
        """
        self.logger = Logger("VideoWriterHandler")
        self.video_path = Path(video_path)
        self.codec = codec
        self.fps = fps
        self.frame_size = (int(frame_size[0]), int(frame_size[1]))
        self.overlay = overlay
        self.frames_written = 0
        self.overlay_failures = 0
        self.released = False

        try:
            writer = cv2.VideoWriter(
                str(self.video_path), codec.fourcc, float(fps), self.frame_size, True
            )
        except cv2.error as e:
            raise InvalidOutput(f"unable to open video output file {self.video_path}: {e}") from e

        if not writer.isOpened():
            writer.release()
            raise InvalidOutput(f"unable to open video output file: {self.video_path}")
        self.writer: Optional[cv2.VideoWriter] = writer

        self.logger.info(
            f"Writing {codec.name} video to {self.video_path} "
            f"({self.frame_size[0]}x{self.frame_size[1]} @ {fps:g}fps, overlay={'on' if overlay else 'off'})"
        )

    def stamp(self, frame: Frame) -> None:
        """Draw the capture date & time onto the frame in place."""
        text = frame.captured_at.strftime(OVERLAY_FORMAT)
        try:
            cv2.putText(
                frame.image,
                text,
                OVERLAY_ORIGIN,
                cv2.FONT_HERSHEY_DUPLEX,
                OVERLAY_SCALE,
                OVERLAY_COLOR,
                OVERLAY_THICKNESS,
                cv2.LINE_8,
                False,
            )
        except cv2.error as e:
            raise TextOverlayFail(f"unable to print text overlay: {e}") from e

    def write(self, frame: Frame) -> None:
        """Write a frame (stamped when overlay is enabled) to the video file."""
        if self.writer is None:
            raise FrameDropped("video writer already released")

        height, width = frame.image.shape[:2]
        if (width, height) != self.frame_size:
            # cv2.VideoWriter would silently discard it
            raise FrameDropped(
                f"frame size {width}x{height} does not match output "
                f"{self.frame_size[0]}x{self.frame_size[1]}"
            )

        if self.overlay:
            try:
                self.stamp(frame)
            except TextOverlayFail as e:
                self.overlay_failures += 1
                self.logger.warning(f"{e.message}; writing frame without overlay")

        try:
            self.writer.write(frame.image)
        except cv2.error as e:
            raise FrameDropped(f"video encoder failed: {e}") from e
        self.frames_written += 1

    def release(self) -> None:
        """Finalize the container. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        if self.writer is not None:
            self.writer.release()
            self.writer = None
        self.logger.info(f"Video writer released ({self.frames_written} frame(s) in {self.video_path})")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
