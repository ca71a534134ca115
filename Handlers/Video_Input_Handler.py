"""Video Input Handler - Reads frames from a pre-recorded video file.

Implements the FrameSource protocol, same interface as CameraHandler.
Used when the --video flag is passed.
"""
from pathlib import Path

import cv2

from core.events import Frame
from Handlers.Capture_Handler import CaptureHandler
from utils.failures import EmptyFrame, InvalidVideoFile


class VideoInputHandler(CaptureHandler):
    """Handles video file input.

    A failed read means the file is exhausted, so it ends the stream
    instead of being retried.
    """

    def __init__(self, video_path):
        """
        Open the video file for reading.

        Args:
            video_path: Path to the video file.

        Raises:
            InvalidVideoFile: the file is missing or cannot be decoded.
        """
        super().__init__("VideoInputHandler")
        self.video_path = Path(video_path)

        if not self.video_path.is_file():
            raise InvalidVideoFile(f"video file not found: {self.video_path}")

        cap = cv2.VideoCapture(str(self.video_path), cv2.CAP_FFMPEG)
        if not cap.isOpened():
            cap.release()
            raise InvalidVideoFile(f"unable to open video file: {self.video_path}")
        self.cap = cap

        self.logger.info(
            f"Video file opened: {self.video_path} ({self.width}x{self.height} @ {self.fps:g}fps)"
        )

    def grab(self) -> Frame:
        """Read the next frame from the video file."""
        image = self._read()
        if image is None or image.size == 0:
            raise EmptyFrame(f"end of video file: {self.video_path}")

        return Frame(image=image)
