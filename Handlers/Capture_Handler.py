"""Capture Handler - shared OpenCV VideoCapture plumbing for frame sources.

CameraHandler and VideoInputHandler both wrap exactly one cv2.VideoCapture
and differ only in how they open it and how they interpret a failed read.
"""
from typing import Optional, Tuple

import cv2
import numpy as np

from core.events import Frame
from utils.logger import Logger


class CaptureHandler:
    """Base class implementing the FrameSource protocol around a cv2.VideoCapture.

    Subclasses open the capture and implement ``grab()``.
    """

    def __init__(self, name: str):
        self.logger = Logger(name)
        self.cap: Optional[cv2.VideoCapture] = None
        self.released = False

    # ── Negotiated capture properties ─────────────────────────────────

    @property
    def width(self) -> int:
        return int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))

    @property
    def height(self) -> int:
        return int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

    @property
    def size(self) -> Tuple[int, int]:
        """Actual (width, height) of the captured frames."""
        return self.width, self.height

    @property
    def fps(self) -> float:
        return float(self.cap.get(cv2.CAP_PROP_FPS))

    # ── FrameSource protocol ──────────────────────────────────────────

    def grab(self) -> Frame:
        raise NotImplementedError

    def release(self) -> None:
        """Release the capture device/file. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        self.logger.info("Video capture released")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    # ── Internal ──────────────────────────────────────────────────────

    def _read(self) -> Optional[np.ndarray]:
        """Read one raw image; None when the read failed."""
        if self.cap is None:
            return None

        try:
            ret, image = self.cap.read()
        except cv2.error as e:
            self.logger.warning(f"VideoCapture read error: {e}")
            return None

        if not ret or image is None:
            return None
        return image
