"""
Capture parameters: the resolved, immutable description of one recording run.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

import cv2


class Codec(Enum):
    """Output video codecs and their fourcc characters."""
    MJPG = "MJPG"
    XVID = "XVID"
    MP4V = "mp4v"
    H264 = "h264"

    @property
    def fourcc(self) -> int:
        return cv2.VideoWriter_fourcc(*self.value)

    @classmethod
    def from_name(cls, name: str) -> "Codec":
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise ValueError(f"unknown codec: {name!r}") from None


@dataclass(frozen=True)
class CaptureParameters:
    """
    Everything the handlers need, resolved before the pipeline starts.

    Exactly one of ``camera_index`` and ``video_path`` is set.
    """
    output_path: Path
    camera_index: Optional[int] = None
    video_path: Optional[Path] = None
    height: int = 480
    width: int = 854
    framerate: float = 60.0
    codec: Codec = Codec.XVID
    overlay: bool = False

    def __post_init__(self):
        if (self.camera_index is None) == (self.video_path is None):
            raise ValueError("exactly one of camera_index and video_path must be set")
        if self.framerate <= 0:
            raise ValueError(f"framerate must be positive, got {self.framerate}")

    @property
    def from_file(self) -> bool:
        return self.video_path is not None

    @property
    def frame_size(self) -> Tuple[int, int]:
        """Requested (width, height)."""
        return self.width, self.height
