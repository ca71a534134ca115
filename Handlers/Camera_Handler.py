"""
Camera Handler - live frame capture from /dev/video<index> through OpenCV's V4L2 backend.

The requested resolution and framerate are advisory: the driver picks the
closest mode it supports, so callers must read back ``size`` and ``fps``.
"""
import cv2

from core.events import Frame
from Handlers.Capture_Handler import CaptureHandler
from utils.constants import MAX_CONSECUTIVE_DROPS
from utils.failures import EmptyFrame, FrameDropped, InvalidCameraIndex


class CameraHandler(CaptureHandler):
    """Handles interaction with a V4L2 capture device."""

    def __init__(self, index: int, height: int, width: int, fps: float):
        """
        Open the capture device.

        Args:
            index: /dev/video<index> capture camera index
            height: desired frame height
            width: desired frame width
            fps: desired framerate

        Raises:
            InvalidCameraIndex: the device could not be opened.
        """
        super().__init__("CameraHandler")
        self.index = index
        self.requested = (width, height, fps)
        self.consecutive_drops = 0

        if not self._open():
            raise InvalidCameraIndex(f"unable to open camera by index ({index})")

        self.logger.info(
            f"Camera {index} opened at {self.width}x{self.height} @ {self.fps:g}fps "
            f"(requested {width}x{height} @ {fps:g}fps)"
        )

    def _open(self) -> bool:
        """Open (or reopen) the device with the requested capture properties."""
        width, height, fps = self.requested
        params = [
            cv2.CAP_PROP_FRAME_WIDTH, int(width),
            cv2.CAP_PROP_FRAME_HEIGHT, int(height),
            cv2.CAP_PROP_FPS, int(round(fps)),
        ]
        try:
            cap = cv2.VideoCapture(self.index, cv2.CAP_V4L2, params)
        except cv2.error as e:
            self.logger.error(f"Failed to open camera {self.index}: {e}")
            return False

        if not cap.isOpened():
            cap.release()
            return False

        self.cap = cap
        return True

    def _restart(self) -> bool:
        """Close and reopen the device after a run of failed reads."""
        self.logger.warning(
            f"{MAX_CONSECUTIVE_DROPS} consecutive dropped frames. Restarting camera..."
        )
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        return self._open()

    def grab(self) -> Frame:
        """Grab a frame from the camera and stamp it with the current time."""
        image = self._read()

        if image is None:
            self.consecutive_drops += 1
            if self.consecutive_drops >= MAX_CONSECUTIVE_DROPS:
                self.consecutive_drops = 0
                if not self._restart():
                    raise EmptyFrame("camera stopped delivering frames and could not be reopened")
            raise FrameDropped(f"camera {self.index} read failed")

        if image.size == 0:
            raise EmptyFrame()

        if self.consecutive_drops > 0:
            self.logger.info(
                f"Camera stream recovered after {self.consecutive_drops} dropped frame(s)"
            )
            self.consecutive_drops = 0

        return Frame(image=image)
