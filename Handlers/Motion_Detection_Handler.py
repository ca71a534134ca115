"""Motion Detection Handler - frame differencing against the previous frame.

Every frame is downscaled to a fixed analysis resolution, compared with
the previously seen (downscaled) frame, and classified as motion when the
cleaned-up difference mask contains at least one contour. The analysis
copy is only used for the decision; motion frames are returned at full
resolution.
"""
from typing import Optional, Tuple

import cv2
import numpy as np

from core.events import Frame
from utils.constants import (
    ANALYSIS_SIZE,
    BLUR_KERNEL,
    BLUR_SIGMA,
    DILATE_ITERATIONS,
    THRESHOLD,
)
from utils.failures import EmptyFrame
from utils.logger import Logger


class MotionDetector:
    """Stateful motion detector holding one reference frame."""

    def __init__(
        self,
        analysis_size: Tuple[int, int] = ANALYSIS_SIZE,
        threshold: int = THRESHOLD,
        blur_sigma: float = BLUR_SIGMA,
        dilate_iterations: int = DILATE_ITERATIONS,
        first_frame_motion: bool = True,
    ):
        """
        Args:
            analysis_size: (width, height) at which frames are compared.
            threshold: Intensity cutoff of the binary foreground mask.
            blur_sigma: Gaussian standard deviation (both axes).
            dilate_iterations: Number of 3x3 dilations applied to the mask.
            first_frame_motion: Report the first frame (compared against the
                blank reference) as motion.
        """
        self.logger = Logger("MotionDetector")
        self.analysis_size = analysis_size
        self.threshold = threshold
        self.blur_sigma = blur_sigma
        self.dilate_iterations = dilate_iterations
        self.first_frame_motion = first_frame_motion

        width, height = analysis_size
        self._reference = np.zeros((height, width, 3), dtype=np.uint8)
        self._warm = False

    @property
    def reference_frame(self) -> np.ndarray:
        """Copy of the retained (downscaled) previous frame."""
        return self._reference.copy()

    def detect(self, frame: Frame) -> Optional[Frame]:
        """
        Classify a frame as motion / no motion.

        Args:
            frame: Captured frame at any resolution.

        Returns:
            The original full-resolution frame when motion was found, else None.

        Raises:
            EmptyFrame: the frame carries no image data.
        """
        if frame.is_empty:
            raise EmptyFrame()

        image = frame.image
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

        # Downscale to reduce noise & computational weight
        resized = cv2.resize(image, self.analysis_size, interpolation=cv2.INTER_LINEAR)

        diff = cv2.absdiff(self._reference, resized)

        # The reference advances on every frame, motion or not
        self._reference = resized
        warming_up = not self._warm
        self._warm = True

        gray = cv2.cvtColor(diff, cv2.COLOR_BGR2GRAY)
        blurred = cv2.GaussianBlur(gray, BLUR_KERNEL, self.blur_sigma, sigmaY=self.blur_sigma)
        _, mask = cv2.threshold(blurred, self.threshold, 255, cv2.THRESH_BINARY)
        # None -> default 3x3 rectangular structuring element
        mask = cv2.dilate(mask, None, iterations=self.dilate_iterations)
        contours = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)[-2]

        if warming_up:
            self.logger.debug("First frame compared against blank reference")
            return frame if self.first_frame_motion else None

        if len(contours) == 0:
            return None

        self.logger.debug(f"Motion detected: {len(contours)} region(s)")
        return frame
