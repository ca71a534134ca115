import cv2
import numpy as np
import pytest

from core.events import Frame
from Handlers.Motion_Detection_Handler import MotionDetector
from utils.constants import ANALYSIS_SIZE
from utils.failures import EmptyFrame


def _black(width=640, height=480):
    return Frame(image=np.zeros((height, width, 3), dtype=np.uint8))


def _with_square(width=640, height=480):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[200:300, 250:350] = 255
    return Frame(image=image)


def test_fresh_detector_reports_first_black_frame_as_motion():
    detector = MotionDetector()
    frame = _black()

    assert detector.detect(frame) is frame


def test_same_black_frame_twice_is_not_motion():
    detector = MotionDetector()
    frame = _black()

    detector.detect(frame)
    assert detector.detect(frame) is None


def test_empty_frame_raises_empty_frame():
    detector = MotionDetector()

    with pytest.raises(EmptyFrame):
        detector.detect(Frame(image=np.empty((0, 0, 3), dtype=np.uint8)))
    with pytest.raises(EmptyFrame):
        detector.detect(Frame(image=None))


def test_reference_advances_on_every_frame():
    rng = np.random.default_rng(7)
    detector = MotionDetector()
    sizes = [(640, 480), (854, 480), (320, 240), (1280, 720), (640, 480)]

    for width, height in sizes:
        image = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        detector.detect(Frame(image=image))
        expected = cv2.resize(image, ANALYSIS_SIZE, interpolation=cv2.INTER_LINEAR)
        np.testing.assert_array_equal(detector.reference_frame, expected)


def test_identical_frame_after_warm_up_is_not_motion():
    rng = np.random.default_rng(11)
    detector = MotionDetector()
    detector.detect(_black())
    frame = Frame(image=rng.integers(0, 256, size=(480, 854, 3), dtype=np.uint8))

    detector.detect(frame)
    assert detector.detect(frame) is None


def test_changed_region_is_motion_and_full_resolution_frame_is_returned():
    detector = MotionDetector()
    detector.detect(_black(854, 480))

    frame = _with_square(854, 480)
    result = detector.detect(frame)

    assert result is frame
    assert result.image.shape == (480, 854, 3)


def test_small_global_change_below_threshold_is_not_motion():
    detector = MotionDetector()
    detector.detect(_black())

    dimmed = Frame(image=np.full((480, 640, 3), 10, dtype=np.uint8))
    assert detector.detect(dimmed) is None


def test_first_frame_motion_can_be_disabled():
    detector = MotionDetector(first_frame_motion=False)

    assert detector.detect(_with_square()) is None
    assert detector.detect(_black()) is not None


def test_grayscale_input_is_accepted():
    detector = MotionDetector()
    gray = Frame(image=np.zeros((480, 640), dtype=np.uint8))

    detector.detect(gray)
    assert detector.reference_frame.shape == (480, 640, 3)
