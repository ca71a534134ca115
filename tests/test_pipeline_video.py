import threading

import cv2
import numpy as np
import pytest

from core.events import CANCELLED, END_OF_STREAM
from core.params import Codec
from core.pipeline import MotionPipeline
from Handlers.Motion_Detection_Handler import MotionDetector
from Handlers.Video_Input_Handler import VideoInputHandler
from Handlers.Video_Writer_Handler import VideoWriterHandler
from utils.failures import InvalidOutput

WIDTH, HEIGHT = 160, 120

# frame index -> x offset of a white square; every other frame is black
SQUARES = {2: 10, 6: 100}


def _clip_image(index):
    image = np.zeros((HEIGHT, WIDTH, 3), dtype=np.uint8)
    if index in SQUARES:
        x = SQUARES[index]
        image[40:80, x:x + 40] = 255
    return image


def _square_position(image):
    """'left', 'right' or None, depending on where the bright square is."""
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if gray[40:80, 10:50].mean() > 128:
        return "left"
    if gray[40:80, 100:140].mean() > 128:
        return "right"
    return None


def _read_all(path):
    cap = cv2.VideoCapture(str(path))
    images = []
    while True:
        ret, image = cap.read()
        if not ret:
            break
        images.append(image)
    cap.release()
    return images


@pytest.fixture
def clip(tmp_path):
    """A 10-frame MJPG clip with a square appearing in frames 3 and 7."""
    path = tmp_path / "input.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (WIDTH, HEIGHT))
    if not writer.isOpened():
        pytest.skip("MJPG encoder not available in this OpenCV build")
    for index in range(10):
        writer.write(_clip_image(index))
    writer.release()
    return path


def _open_sink(path, source):
    try:
        return VideoWriterHandler(path, Codec.MJPG, source.fps or 10.0, source.size)
    except InvalidOutput:
        source.release()
        pytest.skip("MJPG encoder not available in this OpenCV build")


class _CancellingVideo(VideoInputHandler):
    """Sets the cancellation token once ``after`` frames have been grabbed."""

    def __init__(self, path, cancel_event, after):
        super().__init__(path)
        self.cancel_event = cancel_event
        self.after = after
        self.grabbed = 0

    def grab(self):
        frame = super().grab()
        self.grabbed += 1
        if self.grabbed == self.after:
            self.cancel_event.set()
        return frame


def test_video_file_to_video_file_keeps_only_motion_frames_in_order(clip, tmp_path):
    source = VideoInputHandler(clip)
    output = tmp_path / "motion.avi"
    sink = _open_sink(output, source)

    result = MotionPipeline(source, MotionDetector(), sink, queue_size=4).run()

    assert result.reason == END_OF_STREAM
    assert result.frames_grabbed == 10
    # warm-up frame, then each square appearing and disappearing
    assert result.motion_frames == 5
    assert result.frames_written == 5
    assert source.released and sink.released

    images = _read_all(output)
    assert len(images) == 5
    assert [_square_position(img) for img in images] == [None, "left", None, "right", None]


def test_cancelled_run_drains_queued_frames_into_a_readable_file(clip, tmp_path):
    cancel = threading.Event()
    source = _CancellingVideo(clip, cancel, after=5)
    output = tmp_path / "cancelled.avi"
    sink = _open_sink(output, source)

    result = MotionPipeline(source, MotionDetector(), sink, queue_size=10,
                            cancel_event=cancel).run()

    assert result.reason == CANCELLED
    assert result.frames_grabbed == 5
    assert result.frames_written == 3
    assert source.released and sink.released

    images = _read_all(output)
    assert len(images) == 3
    assert [_square_position(img) for img in images] == [None, "left", None]
