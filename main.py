"""
BombusCV — Entry Point

Motion detection & video recording for unattended insect monitoring:
    CaptureStage → [frame_queue] → DetectionStage → [motion_queue] → RecordingStage

Only frames containing motion reach the output video.
"""
import argparse
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from utils.config import Config, CODECS, expand_home
from utils.constants import RESOLUTIONS, VIDEO_EXTENSION
from utils.failures import BombusError, FailureManager
from utils.logger import Logger

from core.params import CaptureParameters, Codec
from core.pipeline import MotionPipeline


def positive_float(value: str) -> float:
    """argparse type: strictly positive float."""
    try:
        number = float(value)
    except ValueError:
        number = -1.0
    if number <= 0:
        raise argparse.ArgumentTypeError("the framerate must be a positive floating point number.")
    return number


def existing_directory(value: str) -> Path:
    path = expand_home(value)
    if not path.is_dir():
        raise argparse.ArgumentTypeError("the given path is not a directory")
    return path


def existing_file(value: str) -> Path:
    path = expand_home(value)
    if not path.is_file():
        raise argparse.ArgumentTypeError("the given path is not a file")
    return path


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="bombuscv",
        description="OpenCV motion detection/video-recording tool developed for research on Bumblebees.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        '--index', '-i',
        type=int,
        default=None,
        help='/dev/video<INDEX> capture camera index'
    )
    source.add_argument(
        '--video', '-v',
        type=existing_file,
        default=None,
        help='Video file as input (resolution and framerate are taken from the file)'
    )
    parser.add_argument(
        '--framerate', '-f',
        type=positive_float,
        default=None,
        help='Video framerate'
    )
    parser.add_argument(
        '--resolution', '-r',
        choices=list(RESOLUTIONS),
        default=None,
        help='Video resolution (standard 16:9 formats)'
    )
    parser.add_argument(
        '--directory', '-d',
        type=existing_directory,
        default=None,
        help='Output video directory'
    )
    parser.add_argument(
        '--format',
        type=str,
        default=None,
        help='Output video filename format (strftime specifiers)'
    )
    parser.add_argument(
        '--codec', '-c',
        type=str.upper,
        choices=list(CODECS),
        default=None,
        help='Output video codec'
    )
    parser.add_argument(
        '--overlay', '-o',
        action='store_true',
        help='Enable Date&Time video overlay'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Mute informational console output'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Configuration file (overrides $BOMBUSCV_CONFIG); must exist and be valid JSON'
    )
    args = parser.parse_args(argv)

    if args.video is not None:
        conflicting = [
            name for name, value in (
                ("-f/--framerate", args.framerate),
                ("-r/--resolution", args.resolution),
                ("-o/--overlay", args.overlay or None),
            ) if value is not None
        ]
        if conflicting:
            parser.error(f"argument -v/--video: not allowed with argument {', '.join(conflicting)}")

    return args


def apply_args(config: Config, args: argparse.Namespace) -> None:
    """Override configuration values with the command-line arguments provided."""
    if args.directory is not None:
        config.set('capture.directory', str(args.directory))
    if args.format is not None:
        config.set('capture.format', args.format)
    if args.codec is not None:
        config.set('capture.codec', args.codec)
    if args.quiet:
        config.set('capture.quiet', True)

    if args.video is not None:
        if config.get_bool('capture.overlay'):
            config.warnings.append("ignoring `overlay` while using `video` input")
            config.set('capture.overlay', False)
        return

    if args.index is not None:
        config.set('capture.index', args.index)
    if args.framerate is not None:
        config.set('capture.framerate', args.framerate)
    if args.resolution is not None:
        config.set('capture.resolution', args.resolution)
    if args.overlay:
        config.set('capture.overlay', True)


def build_capture_parameters(config: Config, video: Optional[Path] = None,
                             now: Optional[datetime] = None) -> CaptureParameters:
    """Resolve the configuration into the immutable parameters of one run."""
    now = now or datetime.now()
    filename = now.strftime(config.get('capture.format')) + VIDEO_EXTENSION
    width, height = RESOLUTIONS[config.get('capture.resolution')]

    common = dict(
        output_path=config.output_directory() / filename,
        height=height,
        width=width,
        framerate=config.get_float('capture.framerate', 60.0),
        codec=Codec.from_name(config.get('capture.codec')),
    )
    if video is not None:
        return CaptureParameters(video_path=Path(video), overlay=False, **common)
    return CaptureParameters(
        camera_index=config.get_int('capture.index'),
        overlay=config.get_bool('capture.overlay'),
        **common,
    )


def open_source(params: CaptureParameters):
    """Open the camera or video file described by *params*."""
    if params.from_file:
        from Handlers.Video_Input_Handler import VideoInputHandler
        return VideoInputHandler(params.video_path)

    from Handlers.Camera_Handler import CameraHandler
    return CameraHandler(params.camera_index, params.height, params.width, params.framerate)


def open_sink(params: CaptureParameters, frame_size, fps: float):
    """Open the output video for frames of the negotiated size and framerate."""
    from Handlers.Video_Writer_Handler import VideoWriterHandler
    return VideoWriterHandler(params.output_path, params.codec, fps, frame_size, params.overlay)


def build_detector(config: Config):
    from Handlers.Motion_Detection_Handler import MotionDetector
    return MotionDetector(
        threshold=config.get_int('motion.threshold', 30),
        blur_sigma=config.get_float('motion.blur_sigma', 21.0),
        dilate_iterations=config.get_int('motion.dilate_iterations', 3),
        first_frame_motion=config.get_bool('motion.first_frame_motion', True),
    )


class BombusCV:
    """
    BombusCV orchestrator.

    Resolves configuration, opens the capture source and the output video
    (setup-fatal on failure), then runs one MotionPipeline until the source
    is exhausted or a shutdown signal arrives.
    """

    def __init__(self, args: argparse.Namespace, config: Optional[Config] = None):
        # ── 1. Foundation ────────────────────────────────────────────
        self.config = config or Config(user_config=args.config, strict=True)
        apply_args(self.config, args)
        Logger.setup(self.config.get('logging', {}), quiet=self.config.get_bool('capture.quiet'))
        self.logger = Logger("BombusCV")
        for warning in self.config.warnings:
            self.logger.warning(f"[config] {warning}")

        # ── 2. Resolved parameters ───────────────────────────────────
        self.params = build_capture_parameters(self.config, video=args.video)
        if self.params.from_file:
            self.logger.info(
                "[config] using `video` original resolution and framerate, "
                "ignoring eventually specified values"
            )

        self.failures = FailureManager(self.config.get('failures', {}))
        self.source = None
        self.sink = None
        self.pipeline: Optional[MotionPipeline] = None

    def _open(self) -> None:
        """Open source and sink; release the source if the sink cannot be opened."""
        self.source = open_source(self.params)

        fps = self.source.fps
        if fps <= 0:
            self.logger.warning(f"Source reports no framerate, using {self.params.framerate:g}fps")
            fps = self.params.framerate

        try:
            self.sink = open_sink(self.params, self.source.size, fps)
        except BombusError:
            self.source.release()
            raise

    def _setup_signals(self):
        """Handle OS signals for graceful shutdown; returns the previous handlers."""
        def handler(sig, frame):
            self.logger.info("Shutdown signal received")
            self.stop()

        previous = {}
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, handler)
        return previous

    def run(self) -> int:
        """Run until end of stream or interruption; returns the process exit code."""
        try:
            self._open()
        except BombusError as e:
            self.logger.critical(f"error: {e.message}")
            return 1

        self.pipeline = MotionPipeline(
            source=self.source,
            detector=build_detector(self.config),
            sink=self.sink,
            queue_size=self.config.get_int('pipeline.queue_size', 100),
            failures=self.failures,
        )

        previous = self._setup_signals()
        try:
            result = self.pipeline.run()
        finally:
            for sig, old in previous.items():
                signal.signal(sig, old)

        for error in result.errors:
            self.logger.error(f"Stage error: {type(error).__name__}: {error}")
        self._report_failures()
        self.logger.info(
            f"Saved {result.frames_written} motion frame(s) to {self.params.output_path}"
        )
        return 0

    def _report_failures(self):
        """Log the transient failures recorded during the run, per error type."""
        recent = self.failures.get_recent_history(count=self.failures.threshold)
        if not recent:
            return

        for error_type in sorted({type(e).__name__ for e in recent}):
            state = "above" if self.failures.is_threshold_exceeded(error_type) else "within"
            self.logger.warning(
                f"[failures] {error_type}: {self.failures.count(error_type)} in the last "
                f"{self.failures.window_seconds}s ({state} threshold {self.failures.threshold})"
            )
        last = recent[-1]
        self.logger.info(f"[failures] last: {type(last).__name__} - {last.message}")

    def stop(self):
        """Request a graceful shutdown of the running pipeline."""
        if self.pipeline is not None:
            self.pipeline.stop()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        node = BombusCV(args)
    except BombusError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    return node.run()


if __name__ == "__main__":
    sys.exit(main())
