import logging
from datetime import datetime

import pytest

import main
from main import BombusCV, apply_args, build_capture_parameters, parse_args
from core.params import Codec
from utils.failures import InvalidCameraIndex, InvalidOutput

from tests.fakes import FakeSink, FakeSource, ScriptedDetector, make_frames


class _SizedSource(FakeSource):
    def __init__(self, items=(), size=(64, 48), fps=30.0):
        super().__init__(items)
        self.size = size
        self.fps = fps


def test_parse_args_defaults():
    args = parse_args([])

    assert args.index is None
    assert args.video is None
    assert args.overlay is False
    assert args.quiet is False


def test_parse_args_camera_options(tmp_path):
    args = parse_args(["-i", "1", "-f", "29.97", "-r", "720p", "-d", str(tmp_path),
                       "-c", "mjpg", "-o", "-q", "--format", "%Y%m%d"])

    assert args.index == 1
    assert args.framerate == 29.97
    assert args.resolution == "720p"
    assert args.directory == tmp_path
    assert args.codec == "MJPG"
    assert args.overlay and args.quiet
    assert args.format == "%Y%m%d"


@pytest.mark.parametrize("extra", [
    ["-i", "0"],
    ["-f", "30"],
    ["-r", "1080p"],
    ["-o"],
])
def test_video_conflicts_with_camera_options(tmp_path, extra):
    video = tmp_path / "in.mkv"
    video.write_bytes(b"")

    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-v", str(video)] + extra)
    assert excinfo.value.code == 2


@pytest.mark.parametrize("argv", [
    ["-f", "0"],
    ["-f", "fast"],
    ["-r", "4k"],
    ["-d", "/definitely/not/here"],
    ["-v", "/definitely/not/here.mkv"],
])
def test_invalid_arguments_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(argv)
    assert excinfo.value.code == 2


def test_arguments_override_configuration(config, tmp_path):
    apply_args(config, parse_args(["-i", "2", "-f", "15", "-r", "1080p", "-c", "MJPG", "-o"]))

    assert config.get('capture.index') == 2
    assert config.get_float('capture.framerate') == 15.0
    assert config.get('capture.resolution') == "1080p"
    assert config.get('capture.codec') == "MJPG"
    assert config.get_bool('capture.overlay')


def test_overlay_is_disabled_for_video_input(config, tmp_path):
    video = tmp_path / "in.mkv"
    video.write_bytes(b"")
    config.set('capture.overlay', True)

    apply_args(config, parse_args(["-v", str(video)]))

    assert config.get_bool('capture.overlay') is False
    assert any("overlay" in w for w in config.warnings)


def test_capture_parameters_for_camera(config, tmp_path):
    config.set('capture.resolution', "720p")
    config.set('capture.overlay', True)

    params = build_capture_parameters(config, now=datetime(2024, 5, 17, 9, 30, 0))

    assert params.output_path == tmp_path / "2024-05-17T09:30:00.mkv"
    assert params.camera_index == 0
    assert params.frame_size == (1280, 720)
    assert params.framerate == 60.0
    assert params.codec is Codec.XVID
    assert params.overlay


def test_capture_parameters_for_video(config, tmp_path):
    config.set('capture.format', "bees_%H%M")
    video = tmp_path / "in.mkv"

    params = build_capture_parameters(config, video=video, now=datetime(2024, 5, 17, 9, 30))

    assert params.from_file
    assert params.video_path == video
    assert params.camera_index is None
    assert params.output_path.name == "bees_0930.mkv"


@pytest.fixture
def wired(monkeypatch):
    """Replace the OpenCV handlers with fakes; returns what was opened."""
    opened = {}

    def fake_open_source(params):
        opened['source'] = opened.get('source') or _SizedSource(make_frames(4))
        return opened['source']

    def fake_open_sink(params, frame_size, fps):
        opened['sink_args'] = (params.output_path, frame_size, fps)
        if 'sink_error' in opened:
            raise opened['sink_error']
        opened['sink'] = FakeSink(fail_on=opened.get('sink_fail_on', ()))
        return opened['sink']

    monkeypatch.setattr(main, "open_source", fake_open_source)
    monkeypatch.setattr(main, "open_sink", fake_open_sink)
    monkeypatch.setattr(main, "build_detector", lambda config: ScriptedDetector(motion={0, 3}))
    return opened


def test_run_records_motion_frames_and_exits_cleanly(config, wired):
    node = BombusCV(parse_args([]), config=config)

    assert node.run() == 0

    assert wired['sink'].timestamps == [1000.0, 1003.0]
    assert wired['sink_args'][1:] == ((64, 48), 30.0)
    assert wired['source'].release_count == 1
    assert wired['sink'].release_count == 1


def test_run_falls_back_to_configured_framerate(config, wired):
    wired['source'] = _SizedSource(make_frames(1), fps=0.0)
    config.set('capture.framerate', 12.5)

    assert BombusCV(parse_args([]), config=config).run() == 0
    assert wired['sink_args'][2] == 12.5


def test_output_open_failure_is_fatal_and_releases_the_source(config, wired):
    wired['sink_error'] = InvalidOutput()

    assert BombusCV(parse_args([]), config=config).run() == 1
    assert wired['source'].release_count == 1


def test_source_open_failure_is_fatal(config, monkeypatch):
    def fail(params):
        raise InvalidCameraIndex()

    monkeypatch.setattr(main, "open_source", fail)

    assert BombusCV(parse_args(["-i", "7"]), config=config).run() == 1


def test_transient_failures_are_summarised_after_the_run(config, wired, caplog):
    wired['sink_fail_on'] = {0}
    caplog.set_level(logging.INFO)

    assert BombusCV(parse_args([]), config=config).run() == 0

    assert wired['sink'].timestamps == [1003.0]
    summary = [r.getMessage() for r in caplog.records if r.getMessage().startswith("[failures]")]
    assert summary[0].startswith("[failures] FrameDropped: 1 in the last 60s (within threshold")
    assert summary[-1] == "[failures] last: FrameDropped - fake write failure at 0"


def test_missing_explicit_config_file_exits_with_setup_error(tmp_path, capsys):
    assert main.main(["--config", str(tmp_path / "missing.json")]) == 1
    assert "config file not found" in capsys.readouterr().err
