"""
Global constants for the BombusCV application.
"""
from pathlib import Path

# Project Structure
BASE_DIR = Path(__file__).parent.parent
CONFIGS_DIR = BASE_DIR / "configs"
LOGS_DIR = BASE_DIR / "logs"
LOG_FILE_NAME = "bombuscv.log"

# User configuration
CONFIG_ENV_VAR = "BOMBUSCV_CONFIG"
USER_CONFIG_SUBPATH = Path("bombuscv") / "config.json"

# Output video
VIDEO_EXTENSION = ".mkv"
DEFAULT_FILENAME_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Standard 16:9 resolutions: name -> (width, height)
RESOLUTIONS = {
    "480p": (854, 480),
    "576p": (1024, 576),
    "720p": (1280, 720),
    "768p": (1366, 768),
    "900p": (1600, 900),
    "1080p": (1920, 1080),
    "1440p": (2560, 1440),
    "2160p": (3840, 2160),
}

# Motion analysis
ANALYSIS_SIZE = (640, 480)  # (width, height)
BLUR_KERNEL = (3, 3)
BLUR_SIGMA = 21.0
THRESHOLD = 30
DILATE_ITERATIONS = 3

# Pipeline
DEFAULT_QUEUE_SIZE = 100
GRAB_RETRY_DELAY = 0.1
MAX_CONSECUTIVE_DROPS = 50

# Date & time overlay
OVERLAY_FORMAT = "%Y-%m-%d %H:%M:%S"
OVERLAY_ORIGIN = (10, 40)
OVERLAY_COLOR = (255, 255, 255)
OVERLAY_SCALE = 1.0
OVERLAY_THICKNESS = 2
