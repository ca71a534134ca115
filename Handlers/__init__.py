"""OpenCV-backed handlers: frame sources, motion detection and video output."""
