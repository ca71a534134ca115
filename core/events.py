"""
Typed messages for the BombusCV pipeline.

All inter-stage communication happens through these dataclasses.
No stage ever holds a direct reference to another; they communicate
via bounded queues only.
"""
from dataclasses import dataclass, field
from datetime import datetime
import time
import numpy as np


# ─── Pipeline Messages (flow through Queue stages) ───────────────────────

@dataclass(frozen=True)
class Frame:
    """A captured BGR video frame with its acquisition time (epoch seconds)."""
    image: np.ndarray
    timestamp: float = field(default_factory=time.time)

    @property
    def is_empty(self) -> bool:
        return self.image is None or self.image.size == 0

    @property
    def captured_at(self) -> datetime:
        """Capture time as a local datetime."""
        return datetime.fromtimestamp(self.timestamp)


# Reasons carried by EndOfStream
END_OF_STREAM = "end_of_stream"
CANCELLED = "cancelled"
ERROR = "error"


@dataclass(frozen=True)
class EndOfStream:
    """Closes a hand-off queue: the producing stage will send nothing more."""
    reason: str = END_OF_STREAM
    timestamp: float = field(default_factory=time.time)
