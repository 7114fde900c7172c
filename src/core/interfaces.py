"""
Interfaces and data structures shared by the playback components
"""

from dataclasses import dataclass
from enum import Enum


class PlayerState(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    DRAINING = "draining"


@dataclass(frozen=True)
class Track:
    """A downloaded track; owned by whoever plays it until its artifact is deleted."""
    source_url: str
    artifact_path: str
