"""Action records and the recording session"""

from .actions import ActionKind, ActionRecord, WaitStrategy
from .action_recorder import RecordingSession, RecorderConfig, RecorderState

__all__ = [
    "ActionKind",
    "ActionRecord",
    "WaitStrategy",
    "RecordingSession",
    "RecorderConfig",
    "RecorderState"
]
