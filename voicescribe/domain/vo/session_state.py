from __future__ import annotations

from enum import Enum


class AudioSessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


class DeviceSessionState(str, Enum):
    INACTIVE = "inactive"
    CONFIGURED = "configured"
    ACTIVE = "active"


class PipelineState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CONVERTING = "converting"
    TRANSCRIBING = "transcribing"
