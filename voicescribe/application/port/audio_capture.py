from __future__ import annotations

from typing import Protocol

from voicescribe.domain.vo.audio import RawAudioStream


class AudioCapture(Protocol):
    @property
    def is_recording(self) -> bool: ...

    def start(self) -> bool:
        """Start streaming device frames into a fresh sink. False if already recording."""
        ...

    def stop(self) -> RawAudioStream | None:
        """Tear down the tap and return the finished recording. None if idle."""
        ...
