from __future__ import annotations

from typing import Protocol

from voicescribe.domain.vo.audio import NormalizedSampleBuffer
from voicescribe.domain.vo.transcript import TranscriptSegment


class SpeechRecognizer(Protocol):
    def transcribe(self, samples: NormalizedSampleBuffer) -> list[TranscriptSegment]:
        """Transcribe 16 kHz mono float32 samples into segments, in temporal order."""
        ...
