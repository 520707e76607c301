from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class TranscriptSegment:
    text: str
    start: float | None = None
    end: float | None = None


@dataclass(frozen=True)
class Transcript:
    segments: tuple[TranscriptSegment, ...] = ()

    @staticmethod
    def from_segments(segments: Iterable[TranscriptSegment]) -> "Transcript":
        return Transcript(segments=tuple(segments))

    @property
    def text(self) -> str:
        # Plain in-order concatenation; engines already emit leading spaces.
        return "".join(segment.text for segment in self.segments)

    def __len__(self) -> int:
        return len(self.segments)
