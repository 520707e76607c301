from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

import numpy as np

CANONICAL_SAMPLE_RATE = 16_000
CANONICAL_CHANNELS = 1
CANONICAL_SAMPLE_WIDTH = 2  # bytes, signed 16-bit little-endian


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class RawAudioStream:
    """A finished live recording sitting in its sink file."""

    path: Path
    sample_rate: int
    channels: int
    sample_width: int
    frames_written: int = 0
    dropped_blocks: int = 0
    failed_writes: int = 0

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames_written / self.sample_rate

    def discard(self) -> None:
        with suppress(FileNotFoundError):
            self.path.unlink()


@dataclass(frozen=True, eq=False)
class CanonicalAudioBuffer:
    """16 kHz, mono, signed 16-bit PCM."""

    samples: np.ndarray

    def __post_init__(self) -> None:
        samples = np.array(self.samples, dtype=np.int16, copy=True).reshape(-1)
        object.__setattr__(self, "samples", _readonly(samples))

    @staticmethod
    def empty() -> "CanonicalAudioBuffer":
        return CanonicalAudioBuffer(samples=np.zeros(0, dtype=np.int16))

    @property
    def sample_rate(self) -> int:
        return CANONICAL_SAMPLE_RATE

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / CANONICAL_SAMPLE_RATE

    def __len__(self) -> int:
        return len(self.samples)


@dataclass(frozen=True, eq=False)
class NormalizedSampleBuffer:
    """Immutable float32 samples in [-1.0, 1.0] at the canonical rate."""

    samples: np.ndarray

    def __post_init__(self) -> None:
        samples = np.array(self.samples, dtype=np.float32, copy=True).reshape(-1)
        if samples.size and (samples.min() < -1.0 or samples.max() > 1.0):
            raise ValueError("Normalized samples must lie within [-1.0, 1.0].")
        object.__setattr__(self, "samples", _readonly(samples))

    @staticmethod
    def empty() -> "NormalizedSampleBuffer":
        return NormalizedSampleBuffer(samples=np.zeros(0, dtype=np.float32))

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / CANONICAL_SAMPLE_RATE

    def __len__(self) -> int:
        return len(self.samples)
