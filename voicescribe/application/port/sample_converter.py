from __future__ import annotations

import os
from typing import BinaryIO, Protocol, Union

from voicescribe.domain.vo.audio import NormalizedSampleBuffer

AudioSource = Union[str, "os.PathLike[str]", bytes, BinaryIO]


class SampleConverter(Protocol):
    def convert(self, source: AudioSource) -> NormalizedSampleBuffer:
        """Convert any readable audio source into normalized canonical samples."""
        ...
