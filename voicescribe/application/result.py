from __future__ import annotations

from dataclasses import dataclass

from voicescribe.application.errors import TranscriptionError


@dataclass(frozen=True)
class TranscriptionResult:
    """Either the joined transcript text or the first error of the chain."""

    text: str | None = None
    error: TranscriptionError | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.error is None):
            raise ValueError("TranscriptionResult needs exactly one of text or error.")

    @staticmethod
    def success(text: str) -> "TranscriptionResult":
        return TranscriptionResult(text=text)

    @staticmethod
    def failure(error: TranscriptionError) -> "TranscriptionResult":
        return TranscriptionResult(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        assert self.text is not None
        return self.text
