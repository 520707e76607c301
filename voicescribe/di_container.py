from __future__ import annotations

from dataclasses import dataclass

from voicescribe.application.transcription_orchestrator import (
    Dispatcher,
    TranscriptionOrchestrator,
)
from voicescribe.config import AppConfig
from voicescribe.infrastructure.audio.audio_capture import AudioCapture
from voicescribe.infrastructure.audio.audio_session import AudioSession
from voicescribe.infrastructure.audio.sample_converter import SampleConverter
from voicescribe.infrastructure.local.speech_recognizer import SpeechRecognizer
from voicescribe.utils.logger import Logger


@dataclass(frozen=True)
class AppContainer:
    config: AppConfig
    logger: Logger
    session: AudioSession
    capture: AudioCapture
    converter: SampleConverter
    recognizer: SpeechRecognizer
    orchestrator: TranscriptionOrchestrator


def build_container(
    config: AppConfig,
    *,
    logger: Logger | None = None,
    session: AudioSession | None = None,
    capture: AudioCapture | None = None,
    converter: SampleConverter | None = None,
    recognizer: SpeechRecognizer | None = None,
    dispatcher: Dispatcher | None = None,
) -> AppContainer:
    logger = logger or Logger(log_dir=config.log_dir)

    session = session or AudioSession(
        sample_rate=config.audio.sample_rate,
        channels=config.audio.channels,
        blocksize=config.audio.blocksize,
        device=config.audio.device,
        settle_delay_seconds=config.audio.settle_delay_seconds,
        activation_attempts=config.audio.activation_attempts,
        logger=logger,
    )

    capture = capture or AudioCapture(
        session,
        recordings_dir=config.audio.recordings_dir,
        queue_blocks=config.audio.queue_blocks,
        logger=logger,
    )

    converter = converter or SampleConverter(
        ffmpeg_binary=config.ffmpeg_binary,
        logger=logger,
    )

    recognizer = recognizer or SpeechRecognizer(
        model=config.model.name,
        models_dir=config.model.models_dir,
        device=config.model.device,
        compute_type=config.model.compute_type,
        language=config.model.language,
        beam_size=config.model.beam_size,
        logger=logger,
    )

    orchestrator = TranscriptionOrchestrator(
        capture=capture,
        converter=converter,
        recognizer=recognizer,
        logger=logger,
        dispatcher=dispatcher,
        keep_recordings=config.audio.keep_recordings,
    )

    return AppContainer(
        config=config,
        logger=logger,
        session=session,
        capture=capture,
        converter=converter,
        recognizer=recognizer,
        orchestrator=orchestrator,
    )
