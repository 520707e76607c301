from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from voicescribe.domain.vo.audio import CANONICAL_CHANNELS, CANONICAL_SAMPLE_RATE
from voicescribe.utils.env import env_bool, env_float, env_int, env_str

DEFAULT_MODEL_NAME = "tiny"
DEFAULT_MODELS_DIR = Path("models")
DEFAULT_LOG_DIR = Path("logs")


@dataclass(frozen=True)
class AudioConfig:
    sample_rate: int = CANONICAL_SAMPLE_RATE
    channels: int = CANONICAL_CHANNELS
    blocksize: int = 8192
    device: int | str | None = None
    settle_delay_seconds: float = 0.1
    activation_attempts: int = 3
    queue_blocks: int = 64
    recordings_dir: Path | None = None
    keep_recordings: bool = False


@dataclass(frozen=True)
class ModelConfig:
    name: str = DEFAULT_MODEL_NAME
    models_dir: Path = DEFAULT_MODELS_DIR
    device: str = "cpu"
    compute_type: str = "int8"
    language: str | None = None
    beam_size: int = 5


@dataclass(frozen=True)
class AppConfig:
    audio: AudioConfig = field(default_factory=AudioConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    ffmpeg_binary: str = "ffmpeg"
    log_dir: Path = DEFAULT_LOG_DIR

    @staticmethod
    def from_env() -> "AppConfig":
        device_raw = env_str("VOICESCRIBE_INPUT_DEVICE")
        device: int | str | None = device_raw
        if device_raw is not None and device_raw.lstrip("-").isdigit():
            device = int(device_raw)

        recordings_dir_raw = env_str("VOICESCRIBE_RECORDINGS_DIR")

        audio = AudioConfig(
            blocksize=env_int("VOICESCRIBE_BLOCKSIZE", 8192),
            device=device,
            settle_delay_seconds=env_float("VOICESCRIBE_SETTLE_SECONDS", 0.1),
            activation_attempts=env_int("VOICESCRIBE_ACTIVATION_ATTEMPTS", 3),
            recordings_dir=Path(recordings_dir_raw) if recordings_dir_raw else None,
            keep_recordings=env_bool("VOICESCRIBE_KEEP_RECORDINGS", False),
        )
        if audio.blocksize <= 0:
            raise ValueError("VOICESCRIBE_BLOCKSIZE must be positive.")
        if audio.activation_attempts < 1:
            raise ValueError("VOICESCRIBE_ACTIVATION_ATTEMPTS must be at least 1.")
        if audio.settle_delay_seconds < 0:
            raise ValueError("VOICESCRIBE_SETTLE_SECONDS must not be negative.")

        model = ModelConfig(
            name=env_str("VOICESCRIBE_MODEL", DEFAULT_MODEL_NAME) or DEFAULT_MODEL_NAME,
            models_dir=Path(env_str("VOICESCRIBE_MODELS_DIR") or DEFAULT_MODELS_DIR),
            device=env_str("VOICESCRIBE_COMPUTE_DEVICE", "cpu") or "cpu",
            compute_type=env_str("VOICESCRIBE_COMPUTE_TYPE", "int8") or "int8",
            language=env_str("VOICESCRIBE_LANGUAGE"),
            beam_size=env_int("VOICESCRIBE_BEAM_SIZE", 5),
        )
        if model.beam_size < 1:
            raise ValueError("VOICESCRIBE_BEAM_SIZE must be at least 1.")

        return AppConfig(
            audio=audio,
            model=model,
            ffmpeg_binary=env_str("VOICESCRIBE_FFMPEG", "ffmpeg") or "ffmpeg",
            log_dir=Path(env_str("VOICESCRIBE_LOG_DIR") or DEFAULT_LOG_DIR),
        )
