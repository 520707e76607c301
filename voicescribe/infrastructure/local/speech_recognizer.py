from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, Any

import numpy as np

from voicescribe.application.errors import (
    InferenceError,
    ModelNotFoundError,
    TranscriptionError,
)
from voicescribe.domain.vo.audio import NormalizedSampleBuffer
from voicescribe.domain.vo.transcript import TranscriptSegment
from voicescribe.utils.logger import Logger

if TYPE_CHECKING:
    from faster_whisper import WhisperModel

ModelFactory = Callable[..., Any]


def _likely_missing_cuda_libs(message: str) -> bool:
    lowered = message.lower()
    return (
        "cublas64_12.dll" in message
        or "cudnn" in lowered
        or "cublas" in lowered
        or "cuda" in lowered
    )


class SpeechRecognizer:
    """Local Whisper inference (faster-whisper / CTranslate2).

    The model directory is located on every request, loaded on the first
    non-empty request and cached for the life of the process. After load the
    model is only read, so concurrent requests may share it.
    """

    def __init__(
        self,
        *,
        model: str = "tiny",
        models_dir: Path = Path("models"),
        device: str = "cpu",
        compute_type: str = "int8",
        language: str | None = None,
        beam_size: int = 5,
        model_factory: ModelFactory | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.model_name = model
        self.models_dir = models_dir
        self.requested_device = device
        self.requested_compute_type = compute_type
        self.language = language
        self.beam_size = beam_size
        self._model_factory = model_factory
        self._logger = logger

        self.device: str | None = None
        self.compute_type: str | None = None

        self._load_lock = Lock()
        self._model: WhisperModel | Any | None = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _log(self, message: str) -> None:
        if not message:
            return
        if self._logger:
            self._logger.log(message)

    def locate_model(self) -> Path:
        candidate = Path(self.model_name).expanduser()
        if candidate.is_absolute() or candidate.parent != Path("."):
            path = candidate
        else:
            path = self.models_dir / self.model_name

        if not path.exists():
            raise ModelNotFoundError(
                f"ASR model '{self.model_name}' not found at {path}. "
                "Run with --download-model or set VOICESCRIBE_MODELS_DIR."
            )
        return path

    def download_model(self) -> Path:
        target = self.models_dir / self.model_name
        try:
            from faster_whisper import download_model
        except ImportError as e:
            raise InferenceError(
                "Model download requires 'faster-whisper'. Install the project dependencies."
            ) from e

        self._log(f"[ASR] Downloading model '{self.model_name}' to {target}")
        try:
            path = download_model(self.model_name, output_dir=str(target))
        except Exception as e:
            raise InferenceError(f"Failed to download model '{self.model_name}': {e}") from e
        return Path(path)

    def load(self) -> Any:
        path = self.locate_model()

        with self._load_lock:
            if self._model is not None:
                return self._model
            factory = self._model_factory or self._import_whisper_model()
            self._log(
                "[ASR] Loading local model: "
                f"path={path}, requested_device={self.requested_device}, "
                f"requested_compute_type={self.requested_compute_type}"
            )
            self._model = self._build_model(factory, path)
            self._log(
                f"[ASR] Model ready: device={self.device}, compute_type={self.compute_type}"
            )
            return self._model

    @staticmethod
    def _import_whisper_model() -> ModelFactory:
        try:
            from faster_whisper import WhisperModel as _WhisperModel
        except ModuleNotFoundError as e:
            raise InferenceError(
                "Local ASR requires 'faster-whisper'. Install the project dependencies."
            ) from e
        except Exception as e:
            raise InferenceError(
                "Failed to import local ASR dependencies. "
                "For GPU inference, CUDA 12 + cuDNN must be discoverable by the loader. "
                f"Original error: {e}"
            ) from e
        return _WhisperModel

    def _build_model(self, factory: ModelFactory, path: Path) -> Any:
        try:
            model = factory(
                str(path),
                device=self.requested_device,
                compute_type=self.requested_compute_type,
            )
            self.device = self.requested_device
            self.compute_type = self.requested_compute_type
            return model
        except Exception as e:
            if not (self.requested_device == "cuda" and _likely_missing_cuda_libs(str(e))):
                raise InferenceError(f"Failed to load ASR model from {path}: {e}") from e

            self._log(
                "[ASR] Failed to initialize on CUDA; falling back to CPU (int8). "
                f"Original error: {e}"
            )
            try:
                model = factory(str(path), device="cpu", compute_type="int8")
            except Exception as cpu_e:
                raise InferenceError(
                    "Failed to load ASR model on GPU and CPU. "
                    f"GPU error: {e} | CPU error: {cpu_e}"
                ) from cpu_e
            self.device = "cpu"
            self.compute_type = "int8"
            return model

    def transcribe(self, samples: NormalizedSampleBuffer) -> list[TranscriptSegment]:
        self.locate_model()

        audio = np.ascontiguousarray(samples.samples, dtype=np.float32)
        if audio.size == 0:
            return []

        model = self.load()
        try:
            segments, _info = model.transcribe(
                audio,
                language=self.language,
                beam_size=self.beam_size,
                vad_filter=False,
                condition_on_previous_text=False,
            )
            # `segments` is a generator; decoding happens while iterating.
            result = [
                TranscriptSegment(
                    text=segment.text,
                    start=getattr(segment, "start", None),
                    end=getattr(segment, "end", None),
                )
                for segment in segments
            ]
        except TranscriptionError:
            raise
        except Exception as e:
            raise InferenceError(f"ASR engine failed: {e}") from e

        self._log(
            f"[ASR] Transcribed {samples.duration_seconds:.2f}s into {len(result)} segment(s)"
        )
        return result
