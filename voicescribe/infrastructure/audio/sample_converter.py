"""Conversion of arbitrary audio into canonical 16 kHz mono PCM.

WAV input is decoded in-process with scipy; anything else is first transcoded
by the ffmpeg executable into a temporary ``pcm_s16le`` WAV. Every temporary
file created here is removed before ``convert`` returns or raises.
"""

from __future__ import annotations

import io
import os
import shutil
import subprocess
import tempfile
from contextlib import suppress
from math import gcd
from pathlib import Path

import numpy as np
from scipy.io import wavfile
from scipy.signal import resample_poly

from voicescribe.application.errors import ConversionError
from voicescribe.application.port.sample_converter import AudioSource
from voicescribe.domain.vo.audio import (
    CANONICAL_CHANNELS,
    CANONICAL_SAMPLE_RATE,
    CanonicalAudioBuffer,
    NormalizedSampleBuffer,
)
from voicescribe.utils.logger import Logger

INT16_SCALE = 32767.0


def normalize(pcm: np.ndarray) -> np.ndarray:
    """Map signed 16-bit samples to float32, clamped to [-1.0, 1.0].

    ``-32768 / 32767`` would be ``-1.00003``; the clamp pins it to ``-1.0``.
    """
    scaled = np.asarray(pcm, dtype=np.int16).astype(np.float32) / np.float32(INT16_SCALE)
    return np.clip(scaled, -1.0, 1.0)


def quantize(samples: np.ndarray) -> np.ndarray:
    """Requantize float samples (nominally [-1.0, 1.0]) to signed 16-bit."""
    scaled = np.round(np.asarray(samples, dtype=np.float64) * INT16_SCALE)
    return np.clip(scaled, -32768, 32767).astype(np.int16)


def _is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] in (b"RIFF", b"RIFX") and data[8:12] == b"WAVE"


def _to_float(samples: np.ndarray) -> np.ndarray:
    if samples.dtype == np.uint8:
        return (samples.astype(np.float64) - 128.0) / 127.0
    if samples.dtype == np.int16:
        return samples.astype(np.float64) / INT16_SCALE
    if samples.dtype == np.int32:
        # scipy left-justifies 24-bit PCM into int32.
        return samples.astype(np.float64) / 2_147_483_647.0
    if samples.dtype == np.int64:
        return samples.astype(np.float64) / 9_223_372_036_854_775_807.0
    if np.issubdtype(samples.dtype, np.floating):
        return samples.astype(np.float64)
    raise ConversionError(f"Unsupported sample format: {samples.dtype}")


class SampleConverter:
    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        temp_dir: Path | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.temp_dir = temp_dir
        self._logger = logger

    def convert(self, source: AudioSource) -> NormalizedSampleBuffer:
        canonical = self.to_canonical(source)
        if len(canonical) == 0:
            return NormalizedSampleBuffer.empty()
        return NormalizedSampleBuffer(samples=normalize(canonical.samples))

    def to_canonical(self, source: AudioSource) -> CanonicalAudioBuffer:
        data = self._read_source(source)
        if not data:
            self._log("[Converter] Source is empty; returning an empty buffer.")
            return CanonicalAudioBuffer.empty()

        if _is_wav(data):
            sample_rate, samples = self._decode_wav(data)
        else:
            sample_rate, samples = self._transcode(source, data)

        canonical = self._canonicalize(samples, sample_rate)
        self._log(
            f"[Converter] Decoded {len(canonical)} samples "
            f"({canonical.duration_seconds:.2f}s) from {sample_rate} Hz source"
        )
        return canonical

    def _log(self, message: str) -> None:
        if self._logger:
            self._logger.log(message)

    @staticmethod
    def _read_source(source: AudioSource) -> bytes:
        if isinstance(source, (bytes, bytearray, memoryview)):
            return bytes(source)
        try:
            if isinstance(source, (str, os.PathLike)):
                return Path(source).read_bytes()
            return source.read()
        except OSError as e:
            raise ConversionError(f"Audio source is unreadable: {e}") from e

    @staticmethod
    def _decode_wav(data: bytes) -> tuple[int, np.ndarray]:
        # wavfile walks the RIFF chunk list to the "data" chunk, so LIST/fact
        # chunks ahead of the samples are skipped rather than read as audio.
        try:
            sample_rate, samples = wavfile.read(io.BytesIO(data))
        except Exception as e:
            raise ConversionError(f"Corrupt or unsupported WAV data: {e}") from e
        if sample_rate <= 0:
            raise ConversionError(f"Invalid WAV sample rate: {sample_rate}")
        samples = np.asarray(samples)
        # RIFX files decode to big-endian dtypes.
        samples = samples.astype(samples.dtype.newbyteorder("="), copy=False)
        return int(sample_rate), samples

    def _transcode(self, source: AudioSource, data: bytes) -> tuple[int, np.ndarray]:
        binary = shutil.which(self.ffmpeg_binary)
        if binary is None:
            raise ConversionError(
                "Source is not a WAV file and ffmpeg is not installed or not in PATH."
            )

        created: list[Path] = []
        try:
            if isinstance(source, (str, os.PathLike)):
                input_path = Path(source)
            else:
                input_path = self._make_temp(".bin", created)
                input_path.write_bytes(data)
            output_path = self._make_temp(".wav", created)

            try:
                subprocess.run(
                    [
                        binary,
                        "-nostdin",
                        "-y",
                        "-i",
                        str(input_path),
                        "-vn",
                        "-ac",
                        str(CANONICAL_CHANNELS),
                        "-ar",
                        str(CANONICAL_SAMPLE_RATE),
                        "-acodec",
                        "pcm_s16le",
                        "-f",
                        "wav",
                        str(output_path),
                    ],
                    check=True,
                    capture_output=True,
                    text=True,
                )
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or "").strip().splitlines()
                detail = stderr[-1] if stderr else str(e)
                raise ConversionError(f"ffmpeg could not convert the source: {detail}") from e
            except OSError as e:
                raise ConversionError(f"Failed to run ffmpeg: {e}") from e

            self._log(f"[Converter] Transcoded {input_path.name} with ffmpeg")
            return self._decode_wav(output_path.read_bytes())
        except OSError as e:
            raise ConversionError(f"Temporary conversion file failed: {e}") from e
        finally:
            for path in created:
                with suppress(FileNotFoundError):
                    path.unlink()

    def _make_temp(self, suffix: str, created: list[Path]) -> Path:
        fd, name = tempfile.mkstemp(prefix="voicescribe-", suffix=suffix, dir=self.temp_dir)
        os.close(fd)
        path = Path(name)
        created.append(path)
        return path

    @staticmethod
    def _canonicalize(samples: np.ndarray, sample_rate: int) -> CanonicalAudioBuffer:
        if samples.size == 0:
            return CanonicalAudioBuffer.empty()

        if (
            samples.dtype == np.int16
            and samples.ndim == 1
            and sample_rate == CANONICAL_SAMPLE_RATE
        ):
            return CanonicalAudioBuffer(samples=samples)

        audio = _to_float(samples)
        if audio.ndim == 2:
            audio = audio.mean(axis=1)
        elif audio.ndim != 1:
            raise ConversionError(f"Unexpected sample layout: shape={samples.shape!r}")

        if sample_rate != CANONICAL_SAMPLE_RATE:
            divisor = gcd(sample_rate, CANONICAL_SAMPLE_RATE)
            audio = resample_poly(
                audio,
                CANONICAL_SAMPLE_RATE // divisor,
                sample_rate // divisor,
            )

        return CanonicalAudioBuffer(samples=quantize(audio))
