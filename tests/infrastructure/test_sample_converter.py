"""Unit tests for SampleConverter."""
from __future__ import annotations

import io
import struct
import tempfile
import unittest
import wave
from pathlib import Path
from unittest.mock import patch

import numpy as np
from scipy.io import wavfile

from voicescribe.application.errors import ConversionError
from voicescribe.infrastructure.audio.sample_converter import (
    SampleConverter,
    normalize,
    quantize,
)


def _wav_bytes(samples: np.ndarray, sample_rate: int = 16_000) -> bytes:
    buffer = io.BytesIO()
    wavfile.write(buffer, sample_rate, samples)
    return buffer.getvalue()


def _wav_with_list_chunk(samples: np.ndarray, sample_rate: int = 16_000) -> bytes:
    """Mono 16-bit WAV with a LIST chunk between fmt and data, as ffmpeg writes."""
    payload = samples.astype("<i2").tobytes()
    fmt = struct.pack("<HHIIHH", 1, 1, sample_rate, sample_rate * 2, 2, 16)
    info = b"INFO" + b"ISFT" + struct.pack("<I", 14) + b"Lavf60.16.100\x00"
    chunks = (
        b"fmt " + struct.pack("<I", len(fmt)) + fmt
        + b"LIST" + struct.pack("<I", len(info)) + info
        + b"data" + struct.pack("<I", len(payload)) + payload
    )
    return b"RIFF" + struct.pack("<I", 4 + len(chunks)) + b"WAVE" + chunks


class TestNormalize(unittest.TestCase):
    """Test cases for the int16 -> float normalization."""

    def test_boundary_values_are_clamped(self):
        """Test that 32767 maps to 1.0 and -32768 to exactly -1.0."""
        result = normalize(np.array([32767, -32768, 0], dtype=np.int16))

        self.assertEqual(result.dtype, np.float32)
        self.assertEqual(result[0], 1.0)
        self.assertEqual(result[1], -1.0)
        self.assertEqual(result[2], 0.0)

    def test_full_int16_range_stays_in_bounds(self):
        """Test that every possible 16-bit value normalizes into [-1, 1]."""
        pcm = np.arange(-32768, 32768, dtype=np.int32).astype(np.int16)

        result = normalize(pcm)

        self.assertGreaterEqual(float(result.min()), -1.0)
        self.assertLessEqual(float(result.max()), 1.0)

    def test_round_trip_within_one_quantization_step(self):
        """Test float -> int16 -> float reproduces values within 1/32767."""
        original = np.linspace(-1.0, 1.0, 2001)

        restored = normalize(quantize(original))

        self.assertLessEqual(float(np.max(np.abs(restored - original))), 1.0 / 32767)

    def test_quantize_clips_out_of_range_values(self):
        """Test that quantize saturates instead of wrapping around."""
        result = quantize(np.array([1.5, -1.5]))

        self.assertEqual(result.tolist(), [32767, -32768])


class TestSampleConverter(unittest.TestCase):
    """Test cases for SampleConverter."""

    def setUp(self):
        """Set up test fixtures."""
        self.converter = SampleConverter()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_zero_byte_source_returns_empty_buffer(self):
        """Test that an empty source is empty audio, not an error."""
        result = self.converter.convert(b"")

        self.assertEqual(len(result), 0)

    def test_wav_without_frames_returns_empty_buffer(self):
        """Test that a header-only WAV yields an empty buffer."""
        path = self.tmp_path / "empty.wav"
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(16_000)

        result = self.converter.convert(path)

        self.assertEqual(len(result), 0)

    def test_canonical_wav_passes_through_bit_exact(self):
        """Test that 16 kHz mono int16 input is not altered."""
        samples = np.random.default_rng(1).integers(-32768, 32767, 4000).astype(np.int16)

        canonical = self.converter.to_canonical(_wav_bytes(samples))

        np.testing.assert_array_equal(canonical.samples, samples)

    def test_extra_header_chunks_are_skipped(self):
        """Test that samples start after the data chunk header, not at byte 44."""
        samples = np.array([1000, -1000, 32767, -32768, 0], dtype=np.int16)

        canonical = self.converter.to_canonical(_wav_with_list_chunk(samples))

        np.testing.assert_array_equal(canonical.samples, samples)

    def test_stereo_48k_is_downmixed_and_resampled(self):
        """Test conversion of 1s of 48 kHz stereo into 16 kHz mono."""
        t = np.arange(48_000) / 48_000
        tone = (0.5 * np.sin(2 * np.pi * 440 * t) * 32767).astype(np.int16)
        stereo = np.stack([tone, tone], axis=1)

        result = self.converter.convert(_wav_bytes(stereo, sample_rate=48_000))

        self.assertEqual(len(result), 16_000)
        self.assertGreaterEqual(float(result.samples.min()), -1.0)
        self.assertLessEqual(float(result.samples.max()), 1.0)
        self.assertAlmostEqual(float(np.max(np.abs(result.samples))), 0.5, delta=0.05)

    def test_float_wav_is_requantized(self):
        """Test that float input goes through 16-bit requantization."""
        samples = np.array([0.25, -0.25, 1.0, -1.0], dtype=np.float32)

        canonical = self.converter.to_canonical(_wav_bytes(samples))

        self.assertEqual(canonical.samples.tolist(), [8192, -8192, 32767, -32767])

    def test_accepts_path_and_file_object(self):
        """Test that paths and binary streams decode identically."""
        samples = np.array([1, 2, 3, -4], dtype=np.int16)
        path = self.tmp_path / "clip.wav"
        path.write_bytes(_wav_bytes(samples))

        from_path = self.converter.to_canonical(str(path))
        with path.open("rb") as fh:
            from_stream = self.converter.to_canonical(fh)

        np.testing.assert_array_equal(from_path.samples, samples)
        np.testing.assert_array_equal(from_stream.samples, samples)

    def test_normalized_buffer_is_read_only(self):
        """Test that the produced buffer cannot be mutated."""
        result = self.converter.convert(_wav_bytes(np.array([1, 2, 3], dtype=np.int16)))

        with self.assertRaises(ValueError):
            result.samples[0] = 0.0

    def test_missing_file_raises_conversion_error(self):
        """Test that an unreadable source is reported as ConversionError."""
        with self.assertRaises(ConversionError):
            self.converter.convert(self.tmp_path / "missing.wav")

    def test_corrupt_wav_raises_conversion_error(self):
        """Test that a truncated RIFF header is reported as ConversionError."""
        data = b"RIFF" + struct.pack("<I", 100) + b"WAVE" + b"fmt " + struct.pack("<I", 16) + b"\x01\x00"

        with self.assertRaises(ConversionError):
            self.converter.convert(data)

    def test_non_wav_without_ffmpeg_raises_conversion_error(self):
        """Test that non-WAV input needs ffmpeg."""
        with patch(
            "voicescribe.infrastructure.audio.sample_converter.shutil.which",
            return_value=None,
        ):
            with self.assertRaises(ConversionError):
                self.converter.convert(b"ID3\x04\x00not really an mp3")

    def test_ffmpeg_failure_removes_temporary_files(self):
        """Test that temp files are cleaned up when transcoding fails."""
        import subprocess

        converter = SampleConverter(temp_dir=self.tmp_path)
        error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="Invalid data found")

        with patch(
            "voicescribe.infrastructure.audio.sample_converter.shutil.which",
            return_value="/usr/bin/ffmpeg",
        ), patch(
            "voicescribe.infrastructure.audio.sample_converter.subprocess.run",
            side_effect=error,
        ):
            with self.assertRaises(ConversionError) as ctx:
                converter.convert(b"OggS garbage")

        self.assertIn("Invalid data found", str(ctx.exception))
        self.assertEqual(list(self.tmp_path.iterdir()), [])

    def test_ffmpeg_success_decodes_output_and_cleans_up(self):
        """Test the transcoding path end to end with a stubbed ffmpeg."""
        converter = SampleConverter(temp_dir=self.tmp_path)
        samples = np.array([100, -100, 200], dtype=np.int16)

        def fake_run(cmd, **kwargs):
            Path(cmd[-1]).write_bytes(_wav_bytes(samples))

        with patch(
            "voicescribe.infrastructure.audio.sample_converter.shutil.which",
            return_value="/usr/bin/ffmpeg",
        ), patch(
            "voicescribe.infrastructure.audio.sample_converter.subprocess.run",
            side_effect=fake_run,
        ) as run:
            canonical = converter.to_canonical(b"fLaC not decoded here")

        np.testing.assert_array_equal(canonical.samples, samples)
        cmd = run.call_args.args[0]
        self.assertIn("pcm_s16le", cmd)
        self.assertEqual(cmd[cmd.index("-ar") + 1], "16000")
        self.assertEqual(cmd[cmd.index("-ac") + 1], "1")
        self.assertEqual(list(self.tmp_path.iterdir()), [])


if __name__ == "__main__":
    unittest.main()
