from __future__ import annotations

import os
import struct
import tempfile
import wave
from contextlib import suppress
from pathlib import Path
from queue import Full, Queue
from threading import Lock, Thread

from voicescribe.application.errors import CaptureError, SessionConfigError
from voicescribe.domain.vo.audio import CANONICAL_SAMPLE_WIDTH, RawAudioStream
from voicescribe.domain.vo.session_state import AudioSessionState
from voicescribe.infrastructure.audio.audio_session import AudioSession
from voicescribe.utils.logger import Logger


class AudioCapture:
    """Streams live input blocks into a per-session WAV sink.

    The device callback runs on the PortAudio I/O thread and only enqueues a
    copy of the block; a writer thread owns the file. When the queue is full the
    block is dropped and counted instead of stalling the device.
    """

    def __init__(
        self,
        session: AudioSession,
        *,
        recordings_dir: Path | None = None,
        queue_blocks: int = 64,
        logger: Logger | None = None,
    ) -> None:
        self.session = session
        self.recordings_dir = recordings_dir
        self.queue_blocks = queue_blocks
        self._logger = logger

        self._state_lock = Lock()
        self._state = AudioSessionState.IDLE

        self._queue: Queue[bytes | None] | None = None
        self._writer_thread: Thread | None = None
        self._wav: wave.Wave_write | None = None
        self._path: Path | None = None
        self._stream = None

        # Counters touched by the callback/writer threads; read after join.
        self._dropped_blocks = 0
        self._status_flags = 0
        self._frames_written = 0
        self._failed_writes = 0
        self._first_write_error: Exception | None = None

    @property
    def state(self) -> AudioSessionState:
        with self._state_lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state == AudioSessionState.RECORDING

    def _log(self, message: str) -> None:
        if self._logger:
            self._logger.log(message)

    def start(self) -> bool:
        with self._state_lock:
            if self._state != AudioSessionState.IDLE:
                self._log("[Capture] Already recording; start ignored.")
                return False
            # Claim the session before releasing the lock so a concurrent
            # start cannot install a second tap.
            self._state = AudioSessionState.RECORDING

        try:
            self._open_sink()
            self.session.activate()
            self._start_writer()
            self._stream = self.session.open_stream(self._on_audio_block)
        except (SessionConfigError, CaptureError):
            self._abort_start()
            raise

        self._log(f"[Capture] Recording to {self._path}")
        return True

    def stop(self) -> RawAudioStream | None:
        with self._state_lock:
            if self._state != AudioSessionState.RECORDING:
                return None
            self._state = AudioSessionState.STOPPING

        try:
            # Remove the tap first so no block arrives after the sink closes.
            self._close_stream()
            self.session.deactivate()
            self._stop_writer()
            return self._finalize_sink()
        finally:
            self._reset()
            with self._state_lock:
                self._state = AudioSessionState.IDLE

    def _on_audio_block(self, indata, frames, time_info, status) -> None:
        if status:
            self._status_flags += 1
        queue = self._queue
        if queue is None:
            return
        try:
            queue.put_nowait(bytes(indata))
        except Full:
            self._dropped_blocks += 1

    def _open_sink(self) -> None:
        try:
            if self.recordings_dir is not None:
                self.recordings_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix="recording-", suffix=".wav", dir=self.recordings_dir
            )
            os.close(fd)
            self._path = Path(name)

            wav = wave.open(str(self._path), "wb")
            wav.setnchannels(self.session.channels)
            wav.setsampwidth(CANONICAL_SAMPLE_WIDTH)
            wav.setframerate(self.session.sample_rate)
            self._wav = wav
        except (OSError, wave.Error) as e:
            raise CaptureError(f"Failed to open recording sink: {e}") from e

    def _start_writer(self) -> None:
        self._queue = Queue(maxsize=self.queue_blocks)
        self._writer_thread = Thread(
            target=self._writer_loop,
            args=(self._queue,),
            name="capture-writer",
            daemon=True,
        )
        self._writer_thread.start()

    def _writer_loop(self, queue: Queue[bytes | None]) -> None:
        bytes_per_frame = CANONICAL_SAMPLE_WIDTH * self.session.channels
        while True:
            block = queue.get()
            if block is None:
                return

            wav = self._wav
            if wav is None:
                continue
            try:
                wav.writeframes(block)
                self._frames_written += len(block) // bytes_per_frame
            except (OSError, wave.Error, struct.error) as e:
                # A lost block is not fatal; keep recording.
                self._failed_writes += 1
                if self._first_write_error is None:
                    self._first_write_error = e
                    self._log(f"[Capture] Failed to write audio block: {e}")

    def _close_stream(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        for action in (stream.stop, stream.close):
            try:
                action()
            except (OSError, RuntimeError, ValueError) as e:
                self._log(f"[Capture] Input stream teardown raised: {e}")

    def _stop_writer(self) -> None:
        queue = self._queue
        thread = self._writer_thread
        if queue is not None and thread is not None and thread.is_alive():
            queue.put(None)
        if thread is not None:
            thread.join()
        self._queue = None
        self._writer_thread = None

    def _finalize_sink(self) -> RawAudioStream:
        path = self._path
        wav = self._wav
        self._wav = None
        assert path is not None

        try:
            if wav is not None:
                wav.close()
        except (OSError, wave.Error) as e:
            self._discard_path(path)
            raise CaptureError(f"Failed to finalize recording {path}: {e}") from e

        if self._failed_writes and self._frames_written == 0:
            self._discard_path(path)
            raise CaptureError(
                f"Recording lost: all {self._failed_writes} block writes failed "
                f"({self._first_write_error})"
            )

        raw = RawAudioStream(
            path=path,
            sample_rate=self.session.sample_rate,
            channels=self.session.channels,
            sample_width=CANONICAL_SAMPLE_WIDTH,
            frames_written=self._frames_written,
            dropped_blocks=self._dropped_blocks,
            failed_writes=self._failed_writes,
        )
        self._log(
            f"[Capture] Stopped: {raw.duration_seconds:.2f}s captured, "
            f"{raw.dropped_blocks} dropped block(s), {raw.failed_writes} failed write(s), "
            f"{self._status_flags} status flag(s)"
        )
        return raw

    def _abort_start(self) -> None:
        self._close_stream()
        self.session.deactivate()
        self._stop_writer()
        wav = self._wav
        self._wav = None
        if wav is not None:
            with suppress(OSError, wave.Error):
                wav.close()
        if self._path is not None:
            self._discard_path(self._path)
        self._reset()
        with self._state_lock:
            self._state = AudioSessionState.IDLE

    @staticmethod
    def _discard_path(path: Path) -> None:
        with suppress(FileNotFoundError):
            path.unlink()

    def _reset(self) -> None:
        self._path = None
        self._dropped_blocks = 0
        self._status_flags = 0
        self._frames_written = 0
        self._failed_writes = 0
        self._first_write_error = None

    def list_input_devices(self) -> list[dict]:
        return self.session.list_input_devices()
