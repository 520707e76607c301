from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import AbstractContextManager, nullcontext
from pathlib import Path
from threading import Lock

from voicescribe.application.errors import TranscriptionError
from voicescribe.application.port.audio_capture import AudioCapture
from voicescribe.application.port.sample_converter import AudioSource, SampleConverter
from voicescribe.application.port.speech_recognizer import SpeechRecognizer
from voicescribe.application.result import TranscriptionResult
from voicescribe.domain.vo.audio import RawAudioStream
from voicescribe.domain.vo.session_state import PipelineState
from voicescribe.domain.vo.transcript import Transcript
from voicescribe.utils.logger import Logger

CompletionCallback = Callable[[TranscriptionResult], None]
Dispatcher = Callable[[Callable[[], None]], None]
AccessScope = Callable[[Path], AbstractContextManager]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


class TranscriptionOrchestrator:
    """Capture → convert → transcribe, reported exactly once per request.

    Each request is a single task on a one-thread executor; its Future's done
    callback is the only place the caller's continuation runs. Only one request
    may be in flight: start/stop/import calls made while busy are rejected.
    """

    def __init__(
        self,
        capture: AudioCapture,
        converter: SampleConverter,
        recognizer: SpeechRecognizer,
        logger: Logger | None = None,
        *,
        dispatcher: Dispatcher | None = None,
        keep_recordings: bool = False,
    ) -> None:
        self.capture = capture
        self.converter = converter
        self.recognizer = recognizer
        self.logger = logger
        self.dispatcher = dispatcher or _call_inline
        self.keep_recordings = keep_recordings

        self._state_lock = Lock()
        self._state = PipelineState.IDLE
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="transcription")
        self._closed = False

        # Optional hook for UI/observers.
        self.on_state_changed: Callable[[PipelineState], None] | None = None

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state == PipelineState.RECORDING

    @property
    def is_busy(self) -> bool:
        return self.state in (PipelineState.CONVERTING, PipelineState.TRANSCRIBING)

    def start_recording(self) -> bool:
        with self._state_lock:
            if self._closed or self._state != PipelineState.IDLE:
                rejected_state = self._state
            else:
                rejected_state = None
                self._state = PipelineState.RECORDING

        if rejected_state is not None:
            self._log(f"[Pipeline] start_recording rejected (state={rejected_state.value})")
            return False

        try:
            started = self.capture.start()
        except TranscriptionError:
            self._set_state(PipelineState.IDLE, notify=False)
            raise

        if not started:
            self._set_state(PipelineState.IDLE, notify=False)
            return False

        self._notify(PipelineState.RECORDING)
        self._log("[Pipeline] Recording started")
        return True

    def stop_recording(self, on_complete: CompletionCallback) -> bool:
        if not self._transition(PipelineState.RECORDING, PipelineState.CONVERTING):
            return False

        try:
            raw = self.capture.stop()
        except TranscriptionError as e:
            self._fail_fast(e, on_complete)
            return True

        self._log("[Pipeline] Recording stopped; converting")
        self._submit(on_complete, self._run_recording, raw)
        return True

    def transcribe_file(
        self,
        path: str | Path,
        on_complete: CompletionCallback,
        *,
        access: AccessScope | None = None,
    ) -> bool:
        if not self._transition(PipelineState.IDLE, PipelineState.CONVERTING):
            self._log("[Pipeline] transcribe_file rejected: another request is in progress")
            return False

        self._log(f"[Pipeline] Importing {path}")
        self._submit(on_complete, self._run_file, Path(path), access)
        return True

    def close(self) -> None:
        with self._state_lock:
            self._closed = True
            recording = self._state == PipelineState.RECORDING

        try:
            if recording:
                try:
                    raw = self.capture.stop()
                    if raw is not None and not self.keep_recordings:
                        raw.discard()
                finally:
                    self._set_state(PipelineState.IDLE)
        finally:
            self._executor.shutdown(wait=True)

    def _run_recording(self, raw: RawAudioStream | None) -> str:
        if raw is None:
            self._set_state(PipelineState.TRANSCRIBING)
            return ""
        try:
            return self._transcribe_source(raw.path)
        finally:
            if not self.keep_recordings:
                raw.discard()

    def _run_file(self, path: Path, access: AccessScope | None) -> str:
        scope = access(path) if access is not None else nullcontext()
        with scope:
            return self._transcribe_source(path)

    def _transcribe_source(self, source: AudioSource) -> str:
        samples = self.converter.convert(source)

        self._set_state(PipelineState.TRANSCRIBING)
        segments = self.recognizer.transcribe(samples)

        return Transcript.from_segments(segments).text

    def _submit(self, on_complete: CompletionCallback, stage: Callable[..., str], *args) -> None:
        try:
            future = self._executor.submit(stage, *args)
        except RuntimeError as e:
            self._fail_fast(TranscriptionError(f"Worker unavailable: {e}"), on_complete)
            return
        future.add_done_callback(lambda done: self._finish(done, on_complete))

    def _finish(self, future: Future[str], on_complete: CompletionCallback) -> None:
        error = future.exception()
        if error is None:
            result = TranscriptionResult.success(future.result())
        elif isinstance(error, TranscriptionError):
            result = TranscriptionResult.failure(error)
        else:
            wrapped = TranscriptionError(f"Unexpected error: {error}")
            wrapped.__cause__ = error
            result = TranscriptionResult.failure(wrapped)

        try:
            if error is None:
                self._log(f"[Pipeline] Transcription complete ({len(result.text or '')} chars)")
            elif isinstance(error, TranscriptionError):
                self._log(f"[Pipeline] {type(error).__name__}: {error}")
            else:
                self._log(f"[Pipeline] Unexpected error: {error!r}")
        finally:
            self._complete(result, on_complete)

    def _fail_fast(self, error: TranscriptionError, on_complete: CompletionCallback) -> None:
        result = TranscriptionResult.failure(error)
        try:
            self._log(f"[Pipeline] {type(error).__name__}: {error}")
        finally:
            self._complete(result, on_complete)

    def _complete(self, result: TranscriptionResult, on_complete: CompletionCallback) -> None:
        try:
            self._set_state(PipelineState.IDLE)
        finally:
            # Observers may raise; the caller is still answered.
            self.dispatcher(lambda: on_complete(result))

    def _transition(self, expected: PipelineState, new_state: PipelineState) -> bool:
        with self._state_lock:
            if self._closed or self._state != expected:
                return False
            self._state = new_state
        self._notify(new_state)
        return True

    def _set_state(self, new_state: PipelineState, *, notify: bool = True) -> None:
        with self._state_lock:
            changed = self._state != new_state
            self._state = new_state
        if changed and notify:
            self._notify(new_state)

    def _notify(self, state: PipelineState) -> None:
        hook = self.on_state_changed
        if hook is not None:
            self.dispatcher(lambda: hook(state))

    def _log(self, message: str) -> None:
        if self.logger:
            self.logger.log(message)
