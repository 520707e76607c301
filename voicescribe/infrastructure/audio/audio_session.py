from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from time import sleep
from typing import Any

from voicescribe.application.errors import SessionConfigError
from voicescribe.domain.vo.audio import CANONICAL_CHANNELS, CANONICAL_SAMPLE_RATE
from voicescribe.domain.vo.session_state import DeviceSessionState
from voicescribe.utils.logger import Logger

StreamFactory = Callable[..., Any]
AudioCallback = Callable[[Any, int, Any, Any], None]

_STREAM_ERRORS: tuple[type[BaseException], ...] = (OSError, RuntimeError, ValueError)


def _import_sounddevice():
    # PortAudio is loaded at import time; a missing library is a session
    # configuration problem, not a crash.
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise SessionConfigError(
            "Audio capture requires 'sounddevice' and the PortAudio library. "
            f"Original error: {e}"
        ) from e
    return sd


class AudioSession:
    """Explicit input-device session: configure, activate, open, deactivate.

    Replaces ambient global device state. Opening the stream is retried a
    bounded number of times with a settle delay, since some backends report
    ready before the device actually accepts a stream.
    """

    def __init__(
        self,
        *,
        sample_rate: int = CANONICAL_SAMPLE_RATE,
        channels: int = CANONICAL_CHANNELS,
        dtype: str = "int16",
        blocksize: int = 8192,
        device: int | str | None = None,
        settle_delay_seconds: float = 0.1,
        activation_attempts: int = 3,
        stream_factory: StreamFactory | None = None,
        settings_check: Callable[..., None] | None = None,
        sleep_fn: Callable[[float], None] = sleep,
        logger: Logger | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.dtype = dtype
        self.blocksize = blocksize
        self.device = device
        self.settle_delay_seconds = settle_delay_seconds
        self.activation_attempts = max(1, activation_attempts)

        self._stream_factory = stream_factory
        self._settings_check = settings_check
        self._sleep = sleep_fn
        self._logger = logger
        self._errors = _STREAM_ERRORS

        self._lock = Lock()
        self._state = DeviceSessionState.INACTIVE

    @property
    def state(self) -> DeviceSessionState:
        with self._lock:
            return self._state

    def _set_state(self, new_state: DeviceSessionState) -> None:
        with self._lock:
            old_state = self._state
            self._state = new_state
        if old_state != new_state:
            self._log(f"[Session] {old_state.value} -> {new_state.value}")

    def _log(self, message: str) -> None:
        if self._logger:
            self._logger.log(message)

    def _resolve_backend(self) -> None:
        if self._stream_factory is not None and self._settings_check is not None:
            return
        sd = _import_sounddevice()
        self._errors = _STREAM_ERRORS + (sd.PortAudioError,)
        if self._stream_factory is None:
            self._stream_factory = sd.RawInputStream
        if self._settings_check is None:
            self._settings_check = sd.check_input_settings

    def configure(self) -> None:
        """Validate that the device accepts the canonical capture format."""
        if self.state != DeviceSessionState.INACTIVE:
            return

        self._resolve_backend()
        assert self._settings_check is not None
        try:
            self._settings_check(
                device=self.device,
                channels=self.channels,
                dtype=self.dtype,
                samplerate=self.sample_rate,
            )
        except self._errors as e:
            raise SessionConfigError(
                f"Input device rejected {self.sample_rate} Hz / {self.channels} ch / "
                f"{self.dtype}: {e}"
            ) from e
        self._set_state(DeviceSessionState.CONFIGURED)

    def activate(self) -> None:
        state = self.state
        if state == DeviceSessionState.ACTIVE:
            return
        if state == DeviceSessionState.INACTIVE:
            self.configure()

        self._set_state(DeviceSessionState.ACTIVE)
        if self.settle_delay_seconds > 0:
            self._sleep(self.settle_delay_seconds)

    def open_stream(self, callback: AudioCallback) -> Any:
        """Open and start an input stream delivering blocks to ``callback``."""
        if self.state != DeviceSessionState.ACTIVE:
            raise SessionConfigError("Audio session must be active before opening a stream.")

        assert self._stream_factory is not None
        last_error: BaseException | None = None
        for attempt in range(1, self.activation_attempts + 1):
            stream = None
            try:
                stream = self._stream_factory(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype=self.dtype,
                    blocksize=self.blocksize,
                    device=self.device,
                    callback=callback,
                )
                stream.start()
                if attempt > 1:
                    self._log(f"[Session] Input stream started on attempt {attempt}")
                return stream
            except self._errors as e:
                last_error = e
                self._log(
                    f"[Session] Input stream start failed "
                    f"(attempt {attempt}/{self.activation_attempts}): {e}"
                )
                if stream is not None:
                    try:
                        stream.close()
                    except self._errors as close_error:
                        self._log(f"[Session] Closing failed stream raised: {close_error}")
                if attempt < self.activation_attempts:
                    self._sleep(self.settle_delay_seconds)

        raise SessionConfigError(
            f"Input stream could not be started after {self.activation_attempts} attempts: "
            f"{last_error}"
        ) from last_error

    def deactivate(self) -> None:
        self._set_state(DeviceSessionState.INACTIVE)

    def list_input_devices(self) -> list[dict]:
        sd = _import_sounddevice()
        devices = []
        for index, info in enumerate(sd.query_devices()):
            if info.get("max_input_channels", 0) <= 0:
                continue
            devices.append(
                {
                    "index": index,
                    "name": info.get("name", "?"),
                    "hostapi": info.get("hostapi", "?"),
                    "max_input_channels": info.get("max_input_channels", 0),
                    "default_samplerate": info.get("default_samplerate", 0.0),
                }
            )
        return devices
