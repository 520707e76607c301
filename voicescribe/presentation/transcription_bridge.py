from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QObject, Qt, Signal, Slot

from voicescribe.application.result import TranscriptionResult
from voicescribe.application.transcription_orchestrator import TranscriptionOrchestrator
from voicescribe.domain.vo.session_state import PipelineState


class TranscriptionBridge(QObject):
    """Hops orchestrator callbacks from worker threads onto the GUI thread."""

    log = Signal(str)
    state_changed = Signal(str)
    completed = Signal(object)
    _dispatch = Signal(object)

    def __init__(self) -> None:
        super().__init__()
        self.orchestrator: TranscriptionOrchestrator | None = None
        # Queued so the slot always runs on the thread that owns this object.
        self._dispatch.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def dispatcher(self, fn: Callable[[], None]) -> None:
        self._dispatch.emit(fn)

    def attach(self, orchestrator: TranscriptionOrchestrator) -> None:
        self.orchestrator = orchestrator
        orchestrator.dispatcher = self.dispatcher
        orchestrator.on_state_changed = self._on_state_changed
        if orchestrator.logger is not None:
            orchestrator.logger.on_emit = self.log.emit

    def _on_state_changed(self, state: PipelineState) -> None:
        self.state_changed.emit(state.value)

    def on_complete(self, result: TranscriptionResult) -> None:
        self.completed.emit(result)

    @Slot(object)
    def _run(self, fn: Callable[[], None]) -> None:
        fn()
