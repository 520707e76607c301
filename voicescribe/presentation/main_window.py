from PySide6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QMainWindow,
    QProgressBar,
    QPushButton,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from voicescribe.application.errors import TranscriptionError
from voicescribe.application.result import TranscriptionResult
from voicescribe.presentation.transcription_bridge import TranscriptionBridge

AUDIO_FILE_FILTER = "Audio files (*.wav *.mp3 *.m4a *.aac *.flac *.ogg *.opus *.webm *.mp4);;All files (*)"


class MainWindow(QMainWindow):
    def __init__(self, bridge: TranscriptionBridge):
        super().__init__()
        self.bridge = bridge
        assert bridge.orchestrator is not None
        self.orchestrator = bridge.orchestrator

        self.setWindowTitle("Voicescribe")
        self.resize(600, 400)

        self.import_button = QPushButton("Import Audio")
        self.record_button = QPushButton("Record")
        self.progress = QProgressBar()
        self.progress.setRange(0, 0)
        self.progress.setVisible(False)

        self.transcript_view = QTextEdit()
        self.transcript_view.setReadOnly(True)

        self.log_view = QTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumHeight(120)

        buttons = QHBoxLayout()
        buttons.addWidget(self.import_button)
        buttons.addWidget(self.record_button)

        layout = QVBoxLayout()
        layout.addLayout(buttons)
        layout.addWidget(self.progress)
        layout.addWidget(self.transcript_view)
        layout.addWidget(self.log_view)

        central = QWidget()
        central.setLayout(layout)
        self.setCentralWidget(central)
        self.statusBar().showMessage("Ready")

        self.import_button.clicked.connect(self.on_import_clicked)
        self.record_button.clicked.connect(self.on_record_clicked)
        self.bridge.log.connect(self.append_log)
        self.bridge.state_changed.connect(self.on_state_changed)
        self.bridge.completed.connect(self.on_completed)

    def on_import_clicked(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Import Audio", "", AUDIO_FILE_FILTER)
        if not path:
            return

        self.transcript_view.clear()
        if not self.orchestrator.transcribe_file(path, self.bridge.on_complete):
            self.statusBar().showMessage("Busy: wait for the current transcription to finish")

    def on_record_clicked(self) -> None:
        if self.orchestrator.is_recording:
            self.orchestrator.stop_recording(self.bridge.on_complete)
            return

        self.transcript_view.clear()
        try:
            self.orchestrator.start_recording()
        except TranscriptionError as e:
            self.statusBar().showMessage(f"Recording failed to start ({e})")

    def on_state_changed(self, state: str) -> None:
        busy = state in ("converting", "transcribing")
        recording = state == "recording"

        self.progress.setVisible(busy)
        self.import_button.setEnabled(state == "idle")
        self.record_button.setEnabled(not busy)
        self.record_button.setText("Stop" if recording else "Record")
        self.statusBar().showMessage(state.capitalize())

    def on_completed(self, result: TranscriptionResult) -> None:
        if result.ok:
            text = (result.text or "").strip()
            self.transcript_view.setPlainText(text)
            self.statusBar().showMessage("Done" if text else "Done (no speech detected)")
        else:
            self.statusBar().showMessage(f"{type(result.error).__name__}: {result.error}")

    def append_log(self, text: str):
        self.log_view.append(text)
