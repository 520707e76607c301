from __future__ import annotations

import sys
from pathlib import Path
from threading import Event
from time import sleep


def _ensure_repo_root_on_sys_path() -> None:
    # Allow running both:
    # - python -m voicescribe.main
    # - python voicescribe/main.py
    if __package__:
        return
    repo_root = str(Path(__file__).resolve().parents[1])
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


EXIT_OK = 0
EXIT_OTHER = 1
EXIT_CONFIG = 2
EXIT_MODEL_NOT_FOUND = 3
EXIT_CONVERSION = 4
EXIT_CAPTURE = 5
EXIT_INFERENCE = 6


def _exit_code_for(error: Exception) -> int:
    from voicescribe.application.errors import (
        CaptureError,
        ConversionError,
        InferenceError,
        ModelNotFoundError,
        SessionConfigError,
    )

    if isinstance(error, ModelNotFoundError):
        return EXIT_MODEL_NOT_FOUND
    if isinstance(error, ConversionError):
        return EXIT_CONVERSION
    if isinstance(error, (SessionConfigError, CaptureError)):
        return EXIT_CAPTURE
    if isinstance(error, InferenceError):
        return EXIT_INFERENCE
    return EXIT_OTHER


def _run_gui(config) -> int:
    from PySide6.QtWidgets import QApplication

    from voicescribe.di_container import build_container
    from voicescribe.presentation.main_window import MainWindow
    from voicescribe.presentation.transcription_bridge import TranscriptionBridge

    app = QApplication(sys.argv[:1])
    bridge = TranscriptionBridge()
    container = build_container(config, dispatcher=bridge.dispatcher)
    bridge.attach(container.orchestrator)

    window = MainWindow(bridge)
    window.show()
    try:
        return app.exec()
    finally:
        container.orchestrator.close()


def _wait_for(submit):
    done = Event()
    box = []

    def on_complete(result) -> None:
        box.append(result)
        done.set()

    if not submit(on_complete):
        return None
    done.wait()
    return box[0]


def main(argv: list[str] | None = None) -> int:
    _ensure_repo_root_on_sys_path()

    from voicescribe.application.errors import TranscriptionError
    from voicescribe.config import AppConfig
    from voicescribe.di_container import build_container
    from voicescribe.utils.args import parse_args
    from voicescribe.utils.env import load_dotenv

    args = parse_args(sys.argv[1:] if argv is None else argv)
    load_dotenv(args.env_file)

    try:
        config = AppConfig.from_env()
    except ValueError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    if args.gui:
        return _run_gui(config)

    container = build_container(config)
    container.logger.on_emit = lambda line: print(line, file=sys.stderr)
    orchestrator = container.orchestrator

    try:
        if args.list_devices:
            for device in container.capture.list_input_devices():
                print(
                    f"#{device['index']} in={device['max_input_channels']} "
                    f"sr={device['default_samplerate']} name={device['name']}"
                )
            return EXIT_OK

        if args.download_model:
            path = container.recognizer.download_model()
            print(f"Model downloaded to {path}")
            return EXIT_OK

        if args.record is not None:
            if args.record <= 0:
                print("--record needs a positive number of seconds.", file=sys.stderr)
                return EXIT_CONFIG
            if not orchestrator.start_recording():
                print("Recording could not be started: the pipeline is busy.", file=sys.stderr)
                return EXIT_CAPTURE
            print(f"Recording for {args.record:.1f}s...", file=sys.stderr)
            sleep(args.record)
            result = _wait_for(orchestrator.stop_recording)
        elif args.file:
            result = _wait_for(lambda cb: orchestrator.transcribe_file(args.file, cb))
        else:
            print("Nothing to do: pass a FILE, --record SECONDS or --gui.", file=sys.stderr)
            return EXIT_CONFIG

        if result is None:
            print("Request rejected: the pipeline is busy.", file=sys.stderr)
            return EXIT_OTHER

        print(result.unwrap().strip())
        return EXIT_OK
    except TranscriptionError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return _exit_code_for(exc)
    except KeyboardInterrupt:
        return EXIT_OTHER
    finally:
        orchestrator.close()
        if args.save_log:
            container.logger.save()


if __name__ == "__main__":
    raise SystemExit(main())
