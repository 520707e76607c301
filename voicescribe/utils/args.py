from __future__ import annotations

import argparse


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Transcribe an audio file or a microphone recording with a local Whisper model"
    )
    parser.add_argument(
        "file",
        nargs="?",
        help="Audio file to transcribe (any format ffmpeg can read; WAV needs no ffmpeg).",
    )
    parser.add_argument(
        "--record",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Record from the input device for SECONDS, then transcribe.",
    )
    parser.add_argument(
        "--gui",
        action="store_true",
        help="Open the desktop window instead of running once.",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit.",
    )
    parser.add_argument(
        "--download-model",
        action="store_true",
        help="Download the configured model into the models directory and exit.",
    )
    parser.add_argument(
        "--save-log",
        action="store_true",
        help="Write the session log to the log directory on exit.",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env). Use empty to disable.",
    )
    return parser.parse_args(argv)
