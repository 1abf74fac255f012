"""Entry point for `python -m sightreader` or the `sightreader` console script."""

import argparse
import logging

from sightreader.config import (
    DEFAULT_BPM,
    DEFAULT_KEY,
    DEFAULT_MAX_POLYPHONY,
    DEFAULT_TARGET_COUNT,
    DEFAULT_TIME_SIGNATURE,
    EARLY_WINDOW_BEATS,
    LATE_WINDOW_BEATS,
)
from sightreader.matcher import TimingWindows
from sightreader.models import Difficulty, GenerationParams
from sightreader.theory import KEY_INFO


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SightReader: two-handed sight-reading trainer")
    parser.add_argument("--key", default=DEFAULT_KEY, choices=list(KEY_INFO), help="Major key")
    parser.add_argument("--time-signature", default=DEFAULT_TIME_SIGNATURE, help="e.g. 4/4, 3/4, 6/8")
    parser.add_argument(
        "--difficulty",
        default=Difficulty.EASY.value,
        choices=[d.value for d in Difficulty],
    )
    parser.add_argument("--max-polyphony", type=int, default=DEFAULT_MAX_POLYPHONY, help="1-10")
    parser.add_argument("--targets", type=int, default=DEFAULT_TARGET_COUNT, help="Graded onsets per exercise")
    parser.add_argument("--bpm", type=float, default=DEFAULT_BPM)
    parser.add_argument("--early-window", type=float, default=EARLY_WINDOW_BEATS, help="Beats")
    parser.add_argument("--late-window", type=float, default=LATE_WINDOW_BEATS, help="Beats")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible exercises")
    parser.add_argument("--midi-port", type=int, default=None, help="MIDI input port index")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    params = GenerationParams(
        key=args.key,
        time_signature=args.time_signature,
        difficulty=Difficulty(args.difficulty),
        max_polyphony=args.max_polyphony,
        target_count=args.targets,
        lead_in_beats=1.0,
        seed=args.seed,
    )
    windows = TimingWindows(early_window_beats=args.early_window, late_window_beats=args.late_window)

    from sightreader.app import App

    app = App(params, bpm=args.bpm, windows=windows, midi_port=args.midi_port)
    app.run()


if __name__ == "__main__":
    main()
