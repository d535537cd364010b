#!/usr/bin/env python3
"""
beatcourse - Music-driven level generation

Analyzes an audio clip for onsets in several frequency bands and writes a
side-scrolling level whose obstacles land on those onsets while staying
jumpable for the configured player physics.
"""

import argparse
import cProfile
import sys
from pathlib import Path

import soundfile as sf

from config import ConfigurationError
from config_persistence import load_config
from level_persistence import save_level, save_song_data
from logging_utils import log_event, set_log_level
from song_controller import generate_level_from_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a level from an audio clip")
    parser.add_argument("audio", type=Path, help="Audio file to analyze (wav, flac, ogg)")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config JSON to use (default: ~/.beatcourse/config.json)",
    )
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Level JSON to write (default: <audio name>.level.json next to the audio)",
    )
    parser.add_argument("--song-name", default=None, help="Name stored in the level (default: file stem)")
    parser.add_argument("--song-data", type=Path, default=None, help="Also save the analyzed song to this JSON")
    parser.add_argument("--report-dir", type=Path, default=None, help="Write flux CSV/JSON reports here")
    parser.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR (overrides config)")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    return parser


def run_generation(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    set_log_level(args.log_level or config.log_level)

    if not args.audio.exists():
        log_event("ERROR", "CLI", "Audio file not found", path=args.audio)
        return 2

    try:
        result = generate_level_from_file(args.audio, config, song_name=args.song_name)
    except ConfigurationError as e:
        log_event("ERROR", "CLI", "Level generation aborted", error=e)
        return 2
    except sf.SoundFileError as e:
        log_event("ERROR", "CLI", "Could not read audio", path=args.audio, error=e)
        return 2

    out_path = args.out or args.audio.with_suffix(".level.json")
    if not save_level(out_path, result.level):
        return 1

    if args.song_data is not None and not save_song_data(args.song_data, result.song_data()):
        return 1

    if args.report_dir is not None:
        from analysis_report import AnalysisReporter

        AnalysisReporter(args.report_dir).save(result.analyzer, result.song_name)
        log_event("INFO", "CLI", "Analysis report written", path=args.report_dir)

    return 0


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_generation(args)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_generation(args)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
