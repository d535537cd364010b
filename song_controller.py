"""
beatcourse - Song controller
Batch pipeline for one clip: every frame through the analyzer, then one
level generation pass over the finished onset timeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from config import Config, validate_config
from level_generator import LevelGenerator
from level_models import LevelData, SongData
from logging_utils import log_stage
from spectrum_analyzer import SpectrumAnalyzer
from spectrum_source import clip_duration, iter_spectrum_frames, load_audio


@dataclass(frozen=True)
class SongLevel:
    analyzer: SpectrumAnalyzer
    level: LevelData
    song_name: str
    song_time: float

    def song_data(self) -> SongData:
        return SongData.from_analyzer(self.analyzer, self.song_name, self.song_time)


def analyze_samples(samples: np.ndarray, sample_rate: int, config: Config) -> SpectrumAnalyzer:
    """Run the whole clip through a fresh analyzer."""
    analysis = config.analysis
    analyzer = SpectrumAnalyzer(
        config.bands,
        fft_size=analysis.fft_size,
        sample_rate=sample_rate,
        threshold_window_size=analysis.threshold_window_size,
        bar_count=analysis.bar_count,
    )
    with log_stage("Song", "Spectrum analysis", fft_size=analysis.fft_size) as stage:
        for spectrum, frame_time in iter_spectrum_frames(samples, sample_rate, analysis.fft_size):
            analyzer.analyze(spectrum, frame_time)
        stage["frames"] = analyzer.song_index_length
    analyzer.log_summary()
    return analyzer


def generate_song_level(
    samples: np.ndarray,
    sample_rate: int,
    config: Config,
    song_name: str = "",
    generator: Optional[LevelGenerator] = None,
) -> SongLevel:
    """Analyze *samples* and build a level. Raises ConfigurationError on bad config."""
    validate_config(config)
    analyzer = analyze_samples(samples, sample_rate, config)
    song_time = clip_duration(samples, sample_rate)

    if generator is None:
        generator = LevelGenerator(config)
    with log_stage("Song", "Level generation", song=song_name or "-") as stage:
        level = generator.generate(analyzer, song_time, song_name)
        stage["entities"] = len(level.level_objects)
        stage["lighting_cues"] = len(level.lighting_events)
    return SongLevel(analyzer=analyzer, level=level, song_name=song_name, song_time=song_time)


def generate_level_from_file(
    path: Path,
    config: Config,
    song_name: Optional[str] = None,
    generator: Optional[LevelGenerator] = None,
) -> SongLevel:
    samples, sample_rate = load_audio(path)
    if song_name is None:
        song_name = Path(path).stem
    return generate_song_level(samples, sample_rate, config, song_name, generator)
