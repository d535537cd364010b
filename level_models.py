"""Records produced by level generation and consumed by rendering/persistence."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np

from config import LevelFeature
from physics_model import PhysicsModel
from spectrum_analyzer import FrequencyBand, SpectrumAnalyzer


@dataclass
class PlacedEntity:
    """A feature instance at one song position index"""
    song_position_index: int
    feature: LevelFeature
    handle: Any = None          # Opaque world object owned by the rendering collaborator

    @property
    def feature_id(self) -> str:
        return self.feature.feature_id


@dataclass(frozen=True)
class LightingCue:
    song_position_index: int
    color: Optional[str] = None


@dataclass
class LevelData:
    """A generated (or loaded) level, laid out like the saved level record"""
    song_name: str
    song_index_length: int
    spacing_between_samples: float
    player_offset: float
    song_time: float
    level_length: float
    platform_scale: float
    physics_model: PhysicsModel
    level_objects: List[PlacedEntity] = field(default_factory=list)
    lighting_events: List[LightingCue] = field(default_factory=list)

    def entity_keys(self) -> set[tuple[str, int]]:
        return {(e.feature_id, e.song_position_index) for e in self.level_objects}

    def cue_keys(self) -> set[tuple[int, Optional[str]]]:
        return {(c.song_position_index, c.color) for c in self.lighting_events}


@dataclass
class SongData:
    """Analyzed song kept on disk so levels can be regenerated without the FFT pass"""
    song_name: str
    song_time: float
    spectral_sample_size: int
    threshold_window_size: int
    sample_rate: float
    frequency_bands: List[FrequencyBand] = field(default_factory=list)
    spectrum_data: List[np.ndarray] = field(default_factory=list)

    @classmethod
    def from_analyzer(cls, analyzer: SpectrumAnalyzer, song_name: str, song_time: float) -> "SongData":
        return cls(
            song_name=song_name,
            song_time=float(song_time),
            spectral_sample_size=analyzer.fft_size,
            threshold_window_size=analyzer.threshold_window_size,
            sample_rate=analyzer.sample_rate,
            frequency_bands=list(analyzer.frequency_bands),
            spectrum_data=list(analyzer.spectrum_data),
        )

    def to_analyzer(self) -> SpectrumAnalyzer:
        """Rebuild an analyzer holding this song's flux history (not resumable mid-clip)."""
        bar_count = len(self.spectrum_data[0]) if self.spectrum_data else 0
        analyzer = SpectrumAnalyzer(
            self.frequency_bands,
            fft_size=self.spectral_sample_size,
            sample_rate=self.sample_rate,
            threshold_window_size=self.threshold_window_size,
            bar_count=bar_count,
        )
        for restored, band in zip(analyzer.frequency_bands, self.frequency_bands):
            restored.restore_samples(band.samples, self.threshold_window_size)
        analyzer.spectrum_data = list(self.spectrum_data)
        return analyzer
