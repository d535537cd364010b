"""
beatcourse - Spectrum Analyzer
Detects onsets per frequency band using rectified spectral flux and an
adaptive moving-average threshold.

Frames must arrive in time order. Thresholding needs a window centred on the
sample, so every band lags the incoming stream: the sample at ``cursor`` gets
its threshold once ``threshold_window_size`` samples exist, and the sample
just before it is then checked for a peak. Onset decisions are made once and
never revisited.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from config import BandConfig, Config, ConfigurationError
from logging_utils import log_event


def bin_frequencies(n_bins: int, fft_size: int, sample_rate: float) -> np.ndarray:
    """Centre frequency (Hz) of each magnitude bin.

    Uses Nyquist / fft_size per bin, the mapping level configurations have
    always been tuned against.
    """
    frequency_per_bin = (sample_rate / 2) / fft_size
    return np.arange(n_bins, dtype=np.float64) * frequency_per_bin


def compute_bar_averages(spectrum: np.ndarray, bar_count: int) -> np.ndarray:
    """Average *spectrum* into *bar_count* bars for frequency-bar displays.

    Bar i covers bins ``i*k`` through ``i*k + k`` inclusive, where
    ``k = len(spectrum) // bar_count``; neighbouring bars share an edge bin.
    """
    spectrum = np.asarray(spectrum, dtype=np.float64)
    averages = np.zeros(max(0, bar_count))
    if bar_count <= 0 or len(spectrum) == 0:
        return averages

    increment = max(1, len(spectrum) // bar_count)
    for i in range(bar_count):
        low = i * increment
        high = min(len(spectrum), low + increment + 1)
        if low >= high:
            break
        averages[i] = float(np.mean(spectrum[low:high]))
    return averages


@dataclass
class FluxSample:
    """Spectral flux of one band for one frame"""
    time: float                 # Frame time (seconds)
    flux: float                 # Rectified spectral flux (>= 0)
    threshold: float = 0.0      # Local adaptive threshold, filled one step later
    pruned_flux: float = 0.0    # max(0, flux - threshold)
    is_onset: bool = False      # Decided once, never revised


class FrequencyBand:
    """
    Append-only flux history for one frequency range plus its threshold cursor.

    The cursor indexes the next sample to threshold and only ever moves
    forward, one step per frame once a full window of history exists.
    """

    def __init__(self, name: str, lower_boundary: float, upper_boundary: float,
                 threshold_multiplier: float = 1.0):
        self.name = name
        self.lower_boundary = float(lower_boundary)
        self.upper_boundary = float(upper_boundary)
        self.threshold_multiplier = max(0.0, float(threshold_multiplier))
        self.samples: list[FluxSample] = []
        self.cursor: int = 0

    @classmethod
    def from_config(cls, band: BandConfig) -> "FrequencyBand":
        return cls(band.name, band.lower_boundary, band.upper_boundary, band.threshold_multiplier)

    def __repr__(self) -> str:
        return (f"FrequencyBand({self.name!r}, {self.lower_boundary}-{self.upper_boundary} Hz, "
                f"samples={len(self.samples)}, cursor={self.cursor})")

    def reset(self, start_cursor: int = 0) -> None:
        """Drop all history for a fresh run."""
        self.samples.clear()
        self.cursor = start_cursor

    def bin_mask(self, frequencies: np.ndarray) -> np.ndarray:
        # Both boundaries exclusive
        return (frequencies > self.lower_boundary) & (frequencies < self.upper_boundary)

    def add_sample(self, time: float, flux: float) -> FluxSample:
        sample = FluxSample(time=float(time), flux=float(flux))
        self.samples.append(sample)
        return sample

    def flux_threshold(self, window_size: int) -> float:
        """Mean flux of the window centred on the cursor, times the multiplier."""
        half = window_size // 2
        start = max(0, self.cursor - half)
        end = min(len(self.samples) - 1, self.cursor + half)
        if end <= start:
            return 0.0

        window = np.fromiter((s.flux for s in self.samples[start:end]), dtype=np.float64,
                             count=end - start)
        return float(np.mean(window)) * self.threshold_multiplier

    def pruned_flux(self) -> float:
        sample = self.samples[self.cursor]
        return max(0.0, sample.flux - sample.threshold)

    def is_peak(self, index: int) -> bool:
        """True when the pruned flux at *index* beats both neighbours."""
        if index <= 0 or index + 1 >= len(self.samples):
            return False
        value = self.samples[index].pruned_flux
        return (value > self.samples[index + 1].pruned_flux
                and value > self.samples[index - 1].pruned_flux)

    def advance(self, window_size: int) -> Optional[int]:
        """Threshold the cursor sample, decide the one behind it, step forward.

        Does nothing until *window_size* samples exist. Returns the index
        newly marked as an onset, if any.
        """
        if len(self.samples) < window_size:
            return None

        current = self.samples[self.cursor]
        current.threshold = self.flux_threshold(window_size)
        current.pruned_flux = self.pruned_flux()

        onset_index = None
        candidate = self.cursor - 1
        if self.is_peak(candidate):
            self.samples[candidate].is_onset = True
            onset_index = candidate

        self.cursor += 1
        return onset_index

    def restore_samples(self, samples: Sequence[FluxSample], window_size: int) -> None:
        """Load a previously analyzed history and place the cursor where analysis left it."""
        self.samples = list(samples)
        self.cursor = window_size // 2 + max(0, len(self.samples) - window_size + 1)

    def onset_indices(self) -> list[int]:
        return [i for i, sample in enumerate(self.samples) if sample.is_onset]

    @property
    def sample_count(self) -> int:
        return len(self.samples)


class SpectrumAnalyzer:
    """
    Runs independent FrequencyBand onset detectors over successive
    magnitude-spectrum frames of one clip.

    One analyzer serves one generation run; call reset() (or build a new
    analyzer) before analyzing another clip.
    """

    def __init__(
        self,
        bands: Sequence[BandConfig | FrequencyBand],
        *,
        fft_size: int,
        sample_rate: float,
        threshold_window_size: int,
        bar_count: int = 0,
    ):
        if not bands:
            raise ConfigurationError("SpectrumAnalyzer needs at least one frequency band")
        if threshold_window_size < 4:
            raise ConfigurationError(
                f"threshold_window_size must be >= 4, got {threshold_window_size}")
        if fft_size <= 0 or sample_rate <= 0:
            raise ConfigurationError("fft_size and sample_rate must be positive")

        self.fft_size = int(fft_size)
        self.sample_rate = float(sample_rate)
        self.threshold_window_size = int(threshold_window_size)
        self.bar_count = max(0, int(bar_count))

        self.frequency_bands: list[FrequencyBand] = [
            FrequencyBand(b.name, b.lower_boundary, b.upper_boundary, b.threshold_multiplier)
            for b in bands
        ]
        self.spectrum_data: list[np.ndarray] = []

        self._current_spectrum = np.zeros(self.fft_size // 2 + 1)
        self._previous_spectrum = np.zeros(self.fft_size // 2 + 1)
        self._band_masks: dict[int, list[np.ndarray]] = {}
        self._last_time: float | None = None
        self.reset()

    @classmethod
    def from_config(cls, config: Config) -> "SpectrumAnalyzer":
        analysis = config.analysis
        return cls(
            config.bands,
            fft_size=analysis.fft_size,
            sample_rate=analysis.sample_rate,
            threshold_window_size=analysis.threshold_window_size,
            bar_count=analysis.bar_count,
        )

    def reset(self) -> None:
        """Clear every band's history and restart halfway into the first window."""
        for band in self.frequency_bands:
            band.reset(start_cursor=self.threshold_window_size // 2)
        self.spectrum_data.clear()
        self._current_spectrum = np.zeros(self.fft_size // 2 + 1)
        self._previous_spectrum = np.zeros(self.fft_size // 2 + 1)
        self._last_time = None

    def analyze(self, spectrum, time: float) -> list[tuple[int, int]]:
        """Process one frame. Returns (band_index, sample_index) onsets confirmed by it."""
        if self._last_time is not None and time < self._last_time:
            raise ValueError(
                f"frames must be analyzed in time order: {time} after {self._last_time}")
        self._last_time = time

        self._set_current_spectrum(spectrum)
        if self.bar_count:
            self.spectrum_data.append(compute_bar_averages(self._current_spectrum, self.bar_count))

        rectified = np.maximum(0.0, self._current_spectrum - self._previous_spectrum)
        masks = self._masks_for(len(rectified))

        confirmed = []
        for band_index, (band, mask) in enumerate(zip(self.frequency_bands, masks)):
            flux = float(np.sum(rectified[mask])) if rectified.size else 0.0
            band.add_sample(time, flux)
            onset_index = band.advance(self.threshold_window_size)
            if onset_index is not None:
                confirmed.append((band_index, onset_index))
        return confirmed

    def _set_current_spectrum(self, spectrum) -> None:
        new_spectrum = np.asarray(spectrum, dtype=np.float64).ravel()
        previous = self._current_spectrum
        if len(previous) != len(new_spectrum):
            # Compare against a zero-padded / truncated copy on size changes
            resized = np.zeros(len(new_spectrum))
            n = min(len(previous), len(new_spectrum))
            resized[:n] = previous[:n]
            previous = resized
        self._previous_spectrum = previous
        self._current_spectrum = new_spectrum.copy()

    def _masks_for(self, n_bins: int) -> list[np.ndarray]:
        masks = self._band_masks.get(n_bins)
        if masks is None:
            frequencies = bin_frequencies(n_bins, self.fft_size, self.sample_rate)
            masks = [band.bin_mask(frequencies) for band in self.frequency_bands]
            self._band_masks[n_bins] = masks
        return masks

    def band(self, index: int) -> FrequencyBand:
        """Band by index; an unknown index is a fatal configuration error."""
        if not 0 <= index < len(self.frequency_bands):
            raise ConfigurationError(
                f"frequency band {index} does not exist ({len(self.frequency_bands)} configured)")
        return self.frequency_bands[index]

    @property
    def song_index_length(self) -> int:
        """Number of analyzed frames, i.e. the length of the onset timeline."""
        return self.frequency_bands[0].sample_count

    def onset_counts(self) -> dict[str, int]:
        return {
            band.name or f"band-{i}": len(band.onset_indices())
            for i, band in enumerate(self.frequency_bands)
        }

    def log_summary(self) -> None:
        log_event("INFO", "Analyzer", "Spectrum analysis done",
                  frames=self.song_index_length,
                  **{f"onsets_{name}": count for name, count in self.onset_counts().items()})
