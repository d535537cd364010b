"""
beatcourse - Spectrum source
Turns a whole audio clip into ordered magnitude-spectrum frames for the
SpectrumAnalyzer: mono mixdown, non-overlapping Hann-windowed chunks, rFFT.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import numpy as np
import soundfile as sf
from scipy.signal import get_window

from logging_utils import log_event


def load_audio(path: Path) -> tuple[np.ndarray, int]:
    """Read an audio file. Returns (mono samples, sample_rate)."""
    data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    samples = mix_to_mono(data)
    log_event("INFO", "Audio", "Loaded clip", path=path, sample_rate=sample_rate,
              channels=data.shape[1], seconds=f"{len(samples) / sample_rate:.2f}")
    return samples, int(sample_rate)


def mix_to_mono(samples: np.ndarray) -> np.ndarray:
    """Average interleaved channels (frames x channels) into one channel."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim == 1:
        return samples
    return samples.mean(axis=1)


def clip_duration(samples: np.ndarray, sample_rate: int) -> float:
    return len(samples) / float(sample_rate)


def frame_count(samples: np.ndarray, fft_size: int) -> int:
    """Whole chunks available; a trailing partial chunk is dropped."""
    return len(samples) // fft_size


def iter_spectrum_frames(
    samples: np.ndarray,
    sample_rate: int,
    fft_size: int,
) -> Iterator[tuple[np.ndarray, float]]:
    """Yield (magnitude spectrum, frame time) for each fft_size chunk, in time order.

    Magnitudes are normalised by the window sum so a full-scale sine reads
    roughly the same whatever the FFT size.
    """
    samples = np.asarray(samples, dtype=np.float64)
    window = get_window("hann", fft_size)
    scale = 1.0 / float(np.sum(window))

    for i in range(frame_count(samples, fft_size)):
        chunk = samples[i * fft_size:(i + 1) * fft_size]
        magnitude = np.abs(np.fft.rfft(chunk * window)) * scale
        yield magnitude, i * fft_size / float(sample_rate)
