import unittest

import numpy as np

from config import BandConfig, Config, ConfigurationError
from spectrum_analyzer import (
    FrequencyBand,
    SpectrumAnalyzer,
    bin_frequencies,
    compute_bar_averages,
)

# fft_size=8, sample_rate=16 => Nyquist 8 Hz / 8 = 1 Hz per bin, 5 bins at 0..4 Hz
FFT_SIZE = 8
SAMPLE_RATE = 16


def make_analyzer(window=4, bands=None, bar_count=0):
    if bands is None:
        bands = [
            BandConfig(name="A", lower_boundary=1.5, upper_boundary=2.5, threshold_multiplier=1.0),
            BandConfig(name="B", lower_boundary=2.5, upper_boundary=4.5, threshold_multiplier=1.0),
        ]
    return SpectrumAnalyzer(
        bands,
        fft_size=FFT_SIZE,
        sample_rate=SAMPLE_RATE,
        threshold_window_size=window,
        bar_count=bar_count,
    )


def spectrum_with_bin2(value):
    spectrum = np.zeros(5)
    spectrum[2] = value
    return spectrum


class TestBinMapping(unittest.TestCase):
    def test_bin_frequencies(self):
        np.testing.assert_allclose(bin_frequencies(5, FFT_SIZE, SAMPLE_RATE), [0, 1, 2, 3, 4])

    def test_band_boundaries_are_exclusive(self):
        band = FrequencyBand("x", 1.0, 3.0)
        mask = band.bin_mask(np.array([0.0, 1.0, 2.0, 3.0, 4.0]))
        self.assertEqual(mask.tolist(), [False, False, True, False, False])

    def test_bar_averages(self):
        averages = compute_bar_averages(np.arange(8.0), 4)
        np.testing.assert_allclose(averages, [1.0, 3.0, 5.0, 6.5])

    def test_bar_averages_disabled_or_empty(self):
        self.assertEqual(len(compute_bar_averages(np.arange(8.0), 0)), 0)
        np.testing.assert_allclose(compute_bar_averages(np.array([]), 3), [0.0, 0.0, 0.0])


class TestSpectrumAnalyzer(unittest.TestCase):
    def test_two_band_scenario_marks_interior_maxima(self):
        analyzer = make_analyzer(window=4)
        band_a, band_b = analyzer.frequency_bands
        self.assertEqual(band_a.cursor, 2)

        values = [0, 0, 5, 0, 5, 0, 0]
        for i, value in enumerate(values):
            analyzer.analyze(spectrum_with_bin2(value), i * 0.5)

        self.assertEqual([s.flux for s in band_a.samples], [0, 0, 5, 0, 5, 0, 0])
        self.assertEqual(band_a.onset_indices(), [2, 4])
        self.assertEqual(band_b.onset_indices(), [])
        self.assertEqual(band_a.cursor, 6)
        self.assertAlmostEqual(band_a.samples[2].threshold, 5.0 / 3.0, places=9)
        self.assertAlmostEqual(band_a.samples[2].pruned_flux, 10.0 / 3.0, places=9)
        self.assertAlmostEqual(band_a.samples[4].pruned_flux, 5.0 / 3.0, places=9)
        self.assertEqual(analyzer.song_index_length, 7)

    def test_analyze_returns_confirmed_onsets(self):
        analyzer = make_analyzer(window=4)
        confirmed = []
        for i, value in enumerate([0, 0, 5, 0, 5, 0, 0]):
            confirmed.extend(analyzer.analyze(spectrum_with_bin2(value), float(i)))
        self.assertEqual(confirmed, [(0, 2), (0, 4)])

    def test_nothing_decided_before_window_fills(self):
        analyzer = make_analyzer(window=4)
        for i, value in enumerate([0, 9, 0]):
            analyzer.analyze(spectrum_with_bin2(value), float(i))
        band = analyzer.frequency_bands[0]
        self.assertEqual(band.cursor, 2)
        self.assertTrue(all(s.threshold == 0.0 and not s.is_onset for s in band.samples))

    def test_first_frame_compares_against_silence(self):
        analyzer = make_analyzer()
        analyzer.analyze(spectrum_with_bin2(3.0), 0.0)
        self.assertEqual(analyzer.frequency_bands[0].samples[0].flux, 3.0)

    def test_flux_is_non_negative_for_random_spectra(self):
        rng = np.random.default_rng(1234)
        analyzer = make_analyzer(window=8)
        for i in range(300):
            analyzer.analyze(rng.random(5) * rng.integers(0, 4), i * 0.01)

        for band in analyzer.frequency_bands:
            for sample in band.samples:
                self.assertGreaterEqual(sample.flux, 0.0)
                self.assertGreaterEqual(sample.pruned_flux, 0.0)
                self.assertGreaterEqual(sample.threshold, 0.0)

    def test_onset_iff_strict_local_maximum_of_pruned_flux(self):
        rng = np.random.default_rng(99)
        analyzer = make_analyzer(window=6)
        for i in range(200):
            analyzer.analyze(rng.random(5), float(i))

        for band in analyzer.frequency_bands:
            pruned = [s.pruned_flux for s in band.samples]
            for i in range(1, band.cursor - 1):
                expected = pruned[i] > pruned[i - 1] and pruned[i] > pruned[i + 1]
                self.assertEqual(band.samples[i].is_onset, expected, msg=f"{band.name}[{i}]")

    def test_decisions_never_change(self):
        rng = np.random.default_rng(7)
        analyzer = make_analyzer(window=4)
        band = analyzer.frequency_bands[0]
        decided = {}

        for i in range(120):
            analyzer.analyze(rng.random(5), float(i))
            for index in range(band.cursor - 1):
                snapshot = (band.samples[index].is_onset, band.samples[index].pruned_flux,
                            band.samples[index].threshold)
                previous = decided.setdefault(index, snapshot)
                self.assertEqual(previous, snapshot)

    def test_empty_spectrum_and_zero_bin_band_give_zero_flux(self):
        analyzer = make_analyzer(bands=[
            BandConfig(name="none", lower_boundary=100.0, upper_boundary=200.0),
            BandConfig(name="A", lower_boundary=1.5, upper_boundary=2.5),
        ])
        analyzer.analyze(np.array([]), 0.0)
        analyzer.analyze(spectrum_with_bin2(4.0), 1.0)
        self.assertEqual([s.flux for s in analyzer.frequency_bands[0].samples], [0.0, 0.0])
        self.assertEqual([s.flux for s in analyzer.frequency_bands[1].samples], [0.0, 4.0])

    def test_spectrum_size_change_compares_zero_padded(self):
        analyzer = make_analyzer()
        analyzer.analyze(spectrum_with_bin2(3.0), 0.0)
        analyzer.analyze(np.array([0.0, 0.0, 5.0]), 1.0)
        self.assertEqual(analyzer.frequency_bands[0].samples[1].flux, 2.0)

    def test_out_of_order_frame_rejected(self):
        analyzer = make_analyzer()
        analyzer.analyze(spectrum_with_bin2(1.0), 1.0)
        with self.assertRaises(ValueError):
            analyzer.analyze(spectrum_with_bin2(1.0), 0.5)

    def test_reset_clears_history(self):
        analyzer = make_analyzer(window=4, bar_count=2)
        for i in range(10):
            analyzer.analyze(spectrum_with_bin2(i % 3), float(i))
        self.assertEqual(len(analyzer.spectrum_data), 10)

        analyzer.reset()
        for band in analyzer.frequency_bands:
            self.assertEqual(band.samples, [])
            self.assertEqual(band.cursor, 2)
        self.assertEqual(analyzer.spectrum_data, [])
        # Time order restarts with the new clip
        analyzer.analyze(spectrum_with_bin2(1.0), 0.0)

    def test_spectrum_data_bars_recorded_per_frame(self):
        analyzer = make_analyzer(bar_count=2)
        analyzer.analyze(np.array([1.0, 1.0, 1.0, 3.0, 3.0]), 0.0)
        np.testing.assert_allclose(analyzer.spectrum_data[0], [1.0, 7.0 / 3.0])

    def test_invalid_configuration(self):
        with self.assertRaises(ConfigurationError):
            make_analyzer(window=3)
        with self.assertRaises(ConfigurationError):
            make_analyzer(bands=[])

    def test_unknown_band_index_is_fatal(self):
        analyzer = make_analyzer()
        self.assertIs(analyzer.band(1), analyzer.frequency_bands[1])
        with self.assertRaises(ConfigurationError):
            analyzer.band(2)
        with self.assertRaises(ConfigurationError):
            analyzer.band(-1)

    def test_from_config_uses_all_bands(self):
        config = Config()
        analyzer = SpectrumAnalyzer.from_config(config)
        self.assertEqual([b.name for b in analyzer.frequency_bands], ["Low", "Mid", "High"])
        self.assertEqual(analyzer.frequency_bands[0].cursor, config.analysis.threshold_window_size // 2)
        # Config records are copied, not shared
        self.assertIsNot(analyzer.frequency_bands[0], config.bands[0])

    def test_onset_counts(self):
        analyzer = make_analyzer(window=4)
        for i, value in enumerate([0, 0, 5, 0, 5, 0, 0]):
            analyzer.analyze(spectrum_with_bin2(value), float(i))
        self.assertEqual(analyzer.onset_counts(), {"A": 2, "B": 0})


if __name__ == "__main__":
    unittest.main()
