import csv
import json
import time
from pathlib import Path

import numpy as np

from spectrum_analyzer import SpectrumAnalyzer


class AnalysisReporter:
    """Writes per-band flux samples (CSV) and a per-band summary (JSON) for plotting."""

    FIELDNAMES = [
        "band",
        "index",
        "time",
        "flux",
        "threshold",
        "pruned_flux",
        "is_onset",
    ]

    def __init__(self, report_dir: Path):
        self.report_dir = Path(report_dir)
        self.report_dir.mkdir(parents=True, exist_ok=True)
        self.json_path = self.report_dir / "analysis_summary.json"
        self.csv_path = self.report_dir / "flux_samples.csv"

    def _band_summary(self, band) -> dict:
        flux = np.array([s.flux for s in band.samples], dtype=np.float64)
        onsets = band.onset_indices()
        return {
            "name": band.name,
            "lower_boundary": band.lower_boundary,
            "upper_boundary": band.upper_boundary,
            "threshold_multiplier": band.threshold_multiplier,
            "samples": len(band.samples),
            "onsets": len(onsets),
            "flux_min": float(flux.min()) if flux.size else 0.0,
            "flux_max": float(flux.max()) if flux.size else 0.0,
            "flux_mean": float(flux.mean()) if flux.size else 0.0,
            "first_onset_time": band.samples[onsets[0]].time if onsets else None,
        }

    def save(self, analyzer: SpectrumAnalyzer, song_name: str = "") -> None:
        payload = {
            "generated_at": time.time(),
            "song_name": song_name,
            "frames": analyzer.song_index_length,
            "threshold_window_size": analyzer.threshold_window_size,
            "bands": [self._band_summary(band) for band in analyzer.frequency_bands],
        }

        with open(self.json_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

        with open(self.csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=self.FIELDNAMES)
            writer.writeheader()
            for band in analyzer.frequency_bands:
                for index, sample in enumerate(band.samples):
                    writer.writerow({
                        "band": band.name,
                        "index": index,
                        "time": f"{sample.time:.6f}",
                        "flux": f"{sample.flux:.6f}",
                        "threshold": f"{sample.threshold:.6f}",
                        "pruned_flux": f"{sample.pruned_flux:.6f}",
                        "is_onset": int(sample.is_onset),
                    })
