"""
beatcourse - Level persistence
Reads and writes the saved level record and the analyzed song record as JSON.

Field names follow the saved-file layout (camelCase). Features are matched
back to live configuration by ``featureId``, never by object identity.
"""

import json
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np

from config import FeatureType, LevelFeature
from level_models import LevelData, LightingCue, PlacedEntity, SongData
from logging_utils import log_event
from physics_model import PhysicsModel
from spectrum_analyzer import FluxSample, FrequencyBand


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def feature_to_dict(feature: LevelFeature) -> dict:
    return {
        "featureId": feature.feature_id,
        "bandIndex": int(feature.band_index),
        "priority": int(feature.priority),
        "type": int(feature.type),
        "placeAdjacent": bool(feature.place_adjacent),
        "offset": float(feature.offset),
        "preSpace": float(feature.pre_space),
        "postSpace": float(feature.post_space),
        "color": feature.color,
    }


def feature_from_dict(data: dict) -> LevelFeature:
    feature_type = FeatureType(int(data.get("type", FeatureType.HAZARD)))
    band_index = int(data.get("bandIndex", 0))
    return LevelFeature(
        # Records written before ids existed get one derived from what they place
        feature_id=str(data.get("featureId") or f"{feature_type.name.lower()}-{band_index}"),
        band_index=band_index,
        priority=int(data.get("priority", 0)),
        type=feature_type,
        place_adjacent=bool(data.get("placeAdjacent", False)),
        offset=float(data.get("offset", 0.0)),
        pre_space=float(data.get("preSpace", 0.0)),
        post_space=float(data.get("postSpace", 0.0)),
        color=data.get("color"),
    )


def physics_to_dict(physics: PhysicsModel) -> dict:
    return {
        "gravity": physics.gravity,
        "scrollVelocity": physics.scroll_velocity,
        "jumpAcceleration": physics.jump_acceleration,
        "jumpHeight": physics.jump_height,
        "jumpDistance": physics.jump_distance,
    }


def physics_from_dict(data: dict) -> PhysicsModel:
    return PhysicsModel(
        gravity=float(data.get("gravity", 0.0)),
        scroll_velocity=float(data.get("scrollVelocity", 0.0)),
        jump_acceleration=float(data.get("jumpAcceleration", 0.0)),
        jump_height=float(data.get("jumpHeight", 0.0)),
        jump_distance=float(data.get("jumpDistance", 0.0)),
    )


def level_to_dict(level: LevelData) -> dict:
    return {
        "songName": level.song_name,
        "songIndexLength": int(level.song_index_length),
        "spacingBetweenSamples": float(level.spacing_between_samples),
        "playerOffset": float(level.player_offset),
        "songTime": float(level.song_time),
        "levelLength": float(level.level_length),
        "platformScale": float(level.platform_scale),
        "physicsModel": physics_to_dict(level.physics_model),
        "levelObjectData": [
            {"feature": feature_to_dict(e.feature), "songPositionIndex": int(e.song_position_index)}
            for e in level.level_objects
        ],
        "lightingEventData": [
            {"songPositionIndex": int(c.song_position_index), "color": c.color}
            for c in level.lighting_events
        ],
    }


def level_from_dict(data: dict, features: Optional[Sequence[LevelFeature]] = None) -> LevelData:
    """Rebuild a level record.

    When live *features* are given, entities are bound to the live feature
    with the same id; otherwise the stored feature record is used.
    """
    live = {f.feature_id: f for f in features or ()}
    stored: dict[str, LevelFeature] = {}

    level_objects = []
    for item in data.get("levelObjectData") or []:
        record = feature_from_dict(item.get("feature") or {})
        feature = live.get(record.feature_id) or stored.setdefault(record.feature_id, record)
        level_objects.append(PlacedEntity(
            song_position_index=int(item.get("songPositionIndex", 0)),
            feature=feature,
        ))

    lighting_events = [
        LightingCue(song_position_index=int(item.get("songPositionIndex", 0)), color=item.get("color"))
        for item in data.get("lightingEventData") or []
    ]

    return LevelData(
        song_name=str(data.get("songName", "")),
        song_index_length=int(data.get("songIndexLength", 0)),
        spacing_between_samples=float(data.get("spacingBetweenSamples", 0.25)),
        player_offset=float(data.get("playerOffset", 0.0)),
        song_time=float(data.get("songTime", 0.0)),
        level_length=float(data.get("levelLength", 0.0)),
        platform_scale=float(data.get("platformScale", 1.0)),
        physics_model=physics_from_dict(data.get("physicsModel") or {}),
        level_objects=level_objects,
        lighting_events=lighting_events,
    )


def _sample_to_dict(sample: FluxSample) -> dict:
    return {
        "time": float(sample.time),
        "spectralFlux": float(sample.flux),
        "threshold": float(sample.threshold),
        "prunedSpectralFlux": float(sample.pruned_flux),
        "isOnset": bool(sample.is_onset),
    }


def _sample_from_dict(data: dict) -> FluxSample:
    return FluxSample(
        time=float(data.get("time", 0.0)),
        flux=float(data.get("spectralFlux", 0.0)),
        threshold=float(data.get("threshold", 0.0)),
        pruned_flux=float(data.get("prunedSpectralFlux", 0.0)),
        is_onset=bool(data.get("isOnset", False)),
    )


def song_data_to_dict(song: SongData) -> dict:
    return {
        "songName": song.song_name,
        "songTime": float(song.song_time),
        "spectralSampleSize": int(song.spectral_sample_size),
        "thresholdWindowSize": int(song.threshold_window_size),
        "sampleRate": float(song.sample_rate),
        "frequencyBands": [
            {
                "name": band.name,
                "lowerBoundary": band.lower_boundary,
                "upperBoundary": band.upper_boundary,
                "thresholdMultiplier": band.threshold_multiplier,
                "spectralFluxSamples": [_sample_to_dict(s) for s in band.samples],
            }
            for band in song.frequency_bands
        ],
        "spectrumData": [
            {"spectrum": np.asarray(bars, dtype=np.float64).tolist()} for bars in song.spectrum_data
        ],
    }


def song_data_from_dict(data: dict) -> SongData:
    bands = []
    for item in data.get("frequencyBands") or []:
        band = FrequencyBand(
            str(item.get("name", "")),
            float(item.get("lowerBoundary", 0.0)),
            float(item.get("upperBoundary", 0.0)),
            float(item.get("thresholdMultiplier", 1.0)),
        )
        band.samples = [_sample_from_dict(s) for s in item.get("spectralFluxSamples") or []]
        bands.append(band)

    return SongData(
        song_name=str(data.get("songName", "")),
        song_time=float(data.get("songTime", 0.0)),
        spectral_sample_size=int(data.get("spectralSampleSize", 1024)),
        threshold_window_size=int(data.get("thresholdWindowSize", 50)),
        sample_rate=float(data.get("sampleRate", 44100)),
        frequency_bands=bands,
        spectrum_data=[
            np.asarray(item.get("spectrum") or [], dtype=np.float64)
            for item in data.get("spectrumData") or []
        ],
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def _write_json(path: Path, payload: Any, tag: str) -> bool:
    try:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)
        log_event("INFO", tag, "Saved", path=path)
        return True
    except (OSError, TypeError, ValueError) as e:
        log_event("ERROR", tag, "Failed to save", path=path, error=e)
        return False


def _read_json(path: Path, tag: str) -> Optional[dict]:
    path = Path(path)
    if not path.exists():
        log_event("WARN", tag, "File not found", path=path)
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log_event("ERROR", tag, "Failed to load", path=path, error=e)
        return None
    if not isinstance(data, dict):
        log_event("ERROR", tag, "Unexpected file contents", path=path)
        return None
    return data


def save_level(path: Path, level: LevelData) -> bool:
    return _write_json(path, level_to_dict(level), "LevelData")


def load_level(path: Path, features: Optional[Sequence[LevelFeature]] = None) -> Optional[LevelData]:
    """Load a saved level, or None when the file is missing or unreadable."""
    data = _read_json(path, "LevelData")
    if data is None:
        return None
    try:
        return level_from_dict(data, features)
    except (TypeError, ValueError, AttributeError) as e:
        log_event("ERROR", "LevelData", "Malformed level record", path=path, error=e)
        return None


def save_song_data(path: Path, song: SongData) -> bool:
    return _write_json(path, song_data_to_dict(song), "SongData")


def load_song_data(path: Path) -> Optional[SongData]:
    data = _read_json(path, "SongData")
    if data is None:
        return None
    try:
        return song_data_from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        log_event("ERROR", "SongData", "Malformed song record", path=path, error=e)
        return None
