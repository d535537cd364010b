# beatcourse Configuration
# All default values and constants

from dataclasses import dataclass, field, fields, is_dataclass
from enum import IntEnum
from typing import List, Optional

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1


class ConfigurationError(ValueError):
    """Fatal configuration problem; level generation is aborted."""


class FeatureType(IntEnum):
    """Kinds of world entity a level feature can place"""
    HAZARD = 1              # Spikes, must be jumped
    DUCK_OBSTACLE = 2       # Overhead block, must be ducked
    DESTRUCTIBLE_WALL = 3
    HEIGHT_MODIFIER = 4
    LIGHTING_CUE = 5        # Background flash, never a physical entity


@dataclass
class AnalysisConfig:
    """Onset detection parameters"""
    fft_size: int = 1024                # Samples per FFT chunk (power of 2)
    sample_rate: int = 44100            # Replaced by the clip's own rate when audio is loaded
    threshold_window_size: int = 50     # Samples averaged for the adaptive threshold
    bar_count: int = 64                 # Frequency bars stored per frame (0 = disabled)


@dataclass
class BandConfig:
    """One frequency band analyzed independently for onsets"""
    name: str = ""
    lower_boundary: float = 0.0         # Hz, exclusive
    upper_boundary: float = 0.0         # Hz, exclusive
    threshold_multiplier: float = 1.5   # Flux must exceed this many times the local average


@dataclass
class PhysicsConfig:
    """Player body constants"""
    gravity: float = 30.0               # Magnitude, units/s^2
    jump_acceleration: float = 12.0     # Initial vertical launch speed, units/s


@dataclass
class LevelConfig:
    """Level layout options"""
    spacing_between_samples: float = 0.25  # Distance units per song position index
    player_offset: float = 0.0             # Seconds the player leads the time marker
    platform_scale: float = 1.0


@dataclass
class LevelFeature:
    """A feature bound to a frequency band; placed at that band's onsets"""
    feature_id: str = ""
    band_index: int = 0
    priority: int = 0                   # Lower value = placed and protected first
    type: FeatureType = FeatureType.HAZARD
    place_adjacent: bool = False        # Ignore minimum spacing between own placements
    offset: float = 0.0                 # Horizontal nudge in distance units
    pre_space: float = 0.0              # Clear distance required before the entity
    post_space: float = 0.0             # Clear distance required after the entity
    color: Optional[str] = None         # Lighting cues only, e.g. "#ff8800"


def _default_bands() -> List[BandConfig]:
    return [
        BandConfig(name="Low", lower_boundary=20.0, upper_boundary=200.0, threshold_multiplier=1.5),
        BandConfig(name="Mid", lower_boundary=200.0, upper_boundary=3000.0, threshold_multiplier=1.5),
        BandConfig(name="High", lower_boundary=3000.0, upper_boundary=10000.0, threshold_multiplier=1.7),
    ]


def _default_features() -> List[LevelFeature]:
    return [
        LevelFeature(feature_id="spikes", band_index=0, priority=0, type=FeatureType.HAZARD),
        LevelFeature(feature_id="duck", band_index=1, priority=1, type=FeatureType.DUCK_OBSTACLE,
                     offset=0.1),
        LevelFeature(feature_id="lighting", band_index=2, priority=2, type=FeatureType.LIGHTING_CUE,
                     color="#ffffff"),
    ]


@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    bands: List[BandConfig] = field(default_factory=_default_bands)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    level: LevelConfig = field(default_factory=LevelConfig)
    features: List[LevelFeature] = field(default_factory=_default_features)
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)


# List fields that hold dataclass records, rebuilt item by item on load
_LIST_ITEM_TYPES = {
    "bands": BandConfig,
    "features": LevelFeature,
}


def _dataclass_from_dict(cls, data: dict):
    item = cls()
    apply_dict_to_dataclass(item, data)
    return item


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; IntEnum fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    known = {f.name for f in fields(target)}
    for key, value in data.items():
        if key not in known:
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        item_type = _LIST_ITEM_TYPES.get(key)
        if item_type is not None and isinstance(value, list):
            setattr(target, key, [
                _dataclass_from_dict(item_type, item) for item in value if isinstance(item, dict)
            ])
            continue

        if isinstance(current, IntEnum):
            try:
                setattr(target, key, current.__class__(value))
            except (TypeError, ValueError):
                log_event("WARN", "Config", "Could not convert value, keeping default",
                          key=key, type=current.__class__.__name__)
            continue

        setattr(target, key, value)


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Fills ids and clamps values introduced after version 0, then bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    if version < 1:
        taken = {f.feature_id for f in config.features if f.feature_id}
        for n, feature in enumerate(config.features):
            if feature.feature_id:
                continue
            candidate, suffix = f"feature-{n}", 1
            while candidate in taken:
                candidate = f"feature-{n}-{suffix}"
                suffix += 1
            feature.feature_id = candidate
            taken.add(candidate)
        if getattr(config.level, "platform_scale", None) is None:
            config.level.platform_scale = 1.0

    for band in config.bands:
        try:
            multiplier = float(band.threshold_multiplier)
        except (TypeError, ValueError):
            multiplier = 1.0
        band.threshold_multiplier = max(0.0, multiplier)

    if getattr(config, "log_level", None) is None:
        config.log_level = "INFO"

    config.version = CURRENT_CONFIG_VERSION


def validate_config(config: Config) -> None:
    """Raise ConfigurationError for settings generation cannot run with."""
    analysis = config.analysis
    if not config.bands:
        raise ConfigurationError("at least one frequency band is required")
    if analysis.threshold_window_size < 4:
        raise ConfigurationError(
            f"threshold_window_size must be >= 4, got {analysis.threshold_window_size}")
    if analysis.fft_size <= 0 or analysis.sample_rate <= 0:
        raise ConfigurationError("fft_size and sample_rate must be positive")
    for band in config.bands:
        if band.upper_boundary <= band.lower_boundary:
            raise ConfigurationError(
                f"band {band.name!r} has upper boundary {band.upper_boundary} "
                f"<= lower boundary {band.lower_boundary}")
    if config.physics.gravity <= 0:
        raise ConfigurationError(f"gravity must be positive, got {config.physics.gravity}")
    if config.level.spacing_between_samples <= 0:
        raise ConfigurationError(
            f"spacing_between_samples must be positive, got {config.level.spacing_between_samples}")

    seen: set[str] = set()
    for feature in config.features:
        if not feature.feature_id:
            raise ConfigurationError("every level feature needs a feature_id")
        if feature.feature_id in seen:
            raise ConfigurationError(f"duplicate feature_id {feature.feature_id!r}")
        seen.add(feature.feature_id)
        if not 0 <= feature.band_index < len(config.bands):
            raise ConfigurationError(
                f"feature {feature.feature_id!r} references band {feature.band_index}, "
                f"only {len(config.bands)} configured")


# Default config instance
DEFAULT_CONFIG = Config()
