"""
beatcourse - Level Generator
Places level features at band onsets and prunes placements that would crowd
a higher-priority feature, using jump physics to size the clear zones.

Two passes per run, both in ascending priority order:
  placement – each feature walks its band's onsets, honouring its own
              minimum spacing and never taking an occupied index
  cleanup   – each feature's surviving entities clear their
              [index - pre, index + post) zone of other features' entities
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from config import Config, ConfigurationError, FeatureType, LevelFeature
from level_models import LevelData, LightingCue, PlacedEntity
from logging_utils import log_event
from physics_model import PhysicsModel, scroll_velocity_for
from spectrum_analyzer import FrequencyBand, SpectrumAnalyzer

# spawn(entity, world_x) -> handle, despawn(handle)
SpawnCallback = Callable[[PlacedEntity, float], Any]
DespawnCallback = Callable[[Any], None]


def distance_to_index(distance: float, spacing_between_samples: float) -> int:
    """Whole song position indices covered by *distance*; never negative."""
    if distance <= 0:
        return 0
    return int(distance / spacing_between_samples + 1e-9)


def adjust_for_jump_distance(feature: LevelFeature, jump_distance: float) -> tuple[float, float]:
    """Raise pre/post space to at least half a jump so every entity stays clearable."""
    half_jump = jump_distance / 2
    pre_space = max(0.0, feature.pre_space, half_jump)
    post_space = max(0.0, feature.post_space, half_jump)
    return pre_space, post_space


@dataclass(frozen=True)
class FeaturePlan:
    """A feature with physics-adjusted spacing, in processing order"""
    feature: LevelFeature
    order: int                  # Position in the caller's feature list
    pre_space: float
    post_space: float
    pre_space_index: int
    post_space_index: int

    @property
    def feature_id(self) -> str:
        return self.feature.feature_id

    @property
    def is_lighting(self) -> bool:
        return self.feature.type == FeatureType.LIGHTING_CUE


def build_feature_plan(
    features: Sequence[LevelFeature],
    physics: PhysicsModel,
    spacing_between_samples: float,
) -> list[FeaturePlan]:
    """Sort a copy of *features* by priority (ties keep list order) and size their zones.

    The caller's feature records are left untouched.
    """
    if spacing_between_samples <= 0:
        raise ConfigurationError(
            f"spacing_between_samples must be positive, got {spacing_between_samples}")

    seen: set[str] = set()
    plan = []
    for order, feature in enumerate(features):
        if not feature.feature_id:
            raise ConfigurationError(f"level feature #{order} has no feature_id")
        if feature.feature_id in seen:
            raise ConfigurationError(f"duplicate feature_id {feature.feature_id!r}")
        seen.add(feature.feature_id)

        pre_space, post_space = adjust_for_jump_distance(feature, physics.jump_distance)
        plan.append(FeaturePlan(
            feature=feature,
            order=order,
            pre_space=pre_space,
            post_space=post_space,
            pre_space_index=distance_to_index(pre_space, spacing_between_samples),
            post_space_index=distance_to_index(post_space, spacing_between_samples),
        ))

    plan.sort(key=lambda item: (item.feature.priority, item.order))
    return plan


class LevelFeaturePlacer:
    """Owns the live entity and lighting-cue collections for one level."""

    def __init__(
        self,
        spacing_between_samples: float,
        spawn_callback: Optional[SpawnCallback] = None,
        despawn_callback: Optional[DespawnCallback] = None,
    ):
        self.spacing_between_samples = spacing_between_samples
        self.spawn_callback = spawn_callback
        self.despawn_callback = despawn_callback
        self.entities: dict[int, PlacedEntity] = {}
        self.lighting_cues: dict[int, LightingCue] = {}
        self.song_index_length = 0

    def place(self, analyzer: SpectrumAnalyzer, plan: Sequence[FeaturePlan]) -> None:
        """Run the placement and cleanup passes over the analyzed clip."""
        # Resolve every band first so a bad index aborts before anything is spawned
        bands = [analyzer.band(item.feature.band_index) for item in plan]

        self.clear()
        self.song_index_length = analyzer.song_index_length

        for item, band in zip(plan, bands):
            if item.is_lighting:
                self._create_lighting_cues(band, item)
            else:
                self._place_feature(band, item)

        placed = len(self.entities)
        removed = self.clean_up(plan)
        log_event("INFO", "Placer", "Level features placed",
                  placed=placed, removed=removed, kept=len(self.entities),
                  lighting_cues=len(self.lighting_cues))

    def _place_feature(self, band: FrequencyBand, item: FeaturePlan) -> None:
        feature = item.feature
        # No earlier placement of this feature, so the first onset is always spaced
        iterations_since_last = item.pre_space_index

        for index, sample in enumerate(band.samples):
            spaced = iterations_since_last >= item.pre_space_index or feature.place_adjacent
            if sample.is_onset and spaced and index not in self.entities:
                self._spawn(PlacedEntity(song_position_index=index, feature=feature))
                iterations_since_last = 0
            else:
                iterations_since_last += 1

    def _create_lighting_cues(self, band: FrequencyBand, item: FeaturePlan) -> None:
        for index in band.onset_indices():
            if index not in self.lighting_cues:
                self.lighting_cues[index] = LightingCue(song_position_index=index,
                                                        color=item.feature.color)

    def clean_up(self, plan: Sequence[FeaturePlan]) -> int:
        """Remove other features' entities from each feature's clear zone.

        One sweep per feature in plan order; returns the number removed.
        """
        removed = 0
        for item in plan:
            if item.is_lighting:
                continue

            for index in sorted(self.entities):
                owner = self.entities.get(index)
                if owner is None or owner.feature_id != item.feature_id:
                    continue

                start = max(0, index - item.pre_space_index)
                end = min(self.song_index_length, index + item.post_space_index)
                for i in range(start, end):
                    other = self.entities.get(i)
                    if other is not None and other.feature_id != item.feature_id:
                        self._destroy(other)
                        del self.entities[i]
                        removed += 1
        return removed

    def world_position(self, entity: PlacedEntity) -> float:
        return entity.song_position_index * self.spacing_between_samples + entity.feature.offset

    def _spawn(self, entity: PlacedEntity) -> None:
        if self.spawn_callback is not None:
            entity.handle = self.spawn_callback(entity, self.world_position(entity))
        self.entities[entity.song_position_index] = entity

    def _destroy(self, entity: PlacedEntity) -> None:
        if entity.handle is not None and self.despawn_callback is not None:
            self.despawn_callback(entity.handle)
        entity.handle = None

    def adopt(self, entities: Sequence[PlacedEntity], cues: Sequence[LightingCue],
              song_index_length: int) -> int:
        """Take ownership of previously generated records (e.g. a loaded level).

        One entity and one cue per index; later records for a taken index
        are dropped. Returns the number dropped.
        """
        self.clear()
        self.song_index_length = song_index_length
        dropped = 0
        for entity in entities:
            if entity.song_position_index in self.entities:
                dropped += 1
                continue
            self._spawn(entity)
        for cue in cues:
            if cue.song_position_index in self.lighting_cues:
                dropped += 1
                continue
            self.lighting_cues[cue.song_position_index] = cue
        return dropped

    def clear(self) -> None:
        """Release every world handle and forget all entities and cues."""
        for entity in self.entities.values():
            self._destroy(entity)
        self.entities.clear()
        self.lighting_cues.clear()

    def placed_entities(self) -> list[PlacedEntity]:
        return [self.entities[i] for i in sorted(self.entities)]

    def cues(self) -> list[LightingCue]:
        return [self.lighting_cues[i] for i in sorted(self.lighting_cues)]


class LevelGenerator:
    """
    Builds a level from an analyzed clip.

    The caller owns the generator (and its placer) for a run; generate()
    tears down the previous level before placing a new one.
    """

    def __init__(
        self,
        config: Config,
        spawn_callback: Optional[SpawnCallback] = None,
        despawn_callback: Optional[DespawnCallback] = None,
    ):
        self.config = config
        self.placer = LevelFeaturePlacer(
            config.level.spacing_between_samples,
            spawn_callback=spawn_callback,
            despawn_callback=despawn_callback,
        )
        self.level: Optional[LevelData] = None
        self.plan: list[FeaturePlan] = []

    def generate(self, analyzer: SpectrumAnalyzer, song_time: float, song_name: str = "") -> LevelData:
        level_cfg = self.config.level
        self.remove_level()

        song_index_length = analyzer.song_index_length
        level_length = song_index_length * level_cfg.spacing_between_samples
        scroll_velocity = scroll_velocity_for(level_length, song_time)
        physics = PhysicsModel.from_config(self.config.physics, scroll_velocity)

        log_event("INFO", "Generator", "Generating level",
                  song=song_name or "-", indices=song_index_length,
                  level_length=f"{level_length:.2f}",
                  jump_distance=f"{physics.jump_distance:.3f}",
                  jump_height=f"{physics.jump_height:.3f}")

        self.placer.spacing_between_samples = level_cfg.spacing_between_samples
        self.plan = build_feature_plan(self.config.features, physics,
                                       level_cfg.spacing_between_samples)
        self.placer.place(analyzer, self.plan)

        self.level = LevelData(
            song_name=song_name,
            song_index_length=song_index_length,
            spacing_between_samples=level_cfg.spacing_between_samples,
            player_offset=level_cfg.player_offset,
            song_time=float(song_time),
            level_length=level_length,
            platform_scale=level_cfg.platform_scale,
            physics_model=physics,
            level_objects=self.placer.placed_entities(),
            lighting_events=self.placer.cues(),
        )
        return self.level

    def load_level(self, level: LevelData) -> None:
        """Instantiate a saved level's entities through the spawn collaborator."""
        self.remove_level()
        self.placer.spacing_between_samples = level.spacing_between_samples
        dropped = self.placer.adopt(level.level_objects, level.lighting_events,
                                    level.song_index_length)
        if dropped:
            log_event("WARN", "Generator", "Dropped records sharing a song position index",
                      dropped=dropped)
            level.level_objects = self.placer.placed_entities()
            level.lighting_events = self.placer.cues()
        self.level = level
        log_event("INFO", "Generator", "Level loaded", song=level.song_name or "-",
                  entities=len(level.level_objects), lighting_cues=len(level.lighting_events))

    def remove_level(self) -> None:
        if self.level is not None or self.placer.entities:
            log_event("DEBUG", "Generator", "Removing level", entities=len(self.placer.entities))
        self.placer.clear()
        self.level = None
