"""Conversions between song time, song position index and level distance."""
from __future__ import annotations

from typing import Optional

from level_models import LevelData, LightingCue, PlacedEntity


def index_at_time(level: LevelData, current_time: float) -> int:
    """Song position index playing at *current_time* (may equal song_index_length at the end)."""
    if level.song_time <= 0:
        return 0
    return int(level.song_index_length * (current_time / level.song_time))


def time_at_index(level: LevelData, index: int) -> float:
    if level.song_index_length <= 0:
        return 0.0
    return level.song_time * (index / level.song_index_length)


def entity_position(entity: PlacedEntity, spacing_between_samples: float) -> float:
    """Horizontal world position of a placed entity."""
    return entity.song_position_index * spacing_between_samples + entity.feature.offset


def player_offset_distance(level: LevelData) -> float:
    """player_offset is stored in seconds; convert it to level units."""
    if level.song_time <= 0:
        return 0.0
    return level.player_offset * (level.level_length / level.song_time)


def player_position(level: LevelData, current_time: float) -> float:
    if level.song_time <= 0:
        return player_offset_distance(level)
    progress = min(1.0, max(0.0, current_time / level.song_time))
    return level.level_length * progress + player_offset_distance(level)


def lighting_cue_at(level: LevelData, index: int) -> Optional[LightingCue]:
    for cue in level.lighting_events:
        if cue.song_position_index == index:
            return cue
    return None


def entities_between(level: LevelData, start_index: int, end_index: int) -> list[PlacedEntity]:
    """Entities with start_index <= index < end_index, in index order."""
    found = [e for e in level.level_objects if start_index <= e.song_position_index < end_index]
    found.sort(key=lambda e: e.song_position_index)
    return found
