"""
beatcourse - Jump physics
Derives how high and how far the player travels in one jump, which sets the
minimum clear space level features must leave around themselves.
"""

from __future__ import annotations

from dataclasses import dataclass

from config import ConfigurationError, PhysicsConfig


def compute_jump(gravity: float, jump_acceleration: float, scroll_velocity: float) -> tuple[float, float]:
    """Return (jump_height, jump_distance) for a launch at *jump_acceleration*.

    Vertical speed is zero at the apex, so the climb takes
    ``t = jump_acceleration / gravity``; the fall mirrors it. Horizontal
    travel is the full airborne time at the constant scroll velocity.
    """
    if gravity <= 0:
        raise ConfigurationError(f"gravity must be positive, got {gravity}")

    time_to_peak = jump_acceleration / gravity
    time_in_air = time_to_peak * 2
    jump_height = jump_acceleration * time_to_peak - 0.5 * gravity * time_to_peak ** 2
    jump_distance = time_in_air * scroll_velocity
    return jump_height, jump_distance


def scroll_velocity_for(level_length: float, song_time: float) -> float:
    """Level units per second needed to cross *level_length* during the song."""
    if song_time <= 0:
        raise ConfigurationError(f"song_time must be positive, got {song_time}")
    return level_length / song_time


@dataclass(frozen=True)
class PhysicsModel:
    """Player kinematics for one generation run (immutable once computed)."""
    gravity: float
    scroll_velocity: float
    jump_acceleration: float
    jump_height: float = 0.0
    jump_distance: float = 0.0

    @classmethod
    def compute(cls, gravity: float, scroll_velocity: float, jump_acceleration: float) -> "PhysicsModel":
        jump_height, jump_distance = compute_jump(gravity, jump_acceleration, scroll_velocity)
        return cls(
            gravity=float(gravity),
            scroll_velocity=float(scroll_velocity),
            jump_acceleration=float(jump_acceleration),
            jump_height=jump_height,
            jump_distance=jump_distance,
        )

    @classmethod
    def from_config(cls, physics: PhysicsConfig, scroll_velocity: float) -> "PhysicsModel":
        return cls.compute(physics.gravity, scroll_velocity, physics.jump_acceleration)

    def with_scroll_velocity(self, scroll_velocity: float) -> "PhysicsModel":
        """Recompute for a new level length / song duration."""
        return PhysicsModel.compute(self.gravity, scroll_velocity, self.jump_acceleration)

    @property
    def time_in_air(self) -> float:
        return 2 * self.jump_acceleration / self.gravity
