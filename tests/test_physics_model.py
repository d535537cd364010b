import unittest

from config import ConfigurationError, PhysicsConfig
from physics_model import PhysicsModel, compute_jump, scroll_velocity_for


class TestPhysicsModel(unittest.TestCase):
    def test_compute_jump_closed_form(self):
        # t = 10/20 = 0.5s to apex, 1.0s airborne
        height, distance = compute_jump(gravity=20.0, jump_acceleration=10.0, scroll_velocity=6.0)
        self.assertAlmostEqual(height, 2.5, places=9)
        self.assertAlmostEqual(distance, 6.0, places=9)

    def test_jump_distance_matches_formula_for_many_inputs(self):
        for gravity, launch, velocity in [(9.81, 5.0, 3.0), (30.0, 12.0, 7.5), (1.0, 0.5, 100.0)]:
            model = PhysicsModel.compute(gravity, velocity, launch)
            self.assertAlmostEqual(model.jump_distance, 2 * (launch / gravity) * velocity, places=9)
            self.assertAlmostEqual(model.jump_height, launch ** 2 / (2 * gravity), places=9)

    def test_model_is_immutable(self):
        model = PhysicsModel.compute(20.0, 6.0, 10.0)
        with self.assertRaises(Exception):
            model.jump_distance = 1.0  # type: ignore[misc]

    def test_with_scroll_velocity_recomputes(self):
        model = PhysicsModel.compute(20.0, 6.0, 10.0)
        faster = model.with_scroll_velocity(12.0)
        self.assertAlmostEqual(faster.jump_distance, 12.0, places=9)
        self.assertAlmostEqual(faster.jump_height, model.jump_height, places=9)
        self.assertAlmostEqual(model.jump_distance, 6.0, places=9)

    def test_from_config(self):
        model = PhysicsModel.from_config(PhysicsConfig(gravity=20.0, jump_acceleration=10.0), 4.0)
        self.assertAlmostEqual(model.jump_distance, 4.0, places=9)
        self.assertAlmostEqual(model.time_in_air, 1.0, places=9)

    def test_zero_gravity_is_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            compute_jump(gravity=0.0, jump_acceleration=10.0, scroll_velocity=1.0)

    def test_scroll_velocity_for(self):
        self.assertAlmostEqual(scroll_velocity_for(level_length=120.0, song_time=60.0), 2.0)
        with self.assertRaises(ConfigurationError):
            scroll_velocity_for(level_length=10.0, song_time=0.0)


if __name__ == "__main__":
    unittest.main()
