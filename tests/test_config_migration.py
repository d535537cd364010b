import unittest

from config import (
    Config,
    ConfigurationError,
    CURRENT_CONFIG_VERSION,
    FeatureType,
    LevelFeature,
    apply_dict_to_dataclass,
    migrate_config,
    validate_config,
)


class TestConfigMigration(unittest.TestCase):
    def test_missing_version_fills_ids_and_bumps(self):
        cfg = Config()
        data = {
            # version intentionally omitted to simulate legacy file
            "features": [
                {"band_index": 0, "type": 1},
                {"feature_id": "kept", "band_index": 1, "type": 2},
            ],
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.version, CURRENT_CONFIG_VERSION)
        self.assertEqual([f.feature_id for f in cfg.features], ["feature-0", "kept"])
        self.assertIs(cfg.features[1].type, FeatureType.DUCK_OBSTACLE)

    def test_generated_ids_never_collide_with_written_ones(self):
        cfg = Config()
        data = {
            "version": 0,
            "bands": [{"name": "a", "lower_boundary": 0, "upper_boundary": 100}],
            "features": [
                {"band_index": 0},
                {"band_index": 0},
                {"feature_id": "feature-1", "band_index": 0},
                {"feature_id": "feature-0-1", "band_index": 0},
            ],
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        ids = [f.feature_id for f in cfg.features]
        self.assertEqual(ids, ["feature-0", "feature-1-1", "feature-1", "feature-0-1"])
        validate_config(cfg)

    def test_none_and_negative_values_are_sanitized(self):
        cfg = Config()
        data = {
            "version": 0,
            "bands": [
                {"name": "a", "lower_boundary": 0, "upper_boundary": 100, "threshold_multiplier": None},
                {"name": "b", "lower_boundary": 100, "upper_boundary": 200, "threshold_multiplier": -2},
            ],
            "log_level": None,
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual([b.threshold_multiplier for b in cfg.bands], [1.0, 0.0])
        self.assertEqual(cfg.log_level, "INFO")

    def test_preserves_custom_values(self):
        cfg = Config()
        data = {
            "version": 1,
            "analysis": {"fft_size": 2048, "threshold_window_size": 30},
            "physics": {"gravity": 9.81},
            "features": [{"feature_id": "walls", "band_index": 2, "type": 3, "priority": 4}],
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.analysis.fft_size, 2048)
        self.assertEqual(cfg.analysis.threshold_window_size, 30)
        self.assertEqual(cfg.analysis.bar_count, 64)
        self.assertEqual(cfg.physics.gravity, 9.81)
        self.assertEqual(len(cfg.features), 1)
        self.assertIs(cfg.features[0].type, FeatureType.DESTRUCTIBLE_WALL)
        self.assertEqual(cfg.features[0].priority, 4)

    def test_unknown_enum_value_keeps_default(self):
        cfg = Config()
        apply_dict_to_dataclass(cfg, {"features": [{"feature_id": "x", "type": 99}]})
        self.assertIs(cfg.features[0].type, FeatureType.HAZARD)

    def test_unknown_keys_ignored(self):
        cfg = Config()
        apply_dict_to_dataclass(cfg, {"stroke": {"phase_advance": 1.0}, "physics": {"mass": 3}})
        self.assertFalse(hasattr(cfg, "stroke"))
        self.assertEqual(cfg.physics.gravity, 30.0)


class TestValidateConfig(unittest.TestCase):
    def test_defaults_are_valid(self):
        validate_config(Config())

    def test_rejections(self):
        cases = []

        cfg = Config()
        cfg.bands = []
        cases.append(cfg)

        cfg = Config()
        cfg.analysis.threshold_window_size = 3
        cases.append(cfg)

        cfg = Config()
        cfg.bands[0].upper_boundary = cfg.bands[0].lower_boundary
        cases.append(cfg)

        cfg = Config()
        cfg.physics.gravity = 0.0
        cases.append(cfg)

        cfg = Config()
        cfg.level.spacing_between_samples = 0.0
        cases.append(cfg)

        cfg = Config()
        cfg.features.append(LevelFeature(feature_id="spikes"))
        cases.append(cfg)

        cfg = Config()
        cfg.features[0].band_index = 3
        cases.append(cfg)

        for n, cfg in enumerate(cases):
            with self.subTest(case=n), self.assertRaises(ConfigurationError):
                validate_config(cfg)


if __name__ == "__main__":
    unittest.main()
