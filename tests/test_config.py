"""
Tests for engine configuration defaults, files and environment overrides.
"""

import json
import os
import tempfile
import unittest

from mandelbrot_engine.io.config import (
    ConfigManager,
    EngineConfig,
    EnvironmentConfig,
    load_config_from_args,
)


class TestEngineConfig(unittest.TestCase):
    def test_defaults(self):
        config = EngineConfig()
        config.validate()
        self.assertEqual(config.interlace_gap, 10)
        self.assertEqual(config.palette_size, 512)
        self.assertEqual(config.escape_limit, 65536.0)
        self.assertEqual(config.smoothing_iterations, 4)
        self.assertIsNone(config.seed)
        self.assertIsNone(config.max_workers)

    def test_validation(self):
        for bad in ({"interlace_gap": 0}, {"max_workers": 0}, {"palette_size": 0},
                    {"escape_limit": 0.0}, {"smoothing_iterations": -1}, {"seed": -3}):
            with self.assertRaises(ValueError, msg=str(bad)):
                EngineConfig(**bad).validate()

    def test_from_dict_rejects_unknown_keys(self):
        with self.assertRaises(ValueError):
            EngineConfig.from_dict({"interlace_gap": 4, "colour": "blue"})

    def test_dict_round_trip(self):
        config = EngineConfig(interlace_gap=3, seed=11, low_priority=False)
        self.assertEqual(EngineConfig.from_dict(config.to_dict()), config)


class TestEnvironmentConfig(unittest.TestCase):
    def test_overrides_are_parsed(self):
        environ = {
            "MANDELBROT_ENGINE_INTERLACE_GAP": "4",
            "MANDELBROT_ENGINE_MAX_WORKERS": "none",
            "MANDELBROT_ENGINE_SEED": "99",
            "MANDELBROT_ENGINE_LOW_PRIORITY": "off",
            "UNRELATED": "1",
        }
        config = EnvironmentConfig(environ).apply(EngineConfig(max_workers=2))
        self.assertEqual(config.interlace_gap, 4)
        self.assertIsNone(config.max_workers)
        self.assertEqual(config.seed, 99)
        self.assertFalse(config.low_priority)

    def test_invalid_value(self):
        with self.assertRaises(ValueError):
            EnvironmentConfig({"MANDELBROT_ENGINE_LOW_PRIORITY": "maybe"}).get_overrides()
        with self.assertRaises(ValueError):
            EnvironmentConfig({"MANDELBROT_ENGINE_INTERLACE_GAP": "0"}).apply(EngineConfig())


class TestConfigManager(unittest.TestCase):
    def test_save_and_load(self):
        config = EngineConfig(interlace_gap=5, palette_size=256, seed=1)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "engine.json")
            ConfigManager().save_config(config, path)
            self.assertEqual(ConfigManager().load_config(path), config)

    def test_load_rejects_non_object(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "engine.json")
            with open(path, "w") as f:
                json.dump([1, 2, 3], f)
            with self.assertRaises(ValueError):
                ConfigManager().load_config(path)

    def test_environment_wins_over_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "engine.json")
            with open(path, "w") as f:
                json.dump({"interlace_gap": 5, "palette_size": 64}, f)
            config = load_config_from_args(path, environ={"MANDELBROT_ENGINE_INTERLACE_GAP": "2"})
        self.assertEqual(config.interlace_gap, 2)
        self.assertEqual(config.palette_size, 64)

    def test_no_file_uses_defaults(self):
        self.assertEqual(load_config_from_args(environ={}), EngineConfig())


if __name__ == '__main__':
    unittest.main()
