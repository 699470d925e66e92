"""Tests for the configuration layer."""

import sys
from pathlib import Path
import logging
import os
import tempfile
import unittest

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sitehealth.config import (
    ConfigFormat, ValidationLevel, EngineConfig, GeneratorConfig, SimulatorConfig,
    DetectorConfig, VisualizationConfig, StoreConfig, MonitoringConfig
)
from sitehealth.exceptions import ConfigurationError


class TestComponentValidation(unittest.TestCase):

    def test_defaults_are_valid(self):
        result = EngineConfig().validate()
        self.assertTrue(result.is_valid, result.errors)

    def test_degradation_probability_range(self):
        result = SimulatorConfig(degradation_probability=0.6).validate()
        self.assertFalse(result.is_valid)
        self.assertIn("Degradation probability", result.errors[0])

    def test_interval_bounds(self):
        result = SimulatorConfig(temperature_rise=(30.0, 10.0)).validate()
        self.assertFalse(result.is_valid)

    def test_generator_equipment_range(self):
        self.assertFalse(GeneratorConfig(min_equipment=5, max_equipment=2).validate().is_valid)
        result = GeneratorConfig(min_equipment=0).validate()
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 1)

    def test_detector_labels_unique(self):
        result = DetectorConfig(area_labels=["North Wing", "North Wing"]).validate()
        self.assertFalse(result.is_valid)

    def test_bad_base_layer(self):
        result = VisualizationConfig(default_base_layer="watercolor").validate()
        self.assertEqual(result.errors, ["Invalid base layer: watercolor"])

    def test_store_warning(self):
        result = StoreConfig(persist_on_change=True).validate()
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 1)

    def test_engine_prefixes_component_errors(self):
        config = EngineConfig(visualization=VisualizationConfig(default_base_layer="watercolor"))
        result = config.validate()
        self.assertEqual(result.errors, ["visualization: Invalid base layer: watercolor"])


class TestEngineConfig(unittest.TestCase):

    def setUp(self):
        self.config = EngineConfig(
            name="Chennai Drill",
            generator=GeneratorConfig(site_count=4, random_seed=3),
            simulator=SimulatorConfig(recovery_step=25.0, temperature_rise=(5.0, 15.0)),
            store=StoreConfig(storage_path="state.json")
        )

    def test_yaml_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "engine.yaml"
            self.config.save_to_file(path, ConfigFormat.YAML)
            loaded = EngineConfig.load_from_file(path)

        self.assertEqual(loaded.to_dict(), self.config.to_dict())
        self.assertEqual(loaded.simulator.temperature_rise, (5.0, 15.0))

    def test_json_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "engine.json"
            self.config.save_to_file(path, ConfigFormat.JSON)
            loaded = EngineConfig.load_from_file(path)

        self.assertEqual(loaded.generator.site_count, 4)
        self.assertEqual(loaded.store.storage_path, "state.json")

    def test_unsupported_suffix(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "engine.toml"
            path.write_text("name = 'x'")
            with self.assertRaises(ValueError):
                EngineConfig.load_from_file(path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            EngineConfig.load_from_file("/nonexistent/engine.yaml")

    def test_merge(self):
        override = EngineConfig(name="Override", detector=DetectorConfig(membership_probability=0.5))
        merged = self.config.merge(override)
        self.assertEqual(merged.name, "Override")
        self.assertEqual(merged.detector.membership_probability, 0.5)

    def test_ensure_valid_strict_raises(self):
        config = EngineConfig(simulator=SimulatorConfig(degradation_probability=0.9))
        with self.assertRaises(ConfigurationError):
            config.ensure_valid()

    def test_ensure_valid_permissive(self):
        config = EngineConfig(simulator=SimulatorConfig(degradation_probability=0.9))
        config.validation_level = ValidationLevel.PERMISSIVE
        config.ensure_valid()

        config.validation_level = ValidationLevel.WARN
        config.ensure_valid()

    def test_log_file_handler_added_once(self):
        logger = logging.getLogger("sitehealth")
        with tempfile.TemporaryDirectory() as tmp:
            log_file = str(Path(tmp) / "engine.log")
            monitoring = MonitoringConfig(log_level="WARNING", log_file=log_file)
            config = EngineConfig(monitoring=monitoring)
            EngineConfig.from_dict(config.to_dict())
            config.merge(EngineConfig(monitoring=monitoring))

            handlers = [
                h for h in logger.handlers
                if isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(log_file)
            ]
            self.assertEqual(len(handlers), 1)

            for handler in handlers:
                logger.removeHandler(handler)
                handler.close()


if __name__ == '__main__':
    unittest.main()
