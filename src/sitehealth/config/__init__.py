"""
Configuration package for the site health engine.
Provides hierarchical and validatable configuration management.
"""

from .base import (
    BaseConfig,
    ConfigFormat,
    ValidationLevel,
    ConfigValidationResult,
    GeneratorConfig,
    SimulatorConfig,
    DetectorConfig,
    DEFAULT_AREA_LABELS
)

from .engine_config import (
    VisualizationConfig,
    MonitoringConfig,
    StoreConfig,
    EngineConfig,
    BASE_LAYERS
)

__all__ = [
    # Base configuration classes
    "BaseConfig",
    "ConfigFormat",
    "ValidationLevel",
    "ConfigValidationResult",
    
    # Component configuration
    "GeneratorConfig",
    "SimulatorConfig",
    "DetectorConfig",
    "VisualizationConfig",
    "MonitoringConfig",
    "StoreConfig",
    "DEFAULT_AREA_LABELS",
    "BASE_LAYERS",
    
    # Main configuration class
    "EngineConfig"
]
