"""
Main engine configuration class that integrates all configuration components.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional
import logging
import os

from .base import (
    BaseConfig, ConfigValidationResult, ValidationLevel,
    GeneratorConfig, SimulatorConfig, DetectorConfig
)
from ..exceptions import ConfigurationError


BASE_LAYERS = ["street", "satellite", "topo", "dark"]


@dataclass
class VisualizationConfig:
    """Configuration for the geospatial map."""
    default_base_layer: str = "street"
    show_clusters: bool = True
    heat_scale: float = 10.0
    stack_layers: int = 5
    equipment_offset_deg: float = 0.0005
    problem_ring_radius_m: float = 200.0
    break_gap_deg: float = 0.0005
    surge_connections: int = 2
    particles_per_line: int = 3
    cluster_radius_deg: float = 0.01
    area_seed: int = 0

    def validate(self) -> ConfigValidationResult:
        """Validate visualization configuration."""
        result = ConfigValidationResult(is_valid=True)

        if self.default_base_layer not in BASE_LAYERS:
            result.add_error(f"Invalid base layer: {self.default_base_layer}")

        if self.heat_scale <= 0:
            result.add_error(f"Heat scale must be > 0, got {self.heat_scale}")

        if self.stack_layers <= 0:
            result.add_error(f"Stack layers must be > 0, got {self.stack_layers}")
        elif self.stack_layers > 6:
            result.add_warning(f"Stack layers above 6 produce non-positive radii: {self.stack_layers}")

        if self.equipment_offset_deg <= 0:
            result.add_error(f"Equipment offset must be > 0, got {self.equipment_offset_deg}")

        if self.surge_connections < 0:
            result.add_error(f"Surge connections must be >= 0, got {self.surge_connections}")

        if self.cluster_radius_deg <= 0:
            result.add_error(f"Cluster radius must be > 0, got {self.cluster_radius_deg}")

        return result


@dataclass
class MonitoringConfig:
    """Configuration for logging."""
    enabled: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def validate(self) -> ConfigValidationResult:
        """Validate monitoring configuration."""
        result = ConfigValidationResult(is_valid=True)

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            result.add_error(f"Invalid log level: {self.log_level}")

        return result


@dataclass
class StoreConfig:
    """Configuration for the telemetry store and its persistence."""
    storage_key: str = "data-storage"
    storage_path: Optional[str] = None
    persist_on_change: bool = False
    fetch_latency_seconds: float = 0.0

    def validate(self) -> ConfigValidationResult:
        """Validate store configuration."""
        result = ConfigValidationResult(is_valid=True)

        if not self.storage_key:
            result.add_error("Storage key cannot be empty")

        if self.persist_on_change and not self.storage_path:
            result.add_warning("persist_on_change without storage_path keeps state in memory only")

        if self.fetch_latency_seconds < 0:
            result.add_error(f"Fetch latency must be >= 0, got {self.fetch_latency_seconds}")

        return result


@dataclass
class EngineConfig(BaseConfig):
    """Main site health engine configuration."""

    # Basic settings
    name: str = "Site Health Engine"
    description: str = ""

    # Component configurations
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    config_version: str = "1.0"

    def __post_init__(self):
        """Initialize after dataclass creation."""
        super().__init__()
        self._setup_logging()

    def _setup_logging(self):
        """Setup logging based on monitoring configuration."""
        logger = logging.getLogger("sitehealth")
        if not self.monitoring.enabled:
            logger.disabled = True
            return
        logger.disabled = False
        logger.setLevel(getattr(logging, self.monitoring.log_level, logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        # Console handler
        if not logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        # File handler if specified
        if self.monitoring.log_file:
            log_path = os.path.abspath(self.monitoring.log_file)
            for handler in logger.handlers:
                if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path:
                    return
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    def validate(self) -> ConfigValidationResult:
        """Validate the entire engine configuration."""
        result = ConfigValidationResult(is_valid=True)

        if not self.name:
            result.add_error("Engine name cannot be empty")

        components = [
            ("generator", self.generator),
            ("simulator", self.simulator),
            ("detector", self.detector),
            ("visualization", self.visualization),
            ("monitoring", self.monitoring),
            ("store", self.store)
        ]

        # Prefix errors and warnings with component name
        for component_name, component in components:
            result.absorb(component_name, component.validate())

        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "generator": self.generator.to_dict(),
            "simulator": self.simulator.to_dict(),
            "detector": self.detector.to_dict(),
            "visualization": {
                "default_base_layer": self.visualization.default_base_layer,
                "show_clusters": self.visualization.show_clusters,
                "heat_scale": self.visualization.heat_scale,
                "stack_layers": self.visualization.stack_layers,
                "equipment_offset_deg": self.visualization.equipment_offset_deg,
                "problem_ring_radius_m": self.visualization.problem_ring_radius_m,
                "break_gap_deg": self.visualization.break_gap_deg,
                "surge_connections": self.visualization.surge_connections,
                "particles_per_line": self.visualization.particles_per_line,
                "cluster_radius_deg": self.visualization.cluster_radius_deg,
                "area_seed": self.visualization.area_seed
            },
            "monitoring": {
                "enabled": self.monitoring.enabled,
                "log_level": self.monitoring.log_level,
                "log_file": self.monitoring.log_file
            },
            "store": {
                "storage_key": self.store.storage_key,
                "storage_path": self.store.storage_path,
                "persist_on_change": self.store.persist_on_change,
                "fetch_latency_seconds": self.store.fetch_latency_seconds
            },
            "config_version": self.config_version
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EngineConfig':
        """Create configuration from dictionary."""
        generator = GeneratorConfig.from_dict(data.get("generator", {}))
        simulator = SimulatorConfig.from_dict(data.get("simulator", {}))
        detector = DetectorConfig.from_dict(data.get("detector", {}))

        # Parse visualization configuration
        vis_data = data.get("visualization", {})
        visualization = VisualizationConfig(
            default_base_layer=vis_data.get("default_base_layer", "street"),
            show_clusters=vis_data.get("show_clusters", True),
            heat_scale=vis_data.get("heat_scale", 10.0),
            stack_layers=vis_data.get("stack_layers", 5),
            equipment_offset_deg=vis_data.get("equipment_offset_deg", 0.0005),
            problem_ring_radius_m=vis_data.get("problem_ring_radius_m", 200.0),
            break_gap_deg=vis_data.get("break_gap_deg", 0.0005),
            surge_connections=vis_data.get("surge_connections", 2),
            particles_per_line=vis_data.get("particles_per_line", 3),
            cluster_radius_deg=vis_data.get("cluster_radius_deg", 0.01),
            area_seed=vis_data.get("area_seed", 0)
        )

        # Parse monitoring configuration
        monitoring_data = data.get("monitoring", {})
        monitoring = MonitoringConfig(
            enabled=monitoring_data.get("enabled", True),
            log_level=monitoring_data.get("log_level", "INFO"),
            log_file=monitoring_data.get("log_file")
        )

        # Parse store configuration
        store_data = data.get("store", {})
        store = StoreConfig(
            storage_key=store_data.get("storage_key", "data-storage"),
            storage_path=store_data.get("storage_path"),
            persist_on_change=store_data.get("persist_on_change", False),
            fetch_latency_seconds=store_data.get("fetch_latency_seconds", 0.0)
        )

        return cls(
            name=data.get("name", "Site Health Engine"),
            description=data.get("description", ""),
            generator=generator,
            simulator=simulator,
            detector=detector,
            visualization=visualization,
            monitoring=monitoring,
            store=store,
            config_version=data.get("config_version", "1.0")
        )

    def validate_and_log(self) -> bool:
        """Validate configuration and log results."""
        result = self.validate()

        logger = logging.getLogger("sitehealth.config")

        if result.is_valid:
            logger.info("Configuration validation passed")
        else:
            logger.error("Configuration validation failed")
            for error in result.errors:
                logger.error(f"Validation error: {error}")

        for warning in result.warnings:
            logger.warning(f"Validation warning: {warning}")

        return result.is_valid

    def ensure_valid(self) -> None:
        """Apply the validation level: raise, warn, or ignore."""
        if self.validation_level == ValidationLevel.PERMISSIVE:
            return

        if self.validate_and_log():
            return

        if self.validation_level == ValidationLevel.STRICT:
            errors = "; ".join(self.validate().errors)
            raise ConfigurationError(f"Invalid configuration: {errors}")
