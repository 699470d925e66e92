"""
Configuration base classes for the site health engine.
Provides hierarchical, validatable configuration with YAML/JSON persistence.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Union, List, Tuple
from pathlib import Path
import yaml
import json
from enum import Enum
import logging


class ConfigFormat(Enum):
    """Supported configuration file formats."""
    YAML = "yaml"
    JSON = "json"


class ValidationLevel(Enum):
    """Configuration validation levels."""
    STRICT = "strict"      # Fail on any validation error
    WARN = "warn"          # Log warnings but continue
    PERMISSIVE = "permissive"  # Ignore validation errors


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add a validation error."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a validation warning."""
        self.warnings.append(message)

    def absorb(self, prefix: str, other: 'ConfigValidationResult') -> None:
        """Merge another result, prefixing its messages."""
        for error in other.errors:
            self.add_error(f"{prefix}: {error}")
        for warning in other.warnings:
            self.add_warning(f"{prefix}: {warning}")


class BaseConfig(ABC):
    """Abstract base class for all configuration objects."""

    def __init__(self, validation_level: ValidationLevel = ValidationLevel.STRICT):
        self.validation_level = validation_level
        self._logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def validate(self) -> ConfigValidationResult:
        """Validate the configuration."""
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        pass

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseConfig':
        """Create configuration from dictionary."""
        pass

    def save_to_file(self, file_path: Union[str, Path], format: ConfigFormat = ConfigFormat.YAML) -> None:
        """Save configuration to file."""
        file_path = Path(file_path)
        data = self.to_dict()

        if format == ConfigFormat.YAML:
            with open(file_path, 'w') as f:
                yaml.safe_dump(data, f, default_flow_style=False, indent=2)
        elif format == ConfigFormat.JSON:
            with open(file_path, 'w') as f:
                json.dump(data, f, indent=2)
        else:
            raise ValueError(f"Unsupported format: {format}")

    @classmethod
    def load_from_file(cls, file_path: Union[str, Path]) -> 'BaseConfig':
        """Load configuration from file."""
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        if file_path.suffix.lower() in ['.yaml', '.yml']:
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        elif file_path.suffix.lower() == '.json':
            with open(file_path, 'r') as f:
                data = json.load(f)
        else:
            raise ValueError(f"Unsupported file format: {file_path.suffix}")

        return cls.from_dict(data)

    def merge(self, other: 'BaseConfig') -> 'BaseConfig':
        """Merge this configuration with another."""
        self_dict = self.to_dict()
        other_dict = other.to_dict()
        merged = self._deep_merge(self_dict, other_dict)
        return self.__class__.from_dict(merged)

    @staticmethod
    def _deep_merge(dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = dict1.copy()

        for key, value in dict2.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = BaseConfig._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def _check_interval(
    result: ConfigValidationResult,
    name: str,
    interval: Tuple[float, float]
) -> None:
    """Validate a [low, high) random interval."""
    low, high = interval
    if low < 0:
        result.add_error(f"{name} lower bound must be >= 0, got {low}")
    if high <= low:
        result.add_error(f"{name} must satisfy low < high, got [{low}, {high})")


def _interval(value: Any, default: Tuple[float, float]) -> Tuple[float, float]:
    if value is None:
        return default
    low, high = value
    return (float(low), float(high))


@dataclass
class GeneratorConfig(BaseConfig):
    """Configuration for the initial site population."""
    site_count: int = 10
    min_equipment: int = 3
    max_equipment: int = 7
    history_hours: int = 24
    offline_probability: float = 0.05
    position_jitter: float = 0.03  # degrees
    nominal_voltage: float = 220.0
    random_seed: Optional[int] = None

    def validate(self) -> ConfigValidationResult:
        """Validate generator configuration."""
        result = ConfigValidationResult(is_valid=True)

        if self.site_count <= 0:
            result.add_error(f"Site count must be > 0, got {self.site_count}")

        if self.min_equipment < 0 or self.max_equipment < self.min_equipment:
            result.add_error(
                f"Equipment range invalid: [{self.min_equipment}, {self.max_equipment}]"
            )

        if self.history_hours <= 0:
            result.add_error(f"History hours must be > 0, got {self.history_hours}")

        if not 0 <= self.offline_probability <= 1:
            result.add_error(f"Offline probability must be in [0, 1], got {self.offline_probability}")

        if self.min_equipment == 0:
            result.add_warning("Sites may be generated without equipment")

        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "site_count": self.site_count,
            "min_equipment": self.min_equipment,
            "max_equipment": self.max_equipment,
            "history_hours": self.history_hours,
            "offline_probability": self.offline_probability,
            "position_jitter": self.position_jitter,
            "nominal_voltage": self.nominal_voltage,
            "random_seed": self.random_seed
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeneratorConfig':
        """Create from dictionary."""
        return cls(
            site_count=data.get("site_count", 10),
            min_equipment=data.get("min_equipment", 3),
            max_equipment=data.get("max_equipment", 7),
            history_hours=data.get("history_hours", 24),
            offline_probability=data.get("offline_probability", 0.05),
            position_jitter=data.get("position_jitter", 0.03),
            nominal_voltage=data.get("nominal_voltage", 220.0),
            random_seed=data.get("random_seed")
        )


@dataclass
class SimulatorConfig(BaseConfig):
    """Configuration for disaster impact simulation and recovery."""
    degradation_probability: float = 0.4
    temperature_rise: Tuple[float, float] = (10.0, 30.0)  # °C
    vibration_rise: Tuple[float, float] = (15.0, 45.0)
    efficiency_drop: Tuple[float, float] = (10.0, 40.0)  # percent points
    consumption_spike: Tuple[float, float] = (50.0, 150.0)  # kWh
    surge_probability: float = 0.3
    surge_factor: float = 1.5
    brownout_factor: float = 0.7
    risk_jitter: float = 10.0

    # Partial recovery
    recovery_step: float = 20.0
    temperature_threshold: float = 80.0
    temperature_floor: float = 60.0
    vibration_threshold: float = 60.0
    vibration_floor: float = 40.0
    consumption_threshold: float = 200.0
    consumption_step: float = 100.0
    consumption_floor: float = 100.0
    nominal_voltage: float = 220.0
    voltage_tolerance: float = 20.0

    # Simulated round trip
    latency_seconds: float = 0.0
    failure_rate: float = 0.0
    random_seed: Optional[int] = None

    def validate(self) -> ConfigValidationResult:
        """Validate simulator configuration."""
        result = ConfigValidationResult(is_valid=True)

        if not 0.3 <= self.degradation_probability <= 0.5:
            result.add_error(
                f"Degradation probability must be in [0.3, 0.5], got {self.degradation_probability}"
            )

        _check_interval(result, "temperature_rise", self.temperature_rise)
        _check_interval(result, "vibration_rise", self.vibration_rise)
        _check_interval(result, "efficiency_drop", self.efficiency_drop)
        _check_interval(result, "consumption_spike", self.consumption_spike)

        if not 0 <= self.surge_probability <= 1:
            result.add_error(f"Surge probability must be in [0, 1], got {self.surge_probability}")

        if self.surge_factor <= 1:
            result.add_warning(f"Surge factor {self.surge_factor} does not raise voltage")

        if not 0 < self.brownout_factor <= 1:
            result.add_error(f"Brownout factor must be in (0, 1], got {self.brownout_factor}")

        if self.risk_jitter < 0:
            result.add_error(f"Risk jitter must be >= 0, got {self.risk_jitter}")

        if self.recovery_step <= 0:
            result.add_error(f"Recovery step must be > 0, got {self.recovery_step}")

        if self.latency_seconds < 0:
            result.add_error(f"Latency must be >= 0, got {self.latency_seconds}")

        if not 0 <= self.failure_rate <= 1:
            result.add_error(f"Failure rate must be in [0, 1], got {self.failure_rate}")

        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "degradation_probability": self.degradation_probability,
            "temperature_rise": list(self.temperature_rise),
            "vibration_rise": list(self.vibration_rise),
            "efficiency_drop": list(self.efficiency_drop),
            "consumption_spike": list(self.consumption_spike),
            "surge_probability": self.surge_probability,
            "surge_factor": self.surge_factor,
            "brownout_factor": self.brownout_factor,
            "risk_jitter": self.risk_jitter,
            "recovery_step": self.recovery_step,
            "temperature_threshold": self.temperature_threshold,
            "temperature_floor": self.temperature_floor,
            "vibration_threshold": self.vibration_threshold,
            "vibration_floor": self.vibration_floor,
            "consumption_threshold": self.consumption_threshold,
            "consumption_step": self.consumption_step,
            "consumption_floor": self.consumption_floor,
            "nominal_voltage": self.nominal_voltage,
            "voltage_tolerance": self.voltage_tolerance,
            "latency_seconds": self.latency_seconds,
            "failure_rate": self.failure_rate,
            "random_seed": self.random_seed
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulatorConfig':
        """Create from dictionary."""
        return cls(
            degradation_probability=data.get("degradation_probability", 0.4),
            temperature_rise=_interval(data.get("temperature_rise"), (10.0, 30.0)),
            vibration_rise=_interval(data.get("vibration_rise"), (15.0, 45.0)),
            efficiency_drop=_interval(data.get("efficiency_drop"), (10.0, 40.0)),
            consumption_spike=_interval(data.get("consumption_spike"), (50.0, 150.0)),
            surge_probability=data.get("surge_probability", 0.3),
            surge_factor=data.get("surge_factor", 1.5),
            brownout_factor=data.get("brownout_factor", 0.7),
            risk_jitter=data.get("risk_jitter", 10.0),
            recovery_step=data.get("recovery_step", 20.0),
            temperature_threshold=data.get("temperature_threshold", 80.0),
            temperature_floor=data.get("temperature_floor", 60.0),
            vibration_threshold=data.get("vibration_threshold", 60.0),
            vibration_floor=data.get("vibration_floor", 40.0),
            consumption_threshold=data.get("consumption_threshold", 200.0),
            consumption_step=data.get("consumption_step", 100.0),
            consumption_floor=data.get("consumption_floor", 100.0),
            nominal_voltage=data.get("nominal_voltage", 220.0),
            voltage_tolerance=data.get("voltage_tolerance", 20.0),
            latency_seconds=data.get("latency_seconds", 0.0),
            failure_rate=data.get("failure_rate", 0.0),
            random_seed=data.get("random_seed")
        )


DEFAULT_AREA_LABELS = [
    "North Wing",
    "South Wing",
    "East Wing",
    "West Wing",
    "Main Building",
    "Substation A",
    "Substation B",
]


@dataclass
class DetectorConfig(BaseConfig):
    """Configuration for power issue detection."""
    area_labels: List[str] = field(default_factory=lambda: list(DEFAULT_AREA_LABELS))
    membership_probability: float = 0.3
    max_members_per_area: int = 3
    random_seed: Optional[int] = None

    def validate(self) -> ConfigValidationResult:
        """Validate detector configuration."""
        result = ConfigValidationResult(is_valid=True)

        if not self.area_labels:
            result.add_error("At least one area label is required")

        if len(set(self.area_labels)) != len(self.area_labels):
            result.add_error("Area labels must be unique")

        if not 0 < self.membership_probability <= 1:
            result.add_error(
                f"Membership probability must be in (0, 1], got {self.membership_probability}"
            )

        if self.max_members_per_area <= 0:
            result.add_error(f"Max members per area must be > 0, got {self.max_members_per_area}")

        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "area_labels": list(self.area_labels),
            "membership_probability": self.membership_probability,
            "max_members_per_area": self.max_members_per_area,
            "random_seed": self.random_seed
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectorConfig':
        """Create from dictionary."""
        return cls(
            area_labels=list(data.get("area_labels", DEFAULT_AREA_LABELS)),
            membership_probability=data.get("membership_probability", 0.3),
            max_members_per_area=data.get("max_members_per_area", 3),
            random_seed=data.get("random_seed")
        )
