"""Validation utilities for telemetry data."""

from typing import Any, Optional, Union, Type, Tuple

from .exceptions import ValidationError, ValidationTypeError, ValidationRangeError

class Validator:
    """Base validator class."""
    
    @staticmethod
    def validate_type(value: Any, expected_type: Union[Type, Tuple[Type, ...]]) -> None:
        """Validate value type."""
        if not isinstance(value, expected_type):
            expected = (
                " or ".join(t.__name__ for t in expected_type)
                if isinstance(expected_type, tuple) else expected_type.__name__
            )
            raise ValidationTypeError(
                f"Expected type {expected}, got {type(value).__name__}"
            )

    @staticmethod
    def validate_range(
        value: Union[int, float],
        min_value: Optional[Union[int, float]] = None,
        max_value: Optional[Union[int, float]] = None
    ) -> None:
        """Validate numeric range."""
        if min_value is not None and value < min_value:
            raise ValidationRangeError(f"Value {value} is below minimum {min_value}")
        
        if max_value is not None and value > max_value:
            raise ValidationRangeError(f"Value {value} exceeds maximum {max_value}")

class TelemetryValidator(Validator):
    """Validator for site and equipment telemetry."""
    
    @staticmethod
    def validate_percentage(value: float) -> None:
        """Validate a 0-100 percentage (efficiency, vibration)."""
        Validator.validate_type(value, (int, float))
        Validator.validate_range(value, min_value=0, max_value=100)
    
    @staticmethod
    def validate_consumption(value: float) -> None:
        """Validate an energy quantity in kWh."""
        Validator.validate_type(value, (int, float))
        Validator.validate_range(value, min_value=0)
    
    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> None:
        """Validate a latitude/longitude pair."""
        Validator.validate_type(lat, (int, float))
        Validator.validate_type(lng, (int, float))
        Validator.validate_range(lat, min_value=-90, max_value=90)
        Validator.validate_range(lng, min_value=-180, max_value=180)

def validate_site_name(name: str) -> None:
    """Validate a site display name."""
    if not name or not isinstance(name, str):
        raise ValidationError("Site name must be a non-empty string")
