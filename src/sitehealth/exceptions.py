"""Custom exceptions for the site health engine."""

class SiteHealthError(Exception):
    """Base exception for site health engine errors."""
    pass

class TelemetryError(SiteHealthError):
    """Exception raised for malformed or missing telemetry."""
    pass

class SiteNotFoundError(TelemetryError):
    """Exception raised when a site is not found in the store."""
    pass

class SimulationError(SiteHealthError):
    """Exception raised for disaster simulation errors."""
    pass

class DataFetchError(SiteHealthError):
    """Exception raised when a (simulated) data fetch fails."""
    pass

class DetectionError(SiteHealthError):
    """Exception raised for power issue detection errors."""
    pass

class VisualizationError(SiteHealthError):
    """Exception raised for map rendering errors."""
    pass

class PersistenceError(SiteHealthError):
    """Exception raised when state cannot be saved or restored."""
    pass

class AnalysisError(SiteHealthError):
    """Exception raised for fleet analysis errors."""
    pass

class ValidationError(SiteHealthError):
    """Base exception for validation errors."""
    pass

class ValidationTypeError(ValidationError):
    """Exception raised for type validation errors."""
    pass

class ValidationRangeError(ValidationError):
    """Exception raised for range validation errors."""
    pass

class ConfigurationError(SiteHealthError):
    """Exception raised for configuration errors."""
    pass
