"""Site health and disaster-impact engine initialization."""

from .core import SiteHealthEngine
from .config import EngineConfig
from .exceptions import SiteHealthError

# Import component modules
from . import health
from . import models

__version__ = "0.1.0"
__author__ = "Site Health Development Team"
__license__ = "MIT"

__all__ = [
    "SiteHealthEngine",
    "EngineConfig",
    "SiteHealthError",
    "health",
    "models"
]
