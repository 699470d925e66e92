"""Event definitions for the telemetry store."""

from enum import Enum
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

class EventType(str, Enum):
    """Types of store events."""
    # Population events
    SITES_LOADED = "sites_loaded"
    SITES_RESTORED = "sites_restored"
    
    # Site events
    SITE_ADDED = "site_added"
    SITE_UPDATED = "site_updated"
    SITE_REMOVED = "site_removed"
    
    # Disaster events
    DISASTER_SIMULATED = "disaster_simulated"
    RESET_APPLIED = "reset_applied"
    EQUIPMENT_MAINTAINED = "equipment_maintained"

@dataclass
class StoreEvent:
    """Change notification emitted by the telemetry store."""
    type: EventType
    timestamp: datetime
    version: int
    site_ids: list = field(default_factory=list)
    details: Optional[Dict[str, Any]] = None
