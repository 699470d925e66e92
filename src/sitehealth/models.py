"""Telemetry data model: sites, equipment and energy readings."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, List
import uuid

from .exceptions import TelemetryError
from .validation import TelemetryValidator, validate_site_name


class SiteCategory(str, Enum):
    """Facility types a site can belong to."""
    CELL_TOWER = "Cell Tower"
    DATA_CENTER = "Data Center"
    OFFICE = "Office"
    SWITCHING_CENTER = "Switching Center"
    MANUFACTURING_PLANT = "Manufacturing Plant"
    ELECTRONICS_FACTORY = "Electronics Factory"
    TEXTILE_MILL = "Textile Mill"
    CHEMICAL_PLANT = "Chemical Plant"
    AUTOMOTIVE_FACTORY = "Automotive Factory"
    DISTRIBUTION_CENTER = "Distribution Center"
    POWER_SUBSTATION = "Power Substation"
    PROCESSING_UNIT = "Processing Unit"


class SiteStatus(str, Enum):
    """Operational status of a site."""
    ONLINE = "Online"
    OFFLINE = "Offline"
    MAINTENANCE = "Maintenance"


class EquipmentStatus(str, Enum):
    """Health status of an equipment unit."""
    OPERATIONAL = "Operational"
    WARNING = "Warning"
    CRITICAL = "Critical"
    OFFLINE = "Offline"


def new_id() -> str:
    """Generate a fresh entity identifier."""
    return str(uuid.uuid4())


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class GeoLocation:
    """Geocoordinate plus street address."""
    lat: float
    lng: float
    address: str = ""

    def __post_init__(self):
        TelemetryValidator.validate_coordinates(self.lat, self.lng)

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lng": self.lng, "address": self.address}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeoLocation':
        return cls(lat=data["lat"], lng=data["lng"], address=data.get("address", ""))


@dataclass
class EnergyDataPoint:
    """Single energy reading of a site."""
    timestamp: datetime
    consumption: float  # kWh
    renewable: float  # kWh
    grid: float  # kWh
    cost: float
    savings: float
    efficiency: float  # percent, site aggregate at creation time
    voltage: Optional[float] = None  # V
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        TelemetryValidator.validate_consumption(self.consumption)
        TelemetryValidator.validate_percentage(self.efficiency)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "consumption": self.consumption,
            "renewable": self.renewable,
            "grid": self.grid,
            "cost": self.cost,
            "savings": self.savings,
            "efficiency": self.efficiency,
            "voltage": self.voltage
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnergyDataPoint':
        """Create from dictionary."""
        return cls(
            id=data.get("id") or new_id(),
            timestamp=_parse_timestamp(data["timestamp"]),
            consumption=data["consumption"],
            renewable=data.get("renewable", 0.0),
            grid=data.get("grid", 0.0),
            cost=data.get("cost", 0.0),
            savings=data.get("savings", 0.0),
            efficiency=data["efficiency"],
            voltage=data.get("voltage")
        )


@dataclass
class Equipment:
    """Monitored sub-unit of a site.

    Offline is a sticky state: automatic re-derivation from efficiency skips
    it, and only ``complete_maintenance`` brings a unit back.
    """
    name: str
    status: EquipmentStatus
    temperature: float  # °C
    last_maintenance: datetime
    energy_efficiency: float  # 0-100
    vibration: float  # 0-100
    maintenance_due: bool = False
    anomaly_detected: bool = False
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        TelemetryValidator.validate_percentage(self.energy_efficiency)
        TelemetryValidator.validate_percentage(self.vibration)

    @property
    def is_offline(self) -> bool:
        """Check if the unit is flagged offline."""
        return self.status == EquipmentStatus.OFFLINE

    @property
    def is_problem(self) -> bool:
        """Check if the unit is Critical or Warning."""
        return self.status in (EquipmentStatus.CRITICAL, EquipmentStatus.WARNING)

    def force_offline(self) -> None:
        """Force the unit offline until maintenance clears it."""
        self.status = EquipmentStatus.OFFLINE

    def complete_maintenance(self, timestamp: Optional[datetime] = None) -> None:
        """Record a maintenance visit and clear a sticky Offline state."""
        # Local import: health depends on this module
        from .health import equipment_status

        self.last_maintenance = timestamp or datetime.now()
        self.maintenance_due = False
        self.status = equipment_status(self.energy_efficiency)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "temperature": self.temperature,
            "last_maintenance": self.last_maintenance.isoformat(),
            "maintenance_due": self.maintenance_due,
            "anomaly_detected": self.anomaly_detected,
            "energy_efficiency": self.energy_efficiency,
            "vibration": self.vibration
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Equipment':
        """Create from dictionary."""
        return cls(
            id=data.get("id") or new_id(),
            name=data["name"],
            status=EquipmentStatus(data["status"]),
            temperature=data["temperature"],
            last_maintenance=_parse_timestamp(data["last_maintenance"]),
            maintenance_due=data.get("maintenance_due", False),
            anomaly_detected=data.get("anomaly_detected", False),
            energy_efficiency=data["energy_efficiency"],
            vibration=data["vibration"]
        )


@dataclass
class Site:
    """Physical facility with equipment and energy telemetry history."""
    name: str
    location: GeoLocation
    category: SiteCategory
    status: SiteStatus = SiteStatus.ONLINE
    energy_data: List[EnergyDataPoint] = field(default_factory=list)
    equipment: List[Equipment] = field(default_factory=list)
    last_disaster_check: Optional[datetime] = None
    disaster_risk_score: Optional[float] = None
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        validate_site_name(self.name)

    @property
    def latest_reading(self) -> EnergyDataPoint:
        """Get the current (last) energy reading."""
        if not self.energy_data:
            raise TelemetryError(f"Site {self.name} has no energy data")
        return self.energy_data[-1]

    @property
    def has_telemetry(self) -> bool:
        """Check if both equipment and energy data are present."""
        return bool(self.equipment) and bool(self.energy_data)

    def problem_equipment(self) -> List[Equipment]:
        """Get Critical and Warning equipment, in list order."""
        return [eq for eq in self.equipment if eq.is_problem]

    def count_status(self, status: EquipmentStatus) -> int:
        """Count equipment in the given status."""
        return sum(1 for eq in self.equipment if eq.status == status)

    def get_equipment(self, equipment_id: str) -> Optional[Equipment]:
        """Get an equipment unit by id."""
        for eq in self.equipment:
            if eq.id == equipment_id:
                return eq
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location.to_dict(),
            "category": self.category.value,
            "status": self.status.value,
            "energy_data": [point.to_dict() for point in self.energy_data],
            "equipment": [eq.to_dict() for eq in self.equipment],
            "last_disaster_check": (
                self.last_disaster_check.isoformat() if self.last_disaster_check else None
            ),
            "disaster_risk_score": self.disaster_risk_score
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Site':
        """Create from dictionary."""
        last_check = data.get("last_disaster_check")
        return cls(
            id=data.get("id") or new_id(),
            name=data["name"],
            location=GeoLocation.from_dict(data["location"]),
            category=SiteCategory(data["category"]),
            status=SiteStatus(data.get("status", SiteStatus.ONLINE.value)),
            energy_data=[EnergyDataPoint.from_dict(p) for p in data.get("energy_data", [])],
            equipment=[Equipment.from_dict(e) for e in data.get("equipment", [])],
            last_disaster_check=_parse_timestamp(last_check) if last_check else None,
            disaster_risk_score=data.get("disaster_risk_score")
        )
