"""
Health derivation rules for equipment and sites.

These are the only functions that turn telemetry into health labels; the
simulator, detector and map all classify through them so the labels never
diverge across consumers. Every function is total over its input domain.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence

from .models import Equipment, EquipmentStatus, Site

# Efficiency thresholds (percent)
CRITICAL_EFFICIENCY = 70.0
OPTIMAL_EFFICIENCY = 85.0
DEFAULT_SITE_EFFICIENCY = 70.0

# Site anomaly score thresholds
CRITICAL_ANOMALY_SCORE = 80.0
WARNING_ANOMALY_SCORE = 40.0

RISK_PER_CRITICAL_UNIT = 15.0

# Display palette
GREEN = "#36D399"
YELLOW = "#FBBD23"
RED = "#F87272"
GRAY = "#6E6E6E"


class HealthLabel(str, Enum):
    """Site-level health classification."""
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


class TemperatureLevel(str, Enum):
    """Equipment temperature band."""
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class SiteHealth:
    """Derived health of a site at its latest reading."""
    site_id: str
    site_name: str
    efficiency: float
    consumption: float
    anomaly_score: float
    label: HealthLabel


def equipment_status(efficiency: float) -> EquipmentStatus:
    """Classify an efficiency value: <70 Critical, <85 Warning, else Operational."""
    if efficiency < CRITICAL_EFFICIENCY:
        return EquipmentStatus.CRITICAL
    if efficiency < OPTIMAL_EFFICIENCY:
        return EquipmentStatus.WARNING
    return EquipmentStatus.OPERATIONAL


def derive_equipment_status(equipment: Equipment) -> EquipmentStatus:
    """Re-derive and store a unit's status, leaving Offline units untouched."""
    if not equipment.is_offline:
        equipment.status = equipment_status(equipment.energy_efficiency)
    return equipment.status


def site_efficiency(equipment: Sequence[Equipment]) -> float:
    """Mean equipment efficiency, 70 for an empty list."""
    if not equipment:
        return DEFAULT_SITE_EFFICIENCY
    return sum(eq.energy_efficiency for eq in equipment) / len(equipment)


def site_anomaly_score(efficiency: float, consumption: float) -> float:
    """Efficiency loss weighted by consumption."""
    return (100.0 - efficiency) * consumption / 100.0


def site_health_label(score: float) -> HealthLabel:
    """Classify an anomaly score."""
    if score > CRITICAL_ANOMALY_SCORE:
        return HealthLabel.CRITICAL
    if score > WARNING_ANOMALY_SCORE:
        return HealthLabel.WARNING
    return HealthLabel.HEALTHY


def disaster_risk_score(
    avg_efficiency: float,
    critical_count: int,
    jitter: float = 0.0
) -> float:
    """Risk score clamped to [0, 100]."""
    raw = 100.0 - avg_efficiency + RISK_PER_CRITICAL_UNIT * critical_count + jitter
    return min(100.0, max(0.0, raw))


def assess_site(site: Site) -> SiteHealth:
    """Derive the health of a site from its latest reading."""
    latest = site.latest_reading
    score = site_anomaly_score(latest.efficiency, latest.consumption)
    return SiteHealth(
        site_id=site.id,
        site_name=site.name,
        efficiency=latest.efficiency,
        consumption=latest.consumption,
        anomaly_score=score,
        label=site_health_label(score)
    )


def assess_sites(sites: Iterable[Site]) -> List[SiteHealth]:
    """Assess sites with telemetry, most anomalous first."""
    assessed = [assess_site(site) for site in sites if site.energy_data]
    return sorted(assessed, key=lambda h: h.anomaly_score, reverse=True)


def efficiency_color(efficiency: float) -> str:
    """Marker color for an efficiency value."""
    if efficiency >= OPTIMAL_EFFICIENCY:
        return GREEN
    if efficiency >= CRITICAL_EFFICIENCY:
        return YELLOW
    return RED


def status_color(status: EquipmentStatus) -> str:
    """Marker color for an equipment status."""
    return {
        EquipmentStatus.OPERATIONAL: GREEN,
        EquipmentStatus.WARNING: YELLOW,
        EquipmentStatus.CRITICAL: RED,
        EquipmentStatus.OFFLINE: GRAY,
    }[status]


def temperature_level(temperature: float) -> TemperatureLevel:
    """Band a temperature reading: >80 critical, >60 warning."""
    if temperature > 80:
        return TemperatureLevel.CRITICAL
    if temperature > 60:
        return TemperatureLevel.WARNING
    return TemperatureLevel.NORMAL
