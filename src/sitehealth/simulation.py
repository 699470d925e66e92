"""Site population and disaster impact simulation."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import List, Optional, Callable, Sequence
import logging
import time

import numpy as np

from .config import GeneratorConfig, SimulatorConfig
from .exceptions import SimulationError
from .health import (
    derive_equipment_status,
    disaster_risk_score,
    equipment_status,
    site_efficiency,
)
from .models import (
    EnergyDataPoint,
    Equipment,
    EquipmentStatus,
    GeoLocation,
    Site,
    SiteCategory,
    SiteStatus,
    new_id,
)

# Chennai neighbourhoods used to seed site positions
CHENNAI_AREAS = [
    ("T. Nagar", 13.0418, 80.2341),
    ("Adyar", 13.0012, 80.2565),
    ("Anna Nagar", 13.0891, 80.2158),
    ("Mylapore", 13.0342, 80.2698),
    ("Velachery", 12.9815, 80.2176),
    ("Besant Nagar", 12.9977, 80.2646),
    ("Guindy", 13.0067, 80.2206),
    ("Nungambakkam", 13.0569, 80.2425),
    ("Porur", 13.0376, 80.1570),
    ("Tambaram", 12.9249, 80.1000),
    ("Chromepet", 12.9516, 80.1462),
    ("Royapettah", 13.0509, 80.2598),
]

FACTORY_NAMES = [
    "Chennai Petrochemical",
    "Tamil Nadu Electronics",
    "Marina Industrial Park",
    "Ambattur Manufacturing",
    "Integral Machinery",
    "Coromandel Steel Works",
    "Madras Rubber Factory",
    "Bay Area Textiles",
    "South Indian Pharmaceuticals",
    "Chennai Heavy Engineering",
    "Tondiarpet Power Station",
    "Ennore Metal Works",
]

STREET_NAMES = [
    "Gandhi Road", "Nehru Avenue", "Mount Road", "Poonamallee High Road",
    "Cathedral Road", "Anna Salai", "Sardar Patel Road", "GST Road",
    "ECR", "OMR", "Rajiv Gandhi Salai", "Velachery Main Road",
]

EQUIPMENT_TYPES = [
    "Power Supply Unit", "Main Transformer", "Backup Generator",
    "Cooling System", "Solar Inverter", "Battery Array",
    "Distribution Panel", "Transmission Line", "Motor Controller",
    "UPS System", "Industrial Chiller", "Pump System",
    "Voltage Regulator", "Capacitor Bank", "Air Compressor",
]

# Categories common in the Chennai industrial zones
GENERATED_CATEGORIES = [
    SiteCategory.MANUFACTURING_PLANT, SiteCategory.ELECTRONICS_FACTORY,
    SiteCategory.TEXTILE_MILL, SiteCategory.DATA_CENTER,
    SiteCategory.CHEMICAL_PLANT, SiteCategory.AUTOMOTIVE_FACTORY,
    SiteCategory.DISTRIBUTION_CENTER, SiteCategory.POWER_SUBSTATION,
    SiteCategory.PROCESSING_UNIT,
]


@dataclass
class SiteImpact:
    """What a disaster pass did to one site."""
    site_id: str
    site_name: str
    degraded_equipment: List[str]
    consumption_before: float
    consumption_after: float
    efficiency_after: float
    risk_score: float
    voltage_event: Optional[str] = None  # "surge" or "brownout"


@dataclass
class DisasterReport:
    """Result of a disaster simulation pass."""
    timestamp: datetime
    impacts: List[SiteImpact] = field(default_factory=list)
    skipped_sites: List[str] = field(default_factory=list)

    @property
    def degraded_count(self) -> int:
        """Total number of degraded equipment units."""
        return sum(len(impact.degraded_equipment) for impact in self.impacts)


@dataclass
class RecoveryReport:
    """Result of a partial recovery pass."""
    timestamp: datetime
    eased_equipment: int = 0
    eased_readings: int = 0
    status_changes: int = 0
    skipped_sites: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Check if the pass changed anything."""
        return bool(self.eased_equipment or self.eased_readings or self.status_changes)


class SiteGenerator:
    """Generates an initial site population with equipment and energy history."""

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize generator."""
        self.config = config or GeneratorConfig()
        self.rng = np.random.RandomState(self.config.random_seed)
        self._clock = clock or datetime.now
        self.logger = logging.getLogger("sitehealth.generator")

    def generate(self, count: Optional[int] = None) -> List[Site]:
        """Generate ``count`` sites (defaults to the configured site count)."""
        count = self.config.site_count if count is None else count
        now = self._clock()
        sites = [self._generate_site(i, now) for i in range(count)]
        self.logger.info(f"Generated {len(sites)} sites")
        return sites

    def _generate_site(self, index: int, now: datetime) -> Site:
        area_name, base_lat, base_lng = CHENNAI_AREAS[index % len(CHENNAI_AREAS)]
        jitter = self.config.position_jitter

        # Spread sites out around the neighbourhood centre
        lat = base_lat + (self.rng.random_sample() - 0.5) * jitter
        lng = base_lng + (self.rng.random_sample() - 0.5) * jitter

        street_number = self.rng.randint(1, 201)
        street = STREET_NAMES[self.rng.randint(len(STREET_NAMES))]
        address = f"{street_number}, {street}, {area_name}, Chennai"

        equipment_count = self.rng.randint(
            self.config.min_equipment, self.config.max_equipment + 1
        )
        equipment = [self._generate_equipment(now) for _ in range(equipment_count)]

        avg_efficiency = site_efficiency(equipment)
        critical_count = sum(1 for eq in equipment if eq.status == EquipmentStatus.CRITICAL)

        return Site(
            name=FACTORY_NAMES[index % len(FACTORY_NAMES)],
            location=GeoLocation(lat=float(lat), lng=float(lng), address=address),
            category=GENERATED_CATEGORIES[self.rng.randint(len(GENERATED_CATEGORIES))],
            status=list(SiteStatus)[self.rng.randint(len(SiteStatus))],
            energy_data=self._generate_history(avg_efficiency, now),
            equipment=equipment,
            last_disaster_check=now,
            disaster_risk_score=disaster_risk_score(
                avg_efficiency, critical_count, jitter=self.rng.uniform(0, 10)
            )
        )

    def _generate_equipment(self, now: datetime) -> Equipment:
        efficiency = round(float(self.rng.uniform(60, 98)), 1)

        if self.rng.random_sample() < self.config.offline_probability:
            status = EquipmentStatus.OFFLINE
        else:
            status = equipment_status(efficiency)

        critical = status == EquipmentStatus.CRITICAL
        temperature = self.rng.uniform(70, 95) if critical else self.rng.uniform(30, 65)
        vibration = self.rng.uniform(60, 90) if critical else self.rng.uniform(10, 40)
        days_since_service = int(self.rng.randint(1, 91))

        return Equipment(
            name=EQUIPMENT_TYPES[self.rng.randint(len(EQUIPMENT_TYPES))],
            status=status,
            temperature=round(float(temperature), 1),
            last_maintenance=now - timedelta(days=days_since_service),
            energy_efficiency=efficiency,
            vibration=round(float(vibration), 1),
            maintenance_due=bool(self.rng.random_sample() > 0.7),
            anomaly_detected=status != EquipmentStatus.OPERATIONAL
        )

    def _generate_history(self, efficiency: float, now: datetime) -> List[EnergyDataPoint]:
        hours = self.config.history_hours
        return [
            EnergyDataPoint(
                timestamp=now - timedelta(hours=hours - 1 - j),
                consumption=round(float(self.rng.uniform(50, 200)), 2),
                renewable=round(float(self.rng.uniform(10, 100)), 2),
                grid=round(float(self.rng.uniform(20, 150)), 2),
                cost=round(float(self.rng.uniform(100, 500)), 2),
                savings=round(float(self.rng.uniform(10, 100)), 2),
                efficiency=efficiency,
                voltage=round(self.config.nominal_voltage + float(self.rng.uniform(-5, 5)), 1)
            )
            for j in range(hours)
        ]


class DisasterSimulator:
    """Stochastic post-disaster degradation and partial recovery.

    Both passes mutate sites in place. Sites without equipment or energy
    data are skipped; an empty site is a quiescent state, not a fault.
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize simulator with configuration."""
        self.config = config or SimulatorConfig()
        self.rng = np.random.RandomState(self.config.random_seed)
        self._clock = clock or datetime.now
        self.logger = logging.getLogger("sitehealth.simulation")

    def simulate_disaster_impact(self, sites: Sequence[Site]) -> DisasterReport:
        """Degrade equipment, spike consumption and append a post-disaster reading."""
        self._round_trip("Disaster analysis")

        now = self._clock()
        report = DisasterReport(timestamp=now)

        for site in sites:
            if not site.has_telemetry:
                self.logger.debug(f"Skipping {site.name}: no telemetry")
                report.skipped_sites.append(site.id)
                continue
            report.impacts.append(self._impact_site(site, now))

        self.logger.info(
            f"Disaster simulated on {len(report.impacts)} sites, "
            f"{report.degraded_count} equipment units degraded"
        )
        return report

    def reset_to_normal(self, sites: Sequence[Site]) -> RecoveryReport:
        """Ease overheated and vibrating equipment back toward baseline."""
        self._round_trip("Reset")

        report = RecoveryReport(timestamp=self._clock())

        for site in sites:
            if not site.has_telemetry:
                self.logger.debug(f"Skipping {site.name}: no telemetry")
                report.skipped_sites.append(site.id)
                continue

            for equipment in site.equipment:
                if self._ease_equipment(equipment):
                    report.eased_equipment += 1
                previous = equipment.status
                if derive_equipment_status(equipment) != previous:
                    report.status_changes += 1

            if self._ease_reading(site.latest_reading):
                report.eased_readings += 1

        self.logger.info(
            f"Reset eased {report.eased_equipment} equipment units and "
            f"{report.eased_readings} readings"
        )
        return report

    def _impact_site(self, site: Site, now: datetime) -> SiteImpact:
        cfg = self.config
        degraded = []

        for equipment in site.equipment:
            if self.rng.random_sample() >= cfg.degradation_probability:
                continue
            if not equipment.is_offline:
                equipment.status = EquipmentStatus.CRITICAL
            equipment.temperature += self.rng.uniform(*cfg.temperature_rise)
            equipment.vibration = min(100.0, equipment.vibration + self.rng.uniform(*cfg.vibration_rise))
            equipment.energy_efficiency = max(
                0.0, equipment.energy_efficiency - self.rng.uniform(*cfg.efficiency_drop)
            )
            equipment.anomaly_detected = True
            degraded.append(equipment.name)

        latest = site.latest_reading
        consumption_before = latest.consumption
        latest.consumption += self.rng.uniform(*cfg.consumption_spike)

        voltage_event = None
        if latest.voltage is not None:
            if self.rng.random_sample() < cfg.surge_probability:
                latest.voltage *= cfg.surge_factor
                voltage_event = "surge"
            else:
                latest.voltage *= cfg.brownout_factor
                voltage_event = "brownout"

        # Recompute the aggregate first, then append the reading that mirrors it
        avg_efficiency = site_efficiency(site.equipment)
        critical_count = site.count_status(EquipmentStatus.CRITICAL)
        site.disaster_risk_score = disaster_risk_score(
            avg_efficiency, critical_count, jitter=self.rng.uniform(0, cfg.risk_jitter)
        )

        # Lower efficiency drives a higher draw
        scale = 100.0 / max(avg_efficiency, 1.0)
        timestamp = now if now > latest.timestamp else latest.timestamp + timedelta(seconds=1)
        post_disaster = replace(
            latest,
            id=new_id(),
            timestamp=timestamp,
            efficiency=avg_efficiency,
            consumption=latest.consumption * scale
        )
        site.energy_data.append(post_disaster)
        site.last_disaster_check = now

        return SiteImpact(
            site_id=site.id,
            site_name=site.name,
            degraded_equipment=degraded,
            consumption_before=consumption_before,
            consumption_after=post_disaster.consumption,
            efficiency_after=avg_efficiency,
            risk_score=site.disaster_risk_score,
            voltage_event=voltage_event
        )

    def _ease_equipment(self, equipment: Equipment) -> bool:
        cfg = self.config
        eased = False

        if equipment.temperature > cfg.temperature_threshold:
            equipment.temperature = max(cfg.temperature_floor, equipment.temperature - cfg.recovery_step)
            eased = True

        if equipment.vibration > cfg.vibration_threshold:
            equipment.vibration = max(cfg.vibration_floor, equipment.vibration - cfg.recovery_step)
            eased = True

        return eased

    def _ease_reading(self, reading: EnergyDataPoint) -> bool:
        cfg = self.config
        eased = False

        if reading.consumption > cfg.consumption_threshold:
            reading.consumption = max(cfg.consumption_floor, reading.consumption - cfg.consumption_step)
            eased = True

        if reading.voltage is not None and abs(reading.voltage - cfg.nominal_voltage) > cfg.voltage_tolerance:
            reading.voltage = cfg.nominal_voltage
            eased = True

        return eased

    def _round_trip(self, operation: str) -> None:
        """Emulate the latency and transient failures of a remote call."""
        if self.config.failure_rate > 0 and self.rng.random_sample() < self.config.failure_rate:
            raise SimulationError(f"{operation} failed: simulated transient failure")
        if self.config.latency_seconds > 0:
            time.sleep(self.config.latency_seconds)
