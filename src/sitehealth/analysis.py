"""Fleet analysis: totals, health tables and before/after disaster comparison."""

from typing import List, Dict, Optional, Sequence
from dataclasses import dataclass
from datetime import datetime
import numpy as np
import pandas as pd

from .models import Site, EquipmentStatus
from .health import assess_sites, site_anomaly_score, site_health_label, HealthLabel
from .exceptions import AnalysisError

# Display order of equipment, most severe first
SEVERITY_ORDER = {
    EquipmentStatus.CRITICAL: 0,
    EquipmentStatus.OFFLINE: 1,
    EquipmentStatus.WARNING: 2,
    EquipmentStatus.OPERATIONAL: 3,
}

@dataclass
class SiteSnapshot:
    """Latest reading of a site captured at a point in time."""
    site_id: str
    name: str
    consumption: float
    efficiency: float
    timestamp: datetime

@dataclass
class FleetSummary:
    """Fleet-wide metrics."""
    site_count: int
    total_consumption: float
    average_efficiency: float
    average_risk_score: float
    health_counts: Dict[HealthLabel, int]
    equipment_status_counts: Dict[EquipmentStatus, int]

def take_snapshot(sites: Sequence[Site], timestamp: Optional[datetime] = None) -> List[SiteSnapshot]:
    """Capture the current reading of every site with telemetry."""
    timestamp = timestamp or datetime.now()
    return [
        SiteSnapshot(
            site_id=site.id,
            name=site.name,
            consumption=site.latest_reading.consumption,
            efficiency=site.latest_reading.efficiency,
            timestamp=timestamp
        )
        for site in sites
        if site.energy_data
    ]

def _percent_change(before: float, after: float) -> float:
    if before == 0:
        return float("nan")
    return (after - before) / before * 100.0

class FleetAnalyzer:
    """Tabular analysis of the site fleet."""

    def summarize(self, sites: Sequence[Site]) -> FleetSummary:
        """Compute fleet totals and distributions."""
        with_data = [site for site in sites if site.energy_data]
        consumption = [site.latest_reading.consumption for site in with_data]
        efficiency = [site.latest_reading.efficiency for site in with_data]
        risk = [site.disaster_risk_score for site in sites if site.disaster_risk_score is not None]

        health_counts = {label: 0 for label in HealthLabel}
        for health in assess_sites(with_data):
            health_counts[health.label] += 1

        status_counts = {status: 0 for status in EquipmentStatus}
        for site in sites:
            for equipment in site.equipment:
                status_counts[equipment.status] += 1

        return FleetSummary(
            site_count=len(sites),
            total_consumption=float(np.sum(consumption)) if consumption else 0.0,
            average_efficiency=float(np.mean(efficiency)) if efficiency else 0.0,
            average_risk_score=float(np.mean(risk)) if risk else 0.0,
            health_counts=health_counts,
            equipment_status_counts=status_counts
        )

    def health_table(self, sites: Sequence[Site]) -> pd.DataFrame:
        """One row per site, most anomalous first."""
        rows = []
        for site in sites:
            if not site.energy_data:
                continue
            latest = site.latest_reading
            score = site_anomaly_score(latest.efficiency, latest.consumption)
            rows.append({
                "site_id": site.id,
                "name": site.name,
                "category": site.category.value,
                "status": site.status.value,
                "efficiency": latest.efficiency,
                "consumption": latest.consumption,
                "anomaly_score": score,
                "health": site_health_label(score).value,
                "risk_score": site.disaster_risk_score,
                "critical_equipment": site.count_status(EquipmentStatus.CRITICAL)
            })

        df = pd.DataFrame(rows, columns=[
            "site_id", "name", "category", "status", "efficiency", "consumption",
            "anomaly_score", "health", "risk_score", "critical_equipment"
        ])
        return df.sort_values("anomaly_score", ascending=False, kind="mergesort").reset_index(drop=True)

    def equipment_table(self, sites: Sequence[Site]) -> pd.DataFrame:
        """All equipment, most severe first, then lowest efficiency."""
        rows = [
            {
                "site": site.name,
                "equipment_id": eq.id,
                "name": eq.name,
                "status": eq.status.value,
                "severity": SEVERITY_ORDER[eq.status],
                "temperature": eq.temperature,
                "vibration": eq.vibration,
                "efficiency": eq.energy_efficiency,
                "maintenance_due": eq.maintenance_due,
                "anomaly_detected": eq.anomaly_detected
            }
            for site in sites
            for eq in site.equipment
        ]
        df = pd.DataFrame(rows, columns=[
            "site", "equipment_id", "name", "status", "severity", "temperature",
            "vibration", "efficiency", "maintenance_due", "anomaly_detected"
        ])
        return df.sort_values(["severity", "efficiency"], kind="mergesort").reset_index(drop=True)

    def compare(self, before: Sequence[SiteSnapshot], sites: Sequence[Site]) -> pd.DataFrame:
        """
        Compare a pre-disaster snapshot with the current state.

        Sites missing from the snapshot get NaN before-values and changes.
        """
        previous = {snap.site_id: snap for snap in before}
        rows = []
        for site in sites:
            if not site.energy_data:
                continue
            latest = site.latest_reading
            snap = previous.get(site.id)
            before_consumption = snap.consumption if snap else float("nan")
            before_efficiency = snap.efficiency if snap else float("nan")
            rows.append({
                "site_id": site.id,
                "name": site.name,
                "before_consumption": before_consumption,
                "after_consumption": latest.consumption,
                "before_efficiency": before_efficiency,
                "after_efficiency": latest.efficiency,
                "consumption_change_pct": (
                    _percent_change(snap.consumption, latest.consumption) if snap else float("nan")
                ),
                "efficiency_change_pct": (
                    _percent_change(snap.efficiency, latest.efficiency) if snap else float("nan")
                )
            })

        return pd.DataFrame(rows, columns=[
            "site_id", "name", "before_consumption", "after_consumption",
            "before_efficiency", "after_efficiency",
            "consumption_change_pct", "efficiency_change_pct"
        ])

    def consumption_history(self, site: Site) -> pd.DataFrame:
        """Energy readings of a site indexed by timestamp."""
        if not site.energy_data:
            raise AnalysisError(f"No energy data for site: {site.name}")

        df = pd.DataFrame([point.to_dict() for point in site.energy_data])
        df["timestamp"] = pd.to_datetime(df["timestamp"])
        return df.drop(columns=["id"]).set_index("timestamp")
