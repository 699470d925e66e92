"""Core site health engine implementation."""

from datetime import datetime
from typing import List, Optional, Callable
import logging

import pandas as pd

from .analysis import FleetAnalyzer, FleetSummary, SiteSnapshot, take_snapshot
from .config import EngineConfig
from .detection import IssueLedger, PowerIssue, PowerIssueDetector
from .events import EventType
from .exceptions import DataFetchError, PersistenceError, SiteHealthError
from .models import Site
from .simulation import DisasterReport, DisasterSimulator, RecoveryReport, SiteGenerator
from .store import KeyValueStorage, TelemetryStore
from .visualization import MapView, MatplotlibMapRenderer, OverlayBuilder


class SiteHealthEngine:
    """
    Main engine that wires the telemetry store to simulation, detection and the map.

    Failures of the suspending operations (fetch, simulation, reset) are not
    raised to the caller: the message is kept in ``error`` and the operation
    returns None. Nothing is retried.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[KeyValueStorage] = None,
        generator: Optional[SiteGenerator] = None,
        renderer: Optional[MatplotlibMapRenderer] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize engine with configuration."""
        self.config = config or EngineConfig()
        self.config.ensure_valid()

        self.store = TelemetryStore(storage, self.config.store)
        self.generator = generator or SiteGenerator(self.config.generator, clock)
        self.simulator = DisasterSimulator(self.config.simulator, clock)
        self.detector = PowerIssueDetector(self.config.detector, clock)
        self.ledger = IssueLedger()
        self.analyzer = FleetAnalyzer()

        self.map_view = MapView(
            lambda: self.store.sites,
            OverlayBuilder(self.config.visualization, self.detector),
            renderer=renderer
        )
        self._unsubscribe = self.store.subscribe(self.map_view.on_store_event)

        self.is_loading = False
        self.error: Optional[str] = None
        self.pre_disaster: List[SiteSnapshot] = []
        self.logger = logging.getLogger("sitehealth.engine")

    @property
    def sites(self) -> List[Site]:
        return self.store.sites

    def fetch_sites(self) -> Optional[List[Site]]:
        """Restore persisted sites, or generate a fresh population."""
        def fetch():
            try:
                restored = self.store.restore()
            except PersistenceError as e:
                raise DataFetchError(f"Failed to fetch sites: {str(e)}")
            if not restored:
                self.store.load(self.generator.generate())
            self.logger.info(f"Fetched {len(self.store)} sites")
            return self.store.sites

        return self._run("Fetch", fetch)

    def run_disaster_simulation(self) -> Optional[DisasterReport]:
        """Degrade the fleet and notify the map."""
        def simulate():
            snapshot = take_snapshot(self.store.sites)
            report = self.simulator.simulate_disaster_impact(self.store.sites)
            self.pre_disaster = snapshot
            self.store.mark_changed(
                EventType.DISASTER_SIMULATED,
                [impact.site_id for impact in report.impacts],
                {"degraded_equipment": report.degraded_count}
            )
            return report

        return self._run("Disaster simulation", simulate)

    def reset_to_normal(self) -> Optional[RecoveryReport]:
        """Partially recover the fleet and notify the map."""
        def reset():
            report = self.simulator.reset_to_normal(self.store.sites)
            self.store.mark_changed(
                EventType.RESET_APPLIED,
                details={
                    "eased_equipment": report.eased_equipment,
                    "eased_readings": report.eased_readings
                }
            )
            return report

        return self._run("Reset", reset)

    def toggle_disaster_mode(self) -> bool:
        """
        Switch the map's anomaly mode, simulating a disaster when turning it on
        and easing the fleet back when turning it off.

        Returns:
            The new anomaly mode, unchanged when the operation failed
        """
        if not self.map_view.anomaly_mode:
            report = self.run_disaster_simulation()
        else:
            report = self.reset_to_normal()
        if report is not None:
            self.map_view.toggle_anomaly_mode()
        return self.map_view.anomaly_mode

    def detect_power_issues(self, site_id: Optional[str] = None) -> List[PowerIssue]:
        """Run detection for one site or the whole fleet and load the ledger."""
        if site_id is not None:
            issues = self.detector.detect(self.store.get_site(site_id))
        else:
            issues = self.detector.detect_all(self.store.sites)
        self.ledger.load(issues)
        return issues

    def complete_maintenance(self, site_id: str, equipment_id: str) -> None:
        """Record maintenance on an equipment unit."""
        site = self.store.get_site(site_id)
        equipment = site.get_equipment(equipment_id)
        if equipment is None:
            raise SiteHealthError(f"Equipment {equipment_id} not found at {site.name}")

        equipment.complete_maintenance()
        self.store.mark_changed(EventType.EQUIPMENT_MAINTAINED, [site_id], {"equipment_id": equipment_id})

    def fleet_summary(self) -> FleetSummary:
        return self.analyzer.summarize(self.store.sites)

    def disaster_comparison(self) -> pd.DataFrame:
        """Before/after table for the last disaster simulation."""
        return self.analyzer.compare(self.pre_disaster, self.store.sites)

    def save(self) -> None:
        """Persist the current state."""
        self.store.persist()

    def close(self) -> None:
        """Detach the map and release the rendering surface."""
        self._unsubscribe()
        if self.map_view.renderer is not None:
            self.map_view.renderer.destroy()

    def _run(self, operation: str, action):
        self.is_loading = True
        self.error = None
        try:
            return action()
        except SiteHealthError as e:
            self.error = str(e)
            self.logger.error(f"{operation} failed: {self.error}")
            return None
        finally:
            self.is_loading = False
