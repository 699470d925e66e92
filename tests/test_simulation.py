"""Tests for the population generator and the disaster simulator."""

import sys
from pathlib import Path
import unittest
from datetime import timedelta

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from sitehealth.config import GeneratorConfig, SimulatorConfig
from sitehealth.exceptions import SimulationError
from sitehealth.health import equipment_status, site_efficiency
from sitehealth.models import EquipmentStatus
from sitehealth.simulation import SiteGenerator, DisasterSimulator, CHENNAI_AREAS

from site_factories import BASE_TIME, make_equipment, make_fleet, make_reading, make_site


def clock():
    return BASE_TIME + timedelta(hours=1)


class TestSiteGenerator(unittest.TestCase):

    def setUp(self):
        self.generator = SiteGenerator(GeneratorConfig(site_count=12, random_seed=7), clock)

    def test_population_shape(self):
        sites = self.generator.generate()

        self.assertEqual(len(sites), 12)
        for site in sites:
            self.assertTrue(3 <= len(site.equipment) <= 7)
            self.assertEqual(len(site.energy_data), 24)
            self.assertIsNotNone(site.disaster_risk_score)
            self.assertTrue(0 <= site.disaster_risk_score <= 100)

    def test_sites_near_their_neighbourhood(self):
        sites = self.generator.generate()
        for site, (_, lat, lng) in zip(sites, CHENNAI_AREAS):
            self.assertLess(abs(site.location.lat - lat), 0.016)
            self.assertLess(abs(site.location.lng - lng), 0.016)

    def test_equipment_status_matches_efficiency(self):
        for site in self.generator.generate():
            for equipment in site.equipment:
                self.assertTrue(60 <= equipment.energy_efficiency <= 98)
                if equipment.status != EquipmentStatus.OFFLINE:
                    self.assertEqual(equipment.status, equipment_status(equipment.energy_efficiency))

    def test_history_is_hourly_and_ends_now(self):
        site = self.generator.generate(1)[0]
        stamps = [point.timestamp for point in site.energy_data]
        self.assertEqual(stamps[-1], clock())
        self.assertEqual(stamps[1] - stamps[0], timedelta(hours=1))
        self.assertAlmostEqual(site.energy_data[-1].efficiency, site_efficiency(site.equipment))

    def test_seeded_generation_is_reproducible(self):
        other = SiteGenerator(GeneratorConfig(site_count=12, random_seed=7), clock)
        first = [s.to_dict() for s in self.generator.generate()]
        second = [s.to_dict() for s in other.generate()]
        for a, b in zip(first, second):
            a.pop("id"), b.pop("id")
            self.assertEqual(a["location"], b["location"])
            self.assertEqual(len(a["equipment"]), len(b["equipment"]))


class TestDisasterSimulator(unittest.TestCase):

    def setUp(self):
        self.simulator = DisasterSimulator(SimulatorConfig(random_seed=3), clock)

    def test_appends_exactly_one_point_with_higher_consumption(self):
        sites = make_fleet()
        before = [(len(s.energy_data), s.latest_reading.consumption) for s in sites]

        self.simulator.simulate_disaster_impact(sites)

        for site, (length, consumption) in zip(sites, before):
            self.assertEqual(len(site.energy_data), length + 1)
            self.assertGreaterEqual(site.latest_reading.consumption, consumption)

    def test_new_point_mirrors_recomputed_efficiency(self):
        sites = make_fleet()
        self.simulator.simulate_disaster_impact(sites)
        for site in sites:
            self.assertAlmostEqual(site.latest_reading.efficiency, site_efficiency(site.equipment))
            self.assertGreater(site.latest_reading.timestamp, site.energy_data[-2].timestamp)
            self.assertNotEqual(site.latest_reading.id, site.energy_data[-2].id)

    def test_repeated_simulation_keeps_growing(self):
        sites = make_fleet()
        for _ in range(5):
            previous = [s.latest_reading.consumption for s in sites]
            self.simulator.simulate_disaster_impact(sites)
            for site, consumption in zip(sites, previous):
                self.assertGreaterEqual(site.latest_reading.consumption, consumption)
        self.assertEqual(len(sites[0].energy_data), 2 + 5)

    def test_degraded_units_are_critical_and_flagged(self):
        units = [make_equipment(95.0, name=f"Unit {i}") for i in range(40)]
        site = make_site(equipment=units)

        report = self.simulator.simulate_disaster_impact([site])

        degraded = report.impacts[0].degraded_equipment
        self.assertGreater(len(degraded), 0)
        for unit in units:
            if unit.name in degraded:
                self.assertEqual(unit.status, EquipmentStatus.CRITICAL)
                self.assertTrue(unit.anomaly_detected)
                self.assertGreaterEqual(unit.temperature, 60.0)
                self.assertLessEqual(unit.energy_efficiency, 85.0)
            else:
                self.assertEqual(unit.status, EquipmentStatus.OPERATIONAL)

    def test_offline_units_stay_offline(self):
        config = SimulatorConfig(degradation_probability=0.5, random_seed=1)
        simulator = DisasterSimulator(config, clock)
        units = [make_equipment(80.0, EquipmentStatus.OFFLINE) for _ in range(20)]
        site = make_site(equipment=units)

        simulator.simulate_disaster_impact([site])

        self.assertTrue(all(u.status == EquipmentStatus.OFFLINE for u in units))

    def test_efficiency_never_negative(self):
        units = [make_equipment(5.0) for _ in range(30)]
        site = make_site(equipment=units)
        for _ in range(3):
            self.simulator.simulate_disaster_impact([site])
        self.assertTrue(all(u.energy_efficiency >= 0 for u in units))

    def test_vibration_never_above_100(self):
        units = [make_equipment(80.0, vibration=90.0) for _ in range(20)]
        site = make_site(equipment=units)
        for _ in range(3):
            self.simulator.simulate_disaster_impact([site])
        self.assertTrue(all(u.vibration <= 100.0 for u in units))
        self.assertTrue(any(u.vibration == 100.0 for u in units))

    def test_voltage_surges_or_sags(self):
        site = make_site(readings=[make_reading(voltage=200.0)])
        report = self.simulator.simulate_disaster_impact([site])
        voltage = site.energy_data[0].voltage
        if report.impacts[0].voltage_event == "surge":
            self.assertAlmostEqual(voltage, 300.0)
        else:
            self.assertAlmostEqual(voltage, 140.0)

    def test_risk_score_and_check_time_updated(self):
        site = make_site()
        self.simulator.simulate_disaster_impact([site])
        self.assertEqual(site.last_disaster_check, clock())
        self.assertTrue(0 <= site.disaster_risk_score <= 100)

    def test_sites_without_telemetry_are_skipped(self):
        no_equipment = make_site("Bare", equipment=[])
        no_readings = make_site("Silent", readings=[])

        report = self.simulator.simulate_disaster_impact([no_equipment, no_readings])

        self.assertEqual(report.impacts, [])
        self.assertEqual(len(report.skipped_sites), 2)
        self.assertEqual(len(no_equipment.energy_data), 2)

    def test_failure_raises_before_mutation(self):
        simulator = DisasterSimulator(SimulatorConfig(failure_rate=1.0, random_seed=0), clock)
        site = make_site()
        with self.assertRaises(SimulationError):
            simulator.simulate_disaster_impact([site])
        self.assertEqual(len(site.energy_data), 2)


class TestResetToNormal(unittest.TestCase):

    def setUp(self):
        self.simulator = DisasterSimulator(SimulatorConfig(random_seed=3), clock)

    def test_eases_overheated_equipment(self):
        hot = make_equipment(60.0, temperature=95.0, vibration=90.0)
        warm = make_equipment(90.0, temperature=70.0, vibration=50.0)
        site = make_site(equipment=[hot, warm])

        self.simulator.reset_to_normal([site])

        self.assertAlmostEqual(hot.temperature, 75.0)
        self.assertAlmostEqual(hot.vibration, 70.0)
        self.assertAlmostEqual(warm.temperature, 70.0)
        self.assertAlmostEqual(warm.vibration, 50.0)

    def test_floors(self):
        simulator = DisasterSimulator(SimulatorConfig(recovery_step=40.0), clock)
        unit = make_equipment(90.0, temperature=81.0, vibration=61.0)
        simulator.reset_to_normal([make_site(equipment=[unit])])
        self.assertEqual(unit.temperature, 60.0)
        self.assertEqual(unit.vibration, 40.0)

    def test_efficiency_never_raised_and_offline_kept(self):
        degraded = make_equipment(50.0, temperature=99.0)
        dead = make_equipment(90.0, EquipmentStatus.OFFLINE, temperature=99.0)
        self.simulator.reset_to_normal([make_site(equipment=[degraded, dead])])
        self.assertEqual(degraded.energy_efficiency, 50.0)
        self.assertEqual(degraded.status, EquipmentStatus.CRITICAL)
        self.assertEqual(dead.status, EquipmentStatus.OFFLINE)

    def test_eases_latest_reading(self):
        site = make_site(readings=[make_reading(consumption=260.0, voltage=330.0)])
        self.simulator.reset_to_normal([site])
        self.assertEqual(site.latest_reading.consumption, 160.0)
        self.assertEqual(site.latest_reading.voltage, 220.0)

    def test_converges_then_no_change(self):
        sites = make_fleet()
        DisasterSimulator(SimulatorConfig(random_seed=11), clock).simulate_disaster_impact(sites)

        for _ in range(50):
            self.simulator.reset_to_normal(sites)
        snapshot = [s.to_dict() for s in sites]

        report = self.simulator.reset_to_normal(sites)

        self.assertFalse(report.changed)
        self.assertEqual([s.to_dict() for s in sites], snapshot)


if __name__ == '__main__':
    unittest.main()
