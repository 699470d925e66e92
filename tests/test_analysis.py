"""Tests for fleet analysis tables."""

import sys
from pathlib import Path
import math
import unittest

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from sitehealth.analysis import FleetAnalyzer, take_snapshot
from sitehealth.exceptions import AnalysisError
from sitehealth.health import HealthLabel
from sitehealth.models import EquipmentStatus

from site_factories import BASE_TIME, make_fleet, make_reading, make_site


class TestFleetAnalyzer(unittest.TestCase):

    def setUp(self):
        self.analyzer = FleetAnalyzer()
        self.sites = make_fleet()

    def test_summarize(self):
        summary = self.analyzer.summarize(self.sites)

        self.assertEqual(summary.site_count, 3)
        self.assertAlmostEqual(summary.total_consumption, 540.0)
        self.assertAlmostEqual(summary.average_efficiency, 75.0)
        self.assertEqual(summary.average_risk_score, 0.0)
        self.assertEqual(summary.health_counts[HealthLabel.CRITICAL], 1)
        self.assertEqual(summary.health_counts[HealthLabel.WARNING], 1)
        self.assertEqual(summary.health_counts[HealthLabel.HEALTHY], 1)
        self.assertEqual(summary.equipment_status_counts[EquipmentStatus.CRITICAL], 3)
        self.assertEqual(summary.equipment_status_counts[EquipmentStatus.OFFLINE], 1)

    def test_summarize_empty_fleet(self):
        summary = self.analyzer.summarize([])
        self.assertEqual(summary.total_consumption, 0.0)
        self.assertEqual(summary.average_efficiency, 0.0)

    def test_health_table_most_anomalous_first(self):
        df = self.analyzer.health_table(self.sites + [make_site("Silent", readings=[])])

        self.assertEqual(list(df["name"]), ["Tambaram Textiles", "Ennore Metal Works", "Marina Industrial Park"])
        self.assertAlmostEqual(df["anomaly_score"].iloc[0], 91.0)
        self.assertEqual(df["health"].iloc[0], "Critical")
        self.assertEqual(df["critical_equipment"].iloc[0], 2)

    def test_equipment_table_order(self):
        df = self.analyzer.equipment_table(self.sites)
        self.assertEqual(list(df["name"]), [
            "Motor Controller", "Air Compressor", "Cooling System", "Main Transformer",
            "UPS System", "Battery Array", "Solar Inverter"
        ])

    def test_compare_before_and_after(self):
        snapshot = take_snapshot(self.sites, BASE_TIME)
        self.sites[0].energy_data.append(make_reading(consumption=150.0, efficiency=72.0))
        extra = make_site("Porur Plant")

        df = self.analyzer.compare(snapshot, self.sites + [extra])

        first = df.iloc[0]
        self.assertAlmostEqual(first["before_consumption"], 100.0)
        self.assertAlmostEqual(first["after_consumption"], 150.0)
        self.assertAlmostEqual(first["consumption_change_pct"], 50.0)
        self.assertAlmostEqual(first["efficiency_change_pct"], -20.0)
        self.assertAlmostEqual(df.iloc[1]["consumption_change_pct"], 0.0)
        self.assertTrue(math.isnan(df.iloc[3]["before_consumption"]))

    def test_compare_zero_baseline(self):
        site = make_site(readings=[make_reading(consumption=0.0)])
        snapshot = take_snapshot([site])
        site.energy_data.append(make_reading(consumption=80.0))

        df = self.analyzer.compare(snapshot, [site])

        self.assertTrue(math.isnan(df.iloc[0]["consumption_change_pct"]))

    def test_snapshot_skips_sites_without_readings(self):
        snapshot = take_snapshot([make_site(readings=[])] + self.sites, BASE_TIME)
        self.assertEqual(len(snapshot), 3)
        self.assertEqual(snapshot[0].timestamp, BASE_TIME)

    def test_consumption_history(self):
        df = self.analyzer.consumption_history(make_site())
        self.assertEqual(len(df), 2)
        self.assertIn("consumption", df.columns)
        self.assertNotIn("id", df.columns)
        self.assertTrue(df.index.is_monotonic_increasing)

    def test_consumption_history_requires_data(self):
        with self.assertRaises(AnalysisError):
            self.analyzer.consumption_history(make_site(readings=[]))


if __name__ == '__main__':
    unittest.main()
